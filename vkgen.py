"""Vulkan registry reader and Rust bindings generator.

Reads the Khronos vk.xml registry into a checked symbol table and emits
Rust FFI bindings (a single vulkan.rs) with dispatch tables for loading
function pointers at runtime.

Usage:
    python vkgen.py Vulkan-Docs/src/spec/vk.xml --output-dir vulkan
"""

import argparse
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import ClassVar

PROJECT_ROOT = Path(__file__).parent
DEFAULT_VK_XML = PROJECT_ROOT / "Vulkan-Docs" / "src" / "spec" / "vk.xml"
DEFAULT_OUTPUT_DIR = PROJECT_ROOT / "vulkan"
OUTPUT_FILENAME = "vulkan.rs"


# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class GenerateConfig:
    vk_xml: Path
    output_dir: Path
    check_only: bool = False


VALID_ERROR_CODES = {
    "PATH_NOT_FOUND",
}


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


def validate_path_exists(
    path: Path | None, flag: str, suggestion: str | None = None
) -> Path:
    if path is None:
        raise ConfigError(
            "PATH_NOT_FOUND",
            f"{flag} is required: no path provided.",
            suggestion or f"Pass the path explicitly: {flag} /path/to/resource",
        )
    if path.exists():
        return path
    raise ConfigError(
        "PATH_NOT_FOUND",
        f"Path for {flag} does not exist: {path}",
        suggestion or "Provide an existing path for this argument.",
    )


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate Rust bindings from the Vulkan XML registry"
    )

    parser.add_argument("vk_xml", nargs="?", type=Path, default=DEFAULT_VK_XML)
    parser.add_argument("--output-dir", type=Path, default=DEFAULT_OUTPUT_DIR)
    parser.add_argument("--check", action="store_true", default=False)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def validate_config(args: argparse.Namespace) -> GenerateConfig:
    vk_xml = validate_path_exists(
        args.vk_xml,
        "vk_xml",
        "Clone Vulkan-Docs:\n"
        "  git clone https://github.com/KhronosGroup/Vulkan-Docs.git\n"
        "Or pass the registry path as the first argument: vkgen /your/path/to/vk.xml",
    )
    return GenerateConfig(
        vk_xml=vk_xml,
        output_dir=args.output_dir,
        check_only=bool(args.check),
    )


def build_config(argv: list[str] | None = None) -> GenerateConfig:
    return validate_config(parse_args(argv))


# ===--- Registry errors ---=== #

VALID_REGISTRY_ERROR_CODES = {
    "MALFORMED_DOCUMENT",
    "DUPLICATE_DEFINITION",
    "UNKNOWN_C_TYPE",
    "UNRESOLVED_REFERENCES",
    "UNKNOWN_EXTENSION_TARGET",
    "UNSUPPORTED_EXTENSION_CLASSIFICATION",
}


class RegistryError(Exception):
    """Fatal fault found while reading, checking or emitting the registry.

    Attributes:
        code: One of VALID_REGISTRY_ERROR_CODES.
        message: Human-readable diagnostic.
        names: The offending names, in the order they were found.
    """

    def __init__(self, code: str, message: str, names: tuple[str, ...] = ()):
        if code not in VALID_REGISTRY_ERROR_CODES:
            raise ValueError(f"Unknown registry error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.names = names


class MalformedDocument(RegistryError):
    def __init__(self, message: str):
        super().__init__("MALFORMED_DOCUMENT", message)


class DuplicateDefinition(RegistryError):
    def __init__(self, name: str):
        super().__init__("DUPLICATE_DEFINITION", f"{name} is defined twice", (name,))


class UnknownCType(RegistryError):
    def __init__(self, name: str):
        super().__init__(
            "UNKNOWN_C_TYPE", f"{name} is not a registered C primitive", (name,)
        )


class UnresolvedReferences(RegistryError):
    def __init__(self, names: list[str] | tuple[str, ...]):
        names = tuple(names)
        super().__init__(
            "UNRESOLVED_REFERENCES",
            f"{len(names)} name(s) referenced but never defined: {', '.join(names)}",
            names,
        )


class UnknownExtensionTarget(RegistryError):
    def __init__(self, extension: str, name: str):
        super().__init__(
            "UNKNOWN_EXTENSION_TARGET",
            f"{extension} references {name}, which is never defined",
            (name,),
        )
        self.extension = extension


class UnsupportedExtensionClassification(RegistryError):
    def __init__(self, extension: str, classification: str | None):
        super().__init__(
            "UNSUPPORTED_EXTENSION_CLASSIFICATION",
            f"{extension} has unsupported type {classification!r}"
            " (expected 'instance' or 'device')",
            (extension,),
        )
        self.classification = classification


# ===--- Registry model ---=== #


class Kind(Enum):
    PRIMITIVE = "primitive"
    PLACEHOLDER = "placeholder"
    SCALAR_ALIAS = "scalar alias"
    FUNCTION_ALIAS = "function pointer alias"
    BITMASK_SET = "bitmask set"
    BITMASK_ALIAS = "bitmask alias"
    HANDLE_ALIAS = "handle alias"
    STRUCT = "struct"
    ENUM = "enumeration"
    API_CONSTANT = "API constant"


class PointerShape(Enum):
    T_P = "T*"
    T_PP = "T**"
    T_P_CONST_P = "T* const*"
    CONST_T_P = "const T*"
    CONST_T_PP = "const T**"
    CONST_T_P_CONST_P = "const T* const*"


@dataclass(eq=False)
class Entry:
    """A named slot in the symbol table.

    An entry without a definition is a placeholder: the name has been
    referenced but not yet defined. Definitions are filled in place so
    every earlier reference observes them.
    """

    name: str
    definition: "Payload | None" = None
    extensions: list[str] = field(default_factory=list)
    disabled: bool = False

    @property
    def kind(self) -> Kind:
        if self.definition is None:
            return Kind.PLACEHOLDER
        return self.definition.kind

    @property
    def is_placeholder(self) -> bool:
        return self.definition is None


@dataclass(frozen=True)
class TypeRef:
    """A resolved use of a type: base entry plus pointer and array qualifiers."""

    entry: Entry
    pointer: PointerShape | None = None
    const: bool = False
    array_dims: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.entry.name


@dataclass(frozen=True)
class Primitive:
    kind: ClassVar[Kind] = Kind.PRIMITIVE
    c_name: str
    target: str
    opaque: bool = False


@dataclass
class Param:
    """A struct member, command parameter or callback parameter."""

    name: str
    type_ref: TypeRef


@dataclass
class EnumMember:
    name: str
    value: str


@dataclass
class ScalarAlias:
    kind: ClassVar[Kind] = Kind.SCALAR_ALIAS
    underlying: TypeRef


@dataclass
class FunctionAlias:
    kind: ClassVar[Kind] = Kind.FUNCTION_ALIAS
    return_type: TypeRef
    params: list[Param] = field(default_factory=list)


@dataclass
class BitmaskSet:
    kind: ClassVar[Kind] = Kind.BITMASK_SET
    members: list[EnumMember] = field(default_factory=list)


@dataclass
class BitmaskAlias:
    kind: ClassVar[Kind] = Kind.BITMASK_ALIAS
    underlying: TypeRef
    flags: Entry | None = None


@dataclass
class HandleAlias:
    kind: ClassVar[Kind] = Kind.HANDLE_ALIAS
    underlying: TypeRef
    dispatchable: bool
    parent: str | None = None


@dataclass
class Struct:
    kind: ClassVar[Kind] = Kind.STRUCT
    members: list[Param] = field(default_factory=list)
    is_union: bool = False


@dataclass
class Enumeration:
    kind: ClassVar[Kind] = Kind.ENUM
    members: list[EnumMember] = field(default_factory=list)


@dataclass
class ApiConstant:
    """A typed literal from the API Constants block.

    complement is set for the `~0` idioms: the value is `~0 - complement`.
    """

    kind: ClassVar[Kind] = Kind.API_CONSTANT
    data_type: TypeRef
    value: str
    complement: int | None = None


Payload = (
    Primitive
    | ScalarAlias
    | FunctionAlias
    | BitmaskSet
    | BitmaskAlias
    | HandleAlias
    | Struct
    | Enumeration
    | ApiConstant
)


@dataclass
class Command:
    name: str
    return_type: TypeRef
    params: list[Param] = field(default_factory=list)
    extension: str | None = None
    disabled: bool = False


@dataclass
class EnumInjection:
    """An enum value an extension adds to an existing enumeration or bitmask set."""

    name: str
    extends: str
    bitpos: int | None = None
    offset: int | None = None
    value: str | None = None
    negative: bool = False
    extnumber: int | None = None


_EXTENSION_TAG_RE = re.compile(r"^VK_([A-Z0-9]+)_")


@dataclass
class Extension:
    name: str
    number: int
    classification: str | None = None
    disabled: bool = False
    protect: str | None = None
    commands: list[str] = field(default_factory=list)
    types: list[str] = field(default_factory=list)
    injections: list[EnumInjection] = field(default_factory=list)
    constants: list[EnumMember] = field(default_factory=list)

    @property
    def tag(self) -> str | None:
        match = _EXTENSION_TAG_RE.match(self.name)
        return match.group(1) if match else None


# ===--- Primitive type map ---=== #

C_TO_RUST = {
    "void": "()",
    "char": "c_char",
    "float": "f32",
    "double": "f64",
    "int": "c_int",
    "int8_t": "i8",
    "int16_t": "i16",
    "int32_t": "i32",
    "int64_t": "i64",
    "uint8_t": "u8",
    "uint16_t": "u16",
    "uint32_t": "u32",
    "uint64_t": "u64",
    "size_t": "usize",
}

# Platform types with a fixed-size Rust spelling.
PLATFORM_TYPES = {
    "VisualID": "c_ulong",
    "Window": "c_ulong",
    "RROutput": "c_ulong",
    "xcb_visualid_t": "u32",
    "xcb_window_t": "u32",
    "DWORD": "u32",
    "HANDLE": "*mut c_void",
    "HINSTANCE": "*mut c_void",
    "HWND": "*mut c_void",
    "HMONITOR": "*mut c_void",
    "LPCWSTR": "*const u16",
    "zx_handle_t": "u32",
    "GgpFrameToken": "u32",
    "GgpStreamDescriptor": "u32",
}

# Platform types only ever used behind a pointer.
OPAQUE_PLATFORM_TYPES = {
    "ANativeWindow",
    "AHardwareBuffer",
    "CAMetalLayer",
    "Display",
    "IDirectFB",
    "IDirectFBSurface",
    "MirConnection",
    "MirSurface",
    "SECURITY_ATTRIBUTES",
    "wl_display",
    "wl_surface",
    "xcb_connection_t",
}


def build_primitives() -> dict[str, Primitive]:
    primitives = {name: Primitive(name, target) for name, target in C_TO_RUST.items()}
    primitives.update(
        (name, Primitive(name, target)) for name, target in PLATFORM_TYPES.items()
    )
    primitives.update(
        (name, Primitive(name, "c_void", opaque=True))
        for name in sorted(OPAQUE_PLATFORM_TYPES)
    )
    return primitives


DEFAULT_PRIMITIVES = build_primitives()


# ===--- Symbol table ---=== #


class Registry:
    """Owns every named entity of one registry document.

    Lifecycle: construct, populate with the document reader, run
    process_extensions, then finalize(), which checks the table, freezes
    it and returns the read-only RegistryView handed to emitters.
    """

    def __init__(self, primitives: dict[str, Primitive] | None = None):
        if primitives is None:
            primitives = DEFAULT_PRIMITIVES
        self._entries: dict[str, Entry] = {
            name: Entry(name, primitive) for name, primitive in primitives.items()
        }
        self._definitions: list[Entry] = []
        self._unresolved: dict[str, None] = {}
        self._commands: dict[str, Command] = {}
        self._extensions: dict[str, Extension] = {}
        self._frozen = False
        self.ignored_types: set[str] = set()
        self.tags: set[str] | None = None
        self.license_header: str | None = None
        self.header_version: str | None = None
        self.api_version: str | None = None
        self.extensions_processed = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RuntimeError("registry is frozen; no definitions after finalize()")

    def define(self, name: str, payload: Payload) -> Entry:
        """Define name concretely, promoting a placeholder if one exists.

        Raises:
            DuplicateDefinition: name is already concretely defined
                (primitives included).
        """
        self._check_mutable()
        entry = self._entries.get(name)
        if entry is None:
            entry = Entry(name)
            self._entries[name] = entry
        elif not entry.is_placeholder:
            raise DuplicateDefinition(name)
        entry.definition = payload
        self._unresolved.pop(name, None)
        self._definitions.append(entry)
        return entry

    def reference(self, name: str) -> Entry:
        """Return the entry for name, creating a placeholder if it is unknown.

        Repeated calls for the same name return the same Entry object.
        """
        if not name:
            raise MalformedDocument("empty type name in reference")
        entry = self._entries.get(name)
        if entry is None:
            self._check_mutable()
            entry = Entry(name)
            self._entries[name] = entry
            self._unresolved[name] = None
        return entry

    def require_primitive(self, name: str) -> Entry:
        entry = self._entries.get(name)
        if entry is None or entry.kind is not Kind.PRIMITIVE:
            raise UnknownCType(name)
        return entry

    def lookup(self, name: str) -> Entry | None:
        return self._entries.get(name)

    def define_command(self, command: Command) -> Command:
        self._check_mutable()
        if command.name in self._commands:
            raise DuplicateDefinition(command.name)
        self._commands[command.name] = command
        return command

    def lookup_command(self, name: str) -> Command | None:
        return self._commands.get(name)

    def define_extension(self, extension: Extension) -> Extension:
        self._check_mutable()
        if extension.name in self._extensions:
            raise DuplicateDefinition(extension.name)
        self._extensions[extension.name] = extension
        return extension

    def lookup_extension(self, name: str) -> Extension | None:
        return self._extensions.get(name)

    def unresolved_names(self) -> list[str]:
        return list(self._unresolved)

    def definitions(self, kind: Kind | None = None) -> list[Entry]:
        if kind is None:
            return list(self._definitions)
        return [entry for entry in self._definitions if entry.kind is kind]

    def commands(self) -> list[Command]:
        return list(self._commands.values())

    def extensions(self) -> list[Extension]:
        """Extensions ordered by extension number, document order breaking ties."""
        return sorted(self._extensions.values(), key=lambda extension: extension.number)

    def finalize(self) -> "RegistryView":
        """Check the fully read registry, freeze it and return its view.

        Raises:
            UnresolvedReferences: placeholders remain.
            MalformedDocument: a bitmask links to something that is not a
                bitmask set.
        """
        check_undefined_references(self)
        check_bitmask_links(self)
        self._frozen = True
        return RegistryView(self)


# ===--- Reference resolver ---=== #

POINTER_SHAPES = {
    "*": (PointerShape.T_P, PointerShape.CONST_T_P),
    "**": (PointerShape.T_PP, PointerShape.CONST_T_PP),
    "*const*": (PointerShape.T_P_CONST_P, PointerShape.CONST_T_P_CONST_P),
}

_DECLARATION_RE = re.compile(r"^(const\s+)?(?:struct\s+)?([A-Za-z_][A-Za-z0-9_]*)\s*(.*)$")


def parse_pointer_shape(qualifier: str, const: bool = False) -> PointerShape | None:
    compact = "".join(qualifier.split())
    if not compact:
        return None
    shapes = POINTER_SHAPES.get(compact)
    if shapes is None:
        raise MalformedDocument(f"unrecognized pointer qualifier {qualifier.strip()!r}")
    return shapes[1] if const else shapes[0]


def parse_declaration(text: str) -> tuple[bool, str, str]:
    """Split a C type fragment like "const char* const*" into (const, base, qualifier)."""
    match = _DECLARATION_RE.match(text.strip())
    if match is None:
        raise MalformedDocument(f"unparseable type declaration {text.strip()!r}")
    return bool(match.group(1)), match.group(2), match.group(3)


def resolve_type(
    registry: Registry,
    base: str,
    qualifier: str = "",
    const: bool = False,
    array_dims: tuple[str, ...] = (),
) -> TypeRef:
    entry = registry.reference(base)
    pointer = parse_pointer_shape(qualifier, const)
    for dim in array_dims:
        if not dim.isdigit():
            registry.reference(dim)
    return TypeRef(entry, pointer, const, tuple(array_dims))


def resolve_declaration(registry: Registry, text: str) -> TypeRef:
    const, base, qualifier = parse_declaration(text)
    return resolve_type(registry, base, qualifier, const)


# ===--- Enum value arithmetic ---=== #

ENUM_BASE_VALUE = 1000000000
ENUM_RANGE_SIZE = 1000


def extension_enum_value(extension_number: int, offset: int, negative: bool = False) -> int:
    value = ENUM_BASE_VALUE + (extension_number - 1) * ENUM_RANGE_SIZE + offset
    return -value if negative else value


def bitpos_to_value(bitpos: int) -> str:
    if bitpos < 0:
        raise MalformedDocument(f"negative bit position {bitpos}")
    width = 8 if bitpos < 32 else 16
    return f"0x{1 << bitpos:0{width}x}"


def _append_member(members: list[EnumMember], member: EnumMember) -> None:
    if any(existing.name == member.name for existing in members):
        raise DuplicateDefinition(member.name)
    members.append(member)


# ===--- Document reader ---=== #

API_CONSTANTS = "API Constants"
WELL_KNOWN_TAGS = ("KHX", "EXT", "KHR")
LICENSE_SEPARATOR = "\n\n-----"
HEADER_VERSION_DEFINE = "VK_HEADER_VERSION"
IGNORED_BLOCKS = {"vendorids", "platforms"}
IGNORED_COMMAND_CHILDREN = {"implicitexternsyncparams", "validity"}

# Handle macro -> (underlying C type, dispatchable)
HANDLE_MACROS = {
    "VK_DEFINE_HANDLE": ("size_t", True),
    "VK_DEFINE_NON_DISPATCHABLE_HANDLE": ("uint64_t", False),
}

_INTEGER_LITERAL_RE = re.compile(r"^(-)?[0-9]+$")
_FLOAT_LITERAL_RE = re.compile(r"^([0-9]+\.[0-9]+)[fF]$")
_COMPLEMENT_LITERAL_RE = re.compile(r"^\(~0U(LL)?(?:-([0-9]+))?\)$")
_ARRAY_DIMS_RE = re.compile(r"^(?:\[\s*[A-Za-z0-9_]+\s*\])+$")
_ARRAY_DIM_RE = re.compile(r"\[\s*([A-Za-z0-9_]+)\s*\]")
_FUNCPOINTER_HEAD_RE = re.compile(
    r"^typedef\s+([A-Za-z_][A-Za-z0-9_]*)\s*(\*)?\s*\(VKAPI_PTR\s*\*$"
)
_FUNCPOINTER_OPEN_RE = re.compile(r"^\)\(\s*(const)?$")
_FUNCPOINTER_PARAM_RE = re.compile(r"^(\*\*?)?\s*([A-Za-z_][A-Za-z0-9_]*)(.*)$", re.DOTALL)
_FUNCPOINTER_NEXT_RE = re.compile(r"^,\s*(const)?$")


def _required_attr(element: ET.Element, attr: str, context: str) -> str:
    value = element.get(attr)
    if not value:
        raise MalformedDocument(f"{context}: <{element.tag}> is missing '{attr}'")
    return value


def _parse_int(text: str, context: str) -> int:
    try:
        return int(text)
    except ValueError as err:
        raise MalformedDocument(f"{context}: expected an integer, got {text!r}") from err


def _parse_bitpos(text: str, context: str) -> int:
    bitpos = _parse_int(text, context)
    if bitpos < 0:
        raise MalformedDocument(f"{context}: bitpos must not be negative, got {bitpos}")
    return bitpos


def _mixed_content(element: ET.Element) -> list[str | ET.Element]:
    """Flatten an element into its text fragments and child elements, in order.

    Whitespace-only text and <comment> children are dropped.
    """
    nodes: list[str | ET.Element] = []

    def _add_text(text: str | None) -> None:
        if text is None or not text.strip():
            return
        if nodes and isinstance(nodes[-1], str):
            nodes[-1] += text
        else:
            nodes.append(text)

    _add_text(element.text)
    for child in element:
        if child.tag != "comment":
            nodes.append(child)
        _add_text(child.tail)
    return nodes


def _expect_child(
    nodes: list[str | ET.Element], index: int, tag: str, context: str
) -> ET.Element:
    if index >= len(nodes):
        raise MalformedDocument(f"{context}: expected <{tag}>, found end of element")
    node = nodes[index]
    if isinstance(node, str) or node.tag != tag or not (node.text or "").strip():
        found = repr(node.strip()) if isinstance(node, str) else f"<{node.tag}>"
        raise MalformedDocument(f"{context}: expected <{tag}>, found {found}")
    return node


def _read_array_dims(name_text: str, trailing: list[str | ET.Element], context: str):
    name, bracket, rest = name_text.strip().partition("[")
    text = bracket + rest
    for node in trailing:
        if isinstance(node, str):
            text += node
        elif node.tag == "enum":
            text += (node.text or "").strip()
        else:
            raise MalformedDocument(f"{context}: unexpected <{node.tag}> after <name>")
    text = "".join(text.split())
    if not text:
        return name, ()
    if not _ARRAY_DIMS_RE.match(text):
        raise MalformedDocument(f"{context}: unrecognized declarator suffix {text!r}")
    return name, tuple(_ARRAY_DIM_RE.findall(text))


def read_declaration(registry: Registry, element: ET.Element, owner: str) -> Param:
    """Read a `[const] <type>T</type>[*] <name>N</name>[dims]` declaration."""
    context = f"{owner} <{element.tag}>"
    nodes = _mixed_content(element)
    index = 0
    const = False
    if nodes and isinstance(nodes[0], str):
        words = nodes[0].split()
        if words in (["const"], ["const", "struct"]):
            const = True
        elif words != ["struct"]:
            raise MalformedDocument(f"{context}: unexpected text {nodes[0].strip()!r}")
        index = 1

    type_el = _expect_child(nodes, index, "type", context)
    index += 1
    qualifier = ""
    if index < len(nodes) and isinstance(nodes[index], str):
        qualifier = nodes[index]
        index += 1
    name_el = _expect_child(nodes, index, "name", context)
    name, array_dims = _read_array_dims(name_el.text or "", nodes[index + 1 :], context)

    if const and not qualifier.strip() and not array_dims:
        raise MalformedDocument(f"{context}: const {name} is neither pointer nor array")
    type_ref = resolve_type(
        registry, (type_el.text or "").strip(), qualifier, const, array_dims
    )
    return Param(name, type_ref)


def _read_typedef(element: ET.Element, category: str) -> tuple[str, str]:
    nodes = _mixed_content(element)
    if (
        len(nodes) != 4
        or not isinstance(nodes[0], str)
        or nodes[0].strip() != "typedef"
        or not isinstance(nodes[3], str)
        or nodes[3].strip() != ";"
    ):
        raise MalformedDocument(f"unrecognized {category} declaration")
    type_el = _expect_child(nodes, 1, "type", category)
    name_el = _expect_child(nodes, 2, "name", category)
    return (type_el.text or "").strip(), (name_el.text or "").strip()


def read_basetype(registry: Registry, element: ET.Element) -> None:
    underlying, name = _read_typedef(element, "basetype")
    registry.define(name, ScalarAlias(resolve_type(registry, underlying)))


def read_bitmask(registry: Registry, element: ET.Element) -> None:
    underlying, name = _read_typedef(element, "bitmask")
    requires = element.get("requires") or element.get("bitvalues")
    flags = registry.reference(requires) if requires else None
    registry.define(name, BitmaskAlias(resolve_type(registry, underlying), flags))


def read_define(registry: Registry, element: ET.Element) -> None:
    name = element.get("name") or (element.findtext("name") or "").strip()
    if name != HEADER_VERSION_DEFINE:
        if name:
            registry.ignored_types.add(name)
        return
    nodes = _mixed_content(element)
    version = nodes[-1].strip() if nodes and isinstance(nodes[-1], str) else ""
    if not version.isdigit():
        raise MalformedDocument(f"{HEADER_VERSION_DEFINE} has no numeric value")
    registry.header_version = version


def read_include(registry: Registry, element: ET.Element) -> None:
    registry.ignored_types.add(_required_attr(element, "name", "include"))


def read_funcpointer(registry: Registry, element: ET.Element) -> None:
    """Read a function-pointer typedef.

    The declarator is C text interleaved with <name> and <type> children:

        typedef void* (VKAPI_PTR *<name>PFN_x</name>)(
            <type>void</type>* pUserData,
            const <type>char</type>* pMessage);
    """
    nodes = _mixed_content(element)
    if len(nodes) < 3 or not isinstance(nodes[0], str) or not isinstance(nodes[2], str):
        raise MalformedDocument("unrecognized funcpointer declaration")
    head = _FUNCPOINTER_HEAD_RE.match(nodes[0].strip())
    if head is None:
        raise MalformedDocument(f"unrecognized funcpointer declarator {nodes[0].strip()!r}")
    return_type = resolve_type(registry, head.group(1), head.group(2) or "")
    name = (_expect_child(nodes, 1, "name", "funcpointer").text or "").strip()

    params: list[Param] = []
    if "".join(nodes[2].split()) == ")(void);":
        if len(nodes) != 3:
            raise MalformedDocument(f"{name}: unexpected content after (void)")
        registry.define(name, FunctionAlias(return_type, params))
        return

    opening = _FUNCPOINTER_OPEN_RE.match(nodes[2].strip())
    if opening is None:
        raise MalformedDocument(f"{name}: unrecognized parameter list {nodes[2].strip()!r}")
    const = bool(opening.group(1))
    index = 3
    while True:
        type_el = _expect_child(nodes, index, "type", name)
        if index + 1 >= len(nodes) or not isinstance(nodes[index + 1], str):
            raise MalformedDocument(f"{name}: parameter type without a name")
        param = _FUNCPOINTER_PARAM_RE.match(nodes[index + 1])
        if param is None:
            raise MalformedDocument(
                f"{name}: unrecognized parameter {nodes[index + 1].strip()!r}"
            )
        index += 2
        pointer, param_name, rest = param.groups()
        if const and not pointer:
            raise MalformedDocument(f"{name}: const parameter {param_name} is not a pointer")
        type_ref = resolve_type(registry, (type_el.text or "").strip(), pointer or "", const)
        params.append(Param(param_name, type_ref))

        rest = rest.strip()
        if rest == ");":
            if index != len(nodes):
                raise MalformedDocument(f"{name}: unexpected content after parameter list")
            break
        following = _FUNCPOINTER_NEXT_RE.match(rest)
        if following is None:
            raise MalformedDocument(f"{name}: unrecognized parameter separator {rest!r}")
        const = bool(following.group(1))

    registry.define(name, FunctionAlias(return_type, params))


def read_handle(registry: Registry, element: ET.Element) -> None:
    nodes = _mixed_content(element)
    macro_el = _expect_child(nodes, 0, "type", "handle")
    name = (_expect_child(nodes, 2, "name", "handle").text or "").strip()
    macro = (macro_el.text or "").strip()
    if macro not in HANDLE_MACROS:
        raise MalformedDocument(f"handle {name} uses unknown macro {macro!r}")
    underlying, dispatchable = HANDLE_MACROS[macro]
    registry.define(
        name,
        HandleAlias(resolve_type(registry, underlying), dispatchable, element.get("parent")),
    )


def _read_aggregate(registry: Registry, element: ET.Element, is_union: bool) -> None:
    name = _required_attr(element, "name", "struct")
    members: list[Param] = []
    for child in element:
        if child.tag == "comment":
            continue
        if child.tag != "member":
            raise MalformedDocument(f"{name}: unexpected <{child.tag}>")
        members.append(read_declaration(registry, child, name))
    registry.define(name, Struct(members, is_union))


def read_struct(registry: Registry, element: ET.Element) -> None:
    _read_aggregate(registry, element, is_union=False)


def read_union(registry: Registry, element: ET.Element) -> None:
    _read_aggregate(registry, element, is_union=True)


def read_enum_type(registry: Registry, element: ET.Element) -> None:
    # Declared by the matching <enums> block.
    pass


TYPE_CATEGORY_READERS = {
    "basetype": read_basetype,
    "bitmask": read_bitmask,
    "define": read_define,
    "enum": read_enum_type,
    "funcpointer": read_funcpointer,
    "handle": read_handle,
    "include": read_include,
    "struct": read_struct,
    "union": read_union,
}


def read_types(registry: Registry, block: ET.Element) -> None:
    for element in block:
        if element.tag == "comment":
            continue
        if element.tag != "type":
            raise MalformedDocument(f"unexpected <{element.tag}> in <types>")
        category = element.get("category")
        if category is None:
            registry.require_primitive(_required_attr(element, "name", "type"))
            continue
        reader = TYPE_CATEGORY_READERS.get(category)
        if reader is None:
            raise MalformedDocument(f"unknown type category {category!r}")
        reader(registry, element)


def parse_api_constant(registry: Registry, name: str, literal: str) -> ApiConstant:
    text = literal.strip()
    match = _INTEGER_LITERAL_RE.match(text)
    if match:
        data_type = "int32_t" if match.group(1) else "uint32_t"
        return ApiConstant(resolve_type(registry, data_type), text)
    match = _FLOAT_LITERAL_RE.match(text)
    if match:
        return ApiConstant(resolve_type(registry, "float"), match.group(1))
    match = _COMPLEMENT_LITERAL_RE.match(text)
    if match:
        data_type = "uint64_t" if match.group(1) else "uint32_t"
        complement = int(match.group(2) or 0)
        return ApiConstant(resolve_type(registry, data_type), text, complement)
    raise MalformedDocument(f"API constant {name} has unrecognized value {literal!r}")


def read_api_constants(registry: Registry, block: ET.Element) -> None:
    for element in block:
        if element.tag in ("comment", "unused"):
            continue
        name = _required_attr(element, "name", API_CONSTANTS)
        alias = element.get("alias")
        if alias is not None:
            target = registry.lookup(alias)
            if target is None or target.kind is not Kind.API_CONSTANT:
                raise MalformedDocument(f"API constant {name} aliases unknown {alias}")
            source = target.definition
            registry.define(
                name, ApiConstant(source.data_type, source.value, source.complement)
            )
            continue
        literal = _required_attr(element, "value", name)
        registry.define(name, parse_api_constant(registry, name, literal))


def read_enums(registry: Registry, block: ET.Element) -> None:
    name = _required_attr(block, "name", "enums")
    if name == API_CONSTANTS:
        read_api_constants(registry, block)
        return
    block_type = block.get("type")
    if block_type not in ("enum", "bitmask"):
        raise MalformedDocument(f"enums block {name} has unsupported type {block_type!r}")

    members: list[EnumMember] = []
    for element in block:
        if element.tag in ("unused", "comment"):
            continue
        if element.tag != "enum":
            raise MalformedDocument(f"{name}: unexpected <{element.tag}>")
        if element.get("alias") is not None:
            continue
        member_name = _required_attr(element, "name", name)
        value = element.get("value")
        bitpos = element.get("bitpos")
        if (value is None) == (bitpos is None):
            raise MalformedDocument(f"{member_name} needs exactly one of value or bitpos")
        if bitpos is not None:
            value = bitpos_to_value(_parse_bitpos(bitpos, member_name))
        _append_member(members, EnumMember(member_name, value))

    payload = BitmaskSet(members) if block_type == "bitmask" else Enumeration(members)
    registry.define(name, payload)


def read_command(registry: Registry, element: ET.Element) -> None:
    children = [child for child in element if child.tag != "comment"]
    if not children or children[0].tag != "proto":
        raise MalformedDocument("<command> must start with <proto>")
    proto = read_declaration(registry, children[0], "command")
    if proto.type_ref.array_dims:
        raise MalformedDocument(f"{proto.name}: array return type")

    params: list[Param] = []
    for child in children[1:]:
        if child.tag == "param":
            params.append(read_declaration(registry, child, proto.name))
        elif child.tag not in IGNORED_COMMAND_CHILDREN:
            raise MalformedDocument(f"{proto.name}: unexpected <{child.tag}>")
    registry.define_command(Command(proto.name, proto.type_ref, params))


def read_commands(registry: Registry, block: ET.Element) -> None:
    for element in block:
        if element.tag == "comment":
            continue
        if element.tag != "command":
            raise MalformedDocument(f"unexpected <{element.tag}> in <commands>")
        read_command(registry, element)


def _read_extension_enum(extension: Extension, element: ET.Element) -> None:
    name = _required_attr(element, "name", extension.name)
    if element.get("alias") is not None:
        return
    extends = element.get("extends")
    value = element.get("value")
    bitpos = element.get("bitpos")
    offset = element.get("offset")

    if extends is None:
        if bitpos is not None or offset is not None:
            raise MalformedDocument(
                f"{extension.name}: {name} has bitpos/offset but no extends"
            )
        if value is not None:
            extension.constants.append(EnumMember(name, value))
        return

    forms = [form for form in (value, bitpos, offset) if form is not None]
    if len(forms) != 1:
        raise MalformedDocument(
            f"{extension.name}: {name} needs exactly one of value, bitpos or offset"
        )
    extnumber = element.get("extnumber")
    extension.injections.append(
        EnumInjection(
            name=name,
            extends=extends,
            bitpos=_parse_bitpos(bitpos, name) if bitpos is not None else None,
            offset=_parse_int(offset, name) if offset is not None else None,
            value=value,
            negative=element.get("dir") == "-",
            extnumber=_parse_int(extnumber, name) if extnumber is not None else None,
        )
    )


def _read_require(extension: Extension, require: ET.Element) -> None:
    for element in require:
        if element.tag == "command":
            extension.commands.append(_required_attr(element, "name", extension.name))
        elif element.tag == "type":
            extension.types.append(_required_attr(element, "name", extension.name))
        elif element.tag == "enum":
            if not extension.disabled:
                _read_extension_enum(extension, element)
        elif element.tag != "comment":
            raise MalformedDocument(f"{extension.name}: unexpected <{element.tag}>")


def read_extension(registry: Registry, element: ET.Element) -> None:
    name = _required_attr(element, "name", "extension")
    number = _parse_int(_required_attr(element, "number", name), name)
    requires = []
    for child in element:
        if child.tag == "require":
            requires.append(child)
        elif child.tag != "comment":
            raise MalformedDocument(f"{name}: unexpected <{child.tag}>")
    if len(requires) != 1:
        raise MalformedDocument(
            f"{name}: expected exactly one <require>, found {len(requires)}"
        )

    extension = Extension(
        name=name,
        number=number,
        classification=element.get("type"),
        disabled=element.get("supported") == "disabled",
        protect=element.get("protect"),
    )
    _read_require(extension, requires[0])
    registry.define_extension(extension)


def read_extensions(registry: Registry, block: ET.Element) -> None:
    for element in block:
        if element.tag == "comment":
            continue
        if element.tag != "extension":
            raise MalformedDocument(f"unexpected <{element.tag}> in <extensions>")
        read_extension(registry, element)


def read_comment(registry: Registry, element: ET.Element) -> None:
    if registry.license_header is not None:
        raise MalformedDocument("license header <comment> appears more than once")
    text = element.text or ""
    cut = text.find(LICENSE_SEPARATOR)
    if cut >= 0:
        text = text[:cut]
    registry.license_header = text.strip()


def read_tags(registry: Registry, block: ET.Element) -> None:
    if registry.tags is None:
        registry.tags = set(WELL_KNOWN_TAGS)
    for element in block:
        if element.tag == "tag":
            registry.tags.add(_required_attr(element, "name", "tags"))


def _version_key(number: str) -> tuple[int, ...]:
    return tuple(_parse_int(part, "feature number") for part in number.split("."))


def read_feature(registry: Registry, element: ET.Element) -> None:
    number = element.get("number")
    if number is None:
        return
    if registry.api_version is None or _version_key(number) > _version_key(
        registry.api_version
    ):
        registry.api_version = number


BLOCK_READERS = {
    "comment": read_comment,
    "tags": read_tags,
    "types": read_types,
    "enums": read_enums,
    "commands": read_commands,
    "extensions": read_extensions,
    "feature": read_feature,
}


def read_registry(registry: Registry, root: ET.Element) -> Registry:
    """Populate registry from a parsed vk.xml root, in document order.

    Args:
        registry: Fresh, mutable Registry.
        root: The <registry> element.

    Returns:
        The same registry, for chaining.

    Raises:
        MalformedDocument: Structural expectation violated.
        DuplicateDefinition: A name is defined twice.
        UnknownCType: An uncategorized <type> names an unregistered primitive.
    """
    if root.tag != "registry":
        raise MalformedDocument(f"root element is <{root.tag}>, expected <registry>")
    for block in root:
        reader = BLOCK_READERS.get(block.tag)
        if reader is not None:
            reader(registry, block)
        elif block.tag not in IGNORED_BLOCKS:
            raise MalformedDocument(f"unexpected top-level <{block.tag}>")
    return registry


# ===--- Extension post-processing ---=== #


def _apply_injection(registry: Registry, extension: Extension, injection: EnumInjection):
    target = registry.lookup(injection.extends)
    if target is None or target.kind not in (Kind.ENUM, Kind.BITMASK_SET):
        raise UnknownExtensionTarget(extension.name, injection.extends)

    if injection.bitpos is not None:
        if target.kind is not Kind.BITMASK_SET:
            raise MalformedDocument(
                f"{injection.name}: bitpos value extends non-bitmask {target.name}"
            )
        value = bitpos_to_value(injection.bitpos)
    elif injection.offset is not None:
        if target.kind is not Kind.ENUM:
            raise MalformedDocument(
                f"{injection.name}: offset value extends non-enumeration {target.name}"
            )
        number = injection.extnumber if injection.extnumber is not None else extension.number
        value = str(extension_enum_value(number, injection.offset, injection.negative))
    else:
        value = injection.value
    _append_member(target.definition.members, EnumMember(injection.name, value))


def _mark_command(registry: Registry, extension: Extension, name: str) -> None:
    command = registry.lookup_command(name)
    if command is None:
        if extension.disabled:
            return
        raise UnknownExtensionTarget(extension.name, name)
    owner = registry.lookup_extension(command.extension) if command.extension else None
    # A disabled owner yields to the first enabled extension listing the command.
    if owner is None or (owner.disabled and not extension.disabled):
        command.extension = extension.name
        command.disabled = extension.disabled


def _mark_type(registry: Registry, extension: Extension, name: str) -> None:
    if name in registry.ignored_types:
        return
    entry = registry.lookup(name)
    if entry is None or entry.is_placeholder:
        if extension.disabled:
            return
        raise UnknownExtensionTarget(extension.name, name)
    if entry.kind is Kind.PRIMITIVE:
        return
    entry.extensions.append(extension.name)
    entry.disabled = all(
        registry.lookup_extension(owner).disabled for owner in entry.extensions
    )


def process_extensions(registry: Registry) -> None:
    """Second pass: inject extension enum values and mark extension-owned items.

    Runs after the whole document has been read, since an extension may
    name items declared anywhere in the file.

    Raises:
        UnknownExtensionTarget: An enabled extension names an undefined
            command or type, or extends an unknown enumeration.
        MalformedDocument: Unknown author tag, or an injection form that
            does not fit its target.
        RuntimeError: Called twice on the same registry.
    """
    if registry.extensions_processed:
        raise RuntimeError("extensions have already been processed")
    registry._check_mutable()

    for extension in registry.extensions():
        if registry.tags is not None and extension.tag not in registry.tags:
            raise MalformedDocument(
                f"{extension.name} has unknown author tag {extension.tag!r}"
            )
        if not extension.disabled:
            for injection in extension.injections:
                _apply_injection(registry, extension, injection)
        for name in extension.commands:
            _mark_command(registry, extension, name)
        for name in extension.types:
            _mark_type(registry, extension, name)

    restore_reachable_types(registry)
    registry.extensions_processed = True


def _referenced_entries(registry: Registry, item: "Payload | Command | None") -> list[Entry]:
    if isinstance(item, Command):
        type_refs = [item.return_type] + [param.type_ref for param in item.params]
    elif isinstance(item, FunctionAlias):
        type_refs = [item.return_type] + [param.type_ref for param in item.params]
    elif isinstance(item, Struct):
        type_refs = [member.type_ref for member in item.members]
    elif isinstance(item, (ScalarAlias, BitmaskAlias, HandleAlias)):
        type_refs = [item.underlying]
    elif isinstance(item, ApiConstant):
        type_refs = [item.data_type]
    else:
        return []

    entries = [type_ref.entry for type_ref in type_refs]
    for type_ref in type_refs:
        entries.extend(
            registry.lookup(dim) for dim in type_ref.array_dims if not dim.isdigit()
        )
    if isinstance(item, BitmaskAlias) and item.flags is not None:
        entries.append(item.flags)
    return [entry for entry in entries if entry is not None]


def restore_reachable_types(registry: Registry) -> list[str]:
    """Re-enable disabled-extension types that enabled items still use.

    A type listed only by disabled extensions stays hidden unless an
    enabled definition or command reaches it, directly or through other
    types. Returns the restored names in the order they were found.
    """
    pending: list[Payload | Command | None] = [
        entry.definition for entry in registry.definitions() if not entry.disabled
    ]
    pending.extend(command for command in registry.commands() if not command.disabled)
    restored: list[str] = []
    while pending:
        for entry in _referenced_entries(registry, pending.pop()):
            if entry.disabled:
                entry.disabled = False
                restored.append(entry.name)
                pending.append(entry.definition)
    return restored


# ===--- Undefined-reference check ---=== #


def check_undefined_references(registry: Registry) -> None:
    unresolved = registry.unresolved_names()
    if unresolved:
        raise UnresolvedReferences(unresolved)


def check_bitmask_links(registry: Registry) -> None:
    for entry in registry.definitions(Kind.BITMASK_ALIAS):
        flags = entry.definition.flags
        if flags is not None and flags.kind is not Kind.BITMASK_SET:
            raise MalformedDocument(
                f"{entry.name} requires {flags.name}, a {flags.kind.value}, "
                "not a bitmask set"
            )


# ===--- Emission facade ---=== #


class CommandLevel(Enum):
    ENTRY = "entry"
    GLOBAL = "global"
    INSTANCE = "instance"
    DEVICE = "device"


ENTRY_COMMANDS = frozenset({"vkGetInstanceProcAddr"})
# Loaded through vkGetInstanceProcAddr even though it takes a VkDevice.
INSTANCE_COMMANDS = frozenset({"vkGetDeviceProcAddr"})
INSTANCE_LEVEL_TYPES = frozenset({"VkInstance", "VkPhysicalDevice"})
DEVICE_LEVEL_TYPES = frozenset({"VkDevice", "VkQueue", "VkCommandBuffer"})


def classify_command(command: Command) -> CommandLevel:
    if command.name in ENTRY_COMMANDS:
        return CommandLevel.ENTRY
    if command.name in INSTANCE_COMMANDS:
        return CommandLevel.INSTANCE
    if not command.params:
        return CommandLevel.GLOBAL
    first = command.params[0].type_ref
    if first.pointer is not None or first.array_dims:
        return CommandLevel.GLOBAL
    if first.name in INSTANCE_LEVEL_TYPES:
        return CommandLevel.INSTANCE
    if first.name in DEVICE_LEVEL_TYPES:
        return CommandLevel.DEVICE
    return CommandLevel.GLOBAL


def extension_level(extension: Extension) -> CommandLevel:
    if extension.classification == "instance":
        return CommandLevel.INSTANCE
    if extension.classification == "device":
        return CommandLevel.DEVICE
    raise UnsupportedExtensionClassification(extension.name, extension.classification)


class RegistryView:
    """Read-only, ordered access to a finalized registry.

    Every accessor returns items in definition order and leaves out items
    that only disabled extensions reference.
    """

    def __init__(self, registry: Registry):
        if not registry.frozen:
            raise RuntimeError("RegistryView requires a finalized registry")
        self._registry = registry

    @property
    def license_header(self) -> str | None:
        return self._registry.license_header

    @property
    def header_version(self) -> str | None:
        return self._registry.header_version

    @property
    def api_version(self) -> str | None:
        return self._registry.api_version

    def _entries_of(self, kind: Kind) -> list[Entry]:
        return [entry for entry in self._registry.definitions(kind) if not entry.disabled]

    def get_definitions(self) -> list[Entry]:
        return [entry for entry in self._registry.definitions() if not entry.disabled]

    def get_scalar_aliases(self) -> list[Entry]:
        return self._entries_of(Kind.SCALAR_ALIAS)

    def get_function_aliases(self) -> list[Entry]:
        return self._entries_of(Kind.FUNCTION_ALIAS)

    def get_handle_aliases(self) -> list[Entry]:
        return self._entries_of(Kind.HANDLE_ALIAS)

    def get_structs(self) -> list[Entry]:
        return self._entries_of(Kind.STRUCT)

    def get_enums(self) -> list[Entry]:
        return self._entries_of(Kind.ENUM)

    def get_api_constants(self) -> list[Entry]:
        return self._entries_of(Kind.API_CONSTANT)

    def get_bitmask_sets(self) -> list[Entry]:
        return self._entries_of(Kind.BITMASK_SET)

    def get_bitmask_aliases(self) -> list[Entry]:
        return self._entries_of(Kind.BITMASK_ALIAS)

    def get_unlinked_bitmask_sets(self) -> list[Entry]:
        linked = {
            id(alias.definition.flags)
            for alias in self.get_bitmask_aliases()
            if alias.definition.flags is not None
        }
        return [entry for entry in self.get_bitmask_sets() if id(entry) not in linked]

    def get_commands(self) -> list[Command]:
        return [command for command in self._registry.commands() if not command.disabled]

    def get_core_commands(self) -> list[Command]:
        return [command for command in self.get_commands() if command.extension is None]

    def _core_commands_at(self, level: CommandLevel) -> list[Command]:
        return [
            command
            for command in self.get_core_commands()
            if classify_command(command) is level
        ]

    def get_entry_commands(self) -> list[Command]:
        return self._core_commands_at(CommandLevel.ENTRY)

    def get_global_commands(self) -> list[Command]:
        return self._core_commands_at(CommandLevel.GLOBAL)

    def get_instance_commands(self) -> list[Command]:
        return self._core_commands_at(CommandLevel.INSTANCE)

    def get_device_commands(self) -> list[Command]:
        return self._core_commands_at(CommandLevel.DEVICE)

    def get_extensions(self) -> dict[str, Extension]:
        return {
            extension.name: extension
            for extension in self._registry.extensions()
            if not extension.disabled
        }

    def get_extension_commands(self, name: str) -> list[Command]:
        extension = self._registry.lookup_extension(name)
        if extension is None:
            raise KeyError(name)
        commands = []
        for command_name in extension.commands:
            command = self._registry.lookup_command(command_name)
            if command is not None and command.extension == name and not command.disabled:
                commands.append(command)
        return commands

    def _is_emitted(self, name: str) -> bool:
        entry = self._registry.lookup(name)
        if entry is not None and not entry.is_placeholder and not entry.disabled:
            return True
        command = self._registry.lookup_command(name)
        return command is not None and not command.disabled

    def get_excluded_names(self) -> frozenset[str]:
        excluded: set[str] = set()
        for extension in self._registry.extensions():
            if extension.disabled:
                excluded.update(
                    name
                    for name in extension.commands + extension.types
                    if not self._is_emitted(name)
                )
        return frozenset(excluded)


class BindingGenerator:
    """Emitter hooks, called by walk_registry in canonical order.

    Every hook is a no-op; emitters override what they render.
    """

    def begin_core(self, view: RegistryView) -> None:
        pass

    def gen_scalar_alias(self, entry: Entry) -> None:
        pass

    def gen_handle_alias(self, entry: Entry) -> None:
        pass

    def gen_function_alias(self, entry: Entry) -> None:
        pass

    def gen_struct(self, entry: Entry) -> None:
        pass

    def gen_enum(self, entry: Entry) -> None:
        pass

    def gen_api_constant(self, entry: Entry) -> None:
        pass

    def gen_bitmask(self, alias: Entry, flags: Entry | None) -> None:
        pass

    def gen_bitmask_set(self, entry: Entry) -> None:
        pass

    def gen_entry_commands(self, commands: list[Command]) -> None:
        pass

    def gen_global_commands(self, commands: list[Command]) -> None:
        pass

    def gen_instance_commands(self, commands: list[Command]) -> None:
        pass

    def gen_device_commands(self, commands: list[Command]) -> None:
        pass

    def end_core(self) -> None:
        pass

    def begin_extensions(self) -> None:
        pass

    def gen_extension(self, extension: Extension, commands: list[Command]) -> None:
        pass

    def end_extensions(self) -> None:
        pass


def walk_registry(view: RegistryView, generator: BindingGenerator) -> None:
    generator.begin_core(view)
    for entry in view.get_scalar_aliases():
        generator.gen_scalar_alias(entry)
    for entry in view.get_handle_aliases():
        generator.gen_handle_alias(entry)
    for entry in view.get_function_aliases():
        generator.gen_function_alias(entry)
    for entry in view.get_structs():
        generator.gen_struct(entry)
    for entry in view.get_enums():
        generator.gen_enum(entry)
    for entry in view.get_api_constants():
        generator.gen_api_constant(entry)
    for alias in view.get_bitmask_aliases():
        flags = alias.definition.flags
        generator.gen_bitmask(alias, None if flags is None or flags.disabled else flags)
    for entry in view.get_unlinked_bitmask_sets():
        generator.gen_bitmask_set(entry)
    generator.gen_entry_commands(view.get_entry_commands())
    generator.gen_global_commands(view.get_global_commands())
    generator.gen_instance_commands(view.get_instance_commands())
    generator.gen_device_commands(view.get_device_commands())
    generator.end_core()

    generator.begin_extensions()
    for extension in view.get_extensions().values():
        generator.gen_extension(extension, view.get_extension_commands(extension.name))
    generator.end_extensions()


# ===--- Rust type translation ---=== #

RUST_POINTER_FORMS = {
    PointerShape.T_P: "*mut {}",
    PointerShape.T_PP: "*mut *mut {}",
    PointerShape.T_P_CONST_P: "*const *mut {}",
    PointerShape.CONST_T_P: "*const {}",
    PointerShape.CONST_T_PP: "*mut *const {}",
    PointerShape.CONST_T_P_CONST_P: "*const *const {}",
}

RUST_RESERVED = {
    "as",
    "box",
    "crate",
    "fn",
    "impl",
    "in",
    "loop",
    "match",
    "mod",
    "move",
    "ref",
    "self",
    "super",
    "type",
    "use",
    "where",
}


def rust_ident(name: str) -> str:
    return f"{name}_" if name in RUST_RESERVED else name


def rust_base_name(entry: Entry) -> str:
    if entry.kind is Kind.PRIMITIVE:
        return entry.definition.target
    return entry.name


def rust_pointee_name(entry: Entry) -> str:
    # void is () by value but c_void behind a pointer.
    if entry.kind is Kind.PRIMITIVE and (entry.name == "void" or entry.definition.opaque):
        return "c_void"
    return rust_base_name(entry)


def rust_array_size(dim: str) -> str:
    return dim if dim.isdigit() else f"{dim} as usize"


def rust_type(type_ref: TypeRef) -> str:
    if type_ref.pointer is not None:
        text = RUST_POINTER_FORMS[type_ref.pointer].format(rust_pointee_name(type_ref.entry))
    elif type_ref.entry.kind is Kind.FUNCTION_ALIAS:
        text = f"Option<{type_ref.name}>"
    else:
        text = rust_base_name(type_ref.entry)
    for dim in reversed(type_ref.array_dims):
        text = f"[{text}; {rust_array_size(dim)}]"
    return text


def rust_param_type(type_ref: TypeRef) -> str:
    if type_ref.array_dims:
        array = rust_type(type_ref)
        return f"&{array}" if type_ref.const else f"&mut {array}"
    return rust_type(type_ref)


def rust_params(params: list[Param]) -> str:
    return ", ".join(
        f"{rust_ident(param.name)}: {rust_param_type(param.type_ref)}" for param in params
    )


def rust_signature(name: str, params: list[Param], return_type: TypeRef) -> str:
    return f"{name} => ({rust_params(params)}) -> {rust_type(return_type)},"


def rust_constant_literal(constant: ApiConstant) -> str:
    if constant.complement is None:
        return constant.value
    if constant.complement == 0:
        return "!0"
    return f"!0 - {constant.complement}"


def _literal_key(value: str) -> int | str:
    try:
        return int(value, 0)
    except ValueError:
        return value


# ===--- Rust emitter ---=== #

RUST_GENERATED_NOTICE = "// This header is generated from the Khronos Vulkan XML API Registry."

RUST_MACROS = """
#![allow(non_camel_case_types)]
#![allow(non_snake_case)]
#![allow(non_upper_case_globals)]

#[macro_use]
mod macros {
    pub use ::std::ffi::CString;
    pub use ::std::mem;
    pub use ::std::ops::{BitAnd, BitOr};

    #[cfg(windows)]
    macro_rules! vk_fun {
        (($($param_id:ident: $param_type:ty),*) -> $return_type:ty) => (
            unsafe extern "stdcall" fn($($param_id: $param_type),*) -> $return_type
        );
    }

    #[cfg(not(windows))]
    macro_rules! vk_fun {
        (($($param_id:ident: $param_type:ty),*) -> $return_type:ty) => (
            unsafe extern "C" fn($($param_id: $param_type),*) -> $return_type
        );
    }

    macro_rules! flag_definitions {
        ($bit_definitions:ident, { $($flag:ident = $flag_val:expr,)* }) => (
            #[repr(C)]
            #[derive(Debug, Copy, Clone, PartialEq, Eq)]
            pub enum $bit_definitions {
                $($flag = $flag_val,)*
            }
        )
    }

    macro_rules! vulkan_flags {
        ($bitmask:ident) => (
            #[repr(transparent)]
            #[derive(Debug, Copy, Clone, PartialEq, Eq)]
            pub struct $bitmask {
                pub flags: VkFlags,
            }

            impl $bitmask {
                pub fn none() -> $bitmask {
                    $bitmask { flags: 0 }
                }
            }

            impl BitOr for $bitmask {
                type Output = Self;

                fn bitor(self, rhs: Self) -> Self {
                    $bitmask { flags: self.flags | rhs.flags }
                }
            }

            impl BitAnd for $bitmask {
                type Output = Self;

                fn bitand(self, rhs: Self) -> Self {
                    $bitmask { flags: self.flags & rhs.flags }
                }
            }
        );
        ($bitmask:ident, $bit_definitions:ident, { $($flag:ident = $flag_val:expr,)* }) => (
            flag_definitions!($bit_definitions, { $($flag = $flag_val,)* });
            vulkan_flags!($bitmask);

            impl BitOr<$bit_definitions> for $bitmask {
                type Output = Self;

                fn bitor(self, rhs: $bit_definitions) -> Self {
                    $bitmask { flags: self.flags | (rhs as VkFlags) }
                }
            }

            impl BitAnd<$bit_definitions> for $bitmask {
                type Output = Self;

                fn bitand(self, rhs: $bit_definitions) -> Self {
                    $bitmask { flags: self.flags & (rhs as VkFlags) }
                }
            }
        );
    }

    macro_rules! load_function {
        (instance, $fun:ident, $vulkan_entry:ident, $instance:expr) => (
            match $vulkan_entry.vkGetInstanceProcAddr($instance, CString::new(stringify!($fun)).unwrap().as_ptr()) {
                Some(f) => mem::transmute(f),
                None => return Err(String::from(concat!("Could not load ", stringify!($fun)))),
            }
        );
        (device, $fun:ident, $instance_table:ident, $device:expr) => (
            match $instance_table.vkGetDeviceProcAddr($device, CString::new(stringify!($fun)).unwrap().as_ptr()) {
                Some(f) => mem::transmute(f),
                None => return Err(String::from(concat!("Could not load ", stringify!($fun)))),
            }
        );
    }

    macro_rules! dispatch_methods {
        ($($fun:ident => ($($param_id:ident: $param_type:ty),*) -> $return_type:ty,)*) => (
            $(
                #[inline]
                pub unsafe fn $fun(&self $(, $param_id: $param_type)*) -> $return_type {
                    (self.$fun)($($param_id),*)
                }
            )*
        )
    }

    macro_rules! global_dispatch_table {
        { $($fun:ident => ($($param_id:ident: $param_type:ty),*) -> $return_type:ty,)* } => (
            pub struct GlobalDispatchTable {
                $($fun: vk_fun!(($($param_id: $param_type),*) -> $return_type),)*
            }

            impl GlobalDispatchTable {
                pub fn new(vulkan_entry: &VulkanEntry) -> Result<GlobalDispatchTable, String> {
                    unsafe {
                        Ok(GlobalDispatchTable {
                            $($fun: load_function!(instance, $fun, vulkan_entry, 0),)*
                        })
                    }
                }

                dispatch_methods!($($fun => ($($param_id: $param_type),*) -> $return_type,)*);
            }
        )
    }

    macro_rules! instance_dispatch_table {
        { $($fun:ident => ($($param_id:ident: $param_type:ty),*) -> $return_type:ty,)* } => (
            pub struct InstanceDispatchTable {
                $($fun: vk_fun!(($($param_id: $param_type),*) -> $return_type),)*
            }

            impl InstanceDispatchTable {
                pub fn new(vulkan_entry: &VulkanEntry, instance: VkInstance) -> Result<InstanceDispatchTable, String> {
                    unsafe {
                        Ok(InstanceDispatchTable {
                            $($fun: load_function!(instance, $fun, vulkan_entry, instance),)*
                        })
                    }
                }

                dispatch_methods!($($fun => ($($param_id: $param_type),*) -> $return_type,)*);
            }
        )
    }

    macro_rules! device_dispatch_table {
        { $($fun:ident => ($($param_id:ident: $param_type:ty),*) -> $return_type:ty,)* } => (
            pub struct DeviceDispatchTable {
                $($fun: vk_fun!(($($param_id: $param_type),*) -> $return_type),)*
            }

            impl DeviceDispatchTable {
                pub fn new(instance_table: &InstanceDispatchTable, device: VkDevice) -> Result<DeviceDispatchTable, String> {
                    unsafe {
                        Ok(DeviceDispatchTable {
                            $($fun: load_function!(device, $fun, instance_table, device),)*
                        })
                    }
                }

                dispatch_methods!($($fun => ($($param_id: $param_type),*) -> $return_type,)*);
            }
        )
    }

    macro_rules! extension_function {
        (instance, $fun:ident, $vulkan_entry:ident, $instance:ident, $instance_table:ident, $device:ident) => (
            load_function!(instance, $fun, $vulkan_entry, $instance)
        );
        (device, $fun:ident, $vulkan_entry:ident, $instance:ident, $instance_table:ident, $device:ident) => (
            load_function!(device, $fun, $instance_table, $device)
        );
    }

    macro_rules! table_ctor {
        (instance, $table_name:ident $(, $fun_type:ident, $fun:ident)*) => (
            #[allow(unused_variables)]
            pub fn new(vulkan_entry: &VulkanEntry, instance: VkInstance) -> Result<$table_name, String> {
                #[allow(unused_unsafe)]
                unsafe {
                    Ok($table_name {
                        $($fun: load_function!(instance, $fun, vulkan_entry, instance),)*
                    })
                }
            }
        );
        (device, $table_name:ident $(, $fun_type:ident, $fun:ident)*) => (
            #[allow(unused_variables)]
            pub fn new(vulkan_entry: &VulkanEntry, instance: VkInstance, instance_table: &InstanceDispatchTable, device: VkDevice) -> Result<$table_name, String> {
                #[allow(unused_unsafe)]
                unsafe {
                    Ok($table_name {
                        $($fun: extension_function!($fun_type, $fun, vulkan_entry, instance, instance_table, device),)*
                    })
                }
            }
        );
    }

    macro_rules! extension_dispatch_table {
        { $table_name:ident | $ext_type:ident, { $([$fun_type:ident] $fun:ident => ($($param_id:ident: $param_type:ty),*) -> $return_type:ty,)* } } => (
            pub struct $table_name {
                $($fun: vk_fun!(($($param_id: $param_type),*) -> $return_type),)*
            }

            impl $table_name {
                table_ctor!($ext_type, $table_name $(, $fun_type, $fun)*);

                dispatch_methods!($($fun => ($($param_id: $param_type),*) -> $return_type,)*);
            }
        )
    }
} // mod macros
"""

RUST_CORE_PRELUDE = """
use super::macros::*;
extern crate libloading;
pub use ::std::os::raw::{c_char, c_int, c_ulong, c_void};

pub fn VK_MAKE_VERSION(major: u32, minor: u32, patch: u32) -> u32 {
    (major << 22) | (minor << 12) | patch
}
"""

_EXTENSION_INT_CONSTANT_RE = re.compile(r"^-?[0-9]+$")
_EXTENSION_STR_CONSTANT_RE = re.compile(r'^"[^"\\]*"$')


class RustGenerator(BindingGenerator):
    """Renders the registry as one Rust source file.

    Output layout: license header, macros, `pub mod core` with all types
    and the entry/global/instance/device dispatch tables, then
    `pub mod extensions` with one dispatch table per enabled extension.
    """

    def __init__(self):
        self.lines: list[str] = []
        self._indent = 0

    def render(self) -> str:
        return "\n".join(self.lines) + "\n"

    def _emit(self, text: str = "") -> None:
        self.lines.append(f"{'    ' * self._indent}{text}" if text else "")

    def _emit_block(self, block: str) -> None:
        for line in block.strip("\n").splitlines():
            self._emit(line)

    def _open(self, text: str) -> None:
        self._emit(text)
        self._indent += 1

    def _close(self, text: str = "}") -> None:
        self._indent -= 1
        self._emit(text)

    def begin_core(self, view: RegistryView) -> None:
        if view.license_header:
            for line in view.license_header.splitlines():
                self._emit(f"// {line}".rstrip())
            self._emit()
            self._emit(RUST_GENERATED_NOTICE)
            self._emit()

        version = view.api_version or "(unknown)"
        if view.header_version is not None:
            version = f"{version}.{view.header_version}"
        self._emit(
            f"// Rust bindings for Vulkan {version}, generated from the Khronos Vulkan API XML Registry."
        )
        self._emit()
        self._emit_block(RUST_MACROS)
        self._emit()
        self._open("pub mod core {")
        self._emit_block(RUST_CORE_PRELUDE)
        if view.header_version is not None:
            self._emit()
            self._emit(f"pub const VK_HEADER_VERSION: u32 = {view.header_version};")
        self._emit()

    def gen_scalar_alias(self, entry: Entry) -> None:
        self._emit(f"pub type {entry.name} = {rust_type(entry.definition.underlying)};")

    def gen_handle_alias(self, entry: Entry) -> None:
        self._emit(f"pub type {entry.name} = {rust_type(entry.definition.underlying)};")

    def gen_function_alias(self, entry: Entry) -> None:
        alias = entry.definition
        self._emit(
            f"pub type {entry.name} = vk_fun!(({rust_params(alias.params)})"
            f" -> {rust_type(alias.return_type)});"
        )

    def gen_struct(self, entry: Entry) -> None:
        struct = entry.definition
        self._emit()
        self._emit("#[repr(C)]")
        self._emit("#[derive(Copy, Clone)]")
        self._open(f"pub {'union' if struct.is_union else 'struct'} {entry.name} {{")
        for member in struct.members:
            self._emit(f"pub {rust_ident(member.name)}: {rust_type(member.type_ref)},")
        self._close()

    def gen_enum(self, entry: Entry) -> None:
        self._emit()
        members = entry.definition.members
        if not members:
            self._emit(f"pub type {entry.name} = i32;")
            return

        variants: dict[int | str, str] = {}
        aliases: list[tuple[str, str]] = []
        for member in members:
            key = _literal_key(member.value)
            if key in variants:
                aliases.append((member.name, variants[key]))
            else:
                variants[key] = member.name

        self._emit("#[repr(C)]")
        self._emit("#[derive(Debug, Copy, Clone, PartialEq, Eq)]")
        self._open(f"pub enum {entry.name} {{")
        for member in members:
            if variants[_literal_key(member.value)] == member.name:
                self._emit(f"{member.name} = {member.value},")
        self._close()
        if aliases:
            self._open(f"impl {entry.name} {{")
            for name, target in aliases:
                self._emit(f"pub const {name}: {entry.name} = {entry.name}::{target};")
            self._close()

    def gen_api_constant(self, entry: Entry) -> None:
        constant = entry.definition
        self._emit(
            f"pub const {entry.name}: {rust_base_name(constant.data_type.entry)}"
            f" = {rust_constant_literal(constant)};"
        )

    def _emit_flag_members(self, members: list[EnumMember]) -> None:
        self._indent += 1
        for member in members:
            self._emit(f"{member.name} = {member.value},")
        self._indent -= 1

    def gen_bitmask(self, alias: Entry, flags: Entry | None) -> None:
        if flags is None or not flags.definition.members:
            self._emit(f"vulkan_flags!({alias.name});")
            return
        self._emit(f"vulkan_flags!({alias.name}, {flags.name}, {{")
        self._emit_flag_members(flags.definition.members)
        self._emit("});")

    def gen_bitmask_set(self, entry: Entry) -> None:
        if not entry.definition.members:
            return
        self._emit(f"flag_definitions!({entry.name}, {{")
        self._emit_flag_members(entry.definition.members)
        self._emit("});")

    def gen_entry_commands(self, commands: list[Command]) -> None:
        for command in commands:
            params = rust_params(command.params)
            args = ", ".join(rust_ident(param.name) for param in command.params)
            return_type = rust_type(command.return_type)
            self._emit()
            self._emit(f"type PFN_{command.name} = vk_fun!(({params}) -> {return_type});")
            self._emit()
            self._open("pub struct VulkanEntry {")
            self._emit("#[allow(dead_code)]")
            self._emit("vulkan_lib: libloading::Library,")
            self._emit(f"{command.name}: PFN_{command.name},")
            self._close()
            self._emit()
            self._open("impl VulkanEntry {")
            self._open("pub fn new(loader_path: &str) -> Result<VulkanEntry, String> {")
            self._open("let lib = match unsafe { libloading::Library::new(loader_path) } {")
            self._emit("Ok(lib) => lib,")
            self._emit('Err(_) => return Err(String::from("Failed to open Vulkan loader")),')
            self._close("};")
            self._open(f"let {command.name}: PFN_{command.name} = unsafe {{")
            self._open(f'match lib.get::<PFN_{command.name}>(b"{command.name}\\0") {{')
            self._emit("Ok(symbol) => *symbol,")
            self._emit(
                f'Err(_) => return Err(String::from("Could not load {command.name}")),'
            )
            self._close()
            self._close("};")
            self._emit(f"Ok(VulkanEntry {{ vulkan_lib: lib, {command.name} }})")
            self._close()
            self._emit()
            self._emit("#[inline]")
            self._open(
                f"pub unsafe fn {command.name}(&self, {params}) -> {return_type} {{"
            )
            self._emit(f"(self.{command.name})({args})")
            self._close()
            self._close()

    def _gen_table(self, macro: str, commands: list[Command]) -> None:
        self._emit()
        self._open(f"{macro}!{{")
        for command in commands:
            self._emit(rust_signature(command.name, command.params, command.return_type))
        self._close()

    def gen_global_commands(self, commands: list[Command]) -> None:
        self._gen_table("global_dispatch_table", commands)

    def gen_instance_commands(self, commands: list[Command]) -> None:
        self._gen_table("instance_dispatch_table", commands)

    def gen_device_commands(self, commands: list[Command]) -> None:
        self._gen_table("device_dispatch_table", commands)

    def end_core(self) -> None:
        self._close("} // mod core")
        self._emit()

    def begin_extensions(self) -> None:
        self._open("pub mod extensions {")
        self._emit("use super::macros::*;")
        self._emit("use super::core::*;")

    def gen_extension(self, extension: Extension, commands: list[Command]) -> None:
        level = extension_level(extension).value
        self._emit()
        self._emit("/*")
        self._emit(" * ------------------------------------------------------")
        self._emit(f" * {extension.name}")
        if extension.protect:
            self._emit(f" * Requires {extension.protect}")
        self._emit(" * ------------------------------------------------------")
        self._emit("*/")
        for constant in extension.constants:
            if _EXTENSION_INT_CONSTANT_RE.match(constant.value):
                data_type = "i32" if constant.value.startswith("-") else "u32"
                self._emit(f"pub const {constant.name}: {data_type} = {constant.value};")
            elif _EXTENSION_STR_CONSTANT_RE.match(constant.value):
                self._emit(f"pub const {constant.name}: &str = {constant.value};")

        self._emit()
        self._open(f"extension_dispatch_table!{{{extension.name} | {level}, {{")
        for command in commands:
            command_level = classify_command(command)
            kind = "device" if command_level is CommandLevel.DEVICE else "instance"
            signature = rust_signature(command.name, command.params, command.return_type)
            self._emit(f"[{kind}] {signature}")
        self._close("}}")

    def end_extensions(self) -> None:
        self._close("} // mod extensions")


# ===--- C++ dispatch table emitter ---=== #

CPP_HEADER_FILENAME = "vk_dispatch_tables.h"
CPP_SOURCE_FILENAME = "vk_dispatch_tables.cpp"
GET_DEVICE_PROC_ADDR = "vkGetDeviceProcAddr"

CPP_POINTER_FORMS = {
    PointerShape.T_P: "{}*",
    PointerShape.T_PP: "{}**",
    PointerShape.T_P_CONST_P: "{}* const*",
    PointerShape.CONST_T_P: "const {}*",
    PointerShape.CONST_T_PP: "const {}**",
    PointerShape.CONST_T_P_CONST_P: "const {}* const*",
}

CPP_PROC_NOT_FOUND = """
class VulkanProcNotFound : public std::exception {
public:
  VulkanProcNotFound(std::string const& proc) : what_("Could not load " + proc) {}
  virtual const char* what() const throw() { return what_.c_str(); }

private:
  std::string what_;
};
"""

CPP_GLOBAL_CLASS_HEAD = """
class GlobalFunctions {
#if defined(_WIN32)
  typedef HMODULE library_handle;
#elif defined(__linux__)
  typedef void* library_handle;
#else
#error "Unsupported OS"
#endif

public:
  GlobalFunctions(std::string const& vulkan_library);
  ~GlobalFunctions();
"""

CPP_GLOBAL_CTOR_HEAD = """
GlobalFunctions::GlobalFunctions(std::string const& vulkan_library) {
#if defined(_WIN32)
  library_ = LoadLibraryA(vulkan_library.c_str());
#elif defined(__linux__)
  library_ = dlopen(vulkan_library.c_str(), RTLD_NOW);
#else
#error "Unsupported OS"
#endif

  if (!library_) {
    throw std::runtime_error("Could not load Vulkan loader.");
  }

#if defined(_WIN32)
  vkGetInstanceProcAddr_ = reinterpret_cast<PFN_vkGetInstanceProcAddr>(
      GetProcAddress(library_, "vkGetInstanceProcAddr"));
#elif defined(__linux__)
  vkGetInstanceProcAddr_ = reinterpret_cast<PFN_vkGetInstanceProcAddr>(
      dlsym(library_, "vkGetInstanceProcAddr"));
#else
#error "Unsupported OS"
#endif

  if (!vkGetInstanceProcAddr_) {
    throw VulkanProcNotFound("vkGetInstanceProcAddr");
  }
"""

CPP_GLOBAL_DTOR = """
GlobalFunctions::~GlobalFunctions() {
#if defined(_WIN32)
  FreeLibrary(library_);
#elif defined(__linux__)
  dlclose(library_);
#else
#error "Unsupported OS"
#endif
}
"""


def cpp_type(type_ref: TypeRef) -> str:
    if type_ref.pointer is None:
        return type_ref.name
    return CPP_POINTER_FORMS[type_ref.pointer].format(type_ref.name)


def cpp_param(param: Param) -> str:
    type_ref = param.type_ref
    const = "const " if type_ref.const and type_ref.pointer is None else ""
    dims = "".join(f"[{dim}]" for dim in type_ref.array_dims)
    return f"{const}{cpp_type(type_ref)} {param.name}{dims}"


def handle_snake_name(handle: str) -> str:
    return re.sub(r"(?<!^)([A-Z])", r"_\1", handle.removeprefix("Vk")).lower()


@dataclass
class DispatchTable:
    """Commands loaded through one dispatchable handle."""

    handle: str
    level: CommandLevel
    commands: list[Command] = field(default_factory=list)

    @property
    def class_name(self) -> str:
        return f"{self.handle.removeprefix('Vk')}Functions"

    @property
    def member(self) -> str:
        return handle_snake_name(self.handle)


class SourceBuffer:
    """Indented line buffer. Preprocessor directives always start at column 0."""

    def __init__(self, indent_width: int = 2):
        self.lines: list[str] = []
        self._indent = 0
        self._width = indent_width

    def emit(self, text: str = "") -> None:
        self.lines.append(f"{' ' * (self._indent * self._width)}{text}" if text else "")

    def directive(self, text: str) -> None:
        self.lines.append(text)

    def block(self, text: str) -> None:
        for line in text.strip("\n").splitlines():
            self.emit(line)

    def indent(self) -> None:
        self._indent += 1

    def dedent(self) -> None:
        self._indent -= 1

    def render(self) -> str:
        return "\n".join(self.lines) + "\n"


class CppDispatchTableGenerator(BindingGenerator):
    """Renders C++ loader classes into a header and a source file.

    GlobalFunctions opens the Vulkan loader and holds the entry and global
    commands. Every other command, core or extension, lands in the
    <Handle>Functions class of the dispatchable handle it takes first.
    """

    def __init__(self):
        self.header = SourceBuffer()
        self.source = SourceBuffer()
        self._entry_command: Command | None = None
        self._get_device_proc: Command | None = None
        self._tables: dict[str, DispatchTable] = {}
        self._protect: dict[str, str] = {}

    def begin_core(self, view: RegistryView) -> None:
        if view.license_header:
            for line in view.license_header.splitlines():
                self.header.emit(f"// {line}".rstrip())
            self.header.emit()

        version = view.api_version or "(unknown)"
        if view.header_version is not None:
            version = f"{version}.{view.header_version}"
        self.header.emit(
            f"// Dispatch tables for Vulkan {version}, generated from the Khronos Vulkan API XML Registry."
        )
        self.header.emit()
        self.header.directive("#ifndef VK_DISPATCH_TABLES_INCLUDE")
        self.header.directive("#define VK_DISPATCH_TABLES_INCLUDE")
        self.header.emit()
        self.header.directive('#include "vulkan_include.inl"')
        self.header.directive("#include <stdexcept>")
        self.header.directive("#include <string>")
        self.header.directive("#if defined(_WIN32)")
        self.header.directive("#include <Windows.h>")
        self.header.directive("#elif defined(__linux__)")
        self.header.directive("#include <dlfcn.h>")
        self.header.directive("#endif")
        self.header.emit()
        self.header.emit("namespace vkgen {")
        self.header.emit()
        self.header.block(CPP_PROC_NOT_FOUND)

        self.source.directive(f'#include "{CPP_HEADER_FILENAME}"')
        self.source.emit()
        self.source.directive("#include <stdexcept>")
        self.source.emit()
        self.source.emit("namespace vkgen {")

    def _begin_protect(self, buffer: SourceBuffer, command: Command) -> None:
        protect = self._protect.get(command.name)
        if protect:
            buffer.directive(f"#if defined({protect})")

    def _end_protect(self, buffer: SourceBuffer, command: Command) -> None:
        if self._protect.get(command.name):
            buffer.directive("#endif")

    def _wrapper_params(self, command: Command, skip_first: bool) -> str:
        params = command.params[1:] if skip_first else command.params
        return ", ".join(cpp_param(param) for param in params)

    def _declare_wrapper(self, command: Command, skip_first: bool) -> None:
        self._begin_protect(self.header, command)
        self.header.emit(
            f"{cpp_type(command.return_type)} {command.name}"
            f"({self._wrapper_params(command, skip_first)}) const;"
        )
        self._end_protect(self.header, command)

    def _declare_member(self, command: Command) -> None:
        self._begin_protect(self.header, command)
        self.header.emit(f"PFN_{command.name} {command.name}_ = nullptr;")
        self._end_protect(self.header, command)

    def _define_wrapper(self, command: Command, class_name: str, dispatch: str | None) -> None:
        args = [param.name for param in command.params]
        if dispatch is not None:
            args[0] = dispatch
        self._begin_protect(self.source, command)
        self.source.emit(
            f"{cpp_type(command.return_type)} {class_name}::{command.name}"
            f"({self._wrapper_params(command, dispatch is not None)}) const {{"
        )
        self.source.indent()
        self.source.emit(f"return this->{command.name}_({', '.join(args)});")
        self.source.dedent()
        self.source.emit("}")
        self._end_protect(self.source, command)
        self.source.emit()

    def _load(self, command: Command, loader: str) -> None:
        self._begin_protect(self.source, command)
        self.source.emit(
            f"{command.name}_ = reinterpret_cast<PFN_{command.name}>({loader}(\"{command.name}\"));"
        )
        if command.extension is None:
            self.source.emit(f"if (!{command.name}_) {{")
            self.source.indent()
            self.source.emit(f'throw VulkanProcNotFound("{command.name}");')
            self.source.dedent()
            self.source.emit("}")
        self._end_protect(self.source, command)

    def gen_entry_commands(self, commands: list[Command]) -> None:
        if len(commands) != 1:
            raise MalformedDocument(f"expected exactly one entry command, found {len(commands)}")
        self._entry_command = commands[0]

    def gen_global_commands(self, commands: list[Command]) -> None:
        entry = self._entry_command
        self.header.block(CPP_GLOBAL_CLASS_HEAD)
        self.header.indent()
        for command in [entry] + commands:
            self._declare_wrapper(command, skip_first=False)
        self.header.dedent()
        self.header.emit()
        self.header.emit("private:")
        self.header.indent()
        self.header.emit("GlobalFunctions(GlobalFunctions& other) = delete;")
        self.header.emit("void operator=(GlobalFunctions& rhs) = delete;")
        self.header.emit()
        self.header.emit("library_handle library_ = nullptr;")
        for command in [entry] + commands:
            self._declare_member(command)
        self.header.dedent()
        self.header.emit("};")

        self.source.emit()
        self.source.block(CPP_GLOBAL_CTOR_HEAD)
        self.source.indent()
        for command in commands:
            self._load(command, "this->vkGetInstanceProcAddr(nullptr, ")
        self.source.dedent()
        self.source.emit("}")
        self.source.emit()
        self.source.block(CPP_GLOBAL_DTOR)
        self.source.emit()
        for command in [entry] + commands:
            self._define_wrapper(command, "GlobalFunctions", None)

    def _add_to_table(self, command: Command) -> None:
        if command.name == GET_DEVICE_PROC_ADDR:
            self._get_device_proc = command
            return
        first = command.params[0].type_ref if command.params else None
        if (
            first is None
            or first.pointer is not None
            or first.entry.kind is not Kind.HANDLE_ALIAS
            or not first.entry.definition.dispatchable
        ):
            raise MalformedDocument(
                f"{command.name} does not take a dispatchable handle first"
            )
        level = classify_command(command)
        table = self._tables.get(first.name)
        if table is None:
            table = self._tables[first.name] = DispatchTable(first.name, level)
        elif table.level is not level:
            raise MalformedDocument(
                f"{command.name} is {level.value}-level but {first.name} is {table.level.value}-level"
            )
        table.commands.append(command)

    def gen_instance_commands(self, commands: list[Command]) -> None:
        for command in commands:
            self._add_to_table(command)

    def gen_device_commands(self, commands: list[Command]) -> None:
        for command in commands:
            self._add_to_table(command)

    def gen_extension(self, extension: Extension, commands: list[Command]) -> None:
        for command in commands:
            if extension.protect:
                self._protect[command.name] = extension.protect
            self._add_to_table(command)

    def _loader_command(self, table: DispatchTable) -> Command | None:
        if table.handle == "VkInstance":
            return self._entry_command
        if table.handle == "VkDevice":
            if self._get_device_proc is None:
                raise MalformedDocument(f"{GET_DEVICE_PROC_ADDR} is required for VkDevice")
            return self._get_device_proc
        return None

    def _ctor_params(self, table: DispatchTable) -> str:
        if table.handle == "VkInstance":
            source = "GlobalFunctions* globals"
        elif table.handle == "VkDevice" or table.level is CommandLevel.INSTANCE:
            source = "InstanceFunctions* instance"
        else:
            source = "DeviceFunctions* device"
        return f"{table.handle} {table.member}, {source}"

    def _gen_table(self, table: DispatchTable) -> None:
        loader = self._loader_command(table)
        with_loader = ([loader] if loader is not None else []) + table.commands
        dispatch = f"{table.member}_"

        self.header.emit()
        self.header.emit(f"class {table.class_name} {{")
        self.header.emit("public:")
        self.header.indent()
        self.header.emit(f"{table.handle} {table.member}() const {{ return {dispatch}; }}")
        for command in with_loader:
            self._declare_wrapper(command, skip_first=True)
        self.header.dedent()
        self.header.emit()
        self.header.emit("protected:")
        self.header.indent()
        self.header.emit(f"{table.class_name}({self._ctor_params(table)});")
        self.header.dedent()
        self.header.emit()
        self.header.emit("private:")
        self.header.indent()
        self.header.emit(f"{table.handle} {dispatch} = VK_NULL_HANDLE;")
        for command in with_loader:
            self._declare_member(command)
        self.header.dedent()
        self.header.emit("};")

        self.source.emit("/*")
        self.source.emit(" * ------------------------------------------------------")
        self.source.emit(f" * {table.class_name}")
        self.source.emit(" * ------------------------------------------------------")
        self.source.emit("*/")
        self.source.emit()
        for command in with_loader:
            self._define_wrapper(command, table.class_name, dispatch)

        self.source.emit(f"{table.class_name}::{table.class_name}({self._ctor_params(table)}) {{")
        self.source.indent()
        self.source.emit(f"{dispatch} = {table.member};")
        if table.handle == "VkInstance":
            self._load(loader, f"globals->vkGetInstanceProcAddr({table.member}, ")
            for command in table.commands:
                self._load(command, "this->vkGetInstanceProcAddr(")
        elif table.handle == "VkDevice":
            self._load(loader, "instance->vkGetInstanceProcAddr(")
            for command in table.commands:
                self._load(command, "this->vkGetDeviceProcAddr(")
        elif table.level is CommandLevel.INSTANCE:
            for command in table.commands:
                self._load(command, "instance->vkGetInstanceProcAddr(")
        else:
            for command in table.commands:
                self._load(command, "device->vkGetDeviceProcAddr(")
        self.source.dedent()
        self.source.emit("}")
        self.source.emit()

    def end_extensions(self) -> None:
        for table in self._tables.values():
            self._gen_table(table)

        self.header.emit()
        self.header.emit("} // vkgen")
        self.header.emit()
        self.header.directive("#endif // VK_DISPATCH_TABLES_INCLUDE")
        self.source.emit("} // vkgen")


# ===--- Output writer ---=== #


@dataclass(frozen=True)
class FileWriteResult:
    """Result of writing one generated file.

    Attributes:
        filename: Filename written, e.g. "vulkan.rs".
        path: Absolute path of the written file.
        line_count: Number of newline characters in the written content.
        byte_count: Number of bytes written (UTF-8 encoded).
    """

    filename: str
    path: Path
    line_count: int
    byte_count: int


def write_bindings(output_dir: Path, filename: str, content: str) -> FileWriteResult:
    """Write generated source to output_dir/filename.

    Creates output_dir (and missing parents) first.

    Raises:
        OSError: Propagated directly if the filesystem write fails.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    file_path = output_dir / filename
    file_path.write_text(content, encoding="utf-8")
    resolved = file_path.resolve()
    return FileWriteResult(
        filename=filename,
        path=resolved,
        line_count=content.count("\n"),
        byte_count=len(resolved.read_bytes()),
    )


# ===--- Summary report ---=== #


@dataclass(frozen=True)
class RegistrySummary:
    """Counts reported after a check or generate run.

    Attributes:
        version_label: "Vulkan X.Y.Z" from the feature and header version.
        source_label: Registry filename.
        counts: (label, count) rows in canonical emission order.
        core_commands: Commands in the core dispatch tables.
        extension_commands: Commands in per-extension tables.
        extensions: Enabled extension count.
        excluded_names: Names excluded by disabled extensions.
        files: Write results, empty for a check-only run.
    """

    version_label: str
    source_label: str
    counts: tuple[tuple[str, int], ...]
    core_commands: int
    extension_commands: int
    extensions: int
    excluded_names: int
    files: tuple[FileWriteResult, ...] = ()


def build_registry_summary(
    view: RegistryView,
    source_label: str,
    files: tuple[FileWriteResult, ...] = (),
) -> RegistrySummary:
    structs = view.get_structs()
    unions = sum(1 for entry in structs if entry.definition.is_union)
    version = view.api_version or "(unknown)"
    if view.header_version is not None:
        version = f"{version}.{view.header_version}"
    core_commands = len(view.get_core_commands())
    return RegistrySummary(
        version_label=f"Vulkan {version}",
        source_label=source_label,
        counts=(
            ("Scalar aliases:", len(view.get_scalar_aliases())),
            ("Handles:", len(view.get_handle_aliases())),
            ("Callbacks:", len(view.get_function_aliases())),
            ("Structs:", len(structs) - unions),
            ("Unions:", unions),
            ("Enums:", len(view.get_enums())),
            ("Constants:", len(view.get_api_constants())),
            ("Flag types:", len(view.get_bitmask_aliases())),
        ),
        core_commands=core_commands,
        extension_commands=len(view.get_commands()) - core_commands,
        extensions=len(view.get_extensions()),
        excluded_names=len(view.get_excluded_names()),
        files=tuple(files),
    )


def format_registry_summary(summary: RegistrySummary) -> str:
    """Render a RegistrySummary as the console report, with one trailing newline."""
    lines: list[str] = []
    lines.append(f"{summary.version_label} registry:")
    lines.append("")
    lines.append(f"  Source:     {summary.source_label}")
    lines.append("")
    lines.append("  Types:")
    for label, count in summary.counts:
        lines.append(f"    {label:<16}{count:>6}")
    lines.append("")
    total_commands = summary.core_commands + summary.extension_commands
    lines.append(
        f"  Commands:   {total_commands:>6}  ({summary.core_commands} core"
        f" + {summary.extension_commands} from extensions)"
    )
    extension_row = f"  Extensions: {summary.extensions:>6}"
    if summary.excluded_names:
        extension_row += f"  ({summary.excluded_names} disabled names excluded)"
    lines.append(extension_row)

    if summary.files:
        lines.append("")
        lines.append("  Files written:")
        for file_result in summary.files:
            lines.append(
                f"    {file_result.filename:<16}{file_result.line_count:>8,} lines"
            )
    lines.append("")

    return "\n".join(lines)


def print_registry_summary(summary: RegistrySummary) -> None:
    print(format_registry_summary(summary), end="")


# ===--- Pipeline ---=== #


def load_registry(vk_xml: Path) -> RegistryView:
    """Read, post-process and check vk.xml.

    Args:
        vk_xml: Path to the registry document.

    Returns:
        The frozen RegistryView.

    Raises:
        OSError: File not readable.
        ET.ParseError: Not well-formed XML.
        RegistryError: Any structural or consistency fault.
    """
    tree = ET.parse(vk_xml)
    registry = Registry()
    read_registry(registry, tree.getroot())
    process_extensions(registry)
    return registry.finalize()


def generate_rust(view: RegistryView) -> str:
    generator = RustGenerator()
    walk_registry(view, generator)
    return generator.render()


def generate_cpp(view: RegistryView) -> tuple[str, str]:
    """Render the C++ dispatch tables as (header, source) text."""
    generator = CppDispatchTableGenerator()
    walk_registry(view, generator)
    return generator.header.render(), generator.source.render()


def _print_registry_counts(view: RegistryView) -> None:
    print(
        f"  Registry: {len(view.get_definitions())} types, "
        f"{len(view.get_commands())} commands, "
        f"{len(view.get_extensions())} extensions"
    )


def run_check(config: GenerateConfig) -> RegistrySummary:
    """Verify the registry without writing anything.

    Raises:
        OSError, ET.ParseError, RegistryError: As for load_registry.
    """
    print(f"Parsing: {config.vk_xml}")
    view = load_registry(config.vk_xml)
    _print_registry_counts(view)
    summary = build_registry_summary(view, config.vk_xml.name)
    print_registry_summary(summary)
    return summary


def run_generate(config: GenerateConfig) -> RegistrySummary:
    """Execute the complete generation pipeline for a GenerateConfig.

    Runs read -> extension post-process -> check -> emit -> write for the
    Rust bindings and the C++ dispatch tables, then prints the summary report.

    Args:
        config: Validated GenerateConfig from build_config.

    Returns:
        RegistrySummary including the written files.

    Raises:
        OSError: XML file not readable or filesystem write failure.
        ET.ParseError: Malformed vk.xml parse failure.
        RegistryError: Registry inconsistency, including an extension
            classification the emitter does not support.
    """
    print(f"Parsing: {config.vk_xml}")
    view = load_registry(config.vk_xml)
    _print_registry_counts(view)

    header, source = generate_cpp(view)
    outputs = [
        (OUTPUT_FILENAME, generate_rust(view)),
        (CPP_HEADER_FILENAME, header),
        (CPP_SOURCE_FILENAME, source),
    ]
    results = []
    for filename, content in outputs:
        result = write_bindings(config.output_dir, filename, content)
        print(f"  Written: {result.line_count:,} lines to {result.path}")
        results.append(result)

    summary = build_registry_summary(view, config.vk_xml.name, tuple(results))
    print_registry_summary(summary)
    return summary


# ===--- Main generation ---=== #


def main(argv: list[str] | None = None):
    try:
        config = build_config(argv)
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err

    try:
        if config.check_only:
            run_check(config)
        else:
            run_generate(config)
    except (OSError, ET.ParseError) as err:
        print(f"Error: {err}")
        raise SystemExit(1) from err
    except RegistryError as err:
        print(f"Registry error [{err.code}]: {err.message}")
        raise SystemExit(1) from err
    except (RuntimeError, ValueError) as err:
        print(f"Internal error: {err}")
        raise SystemExit(1) from err


if __name__ == "__main__":
    main()
