from __future__ import annotations

from collections.abc import Callable

import pytest

import vkgen

MakeRegistry = Callable[..., vkgen.Registry]


def _names(entries: list[vkgen.Entry] | list[vkgen.Command]) -> list[str]:
    return [item.name for item in entries]


def test_end_to_end_struct_and_command(make_registry: MakeRegistry) -> None:
    registry = make_registry(
        """<commands>
            <command>
                <proto><type>Status</type> <name>doThing</name></proto>
                <param>const <type>Info</type>* <name>info</name></param>
            </command>
        </commands>""",
        types_xml="""
        <type category="basetype">typedef <type>uint32_t</type> <name>Count</name>;</type>
        <type category="basetype">typedef <type>int32_t</type> <name>Status</name>;</type>
        <type category="struct" name="Info">
            <member><type>Count</type> <name>count</name></member>
            <member>const <type>char</type>* <name>name</name></member>
        </type>""",
    )
    vkgen.process_extensions(registry)
    assert registry.unresolved_names() == []

    view = registry.finalize()

    (info,) = view.get_structs()
    count, name = info.definition.members
    assert count.type_ref.entry.kind is vkgen.Kind.SCALAR_ALIAS
    assert name.type_ref.pointer is vkgen.PointerShape.CONST_T_P
    assert name.type_ref.entry.kind is vkgen.Kind.PRIMITIVE
    assert name.type_ref.name == "char"

    (command,) = view.get_commands()
    (param,) = command.params
    assert param.type_ref.entry is info
    assert param.type_ref.pointer is vkgen.PointerShape.CONST_T_P
    assert command.return_type.name == "Status"


def test_struct_member_order_is_preserved(make_registry: MakeRegistry) -> None:
    registry = make_registry(
        "",
        types_xml="""
        <type category="struct" name="VkOrdered">
            <member><type>uint32_t</type> <name>c</name></member>
            <member><type>uint32_t</type> <name>a</name></member>
            <member><type>uint32_t</type> <name>b</name></member>
        </type>""",
    )

    view = registry.finalize()

    assert [member.name for member in view.get_structs()[0].definition.members] == ["c", "a", "b"]


def test_minimal_registry_metadata(minimal_view: vkgen.RegistryView) -> None:
    assert minimal_view.header_version == "46"
    assert minimal_view.api_version == "1.0"
    assert minimal_view.license_header.startswith("Copyright (c) 2015-2017 The Khronos Group Inc.")
    assert "vk.xml, is the Vulkan API Registry" not in minimal_view.license_header


def test_minimal_registry_type_accessors(minimal_view: vkgen.RegistryView) -> None:
    assert _names(minimal_view.get_scalar_aliases()) == ["VkFlags", "VkBool32", "VkDeviceSize"]
    assert _names(minimal_view.get_bitmask_aliases()) == [
        "VkQueueFlags",
        "VkInstanceCreateFlags",
        "VkCullModeFlags",
    ]
    assert _names(minimal_view.get_handle_aliases()) == [
        "VkInstance",
        "VkPhysicalDevice",
        "VkDevice",
        "VkQueue",
        "VkFence",
        "VkSurfaceKHR",
        "VkSwapchainKHR",
    ]
    assert _names(minimal_view.get_function_aliases()) == [
        "PFN_vkVoidFunction",
        "PFN_vkAllocationFunction",
    ]
    assert _names(minimal_view.get_structs()) == [
        "VkApplicationInfo",
        "VkInstanceCreateInfo",
        "VkAllocationCallbacks",
        "VkPhysicalDeviceProperties",
        "VkClearColorValue",
        "VkSwapchainCreateInfoKHR",
    ]
    assert _names(minimal_view.get_enums()) == ["VkResult", "VkStructureType"]
    assert _names(minimal_view.get_bitmask_sets()) == ["VkQueueFlagBits", "VkCullModeFlagBits"]
    assert minimal_view.get_unlinked_bitmask_sets() == []
    assert _names(minimal_view.get_api_constants()) == [
        "VK_MAX_PHYSICAL_DEVICE_NAME_SIZE",
        "VK_LOD_CLAMP_NONE",
        "VK_REMAINING_MIP_LEVELS",
        "VK_WHOLE_SIZE",
        "VK_QUEUE_FAMILY_EXTERNAL_KHX",
    ]


def test_minimal_registry_extension_values_are_injected(minimal_view: vkgen.RegistryView) -> None:
    result, structure_type = minimal_view.get_enums()
    queue_flags = minimal_view.get_bitmask_sets()[0]

    assert result.definition.members[-1].name == "VK_ERROR_SURFACE_LOST_KHR"
    assert result.definition.members[-1].value == "-1000000000"
    assert structure_type.definition.members[-1].value == "1000001000"
    assert queue_flags.definition.members[-1].value == "0x00000004"


def test_minimal_registry_command_partitions(minimal_view: vkgen.RegistryView) -> None:
    assert _names(minimal_view.get_entry_commands()) == ["vkGetInstanceProcAddr"]
    assert _names(minimal_view.get_global_commands()) == ["vkCreateInstance"]
    assert _names(minimal_view.get_instance_commands()) == [
        "vkDestroyInstance",
        "vkGetPhysicalDeviceProperties",
        "vkGetDeviceProcAddr",
    ]
    assert _names(minimal_view.get_device_commands()) == ["vkGetDeviceQueue", "vkQueueWaitIdle"]
    assert len(minimal_view.get_core_commands()) == 7
    assert len(minimal_view.get_commands()) == 9


def test_minimal_registry_extensions(minimal_view: vkgen.RegistryView) -> None:
    extensions = minimal_view.get_extensions()

    assert list(extensions) == ["VK_KHR_surface", "VK_KHR_swapchain"]
    assert _names(minimal_view.get_extension_commands("VK_KHR_surface")) == ["vkDestroySurfaceKHR"]
    assert _names(minimal_view.get_extension_commands("VK_KHR_swapchain")) == [
        "vkCreateSwapchainKHR"
    ]
    assert minimal_view.get_extension_commands("VK_NV_extension_1") == []
    assert minimal_view.get_excluded_names() == frozenset({"vkCmdDisabledNV"})
    with pytest.raises(KeyError):
        minimal_view.get_extension_commands("VK_KHR_missing")


def test_disabled_items_are_hidden_from_view(make_registry: MakeRegistry) -> None:
    registry = make_registry(
        """<commands>
            <command>
                <proto><type>void</type> <name>vkCmdThingNV</name></proto>
                <param><type>uint32_t</type> <name>count</name></param>
            </command>
        </commands>
        <extensions>
            <extension name="VK_NV_thing" number="1" supported="disabled">
                <require>
                    <type name="VkThingNV"/>
                    <command name="vkCmdThingNV"/>
                </require>
            </extension>
        </extensions>""",
        types_xml="""
        <type category="struct" name="VkThingNV">
            <member><type>uint32_t</type> <name>count</name></member>
        </type>""",
    )
    vkgen.process_extensions(registry)

    view = registry.finalize()

    assert view.get_structs() == []
    assert view.get_commands() == []
    assert view.get_extensions() == {}
    assert view.get_excluded_names() == frozenset({"VkThingNV", "vkCmdThingNV"})


def test_unlinked_bitmask_sets(make_registry: MakeRegistry) -> None:
    registry = make_registry(
        """<enums name="VkLooseFlagBits" type="bitmask">
            <enum bitpos="0" name="VK_LOOSE_BIT"/>
        </enums>"""
    )

    view = registry.finalize()

    assert _names(view.get_unlinked_bitmask_sets()) == ["VkLooseFlagBits"]


def _command(registry: vkgen.Registry, name: str, *first_param: str) -> vkgen.Command:
    params = []
    if first_param:
        params.append(vkgen.Param("first", vkgen.resolve_declaration(registry, first_param[0])))
    return vkgen.Command(name, vkgen.resolve_type(registry, "void"), params)


@pytest.mark.parametrize(
    ("name", "first_param", "expected"),
    [
        ("vkGetInstanceProcAddr", ("VkInstance",), vkgen.CommandLevel.ENTRY),
        ("vkGetDeviceProcAddr", ("VkDevice",), vkgen.CommandLevel.INSTANCE),
        ("vkEnumerateInstanceVersion", (), vkgen.CommandLevel.GLOBAL),
        ("vkCreateInstance", ("const VkInstanceCreateInfo*",), vkgen.CommandLevel.GLOBAL),
        ("vkDestroyInstance", ("VkInstance",), vkgen.CommandLevel.INSTANCE),
        ("vkGetPhysicalDeviceFeatures", ("VkPhysicalDevice",), vkgen.CommandLevel.INSTANCE),
        ("vkDestroyDevice", ("VkDevice",), vkgen.CommandLevel.DEVICE),
        ("vkQueueSubmit", ("VkQueue",), vkgen.CommandLevel.DEVICE),
        ("vkCmdDraw", ("VkCommandBuffer",), vkgen.CommandLevel.DEVICE),
        ("vkStrange", ("uint32_t",), vkgen.CommandLevel.GLOBAL),
    ],
)
def test_classify_command(
    name: str, first_param: tuple[str, ...], expected: vkgen.CommandLevel
) -> None:
    registry = vkgen.Registry()

    assert vkgen.classify_command(_command(registry, name, *first_param)) is expected


@pytest.mark.parametrize(
    ("classification", "expected"),
    [("instance", vkgen.CommandLevel.INSTANCE), ("device", vkgen.CommandLevel.DEVICE)],
)
def test_extension_level(classification: str, expected: vkgen.CommandLevel) -> None:
    assert vkgen.extension_level(vkgen.Extension("VK_KHR_x", 1, classification)) is expected


@pytest.mark.parametrize("classification", [None, "global"])
def test_extension_level_rejects_other_classifications(classification: str | None) -> None:
    with pytest.raises(vkgen.UnsupportedExtensionClassification) as exc_info:
        vkgen.extension_level(vkgen.Extension("VK_KHR_x", 1, classification))

    assert exc_info.value.code == "UNSUPPORTED_EXTENSION_CLASSIFICATION"


class _RecordingGenerator(vkgen.BindingGenerator):
    def __init__(self) -> None:
        self.calls: list[str] = []

    def begin_core(self, view: vkgen.RegistryView) -> None:
        self.calls.append("begin_core")

    def gen_scalar_alias(self, entry: vkgen.Entry) -> None:
        self.calls.append(f"scalar:{entry.name}")

    def gen_struct(self, entry: vkgen.Entry) -> None:
        self.calls.append(f"struct:{entry.name}")

    def gen_bitmask(self, alias: vkgen.Entry, flags: vkgen.Entry | None) -> None:
        self.calls.append(f"bitmask:{alias.name}:{flags.name if flags else None}")

    def gen_device_commands(self, commands: list[vkgen.Command]) -> None:
        self.calls.append(f"device:{len(commands)}")

    def end_core(self) -> None:
        self.calls.append("end_core")

    def gen_extension(self, extension: vkgen.Extension, commands: list[vkgen.Command]) -> None:
        self.calls.append(f"extension:{extension.name}:{len(commands)}")


def test_walk_registry_calls_hooks_in_canonical_order(minimal_view: vkgen.RegistryView) -> None:
    generator = _RecordingGenerator()

    vkgen.walk_registry(minimal_view, generator)

    assert generator.calls == [
        "begin_core",
        "scalar:VkFlags",
        "scalar:VkBool32",
        "scalar:VkDeviceSize",
        "struct:VkApplicationInfo",
        "struct:VkInstanceCreateInfo",
        "struct:VkAllocationCallbacks",
        "struct:VkPhysicalDeviceProperties",
        "struct:VkClearColorValue",
        "struct:VkSwapchainCreateInfoKHR",
        "bitmask:VkQueueFlags:VkQueueFlagBits",
        "bitmask:VkInstanceCreateFlags:None",
        "bitmask:VkCullModeFlags:VkCullModeFlagBits",
        "device:2",
        "end_core",
        "extension:VK_KHR_surface:1",
        "extension:VK_KHR_swapchain:1",
    ]
