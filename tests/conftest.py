import argparse
import sys
import xml.etree.ElementTree as ET
from collections.abc import Callable
from pathlib import Path

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

import vkgen  # noqa: E402

PRIMITIVE_TYPES_XML = """
    <type name="vk_platform" category="include">#include "vk_platform.h"</type>
    <type requires="vk_platform" name="void"/>
    <type requires="vk_platform" name="char"/>
    <type requires="vk_platform" name="float"/>
    <type requires="vk_platform" name="uint32_t"/>
    <type requires="vk_platform" name="uint64_t"/>
    <type requires="vk_platform" name="int32_t"/>
    <type requires="vk_platform" name="size_t"/>
"""

MINIMAL_REGISTRY_XML = f"""<?xml version="1.0" encoding="UTF-8"?>
<registry>
    <comment>
Copyright (c) 2015-2017 The Khronos Group Inc.

Permission is hereby granted, free of charge, to any person obtaining a copy.

------------------------------------------------------------------------

This file, vk.xml, is the Vulkan API Registry.
    </comment>
    <vendorids>
        <vendorid name="KHX" id="0x10000" comment="Experimental"/>
    </vendorids>
    <tags>
        <tag name="NV" author="NVIDIA Corporation" contact="Someone"/>
    </tags>
    <types>
        <comment>Basic C types, pulled in via vk_platform.h</comment>
        {PRIMITIVE_TYPES_XML}
        <type category="define">#define <name>VK_HEADER_VERSION</name> 46</type>
        <type category="define" name="VK_DEFINE_HANDLE">#define VK_DEFINE_HANDLE(object) typedef struct object##_T* object;</type>
        <type category="basetype">typedef <type>uint32_t</type> <name>VkFlags</name>;</type>
        <type category="basetype">typedef <type>uint32_t</type> <name>VkBool32</name>;</type>
        <type category="basetype">typedef <type>uint64_t</type> <name>VkDeviceSize</name>;</type>
        <type requires="VkQueueFlagBits" category="bitmask">typedef <type>VkFlags</type> <name>VkQueueFlags</name>;</type>
        <type category="bitmask">typedef <type>VkFlags</type> <name>VkInstanceCreateFlags</name>;</type>
        <type requires="VkCullModeFlagBits" category="bitmask">typedef <type>VkFlags</type> <name>VkCullModeFlags</name>;</type>
        <type category="handle"><type>VK_DEFINE_HANDLE</type>(<name>VkInstance</name>)</type>
        <type category="handle" parent="VkInstance"><type>VK_DEFINE_HANDLE</type>(<name>VkPhysicalDevice</name>)</type>
        <type category="handle" parent="VkPhysicalDevice"><type>VK_DEFINE_HANDLE</type>(<name>VkDevice</name>)</type>
        <type category="handle" parent="VkDevice"><type>VK_DEFINE_HANDLE</type>(<name>VkQueue</name>)</type>
        <type category="handle" parent="VkDevice"><type>VK_DEFINE_NON_DISPATCHABLE_HANDLE</type>(<name>VkFence</name>)</type>
        <type category="handle" parent="VkInstance"><type>VK_DEFINE_NON_DISPATCHABLE_HANDLE</type>(<name>VkSurfaceKHR</name>)</type>
        <type category="handle" parent="VkDevice"><type>VK_DEFINE_NON_DISPATCHABLE_HANDLE</type>(<name>VkSwapchainKHR</name>)</type>
        <type name="VkResult" category="enum"/>
        <type name="VkStructureType" category="enum"/>
        <type name="VkQueueFlagBits" category="enum"/>
        <type name="VkCullModeFlagBits" category="enum"/>
        <type category="funcpointer">typedef void (VKAPI_PTR *<name>PFN_vkVoidFunction</name>)(void);</type>
        <type category="funcpointer">typedef void* (VKAPI_PTR *<name>PFN_vkAllocationFunction</name>)(
    <type>void</type>*                                       pUserData,
    <type>size_t</type>                                      size,
    <type>size_t</type>                                      alignment);</type>
        <type category="struct" name="VkApplicationInfo">
            <member><type>VkStructureType</type> <name>sType</name></member>
            <member>const <type>void</type>* <name>pNext</name></member>
            <member>const <type>char</type>* <name>pApplicationName</name></member>
            <member><type>uint32_t</type> <name>apiVersion</name></member>
        </type>
        <type category="struct" name="VkInstanceCreateInfo">
            <member><type>VkStructureType</type> <name>sType</name></member>
            <member>const <type>void</type>* <name>pNext</name></member>
            <member optional="true"><type>VkInstanceCreateFlags</type> <name>flags</name></member>
            <member optional="true">const <type>VkApplicationInfo</type>* <name>pApplicationInfo</name></member>
            <member optional="true"><type>uint32_t</type> <name>enabledExtensionCount</name></member>
            <member len="enabledExtensionCount,null-terminated">const <type>char</type>* const* <name>ppEnabledExtensionNames</name></member>
        </type>
        <type category="struct" name="VkAllocationCallbacks">
            <member optional="true"><type>void</type>* <name>pUserData</name></member>
            <member><type>PFN_vkAllocationFunction</type> <name>pfnAllocation</name></member>
        </type>
        <type category="struct" name="VkPhysicalDeviceProperties">
            <member><type>uint32_t</type> <name>apiVersion</name></member>
            <member><type>char</type> <name>deviceName</name>[<enum>VK_MAX_PHYSICAL_DEVICE_NAME_SIZE</enum>]</member>
        </type>
        <type category="union" name="VkClearColorValue">
            <member><type>float</type> <name>float32</name>[4]</member>
            <member><type>int32_t</type> <name>int32</name>[4]</member>
            <member><type>uint32_t</type> <name>uint32</name>[4]</member>
        </type>
        <type category="struct" name="VkSwapchainCreateInfoKHR">
            <member><type>VkStructureType</type> <name>sType</name></member>
            <member>const <type>void</type>* <name>pNext</name></member>
            <member><type>VkSurfaceKHR</type> <name>surface</name></member>
        </type>
    </types>
    <enums name="API Constants" comment="Misc. hardcoded constants - not an enumerated type">
        <enum value="256" name="VK_MAX_PHYSICAL_DEVICE_NAME_SIZE"/>
        <enum value="1000.0f" name="VK_LOD_CLAMP_NONE"/>
        <enum value="(~0U)" name="VK_REMAINING_MIP_LEVELS"/>
        <enum value="(~0ULL)" name="VK_WHOLE_SIZE"/>
        <enum value="(~0U-1)" name="VK_QUEUE_FAMILY_EXTERNAL_KHX"/>
    </enums>
    <enums name="VkResult" type="enum" expand="VK_RESULT">
        <enum value="0" name="VK_SUCCESS"/>
        <enum value="-1" name="VK_ERROR_OUT_OF_HOST_MEMORY"/>
        <unused start="-12"/>
    </enums>
    <enums name="VkStructureType" type="enum" expand="VK_STRUCTURE_TYPE">
        <enum value="0" name="VK_STRUCTURE_TYPE_APPLICATION_INFO"/>
        <enum value="1" name="VK_STRUCTURE_TYPE_INSTANCE_CREATE_INFO"/>
    </enums>
    <enums name="VkQueueFlagBits" type="bitmask">
        <enum bitpos="0" name="VK_QUEUE_GRAPHICS_BIT"/>
        <enum bitpos="1" name="VK_QUEUE_COMPUTE_BIT"/>
    </enums>
    <enums name="VkCullModeFlagBits" type="bitmask">
        <enum value="0" name="VK_CULL_MODE_NONE"/>
        <enum bitpos="0" name="VK_CULL_MODE_FRONT_BIT"/>
        <enum value="0x00000003" name="VK_CULL_MODE_FRONT_AND_BACK"/>
    </enums>
    <commands>
        <command>
            <proto><type>PFN_vkVoidFunction</type> <name>vkGetInstanceProcAddr</name></proto>
            <param optional="true"><type>VkInstance</type> <name>instance</name></param>
            <param len="null-terminated">const <type>char</type>* <name>pName</name></param>
        </command>
        <command successcodes="VK_SUCCESS" errorcodes="VK_ERROR_OUT_OF_HOST_MEMORY">
            <proto><type>VkResult</type> <name>vkCreateInstance</name></proto>
            <param>const <type>VkInstanceCreateInfo</type>* <name>pCreateInfo</name></param>
            <param optional="true">const <type>VkAllocationCallbacks</type>* <name>pAllocator</name></param>
            <param><type>VkInstance</type>* <name>pInstance</name></param>
            <validity>
                <usage>pname:pCreateInfo must be a valid pointer</usage>
            </validity>
        </command>
        <command>
            <proto><type>void</type> <name>vkDestroyInstance</name></proto>
            <param optional="true" externsync="true"><type>VkInstance</type> <name>instance</name></param>
            <param optional="true">const <type>VkAllocationCallbacks</type>* <name>pAllocator</name></param>
            <implicitexternsyncparams>
                <param>all sname:VkPhysicalDevice objects enumerated from pname:instance</param>
            </implicitexternsyncparams>
        </command>
        <command>
            <proto><type>void</type> <name>vkGetPhysicalDeviceProperties</name></proto>
            <param><type>VkPhysicalDevice</type> <name>physicalDevice</name></param>
            <param><type>VkPhysicalDeviceProperties</type>* <name>pProperties</name></param>
        </command>
        <command>
            <proto><type>PFN_vkVoidFunction</type> <name>vkGetDeviceProcAddr</name></proto>
            <param><type>VkDevice</type> <name>device</name></param>
            <param len="null-terminated">const <type>char</type>* <name>pName</name></param>
        </command>
        <command>
            <proto><type>void</type> <name>vkGetDeviceQueue</name></proto>
            <param><type>VkDevice</type> <name>device</name></param>
            <param><type>uint32_t</type> <name>queueFamilyIndex</name></param>
            <param><type>VkQueue</type>* <name>pQueue</name></param>
        </command>
        <command>
            <proto><type>VkResult</type> <name>vkQueueWaitIdle</name></proto>
            <param><type>VkQueue</type> <name>queue</name></param>
        </command>
        <command>
            <proto><type>void</type> <name>vkDestroySurfaceKHR</name></proto>
            <param><type>VkInstance</type> <name>instance</name></param>
            <param optional="true"><type>VkSurfaceKHR</type> <name>surface</name></param>
            <param optional="true">const <type>VkAllocationCallbacks</type>* <name>pAllocator</name></param>
        </command>
        <command>
            <proto><type>VkResult</type> <name>vkCreateSwapchainKHR</name></proto>
            <param><type>VkDevice</type> <name>device</name></param>
            <param>const <type>VkSwapchainCreateInfoKHR</type>* <name>pCreateInfo</name></param>
            <param optional="true">const <type>VkAllocationCallbacks</type>* <name>pAllocator</name></param>
            <param><type>VkSwapchainKHR</type>* <name>pSwapchain</name></param>
        </command>
    </commands>
    <feature api="vulkan" name="VK_VERSION_1_0" number="1.0" comment="Vulkan core API interface definitions">
        <require comment="Header boilerplate">
            <type name="vk_platform"/>
        </require>
    </feature>
    <extensions>
        <extension name="VK_KHR_surface" number="1" type="instance" author="KHR" contact="Someone" supported="vulkan">
            <require>
                <enum value="25" name="VK_KHR_SURFACE_SPEC_VERSION"/>
                <enum value="&quot;VK_KHR_surface&quot;" name="VK_KHR_SURFACE_EXTENSION_NAME"/>
                <enum offset="0" extends="VkResult" dir="-" name="VK_ERROR_SURFACE_LOST_KHR"/>
                <type name="VkSurfaceKHR"/>
                <command name="vkDestroySurfaceKHR"/>
            </require>
        </extension>
        <extension name="VK_KHR_swapchain" number="2" type="device" requires="VK_KHR_surface" author="KHR" contact="Someone" supported="vulkan">
            <require>
                <enum value="68" name="VK_KHR_SWAPCHAIN_SPEC_VERSION"/>
                <enum value="&quot;VK_KHR_swapchain&quot;" name="VK_KHR_SWAPCHAIN_EXTENSION_NAME"/>
                <enum offset="0" extends="VkStructureType" name="VK_STRUCTURE_TYPE_SWAPCHAIN_CREATE_INFO_KHR"/>
                <enum bitpos="2" extends="VkQueueFlagBits" name="VK_QUEUE_PRESENT_BIT_KHR"/>
                <type name="VkSwapchainKHR"/>
                <type name="VkSwapchainCreateInfoKHR"/>
                <command name="vkCreateSwapchainKHR"/>
            </require>
        </extension>
        <extension name="VK_NV_extension_1" number="3" author="NV" contact="Someone" supported="disabled">
            <require>
                <enum value="0" name="VK_NV_EXTENSION_1_SPEC_VERSION"/>
                <enum value="&quot;VK_NV_extension_1&quot;" name="VK_NV_EXTENSION_1_EXTENSION_NAME"/>
                <command name="vkCmdDisabledNV"/>
            </require>
        </extension>
    </extensions>
</registry>
"""


@pytest.fixture
def existing_paths(tmp_path: Path) -> dict[str, Path]:
    vk_xml = tmp_path / "vk.xml"
    vk_xml.write_text(MINIMAL_REGISTRY_XML, encoding="utf-8")

    output_dir = tmp_path / "out"
    return {
        "vk_xml": vk_xml,
        "output_dir": output_dir,
    }


@pytest.fixture
def missing_path(tmp_path: Path) -> Path:
    return tmp_path / "missing"


@pytest.fixture
def make_args(existing_paths: dict[str, Path]) -> Callable[..., argparse.Namespace]:
    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "vk_xml": existing_paths["vk_xml"],
            "output_dir": existing_paths["output_dir"],
            "check": False,
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args


@pytest.fixture
def make_registry_root() -> Callable[[str], ET.Element]:
    def _make_registry_root(inner_xml: str) -> ET.Element:
        return ET.fromstring(f"<registry>{inner_xml}</registry>")

    return _make_registry_root


@pytest.fixture
def make_registry(
    make_registry_root: Callable[[str], ET.Element],
) -> Callable[..., vkgen.Registry]:
    """Read inner_xml into a fresh Registry; primitives are declared for you."""

    def _make_registry(inner_xml: str, *, types_xml: str = "") -> vkgen.Registry:
        registry = vkgen.Registry()
        root = make_registry_root(
            f"<types>{PRIMITIVE_TYPES_XML}{types_xml}</types>{inner_xml}"
        )
        return vkgen.read_registry(registry, root)

    return _make_registry


@pytest.fixture
def minimal_view() -> vkgen.RegistryView:
    registry = vkgen.Registry()
    vkgen.read_registry(registry, ET.fromstring(MINIMAL_REGISTRY_XML.split("?>", 1)[1]))
    vkgen.process_extensions(registry)
    return registry.finalize()


@pytest.fixture
def write_registry(tmp_path: Path) -> Callable[[str], Path]:
    def _write_registry(xml: str) -> Path:
        path = tmp_path / "vk.xml"
        path.write_text(xml, encoding="utf-8")
        return path

    return _write_registry
