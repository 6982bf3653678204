from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator

from .accessors import AccessorInfo, read_accessor
from .constants import (
    CAMERA_TYPES,
    COMPONENT_TYPE_FLOAT32,
    COMPONENT_TYPE_NAMES,
    COMPONENT_TYPE_UINT8,
    COMPONENT_TYPE_UINT16,
    IMAGE_MIME_TYPES,
    INDEX_COMPONENT_TYPES,
    PRIMITIVE_MODES,
    SAMPLER_MAG_FILTERS,
    SAMPLER_MIN_FILTERS,
    SAMPLER_WRAP_MODES,
    TARGET_ARRAY_BUFFER,
    TARGET_ELEMENT_ARRAY_BUFFER,
    TRIANGLES_MODE,
)
from .context import ValidationContext
from .errors import ResourceError
from .issues import format_list, format_value
from .registry import Entry
from .resources import decode_data_uri, is_absolute_uri, is_data_uri, shorten_uri
from .values import (
    check_unexpected,
    child_pointer,
    get_int,
    get_number,
    get_number_array,
    get_object,
    get_object_array,
    get_str,
)


log = logging.getLogger(__name__)

MESH_PROPERTIES = ("primitives", "weights")
PRIMITIVE_PROPERTIES = ("attributes", "indices", "material", "mode", "targets")
MATERIAL_PROPERTIES = (
    "pbrMetallicRoughness",
    "normalTexture",
    "occlusionTexture",
    "emissiveTexture",
    "emissiveFactor",
    "alphaMode",
    "alphaCutoff",
    "doubleSided",
)
TEXTURE_PROPERTIES = ("sampler", "source")
IMAGE_PROPERTIES = ("uri", "mimeType", "bufferView")
SAMPLER_PROPERTIES = ("magFilter", "minFilter", "wrapS", "wrapT")
CAMERA_PROPERTIES = ("orthographic", "perspective", "type")


@dataclass
class PrimitiveInfo:
    mode: int = TRIANGLES_MODE
    attributes: dict[str, int] = field(default_factory=dict)
    indices: int | None = None
    material: int | None = None
    targets: list[dict[str, int]] = field(default_factory=list)


@dataclass
class MeshInfo:
    primitives: list[PrimitiveInfo]
    morph_target_count: int = 0


@dataclass
class MaterialInfo:
    textures: list[int]


def _resolve_attributes(ctx: ValidationContext, attributes: dict[str, Any], pointer: str) -> dict[str, int]:
    out: dict[str, int] = {}
    for semantic, value in attributes.items():
        entry = ctx.registry.resolve("accessors", value, child_pointer(pointer, semantic))
        if entry is not None:
            out[semantic] = entry.index
    return out


VERTEX_BUFFER = "VertexBuffer"
INDEX_BUFFER = "IndexBuffer"
_TARGET_USAGE = {TARGET_ARRAY_BUFFER: VERTEX_BUFFER, TARGET_ELEMENT_ARRAY_BUFFER: INDEX_BUFFER}

_FLOAT = (COMPONENT_TYPE_FLOAT32, False)
_UNORM = ((COMPONENT_TYPE_UINT8, True), (COMPONENT_TYPE_UINT16, True))

# semantic prefix -> (allowed types, allowed (componentType, normalized) pairs)
ATTRIBUTE_FORMATS: dict[str, tuple[tuple[str, ...], tuple[tuple[int, bool], ...]]] = {
    "POSITION": (("VEC3",), (_FLOAT,)),
    "NORMAL": (("VEC3",), (_FLOAT,)),
    "TANGENT": (("VEC4",), (_FLOAT,)),
    "TEXCOORD": (("VEC2",), (_FLOAT,) + _UNORM),
    "COLOR": (("VEC3", "VEC4"), (_FLOAT,) + _UNORM),
    "JOINTS": (("VEC4",), ((COMPONENT_TYPE_UINT8, False), (COMPONENT_TYPE_UINT16, False))),
    "WEIGHTS": (("VEC4",), (_FLOAT,) + _UNORM),
}


def _attribute_formats(semantic: str) -> tuple[tuple[str, ...], tuple[tuple[int, bool], ...]] | None:
    base, _, suffix = semantic.partition("_")
    if suffix and not suffix.isdigit():
        return None
    if base in ("TEXCOORD", "COLOR", "JOINTS", "WEIGHTS"):
        return ATTRIBUTE_FORMATS[base] if suffix else None
    return None if suffix else ATTRIBUTE_FORMATS.get(base)


def _format_label(type_name: str, component_type: int, normalized: bool) -> str:
    suffix = " normalized" if normalized else ""
    return f"'{{{type_name}, {COMPONENT_TYPE_NAMES[component_type]}{suffix}}}'"


def _track_view_usage(
    ctx: ValidationContext,
    accessor: Entry,
    usage: str,
    pointer: str,
    view_usage: dict[int, str],
) -> None:
    """Records how a bufferView is bound; a second, different binding is a target override."""
    view = ctx.registry.lookup("bufferViews", accessor.info.buffer_view)
    if view is None or view.info is None:
        return
    initial = view_usage.get(view.index) or _TARGET_USAGE.get(view.info.target)
    if initial is None:
        view_usage[view.index] = usage
    elif initial != usage:
        ctx.issues.record("BUFFER_VIEW_TARGET_OVERRIDE", pointer, initial, usage)


def _check_attributes(
    ctx: ValidationContext,
    attributes: dict[str, int],
    pointer: str,
    view_usage: dict[int, str],
) -> int | None:
    """Format, bounds and count checks on a primitive's attribute accessors; returns the vertex count."""
    issues = ctx.issues
    counts: list[tuple[str, int]] = []
    for semantic, index in attributes.items():
        if not ctx.registry.is_valid("accessors", index):
            continue
        entry = ctx.registry.lookup("accessors", index)
        info: AccessorInfo = entry.info
        attribute_pointer = child_pointer(pointer, semantic)
        _track_view_usage(ctx, entry, VERTEX_BUFFER, attribute_pointer, view_usage)

        formats = _attribute_formats(semantic)
        if formats is not None:
            types, components = formats
            if info.type not in types or (info.component_type, info.normalized) not in components:
                expected = ", ".join(_format_label(t, c, n) for t in types for c, n in components)
                issues.record("MESH_PRIMITIVE_ATTRIBUTES_ACCESSOR_INVALID_FORMAT", attribute_pointer, info.format, expected)
        if semantic == "POSITION" and (info.min is None or info.max is None):
            issues.record("MESH_PRIMITIVE_POSITION_ACCESSOR_WITHOUT_BOUNDS", attribute_pointer)
        counts.append((semantic, info.count))

    if not counts:
        return None
    vertex_count = dict(counts).get("POSITION", counts[0][1])
    for semantic, count in counts:
        if count != vertex_count:
            issues.record("MESH_PRIMITIVE_UNEQUAL_ACCESSOR_COUNT", child_pointer(pointer, semantic))
            break
    return vertex_count


def _check_indices(
    ctx: ValidationContext,
    indices: Entry,
    pointer: str,
    vertex_count: int | None,
    view_usage: dict[int, str],
) -> None:
    issues = ctx.issues
    info: AccessorInfo | None = indices.info
    if not indices.valid or info is None:
        return
    _track_view_usage(ctx, indices, INDEX_BUFFER, pointer, view_usage)

    view = ctx.registry.lookup("bufferViews", info.buffer_view)
    if view is not None and view.info is not None and view.info.byte_stride is not None:
        issues.record("MESH_PRIMITIVE_INDICES_ACCESSOR_WITH_BYTESTRIDE", pointer)

    if info.type != "SCALAR" or info.component_type not in INDEX_COMPONENT_TYPES or info.normalized:
        issues.record("MESH_PRIMITIVE_INDICES_ACCESSOR_INVALID_FORMAT", pointer, info.format)
        return
    if vertex_count is None:
        return
    elements = read_accessor(ctx, indices)
    if elements is None:
        return
    for i, (value,) in enumerate(elements):
        if value >= vertex_count:
            issues.record("ACCESSOR_INDEX_OOB", pointer, i, value, vertex_count - 1)


def _validate_primitive(
    ctx: ValidationContext,
    primitive: dict[str, Any],
    pointer: str,
    view_usage: dict[int, str],
) -> tuple[PrimitiveInfo, int]:
    issues = ctx.issues
    registry = ctx.registry
    check_unexpected(primitive, PRIMITIVE_PROPERTIES, pointer, issues)
    info = PrimitiveInfo()

    vertex_count = None
    attributes = get_object(primitive, "attributes", pointer, issues, required=True)
    if attributes is not None:
        attributes_pointer = f"{pointer}/attributes"
        info.attributes = _resolve_attributes(ctx, attributes, attributes_pointer)
        vertex_count = _check_attributes(ctx, info.attributes, attributes_pointer, view_usage)

    indices = registry.resolve_property(primitive, "indices", "accessors", pointer)
    if indices is not None:
        info.indices = indices.index
        _check_indices(ctx, indices, f"{pointer}/indices", vertex_count, view_usage)

    material = registry.resolve_property(primitive, "material", "materials", pointer)
    if material is not None:
        info.material = material.index
    mode = get_int(primitive, "mode", pointer, issues, minimum=PRIMITIVE_MODES.start, maximum=PRIMITIVE_MODES.stop - 1)
    if mode is not None:
        info.mode = mode

    target_count = 0
    if "targets" in primitive:
        targets = get_object_array(primitive, "targets", pointer, issues, non_empty=True)
        if targets is not None:
            target_count = len(primitive["targets"])
            for k, target in targets:
                info.targets.append(_resolve_attributes(ctx, target, f"{pointer}/targets/{k}"))
    return info, target_count


def validate_meshes(ctx: ValidationContext) -> None:
    issues = ctx.issues
    view_usage: dict[int, str] = {}
    for entry in ctx.registry.entries("meshes"):
        if not entry.valid:
            continue
        mesh = entry.value
        pointer = entry.pointer
        check_unexpected(mesh, MESH_PROPERTIES, pointer, issues)

        info = MeshInfo(primitives=[])
        target_counts: list[tuple[int, int]] = []
        primitives = get_object_array(mesh, "primitives", pointer, issues, required=True, non_empty=True)
        for k, primitive in primitives or []:
            primitive_info, target_count = _validate_primitive(
                ctx, primitive, f"{pointer}/primitives/{k}", view_usage
            )
            info.primitives.append(primitive_info)
            target_counts.append((k, target_count))

        if target_counts:
            info.morph_target_count = target_counts[0][1]
            for k, target_count in target_counts[1:]:
                if target_count != info.morph_target_count:
                    issues.record("MESH_PRIMITIVES_UNEQUAL_TARGETS_COUNT", f"{pointer}/primitives/{k}/targets")

        weights = get_number_array(mesh, "weights", pointer, issues)
        if weights is not None and len(weights) != info.morph_target_count:
            issues.record("MESH_INVALID_WEIGHTS_COUNT", f"{pointer}/weights", len(weights), info.morph_target_count)
        if primitives is None:
            ctx.registry.invalidate(entry.kind, entry.index)
        entry.info = info


def texture_infos(obj: dict[str, Any], pointer: str) -> Iterator[tuple[str, dict[str, Any]]]:
    """Yields ``(pointer, textureInfo)`` for every ``*Texture`` object nested in a material, extensions included."""
    stack = [(pointer, obj)]
    while stack:
        current_pointer, current = stack.pop()
        for key, value in current.items():
            if not isinstance(value, dict) or key == "extras":
                continue
            value_pointer = child_pointer(current_pointer, key)
            if key.endswith("Texture") and "index" in value:
                yield value_pointer, value
            else:
                stack.append((value_pointer, value))


def validate_materials(ctx: ValidationContext) -> None:
    for entry in ctx.registry.entries("materials"):
        if not entry.valid:
            continue
        material = entry.value
        check_unexpected(material, MATERIAL_PROPERTIES, entry.pointer, ctx.issues)
        textures: list[int] = []
        for info_pointer, texture_info in sorted(texture_infos(material, entry.pointer), key=lambda item: item[0]):
            texture = ctx.registry.resolve_property(texture_info, "index", "textures", info_pointer)
            if texture is not None:
                textures.append(texture.index)
            get_int(texture_info, "texCoord", info_pointer, ctx.issues, minimum=0)
        entry.info = MaterialInfo(textures=textures)


def validate_textures(ctx: ValidationContext) -> None:
    for entry in ctx.registry.entries("textures"):
        if not entry.valid:
            continue
        texture = entry.value
        check_unexpected(texture, TEXTURE_PROPERTIES, entry.pointer, ctx.issues)
        ctx.registry.resolve_property(texture, "sampler", "samplers", entry.pointer)
        ctx.registry.resolve_property(texture, "source", "images", entry.pointer)


def validate_images(ctx: ValidationContext) -> None:
    issues = ctx.issues
    for entry in ctx.registry.entries("images"):
        if not entry.valid:
            continue
        image = entry.value
        pointer = entry.pointer
        check_unexpected(image, IMAGE_PROPERTIES, pointer, issues)

        has_uri = "uri" in image
        has_view = "bufferView" in image
        if has_uri == has_view:
            issues.record("ONE_OF_MISMATCH", pointer, "'bufferView', 'uri'")

        mime_type = get_str(image, "mimeType", pointer, issues)
        if mime_type is not None and mime_type not in IMAGE_MIME_TYPES:
            issues.record("UNSUPPORTED_MIME_TYPE", f"{pointer}/mimeType", format_value(mime_type))

        if has_view:
            view = ctx.registry.resolve_property(image, "bufferView", "bufferViews", pointer)
            if "mimeType" not in image:
                issues.record("UNDEFINED_PROPERTY", pointer, "mimeType")
            if view is not None:
                ctx.resources.append(
                    {"pointer": pointer, "mimeType": mime_type, "storage": "buffer-view", "uri": None}
                )

        uri = get_str(image, "uri", pointer, issues)
        if uri is None:
            continue
        if is_data_uri(uri):
            try:
                data_mime_type, data = decode_data_uri(uri)
            except ResourceError as exc:
                issues.record("INVALID_URI", f"{pointer}/uri", format_value(shorten_uri(uri)), exc)
                continue
            ctx.resources.append(
                {"pointer": pointer, "mimeType": data_mime_type, "storage": "data-uri", "uri": None, "byteLength": len(data)}
            )
        else:
            if is_absolute_uri(uri):
                issues.record("NON_RELATIVE_URI", f"{pointer}/uri", format_value(uri))
            ctx.resources.append({"pointer": pointer, "mimeType": mime_type, "storage": "external", "uri": uri})


def validate_samplers(ctx: ValidationContext) -> None:
    issues = ctx.issues
    for entry in ctx.registry.entries("samplers"):
        if not entry.valid:
            continue
        sampler = entry.value
        pointer = entry.pointer
        check_unexpected(sampler, SAMPLER_PROPERTIES, pointer, issues)
        for key, allowed in (
            ("magFilter", SAMPLER_MAG_FILTERS),
            ("minFilter", SAMPLER_MIN_FILTERS),
            ("wrapS", SAMPLER_WRAP_MODES),
            ("wrapT", SAMPLER_WRAP_MODES),
        ):
            value = get_int(sampler, key, pointer, issues)
            if value is not None and value not in allowed:
                issues.record("VALUE_NOT_IN_LIST", f"{pointer}/{key}", value, format_list(allowed))


def _validate_projection(ctx: ValidationContext, camera: dict[str, Any], kind: str, pointer: str) -> None:
    issues = ctx.issues
    projection = get_object(camera, kind, pointer, issues, required=True)
    if projection is None:
        return
    projection_pointer = f"{pointer}/{kind}"
    if kind == "perspective":
        check_unexpected(projection, ("aspectRatio", "yfov", "zfar", "znear"), projection_pointer, issues)
        get_number(projection, "aspectRatio", projection_pointer, issues, exclusive_minimum=0.0)
        get_number(projection, "yfov", projection_pointer, issues, required=True, exclusive_minimum=0.0)
        zfar = get_number(projection, "zfar", projection_pointer, issues, exclusive_minimum=0.0)
        znear = get_number(projection, "znear", projection_pointer, issues, required=True, exclusive_minimum=0.0)
    else:
        check_unexpected(projection, ("xmag", "ymag", "zfar", "znear"), projection_pointer, issues)
        get_number(projection, "xmag", projection_pointer, issues, required=True)
        get_number(projection, "ymag", projection_pointer, issues, required=True)
        zfar = get_number(projection, "zfar", projection_pointer, issues, required=True, exclusive_minimum=0.0)
        znear = get_number(projection, "znear", projection_pointer, issues, required=True, minimum=0.0)
    if zfar is not None and znear is not None and zfar <= znear:
        issues.record("CAMERA_ZFAR_LEQUAL_ZNEAR", projection_pointer)


def validate_cameras(ctx: ValidationContext) -> None:
    for entry in ctx.registry.entries("cameras"):
        if not entry.valid:
            continue
        camera = entry.value
        check_unexpected(camera, CAMERA_PROPERTIES, entry.pointer, ctx.issues)
        camera_type = get_str(camera, "type", entry.pointer, ctx.issues, required=True, choices=CAMERA_TYPES)
        if camera_type is not None:
            _validate_projection(ctx, camera, camera_type, entry.pointer)


def mesh_morph_target_count(entry: Entry | None) -> int:
    if entry is None or entry.info is None:
        return 0
    return entry.info.morph_target_count


def validate_objects(ctx: ValidationContext) -> None:
    validate_meshes(ctx)
    validate_materials(ctx)
    validate_textures(ctx)
    validate_images(ctx)
    validate_samplers(ctx)
    validate_cameras(ctx)
