from __future__ import annotations

import logging
from dataclasses import dataclass

from .accessors import AccessorInfo, read_accessor
from .constants import (
    ANIMATION_PATHS,
    COMPONENT_TYPE_FLOAT32,
    COMPONENT_TYPE_INT8,
    COMPONENT_TYPE_INT16,
    COMPONENT_TYPE_UINT8,
    COMPONENT_TYPE_UINT16,
    INTERPOLATION_CUBICSPLINE,
    INTERPOLATION_LINEAR,
    INTERPOLATIONS,
    UNIT_LENGTH_THRESHOLD,
)
from .context import ValidationContext
from .issues import format_value
from .objects import mesh_morph_target_count
from .registry import Entry
from .values import check_unexpected, get_object, get_object_array, get_str, vector_length


log = logging.getLogger(__name__)

ANIMATION_PROPERTIES = ("channels", "samplers")
CHANNEL_PROPERTIES = ("sampler", "target")
TARGET_PROPERTIES = ("node", "path")
SAMPLER_PROPERTIES = ("input", "interpolation", "output")

_QUANTIZED_FORMATS = (
    (COMPONENT_TYPE_FLOAT32, False),
    (COMPONENT_TYPE_INT8, True),
    (COMPONENT_TYPE_UINT8, True),
    (COMPONENT_TYPE_INT16, True),
    (COMPONENT_TYPE_UINT16, True),
)

# path -> (accessor type, allowed (componentType, normalized) pairs)
OUTPUT_FORMATS: dict[str, tuple[str, tuple[tuple[int, bool], ...]]] = {
    "translation": ("VEC3", ((COMPONENT_TYPE_FLOAT32, False),)),
    "scale": ("VEC3", ((COMPONENT_TYPE_FLOAT32, False),)),
    "rotation": ("VEC4", _QUANTIZED_FORMATS),
    "weights": ("SCALAR", _QUANTIZED_FORMATS),
}

_COMPONENT_LABELS = {
    (COMPONENT_TYPE_FLOAT32, False): "FLOAT",
    (COMPONENT_TYPE_INT8, True): "BYTE normalized",
    (COMPONENT_TYPE_UINT8, True): "UNSIGNED_BYTE normalized",
    (COMPONENT_TYPE_INT16, True): "SHORT normalized",
    (COMPONENT_TYPE_UINT16, True): "UNSIGNED_SHORT normalized",
}


@dataclass
class SamplerInfo:
    pointer: str
    input: Entry | None
    output: Entry | None
    interpolation: str | None


def _expected_formats(path: str) -> str:
    type_name, formats = OUTPUT_FORMATS[path]
    return ", ".join(f"'{{{type_name}, {_COMPONENT_LABELS[f]}}}'" for f in formats)


def _has_byte_stride(ctx: ValidationContext, info: AccessorInfo) -> bool:
    view = ctx.registry.lookup("bufferViews", info.buffer_view)
    return view is not None and view.info is not None and view.info.byte_stride is not None


def _check_input_data(ctx: ValidationContext, entry: Entry) -> None:
    if not ctx.first_check("animation-input", entry.index):
        return
    elements = read_accessor(ctx, entry)
    if elements is None:
        return
    previous: float | None = None
    for i, (value,) in enumerate(elements):
        if value < 0:
            ctx.issues.record("ACCESSOR_ANIMATION_INPUT_NEGATIVE", entry.pointer, i, format_value(value))
        if previous is not None and value <= previous:
            ctx.issues.record(
                "ACCESSOR_ANIMATION_INPUT_NON_INCREASING", entry.pointer, i, format_value(value), format_value(previous)
            )
        previous = value


def _validate_sampler(ctx: ValidationContext, sampler: dict, pointer: str) -> SamplerInfo:
    issues = ctx.issues
    registry = ctx.registry
    check_unexpected(sampler, SAMPLER_PROPERTIES, pointer, issues)

    input_entry = registry.resolve_property(sampler, "input", "accessors", pointer, required=True)
    output_entry = registry.resolve_property(sampler, "output", "accessors", pointer, required=True)
    interpolation = get_str(
        sampler, "interpolation", pointer, issues, choices=INTERPOLATIONS, default=INTERPOLATION_LINEAR
    )

    if input_entry is not None and input_entry.valid and input_entry.info is not None:
        input_pointer = f"{pointer}/input"
        info: AccessorInfo = input_entry.info
        if info.type != "SCALAR" or info.component_type != COMPONENT_TYPE_FLOAT32 or info.normalized:
            issues.record("ANIMATION_SAMPLER_INPUT_ACCESSOR_INVALID_FORMAT", input_pointer, info.format)
        else:
            if info.min is None or info.max is None:
                issues.record("ANIMATION_SAMPLER_INPUT_ACCESSOR_WITHOUT_BOUNDS", input_pointer)
            _check_input_data(ctx, input_entry)
        if _has_byte_stride(ctx, info):
            issues.record("ANIMATION_SAMPLER_ACCESSOR_WITH_BYTESTRIDE", input_pointer)
        if interpolation == INTERPOLATION_CUBICSPLINE and info.count < 2:
            issues.record(
                "ANIMATION_SAMPLER_INPUT_ACCESSOR_TOO_FEW_ELEMENTS", input_pointer, interpolation, 2, info.count
            )

    if output_entry is not None and output_entry.valid and output_entry.info is not None:
        if _has_byte_stride(ctx, output_entry.info):
            issues.record("ANIMATION_SAMPLER_ACCESSOR_WITH_BYTESTRIDE", f"{pointer}/output")

    return SamplerInfo(pointer=pointer, input=input_entry, output=output_entry, interpolation=interpolation)


def _check_quaternions(ctx: ValidationContext, entry: Entry, interpolation: str | None) -> None:
    if not ctx.first_check("animation-rotation", entry.index):
        return
    elements = read_accessor(ctx, entry, normalize=True)
    if elements is None:
        return
    for i, element in enumerate(elements):
        # Only the value of each (in-tangent, value, out-tangent) triple is a rotation.
        if interpolation == INTERPOLATION_CUBICSPLINE and i % 3 != 1:
            continue
        length = vector_length(element)
        if abs(length - 1.0) > UNIT_LENGTH_THRESHOLD:
            ctx.issues.record(
                "ACCESSOR_ANIMATION_SAMPLER_OUTPUT_NON_NORMALIZED_QUATERNION", entry.pointer, i, format_value(length)
            )


def _check_output(
    ctx: ValidationContext,
    sampler: SamplerInfo,
    path: str,
    morph_target_count: int,
    pointer: str,
) -> None:
    output = sampler.output
    if output is None or not output.valid or output.info is None:
        return
    info: AccessorInfo = output.info
    type_name, formats = OUTPUT_FORMATS[path]
    if info.type != type_name or (info.component_type, info.normalized) not in formats:
        ctx.issues.record(
            "ANIMATION_SAMPLER_OUTPUT_ACCESSOR_INVALID_FORMAT", pointer, info.format, path, _expected_formats(path)
        )
        return

    input_entry = sampler.input
    if input_entry is not None and input_entry.valid and input_entry.info is not None and sampler.interpolation:
        expected = input_entry.info.count
        if sampler.interpolation == INTERPOLATION_CUBICSPLINE:
            expected *= 3
        if path == "weights":
            expected *= morph_target_count
        if (path != "weights" or morph_target_count) and info.count != expected:
            ctx.issues.record("ANIMATION_SAMPLER_OUTPUT_ACCESSOR_INVALID_COUNT", pointer, expected, info.count)

    if path == "rotation":
        _check_quaternions(ctx, output, sampler.interpolation)


def _validate_channel(
    ctx: ValidationContext,
    channel: dict,
    pointer: str,
    samplers: list,
    sampler_infos: dict[int, SamplerInfo],
    targets: dict[tuple[int, str], int],
    channel_index: int,
) -> None:
    issues = ctx.issues
    registry = ctx.registry
    check_unexpected(channel, CHANNEL_PROPERTIES, pointer, issues)

    sampler_index = None
    if "sampler" not in channel:
        issues.record("UNDEFINED_PROPERTY", pointer, "sampler")
    else:
        sampler_index = registry.resolve_in(samplers, channel["sampler"], f"{pointer}/sampler")

    target = get_object(channel, "target", pointer, issues, required=True)
    if target is None:
        return
    target_pointer = f"{pointer}/target"
    check_unexpected(target, TARGET_PROPERTIES, target_pointer, issues)
    node = registry.resolve_property(target, "node", "nodes", target_pointer)
    path = get_str(target, "path", target_pointer, issues, required=True, choices=ANIMATION_PATHS)
    if path is None:
        return

    morph_target_count = 0
    if node is not None and node.info is not None:
        mesh = registry.lookup("meshes", node.info.mesh)
        morph_target_count = mesh_morph_target_count(mesh)
        if path == "weights":
            if morph_target_count == 0:
                issues.record("ANIMATION_CHANNEL_TARGET_NODE_WEIGHTS_NO_MORPHS", f"{target_pointer}/path")
        elif node.info.has_matrix:
            issues.record("ANIMATION_CHANNEL_TARGET_NODE_MATRIX", f"{target_pointer}/path")

    if node is not None:
        key = (node.index, path)
        if key in targets:
            issues.record("ANIMATION_DUPLICATE_TARGETS", target_pointer, targets[key])
        else:
            targets[key] = channel_index

    sampler = sampler_infos.get(sampler_index) if sampler_index is not None else None
    if sampler is not None:
        _check_output(ctx, sampler, path, morph_target_count, f"{pointer}/sampler")


def validate_animations(ctx: ValidationContext) -> None:
    issues = ctx.issues
    for entry in ctx.registry.entries("animations"):
        if not entry.valid:
            continue
        animation = entry.value
        pointer = entry.pointer
        check_unexpected(animation, ANIMATION_PROPERTIES, pointer, issues)

        sampler_infos: dict[int, SamplerInfo] = {}
        samplers = get_object_array(animation, "samplers", pointer, issues, required=True, non_empty=True)
        for k, sampler in samplers or []:
            sampler_infos[k] = _validate_sampler(ctx, sampler, f"{pointer}/samplers/{k}")

        raw_samplers = animation["samplers"] if samplers is not None else []
        targets: dict[tuple[int, str], int] = {}
        channels = get_object_array(animation, "channels", pointer, issues, required=True, non_empty=True)
        for c, channel in channels or []:
            _validate_channel(ctx, channel, f"{pointer}/channels/{c}", raw_samplers, sampler_infos, targets, c)
        log.debug("%s: %d sampler(s), %d channel(s)", pointer, len(sampler_infos), len(channels or []))
