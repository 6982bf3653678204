from __future__ import annotations

import logging
import math
import struct
from dataclasses import dataclass
from typing import Any

from .buffers import BufferViewInfo, view_bytes
from .constants import (
    COMPONENT_TYPE_BYTE_SIZE,
    COMPONENT_TYPE_FLOAT32,
    COMPONENT_TYPE_INT8,
    COMPONENT_TYPE_INT16,
    COMPONENT_TYPE_NAMES,
    COMPONENT_TYPE_STRUCT_FORMAT,
    COMPONENT_TYPE_UINT8,
    COMPONENT_TYPE_UINT16,
    INDEX_COMPONENT_TYPES,
    MATRIX_DIMENSION,
    NORMALIZABLE_COMPONENT_TYPES,
    TYPE_COMPONENT_COUNT,
)
from .context import ValidationContext
from .issues import format_list, format_value
from .registry import Entry
from .values import check_unexpected, get_bool, get_int, get_number_array, get_object, get_str


log = logging.getLogger(__name__)

ACCESSOR_PROPERTIES = (
    "bufferView",
    "byteOffset",
    "componentType",
    "normalized",
    "count",
    "type",
    "max",
    "min",
    "sparse",
)
SPARSE_PROPERTIES = ("count", "indices", "values")
SPARSE_INDICES_PROPERTIES = ("bufferView", "byteOffset", "componentType")
SPARSE_VALUES_PROPERTIES = ("bufferView", "byteOffset")

# Sparse accessors without a bufferView are expanded to a dense element list only up to this count.
MAX_IMPLICIT_ELEMENTS = 1 << 20


@dataclass
class SparseInfo:
    count: int | None
    indices_view: int | None = None
    indices_byte_offset: int | None = None
    indices_component_type: int | None = None
    values_view: int | None = None
    values_byte_offset: int | None = None
    ok: bool = False


@dataclass
class AccessorInfo:
    component_type: int | None
    type: str | None
    count: int | None
    normalized: bool = False
    buffer_view: int | None = None
    byte_offset: int | None = 0
    min: list[float] | None = None
    max: list[float] | None = None
    sparse: SparseInfo | None = None
    region_ok: bool = True
    decoded: bool = False
    elements: list[tuple[Any, ...]] | None = None
    substitutions: list[tuple[int, tuple[Any, ...]]] | None = None

    @property
    def format(self) -> str:
        component = COMPONENT_TYPE_NAMES.get(self.component_type, str(self.component_type))
        suffix = " normalized" if self.normalized else ""
        return f"'{{{self.type}, {component}{suffix}}}'"


def component_size(component_type: int | None) -> int | None:
    return COMPONENT_TYPE_BYTE_SIZE.get(component_type)


def component_count(type_name: str | None) -> int | None:
    """Components per element; None for an unknown type, which has no layout."""
    return TYPE_COMPONENT_COUNT.get(type_name)


def _align4(value: int) -> int:
    return (value + 3) & ~3


def element_byte_size(component_type: int | None, type_name: str | None) -> int | None:
    size = component_size(component_type)
    count = component_count(type_name)
    if size is None or count is None:
        return None
    dimension = MATRIX_DIMENSION.get(type_name)
    if dimension is not None and size < 4:
        # Each matrix column starts on a 4-byte boundary.
        return dimension * _align4(dimension * size)
    return size * count


def offset_alignment(component_type: int | None, type_name: str | None) -> int | None:
    size = component_size(component_type)
    if size is None or type_name is None:
        return None
    if type_name in MATRIX_DIMENSION:
        return 4
    return size


def occupied_byte_length(count: int, element_size: int, stride: int | None = None) -> int:
    if count <= 0:
        return 0
    step = max(stride or 0, element_size)
    return (count - 1) * step + element_size


def element_component_offsets(component_type: int, type_name: str) -> list[int]:
    size = COMPONENT_TYPE_BYTE_SIZE[component_type]
    dimension = MATRIX_DIMENSION.get(type_name)
    if dimension is None or size >= 4:
        return [i * size for i in range(TYPE_COMPONENT_COUNT[type_name])]
    column = _align4(dimension * size)
    return [c * column + r * size for c in range(dimension) for r in range(dimension)]


def read_elements(
    data: bytes,
    *,
    offset: int,
    count: int,
    stride: int | None,
    component_type: int,
    type_name: str,
) -> list[tuple[Any, ...]]:
    fmt = COMPONENT_TYPE_STRUCT_FORMAT[component_type]
    size = COMPONENT_TYPE_BYTE_SIZE[component_type]
    offsets = element_component_offsets(component_type, type_name)
    step = max(stride or 0, element_byte_size(component_type, type_name))

    if offsets == [i * size for i in range(len(offsets))]:
        unpacker = struct.Struct(f"<{len(offsets)}{fmt}")
        return [unpacker.unpack_from(data, offset + i * step) for i in range(count)]

    component = struct.Struct("<" + fmt)
    out: list[tuple[Any, ...]] = []
    for i in range(count):
        base = offset + i * step
        out.append(tuple(component.unpack_from(data, base + o)[0] for o in offsets))
    return out


def _check_region(
    ctx: ValidationContext,
    pointer: str,
    view_entry: Entry,
    *,
    byte_offset: int,
    count: int,
    element_size: int,
    alignment: int,
    stride: int | None = None,
    check_stride: bool = False,
) -> bool:
    view_info: BufferViewInfo | None = view_entry.info
    if view_info is None:
        return False
    issues = ctx.issues
    ok = view_entry.valid

    if byte_offset % alignment:
        issues.record("ACCESSOR_OFFSET_ALIGNMENT", f"{pointer}/byteOffset", byte_offset, alignment)
        ok = False
    elif view_info.byte_offset is not None and (view_info.byte_offset + byte_offset) % alignment:
        issues.record(
            "ACCESSOR_TOTAL_OFFSET_ALIGNMENT", f"{pointer}/byteOffset", view_info.byte_offset + byte_offset, alignment
        )
        ok = False

    if check_stride and stride is not None and stride < element_size:
        issues.record("ACCESSOR_SMALL_BYTESTRIDE", f"{pointer}/bufferView", stride, element_size)
        ok = False

    if view_info.byte_length is not None:
        length = occupied_byte_length(count, element_size, stride)
        if byte_offset + length > view_info.byte_length:
            issues.record("ACCESSOR_TOO_LONG", pointer, byte_offset, length, view_entry.index, view_info.byte_length)
            ok = False
    return ok


def _get_bounds(ctx: ValidationContext, accessor: dict, key: str, pointer: str, n: int | None) -> list[float] | None:
    if key not in accessor:
        return None
    if n is None:
        get_number_array(accessor, key, pointer, ctx.issues)
        return None
    return get_number_array(accessor, key, pointer, ctx.issues, lengths=(n,))


def _check_sparse_view(
    ctx: ValidationContext,
    pointer: str,
    view_entry: Entry | None,
    *,
    byte_offset: int | None,
    count: int | None,
    element_size: int | None,
    alignment: int | None,
) -> bool:
    if view_entry is None or view_entry.info is None:
        return False
    ok = True
    if view_entry.info.byte_stride is not None:
        ctx.issues.record("BUFFER_VIEW_INVALID_BYTE_STRIDE", f"{pointer}/bufferView")
        ok = False
    if byte_offset is None or count is None or element_size is None or alignment is None:
        return False
    return (
        _check_region(
            ctx,
            pointer,
            view_entry,
            byte_offset=byte_offset,
            count=count,
            element_size=element_size,
            alignment=alignment,
        )
        and ok
    )


def _validate_sparse(ctx: ValidationContext, accessor: dict, pointer: str, info: AccessorInfo) -> SparseInfo | None:
    issues = ctx.issues
    registry = ctx.registry
    sparse = get_object(accessor, "sparse", pointer, issues)
    if sparse is None:
        return None
    sparse_pointer = f"{pointer}/sparse"
    check_unexpected(sparse, SPARSE_PROPERTIES, sparse_pointer, issues)

    count = get_int(sparse, "count", sparse_pointer, issues, required=True, minimum=0)
    if count is not None and info.count is not None and count > info.count:
        issues.record("ACCESSOR_SPARSE_COUNT_OUT_OF_RANGE", f"{sparse_pointer}/count", count, info.count)
        count = None
    sparse_info = SparseInfo(count=count)

    indices_ok = False
    indices = get_object(sparse, "indices", sparse_pointer, issues, required=True)
    if indices is not None:
        indices_pointer = f"{sparse_pointer}/indices"
        check_unexpected(indices, SPARSE_INDICES_PROPERTIES, indices_pointer, issues)
        view_entry = registry.resolve_property(indices, "bufferView", "bufferViews", indices_pointer, required=True)
        byte_offset = get_int(indices, "byteOffset", indices_pointer, issues, minimum=0, default=0)
        component_type = get_int(indices, "componentType", indices_pointer, issues, required=True)
        if component_type is not None and component_type not in INDEX_COMPONENT_TYPES:
            issues.record(
                "INVALID_COMPONENT_TYPE",
                f"{indices_pointer}/componentType",
                component_type,
                format_list(INDEX_COMPONENT_TYPES),
            )
            component_type = None
        sparse_info.indices_view = view_entry.index if view_entry is not None else None
        sparse_info.indices_byte_offset = byte_offset
        sparse_info.indices_component_type = component_type
        size = component_size(component_type)
        indices_ok = _check_sparse_view(
            ctx,
            indices_pointer,
            view_entry,
            byte_offset=byte_offset,
            count=count,
            element_size=size,
            alignment=size,
        )

    values_ok = False
    values = get_object(sparse, "values", sparse_pointer, issues, required=True)
    if values is not None:
        values_pointer = f"{sparse_pointer}/values"
        check_unexpected(values, SPARSE_VALUES_PROPERTIES, values_pointer, issues)
        view_entry = registry.resolve_property(values, "bufferView", "bufferViews", values_pointer, required=True)
        byte_offset = get_int(values, "byteOffset", values_pointer, issues, minimum=0, default=0)
        sparse_info.values_view = view_entry.index if view_entry is not None else None
        sparse_info.values_byte_offset = byte_offset
        values_ok = _check_sparse_view(
            ctx,
            values_pointer,
            view_entry,
            byte_offset=byte_offset,
            count=count,
            element_size=element_byte_size(info.component_type, info.type),
            alignment=offset_alignment(info.component_type, info.type),
        )

    sparse_info.ok = indices_ok and values_ok
    return sparse_info


def _validate_accessor(ctx: ValidationContext, entry: Entry) -> None:
    issues = ctx.issues
    accessor = entry.value
    pointer = entry.pointer
    check_unexpected(accessor, ACCESSOR_PROPERTIES, pointer, issues)

    component_type = get_int(accessor, "componentType", pointer, issues, required=True)
    if component_type is not None and component_type not in COMPONENT_TYPE_BYTE_SIZE:
        issues.record(
            "INVALID_COMPONENT_TYPE",
            f"{pointer}/componentType",
            component_type,
            format_list(COMPONENT_TYPE_BYTE_SIZE),
        )
        component_type = None
    type_name = get_str(accessor, "type", pointer, issues, required=True)
    if type_name is not None and type_name not in TYPE_COMPONENT_COUNT:
        issues.record("INVALID_TYPE", f"{pointer}/type", format_value(type_name), format_list(TYPE_COMPONENT_COUNT))
        type_name = None
    count = get_int(accessor, "count", pointer, issues, required=True, minimum=1)

    normalized = get_bool(accessor, "normalized", pointer, issues, default=False)
    if normalized and component_type is not None and component_type not in NORMALIZABLE_COMPONENT_TYPES:
        issues.record("ACCESSOR_NORMALIZED_INVALID", f"{pointer}/normalized")

    byte_offset = get_int(accessor, "byteOffset", pointer, issues, minimum=0, default=0)
    view_entry = ctx.registry.resolve_property(accessor, "bufferView", "bufferViews", pointer)
    if "byteOffset" in accessor and "bufferView" not in accessor:
        issues.record("UNSATISFIED_DEPENDENCY", f"{pointer}/byteOffset", "bufferView")

    info = AccessorInfo(
        component_type=component_type,
        type=type_name,
        count=count,
        normalized=bool(normalized),
        buffer_view=view_entry.index if view_entry is not None else None,
        byte_offset=byte_offset,
    )
    entry.info = info

    if component_type is None or type_name is None or count is None:
        ctx.registry.invalidate(entry.kind, entry.index)
        info.region_ok = False
        log.debug("%s has no usable layout, skipping byte-level checks", pointer)

    n = component_count(type_name)
    info.min = _get_bounds(ctx, accessor, "min", pointer, n)
    info.max = _get_bounds(ctx, accessor, "max", pointer, n)

    if entry.valid:
        if view_entry is not None and byte_offset is not None:
            info.region_ok = _check_region(
                ctx,
                pointer,
                view_entry,
                byte_offset=byte_offset,
                count=count,
                element_size=element_byte_size(component_type, type_name),
                alignment=offset_alignment(component_type, type_name),
                stride=view_entry.info.byte_stride if view_entry.info is not None else None,
                check_stride=True,
            )
        elif "bufferView" in accessor:
            info.region_ok = False

    if "sparse" in accessor:
        info.sparse = _validate_sparse(ctx, accessor, pointer, info)
        if info.sparse is None or not info.sparse.ok:
            info.region_ok = False


def validate_accessors(ctx: ValidationContext) -> None:
    for entry in ctx.registry.entries("accessors"):
        if entry.valid:
            _validate_accessor(ctx, entry)


def _read_sparse(ctx: ValidationContext, entry: Entry) -> list[tuple[int, tuple[Any, ...]]] | None:
    """``(index, value)`` substitutions of a sparse accessor, or None when its indices are unusable."""
    info: AccessorInfo = entry.info
    sparse = info.sparse
    indices_data = view_bytes(ctx, ctx.registry.lookup("bufferViews", sparse.indices_view))
    values_data = view_bytes(ctx, ctx.registry.lookup("bufferViews", sparse.values_view))
    if indices_data is None or values_data is None:
        return None

    indices = read_elements(
        indices_data,
        offset=sparse.indices_byte_offset,
        count=sparse.count,
        stride=None,
        component_type=sparse.indices_component_type,
        type_name="SCALAR",
    )
    values = read_elements(
        values_data,
        offset=sparse.values_byte_offset,
        count=sparse.count,
        stride=None,
        component_type=info.component_type,
        type_name=info.type,
    )

    ok = True
    indices_pointer = f"{entry.pointer}/sparse/indices"
    previous: int | None = None
    for i, (index,) in enumerate(indices):
        if index >= info.count:
            ctx.issues.record("ACCESSOR_SPARSE_INDEX_OOB", indices_pointer, i, index, info.count)
            ok = False
        elif previous is not None and index <= previous:
            ctx.issues.record("ACCESSOR_SPARSE_INDICES_NON_INCREASING", indices_pointer, i, index, previous)
            ok = False
        previous = index
    if not ok:
        return None
    return [(index, value) for (index,), value in zip(indices, values)]


def _decode(ctx: ValidationContext, entry: Entry) -> list[tuple[Any, ...]] | None:
    info: AccessorInfo = entry.info
    info.decoded = True
    if not info.region_ok:
        return None

    substitutions = None
    if info.sparse is not None:
        substitutions = _read_sparse(ctx, entry)
        if substitutions is None:
            return None

    if info.buffer_view is not None:
        view_entry = ctx.registry.lookup("bufferViews", info.buffer_view)
        data = view_bytes(ctx, view_entry)
        if data is None:
            return None
        elements = read_elements(
            data,
            offset=info.byte_offset,
            count=info.count,
            stride=view_entry.info.byte_stride,
            component_type=info.component_type,
            type_name=info.type,
        )
    elif substitutions is not None:
        info.substitutions = substitutions
        if info.count > MAX_IMPLICIT_ELEMENTS:
            log.debug(
                "%s: %d zero-initialized elements exceed %d, checking sparse values only",
                entry.pointer,
                info.count,
                MAX_IMPLICIT_ELEMENTS,
            )
            return None
        elements = [(0,) * component_count(info.type)] * info.count
    else:
        return None

    for index, value in substitutions or ():
        elements[index] = value
    info.elements = elements
    return elements


def dequantize(value: float, component_type: int | None) -> float:
    """Maps a normalized integer component to its floating-point value."""
    if component_type == COMPONENT_TYPE_INT8:
        return max(value / 127.0, -1.0)
    if component_type == COMPONENT_TYPE_UINT8:
        return value / 255.0
    if component_type == COMPONENT_TYPE_INT16:
        return max(value / 32767.0, -1.0)
    if component_type == COMPONENT_TYPE_UINT16:
        return value / 65535.0
    return value


def read_accessor(
    ctx: ValidationContext,
    accessor: Entry | int | None,
    *,
    normalize: bool = False,
) -> list[tuple[Any, ...]] | None:
    """Decoded elements of an accessor (sparse substitution applied), or None when its bytes are unavailable.

    With ``normalize``, components of a ``normalized`` accessor are mapped to floats; min/max checks
    always see the stored integers.
    """
    entry = accessor if isinstance(accessor, Entry) else ctx.registry.lookup("accessors", accessor)
    if entry is None or not entry.valid or entry.info is None:
        return None
    info: AccessorInfo = entry.info
    if not info.decoded:
        _decode(ctx, entry)
    elements = info.elements
    if elements is None or not (normalize and info.normalized):
        return elements
    component_type = info.component_type
    return [tuple(dequantize(v, component_type) for v in element) for element in elements]


def _as_component(value: float, component_type: int) -> float:
    if component_type != COMPONENT_TYPE_FLOAT32:
        return value
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except (OverflowError, struct.error):
        return value


def _outside(value: Any, bound: float, lower: bool) -> bool:
    return math.isfinite(value) and (value < bound if lower else value > bound)


def _compare_bounds(
    ctx: ValidationContext,
    entry: Entry,
    key: str,
    declared: list[float],
    actual: list[float],
    elements: list[tuple[Any, ...]],
    implicit_zeros: int,
) -> None:
    info: AccessorInfo = entry.info
    lower = key == "min"
    for j, value in enumerate(declared):
        if j >= len(actual) or not math.isfinite(actual[j]):
            continue
        bound = _as_component(value, info.component_type)
        component_pointer = f"{entry.pointer}/{key}/{j}"
        if _outside(actual[j], bound, lower):
            outside = sum(1 for element in elements if _outside(element[j], bound, lower))
            if implicit_zeros and _outside(0, bound, lower):
                outside += implicit_zeros
            code = "ACCESSOR_ELEMENT_OUT_OF_MIN_BOUND" if lower else "ACCESSOR_ELEMENT_OUT_OF_MAX_BOUND"
            ctx.issues.record(code, component_pointer, outside, format_value(value))
        elif actual[j] != bound:
            code = "ACCESSOR_MIN_MISMATCH" if lower else "ACCESSOR_MAX_MISMATCH"
            ctx.issues.record(code, component_pointer, format_value(value), format_value(actual[j]))


def _check_elements(
    ctx: ValidationContext,
    entry: Entry,
    elements: list[tuple[Any, ...]],
    *,
    positions: list[int] | None = None,
    implicit_zeros: int = 0,
) -> None:
    """Float validity and min/max of ``elements``; ``implicit_zeros`` more all-zero elements are assumed present."""
    info: AccessorInfo = entry.info
    n = component_count(info.type)
    is_float = info.component_type == COMPONENT_TYPE_FLOAT32
    actual_min = [0] * n if implicit_zeros else [math.inf] * n
    actual_max = [0] * n if implicit_zeros else [-math.inf] * n

    for i, element in enumerate(elements):
        if is_float and not all(math.isfinite(v) for v in element):
            ctx.issues.record("ACCESSOR_INVALID_FLOAT", entry.pointer, positions[i] if positions is not None else i)
            continue
        for j, v in enumerate(element):
            if v < actual_min[j]:
                actual_min[j] = v
            if v > actual_max[j]:
                actual_max[j] = v

    if info.min is not None:
        _compare_bounds(ctx, entry, "min", info.min, actual_min, elements, implicit_zeros)
    if info.max is not None:
        _compare_bounds(ctx, entry, "max", info.max, actual_max, elements, implicit_zeros)


def check_accessor_data(ctx: ValidationContext) -> None:
    for entry in ctx.registry.entries("accessors"):
        if ctx.issues.is_full:
            log.debug("issue limit reached, skipping remaining accessor data checks")
            return
        if not entry.valid or entry.info is None:
            continue
        info: AccessorInfo = entry.info
        elements = read_accessor(ctx, entry)
        if elements is not None:
            _check_elements(ctx, entry, elements)
        elif info.substitutions is not None:
            _check_elements(
                ctx,
                entry,
                [value for _, value in info.substitutions],
                positions=[index for index, _ in info.substitutions],
                implicit_zeros=info.count - len(info.substitutions),
            )
        else:
            log.debug("%s: backing bytes unavailable", entry.pointer)
