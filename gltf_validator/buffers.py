from __future__ import annotations

import logging
from dataclasses import dataclass

from .constants import (
    BUFFER_MIME_TYPES,
    BUFFER_VIEW_TARGETS,
    BYTE_STRIDE_MAX,
    BYTE_STRIDE_MIN,
    BYTE_STRIDE_MULTIPLE,
    TARGET_ELEMENT_ARRAY_BUFFER,
)
from .context import ValidationContext
from .errors import ResourceError
from .issues import format_list, format_value
from .registry import Entry
from .resources import decode_data_uri, is_absolute_uri, is_data_uri, shorten_uri
from .values import check_unexpected, get_int, get_str, is_integer


log = logging.getLogger(__name__)

BUFFER_PROPERTIES = ("uri", "byteLength")
BUFFER_VIEW_PROPERTIES = ("buffer", "byteOffset", "byteLength", "byteStride", "target")


@dataclass
class BufferInfo:
    byte_length: int | None
    uri: str | None = None
    data: bytes | None = None
    storage: str | None = None


@dataclass
class BufferViewInfo:
    buffer: int | None
    byte_offset: int | None
    byte_length: int | None
    byte_stride: int | None = None
    target: int | None = None
    fits: bool = True


def _get_byte_length(ctx: ValidationContext, buffer: dict, pointer: str) -> int | None:
    if "byteLength" not in buffer:
        ctx.issues.record("UNDEFINED_PROPERTY", pointer, "byteLength")
        return None
    value = buffer["byteLength"]
    if not is_integer(value):
        ctx.issues.record("TYPE_MISMATCH", f"{pointer}/byteLength", format_value(value), "integer")
        return None
    if value < 1:
        ctx.issues.record("VALUE_NOT_IN_RANGE", f"{pointer}/byteLength", value)
        return None
    return value


def _load_uri(ctx: ValidationContext, uri: str, pointer: str) -> tuple[bytes | None, str | None]:
    if is_data_uri(uri):
        if ctx.is_glb:
            ctx.issues.record("DATA_URI_GLB", pointer)
        try:
            mime_type, data = decode_data_uri(uri)
        except ResourceError as exc:
            ctx.issues.record("INVALID_URI", pointer, format_value(shorten_uri(uri)), exc)
            return None, None
        if mime_type not in BUFFER_MIME_TYPES:
            ctx.issues.record("BUFFER_DATA_URI_MIME_TYPE_INVALID", pointer, format_value(mime_type))
        return data, "data-uri"

    if is_absolute_uri(uri):
        ctx.issues.record("NON_RELATIVE_URI", pointer, format_value(uri))
        return None, "external"
    if ctx.is_glb:
        ctx.issues.record("URI_GLB", pointer)
    if ctx.resource_loader is None:
        log.debug("no resource loader configured, skipping %s", uri)
        return None, "external"
    try:
        return ctx.resource_loader(uri), "external"
    except ResourceError as exc:
        ctx.issues.record("IO_ERROR", pointer, exc)
        return None, "external"


def validate_buffers(ctx: ValidationContext) -> None:
    for entry in ctx.registry.entries("buffers"):
        if not entry.valid:
            continue
        buffer = entry.value
        pointer = entry.pointer
        check_unexpected(buffer, BUFFER_PROPERTIES, pointer, ctx.issues)

        byte_length = _get_byte_length(ctx, buffer, pointer)
        uri = get_str(buffer, "uri", pointer, ctx.issues)
        info = BufferInfo(byte_length=byte_length, uri=uri)

        data: bytes | None = None
        if "uri" not in buffer:
            if ctx.is_glb and entry.index == 0:
                if ctx.glb_bin is None:
                    ctx.issues.record("BUFFER_MISSING_GLB_DATA", pointer)
                else:
                    data = ctx.glb_bin
                    info.storage = "glb"
            else:
                ctx.issues.record("UNDEFINED_PROPERTY", pointer, "uri")
        elif uri is not None:
            data, info.storage = _load_uri(ctx, uri, f"{pointer}/uri")

        if data is not None and byte_length is not None:
            if len(data) < byte_length:
                ctx.issues.record("BUFFER_BYTE_LENGTH_MISMATCH", pointer, len(data), byte_length)
                data = None
            elif info.storage == "glb" and len(data) - byte_length > 3:
                ctx.issues.record("BUFFER_GLB_CHUNK_TOO_BIG", pointer, len(data) - byte_length)

        if data is not None:
            info.data = data
            ctx.resources.append(
                {
                    "pointer": pointer,
                    "mimeType": "application/gltf-buffer",
                    "storage": info.storage,
                    "uri": uri if info.storage == "external" else None,
                    "byteLength": len(data),
                }
            )
        if byte_length is None:
            ctx.registry.invalidate(entry.kind, entry.index)
        entry.info = info


def _get_byte_stride(ctx: ValidationContext, view: dict, pointer: str) -> int | None:
    stride = get_int(view, "byteStride", pointer, ctx.issues)
    if stride is None:
        return None
    stride_pointer = f"{pointer}/byteStride"
    if not BYTE_STRIDE_MIN <= stride <= BYTE_STRIDE_MAX:
        ctx.issues.record("VALUE_NOT_IN_RANGE", stride_pointer, stride)
        return None
    if stride % BYTE_STRIDE_MULTIPLE:
        ctx.issues.record("VALUE_MULTIPLE_OF", stride_pointer, stride, BYTE_STRIDE_MULTIPLE)
        return None
    return stride


def validate_buffer_views(ctx: ValidationContext) -> None:
    for entry in ctx.registry.entries("bufferViews"):
        if not entry.valid:
            continue
        view = entry.value
        pointer = entry.pointer
        check_unexpected(view, BUFFER_VIEW_PROPERTIES, pointer, ctx.issues)

        buffer_entry = ctx.registry.resolve_property(view, "buffer", "buffers", pointer, required=True)
        byte_offset = get_int(view, "byteOffset", pointer, ctx.issues, minimum=0, default=0)
        byte_length = get_int(view, "byteLength", pointer, ctx.issues, required=True, minimum=1)
        byte_stride = _get_byte_stride(ctx, view, pointer)
        target = get_int(view, "target", pointer, ctx.issues)
        if target is not None and target not in BUFFER_VIEW_TARGETS:
            ctx.issues.record("VALUE_NOT_IN_LIST", f"{pointer}/target", target, format_list(BUFFER_VIEW_TARGETS))
            target = None

        if byte_stride is not None:
            if byte_length is not None and byte_stride > byte_length:
                ctx.issues.record("BUFFER_VIEW_TOO_BIG_BYTE_STRIDE", f"{pointer}/byteStride", byte_stride, byte_length)
            if target == TARGET_ELEMENT_ARRAY_BUFFER:
                ctx.issues.record("BUFFER_VIEW_INVALID_BYTE_STRIDE", f"{pointer}/byteStride")

        info = BufferViewInfo(
            buffer=buffer_entry.index if buffer_entry is not None else None,
            byte_offset=byte_offset,
            byte_length=byte_length,
            byte_stride=byte_stride,
            target=target,
        )

        buffer_info: BufferInfo | None = buffer_entry.info if buffer_entry is not None else None
        if (
            buffer_info is not None
            and buffer_info.byte_length is not None
            and byte_offset is not None
            and byte_length is not None
            and byte_offset + byte_length > buffer_info.byte_length
        ):
            ctx.issues.record("BUFFER_VIEW_TOO_LONG", pointer, buffer_entry.index, buffer_info.byte_length)
            info.fits = False

        if buffer_entry is None or byte_length is None or byte_offset is None:
            ctx.registry.invalidate(entry.kind, entry.index)
        entry.info = info


def effective_byte_range(entry: Entry | None) -> tuple[int, int] | None:
    """``(start, end)`` of a buffer view inside its buffer, or None when the view is unusable."""
    if entry is None or not entry.valid or entry.info is None:
        return None
    info: BufferViewInfo = entry.info
    if not info.fits or info.byte_offset is None or info.byte_length is None:
        return None
    return info.byte_offset, info.byte_offset + info.byte_length


def view_bytes(ctx: ValidationContext, entry: Entry | None) -> bytes | None:
    byte_range = effective_byte_range(entry)
    if byte_range is None:
        return None
    buffer_entry = ctx.registry.lookup("buffers", entry.info.buffer)
    if buffer_entry is None or buffer_entry.info is None or buffer_entry.info.data is None:
        return None
    start, end = byte_range
    return buffer_entry.info.data[start:end]
