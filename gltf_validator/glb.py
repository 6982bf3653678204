from __future__ import annotations

import json
import logging
import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .constants import (
    CHUNK_TYPE_BIN,
    CHUNK_TYPE_JSON,
    GLB_CHUNK_HEADER_LENGTH,
    GLB_HEADER_LENGTH,
    GLB_MAGIC,
    GLB_VERSION_SUPPORTED,
)
from .issues import IssueCollector


log = logging.getLogger(__name__)


class GlbState(Enum):
    HEADER = "header"
    JSON_CHUNK = "json_chunk"
    BIN_CHUNK = "bin_chunk"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class GlbChunk:
    chunk_type: int
    offset: int
    length: int


@dataclass
class GlbContainer:
    version: int | None = None
    length: int | None = None
    json_bytes: bytes | None = None
    bin_bytes: bytes | None = None
    chunks: list[GlbChunk] = field(default_factory=list)
    state: GlbState = GlbState.HEADER


def _align4(value: int) -> int:
    return (value + 3) & ~3


def _parse_header(data: bytes, container: GlbContainer, issues: IssueCollector) -> int | None:
    """Validates the 12-byte header and returns the end of the readable GLB stream."""
    if len(data) < GLB_HEADER_LENGTH:
        issues.record_at("GLB_UNEXPECTED_END_OF_HEADER", len(data))
        return None

    magic, version, declared_length = struct.unpack_from("<4sII", data, 0)
    if magic != GLB_MAGIC:
        issues.record_at("GLB_INVALID_MAGIC", 0, f"0x{int.from_bytes(magic, 'little'):08x}")
        return None

    container.version = version
    container.length = declared_length
    if version != GLB_VERSION_SUPPORTED:
        issues.record_at("GLB_INVALID_VERSION", 4, version)

    end = len(data)
    if declared_length < GLB_HEADER_LENGTH + GLB_CHUNK_HEADER_LENGTH:
        issues.record_at("GLB_LENGTH_TOO_SMALL", 8, declared_length)
    elif declared_length > len(data):
        issues.record_at("GLB_LENGTH_MISMATCH", len(data), declared_length, len(data))
    elif declared_length < len(data):
        issues.record_at("GLB_EXTRA_DATA", declared_length)
        end = declared_length
    if declared_length % 4:
        issues.record_at("GLB_LENGTH_UNALIGNED", 8, declared_length)
    return end


def parse_glb(data: bytes, issues: IssueCollector) -> GlbContainer:
    """Splits a GLB stream into its JSON and BIN payloads.

    Every structural problem is recorded on ``issues``; nothing is raised. When
    the header is unreadable or the first chunk is not JSON, ``json_bytes`` stays
    ``None`` and the caller has no document to validate.
    """
    container = GlbContainer()
    end = _parse_header(data, container, issues)
    if end is None:
        container.state = GlbState.ERROR
        return container

    container.state = GlbState.JSON_CHUNK
    seen: set[int] = set()
    offset = GLB_HEADER_LENGTH
    if offset >= end:
        issues.record_at("GLB_UNEXPECTED_END_OF_CHUNK_HEADER", offset)
        container.state = GlbState.ERROR
        return container

    while offset < end:
        if end - offset < GLB_CHUNK_HEADER_LENGTH:
            issues.record_at("GLB_UNEXPECTED_END_OF_CHUNK_HEADER", offset)
            container.state = GlbState.ERROR
            break

        chunk_length, chunk_type = struct.unpack_from("<II", data, offset)
        chunk_offset = offset
        data_start = offset + GLB_CHUNK_HEADER_LENGTH
        available = end - data_start
        truncated = chunk_length > available
        payload = data[data_start : data_start + min(chunk_length, available)]
        index = len(container.chunks)
        container.chunks.append(GlbChunk(chunk_type, chunk_offset, chunk_length))
        log.debug("GLB chunk 0x%08x at %d, length %d", chunk_type, chunk_offset, chunk_length)

        if chunk_length % 4:
            issues.record_at("GLB_CHUNK_LENGTH_UNALIGNED", chunk_offset, chunk_type)

        if index == 0 and chunk_type != CHUNK_TYPE_JSON:
            issues.record_at("GLB_UNEXPECTED_FIRST_CHUNK", chunk_offset, chunk_type)
            container.state = GlbState.ERROR

        if chunk_type in (CHUNK_TYPE_JSON, CHUNK_TYPE_BIN) and chunk_type in seen:
            issues.record_at("GLB_DUPLICATE_CHUNK", chunk_offset, chunk_type)
        elif chunk_type == CHUNK_TYPE_JSON:
            seen.add(chunk_type)
            if index == 0:
                if chunk_length == 0:
                    issues.record_at("GLB_EMPTY_CHUNK", chunk_offset, chunk_type)
                container.json_bytes = payload
                container.state = GlbState.BIN_CHUNK
        elif chunk_type == CHUNK_TYPE_BIN:
            seen.add(chunk_type)
            if index != 1:
                issues.record_at("GLB_UNEXPECTED_BIN_CHUNK", chunk_offset)
            else:
                if chunk_length == 0:
                    issues.record_at("GLB_EMPTY_BIN_CHUNK", chunk_offset)
                container.bin_bytes = payload
                if container.state is not GlbState.ERROR:
                    container.state = GlbState.DONE
        else:
            issues.record_at("GLB_UNKNOWN_CHUNK_TYPE", chunk_offset, chunk_type)

        if truncated:
            issues.record_at("GLB_UNEXPECTED_END_OF_CHUNK_DATA", end)
            container.state = GlbState.ERROR
            break
        offset = data_start + _align4(chunk_length)

    if container.state is not GlbState.ERROR:
        container.state = GlbState.DONE
    return container


def encode_glb(gltf: dict[str, Any] | bytes, bin_chunk: bytes | None = None) -> bytes:
    """Builds a GLB stream: JSON chunk padded with spaces, optional BIN chunk padded with zeros."""
    if isinstance(gltf, dict):
        json_bytes = json.dumps(gltf, ensure_ascii=True, separators=(",", ":")).encode("utf-8")
    else:
        json_bytes = bytes(gltf)
    json_padding = (4 - len(json_bytes) % 4) % 4
    if json_padding:
        json_bytes += b" " * json_padding

    chunks = struct.pack("<II", len(json_bytes), CHUNK_TYPE_JSON) + json_bytes
    if bin_chunk is not None:
        bin_padding = (4 - len(bin_chunk) % 4) % 4
        if bin_padding:
            bin_chunk += b"\x00" * bin_padding
        chunks += struct.pack("<II", len(bin_chunk), CHUNK_TYPE_BIN) + bin_chunk

    header = struct.pack("<4sII", GLB_MAGIC, GLB_VERSION_SUPPORTED, GLB_HEADER_LENGTH + len(chunks))
    return header + chunks
