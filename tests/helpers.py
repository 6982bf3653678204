from __future__ import annotations

import base64
import struct
from typing import Any

from gltf_validator.constants import CHUNK_TYPE_BIN, CHUNK_TYPE_JSON, GLB_MAGIC


ASSET = {"version": "2.0"}


def pack_floats(*values: float) -> bytes:
    return struct.pack(f"<{len(values)}f", *values)


def data_uri(data: bytes, mime_type: str = "application/octet-stream") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def buffer_entry(data: bytes) -> dict[str, Any]:
    return {"byteLength": len(data), "uri": data_uri(data)}


def codes(result: Any) -> list[str]:
    return result.issues.codes()


def pointers(result: Any, code: str) -> list[str | None]:
    return [issue.pointer for issue in result.issues.messages if issue.code == code]


def triangle_document() -> tuple[dict[str, Any], bytes]:
    """One triangle drawn by the default scene; every object is referenced."""
    data = pack_floats(0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0, 0.0)
    document = {
        "asset": dict(ASSET),
        "buffers": [buffer_entry(data)],
        "bufferViews": [{"buffer": 0, "byteLength": len(data), "target": 34962}],
        "accessors": [
            {
                "bufferView": 0,
                "componentType": 5126,
                "count": 3,
                "type": "VEC3",
                "min": [0.0, 0.0, 0.0],
                "max": [1.0, 1.0, 0.0],
            }
        ],
        "meshes": [{"primitives": [{"attributes": {"POSITION": 0}}]}],
        "nodes": [{"mesh": 0}],
        "scenes": [{"nodes": [0]}],
        "scene": 0,
    }
    return document, data


def animation_document(
    times: list[float],
    outputs: list[float],
    *,
    output_type: str,
    path: str,
    interpolation: str | None = None,
    node: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """A single-channel animation whose input and output accessors share one buffer."""
    components = {"SCALAR": 1, "VEC3": 3, "VEC4": 4}[output_type]
    input_bytes = pack_floats(*times)
    output_bytes = pack_floats(*outputs)
    data = input_bytes + output_bytes
    sampler: dict[str, Any] = {"input": 0, "output": 1}
    if interpolation is not None:
        sampler["interpolation"] = interpolation
    return {
        "asset": dict(ASSET),
        "buffers": [buffer_entry(data)],
        "bufferViews": [
            {"buffer": 0, "byteLength": len(input_bytes)},
            {"buffer": 0, "byteOffset": len(input_bytes), "byteLength": len(output_bytes)},
        ],
        "accessors": [
            {
                "bufferView": 0,
                "componentType": 5126,
                "count": len(times),
                "type": "SCALAR",
                "min": [min(times)],
                "max": [max(times)],
            },
            {"bufferView": 1, "componentType": 5126, "count": len(outputs) // components, "type": output_type},
        ],
        "nodes": [node if node is not None else {}],
        "scenes": [{"nodes": [0]}],
        "animations": [
            {
                "samplers": [sampler],
                "channels": [{"sampler": 0, "target": {"node": 0, "path": path}}],
            }
        ],
    }


def glb_from_chunks(chunks: list[tuple[int, bytes]], *, version: int = 2, pad: bool = True) -> bytes:
    """Packs raw chunks without any validation; ``pad`` aligns each payload while keeping its declared length."""
    body = b""
    for chunk_type, payload in chunks:
        body += struct.pack("<II", len(payload), chunk_type) + payload
        if pad:
            filler = b" " if chunk_type == CHUNK_TYPE_JSON else b"\x00"
            body += filler * ((4 - len(payload) % 4) % 4)
    return struct.pack("<4sII", GLB_MAGIC, version, 12 + len(body)) + body


JSON = CHUNK_TYPE_JSON
BIN = CHUNK_TYPE_BIN
