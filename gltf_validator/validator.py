from __future__ import annotations

import codecs
import dataclasses
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from . import __version__
from .accessors import check_accessor_data, validate_accessors
from .animations import validate_animations
from .buffers import validate_buffer_views, validate_buffers
from .constants import (
    GLB_MAGIC,
    MIME_TYPE_GLB,
    MIME_TYPE_GLTF,
    ROOT_PROPERTIES,
    TRIANGLE_FAN_MODE,
    TRIANGLE_STRIP_MODE,
    TRIANGLES_MODE,
)
from .context import ResourceLoader, ValidationContext
from .extensions import validate_extensions
from .glb import parse_glb
from .issues import IssueCollector, Severity, format_value
from .objects import validate_objects
from .registry import ReferenceResolver
from .scene import validate_asset, validate_nodes, validate_scenes, validate_skins
from .usage import UsageGraph, track_usage
from .values import check_unexpected


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationOptions:
    uri: str = ""
    max_issues: int = 0
    ignored_issues: tuple[str, ...] = ()
    severity_overrides: Mapping[str, Severity] = field(default_factory=dict)
    resource_loader: ResourceLoader | None = None


@dataclass
class ValidationResult:
    uri: str
    mime_type: str
    issues: IssueCollector
    info: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "uri": self.uri,
            "mimeType": self.mime_type,
            "validatorVersion": __version__,
            "issues": self.issues.to_dict(),
            "info": self.info,
        }


def _empty_info() -> dict[str, Any]:
    return {
        "version": "",
        "generator": None,
        "resources": [],
        "animationCount": 0,
        "materialCount": 0,
        "hasMorphTargets": False,
        "hasSkins": False,
        "hasTextures": False,
        "hasDefaultScene": False,
        "drawCallCount": 0,
        "totalVertexCount": 0,
        "totalTriangleCount": 0,
        "maxUVs": 0,
        "maxInfluences": 0,
        "maxAttributes": 0,
    }


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Invalid number literal: {name}")


def decode_json(data: bytes, issues: IssueCollector) -> dict[str, Any] | None:
    if data.startswith(codecs.BOM_UTF8):
        issues.record("INVALID_JSON", "", "BOM found at the beginning of UTF-8 stream.")
        return None
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        issues.record("INVALID_JSON", "", exc)
        return None
    try:
        document = json.loads(text, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as exc:
        issues.record("INVALID_JSON", "", exc)
        return None
    if not isinstance(document, dict):
        issues.record("TYPE_MISMATCH", "", format_value(document), "object")
        return None
    return document


def _primitive_triangles(mode: int, count: int) -> int:
    if mode == TRIANGLES_MODE:
        return count // 3
    if mode in (TRIANGLE_STRIP_MODE, TRIANGLE_FAN_MODE):
        return max(count - 2, 0)
    return 0


def _accessor_count(ctx: ValidationContext, index: int | None) -> int:
    entry = ctx.registry.lookup("accessors", index)
    if entry is None or entry.info is None or entry.info.count is None:
        return 0
    return entry.info.count


def _collect_info(ctx: ValidationContext, usage: UsageGraph, version: str) -> dict[str, Any]:
    registry = ctx.registry
    info = _empty_info()
    asset = ctx.document.get("asset")
    if isinstance(asset, dict) and isinstance(asset.get("generator"), str):
        info["generator"] = asset["generator"]
    info["version"] = version
    info["resources"] = ctx.resources
    info["animationCount"] = registry.length("animations")
    info["materialCount"] = registry.length("materials")
    info["hasSkins"] = registry.length("skins") > 0
    info["hasTextures"] = registry.length("textures") > 0
    info["hasDefaultScene"] = registry.lookup("scenes", ctx.document.get("scene")) is not None

    for mesh_entry in registry.entries("meshes"):
        mesh = mesh_entry.info
        if mesh is None:
            continue
        if mesh.morph_target_count:
            info["hasMorphTargets"] = True
        for primitive in mesh.primitives:
            attributes = primitive.attributes
            info["maxAttributes"] = max(info["maxAttributes"], len(attributes))
            info["maxUVs"] = max(info["maxUVs"], sum(1 for name in attributes if name.startswith("TEXCOORD_")))
            info["maxInfluences"] = max(
                info["maxInfluences"], 4 * sum(1 for name in attributes if name.startswith("JOINTS_"))
            )

    # Draw calls, vertices and triangles are counted per mesh instance in the scene graph.
    for node_index in sorted(usage.used["nodes"]):
        node_entry = registry.lookup("nodes", node_index)
        mesh_entry = registry.lookup("meshes", node_entry.info.mesh if node_entry.info else None)
        if mesh_entry is None or mesh_entry.info is None:
            continue
        for primitive in mesh_entry.info.primitives:
            info["drawCallCount"] += 1
            vertex_count = _accessor_count(ctx, primitive.attributes.get("POSITION"))
            info["totalVertexCount"] += vertex_count
            count = _accessor_count(ctx, primitive.indices) if primitive.indices is not None else vertex_count
            info["totalTriangleCount"] += _primitive_triangles(primitive.mode, count)
    return info


def _make_collector(options: ValidationOptions) -> IssueCollector:
    return IssueCollector(
        max_issues=options.max_issues,
        ignored_issues=options.ignored_issues,
        severity_overrides=options.severity_overrides,
    )


def _run(
    document: dict[str, Any],
    issues: IssueCollector,
    options: ValidationOptions,
    *,
    is_glb: bool = False,
    glb_bin: bytes | None = None,
) -> dict[str, Any]:
    registry = ReferenceResolver(document, issues)
    ctx = ValidationContext(
        document=document,
        issues=issues,
        registry=registry,
        is_glb=is_glb,
        glb_bin=glb_bin,
        resource_loader=options.resource_loader,
    )
    check_unexpected(document, ROOT_PROPERTIES, "", issues)
    version = validate_asset(ctx)
    validate_buffers(ctx)
    validate_buffer_views(ctx)
    validate_accessors(ctx)
    check_accessor_data(ctx)
    validate_objects(ctx)
    validate_nodes(ctx)
    validate_skins(ctx)
    validate_scenes(ctx)
    validate_animations(ctx)
    usage = track_usage(ctx)
    validate_extensions(ctx)
    return _collect_info(ctx, usage, version)


def _resolve_options(options: ValidationOptions | None, overrides: dict[str, Any]) -> ValidationOptions:
    options = options or ValidationOptions()
    if "ignored_issues" in overrides:
        overrides["ignored_issues"] = tuple(overrides["ignored_issues"])
    return dataclasses.replace(options, **overrides) if overrides else options


def validate_document(
    document: dict[str, Any],
    options: ValidationOptions | None = None,
    **overrides: Any,
) -> ValidationResult:
    """Validates an already-deserialized glTF JSON tree."""
    options = _resolve_options(options, overrides)
    issues = _make_collector(options)
    if not isinstance(document, dict):
        issues.record("TYPE_MISMATCH", "", format_value(document), "object")
        return ValidationResult(options.uri, MIME_TYPE_GLTF, issues, _empty_info())
    info = _run(document, issues, options)
    return ValidationResult(options.uri, MIME_TYPE_GLTF, issues, info)


def validate_bytes(
    data: bytes,
    options: ValidationOptions | None = None,
    **overrides: Any,
) -> ValidationResult:
    """Validates a glTF JSON document or GLB container given as raw bytes.

    Malformed input never raises: it yields a result whose issue list explains
    the problem, with empty ``info`` when no document could be produced.
    """
    options = _resolve_options(options, overrides)
    issues = _make_collector(options)
    data = bytes(data)

    if data[:4] == GLB_MAGIC:
        mime_type = MIME_TYPE_GLB
        container = parse_glb(data, issues)
        json_bytes = container.json_bytes
        glb_bin = container.bin_bytes
        is_glb = True
    else:
        mime_type = MIME_TYPE_GLTF
        json_bytes = data
        glb_bin = None
        is_glb = False

    document = decode_json(json_bytes, issues) if json_bytes is not None else None
    if document is None:
        log.info("%s: no document could be produced", options.uri or "<bytes>")
        return ValidationResult(options.uri, mime_type, issues, _empty_info())

    info = _run(document, issues, options, is_glb=is_glb, glb_bin=glb_bin)
    log.info(
        "%s: %d error(s), %d warning(s), %d info(s)",
        options.uri or "<bytes>",
        issues.num_errors,
        issues.num_warnings,
        issues.num_infos,
    )
    return ValidationResult(options.uri, mime_type, issues, info)
