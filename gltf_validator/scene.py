from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from .constants import COMPONENT_TYPE_FLOAT32, UNIT_LENGTH_THRESHOLD
from .context import ValidationContext
from .issues import format_value
from .objects import mesh_morph_target_count
from .values import (
    check_unexpected,
    get_array,
    get_number_array,
    get_object,
    get_str,
    vector_length,
)


log = logging.getLogger(__name__)

ASSET_PROPERTIES = ("copyright", "generator", "version", "minVersion")
NODE_PROPERTIES = ("camera", "children", "skin", "matrix", "mesh", "rotation", "scale", "translation", "weights")
SKIN_PROPERTIES = ("inverseBindMatrices", "skeleton", "joints")
SCENE_PROPERTIES = ("nodes",)
TRS_PROPERTIES = ("translation", "rotation", "scale")

VERSION_PATTERN = r"^([0-9]+)\.([0-9]+)$"
_VERSION_RE = re.compile(VERSION_PATTERN)

# Column-major positions of the bottom row of a 4x4 matrix.
_AFFINE_ROW = ((3, 0.0), (7, 0.0), (11, 0.0), (15, 1.0))


@dataclass
class NodeInfo:
    children: list[int] = field(default_factory=list)
    has_matrix: bool = False
    mesh: int | None = None
    camera: int | None = None
    skin: int | None = None


@dataclass
class SkinInfo:
    joints: list[int] = field(default_factory=list)
    skeleton: int | None = None
    inverse_bind_matrices: int | None = None


def _parse_version(value: str) -> tuple[int, int] | None:
    match = _VERSION_RE.match(value)
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def validate_asset(ctx: ValidationContext) -> str:
    """Checks ``asset`` and returns its version string ("" when unusable)."""
    issues = ctx.issues
    asset = get_object(ctx.document, "asset", "", issues, required=True)
    if asset is None:
        return ""
    check_unexpected(asset, ASSET_PROPERTIES, "/asset", issues)
    get_str(asset, "generator", "/asset", issues)
    get_str(asset, "copyright", "/asset", issues)

    version = get_str(asset, "version", "/asset", issues, required=True)
    if version is None:
        return ""
    parsed = _parse_version(version)
    if parsed is None:
        issues.record("PATTERN_MISMATCH", "/asset/version", format_value(version), VERSION_PATTERN)
        return ""
    major, minor = parsed
    if major != 2:
        issues.record("UNKNOWN_ASSET_MAJOR_VERSION", "/asset/version", major)
    elif minor > 0:
        issues.record("UNKNOWN_ASSET_MINOR_VERSION", "/asset/version", minor)

    min_version = get_str(asset, "minVersion", "/asset", issues)
    if min_version is not None:
        parsed_min = _parse_version(min_version)
        if parsed_min is None:
            issues.record("PATTERN_MISMATCH", "/asset/minVersion", format_value(min_version), VERSION_PATTERN)
        elif parsed_min > parsed:
            issues.record("ASSET_MIN_VERSION_GREATER_THAN_VERSION", "/asset/minVersion", min_version, version)
    return version


def validate_nodes(ctx: ValidationContext) -> None:
    issues = ctx.issues
    registry = ctx.registry
    for entry in registry.entries("nodes"):
        if not entry.valid:
            continue
        node = entry.value
        pointer = entry.pointer
        check_unexpected(node, NODE_PROPERTIES, pointer, issues)
        info = NodeInfo()

        children = get_array(node, "children", pointer, issues, non_empty=True)
        for k, child in enumerate(children or []):
            child_entry = registry.resolve("nodes", child, f"{pointer}/children/{k}")
            if child_entry is not None:
                info.children.append(child_entry.index)

        if "matrix" in node:
            info.has_matrix = True
            for key in TRS_PROPERTIES:
                if key in node:
                    issues.record("MUTUALLY_EXCLUSIVE_PROPERTIES", f"{pointer}/matrix", "matrix", key)
            matrix = get_number_array(node, "matrix", pointer, issues, lengths=(16,))
            if matrix is not None and any(matrix[i] != expected for i, expected in _AFFINE_ROW):
                issues.record("NODE_MATRIX_NON_TRS", f"{pointer}/matrix")

        get_number_array(node, "translation", pointer, issues, lengths=(3,))
        get_number_array(node, "scale", pointer, issues, lengths=(3,))
        rotation = get_number_array(node, "rotation", pointer, issues, lengths=(4,))
        if rotation is not None and abs(vector_length(rotation) - 1.0) > UNIT_LENGTH_THRESHOLD:
            issues.record("ROTATION_NON_UNIT", f"{pointer}/rotation")

        mesh = registry.resolve_property(node, "mesh", "meshes", pointer)
        camera = registry.resolve_property(node, "camera", "cameras", pointer)
        skin = registry.resolve_property(node, "skin", "skins", pointer)
        info.mesh = mesh.index if mesh is not None else None
        info.camera = camera.index if camera is not None else None
        info.skin = skin.index if skin is not None else None
        if "skin" in node and "mesh" not in node:
            issues.record("UNSATISFIED_DEPENDENCY", f"{pointer}/skin", "mesh")

        weights = get_number_array(node, "weights", pointer, issues)
        if weights is not None:
            if "mesh" not in node:
                issues.record("UNSATISFIED_DEPENDENCY", f"{pointer}/weights", "mesh")
            elif mesh is not None and mesh.info is not None:
                morph_target_count = mesh_morph_target_count(mesh)
                if len(weights) != morph_target_count:
                    issues.record("NODE_WEIGHTS_INVALID", f"{pointer}/weights", len(weights), morph_target_count)
        entry.info = info


def validate_skins(ctx: ValidationContext) -> None:
    issues = ctx.issues
    registry = ctx.registry
    for entry in registry.entries("skins"):
        if not entry.valid:
            continue
        skin = entry.value
        pointer = entry.pointer
        check_unexpected(skin, SKIN_PROPERTIES, pointer, issues)
        info = SkinInfo()

        joints = get_array(skin, "joints", pointer, issues, required=True, non_empty=True)
        for k, joint in enumerate(joints or []):
            joint_entry = registry.resolve("nodes", joint, f"{pointer}/joints/{k}")
            if joint_entry is not None:
                info.joints.append(joint_entry.index)

        skeleton = registry.resolve_property(skin, "skeleton", "nodes", pointer)
        info.skeleton = skeleton.index if skeleton is not None else None

        ibm = registry.resolve_property(skin, "inverseBindMatrices", "accessors", pointer)
        if ibm is not None:
            info.inverse_bind_matrices = ibm.index
            ibm_pointer = f"{pointer}/inverseBindMatrices"
            accessor_info = ibm.info
            if ibm.valid and accessor_info is not None:
                if accessor_info.type != "MAT4" or accessor_info.component_type != COMPONENT_TYPE_FLOAT32:
                    issues.record("SKIN_IBM_INVALID_FORMAT", ibm_pointer, accessor_info.format)
                if joints and accessor_info.count < len(joints):
                    issues.record("INVALID_IBM_ACCESSOR_COUNT", ibm_pointer, len(joints), accessor_info.count)
                view = registry.lookup("bufferViews", accessor_info.buffer_view)
                if view is not None and view.info is not None and view.info.byte_stride is not None:
                    issues.record("SKIN_IBM_ACCESSOR_WITH_BYTESTRIDE", ibm_pointer)
        entry.info = info


def validate_scenes(ctx: ValidationContext) -> None:
    issues = ctx.issues
    registry = ctx.registry
    for entry in registry.entries("scenes"):
        if not entry.valid:
            continue
        scene = entry.value
        check_unexpected(scene, SCENE_PROPERTIES, entry.pointer, issues)
        nodes = get_array(scene, "nodes", entry.pointer, issues, non_empty=True)
        roots: list[int] = []
        for k, node in enumerate(nodes or []):
            node_entry = registry.resolve("nodes", node, f"{entry.pointer}/nodes/{k}")
            if node_entry is not None:
                roots.append(node_entry.index)
        entry.info = roots

    registry.resolve_property(ctx.document, "scene", "scenes", "")
