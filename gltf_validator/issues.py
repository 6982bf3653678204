from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Iterable, Mapping


log = logging.getLogger(__name__)


class Severity(IntEnum):
    ERROR = 0
    WARNING = 1
    INFO = 2


E = Severity.ERROR
W = Severity.WARNING
I = Severity.INFO

# code -> (default severity, message template); templates use str.format positional fields.
ISSUE_CATALOG: dict[str, tuple[Severity, str]] = {
    # Document structure
    "INVALID_JSON": (E, "Invalid JSON data. Parser output: {0}"),
    "TYPE_MISMATCH": (E, "Type mismatch. Property value {0} is not a '{1}'."),
    "ARRAY_TYPE_MISMATCH": (E, "Type mismatch. Array element {0} is not a '{1}'."),
    "UNDEFINED_PROPERTY": (E, "Property '{0}' must be defined."),
    "UNEXPECTED_PROPERTY": (W, "Unexpected property."),
    "EMPTY_ENTITY": (E, "Entity cannot be empty."),
    "DUPLICATE_ELEMENTS": (E, "Duplicate element."),
    "INVALID_ARRAY_LENGTH": (E, "Invalid array length {0}. Valid lengths are: ({1})."),
    "VALUE_NOT_IN_RANGE": (E, "Value {0} is out of range."),
    "VALUE_NOT_IN_LIST": (E, "Invalid value {0}. Valid values are ({1})."),
    "VALUE_MULTIPLE_OF": (E, "Value {0} is not a multiple of {1}."),
    "PATTERN_MISMATCH": (E, "Value {0} does not match regexp pattern '{1}'."),
    "UNRESOLVED_REFERENCE": (E, "Unresolved reference: {0}."),
    "UNSATISFIED_DEPENDENCY": (E, "Dependency failed. '{0}' must be defined."),
    "MUTUALLY_EXCLUSIVE_PROPERTIES": (E, "Properties '{0}' and '{1}' are mutually exclusive."),
    "ONE_OF_MISMATCH": (E, "Exactly one of ({0}) properties must be defined."),
    "INVALID_URI": (E, "Invalid URI {0}. Parser output: {1}"),
    "UNSUPPORTED_MIME_TYPE": (W, "Unsupported MIME type {0}."),
    "NON_RELATIVE_URI": (W, "Non-relative URI found: {0}."),
    "IO_ERROR": (E, "Resource not found ({0})."),
    "UNKNOWN_ASSET_MAJOR_VERSION": (E, "Unknown glTF major asset version: {0}."),
    "UNKNOWN_ASSET_MINOR_VERSION": (W, "Unknown glTF minor asset version: {0}."),
    "ASSET_MIN_VERSION_GREATER_THAN_VERSION": (W, "Asset minVersion '{0}' is greater than version '{1}'."),
    # GLB container
    "GLB_UNEXPECTED_END_OF_HEADER": (E, "Unexpected end of header."),
    "GLB_INVALID_MAGIC": (E, "Invalid GLB magic value ({0})."),
    "GLB_INVALID_VERSION": (E, "Invalid GLB version value {0}."),
    "GLB_LENGTH_TOO_SMALL": (E, "Declared GLB length ({0}) is too small."),
    "GLB_LENGTH_MISMATCH": (E, "Declared length ({0}) does not match GLB length ({1})."),
    "GLB_LENGTH_UNALIGNED": (E, "Length of GLB stream ({0}) is not aligned to 4-byte boundaries."),
    "GLB_EXTRA_DATA": (W, "Extra data after the end of GLB stream."),
    "GLB_UNEXPECTED_END_OF_CHUNK_HEADER": (E, "Unexpected end of chunk header."),
    "GLB_UNEXPECTED_END_OF_CHUNK_DATA": (E, "Unexpected end of chunk data."),
    "GLB_CHUNK_LENGTH_UNALIGNED": (E, "Length of 0x{0:08x} chunk is not aligned to 4-byte boundaries."),
    "GLB_CHUNK_TOO_BIG": (E, "Chunk (0x{0:08x}) length ({1}) does not fit total GLB length."),
    "GLB_EMPTY_CHUNK": (E, "Chunk (0x{0:08x}) cannot have zero length."),
    "GLB_EMPTY_BIN_CHUNK": (I, "Empty BIN chunk should be omitted."),
    "GLB_DUPLICATE_CHUNK": (E, "Chunk of type 0x{0:08x} has already been used."),
    "GLB_UNEXPECTED_FIRST_CHUNK": (E, "First chunk must be of JSON type. Found 0x{0:08x} instead."),
    "GLB_UNEXPECTED_BIN_CHUNK": (E, "BIN chunk must be the second chunk."),
    "GLB_UNKNOWN_CHUNK_TYPE": (W, "Unknown GLB chunk type: 0x{0:08x}."),
    # Buffers and buffer views
    "BUFFER_MISSING_GLB_DATA": (E, "Buffer refers to an unresolved GLB binary chunk."),
    "BUFFER_BYTE_LENGTH_MISMATCH": (E, "Actual data byte length ({0}) is less than the declared buffer byte length ({1})."),
    "BUFFER_GLB_CHUNK_TOO_BIG": (W, "GLB-stored BIN chunk contains {0} extra padding byte(s)."),
    "BUFFER_DATA_URI_MIME_TYPE_INVALID": (
        E,
        "Buffer's Data URI MIME-Type must be 'application/octet-stream' or 'application/gltf-buffer'. Found {0} instead.",
    ),
    "URI_GLB": (I, "URI is used in GLB container."),
    "DATA_URI_GLB": (I, "Data URI is used in GLB container."),
    "BUFFER_VIEW_TOO_LONG": (E, "BufferView does not fit buffer ({0}) byteLength ({1})."),
    "BUFFER_VIEW_TOO_BIG_BYTE_STRIDE": (E, "Buffer view's byteStride ({0}) is greater than byteLength ({1})."),
    "BUFFER_VIEW_INVALID_BYTE_STRIDE": (E, "Only buffer views with raw vertex data can have byteStride."),
    # Accessors
    "INVALID_COMPONENT_TYPE": (E, "Invalid value {0}. Valid values are ({1})."),
    "INVALID_TYPE": (E, "Invalid value {0}. Valid values are ({1})."),
    "ACCESSOR_NORMALIZED_INVALID": (E, "Only (u)byte and (u)short accessors can be normalized."),
    "ACCESSOR_OFFSET_ALIGNMENT": (E, "Offset {0} is not a multiple of componentType length {1}."),
    "ACCESSOR_TOTAL_OFFSET_ALIGNMENT": (E, "Accessor's total byteOffset {0} isn't a multiple of componentType length {1}."),
    "ACCESSOR_SMALL_BYTESTRIDE": (E, "Referenced bufferView's byteStride value {0} is less than accessor element's length {1}."),
    "ACCESSOR_TOO_LONG": (E, "Accessor (offset: {0}, length: {1}) does not fit referenced bufferView [{2}] length {3}."),
    "ACCESSOR_SPARSE_COUNT_OUT_OF_RANGE": (E, "Sparse accessor overrides more elements ({0}) than the base accessor contains ({1})."),
    "ACCESSOR_SPARSE_INDICES_NON_INCREASING": (
        E,
        "Accessor sparse indices element at index {0} is less than or equal to previous: {1} <= {2}.",
    ),
    "ACCESSOR_SPARSE_INDEX_OOB": (
        E,
        "Accessor sparse indices element at index {0} is greater than or equal to the number of accessor elements: {1} >= {2}.",
    ),
    "ACCESSOR_INVALID_FLOAT": (E, "Accessor element at index {0} is NaN or Infinity."),
    "ACCESSOR_MIN_MISMATCH": (W, "Declared minimum value for this component ({0}) does not match actual minimum ({1})."),
    "ACCESSOR_MAX_MISMATCH": (W, "Declared maximum value for this component ({0}) does not match actual maximum ({1})."),
    "ACCESSOR_ELEMENT_OUT_OF_MIN_BOUND": (E, "Accessor contains {0} element(s) less than declared minimum value {1}."),
    "ACCESSOR_ELEMENT_OUT_OF_MAX_BOUND": (E, "Accessor contains {0} element(s) greater than declared maximum value {1}."),
    "ACCESSOR_ANIMATION_INPUT_NEGATIVE": (E, "Animation input accessor element at index {0} is negative: {1}."),
    "ACCESSOR_ANIMATION_INPUT_NON_INCREASING": (
        E,
        "Animation input accessor element at index {0} is less than or equal to previous: {1} <= {2}.",
    ),
    "ACCESSOR_ANIMATION_SAMPLER_OUTPUT_NON_NORMALIZED_QUATERNION": (
        W,
        "Animation sampler output accessor element at index {0} is not of unit length: {1}.",
    ),
    # Animations
    "ANIMATION_SAMPLER_INPUT_ACCESSOR_INVALID_FORMAT": (
        E,
        "Invalid Animation sampler input accessor format {0}. Must be one of ('{{SCALAR, FLOAT}}').",
    ),
    "ANIMATION_SAMPLER_INPUT_ACCESSOR_WITHOUT_BOUNDS": (
        E,
        "accessor.min and accessor.max must be defined for animation input accessor.",
    ),
    "ANIMATION_SAMPLER_INPUT_ACCESSOR_TOO_FEW_ELEMENTS": (
        E,
        "Invalid Animation sampler input accessor. Animation sampler with {0} interpolation must have at least {1} elements. Got {2}.",
    ),
    "ANIMATION_SAMPLER_ACCESSOR_WITH_BYTESTRIDE": (
        E,
        "bufferView.byteStride must not be defined for buffer views used by animation sampler accessors.",
    ),
    "ANIMATION_SAMPLER_OUTPUT_ACCESSOR_INVALID_FORMAT": (
        E,
        "Invalid animation sampler output accessor format {0} for path '{1}'. Must be one of ({2}).",
    ),
    "ANIMATION_SAMPLER_OUTPUT_ACCESSOR_INVALID_COUNT": (
        E,
        "Animation sampler output accessor of count {0} expected. Found {1}.",
    ),
    "ANIMATION_CHANNEL_TARGET_NODE_MATRIX": (
        E,
        "Animation channel cannot target TRS properties of a node with defined matrix.",
    ),
    "ANIMATION_CHANNEL_TARGET_NODE_WEIGHTS_NO_MORPHS": (
        E,
        "Animation channel cannot target WEIGHTS when mesh does not have morph targets.",
    ),
    "ANIMATION_DUPLICATE_TARGETS": (E, "Animation channel has the same target as channel {0}."),
    # Meshes and nodes
    "MESH_PRIMITIVES_UNEQUAL_TARGETS_COUNT": (E, "All primitives must have the same number of morph targets."),
    "MESH_INVALID_WEIGHTS_COUNT": (
        E,
        "The length of weights array ({0}) does not match the number of morph targets ({1}).",
    ),
    "MESH_PRIMITIVE_INDICES_ACCESSOR_INVALID_FORMAT": (
        E,
        "Invalid indices accessor format {0}. Must be one of ('{{SCALAR, UNSIGNED_BYTE}}', '{{SCALAR, UNSIGNED_SHORT}}', '{{SCALAR, UNSIGNED_INT}}').",
    ),
    "MESH_PRIMITIVE_INDICES_ACCESSOR_WITH_BYTESTRIDE": (E, "bufferView.byteStride must not be defined for indices accessor."),
    "MESH_PRIMITIVE_ATTRIBUTES_ACCESSOR_INVALID_FORMAT": (
        E,
        "Invalid accessor format {0} for this attribute semantic. Must be one of ({1}).",
    ),
    "MESH_PRIMITIVE_POSITION_ACCESSOR_WITHOUT_BOUNDS": (
        E,
        "accessor.min and accessor.max must be defined for POSITION attribute accessor.",
    ),
    "MESH_PRIMITIVE_UNEQUAL_ACCESSOR_COUNT": (E, "All accessors of the same primitive must have the same count."),
    "ACCESSOR_INDEX_OOB": (
        E,
        "Indices accessor element at index {0} has value {1} that is greater than the maximum vertex index available ({2}).",
    ),
    "BUFFER_VIEW_TARGET_OVERRIDE": (
        E,
        "Override of previously set bufferView target or usage. Initial: '{0}', new: '{1}'.",
    ),
    "NODE_MATRIX_NON_TRS": (E, "Matrix must be decomposable to TRS."),
    "NODE_WEIGHTS_INVALID": (
        E,
        "The length of weights array ({0}) does not match the number of morph targets ({1}).",
    ),
    "ROTATION_NON_UNIT": (W, "Rotation quaternion must be normalized."),
    "NODE_LOOP": (E, "Node is a part of a node loop."),
    "NODE_PARENT_OVERRIDE": (E, "Value overrides parent of node {0}."),
    "SCENE_NON_ROOT_NODE": (E, "Node {0} is not a root node."),
    "SKIN_IBM_INVALID_FORMAT": (E, "Invalid IBM accessor format {0}. Must be one of ('{{MAT4, FLOAT}}')."),
    "INVALID_IBM_ACCESSOR_COUNT": (E, "IBM accessor must have at least {0} elements. Found {1}."),
    "SKIN_IBM_ACCESSOR_WITH_BYTESTRIDE": (
        E,
        "bufferView.byteStride must not be defined for buffer views used by inverse bind matrices accessors.",
    ),
    "SKIN_SKELETON_INVALID": (E, "Joint {0} is not a descendant of skeleton node {1}."),
    "SKIN_NO_COMMON_ROOT": (E, "Joints do not have a common root."),
    "CAMERA_ZFAR_LEQUAL_ZNEAR": (E, "zfar must be greater than znear."),
    # Extensions and usage
    "UNDECLARED_EXTENSION": (E, "Extension is not declared in extensionsUsed."),
    "UNUSED_EXTENSION_REQUIRED": (E, "Unused extension {0} cannot be required."),
    "UNUSED_EXTENSION": (I, "Extension {0} is declared in extensionsUsed but never used."),
    "UNUSED_OBJECT": (W, "This object may be unused."),
}

del E, W, I


def format_value(value: Any) -> str:
    """Render a JSON value the way messages quote it: strings quoted, containers as compact JSON."""
    if isinstance(value, bool) or value is None or isinstance(value, (str, list, dict)):
        try:
            return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError):
            return repr(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return repr(value)
        if value.is_integer():
            return str(int(value)) if abs(value) < 1e16 else repr(value)
    return str(value)


def format_list(values: Iterable[Any]) -> str:
    return ", ".join(format_value(v) for v in values)


@dataclass(frozen=True)
class Issue:
    code: str
    severity: Severity
    message: str
    pointer: str | None = None
    offset: int | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "severity": int(self.severity),
        }
        if self.offset is not None:
            out["offset"] = self.offset
        else:
            out["pointer"] = self.pointer
        return out


class IssueCollector:
    """Ordered, append-only sink shared by every validation stage.

    Ignored codes are dropped before they are counted. Once ``max_issues``
    accepted issues are held, later ones are dropped and ``truncated`` is set;
    callers may poll ``is_full`` to stop early.
    """

    def __init__(
        self,
        *,
        max_issues: int = 0,
        ignored_issues: Iterable[str] = (),
        severity_overrides: Mapping[str, Severity] | None = None,
    ) -> None:
        self.max_issues = max_issues
        self.ignored_issues = frozenset(ignored_issues)
        self.severity_overrides = dict(severity_overrides or {})
        self.messages: list[Issue] = []
        self.truncated = False
        self.num_errors = 0
        self.num_warnings = 0
        self.num_infos = 0

    @property
    def is_full(self) -> bool:
        return self.max_issues > 0 and len(self.messages) >= self.max_issues

    def record(
        self,
        code: str,
        pointer: str,
        *args: Any,
        severity: Severity | None = None,
        offset: int | None = None,
    ) -> Issue | None:
        if code in self.ignored_issues:
            return None
        if self.is_full:
            self.truncated = True
            return None

        default_severity, template = ISSUE_CATALOG.get(code, (Severity.ERROR, ""))
        if severity is None:
            severity = default_severity
        severity = self.severity_overrides.get(code, severity)
        message = template.format(*args) if template else f"{code}: {format_list(args)}"

        if offset is not None:
            issue = Issue(code, severity, message, offset=offset)
        else:
            issue = Issue(code, severity, message, pointer=pointer or "/")
        self.messages.append(issue)

        if severity == Severity.ERROR:
            self.num_errors += 1
        elif severity == Severity.WARNING:
            self.num_warnings += 1
        else:
            self.num_infos += 1
        log.debug("%s %s at %s", severity.name, code, issue.pointer if offset is None else offset)
        return issue

    def record_at(self, code: str, offset: int, *args: Any, severity: Severity | None = None) -> Issue | None:
        return self.record(code, "", *args, severity=severity, offset=offset)

    def codes(self) -> list[str]:
        return [issue.code for issue in self.messages]

    def to_dict(self) -> dict[str, Any]:
        return {
            "numErrors": self.num_errors,
            "numWarnings": self.num_warnings,
            "numInfos": self.num_infos,
            "messages": [issue.to_dict() for issue in self.messages],
            "truncated": self.truncated,
        }
