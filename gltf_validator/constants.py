from __future__ import annotations


GLB_MAGIC = b"glTF"
GLB_VERSION_SUPPORTED = 2
GLB_HEADER_LENGTH = 12
GLB_CHUNK_HEADER_LENGTH = 8

CHUNK_TYPE_JSON = 0x4E4F534A  # b"JSON"
CHUNK_TYPE_BIN = 0x004E4942  # b"BIN\0"

MIME_TYPE_GLTF = "model/gltf+json"
MIME_TYPE_GLB = "model/gltf-binary"

BUFFER_MIME_TYPES = ("application/octet-stream", "application/gltf-buffer")
IMAGE_MIME_TYPES = ("image/jpeg", "image/png")

TARGET_ARRAY_BUFFER = 34962
TARGET_ELEMENT_ARRAY_BUFFER = 34963
BUFFER_VIEW_TARGETS = (TARGET_ARRAY_BUFFER, TARGET_ELEMENT_ARRAY_BUFFER)

BYTE_STRIDE_MIN = 4
BYTE_STRIDE_MAX = 252
BYTE_STRIDE_MULTIPLE = 4

COMPONENT_TYPE_INT8 = 5120
COMPONENT_TYPE_UINT8 = 5121
COMPONENT_TYPE_INT16 = 5122
COMPONENT_TYPE_UINT16 = 5123
COMPONENT_TYPE_UINT32 = 5125
COMPONENT_TYPE_FLOAT32 = 5126

COMPONENT_TYPE_BYTE_SIZE: dict[int, int] = {
    COMPONENT_TYPE_INT8: 1,
    COMPONENT_TYPE_UINT8: 1,
    COMPONENT_TYPE_INT16: 2,
    COMPONENT_TYPE_UINT16: 2,
    COMPONENT_TYPE_UINT32: 4,
    COMPONENT_TYPE_FLOAT32: 4,
}

COMPONENT_TYPE_NAMES: dict[int, str] = {
    COMPONENT_TYPE_INT8: "BYTE",
    COMPONENT_TYPE_UINT8: "UNSIGNED_BYTE",
    COMPONENT_TYPE_INT16: "SHORT",
    COMPONENT_TYPE_UINT16: "UNSIGNED_SHORT",
    COMPONENT_TYPE_UINT32: "UNSIGNED_INT",
    COMPONENT_TYPE_FLOAT32: "FLOAT",
}

COMPONENT_TYPE_STRUCT_FORMAT: dict[int, str] = {
    COMPONENT_TYPE_INT8: "b",
    COMPONENT_TYPE_UINT8: "B",
    COMPONENT_TYPE_INT16: "h",
    COMPONENT_TYPE_UINT16: "H",
    COMPONENT_TYPE_UINT32: "I",
    COMPONENT_TYPE_FLOAT32: "f",
}

INDEX_COMPONENT_TYPES: dict[int, tuple[str, int]] = {
    COMPONENT_TYPE_UINT8: ("B", 1),
    COMPONENT_TYPE_UINT16: ("H", 2),
    COMPONENT_TYPE_UINT32: ("I", 4),
}

NORMALIZABLE_COMPONENT_TYPES = (
    COMPONENT_TYPE_INT8,
    COMPONENT_TYPE_UINT8,
    COMPONENT_TYPE_INT16,
    COMPONENT_TYPE_UINT16,
)

TYPE_COMPONENT_COUNT: dict[str, int] = {
    "SCALAR": 1,
    "VEC2": 2,
    "VEC3": 3,
    "VEC4": 4,
    "MAT2": 4,
    "MAT3": 9,
    "MAT4": 16,
}

MATRIX_DIMENSION: dict[str, int] = {
    "MAT2": 2,
    "MAT3": 3,
    "MAT4": 4,
}

TRIANGLES_MODE = 4
TRIANGLE_STRIP_MODE = 5
TRIANGLE_FAN_MODE = 6
PRIMITIVE_MODES = range(0, 7)

INTERPOLATION_LINEAR = "LINEAR"
INTERPOLATION_STEP = "STEP"
INTERPOLATION_CUBICSPLINE = "CUBICSPLINE"
INTERPOLATIONS = (INTERPOLATION_LINEAR, INTERPOLATION_STEP, INTERPOLATION_CUBICSPLINE)

ANIMATION_PATHS = ("translation", "rotation", "scale", "weights")

SAMPLER_MAG_FILTERS = (9728, 9729)
SAMPLER_MIN_FILTERS = (9728, 9729, 9984, 9985, 9986, 9987)
SAMPLER_WRAP_MODES = (33071, 33648, 10497)

CAMERA_TYPES = ("perspective", "orthographic")

# Allowed deviation of a quaternion's length from 1.0.
UNIT_LENGTH_THRESHOLD = 0.00465

ARRAY_KINDS = (
    "accessors",
    "animations",
    "buffers",
    "bufferViews",
    "cameras",
    "images",
    "materials",
    "meshes",
    "nodes",
    "samplers",
    "scenes",
    "skins",
    "textures",
)

ROOT_PROPERTIES = frozenset(
    ARRAY_KINDS
    + (
        "asset",
        "scene",
        "extensionsUsed",
        "extensionsRequired",
        "extensions",
        "extras",
    )
)
