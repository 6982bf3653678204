import struct

import pytest

from gltf_validator import validate_document

from helpers import ASSET, buffer_entry, codes, pack_floats, pointers, triangle_document


def _indexed_document(indices, *, vertex_count=3):
    vertex_bytes = pack_floats(*([0.0] * 3 * vertex_count))
    index_bytes = struct.pack(f"<{len(indices)}H", *indices)
    return {
        "asset": ASSET,
        "buffers": [buffer_entry(vertex_bytes + index_bytes)],
        "bufferViews": [
            {"buffer": 0, "byteLength": len(vertex_bytes), "target": 34962},
            {"buffer": 0, "byteOffset": len(vertex_bytes), "byteLength": len(index_bytes), "target": 34963},
        ],
        "accessors": [
            {
                "bufferView": 0,
                "componentType": 5126,
                "count": vertex_count,
                "type": "VEC3",
                "min": [0.0, 0.0, 0.0],
                "max": [0.0, 0.0, 0.0],
            },
            {"bufferView": 1, "componentType": 5123, "count": len(indices), "type": "SCALAR"},
        ],
        "meshes": [{"primitives": [{"attributes": {"POSITION": 0}, "indices": 1}]}],
        "nodes": [{"mesh": 0}],
        "scenes": [{"nodes": [0]}],
    }


def test_indexed_primitive():
    result = validate_document(_indexed_document([0, 1, 2]))
    assert result.issues.messages == []


def test_index_out_of_bounds():
    result = validate_document(_indexed_document([0, 1, 5, 2, 3, 1]))
    assert pointers(result, "ACCESSOR_INDEX_OOB") == ["/meshes/0/primitives/0/indices"] * 2
    assert result.issues.messages[0].message == (
        "Indices accessor element at index 2 has value 5 that is greater than the maximum vertex index available (2)."
    )


def test_indices_with_byte_stride():
    document = _indexed_document([0, 1, 2])
    del document["bufferViews"][1]["target"]
    document["bufferViews"][1]["byteStride"] = 4
    document["accessors"][1]["count"] = 1
    result = validate_document(document)
    assert codes(result) == ["MESH_PRIMITIVE_INDICES_ACCESSOR_WITH_BYTESTRIDE"]
    assert result.issues.messages[0].pointer == "/meshes/0/primitives/0/indices"


@pytest.mark.parametrize("declared_target", [True, False])
def test_buffer_view_target_override(declared_target):
    document = _indexed_document([0, 1, 2])
    if not declared_target:
        del document["bufferViews"][1]["target"]
    document["meshes"][0]["primitives"].append({"attributes": {"POSITION": 0, "_BATCHID": 1}})
    result = validate_document(document)
    assert codes(result) == ["BUFFER_VIEW_TARGET_OVERRIDE"]
    issue = result.issues.messages[0]
    assert issue.pointer == "/meshes/0/primitives/1/attributes/_BATCHID"
    assert issue.message == "Override of previously set bufferView target or usage. Initial: 'IndexBuffer', new: 'VertexBuffer'."


@pytest.mark.parametrize(
    ("semantic", "valid"),
    [
        ("NORMAL", True),
        ("COLOR_0", True),
        ("_CUSTOM", True),
        ("TANGENT", False),
        ("TEXCOORD_0", False),
        ("JOINTS_0", False),
        ("WEIGHTS_1", False),
    ],
)
def test_attribute_formats(semantic, valid):
    document, _ = triangle_document()
    document["meshes"][0]["primitives"][0]["attributes"][semantic] = 0
    result = validate_document(document)
    expected = [] if valid else [f"/meshes/0/primitives/0/attributes/{semantic}"]
    assert pointers(result, "MESH_PRIMITIVE_ATTRIBUTES_ACCESSOR_INVALID_FORMAT") == expected


def test_attribute_format_message():
    document, _ = triangle_document()
    document["meshes"][0]["primitives"][0]["attributes"]["TEXCOORD_0"] = 0
    result = validate_document(document)
    assert result.issues.messages[0].message == (
        "Invalid accessor format '{VEC3, FLOAT}' for this attribute semantic. Must be one of "
        "('{VEC2, FLOAT}', '{VEC2, UNSIGNED_BYTE normalized}', '{VEC2, UNSIGNED_SHORT normalized}')."
    )


def test_position_needs_bounds():
    document, _ = triangle_document()
    del document["accessors"][0]["min"]
    result = validate_document(document)
    assert codes(result) == ["MESH_PRIMITIVE_POSITION_ACCESSOR_WITHOUT_BOUNDS"]
    assert result.issues.messages[0].pointer == "/meshes/0/primitives/0/attributes/POSITION"


def test_unequal_attribute_counts():
    document, _ = triangle_document()
    document["accessors"].append(
        {"bufferView": 0, "componentType": 5126, "count": 2, "type": "VEC3", "min": [0.0, 0.0, 0.0], "max": [1.0, 0.0, 0.0]}
    )
    document["meshes"][0]["primitives"][0]["attributes"]["NORMAL"] = 1
    result = validate_document(document)
    assert codes(result) == ["MESH_PRIMITIVE_UNEQUAL_ACCESSOR_COUNT"]
    assert result.issues.messages[0].pointer == "/meshes/0/primitives/0/attributes/NORMAL"
