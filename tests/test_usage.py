from gltf_validator import validate_document

from helpers import ASSET, buffer_entry, codes, pointers, triangle_document


def test_self_loop():
    document = {"asset": ASSET, "nodes": [{"children": [0]}], "scenes": [{"nodes": [0]}]}
    result = validate_document(document)
    assert codes(result) == ["NODE_LOOP"]
    assert result.issues.messages[0].pointer == "/nodes/0/children/0"


def test_two_node_loop_reports_back_edge_once():
    document = {
        "asset": ASSET,
        "nodes": [{"children": [1]}, {"children": [0]}],
        "scenes": [{"nodes": [0]}],
    }
    result = validate_document(document)
    assert pointers(result, "NODE_LOOP") == ["/nodes/1/children/0"]


def test_loop_below_root():
    document = {
        "asset": ASSET,
        "nodes": [{"children": [1]}, {"children": [2]}, {"children": [1, 3]}, {}],
        "scenes": [{"nodes": [0]}],
    }
    result = validate_document(document)
    assert pointers(result, "NODE_LOOP") == ["/nodes/2/children/0"]
    # Node 3 is still reachable past the loop.
    assert "UNUSED_OBJECT" not in codes(result)


def test_parent_override():
    document = {
        "asset": ASSET,
        "nodes": [{"children": [2]}, {"children": [2]}, {}],
        "scenes": [{"nodes": [0, 1]}],
    }
    result = validate_document(document)
    assert codes(result) == ["NODE_PARENT_OVERRIDE"]
    assert result.issues.messages[0].pointer == "/nodes/1/children/0"


def test_scene_root_must_not_have_parent():
    document = {"asset": ASSET, "nodes": [{"children": [1]}, {}], "scenes": [{"nodes": [0, 1]}]}
    result = validate_document(document)
    assert pointers(result, "SCENE_NON_ROOT_NODE") == ["/scenes/0/nodes/1"]


def test_unused_buffer_chain():
    document, _ = triangle_document()
    document["buffers"].append(buffer_entry(b"\x00" * 4))
    document["bufferViews"].append({"buffer": 1, "byteLength": 4})
    result = validate_document(document)
    assert pointers(result, "UNUSED_OBJECT") == ["/buffers/1", "/bufferViews/1"]


def test_buffer_used_through_reachable_view():
    document, _ = triangle_document()
    # An orphan view on a used buffer does not make the buffer unused.
    document["bufferViews"].append({"buffer": 0, "byteLength": 4})
    result = validate_document(document)
    assert pointers(result, "UNUSED_OBJECT") == ["/bufferViews/1"]


def test_unreferenced_objects():
    document, _ = triangle_document()
    document["nodes"].append({"camera": 0})
    document["cameras"] = [{"type": "perspective", "perspective": {"yfov": 1.0, "znear": 0.1}}]
    document["materials"] = [{}]
    result = validate_document(document)
    assert pointers(result, "UNUSED_OBJECT") == ["/cameras/0", "/materials/0", "/nodes/1"]


def test_every_scene_is_a_root_set():
    document, _ = triangle_document()
    document["nodes"].append({})
    document["scenes"].append({"nodes": [1]})
    result = validate_document(document)
    assert "UNUSED_OBJECT" not in codes(result)


def test_material_textures_are_used():
    document, _ = triangle_document()
    document["meshes"][0]["primitives"][0]["material"] = 0
    document["materials"] = [
        {
            "pbrMetallicRoughness": {"baseColorTexture": {"index": 0}},
            "extensions": {"EXT_example": {"specularTexture": {"index": 1}}},
        }
    ]
    document["extensionsUsed"] = ["EXT_example"]
    document["textures"] = [{"source": 0, "sampler": 0}, {"source": 0}]
    document["images"] = [{"uri": "texture.png"}]
    document["samplers"] = [{}]
    result = validate_document(document)
    assert result.issues.messages == []
    assert result.info["hasTextures"] is True


def test_skin_joint_outside_skeleton():
    document = {
        "asset": ASSET,
        "nodes": [{"children": [1]}, {}, {}],
        "scenes": [{"nodes": [0, 2]}],
        "skins": [{"joints": [1, 2], "skeleton": 0}],
    }
    result = validate_document(document)
    assert pointers(result, "SKIN_SKELETON_INVALID") == ["/skins/0/joints/1"]
    assert result.issues.messages[0].message == "Joint 2 is not a descendant of skeleton node 0."


def test_skeleton_may_be_a_joint():
    document = {
        "asset": ASSET,
        "nodes": [{"children": [1]}, {}],
        "scenes": [{"nodes": [0]}],
        "skins": [{"joints": [0, 1], "skeleton": 0}],
    }
    result = validate_document(document)
    assert "SKIN_SKELETON_INVALID" not in codes(result)


def test_skin_joints_need_common_root():
    document = {
        "asset": ASSET,
        "nodes": [{"children": [1]}, {}, {}],
        "scenes": [{"nodes": [0, 2]}],
        "skins": [{"joints": [1, 2]}],
    }
    result = validate_document(document)
    assert pointers(result, "SKIN_NO_COMMON_ROOT") == ["/skins/0/joints"]
