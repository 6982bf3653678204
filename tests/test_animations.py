import struct

from gltf_validator import validate_document
from gltf_validator.issues import Severity

from helpers import animation_document, buffer_entry, codes, pack_floats, pointers


def test_valid_translation_animation():
    document = animation_document(
        [0.0, 0.5, 1.0], [0.0] * 9, output_type="VEC3", path="translation", interpolation="LINEAR"
    )
    result = validate_document(document)
    assert result.issues.messages == []
    assert result.info["animationCount"] == 1


def test_cubicspline_output_count():
    document = animation_document(
        [0.0, 1.0, 2.0], [0.0] * 12, output_type="VEC3", path="translation", interpolation="CUBICSPLINE"
    )
    result = validate_document(document)
    assert codes(result) == ["ANIMATION_SAMPLER_OUTPUT_ACCESSOR_INVALID_COUNT"]
    issue = result.issues.messages[0]
    assert issue.pointer == "/animations/0/channels/0/sampler"
    assert issue.message == "Animation sampler output accessor of count 9 expected. Found 4."


def test_cubicspline_needs_two_keyframes():
    document = animation_document([0.0], [0.0] * 9, output_type="VEC3", path="scale", interpolation="CUBICSPLINE")
    result = validate_document(document)
    assert pointers(result, "ANIMATION_SAMPLER_INPUT_ACCESSOR_TOO_FEW_ELEMENTS") == [
        "/animations/0/samplers/0/input"
    ]


def test_output_format_per_path():
    document = animation_document([0.0, 1.0], [0.0] * 6, output_type="VEC3", path="rotation")
    result = validate_document(document)
    assert pointers(result, "ANIMATION_SAMPLER_OUTPUT_ACCESSOR_INVALID_FORMAT") == [
        "/animations/0/channels/0/sampler"
    ]
    assert "'{VEC4, SHORT normalized}'" in result.issues.messages[0].message


def test_input_format_and_bounds():
    document = animation_document([0.0, 1.0], [0.0] * 6, output_type="VEC3", path="translation")
    del document["accessors"][0]["min"]
    result = validate_document(document)
    assert pointers(result, "ANIMATION_SAMPLER_INPUT_ACCESSOR_WITHOUT_BOUNDS") == ["/animations/0/samplers/0/input"]

    document = animation_document([0.0, 1.0], [0.0] * 6, output_type="VEC3", path="translation")
    document["accessors"][0]["type"] = "VEC2"
    document["accessors"][0]["count"] = 1
    del document["accessors"][0]["min"], document["accessors"][0]["max"]
    result = validate_document(document)
    assert pointers(result, "ANIMATION_SAMPLER_INPUT_ACCESSOR_INVALID_FORMAT") == [
        "/animations/0/samplers/0/input"
    ]


def test_input_must_increase():
    document = animation_document([0.0, 2.0, 1.0], [0.0] * 9, output_type="VEC3", path="translation")
    result = validate_document(document)
    assert [issue.message for issue in result.issues.messages] == [
        "Animation input accessor element at index 2 is less than or equal to previous: 1 <= 2."
    ]
    assert result.issues.messages[0].pointer == "/accessors/0"


def test_negative_input():
    document = animation_document([-1.0, 1.0], [0.0] * 6, output_type="VEC3", path="translation")
    result = validate_document(document)
    assert pointers(result, "ACCESSOR_ANIMATION_INPUT_NEGATIVE") == ["/accessors/0"]


def test_interpolation_value():
    document = animation_document([0.0, 1.0], [0.0] * 6, output_type="VEC3", path="translation", interpolation="CUBIC")
    result = validate_document(document)
    assert pointers(result, "VALUE_NOT_IN_LIST") == ["/animations/0/samplers/0/interpolation"]


def test_strided_sampler_accessors():
    document = animation_document([0.0, 1.0], [0.0] * 8, output_type="VEC4", path="rotation")
    document["bufferViews"][1]["byteStride"] = 16
    result = validate_document(document)
    assert pointers(result, "ANIMATION_SAMPLER_ACCESSOR_WITH_BYTESTRIDE") == ["/animations/0/samplers/0/output"]


def test_non_unit_quaternion_is_warning():
    document = animation_document([0.0, 1.0], [0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 2.0], output_type="VEC4", path="rotation")
    result = validate_document(document)
    assert codes(result) == ["ACCESSOR_ANIMATION_SAMPLER_OUTPUT_NON_NORMALIZED_QUATERNION"]
    issue = result.issues.messages[0]
    assert issue.severity == Severity.WARNING
    assert issue.pointer == "/accessors/1"
    assert "index 1" in issue.message


def test_normalized_quaternions_are_dequantized():
    document = animation_document([0.0, 1.0], [0.0] * 8, output_type="VEC4", path="rotation")
    input_bytes = pack_floats(0.0, 1.0)
    output_bytes = struct.pack("<8h", 0, 0, 0, 16383, 0, 0, 0, 32767)
    document["buffers"] = [buffer_entry(input_bytes + output_bytes)]
    document["bufferViews"][1]["byteLength"] = len(output_bytes)
    document["accessors"][1].update({"componentType": 5122, "normalized": True})
    result = validate_document(document)
    assert codes(result) == ["ACCESSOR_ANIMATION_SAMPLER_OUTPUT_NON_NORMALIZED_QUATERNION"]
    assert "index 0" in result.issues.messages[0].message


def test_cubicspline_tangents_are_not_quaternions():
    # in-tangent, value, out-tangent: only the middle element must be unit length
    outputs = [0.0] * 4 + [0.0, 0.0, 0.0, 1.0] + [0.0] * 4
    outputs = outputs * 2
    document = animation_document([0.0, 1.0], outputs, output_type="VEC4", path="rotation", interpolation="CUBICSPLINE")
    result = validate_document(document)
    assert result.issues.messages == []


def test_weights_without_morph_targets():
    document = animation_document([0.0, 1.0], [0.0, 1.0], output_type="SCALAR", path="weights")
    result = validate_document(document)
    assert pointers(result, "ANIMATION_CHANNEL_TARGET_NODE_WEIGHTS_NO_MORPHS") == [
        "/animations/0/channels/0/target/path"
    ]


def test_weights_count_uses_morph_targets():
    document = animation_document([0.0, 1.0], [0.0, 1.0, 0.0], output_type="SCALAR", path="weights", node={"mesh": 0})
    document["meshes"] = [
        {"primitives": [{"attributes": {"POSITION": 1}, "targets": [{"POSITION": 1}, {"POSITION": 1}]}]}
    ]
    result = validate_document(document)
    assert "ANIMATION_CHANNEL_TARGET_NODE_WEIGHTS_NO_MORPHS" not in codes(result)
    issue = result.issues.messages[codes(result).index("ANIMATION_SAMPLER_OUTPUT_ACCESSOR_INVALID_COUNT")]
    assert issue.message == "Animation sampler output accessor of count 4 expected. Found 3."


def test_trs_target_on_matrix_node():
    identity = [1.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 0.0, 1.0]
    document = animation_document(
        [0.0, 1.0], [0.0] * 6, output_type="VEC3", path="translation", node={"matrix": identity}
    )
    result = validate_document(document)
    assert codes(result) == ["ANIMATION_CHANNEL_TARGET_NODE_MATRIX"]


def test_duplicate_targets():
    document = animation_document([0.0, 1.0], [0.0] * 6, output_type="VEC3", path="translation")
    channels = document["animations"][0]["channels"]
    channels.append(dict(channels[0]))
    channels.append(dict(channels[0]))
    result = validate_document(document)
    assert pointers(result, "ANIMATION_DUPLICATE_TARGETS") == [
        "/animations/0/channels/1/target",
        "/animations/0/channels/2/target",
    ]
    assert result.issues.messages[0].message == "Animation channel has the same target as channel 0."


def test_channel_references():
    document = animation_document([0.0, 1.0], [0.0] * 6, output_type="VEC3", path="translation")
    document["animations"][0]["channels"].append({"sampler": 4, "target": {"node": 7, "path": "size"}})
    result = validate_document(document)
    assert pointers(result, "UNRESOLVED_REFERENCE") == [
        "/animations/0/channels/1/sampler",
        "/animations/0/channels/1/target/node",
    ]
    assert pointers(result, "VALUE_NOT_IN_LIST") == ["/animations/0/channels/1/target/path"]


def test_unused_animation_sampler():
    document = animation_document([0.0, 1.0], [0.0] * 6, output_type="VEC3", path="translation")
    document["animations"][0]["samplers"].append({"input": 0, "output": 1})
    result = validate_document(document)
    assert pointers(result, "UNUSED_OBJECT") == ["/animations/0/samplers/1"]


def test_shared_input_reported_once():
    document = animation_document([0.0, 2.0, 1.0], [0.0] * 9, output_type="VEC3", path="translation")
    document["animations"][0]["samplers"].append({"input": 0, "output": 1})
    document["animations"][0]["channels"].append({"sampler": 1, "target": {"node": 0, "path": "scale"}})
    result = validate_document(document)
    assert codes(result).count("ACCESSOR_ANIMATION_INPUT_NON_INCREASING") == 1


def test_empty_animation():
    document = animation_document([0.0, 1.0], [0.0] * 6, output_type="VEC3", path="translation")
    document["animations"][0] = {"samplers": [], "channels": []}
    result = validate_document(document)
    assert pointers(result, "EMPTY_ENTITY") == ["/animations/0/samplers", "/animations/0/channels"]
