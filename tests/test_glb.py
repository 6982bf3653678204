import json
import struct

from gltf_validator import encode_glb, parse_glb, validate_bytes
from gltf_validator.glb import GlbState
from gltf_validator.issues import IssueCollector, Severity

from helpers import ASSET, BIN, JSON, codes, glb_from_chunks, triangle_document


MINIMAL_JSON = json.dumps({"asset": ASSET}).encode("utf-8")


def _glb_triangle() -> bytes:
    document, data = triangle_document()
    del document["buffers"][0]["uri"]
    return encode_glb(document, data)


def test_encode_glb_layout():
    glb = encode_glb({"asset": ASSET}, b"\x01\x02\x03")
    magic, version, length = struct.unpack_from("<4sII", glb, 0)
    assert (magic, version, length) == (b"glTF", 2, len(glb))
    assert length % 4 == 0

    json_length, json_type = struct.unpack_from("<II", glb, 12)
    assert json_type == JSON
    assert json_length % 4 == 0
    assert glb[20 + json_length - 1 : 20 + json_length] in (b"}", b" ")

    bin_length, bin_type = struct.unpack_from("<II", glb, 20 + json_length)
    assert (bin_length, bin_type) == (4, BIN)
    assert glb[-4:] == b"\x01\x02\x03\x00"


def test_parse_glb_splits_chunks():
    issues = IssueCollector()
    container = parse_glb(encode_glb({"asset": ASSET}, b"\x00" * 8), issues)
    assert issues.messages == []
    assert container.state is GlbState.DONE
    assert container.version == 2
    assert json.loads(container.json_bytes) == {"asset": ASSET}
    assert container.bin_bytes == b"\x00" * 8
    assert [chunk.chunk_type for chunk in container.chunks] == [JSON, BIN]


def test_round_trip_has_no_issues():
    result = validate_bytes(_glb_triangle(), uri="triangle.glb")
    assert result.mime_type == "model/gltf-binary"
    assert result.issues.messages == []
    assert result.info["resources"][0]["storage"] == "glb"


def test_first_chunk_bin_is_fatal():
    glb = glb_from_chunks([(BIN, b"\x00" * 4)])
    result = validate_bytes(glb, uri="broken.glb")
    assert result.uri == "broken.glb"
    assert "GLB_UNEXPECTED_FIRST_CHUNK" in codes(result)
    assert result.issues.num_errors >= 1
    assert result.info["version"] == ""
    assert result.to_dict()["uri"] == "broken.glb"


def test_truncated_header():
    result = validate_bytes(b"glTF\x02\x00")
    assert codes(result) == ["GLB_UNEXPECTED_END_OF_HEADER"]
    assert result.issues.messages[0].offset == 6


def test_invalid_magic():
    issues = IssueCollector()
    container = parse_glb(b"glTX" + b"\x00" * 16, issues)
    assert issues.codes() == ["GLB_INVALID_MAGIC"]
    assert container.json_bytes is None
    assert container.state is GlbState.ERROR


def test_unsupported_version_still_parses():
    glb = bytearray(_glb_triangle())
    struct.pack_into("<I", glb, 4, 1)
    result = validate_bytes(bytes(glb))
    assert codes(result) == ["GLB_INVALID_VERSION"]
    assert result.info["version"] == "2.0"


def test_extra_data_is_warning():
    result = validate_bytes(_glb_triangle() + b"\x00" * 4)
    assert codes(result) == ["GLB_EXTRA_DATA"]
    assert result.issues.messages[0].severity == Severity.WARNING
    assert result.issues.num_errors == 0


def test_truncated_chunk_data_is_clamped():
    glb = _glb_triangle()[:-4]
    issues = IssueCollector()
    container = parse_glb(glb, issues)
    assert issues.codes() == ["GLB_LENGTH_MISMATCH", "GLB_UNEXPECTED_END_OF_CHUNK_DATA"]
    assert container.state is GlbState.ERROR
    assert len(container.bin_bytes) == 32


def test_missing_chunk_header():
    glb = struct.pack("<4sII", b"glTF", 2, 20)
    issues = IssueCollector()
    parse_glb(glb, issues)
    assert "GLB_UNEXPECTED_END_OF_CHUNK_HEADER" in issues.codes()


def test_declared_length_too_small():
    glb = bytearray(encode_glb({"asset": ASSET}))
    struct.pack_into("<I", glb, 8, 16)
    issues = IssueCollector()
    parse_glb(bytes(glb), issues)
    assert "GLB_LENGTH_TOO_SMALL" in issues.codes()


def test_unaligned_json_chunk():
    glb = glb_from_chunks([(JSON, MINIMAL_JSON)])
    result = validate_bytes(glb)
    assert len(MINIMAL_JSON) % 4 != 0
    assert codes(result) == ["GLB_CHUNK_LENGTH_UNALIGNED"]
    assert result.issues.messages[0].offset == 12
    assert result.info["version"] == "2.0"


def test_empty_bin_chunk_is_info():
    json_bytes = MINIMAL_JSON + b" " * ((4 - len(MINIMAL_JSON) % 4) % 4)
    result = validate_bytes(glb_from_chunks([(JSON, json_bytes), (BIN, b"")]))
    assert codes(result) == ["GLB_EMPTY_BIN_CHUNK"]
    assert result.issues.num_infos == 1


def test_empty_json_chunk():
    issues = IssueCollector()
    parse_glb(glb_from_chunks([(JSON, b"")]), issues)
    assert issues.codes() == ["GLB_EMPTY_CHUNK"]


def test_unknown_and_duplicate_chunks():
    json_bytes = MINIMAL_JSON + b" " * ((4 - len(MINIMAL_JSON) % 4) % 4)
    glb = glb_from_chunks([(JSON, json_bytes), (BIN, b"\x00" * 4), (0x12345678, b"abcd"), (JSON, json_bytes)])
    issues = IssueCollector()
    container = parse_glb(glb, issues)
    assert issues.codes() == ["GLB_UNKNOWN_CHUNK_TYPE", "GLB_DUPLICATE_CHUNK"]
    assert container.bin_bytes == b"\x00" * 4
    assert len(container.chunks) == 4


def test_bin_chunk_out_of_place():
    json_bytes = MINIMAL_JSON + b" " * ((4 - len(MINIMAL_JSON) % 4) % 4)
    glb = glb_from_chunks([(JSON, json_bytes), (0x12345678, b"abcd"), (BIN, b"\x00" * 4)])
    issues = IssueCollector()
    container = parse_glb(glb, issues)
    assert issues.codes() == ["GLB_UNKNOWN_CHUNK_TYPE", "GLB_UNEXPECTED_BIN_CHUNK"]
    assert container.bin_bytes is None


def test_missing_bin_for_buffer():
    result = validate_bytes(encode_glb({"asset": ASSET, "buffers": [{"byteLength": 4}]}))
    assert "BUFFER_MISSING_GLB_DATA" in codes(result)


def test_bin_chunk_padding_too_big():
    document, data = triangle_document()
    del document["buffers"][0]["uri"]
    result = validate_bytes(encode_glb(document, data + b"\x00" * 8))
    assert codes(result) == ["BUFFER_GLB_CHUNK_TOO_BIG"]
    assert result.issues.num_errors == 0


def test_uri_inside_glb_is_info():
    document, _ = triangle_document()
    result = validate_bytes(encode_glb(document))
    assert codes(result) == ["DATA_URI_GLB"]
    assert result.issues.messages[0].pointer == "/buffers/0/uri"
