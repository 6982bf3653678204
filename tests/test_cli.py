import json
import sys

import pytest

from gltf_validator import ConfigError, Severity
from gltf_validator.cli import main, run
from gltf_validator.config import load_json, parse_config

from helpers import ASSET


def _write(path, document):
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


def test_parse_config():
    options = parse_config(
        {"maxIssues": 5, "ignoredIssues": ["UNUSED_OBJECT"], "severityOverrides": {"NODE_LOOP": "warning"}}
    )
    assert options == {
        "max_issues": 5,
        "ignored_issues": ("UNUSED_OBJECT",),
        "severity_overrides": {"NODE_LOOP": Severity.WARNING},
    }


@pytest.mark.parametrize(
    "data",
    [
        {"maxIssues": -1},
        {"maxIssues": True},
        {"ignoredIssues": "UNUSED_OBJECT"},
        {"severityOverrides": {"NODE_LOOP": "fatal"}},
        {"severityOverrides": []},
        {"unknown": 1},
    ],
)
def test_parse_config_errors(data):
    with pytest.raises(ConfigError):
        parse_config(data)


def test_load_json_errors(tmp_path):
    with pytest.raises(ConfigError):
        load_json(tmp_path / "missing.json")
    (tmp_path / "list.json").write_text("[]", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_json(tmp_path / "list.json")


def test_valid_file_exits_zero(tmp_path, capsys):
    path = _write(tmp_path / "model.gltf", {"asset": ASSET})
    assert main([str(path)]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["uri"] == "model.gltf"
    assert report["issues"]["numErrors"] == 0


def test_errors_exit_one(tmp_path):
    path = _write(tmp_path / "model.gltf", {})
    out = tmp_path / "report.json"
    assert main([str(path), "--out", str(out), "--pretty"]) == 1
    report = json.loads(out.read_text(encoding="utf-8"))
    assert report["issues"]["messages"][0]["code"] == "UNDEFINED_PROPERTY"


def test_ignore_flag(tmp_path):
    path = _write(tmp_path / "model.gltf", {})
    assert main([str(path), "--ignore", "UNDEFINED_PROPERTY", "--out", str(tmp_path / "r.json")]) == 0


def test_config_file(tmp_path):
    path = _write(tmp_path / "model.gltf", {"asset": ASSET, "a": 1, "b": 2})
    config = _write(tmp_path / "config.json", {"maxIssues": 1, "severityOverrides": {"UNEXPECTED_PROPERTY": "ERROR"}})
    out = tmp_path / "report.json"
    assert main([str(path), "--config", str(config), "--out", str(out)]) == 1
    report = json.loads(out.read_text(encoding="utf-8"))
    assert report["issues"]["truncated"] is True
    assert len(report["issues"]["messages"]) == 1


def test_max_issues_flag_overrides_config(tmp_path):
    path = _write(tmp_path / "model.gltf", {"asset": ASSET, "a": 1, "b": 2})
    config = _write(tmp_path / "config.json", {"maxIssues": 1})
    out = tmp_path / "report.json"
    main([str(path), "--config", str(config), "--max-issues", "0", "--out", str(out)])
    report = json.loads(out.read_text(encoding="utf-8"))
    assert len(report["issues"]["messages"]) == 2


def test_external_buffer_next_to_input(tmp_path):
    (tmp_path / "data.bin").write_bytes(b"\x00" * 8)
    path = _write(
        tmp_path / "model.gltf",
        {"asset": ASSET, "buffers": [{"byteLength": 8, "uri": "data.bin"}, {"byteLength": 8, "uri": "gone.bin"}]},
    )
    out = tmp_path / "report.json"
    assert main([str(path), "--out", str(out)]) == 1
    report = json.loads(out.read_text(encoding="utf-8"))
    assert [m["code"] for m in report["issues"]["messages"] if m["severity"] == 0] == ["IO_ERROR"]
    assert report["info"]["resources"][0]["uri"] == "data.bin"


def test_missing_input_raises(tmp_path):
    with pytest.raises(ConfigError):
        main([str(tmp_path / "missing.gltf")])


def test_run_reports_errors_with_exit_two(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["gltf-validate", str(tmp_path / "missing.gltf")])
    with pytest.raises(SystemExit) as excinfo:
        run()
    assert excinfo.value.code == 2
    assert capsys.readouterr().err.startswith("error: Input not found")


def test_run_exit_status(tmp_path, monkeypatch, capsys):
    path = _write(tmp_path / "model.gltf", {"asset": ASSET})
    monkeypatch.setattr(sys, "argv", ["gltf-validate", str(path)])
    with pytest.raises(SystemExit) as excinfo:
        run()
    assert excinfo.value.code == 0
    assert json.loads(capsys.readouterr().out)["info"]["version"] == "2.0"
