import json

import pytest
from typer.testing import CliRunner

from webstack.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _no_deploy_env(monkeypatch):
    for name in ("CDK_DEFAULT_ACCOUNT", "CDK_DEFAULT_REGION", "AWS_REGION"):
        monkeypatch.delenv(name, raising=False)


def _manifest(tmp_path, **extra):
    p = tmp_path / "app.json"
    data = {"id": "Shop", "endpoints": [{"path": "/users", "source_path": "src/users"}], **extra}
    p.write_text(json.dumps(data), encoding="utf-8")
    return str(p)


def test_ping():
    result = runner.invoke(app, ["ping"])
    assert result.exit_code == 0
    assert "pong" in result.output


def test_synth_table(tmp_path):
    result = runner.invoke(app, ["synth", _manifest(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "/api/users" in result.output
    assert "security check(s) failing" in result.output


def test_audit_fail_on_error(tmp_path):
    manifest = _manifest(tmp_path)

    result = runner.invoke(app, ["audit", manifest])
    assert result.exit_code == 0
    assert "Passed: 11  Failed: 2" in result.output

    result = runner.invoke(app, ["audit", manifest, "--fail-on-error"])
    assert result.exit_code == 1

    result = runner.invoke(app, ["audit", manifest, "--enforce", "--fail-on-error"])
    assert result.exit_code == 0
    assert "Failed: 0" in result.output


def test_graph_export_json(tmp_path):
    out = tmp_path / "out" / "graph.json"
    result = runner.invoke(app, ["graph", "export", _manifest(tmp_path), "--out", str(out)])
    assert result.exit_code == 0, result.output

    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["id"] == "Shop"
    assert payload["nodes"][0]["kind"] == "app"
    assert len(payload["edges"]) == len(payload["nodes"]) - 1
    assert any(n["kind"] == "api_resource" and n["id"] == "users" for n in payload["nodes"])


def test_graph_export_dot(tmp_path):
    out = tmp_path / "graph.dot"
    result = runner.invoke(app, ["graph", "export", _manifest(tmp_path), "--format", "dot", "--out", str(out)])
    assert result.exit_code == 0
    text = out.read_text(encoding="utf-8")
    assert text.startswith("digraph webstack {")
    assert '"0" -> "1";' in text


def test_graph_stats(tmp_path):
    result = runner.invoke(app, ["graph", "stats", _manifest(tmp_path)])
    assert result.exit_code == 0
    assert "Endpoints: 4" in result.output


def test_bad_inputs(tmp_path):
    result = runner.invoke(app, ["synth", str(tmp_path / "missing.json")])
    assert result.exit_code == 2

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"id": "Shop", "endpoints": [{"path": "/x", "source_path": "s", "method": "TRACE"}]}))
    result = runner.invoke(app, ["synth", str(bad)])
    assert result.exit_code == 1
    assert "error" in result.output

    result = runner.invoke(app, ["graph", "export", _manifest(tmp_path), "--format", "svg"])
    assert result.exit_code == 2
