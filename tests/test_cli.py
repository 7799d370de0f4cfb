import json

import pytest
from typer.testing import CliRunner

from drive_pool.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def settings_file(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    monkeypatch.setenv("DRIVE_POOL_CONFIG", str(path))
    for name in ("KEY_FILE", "CHUNK_SIZE", "USE_TRASH", "DELETE_CONCURRENCY", "IMPERSONATE", "SKIP_UNREACHABLE"):
        monkeypatch.delenv(f"DRIVE_POOL_{name}", raising=False)
    return path


def test_config_set_then_get(settings_file):
    result = runner.invoke(app, ["config", "set", "--chunk-size", "1048576", "--use-trash"])
    assert result.exit_code == 0, result.output
    assert "✓" in result.output
    assert json.loads(settings_file.read_text())["chunk_size"] == 1048576

    result = runner.invoke(app, ["config", "get", "use_trash"])
    assert result.exit_code == 0
    assert result.output.strip() == "True"


def test_config_set_rejects_bad_chunk_size(settings_file):
    result = runner.invoke(app, ["config", "set", "--chunk-size", "1000"])
    assert result.exit_code == 1
    assert not settings_file.exists()


def test_config_get_unknown_key():
    result = runner.invoke(app, ["config", "get", "colour"])
    assert result.exit_code == 1


def test_delete_without_key_file_fails():
    result = runner.invoke(app, ["delete", "some-id"])
    assert result.exit_code == 1


def test_invalid_log_level():
    result = runner.invoke(app, ["--log-level", "LOUD", "config", "get"])
    assert result.exit_code == 1


def test_config_set_impersonate_and_skip_unreachable(settings_file):
    result = runner.invoke(app, ["config", "set", "--impersonate", "ops@x.test", "--skip-unreachable"])
    assert result.exit_code == 0, result.output

    saved = json.loads(settings_file.read_text())
    assert saved["impersonate"] == "ops@x.test"
    assert saved["skip_unreachable"] is True
