from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

import cli.doctor as doctor
import core.config as config
from cli.main import app

runner = CliRunner()


@pytest.fixture()
def env_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "config" / ".env"
    monkeypatch.setattr(config, "get_user_env_file", lambda: path)
    return path


def test_setup_writes_user_env(env_file: Path) -> None:
    result = runner.invoke(app, ["doctor", "setup"], input="local\nalice\n")

    assert result.exit_code == 0, result.output
    lines = env_file.read_text(encoding="utf-8").splitlines()
    assert "DIP721_MINT_DEFAULT_NETWORK=local" in lines
    assert "DIP721_MINT_IDENTITY_NAME=alice" in lines


def test_setup_keeps_existing_values(env_file: Path) -> None:
    env_file.parent.mkdir(parents=True)
    env_file.write_text("DIP721_MINT_LOG_LEVEL=DEBUG\n", encoding="utf-8")

    result = runner.invoke(app, ["doctor", "setup"], input="ic\n\n")

    assert result.exit_code == 0, result.output
    lines = env_file.read_text(encoding="utf-8").splitlines()
    assert "DIP721_MINT_LOG_LEVEL=DEBUG" in lines
    assert "DIP721_MINT_DEFAULT_NETWORK=ic" in lines
    assert not any(line.startswith("DIP721_MINT_IDENTITY_NAME") for line in lines)


def test_run_without_identity_skips_replica(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DIP721_MINT_DFX_CONFIG_DIR", str(tmp_path))
    monkeypatch.delenv("DIP721_MINT_IDENTITY_NAME", raising=False)

    async def unexpected(*args):
        raise AssertionError("the replica must not be contacted without an identity")

    monkeypatch.setattr(doctor, "_check_replica", unexpected)

    result = runner.invoke(app, ["doctor", "run"])

    assert result.exit_code == 0, result.output
    assert "Hint:" in result.output


def test_run_with_anonymous_identity(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DIP721_MINT_IDENTITY_NAME", "anonymous")
    checked: list[str] = []

    async def fake_check(url, identity, settings):
        checked.append(url)
        return True, f"{url} (0.9.0)"

    monkeypatch.setattr(doctor, "_check_replica", fake_check)

    result = runner.invoke(app, ["doctor", "run", "--network", "local"])

    assert result.exit_code == 0, result.output
    assert checked == ["http://localhost:4943"]
    assert "2vxsx-fae" in result.output
