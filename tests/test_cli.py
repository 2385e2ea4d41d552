from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

import cli.main as cli_main
from conftest import CANISTER_TEXT, OWNER_TEXT, FakeTransport, denied_reply, interfaces_reply, minted_reply
from core.domain.errors import CallRejected

CID_V0 = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"

runner = CliRunner()


@pytest.fixture()
def transport(monkeypatch: pytest.MonkeyPatch) -> FakeTransport:
    fake = FakeTransport(
        {
            "supportedInterfacesDip721": interfaces_reply("Mint"),
            "mintDip721": minted_reply(7, 42),
        }
    )
    networks: list[str] = []

    def build(network, settings):
        networks.append(network)
        return fake

    monkeypatch.setattr(cli_main, "build_transport", build)
    fake.networks = networks
    return fake


def _mint(*args: str, input: str | None = None):
    return runner.invoke(cli_main.app, ["mint", "local", CANISTER_TEXT, "--owner", OWNER_TEXT, *args], input=input)


def test_mint_file_with_auto_hash(tmp_path: Path, transport: FakeTransport) -> None:
    image = tmp_path / "cat.png"
    image.write_bytes(b"\x89PNG fake")

    result = _mint("--file", str(image), "--sha2-auto")

    assert result.exit_code == 0, result.output
    assert f"Successfully minted token 7 to {OWNER_TEXT} (transaction id 42)" in result.output
    assert transport.networks == ["local"]
    assert transport.methods() == ["supportedInterfacesDip721", "mintDip721"]
    assert transport.closed


def test_metadata_only_asks_for_confirmation(transport: FakeTransport) -> None:
    result = _mint("--ipfs-location", CID_V0, "--mime-type", "image/png", input="n\n")

    assert result.exit_code == 0
    assert "Aborted upload" in result.output
    assert transport.calls == []


def test_metadata_only_with_yes(transport: FakeTransport) -> None:
    result = _mint("--asset-canister", CANISTER_TEXT, "--mime-type", "text/html", "-y")

    assert result.exit_code == 0, result.output
    assert "Successfully minted token 7" in result.output


def test_verbose_shows_interfaces_and_metadata(transport: FakeTransport) -> None:
    result = runner.invoke(
        cli_main.app,
        [
            "--verbose",
            "mint",
            "ic",
            CANISTER_TEXT,
            "--owner",
            OWNER_TEXT,
            "--uri",
            "https://example.com/a.png",
            "--sha2",
            "deadbeef",
            "--mime-type",
            "image/png",
            "-y",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Supported DIP-721 interfaces" in result.output
    assert result.output.index("Supported DIP-721 interfaces") < result.output.index("contentHash")
    assert "contentHash" in result.output
    assert "deadbeef" in result.output


@pytest.mark.parametrize(
    "args",
    [
        ["--ipfs-location", CID_V0, "--uri", "https://example.com/a.png", "--sha2", "00", "--mime-type", "a/b"],
        ["--uri", "https://example.com/a.png", "--mime-type", "image/png"],
        ["--mime-type", "image/png"],
        ["--ipfs-location", CID_V0],
        ["--ipfs-location", CID_V0, "--sha2-auto", "--mime-type", "a/b"],
        ["--asset-canister", "not-a-principal", "--mime-type", "a/b", "-y"],
    ],
)
def test_invalid_options_are_usage_errors(args: list[str], transport: FakeTransport) -> None:
    result = _mint(*args)

    assert result.exit_code == 2
    assert transport.calls == []


def test_invalid_owner() -> None:
    result = runner.invoke(
        cli_main.app,
        ["mint", "ic", CANISTER_TEXT, "--owner", "bogus", "--ipfs-location", CID_V0, "--mime-type", "a/b", "-y"],
    )
    assert result.exit_code == 2


def test_denied_mint_exits_nonzero(transport: FakeTransport) -> None:
    transport.replies["mintDip721"] = denied_reply()

    result = _mint("--ipfs-location", CID_V0, "--mime-type", "image/png", "-y")

    assert result.exit_code == 1
    assert "Mint denied: You aren't authorized as a custodian of that canister." in result.output
    assert "creator may mint" in result.output


def test_unsupported_canister_reports_hint(transport: FakeTransport) -> None:
    transport.replies["supportedInterfacesDip721"] = CallRejected(3, "Canister has no query method")

    result = _mint("--ipfs-location", CID_V0, "--mime-type", "image/png", "-y")

    assert result.exit_code == 1
    assert "does not appear to be a DIP-721 NFT canister" in result.output
    assert "Hint:" in result.output
    assert transport.methods() == ["supportedInterfacesDip721"]


def test_malformed_cid_is_reported(transport: FakeTransport) -> None:
    result = _mint("--ipfs-location", "Qm-nope", "--mime-type", "image/png", "-y")

    assert result.exit_code == 1
    assert "not a valid CID" in result.output
    assert transport.calls == []


def test_interfaces_command(transport: FakeTransport) -> None:
    result = runner.invoke(cli_main.app, ["interfaces", "ic", CANISTER_TEXT])

    assert result.exit_code == 0, result.output
    assert "Mint" in result.output
    assert "TransferNotification" in result.output
