"""CLI principal (Typer).

Mints a new NFT with the provided content. The source may be an IPFS CID, the
principal of an asset canister or a web URI, although none is required. A
file path must be supplied if the file content should be uploaded to the NFT
canister rather than just the metadata. A SHA-256 hash can also be supplied;
it is required if the source is a URI and can be computed with
`--sha2-auto`.

DFINITY's dip721-nft-container canister supports minting, but not all
canisters do. Each canister also differs in who is authorized to mint.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from adapters.ic_agent import IcHttpTransport
from adapters.identity import DfxCredentialProvider
from cli import doctor
from cli.ui_components import (
    DENIED_HINT,
    build_interfaces_table,
    build_metadata_table,
    describe_outcome,
)
from core.config import AppSettings, resolve_network_url
from core.domain.errors import MalformedIdentifier, MintToolError
from core.domain.models import CapabilitySet, MintDenied
from core.domain.principal import Principal
from core.logging_utils import configure_logging
from core.services.capabilities import fetch_capabilities
from core.services.location import select_location_source
from core.services.mint_pipeline import MintRequest, MintResult, PipelineHooks, run_mint

app = typer.Typer(no_args_is_help=True, help="A tool for minting DIP-721 NFTs on the Internet Computer.")
app.add_typer(doctor.app, name="doctor")

_console = Console()
_err_console = Console(stderr=True)

NO_FILE_PROMPT = "Are you sure you don't want to specify a file? No content will be uploaded, only metadata!"


def build_transport(network: str, settings: AppSettings) -> IcHttpTransport:
    """Transporte real: identidad de dfx + replica de `network`."""

    identity = DfxCredentialProvider(
        config_dir=settings.dfx_config_dir,
        identity_name=settings.identity_name,
    ).load_identity()
    return IcHttpTransport(
        base_url=resolve_network_url(network),
        identity=identity,
        settings=settings,
    )


def _parse_principal(value: str, *, param: str) -> Principal:
    try:
        return Principal.from_text(value)
    except MalformedIdentifier as exc:
        raise typer.BadParameter(str(exc), param_hint=param) from exc


def _validate_mint_options(
    *,
    ipfs_location: str | None,
    asset_canister: str | None,
    uri: str | None,
    file: Path | None,
    sha2: str | None,
    sha2_auto: bool,
    mime_type: str | None,
) -> None:
    locations = [
        name
        for name, value in (
            ("--ipfs-location", ipfs_location),
            ("--asset-canister", asset_canister),
            ("--uri", uri),
        )
        if value is not None
    ]
    if len(locations) > 1:
        raise typer.BadParameter(f"{' and '.join(locations)} are mutually exclusive")
    if sha2 is not None and sha2_auto:
        raise typer.BadParameter("--sha2 and --sha2-auto are mutually exclusive")
    if sha2_auto and file is None:
        raise typer.BadParameter("--sha2-auto requires --file")
    if uri is not None and sha2 is None and not sha2_auto:
        raise typer.BadParameter("--uri requires --sha2 or --sha2-auto")
    if file is None and not locations:
        raise typer.BadParameter("--file is required unless --ipfs-location, --asset-canister or --uri is given")
    if file is None and mime_type is None:
        raise typer.BadParameter("--mime-type is required when --file is not given")


def _report_error(exc: MintToolError) -> None:
    _err_console.print(f"[red]Error:[/red] {exc}", soft_wrap=True)
    if exc.hint:
        _err_console.print(f"[yellow]Hint:[/yellow] {exc.hint}", soft_wrap=True)


async def _mint(network: str, settings: AppSettings, request: MintRequest, hooks: PipelineHooks) -> MintResult:
    async with build_transport(network, settings) as transport:
        return await run_mint(transport=transport, request=request, hooks=hooks)


async def _interfaces(network: str, settings: AppSettings, canister: Principal) -> CapabilitySet:
    async with build_transport(network, settings) as transport:
        return await fetch_capabilities(transport, canister)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs, the canister interfaces and the metadata sent."),
) -> None:
    settings = AppSettings()
    configure_logging(logging.DEBUG if verbose else settings.log_level)
    ctx.obj = {"verbose": verbose}


@app.command()
def mint(
    ctx: typer.Context,
    network: str = typer.Argument(..., help="The network the canister is running on. Can be 'ic', 'local', or a URL."),
    canister: str = typer.Argument(..., help="The DIP-721 compliant NFT container."),
    owner: str = typer.Option(..., "--owner", help="The owner of the new NFT."),
    ipfs_location: Optional[str] = typer.Option(None, "--ipfs-location", help="The CID of the file on IPFS."),
    asset_canister: Optional[str] = typer.Option(
        None, "--asset-canister", help="The principal of the file's asset canister on the IC."
    ),
    uri: Optional[str] = typer.Option(None, "--uri", help="The URI of the file on the internet."),
    file: Optional[Path] = typer.Option(
        None,
        "--file",
        exists=True,
        dir_okay=False,
        readable=True,
        help="The path to the file. Required if you want the file contents sent to the smart contract.",
    ),
    sha2: Optional[str] = typer.Option(
        None, "--sha2", help="The SHA-256 hash of the file. Required if --uri is specified."
    ),
    sha2_auto: bool = typer.Option(False, "--sha2-auto", help="Calculates the SHA-256 hash of the file and includes it."),
    mime_type: Optional[str] = typer.Option(
        None, "--mime-type", help="The MIME type of the file. Inferred if --file is specified, required otherwise."
    ),
    yes: bool = typer.Option(False, "-y", "--yes", help="Skips confirmation for a minted NFT with no --file."),
) -> None:
    """Mint a new NFT on a DIP-721 canister."""

    _validate_mint_options(
        ipfs_location=ipfs_location,
        asset_canister=asset_canister,
        uri=uri,
        file=file,
        sha2=sha2,
        sha2_auto=sha2_auto,
        mime_type=mime_type,
    )
    canister_id = _parse_principal(canister, param="CANISTER")
    owner_id = _parse_principal(owner, param="--owner")
    asset_canister_id = (
        _parse_principal(asset_canister, param="--asset-canister") if asset_canister is not None else None
    )

    if file is None and not yes and not typer.confirm(NO_FILE_PROMPT):
        _console.print("Aborted upload")
        raise typer.Exit(code=0)

    settings = AppSettings()
    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    hooks = PipelineHooks(
        capabilities=(lambda caps: _console.print(build_interfaces_table(caps))) if verbose else None,
        metadata=(lambda record: _console.print(build_metadata_table(record))) if verbose else None,
    )

    try:
        request = MintRequest(
            canister=canister_id,
            owner=owner_id,
            location=select_location_source(
                ipfs_location=ipfs_location,
                asset_canister=asset_canister_id,
                uri=uri,
            ),
            content=file.read_bytes() if file is not None else None,
            filename=file.name if file is not None else None,
            sha2=sha2,
            sha2_auto=sha2_auto,
            mime_type=mime_type,
            default_content_type=settings.default_content_type,
        )
        result = asyncio.run(_mint(network, settings, request, hooks))
    except MintToolError as exc:
        _report_error(exc)
        raise typer.Exit(code=1) from exc

    _console.print(describe_outcome(result.outcome, owner=owner_id), soft_wrap=True)
    if isinstance(result.outcome, MintDenied):
        _console.print(DENIED_HINT, style="dim", soft_wrap=True)
        raise typer.Exit(code=1)


@app.command()
def interfaces(
    network: str = typer.Argument(..., help="The network the canister is running on. Can be 'ic', 'local', or a URL."),
    canister: str = typer.Argument(..., help="The DIP-721 canister to inspect."),
) -> None:
    """Show which optional DIP-721 interfaces a canister declares."""

    canister_id = _parse_principal(canister, param="CANISTER")
    settings = AppSettings()
    try:
        capabilities = asyncio.run(_interfaces(network, settings, canister_id))
    except MintToolError as exc:
        _report_error(exc)
        raise typer.Exit(code=1) from exc
    _console.print(build_interfaces_table(capabilities))


def run() -> None:
    app()


if __name__ == "__main__":
    run()
