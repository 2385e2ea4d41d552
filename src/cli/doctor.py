"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from adapters.ic_agent import IcHttpTransport
from adapters.identity import DfxCredentialProvider
from cli.ui_components import print_banner
from core.config import AppSettings, resolve_network_url, write_user_env_vars
from core.domain.errors import MintToolError
from core.interfaces.ledger import SigningIdentity

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_replica(url: str, identity: SigningIdentity, settings: AppSettings) -> tuple[bool, str]:
    try:
        async with IcHttpTransport(base_url=url, identity=identity, settings=settings) as transport:
            status: dict[str, Any] = await transport.status()
    except MintToolError as exc:
        return False, str(exc)
    version = status.get("impl_version") or status.get("ic_api_version") or "unknown version"
    return True, f"{url} ({version})"


@app.command()
def run(
    network: Optional[str] = typer.Option(
        None, "--network", help="Network to check ('ic', 'local' or a URL). Defaults to the configured one."
    ),
) -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()
    print_banner(_console)

    table = Table(title="DIP721-MINT Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    provider = DfxCredentialProvider(config_dir=settings.dfx_config_dir, identity_name=settings.identity_name)
    identity: SigningIdentity | None = None
    hint: str | None = None
    try:
        name = provider.identity_name()
        identity = provider.load_identity()
    except MintToolError as exc:
        table.add_row("dfx identity", "FAIL", str(exc))
        hint = exc.hint
    else:
        table.add_row("dfx identity", "OK", name)
        table.add_row("Principal", "OK", str(identity.sender()))

    url = resolve_network_url(network or settings.default_network)
    if identity is None:
        table.add_row("Replica", "SKIPPED", "No identity to sign requests with")
    else:
        ok, detail = asyncio.run(_check_replica(url, identity, settings))
        table.add_row("Replica", "OK" if ok else "FAIL", detail)

    _console.print(table)

    if hint:
        _console.print(f"\n[yellow]Hint:[/yellow] {hint}")


@app.command()
def setup() -> None:
    """Interactive setup (stores defaults in the user config .env)."""

    settings = AppSettings()
    network = typer.prompt(
        "Default network ('ic', 'local' or a URL)",
        default=settings.default_network,
        show_default=True,
    ).strip()
    identity = typer.prompt(
        "dfx identity (empty = the one marked as default by dfx)",
        default=settings.identity_name or "",
        show_default=False,
    ).strip()

    if not network:
        raise typer.BadParameter("network is required")

    env_path = write_user_env_vars(
        {
            "DIP721_MINT_DEFAULT_NETWORK": network,
            "DIP721_MINT_IDENTITY_NAME": identity or None,
        }
    )

    _console.print(f"[green]Saved config to:[/green] {env_path}")
