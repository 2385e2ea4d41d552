"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en `mint`, `interfaces` y `doctor`.
"""

from __future__ import annotations

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import CapabilitySet, InterfaceId, MetadataRecord, MintDenied, MintOutcome
from core.domain.principal import Principal


def print_banner(console: Console) -> None:
    """Imprime el banner de bienvenida (solo en comandos interactivos)."""

    title = Text("DIP721-MINT", style="bold cyan")
    subtitle = Text("NFT minting • Internet Computer", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def _render_value(value: object) -> str:
    if isinstance(value, bytes):
        return value.hex() if len(value) <= 40 else f"{value[:20].hex()}… ({len(value)} bytes)"
    return str(value)


def build_metadata_table(record: MetadataRecord) -> Table:
    """Tabla con el registro de metadatos, en el orden en que se envía."""

    table = Table(title="Metadata")
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Type", style="dim")
    table.add_column("Value", style="white")
    for key, value in record.entries:
        table.add_row(key.value, value.kind.value, _render_value(value.value))
    return table


def build_interfaces_table(capabilities: CapabilitySet) -> Table:
    table = Table(title="Supported DIP-721 interfaces")
    table.add_column("Interface", style="cyan", no_wrap=True)
    table.add_column("Supported", style="white")
    for interface in InterfaceId:
        supported = interface in capabilities
        table.add_row(interface.value, "[green]yes[/green]" if supported else "[dim]no[/dim]")
    return table


DENIED_HINT = (
    "Usually only the canister creator may mint. That may be your wallet rather "
    "than your dfx principal, depending on how the canister was initialized."
)


def describe_outcome(outcome: MintOutcome, *, owner: Principal) -> str:
    """Línea final para el usuario (recibo o motivo de la denegación)."""

    if isinstance(outcome, MintDenied):
        return f"Mint denied: {outcome.message}"
    return (
        f"Successfully minted token {outcome.token_id} to {owner} "
        f"(transaction id {outcome.transaction_id})"
    )
