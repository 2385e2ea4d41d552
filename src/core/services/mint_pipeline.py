"""Orquestación del mint.

Por qué un pipeline:
- La CLI delega todo el flujo en `run_mint`, que mantiene las reglas de orden
  en un solo lugar:

1. se resuelve y valida la ubicación (todavía sin llamadas remotas);
2. se consultan las capacidades del canister, que deben incluir `Mint`;
3. se ensambla la metadata (aquí se fija el hash);
4. se emite el mint y se decodifica su resultado.

Nota: impresión y prompts quedan en la CLI; los hooks opcionales le permiten
mostrar resultados intermedios.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from core.config import DEFAULT_CONTENT_TYPE
from core.domain.errors import InputValidationError, MissingContentHash
from core.domain.models import (
    CapabilitySet,
    ExternalUri,
    InterfaceId,
    LocationSource,
    MetadataRecord,
    MintOutcome,
    NoLocation,
)
from core.domain.principal import Principal
from core.interfaces.ledger import LedgerTransport
from core.services.capabilities import probe_capability
from core.services.location import resolve_location
from core.services.metadata import assemble_metadata, decode_content_hash
from core.services.minting import invoke_mint


@dataclass(frozen=True)
class MintRequest:
    """Parameters of one mint.

    Invalid option combinations are rejected at construction, before any
    remote call.
    """

    canister: Principal
    owner: Principal
    location: LocationSource = field(default_factory=NoLocation)
    content: bytes | None = None
    filename: str | Path | None = None
    sha2: str | None = None
    sha2_auto: bool = False
    mime_type: str | None = None
    default_content_type: str = DEFAULT_CONTENT_TYPE

    def __post_init__(self) -> None:
        if self.sha2 is not None and self.sha2_auto:
            raise InputValidationError("an explicit content hash and automatic hashing are mutually exclusive")
        if self.sha2_auto and self.content is None:
            raise InputValidationError("automatic hashing needs the file content")
        if self.sha2 is not None:
            decode_content_hash(self.sha2)
        if isinstance(self.location, ExternalUri) and self.sha2 is None and not self.sha2_auto:
            raise MissingContentHash("a content hash is required when the content lives at an external URI")


@dataclass
class PipelineHooks:
    """Optional callbacks for UI layers."""

    capabilities: Callable[[CapabilitySet], None] | None = None
    metadata: Callable[[MetadataRecord], None] | None = None


@dataclass
class MintResult:
    """Output of a pipeline invocation."""

    outcome: MintOutcome
    capabilities: CapabilitySet
    metadata: MetadataRecord


async def run_mint(
    *,
    transport: LedgerTransport,
    request: MintRequest,
    hooks: PipelineHooks | None = None,
) -> MintResult:
    hooks = hooks or PipelineHooks()

    resolved = resolve_location(request.location)

    capabilities = await probe_capability(transport, request.canister, InterfaceId.MINT)
    if hooks.capabilities:
        hooks.capabilities(capabilities)

    metadata = assemble_metadata(
        resolved,
        sha2=request.sha2,
        content=request.content,
        sha2_auto=request.sha2_auto,
        mime_type=request.mime_type,
        filename=request.filename,
        default_content_type=request.default_content_type,
    )
    if hooks.metadata:
        hooks.metadata(metadata)

    outcome = await invoke_mint(
        transport,
        canister=request.canister,
        owner=request.owner,
        metadata=metadata,
        content=request.content or b"",
    )
    return MintResult(outcome=outcome, capabilities=capabilities, metadata=metadata)
