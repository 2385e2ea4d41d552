"""Consulta de capacidades: qué interfaces DIP-721 implementa el canister.

Por qué antes del mint:
- `mintDip721` es una llamada update (cara y con firma); si el canister no
  declara `Mint` se corta aquí con un error claro.
"""

from __future__ import annotations

import logging

from adapters.candid import decode_supported_interfaces, encode_no_args
from core.domain.errors import CallRejected, CapabilityMissing, UnsupportedService
from core.domain.models import CapabilitySet, InterfaceId
from core.domain.principal import Principal
from core.interfaces.ledger import LedgerTransport
from core.services.error_classifier import classify_rejection

logger = logging.getLogger(__name__)

SUPPORTED_INTERFACES_METHOD = "supportedInterfacesDip721"


async def fetch_capabilities(transport: LedgerTransport, canister: Principal) -> CapabilitySet:
    try:
        reply = await transport.query(canister, SUPPORTED_INTERFACES_METHOD, encode_no_args())
    except CallRejected as exc:
        raise classify_rejection(
            exc,
            context=f"canister {canister} does not appear to be a DIP-721 NFT canister",
            unsupported=UnsupportedService,
        ) from exc

    capabilities = decode_supported_interfaces(reply)
    logger.debug(
        "canister %s supports %s",
        canister,
        ", ".join(sorted(c.value for c in capabilities)) or "no optional interfaces",
    )
    return capabilities


def require_capability(
    capabilities: CapabilitySet,
    required: InterfaceId,
    *,
    canister: Principal,
) -> None:
    if required not in capabilities:
        action = "minting" if required is InterfaceId.MINT else f"the {required.value} interface"
        raise CapabilityMissing(f"canister {canister} does not support {action}", capability=required.value)


async def probe_capability(
    transport: LedgerTransport,
    canister: Principal,
    required: InterfaceId = InterfaceId.MINT,
) -> CapabilitySet:
    """Gate: returns the capability set only if `required` is in it."""

    capabilities = await fetch_capabilities(transport, canister)
    require_capability(capabilities, required, canister=canister)
    return capabilities
