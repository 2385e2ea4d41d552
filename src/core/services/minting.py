"""Invocación del mint: la llamada update privilegiada `mintDip721`."""

from __future__ import annotations

import logging

from adapters.candid import decode_mint_result, encode_mint_args
from core.domain.errors import CallRejected, UnsupportedOperation
from core.domain.models import (
    MetadataPart,
    MetadataPurpose,
    MetadataRecord,
    MintDenied,
    MintOutcome,
)
from core.domain.principal import Principal
from core.interfaces.ledger import LedgerTransport
from core.services.error_classifier import classify_rejection

logger = logging.getLogger(__name__)

MINT_METHOD = "mintDip721"


async def invoke_mint(
    transport: LedgerTransport,
    *,
    canister: Principal,
    owner: Principal,
    metadata: MetadataRecord,
    content: bytes = b"",
) -> MintOutcome:
    """Submit the mint and wait for its terminal state.

    A call-layer rejection raises; an application-level denial is returned as
    `MintDenied`.
    """

    part = MetadataPart(purpose=MetadataPurpose.RENDERED, key_val_data=metadata, data=content)
    arg = encode_mint_args(owner, [part], content)
    logger.debug("minting on %s for %s (%d metadata entries, %d content bytes)", canister, owner, len(metadata), len(content))

    try:
        reply = await transport.update(canister, MINT_METHOD, arg)
    except CallRejected as exc:
        raise classify_rejection(
            exc,
            context=f"canister {canister} does not support minting",
            unsupported=UnsupportedOperation,
        ) from exc

    outcome = decode_mint_result(reply)
    if isinstance(outcome, MintDenied):
        logger.info("mint on %s denied: %s", canister, outcome.reason.value)
    else:
        logger.info("minted token %d on %s (transaction %d)", outcome.token_id, canister, outcome.transaction_id)
    return outcome
