from __future__ import annotations

import asyncio

import pytest

from adapters.candid.wire import decode_args, idl_hash
from conftest import FakeTransport, denied_reply, minted_reply
from core.domain.errors import CallRejected, MalformedReply, ProtocolError, UnsupportedOperation
from core.domain.models import (
    MetadataKey,
    MetadataRecordBuilder,
    MetadataValue,
    MintDenied,
    MintSucceeded,
)
from core.services.minting import MINT_METHOD, invoke_mint


def _record():
    return (
        MetadataRecordBuilder()
        .set(MetadataKey.LOCATION_TYPE, MetadataValue.nat8(4))
        .set(MetadataKey.CONTENT_TYPE, MetadataValue.text("application/octet-stream"))
        .build()
    )


def test_mint_success(canister, owner) -> None:
    transport = FakeTransport({MINT_METHOD: minted_reply(12, 99)})
    outcome = asyncio.run(
        invoke_mint(transport, canister=canister, owner=owner, metadata=_record(), content=b"payload")
    )

    assert outcome == MintSucceeded(token_id=12, transaction_id=99)
    ((kind, target, method, arg),) = transport.calls
    assert (kind, target, method) == ("update", canister, MINT_METHOD)

    sent_owner, parts, content = decode_args(arg)
    assert sent_owner == bytes(owner)
    assert content == b"payload"
    assert len(parts) == 1
    assert parts[0][idl_hash("data")] == b"payload"
    assert parts[0][idl_hash("purpose")][0] == idl_hash("Rendered")


def test_mint_denied_is_returned(canister, owner) -> None:
    transport = FakeTransport({MINT_METHOD: denied_reply()})
    outcome = asyncio.run(invoke_mint(transport, canister=canister, owner=owner, metadata=_record()))

    assert isinstance(outcome, MintDenied)
    assert outcome.message == "You aren't authorized as a custodian of that canister."


def test_missing_update_method_is_unsupported_operation(canister, owner) -> None:
    transport = FakeTransport({MINT_METHOD: CallRejected(3, "Canister has no update method 'mintDip721'")})
    with pytest.raises(UnsupportedOperation, match="does not support minting"):
        asyncio.run(invoke_mint(transport, canister=canister, owner=owner, metadata=_record()))


def test_other_rejection_is_protocol_error(canister, owner) -> None:
    transport = FakeTransport({MINT_METHOD: CallRejected(4, "insufficient cycles")})
    with pytest.raises(ProtocolError) as excinfo:
        asyncio.run(invoke_mint(transport, canister=canister, owner=owner, metadata=_record()))
    assert excinfo.value.rejection.code == 4


def test_unexpected_reply_shape(canister, owner) -> None:
    transport = FakeTransport({MINT_METHOD: b"DIDL\x00\x01\x71\x02hi"})
    with pytest.raises(MalformedReply):
        asyncio.run(invoke_mint(transport, canister=canister, owner=owner, metadata=_record()))
