from __future__ import annotations

from typing import Any

import pytest

from adapters.candid.dip721 import INTERFACE_ID, MINT_RESULT
from adapters.candid.wire import Vec, encode_args
from core.domain.principal import Principal

# Canister ids as they appear on mainnet (ledger and a wallet).
CANISTER_TEXT = "ryjl3-tyaaa-aaaaa-aaaba-cai"
OWNER_TEXT = "rrkah-fqaaa-aaaaa-aaaaq-cai"


class FakeTransport:
    """In-memory `LedgerTransport`: canned replies per method, records every call."""

    def __init__(self, replies: dict[str, Any] | None = None) -> None:
        self.replies = dict(replies or {})
        self.calls: list[tuple[str, Principal, str, bytes]] = []
        self.closed = False

    async def __aenter__(self) -> "FakeTransport":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.closed = True

    def _answer(self, kind: str, canister_id: Principal, method_name: str, arg: bytes) -> bytes:
        self.calls.append((kind, canister_id, method_name, arg))
        if method_name not in self.replies:
            raise AssertionError(f"unexpected {kind} call to {method_name}")
        reply = self.replies[method_name]
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def query(self, canister_id: Principal, method_name: str, arg: bytes) -> bytes:
        return self._answer("query", canister_id, method_name, arg)

    async def update(self, canister_id: Principal, method_name: str, arg: bytes) -> bytes:
        return self._answer("update", canister_id, method_name, arg)

    def methods(self) -> list[str]:
        return [method for _kind, _canister, method, _arg in self.calls]


def interfaces_reply(*names: str) -> bytes:
    return encode_args([Vec(INTERFACE_ID)], [[(name, None) for name in names]])


def minted_reply(token_id: int, transaction_id: int) -> bytes:
    return encode_args([MINT_RESULT], [("Ok", {"token_id": token_id, "id": transaction_id})])


def denied_reply(reason: str = "Unauthorized") -> bytes:
    return encode_args([MINT_RESULT], [("Err", (reason, None))])


@pytest.fixture()
def canister() -> Principal:
    return Principal.from_text(CANISTER_TEXT)


@pytest.fixture()
def owner() -> Principal:
    return Principal.from_text(OWNER_TEXT)


@pytest.fixture()
def mint_capable_transport() -> FakeTransport:
    return FakeTransport(
        {
            "supportedInterfacesDip721": interfaces_reply("Mint", "TransactionHistory"),
            "mintDip721": minted_reply(7, 42),
        }
    )
