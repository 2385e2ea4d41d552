from __future__ import annotations

import asyncio
import hashlib

import cbor2
import httpx
import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.serialization import load_der_public_key

from adapters.candid.wire import encode_uleb128
from adapters.ic_agent import (
    IC_REQUEST_DOMAIN_SEPARATOR,
    IcHttpTransport,
    decode_cbor,
    lookup_path,
    request_id,
)
from adapters.identity import AnonymousIdentity, PemIdentity
from core.config import AppSettings
from core.domain.errors import CallRejected, TransportError
from core.interfaces.ledger import LedgerTransport

REPLY = b"DIDL\x00\x01\x7b\x01"


def _settings(**overrides) -> AppSettings:
    values = {"poll_interval_seconds": 0.001, "poll_max_interval_seconds": 0.002, "call_timeout_seconds": 5.0}
    values.update(overrides)
    return AppSettings(**values)


def _transport(handler, identity=None, **overrides) -> IcHttpTransport:
    client = httpx.AsyncClient(base_url="http://replica.test", transport=httpx.MockTransport(handler))
    return IcHttpTransport(
        base_url="http://replica.test",
        identity=identity or AnonymousIdentity(),
        settings=_settings(**overrides),
        client=client,
    )


def _status_tree(rid: bytes, status: bytes, **leaves: bytes) -> list:
    node = [2, b"status", [3, status]]
    for label, value in leaves.items():
        node = [1, [2, label.encode(), [3, value]], node]
    return [1, [4, b"\x00" * 32], [2, b"request_status", [2, rid, node]]]


def _tagged(value) -> bytes:
    return cbor2.dumps(cbor2.CBORTag(55799, value))


def _certificate(tree: list) -> bytes:
    return _tagged({"certificate": _tagged({"tree": tree, "signature": b"\x00" * 48})})


def _path_rid(request: httpx.Request) -> bytes:
    content = decode_cbor(request.content)["content"]
    return content["paths"][0][1]


def test_request_id_is_order_independent() -> None:
    a = {"request_type": "call", "arg": b"DIDL\x00\x00", "ingress_expiry": 1, "method_name": "m"}
    b = dict(reversed(list(a.items())))
    assert request_id(a) == request_id(b)
    assert len(request_id(a)) == 32
    assert request_id(a) != request_id({**a, "ingress_expiry": 2})


def test_request_id_of_nested_paths() -> None:
    content = {"paths": [[b"request_status", b"\x01" * 32]]}
    inner = hashlib.sha256(hashlib.sha256(b"request_status").digest() + hashlib.sha256(b"\x01" * 32).digest())
    outer = hashlib.sha256(inner.digest()).digest()
    expected = hashlib.sha256(hashlib.sha256(b"paths").digest() + outer).digest()
    assert request_id(content) == expected


def test_lookup_path() -> None:
    rid = b"\xaa" * 32
    tree = _status_tree(rid, b"replied", reply=REPLY)
    assert lookup_path(tree, [b"request_status", rid, b"status"]) == b"replied"
    assert lookup_path(tree, [b"request_status", rid, b"reply"]) == REPLY
    assert lookup_path(tree, [b"request_status", b"\xbb" * 32, b"status"]) is None
    assert lookup_path(tree, [b"time"]) is None


def test_query_replied(canister) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=_tagged({"status": "replied", "reply": {"arg": REPLY}}))

    async def scenario() -> bytes:
        async with _transport(handler) as transport:
            return await transport.query(canister, "m", b"DIDL\x00\x00")

    assert asyncio.run(scenario()) == REPLY
    (request,) = seen
    assert request.url.path == "/api/v2/canister/ryjl3-tyaaa-aaaaa-aaaba-cai/query"
    assert request.headers["content-type"] == "application/cbor"
    content = decode_cbor(request.content)["content"]
    assert content["request_type"] == "query"
    assert content["method_name"] == "m"
    assert content["sender"] == b"\x04"


def test_query_accepts_untagged_reply(canister) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=cbor2.dumps({"status": "replied", "reply": {"arg": REPLY}}))

    assert asyncio.run(_transport(handler).query(canister, "m", b"")) == REPLY


def test_query_rejected(canister) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = {"status": "rejected", "reject_code": 3, "reject_message": "no query method"}
        return httpx.Response(200, content=_tagged(body))

    with pytest.raises(CallRejected) as excinfo:
        asyncio.run(_transport(handler).query(canister, "m", b""))
    assert excinfo.value.code == 3
    assert excinfo.value.message == "no query method"


def test_update_polls_until_replied(canister) -> None:
    state = {"polls": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/call"):
            return httpx.Response(202)
        state["polls"] += 1
        rid = _path_rid(request)
        if state["polls"] < 3:
            return httpx.Response(200, content=_certificate(_status_tree(rid, b"processing")))
        return httpx.Response(200, content=_certificate(_status_tree(rid, b"replied", reply=REPLY)))

    assert asyncio.run(_transport(handler).update(canister, "mintDip721", b"DIDL\x00\x00")) == REPLY
    assert state["polls"] == 3


def test_update_rejected(canister) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/call"):
            return httpx.Response(202)
        tree = _status_tree(
            _path_rid(request),
            b"rejected",
            reject_code=encode_uleb128(3),
            reject_message=b"Canister has no update method 'mintDip721'",
        )
        return httpx.Response(200, content=_certificate(tree))

    with pytest.raises(CallRejected) as excinfo:
        asyncio.run(_transport(handler).update(canister, "mintDip721", b""))
    assert excinfo.value.code == 3
    assert "mintDip721" in excinfo.value.message


def test_update_times_out(canister) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/call"):
            return httpx.Response(202)
        return httpx.Response(200, content=_certificate(_status_tree(_path_rid(request), b"received")))

    with pytest.raises(TransportError, match="timed out"):
        asyncio.run(_transport(handler, call_timeout_seconds=0.01).update(canister, "mintDip721", b""))


def test_http_error_status(canister) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, text="Invalid signature")

    with pytest.raises(TransportError, match="HTTP 400"):
        asyncio.run(_transport(handler).query(canister, "m", b""))


def test_network_failure(canister) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError, match="connection refused"):
        asyncio.run(_transport(handler).query(canister, "m", b""))


def test_signed_envelope(canister) -> None:
    identity = PemIdentity(Ed25519PrivateKey.generate())
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=_tagged({"status": "replied", "reply": {"arg": REPLY}}))

    asyncio.run(_transport(handler, identity=identity).query(canister, "m", b"DIDL\x00\x00"))

    envelope = decode_cbor(seen[0].content)
    assert envelope["sender_pubkey"] == identity.public_key_der
    assert envelope["content"]["sender"] == bytes(identity.sender())

    public_key = load_der_public_key(envelope["sender_pubkey"])
    assert isinstance(public_key, Ed25519PublicKey)
    public_key.verify(envelope["sender_sig"], IC_REQUEST_DOMAIN_SEPARATOR + request_id(envelope["content"]))


def test_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.url.path == "/api/v2/status"
        return httpx.Response(200, content=_tagged({"impl_version": "0.9.0"}))

    assert asyncio.run(_transport(handler).status()) == {"impl_version": "0.9.0"}


def test_invalid_cbor() -> None:
    with pytest.raises(TransportError):
        decode_cbor(b"\xff\xff")


def test_transport_satisfies_protocol() -> None:
    assert isinstance(_transport(lambda request: httpx.Response(200)), LedgerTransport)
