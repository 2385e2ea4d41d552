"""Transporte HTTP (API v2) hacia un replica del Internet Computer.

Responsabilidad:
- Firmar y serializar peticiones (CBOR) con la identidad inyectada.
- `query`: una sola petición; `update`: `call` + polling de `read_state`
  hasta un estado terminal o timeout.
- Traducir rechazos del replica a `CallRejected(code, message)` y fallos HTTP
  o de formato a `TransportError`.

Límite conocido:
- La firma BLS del certificado devuelto por `read_state` NO se verifica
  (eso es parte del protocolo de consenso). Se confía en el endpoint.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from collections.abc import Mapping
from typing import Any, Sequence

import cbor2
import httpx

from adapters.candid.wire import decode_uleb128, encode_uleb128
from adapters.http_client import build_async_client
from core.config import AppSettings
from core.domain.errors import CallRejected, TransportError
from core.domain.principal import Principal
from core.interfaces.ledger import SigningIdentity

logger = logging.getLogger(__name__)

IC_REQUEST_DOMAIN_SEPARATOR = b"\x0aic-request"
SELF_DESCRIBE_CBOR_TAG = 55799

# Nodos del hash tree del certificado.
_EMPTY, _FORK, _LABELED, _LEAF, _PRUNED = range(5)


def _hash_value(value: Any) -> bytes:
    if isinstance(value, bytes):
        return hashlib.sha256(value).digest()
    if isinstance(value, str):
        return hashlib.sha256(value.encode("utf-8")).digest()
    if isinstance(value, int):
        return hashlib.sha256(encode_uleb128(value)).digest()
    if isinstance(value, (list, tuple)):
        return hashlib.sha256(b"".join(_hash_value(v) for v in value)).digest()
    if isinstance(value, Mapping):
        return request_id(value)
    raise TypeError(f"cannot hash {type(value).__name__} into a request id")


def request_id(content: Mapping[str, Any]) -> bytes:
    """Representation-independent hash of a request's content map."""

    pairs = sorted(
        hashlib.sha256(key.encode("utf-8")).digest() + _hash_value(value)
        for key, value in content.items()
    )
    return hashlib.sha256(b"".join(pairs)).digest()


def lookup_path(tree: Sequence[Any], path: Sequence[bytes]) -> bytes | None:
    """Valor de la hoja en `path`, o None si no está (o está podada)."""

    node: Sequence[Any] | None = tree
    for label in path:
        node = _find_label(node, label)
        if node is None:
            return None
    if node[0] == _LEAF:
        return bytes(node[1])
    return None


def _find_label(node: Sequence[Any], label: bytes) -> Sequence[Any] | None:
    tag = node[0]
    if tag == _FORK:
        found = _find_label(node[1], label)
        return found if found is not None else _find_label(node[2], label)
    if tag == _LABELED and bytes(node[1]) == label:
        return node[2]
    return None


def decode_cbor(data: bytes) -> Any:
    """Decodifica CBOR quitando la etiqueta self-describe (55799).

    Los mapas pueden llegar como `cbor2.frozendict`: comprobar con `Mapping`.
    """

    try:
        value = cbor2.loads(data)
    except (cbor2.CBORDecodeError, ValueError) as exc:
        raise TransportError(f"the replica sent invalid CBOR: {exc}") from exc
    if isinstance(value, cbor2.CBORTag) and value.tag == SELF_DESCRIBE_CBOR_TAG:
        value = value.value
    return value


class IcHttpTransport:
    """`LedgerTransport` sobre la API HTTP v2 del replica."""

    def __init__(
        self,
        *,
        base_url: str,
        identity: SigningIdentity,
        settings: AppSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._identity = identity
        self._owns_client = client is None
        self._client = client or build_async_client(self._settings, base_url=base_url)

    async def __aenter__(self) -> "IcHttpTransport":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # --- envelope ---

    def _ingress_expiry(self) -> int:
        return time.time_ns() + int(self._settings.ingress_expiry_seconds * 1_000_000_000)

    def _content(self, request_type: str, canister_id: Principal, **fields: Any) -> dict[str, Any]:
        content: dict[str, Any] = {
            "request_type": request_type,
            "sender": bytes(self._identity.sender()),
            "ingress_expiry": self._ingress_expiry(),
        }
        if request_type != "read_state":
            content["canister_id"] = bytes(canister_id)
        content.update(fields)
        return content

    def _envelope(self, content: dict[str, Any]) -> tuple[bytes, bytes]:
        rid = request_id(content)
        envelope: dict[str, Any] = {"content": content}
        public_key = self._identity.public_key_der
        if public_key is not None:
            envelope["sender_pubkey"] = public_key
            envelope["sender_sig"] = self._identity.sign(IC_REQUEST_DOMAIN_SEPARATOR + rid)
        return rid, cbor2.dumps(cbor2.CBORTag(SELF_DESCRIBE_CBOR_TAG, envelope))

    async def _post(self, canister_id: Principal, endpoint: str, body: bytes) -> httpx.Response:
        url = f"/api/v2/canister/{canister_id}/{endpoint}"
        try:
            response = await self._client.post(
                url,
                content=body,
                headers={"Content-Type": "application/cbor"},
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"{endpoint} request to {canister_id} failed: {exc}") from exc
        if response.status_code >= 400:
            raise TransportError(
                f"the replica answered HTTP {response.status_code} to {endpoint}: {response.text.strip()}"
            )
        return response

    # --- LedgerTransport ---

    async def query(self, canister_id: Principal, method_name: str, arg: bytes) -> bytes:
        content = self._content("query", canister_id, method_name=method_name, arg=arg)
        _, body = self._envelope(content)
        logger.debug("query %s.%s", canister_id, method_name)
        response = await self._post(canister_id, "query", body)

        payload = decode_cbor(response.content)
        status = payload.get("status") if isinstance(payload, Mapping) else None
        if status == "replied":
            return bytes(payload["reply"]["arg"])
        if status == "rejected":
            raise CallRejected(int(payload.get("reject_code", 0)), str(payload.get("reject_message", "")))
        raise TransportError(f"unexpected query response status {status!r}")

    async def update(self, canister_id: Principal, method_name: str, arg: bytes) -> bytes:
        content = self._content("call", canister_id, method_name=method_name, arg=arg)
        rid, body = self._envelope(content)
        logger.debug("call %s.%s (request id %s)", canister_id, method_name, rid.hex())
        await self._post(canister_id, "call", body)
        return await self._poll(canister_id, method_name, rid)

    # --- polling ---

    async def _read_request_status(self, canister_id: Principal, rid: bytes) -> Sequence[Any]:
        content = self._content("read_state", canister_id, paths=[[b"request_status", rid]])
        _, body = self._envelope(content)
        response = await self._post(canister_id, "read_state", body)

        payload = decode_cbor(response.content)
        if not isinstance(payload, Mapping) or "certificate" not in payload:
            raise TransportError("read_state response has no certificate")
        certificate = decode_cbor(payload["certificate"])
        if not isinstance(certificate, Mapping) or "tree" not in certificate:
            raise TransportError("certificate has no hash tree")
        return certificate["tree"]

    async def _poll(self, canister_id: Principal, method_name: str, rid: bytes) -> bytes:
        deadline = time.monotonic() + self._settings.call_timeout_seconds
        delay = self._settings.poll_interval_seconds
        prefix = [b"request_status", rid]

        while True:
            tree = await self._read_request_status(canister_id, rid)
            status = lookup_path(tree, [*prefix, b"status"])

            if status == b"replied":
                reply = lookup_path(tree, [*prefix, b"reply"])
                if reply is None:
                    raise TransportError("request replied but the certificate holds no reply")
                return reply

            if status == b"rejected":
                raw_code = lookup_path(tree, [*prefix, b"reject_code"]) or b"\x00"
                code, _ = decode_uleb128(raw_code)
                message = (lookup_path(tree, [*prefix, b"reject_message"]) or b"").decode("utf-8", "replace")
                raise CallRejected(code, message)

            if status == b"done":
                raise TransportError("the request is done and its reply is no longer available")

            if time.monotonic() + delay > deadline:
                raise TransportError(
                    f"timed out after {self._settings.call_timeout_seconds:.0f}s waiting for "
                    f"{canister_id}.{method_name} to finish"
                )
            logger.debug("request %s is %s, polling again in %.2fs", rid.hex()[:16], status, delay)
            await asyncio.sleep(delay)
            delay = min(delay * 2, self._settings.poll_max_interval_seconds)

    async def status(self) -> dict[str, Any]:
        """`GET /api/v2/status` (usado por `doctor`)."""

        try:
            response = await self._client.get("/api/v2/status")
        except httpx.HTTPError as exc:
            raise TransportError(f"status request failed: {exc}") from exc
        if response.status_code >= 400:
            raise TransportError(f"the replica answered HTTP {response.status_code} to status")
        payload = decode_cbor(response.content)
        if not isinstance(payload, Mapping):
            raise TransportError("status response is not a map")
        return dict(payload)
