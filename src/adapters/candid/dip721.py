"""Esquema fijo de las llamadas DIP-721 usadas por la herramienta.

```
supportedInterfacesDip721 : () -> (vec InterfaceId) query;
mintDip721 : (principal, vec MetadataPart, blob) -> (variant { Ok : MintReceipt; Err : MintError });
```

Por qué un módulo aparte:
- `wire` sabe de Candid en general; aquí vive el *qué* se envía y se espera,
  traducido desde/hacia los modelos del dominio.
"""

from __future__ import annotations

from typing import Any, Sequence

from pydantic import ValidationError

from adapters.candid.wire import (
    BLOB,
    NAT,
    NAT8,
    NAT16,
    NAT32,
    NAT64,
    NULL,
    PRINCIPAL,
    TEXT,
    Record,
    Variant,
    Vec,
    decode_args,
    encode_args,
    idl_hash,
)
from core.domain.errors import MalformedReply
from core.domain.models import (
    CapabilitySet,
    InterfaceId,
    MetadataPart,
    MetadataPurpose,
    MetadataValueKind,
    MintDenialReason,
    MintDenied,
    MintOutcome,
    MintSucceeded,
)
from core.domain.principal import Principal

INTERFACE_ID = Variant(tuple((interface.value, NULL) for interface in InterfaceId))

METADATA_PURPOSE = Variant(tuple((purpose.value, NULL) for purpose in MetadataPurpose))

METADATA_VAL = Variant(
    (
        (MetadataValueKind.TEXT.value, TEXT),
        (MetadataValueKind.BLOB.value, BLOB),
        (MetadataValueKind.NAT.value, NAT),
        (MetadataValueKind.NAT8.value, NAT8),
        (MetadataValueKind.NAT16.value, NAT16),
        (MetadataValueKind.NAT32.value, NAT32),
        (MetadataValueKind.NAT64.value, NAT64),
    )
)

METADATA_PART = Record(
    (
        ("purpose", METADATA_PURPOSE),
        ("key_val_data", Vec(Record(((0, TEXT), (1, METADATA_VAL))))),
        ("data", BLOB),
    )
)

MINT_ARGS = (PRINCIPAL, Vec(METADATA_PART), BLOB)

MINT_RECEIPT = Record((("token_id", NAT64), ("id", NAT)))
MINT_ERROR = Variant(tuple((reason.value, NULL) for reason in MintDenialReason))
MINT_RESULT = Variant((("Ok", MINT_RECEIPT), ("Err", MINT_ERROR)))

_INTERFACES_BY_ID = {idl_hash(interface.value): interface for interface in InterfaceId}
_DENIALS_BY_ID = {idl_hash(reason.value): reason for reason in MintDenialReason}
_OK = idl_hash("Ok")
_ERR = idl_hash("Err")
_TOKEN_ID = idl_hash("token_id")
_TRANSACTION_ID = idl_hash("id")


def encode_no_args() -> bytes:
    return encode_args((), ())


def _part_value(part: MetadataPart) -> dict[str, Any]:
    return {
        "purpose": (part.purpose.value, None),
        "key_val_data": [
            {0: key.value, 1: (value.kind.value, value.value)}
            for key, value in part.key_val_data.entries
        ],
        "data": part.data,
    }


def encode_mint_args(owner: Principal, parts: Sequence[MetadataPart], content: bytes) -> bytes:
    """Argumentos de `mintDip721(owner, parts, content)`."""

    return encode_args(MINT_ARGS, (owner, [_part_value(p) for p in parts], content))


def _first_arg(reply: bytes, *, method: str) -> Any:
    try:
        values = decode_args(reply)
    except ValueError as exc:
        raise MalformedReply(f"could not decode the reply of {method}: {exc}") from exc
    if not values:
        raise MalformedReply(f"the reply of {method} carries no value")
    return values[0]


def decode_supported_interfaces(reply: bytes) -> CapabilitySet:
    """Decodifica `vec InterfaceId`."""

    value = _first_arg(reply, method="supportedInterfacesDip721")
    if not isinstance(value, list):
        raise MalformedReply("supportedInterfacesDip721 did not return a vector")

    interfaces: set[InterfaceId] = set()
    for item in value:
        if not isinstance(item, tuple):
            raise MalformedReply("supportedInterfacesDip721 returned a non-variant element")
        tag, _payload = item
        if tag not in _INTERFACES_BY_ID:
            raise MalformedReply(f"unknown interface tag {tag} in supportedInterfacesDip721")
        interfaces.add(_INTERFACES_BY_ID[tag])
    return frozenset(interfaces)


def decode_mint_result(reply: bytes) -> MintOutcome:
    """Decodifica `variant { Ok : MintReceipt; Err : MintError }`.

    `Err` se devuelve como `MintDenied`: es un resultado, no un fallo.
    """

    value = _first_arg(reply, method="mintDip721")
    if not isinstance(value, tuple):
        raise MalformedReply("mintDip721 did not return a result variant")

    tag, payload = value
    if tag == _OK:
        if not isinstance(payload, dict) or _TOKEN_ID not in payload or _TRANSACTION_ID not in payload:
            raise MalformedReply("mintDip721 receipt lacks token_id or id")
        try:
            return MintSucceeded(token_id=payload[_TOKEN_ID], transaction_id=payload[_TRANSACTION_ID])
        except ValidationError as exc:
            raise MalformedReply(f"mintDip721 receipt is out of range: {exc}") from exc
    if tag == _ERR:
        if not isinstance(payload, tuple) or payload[0] not in _DENIALS_BY_ID:
            raise MalformedReply("mintDip721 returned an unknown error")
        return MintDenied(reason=_DENIALS_BY_ID[payload[0]])
    raise MalformedReply(f"unknown result tag {tag} in the reply of mintDip721")
