"""Identificadores de contenido (CIDs de IPFS).

Solo se aceptan las formas de texto usadas en la práctica:
- CIDv0: 46 caracteres que empiezan por `Qm` (base58btc de un multihash
  sha2-256).
- CIDv1: cadena multibase con prefijo `b`/`B` (base32), `z` (base58btc) o
  `f`/`F` (base16).

La forma binaria canónica es el multihash en v0 y
`varint(1) || varint(codec) || multihash` en v1.
"""

from __future__ import annotations

import base64

from core.domain.errors import MalformedIdentifier

B58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
B58_MAP = {c: i for i, c in enumerate(B58_ALPHABET)}

_SHA2_256 = 0x12
_SHA2_256_LENGTH = 32


def b58decode(value: str) -> bytes:
    num = 0
    for c in value:
        if c not in B58_MAP:
            raise ValueError(f"invalid base58 character {c!r}")
        num = num * 58 + B58_MAP[c]
    n_pad = len(value) - len(value.lstrip(B58_ALPHABET[0]))
    full = num.to_bytes((num.bit_length() + 7) // 8, "big") if num else b""
    return b"\x00" * n_pad + full


def read_varint(data: bytes, offset: int = 0) -> tuple[int, int]:
    """Unsigned varint (multiformats flavour, at most 9 bytes)."""

    value = 0
    shift = 0
    for i in range(9):
        if offset + i >= len(data):
            raise ValueError("truncated varint")
        byte = data[offset + i]
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, offset + i + 1
        shift += 7
    raise ValueError("varint is longer than 9 bytes")


def _check_multihash(data: bytes, offset: int) -> None:
    _code, offset = read_varint(data, offset)
    length, offset = read_varint(data, offset)
    if len(data) - offset != length:
        raise ValueError(f"multihash digest should be {length} bytes, got {len(data) - offset}")


def _multibase_decode(text: str) -> bytes:
    prefix, body = text[0], text[1:]
    if prefix in ("b", "B"):
        padded = body.upper() + "=" * (-len(body) % 8)
        return base64.b32decode(padded)
    if prefix == "z":
        return b58decode(body)
    if prefix in ("f", "F"):
        return bytes.fromhex(body)
    raise ValueError(f"unsupported multibase prefix {prefix!r}")


def parse_cid(text: str) -> bytes:
    """Parse a CID string into its canonical binary form."""

    value = text.strip()
    if not value:
        raise MalformedIdentifier("empty CID")

    try:
        if len(value) == 46 and value.startswith("Qm"):
            raw = b58decode(value)
            if raw[:2] != bytes([_SHA2_256, _SHA2_256_LENGTH]):
                raise ValueError("CIDv0 must hold a sha2-256 multihash")
            _check_multihash(raw, 0)
            return raw

        raw = _multibase_decode(value)
        version, offset = read_varint(raw)
        if version != 1:
            raise ValueError(f"unsupported CID version {version}")
        _codec, offset = read_varint(raw, offset)
        _check_multihash(raw, offset)
        return raw
    except ValueError as exc:
        raise MalformedIdentifier(f"{text!r} is not a valid CID: {exc}") from exc
