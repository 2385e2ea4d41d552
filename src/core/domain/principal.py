"""Principals del Internet Computer.

Forma textual: base32 de `crc32(raw) || raw`, en minúsculas, sin padding y en
grupos de cinco caracteres separados por guiones.

Nota: el parseo es estricto; el checksum debe coincidir y el texto ya debe
estar en forma canónica.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import zlib
from typing import Any

from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema

from core.domain.errors import MalformedIdentifier

MAX_PRINCIPAL_LENGTH = 29

_SELF_AUTHENTICATING_SUFFIX = b"\x02"
_ANONYMOUS_BYTES = b"\x04"


class Principal:
    """Opaque binary identifier of a canister or a user."""

    __slots__ = ("_raw",)

    def __init__(self, raw: bytes) -> None:
        if len(raw) > MAX_PRINCIPAL_LENGTH:
            raise MalformedIdentifier(
                f"principal is {len(raw)} bytes long, at most {MAX_PRINCIPAL_LENGTH} are allowed"
            )
        self._raw = bytes(raw)

    @classmethod
    def from_text(cls, text: str) -> "Principal":
        canonical = text.strip().lower()
        compact = canonical.replace("-", "").upper()
        padded = compact + "=" * (-len(compact) % 8)
        try:
            decoded = base64.b32decode(padded)
        except (binascii.Error, ValueError) as exc:
            raise MalformedIdentifier(f"{text!r} is not a valid principal: {exc}") from exc

        if len(decoded) < 4:
            raise MalformedIdentifier(f"{text!r} is not a valid principal: too short")

        checksum, raw = decoded[:4], decoded[4:]
        if int.from_bytes(checksum, "big") != zlib.crc32(raw):
            raise MalformedIdentifier(f"{text!r} is not a valid principal: checksum mismatch")

        principal = cls(raw)
        if principal.to_text() != canonical:
            raise MalformedIdentifier(f"{text!r} is not a valid principal: not in canonical form")
        return principal

    @classmethod
    def anonymous(cls) -> "Principal":
        return cls(_ANONYMOUS_BYTES)

    @classmethod
    def self_authenticating(cls, public_key_der: bytes) -> "Principal":
        """Principal derived from a DER-encoded public key."""

        return cls(hashlib.sha224(public_key_der).digest() + _SELF_AUTHENTICATING_SUFFIX)

    def to_text(self) -> str:
        checksum = zlib.crc32(self._raw).to_bytes(4, "big")
        encoded = base64.b32encode(checksum + self._raw).decode("ascii").lower().rstrip("=")
        return "-".join(encoded[i : i + 5] for i in range(0, len(encoded), 5))

    @property
    def is_anonymous(self) -> bool:
        return self._raw == _ANONYMOUS_BYTES

    def __bytes__(self) -> bytes:
        return self._raw

    def __str__(self) -> str:
        return self.to_text()

    def __repr__(self) -> str:
        return f"Principal({self.to_text()!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Principal):
            return NotImplemented
        return self._raw == other._raw

    def __hash__(self) -> int:
        return hash(self._raw)

    @classmethod
    def __get_pydantic_core_schema__(
        cls,
        source_type: Any,
        handler: GetCoreSchemaHandler,
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._coerce,
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )

    @classmethod
    def _coerce(cls, value: Any) -> "Principal":
        if isinstance(value, Principal):
            return value
        if isinstance(value, str):
            try:
                return cls.from_text(value)
            except MalformedIdentifier as exc:
                raise ValueError(str(exc)) from exc
        raise ValueError(f"expected a principal, got {type(value).__name__}")
