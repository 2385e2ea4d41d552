"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Nos da validación estricta (rangos de enteros, tipos cerrados) y modelos
  inmutables sin acoplar el Core a librerías de I/O.
- Los valores de metadatos son una unión etiquetada cerrada: el esquema remoto
  solo entiende esos tipos y esas claves.

Nota:
- Estos modelos describen *qué* se mintea, no *cómo* viaja por la red.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, StrictBytes, StrictInt, StrictStr, model_validator
from pydantic.config import ConfigDict

from core.domain.principal import Principal


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# --- Location --------------------------------------------------------------


class LocationType(IntEnum):
    """Código `locationType` del estándar DIP-721."""

    IPFS = 1
    ASSET_CANISTER = 2
    URI = 3
    NONE = 4


class ContentAddress(_Frozen):
    """Contenido alojado en IPFS, identificado por su CID."""

    kind: Literal["content_address"] = "content_address"
    cid: str = Field(..., min_length=1, description="CID en forma textual (v0 o v1).")


class ContainerReference(_Frozen):
    """Contenido servido por un asset canister."""

    kind: Literal["container_reference"] = "container_reference"
    canister: Principal = Field(..., description="Principal del asset canister.")


class ExternalUri(_Frozen):
    """Contenido en la web; exige hash para ser verificable."""

    kind: Literal["external_uri"] = "external_uri"
    uri: str = Field(..., min_length=1, description="URI del recurso.")


class NoLocation(_Frozen):
    kind: Literal["none"] = "none"


LocationSource = Annotated[
    Union[ContentAddress, ContainerReference, ExternalUri, NoLocation],
    Field(discriminator="kind"),
]


# --- Metadata --------------------------------------------------------------


class MetadataKey(str, Enum):
    """Claves que entiende la llamada de minteo. No hay otras."""

    LOCATION_TYPE = "locationType"
    LOCATION = "location"
    CONTENT_HASH = "contentHash"
    CONTENT_TYPE = "contentType"


class MetadataValueKind(str, Enum):
    """Constructores del variant `MetadataVal` en el wire."""

    TEXT = "TextContent"
    BLOB = "BlobContent"
    NAT = "NatContent"
    NAT8 = "Nat8Content"
    NAT16 = "Nat16Content"
    NAT32 = "Nat32Content"
    NAT64 = "Nat64Content"

    @property
    def bits(self) -> int | None:
        return _NAT_BITS.get(self)


_NAT_BITS: dict[MetadataValueKind, int] = {
    MetadataValueKind.NAT: 128,
    MetadataValueKind.NAT8: 8,
    MetadataValueKind.NAT16: 16,
    MetadataValueKind.NAT32: 32,
    MetadataValueKind.NAT64: 64,
}


class MetadataValue(_Frozen):
    """Valor tipado de metadatos (texto, bytes o natural de ancho fijo)."""

    kind: MetadataValueKind
    value: Union[StrictStr, StrictBytes, StrictInt]

    @model_validator(mode="after")
    def _check_kind(self) -> "MetadataValue":
        if self.kind is MetadataValueKind.TEXT:
            if not isinstance(self.value, str):
                raise ValueError("TextContent holds text")
        elif self.kind is MetadataValueKind.BLOB:
            if not isinstance(self.value, bytes):
                raise ValueError("BlobContent holds raw bytes")
        else:
            bits = self.kind.bits
            if not isinstance(self.value, int) or isinstance(self.value, bool):
                raise ValueError(f"{self.kind.value} holds an unsigned integer")
            if not 0 <= self.value < (1 << bits):
                raise ValueError(f"{self.kind.value} must fit in {bits} unsigned bits")
        return self

    @classmethod
    def text(cls, value: str) -> "MetadataValue":
        return cls(kind=MetadataValueKind.TEXT, value=value)

    @classmethod
    def blob(cls, value: bytes) -> "MetadataValue":
        return cls(kind=MetadataValueKind.BLOB, value=bytes(value))

    @classmethod
    def nat(cls, value: int, *, bits: int = 128) -> "MetadataValue":
        kinds = {b: k for k, b in _NAT_BITS.items()}
        if bits not in kinds:
            raise ValueError(f"unsupported width {bits}, expected one of {sorted(kinds)}")
        return cls(kind=kinds[bits], value=value)

    @classmethod
    def nat8(cls, value: int) -> "MetadataValue":
        return cls.nat(value, bits=8)


class MetadataRecord(_Frozen):
    """Mapa ordenado clave -> valor tipado.

    Se construye con `MetadataRecordBuilder`; el orden de inserción se conserva
    hasta el wire.
    """

    entries: tuple[tuple[MetadataKey, MetadataValue], ...] = ()

    @model_validator(mode="after")
    def _unique_keys(self) -> "MetadataRecord":
        keys = [key for key, _ in self.entries]
        if len(keys) != len(set(keys)):
            raise ValueError("metadata keys must be unique")
        return self

    def get(self, key: MetadataKey) -> MetadataValue | None:
        for k, v in self.entries:
            if k == key:
                return v
        return None

    def keys(self) -> list[MetadataKey]:
        return [key for key, _ in self.entries]

    def __contains__(self, key: object) -> bool:
        return key in self.keys()

    def __len__(self) -> int:
        return len(self.entries)

    def as_dict(self) -> dict[str, Any]:
        """Vista plana `{clave: valor}` (útil para UI y tests)."""

        return {key.value: value.value for key, value in self.entries}


class MetadataRecordBuilder:
    """Constructor incremental de `MetadataRecord`.

    Reasignar una clave reemplaza el valor sin moverla de posición.
    """

    def __init__(self) -> None:
        self._entries: dict[MetadataKey, MetadataValue] = {}

    def set(self, key: MetadataKey | str, value: MetadataValue) -> "MetadataRecordBuilder":
        self._entries[MetadataKey(key)] = value
        return self

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def build(self) -> MetadataRecord:
        return MetadataRecord(entries=tuple(self._entries.items()))


class MetadataPurpose(str, Enum):
    PREVIEW = "Preview"
    RENDERED = "Rendered"


class MetadataPart(_Frozen):
    """Una parte de metadatos tal y como la recibe `mintDip721`."""

    purpose: MetadataPurpose = MetadataPurpose.RENDERED
    key_val_data: MetadataRecord
    data: bytes = b""


# --- Capabilities ----------------------------------------------------------


class InterfaceId(str, Enum):
    """Interfaces opcionales que un canister DIP-721 puede declarar."""

    APPROVAL = "Approval"
    TRANSACTION_HISTORY = "TransactionHistory"
    MINT = "Mint"
    BURN = "Burn"
    TRANSFER_NOTIFICATION = "TransferNotification"


CapabilitySet = frozenset[InterfaceId]


# --- Outcome ---------------------------------------------------------------


class MintDenialReason(str, Enum):
    UNAUTHORIZED = "Unauthorized"

    def describe(self) -> str:
        return _DENIAL_MESSAGES[self]


_DENIAL_MESSAGES: dict[MintDenialReason, str] = {
    MintDenialReason.UNAUTHORIZED: "You aren't authorized as a custodian of that canister.",
}


class MintSucceeded(_Frozen):
    """Recibo de un minteo aceptado."""

    status: Literal["minted"] = "minted"
    token_id: int = Field(..., ge=0, lt=1 << 64, description="Identificador del token (nat64).")
    transaction_id: int = Field(..., ge=0, lt=1 << 128, description="Identificador de la transacción (nat).")


class MintDenied(_Frozen):
    """Denegación a nivel de aplicación: resultado terminal, no excepción."""

    status: Literal["denied"] = "denied"
    reason: MintDenialReason

    @property
    def message(self) -> str:
        return self.reason.describe()


MintOutcome = Annotated[Union[MintSucceeded, MintDenied], Field(discriminator="status")]
