"""Ensamblado de la metadata del NFT.

Construye el `MetadataRecord` ordenado que acompaña al mint:

1. `locationType` (nat8) y, salvo que el tipo sea 4, `location`
2. `contentHash` (blob) si llega en hex o se calcula del contenido
3. `contentType` (text): explícito > deducido del nombre de archivo > default

Nota: el hash de contenido es siempre SHA-256 (32 bytes).
"""

from __future__ import annotations

import hashlib
import mimetypes
import re
from pathlib import Path

from core.config import DEFAULT_CONTENT_TYPE
from core.domain.errors import MalformedHash, MissingContentHash
from core.domain.models import (
    LocationType,
    MetadataKey,
    MetadataRecord,
    MetadataRecordBuilder,
    MetadataValue,
)
from core.services.location import ResolvedLocation

CONTENT_HASH_ALGORITHM = "sha256"
CONTENT_HASH_LENGTH = 32

_HEX_RE = re.compile(r"(?:[0-9a-fA-F]{2})+")


def decode_content_hash(value: str) -> bytes:
    """Decode an explicit hex hash. Empty, odd-length or non-hex input is rejected."""

    if not _HEX_RE.fullmatch(value):
        raise MalformedHash(f"{value!r} is not a hex-encoded hash")
    return bytes.fromhex(value)


def compute_content_hash(data: bytes) -> bytes:
    return hashlib.new(CONTENT_HASH_ALGORITHM, data).digest()


def infer_content_type(filename: str | Path) -> str | None:
    content_type, _encoding = mimetypes.guess_type(str(filename), strict=False)
    return content_type


def resolve_content_type(
    *,
    mime_type: str | None = None,
    filename: str | Path | None = None,
    default: str = DEFAULT_CONTENT_TYPE,
) -> str:
    if mime_type:
        return mime_type
    if filename is not None:
        guessed = infer_content_type(filename)
        if guessed:
            return guessed
    return default


def assemble_metadata(
    location: ResolvedLocation,
    *,
    sha2: str | None = None,
    content: bytes | None = None,
    sha2_auto: bool = False,
    mime_type: str | None = None,
    filename: str | Path | None = None,
    default_content_type: str = DEFAULT_CONTENT_TYPE,
) -> MetadataRecord:
    builder = MetadataRecordBuilder()
    builder.set(MetadataKey.LOCATION_TYPE, MetadataValue.nat8(int(location.location_type)))
    if location.location is not None:
        builder.set(MetadataKey.LOCATION, location.location)

    if sha2 is not None:
        builder.set(MetadataKey.CONTENT_HASH, MetadataValue.blob(decode_content_hash(sha2)))
    elif sha2_auto and content is not None:
        builder.set(MetadataKey.CONTENT_HASH, MetadataValue.blob(compute_content_hash(content)))

    if location.location_type is LocationType.URI and MetadataKey.CONTENT_HASH not in builder:
        raise MissingContentHash("a content hash is required when the content lives at an external URI")

    content_type = resolve_content_type(
        mime_type=mime_type,
        filename=filename,
        default=default_content_type,
    )
    builder.set(MetadataKey.CONTENT_TYPE, MetadataValue.text(content_type))
    return builder.build()
