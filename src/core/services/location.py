"""Resolución de la ubicación del contenido del NFT.

Responsabilidad:
- Elegir una sola `LocationSource` a partir de las opciones (exclusivas).
- Convertirla al par `(locationType, location)` que guarda la metadata.

Nota:
- Las URIs se validan contra la sintaxis de RFC 3986 tal cual llegan: no se
  codifican espacios ni caracteres no ASCII. Nunca se comprueba que la URI
  sea alcanzable.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from pydantic import AnyUrl, TypeAdapter, ValidationError

from core.domain.cid import parse_cid
from core.domain.errors import ConflictingLocation, InvalidURI
from core.domain.models import (
    ContainerReference,
    ContentAddress,
    ExternalUri,
    LocationSource,
    LocationType,
    MetadataValue,
    NoLocation,
)
from core.domain.principal import Principal

_URI_ADAPTER: TypeAdapter[AnyUrl] = TypeAdapter(AnyUrl)

# Gramática `URI` de RFC 3986 (sección 3), solo ASCII.
_PCT = r"%[0-9A-Fa-f]{2}"
_UNRESERVED_SUB = r"A-Za-z0-9\-._~!$&'()*+,;="
_PCHAR = rf"(?:[{_UNRESERVED_SUB}:@]|{_PCT})"
_SEGMENT_NZ = rf"{_PCHAR}+"
_AUTHORITY = (
    rf"(?:(?:[{_UNRESERVED_SUB}:]|{_PCT})*@)?"
    rf"(?:\[(?:[0-9A-Fa-f:.]+|v[0-9A-Fa-f]+\.[{_UNRESERVED_SUB}:]+)\]|(?:[{_UNRESERVED_SUB}]|{_PCT})*)"
    r"(?::[0-9]*)?"
)
_HIER_PART = (
    rf"(?://{_AUTHORITY}(?:/{_PCHAR}*)*"
    rf"|/(?:{_SEGMENT_NZ}(?:/{_PCHAR}*)*)?"
    rf"|{_SEGMENT_NZ}(?:/{_PCHAR}*)*"
    r"|)"
)
_URI_RE = re.compile(
    rf"[A-Za-z][A-Za-z0-9+\-.]*:{_HIER_PART}(?:\?(?:{_PCHAR}|[/?])*)?(?:#(?:{_PCHAR}|[/?])*)?"
)


@dataclass(frozen=True)
class ResolvedLocation:
    location_type: LocationType
    location: MetadataValue | None = None


def select_location_source(
    *,
    ipfs_location: str | None = None,
    asset_canister: Principal | None = None,
    uri: str | None = None,
) -> LocationSource:
    """Build the single location variant from the mutually exclusive options."""

    given = {
        name: value
        for name, value in (
            ("ipfs_location", ipfs_location),
            ("asset_canister", asset_canister),
            ("uri", uri),
        )
        if value is not None
    }
    if len(given) > 1:
        raise ConflictingLocation(
            f"only one content location may be given, got {', '.join(sorted(given))}"
        )

    if ipfs_location is not None:
        return ContentAddress(cid=ipfs_location)
    if asset_canister is not None:
        return ContainerReference(canister=asset_canister)
    if uri is not None:
        return ExternalUri(uri=uri)
    return NoLocation()


def validate_uri(uri: str) -> str:
    """Syntactic check only; reachability is never tested."""

    if _URI_RE.fullmatch(uri) is None:
        raise InvalidURI(f"{uri!r} is not a valid URI: it does not follow the RFC 3986 syntax")
    try:
        _URI_ADAPTER.validate_python(uri)
    except ValidationError as exc:
        reason = exc.errors()[0]["msg"] if exc.errors() else str(exc)
        raise InvalidURI(f"{uri!r} is not a valid URI: {reason}") from exc
    return uri


def resolve_location(source: LocationSource) -> ResolvedLocation:
    if isinstance(source, ContentAddress):
        return ResolvedLocation(LocationType.IPFS, MetadataValue.blob(parse_cid(source.cid)))
    if isinstance(source, ContainerReference):
        return ResolvedLocation(LocationType.ASSET_CANISTER, MetadataValue.text(str(source.canister)))
    if isinstance(source, ExternalUri):
        return ResolvedLocation(LocationType.URI, MetadataValue.text(validate_uri(source.uri)))
    return ResolvedLocation(LocationType.NONE)
