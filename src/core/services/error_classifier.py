"""Clasificación de rechazos de la capa de llamadas.

Por qué solo el código:
- El código 3 (`DESTINATION_INVALID`) es lo que responde el replica cuando el
  canister no exporta el método, pero cubre también otros problemas del
  destino. El mensaje no es estable, así que nunca se inspecciona.

Nota: un código 3 ajeno (p. ej. canister detenido) también se reporta como
"no soportado"; el rechazo original viaja siempre con el error (atributo
`rejection` y `__cause__` cuando se lanza con `from`).
"""

from __future__ import annotations

from core.domain.errors import (
    CallRejected,
    ClassifiedRejection,
    ProtocolError,
    RejectCode,
    UnsupportedOperation,
    UnsupportedService,
)

_UNSUPPORTED_HINTS: dict[type[ClassifiedRejection], str] = {
    UnsupportedService: "This canister may not implement the DIP-721 interface.",
    UnsupportedOperation: (
        "This canister may not implement minting. Not every DIP-721 canister does; "
        "DFINITY's dip721-nft-container does."
    ),
}


def classify_rejection(
    rejection: CallRejected,
    *,
    context: str,
    unsupported: type[ClassifiedRejection] = UnsupportedService,
) -> ClassifiedRejection:
    """Map a raw rejection to the error the caller should raise.

    `context` describes the call site (e.g. "canister X does not appear to be
    a DIP-721 NFT canister") and prefixes the message of the unsupported
    error; any other code becomes a `ProtocolError` carrying the original
    message verbatim.
    """

    if rejection.code == RejectCode.DESTINATION_INVALID:
        return unsupported(
            f"{context}: {rejection}",
            rejection=rejection,
            hint=_UNSUPPORTED_HINTS.get(unsupported),
        )
    return ProtocolError(str(rejection), rejection=rejection)
