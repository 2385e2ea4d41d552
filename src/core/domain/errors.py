"""Taxonomía de errores del dominio.

Por qué una jerarquía propia:
- La CLI distingue errores de entrada (se reportan al instante) de errores
  remotos (llevan código/mensaje original y una pista de remediación).
- Los adaptadores traducen excepciones de librerías (httpx, cbor2,
  cryptography) a estos tipos con `raise ... from exc`.

Nota: `MintDenied` NO es un error; es un resultado terminal esperado y vive en
`core.domain.models`.
"""

from __future__ import annotations

from enum import IntEnum


class RejectCode(IntEnum):
    """Códigos de rechazo de la capa de llamadas del Internet Computer."""

    SYS_FATAL = 1
    SYS_TRANSIENT = 2
    DESTINATION_INVALID = 3
    CANISTER_REJECT = 4
    CANISTER_ERROR = 5


class MintToolError(Exception):
    """Base de todos los errores que la CLI sabe presentar."""

    hint: str | None = None


class InputValidationError(MintToolError):
    """Entrada inválida o contradictoria. Nunca se reintenta."""


class ConflictingLocation(InputValidationError):
    """Se indicó más de una ubicación de contenido."""


class MalformedIdentifier(InputValidationError):
    """Un identificador (CID o principal) no tiene una codificación válida."""


class InvalidURI(InputValidationError):
    """La URI externa no es sintácticamente válida."""


class MalformedHash(InputValidationError):
    """El hash de contenido explícito no es hexadecimal válido."""


class MissingContentHash(InputValidationError):
    """Contenido externo sin hash: no sería verificable."""


class CredentialError(MintToolError):
    """No se pudo cargar la identidad que firma las llamadas."""


class RemoteError(MintToolError):
    """Fallo en la interacción con el servicio remoto."""


class CallRejected(RemoteError):
    """Rechazo estructurado devuelto por la capa de transporte."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"the replica rejected the call (reject code {code}): {message}")
        self.code = code
        self.message = message

    @property
    def reject_code(self) -> RejectCode | None:
        try:
            return RejectCode(self.code)
        except ValueError:
            return None


class ClassifiedRejection(RemoteError):
    """Rechazo reinterpretado por el clasificador; conserva el original."""

    def __init__(self, message: str, *, rejection: CallRejected, hint: str | None = None) -> None:
        super().__init__(message)
        self.rejection = rejection
        self.hint = hint


class UnsupportedService(ClassifiedRejection):
    """El canister no expone la interfaz de consulta esperada."""


class UnsupportedOperation(ClassifiedRejection):
    """El canister no expone la operación de minteo."""


class ProtocolError(ClassifiedRejection):
    """Cualquier otro rechazo remoto, reportado tal cual."""


class CapabilityMissing(RemoteError):
    """El conjunto de capacidades no incluye la requerida."""

    def __init__(self, message: str, *, capability: str) -> None:
        super().__init__(message)
        self.capability = capability


class MalformedReply(RemoteError):
    """La respuesta no encaja con el esquema fijo de la llamada."""


class TransportError(RemoteError):
    """Fallo HTTP, sobre CBOR inválido o timeout esperando finalidad."""
