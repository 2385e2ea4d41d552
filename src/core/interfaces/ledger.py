"""Contratos con el servicio remoto (ledger/canister) y con las credenciales.

Por qué Protocol:
- Define un contrato estructural (duck typing) sin herencia rígida.
- El Core solo necesita "ejecuta esta consulta/actualización y devuélveme los
  bytes de respuesta o un rechazo"; HTTP, CBOR, firma y polling quedan fuera.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.domain.principal import Principal


@runtime_checkable
class LedgerTransport(Protocol):
    """Ejecuta llamadas contra un canister remoto.

    Reglas de diseño:
    - Ambos métodos son asíncronos porque hacen I/O (HTTP).
    - `update` no vuelve hasta que la llamada alcanza un estado terminal.
    - Un rechazo de la capa de llamadas se señala con
      `core.domain.errors.CallRejected` (código + mensaje).
    """

    async def query(self, canister_id: Principal, method_name: str, arg: bytes) -> bytes:
        """Consulta de solo lectura; devuelve los bytes Candid de la respuesta."""

        ...

    async def update(self, canister_id: Principal, method_name: str, arg: bytes) -> bytes:
        """Llamada que cambia estado; espera a la finalidad y devuelve la respuesta."""

        ...


@runtime_checkable
class SigningIdentity(Protocol):
    """Identidad que firma las peticiones (o anónima, que no firma)."""

    @property
    def public_key_der(self) -> bytes | None: ...

    def sender(self) -> Principal: ...

    def sign(self, message: bytes) -> bytes | None: ...


@runtime_checkable
class CredentialProvider(Protocol):
    """Fuente de la identidad; desacopla el Core de convenciones en disco."""

    def load_identity(self) -> SigningIdentity: ...
