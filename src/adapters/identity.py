"""Identidades que firman las peticiones al replica.

Responsabilidad:
- Cargar la identidad por defecto de `dfx` (`identity.json` + `identity.pem`).
- Firmar con Ed25519 o ECDSA (secp256k1 / P-256) usando `cryptography`.

No gestiona claves: no las crea, no las cifra ni las rota.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature
from pydantic import BaseModel, Field, ValidationError
from pydantic.config import ConfigDict

from core.config import default_dfx_config_dir
from core.domain.errors import CredentialError
from core.domain.principal import Principal

logger = logging.getLogger(__name__)

ANONYMOUS_IDENTITY_NAME = "anonymous"

_IDENTITY_HINT = "Configure an identity in `dfx` or set DIP721_MINT_IDENTITY_NAME."
_SUPPORTED_CURVES = (ec.SECP256K1, ec.SECP256R1)


class AnonymousIdentity:
    """El principal anónimo: no firma y no envía clave pública."""

    @property
    def public_key_der(self) -> bytes | None:
        return None

    def sender(self) -> Principal:
        return Principal.anonymous()

    def sign(self, message: bytes) -> bytes | None:
        return None


class PemIdentity:
    """Identidad respaldada por una clave privada en PEM."""

    def __init__(self, private_key: Ed25519PrivateKey | ec.EllipticCurvePrivateKey) -> None:
        self._key = private_key
        self._der = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        self._principal = Principal.self_authenticating(self._der)

    @property
    def public_key_der(self) -> bytes | None:
        return self._der

    def sender(self) -> Principal:
        return self._principal

    def sign(self, message: bytes) -> bytes | None:
        if isinstance(self._key, Ed25519PrivateKey):
            return self._key.sign(message)
        # ECDSA: el replica espera r || s (32 bytes cada uno), no DER.
        r, s = decode_dss_signature(self._key.sign(message, ec.ECDSA(hashes.SHA256())))
        return r.to_bytes(32, "big") + s.to_bytes(32, "big")


def load_pem_identity(path: Path) -> PemIdentity:
    """Carga una clave privada PEM sin cifrar."""

    try:
        data = path.read_bytes()
    except OSError as exc:
        raise CredentialError(f"cannot read identity file {path}: {exc}") from exc

    try:
        key = serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise CredentialError(f"{path} does not hold a usable unencrypted private key: {exc}") from exc

    if isinstance(key, ec.EllipticCurvePrivateKey):
        if not isinstance(key.curve, _SUPPORTED_CURVES):
            raise CredentialError(f"{path}: unsupported elliptic curve {key.curve.name}")
    elif not isinstance(key, Ed25519PrivateKey):
        raise CredentialError(f"{path}: only Ed25519 and ECDSA keys can sign requests")

    return PemIdentity(key)


class DfxIdentityConfig(BaseModel):
    """Contenido de `<dfx>/identity.json`."""

    model_config = ConfigDict(extra="ignore")

    default: str = Field(..., min_length=1, description="Nombre de la identidad por defecto.")


class DfxCredentialProvider:
    """Resuelve la identidad con las convenciones en disco de `dfx`."""

    def __init__(self, *, config_dir: Path | None = None, identity_name: str | None = None) -> None:
        self._config_dir = config_dir or default_dfx_config_dir()
        self._identity_name = identity_name

    def identity_name(self) -> str:
        return self._identity_name or self._default_identity_name()

    def load_identity(self) -> AnonymousIdentity | PemIdentity:
        name = self.identity_name()
        if name == ANONYMOUS_IDENTITY_NAME:
            logger.debug("Using the anonymous identity")
            return AnonymousIdentity()

        pem = self._config_dir / "identity" / name / "identity.pem"
        if not pem.is_file():
            error = CredentialError(
                f"identity {name!r} has no plaintext identity.pem "
                "(encrypted and hardware identities are not supported)"
            )
            error.hint = _IDENTITY_HINT
            raise error

        identity = load_pem_identity(pem)
        logger.debug("Loaded identity %s (%s)", name, identity.sender())
        return identity

    def _default_identity_name(self) -> str:
        path = self._config_dir / "identity.json"
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            error = CredentialError(f"cannot read {path}: {exc}")
            error.hint = _IDENTITY_HINT
            raise error from exc

        try:
            return DfxIdentityConfig.model_validate(json.loads(raw)).default
        except (json.JSONDecodeError, ValidationError) as exc:
            raise CredentialError(f"{path} is not a valid dfx identity config: {exc}") from exc
