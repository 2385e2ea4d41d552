"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Permite que adaptadores (transporte HTTP, identidades) lean config de forma
  consistente.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONTENT_TYPE = "application/octet-stream"

NETWORK_URLS: dict[str, str] = {
    "local": "http://localhost:4943",
    "ic": "https://ic0.app",
}


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario (cross-platform, sin dependencias)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "dip721-mint"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "dip721-mint"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "dip721-mint"
    return Path.home() / ".config" / "dip721-mint"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def default_dfx_config_dir() -> Path:
    """Ubicación de la configuración de `dfx` (identidades)."""

    return Path.home() / ".config" / "dfx"


def resolve_network_url(network: str) -> str:
    """`local` e `ic` son alias; cualquier otro valor se usa como URL."""

    return NETWORK_URLS.get(network.strip(), network.strip())


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str | None]) -> Path:
    """Escribe/actualiza variables en el .env global del usuario."""

    env_path = get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# dip721-mint user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Configuración central de la aplicación.

    Por qué pydantic-settings:
    - Tipado + validación en el borde (env vars) sin ensuciar el Core con lógica.
    - Un único contrato de configuración para CLI/adapters.
    """

    model_config = SettingsConfigDict(
        env_prefix="DIP721_MINT_",
        extra="ignore",
        case_sensitive=False,
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout por request HTTP al replica (segundos).",
    )
    user_agent: str = Field(
        default="dip721-mint/0.1",
        min_length=1,
        description="User-Agent de las peticiones al replica.",
    )

    poll_interval_seconds: float = Field(
        default=0.5,
        gt=0,
        description="Espera inicial entre consultas de estado de una llamada update.",
    )
    poll_max_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Espera máxima entre consultas (backoff exponencial).",
    )
    call_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Tiempo máximo esperando la finalidad de una llamada update.",
    )
    ingress_expiry_seconds: float = Field(
        default=240.0,
        gt=0,
        le=300,
        description="Validez de cada petición firmada (el replica acepta hasta 5 min).",
    )

    default_network: str = Field(
        default="ic",
        min_length=1,
        description="Red por defecto para `doctor` ('ic', 'local' o una URL).",
    )
    dfx_config_dir: Path | None = Field(
        default=None,
        description="Directorio de configuración de dfx (por defecto ~/.config/dfx).",
    )
    identity_name: str | None = Field(
        default=None,
        description="Identidad de dfx a usar en lugar de la marcada como default.",
    )

    default_content_type: str = Field(
        default=DEFAULT_CONTENT_TYPE,
        min_length=1,
        description="MIME type cuando no se indica ni se puede inferir.",
    )
    log_level: str = Field(
        default="WARNING",
        description="Nivel de logging (DEBUG, INFO, WARNING...).",
    )
