"""Helpers de logging.

Por qué así:
- Cada módulo usa su logger (`logging.getLogger(__name__)`); la CLI instala el
  handler una sola vez.
- Se renderiza con Rich en stderr para no mezclarse con la salida del comando.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: int | str = logging.WARNING) -> None:
    """Configure default logging if no handlers are present."""

    root = logging.getLogger()
    if root.handlers:
        return

    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.WARNING

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=False,
    )
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=[handler],
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
