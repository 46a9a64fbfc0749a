"""Root logger configuration for the CLI and the API server."""
from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_handler: RichHandler | None = None


def setup_logging(level: str = "INFO", console: Console | None = None) -> None:
    """Install a RichHandler on the root logger, replacing the one from a previous call."""
    global _handler

    root = logging.getLogger()
    root.setLevel(level.upper())
    if _handler is not None:
        root.removeHandler(_handler)

    _handler = RichHandler(console=console or Console(stderr=True), show_path=False, rich_tracebacks=True)
    _handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root.addHandler(_handler)


def reset_logging() -> None:
    """Remove the handler installed by ``setup_logging``."""
    global _handler

    if _handler is not None:
        logging.getLogger().removeHandler(_handler)
        _handler = None


__all__ = ["setup_logging", "reset_logging"]
