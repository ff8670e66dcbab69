"""Application entry point for the card login identity provider."""
from __future__ import annotations

import logging
import os

from .config import app, parse_debug_mode

# Import the route modules so their decorators register endpoints with Flask.
from .routes import authentication, general  # noqa: F401


def _configure_logging() -> None:
    level = logging.DEBUG if parse_debug_mode(app.config.get("MYNUMBERCARD_DEBUG_MODE")) else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.logger.setLevel(level)


def main() -> None:
    _configure_logging()
    app.run(
        host=os.environ.get("MYNUMBERCARD_HOST", "127.0.0.1"),
        port=int(os.environ.get("MYNUMBERCARD_PORT", "5000")),
    )


__all__ = ["app", "main"]


if __name__ == "__main__":  # pragma: no cover - convenience script entry point.
    main()
