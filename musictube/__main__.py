"""Application entry point for running with ``python -m musictube``.

Reads the standard ``HOST``/``PORT`` environment variables used by PaaS
platforms and passes them to uvicorn.  ``UVICORN_RELOAD=1`` enables automatic
reloads during local development; ``LOG_LEVEL`` sets the uvicorn log level.
"""
from __future__ import annotations

import os

import uvicorn


def _strtobool(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def main() -> None:
    """Run the FastAPI app under uvicorn with sensible defaults."""

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    reload = _strtobool(os.getenv("UVICORN_RELOAD"))
    log_level = os.getenv("LOG_LEVEL", "info").strip().lower() or "info"

    uvicorn.run(
        "musictube.api:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


if __name__ == "__main__":
    main()
