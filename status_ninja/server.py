from __future__ import annotations

import os

import uvicorn

from status_ninja.app import create_app
from status_ninja.logging_setup import configure_logging
from status_ninja.settings import load_settings


def main() -> None:
    host = os.getenv("STATUS_NINJA_HOST", "0.0.0.0").strip() or "0.0.0.0"
    port = int(os.getenv("STATUS_NINJA_PORT", "8080"))
    settings = load_settings()
    configure_logging(settings.log_level)
    app = create_app(settings)
    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
