"""Entry point for serving the HustleVillage API.

Intended to be executed from the project root, for example under Docker
or a process manager where you only specify a single Python file to
run.  Configuration is read from environment variables (see
``hustle_village_api/app/core/config.py``).

Usage:
    python run.py
"""
import logging
import os

from uvicorn import Config, Server


def main() -> None:
    """Start the API using Uvicorn.

    Host and port are read from environment variables `HOST` and
    `PORT`. Defaults are `0.0.0.0` and `8000`.
    """
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    config = Config(
        app="hustle_village_api.app.main:app",
        host=host,
        port=port,
        reload=False,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
    Server(config).run()


if __name__ == "__main__":
    try:
        main()
    except (KeyboardInterrupt, SystemExit):
        logging.getLogger(__name__).info("Server stopped")
