"""
helped.api.__main__ — Serve the HTTP adapter
=============================================

Usage::

    python -m helped.api

Reads ``.env`` (``DATABASE_URL``, ``API_HOST``) and ``config.yaml``
(``api_port``) and runs the app under uvicorn.
"""

from __future__ import annotations

import logging
import os

import uvicorn
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("helped")


def main() -> None:
    from helped.api.deps import get_config

    cfg = get_config()
    host = os.getenv("API_HOST", "127.0.0.1")
    logger.info("Starting Helped API on %s:%d", host, cfg.api_port)
    uvicorn.run("helped.api.main:app", host=host, port=cfg.api_port, log_config=None)


if __name__ == "__main__":
    main()
