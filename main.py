"""
Production entrypoint for the editorial submission portal.

Binds to 0.0.0.0:$PORT.
"""

import logging
import os

import uvicorn

from utils.config import Config
from utils.logging_setup import configure_logging

if __name__ == "__main__":
    config = Config.load()
    configure_logging(config.log_level)
    port = int(os.getenv("PORT", str(config.port)))
    logging.getLogger(__name__).info("Starting editorial portal on port %d", port)

    # Import app factory here to ensure clean module loading
    from web.app import create_app

    uvicorn.run(create_app(config), host="0.0.0.0", port=port)
