#!/usr/bin/env python3
"""
Entry point for the Movie Watchlist API.
Runs uvicorn programmatically on the port given by $PORT (default 8080).
"""
import logging
import os
import sys

import uvicorn

# Configure basic logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def main():
    """Main entry point for the application"""
    try:
        port = int(os.environ.get("PORT", 8080))
        host = os.environ.get("HOST", "0.0.0.0")
        logger.info(f"Python version: {sys.version}")
        logger.info(f"Starting server on {host}:{port}")

        uvicorn.run(
            "watchlist.server:app",
            host=host,
            port=port,
            log_level=os.environ.get("LOG_LEVEL", "info").lower(),
        )

    except Exception as e:
        logger.error(f"Error starting application: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
