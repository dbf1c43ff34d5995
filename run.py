#!/usr/bin/env python3
"""
Retail Banking Integration Entry Point

Starts the FastAPI server with settings from BANK_* environment variables.
"""

import sys

from retail_banking.api import run_server
from retail_banking.config import get_config
from retail_banking.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(config.log_level, log_format=config.log_format)

    logger.info("Starting retail banking integration API on %s:%s", config.api_host, config.api_port)
    logger.info("Storage: %s", config.database_url)

    try:
        run_server(
            host=config.api_host,
            port=config.api_port,
            workers=config.api_workers,
            log_level=config.log_level.lower()
        )
    except KeyboardInterrupt:
        logger.info("Shutting down retail banking integration API")
    except Exception as e:
        logger.error("Error starting server: %s", e)
        sys.exit(1)
