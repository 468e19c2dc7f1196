#!/usr/bin/env python3
"""
Loan Ledger Entry Point

Starts the FastAPI server with the configured storage backend.
"""

import sys

import uvicorn

from loan_ledger.api import create_app
from loan_ledger.config import get_config
from loan_ledger.logging_config import setup_logging


def main() -> int:
    config = get_config()
    logger = setup_logging(config.log_level, fmt=config.log_format, log_file=config.log_file)
    logger.info(f"Starting loan ledger API on {config.api_host}:{config.api_port}")

    try:
        uvicorn.run(create_app(), host=config.api_host, port=config.api_port)
    except KeyboardInterrupt:
        logger.info("Shutting down loan ledger API")
    except Exception as e:
        logger.error(f"Error starting server: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
