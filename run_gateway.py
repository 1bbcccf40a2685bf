#!/usr/bin/env python
"""
Trading Gateway API Server Runner.

Usage:
    python run_gateway.py

Or with PM2:
    pm2 start run_gateway.py --interpreter python
"""

import os
import sys
import logging
import uvicorn

# Setup logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger(__name__)


def main():
    """Run the gateway API server."""
    host = os.getenv("GATEWAY_HOST", "0.0.0.0")
    port = int(os.getenv("GATEWAY_PORT", os.getenv("PORT", "8000")))
    reload = os.getenv("ENVIRONMENT", "production") == "development"

    logger.info(f"Starting Trading Gateway on {host}:{port}")

    try:
        uvicorn.run(
            "trading_gateway.api:app",
            host=host,
            port=port,
            reload=reload,
            log_level="info",
            access_log=True,
        )
    except Exception as e:
        logger.error(f"Failed to start gateway: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
