#!/usr/bin/env python3
"""Startup script for the Diamonds trial engine"""

import logging
import os

import uvicorn

logger = logging.getLogger(__name__)


def main():
    port = int(os.getenv("PORT", 8000))
    host = os.getenv("HOST", "0.0.0.0")
    session_id = os.getenv("DIAMONDS_SESSION_ID", "diamonds")

    logging.basicConfig(level=logging.INFO)
    logger.info(f"Starting Diamonds engine for session {session_id} on {host}:{port}")
    logger.info(f"Health check available at: http://{host}:{port}/health")
    logger.info(f"WebSocket endpoint: ws://{host}:{port}/ws")

    uvicorn.run(
        "diamonds_engine.main:app",
        host=host,
        port=port,
        reload=os.getenv("RELOAD", "false").lower() == "true",
        log_level=os.getenv("LOG_LEVEL", "info").lower()
    )


if __name__ == "__main__":
    main()
