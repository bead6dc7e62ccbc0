"""FastAPI application entry point for the Diamonds trial engine"""

import logging
import os

from .ws.server import app

logging.basicConfig(level=getattr(logging, os.getenv("LOG_LEVEL", "info").upper(), logging.INFO))
logger = logging.getLogger(__name__)


@app.get("/")
async def root():
    return {"message": "Diamonds Trial Engine", "version": "1.0.0"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
