"""
WebSocket server and event handling for the Diamonds trial.
"""

from .events import *
from .server import app

__all__ = ["app"]
