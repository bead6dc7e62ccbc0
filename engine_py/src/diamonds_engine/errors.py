# engine_py/src/diamonds_engine/errors.py

from .constants import ERROR_STORE


class GameError(Exception):
    """Base exception for game-related errors."""
    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class StoreError(GameError):
    """Transient failure talking to the shared store. Safe to retry."""
    def __init__(self, message: str):
        super().__init__(ERROR_STORE, message)


class CardFormatError(GameError):
    """A persisted card did not match any known card shape."""
    def __init__(self, message: str):
        super().__init__("INVALID_CARD", message)


# Helper function to raise common errors
def raise_error(code: str, message: str):
    raise GameError(code, message)
