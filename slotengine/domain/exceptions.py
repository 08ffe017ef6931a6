"""
Domain-specific exception hierarchy for the slot engine.
"""


class SlotEngineError(Exception):
    """Base class for all engine-level errors."""


class InvalidInputError(SlotEngineError, ValueError):
    """Raised when a value object is constructed from malformed data."""


class StoreUnavailableError(SlotEngineError):
    """Raised when a schedule, booking or provider store cannot be read."""


class NotFoundError(SlotEngineError):
    """Raised when a referenced provider, member or service does not exist."""
