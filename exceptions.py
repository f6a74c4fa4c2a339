class ValidationFailure(ValueError):
    """Input rejected back to the caller: empty paragraph, empty answer, bad import."""


class OutOfRange(IndexError):
    """Session read or advanced past its last sentence. A controller bug."""


class InvalidTransition(RuntimeError):
    """Action not allowed in the current quiz state."""
