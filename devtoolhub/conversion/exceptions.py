"""Errors raised while talking to the conversion provider."""

from typing import Optional


class ConversionError(Exception):
    """A conversion step failed; the message is safe to show to the user."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, recoverable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.recoverable = recoverable


class ConversionTimeout(ConversionError):
    def __init__(self, message: str = 'Conversion timed out'):
        super().__init__(message, recoverable=True)
