"""Errors raised by the stateless tools."""


class ToolInputError(ValueError):
    """Input rejected by a tool; the message is safe to show inline."""

    def __init__(self, message: str, *, field: str = ''):
        super().__init__(message)
        self.field = field
