"""Errors raised around the chat flow.

The intent router itself never raises; these are used by the chat service and
mapped to HTTP responses by the API.
"""


class ChatError(Exception):
    """Base class for chat errors."""
    pass


class InvalidInput(ChatError):
    """Message was empty or blank after trimming."""
    pass


class CollaboratorUnavailable(ChatError):
    """A complaint backend call failed or answered unsuccessfully."""

    def __init__(self, operation: str, detail: str = "") -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed: {detail}" if detail else f"{operation} failed")


class NoMatchingComplaint(ChatError):
    """Lookup came back empty."""
    pass


class ConversationNotFound(ChatError, ValueError):
    """No chat session with the given id."""
    pass
