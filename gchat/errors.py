# gchat/errors.py

from typing import Optional


class GChatError(Exception):
    pass


class DirectiveError(GChatError):
    """A single in-text placeholder could not be expanded."""


class FileRequestRejected(GChatError):
    """A path asked for by the model failed the security check."""


class TransportError(GChatError):
    """
    The completion API could not be reached or answered with a non-success status.
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429


class ResponseDecodeError(GChatError):
    """The response body does not have the expected chat-completion shape."""


class ConfigError(GChatError):
    pass
