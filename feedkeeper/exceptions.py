"""Exception types for feedkeeper."""

from typing import Optional


class FeedError(Exception):
    """Base class for errors raised while acquiring a feed."""


class NetworkError(FeedError):
    """Raised when a feed cannot be fetched or the server answers with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(FeedError):
    """Raised when fetched content cannot be turned into a Source."""


class MissingTitleError(ParseError):
    """The document has no channel-level <title>."""


class DecodingError(ParseError):
    """The response body is not valid UTF-8."""


class UnsupportedFormatError(ParseError):
    """No extraction strategy is implemented for this wire format."""


class MalformedFeedError(ParseError):
    """The content is structurally unusable."""

    def __init__(self, detail: str):
        super().__init__(f"Malformed feed: {detail}")
        self.detail = detail
