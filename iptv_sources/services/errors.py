"""
Exception hierarchy for the source layer.

Each component raises its own type carrying enough structure (status code,
underlying cause, backend kind) for callers to branch without reading messages.
"""
from typing import Any, Optional


class SourceError(RuntimeError):
    """Base exception for source-related failures."""


class XtreamApiError(SourceError):
    """Xtream API request failed (non-2xx, network failure, malformed response)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response


class XtreamTimeoutError(XtreamApiError):
    """Xtream request was cancelled after the configured timeout."""


class XtreamAuthError(XtreamApiError):
    """Xtream server rejected the credentials (user_info.auth == 0)."""


class M3UParseError(SourceError):
    """Playlist input is structurally invalid (bad URL, missing #EXTM3U header)."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class M3UFetchError(M3UParseError):
    """Playlist could not be downloaded (non-2xx status or network failure)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, cause)
        self.status_code = status_code


class M3UTimeoutError(M3UFetchError):
    """Playlist download was cancelled after the configured timeout."""


class SourceNormalizerError(SourceError):
    """A normalizer query failed; tagged with the backend kind."""

    def __init__(self, message: str, source_type: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.source_type = source_type
        self.cause = cause


class UnsupportedOperationError(SourceNormalizerError):
    """The bound source kind does not offer the requested operation."""
