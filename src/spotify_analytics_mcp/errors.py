"""Error taxonomy for Spotify API and token failures."""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    NOT_FOUND_ERROR = "NOT_FOUND_ERROR"
    BAD_REQUEST_ERROR = "BAD_REQUEST_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"


class SpotifyError(Exception):
    """A classified failure from the token endpoint or the Web API.

    Attributes:
        code: Which kind of failure this is.
        status_code: HTTP status of the originating response, if there was one.
        retry_after_ms: Wait hint for RATE_LIMIT_ERROR, in milliseconds.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        retry_after_ms: Optional[int] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.retry_after_ms = retry_after_ms

    def __repr__(self) -> str:
        return f"SpotifyError({self.code.value}, {self.message!r}, status_code={self.status_code})"


_STATUS_CODES = {
    400: ErrorCode.BAD_REQUEST_ERROR,
    401: ErrorCode.AUTHENTICATION_ERROR,
    403: ErrorCode.AUTHENTICATION_ERROR,
    404: ErrorCode.NOT_FOUND_ERROR,
    429: ErrorCode.RATE_LIMIT_ERROR,
}


def code_for_status(status: int) -> ErrorCode:
    """Map an HTTP status to an error kind. Unlisted statuses are internal errors."""
    return _STATUS_CODES.get(status, ErrorCode.INTERNAL_ERROR)


def error_for_status(status: int, message: str) -> SpotifyError:
    return SpotifyError(code_for_status(status), message, status)
