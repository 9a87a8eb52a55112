from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    FETCH_FAILED = "FETCH_FAILED"
    INVALID_HEADER = "INVALID_HEADER"
    INVALID_MEDIA_TYPE = "INVALID_MEDIA_TYPE"
    UNKNOWN_CHARSET = "UNKNOWN_CHARSET"
    CACHE_READ_FAILED = "CACHE_READ_FAILED"
    CACHE_WRITE_FAILED = "CACHE_WRITE_FAILED"
    CACHE_CORRUPT = "CACHE_CORRUPT"
    INVALID_INPUT = "INVALID_INPUT"


class MonitorbotError(Exception):
    """Raised for every expected failure while checking a URL.

    Caught by the batch driver in monitor.py, which either aborts the run or
    records the failure and moves on. Lower layers wrap library exceptions
    (httpx, OSError, pydantic) in this type and chain the original.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str = "",
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
            }
        }
