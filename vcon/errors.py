from __future__ import annotations

from typing import Any, Optional


class VConError(Exception):
    """Base class for every error raised by the vcon package."""


class ValidationError(VConError, ValueError):
    pass


class InvalidMimeTypeError(ValidationError):
    def __init__(self, mimetype: Optional[str]):
        self.mimetype = mimetype
        super().__init__(f"invalid mime type: {mimetype}")


class ParseError(VConError, ValueError):
    pass


class SigningError(VConError):
    pass


class VerificationFailure(VConError):
    pass


class VConApiError(VConError):
    def __init__(self, status_code: int, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details
