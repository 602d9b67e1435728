from .client import VConApiClient, VConApiClientOptions
from .errors import (
    InvalidMimeTypeError,
    ParseError,
    SigningError,
    ValidationError,
    VConApiError,
    VConError,
    VerificationFailure,
)
from .jws import generate_key_pair
from .models import (
    MIME_TYPES,
    Analysis,
    Attachment,
    CivicAddress,
    Dialog,
    DialogIndex,
    DialogIndices,
    Encoding,
    Party,
    PartyHistory,
    Signature,
)
from .vcon import VCon

__version__ = "0.1.0"

__all__ = [
    "MIME_TYPES",
    "Analysis",
    "Attachment",
    "CivicAddress",
    "Dialog",
    "DialogIndex",
    "DialogIndices",
    "Encoding",
    "InvalidMimeTypeError",
    "ParseError",
    "Party",
    "PartyHistory",
    "Signature",
    "SigningError",
    "VCon",
    "VConApiClient",
    "VConApiClientOptions",
    "VConApiError",
    "VConError",
    "ValidationError",
    "VerificationFailure",
    "generate_key_pair",
]
