"""Registry protocol: typed responses, response decoding and the HTTP client."""

from ovsx.registry.client import RegistryClient
from ovsx.registry.decode import DecodedResponse, DecodeKind, decode_response
from ovsx.registry.errors import (
    PayloadTooLargeError,
    RegistryError,
    RegistryHtmlResponseError,
    RegistryInvalidJsonError,
    RegistryLogicalError,
    RegistryStatusError,
    RegistryTransportError,
)
from ovsx.registry.types import (
    UNIVERSAL_TARGET,
    ErrorResponse,
    Extension,
    RegistryResponse,
    UserData,
)

__all__ = [
    "UNIVERSAL_TARGET",
    "DecodeKind",
    "DecodedResponse",
    "ErrorResponse",
    "Extension",
    "PayloadTooLargeError",
    "RegistryClient",
    "RegistryError",
    "RegistryHtmlResponseError",
    "RegistryInvalidJsonError",
    "RegistryLogicalError",
    "RegistryResponse",
    "RegistryStatusError",
    "RegistryTransportError",
    "UserData",
    "decode_response",
]
