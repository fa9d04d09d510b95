"""API client for the Arylic / LinkPlay HTTP control interface."""

from arylictrl.api.client import ArylicClient
from arylictrl.api.codec import (
    AddressValidation,
    decode_hex,
    encode_hex,
    require_address,
    validate_address,
)
from arylictrl.api.protocol import (
    INPUT_SOURCES,
    ConnectionTimeout,
    DeviceApiError,
    InputSource,
    InvalidResponseError,
    NetworkError,
    ProtocolError,
    ValidationError,
)

__all__ = [
    "ArylicClient",
    "AddressValidation",
    "decode_hex",
    "encode_hex",
    "require_address",
    "validate_address",
    "INPUT_SOURCES",
    "InputSource",
    "DeviceApiError",
    "ValidationError",
    "ConnectionTimeout",
    "ProtocolError",
    "InvalidResponseError",
    "NetworkError",
]
