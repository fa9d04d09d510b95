"""Text codecs and address validation for the Arylic HTTP API.

The device reports free-text metadata (title, artist, album) as hex
strings, one byte per character. Decoding is best-effort: bad input is
returned unchanged rather than raised.
"""

import logging
import re
from dataclasses import dataclass, field

from arylictrl.api.protocol import ValidationError

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"[0-9a-fA-F]*")
_OCTET = r"(25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)"
_IPV4_RE = re.compile(rf"{_OCTET}\.{_OCTET}\.{_OCTET}\.{_OCTET}")

ERROR_ADDRESS_REQUIRED = "IP address is required"
ERROR_ADDRESS_FORMAT = "Invalid IP address format"


def decode_hex(value: str) -> str:
    """Convert a device hex string to text.

    Each pair of hex digits becomes one character (code point 0-255).

    Args:
        value: Hex-encoded text, e.g. ``"48656C6C6F"``.

    Returns:
        The decoded text, ``""`` for empty input, or ``value`` itself if
        it is odd-length or contains non-hex characters.
    """
    if not value:
        return ""
    if len(value) % 2 or not _HEX_RE.fullmatch(value):
        logger.debug("Not a hex string, leaving as-is: %r", value)
        return value
    return "".join(chr(int(value[i : i + 2], 16)) for i in range(0, len(value), 2))


def encode_hex(text: str) -> str:
    """Convert text to the device hex encoding (uppercase, 2 digits per char).

    Only code points below 256 fit in one byte. Wider characters have no
    representation in this encoding.

    Raises:
        ValueError: If ``text`` contains a code point above 255.
    """
    out: list[str] = []
    for char in text:
        code = ord(char)
        if code > 0xFF:  # noqa: PLR2004
            raise ValueError(f"Character {char!r} does not fit in a single byte")
        out.append(f"{code:02X}")
    return "".join(out)


@dataclass(frozen=True, slots=True)
class AddressValidation:
    """Result of validating a user-typed device address.

    Attributes:
        valid: Whether the address is usable.
        errors: Human-readable problems (empty when valid).
        normalized: Trimmed address, only set when valid.
    """

    valid: bool
    errors: list[str] = field(default_factory=list)
    normalized: str | None = None


def validate_address(raw: str | None) -> AddressValidation:
    """Validate an IPv4 dotted-quad address.

    Args:
        raw: Address as typed by the user.

    Returns:
        AddressValidation with either errors or the normalized address.
    """
    if raw is None or not raw.strip():
        return AddressValidation(valid=False, errors=[ERROR_ADDRESS_REQUIRED])

    trimmed = raw.strip()
    if not _IPV4_RE.fullmatch(trimmed):
        return AddressValidation(valid=False, errors=[ERROR_ADDRESS_FORMAT])

    return AddressValidation(valid=True, normalized=trimmed)


def require_address(raw: str | None) -> str:
    """Return the normalized address or raise.

    Raises:
        ValidationError: With the first validation error.
    """
    result = validate_address(raw)
    if not result.valid or result.normalized is None:
        raise ValidationError(result.errors[0])
    return result.normalized


def is_private_address(address: str) -> bool:
    """Return True for LAN (RFC 1918) addresses and the loopback address."""
    result = validate_address(address)
    if not result.valid or result.normalized is None:
        return False

    parts = [int(p) for p in result.normalized.split(".")]
    if parts[0] == 192 and parts[1] == 168:  # noqa: PLR2004
        return True
    if parts[0] == 10:  # noqa: PLR2004
        return True
    if parts[0] == 172 and 16 <= parts[1] <= 31:  # noqa: PLR2004
        return True
    return result.normalized == "127.0.0.1"
