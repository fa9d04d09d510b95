"""Arylic HTTP API protocol: error taxonomy and command builders.

Every device command is a plain GET against ``/httpapi.asp?command=<cmd>``.
This module only knows how to spell commands; sending them is the
client's job.
"""

from dataclasses import dataclass
from enum import StrEnum

API_PATH = "/httpapi.asp"

CMD_PLAYER_STATUS = "getPlayerStatus"
CMD_DEVICE_STATUS = "getStatusEx"
CMD_PLAY_PAUSE = "setPlayerCmd:onepause"
CMD_NEXT = "setPlayerCmd:next"
CMD_PREVIOUS = "setPlayerCmd:prev"
CMD_STOP = "setPlayerCmd:stop"

VOLUME_MIN = 0
VOLUME_MAX = 100


class DeviceApiError(Exception):
    """Base exception for all device API errors.

    Attributes:
        message: Human-readable description.
        code: Stable machine-readable error code.
    """

    code = "DEVICE_API_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(DeviceApiError):
    """Raised for bad user input. Never reaches the network."""

    code = "VALIDATION_ERROR"


class ConnectionTimeout(DeviceApiError):
    """Raised when the device does not answer within the request budget."""

    code = "CONNECTION_TIMEOUT"


class ProtocolError(DeviceApiError):
    """Raised when the device answers with a non-success HTTP status.

    Attributes:
        status: HTTP status code returned by the device.
    """

    code = "PROTOCOL_ERROR"

    def __init__(self, message: str, status: int) -> None:
        super().__init__(message)
        self.status = status


class InvalidResponseError(ProtocolError):
    """Raised when a 2xx response body is not the JSON object expected."""


class NetworkError(DeviceApiError):
    """Raised on transport-level failures (unreachable host, reset, DNS).

    Attributes:
        detail: Text of the underlying transport error.
    """

    code = "NETWORK_ERROR"

    def __init__(self, message: str, detail: str = "") -> None:
        super().__init__(message)
        self.detail = detail or message


class InputSource(StrEnum):
    """Input sources accepted by ``setPlayerCmd:switchmode``."""

    WIFI = "wifi"
    LINE_IN = "line-in"
    BLUETOOTH = "bluetooth"
    OPTICAL = "optical"
    COAXIAL = "co-axial"
    UDISK = "udisk"
    LINE_IN_2 = "line-in2"
    PCUSB = "PCUSB"


@dataclass(frozen=True, slots=True)
class InputSourceOption:
    """An input source with its display label."""

    value: InputSource
    label: str


INPUT_SOURCES: tuple[InputSourceOption, ...] = (
    InputSourceOption(InputSource.WIFI, "WiFi Mode"),
    InputSourceOption(InputSource.LINE_IN, "Line Input"),
    InputSourceOption(InputSource.BLUETOOTH, "Bluetooth"),
    InputSourceOption(InputSource.OPTICAL, "Optical Input"),
    InputSourceOption(InputSource.COAXIAL, "Coaxial Input"),
    InputSourceOption(InputSource.UDISK, "USB Disk"),
)

# Numeric ``mode`` values reported by getPlayerStatus, mapped to the source
# that produced them. Streaming services all report as wifi.
MODE_SOURCES: dict[int, InputSource] = {
    1: InputSource.WIFI,
    2: InputSource.WIFI,
    10: InputSource.WIFI,
    11: InputSource.UDISK,
    20: InputSource.WIFI,
    31: InputSource.WIFI,
    40: InputSource.LINE_IN,
    41: InputSource.BLUETOOTH,
    43: InputSource.OPTICAL,
    44: InputSource.COAXIAL,
    47: InputSource.LINE_IN_2,
    51: InputSource.PCUSB,
}


def parse_input_source(value: str) -> InputSource:
    """Resolve a user-supplied source name.

    Matching is case-insensitive on the wire value.

    Raises:
        ValidationError: If the name is not a known source.
    """
    wanted = value.strip().lower()
    for source in InputSource:
        if source.value.lower() == wanted:
            return source
    raise ValidationError(f"Unknown input source: {value!r}")


def volume_command(volume: int) -> str:
    """Build the set-volume command.

    Raises:
        ValidationError: If volume is outside 0-100.
    """
    if isinstance(volume, bool) or not isinstance(volume, int):
        raise ValidationError(f"Volume must be an integer, got {volume!r}")
    if volume < VOLUME_MIN or volume > VOLUME_MAX:
        raise ValidationError(f"Volume must be between {VOLUME_MIN} and {VOLUME_MAX}")
    return f"setPlayerCmd:vol:{volume}"


def mute_command(muted: bool) -> str:
    """Build the mute command."""
    return f"setPlayerCmd:mute:{1 if muted else 0}"


def switch_input_command(source: InputSource) -> str:
    """Build the input switch command."""
    return f"setPlayerCmd:switchmode:{source.value}"


def join_group_command(host: str) -> str:
    """Build the LinkPlay multiroom join command for a group host."""
    return f"ConnectMasterAp:JoinGroupMaster:eth{host}:wifi0.0.0.0"
