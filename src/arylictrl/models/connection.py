"""ConnectionState model for the device connection lifecycle."""

from dataclasses import dataclass
from enum import StrEnum

from arylictrl.models.device import DeviceIdentity


class ConnectionStatus(StrEnum):
    """Connection lifecycle states.

    ERROR is the disconnected state left behind by a failed connect: it
    carries the error message and allows a new connect.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class ConnectionState:
    """Immutable connection state.

    Attributes:
        status: Lifecycle state.
        address: Device address being connected to or connected to.
        error: Last connect error message (only in ERROR).
        identity: Device identity (only in CONNECTED).
    """

    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    address: str = ""
    error: str | None = None
    identity: DeviceIdentity | None = None

    @property
    def is_connected(self) -> bool:
        """Return True when a session is established."""
        return self.status == ConnectionStatus.CONNECTED

    @property
    def is_busy(self) -> bool:
        """Return True while a connect is in progress."""
        return self.status == ConnectionStatus.CONNECTING

    @classmethod
    def disconnected(cls) -> "ConnectionState":
        """Return the clean disconnected state."""
        return cls()

    @classmethod
    def connecting(cls, address: str) -> "ConnectionState":
        """Return the connecting state for ``address``."""
        return cls(status=ConnectionStatus.CONNECTING, address=address)

    @classmethod
    def connected(cls, address: str, identity: DeviceIdentity) -> "ConnectionState":
        """Return the connected state."""
        return cls(status=ConnectionStatus.CONNECTED, address=address, identity=identity)

    @classmethod
    def failed(cls, address: str, error: str) -> "ConnectionState":
        """Return the state left by a failed connect."""
        return cls(status=ConnectionStatus.ERROR, address=address, error=error)
