"""Central state store with Qt signals for reactive UI updates.

The StateStore is a read-only mirror of the engine's state for the UI.
The DeviceWorker feeds it immutable ConnectionState and SessionView
objects; widgets connect to its signals and never write to it.

This follows the Observer pattern via Qt's signal/slot mechanism.
"""

import logging
from datetime import datetime

from PySide6.QtCore import QObject, Signal

from arylictrl.core.session import SessionView
from arylictrl.models.connection import ConnectionState, ConnectionStatus
from arylictrl.models.device import DeviceIdentity
from arylictrl.models.player import PlayerView

logger = logging.getLogger(__name__)


class StateStore(QObject):
    """Central state store emitting Qt signals on changes.

    Signals fire only when the corresponding value actually changes.

    Example:
        state = StateStore()
        state.player_changed.connect(lambda view: print(view.volume))
        worker.state_changed.connect(state.update_connection)
        worker.session_updated.connect(state.update_session)
    """

    # Note: Using object for complex types (PySide6 limitation)
    connection_changed = Signal(object)  # ConnectionState
    identity_changed = Signal(object)  # DeviceIdentity | None
    player_changed = Signal(object)  # PlayerView | None
    error_changed = Signal(str)  # Error message, "" when cleared

    def __init__(self) -> None:
        """Initialize the state store with disconnected state."""
        super().__init__()
        self._connection = ConnectionState.disconnected()
        self._player: PlayerView | None = None
        self._error = ""
        self._last_updated: datetime | None = None

    @property
    def connection(self) -> ConnectionState:
        """Return the current connection state."""
        return self._connection

    @property
    def status(self) -> ConnectionStatus:
        """Return the connection status."""
        return self._connection.status

    @property
    def is_connected(self) -> bool:
        """Return True if currently connected to a device."""
        return self._connection.is_connected

    @property
    def address(self) -> str:
        """Return the device address, or empty if none."""
        return self._connection.address

    @property
    def identity(self) -> DeviceIdentity | None:
        """Return the connected device's identity."""
        return self._connection.identity

    @property
    def player(self) -> PlayerView | None:
        """Return the player view, or None before the first snapshot."""
        return self._player

    @property
    def error(self) -> str:
        """Return the error to display, or empty."""
        return self._error

    @property
    def last_updated(self) -> datetime | None:
        """Return when the player state was last confirmed by the device."""
        return self._last_updated

    def update_connection(self, state: ConnectionState) -> None:
        """Update from a new ConnectionState.

        Leaving CONNECTED clears the player view. A failed connect's
        message becomes the displayed error.

        Args:
            state: The new connection state.
        """
        if state == self._connection:
            return

        old = self._connection
        self._connection = state

        if state.status != ConnectionStatus.CONNECTED:
            self._set_player(None)
            self._last_updated = None
        self._set_error(state.error or "")

        if old.identity != state.identity:
            self.identity_changed.emit(state.identity)
        self.connection_changed.emit(state)

    def update_session(self, view: SessionView) -> None:
        """Update from a SessionView published by the engine.

        Views for an address other than the connected one are ignored.

        Args:
            view: Immutable copy of the session state.
        """
        if not self._connection.is_connected or view.address != self._connection.address:
            logger.debug("Ignoring session view for %s", view.address)
            return
        confirmed = view.last_updated != self._last_updated
        self._last_updated = view.last_updated
        self._set_player(view.player)
        # A reported command error stays up until a poll result replaces it.
        if view.error or confirmed:
            self._set_error(view.error or "")

    def report_error(self, message: str) -> None:
        """Show a command error until the next successful poll or state change."""
        self._set_error(message)

    def clear(self) -> None:
        """Reset to the disconnected state."""
        self.update_connection(ConnectionState.disconnected())

    def _set_player(self, player: PlayerView | None) -> None:
        if player != self._player:
            self._player = player
            self.player_changed.emit(player)

    def _set_error(self, message: str) -> None:
        if message != self._error:
            self._error = message
            self.error_changed.emit(message)
