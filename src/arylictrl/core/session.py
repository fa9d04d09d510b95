"""DeviceSession: everything that lives for exactly one connection.

A session is created by ConnectionManager.connect() and closed by
disconnect(). It owns the device identity, the authoritative player
snapshot, the optimistic overlay, and the last poll error.

Write rules:
- Only the SyncLoop calls apply_snapshot() / record_poll_error().
- Only the CommandDispatcher calls apply_overlay().
- Once closed, every write is ignored.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from arylictrl.api.client import ArylicClient
from arylictrl.api.protocol import DeviceApiError
from arylictrl.models.device import DeviceIdentity
from arylictrl.models.player import PlayerOverlay, PlayerSnapshot, PlayerView

logger = logging.getLogger(__name__)

SessionHandler = Callable[["DeviceSession"], None]


@dataclass(frozen=True, slots=True)
class SessionView:
    """Immutable copy of a session's observable state.

    Safe to hand across threads (e.g. in a Qt signal).

    Attributes:
        address: Device address.
        player: Snapshot with the overlay applied, None before the first poll.
        error: Last poll error message, None when the last poll succeeded.
        last_updated: When the snapshot was last replaced.
    """

    address: str
    player: PlayerView | None = None
    error: str | None = None
    last_updated: datetime | None = None


class DeviceSession:
    """State owner for one connected device.

    Example:
        session = DeviceSession(client, identity)
        session.set_update_handler(lambda s: print(s.player))
    """

    def __init__(self, client: ArylicClient, identity: DeviceIdentity) -> None:
        """Initialize the session.

        Args:
            client: Transport client bound to the device address.
            identity: Identity fetched during connect.
        """
        self._client = client
        self._identity = identity
        self._snapshot: PlayerSnapshot | None = None
        self._overlay: PlayerOverlay | None = None
        self._error: DeviceApiError | None = None
        self._last_updated: datetime | None = None
        self._closed = False
        self._issued_seq = 0
        self._applied_seq = 0
        self._on_update: SessionHandler | None = None

    @property
    def address(self) -> str:
        """Return the device address."""
        return self._client.address

    @property
    def client(self) -> ArylicClient:
        """Return the transport client."""
        return self._client

    @property
    def identity(self) -> DeviceIdentity:
        """Return the device identity."""
        return self._identity

    @property
    def snapshot(self) -> PlayerSnapshot | None:
        """Return the last authoritative snapshot, or None before the first poll."""
        return self._snapshot

    @property
    def overlay(self) -> PlayerOverlay | None:
        """Return pending optimistic changes, if any."""
        return self._overlay

    @property
    def player(self) -> PlayerView | None:
        """Return the snapshot with the overlay applied, or None."""
        if self._snapshot is None:
            return None
        return PlayerView.compose(self._snapshot, self._overlay)

    @property
    def error(self) -> DeviceApiError | None:
        """Return the last poll error, cleared by the next successful poll."""
        return self._error

    @property
    def last_updated(self) -> datetime | None:
        """Return when the snapshot was last replaced."""
        return self._last_updated

    @property
    def is_closed(self) -> bool:
        """Return True once disconnect() has torn the session down."""
        return self._closed

    @property
    def applied_sequence(self) -> int:
        """Return the sequence number of the snapshot currently held."""
        return self._applied_seq

    def view(self) -> SessionView:
        """Return an immutable copy of the observable state."""
        return SessionView(
            address=self.address,
            player=self.player,
            error=self._error.message if self._error else None,
            last_updated=self._last_updated,
        )

    def set_update_handler(self, handler: SessionHandler | None) -> None:
        """Set the callback run after every observable change."""
        self._on_update = handler

    def next_sequence(self) -> int:
        """Allocate the tag for a new poll request."""
        self._issued_seq += 1
        return self._issued_seq

    def apply_snapshot(self, seq: int, snapshot: PlayerSnapshot) -> bool:
        """Replace the snapshot with a poll result.

        The overlay is discarded: the device's answer is ground truth.

        Args:
            seq: Tag returned by next_sequence() when the poll was issued.
            snapshot: Fully decoded snapshot.

        Returns:
            True if applied, False if the session is closed or a newer
            poll has already been applied.
        """
        if self._closed:
            logger.debug("Dropping poll #%d: session closed", seq)
            return False
        if seq <= self._applied_seq:
            logger.debug("Dropping stale poll #%d (have #%d)", seq, self._applied_seq)
            return False

        self._applied_seq = seq
        self._snapshot = snapshot
        self._overlay = None
        self._error = None
        self._last_updated = datetime.now(UTC)
        self._notify()
        return True

    def record_poll_error(self, seq: int, error: DeviceApiError) -> bool:
        """Record a failed poll. The previous snapshot is kept.

        Returns:
            True if recorded, False if closed or superseded by a newer
            successful poll.
        """
        if self._closed or seq <= self._applied_seq:
            return False
        self._error = error
        self._notify()
        return True

    def apply_overlay(self, overlay: PlayerOverlay) -> None:
        """Layer optimistic values on top of the snapshot."""
        if self._closed:
            return
        self._overlay = overlay if self._overlay is None else self._overlay.merge(overlay)
        self._notify()

    def close(self) -> None:
        """Tear the session down. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._snapshot = None
        self._overlay = None
        self._error = None
        self._on_update = None
        logger.debug("Session for %s closed", self.address)

    def _notify(self) -> None:
        """Run the update handler."""
        if self._on_update:
            self._on_update(self)
