"""ConnectionManager - owns the device connection lifecycle.

State machine:

    DISCONNECTED/ERROR --connect()--> CONNECTING --ok--> CONNECTED
    CONNECTING --failure--> ERROR (error recorded)
    any --disconnect()--> DISCONNECTED

There is no automatic reconnection. Poll failures while connected are
recorded on the session and leave the connection up until the user
disconnects.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

from arylictrl.api.client import DEFAULT_TIMEOUT, ArylicClient
from arylictrl.api.codec import is_private_address, require_address
from arylictrl.api.protocol import DeviceApiError
from arylictrl.core.dispatcher import DEFAULT_VOLUME_DEBOUNCE, CommandDispatcher
from arylictrl.core.session import DeviceSession
from arylictrl.core.sync import DEFAULT_POLL_INTERVAL, SyncLoop
from arylictrl.models.connection import ConnectionState, ConnectionStatus
from arylictrl.models.device import DeviceIdentity

logger = logging.getLogger(__name__)

StateHandler = Callable[[ConnectionState], None]
SessionHandler = Callable[[DeviceSession], None]
ErrorHandler = Callable[[DeviceApiError], None]
ClientFactory = Callable[[str], ArylicClient]


class SessionStorage(Protocol):
    """Where the last successfully connected address is remembered."""

    def save_last_device(self, address: str) -> None:
        """Persist ``address`` as the last used device."""
        ...


class ConnectionManager:
    """Connect to and disconnect from one device at a time.

    Each successful connect creates a DeviceSession together with its
    SyncLoop and CommandDispatcher; disconnect tears all three down.

    Example:
        manager = ConnectionManager(storage=config)
        manager.set_event_handlers(on_state_changed=print)
        session = await manager.connect("192.168.1.50")
        await manager.dispatcher.play_pause()
        manager.disconnect()
    """

    def __init__(
        self,
        storage: SessionStorage | None = None,
        client_factory: ClientFactory | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
        volume_debounce: float = DEFAULT_VOLUME_DEBOUNCE,
    ) -> None:
        """Initialize the manager.

        Args:
            storage: Persists the last connected address (optional).
            client_factory: Builds a client for an address. Defaults to
                ArylicClient with ``timeout``.
            poll_interval: Seconds between status polls.
            timeout: Per-request timeout in seconds.
            volume_debounce: Quiet window for debounced volume, in seconds.
        """
        self._storage = storage
        self._timeout = timeout
        self._client_factory = client_factory or self._default_client
        self._poll_interval = poll_interval
        self._volume_debounce = volume_debounce

        self._state = ConnectionState.disconnected()
        self._session: DeviceSession | None = None
        self._sync: SyncLoop | None = None
        self._dispatcher: CommandDispatcher | None = None
        # Bumped by every connect/disconnect so a superseded connect can
        # tell it has been cancelled.
        self._generation = 0

        self._on_state_changed: StateHandler | None = None
        self._on_session_updated: SessionHandler | None = None
        self._on_command_error: ErrorHandler | None = None

    def _default_client(self, address: str) -> ArylicClient:
        return ArylicClient(address, timeout=self._timeout)

    @property
    def state(self) -> ConnectionState:
        """Return the current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Return True if a session is established."""
        return self._state.is_connected

    @property
    def session(self) -> DeviceSession | None:
        """Return the active session, or None."""
        return self._session

    @property
    def sync_loop(self) -> SyncLoop | None:
        """Return the active poll loop, or None."""
        return self._sync

    @property
    def dispatcher(self) -> CommandDispatcher | None:
        """Return the command dispatcher for the active session, or None."""
        return self._dispatcher

    @property
    def poll_interval(self) -> float:
        """Return the poll interval in seconds."""
        return self._poll_interval

    def set_event_handlers(
        self,
        on_state_changed: StateHandler | None = None,
        on_session_updated: SessionHandler | None = None,
        on_command_error: ErrorHandler | None = None,
    ) -> None:
        """Set callbacks for collaborators.

        Args:
            on_state_changed: Called with every new ConnectionState.
            on_session_updated: Called when the session's player view,
                overlay or error changes.
            on_command_error: Called with errors from debounced commands.
        """
        self._on_state_changed = on_state_changed
        self._on_session_updated = on_session_updated
        self._on_command_error = on_command_error

    async def connect(self, address: str) -> DeviceSession:
        """Connect to the device at ``address``.

        Fetches the device identity, then the first player snapshot. A
        failed identity fetch fails the connect; a failed first snapshot
        does not (the next poll fills it in).

        Args:
            address: User-typed IPv4 address.

        Returns:
            The new session.

        Raises:
            ValidationError: Malformed address; no request is made.
            DeviceApiError: Already connected or connecting, connect
                cancelled by disconnect(), or the identity fetch failed
                (a ConnectionTimeout, ProtocolError or NetworkError).
                Any other failure during the handshake is wrapped in a
                DeviceApiError and leaves the manager in ERROR. A cancelled
                connect leaves it DISCONNECTED.
        """
        normalized = require_address(address)

        if self._state.status in (ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED):
            raise DeviceApiError(
                f"Already {self._state.status.value} to {self._state.address}; disconnect first"
            )

        if not is_private_address(normalized):
            logger.info("%s is not a LAN address; the device may be unreachable", normalized)

        self._generation += 1
        generation = self._generation
        self._set_state(ConnectionState.connecting(normalized))
        logger.info("Connecting to %s", normalized)

        client = self._client_factory(normalized)
        try:
            session, sync = await self._handshake(client, normalized, generation)
        except DeviceApiError as e:
            if generation != self._generation:
                raise DeviceApiError(f"Connection to {normalized} cancelled") from e
            logger.error("Failed to connect to %s: %s", normalized, e)
            self._set_state(ConnectionState.failed(normalized, e.message))
            raise
        except asyncio.CancelledError:
            if generation == self._generation:
                self._generation += 1
                self._set_state(ConnectionState.disconnected())
            raise
        except Exception as e:  # noqa: BLE001
            if generation != self._generation:
                raise DeviceApiError(f"Connection to {normalized} cancelled") from e
            logger.exception("Unexpected error connecting to %s: %s", normalized, e)
            error = DeviceApiError(f"Unexpected error: {e}")
            self._set_state(ConnectionState.failed(normalized, error.message))
            raise error from e

        identity = session.identity
        self._session = session
        self._sync = sync
        self._dispatcher = CommandDispatcher(
            session,
            volume_debounce=self._volume_debounce,
            on_error=self._emit_command_error,
        )
        session.set_update_handler(self._emit_session_updated)

        self._set_state(ConnectionState.connected(normalized, identity))
        logger.info("Connected to %s (%s)", identity.display_name, normalized)
        self._emit_session_updated(session)

        sync.start(initial_delay=self._poll_interval)

        if self._storage is not None:
            self._storage.save_last_device(normalized)

        return session

    async def _handshake(
        self, client: ArylicClient, address: str, generation: int
    ) -> tuple[DeviceSession, SyncLoop]:
        """Fetch the identity and the first player status for a new session."""
        device_status = await client.get_device_status()
        if generation != self._generation:
            raise DeviceApiError(f"Connection to {address} cancelled")

        session = DeviceSession(client, DeviceIdentity.from_status_ex(device_status))
        sync = SyncLoop(session, self._poll_interval)

        try:
            # The first poll doubles as the "poll immediately" of the loop.
            if not await sync.poll_once():
                logger.warning("Connected to %s without an initial player status", address)
        except BaseException:
            session.close()
            raise

        if generation != self._generation:
            session.close()
            raise DeviceApiError(f"Connection to {address} cancelled")
        return session, sync

    def disconnect(self) -> None:
        """Tear down the session. Synchronous, idempotent, no network I/O.

        The poll schedule is cancelled and the session closed before this
        returns, so a poll response arriving later is discarded.
        """
        self._generation += 1

        if self._dispatcher is not None:
            self._dispatcher.cancel_pending()
        if self._sync is not None:
            self._sync.stop()
        if self._session is not None:
            logger.info("Disconnected from %s", self._session.address)
            self._session.close()

        self._dispatcher = None
        self._sync = None
        self._session = None

        if self._state != ConnectionState.disconnected():
            self._set_state(ConnectionState.disconnected())

    async def shutdown(self) -> None:
        """Disconnect and wait for the poll task to unwind."""
        sync = self._sync
        self.disconnect()
        if sync is not None:
            await sync.wait_stopped()

    def _set_state(self, state: ConnectionState) -> None:
        """Store and announce a new state."""
        self._state = state
        if self._on_state_changed:
            self._on_state_changed(state)

    def _emit_session_updated(self, session: DeviceSession) -> None:
        if self._on_session_updated and session is self._session:
            self._on_session_updated(session)

    def _emit_command_error(self, error: DeviceApiError) -> None:
        if self._on_command_error:
            self._on_command_error(error)
