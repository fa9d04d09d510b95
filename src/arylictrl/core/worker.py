"""QThread worker hosting the asyncio device engine in a Qt application.

Qt widgets must run in the main thread, but the engine (ConnectionManager,
SyncLoop, CommandDispatcher) is asyncio code. This worker runs one event
loop in a background thread; every engine object lives on that loop, and
state leaves it only as immutable objects carried by Qt signals.
"""

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from concurrent.futures import Future
from typing import TypeVar

from PySide6.QtCore import QThread, Signal

from arylictrl.api.client import DEFAULT_TIMEOUT
from arylictrl.api.protocol import DeviceApiError, InputSource
from arylictrl.core.connection import ClientFactory, ConnectionManager, SessionStorage
from arylictrl.core.dispatcher import DEFAULT_VOLUME_DEBOUNCE, CommandDispatcher
from arylictrl.core.session import DeviceSession
from arylictrl.core.sync import DEFAULT_POLL_INTERVAL
from arylictrl.models.connection import ConnectionState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DeviceWorker(QThread):
    """Background thread running the device engine.

    All public methods are thread-safe and return a
    ``concurrent.futures.Future`` with the operation's result (or its
    DeviceApiError), or None if the worker is not running. Failures are
    also emitted via ``command_failed`` for UIs that don't keep futures.

    Example:
        worker = DeviceWorker(storage=config)
        worker.state_changed.connect(state_store.update_connection)
        worker.session_updated.connect(state_store.update_session)
        worker.start()
        worker.wait_ready()
        worker.connect_device("192.168.1.50")
    """

    # Engine state signals
    state_changed = Signal(object)  # ConnectionState
    session_updated = Signal(object)  # SessionView

    # Error signal: (operation name, DeviceApiError)
    command_failed = Signal(str, object)

    def __init__(
        self,
        storage: SessionStorage | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
        volume_debounce: float = DEFAULT_VOLUME_DEBOUNCE,
        client_factory: ClientFactory | None = None,
    ) -> None:
        """Initialize the worker.

        Args:
            storage: Persists the last connected address. It is called from
                the worker thread.
            poll_interval: Seconds between status polls.
            timeout: Per-request timeout in seconds.
            volume_debounce: Debounce window for slider volume, in seconds.
            client_factory: Optional client factory (tests).
        """
        super().__init__()
        self._manager = ConnectionManager(
            storage=storage,
            client_factory=client_factory,
            poll_interval=poll_interval,
            timeout=timeout,
            volume_debounce=volume_debounce,
        )
        self._manager.set_event_handlers(
            on_state_changed=self._on_state_changed,
            on_session_updated=self._on_session_updated,
            on_command_error=self._on_debounced_error,
        )
        self._loop: asyncio.AbstractEventLoop | None = None
        self._ready = threading.Event()

    @property
    def manager(self) -> ConnectionManager:
        """Return the connection manager (touch only from the worker loop)."""
        return self._manager

    @property
    def is_ready(self) -> bool:
        """Return True once the event loop is accepting work."""
        return self._loop is not None and self._loop.is_running()

    def wait_ready(self, timeout: float = 5.0) -> bool:
        """Block until the event loop is running.

        Returns:
            True if ready within ``timeout`` seconds.
        """
        return self._ready.wait(timeout)

    def run(self) -> None:
        """Run the worker thread (entry point)."""
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        self._loop.call_soon(self._ready.set)

        try:
            self._loop.run_forever()
        finally:
            self._loop.run_until_complete(self._manager.shutdown())
            self._cancel_leftover_tasks(self._loop)
            self._loop.close()
            self._loop = None
            self._ready.clear()

    @staticmethod
    def _cancel_leftover_tasks(loop: asyncio.AbstractEventLoop) -> None:
        """Cancel commands and connects still running when the loop stopped."""
        pending = asyncio.all_tasks(loop)
        if not pending:
            return
        logger.debug("Cancelling %d leftover task(s)", len(pending))
        for task in pending:
            task.cancel()
        loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))

    def stop(self) -> None:
        """Disconnect and stop the event loop (called from main thread)."""
        if self._loop and self._loop.is_running():
            self._loop.call_soon_threadsafe(self._manager.disconnect)
            self._loop.call_soon_threadsafe(self._loop.stop)

    # -- UI event surface -----------------------------------------------------

    def connect_device(self, address: str) -> "Future[DeviceSession] | None":
        """Connect to a device. Thread-safe."""
        return self._submit("connect", lambda: self._manager.connect(address))

    def disconnect_device(self) -> "Future[None] | None":
        """Disconnect from the current device. Thread-safe."""

        async def _disconnect() -> None:
            self._manager.disconnect()

        return self._submit("disconnect", _disconnect)

    def play_pause(self) -> "Future[None] | None":
        """Toggle play/pause. Thread-safe."""
        return self._dispatch("play_pause", lambda d: d.play_pause())

    def set_volume(self, volume: int) -> "Future[None] | None":
        """Set volume from a slider drag (debounced). Thread-safe."""

        async def _set(dispatcher: CommandDispatcher) -> None:
            dispatcher.set_volume(volume)

        return self._dispatch("set_volume", _set)

    def commit_volume(self, volume: int) -> "Future[None] | None":
        """Set volume immediately (slider release). Thread-safe."""
        return self._dispatch("commit_volume", lambda d: d.commit_volume(volume))

    def set_mute(self, muted: bool) -> "Future[None] | None":
        """Set mute state. Thread-safe."""
        return self._dispatch("set_mute", lambda d: d.set_mute(muted))

    def toggle_mute(self) -> "Future[bool] | None":
        """Toggle mute. Thread-safe."""
        return self._dispatch("toggle_mute", lambda d: d.toggle_mute())

    def switch_input(self, source: InputSource | str) -> "Future[None] | None":
        """Switch input source. Thread-safe."""
        return self._dispatch("switch_input", lambda d: d.switch_input(source))

    def next_track(self) -> "Future[None] | None":
        """Skip to the next track. Thread-safe."""
        return self._dispatch("next_track", lambda d: d.next_track())

    def previous_track(self) -> "Future[None] | None":
        """Skip to the previous track. Thread-safe."""
        return self._dispatch("previous_track", lambda d: d.previous_track())

    def stop_playback(self) -> "Future[None] | None":
        """Stop playback. Thread-safe."""
        return self._dispatch("stop", lambda d: d.stop())

    def join_group(self, host_address: str) -> "Future[None] | None":
        """Join the multiroom group hosted at ``host_address``. Thread-safe."""
        return self._dispatch("join_group", lambda d: d.join_group(host_address))

    def request_status(self) -> "Future[bool] | None":
        """Poll the device now, outside the schedule. Thread-safe."""

        async def _refresh() -> bool:
            sync = self._manager.sync_loop
            if sync is None:
                raise DeviceApiError("Not connected to a device")
            return await sync.refresh()

        return self._submit("refresh", _refresh)

    # -- Internals ------------------------------------------------------------

    def _dispatch(
        self,
        name: str,
        operation: Callable[[CommandDispatcher], Awaitable[T]],
    ) -> "Future[T] | None":
        """Run a dispatcher operation on the worker loop."""

        async def _run() -> T:
            dispatcher = self._manager.dispatcher
            if dispatcher is None:
                raise DeviceApiError("Not connected to a device")
            return await operation(dispatcher)

        return self._submit(name, _run)

    def _submit(self, name: str, factory: Callable[[], Awaitable[T]]) -> "Future[T] | None":
        """Schedule a coroutine on the worker loop."""
        if not (self._loop and self._loop.is_running()):
            logger.debug("Worker not running; dropping %s", name)
            return None
        return asyncio.run_coroutine_threadsafe(self._guarded(name, factory), self._loop)

    async def _guarded(self, name: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Await an operation, emitting command_failed on DeviceApiError."""
        try:
            return await factory()
        except DeviceApiError as e:
            self.command_failed.emit(name, e)
            raise

    def _on_state_changed(self, state: ConnectionState) -> None:
        self.state_changed.emit(state)

    def _on_session_updated(self, session: DeviceSession) -> None:
        self.session_updated.emit(session.view())

    def _on_debounced_error(self, error: DeviceApiError) -> None:
        self.command_failed.emit("set_volume", error)
