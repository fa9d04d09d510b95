"""CommandDispatcher - turns user intents into device commands.

Each operation validates its input locally, applies an optimistic overlay
to the session for instant feedback, and sends one fire-and-forget HTTP
command. The authoritative snapshot is left to the SyncLoop; the next
successful poll replaces whatever was guessed here.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress

from arylictrl.api.codec import require_address
from arylictrl.api.protocol import (
    DeviceApiError,
    InputSource,
    parse_input_source,
    volume_command,
)
from arylictrl.core.session import DeviceSession
from arylictrl.models.player import PlayerOverlay

logger = logging.getLogger(__name__)

DEFAULT_VOLUME_DEBOUNCE = 0.3  # seconds

ErrorHandler = Callable[[DeviceApiError], None]


class VolumeDebouncer:
    """Trailing-edge debounce for continuous volume input.

    Every push() restarts the quiet window; only the value present when
    the window expires is sent. A send already in flight is never
    cancelled; close() drops the pending value and any send queued
    behind it.

    Example:
        debouncer = VolumeDebouncer(client.set_volume, delay=0.3)
        for v in (10, 20, 30):
            debouncer.push(v)
        await debouncer.flush()  # exactly one set_volume(30)
    """

    def __init__(
        self,
        send: Callable[[int], Awaitable[None]],
        delay: float = DEFAULT_VOLUME_DEBOUNCE,
        on_error: ErrorHandler | None = None,
    ) -> None:
        """Initialize the debouncer.

        Args:
            send: Coroutine function sending one volume value.
            delay: Quiet window in seconds.
            on_error: Called with the error if a debounced send fails.
        """
        self._send = send
        self._delay = delay
        self._on_error = on_error
        self._value: int | None = None
        self._wait_task: asyncio.Task[None] | None = None
        self._send_task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def delay(self) -> float:
        """Return the quiet window in seconds."""
        return self._delay

    @property
    def pending_value(self) -> int | None:
        """Return the value waiting for the window to expire, if any."""
        return self._value if self._wait_task is not None else None

    def push(self, value: int) -> None:
        """Record a new value and restart the quiet window."""
        if self._closed:
            logger.debug("Debouncer closed; volume %d dropped", value)
            return
        self._value = value
        if self._wait_task is not None:
            self._wait_task.cancel()
        self._wait_task = asyncio.get_running_loop().create_task(self._wait_then_send())

    def cancel(self) -> None:
        """Drop the pending value without sending it."""
        if self._wait_task is not None:
            self._wait_task.cancel()
            self._wait_task = None
        self._value = None

    def close(self) -> None:
        """Drop the pending value and every send not yet on the wire."""
        self._closed = True
        self.cancel()

    async def flush(self) -> None:
        """Wait until the pending value (if any) has been sent."""
        while self._wait_task is not None or self._send_task is not None:
            task = self._wait_task or self._send_task
            if task is None:
                break
            with suppress(asyncio.CancelledError):
                await task

    async def _wait_then_send(self) -> None:
        """Sleep out the window, then hand the value to a send task."""
        await asyncio.sleep(self._delay)
        value = self._value
        self._wait_task = None
        self._value = None
        if value is None:
            return
        # Serialize sends so volume commands reach the device in order.
        previous = self._send_task
        self._send_task = asyncio.get_running_loop().create_task(
            self._send_after(previous, value)
        )

    async def _send_after(self, previous: "asyncio.Task[None] | None", value: int) -> None:
        """Send ``value`` once ``previous`` has finished."""
        current = asyncio.current_task()
        try:
            if previous is not None:
                await asyncio.wait([previous])
            if self._closed:
                logger.debug("Dropping queued volume %d", value)
                return
            logger.debug("Sending debounced volume %d", value)
            await self._send(value)
        except DeviceApiError as e:
            logger.warning("Debounced volume %d failed: %s", value, e)
            if self._on_error:
                self._on_error(e)
        except Exception as e:  # noqa: BLE001
            logger.exception("Unexpected error sending volume %d: %s", value, e)
            if self._on_error:
                self._on_error(DeviceApiError(f"Unexpected error: {e}"))
        finally:
            if self._send_task is current:
                self._send_task = None


class CommandDispatcher:
    """Send control commands to the device of one session.

    Example:
        dispatcher = CommandDispatcher(session)
        await dispatcher.play_pause()
        dispatcher.set_volume(42)          # debounced (slider drag)
        await dispatcher.commit_volume(42) # immediate (slider release)
    """

    def __init__(
        self,
        session: DeviceSession,
        volume_debounce: float = DEFAULT_VOLUME_DEBOUNCE,
        on_error: ErrorHandler | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            session: The connected session commands are sent to.
            volume_debounce: Quiet window for set_volume(), in seconds.
            on_error: Receives errors from debounced sends, which have no
                caller left to raise to.
        """
        self._session = session
        self._debouncer = VolumeDebouncer(
            session.client.set_volume,
            delay=volume_debounce,
            on_error=on_error,
        )

    @property
    def session(self) -> DeviceSession:
        """Return the session commands are sent to."""
        return self._session

    @property
    def debouncer(self) -> VolumeDebouncer:
        """Return the volume debouncer."""
        return self._debouncer

    def _check_open(self) -> None:
        """Raise if the session has been torn down."""
        if self._session.is_closed:
            raise DeviceApiError("Not connected to a device")

    async def play_pause(self) -> None:
        """Toggle play/pause."""
        self._check_open()
        await self._session.client.toggle_play_pause()

    def set_volume(self, volume: int) -> None:
        """Set volume from continuous input (debounced).

        The displayed volume updates immediately; the command is sent once
        no further call arrives within the debounce window.

        Raises:
            ValidationError: If volume is outside 0-100 (nothing is sent).
        """
        volume_command(volume)
        self._check_open()
        self._session.apply_overlay(PlayerOverlay(volume=volume))
        self._debouncer.push(volume)

    async def commit_volume(self, volume: int) -> None:
        """Set volume from a discrete event, bypassing the debounce.

        Any pending debounced value is dropped in favour of this one.

        Raises:
            ValidationError: If volume is outside 0-100 (nothing is sent).
        """
        volume_command(volume)
        self._check_open()
        self._debouncer.cancel()
        self._session.apply_overlay(PlayerOverlay(volume=volume))
        await self._session.client.set_volume(volume)

    async def set_mute(self, muted: bool) -> None:
        """Set mute state."""
        self._check_open()
        self._session.apply_overlay(PlayerOverlay(muted=muted))
        await self._session.client.set_mute(muted)

    async def toggle_mute(self) -> bool:
        """Invert the displayed mute state.

        Returns:
            The mute state that was sent.
        """
        self._check_open()
        view = self._session.player
        muted = not view.muted if view is not None else True
        await self.set_mute(muted)
        return muted

    async def switch_input(self, source: InputSource | str) -> None:
        """Switch input source.

        Raises:
            ValidationError: If ``source`` names no known input.
        """
        resolved = source if isinstance(source, InputSource) else parse_input_source(source)
        self._check_open()
        self._session.apply_overlay(PlayerOverlay(input_source=resolved))
        await self._session.client.switch_input(resolved)
        logger.info("Switched %s to %s", self._session.address, resolved.value)

    async def next_track(self) -> None:
        """Skip to the next track."""
        self._check_open()
        await self._session.client.next_track()

    async def previous_track(self) -> None:
        """Skip to the previous track."""
        self._check_open()
        await self._session.client.previous_track()

    async def stop(self) -> None:
        """Stop playback."""
        self._check_open()
        await self._session.client.stop()

    async def join_group(self, host_address: str) -> None:
        """Join the multiroom group hosted at ``host_address``.

        Raises:
            ValidationError: If the host address is malformed.
        """
        host = require_address(host_address)
        self._check_open()
        await self._session.client.join_group(host)
        logger.info("%s joined multiroom group at %s", self._session.address, host)

    async def flush(self) -> None:
        """Wait for a pending debounced volume to be sent."""
        await self._debouncer.flush()

    def cancel_pending(self) -> None:
        """Drop pending and queued debounced volumes (used on disconnect)."""
        self._debouncer.close()
