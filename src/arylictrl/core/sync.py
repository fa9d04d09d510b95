"""SyncLoop: periodic player-status polling for one session.

The loop is the only writer of the session's PlayerSnapshot. Each cycle
requests getPlayerStatus, decodes the whole payload, and hands the
finished snapshot to the session in one call.
"""

import asyncio
import logging
from contextlib import suppress

from arylictrl.api.protocol import DeviceApiError
from arylictrl.core.session import DeviceSession
from arylictrl.models.player import PlayerSnapshot

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0  # seconds


class SyncLoop:
    """Poll a device on a fixed cadence and publish snapshots.

    Only one scheduled cycle is outstanding at a time: a slow poll delays
    the next one rather than overlapping it. Poll failures are recorded on
    the session and never stop the loop.

    Example:
        loop = SyncLoop(session, interval=1.0)
        await loop.poll_once()
        loop.start(initial_delay=loop.interval)
        ...
        loop.stop()
    """

    def __init__(self, session: DeviceSession, interval: float = DEFAULT_POLL_INTERVAL) -> None:
        """Initialize the loop.

        Args:
            session: Session whose snapshot this loop maintains.
            interval: Seconds between poll starts.
        """
        if interval <= 0:
            raise ValueError("Poll interval must be positive")
        self._session = session
        self._interval = interval
        self._task: asyncio.Task[None] | None = None
        self._stopped = False
        self._poll_count = 0
        self._failure_count = 0

    @property
    def interval(self) -> float:
        """Return the poll interval in seconds."""
        return self._interval

    @property
    def is_running(self) -> bool:
        """Return True while the periodic task is alive."""
        return not self._stopped and self._task is not None and not self._task.done()

    @property
    def poll_count(self) -> int:
        """Return the number of completed polls (successful or not)."""
        return self._poll_count

    @property
    def failure_count(self) -> int:
        """Return the number of failed polls."""
        return self._failure_count

    def start(self, initial_delay: float = 0.0) -> None:
        """Start periodic polling on the running event loop.

        Args:
            initial_delay: Seconds before the first scheduled poll.
        """
        if self.is_running or self._stopped:
            return
        if self._session.is_closed:
            logger.debug("Not starting poll loop: session closed")
            return
        self._task = asyncio.get_running_loop().create_task(self._run(initial_delay))
        logger.debug(
            "Polling %s every %.2fs (first in %.2fs)",
            self._session.address,
            self._interval,
            initial_delay,
        )

    def stop(self) -> None:
        """Cancel the periodic task. Synchronous and idempotent.

        A request already in flight may still complete, but the session
        drops its result once closed.
        """
        self._stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_stopped(self) -> None:
        """Stop and wait for the task to finish unwinding."""
        self.stop()
        task, self._task = self._task, None
        if task is not None:
            with suppress(asyncio.CancelledError):
                await task

    async def refresh(self) -> bool:
        """Poll now, outside the schedule.

        May overlap a scheduled poll; sequence tags keep the newest
        issued result authoritative.
        """
        return await self.poll_once()

    async def poll_once(self) -> bool:
        """Run one poll cycle.

        Returns:
            True if a new snapshot was applied.
        """
        session = self._session
        if session.is_closed:
            return False

        seq = session.next_sequence()
        try:
            data = await session.client.get_player_status()
            snapshot = PlayerSnapshot.from_status(data)
        except DeviceApiError as e:
            self._record_failure(seq, e)
            logger.warning("Poll #%d of %s failed: %s", seq, session.address, e)
            return False
        except Exception as e:  # noqa: BLE001
            logger.exception("Unexpected error polling %s: %s", session.address, e)
            self._record_failure(seq, DeviceApiError(f"Unexpected error: {e}"))
            return False

        self._poll_count += 1
        return session.apply_snapshot(seq, snapshot)

    def _record_failure(self, seq: int, error: DeviceApiError) -> None:
        self._poll_count += 1
        self._failure_count += 1
        self._session.record_poll_error(seq, error)

    async def _run(self, initial_delay: float) -> None:
        """Periodic task body."""
        loop = asyncio.get_running_loop()
        next_at = loop.time() + max(0.0, initial_delay)

        while not self._session.is_closed:
            delay = next_at - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
            if self._session.is_closed:
                break
            try:
                await self.poll_once()
            except Exception as e:  # noqa: BLE001
                # An update handler failed; keep the schedule alive.
                logger.exception("Poll cycle for %s failed: %s", self._session.address, e)
            # Fixed cadence; a long cycle pushes the schedule out instead of
            # bursting to catch up.
            next_at = max(next_at + self._interval, loop.time())

        logger.debug("Poll loop for %s finished", self._session.address)
