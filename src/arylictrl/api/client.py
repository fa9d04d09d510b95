"""Arylic HTTP API client.

Devices expose a single endpoint, ``/httpapi.asp?command=<cmd>``, answering
JSON for status queries and a bare ``OK`` for control commands.

The client is bound to one device address for its whole life and keeps no
state between calls, so a poll and a control command may be in flight at
the same time.
"""

import json
import logging
from typing import Any

import aiohttp

from arylictrl.api.protocol import (
    API_PATH,
    CMD_DEVICE_STATUS,
    CMD_NEXT,
    CMD_PLAY_PAUSE,
    CMD_PLAYER_STATUS,
    CMD_PREVIOUS,
    CMD_STOP,
    ConnectionTimeout,
    InputSource,
    InvalidResponseError,
    NetworkError,
    ProtocolError,
    join_group_command,
    mute_command,
    switch_input_command,
    volume_command,
)

logger = logging.getLogger(__name__)

DEFAULT_PORT = 80
DEFAULT_TIMEOUT = 5.0  # seconds

HEADERS: dict[str, str] = {"Accept": "application/json", "Connection": "close"}


class ArylicClient:
    """Async HTTP client for one Arylic device.

    Example:
        client = ArylicClient("192.168.1.50")
        status = await client.get_player_status()
        await client.set_volume(40)
    """

    def __init__(
        self,
        address: str,
        port: int = DEFAULT_PORT,
        timeout: float = DEFAULT_TIMEOUT,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            address: Device IPv4 address (already validated).
            port: HTTP port (default 80).
            timeout: Per-request timeout in seconds.
            session: Optional shared aiohttp session. When omitted every
                request opens and closes its own session.
        """
        self._address = address
        self._port = port
        self._timeout = timeout
        self._session = session
        host = address if port == DEFAULT_PORT else f"{address}:{port}"
        self._base_url = f"http://{host}"

    @property
    def address(self) -> str:
        """Return the device address this client talks to."""
        return self._address

    @property
    def port(self) -> int:
        """Return the HTTP port."""
        return self._port

    @property
    def timeout(self) -> float:
        """Return the default per-request timeout in seconds."""
        return self._timeout

    @property
    def base_url(self) -> str:
        """Return the device base URL."""
        return self._base_url

    def url_for(self, command: str) -> str:
        """Return the full request URL for a command."""
        return f"{self._base_url}{API_PATH}?command={command}"

    async def request(self, command: str, timeout: float | None = None) -> Any:
        """Send one command and return the decoded body.

        Args:
            command: Command string, e.g. ``"setPlayerCmd:vol:30"``.
            timeout: Override for the default timeout, in seconds.

        Returns:
            Parsed JSON if the body is JSON, otherwise the stripped text.

        Raises:
            ConnectionTimeout: No response within the timeout.
            ProtocolError: Non-2xx HTTP status.
            InvalidResponseError: Body in an unknown charset.
            NetworkError: Any other transport failure.
        """
        url = self.url_for(command)
        budget = self._timeout if timeout is None else timeout
        logger.debug("GET %s (timeout %.1fs)", url, budget)

        try:
            if self._session is not None:
                text = await self._fetch(self._session, url, budget)
            else:
                async with aiohttp.ClientSession() as session:
                    text = await self._fetch(session, url, budget)
        except TimeoutError as e:
            raise ConnectionTimeout(
                f"Request timeout - device {self._address} may be unreachable"
            ) from e
        except aiohttp.ClientResponseError as e:
            raise ProtocolError(f"HTTP {e.status}: {e.message}", status=e.status) from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"Network error talking to {self._address}: {e}", str(e)) from e
        except LookupError as e:
            # Unknown charset in Content-Type
            raise InvalidResponseError(
                f"Unreadable response from {self._address}: {e}", status=200
            ) from e

        return _decode_body(text)

    async def _fetch(self, session: aiohttp.ClientSession, url: str, timeout: float) -> str:
        """Perform the GET and return the body text."""
        async with session.get(
            url,
            headers=HEADERS,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as resp:
            resp.raise_for_status()
            # Firmware sends raw bytes in some metadata fields
            return await resp.text(errors="replace")

    async def request_json(self, command: str) -> dict[str, Any]:
        """Send a query command that must answer with a JSON object.

        Raises:
            InvalidResponseError: If the body is not a JSON object.
        """
        data = await self.request(command)
        if not isinstance(data, dict):
            raise InvalidResponseError(
                f"Unexpected response to {command}: {str(data)[:80]!r}", status=200
            )
        return data

    # Queries

    async def get_player_status(self) -> dict[str, Any]:
        """Return the raw ``getPlayerStatus`` payload."""
        return await self.request_json(CMD_PLAYER_STATUS)

    async def get_device_status(self) -> dict[str, Any]:
        """Return the raw ``getStatusEx`` payload."""
        return await self.request_json(CMD_DEVICE_STATUS)

    # Commands

    async def set_volume(self, volume: int) -> None:
        """Set volume 0-100.

        Raises:
            ValidationError: Before any request if volume is out of range.
        """
        await self.request(volume_command(volume))

    async def toggle_play_pause(self) -> None:
        """Toggle between play and pause."""
        await self.request(CMD_PLAY_PAUSE)

    async def set_mute(self, muted: bool) -> None:
        """Set mute state."""
        await self.request(mute_command(muted))

    async def switch_input(self, source: InputSource) -> None:
        """Switch the active input source."""
        await self.request(switch_input_command(source))

    async def next_track(self) -> None:
        """Skip to the next track."""
        await self.request(CMD_NEXT)

    async def previous_track(self) -> None:
        """Skip to the previous track."""
        await self.request(CMD_PREVIOUS)

    async def stop(self) -> None:
        """Stop playback."""
        await self.request(CMD_STOP)

    async def join_group(self, host: str) -> None:
        """Join the multiroom group hosted by ``host``."""
        await self.request(join_group_command(host))


def _decode_body(text: str) -> Any:
    """Parse a response body: JSON when possible, else plain text."""
    stripped = text.strip()
    if not stripped or stripped == "OK":
        return stripped
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        logger.debug("Non-JSON response body: %r", stripped[:80])
        return stripped
