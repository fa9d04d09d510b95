"""Configuration manager using QSettings for persistent storage."""

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from PySide6.QtCore import QSettings

from arylictrl.api.codec import validate_address

logger = logging.getLogger(__name__)

# Settings keys
_KEY_LAST_DEVICE = "arylic_device_ip"

# Engine timing (milliseconds)
_KEY_POLL_INTERVAL = "engine/poll_interval_ms"
_KEY_REQUEST_TIMEOUT = "engine/request_timeout_ms"
_KEY_VOLUME_DEBOUNCE = "engine/volume_debounce_ms"

DEFAULT_POLL_INTERVAL_MS = 1000
DEFAULT_REQUEST_TIMEOUT_MS = 5000
DEFAULT_VOLUME_DEBOUNCE_MS = 300

_MIN_POLL_INTERVAL_MS = 100
_MIN_REQUEST_TIMEOUT_MS = 100


@dataclass(frozen=True, slots=True)
class LastDevice:
    """The persisted session hint.

    Attributes:
        device_ip: Address of the last successfully connected device.
        last_connected: When that connection was made (UTC).
    """

    device_ip: str
    last_connected: datetime | None = None


class ConfigManager:
    """Wrapper around QSettings for type-safe config access.

    QSettings stores config in platform-specific locations:
    - Windows: HKEY_CURRENT_USER\\Software\\ArylicCTRL\\ArylicCTRL
    - macOS: ~/Library/Preferences/com.ArylicCTRL.ArylicCTRL.plist
    - Linux: ~/.config/ArylicCTRL/ArylicCTRL.conf

    Also satisfies the ConnectionManager's SessionStorage protocol.

    Example:
        config = ConfigManager()
        address = config.get_last_device_ip()
        config.save_last_device("192.168.1.50")
    """

    def __init__(self, organization: str = "ArylicCTRL", application: str = "ArylicCTRL") -> None:
        """Initialize the config manager.

        Args:
            organization: Organization name for QSettings.
            application: Application name for QSettings.
        """
        self._settings = QSettings(organization, application)

    @property
    def settings(self) -> QSettings:
        """Return the underlying QSettings instance."""
        return self._settings

    # -- Last device ----------------------------------------------------------

    def get_last_device(self) -> LastDevice | None:
        """Load the last connected device record.

        The record is stored as ``{"deviceIP": ..., "lastConnected": ...}``.
        Unreadable records and invalid addresses are ignored.

        Returns:
            LastDevice, or None if nothing usable is stored.
        """
        raw = self._settings.value(_KEY_LAST_DEVICE, "", str)
        if not raw:
            return None

        try:
            data = json.loads(str(raw))
        except json.JSONDecodeError as e:
            logger.warning("Ignoring unreadable last device record: %s", e)
            return None
        if not isinstance(data, dict):
            return None

        validation = validate_address(str(data.get("deviceIP", "")))
        if not validation.valid or validation.normalized is None:
            logger.warning("Ignoring stored device address: %s", validation.errors)
            return None

        last_connected: datetime | None = None
        stamp = data.get("lastConnected")
        if isinstance(stamp, str) and stamp:
            try:
                last_connected = datetime.fromisoformat(stamp)
            except ValueError:
                logger.debug("Bad lastConnected timestamp: %r", stamp)

        return LastDevice(device_ip=validation.normalized, last_connected=last_connected)

    def get_last_device_ip(self) -> str | None:
        """Return the last connected device address, or None."""
        last = self.get_last_device()
        return last.device_ip if last else None

    def save_last_device(self, address: str) -> None:
        """Record ``address`` as the last connected device, stamped now.

        Args:
            address: A validated device address.
        """
        record = {
            "deviceIP": address,
            "lastConnected": datetime.now(UTC).isoformat(),
        }
        self._settings.setValue(_KEY_LAST_DEVICE, json.dumps(record))
        logger.debug("Saved last device %s", address)

    def clear_last_device(self) -> None:
        """Forget the last connected device."""
        self._settings.remove(_KEY_LAST_DEVICE)

    # -- Engine timing --------------------------------------------------------

    def get_poll_interval(self) -> int:
        """Return the status poll interval in milliseconds (default 1000)."""
        value = self._settings.value(_KEY_POLL_INTERVAL, DEFAULT_POLL_INTERVAL_MS, int)
        return max(_MIN_POLL_INTERVAL_MS, int(value))  # type: ignore[arg-type]

    def set_poll_interval(self, ms: int) -> None:
        """Set the status poll interval in milliseconds."""
        self._settings.setValue(_KEY_POLL_INTERVAL, max(_MIN_POLL_INTERVAL_MS, ms))

    def get_request_timeout(self) -> int:
        """Return the per-request timeout in milliseconds (default 5000)."""
        value = self._settings.value(_KEY_REQUEST_TIMEOUT, DEFAULT_REQUEST_TIMEOUT_MS, int)
        return max(_MIN_REQUEST_TIMEOUT_MS, int(value))  # type: ignore[arg-type]

    def set_request_timeout(self, ms: int) -> None:
        """Set the per-request timeout in milliseconds."""
        self._settings.setValue(_KEY_REQUEST_TIMEOUT, max(_MIN_REQUEST_TIMEOUT_MS, ms))

    def get_volume_debounce(self) -> int:
        """Return the volume debounce window in milliseconds (default 300)."""
        value = self._settings.value(_KEY_VOLUME_DEBOUNCE, DEFAULT_VOLUME_DEBOUNCE_MS, int)
        return max(0, int(value))  # type: ignore[arg-type]

    def set_volume_debounce(self, ms: int) -> None:
        """Set the volume debounce window in milliseconds."""
        self._settings.setValue(_KEY_VOLUME_DEBOUNCE, max(0, ms))

    # -- Housekeeping ---------------------------------------------------------

    def clear(self) -> None:
        """Remove all settings."""
        self._settings.clear()

    def sync(self) -> None:
        """Flush settings to disk."""
        self._settings.sync()
