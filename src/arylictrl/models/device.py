"""DeviceIdentity model: static facts about a connected device."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class DeviceIdentity:
    """Descriptive device fields, fetched once per session.

    Attributes:
        name: User-assigned device name.
        firmware: Firmware version string.
        hardware: Hardware/board identifier.
        mac: MAC address (may be empty).
        uuid: Device UUID.
        project: Product/project code (e.g. "UP2STREAM_AMP_V3").
        group_name: Multiroom group name, empty when ungrouped.
        ssid: Device's own access point SSID.
    """

    name: str
    firmware: str = ""
    hardware: str = ""
    mac: str = ""
    uuid: str = ""
    project: str = ""
    group_name: str = ""
    ssid: str = ""

    @property
    def display_name(self) -> str:
        """Return name for display, falling back to the project code."""
        return self.name or self.project or "Arylic device"

    @classmethod
    def from_status_ex(cls, data: dict[str, Any]) -> "DeviceIdentity":
        """Build from a ``getStatusEx`` payload."""

        def text(key: str) -> str:
            value = data.get(key)
            return str(value) if value is not None else ""

        return cls(
            name=text("DeviceName"),
            firmware=text("firmware"),
            hardware=text("hardware"),
            mac=text("MAC") or text("STA_MAC"),
            uuid=text("uuid"),
            project=text("project"),
            group_name=text("GroupName"),
            ssid=text("ssid"),
        )
