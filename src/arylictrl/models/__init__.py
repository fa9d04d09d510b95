"""Data models for device identity, player state and connection state."""

from arylictrl.models.connection import ConnectionState, ConnectionStatus
from arylictrl.models.device import DeviceIdentity
from arylictrl.models.player import (
    PlaybackStatus,
    PlayerOverlay,
    PlayerSnapshot,
    PlayerView,
    Track,
    format_time,
)

__all__ = [
    "ConnectionState",
    "ConnectionStatus",
    "DeviceIdentity",
    "PlaybackStatus",
    "PlayerOverlay",
    "PlayerSnapshot",
    "PlayerView",
    "Track",
    "format_time",
]
