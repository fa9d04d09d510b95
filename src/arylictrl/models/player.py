"""Player models: authoritative snapshot and optimistic overlay."""

import logging
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Any

from arylictrl.api.codec import decode_hex
from arylictrl.api.protocol import MODE_SOURCES, InputSource

logger = logging.getLogger(__name__)

_MS_PER_SECOND = 1000
_SECONDS_PER_MINUTE = 60


class PlaybackStatus(StrEnum):
    """Playback status, using the device's wire values."""

    PLAYING = "play"
    PAUSED = "pause"
    STOPPED = "stop"
    LOADING = "load"

    @classmethod
    def parse(cls, value: object) -> "PlaybackStatus":
        """Parse a wire value, treating unknown values as stopped."""
        try:
            return cls(str(value).lower())
        except ValueError:
            logger.debug("Unknown playback status %r, assuming stop", value)
            return cls.STOPPED


def format_time(milliseconds: int) -> str:
    """Format milliseconds as ``M:SS``."""
    total_seconds = max(0, milliseconds) // _MS_PER_SECOND
    minutes, seconds = divmod(total_seconds, _SECONDS_PER_MINUTE)
    return f"{minutes}:{seconds:02d}"


def _int_field(data: dict[str, Any], key: str, default: int = 0) -> int:
    """Read a decimal-as-string numeric field."""
    value = data.get(key)
    if value is None or value == "":
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        logger.debug("Non-numeric %s field: %r", key, value)
        return default


@dataclass(frozen=True, slots=True)
class Track:
    """Currently loaded track.

    Attributes:
        title: Track title (never empty).
        artist: Artist (may be empty).
        album: Album (may be empty).
    """

    title: str
    artist: str = ""
    album: str = ""

    @classmethod
    def from_status(cls, data: dict[str, Any]) -> "Track | None":
        """Decode the hex Title/Artist/Album fields; None if there is no title."""
        raw_title = str(data.get("Title") or "")
        if not raw_title:
            return None
        title = decode_hex(raw_title)
        if not title:
            return None
        return cls(
            title=title,
            artist=decode_hex(str(data.get("Artist") or "")),
            album=decode_hex(str(data.get("Album") or "")),
        )


@dataclass(frozen=True, slots=True)
class PlayerSnapshot:
    """One consistent read of device player state.

    Attributes:
        status: Playback status.
        volume: Volume 0-100.
        muted: Whether output is muted.
        track: Current track, or None when nothing is loaded.
        playlist_count: Number of entries in the play queue.
        playlist_index: Index of the current entry.
        duration_ms: Track length in milliseconds.
        position_ms: Playback position in milliseconds.
        mode: Raw playback mode code (identifies the active source).
    """

    status: PlaybackStatus = PlaybackStatus.STOPPED
    volume: int = 0
    muted: bool = False
    track: Track | None = None
    playlist_count: int = 0
    playlist_index: int = 0
    duration_ms: int = 0
    position_ms: int = 0
    mode: int = 0

    def __post_init__(self) -> None:
        """Clamp volume to the 0-100 range."""
        if self.volume < 0 or self.volume > 100:  # noqa: PLR2004
            clamped = max(0, min(100, self.volume))
            logger.warning("Device volume %d out of range, clamped to %d", self.volume, clamped)
            object.__setattr__(self, "volume", clamped)

    @property
    def is_playing(self) -> bool:
        """Return True if the device is playing."""
        return self.status == PlaybackStatus.PLAYING

    @property
    def input_source(self) -> InputSource | None:
        """Return the input source implied by the playback mode, if known."""
        return MODE_SOURCES.get(self.mode)

    @property
    def progress(self) -> float:
        """Return playback progress as a fraction 0.0-1.0."""
        if self.duration_ms <= 0:
            return 0.0
        return min(1.0, max(0.0, self.position_ms / self.duration_ms))

    @property
    def position_display(self) -> str:
        """Return ``position / duration`` formatted for display."""
        return f"{format_time(self.position_ms)} / {format_time(self.duration_ms)}"

    @classmethod
    def from_status(cls, data: dict[str, Any]) -> "PlayerSnapshot":
        """Decode a ``getPlayerStatus`` payload into a snapshot."""
        return cls(
            status=PlaybackStatus.parse(data.get("status", "stop")),
            volume=_int_field(data, "vol"),
            muted=str(data.get("mute", "0")) == "1",
            track=Track.from_status(data),
            playlist_count=_int_field(data, "plicount"),
            playlist_index=_int_field(data, "plicurr"),
            duration_ms=_int_field(data, "totlen"),
            position_ms=_int_field(data, "curpos"),
            mode=_int_field(data, "mode"),
        )


@dataclass(frozen=True, slots=True)
class PlayerOverlay:
    """Optimistic local changes not yet confirmed by a poll.

    None means "no local change; use the snapshot value".
    """

    volume: int | None = None
    muted: bool | None = None
    input_source: InputSource | None = None

    @property
    def is_empty(self) -> bool:
        """Return True if the overlay holds no changes."""
        return self.volume is None and self.muted is None and self.input_source is None

    def merge(self, other: "PlayerOverlay") -> "PlayerOverlay":
        """Return a new overlay with ``other``'s set fields taking precedence."""
        return PlayerOverlay(
            volume=other.volume if other.volume is not None else self.volume,
            muted=other.muted if other.muted is not None else self.muted,
            input_source=(
                other.input_source if other.input_source is not None else self.input_source
            ),
        )


@dataclass(frozen=True, slots=True)
class PlayerView:
    """What the UI renders: the snapshot with the overlay applied.

    Attributes:
        snapshot: The authoritative snapshot.
        volume: Volume to display.
        muted: Mute state to display.
        input_source: Source to display, or None when unknown.
        pending: True while any optimistic value is unconfirmed.
    """

    snapshot: PlayerSnapshot
    volume: int
    muted: bool
    input_source: InputSource | None
    pending: bool = False

    @classmethod
    def compose(cls, snapshot: PlayerSnapshot, overlay: PlayerOverlay | None) -> "PlayerView":
        """Layer ``overlay`` over ``snapshot``."""
        view = cls(
            snapshot=snapshot,
            volume=snapshot.volume,
            muted=snapshot.muted,
            input_source=snapshot.input_source,
        )
        if overlay is None or overlay.is_empty:
            return view
        return replace(
            view,
            volume=overlay.volume if overlay.volume is not None else view.volume,
            muted=overlay.muted if overlay.muted is not None else view.muted,
            input_source=(
                overlay.input_source if overlay.input_source is not None else view.input_source
            ),
            pending=True,
        )
