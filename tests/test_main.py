"""Tests for the console entry point helpers."""

import pytest
from fakes import PLAYER_STATUS, status_with

from arylictrl.__main__ import _build_parser, _describe
from arylictrl.core.config import ConfigManager
from arylictrl.models.player import PlayerOverlay, PlayerSnapshot, PlayerView


@pytest.fixture
def config() -> ConfigManager:
    """Return an empty ConfigManager."""
    config = ConfigManager("ArylicCTRLTest", "TestMain")
    config.clear()
    return config


class TestParser:
    """Tests for command-line parsing."""

    def test_defaults_from_config(self, config: ConfigManager) -> None:
        """Test timing defaults come from the stored settings."""
        config.set_poll_interval(2500)
        args = _build_parser(config).parse_args([])

        assert args.address is None
        assert args.interval == 2500
        assert args.timeout == 5000
        assert args.source is None
        assert args.join is None
        assert not args.debug

    def test_options(self, config: ConfigManager) -> None:
        """Test explicit options."""
        args = _build_parser(config).parse_args(
            ["192.168.1.50", "--source", "bluetooth", "--join", "192.168.1.60", "--debug"]
        )
        assert args.address == "192.168.1.50"
        assert args.source == "bluetooth"
        assert args.join == "192.168.1.60"
        assert args.debug

    def test_unknown_source_rejected(self, config: ConfigManager) -> None:
        """Test only selectable sources are accepted."""
        with pytest.raises(SystemExit):
            _build_parser(config).parse_args(["--source", "hdmi"])


class TestDescribe:
    """Tests for the player log line."""

    def test_no_player(self) -> None:
        """Test the text before the first snapshot."""
        assert _describe(None) == "no player status yet"

    def test_playing_track(self) -> None:
        """Test a playing track line."""
        view = PlayerView.compose(PlayerSnapshot.from_status(PLAYER_STATUS), None)
        assert _describe(view) == "playing: Hello - Artist [1:05 / 4:00], volume 35"

    def test_muted_without_track(self) -> None:
        """Test an idle, muted player."""
        snapshot = PlayerSnapshot.from_status(status_with(Title="", status="stop"))
        view = PlayerView.compose(snapshot, PlayerOverlay(muted=True))
        assert _describe(view) == "stopped, volume 35 (muted), no track"
