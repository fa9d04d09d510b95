"""Main entry point for the ArylicCTRL console controller."""

import argparse
import logging
import signal
import sys

from PySide6.QtCore import QCoreApplication, QTimer

from arylictrl.api.codec import validate_address
from arylictrl.api.protocol import INPUT_SOURCES
from arylictrl.core.config import ConfigManager
from arylictrl.core.state import StateStore
from arylictrl.core.worker import DeviceWorker
from arylictrl.models.connection import ConnectionState
from arylictrl.models.player import PlayerView

logger = logging.getLogger(__name__)

_MS_PER_SECOND = 1000.0


def _build_parser(config: ConfigManager) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="arylictrl",
        description="ArylicCTRL - Arylic / LinkPlay device controller",
    )
    parser.add_argument(
        "address", nargs="?", default=None,
        help="device IP address (default: last connected device)",
    )
    parser.add_argument(
        "--interval", type=int, default=config.get_poll_interval(),
        help="status poll interval in ms (default: %(default)s)",
    )
    parser.add_argument(
        "--timeout", type=int, default=config.get_request_timeout(),
        help="request timeout in ms (default: %(default)s)",
    )
    parser.add_argument(
        "--source", choices=[o.value.value for o in INPUT_SOURCES], default=None,
        help="switch to this input source after connecting",
    )
    parser.add_argument(
        "--join", metavar="HOST", default=None,
        help="join the multiroom group hosted at HOST after connecting",
    )
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    return parser


def _describe(view: PlayerView | None) -> str:
    """Return a one-line description of the player for the log."""
    if view is None:
        return "no player status yet"
    snapshot = view.snapshot
    muted = " (muted)" if view.muted else ""
    if snapshot.track is None:
        return f"{snapshot.status.name.lower()}, volume {view.volume}{muted}, no track"
    track = snapshot.track
    artist = f" - {track.artist}" if track.artist else ""
    return (
        f"{snapshot.status.name.lower()}: {track.title}{artist} "
        f"[{snapshot.position_display}], volume {view.volume}{muted}"
    )


def main() -> int:
    """Run the ArylicCTRL console controller.

    Returns:
        Exit code (0 for success).
    """
    QCoreApplication.setApplicationName("ArylicCTRL")
    QCoreApplication.setOrganizationName("ArylicCTRL")
    app = QCoreApplication(sys.argv)

    config = ConfigManager()
    parsed = _build_parser(config).parse_args(app.arguments()[1:])

    logging.basicConfig(
        level=logging.DEBUG if parsed.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    address = parsed.address or config.get_last_device_ip()
    validation = validate_address(address)
    if not validation.valid or validation.normalized is None:
        logger.error("%s", "; ".join(validation.errors))
        logger.error("Usage: arylictrl <device-ip>")
        return 1
    address = validation.normalized

    state_store = StateStore()
    worker = DeviceWorker(
        storage=config,
        poll_interval=parsed.interval / _MS_PER_SECOND,
        timeout=parsed.timeout / _MS_PER_SECOND,
        volume_debounce=config.get_volume_debounce() / _MS_PER_SECOND,
    )
    worker.state_changed.connect(state_store.update_connection)
    worker.session_updated.connect(state_store.update_session)

    def on_connection_changed(state: object) -> None:
        if not isinstance(state, ConnectionState):
            return
        if state.is_connected and state.identity is not None:
            identity = state.identity
            logger.info(
                "Connected to %s (firmware %s, MAC %s)",
                identity.display_name,
                identity.firmware or "?",
                identity.mac or "?",
            )
            if parsed.source:
                worker.switch_input(parsed.source)
            if parsed.join:
                worker.join_group(parsed.join)
        elif state.error:
            logger.error("Connection failed: %s", state.error)
            app.exit(2)

    def on_player_changed(view: object) -> None:
        if view is None or isinstance(view, PlayerView):
            logger.info("%s", _describe(view))

    def on_error_changed(message: str) -> None:
        if message:
            logger.warning("Device error: %s", message)

    def on_command_failed(name: str, error: object) -> None:
        logger.error("%s failed: %s", name, error)
        state_store.report_error(str(error))

    state_store.connection_changed.connect(on_connection_changed)
    state_store.player_changed.connect(on_player_changed)
    state_store.error_changed.connect(on_error_changed)
    worker.command_failed.connect(on_command_failed)

    # Let the Python interpreter run so Ctrl+C is noticed.
    signal.signal(signal.SIGINT, lambda *_: app.quit())
    interrupt_timer = QTimer()
    interrupt_timer.timeout.connect(lambda: None)
    interrupt_timer.start(200)

    worker.start()
    if not worker.wait_ready():
        logger.error("Worker failed to start")
        return 1
    worker.connect_device(address)

    exit_code = app.exec()

    worker.stop()
    worker.wait()
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
