"""Tests for DeviceWorker (QThread host for the device engine)."""

import asyncio
import concurrent.futures
from collections.abc import Iterator

import pytest
from fakes import DEVICE_IP, FakeClient
from pytestqt.qtbot import QtBot

from arylictrl.api.protocol import DeviceApiError
from arylictrl.core.session import SessionView
from arylictrl.core.worker import DeviceWorker
from arylictrl.models.connection import ConnectionState


class TestDeviceWorkerBasics:
    """Test basic DeviceWorker functionality."""

    def test_initialization(self) -> None:
        """Test worker initialization."""
        worker = DeviceWorker(poll_interval=2.0)

        assert not worker.is_ready
        assert not worker.manager.is_connected
        assert worker.manager.poll_interval == 2.0

    def test_wait_ready_times_out_when_not_started(self) -> None:
        """Test wait_ready returns False if the thread never starts."""
        worker = DeviceWorker()
        assert worker.wait_ready(timeout=0.01) is False


class TestDeviceWorkerNoLoop:
    """Test calls are safe before the loop runs."""

    def test_connect_with_no_loop(self) -> None:
        """Test connect_device is dropped when the loop is not running."""
        worker = DeviceWorker()
        assert worker.connect_device(DEVICE_IP) is None

    def test_commands_with_no_loop(self) -> None:
        """Test control commands are dropped when the loop is not running."""
        worker = DeviceWorker()
        assert worker.play_pause() is None
        assert worker.set_volume(50) is None
        assert worker.commit_volume(50) is None
        assert worker.set_mute(True) is None
        assert worker.toggle_mute() is None
        assert worker.switch_input("wifi") is None
        assert worker.next_track() is None
        assert worker.previous_track() is None
        assert worker.stop_playback() is None
        assert worker.join_group("192.168.1.60") is None
        assert worker.request_status() is None
        assert worker.disconnect_device() is None

    def test_stop_with_no_loop(self) -> None:
        """Test stop is safe when the loop is not running."""
        worker = DeviceWorker()
        worker.stop()


class TestDeviceWorkerThreaded:
    """Test the worker running its own event loop."""

    @pytest.fixture
    def client(self) -> FakeClient:
        """Return the fake device the worker talks to."""
        return FakeClient()

    @pytest.fixture
    def worker(self, client: FakeClient, qtbot: QtBot) -> Iterator[DeviceWorker]:
        """Start a worker backed by the fake device and stop it afterwards."""
        worker = DeviceWorker(poll_interval=10.0, client_factory=lambda address: client)
        worker.start()
        assert worker.wait_ready()
        yield worker
        worker.stop()
        worker.wait(2000)

    def test_connect_and_command(
        self, worker: DeviceWorker, client: FakeClient, qtbot: QtBot
    ) -> None:
        """Test connecting and sending a command through the thread."""
        with qtbot.wait_signal(
            worker.state_changed,
            timeout=2000,
            check_params_cb=lambda state: isinstance(state, ConnectionState)
            and state.is_connected,
        ):
            future = worker.connect_device(DEVICE_IP)

        assert future is not None
        session = future.result(timeout=2)
        assert session.address == DEVICE_IP

        command = worker.play_pause()
        assert command is not None
        command.result(timeout=2)
        assert client.commands == ["setPlayerCmd:onepause"]

    def test_session_updates_are_views(
        self, worker: DeviceWorker, qtbot: QtBot
    ) -> None:
        """Test session updates cross the thread as immutable views."""
        with qtbot.wait_signal(worker.session_updated, timeout=2000) as blocker:
            worker.connect_device(DEVICE_IP)

        view = blocker.args[0]
        assert isinstance(view, SessionView)
        assert view.player is not None
        assert view.player.volume == 35

    def test_command_without_session_fails(
        self, worker: DeviceWorker, qtbot: QtBot
    ) -> None:
        """Test commands before connect fail and are reported."""
        with qtbot.wait_signal(worker.command_failed, timeout=2000) as blocker:
            future = worker.play_pause()

        assert future is not None
        with pytest.raises(DeviceApiError, match="Not connected"):
            future.result(timeout=2)
        assert blocker.args[0] == "play_pause"

    def test_stop_cancels_commands_in_flight(
        self, worker: DeviceWorker, client: FakeClient, qtbot: QtBot
    ) -> None:
        """Test a command still running at stop is cancelled, not abandoned."""
        future = worker.connect_device(DEVICE_IP)
        assert future is not None
        future.result(timeout=2)

        client.gates["setPlayerCmd:onepause"] = asyncio.Event()
        command = worker.play_pause()
        assert command is not None
        qtbot.wait_until(lambda: client.commands == ["setPlayerCmd:onepause"], timeout=2000)

        worker.stop()
        assert worker.wait(2000)

        with pytest.raises(concurrent.futures.CancelledError):
            command.result(timeout=2)
        assert not worker.is_ready
