"""Tests for CommandDispatcher and VolumeDebouncer."""

import asyncio

import pytest
from fakes import PLAYER_STATUS, FakeClient

from arylictrl.api.protocol import (
    DeviceApiError,
    InputSource,
    NetworkError,
    ValidationError,
)
from arylictrl.core.dispatcher import CommandDispatcher, VolumeDebouncer
from arylictrl.core.session import DeviceSession
from arylictrl.models.player import PlayerSnapshot

DEBOUNCE = 0.05


@pytest.fixture
def connected_session(session: DeviceSession) -> DeviceSession:
    """Return a session holding one snapshot."""
    session.apply_snapshot(session.next_sequence(), PlayerSnapshot.from_status(PLAYER_STATUS))
    return session


@pytest.fixture
def dispatcher(connected_session: DeviceSession) -> CommandDispatcher:
    """Return a dispatcher with a short debounce window."""
    return CommandDispatcher(connected_session, volume_debounce=DEBOUNCE)


class TestVolumeDebouncer:
    """Tests for VolumeDebouncer on its own."""

    @pytest.mark.asyncio
    async def test_burst_sends_last_value_once(self) -> None:
        """Test a burst of pushes sends only the final value."""
        sent: list[int] = []

        async def send(value: int) -> None:
            sent.append(value)

        debouncer = VolumeDebouncer(send, delay=DEBOUNCE)
        for value in (10, 20, 30):
            debouncer.push(value)
        assert debouncer.pending_value == 30

        await debouncer.flush()
        assert sent == [30]
        assert debouncer.pending_value is None

    @pytest.mark.asyncio
    async def test_separate_windows_send_each(self) -> None:
        """Test values separated by a quiet window are each sent, in order."""
        sent: list[int] = []

        async def send(value: int) -> None:
            await asyncio.sleep(0.01)
            sent.append(value)

        debouncer = VolumeDebouncer(send, delay=0.01)
        debouncer.push(10)
        await asyncio.sleep(0.03)
        debouncer.push(20)
        await debouncer.flush()

        assert sent == [10, 20]

    @pytest.mark.asyncio
    async def test_cancel_drops_value(self) -> None:
        """Test cancel prevents the pending send."""
        sent: list[int] = []

        async def send(value: int) -> None:
            sent.append(value)

        debouncer = VolumeDebouncer(send, delay=DEBOUNCE)
        debouncer.push(10)
        debouncer.cancel()
        await asyncio.sleep(DEBOUNCE * 2)

        assert sent == []

    @pytest.mark.asyncio
    async def test_send_error_goes_to_handler(self) -> None:
        """Test a failed debounced send is reported, not raised."""
        errors: list[DeviceApiError] = []

        async def send(value: int) -> None:
            raise NetworkError("unreachable")

        debouncer = VolumeDebouncer(send, delay=0.01, on_error=errors.append)
        debouncer.push(10)
        await debouncer.flush()

        assert len(errors) == 1
        assert errors[0].code == "NETWORK_ERROR"

    @pytest.mark.asyncio
    async def test_close_drops_queued_send(self) -> None:
        """Test close drops a send queued behind one in flight."""
        sent: list[int] = []
        started = asyncio.Event()
        release = asyncio.Event()

        async def send(value: int) -> None:
            started.set()
            await release.wait()
            sent.append(value)

        debouncer = VolumeDebouncer(send, delay=0.01)
        debouncer.push(10)
        await asyncio.wait_for(started.wait(), timeout=1)
        debouncer.push(20)
        await asyncio.sleep(0.05)
        assert debouncer.pending_value is None

        debouncer.close()
        release.set()
        await debouncer.flush()

        assert sent == [10]

    @pytest.mark.asyncio
    async def test_push_after_close_ignored(self) -> None:
        """Test a closed debouncer sends nothing."""
        sent: list[int] = []

        async def send(value: int) -> None:
            sent.append(value)

        debouncer = VolumeDebouncer(send, delay=0.01)
        debouncer.close()
        debouncer.push(10)
        await asyncio.sleep(0.03)

        assert sent == []
        assert debouncer.pending_value is None

    @pytest.mark.asyncio
    async def test_unexpected_send_error_goes_to_handler(self) -> None:
        """Test a non-device error from a debounced send is still reported."""
        errors: list[DeviceApiError] = []

        async def send(value: int) -> None:
            raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")

        debouncer = VolumeDebouncer(send, delay=0.01, on_error=errors.append)
        debouncer.push(10)
        await debouncer.flush()

        assert len(errors) == 1
        assert errors[0].message.startswith("Unexpected error")


class TestDispatcherVolume:
    """Tests for volume commands."""

    @pytest.mark.asyncio
    async def test_debounced_volume(
        self,
        dispatcher: CommandDispatcher,
        connected_session: DeviceSession,
        fake_client: FakeClient,
    ) -> None:
        """Test a slider drag sends one command with the final value."""
        for value in (10, 20, 30):
            dispatcher.set_volume(value)

        player = connected_session.player
        assert player is not None
        assert player.volume == 30
        assert player.pending
        assert fake_client.commands == []

        await dispatcher.flush()
        assert fake_client.commands == ["setPlayerCmd:vol:30"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("volume", [150, -1])
    async def test_invalid_volume_rejected(
        self,
        dispatcher: CommandDispatcher,
        connected_session: DeviceSession,
        fake_client: FakeClient,
        volume: int,
    ) -> None:
        """Test out-of-range volume raises and sends nothing."""
        with pytest.raises(ValidationError):
            dispatcher.set_volume(volume)
        with pytest.raises(ValidationError):
            await dispatcher.commit_volume(volume)

        await dispatcher.flush()
        assert fake_client.commands == []
        assert connected_session.overlay is None

    @pytest.mark.asyncio
    async def test_commit_bypasses_debounce(
        self, dispatcher: CommandDispatcher, fake_client: FakeClient
    ) -> None:
        """Test a committed volume is sent at once and drops the pending one."""
        dispatcher.set_volume(20)
        await dispatcher.commit_volume(50)

        assert fake_client.commands == ["setPlayerCmd:vol:50"]
        await asyncio.sleep(DEBOUNCE * 2)
        assert fake_client.commands == ["setPlayerCmd:vol:50"]

    @pytest.mark.asyncio
    async def test_debounced_error_reported(
        self, connected_session: DeviceSession, fake_client: FakeClient
    ) -> None:
        """Test a failing debounced send reaches the error handler."""
        errors: list[DeviceApiError] = []
        dispatcher = CommandDispatcher(
            connected_session, volume_debounce=0.01, on_error=errors.append
        )
        fake_client.errors["setPlayerCmd:vol:30"] = NetworkError("unreachable")

        dispatcher.set_volume(30)
        await dispatcher.flush()

        assert [e.message for e in errors] == ["unreachable"]

    @pytest.mark.asyncio
    async def test_cancel_pending(
        self, dispatcher: CommandDispatcher, fake_client: FakeClient
    ) -> None:
        """Test a pending debounced volume can be dropped."""
        dispatcher.set_volume(20)
        dispatcher.cancel_pending()
        await asyncio.sleep(DEBOUNCE * 2)
        assert fake_client.commands == []

    @pytest.mark.asyncio
    async def test_cancel_pending_drops_queued_send(
        self, dispatcher: CommandDispatcher, fake_client: FakeClient
    ) -> None:
        """Test only the volume already on the wire goes out after disconnect."""
        gate = asyncio.Event()
        fake_client.gates["setPlayerCmd:vol:10"] = gate

        dispatcher.set_volume(10)
        await asyncio.sleep(DEBOUNCE * 2)
        dispatcher.set_volume(20)
        await asyncio.sleep(DEBOUNCE * 2)
        assert fake_client.commands == ["setPlayerCmd:vol:10"]

        dispatcher.cancel_pending()
        gate.set()
        await dispatcher.flush()

        assert fake_client.commands == ["setPlayerCmd:vol:10"]


class TestDispatcherCommands:
    """Tests for the other control commands."""

    @pytest.mark.asyncio
    async def test_transport_commands(
        self, dispatcher: CommandDispatcher, fake_client: FakeClient
    ) -> None:
        """Test play/pause, next, previous and stop."""
        await dispatcher.play_pause()
        await dispatcher.next_track()
        await dispatcher.previous_track()
        await dispatcher.stop()

        assert fake_client.commands == [
            "setPlayerCmd:onepause",
            "setPlayerCmd:next",
            "setPlayerCmd:prev",
            "setPlayerCmd:stop",
        ]

    @pytest.mark.asyncio
    async def test_set_mute_is_optimistic(
        self,
        dispatcher: CommandDispatcher,
        connected_session: DeviceSession,
        fake_client: FakeClient,
    ) -> None:
        """Test mute shows immediately and is sent."""
        await dispatcher.set_mute(True)

        player = connected_session.player
        assert player is not None
        assert player.muted is True
        assert fake_client.commands == ["setPlayerCmd:mute:1"]

    @pytest.mark.asyncio
    async def test_toggle_mute(
        self, dispatcher: CommandDispatcher, fake_client: FakeClient
    ) -> None:
        """Test toggling follows the displayed state."""
        assert await dispatcher.toggle_mute() is True
        assert await dispatcher.toggle_mute() is False
        assert fake_client.commands == ["setPlayerCmd:mute:1", "setPlayerCmd:mute:0"]

    @pytest.mark.asyncio
    async def test_toggle_mute_without_snapshot(
        self, session: DeviceSession, fake_client: FakeClient
    ) -> None:
        """Test toggling with no known state mutes."""
        dispatcher = CommandDispatcher(session)
        assert await dispatcher.toggle_mute() is True

    @pytest.mark.asyncio
    async def test_switch_input(
        self,
        dispatcher: CommandDispatcher,
        connected_session: DeviceSession,
        fake_client: FakeClient,
    ) -> None:
        """Test switching by enum or by name."""
        await dispatcher.switch_input(InputSource.OPTICAL)
        await dispatcher.switch_input("Bluetooth")

        player = connected_session.player
        assert player is not None
        assert player.input_source == InputSource.BLUETOOTH
        assert fake_client.commands == [
            "setPlayerCmd:switchmode:optical",
            "setPlayerCmd:switchmode:bluetooth",
        ]

    @pytest.mark.asyncio
    async def test_switch_input_unknown(
        self, dispatcher: CommandDispatcher, fake_client: FakeClient
    ) -> None:
        """Test an unknown source raises before any request."""
        with pytest.raises(ValidationError):
            await dispatcher.switch_input("hdmi")
        assert fake_client.commands == []

    @pytest.mark.asyncio
    async def test_join_group(
        self, dispatcher: CommandDispatcher, fake_client: FakeClient
    ) -> None:
        """Test joining a group hosted by another device."""
        await dispatcher.join_group(" 192.168.1.60 ")
        assert fake_client.commands == [
            "ConnectMasterAp:JoinGroupMaster:eth192.168.1.60:wifi0.0.0.0"
        ]

    @pytest.mark.asyncio
    async def test_join_group_invalid_host(
        self, dispatcher: CommandDispatcher, fake_client: FakeClient
    ) -> None:
        """Test a malformed host is rejected locally."""
        with pytest.raises(ValidationError, match="Invalid IP address format"):
            await dispatcher.join_group("living-room")
        assert fake_client.commands == []

    @pytest.mark.asyncio
    async def test_command_error_propagates(
        self, dispatcher: CommandDispatcher, fake_client: FakeClient
    ) -> None:
        """Test a failing command raises to the caller."""
        fake_client.errors["setPlayerCmd:onepause"] = NetworkError("unreachable")
        with pytest.raises(NetworkError):
            await dispatcher.play_pause()

    @pytest.mark.asyncio
    async def test_closed_session_rejects_commands(
        self,
        dispatcher: CommandDispatcher,
        connected_session: DeviceSession,
        fake_client: FakeClient,
    ) -> None:
        """Test commands fail once the session is closed."""
        connected_session.close()

        with pytest.raises(DeviceApiError, match="Not connected"):
            await dispatcher.play_pause()
        with pytest.raises(DeviceApiError, match="Not connected"):
            dispatcher.set_volume(10)
        assert fake_client.commands == []
