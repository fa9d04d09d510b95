"""Core business logic layer.

This module contains the device engine and the pieces that bridge it
with the Qt UI layer.

Classes:
    DeviceSession: State owner for one connection.
    ConnectionManager: Connect/disconnect state machine.
    SyncLoop: Periodic player-status polling.
    CommandDispatcher: User intents to device commands.
    StateStore: Read-only Qt mirror of engine state.
    DeviceWorker: QThread hosting the asyncio engine.
    ConfigManager: QSettings wrapper for configuration.
"""

from arylictrl.core.config import ConfigManager
from arylictrl.core.connection import ConnectionManager
from arylictrl.core.dispatcher import CommandDispatcher, VolumeDebouncer
from arylictrl.core.session import DeviceSession, SessionView
from arylictrl.core.state import StateStore
from arylictrl.core.sync import SyncLoop
from arylictrl.core.worker import DeviceWorker

__all__ = [
    "CommandDispatcher",
    "ConfigManager",
    "ConnectionManager",
    "DeviceSession",
    "DeviceWorker",
    "SessionView",
    "StateStore",
    "SyncLoop",
    "VolumeDebouncer",
]
