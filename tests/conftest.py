"""Test fixtures for arylictrl tests."""

import os

import pytest
from fakes import DEVICE_STATUS, FakeClient

from arylictrl.core.session import DeviceSession
from arylictrl.models.device import DeviceIdentity

# Qt needs a platform plugin even for headless signal tests
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture
def fake_client() -> FakeClient:
    """Return a FakeClient for the default device."""
    return FakeClient()


@pytest.fixture
def identity() -> DeviceIdentity:
    """Return the identity matching DEVICE_STATUS."""
    return DeviceIdentity.from_status_ex(DEVICE_STATUS)


@pytest.fixture
def session(fake_client: FakeClient, identity: DeviceIdentity) -> DeviceSession:
    """Return an open session backed by the fake client."""
    return DeviceSession(fake_client, identity)
