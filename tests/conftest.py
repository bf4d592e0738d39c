from __future__ import annotations

from datetime import datetime, timezone

import pytest

from keygate.clock import FrozenClock
from keygate.keystore import KeyStore
from keygate.scriptstore import ScriptStore
from keygate.service import EntitlementService


class _RecordingSink:
    def __init__(self):
        self.events = []

    def __call__(self, event, payload):
        self.events.append((event, payload))

    def names(self):
        return [event for event, _ in self.events]


@pytest.fixture
def clock():
    return FrozenClock(datetime(2025, 1, 1, tzinfo=timezone.utc))


@pytest.fixture
def key_store(clock):
    return KeyStore(clock=clock)


@pytest.fixture
def script_store():
    return ScriptStore()


@pytest.fixture
def audit_sink():
    return _RecordingSink()


@pytest.fixture
def service(clock, key_store, script_store, audit_sink):
    return EntitlementService(
        key_store=key_store,
        script_store=script_store,
        clock=clock,
        audit_sink=audit_sink,
    )
