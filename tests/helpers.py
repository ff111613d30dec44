"""Shared fixtures for the test suite."""
from datetime import datetime, timedelta
from unittest.mock import Mock

from parksys_api.config import TestConfig
from parksys_api.services import (
    NotificationDispatcher,
    ParkingLifecycle,
    RateTable,
    ReportAggregator,
    SlotRegistry,
    VehicleLedger,
)


class FakeClock:
    def __init__(self, start=datetime(2024, 1, 15, 9, 0, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


class FakeRedis:
    """Just enough of the redis client API for the OTP store."""

    def __init__(self):
        self.data = {}
        self.ttl = {}

    def ping(self):
        return True

    def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttl[key] = ttl

    def get(self, key):
        return self.data.get(key)

    def delete(self, key):
        self.ttl.pop(key, None)
        return 1 if self.data.pop(key, None) is not None else 0


class RecordingChannel:
    """Notification channel that fails a configurable number of times."""

    def __init__(self, name='email', failures=0, error=None):
        self.name = name
        self.failures = failures
        self.error = error or RuntimeError("gateway unavailable")
        self.sender = Mock(configured=True)
        self.delivered = []
        self.calls = 0

    def send(self, recipient, template_id, data):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        self.delivered.append((recipient, template_id, data))


def build_domain(store, clock=None, dispatcher=None, **lifecycle_options):
    """Wire the domain services around ``store`` with a controllable clock."""
    clock = clock or FakeClock()
    rates = RateTable(store, clock=clock)
    slots = SlotRegistry(store, clock=clock)
    ledger = VehicleLedger(store, clock=clock)
    lifecycle = ParkingLifecycle(
        store, slots, ledger, rates,
        dispatcher=dispatcher,
        clock=clock,
        **lifecycle_options
    )
    return {
        'store': store,
        'clock': clock,
        'rates': rates,
        'slots': slots,
        'ledger': ledger,
        'lifecycle': lifecycle,
        'reports': ReportAggregator(store, slots, clock=clock),
    }


def recording_dispatcher():
    return NotificationDispatcher(
        channels=[RecordingChannel('email'), RecordingChannel('sms')],
        workers=0,
        max_retries=0,
        backoff_seconds=0,
        sleep=Mock(),
    )


class SqlTestConfig(TestConfig):
    STORAGE_BACKEND = 'sql'
    DATABASE_URL = 'sqlite://'
    SEED_DEFAULT_DATA = False
