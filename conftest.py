"""
Shared test fixtures for the SafeWords core.

This module provides reusable fakes for:
- the device SMS capability (group / individual / failing numbers)
- the device location capability (permission, fixes, watches)
- an in-memory store, alert log, contact store and a fast panic machine
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

import pytest

import common.storage as storage
from common.status import DeliveryOutcome, LocationPermission
from libs.alert_log import AlertLog
from libs.location_provider import BaseLocationProvider
from libs.sms_gateway import BaseSmsGateway
from models.location import LocationFix, WatchOptions
from services.contacts.store import ContactStore
from services.dispatch.pipeline import DispatchPipeline
from services.location.adapter import LocationServiceAdapter
from services.panic.machine import PanicStateMachine

FAST_COUNTDOWN_MS = 50


class FakeSmsGateway(BaseSmsGateway):
    """
    Scriptable SMS capability.

    Args:
        group: advertise group send
        group_outcome: what send_many reports
        failing: numbers whose send_one reports failed
        unknown: numbers whose send_one reports unknown
        raising: numbers whose send_one raises
    """

    name = "fake"

    def __init__(
        self,
        *,
        group: bool = False,
        group_outcome: DeliveryOutcome = DeliveryOutcome.SENT,
        failing: Iterable[str] = (),
        unknown: Iterable[str] = (),
        raising: Iterable[str] = (),
        available: bool = True,
    ):
        self.supports_group_send = group
        self.group_outcome = group_outcome
        self.failing = set(failing)
        self.unknown = set(unknown)
        self.raising = set(raising)
        self.available = available
        self.group_calls: List[dict] = []
        self.single_calls: List[dict] = []

    async def is_available(self) -> bool:
        return self.available

    async def send_many(self, numbers, text):
        self.group_calls.append({"to": list(numbers), "message": text})
        return self.group_outcome

    async def send_one(self, number, text):
        self.single_calls.append({"to": number, "message": text})
        if number in self.raising:
            raise RuntimeError(f"radio error for {number}")
        if number in self.failing:
            return DeliveryOutcome.FAILED
        if number in self.unknown:
            return DeliveryOutcome.UNKNOWN
        return DeliveryOutcome.SENT

    @property
    def sent_messages(self) -> List[str]:
        return [c["message"] for c in self.group_calls + self.single_calls]


class FakeLocationProvider(BaseLocationProvider):
    def __init__(
        self,
        permission: LocationPermission = LocationPermission.GRANTED,
        fix: Optional[LocationFix] = None,
        fail_fix: bool = False,
    ):
        self.permission = permission
        self.fix = fix
        self.fail_fix = fail_fix
        self.watches: Dict[str, tuple] = {}
        self.unsubscribed: List[str] = []
        self._seq = 0

    async def request_permission(self):
        return self.permission

    async def get_current_fix(self):
        if self.fail_fix or self.fix is None:
            raise RuntimeError("no position")
        return self.fix

    async def watch(self, options: WatchOptions, callback):
        self._seq += 1
        handle = f"fake_{self._seq}"
        self.watches[handle] = (options, callback)
        return handle

    async def unsubscribe(self, handle):
        self.watches.pop(handle, None)
        self.unsubscribed.append(handle)

    async def emit(self, fix: LocationFix) -> None:
        for _, callback in list(self.watches.values()):
            await callback(fix)


def make_fix(lat: float = 53.3438, lon: float = -6.2546, seconds: int = 0) -> LocationFix:
    base = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    return LocationFix(latitude=lat, longitude=lon, timestamp=base + timedelta(seconds=seconds))


@pytest.fixture(autouse=True)
def clear_alert_fallback():
    storage.alert_fallback.clear()
    yield
    storage.alert_fallback.clear()


@pytest.fixture()
def store():
    return storage.MemoryStore()


@pytest.fixture()
def alert_log(store):
    return AlertLog(store)


@pytest.fixture()
def contacts(store):
    return ContactStore(store)


@pytest.fixture()
def gateway():
    return FakeSmsGateway()


@pytest.fixture()
def fix():
    return make_fix()


@pytest.fixture()
def provider(fix):
    return FakeLocationProvider(fix=fix)


@pytest.fixture()
def location(provider):
    return LocationServiceAdapter(provider, interval_ms=10000, min_distance_m=10)


@pytest.fixture()
def pipeline(gateway, alert_log):
    return DispatchPipeline(gateway, alert_log)


@pytest.fixture()
def machine(contacts, pipeline, location, alert_log):
    return PanicStateMachine(
        contacts, pipeline, location, alert_log, countdown_ms=FAST_COUNTDOWN_MS
    )
