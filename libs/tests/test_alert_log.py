# pytest libs/tests/test_alert_log.py -q

import pytest
from pydantic import ValidationError

import common.storage as storage
from common.constants import ALERT_FALLBACK_LIMIT, ALERTS_KEY
from common.errors import StorageFailureError
from conftest import make_fix
from libs.alert_log import MAX_MESSAGE_LENGTH, AlertLog
from models.alert import AlertLogEntry
from models.location import LatLng


class BrokenStore(storage.MemoryStore):
    async def set_json(self, key, value):
        raise StorageFailureError("set", key, "quota exceeded")


@pytest.mark.asyncio
async def test_entries_are_newest_first(alert_log, store):
    await alert_log.append("Tracking started", make_fix())
    await alert_log.append("Tracking stopped")

    entries = await alert_log.entries()
    assert [e.message for e in entries] == ["Tracking stopped", "Tracking started"]
    assert entries[0].location_text() == "No location data"
    assert entries[1].location == LatLng(latitude=53.3438, longitude=-6.2546)
    # Stored oldest first
    raw = await store.get_json(ALERTS_KEY)
    assert raw[0]["message"] == "Tracking started"


@pytest.mark.asyncio
async def test_failed_write_goes_to_fallback_buffer():
    log = AlertLog(BrokenStore())

    assert await log.append("Initiating alert to 1 contacts", make_fix()) is None
    assert storage.alert_fallback[0]["message"] == "Initiating alert to 1 contacts"
    assert "quota exceeded" in storage.alert_fallback[0]["error"]


@pytest.mark.asyncio
async def test_messages_are_trimmed_and_bounded(alert_log):
    entry = await alert_log.append("  x" * MAX_MESSAGE_LENGTH)
    assert len(entry.message) == MAX_MESSAGE_LENGTH

    entry = await alert_log.append("   ")
    assert entry.message == "(no message)"


@pytest.mark.asyncio
async def test_malformed_entries_are_skipped(store):
    await store.set_json(ALERTS_KEY, [{"nope": 1}, {"message": "ok", "timestamp": "2024-05-01T12:00:00Z"}])
    log = AlertLog(store)

    assert [e.message for e in await log.entries()] == ["ok"]
    assert await log.count() == 2


def test_entries_are_frozen():
    entry = AlertLogEntry(message="Alert sent to 1 contacts")
    with pytest.raises(ValidationError):
        entry.message = "edited"


@pytest.mark.asyncio
async def test_fallback_buffer_is_bounded():
    log = AlertLog(BrokenStore())

    for i in range(ALERT_FALLBACK_LIMIT + 5):
        await log.append(f"Location update {i}")

    assert len(storage.alert_fallback) == ALERT_FALLBACK_LIMIT
    assert storage.alert_fallback[0]["message"] == "Location update 5"
