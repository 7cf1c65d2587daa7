# libs/alert_log.py
from __future__ import annotations

import logging
from typing import List, Optional

import common.storage as _storage
from common.constants import ALERTS_KEY
from common.errors import StorageFailureError
from models.alert import AlertLogEntry
from models.location import LatLng, LocationFix

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 500


def _normalize_message(message: str) -> str:
    msg = (message or "").strip() or "(no message)"
    if len(msg) > MAX_MESSAGE_LENGTH:
        msg = msg[:MAX_MESSAGE_LENGTH]
    return msg


class AlertLog:
    """
    Append-only record of safety-relevant events.

    Entries are stored oldest-first under the "alerts" key and listed
    newest-first. A failed write never propagates: the entry is logged and
    parked in common.storage.alert_fallback so it is not lost.
    """

    def __init__(self, store: _storage.BaseStore):
        self._store = store

    async def append(
        self,
        message: str,
        location: Optional[LocationFix | LatLng] = None,
    ) -> Optional[AlertLogEntry]:
        """
        Write an alert entry.

        Args:
            message: human-readable event text
            location: fix or coordinates attached to the event (nullable)

        Returns:
            the entry on success, None if it could only be kept in memory
        """
        coords = location.coords() if isinstance(location, LocationFix) else location
        entry = AlertLogEntry(message=_normalize_message(message), location=coords)
        payload = entry.model_dump(mode="json")

        try:
            await self._store.append_json(ALERTS_KEY, payload)
            logger.info("Alert logged: %s", entry.message)
            return entry
        except StorageFailureError as exc:
            # An alert entry must not block the emergency flow
            logger.exception(
                "Alert write failed: message=%s error=%s", entry.message, repr(exc)
            )
            _storage.alert_fallback.append({**payload, "error": repr(exc)})
            return None

    async def entries(self) -> List[AlertLogEntry]:
        """All entries, newest first."""
        raw = await self._store.get_json(ALERTS_KEY, default=[])
        entries = []
        for item in raw or []:
            try:
                entries.append(AlertLogEntry.model_validate(item))
            except ValueError:
                logger.warning("Skipping malformed alert entry: %r", item)
        entries.reverse()
        return entries

    async def count(self) -> int:
        raw = await self._store.get_json(ALERTS_KEY, default=[])
        return len(raw or [])
