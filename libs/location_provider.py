"""
Device location capability.

The OS positioning service lives on the phone; the shell forwards permission
results and position fixes to DeviceBridgeLocationProvider over HTTP, and
the core consumes them through the request/query/subscribe interface of
BaseLocationProvider.
"""

import asyncio
import inspect
import logging
import math
import uuid
from typing import Awaitable, Callable, Dict, List, Optional, Union

from common.errors import LocationUnavailableError
from common.status import LocationPermission
from libs.config import config
from models.location import LocationFix, WatchOptions

logger = logging.getLogger(__name__)

FixCallback = Callable[[LocationFix], Union[None, Awaitable[None]]]

EARTH_RADIUS_M = 6371000.0


def distance_m(a: LocationFix, b: LocationFix) -> float:
    """Great-circle distance between two fixes (haversine)."""
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude - a.longitude)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(h))


class BaseLocationProvider:
    """Base class for location providers"""

    async def request_permission(self) -> LocationPermission:
        raise NotImplementedError("Provider must implement request_permission()")

    async def get_current_fix(self) -> LocationFix:
        raise NotImplementedError("Provider must implement get_current_fix()")

    async def watch(self, options: WatchOptions, callback: FixCallback) -> str:
        raise NotImplementedError("Provider must implement watch()")

    async def unsubscribe(self, handle: str) -> None:
        raise NotImplementedError("Provider must implement unsubscribe()")


class _Watch:
    def __init__(self, options: WatchOptions, callback: FixCallback):
        self.options = options
        self.callback = callback
        self.last_delivered: Optional[LocationFix] = None

    def is_due(self, fix: LocationFix) -> bool:
        """Deliver on the interval or on enough movement, whichever comes first."""
        if self.last_delivered is None:
            return True
        elapsed_ms = (fix.timestamp - self.last_delivered.timestamp).total_seconds() * 1000
        if elapsed_ms >= self.options.interval_ms:
            return True
        return distance_m(self.last_delivered, fix) >= self.options.min_distance_m


class DeviceBridgeLocationProvider(BaseLocationProvider):
    """Provider fed by the device shell through the HTTP bridge."""

    def __init__(self, timeout: Optional[float] = None):
        self._timeout = config.PERMISSION_REQUEST_TIMEOUT if timeout is None else timeout
        self._reported: Optional[LocationPermission] = None
        self._latest: Optional[LocationFix] = None
        self._permission_waiters: List[asyncio.Future] = []
        self._fix_waiters: List[asyncio.Future] = []
        self._watches: Dict[str, _Watch] = {}

    @property
    def active_watches(self) -> int:
        return len(self._watches)

    # ========= Shell -> core =========

    def report_permission(self, granted: bool) -> LocationPermission:
        """The shell reports the result of the OS permission prompt."""
        result = LocationPermission.GRANTED if granted else LocationPermission.DENIED
        self._reported = result
        waiters, self._permission_waiters = self._permission_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(result)
        return result

    async def push_fix(self, fix: LocationFix) -> int:
        """
        The shell pushes a position fix.

        Returns:
            number of watches the fix was delivered to
        """
        self._latest = fix
        waiters, self._fix_waiters = self._fix_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(fix)

        delivered = 0
        for handle, watch in list(self._watches.items()):
            if handle not in self._watches or not watch.is_due(fix):
                continue
            watch.last_delivered = fix
            delivered += 1
            try:
                result = watch.callback(fix)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Location watch %s callback failed", handle)
        return delivered

    # ========= Core -> device =========

    async def request_permission(self) -> LocationPermission:
        if self._reported == LocationPermission.GRANTED:
            return self._reported
        waiter = asyncio.get_running_loop().create_future()
        self._permission_waiters.append(waiter)
        try:
            return await asyncio.wait_for(waiter, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise LocationUnavailableError(
                "Device did not answer the permission request", timeout_s=self._timeout
            ) from e
        finally:
            if waiter in self._permission_waiters:
                self._permission_waiters.remove(waiter)

    async def get_current_fix(self) -> LocationFix:
        if self._latest is not None:
            return self._latest
        waiter = asyncio.get_running_loop().create_future()
        self._fix_waiters.append(waiter)
        try:
            return await asyncio.wait_for(waiter, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise LocationUnavailableError(
                "No position fix received from device", timeout_s=self._timeout
            ) from e
        finally:
            if waiter in self._fix_waiters:
                self._fix_waiters.remove(waiter)

    async def watch(self, options: WatchOptions, callback: FixCallback) -> str:
        handle = f"watch_{uuid.uuid4().hex[:8]}"
        self._watches[handle] = _Watch(options, callback)
        logger.debug("Location watch %s registered (%s)", handle, options)
        return handle

    async def unsubscribe(self, handle: str) -> None:
        if self._watches.pop(handle, None) is not None:
            logger.debug("Location watch %s removed", handle)
