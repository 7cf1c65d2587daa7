import logging
from typing import Awaitable, Callable, Optional

from common.errors import LocationUnavailableError, TrackingAlreadyActiveError
from common.status import LocationPermission
from libs.config import config
from libs.location_provider import BaseLocationProvider
from models.location import LocationFix, WatchOptions

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[LocationFix], Awaitable[None]]


class LocationServiceAdapter:
    """
    Permission state, last known fix and the single continuous watch.

    Positioning faults surface as LocationUnavailableError; the permission
    state only changes on an actual permission-request result.
    """

    def __init__(
        self,
        provider: BaseLocationProvider,
        interval_ms: Optional[int] = None,
        min_distance_m: Optional[float] = None,
    ):
        self._provider = provider
        self._options = WatchOptions(
            interval_ms=interval_ms if interval_ms is not None else config.TRACKING_INTERVAL_MS,
            min_distance_m=(
                min_distance_m if min_distance_m is not None else config.TRACKING_MIN_DISTANCE_M
            ),
        )
        self._permission = LocationPermission.UNKNOWN
        self._fix: Optional[LocationFix] = None
        self._handle: Optional[str] = None

    @property
    def permission(self) -> LocationPermission:
        return self._permission

    @property
    def has_permission(self) -> bool:
        return self._permission == LocationPermission.GRANTED

    @property
    def watching(self) -> bool:
        return self._handle is not None

    def current_fix(self) -> Optional[LocationFix]:
        return self._fix

    async def request_permission(self) -> LocationPermission:
        try:
            result = await self._provider.request_permission()
        except LocationUnavailableError:
            raise
        except Exception as e:
            logger.exception("Location permission request failed")
            raise LocationUnavailableError("Failed to get location permission") from e

        self._permission = result
        if result == LocationPermission.GRANTED:
            await self.refresh_fix()
        return result

    async def refresh_fix(self) -> Optional[LocationFix]:
        """Take one fix; on a fault keep whatever was known before."""
        if not self.has_permission:
            return self._fix
        try:
            self._fix = await self._provider.get_current_fix()
        except Exception as e:
            logger.warning("Could not get a position fix: %s", e)
        return self._fix

    async def start_watch(self, on_update: UpdateCallback) -> str:
        if self._handle is not None:
            raise TrackingAlreadyActiveError()

        async def _on_fix(fix: LocationFix) -> None:
            self._fix = fix
            await on_update(fix)

        try:
            self._handle = await self._provider.watch(self._options, _on_fix)
        except Exception as e:
            logger.exception("Starting the location watch failed")
            raise LocationUnavailableError("Could not start location updates") from e
        logger.info(
            "Location watch started (every %d ms or %.0f m)",
            self._options.interval_ms,
            self._options.min_distance_m,
        )
        return self._handle

    async def stop_watch(self, handle: Optional[str]) -> None:
        """Idempotent: unknown or already stopped handles are ignored."""
        if handle is None or handle != self._handle:
            return
        self._handle = None
        try:
            await self._provider.unsubscribe(handle)
        except Exception:
            logger.exception("Location unsubscribe failed for %s", handle)
        logger.info("Location watch stopped")
