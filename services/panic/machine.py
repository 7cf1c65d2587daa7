import asyncio
import logging
from typing import Callable, List, Optional

from common.errors import (
    LocationUnavailableError,
    PermissionDeniedError,
    PermissionRequiredError,
    TrackingAlreadyActiveError,
)
from common.status import LocationPermission, NavigationTarget, PanicState
from libs.alert_log import AlertLog
from libs.config import config
from models.dispatch import DispatchReport
from models.location import LocationFix
from models.panic import PanicSnapshot
from services.contacts.store import ContactStore
from services.dispatch.pipeline import DispatchPipeline
from services.location.adapter import LocationServiceAdapter

logger = logging.getLogger(__name__)

DispatchListener = Callable[[DispatchReport], None]


class PanicStateMachine:
    """
    Hold-to-trigger panic button.

    idle --press--> counting --release--> idle (no side effects)
    counting --countdown expires--> dispatching --> idle

    On expiry the emergency runs as a background task: republish contacts,
    dispatch, then start tracking. The gesture handlers return at once and
    nothing the UI does later can cancel an emergency already in flight.
    The machine is the only owner of the tracking subscription.
    """

    def __init__(
        self,
        contacts: ContactStore,
        pipeline: DispatchPipeline,
        location: LocationServiceAdapter,
        alert_log: AlertLog,
        countdown_ms: Optional[int] = None,
    ):
        self._contacts = contacts
        self._pipeline = pipeline
        self._location = location
        self._log = alert_log
        self._countdown_s = (
            countdown_ms if countdown_ms is not None else config.PANIC_COUNTDOWN_MS
        ) / 1000

        self.state = PanicState.IDLE
        self.last_report: Optional[DispatchReport] = None
        self._countdown: Optional[asyncio.Task] = None
        self._emergency: Optional[asyncio.Task] = None
        self._subscription: Optional[str] = None
        self._listeners: List[DispatchListener] = []

    @property
    def tracking(self) -> bool:
        return self._subscription is not None

    @property
    def dispatch_in_flight(self) -> bool:
        return self._emergency is not None and not self._emergency.done()

    def add_dispatch_listener(self, listener: DispatchListener) -> None:
        self._listeners.append(listener)

    # ========= Gesture =========

    def on_press_start(self) -> bool:
        if self.state != PanicState.IDLE:
            return False
        self.state = PanicState.COUNTING
        self._countdown = asyncio.get_running_loop().create_task(self._count_down())
        logger.debug("Panic countdown started (%.1fs)", self._countdown_s)
        return True

    def on_press_end(self) -> bool:
        """Release before expiry: cancel, back to idle, nothing else happens."""
        if self.state != PanicState.COUNTING:
            return False
        if self._countdown is not None:
            self._countdown.cancel()
            self._countdown = None
        self.state = PanicState.IDLE
        logger.debug("Panic countdown cancelled")
        return True

    async def _count_down(self) -> None:
        await asyncio.sleep(self._countdown_s)
        if self.state != PanicState.COUNTING:
            return
        self._countdown = None
        self.state = PanicState.DISPATCHING
        logger.warning("Panic countdown expired, dispatching emergency alert")
        # Own task: release and exit() never cancel it
        self._emergency = asyncio.get_running_loop().create_task(self._run_emergency())
        self.state = PanicState.IDLE

    async def _run_emergency(self) -> Optional[DispatchReport]:
        report = None
        try:
            try:
                await self._contacts.load()
            except Exception:
                logger.exception("Reloading contacts failed, using contacts in memory")
            numbers = await self._contacts.publish()

            fix = self._location.current_fix()
            if fix is None:
                fix = await self._location.refresh_fix()

            report = await self._pipeline.dispatch(numbers, fix)
            self.last_report = report
            for listener in self._listeners:
                try:
                    listener(report)
                except Exception:
                    logger.exception("Dispatch listener failed")
        except Exception:
            logger.exception("Emergency dispatch task failed")

        try:
            await self.start_tracking()
        except (PermissionRequiredError, LocationUnavailableError) as e:
            logger.warning("Tracking not started after alert: %s", e.message)
        except Exception:
            logger.exception("Starting tracking after alert failed")
        return report

    async def wait_for_dispatch(self) -> Optional[DispatchReport]:
        """Wait for the emergency currently in flight, if any."""
        if self._countdown is not None:
            try:
                await asyncio.shield(self._countdown)
            except asyncio.CancelledError:
                return None
        if self._emergency is None:
            return None
        return await asyncio.shield(self._emergency)

    # ========= Tracking =========

    async def _on_location_update(self, fix: LocationFix) -> None:
        await self._log.append("Location update", fix)

    async def start_tracking(self) -> bool:
        """
        Start continuous tracking.

        Returns:
            True if tracking started, False if it was already running
        """
        if self._subscription is not None:
            return False
        if self._location.permission == LocationPermission.DENIED:
            raise PermissionDeniedError()
        if not self._location.has_permission:
            raise PermissionRequiredError()

        try:
            handle = await self._location.start_watch(self._on_location_update)
        except TrackingAlreadyActiveError:
            return False
        self._subscription = handle
        await self._log.append("Tracking started", self._location.current_fix())
        return True

    async def stop_tracking(self) -> bool:
        """
        Stop tracking; a no-op when not tracking.

        Returns:
            True if a subscription was actually stopped
        """
        handle, self._subscription = self._subscription, None
        if handle is None:
            return False
        await self._location.stop_watch(handle)
        await self._log.append("Tracking stopped")
        return True

    # ========= Session =========

    async def exit(self) -> NavigationTarget:
        """Leave the panel for the calculator. Never fails."""
        try:
            self.on_press_end()
            await self.stop_tracking()
        except Exception:
            logger.exception("Cleanup on exit failed")
        return NavigationTarget.EXIT_TO_DISGUISE

    async def snapshot(self) -> PanicSnapshot:
        return PanicSnapshot(
            state=self.state,
            tracking=self.tracking,
            dispatch_in_flight=self.dispatch_in_flight,
            permission=self._location.permission,
            current_fix=self._location.current_fix(),
            active_contacts=await self._contacts.active_numbers(),
            last_report=self.last_report,
        )
