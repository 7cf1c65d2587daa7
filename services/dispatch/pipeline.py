import logging
from typing import List, Optional, Sequence

from common.constants import APP_SIGNATURE
from common.errors import SendFailedError
from common.status import DeliveryOutcome, DispatchStatus, DispatchStrategy
from libs.alert_log import AlertLog
from libs.sms_gateway import BaseSmsGateway, coerce_outcome
from models.dispatch import DispatchReport
from models.location import LocationFix
from services.dispatch.templates import DEFAULT_LOCALE, get_template, render

logger = logging.getLogger(__name__)


class DispatchPipeline:
    """
    Composes the emergency message and delivers it to every trusted number.

    Strategy follows what the gateway can do:
    - external composer: hand the message to the messaging app, outcome unknown
    - group send: one composer for all recipients; anything but "sent"
      falls back to individual sends
    - individual: one send per number, strictly one after another, a failure
      for one number never stops the next

    Every attempt writes an "initiating" entry and exactly one terminal entry
    to the alert log. Delivery problems come back as a DispatchReport, they
    are never raised.
    """

    def __init__(self, gateway: BaseSmsGateway, alert_log: AlertLog, locale: str = DEFAULT_LOCALE):
        self._gateway = gateway
        self._log = alert_log
        self._locale = locale

    @property
    def gateway(self) -> BaseSmsGateway:
        return self._gateway

    def compose(self, fix: LocationFix) -> str:
        # Coordinates go out exactly as the fix reported them
        return render(
            get_template("sos", "sms", self._locale),
            latitude=repr(fix.latitude),
            longitude=repr(fix.longitude),
            signature=APP_SIGNATURE,
        )

    async def dispatch(
        self, contacts: Sequence[str], fix: Optional[LocationFix]
    ) -> DispatchReport:
        numbers = [n for n in contacts if n]

        if not numbers:
            report = DispatchReport(
                status=DispatchStatus.NO_CONTACTS,
                detail="Please add and push contacts from Settings first",
            )
            await self._log.append(self.terminal_message(report))
            return report

        if fix is None:
            report = DispatchReport(
                status=DispatchStatus.NO_LOCATION,
                attempted=0,
                detail="Location not available",
            )
            await self._log.append(self.terminal_message(report))
            return report

        message = self.compose(fix)
        await self._log.append(f"Initiating alert to {len(numbers)} contacts", fix)

        report: Optional[DispatchReport] = None
        try:
            report = await self._execute(numbers, message)
        except Exception as e:
            logger.exception("Emergency dispatch failed unexpectedly")
            report = DispatchReport(
                status=DispatchStatus.FAILED,
                attempted=len(numbers),
                failed_numbers=list(numbers),
                message=message,
                detail=str(e),
            )
        finally:
            await self._log.append(self.terminal_message(report))

        logger.info(
            "Dispatch finished: status=%s strategy=%s %d/%d succeeded",
            report.status.value,
            report.strategy.value,
            report.succeeded,
            report.attempted,
        )
        return report

    async def _execute(self, numbers: List[str], message: str) -> DispatchReport:
        if self._gateway.opens_external_composer:
            return await self._open_composer(numbers, message)

        if self._gateway.supports_group_send:
            try:
                outcome = coerce_outcome(await self._gateway.send_many(numbers, message))
                if outcome == DeliveryOutcome.SENT:
                    return DispatchReport(
                        status=DispatchStatus.DELIVERED,
                        strategy=DispatchStrategy.GROUP,
                        attempted=len(numbers),
                        succeeded=len(numbers),
                        message=message,
                    )
                logger.warning("Group send returned %s, sending individually", outcome.value)
            except Exception as e:
                logger.warning("Group send raised %s, sending individually", e)

        return await self._send_individually(numbers, message)

    async def _open_composer(self, numbers: List[str], message: str) -> DispatchReport:
        try:
            opened = await self._gateway.open_composer(numbers, message)
        except Exception as e:
            logger.warning("Could not open messaging app: %s", e)
            opened = False

        if not opened:
            return DispatchReport(
                status=DispatchStatus.FAILED,
                strategy=DispatchStrategy.EXTERNAL_COMPOSER,
                attempted=len(numbers),
                failed_numbers=list(numbers),
                message=message,
                detail="Messaging app could not be opened",
            )
        return DispatchReport(
            status=DispatchStatus.DISPATCHED_UNKNOWN,
            strategy=DispatchStrategy.EXTERNAL_COMPOSER,
            attempted=len(numbers),
            succeeded=len(numbers),
            unconfirmed=len(numbers),
            message=message,
        )

    async def _send_individually(self, numbers: List[str], message: str) -> DispatchReport:
        succeeded = 0
        unconfirmed = 0
        failed: List[str] = []

        for number in numbers:
            try:
                outcome = coerce_outcome(await self._gateway.send_one(number, message))
            except Exception as e:
                logger.warning("SMS to %s raised: %s", number, e)
                outcome = DeliveryOutcome.FAILED

            if outcome == DeliveryOutcome.SENT:
                succeeded += 1
            elif outcome == DeliveryOutcome.UNKNOWN:
                succeeded += 1
                unconfirmed += 1
            else:
                failed.append(number)

        detail = None
        if not failed:
            status = DispatchStatus.DELIVERED
        else:
            error = SendFailedError(
                f"SMS failed for {len(failed)} of {len(numbers)} contacts",
                partial=bool(succeeded),
                failed_numbers=failed,
            )
            logger.warning("%s: %s", error.error_code, error.message)
            status = DispatchStatus.PARTIAL if error.partial else DispatchStatus.FAILED
            detail = error.message

        return DispatchReport(
            status=status,
            strategy=DispatchStrategy.INDIVIDUAL,
            attempted=len(numbers),
            succeeded=succeeded,
            unconfirmed=unconfirmed,
            failed_numbers=failed,
            message=message,
            detail=detail,
        )

    @staticmethod
    def terminal_message(report: Optional[DispatchReport]) -> str:
        if report is None or report.status == DispatchStatus.FAILED:
            return "Failed to send emergency alert"
        if report.status == DispatchStatus.DELIVERED:
            return f"Alert sent to {report.attempted} contacts"
        if report.status == DispatchStatus.PARTIAL:
            return (
                f"Alert partially sent: {report.succeeded} of {report.attempted} delivered; "
                f"failed: {', '.join(report.failed_numbers)}"
            )
        if report.status == DispatchStatus.DISPATCHED_UNKNOWN:
            return (
                f"Alert handed to messaging app for {report.attempted} contacts "
                "(delivery unconfirmed)"
            )
        if report.status == DispatchStatus.NO_CONTACTS:
            return "Alert not sent: no trusted contacts"
        return "Alert not sent: location not available"
