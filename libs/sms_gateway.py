"""
SMS capability adapters.

Each gateway advertises what the platform can do instead of the pipeline
branching on platform identity:

- supports_group_send: one composer, many recipients (send_many)
- opens_external_composer: no native sending, hand a prefilled sms: URI to
  the device messaging app; the outcome is never known
"""

import asyncio
import logging
from functools import partial
from typing import Callable, List, Optional
from urllib.parse import quote

from common.status import DeliveryOutcome
from libs.config import config
from libs.twilio_client import TwilioClient, get_twilio_client

logger = logging.getLogger(__name__)


class BaseSmsGateway:
    """Base class for SMS gateways"""

    name = "base"
    supports_group_send = False
    opens_external_composer = False

    async def is_available(self) -> bool:
        return True

    async def send_many(self, numbers: List[str], text: str) -> DeliveryOutcome:
        """Send one message to many recipients through a single composer."""
        raise NotImplementedError("Gateway does not support group send")

    async def send_one(self, number: str, text: str) -> DeliveryOutcome:
        raise NotImplementedError("Gateway must implement send_one()")

    async def open_composer(self, numbers: List[str], text: str) -> bool:
        raise NotImplementedError("Gateway does not open an external composer")


class TwilioSmsGateway(BaseSmsGateway):
    """Per-recipient delivery through the Twilio REST API"""

    name = "twilio"

    def __init__(self, client: Optional[TwilioClient] = None):
        self._client = client

    def _get_client(self) -> TwilioClient:
        if self._client is None:
            self._client = get_twilio_client()
        return self._client

    async def is_available(self) -> bool:
        return self._client is not None or config.validate_twilio_config()

    async def send_one(self, number: str, text: str) -> DeliveryOutcome:
        # Twilio REST is blocking, run it off the event loop
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None,
            partial(self._get_client().send_sms, to_phone=number, message=text),
        )
        if result["status"] == "sent":
            return DeliveryOutcome.SENT
        logger.warning("SMS to %s failed: %s", number, result.get("error"))
        return DeliveryOutcome.FAILED


class DummySmsGateway(BaseSmsGateway):
    """Development gateway: records messages and reports them as sent."""

    name = "dummy"
    supports_group_send = True

    def __init__(self):
        self.outbox: List[dict] = []

    async def send_many(self, numbers: List[str], text: str) -> DeliveryOutcome:
        self.outbox.append({"to": list(numbers), "message": text})
        logger.info("[SMS - DUMMY] to=%s message=%s", ",".join(numbers), text)
        return DeliveryOutcome.SENT

    async def send_one(self, number: str, text: str) -> DeliveryOutcome:
        return await self.send_many([number], text)


def build_sms_uri(numbers: List[str], text: str) -> str:
    return f"sms:{','.join(numbers)}?body={quote(text)}"


class SmsUriGateway(BaseSmsGateway):
    """
    Platforms without a native composer: the message is handed to the device
    messaging app as an sms: URI. The opener returns True once the surface
    was opened. By default the URI is parked on pending_uri for the shell to
    pick up.
    """

    name = "uri"
    opens_external_composer = True

    def __init__(self, opener: Optional[Callable[[str], bool]] = None):
        self._opener = opener
        self.pending_uri: Optional[str] = None

    async def open_composer(self, numbers: List[str], text: str) -> bool:
        uri = build_sms_uri(numbers, text)
        if self._opener is not None:
            return bool(self._opener(uri))
        self.pending_uri = uri
        return True

    async def send_one(self, number: str, text: str) -> DeliveryOutcome:
        if await self.open_composer([number], text):
            return DeliveryOutcome.UNKNOWN
        return DeliveryOutcome.FAILED


def coerce_outcome(outcome) -> DeliveryOutcome:
    """Map whatever a gateway returned onto DeliveryOutcome; unrecognized means failed."""
    try:
        return DeliveryOutcome(getattr(outcome, "value", outcome))
    except ValueError:
        logger.warning("Unrecognized SMS outcome %r, treating as failed", outcome)
        return DeliveryOutcome.FAILED
