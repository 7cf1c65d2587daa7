"""
Wiring of the SafeWords core: one instance of each component, sharing a
single store, SMS gateway and location provider.
"""

import logging
from typing import Optional

from common.storage import BaseStore, create_store
from libs.alert_log import AlertLog
from libs.config import config
from libs.location_provider import BaseLocationProvider, DeviceBridgeLocationProvider
from libs.sms_gateway import BaseSmsGateway
from services.access_gate.gate import AccessGate
from services.contacts.store import ContactStore
from services.dispatch.factory import SmsGatewayFactory
from services.dispatch.pipeline import DispatchPipeline
from services.location.adapter import LocationServiceAdapter
from services.panic.machine import PanicStateMachine
from services.verification.workflow import VerificationWorkflow

logger = logging.getLogger(__name__)


class SafeWordsCore:
    def __init__(
        self,
        store: Optional[BaseStore] = None,
        gateway: Optional[BaseSmsGateway] = None,
        provider: Optional[BaseLocationProvider] = None,
        countdown_ms: Optional[int] = None,
    ):
        self.store = store if store is not None else create_store(config.STORAGE_BACKEND)
        self.gateway = (
            gateway if gateway is not None else SmsGatewayFactory().get_gateway(config.SMS_MODE)
        )
        self.provider = provider if provider is not None else DeviceBridgeLocationProvider()

        self.alert_log = AlertLog(self.store)
        self.contacts = ContactStore(self.store)
        self.location = LocationServiceAdapter(self.provider)
        self.pipeline = DispatchPipeline(self.gateway, self.alert_log)
        self.verification = VerificationWorkflow(self.contacts, self.gateway)
        self.panic = PanicStateMachine(
            self.contacts,
            self.pipeline,
            self.location,
            self.alert_log,
            countdown_ms=countdown_ms,
        )
        self.gate = AccessGate(self.store)
        self.loaded = False

    async def load(self) -> None:
        """Read persisted contacts once; later calls are no-ops."""
        if self.loaded:
            return
        try:
            await self.contacts.load()
        except Exception:
            logger.exception("Loading contacts failed, starting with an empty list")
        self.loaded = True
        logger.info(
            "SafeWords core ready (sms=%s, contacts=%d)",
            self.gateway.name,
            len(self.contacts.contacts()),
        )
