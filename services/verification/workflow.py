import logging
import secrets
from typing import Callable, Optional

from common.constants import VERIFICATION_CODE_MAX, VERIFICATION_CODE_MIN
from common.errors import (
    ContactNotFoundError,
    DuplicateContactError,
    PredefinedNumberError,
    VerificationMismatchError,
    VerificationStateError,
)
from common.status import DeliveryOutcome, VerificationState
from libs.config import config
from libs.sms_gateway import BaseSmsGateway, coerce_outcome
from models.contact import Contact
from models.verification import VerificationSession, VerificationStatus
from services.contacts.store import ContactStore
from services.dispatch.templates import get_template, render

logger = logging.getLogger(__name__)

SEND_FAILED_MESSAGE = "Failed to send verification code. Please try again."
# Carrier-ambiguous "unknown" still opens the code input
ACCEPTED_OUTCOMES = {DeliveryOutcome.SENT, DeliveryOutcome.UNKNOWN}


def generate_code() -> str:
    """Uniform 6-digit code in [100000, 999999]."""
    span = VERIFICATION_CODE_MAX - VERIFICATION_CODE_MIN + 1
    return str(VERIFICATION_CODE_MIN + secrets.randbelow(span))


class VerificationWorkflow:
    """
    Proves control of a phone number before it becomes a trusted contact.

    idle -> code_sent on a delivered code, -> failed on a delivery fault;
    a wrong code keeps the session live for another try; the right code
    promotes the number into the contact store and returns to verified.
    Only one code is live at a time.
    """

    def __init__(
        self,
        contacts: ContactStore,
        gateway: BaseSmsGateway,
        attempts_allowed: Optional[int] = None,
        code_generator: Callable[[], str] = generate_code,
    ):
        self._contacts = contacts
        self._gateway = gateway
        self._attempts_allowed = attempts_allowed or config.VERIFICATION_ATTEMPTS
        self._generate_code = code_generator
        self._session: Optional[VerificationSession] = None
        self.state = VerificationState.IDLE
        self.error: Optional[str] = None

    @property
    def session(self) -> Optional[VerificationSession]:
        return self._session

    def status(self) -> VerificationStatus:
        s = self._session
        return VerificationStatus(
            state=self.state,
            target_number=s.target_number if s else None,
            contact_name=s.contact_name if s else None,
            editing_index=s.editing_index if s else None,
            attempts_left=s.attempts_left if s else None,
            error=self.error,
        )

    def _fail(self, message: str) -> None:
        self._session = None
        self.state = VerificationState.FAILED
        self.error = message

    def begin_edit(self, index: int) -> Contact:
        """Contact to prefill when re-verifying an existing entry."""
        return self._contacts.get(index)

    async def request_code(
        self,
        number: str,
        contact_name: Optional[str] = None,
        editing_index: Optional[int] = None,
    ) -> VerificationStatus:
        number = (number or "").strip()
        if not number:
            self._fail("Please enter a phone number")
            return self.status()
        editing_key = None
        if editing_index is not None:
            editing_key = self._contacts.get(editing_index).key

        if not await self._gateway.is_available():
            self._fail("SMS is not available on this device")
            return self.status()

        # A new code always replaces the previous one, consumed or not
        self._session = VerificationSession(
            target_number=number,
            contact_name=(contact_name or "").strip() or None,
            generated_code=self._generate_code(),
            attempts_allowed=self._attempts_allowed,
            editing_index=editing_index,
            editing_key=editing_key,
        )
        self.error = None
        text = render(
            get_template("verification", "sms"), code=self._session.generated_code
        )

        try:
            if self._gateway.supports_group_send:
                outcome = coerce_outcome(await self._gateway.send_many([number], text))
            else:
                outcome = coerce_outcome(await self._gateway.send_one(number, text))
        except Exception as e:
            logger.warning("Verification SMS to %s raised: %s", number, e)
            self._fail(SEND_FAILED_MESSAGE)
            return self.status()

        if outcome not in ACCEPTED_OUTCOMES:
            logger.info("Verification SMS to %s not sent: %s", number, outcome.value)
            self._fail(SEND_FAILED_MESSAGE)
            return self.status()

        self.state = VerificationState.CODE_SENT
        logger.info("Verification code sent to %s (%s)", number, outcome.value)
        return self.status()

    async def submit_code(self, code: str) -> Contact:
        session = self._session
        if session is None or self.state != VerificationState.CODE_SENT:
            raise VerificationStateError("No verification code has been sent")

        if (code or "") != session.generated_code:
            session.attempts_used += 1
            if session.attempts_left == 0:
                self._fail("Too many invalid codes. Please request a new code.")
            else:
                self.error = "Invalid verification code"
            raise VerificationMismatchError(session.attempts_left)

        index = None
        if session.editing_key is not None:
            # Contacts may have been removed or reordered while the code was pending
            index = self._contacts.index_of(session.editing_key)
            if index is None:
                self._fail("The contact being edited no longer exists")
                raise ContactNotFoundError(session.editing_index)

        name = session.contact_name or f"Contact {len(self._contacts.contacts()) + 1}"
        try:
            contact = await self._contacts.add_or_update(
                Contact(name=name, number=session.target_number, verified=True),
                index=index,
            )
        except (DuplicateContactError, PredefinedNumberError) as e:
            self._fail(e.message)
            raise

        self._session = None
        self.state = VerificationState.VERIFIED
        self.error = None
        logger.info("Contact %s verified", contact.number)
        return contact

    def cancel(self) -> VerificationStatus:
        self._session = None
        self.state = VerificationState.IDLE
        self.error = None
        return self.status()
