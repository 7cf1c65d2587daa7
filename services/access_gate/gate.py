import logging

from common.constants import ACCESS_CODE_KEY, ACCESS_CODE_LENGTH, DEFAULT_ACCESS_CODE
from common.errors import InvalidAccessCodeChangeError, StorageFailureError
from common.status import NavigationTarget
from common.storage import BaseStore
from models.gate import GateResult
from services.access_gate.calculator import CalculationError, evaluate, format_result

logger = logging.getLogger(__name__)


class AccessGate:
    """
    The calculator front. Typing the access code and pressing "=" opens the
    emergency panel; anything else is just arithmetic.
    """

    def __init__(self, store: BaseStore):
        self._store = store

    async def stored_code(self) -> str:
        code = await self._store.get_json(ACCESS_CODE_KEY)
        return code if isinstance(code, str) and code else DEFAULT_ACCESS_CODE

    async def check(self, entered: str) -> bool:
        try:
            stored = await self.stored_code()
        except StorageFailureError:
            logger.exception("Could not read access code")
            return False
        return (entered or "") == stored

    async def enter(self, entered: str) -> GateResult:
        if await self.check(entered):
            logger.info("Access code accepted")
            return GateResult(
                authorized=True, navigation=NavigationTarget.ENTER_EMERGENCY_PANEL
            )

        try:
            display = format_result(evaluate(entered))
        except (CalculationError, ArithmeticError):
            return GateResult(authorized=False, display="", error="Error")
        return GateResult(authorized=False, display=display)

    async def change_code(self, current: str, new: str, confirm: str) -> None:
        """
        Replace the access code. Every check runs before anything is written.

        Raises:
            InvalidAccessCodeChangeError: with the reason shown to the user
            StorageFailureError: the new code could not be saved
        """
        if not current or not new or not confirm:
            raise InvalidAccessCodeChangeError("Please fill all fields")
        if new != confirm:
            raise InvalidAccessCodeChangeError("New codes do not match")
        if len(new) != ACCESS_CODE_LENGTH or not new.isdigit():
            raise InvalidAccessCodeChangeError(
                f"Access code must be {ACCESS_CODE_LENGTH} digits"
            )
        if current != await self.stored_code():
            raise InvalidAccessCodeChangeError("Current access code is incorrect")

        await self._store.set_json(ACCESS_CODE_KEY, new)
        logger.info("Access code changed")
