from typing import Optional

from pydantic import BaseModel

from common.status import VerificationState


class VerificationSession(BaseModel):
    """A live one-time code. Held in memory only, never persisted."""

    target_number: str
    contact_name: Optional[str] = None
    generated_code: str
    attempts_allowed: int
    attempts_used: int = 0
    editing_index: Optional[int] = None
    # Normalized number of the contact being re-verified
    editing_key: Optional[str] = None

    @property
    def attempts_left(self) -> int:
        return max(self.attempts_allowed - self.attempts_used, 0)


class VerificationStatus(BaseModel):
    """What the shell may see of the workflow (no code)."""

    state: VerificationState
    target_number: Optional[str] = None
    contact_name: Optional[str] = None
    editing_index: Optional[int] = None
    attempts_left: Optional[int] = None
    error: Optional[str] = None
