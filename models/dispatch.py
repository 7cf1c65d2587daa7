from typing import List, Optional

from pydantic import BaseModel, Field

from common.status import DispatchStatus, DispatchStrategy


class DispatchReport(BaseModel):
    status: DispatchStatus
    strategy: DispatchStrategy = DispatchStrategy.NONE
    attempted: int = 0
    succeeded: int = 0
    # Succeeded sends whose carrier outcome was ambiguous
    unconfirmed: int = 0
    failed_numbers: List[str] = Field(default_factory=list)
    message: Optional[str] = None
    detail: Optional[str] = None

    @property
    def failed(self) -> int:
        return len(self.failed_numbers)
