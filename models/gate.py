from typing import Optional

from pydantic import BaseModel

from common.status import NavigationTarget


class GateResult(BaseModel):
    """What the calculator screen shows after "=" is pressed."""

    authorized: bool
    navigation: Optional[NavigationTarget] = None
    display: str = ""
    error: Optional[str] = None
