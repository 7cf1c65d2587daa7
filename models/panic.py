from typing import List, Optional

from pydantic import BaseModel

from common.status import LocationPermission, PanicState
from models.dispatch import DispatchReport
from models.location import LocationFix


class PanicSnapshot(BaseModel):
    state: PanicState
    tracking: bool
    dispatch_in_flight: bool
    permission: LocationPermission
    current_fix: Optional[LocationFix] = None
    active_contacts: List[str] = []
    last_report: Optional[DispatchReport] = None
