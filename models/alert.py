from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models.location import LatLng


class AlertLogEntry(BaseModel):
    """One safety-relevant event. Immutable once appended."""

    model_config = ConfigDict(frozen=True)

    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    location: Optional[LatLng] = None

    def location_text(self) -> str:
        if self.location is None:
            return "No location data"
        return f"Location: {self.location.latitude}, {self.location.longitude}"
