from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LatLng(BaseModel):
    latitude: float
    longitude: float


class LocationFix(BaseModel):
    latitude: float
    longitude: float
    timestamp: datetime = Field(default_factory=_utcnow)
    accuracy_m: Optional[float] = None

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Devices sometimes send naive timestamps
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def coords(self) -> LatLng:
        return LatLng(latitude=self.latitude, longitude=self.longitude)


class WatchOptions(BaseModel):
    interval_ms: int
    min_distance_m: float
