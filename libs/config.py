"""
Configuration module for loading environment variables
"""

import os
from typing import Optional

from common.constants import (
    PANIC_COUNTDOWN_MS,
    PERMISSION_REQUEST_TIMEOUT,
    TRACKING_INTERVAL_MS,
    TRACKING_MIN_DISTANCE_M,
)


class Config:
    """Application configuration"""

    # Twilio Configuration
    TWILIO_ACCOUNT_SID: Optional[str] = os.getenv("TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN: Optional[str] = os.getenv("TWILIO_AUTH_TOKEN")
    TWILIO_PHONE_NUMBER: Optional[str] = os.getenv("TWILIO_PHONE_NUMBER")

    # SMS delivery: "twilio", "dummy" or "uri"
    SMS_MODE: str = os.getenv("SAFEWORDS_SMS_MODE", "dummy").lower()

    # Storage backend: "memory" or "redis"
    STORAGE_BACKEND: str = os.getenv("SAFEWORDS_STORAGE", "memory").lower()

    # Panic and tracking timings
    PANIC_COUNTDOWN_MS: int = int(os.getenv("PANIC_COUNTDOWN_MS", str(PANIC_COUNTDOWN_MS)))
    TRACKING_INTERVAL_MS: int = int(
        os.getenv("TRACKING_INTERVAL_MS", str(TRACKING_INTERVAL_MS))
    )
    TRACKING_MIN_DISTANCE_M: float = float(
        os.getenv("TRACKING_MIN_DISTANCE_M", str(TRACKING_MIN_DISTANCE_M))
    )
    PERMISSION_REQUEST_TIMEOUT: float = float(
        os.getenv("PERMISSION_REQUEST_TIMEOUT", str(PERMISSION_REQUEST_TIMEOUT))
    )

    # Wrong codes accepted per verification session before a resend is required
    VERIFICATION_ATTEMPTS: int = int(os.getenv("VERIFICATION_ATTEMPTS", "5"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @classmethod
    def validate_twilio_config(cls) -> bool:
        """Check if Twilio configuration is complete"""
        return all(
            [cls.TWILIO_ACCOUNT_SID, cls.TWILIO_AUTH_TOKEN, cls.TWILIO_PHONE_NUMBER]
        )


config = Config()
