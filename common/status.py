"""
Status Enums
Shared state and outcome enumerations for the panic, verification,
location and dispatch components.
"""

from enum import Enum


class DeliveryOutcome(str, Enum):
    """Result reported by the device SMS capability for one send"""
    SENT = "sent"
    FAILED = "failed"
    UNKNOWN = "unknown"
    CANCELLED = "cancelled"


class DispatchStatus(str, Enum):
    """Overall classification of an emergency dispatch"""
    DELIVERED = "delivered"
    PARTIAL = "partial"
    FAILED = "failed"
    DISPATCHED_UNKNOWN = "dispatched_unknown"
    NO_CONTACTS = "no_contacts"
    NO_LOCATION = "no_location"


class DispatchStrategy(str, Enum):
    """How the pipeline delivered the message"""
    GROUP = "group"
    INDIVIDUAL = "individual"
    EXTERNAL_COMPOSER = "external_composer"
    NONE = "none"


class PanicState(str, Enum):
    """Panic button state values"""
    IDLE = "idle"
    COUNTING = "counting"
    DISPATCHING = "dispatching"


class VerificationState(str, Enum):
    """Contact verification workflow state values"""
    IDLE = "idle"
    CODE_SENT = "code_sent"
    VERIFIED = "verified"
    FAILED = "failed"


class LocationPermission(str, Enum):
    """Location permission values, only changed by permission-request results"""
    UNKNOWN = "unknown"
    DENIED = "denied"
    GRANTED = "granted"


class NavigationTarget(str, Enum):
    """Named transitions the shell maps onto screen changes"""
    ENTER_EMERGENCY_PANEL = "enterEmergencyPanel"
    OPEN_SETTINGS = "openSettings"
    EXIT_TO_DISGUISE = "exitToDisguise"
