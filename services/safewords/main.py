# Run:
# uvicorn services.safewords.main:app --host 0.0.0.0 --port 20010 --reload
# Docs: http://127.0.0.1:20010/docs

import logging
import time
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Path, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)
from pydantic import BaseModel

# Load environment variables from .env file
load_dotenv()

from common.errors import register_error_handlers
from common.status import NavigationTarget, VerificationState
from libs.config import config
from models.contact import PredefinedContact, format_number
from models.dispatch import DispatchReport
from models.location import LatLng, LocationFix
from services.safewords.components import SafeWordsCore

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="SafeWords Service",
    version="1.0.0",
    description="Device bridge for the SafeWords panic, contact and alert core.",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)

# ========= Metrics =========

SERVICE_NAME = "safewords"
registry = CollectorRegistry()

# Generic per-request counter (shared schema with other services)
REQUEST_COUNT = Counter(
    "service_requests_total",
    "Total HTTP requests handled by the service",
    ["service", "method", "path", "http_status"],
    registry=registry,
)

# Latency histogram per path
REQUEST_LATENCY = Histogram(
    "service_request_duration_seconds",
    "Request latency in seconds",
    ["service", "path"],
    registry=registry,
)

# Business metrics
PANIC_TRIGGERS_TOTAL = Counter(
    "safewords_panic_triggers_total",
    "Panic countdowns started",
    registry=registry,
)

DISPATCH_TOTAL = Counter(
    "safewords_dispatch_total",
    "Emergency dispatches by outcome",
    ["status"],
    registry=registry,
)

VERIFICATION_CODES_TOTAL = Counter(
    "safewords_verification_codes_total",
    "Verification codes sent",
    registry=registry,
)


@app.middleware("http")
async def prometheus_middleware(request: Request, call_next):
    """
    Middleware to track:
    - request count
    - latency per path
    for every HTTP request handled by this service.
    """
    start = time.time()
    response = await call_next(request)

    path = request.url.path

    REQUEST_COUNT.labels(
        service=SERVICE_NAME,
        method=request.method,
        path=path,
        http_status=response.status_code,
    ).inc()

    REQUEST_LATENCY.labels(
        service=SERVICE_NAME,
        path=path,
    ).observe(time.time() - start)

    return response


# ========= Components =========

_core: Optional[SafeWordsCore] = None


def _count_dispatch(report: DispatchReport) -> None:
    DISPATCH_TOTAL.labels(status=report.status.value).inc()


async def get_core() -> SafeWordsCore:
    """Build the core on first use; tests override this dependency."""
    global _core
    if _core is None:
        _core = SafeWordsCore()
        _core.panic.add_dispatch_listener(_count_dispatch)
    await _core.load()
    return _core


# ========= Schemas =========


class GateEnterRequest(BaseModel):
    entered: str


class AccessCodeChangeRequest(BaseModel):
    current: str
    new: str
    confirm: str


class ToggleRequest(BaseModel):
    number: str
    name: Optional[str] = None


class VerificationRequest(BaseModel):
    number: str
    contact_name: Optional[str] = None
    editing_index: Optional[int] = None


class CodeSubmitRequest(BaseModel):
    code: str


class PermissionReport(BaseModel):
    granted: bool


class ContactView(BaseModel):
    index: int
    name: str
    number: str
    display_number: str
    verified: bool


class PredefinedView(BaseModel):
    name: str
    number: str
    enabled: bool


class AlertView(BaseModel):
    message: str
    timestamp: str
    location: Optional[LatLng] = None
    location_text: str


def _contact_views(core: SafeWordsCore) -> List[ContactView]:
    return [
        ContactView(
            index=i,
            name=c.name,
            number=c.number,
            display_number=format_number(c.number),
            verified=c.verified,
        )
        for i, c in core.contacts.user_contacts()
    ]


def _predefined_views(core: SafeWordsCore) -> List[PredefinedView]:
    return [
        PredefinedView(name=p.name, number=p.number, enabled=core.contacts.is_predefined_enabled(p))
        for p in core.contacts.predefined()
    ]


# ========= Service =========


@app.get("/")
async def root():
    return {"service": "safewords", "status": "running"}


@app.get("/health")
async def health():
    return {"status": "ok", "service": "safewords"}


@app.get("/metrics")
async def metrics():
    """
    Expose Prometheus metrics for this service.
    """
    return Response(generate_latest(registry), media_type=CONTENT_TYPE_LATEST)


# ========= Access gate =========


@app.post("/v1/gate/enter")
async def gate_enter(body: GateEnterRequest, core: SafeWordsCore = Depends(get_core)):
    result = await core.gate.enter(body.entered)
    return result.model_dump(mode="json")


@app.post("/v1/gate/access-code")
async def change_access_code(
    body: AccessCodeChangeRequest, core: SafeWordsCore = Depends(get_core)
):
    await core.gate.change_code(body.current, body.new, body.confirm)
    return {"status": "changed", "message": "Access code changed successfully"}


# ========= Contacts =========


@app.get("/v1/navigation/settings")
async def open_settings(core: SafeWordsCore = Depends(get_core)):
    return {
        "navigation": NavigationTarget.OPEN_SETTINGS.value,
        "contacts": [c.model_dump() for c in _contact_views(core)],
        "predefined": [p.model_dump() for p in _predefined_views(core)],
    }


@app.get("/v1/contacts")
async def list_contacts(core: SafeWordsCore = Depends(get_core)):
    return {
        "contacts": [c.model_dump() for c in _contact_views(core)],
        "trusted": core.contacts.trusted_numbers(),
        "active": await core.contacts.active_numbers(),
    }


@app.get("/v1/contacts/predefined")
async def list_predefined(core: SafeWordsCore = Depends(get_core)):
    return {"predefined": [p.model_dump() for p in _predefined_views(core)]}


@app.post("/v1/contacts/predefined/toggle")
async def toggle_predefined(body: ToggleRequest, core: SafeWordsCore = Depends(get_core)):
    enabled = await core.contacts.toggle(
        PredefinedContact(name=body.name or body.number, number=body.number)
    )
    return {"number": body.number, "enabled": enabled}


@app.get("/v1/contacts/{index}")
async def edit_contact(
    index: int = Path(..., description="Contact to re-verify"),
    core: SafeWordsCore = Depends(get_core),
):
    contact = core.verification.begin_edit(index)
    return {"index": index, **contact.model_dump()}


@app.delete("/v1/contacts/{index}")
async def delete_contact(
    index: int = Path(..., description="Contact to remove"),
    core: SafeWordsCore = Depends(get_core),
):
    removed = await core.contacts.remove(index)
    return {"removed": removed.model_dump()}


@app.post("/v1/contacts/publish")
async def publish_contacts(core: SafeWordsCore = Depends(get_core)):
    numbers = await core.contacts.publish()
    return {
        "numbers": numbers,
        "count": len(numbers),
        "message": f"Contacts pushed to emergency screen ({len(numbers)} contacts)",
    }


# ========= Verification =========


@app.get("/v1/verification")
async def verification_status(core: SafeWordsCore = Depends(get_core)):
    return core.verification.status().model_dump(mode="json")


@app.post("/v1/verification/request")
async def request_verification(
    body: VerificationRequest, core: SafeWordsCore = Depends(get_core)
):
    status = await core.verification.request_code(
        body.number, body.contact_name, body.editing_index
    )
    if status.state == VerificationState.CODE_SENT:
        VERIFICATION_CODES_TOTAL.inc()
    return status.model_dump(mode="json")


@app.post("/v1/verification/submit")
async def submit_verification(body: CodeSubmitRequest, core: SafeWordsCore = Depends(get_core)):
    contact = await core.verification.submit_code(body.code)
    return {
        "state": core.verification.state.value,
        "contact": contact.model_dump(),
        "message": "Contact verified and saved",
    }


@app.post("/v1/verification/cancel")
async def cancel_verification(core: SafeWordsCore = Depends(get_core)):
    return core.verification.cancel().model_dump(mode="json")


# ========= Location =========


@app.post("/v1/location/permission/request")
async def request_location_permission(core: SafeWordsCore = Depends(get_core)):
    """Ask for permission; answers once the shell reports the OS result."""
    permission = await core.location.request_permission()
    fix = core.location.current_fix()
    return {
        "permission": permission.value,
        "current_fix": fix.model_dump(mode="json") if fix else None,
    }


@app.post("/v1/location/permission")
async def report_location_permission(
    body: PermissionReport, core: SafeWordsCore = Depends(get_core)
):
    result = core.provider.report_permission(body.granted)
    return {"reported": result.value}


@app.post("/v1/location/fix")
async def push_location_fix(fix: LocationFix, core: SafeWordsCore = Depends(get_core)):
    delivered = await core.provider.push_fix(fix)
    if not core.location.watching:
        await core.location.refresh_fix()
    current = core.location.current_fix()
    return {
        "delivered": delivered,
        "current_fix": current.model_dump(mode="json") if current else None,
    }


# ========= Panic =========


@app.get("/v1/panic")
async def panic_status(core: SafeWordsCore = Depends(get_core)):
    snapshot = await core.panic.snapshot()
    return {
        **snapshot.model_dump(mode="json"),
        "composer_uri": getattr(core.gateway, "pending_uri", None),
    }


@app.post("/v1/panic/press")
async def panic_press(core: SafeWordsCore = Depends(get_core)):
    started = core.panic.on_press_start()
    if started:
        PANIC_TRIGGERS_TOTAL.inc()
    return {"accepted": started, "state": core.panic.state.value}


@app.post("/v1/panic/release")
async def panic_release(core: SafeWordsCore = Depends(get_core)):
    cancelled = core.panic.on_press_end()
    return {"cancelled": cancelled, "state": core.panic.state.value}


@app.post("/v1/panic/exit")
async def panic_exit(core: SafeWordsCore = Depends(get_core)):
    target = await core.panic.exit()
    return {"navigation": target.value}


@app.post("/v1/tracking/start")
async def tracking_start(core: SafeWordsCore = Depends(get_core)):
    started = await core.panic.start_tracking()
    return {"tracking": core.panic.tracking, "started": started}


@app.post("/v1/tracking/stop")
async def tracking_stop(core: SafeWordsCore = Depends(get_core)):
    stopped = await core.panic.stop_tracking()
    return {"tracking": core.panic.tracking, "stopped": stopped}


# ========= Alerts =========


@app.get("/v1/alerts")
async def list_alerts(core: SafeWordsCore = Depends(get_core)):
    """Alert history, newest first."""
    entries = await core.alert_log.entries()
    return {
        "alerts": [
            AlertView(
                message=e.message,
                timestamp=e.timestamp.isoformat(),
                location=e.location,
                location_text=e.location_text(),
            ).model_dump(mode="json")
            for e in entries
        ]
    }
