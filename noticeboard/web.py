"""FastAPI app for the notice board: email webhook, notification CRUD, ranking and stats."""
import logging
import secrets
from datetime import datetime, timezone
from typing import Literal

from fastapi import FastAPI, Header, HTTPException, Request, Response
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from noticeboard.auth import PermissionDenied, Role, UnknownRoleError, require_publisher, resolve_role
from noticeboard.config import Config
from noticeboard.email_parser import DEFAULT_DEADLINE_DAYS
from noticeboard.ingest import FAILURE_MESSAGE, ingest_email
from noticeboard.models import Category, Notification, Priority, Source, Status, TargetGroup
from noticeboard.priority import (
    calculate_smart_priority,
    days_until_deadline,
    filter_notifications,
    format_deadline,
    is_expired,
    sort_notifications,
    status_badge,
)
from noticeboard.stats import notification_stats
from noticeboard.store import NotificationNotFound, NotificationStore
from noticeboard.utils import log_action

logger = logging.getLogger("noticeboard.web")

app = FastAPI(title="Academic Notice Board", version="1.0.0")

AUTO = "auto"
WEBHOOK_PATH = "/email-webhook"


def create_app(store: NotificationStore, config: Config | None = None) -> FastAPI:
    """Bind the store (and optional config) the endpoints work against."""
    app.state.store = store
    app.state.config = config
    return app


def _get_store() -> NotificationStore:
    store = getattr(app.state, "store", None)
    if store is None:
        raise RuntimeError("Notification store not configured. Call create_app() first.")
    return store


def _get_config() -> Config | None:
    return getattr(app.state, "config", None)


def _acting_role(value: str | None) -> Role:
    try:
        return resolve_role(value)
    except UnknownRoleError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _record(actor: str, action: str, source: str, result: str) -> None:
    cfg = _get_config()
    if cfg is not None:
        log_action(logs_dir=cfg.logs_dir, actor=actor, action=action, source=source, result=result)


def _present(notification: Notification) -> dict:
    """Notification as JSON plus the derived deadline fields the views show."""
    data = notification.to_dict()
    data["days_remaining"] = days_until_deadline(notification.deadline)
    data["expired"] = is_expired(notification.deadline)
    data["status_badge"] = status_badge(notification.deadline)
    data["deadline_display"] = format_deadline(notification.deadline)
    return data


@app.exception_handler(PermissionDenied)
async def permission_denied_handler(request: Request, exc: PermissionDenied):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(NotificationNotFound)
async def not_found_handler(request: Request, exc: NotificationNotFound):
    return JSONResponse(status_code=404, content={"detail": f"Notification not found: {exc}"})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """The email webhook answers unusable bodies with its failure reply."""
    if request.url.path != WEBHOOK_PATH:
        return await request_validation_exception_handler(request, exc)
    logger.error(f"Rejected email webhook body: {exc.errors()}")
    return JSONResponse(status_code=500, content={"success": False, "error": FAILURE_MESSAGE})


class EmailPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sender: str | None = Field("", alias="from")
    subject: str | None = ""
    body: str | None = ""
    received_at: str | None = Field(None, alias="receivedAt")


class NotificationCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    category: Category
    deadline: datetime
    priority: Priority | Literal["auto"] | None = None
    target_group: str | None = None
    department: str | None = None
    year: str | None = None


class NotificationUpdate(BaseModel):
    title: str | None = Field(None, min_length=1)
    description: str | None = None
    category: Category | None = None
    deadline: datetime | None = None
    priority: Priority | Literal["auto"] | None = None
    target_group: str | None = None
    status: Status | None = None


def _resolve_target_group(body: NotificationCreate) -> str:
    """Department wins over year, year over an explicit group."""
    for choice in (body.department, body.year, body.target_group):
        if choice and choice.strip():
            return choice.strip()
    return TargetGroup.ALL


@app.get("/health")
async def health_check():
    store = _get_store()
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "store": type(store).__name__,
    }


@app.post(WEBHOOK_PATH)
def email_webhook(
    payload: EmailPayload,
    x_webhook_secret: str | None = Header(None),
):
    """Create a notification from a forwarded email."""
    cfg = _get_config()
    if cfg is not None and cfg.webhook_secret:
        if not secrets.compare_digest(x_webhook_secret or "", cfg.webhook_secret):
            raise HTTPException(status_code=401, detail="Invalid webhook secret")

    result = ingest_email(
        _get_store(),
        payload.sender,
        payload.subject,
        payload.body,
        payload.received_at,
        failed_dir=cfg.failed_emails_dir if cfg else None,
        logs_dir=cfg.logs_dir if cfg else None,
        default_days=cfg.default_deadline_days if cfg else DEFAULT_DEADLINE_DAYS,
        day_first=cfg.date_day_first if cfg else True,
    )
    status_code = 200 if result["success"] else 500
    return JSONResponse(status_code=status_code, content=result)


@app.get("/api/notifications")
def list_notifications(
    sort_by: Literal["priority", "deadline", "recent"] = "priority",
    category: Category | None = None,
    priority: Priority | None = None,
    target_group: str | None = None,
    show_expired: bool = False,
    expired_only: bool = False,
    search: str | None = None,
    x_user_role: str | None = Header(None),
):
    """Ranked notifications, hiding expired ones unless show_expired or expired_only is set."""
    _acting_role(x_user_role)
    notifications = filter_notifications(
        _get_store().list_by_deadline(),
        category=category,
        priority=priority,
        target_group=target_group,
        show_expired=show_expired,
        search=search,
        expired_only=expired_only,
    )
    return {"notifications": [_present(n) for n in sort_notifications(notifications, sort_by)]}


@app.get("/api/notifications/{notification_id}")
def get_notification(notification_id: str, x_user_role: str | None = Header(None)):
    _acting_role(x_user_role)
    notification = _get_store().get(notification_id)
    if notification is None:
        raise NotificationNotFound(notification_id)
    return _present(notification)


@app.post("/api/notifications", status_code=201)
def create_notification(
    body: NotificationCreate,
    x_user_role: str | None = Header(None),
    x_user_id: str | None = Header(None),
):
    """Publish a notification by hand.

    Admins get the smart priority unless they pick one; faculty default to Medium.
    """
    role = _acting_role(x_user_role)
    require_publisher(role)

    priority = body.priority
    if priority is None:
        priority = AUTO if role is Role.ADMIN else Priority.MEDIUM
    if priority == AUTO:
        priority = calculate_smart_priority(body.deadline, body.category)

    notification = Notification(
        title=body.title,
        description=body.description,
        category=body.category,
        priority=priority,
        deadline=body.deadline,
        target_group=_resolve_target_group(body),
        source=Source.MANUAL,
        created_by=x_user_id,
    )
    stored = _get_store().insert(notification)
    _record(role.value, "notification_created", x_user_id or "unknown", f"notification:{stored.id}")
    return _present(stored)


@app.patch("/api/notifications/{notification_id}")
def update_notification(
    notification_id: str,
    body: NotificationUpdate,
    x_user_role: str | None = Header(None),
    x_user_id: str | None = Header(None),
):
    """Edit a notification; priority "auto" recomputes it from the edited values."""
    role = _acting_role(x_user_role)
    require_publisher(role)
    store = _get_store()
    current = store.get(notification_id)
    if current is None:
        raise NotificationNotFound(notification_id)

    changes = body.model_dump(exclude_none=True)
    if changes.get("priority") == AUTO:
        changes["priority"] = calculate_smart_priority(
            changes.get("deadline", current.deadline),
            changes.get("category", current.category),
        )
    if not changes:
        return _present(current)

    updated = store.update(notification_id, **changes)
    _record(role.value, "notification_updated", x_user_id or "unknown", f"notification:{notification_id}")
    return _present(updated)


@app.delete("/api/notifications/{notification_id}", status_code=204)
def delete_notification(
    notification_id: str,
    x_user_role: str | None = Header(None),
    x_user_id: str | None = Header(None),
):
    role = _acting_role(x_user_role)
    require_publisher(role)
    if not _get_store().delete(notification_id):
        raise NotificationNotFound(notification_id)
    _record(role.value, "notification_deleted", x_user_id or "unknown", f"notification:{notification_id}")
    return Response(status_code=204)


@app.get("/api/stats")
def api_stats(x_user_role: str | None = Header(None)):
    _acting_role(x_user_role)
    return notification_stats(_get_store().list_by_deadline())
