from __future__ import annotations

import hmac
import logging
from datetime import datetime
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from fastapi.templating import Jinja2Templates

from conversion_relay.config import settings
from conversion_relay.dependencies import get_client_store
from conversion_relay.domain.errors import StoreError
from conversion_relay.observability import incr_metric, log_event, mask_secret, metrics_snapshot
from conversion_relay.stores import ClientStore


router = APIRouter(prefix="/admin", tags=["admin"])

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
_basic = HTTPBasic(auto_error=False)


def _fmt_dt(value: datetime | None) -> str:
    if not value:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


templates.env.filters["mask"] = lambda value: mask_secret(value) or "-"
templates.env.filters["fmt_dt"] = _fmt_dt


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Basic"},
    )


def require_admin(credentials: HTTPBasicCredentials | None = Depends(_basic)) -> str:
    if not settings.admin_user or not settings.admin_password:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="ADMIN_USER and ADMIN_PASSWORD are not configured",
        )
    if credentials is None:
        raise _unauthorized("Missing admin credentials")
    user_ok = hmac.compare_digest(credentials.username.encode(), settings.admin_user.encode())
    password_ok = hmac.compare_digest(credentials.password.encode(), settings.admin_password.encode())
    if not (user_ok and password_ok):
        raise _unauthorized("Invalid admin credentials")
    return credentials.username


@router.get("", response_class=HTMLResponse)
def admin_dashboard(
    request: Request,
    _admin: str = Depends(require_admin),
    store: ClientStore = Depends(get_client_store),
):
    try:
        clients = store.list_clients()
    except StoreError as exc:
        incr_metric("admin.dashboard.failed", category=exc.category)
        log_event(
            "admin_dashboard_failed",
            level=logging.ERROR,
            request_id=getattr(request.state, "request_id", None),
            category=exc.category,
            error=str(exc),
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching clients",
        ) from exc
    return templates.TemplateResponse(request, "admin.html", {"clients": clients})


@router.get("/metrics")
def admin_metrics(_admin: str = Depends(require_admin)):
    return {"counters": metrics_snapshot()}
