"""Usage API routes.

Endpoints:
  GET  /api/usage          — last resolved usage snapshot
  GET  /api/usage/status   — status-indicator text + refresh state
  POST /api/usage/refresh  — resolve a fresh snapshot now
  POST /api/usage/token    — set the portal token (raw token or portal URL)
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from usage_monitor.config import settings
from usage_monitor.engine.errors import InvalidTimestampError, UsageResolutionError
from usage_monitor.monitor.refresh import (
    NoTokenError,
    RefreshContext,
    RefreshInProgressError,
    refresh,
)
from usage_monitor.monitor.status import status_indicator
from usage_monitor.portal.client import PortalError, PortalOfflineError

logger = logging.getLogger(__name__)

usage_router = APIRouter(prefix="/usage", tags=["usage"])


def _context(request: Request) -> RefreshContext:
    return request.app.state.refresh_context  # type: ignore[no-any-return]


class TokenBody(BaseModel):
    token: str


# ── Endpoints ────────────────────────────────────────────────────────────────


@usage_router.get("")
def get_usage(request: Request) -> dict[str, Any]:
    """Last successful snapshot."""
    snapshot = _context(request).snapshot()
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No usage snapshot yet")
    return snapshot.model_dump(mode="json")


@usage_router.get("/status")
def get_status(request: Request) -> dict[str, Any]:
    """Status-indicator text for the last snapshot plus refresh diagnostics."""
    context = _context(request)
    indicator = status_indicator(
        context.snapshot(),
        alert_threshold=settings.alert_threshold,
        refreshing=context.refreshing,
    )
    return {"indicator": indicator.to_dict(), "refresh": context.to_dict()}


@usage_router.post("/refresh")
def refresh_usage(request: Request) -> dict[str, Any]:
    """Resolve now and return the new snapshot."""
    context = _context(request)
    resolver = request.app.state.resolver
    try:
        snapshot = refresh(context, resolver)
    except NoTokenError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RefreshInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PortalOfflineError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except PortalError as e:
        raise HTTPException(status_code=502, detail=f"Portal returned {e.status_code}: {e.detail}")
    except UsageResolutionError as e:
        logger.warning(
            "Usage resolution failed (mode=%s, subscription=%s): %s",
            e.billing_mode,
            e.subscription_id,
            e,
        )
        raise HTTPException(
            status_code=502,
            detail={
                "error": str(e),
                "billing_mode": e.billing_mode,
                "subscription_id": e.subscription_id,
            },
        )
    except InvalidTimestampError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return snapshot.model_dump(mode="json")


@usage_router.post("/token")
def set_token(body: TokenBody, request: Request) -> dict[str, Any]:
    """Use a new portal token for subsequent refreshes (kept in memory only)."""
    token = _context(request).set_token(body.token)
    return {"ok": True, "token_set": bool(token)}
