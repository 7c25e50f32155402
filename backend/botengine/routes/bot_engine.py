# /botengine/routes/bot_engine.py

import structlog
from fastapi import APIRouter, Depends, HTTPException

from botengine.config.settings import settings
from botengine.models.api import (
    APIResponse, BotLogEntry, InterceptRequest, InterceptResponse, MenuValidationRequest
)
from botengine.models.session import BotSession
from botengine.services.bot_engine import bot_engine_service, normalize_user_id
from botengine.services.db_service import db_service
from botengine.services.menu_service import menu_service
from botengine.utils.dependencies import get_tenant_id, verify_intercept_api_key
from botengine.utils.metrics import response_time_histogram
from botengine.utils.rate_limiter import limiter
from botengine.workflows.validator import validate_menu

# The intercept endpoint is called by the webhook router for every inbound
# message; the session endpoints let a tenant inspect and repair their own
# end-user sessions.

router = APIRouter(
    prefix="/bot-engine",
    tags=["Bot Engine"]
)

log = structlog.get_logger(__name__)


# Exempt from the shared IP limit: the webhook router is the only caller, and a
# 429 would break the pass-through contract.
@router.post("/intercept", response_model=InterceptResponse, dependencies=[Depends(verify_intercept_api_key)])
@limiter.exempt
async def intercept_message(payload: InterceptRequest):
    """Offer an inbound message to the bot engine; should_continue tells the caller whether to keep processing it."""
    with response_time_histogram.labels(endpoint="bot_engine_intercept").time():
        return await bot_engine_service.intercept(payload)


async def _require_session(tenant_id: str, user_id: str) -> BotSession:
    doc = await db_service.get_session(tenant_id, user_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Session not found")
    return BotSession(**doc)


@router.get("/sessions/{user_id}", response_model=APIResponse)
async def get_session(user_id: str, tenant_id: str = Depends(get_tenant_id)):
    """Current state, stack and lock status of one end-user session."""
    session = await _require_session(tenant_id, normalize_user_id(user_id))
    breadcrumb = await menu_service.breadcrumb(tenant_id, session.state)
    return APIResponse(
        success=True,
        message="Session retrieved successfully",
        data={"session": session.model_dump(mode="json"), "breadcrumb": breadcrumb},
        version=settings.api_version
    )


@router.post("/sessions/{user_id}/reset", response_model=APIResponse)
async def reset_session(user_id: str, tenant_id: str = Depends(get_tenant_id)):
    """Send a session back to START with an empty stack."""
    user_id = normalize_user_id(user_id)
    if not await db_service.reset_session(tenant_id, user_id):
        raise HTTPException(status_code=404, detail="Session not found")
    log.info("Session reset by tenant", tenant_id=tenant_id, user_id=user_id)
    return APIResponse(success=True, message="Session reset", version=settings.api_version)


@router.post("/sessions/{user_id}/unlock", response_model=APIResponse)
async def unlock_session(user_id: str, tenant_id: str = Depends(get_tenant_id)):
    """Clear a stuck lock without waiting for it to expire."""
    user_id = normalize_user_id(user_id)
    await _require_session(tenant_id, user_id)
    await db_service.unlock_session(tenant_id, user_id)
    log.info("Session unlocked by tenant", tenant_id=tenant_id, user_id=user_id)
    return APIResponse(success=True, message="Session unlocked", version=settings.api_version)


@router.get("/sessions/{user_id}/logs", response_model=APIResponse)
async def get_session_logs(user_id: str, limit: int = settings.bot_log_page_size, tenant_id: str = Depends(get_tenant_id)):
    """Latest transcript lines for a session, oldest first."""
    limit = max(1, min(limit, 500))
    docs = await db_service.get_bot_logs(tenant_id, normalize_user_id(user_id), limit=limit)
    entries = [BotLogEntry(**doc).model_dump(mode="json") for doc in docs]
    return APIResponse(
        success=True,
        message=f"Retrieved {len(entries)} log entries",
        data={"logs": entries},
        version=settings.api_version
    )


@router.post("/menus/validate", response_model=APIResponse)
async def validate_menu_definition(payload: MenuValidationRequest, tenant_id: str = Depends(get_tenant_id)):
    """Check a menu definition before it is saved."""
    result = validate_menu(payload.menu_key, payload.options, payload.parent_menu_key)
    return APIResponse(
        success=result["is_valid"],
        message=result["message"] or "Menu definition is valid",
        data=dict(result),
        version=settings.api_version
    )
