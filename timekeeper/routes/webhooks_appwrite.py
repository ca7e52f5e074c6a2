"""
Appwrite webhook receiver keeping the manager index current.

Handles team membership create/update/delete and project document events.
Anything else is acknowledged and ignored.
"""
from collections import OrderedDict
from typing import Any, Dict, List, Optional
import logging
import re

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse

from timekeeper.access import ManagerIndex
from timekeeper.config import settings
from timekeeper.deps import get_index
from timekeeper.models import ApiResponse
from timekeeper.utils.ids import request_id as get_request_id

logger = logging.getLogger(__name__)
router = APIRouter()

MAX_EVENT_CACHE = 1000
_event_cache: "OrderedDict[str, bool]" = OrderedDict()

MEMBERSHIP_EVENT = re.compile(r"^teams\.([^.*]+)\.memberships\.([^.*]+)\.(create|update|delete)$")
DOCUMENT_EVENT = re.compile(r"^databases\.([^.*]+)\.collections\.([^.*]+)\.documents\.([^.*]+)\.(create|update|delete)$")


def _check_and_record_event(event_key: str) -> bool:
    """Record event_key; True when it was already seen."""
    if event_key in _event_cache:
        _event_cache.move_to_end(event_key)
        return True
    _event_cache[event_key] = True
    if len(_event_cache) > MAX_EVENT_CACHE:
        _event_cache.popitem(last=False)
    return False


def normalize_event(events: List[str], payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Reduce Appwrite's event list (wildcard and concrete forms of the same
    event) to one normalized record.
    """
    for name in events:
        m = MEMBERSHIP_EVENT.match(name)
        if m:
            return {
                "eventType": "MEMBERSHIP",
                "operation": m.group(3),
                "teamId": payload.get("teamId") or m.group(1),
                "accountId": payload.get("userId"),
                "roles": payload.get("roles") or [],
                "event": name,
            }
        m = DOCUMENT_EVENT.match(name)
        if m and m.group(2) == settings.COL_PROJECTS:
            return {
                "eventType": "PROJECT",
                "operation": m.group(4),
                "projectId": payload.get("$id") or m.group(3),
                "organizationId": payload.get("organizationId"),
                "teamId": payload.get("projectTeamId") or payload.get("teamId"),
                "event": name,
            }
    return {"eventType": "UNKNOWN", "event": events[0] if events else None}


def apply_event(index: Optional[ManagerIndex], event: Dict[str, Any]) -> bool:
    """Apply a normalized event to the index. Returns whether it changed anything."""
    if index is None:
        return False

    if event["eventType"] == "MEMBERSHIP":
        if not event.get("accountId"):
            return False
        applied = index.apply_membership(
            event["teamId"],
            event["accountId"],
            event["roles"],
            removed=event["operation"] == "delete",
        )
        if not applied:
            # Team not seen yet; rebuild on next resolution
            index.invalidate()
        return True

    if event["eventType"] == "PROJECT":
        organization_id = event.get("organizationId")
        if not organization_id:
            index.invalidate()
        elif event["operation"] == "create":
            index.add_project(organization_id, event["projectId"], event.get("teamId"))
        else:
            index.invalidate(organization_id)
        return True

    return False


def _failure(status_code: int, code: str, message: str, req_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse.failure(code=code, message=message, request_id=req_id).model_dump(mode="json"),
    )


@router.post("/webhooks/appwrite")
async def appwrite_webhook(
    request: Request,
    x_webhook_secret: Optional[str] = Header(None),
    x_appwrite_webhook_events: Optional[str] = Header(None),
    x_request_id: Optional[str] = Header(None),
    index: Optional[ManagerIndex] = Depends(get_index),
):
    req_id = get_request_id(x_request_id)

    if settings.WEBHOOK_SHARED_SECRET:
        if not x_webhook_secret:
            logger.warning("Webhook secret missing", extra={"request_id": req_id})
            return _failure(401, "unauthorized", "Missing X-Webhook-Secret header", req_id)
        if x_webhook_secret != settings.WEBHOOK_SHARED_SECRET:
            logger.warning("Invalid webhook secret", extra={"request_id": req_id})
            return _failure(401, "unauthorized", "Invalid webhook secret", req_id)

    try:
        payload = await request.json()
    except ValueError as e:
        logger.error(f"Failed to parse webhook payload: {e}")
        return _failure(400, "validation_error", "Invalid JSON payload", req_id)
    if not isinstance(payload, dict):
        return _failure(400, "validation_error", "Webhook payload must be an object", req_id)

    events = [e.strip() for e in (x_appwrite_webhook_events or "").split(",") if e.strip()]
    event = normalize_event(events, payload)

    event_key = f"{event.get('event')}:{payload.get('$id')}:{payload.get('$updatedAt')}"
    duplicate = _check_and_record_event(event_key)

    applied = False
    if duplicate:
        logger.info(f"Duplicate webhook event {event_key}", extra={"request_id": req_id})
    else:
        applied = apply_event(index, event)

    logger.info(
        f"Processed Appwrite webhook: type={event['eventType']}, applied={applied}, duplicate={duplicate}",
        extra={"request_id": req_id},
    )

    return ApiResponse.success(
        data={"received": True, "duplicate": duplicate, "applied": applied, "event": event},
        request_id=req_id,
    )
