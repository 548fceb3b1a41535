"""
StudioDesk Incoming Webhook Receiver

Accepts task notifications from an external automation service. The caller
authenticates with a shared secret passed as the `secret` query parameter.
"""

import hmac
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, HTTPException, Query

from studiodesk.api import schemas
from studiodesk.config import load_config
from studiodesk.logging import get_logger, log_extra
from studiodesk.models.domain import WebhookEvent

router = APIRouter(prefix="/incoming-webhook", tags=["Webhooks"])
logger = get_logger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _verify_secret(expected: Optional[str], provided: Optional[str]) -> None:
    if not expected:
        logger.error("incoming_webhook_secret_not_configured")
        raise HTTPException(status_code=500, detail="Webhook secret not configured on server")
    if not provided:
        logger.warning("incoming_webhook_missing_secret")
        raise HTTPException(status_code=401, detail="Unauthorized: Missing secret parameter")
    if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("incoming_webhook_invalid_secret")
        raise HTTPException(status_code=401, detail="Unauthorized: Invalid secret")


@router.post("", response_model=schemas.IncomingWebhookAck)
def receive_webhook(
    secret: Optional[str] = Query(None),
    payload: Optional[Dict[str, Any]] = Body(None),
):
    """Acknowledge an authenticated notification and log its event name."""
    _verify_secret(load_config().webhook_secret, secret)
    payload = payload or {}

    event = payload.get("event")
    task = payload.get("task") if isinstance(payload.get("task"), dict) else {}
    fields = log_extra(event=event if isinstance(event, str) else None, task_id=task.get("id"))
    if event in WebhookEvent.ALL:
        logger.info("incoming_webhook_received", extra=fields)
    elif event is not None:
        logger.warning("incoming_webhook_unknown_event", extra=fields)
    else:
        logger.info("incoming_webhook_without_event", extra=fields)
    logger.debug("incoming_webhook_payload", extra=log_extra(payload=payload))

    return {"success": True, "message": "Webhook received successfully", "timestamp": _now()}


@router.get("", response_model=schemas.IncomingWebhookStatus)
def webhook_status():
    """Unauthenticated readiness check."""
    return {
        "status": "ready",
        "message": "Incoming webhook endpoint is active. Use POST with ?secret=VALUE to send webhooks.",
        "timestamp": _now(),
    }
