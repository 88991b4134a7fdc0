"""Identity provider webhook receiver."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db
from core import WebhookVerificationError, verify_webhook_signature
from services.user_sync import sync_user_from_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


class WebhookAck(BaseModel):
    success: bool = True
    event_type: str
    user_id: int | None = None


@router.post("/identity", response_model=WebhookAck)
async def receive_identity_event(
    request: Request,
    session: AsyncSession = Depends(get_db),
) -> WebhookAck:
    payload = await request.body()
    try:
        verify_webhook_signature(payload, request.headers)
    except WebhookVerificationError as exc:
        logger.warning("Rejected identity webhook", extra={"reason": str(exc)})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        event: Any = json.loads(payload)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook body must be JSON",
        ) from exc
    if not isinstance(event, dict) or not isinstance(event.get("data"), dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook body is missing event data",
        )

    event_type = str(event.get("type") or "")
    try:
        user = await sync_user_from_event(session, event_type, event["data"])
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return WebhookAck(event_type=event_type, user_id=user.id if user is not None else None)
