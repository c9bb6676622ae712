from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse

from src.notetaker.dependencies import get_event_reducer
from src.notetaker.services.audit.service import audit_service
from src.notetaker.services.sessions.reducer import EventReducer

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.get("/notetaker", response_class=PlainTextResponse)
async def verify_webhook(challenge: Optional[str] = None) -> PlainTextResponse:
    """Endpoint verification handshake: echo the challenge value verbatim."""

    if not challenge:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing challenge parameter")
    return PlainTextResponse(challenge)


@router.post("/notetaker")
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    reducer: EventReducer = Depends(get_event_reducer),
) -> dict:
    """Acknowledge a lifecycle event and reduce it in the background.

    The vendor only needs to know the delivery arrived; processing errors are
    logged by the reducer and never change this response.
    """

    payload: Any
    try:
        payload = await request.json()
    except ValueError:
        # Not JSON at all; still acknowledged, the reducer drops it.
        payload = None

    audit_service.log_event(
        action="receive_webhook",
        resource_type="webhook_event",
        extra={"type": payload.get("type") if isinstance(payload, Mapping) else None},
    )
    background_tasks.add_task(reducer.handle_event_safely, payload)
    return {"received": True}
