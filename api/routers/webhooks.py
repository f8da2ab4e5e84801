"""
Webhook API Endpoints.

Receiver for Supabase Database Webhooks on the leads table. Each delivery is
dispatched synchronously; a handler failure answers 500 so the sender retries.
"""

import hmac
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException
from fastapi.responses import JSONResponse

from api.dependencies import get_pipeline
from api.models import WebhookAckResponse
from services.pipeline import LeadPipeline
from services.webhook_events import WebhookPayloadError, parse_webhook_payload

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/webhooks/leads",
    response_model=WebhookAckResponse,
    summary="Lead Change Webhook",
)
def receive_lead_change(
    payload: Dict[str, Any] = Body(...),
    webhook_secret: Optional[str] = Header(None, alias="X-Webhook-Secret"),
    pipeline: LeadPipeline = Depends(get_pipeline),
):
    """
    Handle one row change from the leads table.

    **Example request:**
    ```json
    {
      "type": "UPDATE",
      "table": "leads",
      "schema": "public",
      "record": {"lead_id": "...", "status": "Completed", "phone_number": "217-555-0100", "...": "..."},
      "old_record": {"lead_id": "...", "status": "Processing", "...": "..."}
    }
    ```

    Changes to other tables and deletions are acknowledged with accepted=false.
    """
    expected = pipeline.settings.webhook_secret
    if expected and not hmac.compare_digest((webhook_secret or "").encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Invalid webhook secret")

    try:
        event = parse_webhook_payload(payload)
    except WebhookPayloadError as e:
        logger.warning(f"Rejected webhook payload: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    if event is None:
        return WebhookAckResponse(accepted=False)

    result = pipeline.dispatcher.dispatch(event)
    if not result.ok:
        return JSONResponse(status_code=500, content={"error": "; ".join(result.errors)})

    return WebhookAckResponse(accepted=True, event=type(event).__name__, handled=result.handled)
