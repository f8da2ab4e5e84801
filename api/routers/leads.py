"""
Leads API Endpoints.

Endpoints for listing a user's leads and re-running skip-tracing.
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query

from api.dependencies import get_pipeline, schedule_outbox_drain
from api.models import LeadListResponse, LeadResponse
from domain.lead import InvalidTransitionError
from repositories.lead_repository import RepositoryError
from services.pipeline import LeadPipeline
from services.skiptrace_service import LeadNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/users/{owner_id}/leads",
    response_model=LeadListResponse,
    summary="List Leads",
    description="List a user's leads, most recently uploaded first."
)
def list_leads(
    owner_id: str,
    limit: Optional[int] = Query(None, ge=1, le=1000, description="Maximum leads to return"),
    pipeline: LeadPipeline = Depends(get_pipeline),
):
    """
    List leads owned by a user.

    Each lead carries its pipeline status ("Processing", "Completed",
    "Skiptrace Failed", "Malformed Data", "Analyzed"), the selected mobile
    number when found, and the analysis text once analyzed.

    **Example usage:**
    - `/api/v1/users/user-123/leads`
    - `/api/v1/users/user-123/leads?limit=50`
    """
    try:
        leads = pipeline.store.list_leads_by_owner(owner_id, limit)
    except RepositoryError as e:
        logger.error(f"Failed to list leads for {owner_id}: {e}", extra={"owner_id": owner_id})
        raise HTTPException(status_code=500, detail=f"Failed to list leads: {str(e)}")

    return LeadListResponse(
        items=[LeadResponse.from_lead(lead) for lead in leads],
        total_count=len(leads),
    )


@router.post(
    "/users/{owner_id}/leads/{lead_id}/reenrich",
    response_model=LeadResponse,
    summary="Re-run Skip-tracing",
    description="Retry skip-tracing for a lead whose previous attempt failed."
)
def reenrich_lead(
    owner_id: str,
    lead_id: str,
    background_tasks: BackgroundTasks,
    pipeline: LeadPipeline = Depends(get_pipeline),
):
    """
    Re-run skip-tracing for a lead in "Skiptrace Failed".

    The lead is moved back to "Processing" and looked up again. Leads in any
    other status are rejected with 409.
    """
    try:
        lead = pipeline.skiptrace.reenrich(owner_id, lead_id)
    except LeadNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except RepositoryError as e:
        logger.error(f"Re-enrichment of lead {lead_id} failed: {e}", extra={"owner_id": owner_id, "lead_id": lead_id})
        raise HTTPException(status_code=500, detail=f"Re-enrichment failed: {str(e)}")

    schedule_outbox_drain(pipeline, background_tasks)

    if lead is None:
        lead = pipeline.store.get_lead(owner_id, lead_id)
        if lead is None:
            raise HTTPException(status_code=404, detail=f"Lead not found: {lead_id}")
    return LeadResponse.from_lead(lead)
