"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from domain.lead import Lead


# ============================================================================
# Upload Models
# ============================================================================

class UploadProbeResponse(BaseModel):
    """Response for the upload route availability check."""
    status: int
    message: str


class UploadResponse(BaseModel):
    """Response after a CSV upload was accepted."""
    message: str
    leads_count: int = Field(..., alias="leadsCount")
    rows_dropped: int = Field(0, alias="rowsDropped")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "message": "CSV file processed and leads saved. Skip-tracing will begin shortly.",
                "leadsCount": 120,
                "rowsDropped": 3
            }
        },
    )


# ============================================================================
# Lead Models
# ============================================================================

class LeadResponse(BaseModel):
    """Single lead in API responses."""
    lead_id: str
    owner_id: str
    first_name: str
    last_name: str
    street_address: str
    city: str
    state: str
    postal_code: str
    status: str
    uploaded_at: datetime
    phone_number: Optional[str] = None
    error: Optional[str] = None
    ai_analysis: Optional[str] = None
    analyzed_at: Optional[datetime] = None
    ai_analysis_error: Optional[str] = None

    @classmethod
    def from_lead(cls, lead: Lead) -> "LeadResponse":
        return cls(
            lead_id=lead.lead_id,
            owner_id=lead.owner_id,
            first_name=lead.first_name,
            last_name=lead.last_name,
            street_address=lead.street_address,
            city=lead.city,
            state=lead.state,
            postal_code=lead.postal_code,
            status=lead.status.value,
            uploaded_at=lead.uploaded_at,
            phone_number=lead.phone_number,
            error=lead.error,
            ai_analysis=lead.ai_analysis,
            analyzed_at=lead.analyzed_at,
            ai_analysis_error=lead.ai_analysis_error,
        )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "lead_id": "123e4567-e89b-12d3-a456-426614174000",
                "owner_id": "user-123",
                "first_name": "Jane",
                "last_name": "Doe",
                "street_address": "123 Main St",
                "city": "Springfield",
                "state": "IL",
                "postal_code": "62701",
                "status": "Completed",
                "uploaded_at": "2025-01-01T12:00:00Z",
                "phone_number": "217-555-0100",
                "error": None
            }
        },
    )


class LeadListResponse(BaseModel):
    """Response for an owner's lead listing (newest upload first)."""
    items: List[LeadResponse]
    total_count: int


# ============================================================================
# Webhook Models
# ============================================================================

class WebhookAckResponse(BaseModel):
    """Acknowledgement for a delivered change event."""
    accepted: bool
    event: Optional[str] = None
    handled: int = 0


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Unauthorized: User ID missing."
            }
        },
    )
