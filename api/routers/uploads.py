"""
Upload API Endpoints.

Endpoint for bulk lead uploads from CSV files.
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse

from api.dependencies import get_pipeline, schedule_outbox_drain
from api.models import ErrorResponse, UploadProbeResponse, UploadResponse
from services.ingestion_service import (
    CsvParseError,
    LeadPersistenceError,
    NoValidRecordsError,
    ingest_csv,
)
from services.pipeline import LeadPipeline

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/upload-csv",
    response_model=UploadProbeResponse,
    summary="Upload Route Check",
)
def upload_route_check():
    """Confirm the upload route is reachable."""
    return {"status": 200, "message": "API route is working!"}


@router.post(
    "/upload-csv",
    response_model=UploadResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Upload Leads CSV",
    description="Parse a CSV of homeowner leads and save them for skip-tracing."
)
def upload_csv(
    background_tasks: BackgroundTasks,
    csv_file: Optional[UploadFile] = File(None, alias="csvFile"),
    user_id: Optional[str] = Form(None, alias="userId"),
    pipeline: LeadPipeline = Depends(get_pipeline),
):
    """
    Upload a CSV file of leads for one user.

    **Form fields:**
    - csvFile: the CSV file (header row required)
    - userId: owner of the uploaded leads

    **Accepted columns** (first non-empty alias wins):
    - First Name / first_name / firstName
    - Last Name / last_name / lastName
    - Street Address / street_address / streetAddress
    - City / city
    - State / state
    - Postal Code / postal_code / postalCode

    Rows missing any of these are dropped and counted in rowsDropped.
    Each saved lead starts in "Processing" and is skip-traced on its own.

    **Success response:**
    ```json
    {
      "message": "CSV file processed and leads saved. Skip-tracing will begin shortly.",
      "leadsCount": 120,
      "rowsDropped": 3
    }
    ```
    """
    if csv_file is None:
        return JSONResponse(status_code=400, content={"error": "No CSV file uploaded."})

    if not user_id or not user_id.strip():
        return JSONResponse(status_code=401, content={"error": "Unauthorized: User ID missing."})

    owner_id = user_id.strip()
    try:
        content = csv_file.file.read()
        result = ingest_csv(content, owner_id, pipeline.store)
    except CsvParseError as e:
        logger.warning(f"CSV upload from {owner_id} could not be parsed: {e}", extra={"owner_id": owner_id})
        return JSONResponse(status_code=400, content={"error": str(e)})
    except NoValidRecordsError as e:
        return JSONResponse(status_code=400, content={"message": str(e)})
    except LeadPersistenceError as e:
        logger.error(
            f"Failed to save leads for {owner_id}: {e}",
            extra={"owner_id": owner_id, "leads_created": e.leads_created},
        )
        if e.leads_created:
            schedule_outbox_drain(pipeline, background_tasks)
        return JSONResponse(status_code=500, content={"error": f"Server error: {e}"})
    except Exception as e:
        logger.exception(f"Unexpected error processing upload from {owner_id}", extra={"owner_id": owner_id})
        return JSONResponse(status_code=500, content={"error": f"Server error: {e}"})

    schedule_outbox_drain(pipeline, background_tasks)
    return UploadResponse(
        message=result.message,
        leads_count=result.leads_created,
        rows_dropped=result.rows_dropped,
    )
