# routers/reports.py
from fastapi import APIRouter, UploadFile, File, Depends, Form, Request
from schemas import Identity, ReportSubmitted
from util.security import get_current_user
from typing import Optional
import logging

router = APIRouter(prefix="/api", tags=["Reports"])

logger = logging.getLogger(__name__)

@router.post("/reports", response_model=ReportSubmitted)
async def submit_report(
    request: Request,
    category: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    latitude: Optional[float] = Form(None),
    longitude: Optional[float] = Form(None),
    description: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    current_user: Identity = Depends(get_current_user)
):
    """
    Submit a new issue report
    - Requires a bearer token
    - Optional photo: one image, at most 5MB
    - Report starts in status 'submitted'
    """
    blob_store = request.app.state.blob_store
    registry = request.app.state.report_registry

    photo_ref = None
    if photo is not None and photo.filename:
        photo_ref = await blob_store.save(photo)

    try:
        report_id = await registry.submit(
            current_user,
            category,
            location=location,
            latitude=latitude,
            longitude=longitude,
            description=description,
            photo_ref=photo_ref,
        )
    except Exception:
        # Clean up file on error
        if photo_ref:
            logger.warning(f"Discarding photo {photo_ref} after failed report submission")
            await blob_store.discard(photo_ref)
        raise

    return {"reportId": report_id}
