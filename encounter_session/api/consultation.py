"""Consultation session API endpoints.

The consultation pad calls this to decide between "Edit Consultation"
(resume the clinician's open encounter) and "New Consultation".
Resolution failures never surface as HTTP errors: they come back as a
"new consultation" decision with a diagnostic ``reason``.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional
import logging

from encounter_session.api.dependencies import get_resolver
from encounter_session.models.messages import (
    ConsultationSessionResponse,
    SessionWindowModel,
)
from encounter_session.services.session_policy import MAX_SESSION_DURATION_MINUTES
from encounter_session.services.session_resolver import SessionResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/consultation", tags=["Consultation"])


@router.get("/session", response_model=ConsultationSessionResponse)
async def get_consultation_session(
    patient_id: str = Query(..., min_length=1, description="Patient UUID"),
    clinician_id: Optional[str] = Query(None, description="Acting practitioner UUID"),
    duration_minutes: Optional[int] = Query(
        None,
        gt=0,
        le=MAX_SESSION_DURATION_MINUTES,
        description="Override the configured session duration",
    ),
    resolver: SessionResolver = Depends(get_resolver),
):
    """
    Resolve whether the clinician has a resumable encounter for the patient.

    Without a clinician the answer is always "new consultation".
    """
    result = await resolver.resolve(patient_id, clinician_id, duration_minutes)

    logger.info(
        f"Consultation session for patient {patient_id}: "
        f"{result.status.value} ({result.reason or 'ok'})"
    )

    return ConsultationSessionResponse(
        patient_id=patient_id,
        clinician_id=clinician_id,
        has_active_session=result.is_resumable,
        is_clinician_match=result.is_resumable,
        action=result.action,
        status=result.status,
        encounter=result.encounter,
        reason=result.reason,
        window=(
            SessionWindowModel(**result.window.model_dump()) if result.window else None
        ),
    )
