"""API request and response models."""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from encounter_session.models.encounter import EncounterRecord
from encounter_session.models.resolution import ConsultationAction, ResolutionStatus


class SessionWindowModel(BaseModel):
    """Session window used for the lookup."""

    start: datetime
    end: datetime
    duration_minutes: int


class ConsultationSessionResponse(BaseModel):
    """Session decision for the consultation pad."""

    patient_id: str
    clinician_id: Optional[str] = None
    has_active_session: bool = Field(
        ..., description="True when an encounter should be resumed"
    )
    is_clinician_match: bool = False
    action: ConsultationAction
    status: ResolutionStatus
    encounter: Optional[EncounterRecord] = None
    reason: Optional[str] = Field(None, description="Diagnostic detail, never shown as an error")
    window: Optional[SessionWindowModel] = None
