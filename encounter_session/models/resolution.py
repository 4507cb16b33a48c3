"""Resolution outcome enums and models."""

from enum import Enum
from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from encounter_session.models.encounter import EncounterRecord


class ResolutionStatus(str, Enum):
    """Outcome of a single session resolution attempt."""

    RESUMABLE = "resumable"  # Resume the encounter ("Edit Consultation")
    NONE = "none"  # Start a new encounter ("New Consultation")
    ERROR = "error"  # Lookup failed; treated exactly like NONE


class ConsultationAction(str, Enum):
    """What the consultation pad should offer the clinician."""

    EDIT_CONSULTATION = "EDIT_CONSULTATION"
    NEW_CONSULTATION = "NEW_CONSULTATION"


class SessionWindow(BaseModel):
    """Time window an encounter must have been updated in to be resumable."""

    start: datetime
    end: datetime
    duration_minutes: int


class ResolutionResult(BaseModel):
    """The only value that leaves the resolver."""

    status: ResolutionStatus
    encounter: Optional[EncounterRecord] = None
    reason: Optional[str] = None
    window: Optional[SessionWindow] = None

    @property
    def is_resumable(self) -> bool:
        return self.status == ResolutionStatus.RESUMABLE and self.encounter is not None

    @property
    def action(self) -> ConsultationAction:
        if self.is_resumable:
            return ConsultationAction.EDIT_CONSULTATION
        return ConsultationAction.NEW_CONSULTATION

    @classmethod
    def resumable(
        cls, encounter: EncounterRecord, window: Optional[SessionWindow] = None
    ) -> "ResolutionResult":
        return cls(status=ResolutionStatus.RESUMABLE, encounter=encounter, window=window)

    @classmethod
    def none(
        cls, reason: Optional[str] = None, window: Optional[SessionWindow] = None
    ) -> "ResolutionResult":
        return cls(status=ResolutionStatus.NONE, reason=reason, window=window)

    @classmethod
    def error(
        cls, reason: str, window: Optional[SessionWindow] = None
    ) -> "ResolutionResult":
        return cls(status=ResolutionStatus.ERROR, reason=reason, window=window)


class SessionState(BaseModel):
    """Snapshot of a SessionObserver, shaped for the consultation pad."""

    patient_id: Optional[str] = None
    clinician_id: Optional[str] = None
    has_active_session: bool = False
    resumable_encounter: Optional[EncounterRecord] = None
    is_clinician_match: bool = False
    is_resolving: bool = False
    last_error: Optional[str] = None

    @property
    def action(self) -> ConsultationAction:
        if self.has_active_session:
            return ConsultationAction.EDIT_CONSULTATION
        return ConsultationAction.NEW_CONSULTATION
