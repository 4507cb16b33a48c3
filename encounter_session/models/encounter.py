"""Read-only views of FHIR Encounter resources used for session resolution."""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime, timezone


class Period(BaseModel):
    """Start/end of an encounter or visit. An unset end means still open."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @field_validator("start", "end")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Naive datetimes are taken as UTC so periods always compare."""
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class ParticipantRef(BaseModel):
    """A clinician reference attached to an encounter.

    The backend has emitted this in several equivalent shapes:
    - a bare id in ``reference`` ("abc-123")
    - a typed path ("Practitioner/abc-123")
    - a longer path ending in the id (".../Practitioner/abc-123")
    - a separate ``identifier.value`` ("abc-123")

    No shape takes precedence; see ``utils.reference_matcher``.
    """

    reference: Optional[str] = None
    identifier_value: Optional[str] = None
    display: Optional[str] = None


class EncounterRecord(BaseModel):
    """A single clinical encounter (e.g. one consultation)."""

    id: str
    updated_at: Optional[datetime] = None
    period: Period = Field(default_factory=Period)
    participants: List[ParticipantRef] = Field(default_factory=list)
    part_of_visit_id: Optional[str] = None
    encounter_type: Optional[str] = None
    status: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "id": "9f1c2d8e-3a43-4a55-8a7d-6a0f8f7c1e21",
                "updated_at": "2025-07-22T03:18:29+00:00",
                "period": {"start": "2025-07-22T02:00:00+00:00"},
                "participants": [{"reference": "Practitioner/c1"}],
                "part_of_visit_id": "visit-1",
            }
        }


class VisitRecord(BaseModel):
    """A hospital visit: the container for one or more encounters."""

    id: str
    period: Period = Field(default_factory=Period)
    status: Optional[str] = None

    @property
    def is_open(self) -> bool:
        # Open is decided by the end date alone, whatever the start says.
        return self.period.end is None
