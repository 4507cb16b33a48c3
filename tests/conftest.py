"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from encounter_session.models.encounter import (
    EncounterRecord,
    ParticipantRef,
    Period,
    VisitRecord,
)
from encounter_session.services.visit_gate import VisitGate

NOW = datetime(2025, 7, 22, 10, 0, 0, tzinfo=timezone.utc)
PATIENT_ID = "patient-1"
CLINICIAN_ID = "clinician-1"
OTHER_CLINICIAN_ID = "clinician-2"
VISIT_ID = "visit-1"


def make_encounter(
    encounter_id: str = "encounter-1",
    minutes_ago: int = 5,
    participant: Optional[str] = f"Practitioner/{CLINICIAN_ID}",
    visit_id: Optional[str] = VISIT_ID,
    start_minutes_ago: Optional[int] = 30,
) -> EncounterRecord:
    """Build an EncounterRecord relative to NOW."""
    return EncounterRecord(
        id=encounter_id,
        updated_at=NOW - timedelta(minutes=minutes_ago),
        period=Period(
            start=(
                NOW - timedelta(minutes=start_minutes_ago)
                if start_minutes_ago is not None
                else None
            )
        ),
        participants=[ParticipantRef(reference=participant)] if participant else [],
        part_of_visit_id=visit_id,
    )


def make_visit(
    visit_id: str = VISIT_ID, closed: bool = False, start_hours_ago: int = 3
) -> VisitRecord:
    """Build a VisitRecord; open unless ``closed``."""
    return VisitRecord(
        id=visit_id,
        period=Period(
            start=NOW - timedelta(hours=start_hours_ago),
            end=NOW - timedelta(minutes=1) if closed else None,
        ),
    )


def fhir_encounter(
    encounter_id: str = "encounter-1",
    last_updated: str = "2025-07-22T09:55:00.000+00:00",
    participant_reference: Optional[str] = f"Practitioner/{CLINICIAN_ID}",
    visit_id: Optional[str] = VISIT_ID,
    tag: str = "encounter",
) -> dict:
    """Raw FHIR Encounter resource as the backend returns it."""
    resource = {
        "resourceType": "Encounter",
        "id": encounter_id,
        "meta": {
            "versionId": "1",
            "lastUpdated": last_updated,
            "tag": [
                {
                    "system": "http://fhir.openmrs.org/ext/encounter-tag",
                    "code": tag,
                    "display": tag.capitalize(),
                }
            ],
        },
        "status": "in-progress",
        "type": [
            {
                "coding": [
                    {
                        "system": "http://fhir.openmrs.org/code-system/encounter-type",
                        "code": "d34fe3ab-5e07-11ef-8f7c-0242ac120002",
                        "display": "Consultation",
                    }
                ]
            }
        ],
        "subject": {"reference": f"Patient/{PATIENT_ID}", "type": "Patient"},
        "period": {"start": "2025-07-22T09:30:00+00:00"},
    }
    if participant_reference:
        resource["participant"] = [
            {"individual": {"reference": participant_reference, "type": "Practitioner"}}
        ]
    if visit_id:
        resource["partOf"] = {"reference": f"Encounter/{visit_id}", "type": "Encounter"}
    return resource


def fhir_visit(visit_id: str = VISIT_ID, end: Optional[str] = None) -> dict:
    """Raw visit-tagged FHIR Encounter resource."""
    period = {"start": "2025-07-22T07:00:00+00:00"}
    if end:
        period["end"] = end
    return {
        "resourceType": "Encounter",
        "id": visit_id,
        "meta": {"tag": [{"code": "visit", "display": "Visit"}]},
        "status": "finished" if end else "in-progress",
        "period": period,
    }


def bundle(*resources: dict) -> dict:
    """Wrap resources in a searchset Bundle."""
    return {
        "resourceType": "Bundle",
        "type": "searchset",
        "total": len(resources),
        "entry": [{"resource": r} for r in resources],
    }


def make_visit_gate(open_visit: Optional[VisitRecord] = None, error: Exception = None) -> MagicMock:
    """VisitGate double with the real containment rule."""
    gate = MagicMock()
    if error is not None:
        gate.get_open_visit = AsyncMock(side_effect=error)
    else:
        gate.get_open_visit = AsyncMock(return_value=open_visit)
    gate.contains = VisitGate.contains
    return gate


def make_search(encounters: List[EncounterRecord] = None, error: Exception = None) -> MagicMock:
    """EncounterSearch double."""
    search = MagicMock()
    if error is not None:
        search.search = AsyncMock(side_effect=error)
    else:
        search.search = AsyncMock(return_value=encounters or [])
    return search


def make_policy(minutes: int = 60) -> MagicMock:
    """SessionPolicyProvider double."""
    policy = MagicMock()
    policy.get_session_duration_minutes = AsyncMock(return_value=minutes)
    return policy


@pytest.fixture
def clock():
    """Fixed clock at NOW."""
    return lambda: NOW
