"""Encounter search by patient and last-updated time."""

from datetime import datetime, timezone
from typing import Dict, List, Optional
import logging

from encounter_session.models.encounter import EncounterRecord
from encounter_session.tools.fhir_client import FHIRClient, get_fhir_client

logger = logging.getLogger(__name__)


def format_since(since: datetime) -> str:
    """Format a FHIR ``_lastUpdated`` lower bound, e.g. ``ge2025-07-22T02:00:00.000Z``."""
    if since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)
    since = since.astimezone(timezone.utc)
    return "ge" + since.strftime("%Y-%m-%dT%H:%M:%S.") + f"{since.microsecond // 1000:03d}Z"


class EncounterSearch:
    """Queries the encounter store for recently updated encounters."""

    def __init__(self, client: Optional[FHIRClient] = None):
        self.client = client or get_fhir_client()

    def build_params(
        self,
        patient_id: str,
        since: Optional[datetime] = None,
        tag: Optional[str] = None,
        participant: Optional[str] = None,
        encounter_type: Optional[str] = None,
    ) -> Dict[str, str]:
        """Build search parameters; empty values are left out."""
        params = {
            "patient": patient_id,
            "_tag": tag,
            "_lastUpdated": format_since(since) if since else None,
            "participant": participant,
            "type": encounter_type,
        }
        return {key: value for key, value in params.items() if value}

    async def search(
        self,
        patient_id: str,
        since: Optional[datetime] = None,
        tag: Optional[str] = None,
        participant: Optional[str] = None,
        encounter_type: Optional[str] = None,
    ) -> List[EncounterRecord]:
        """
        Find encounters for a patient updated at or after ``since``.

        Args:
            patient_id: Patient identifier
            since: Lower bound on last-updated time
            tag: Encounter tag, e.g. "encounter" as opposed to "visit"
            participant: Server-side clinician filter
            encounter_type: Encounter type code

        Returns:
            Matching encounters in backend order; empty list when none match

        Raises:
            FHIRRequestError: transport or parse failure (not retried)
        """
        params = self.build_params(patient_id, since, tag, participant, encounter_type)
        encounters = await self.client.search_encounters(params)
        logger.debug(f"Encounter search for patient {patient_id} returned {len(encounters)}")
        return encounters
