"""Active visit lookup and encounter-in-visit checks."""

from typing import Optional
import logging

from encounter_session.config.settings import settings
from encounter_session.models.encounter import EncounterRecord, VisitRecord
from encounter_session.tools.fhir_client import FHIRClient, get_fhir_client

logger = logging.getLogger(__name__)


class VisitGate:
    """Decides whether an encounter sits inside the patient's open visit.

    Fail-closed: no open visit, or a failed visit lookup, means no encounter
    is in an open visit.
    """

    def __init__(self, client: Optional[FHIRClient] = None, visit_tag: Optional[str] = None):
        self.client = client or get_fhir_client()
        self.visit_tag = visit_tag or settings.visit_tag

    async def get_open_visit(self, patient_id: str) -> Optional[VisitRecord]:
        """
        Get the patient's open visit.

        If the backend returns several open visits, the first one wins.

        Args:
            patient_id: Patient identifier

        Returns:
            The open VisitRecord, or None if there is none or the lookup failed
        """
        params = {"subject:Patient": patient_id, "_tag": self.visit_tag}
        try:
            visits = await self.client.search_visits(params)
        except Exception as e:
            logger.warning(f"Visit lookup failed for patient {patient_id}: {str(e)}")
            return None

        open_visits = [visit for visit in visits if visit.is_open]
        if len(open_visits) > 1:
            logger.warning(
                f"Patient {patient_id} has {len(open_visits)} open visits; "
                f"using {open_visits[0].id}"
            )
        return open_visits[0] if open_visits else None

    @staticmethod
    def contains(visit: Optional[VisitRecord], encounter: EncounterRecord) -> bool:
        """Whether ``encounter`` belongs to the (open) ``visit``.

        - the encounter is the visit itself, or
        - its partOf reference names the visit, or
        - it has no partOf reference and started at or after the visit start.

        An encounter whose partOf names a different visit is never contained.
        """
        if visit is None or not visit.is_open:
            return False
        if encounter.id == visit.id:
            return True
        if encounter.part_of_visit_id:
            return encounter.part_of_visit_id == visit.id

        started = encounter.period.start
        if started is None:
            return False
        return visit.period.start is None or started >= visit.period.start

    async def is_encounter_in_open_visit(
        self, encounter: EncounterRecord, patient_id: str
    ) -> bool:
        """Fetch the open visit and check the encounter against it."""
        visit = await self.get_open_visit(patient_id)
        return self.contains(visit, encounter)
