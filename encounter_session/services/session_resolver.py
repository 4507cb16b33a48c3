"""Encounter session resolution.

Decides, for a patient and the acting clinician, whether an already-open
consultation encounter should be resumed ("Edit Consultation") or a new one
started ("New Consultation").

Pipeline (each step can only narrow the result):
    policy duration -> time window -> encounter search -> clinician filter
    -> open-visit filter -> most recently updated candidate

Every failure lands on "start new"; the single exception is the clinician
filter, which falls back to all searched encounters if it blows up on
malformed participant data. The whole pipeline runs under one deadline.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional
import asyncio
import logging

from encounter_session.config.settings import settings
from encounter_session.models.encounter import EncounterRecord
from encounter_session.models.resolution import ResolutionResult, SessionWindow
from encounter_session.services.encounter_search import EncounterSearch
from encounter_session.services.session_policy import SessionPolicyProvider
from encounter_session.services.visit_gate import VisitGate
from encounter_session.utils.reference_matcher import filter_by_clinician

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _updated_key(encounter: EncounterRecord) -> datetime:
    updated = encounter.updated_at
    if updated is None:
        return _EPOCH
    if updated.tzinfo is None:
        return updated.replace(tzinfo=timezone.utc)
    return updated


def select_most_recent(candidates: List[EncounterRecord]) -> Optional[EncounterRecord]:
    """Most recently updated encounter; ties keep backend order."""
    if not candidates:
        return None
    return sorted(candidates, key=_updated_key, reverse=True)[0]


class SessionResolver:
    """Finds at most one resumable encounter for a patient and clinician."""

    def __init__(
        self,
        encounter_search: Optional[EncounterSearch] = None,
        visit_gate: Optional[VisitGate] = None,
        policy: Optional[SessionPolicyProvider] = None,
        timeout: Optional[float] = None,
        encounter_tag: Optional[str] = None,
        encounter_type: Optional[str] = None,
        filter_participant_server_side: Optional[bool] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.encounter_search = encounter_search or EncounterSearch()
        self.visit_gate = visit_gate or VisitGate()
        self.policy = policy or SessionPolicyProvider()
        self.timeout = timeout if timeout is not None else settings.session_resolution_timeout_seconds
        self.encounter_tag = encounter_tag or settings.encounter_tag
        self.encounter_type = (
            encounter_type
            if encounter_type is not None
            else settings.consultation_encounter_type_uuid
        )
        self.filter_participant_server_side = (
            filter_participant_server_side
            if filter_participant_server_side is not None
            else settings.filter_participant_server_side
        )
        self.clock = clock

    def compute_window(self, duration_minutes: int) -> SessionWindow:
        """Window of [now - duration, now]; recomputed on every attempt."""
        now = self.clock()
        try:
            start = now - timedelta(minutes=duration_minutes)
        except OverflowError:
            logger.warning(
                f"Session duration {duration_minutes} minutes is out of range; "
                f"using default {settings.default_session_duration_minutes} minutes"
            )
            duration_minutes = settings.default_session_duration_minutes
            start = now - timedelta(minutes=duration_minutes)
        return SessionWindow(start=start, end=now, duration_minutes=duration_minutes)

    async def resolve(
        self,
        patient_id: Optional[str],
        clinician_id: Optional[str],
        duration_minutes: Optional[int] = None,
    ) -> ResolutionResult:
        """
        Resolve the resumable encounter for a patient and clinician.

        Never raises (other than on caller cancellation) and never takes
        longer than the configured deadline.

        Args:
            patient_id: Patient identifier
            clinician_id: Acting clinician identifier
            duration_minutes: Explicit session window; fetched from policy if None

        Returns:
            ResolutionResult (RESUMABLE, NONE or ERROR)
        """
        if not patient_id:
            return ResolutionResult.none("patient not selected")
        if not clinician_id:
            return ResolutionResult.none("clinician not known")

        try:
            return await asyncio.wait_for(
                self._resolve(patient_id, clinician_id, duration_minutes),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Session resolution for patient {patient_id} timed out after {self.timeout}s"
            )
            return ResolutionResult.none("timeout")
        except Exception as e:
            logger.error(f"Session resolution failed for patient {patient_id}: {str(e)}")
            return ResolutionResult.error(str(e))

    async def _resolve(
        self, patient_id: str, clinician_id: str, duration_minutes: Optional[int]
    ) -> ResolutionResult:
        if duration_minutes is None:
            duration_minutes = await self.policy.get_session_duration_minutes()
        window = self.compute_window(duration_minutes)

        try:
            encounters = await self.encounter_search.search(
                patient_id,
                since=window.start,
                tag=self.encounter_tag,
                participant=clinician_id if self.filter_participant_server_side else None,
                encounter_type=self.encounter_type or None,
            )
        except Exception as e:
            logger.warning(f"Encounter search failed for patient {patient_id}: {str(e)}")
            return ResolutionResult.error(f"encounter search failed: {e}", window)

        if not encounters:
            return ResolutionResult.none("no encounters in session window", window)

        try:
            candidates = filter_by_clinician(encounters, clinician_id)
        except Exception as e:
            # Malformed participant data must not hide a real session.
            logger.warning(
                f"Clinician filter failed for patient {patient_id}, "
                f"keeping all {len(encounters)} encounters: {str(e)}"
            )
            candidates = list(encounters)

        if not candidates:
            return ResolutionResult.none("no encounters for clinician", window)

        visit = await self.visit_gate.get_open_visit(patient_id)
        if visit is None:
            return ResolutionResult.none("no open visit", window)

        in_visit = [e for e in candidates if self.visit_gate.contains(visit, e)]
        selected = select_most_recent(in_visit)
        if selected is None:
            return ResolutionResult.none("no encounter in open visit", window)

        logger.info(
            f"Resumable encounter {selected.id} for patient {patient_id} "
            f"(visit {visit.id}, {len(in_visit)} candidate(s))"
        )
        return ResolutionResult.resumable(selected, window)

    async def find_resumable_encounter(
        self,
        patient_id: Optional[str],
        clinician_id: Optional[str],
        duration_minutes: Optional[int] = None,
    ) -> Optional[EncounterRecord]:
        """The resumable encounter, or None."""
        result = await self.resolve(patient_id, clinician_id, duration_minutes)
        return result.encounter if result.is_resumable else None

    async def has_active_session(
        self, patient_id: Optional[str], clinician_id: Optional[str]
    ) -> bool:
        """Whether the clinician has a resumable encounter for the patient."""
        return await self.find_resumable_encounter(patient_id, clinician_id) is not None


# Global resolver instance
_session_resolver: Optional[SessionResolver] = None


def get_session_resolver() -> SessionResolver:
    """Get or create SessionResolver instance."""
    global _session_resolver
    if _session_resolver is None:
        _session_resolver = SessionResolver()
    return _session_resolver
