"""Reactive session state for the consultation pad."""

from typing import Callable, List, Optional
import asyncio
import logging

from encounter_session.models.resolution import (
    ResolutionResult,
    ResolutionStatus,
    SessionState,
)
from encounter_session.services.session_resolver import SessionResolver, get_session_resolver

logger = logging.getLogger(__name__)

SessionListener = Callable[[SessionState], None]


class SessionObserver:
    """Keeps one patient/clinician session decision up to date.

    Re-resolves whenever the patient or clinician changes. Only the most
    recently *started* resolution may publish a result; anything still in
    flight when the inputs change is cancelled and its result discarded.

    ``update`` and ``refetch`` must be called from inside the running event
    loop.
    """

    def __init__(self, resolver: Optional[SessionResolver] = None):
        self.resolver = resolver or get_session_resolver()
        self._state = SessionState()
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._listeners: List[SessionListener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def has_active_session(self) -> bool:
        return self._state.has_active_session

    @property
    def is_resolving(self) -> bool:
        return self._state.is_resolving

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a state-change listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, **changes) -> None:
        self._state = self._state.model_copy(update=changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception as e:
                logger.error(f"Session listener failed: {str(e)}")

    def update(
        self, patient_id: Optional[str], clinician_id: Optional[str]
    ) -> Optional[asyncio.Task]:
        """
        Set the current patient and clinician.

        A no-op when neither changed. Otherwise any held decision is cleared
        immediately, so nothing attributable to the previous clinician or
        patient stays visible, and a new resolution starts.

        Returns:
            The resolution task, or None when no resolution is needed
        """
        if (
            patient_id == self._state.patient_id
            and clinician_id == self._state.clinician_id
        ):
            return self._task

        if clinician_id != self._state.clinician_id:
            logger.debug(f"Clinician changed to {clinician_id}; clearing session state")

        self._set_state(
            patient_id=patient_id,
            clinician_id=clinician_id,
            has_active_session=False,
            resumable_encounter=None,
            is_clinician_match=False,
            last_error=None,
        )
        return self._start()

    def _start(self) -> Optional[asyncio.Task]:
        self._generation += 1
        generation = self._generation
        self._cancel_in_flight()

        patient_id = self._state.patient_id
        clinician_id = self._state.clinician_id
        if not patient_id or not clinician_id:
            self._set_state(
                has_active_session=False,
                resumable_encounter=None,
                is_clinician_match=False,
                is_resolving=False,
                last_error=None,
            )
            return None

        self._set_state(is_resolving=True)
        self._task = asyncio.get_running_loop().create_task(
            self._run(generation, patient_id, clinician_id)
        )
        return self._task

    def _cancel_in_flight(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self, generation: int, patient_id: str, clinician_id: str) -> None:
        try:
            result = await self.resolver.resolve(patient_id, clinician_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Session resolution raised for patient {patient_id}: {str(e)}")
            result = ResolutionResult.error(str(e))

        if generation != self._generation:
            logger.debug(f"Discarding stale session result for patient {patient_id}")
            return

        found = result.is_resumable
        self._set_state(
            has_active_session=found,
            resumable_encounter=result.encounter if found else None,
            # The encounter survived the clinician filter, so it is theirs.
            is_clinician_match=found,
            is_resolving=False,
            last_error=result.reason if result.status == ResolutionStatus.ERROR else None,
        )

    async def refetch(self) -> SessionState:
        """Re-run resolution for the current inputs and wait for it."""
        task = self._start()
        if task is not None:
            await asyncio.wait({task})
        return self._state

    async def wait(self) -> SessionState:
        """Wait until no resolution is in flight."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})
        return self._state

    async def close(self) -> None:
        """Cancel in-flight work and drop listeners."""
        self._generation += 1
        task = self._task
        self._cancel_in_flight()
        if task is not None:
            await asyncio.wait({task})
        self._listeners.clear()
        if self._state.is_resolving:
            self._state = self._state.model_copy(update={"is_resolving": False})
