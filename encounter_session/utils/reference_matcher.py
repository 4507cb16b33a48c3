"""Clinician identity matching across participant reference encodings."""

from typing import Iterable, List, Optional, Union

from encounter_session.models.encounter import ParticipantRef

PRACTITIONER_PREFIX = "Practitioner/"


def reference_matches(
    participant: Optional[Union[ParticipantRef, str]], clinician_id: Optional[str]
) -> bool:
    """
    Decide whether a participant reference denotes the given clinician.

    Any one of these is a match:
        - reference == clinician_id
        - reference == "Practitioner/" + clinician_id
        - reference ends with "/" + clinician_id
        - last "/"-segment of reference == clinician_id
        - identifier.value == clinician_id

    Args:
        participant: Participant reference (or a bare reference string)
        clinician_id: Current clinician identifier

    Returns:
        True on any match. Missing data is a non-match, never an error.
    """
    if participant is None or not clinician_id:
        return False

    if isinstance(participant, str):
        participant = ParticipantRef(reference=participant)

    if participant.identifier_value and participant.identifier_value == clinician_id:
        return True

    reference = participant.reference
    if not reference:
        return False

    return (
        reference == clinician_id
        or reference == PRACTITIONER_PREFIX + clinician_id
        or reference.endswith("/" + clinician_id)
        or reference.split("/")[-1] == clinician_id
    )


def any_participant_matches(
    participants: Iterable[ParticipantRef], clinician_id: Optional[str]
) -> bool:
    """True if at least one participant is the clinician."""
    return any(reference_matches(p, clinician_id) for p in participants)


def filter_by_clinician(encounters: List, clinician_id: str) -> List:
    """Keep encounters with a participant matching the clinician, in order."""
    return [
        encounter
        for encounter in encounters
        if any_participant_matches(encounter.participants, clinician_id)
    ]
