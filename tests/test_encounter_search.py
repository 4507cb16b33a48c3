"""Tests for encounter search query composition."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from encounter_session.services.encounter_search import EncounterSearch, format_since
from encounter_session.tools.fhir_client import FHIRRequestError
from tests.conftest import NOW, PATIENT_ID, make_encounter


def _search(result=None, error=None) -> EncounterSearch:
    client = MagicMock()
    if error is not None:
        client.search_encounters = AsyncMock(side_effect=error)
    else:
        client.search_encounters = AsyncMock(return_value=result or [])
    return EncounterSearch(client=client)


def test_format_since():
    since = datetime(2025, 7, 22, 9, 0, 0, 123456, tzinfo=timezone.utc)
    assert format_since(since) == "ge2025-07-22T09:00:00.123Z"


def test_format_since_converts_to_utc():
    since = datetime(2025, 7, 22, 14, 30, tzinfo=timezone(timedelta(hours=5, minutes=30)))
    assert format_since(since) == "ge2025-07-22T09:00:00.000Z"


def test_build_params_omits_empty_values():
    search = _search()
    params = search.build_params(PATIENT_ID, since=None, tag="encounter", participant="", encounter_type=None)
    assert params == {"patient": PATIENT_ID, "_tag": "encounter"}


async def test_search_sends_full_query():
    encounters = [make_encounter("e1")]
    search = _search(encounters)
    since = NOW - timedelta(minutes=60)

    result = await search.search(
        PATIENT_ID, since=since, tag="encounter", participant="c1", encounter_type="consult"
    )

    assert result == encounters
    search.client.search_encounters.assert_awaited_once_with(
        {
            "patient": PATIENT_ID,
            "_tag": "encounter",
            "_lastUpdated": "ge2025-07-22T09:00:00.000Z",
            "participant": "c1",
            "type": "consult",
        }
    )


async def test_no_matches_is_empty_list():
    assert await _search([]).search(PATIENT_ID, since=NOW) == []


async def test_errors_propagate():
    search = _search(error=FHIRRequestError("down"))
    with pytest.raises(FHIRRequestError):
        await search.search(PATIENT_ID, since=NOW)
    search.client.search_encounters.assert_awaited_once()
