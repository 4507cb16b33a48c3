"""Async FHIR client for the encounter session lookups.

Talks to an OpenMRS-style backend:
- FHIR R4 ``Encounter`` search (consultation encounters and visits)
- REST ``systemsetting`` lookup for scalar configuration values

Unlike display widgets, session resolution needs to know *why* a lookup
failed, so every failure is raised as a ``FHIRRequestError`` subclass and
the callers decide how to degrade.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

import httpx
from pydantic import ValidationError

from encounter_session.config.settings import settings
from encounter_session.models.encounter import (
    EncounterRecord,
    ParticipantRef,
    Period,
    VisitRecord,
)

logger = logging.getLogger(__name__)


class FHIRRequestError(Exception):
    """Base error for any failed FHIR/REST lookup."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class FHIRTimeoutError(FHIRRequestError):
    """The backend did not answer within the per-request timeout."""


class FHIRResponseError(FHIRRequestError):
    """Non-2xx status or a body that is not the expected JSON."""


def _parse_instant(value: Any) -> Optional[datetime]:
    """Parse a FHIR instant/dateTime; naive values are taken as UTC."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _as_text(value: Any) -> Optional[str]:
    """Scalar reference parts as strings; containers and booleans are dropped."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return None


def _last_segment(reference: Optional[str]) -> Optional[str]:
    """'Encounter/abc' -> 'abc'. References without a '/' yield None."""
    if not reference or "/" not in reference:
        return None
    return reference.rstrip("/").split("/")[-1] or None


class FHIRClient:
    """Thin async GET client over httpx."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        rest_base_url: Optional[str] = None,
        auth_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize FHIR client.

        Args:
            base_url: FHIR R4 base URL (overrides settings)
            rest_base_url: REST v1 base URL for system settings (overrides settings)
            auth_token: Bearer token (overrides settings)
            timeout: Per-request timeout in seconds (overrides settings)
            transport: Custom httpx transport, used by tests
        """
        self.base_url = (base_url or settings.fhir_base_url).rstrip("/")
        self.rest_base_url = (rest_base_url or settings.rest_base_url).rstrip("/")
        self.auth_token = auth_token if auth_token is not None else settings.fhir_auth_token
        self.timeout = timeout if timeout is not None else settings.fhir_request_timeout_seconds
        self._transport = transport

        logger.info(f"FHIR Client initialized - Server: {self.base_url}")

    async def _make_request(
        self, url: str, params: Optional[Dict[str, str]] = None
    ) -> Any:
        """
        GET a URL and decode the JSON body.

        Args:
            url: Absolute URL
            params: Query parameters

        Returns:
            Decoded JSON

        Raises:
            FHIRTimeoutError: request timed out
            FHIRResponseError: non-2xx status or invalid JSON
            FHIRRequestError: any other transport failure
        """
        headers = {"Accept": "application/fhir+json, application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"

        logger.debug(f"GET {url} params={params}")
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(url, params=params, headers=headers)
                response.raise_for_status()
                return response.json()
        except httpx.TimeoutException as e:
            raise FHIRTimeoutError(f"Request to {url} timed out") from e
        except httpx.HTTPStatusError as e:
            raise FHIRResponseError(
                f"Request to {url} failed with status {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise FHIRRequestError(f"Request to {url} failed: {e}") from e
        except ValueError as e:
            raise FHIRResponseError(f"Invalid JSON from {url}") from e

    async def _search(self, resource_type: str, params: Dict[str, str]) -> List[Dict]:
        """Run a FHIR search and return the bundle's resources."""
        bundle = await self._make_request(f"{self.base_url}/{resource_type}", params)
        if not isinstance(bundle, dict):
            raise FHIRResponseError(f"Expected a {resource_type} Bundle")

        resources = []
        for entry in bundle.get("entry") or []:
            resource = entry.get("resource") if isinstance(entry, dict) else None
            if isinstance(resource, dict) and resource.get("resourceType", resource_type) == resource_type:
                resources.append(resource)
        return resources

    def _parse_participants(self, resource: Dict) -> List[ParticipantRef]:
        """
        Collect clinician references from Encounter.participant.

        Damage is contained per participant: a bad entry is dropped, the
        encounter and its other participants are kept.
        """
        participants = []
        for participant in resource.get("participant") or []:
            if not isinstance(participant, dict):
                continue
            # FHIR nests the reference under "individual"; some backends don't.
            individual = participant.get("individual")
            if not isinstance(individual, dict):
                individual = participant
            identifier = individual.get("identifier")
            try:
                participants.append(
                    ParticipantRef(
                        reference=_as_text(individual.get("reference")),
                        identifier_value=(
                            _as_text(identifier.get("value"))
                            if isinstance(identifier, dict)
                            else None
                        ),
                        display=_as_text(individual.get("display")),
                    )
                )
            except ValidationError as e:
                logger.warning(
                    f"Dropping malformed participant on Encounter {resource.get('id')}: {e}"
                )
        return participants

    def _parse_period(self, resource: Dict) -> Period:
        period = resource.get("period") or {}
        return Period(
            start=_parse_instant(period.get("start")),
            end=_parse_instant(period.get("end")),
        )

    def _parse_fhir_encounter(self, resource: Dict) -> Optional[EncounterRecord]:
        """Parse a FHIR Encounter resource; returns None if it is unusable."""
        try:
            coding = ((resource.get("type") or [{}])[0].get("coding") or [{}])[0]
            return EncounterRecord(
                id=resource["id"],
                updated_at=_parse_instant((resource.get("meta") or {}).get("lastUpdated")),
                period=self._parse_period(resource),
                participants=self._parse_participants(resource),
                part_of_visit_id=_last_segment((resource.get("partOf") or {}).get("reference")),
                encounter_type=coding.get("code"),
                status=resource.get("status"),
            )
        except (KeyError, TypeError, ValueError, AttributeError, ValidationError) as e:
            logger.warning(f"Skipping malformed Encounter {resource.get('id')}: {e}")
            return None

    def _parse_fhir_visit(self, resource: Dict) -> Optional[VisitRecord]:
        """Parse a visit-tagged FHIR Encounter resource."""
        try:
            return VisitRecord(
                id=resource["id"],
                period=self._parse_period(resource),
                status=resource.get("status"),
            )
        except (KeyError, TypeError, ValueError, AttributeError, ValidationError) as e:
            logger.warning(f"Skipping malformed visit {resource.get('id')}: {e}")
            return None

    # --- Public API methods ---

    async def search_encounters(self, params: Dict[str, str]) -> List[EncounterRecord]:
        """Search Encounter resources; keeps backend order."""
        resources = await self._search("Encounter", params)
        encounters = [self._parse_fhir_encounter(r) for r in resources]
        return [e for e in encounters if e is not None]

    async def search_visits(self, params: Dict[str, str]) -> List[VisitRecord]:
        """Search visit-tagged Encounter resources; keeps backend order."""
        resources = await self._search("Encounter", params)
        visits = [self._parse_fhir_visit(r) for r in resources]
        return [v for v in visits if v is not None]

    async def get_system_setting(self, name: str) -> Optional[str]:
        """Fetch a single scalar system setting value."""
        body = await self._make_request(f"{self.rest_base_url}/systemsetting/{name}")
        if not isinstance(body, dict):
            raise FHIRResponseError(f"Unexpected system setting payload for {name}")
        value = body.get("value")
        return None if value is None else str(value)


# --- Global client instance ---

_fhir_client: Optional[FHIRClient] = None


def get_fhir_client() -> FHIRClient:
    """Get or create global FHIR client instance."""
    global _fhir_client
    if _fhir_client is None:
        _fhir_client = FHIRClient()
    return _fhir_client
