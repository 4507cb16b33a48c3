"""Tools package for backend lookups."""

from encounter_session.tools.fhir_client import (
    FHIRClient,
    FHIRRequestError,
    FHIRResponseError,
    FHIRTimeoutError,
    get_fhir_client,
)

__all__ = [
    "FHIRClient",
    "FHIRRequestError",
    "FHIRResponseError",
    "FHIRTimeoutError",
    "get_fhir_client",
]
