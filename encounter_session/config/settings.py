"""Application configuration and settings."""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service Configuration
    service_name: str = "encounter-session"
    service_port: int = 8010
    environment: str = "development"

    # FHIR / OpenMRS Configuration
    fhir_base_url: str = "http://localhost/openmrs/ws/fhir2/R4"
    rest_base_url: str = "http://localhost/openmrs/ws/rest/v1"
    fhir_auth_token: Optional[str] = None
    fhir_request_timeout_seconds: float = 10.0

    # Encounter session policy
    session_duration_property: str = "bahmni.encountersession.duration"
    default_session_duration_minutes: int = 60
    session_resolution_timeout_seconds: float = 5.0

    # Encounter search
    consultation_encounter_type_uuid: str = "d34fe3ab-5e07-11ef-8f7c-0242ac120002"
    encounter_tag: str = "encounter"
    visit_tag: str = "visit"
    filter_participant_server_side: bool = True

    # CORS (comma-separated origins)
    cors_allow_origins: str = "http://localhost:3000"

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
