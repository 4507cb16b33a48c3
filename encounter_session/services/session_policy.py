"""Encounter session duration policy."""

from typing import Optional
import logging

from encounter_session.config.settings import settings
from encounter_session.tools.fhir_client import FHIRClient, FHIRRequestError, get_fhir_client

logger = logging.getLogger(__name__)

# One year; longer windows are treated as misconfiguration.
MAX_SESSION_DURATION_MINUTES = 365 * 24 * 60


class SessionPolicyProvider:
    """Supplies the session window length from a remote system setting.

    One canonical default is used for every failure path: the setting is
    missing, unparseable, non-positive, implausibly long, or could not be
    fetched at all.
    """

    def __init__(
        self,
        client: Optional[FHIRClient] = None,
        property_name: Optional[str] = None,
        default_minutes: Optional[int] = None,
    ):
        self.client = client or get_fhir_client()
        self.property_name = property_name or settings.session_duration_property
        self.default_minutes = (
            default_minutes
            if default_minutes is not None
            else settings.default_session_duration_minutes
        )

    def parse_duration(self, raw: Optional[str]) -> int:
        """Parse a positive whole number of minutes, else the default."""
        if raw is None:
            return self.default_minutes
        try:
            duration = float(str(raw).strip())
        except ValueError:
            logger.warning(
                f"Invalid session duration '{raw}' for {self.property_name}, "
                f"using default {self.default_minutes} minutes"
            )
            return self.default_minutes

        if duration != duration or duration <= 0 or not duration.is_integer():
            logger.warning(
                f"Session duration must be a positive integer, got '{raw}'; "
                f"using default {self.default_minutes} minutes"
            )
            return self.default_minutes
        if duration > MAX_SESSION_DURATION_MINUTES:
            logger.warning(
                f"Session duration '{raw}' exceeds {MAX_SESSION_DURATION_MINUTES} minutes; "
                f"using default {self.default_minutes} minutes"
            )
            return self.default_minutes
        return int(duration)

    async def get_session_duration_minutes(self) -> int:
        """
        Get the session duration in minutes.

        Never raises: any fetch failure falls back to the default.

        Returns:
            Session duration in minutes
        """
        try:
            raw = await self.client.get_system_setting(self.property_name)
        except FHIRRequestError as e:
            logger.warning(
                f"Could not fetch {self.property_name} ({e}); "
                f"using default {self.default_minutes} minutes"
            )
            return self.default_minutes
        except Exception as e:
            logger.error(f"Unexpected error reading {self.property_name}: {str(e)}")
            return self.default_minutes
        return self.parse_duration(raw)
