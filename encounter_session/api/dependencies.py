"""FastAPI dependencies for the session endpoints.

Patient and clinician identity arrive as explicit request parameters from
the clinical UI; nothing here derives them from ambient state.
"""

from encounter_session.services.session_resolver import SessionResolver, get_session_resolver


async def get_resolver() -> SessionResolver:
    """Return the shared SessionResolver.

    Overridden in tests via ``app.dependency_overrides``.
    """
    return get_session_resolver()
