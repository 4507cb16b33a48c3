from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from encounter_session.config.settings import settings
from encounter_session.api.consultation import router as consultation_router
import logging

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting Encounter Session Service...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"FHIR server: {settings.fhir_base_url}")
    logger.info(
        f"Session defaults: {settings.default_session_duration_minutes} min window, "
        f"{settings.session_resolution_timeout_seconds}s deadline"
    )

    yield

    logger.info("Shutting down Encounter Session Service...")


# Initialize FastAPI app
app = FastAPI(
    title="Encounter Session Service",
    description="Decides whether a clinician should resume an open consultation encounter or start a new one.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_allow_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

# Register routers
app.include_router(consultation_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": settings.service_name,
        "version": "1.0.0",
        "dependencies": {
            "fhir_server": settings.fhir_base_url,
            "session_duration_property": settings.session_duration_property,
        },
    }


@app.get("/")
async def root():
    return {
        "message": "Encounter Session Service",
        "description": "Edit vs. new consultation decision for the clinical front-end",
        "version": "1.0.0",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.service_port,
        reload=settings.environment == "development",
    )
