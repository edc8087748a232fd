"""
Health check routes.
"""
from fastapi import APIRouter
from app.schemas.common import HealthResponse
from app.middleware.error_handling import error_tracker
from app.services.slot_extraction import SUPPORTED_COUNTRIES
from app.services.wizard_state import MAX_FREE_TURNS
from app.services.dialogue_controller import SLOT_EXTRACTION_STRATEGY
import logging
import os

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint at /health."""
    return HealthResponse(
        success=True,
        data={"status": "healthy"},
        message="OK"
    )


@router.get("/api/v1/health", response_model=HealthResponse)
async def health_check_v1():
    """Health check with the active chat configuration."""
    return HealthResponse(
        success=True,
        data={
            "status": "healthy",
            "slot_extraction_strategy": SLOT_EXTRACTION_STRATEGY,
            "supported_countries": SUPPORTED_COUNTRIES,
            "max_free_turns": MAX_FREE_TURNS,
            "errors": error_tracker.get_stats(),
        },
        message="OK"
    )


@router.get("/", response_model=HealthResponse)
async def root():
    """Root endpoint."""
    return HealthResponse(
        success=True,
        data={"message": f"Welcome to {os.getenv('APP_NAME', 'Edovia AI')} API"},
        message="OK"
    )
