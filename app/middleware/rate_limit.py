"""
Rate limiting using slowapi.
Limits chat turns per client so one caller cannot drain the LLM budget.
"""
import os
import logging
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

RATE_LIMIT_ENABLED = os.getenv('RATE_LIMIT_ENABLED', 'true').lower() == 'true'
RATE_LIMIT_DEFAULT = os.getenv('RATE_LIMIT_DEFAULT', '100/minute')
RATE_LIMIT_CHAT = os.getenv('RATE_LIMIT_CHAT', '30/minute')  # Each turn may call an LLM

# Shared storage for multi-worker deployments (optional), e.g. redis://...
RATE_LIMIT_STORAGE_URI = os.getenv('RATE_LIMIT_STORAGE_URI')


def get_api_key_or_ip(request: Request) -> str:
    """
    Get rate limit key from API key header or fallback to IP address.
    This allows per-client rate limiting when API keys are used.
    """
    api_key = request.headers.get('X-API-KEY')
    if api_key:
        # Use first 16 chars of API key as identifier (for privacy)
        return f"apikey:{api_key[:16]}"
    return get_remote_address(request)


def create_limiter() -> Limiter:
    """
    Create a rate limiter instance.
    Uses shared storage when RATE_LIMIT_STORAGE_URI is set, in-memory otherwise.
    """
    if RATE_LIMIT_STORAGE_URI and RATE_LIMIT_ENABLED:
        return Limiter(
            key_func=get_api_key_or_ip,
            default_limits=[RATE_LIMIT_DEFAULT],
            storage_uri=RATE_LIMIT_STORAGE_URI,
            strategy="fixed-window",
            enabled=True
        )

    return Limiter(
        key_func=get_api_key_or_ip,
        default_limits=[RATE_LIMIT_DEFAULT],
        strategy="fixed-window",
        enabled=RATE_LIMIT_ENABLED
    )


# Create global limiter instance
limiter = create_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Custom handler for rate limit exceeded errors.
    Returns a 429 status with a retry hint.
    """
    logger.warning(f"Rate limit exceeded for {get_api_key_or_ip(request)}: {exc.detail}")

    retry_after = getattr(exc, 'retry_after', 60)

    return JSONResponse(
        status_code=429,
        content={
            "code": 429,
            "message": "Rate limit exceeded. Please slow down your requests.",
            "detail": str(exc.detail),
            "retry_after_seconds": retry_after
        },
        headers={"Retry-After": str(retry_after)}
    )


def limit_chat(func):
    """Apply the chat turn rate limit (30/minute by default)."""
    return limiter.limit(RATE_LIMIT_CHAT)(func)
