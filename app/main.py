"""
FastAPI application main module.
"""
import os
import json
import logging

from dotenv import load_dotenv

# Services read their configuration at import time, so .env goes first
dotenv_override = os.getenv("DOTENV_OVERRIDE", "false").lower() == "true"
load_dotenv(override=dotenv_override)

# Initialize Sentry BEFORE importing the application (for best error capture)
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

sentry_dsn = os.getenv('SENTRY_DSN')
if sentry_dsn:
    sentry_sdk.init(
        dsn=sentry_dsn,
        integrations=[
            FastApiIntegration(),
            StarletteIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests traced
        environment=os.getenv('ENVIRONMENT', 'development'),
        send_default_pii=False,
    )
    logging.info("Sentry initialized for error monitoring")

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from app.routers.chat import router as chat_router
from app.routers.health import router as health_router
from app.middleware.auth import APIKeyMiddleware, DEFAULT_EXCLUDE_PATHS
from app.middleware.error_handling import setup_error_handling
from app.middleware.rate_limit import limiter, rate_limit_exceeded_handler
from app.utils.logging_config import setup_logging, RequestLoggingMiddleware

setup_logging()

# Get configuration from environment variables
app_name = os.getenv('APP_NAME', 'Edovia AI')
app_version = os.getenv('APP_VERSION', '1.0.0')
environment = os.getenv('ENVIRONMENT', 'development')

# Parse CORS origins from JSON string
cors_origins_str = os.getenv('CORS_ORIGINS')
try:
    cors_origins = json.loads(cors_origins_str) if cors_origins_str else ["*"]
except json.JSONDecodeError:
    raise ValueError("CORS_ORIGINS must be a valid JSON array")

if not isinstance(cors_origins, list) or not cors_origins:
    raise ValueError("CORS_ORIGINS must be a valid JSON array")

# Log non-sensitive configuration (NEVER log secrets/credentials)
logger = logging.getLogger(__name__)
logger.info(f"Starting {app_name} v{app_version} in {environment} environment")
logger.info(f"CORS origins: {len(cors_origins)} configured")

app = FastAPI(
    title=app_name,
    description="AI comparator of study-abroad programs",
    version=app_version,
    swagger_ui_parameters={
        "persistAuthorization": True
    }
)

# Configure rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app_name,
        version=app_version,
        description="AI comparator of study-abroad programs",
        routes=app.routes,
    )

    # Add API key security scheme
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "ApiKeyAuth": {
            "type": "apiKey",
            "in": "header",
            "name": "X-API-KEY"
        }
    }

    # Apply security to every path that requires the key
    for path in openapi_schema["paths"]:
        if path not in DEFAULT_EXCLUDE_PATHS:
            for method in openapi_schema["paths"][path]:
                openapi_schema["paths"][path][method]["security"] = [{"ApiKeyAuth": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

setup_error_handling(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials="*" not in cors_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-API-KEY", "X-Request-ID", "Accept"],
)

# Add rate limiting middleware
app.add_middleware(SlowAPIMiddleware)

# Add API key authentication middleware
# Excludes health checks, the root, docs, and OpenAPI endpoints
app.add_middleware(APIKeyMiddleware, exclude_paths=DEFAULT_EXCLUDE_PATHS)

# Outermost: every request gets a correlation id
app.add_middleware(RequestLoggingMiddleware)

app.include_router(health_router)
app.include_router(chat_router, prefix="/api/v1")
