"""
CORS Configuration

Configures Cross-Origin Resource Sharing settings.
"""

from typing import List, Optional
from dataclasses import dataclass, field, replace
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import os


@dataclass
class CORSConfig:
    """CORS configuration settings."""

    # Allowed origins
    allowed_origins: List[str] = field(default_factory=list)

    # Allow credentials (cookies, authorization headers)
    allow_credentials: bool = True

    # Allowed HTTP methods
    allowed_methods: List[str] = field(default_factory=lambda: [
        "GET", "POST", "OPTIONS"
    ])

    # Allowed headers
    allowed_headers: List[str] = field(default_factory=lambda: [
        "Accept",
        "Accept-Language",
        "Content-Type",
        "Content-Language",
        "Authorization",
        "X-Request-ID",
        "X-User-ID",
    ])

    # Headers to expose to the browser
    expose_headers: List[str] = field(default_factory=lambda: [
        "X-Request-ID",
        "Content-Disposition",
    ])

    # Max age for preflight cache (in seconds)
    max_age: int = 3600

    # Allow all origins (development only!)
    allow_all_origins: bool = False


# Environment-specific configurations
CORS_CONFIGS = {
    "development": CORSConfig(
        allowed_origins=[
            "http://localhost:3000",      # React dev server
            "http://localhost:5173",      # Vite dev server
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ],
        allow_all_origins=True,
        allow_credentials=True,
    ),
    "staging": CORSConfig(
        allowed_origins=[
            "https://staging.shelfwise.example.com",
        ],
        allow_credentials=True,
    ),
    "production": CORSConfig(
        allowed_origins=[
            "https://shelfwise.example.com",
            "https://app.shelfwise.example.com",
        ],
        allow_credentials=True,
        max_age=7200,
    ),
}


def get_cors_config(environment: Optional[str] = None) -> CORSConfig:
    """Get CORS configuration for the environment."""
    if environment is None:
        environment = os.getenv("SHELFWISE_ENV", "development")

    base = CORS_CONFIGS.get(environment, CORS_CONFIGS["development"])
    config = replace(base, allowed_origins=list(base.allowed_origins))

    # Allow additional origins from environment variable
    extra_origins = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if extra_origins:
        config.allowed_origins.extend(
            origin.strip() for origin in extra_origins.split(",") if origin.strip()
        )

    return config


def setup_cors(app: FastAPI, config: Optional[CORSConfig] = None) -> None:
    """
    Configure CORS middleware for the FastAPI application.

    Args:
        app: FastAPI application instance.
        config: CORS configuration. If None, loads from environment.
    """
    if config is None:
        config = get_cors_config()

    if config.allow_all_origins:
        allow_origins = ["*"]
    else:
        allow_origins = config.allowed_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        # Browsers reject credentials with a wildcard origin
        allow_credentials=config.allow_credentials if not config.allow_all_origins else False,
        allow_methods=config.allowed_methods,
        allow_headers=config.allowed_headers,
        expose_headers=config.expose_headers,
        max_age=config.max_age,
    )
