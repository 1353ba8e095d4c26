# src/axiom_client/core/__init__.py
"""Core infrastructure: configuration, credentials and logging."""

from axiom_client.core.config import ClientSettings, load_settings, read_environment
from axiom_client.core.credentials import (
    CLOUD_URL,
    CredentialKind,
    auth_headers,
    classify,
    is_api_token,
    is_personal_token,
    org_header_required,
    validate,
)
from axiom_client.core.logging import configure_logging, get_logger

__all__ = [
    "CLOUD_URL",
    "ClientSettings",
    "CredentialKind",
    "auth_headers",
    "classify",
    "configure_logging",
    "get_logger",
    "is_api_token",
    "is_personal_token",
    "load_settings",
    "org_header_required",
    "read_environment",
    "validate",
]
