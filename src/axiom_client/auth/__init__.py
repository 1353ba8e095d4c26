# src/axiom_client/auth/__init__.py
"""OAuth2 login with PKCE."""

from axiom_client.auth.login import CLIENT_ID, Endpoints, login
from axiom_client.auth.pkce import Method, challenge, new_verifier, verify

__all__ = [
    "CLIENT_ID",
    "Endpoints",
    "Method",
    "challenge",
    "login",
    "new_verifier",
    "verify",
]
