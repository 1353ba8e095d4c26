# src/axiom_client/core/credentials.py
"""Bearer credential classification and header selection.

Three credential kinds authenticate requests:

- API tokens (``xaat-`` prefix) carry their organization.
- Personal tokens (``xapt-`` prefix) need the organization id passed in the
  ``X-Axiom-Org-Id`` header when talking to the cloud endpoint.
- Shared access signatures describe their organization themselves and are
  recognized by parsing (see axiom_client.sas).

Classification is local; no server call is made.
"""

from enum import StrEnum

from axiom_client.errors import CredentialInvalidError, CredentialMissingError, SignatureInvalidError
from axiom_client.sas.signature import decode

API_TOKEN_PREFIX = "xaat-"
PERSONAL_TOKEN_PREFIX = "xapt-"

# Default deployment; personal tokens need an org id only here.
CLOUD_URL = "https://api.axiom.co"

HEADER_AUTHORIZATION = "Authorization"
HEADER_ORGANIZATION_ID = "X-Axiom-Org-Id"


class CredentialKind(StrEnum):
    """Kind of bearer credential."""

    API = "api"
    PERSONAL = "personal"
    SAS = "sas"
    INVALID = "invalid"


def is_api_token(token: str) -> bool:
    return token.startswith(API_TOKEN_PREFIX)


def is_personal_token(token: str) -> bool:
    return token.startswith(PERSONAL_TOKEN_PREFIX)


def classify(token: str) -> CredentialKind:
    """Classify a credential by prefix, falling back to parsing it as a SAS."""
    if not token:
        return CredentialKind.INVALID
    if is_api_token(token):
        return CredentialKind.API
    if is_personal_token(token):
        return CredentialKind.PERSONAL

    try:
        decode(token)
    except SignatureInvalidError:
        return CredentialKind.INVALID
    return CredentialKind.SAS


def validate(token: str | None) -> CredentialKind:
    """Validate a credential and return its kind.

    Raises:
        CredentialMissingError: If token is empty or None.
        CredentialInvalidError: If token is not a recognized credential.
    """
    if not token:
        raise CredentialMissingError()
    kind = classify(token)
    if kind is CredentialKind.INVALID:
        raise CredentialInvalidError()
    return kind


def is_cloud_url(base_url: str) -> bool:
    return base_url.rstrip("/") == CLOUD_URL


def org_header_required(token: str, base_url: str) -> bool:
    """Whether requests with token against base_url need ``X-Axiom-Org-Id``."""
    return is_personal_token(token) and is_cloud_url(base_url)


def auth_headers(token: str, *, base_url: str, organization_id: str | None = None) -> dict[str, str]:
    """Headers that authenticate a request.

    ``Authorization: Bearer <token>`` is always set. ``X-Axiom-Org-Id`` is set
    only for a personal token on the cloud endpoint.
    """
    headers = {HEADER_AUTHORIZATION: f"Bearer {token}"}
    if organization_id and org_header_required(token, base_url):
        headers[HEADER_ORGANIZATION_ID] = organization_id
    return headers
