# src/axiom_client/core/config.py
"""
Client configuration schema and loading.

Uses Pydantic for validation and Dynaconf for reading the environment.
Settings are frozen (immutable) after construction.

Precedence, lowest to highest:
1. Defaults from the Pydantic schema
2. Environment variables (AXIOM_URL, AXIOM_TOKEN, AXIOM_ORG_ID, AXIOM_DATASET,
   AXIOM_EDGE_URL, AXIOM_EDGE_REGION)
3. Explicit keyword arguments to load_settings()
"""

from typing import Any
from urllib.parse import quote, urlsplit, urlunsplit

from pydantic import BaseModel, Field, ValidationError, field_validator

from axiom_client.core.credentials import CLOUD_URL, CredentialKind, is_cloud_url, is_personal_token
from axiom_client.core.credentials import validate as validate_credential
from axiom_client.errors import ConfigInvalidError, OrgIdMissingError

INGEST_PATH = "/v1/ingest/{dataset}"
QUERY_PATH = "/v1/query/_apl"

# Dynaconf key (AXIOM_ prefix stripped) -> settings field.
# Later entries win, so AXIOM_EDGE_REGION overrides the legacy AXIOM_EDGE.
_ENV_FIELDS: tuple[tuple[str, str], ...] = (
    ("URL", "url"),
    ("TOKEN", "token"),
    ("ORG_ID", "organization_id"),
    ("DATASET", "dataset"),
    ("EDGE_URL", "edge_url"),
    ("EDGE", "edge_region"),
    ("EDGE_REGION", "edge_region"),
)


def _check_http_url(value: str, field_name: str) -> str:
    parts = urlsplit(value)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValueError(f"{field_name} must be an absolute http(s) URL, got {value!r}")
    return value


class ClientSettings(BaseModel):
    """Connection settings for one Axiom deployment.

    Example:
        settings = ClientSettings(token="xaat-...", dataset="logs")
        settings.validate_credentials()
    """

    model_config = {"frozen": True, "extra": "forbid"}

    url: str = Field(default=CLOUD_URL, description="Base URL of the deployment")
    token: str | None = Field(default=None, description="API token, personal token or SAS")
    organization_id: str | None = Field(default=None, description="Required for personal tokens on the cloud URL")
    dataset: str | None = Field(default=None, description="Default dataset for ingesters")
    edge_url: str | None = Field(default=None, description="Explicit edge endpoint, overrides edge_region")
    edge_region: str | None = Field(default=None, description="Edge domain such as eu-central-1.aws.edge.axiom.co")
    no_limiting: bool = Field(default=False, description="Skip the client-side rate limit short circuit")
    strict_decoding: bool = Field(default=False, description="Reject unknown fields in responses")
    timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")

    @field_validator("token", "organization_id", "dataset", "edge_region", mode="before")
    @classmethod
    def coerce_to_string(cls, v: Any) -> Any:
        """Environment values may arrive typed (e.g. a numeric org id)."""
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return _check_http_url(v, "url").rstrip("/")

    @field_validator("edge_url")
    @classmethod
    def validate_edge_url(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _check_http_url(v, "edge_url")

    @property
    def is_cloud(self) -> bool:
        return is_cloud_url(self.url)

    @property
    def credential_kind(self) -> CredentialKind:
        return validate_credential(self.token)

    def validate_credentials(self) -> None:
        """Check that the settings can authenticate requests.

        Raises:
            CredentialMissingError: No token configured.
            CredentialInvalidError: Token is not a recognized credential.
            OrgIdMissingError: Personal token on the cloud URL without org id.
        """
        validate_credential(self.token)
        if self.token is not None and is_personal_token(self.token) and self.is_cloud and not self.organization_id:
            raise OrgIdMissingError()

    @property
    def is_edge_configured(self) -> bool:
        return bool(self.edge_url or self.edge_region)

    def edge_ingest_url(self, dataset: str) -> str | None:
        """Ingest endpoint on the edge, or None when no edge is configured."""
        return self._edge_url_for(INGEST_PATH.format(dataset=quote(dataset, safe="")))

    def edge_query_url(self) -> str | None:
        """Query endpoint on the edge, or None when no edge is configured."""
        return self._edge_url_for(QUERY_PATH)

    def _edge_url_for(self, path: str) -> str | None:
        if self.edge_url:
            parts = urlsplit(self.edge_url)
            # A URL with a path is a complete endpoint and is used verbatim.
            if parts.path.rstrip("/"):
                return self.edge_url
            return urlunsplit((parts.scheme, parts.netloc, path, "", ""))
        if self.edge_region:
            return urlunsplit(("https", self.edge_region, path, "", ""))
        return None


def read_environment() -> dict[str, Any]:
    """Read AXIOM_* variables into a dict keyed by settings field name.

    Empty variables are ignored.
    """
    from dynaconf import Dynaconf

    env = Dynaconf(
        envvar_prefix="AXIOM",
        environments=False,  # No [default]/[production] sections
        load_dotenv=False,  # Don't auto-load .env
    )

    raw: dict[str, Any] = {}
    for env_key, field_name in _ENV_FIELDS:
        value = env.get(env_key)
        if value is None or value == "":
            continue
        raw[field_name] = value
    return raw


def load_settings(*, use_env: bool = True, validate: bool = True, **overrides: Any) -> ClientSettings:
    """Build settings from defaults, the environment and explicit overrides.

    Args:
        use_env: Read AXIOM_* environment variables
        validate: Run ClientSettings.validate_credentials() on the result
        **overrides: Explicit field values; None values are ignored

    Returns:
        Frozen ClientSettings

    Raises:
        ConfigInvalidError: If a field fails validation (or a subclass from
            ClientSettings.validate_credentials()).
    """
    raw: dict[str, Any] = read_environment() if use_env else {}
    raw.update({key: value for key, value in overrides.items() if value is not None})

    try:
        settings = ClientSettings(**raw)
    except ValidationError as e:
        raise ConfigInvalidError(f"invalid configuration: {e}") from e

    if validate:
        settings.validate_credentials()
    return settings
