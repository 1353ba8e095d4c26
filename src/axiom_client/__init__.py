"""
Axiom client: ingest events and query datasets on Axiom.

Covers credential handling (API tokens, personal tokens, shared access
signatures), OAuth2 login with PKCE, batched background ingestion and APL
query construction.
"""

__version__ = "0.1.0"

from axiom_client.apl import Query
from axiom_client.client import Client
from axiom_client.core import ClientSettings, CredentialKind, configure_logging, load_settings
from axiom_client.errors import AxiomError
from axiom_client.ingest import BatchingIngester, IngestOptions, IngestStatus, IngestSummary

__all__ = [
    "AxiomError",
    "BatchingIngester",
    "Client",
    "ClientSettings",
    "CredentialKind",
    "IngestOptions",
    "IngestStatus",
    "IngestSummary",
    "Query",
    "__version__",
    "configure_logging",
    "load_settings",
]
