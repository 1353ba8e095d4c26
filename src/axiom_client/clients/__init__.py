# src/axiom_client/clients/__init__.py
"""HTTP transport and limit tracking."""

from axiom_client.clients.http import AxiomHTTPClient, raise_for_status
from axiom_client.clients.limits import Limit, LimitScope, LimitTracker, LimitType, parse_limit

__all__ = [
    "AxiomHTTPClient",
    "Limit",
    "LimitScope",
    "LimitTracker",
    "LimitType",
    "parse_limit",
    "raise_for_status",
]
