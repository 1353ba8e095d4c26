# src/axiom_client/sas/__init__.py
"""Shared access signatures (SAS) and shared access tokens (SAT).

A SAS grants query access to one dataset of an organization, restricted to a
time window and with an APL filter applied, until an expiry time. It is a URL
query string of the signed parameters plus the SAT, an HMAC-SHA-256 over
those parameters keyed with a signing key distributed out of band.

Usage:
    from axiom_client.sas import Params, create, decode, verify

    options = create(key, Params(
        organization_id="axiom",
        dataset="logs",
        filter='customer == "vercel"',
        min_start_time="ago(1h)",
        max_end_time="now",
        expiry_time="endofday(now())",
    ))
    signature = options.encode()
"""

from axiom_client.sas.params import WIRE_KEYS, Params, parse_signing_key
from axiom_client.sas.signature import (
    MAX_SIGNATURE_LENGTH,
    Options,
    attach,
    create,
    create_signature,
    create_token,
    decode,
    verify,
)

__all__ = [
    "MAX_SIGNATURE_LENGTH",
    "WIRE_KEYS",
    "Options",
    "Params",
    "attach",
    "create",
    "create_signature",
    "create_token",
    "decode",
    "parse_signing_key",
    "verify",
]
