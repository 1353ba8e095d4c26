# src/axiom_client/sas/params.py
"""Signature parameters and the shared access token (SAT) they are signed into.

The token is a MAC over one exact canonical string: the six parameter values
joined by a newline, in the fixed field order of Params. Both the issuer and
the verifier must build that string identically, so neither the field order
nor the short wire keys in WIRE_KEYS may ever change.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import uuid
from dataclasses import dataclass, fields

from axiom_client.errors import SignatureInvalidError

# Field name -> short key used in the URL-encoded signature.
WIRE_KEYS: dict[str, str] = {
    "organization_id": "oi",
    "dataset": "dt",
    "filter": "fl",
    "min_start_time": "mst",
    "max_end_time": "met",
    "expiry_time": "exp",
}

# Human-readable names, in validation order.
_REQUIRED_MESSAGES: dict[str, str] = {
    "organization_id": "organization ID is required",
    "dataset": "dataset is required",
    "filter": "filter is required",
    "min_start_time": "minimum start time is required",
    "max_end_time": "maximum end time is required",
    "expiry_time": "expiry time is required",
}


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def parse_signing_key(key: str) -> bytes:
    """Turn a signing key into raw HMAC key bytes.

    Keys are issued either as UUIDs (the 16 raw bytes are used) or as
    standard base64 strings (the decoded bytes are used).

    Raises:
        SignatureInvalidError: If the key is empty or neither form parses.
    """
    if not key:
        raise SignatureInvalidError("invalid key: key is empty")
    try:
        return uuid.UUID(key).bytes
    except ValueError:
        pass
    try:
        return base64.b64decode(key.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise SignatureInvalidError(f"invalid key: {e}") from e


@dataclass(frozen=True, slots=True)
class Params:
    """Constraints a shared access signature grants.

    All values are opaque strings to the client. Time values are whatever the
    backend accepts (RFC 3339 timestamps or relative APL expressions such as
    ``ago(1h)`` and ``now``); the filter is an APL predicate.
    """

    organization_id: str
    dataset: str
    filter: str
    min_start_time: str
    max_end_time: str
    expiry_time: str

    def validate(self) -> None:
        """Reject parameters with any empty field.

        Raises:
            SignatureInvalidError: Naming the first empty field.
        """
        for name, message in _REQUIRED_MESSAGES.items():
            if not getattr(self, name):
                raise SignatureInvalidError(message)

    def payload(self) -> bytes:
        """Canonical byte string the token is computed over."""
        return "\n".join(getattr(self, f.name) for f in fields(self)).encode("utf-8")

    def sign(self, key: str) -> str:
        """Compute the shared access token for these parameters.

        Returns:
            base64url (no padding) encoded HMAC-SHA-256, 43 characters.

        Raises:
            SignatureInvalidError: If the key cannot be parsed.
        """
        digest = hmac.new(parse_signing_key(key), self.payload(), hashlib.sha256).digest()
        return _b64url_encode(digest)

    def to_query(self) -> dict[str, str]:
        """Map field values to their short wire keys."""
        return {WIRE_KEYS[name]: getattr(self, name) for name in WIRE_KEYS}

    @classmethod
    def from_query(cls, query: dict[str, str]) -> Params:
        """Build Params from a decoded query mapping; missing keys become empty."""
        return cls(**{name: query.get(short, "") for name, short in WIRE_KEYS.items()})


def tokens_equal(a: str, b: str) -> bool:
    """Compare two tokens in constant time, ignoring trailing base64 padding."""
    return hmac.compare_digest(a.rstrip("=").encode("utf-8"), b.rstrip("=").encode("utf-8"))
