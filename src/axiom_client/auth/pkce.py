# src/axiom_client/auth/pkce.py
"""Proof Key for Code Exchange by OAuth public clients (RFC 7636).

If the client is capable of using S256 it MUST use S256, which is mandatory
to implement on the server. PLAIN exists for constrained clients that know
out of band that the server supports it.

See also: https://datatracker.ietf.org/doc/html/rfc7636#section-4.2
"""

import base64
import hashlib
import hmac
import secrets
from enum import StrEnum

VERIFIER_ENTROPY_BYTES = 32

# base64url without padding of 32 bytes
VERIFIER_LENGTH = 43


class Method(StrEnum):
    """Code challenge transformation, valued as sent on the wire."""

    PLAIN = "plain"
    S256 = "S256"

    @classmethod
    def from_string(cls, value: str) -> "Method":
        """Look up a method by its wire name.

        Raises:
            ValueError: If value names no known method.
        """
        for method in cls:
            if method.value == value:
                return method
        raise ValueError(f"invalid method {value!r}")


def _encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def new_verifier() -> str:
    """Create a 43 character code verifier from a CSPRNG."""
    return _encode(secrets.token_bytes(VERIFIER_ENTROPY_BYTES))


def challenge(verifier: str, method: Method) -> str:
    """Derive the code challenge for verifier.

    Raises:
        ValueError: If method is not a known Method. There is no default.
    """
    if method == Method.PLAIN:
        return verifier
    if method == Method.S256:
        return _encode(hashlib.sha256(verifier.encode("ascii")).digest())
    raise ValueError(f"unknown code challenge method {method!r}")


def verify(code_challenge: str, verifier: str, method: Method) -> bool:
    """Check a challenge against a verifier in constant time."""
    expected = challenge(verifier, method)
    return hmac.compare_digest(code_challenge.encode("ascii"), expected.encode("ascii"))
