# src/axiom_client/sas/signature.py
"""Create, encode, decode and verify shared access signatures.

A signature is an ``application/x-www-form-urlencoded`` string made of the
six parameters under their short keys plus the token under ``tk``. Keys are
emitted in sorted order, so the encoding of a given Options is stable.

Usage:
    from axiom_client.sas import Params, create_signature, verify

    signature = create_signature(key, Params(...))
    options = verify(key, signature)  # raises SignatureInvalidError
"""

from __future__ import annotations

from collections.abc import MutableMapping
from dataclasses import dataclass
from urllib.parse import parse_qs, urlencode

import httpx

from axiom_client.errors import SignatureInvalidError, SignatureTooLongError
from axiom_client.sas.params import Params, tokens_equal

MAX_SIGNATURE_LENGTH = 1023

TOKEN_KEY = "tk"


@dataclass(frozen=True, slots=True)
class Options:
    """Decoded form of a signature: the signed parameters and their token."""

    params: Params
    token: str

    def validate(self) -> None:
        """Raises SignatureInvalidError if a parameter or the token is empty."""
        self.params.validate()
        if not self.token:
            raise SignatureInvalidError("token is required")

    def encode(self) -> str:
        """Encode to the URL query string form.

        Raises:
            SignatureTooLongError: If the result exceeds MAX_SIGNATURE_LENGTH bytes.
        """
        query = self.params.to_query()
        query[TOKEN_KEY] = self.token
        encoded = urlencode(sorted(query.items()))
        length = len(encoded.encode("utf-8"))
        if length > MAX_SIGNATURE_LENGTH:
            raise SignatureTooLongError(length, MAX_SIGNATURE_LENGTH)
        return encoded

    def attach(self, request: httpx.Request | MutableMapping[str, str]) -> None:
        """Authorize a query request with this signature."""
        attach(request, self.encode())


def create_token(key: str, params: Params) -> str:
    """Compute the shared access token (SAT) for params without validating them."""
    return params.sign(key)


def create(key: str, params: Params) -> Options:
    """Sign params with key.

    Raises:
        SignatureInvalidError: If params are incomplete or the key is invalid.
        SignatureTooLongError: If the encoded signature would be too long.
    """
    try:
        params.validate()
    except SignatureInvalidError as e:
        raise SignatureInvalidError(f"invalid parameters: {e}") from e

    options = Options(params=params, token=params.sign(key))
    # Encode once so an oversized signature fails at creation, not at use.
    options.encode()
    return options


def create_signature(key: str, params: Params) -> str:
    """Sign params with key and return the encoded signature."""
    return create(key, params).encode()


def decode(signature: str) -> Options:
    """Parse an encoded signature.

    The token is not checked against any key; use verify() for that.

    Raises:
        SignatureInvalidError: If the string is not a well formed signature.
    """
    if not signature:
        raise SignatureInvalidError("signature is empty")
    if len(signature.encode("utf-8")) > MAX_SIGNATURE_LENGTH:
        raise SignatureTooLongError(len(signature.encode("utf-8")), MAX_SIGNATURE_LENGTH)

    try:
        parsed = parse_qs(signature, keep_blank_values=True, strict_parsing=True)
    except ValueError as e:
        raise SignatureInvalidError(f"malformed signature: {e}") from e

    query = {key: values[0] for key, values in parsed.items()}
    options = Options(params=Params.from_query(query), token=query.get(TOKEN_KEY, ""))
    options.validate()
    return options


def verify(key: str, signature: str) -> Options:
    """Decode signature and check its token against key.

    Returns:
        The decoded Options when the token matches.

    Raises:
        SignatureInvalidError: If decoding fails or the token does not match.
    """
    options = decode(signature)
    expected = options.params.sign(key)
    if not tokens_equal(expected, options.token):
        raise SignatureInvalidError("signature does not match")
    return options


def attach(request: httpx.Request | MutableMapping[str, str], signature: str) -> None:
    """Set signature as the bearer credential of a request.

    The backend tells a SAS apart from tokens by its format, so no extra
    header is needed.

    Args:
        request: An httpx.Request or a mutable header mapping
        signature: Encoded signature
    """
    headers = request.headers if isinstance(request, httpx.Request) else request
    headers["Authorization"] = f"Bearer {signature}"
