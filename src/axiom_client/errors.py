# src/axiom_client/errors.py
"""Exception hierarchy for the Axiom client.

Every error raised by this package derives from AxiomError so callers can
catch the whole family at once. Configuration and signature errors are raised
synchronously from constructors and builders; transport errors from the
background ingester are logged, not raised (see ingest/ingester.py).

Hierarchy:
    AxiomError
    ├── ConfigInvalidError (also ValueError)
    │   ├── CredentialMissingError
    │   ├── CredentialInvalidError
    │   └── OrgIdMissingError
    ├── SignatureInvalidError (also ValueError)
    │   └── SignatureTooLongError
    ├── OAuthError
    │   ├── OAuthAuthorizationDeniedError
    │   ├── OAuthExchangeFailedError
    │   ├── OAuthCallbackError
    │   │   ├── OAuthMethodNotAllowedError
    │   │   ├── OAuthStateMismatchError
    │   │   └── OAuthMissingCodeError
    │   └── LoginCancelledError
    ├── TransportFailedError
    ├── HTTPStatusError
    │   ├── UnauthorizedError (401)
    │   ├── ForbiddenError (403)
    │   ├── NotFoundError (404)
    │   ├── ConflictError (409)
    │   ├── RateLimitedError (429)
    │   └── ServerError (5xx)
    ├── PayloadEncodeError
    ├── ResponseDecodeError
    ├── IngesterClosedError
    ├── EnqueueCancelledError
    └── DrainTimeoutError
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from axiom_client.clients.limits import Limit


class AxiomError(Exception):
    """Base class for all errors raised by axiom_client."""


# =============================================================================
# Configuration and credentials
# =============================================================================


class ConfigInvalidError(AxiomError, ValueError):
    """Raised when client configuration is incomplete or malformed."""


class CredentialMissingError(ConfigInvalidError):
    """Raised when no credential was supplied by option or environment."""

    def __init__(self, message: str = "missing token") -> None:
        super().__init__(message)


class CredentialInvalidError(ConfigInvalidError):
    """Raised when a credential is neither an API token, a personal token nor a SAS."""

    def __init__(self, message: str = "invalid token") -> None:
        super().__init__(message)


class OrgIdMissingError(ConfigInvalidError):
    """Raised when a personal token targets the cloud URL without an org id."""

    def __init__(self, message: str = "missing organization id") -> None:
        super().__init__(message)


# =============================================================================
# Shared access signatures
# =============================================================================


class SignatureInvalidError(AxiomError, ValueError):
    """Raised when a shared access signature fails to parse, validate or verify."""


class SignatureTooLongError(SignatureInvalidError):
    """Raised when an encoded signature exceeds the maximum length.

    Attributes:
        length: Encoded length in bytes
        max_length: Maximum accepted length in bytes
    """

    def __init__(self, length: int, max_length: int) -> None:
        self.length = length
        self.max_length = max_length
        super().__init__(f"signature too long: {length} bytes exceeds maximum of {max_length}")


# =============================================================================
# OAuth login
# =============================================================================


class OAuthError(AxiomError):
    """Base class for errors during the OAuth2 authorization code flow."""


class OAuthAuthorizationDeniedError(OAuthError):
    """The authorization server redirected back with an ``error`` parameter.

    Attributes:
        error: OAuth2 error code (e.g. ``access_denied``)
        description: Human-readable ``error_description``, may be empty
    """

    def __init__(self, error: str, description: str = "") -> None:
        self.error = error
        self.description = description
        message = f"authorization failed: {error}"
        if description:
            message += f": {description}"
        super().__init__(message)


class OAuthExchangeFailedError(OAuthError):
    """Exchanging the authorization code for an access token failed.

    Attributes:
        status_code: HTTP status of the token endpoint, None on network errors
        description: Error detail from the token endpoint or transport
    """

    def __init__(self, description: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        self.description = description
        if status_code is not None:
            super().__init__(f"token exchange failed with status {status_code}: {description}")
        else:
            super().__init__(f"token exchange failed: {description}")


class OAuthCallbackError(OAuthError):
    """The callback request was malformed.

    Attributes:
        status_code: HTTP status returned to the user agent
    """

    status_code: int = 400


class OAuthMethodNotAllowedError(OAuthCallbackError):
    """The callback was requested with a method other than GET."""

    status_code = 405

    def __init__(self, method: str) -> None:
        self.method = method
        super().__init__(f"callback method {method} not allowed")


class OAuthStateMismatchError(OAuthCallbackError):
    """The ``state`` parameter of the callback does not match the one sent."""

    def __init__(self) -> None:
        super().__init__("callback state does not match")


class OAuthMissingCodeError(OAuthCallbackError):
    """The callback carries neither an ``error`` nor a ``code``."""

    def __init__(self) -> None:
        super().__init__("callback is missing the authorization code")


class LoginCancelledError(OAuthError):
    """The login was cancelled by the caller or timed out waiting for the callback."""


# =============================================================================
# Transport
# =============================================================================


class TransportFailedError(AxiomError):
    """The request never produced an HTTP response (DNS, connect, TLS, timeout)."""


class HTTPStatusError(AxiomError):
    """The backend answered with a non-2xx status.

    Attributes:
        status_code: HTTP status code
        message: Message from the error envelope, or the status text
        trace_id: Backend trace id when the envelope carries one
    """

    def __init__(self, status_code: int, message: str, trace_id: str | None = None) -> None:
        self.status_code = status_code
        self.message = message
        self.trace_id = trace_id
        text = f"API error {status_code}: {message}"
        if trace_id:
            text += f" (trace id {trace_id})"
        super().__init__(text)


class UnauthorizedError(HTTPStatusError):
    """401: invalid authentication credentials."""


class ForbiddenError(HTTPStatusError):
    """403: insufficient permissions."""


class NotFoundError(HTTPStatusError):
    """404: entity not found."""


class ConflictError(HTTPStatusError):
    """409: entity exists."""


class RateLimitedError(HTTPStatusError):
    """429: a rate, query or ingest limit was exceeded.

    Raised both for real 429 responses and locally when a cached limit says
    no budget remains until its reset time.

    Attributes:
        retry_after: Seconds until the limit resets, None if unknown
        limit: Parsed limit headers, None if the response carried none
    """

    def __init__(
        self,
        message: str,
        *,
        retry_after: float | None = None,
        limit: Limit | None = None,
        trace_id: str | None = None,
    ) -> None:
        self.retry_after = retry_after
        self.limit = limit
        super().__init__(429, message, trace_id)


class ServerError(HTTPStatusError):
    """5xx: the backend failed to process the request."""


# =============================================================================
# Payloads
# =============================================================================


class PayloadEncodeError(AxiomError, TypeError):
    """An event or request body cannot be serialized to JSON."""


class ResponseDecodeError(AxiomError):
    """A response body could not be decoded into the expected shape."""


# =============================================================================
# Ingester lifecycle
# =============================================================================


class IngesterClosedError(AxiomError):
    """An event was offered to an ingester that is closing or closed."""

    def __init__(self, message: str = "ingester closed") -> None:
        super().__init__(message)


class EnqueueCancelledError(AxiomError):
    """A producer waiting for queue room gave up because its cancel event was set."""

    def __init__(self, message: str = "enqueue cancelled") -> None:
        super().__init__(message)


class DrainTimeoutError(AxiomError):
    """The final drain did not complete within its deadline.

    Attributes:
        dropped: Number of events that could not be dispatched
    """

    def __init__(self, dropped: int, timeout: float) -> None:
        self.dropped = dropped
        self.timeout = timeout
        super().__init__(f"drain did not complete within {timeout}s, {dropped} events dropped")


STATUS_ERRORS: dict[int, type[HTTPStatusError]] = {
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
}
