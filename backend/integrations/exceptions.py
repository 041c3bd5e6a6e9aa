"""Typed exception hierarchy for provider errors.

Provides structured exceptions for differentiated error handling
(auth errors vs transient network errors vs data issues). Connection
health decisions are made from these types, never from SDK exceptions.
"""


class ProviderError(Exception):
    """Base exception for all provider-related errors.

    Carries the provider name so callers can identify which provider failed.
    """

    def __init__(self, message: str, provider_name: str = ""):
        self.provider_name = provider_name
        super().__init__(message)


class ProviderAuthError(ProviderError):
    """Credentials missing, expired, or invalid (HTTP 401/403)."""

    pass


class ProviderConnectionError(ProviderError):
    """Network failures: timeouts, DNS resolution, connection refused.

    Retriable by default.
    """

    def __init__(self, message: str, provider_name: str = "", retriable: bool = True):
        self.retriable = retriable
        super().__init__(message, provider_name)


class ProviderAPIError(ProviderError):
    """Non-2xx response from the provider API.

    ``error_code`` carries the provider's machine-readable code when the
    response body had one (e.g. Plaid's ``ITEM_LOGIN_REQUIRED``). When the
    body is missing or unparseable the code is ``HTTP_<status>``.
    """

    def __init__(
        self,
        message: str,
        provider_name: str = "",
        status_code: int | None = None,
        error_code: str | None = None,
        error_type: str | None = None,
    ):
        self.status_code = status_code
        self.error_code = error_code
        self.error_type = error_type
        super().__init__(message, provider_name)

    @property
    def retriable(self) -> bool:
        """429 (rate limit) and 5xx errors are generally retriable."""
        if self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500


class ProviderDataError(ProviderError):
    """Malformed or unparseable response from the provider."""

    pass
