"""
Exception hierarchy shared by the dispatch, credential and transport layers.
"""


class RelayError(Exception):
    """Base class for bot errors."""

    message: str = "Relay error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


class ProviderError(RelayError):
    """A completion provider call did not produce a usable answer."""

    message = "Provider call failed"


class NoCredentialsError(ProviderError):
    """The credential pool is empty."""

    message = "No provider credentials configured. Add PROVIDER_API_KEYS or use /addtoken."


class EmptyPayloadError(ProviderError):
    """The provider answered with nothing."""

    message = "Empty response"


class ProviderPayloadError(ProviderError):
    """The provider answered with a structured error object."""

    message = "Provider returned an error payload"


class SoftFailureError(ProviderError):
    """The provider answered successfully but the text is a quota or rate-limit notice."""

    message = "Quota exceeded"


class AllCredentialsFailedError(ProviderError):
    """Every credential in the pool failed for one logical call."""

    def __init__(self, last_error: BaseException | None = None, attempts: int = 0) -> None:
        self.last_error = last_error
        self.attempts = attempts
        detail = str(last_error) if last_error else "unknown error"
        super().__init__(f"All credentials failed. Last error: {detail}")


class StaticCredentialError(RelayError):
    """Static (environment) credentials cannot be removed at runtime."""

    message = "Static credentials come from configuration and cannot be removed."


class TransportError(RelayError):
    """The chat transport rejected or failed a call."""

    message = "Transport call failed"


class MarkupRejectedError(TransportError):
    """The chat transport could not parse the markup in a message."""

    message = "Transport rejected message markup"
