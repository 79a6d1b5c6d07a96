"""Exception Hierarchy for the multichat orchestration layer.

Every failure that leaves a provider adapter, the registry or the
orchestrator is one of the classes below, so callers can handle errors
uniformly regardless of which vendor produced them.

Exception Hierarchy:
    MultichatError (base)
    ├── ConfigurationError (unrecoverable - fix config)
    ├── AttachmentTooLargeError (rejected before reaching an adapter)
    ├── AgentDataError (agent snapshot import)
    ├── InvalidHistoryError (nothing to send)
    ├── UnknownProviderError (registry misuse)
    ├── NoActiveServiceError (orchestrator misuse)
    └── ProviderError (raised by adapters)
        ├── MissingCredentialError
        ├── InvalidCredentialError
        ├── RateLimitedError
        ├── TransientUnavailableError
        │   └── ModelLoadingError
        ├── InvalidResponseError
        ├── NetworkError
        └── ProviderAPIError
"""
from datetime import datetime, timezone
from typing import Any, Optional

# ============================================
# Base Exception
# ============================================


class MultichatError(Exception):
    """Base exception for all multichat errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "RATE_LIMITED")
        details: Additional context as a dictionary
        timestamp: When the error occurred
        cause: The original exception that caused this error
        recoverable: Whether a caller-level retry might succeed
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__.upper()
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        self.cause = cause
        self.recoverable = recoverable

        if cause:
            self.__cause__ = cause

    def __str__(self) -> str:
        parts = [self.message]
        if self.code:
            parts.insert(0, f"[{self.code}]")
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================
# Configuration & Input Errors
# ============================================


class ConfigurationError(MultichatError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list[str]] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )


class AttachmentTooLargeError(MultichatError):
    """Raised when an image attachment exceeds the configured size limit."""

    def __init__(self, name: str, size: int, max_bytes: int, **kwargs):
        super().__init__(
            f"Attachment '{name}' is {size} bytes, limit is {max_bytes}",
            code="ATTACHMENT_TOO_LARGE",
            details={"name": name, "size": size, "max_bytes": max_bytes},
            recoverable=False,
            **kwargs,
        )
        self.size = size
        self.max_bytes = max_bytes


class AgentDataError(MultichatError):
    """Raised when an imported agent snapshot does not validate."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            code="INVALID_AGENT_DATA",
            recoverable=False,
            **kwargs,
        )


class InvalidHistoryError(MultichatError):
    """Raised when a history holds no user or assistant turn to send."""

    def __init__(
        self,
        message: str = "history must contain at least one user or assistant message",
        **kwargs,
    ):
        super().__init__(
            message,
            code="INVALID_HISTORY",
            recoverable=False,
            **kwargs,
        )


# ============================================
# Registry / Orchestrator Errors
# ============================================


class UnknownProviderError(MultichatError):
    """Raised when a provider id has no registered factory."""

    def __init__(self, provider_id: str, **kwargs):
        super().__init__(
            f"AI provider '{provider_id}' is not registered",
            code="UNKNOWN_PROVIDER",
            details={"provider_id": provider_id},
            recoverable=False,
            **kwargs,
        )
        self.provider_id = provider_id


class NoActiveServiceError(MultichatError):
    """Raised when no configured adapter can serve a request."""

    def __init__(self, message: str = "No AI service is configured", **kwargs):
        super().__init__(
            message,
            code="NO_ACTIVE_SERVICE",
            recoverable=False,
            **kwargs,
        )


# ============================================
# Provider Errors
# ============================================


class ProviderError(MultichatError):
    """Base class for failures raised by provider adapters.

    Attributes:
        provider: Provider id that raised the error
        status_code: HTTP status code, when the vendor answered
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if provider:
            details["provider"] = provider
        if status_code is not None:
            details["status_code"] = status_code
        kwargs.setdefault("code", "PROVIDER_ERROR")
        super().__init__(message, details=details, **kwargs)
        self.provider = provider
        self.status_code = status_code


class MissingCredentialError(ProviderError):
    """Raised before any network call when an adapter has no API key.

    ``provider`` is the provider id; ``display_name`` only shapes the message.
    """

    def __init__(self, provider: str, display_name: Optional[str] = None, **kwargs):
        super().__init__(
            f"{display_name or provider} API key is not configured",
            provider=provider,
            code="MISSING_CREDENTIAL",
            recoverable=False,
            **kwargs,
        )


class InvalidCredentialError(ProviderError):
    """Raised when the vendor rejects the configured API key."""

    def __init__(self, message: str = "Invalid API key", **kwargs):
        super().__init__(
            message,
            code="INVALID_CREDENTIAL",
            recoverable=False,
            **kwargs,
        )


class RateLimitedError(ProviderError):
    """Raised when the vendor signals quota or rate exhaustion.

    Attributes:
        retry_after: Seconds to wait before retrying (from Retry-After header)
    """

    def __init__(
        self,
        message: str = "API usage limit reached",
        retry_after: Optional[float] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if retry_after is not None:
            details["retry_after_seconds"] = retry_after
        super().__init__(
            message,
            code="RATE_LIMITED",
            details=details,
            recoverable=True,
            **kwargs,
        )
        self.retry_after = retry_after


class TransientUnavailableError(ProviderError):
    """Raised when the vendor is temporarily unavailable."""

    def __init__(self, message: str = "Service temporarily unavailable", **kwargs):
        kwargs.setdefault("code", "TRANSIENT_UNAVAILABLE")
        super().__init__(message, recoverable=True, **kwargs)


class ModelLoadingError(TransientUnavailableError):
    """Raised when a hosted model is still loading (HuggingFace 503).

    Attributes:
        estimated_time: Vendor estimate in seconds until the model is ready
    """

    def __init__(
        self,
        message: str = "Model is loading, try again in a few seconds",
        estimated_time: Optional[float] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if estimated_time is not None:
            details["estimated_time"] = estimated_time
        super().__init__(message, code="MODEL_LOADING", details=details, **kwargs)
        self.estimated_time = estimated_time


class InvalidResponseError(ProviderError):
    """Raised when a successful HTTP response has an unusable payload."""

    def __init__(self, message: str = "Invalid response from API", **kwargs):
        super().__init__(
            message,
            code="INVALID_RESPONSE",
            recoverable=False,
            **kwargs,
        )


class NetworkError(ProviderError):
    """Raised on transport failures (DNS, timeout, connection reset)."""

    def __init__(self, message: str = "Could not connect to the API", **kwargs):
        super().__init__(
            message,
            code="NETWORK_ERROR",
            recoverable=True,
            **kwargs,
        )


class ProviderAPIError(ProviderError):
    """Raised for vendor errors that match no more specific kind."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", False)
        super().__init__(message, code="PROVIDER_API_ERROR", **kwargs)
