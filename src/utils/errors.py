"""Custom exception hierarchy for the knowledge base.

All application exceptions inherit from :class:`KnowledgeBaseError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "s3", "chromadb") caused the failure.

The hierarchy follows the failure taxonomy of the ingestion, retrieval and
deletion pipelines:

    KnowledgeBaseError  (base -- catch-all for any knowledge-base error)
    +-- ValidationError          (malformed input, never retried)
    +-- NotFoundError            (folder / document / tenant missing or inactive)
    +-- ProviderError            (embedding or generation call failed)
    +-- StorageError             (object store or vector store operation failed)
    +-- ServiceUnavailableError  (ingestion queue saturated / not running)
    +-- ConfigurationError       (startup / missing config)

Every class exposes a short machine-readable ``code`` which the API
middleware returns next to the human-readable message.

Deletion consistency warnings (metadata deleted but a stored file left
behind) are not exceptions: they are returned as
:class:`~src.models.deletion.StorageDeletionWarning` entries in the
deletion report.
"""


class KnowledgeBaseError(Exception):
    """Base exception for all knowledge-base errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    code: str = "internal_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Caller errors
# ---------------------------------------------------------------------------

class ValidationError(KnowledgeBaseError):
    """Raised for malformed input (empty text, out-of-range dimensions, ...)."""

    code = "validation_error"

    def __init__(
        self,
        message: str = "Invalid input",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NotFoundError(KnowledgeBaseError):
    """Raised when a referenced folder, document or tenant does not exist.

    Inactive (archived) resources and resources owned by another tenant
    are reported as not found as well.
    """

    code = "not_found"

    def __init__(
        self,
        message: str = "Resource not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class ProviderError(KnowledgeBaseError):
    """Raised when an embedding or text-generation call fails.

    ``reason`` is a classified failure category such as
    ``"quota_exceeded"``, ``"invalid_api_key"``, ``"model_not_found"``,
    ``"timeout"`` or ``"invalid_response"``.  It is logged with every
    failure so operators can tell quota problems from outages.
    """

    code = "provider_error"

    def __init__(
        self,
        message: str = "Provider call failed",
        provider_name: str | None = None,
        reason: str = "api_error",
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._reason = reason

    @property
    def reason(self) -> str:
        return self._reason


class StorageError(KnowledgeBaseError):
    """Raised when an object-store, vector-store or metadata-store call fails."""

    code = "storage_error"

    def __init__(
        self,
        message: str = "Storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ServiceUnavailableError(KnowledgeBaseError):
    """Raised when a background component cannot accept work right now."""

    code = "service_unavailable"

    def __init__(
        self,
        message: str = "Service temporarily unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(KnowledgeBaseError):
    """Raised when configuration is invalid or missing at startup."""

    code = "configuration_error"

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
