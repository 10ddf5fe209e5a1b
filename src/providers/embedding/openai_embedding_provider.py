"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Supports both real OpenAI and OpenAI-compatible services via a custom
``base_url``.  Every SDK failure is translated into a
:class:`~src.utils.errors.ProviderError` with a classified ``reason`` so
the embedding client can log quota, auth and timeout problems distinctly.
"""

from __future__ import annotations

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.errors import ProviderError

logger = structlog.get_logger(logger_name=__name__)


def classify_openai_error(exc: openai.OpenAIError) -> str:
    """Map an ``openai`` exception to a short failure reason."""
    if isinstance(exc, openai.RateLimitError):
        if getattr(exc, "code", None) == "insufficient_quota":
            return "quota_exceeded"
        return "rate_limited"
    if isinstance(exc, openai.AuthenticationError):
        return "invalid_api_key"
    if isinstance(exc, openai.NotFoundError):
        return "model_not_found"
    if isinstance(exc, openai.APITimeoutError):
        return "timeout"
    if isinstance(exc, openai.APIConnectionError):
        return "connection_error"
    return "api_error"


_REASON_MESSAGES: dict[str, str] = {
    "quota_exceeded": "API quota exceeded, check plan and billing details",
    "rate_limited": "API rate limit reached",
    "invalid_api_key": "Invalid API key",
    "model_not_found": "Embedding model not found",
    "timeout": "Request timed out",
    "connection_error": "Could not reach the embeddings API",
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API."""

    def __init__(self, settings: Settings, client: openai.AsyncOpenAI | None = None) -> None:
        self._api_key = settings.openai_api_key
        if client is None:
            client_kwargs: dict = {
                "api_key": self._api_key or "not-configured",
                "timeout": settings.openai_timeout_seconds,
                "max_retries": 0,
            }
            if settings.openai_base_url:
                client_kwargs["base_url"] = settings.openai_base_url
            client = openai.AsyncOpenAI(**client_kwargs)
        self._client = client
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def create_embedding(
        self,
        text: str,
        model: str,
        dimensions: int | None = None,
    ) -> list[float]:
        kwargs: dict = {"input": text, "model": model}
        if dimensions is not None:
            kwargs["dimensions"] = dimensions

        try:
            response = await self._client.embeddings.create(**kwargs)
        except openai.OpenAIError as exc:
            reason = classify_openai_error(exc)
            raise ProviderError(
                message=f"{_REASON_MESSAGES.get(reason, 'Embedding API error')}: {exc}",
                provider_name=self.get_provider_name(),
                reason=reason,
            ) from exc

        if not response.data:
            raise ProviderError(
                message="Embedding response contained no data",
                provider_name=self.get_provider_name(),
                reason="invalid_response",
            )

        logger.debug(
            "openai_embedding_created",
            model=model,
            provider=self._provider_label,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return response.data[0].embedding

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
