"""Semantic search and grounded question answering over a tenant's documents.

The query is embedded once (through the same cached
:class:`~src.services.embedding_client.EmbeddingClient` used for ingestion,
so repeated questions skip the provider), searched against the tenant's
collection, and filtered by similarity threshold before the top-k cut.

:meth:`RetrievalService.answer` turns the retrieved chunks into a numbered
context block and asks the LLM to answer strictly from it.  When nothing
clears the threshold the LLM is not called at all.
"""

from __future__ import annotations

import structlog

from src.interfaces.llm_provider import ILLMProvider
from src.models.rag import GroundedAnswer, RetrievedChunk
from src.services.embedding_client import EmbeddingClient
from src.services.vector_store_manager import VectorStoreManager
from src.utils.errors import ConfigurationError, ValidationError

logger = structlog.get_logger(logger_name=__name__)

NO_ANSWER_REPLY = "Sorry, I couldn't find relevant information in the documents."

_SYSTEM_PROMPT = (
    "You are a helpful assistant answering questions strictly based on internal "
    "organization documents.\n\n"
    "Instructions:\n"
    "- Use ONLY the provided context to answer the question.\n"
    f'- If you cannot find an answer, say: "{NO_ANSWER_REPLY}"\n'
    "- Keep the tone professional, clear, and concise."
)


def build_context(chunks: list[RetrievedChunk]) -> str:
    """Format *chunks* as numbered ``Source [i]`` blocks, best first."""
    return "\n\n".join(
        f"Source [{i}]:\n{chunk.chunk_text}" for i, chunk in enumerate(chunks, start=1)
    )


class RetrievalService:
    """Retrieves relevant chunks and generates grounded answers.

    Parameters
    ----------
    embedding_client:
        Embeds the query text.
    vector_store:
        Tenant-scoped search.
    llm:
        Completion provider for :meth:`answer`; retrieval works without it.
    score_threshold:
        Minimum similarity a chunk needs to be returned.
    default_top_k:
        Result count used when a caller does not pass one.
    temperature / max_tokens:
        Completion parameters for :meth:`answer`.
    """

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        vector_store: VectorStoreManager,
        llm: ILLMProvider | None = None,
        score_threshold: float = 0.50,
        default_top_k: int = 5,
        temperature: float = 0.3,
        max_tokens: int = 600,
    ) -> None:
        self._embedding_client = embedding_client
        self._vector_store = vector_store
        self._llm = llm
        self._score_threshold = score_threshold
        self._default_top_k = default_top_k
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def retrieve(
        self, tenant_id: str, query_text: str, top_k: int | None = None
    ) -> list[RetrievedChunk]:
        """Return up to *top_k* chunks above the threshold, best first.

        An empty list (no collection yet, or nothing relevant) is a normal
        result.

        Raises
        ------
        ValidationError
            If the query is empty or *top_k* is not positive.
        """
        if not query_text or not query_text.strip():
            raise ValidationError("Query text must not be empty")
        k = top_k if top_k is not None else self._default_top_k

        query_vector = await self._embedding_client.embed(query_text)
        results = await self._vector_store.search(
            tenant_id,
            query_vector,
            top_k=k,
            score_threshold=self._score_threshold,
        )
        logger.info(
            "retrieval_complete",
            tenant_id=tenant_id,
            top_k=k,
            results=len(results),
            best_score=results[0].score if results else None,
        )
        return results

    async def answer(
        self, tenant_id: str, question: str, top_k: int | None = None
    ) -> GroundedAnswer:
        """Answer *question* from the tenant's documents.

        Raises
        ------
        ConfigurationError
            If no LLM provider was configured.
        ProviderError
            If the completion call fails.
        """
        if self._llm is None:
            raise ConfigurationError("No LLM provider configured for answering questions")

        chunks = await self.retrieve(tenant_id, question, top_k)
        if not chunks:
            logger.info("answer_without_sources", tenant_id=tenant_id)
            return GroundedAnswer(answer=NO_ANSWER_REPLY, sources=[], grounded=False)

        user_prompt = f"Context:\n{build_context(chunks)}\n\nQuestion:\n{question.strip()}"
        text = await self._llm.complete(
            system_prompt=_SYSTEM_PROMPT,
            user_prompt=user_prompt,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        logger.info(
            "answer_generated",
            tenant_id=tenant_id,
            sources=len(chunks),
            provider=self._llm.get_provider_name(),
        )
        return GroundedAnswer(answer=text.strip(), sources=chunks, grounded=True)
