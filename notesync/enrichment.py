"""
Enrichment engine: summary, tags and embedding for a note's text.

Each output is requested independently. When a backend is configured the
three calls run concurrently; a failure in one only replaces that output
with its offline fallback. Callers never see backend errors.
"""

import asyncio
import logging
import numbers
from typing import Optional, TYPE_CHECKING

from .normalize import normalize
from .providers.base import (
    EmbeddingProvider,
    SummarizationProvider,
    TaggingProvider,
    get_registry,
)
from .providers.fallback import (
    DEFAULT_EMBEDDING_DIMENSION,
    NO_CONTENT_SUMMARY,
    fallback_embedding,
    fallback_summary,
    fallback_tags,
)
from .types import EnrichmentResult

if TYPE_CHECKING:
    from .config import StoreConfig

logger = logging.getLogger(__name__)

# Minimum normalized lengths before any work is attempted
SUMMARY_MIN_LENGTH = 50
TAGS_MIN_LENGTH = 20
EMBEDDING_MIN_LENGTH = 10

# A backend "summary" longer than this fraction of the input is rejected
MAX_SUMMARY_RATIO = 0.8


class EnrichmentEngine:
    """
    Produces EnrichmentResult values from note content.

    Example:
        engine = EnrichmentEngine()            # offline, deterministic
        result = await engine.enrich("<p>Shopping list for the week...</p>")
    """

    def __init__(
        self,
        summarizer: Optional[SummarizationProvider] = None,
        tagger: Optional[TaggingProvider] = None,
        embedder: Optional[EmbeddingProvider] = None,
        *,
        embedding_dimension: int = DEFAULT_EMBEDDING_DIMENSION,
        summary_max_length: int = 150,
        max_tags: int = 5,
    ) -> None:
        self._summarizer = summarizer
        self._tagger = tagger
        self._embedder = embedder
        self.embedding_dimension = embedding_dimension
        self.summary_max_length = summary_max_length
        self.max_tags = max_tags

    @classmethod
    def from_config(cls, config: "StoreConfig") -> "EnrichmentEngine":
        """
        Build an engine from store configuration.

        Without a usable API key every output uses the offline algorithms.
        A provider that cannot be constructed is logged and left out; its
        output then falls back permanently.
        """
        settings = config.enrichment
        engine = cls(
            embedding_dimension=settings.embedding_dimension,
            summary_max_length=settings.summary_max_length,
            max_tags=settings.max_tags,
        )
        if not config.enrichment_enabled:
            logger.info("Enrichment backend disabled, using offline algorithms")
            return engine

        registry = get_registry()
        try:
            engine._summarizer = registry.create_summarization("openai", {"model": settings.model})
            engine._tagger = registry.create_tagging("openai", {"model": settings.model})
            engine._embedder = registry.create_embedding("openai", {
                "model": settings.embedding_model,
                "dimension": settings.embedding_dimension,
            })
        except RuntimeError as e:
            logger.warning("Enrichment backend unavailable, using offline algorithms: %s", e)
        return engine

    @property
    def backend_enabled(self) -> bool:
        return any(p is not None for p in (self._summarizer, self._tagger, self._embedder))

    @property
    def min_schedule_length(self) -> int:
        """Normalized length below which editing sessions skip enrichment."""
        return SUMMARY_MIN_LENGTH

    # -------------------------------------------------------------------------
    # Public operations (accept markup or plain text)
    # -------------------------------------------------------------------------

    async def summarize(self, text: Optional[str], max_length: Optional[int] = None) -> str:
        return await self._summarize(normalize(text), max_length or self.summary_max_length)

    async def tag(self, text: Optional[str], max_tags: Optional[int] = None) -> list[str]:
        return await self._tag(normalize(text), self.max_tags if max_tags is None else max_tags)

    async def embed(self, text: Optional[str]) -> list[float]:
        return await self._embed(normalize(text))

    async def enrich(self, text: Optional[str]) -> EnrichmentResult:
        """Compute summary, tags and embedding together from one input."""
        clean = normalize(text)
        summary, tags, embedding = await asyncio.gather(
            self._summarize(clean, self.summary_max_length),
            self._tag(clean, self.max_tags),
            self._embed(clean),
        )
        return EnrichmentResult(summary=summary, tags=tags, embedding=embedding)

    # -------------------------------------------------------------------------
    # Per-output logic on normalized text
    # -------------------------------------------------------------------------

    async def _summarize(self, clean: str, max_length: int) -> str:
        if len(clean) < SUMMARY_MIN_LENGTH:
            return clean or NO_CONTENT_SUMMARY
        if self._summarizer is None:
            return fallback_summary(clean, max_length)

        try:
            summary = await asyncio.to_thread(
                self._summarizer.summarize, clean, max_length=max_length,
            )
        except Exception as e:
            logger.warning("Summary backend failed, using fallback: %s", e)
            return fallback_summary(clean, max_length)

        if not isinstance(summary, str) or not summary.strip():
            logger.warning("Summary backend returned no text, using fallback")
            return fallback_summary(clean, max_length)
        summary = summary.strip()
        if len(summary) > len(clean) * MAX_SUMMARY_RATIO:
            logger.info("Backend summary barely shorter than source, using fallback")
            return fallback_summary(clean, max_length)
        return summary

    async def _tag(self, clean: str, max_tags: int) -> list[str]:
        if len(clean) < TAGS_MIN_LENGTH:
            return []
        if self._tagger is None:
            return fallback_tags(clean, max_tags)

        try:
            tags = await asyncio.to_thread(self._tagger.tag, clean, max_tags=max_tags)
        except Exception as e:
            logger.warning("Tagging backend failed, using fallback: %s", e)
            return fallback_tags(clean, max_tags)

        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            logger.warning("Tagging backend returned malformed tags, using fallback")
            return fallback_tags(clean, max_tags)
        return list(dict.fromkeys(t.strip().lower() for t in tags if t.strip()))[:max_tags]

    async def _embed(self, clean: str) -> list[float]:
        if len(clean) < EMBEDDING_MIN_LENGTH or self._embedder is None:
            return fallback_embedding(clean, self.embedding_dimension)

        try:
            vector = await asyncio.to_thread(self._embedder.embed, clean)
        except Exception as e:
            logger.warning("Embedding backend failed, using fallback: %s", e)
            return fallback_embedding(clean, self.embedding_dimension)

        if (
            not isinstance(vector, list)
            or len(vector) != self.embedding_dimension
            or not all(isinstance(x, numbers.Real) for x in vector)
        ):
            logger.warning(
                "Embedding backend returned malformed vector (expected %d floats), using fallback",
                self.embedding_dimension,
            )
            return fallback_embedding(clean, self.embedding_dimension)
        return [float(x) for x in vector]
