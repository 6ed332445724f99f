"""
Lexical and semantic search over a note collection.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from .enrichment import EnrichmentEngine
from .errors import DimensionMismatch
from .timers import Debouncer
from .types import Note

logger = logging.getLogger(__name__)

# Lexical relevance weights per matching field
TITLE_WEIGHT = 10
TAG_WEIGHT = 7
SUMMARY_WEIGHT = 5
CONTENT_WEIGHT = 2

DEFAULT_LIMIT = 10
DEFAULT_SEARCH_DELAY = 0.3

SEARCH_MODES = ("text", "semantic")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector has zero norm.

    Raises:
        DimensionMismatch: lengths differ
    """
    if len(a) != len(b):
        raise DimensionMismatch(len(a), len(b))
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    # Rounding can push |dot| just past norm_a * norm_b
    return max(-1.0, min(1.0, dot / (norm_a * norm_b)))


@dataclass(frozen=True)
class SearchHit:
    """A note with its relevance score (lexical weight sum or cosine similarity)."""
    note: Note
    score: float


def relevance_score(note: Note, query: str) -> int:
    """Weighted lexical relevance of `note` for a lower-cased query, 0 if no field matches."""
    score = 0
    if query in note.title.lower():
        score += TITLE_WEIGHT
    if any(query in tag.lower() for tag in note.tags):
        score += TAG_WEIGHT
    if query in note.summary.lower():
        score += SUMMARY_WEIGHT
    if query in note.plain_text.lower():
        score += CONTENT_WEIGHT
    return score


class SearchEngine:
    """
    Ranks notes against a query.

    Semantic ranking embeds the query with the same EnrichmentEngine that
    produced the note embeddings, so both live in one vector space.
    """

    def __init__(self, engine: EnrichmentEngine, *, limit: int = DEFAULT_LIMIT):
        self._engine = engine
        self.limit = limit

    def lexical(self, query: str, notes: Iterable[Note]) -> list[SearchHit]:
        """Notes matching `query` in any field, highest score first, corpus order on ties."""
        needle = query.strip().lower()
        hits = []
        for note in notes:
            score = relevance_score(note, needle)
            if score > 0:
                hits.append(SearchHit(note, float(score)))
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits

    async def semantic(
        self, query: str, notes: Iterable[Note], limit: Optional[int] = None,
    ) -> list[SearchHit]:
        """
        Notes with an embedding, ranked by cosine similarity to the query.

        Raises:
            DimensionMismatch: a stored embedding has a different dimension
        """
        query_embedding = await self._engine.embed(query)
        hits = [
            SearchHit(note, cosine_similarity(query_embedding, note.embedding))
            for note in notes
            if note.embedding is not None
        ]
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:limit if limit is not None else self.limit]

    async def search(
        self,
        query: str,
        notes: Iterable[Note],
        *,
        mode: str = "text",
        limit: Optional[int] = None,
    ) -> list[SearchHit]:
        """
        Search in `mode` ("text" or "semantic").

        A blank query returns every note unfiltered, score 0. Semantic
        failures fall back to lexical results.
        """
        if mode not in SEARCH_MODES:
            raise ValueError(f"Unknown search mode: {mode!r}")
        notes = list(notes)
        if not query.strip():
            return [SearchHit(note, 0.0) for note in notes]

        if mode == "semantic":
            try:
                return await self.semantic(query, notes, limit)
            except Exception as e:
                logger.warning("Semantic search failed, falling back to text search: %s", e)

        hits = self.lexical(query, notes)
        return hits[:limit] if limit is not None else hits


class LiveSearch:
    """
    Debounced search driven by query typing.

    Each keystroke calls set_query(); the search runs once typing pauses.
    Clearing the query publishes the unfiltered corpus immediately.

    Args:
        engine: SearchEngine to run
        corpus: Returns the notes to search at the time the search runs
        on_results: Receives each result list
        delay: Typing pause before searching, in seconds
    """

    def __init__(
        self,
        engine: SearchEngine,
        corpus: Callable[[], Iterable[Note]],
        on_results: Callable[[list[SearchHit]], None],
        *,
        delay: float = DEFAULT_SEARCH_DELAY,
        mode: str = "text",
    ):
        self._engine = engine
        self._corpus = corpus
        self._on_results = on_results
        self._debouncer = Debouncer(delay, self._run, name="search")
        self.query = ""
        self.mode = mode

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    def set_query(self, query: str) -> None:
        self.query = query
        if not query.strip():
            self._debouncer.cancel()
            self._on_results([SearchHit(note, 0.0) for note in self._corpus()])
            return
        self._debouncer.trigger()

    def set_mode(self, mode: str) -> None:
        if mode not in SEARCH_MODES:
            raise ValueError(f"Unknown search mode: {mode!r}")
        self.mode = mode
        if self.query.strip():
            self._debouncer.trigger()

    def clear(self) -> None:
        self.set_query("")

    async def _run(self) -> None:
        query = self.query
        results = await self._engine.search(query, self._corpus(), mode=self.mode)
        # Drop results for a query that changed while searching
        if query == self.query:
            self._on_results(results)

    async def drain(self) -> None:
        await self._debouncer.drain()

    def cancel(self) -> None:
        self._debouncer.cancel()
