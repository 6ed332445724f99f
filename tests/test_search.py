"""Tests for lexical, semantic and live search."""

import asyncio

import pytest

from notesync.enrichment import EnrichmentEngine
from notesync.errors import DimensionMismatch
from notesync.providers.fallback import fallback_embedding
from notesync.search import (
    CONTENT_WEIGHT,
    SUMMARY_WEIGHT,
    TAG_WEIGHT,
    TITLE_WEIGHT,
    LiveSearch,
    SearchEngine,
    cosine_similarity,
)
from notesync.types import Note

from tests.conftest import TEST_DIMENSION


def _note(note_id, title="", content="", tags=(), summary="", embedding=None):
    return Note(
        id=note_id, title=title, content=content, owner_id="alice",
        tags=list(tags), summary=summary, embedding=embedding,
    )


@pytest.fixture
def search():
    return SearchEngine(EnrichmentEngine(embedding_dimension=TEST_DIMENSION))


class TestCosine:

    def test_identical_and_orthogonal(self):
        assert cosine_similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0)
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)

    def test_zero_norm(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_dimension_mismatch(self):
        with pytest.raises(DimensionMismatch):
            cosine_similarity([1.0], [1.0, 2.0])

    def test_range_and_symmetry_over_embeddings(self):
        vectors = [fallback_embedding(f"note text number {i}") for i in range(300)]
        for i, v in enumerate(vectors):
            assert cosine_similarity(v, v) == pytest.approx(1.0)
            assert -1.0 <= cosine_similarity(v, v) <= 1.0
            w = vectors[(i * 7 + 1) % len(vectors)]
            s = cosine_similarity(v, w)
            assert -1.0 <= s <= 1.0
            assert s == cosine_similarity(w, v)

    def test_clamped_for_rounding_error(self):
        v = [0.1, 0.2, 0.3]
        assert cosine_similarity(v, v) <= 1.0
        assert cosine_similarity(v, [-x for x in v]) >= -1.0


class TestLexical:

    def test_weights(self, search):
        notes = [
            _note("content", content="<p>the garden shed</p>"),
            _note("title", title="Garden plans"),
            _note("tag", tags=["gardening"]),
            _note("summary", summary="About the garden"),
            _note("none", title="Kitchen"),
        ]
        hits = search.lexical("Garden", notes)
        assert [h.note.id for h in hits] == ["title", "tag", "summary", "content"]
        assert [h.score for h in hits] == [TITLE_WEIGHT, TAG_WEIGHT, SUMMARY_WEIGHT, CONTENT_WEIGHT]

    def test_scores_add_up(self, search):
        note = _note("all", title="garden", content="garden", tags=["garden"], summary="garden")
        [hit] = search.lexical("garden", [note])
        assert hit.score == TITLE_WEIGHT + TAG_WEIGHT + SUMMARY_WEIGHT + CONTENT_WEIGHT

    def test_markup_not_matched(self, search):
        assert search.lexical("strong", [_note("n", content="<strong>bold</strong>")]) == []

    def test_ties_keep_corpus_order(self, search):
        notes = [_note(str(i), title=f"garden {i}") for i in range(5)]
        assert [h.note.id for h in search.lexical("garden", notes)] == ["0", "1", "2", "3", "4"]


class TestSemantic:

    @pytest.mark.asyncio
    async def test_ranks_by_similarity_and_excludes_unembedded(self, search):
        notes = [
            _note("other", embedding=fallback_embedding("completely different text", TEST_DIMENSION)),
            _note("match", embedding=fallback_embedding("garden plans", TEST_DIMENSION)),
            _note("bare"),
        ]
        hits = await search.semantic("garden plans", notes)
        assert [h.note.id for h in hits] == ["match", "other"]
        assert hits[0].score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_limit(self, search):
        notes = [
            _note(str(i), embedding=fallback_embedding(f"note {i}", TEST_DIMENSION))
            for i in range(20)
        ]
        assert len(await search.semantic("query text", notes)) == 10
        assert len(await search.semantic("query text", notes, limit=3)) == 3

    @pytest.mark.asyncio
    async def test_dimension_mismatch_raises(self, search):
        with pytest.raises(DimensionMismatch):
            await search.semantic("garden", [_note("bad", embedding=[1.0, 2.0])])


class TestSearch:

    @pytest.mark.asyncio
    async def test_blank_query_returns_everything(self, search):
        notes = [_note("a"), _note("b")]
        hits = await search.search("   ", notes, mode="semantic")
        assert [h.note.id for h in hits] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_semantic_failure_falls_back_to_text(self, search, caplog):
        notes = [_note("bad", title="garden", embedding=[1.0, 2.0])]
        hits = await search.search("garden", notes, mode="semantic")
        assert [h.note.id for h in hits] == ["bad"]
        assert "falling back to text search" in caplog.text

    @pytest.mark.asyncio
    async def test_unknown_mode(self, search):
        with pytest.raises(ValueError):
            await search.search("x", [], mode="fuzzy")


class TestLiveSearch:

    @pytest.mark.asyncio
    async def test_debounces_typing(self, search):
        notes = [_note("g", title="garden"), _note("k", title="kitchen")]
        published = []
        live = LiveSearch(search, lambda: notes, published.append, delay=0.02)

        for prefix in ("g", "ga", "gar", "garden"):
            live.set_query(prefix)
        await asyncio.sleep(0.08)
        await live.drain()

        assert len(published) == 1
        assert [h.note.id for h in published[0]] == ["g"]

    @pytest.mark.asyncio
    async def test_clear_resets_to_full_corpus(self, search):
        notes = [_note("g", title="garden"), _note("k", title="kitchen")]
        published = []
        live = LiveSearch(search, lambda: notes, published.append, delay=0.02)

        live.set_query("garden")
        live.clear()
        assert not live.pending
        assert [h.note.id for h in published[-1]] == ["g", "k"]
        await asyncio.sleep(0.06)
        assert len(published) == 1
