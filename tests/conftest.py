"""
Shared pytest fixtures for notesync tests.

Provides an in-memory remote store with a failure switch and enrichment
fakes, so no test touches the network or a model.
"""

import asyncio
import copy
from pathlib import Path
from typing import Optional

import pytest

from notesync.collection import NoteCollection
from notesync.enrichment import EnrichmentEngine
from notesync.errors import AccessDenied, BackendUnavailable
from notesync.gateway import PersistenceGateway
from notesync.local_store import DraftStore, LocalNoteStore
from notesync.types import EnrichmentResult, Note

# Small vectors keep the offline embedding cheap in tests
TEST_DIMENSION = 32

LONG_TEXT = (
    "<p>Quarterly planning for the garden allotment: compost delivery, "
    "seed ordering, fence repairs and the shared watering rota.</p>"
)


class FakeRemoteStore:
    """
    In-memory remote store.

    Set `available = False` to make every call raise BackendUnavailable,
    `denied` to note ids the store refuses with AccessDenied, and
    `deny_writes = True` to refuse every create and update.
    """

    def __init__(self):
        self.notes: dict[str, Note] = {}
        self.available = True
        self.denied: set[str] = set()
        self.deny_writes = False
        self.calls: list[tuple[str, str]] = []

    def _check(self, op: str, key: str) -> None:
        self.calls.append((op, key))
        if not self.available:
            raise BackendUnavailable(f"fake remote down ({op})")
        if key in self.denied or (self.deny_writes and op in ("create", "update")):
            raise AccessDenied(key, "remote caller")

    def create(self, note: Note) -> Note:
        self._check("create", note.id)
        self.notes[note.id] = copy.deepcopy(note)
        return copy.deepcopy(note)

    def get(self, note_id: str) -> Optional[Note]:
        self._check("get", note_id)
        note = self.notes.get(note_id)
        return copy.deepcopy(note) if note is not None else None

    def update(self, note: Note) -> Note:
        self._check("update", note.id)
        self.notes[note.id] = copy.deepcopy(note)
        return copy.deepcopy(note)

    def delete(self, note_id: str) -> bool:
        self._check("delete", note_id)
        return self.notes.pop(note_id, None) is not None

    def query_by_owner(self, owner_id: str) -> list[Note]:
        self._check("query", owner_id)
        notes = [copy.deepcopy(n) for n in self.notes.values() if n.owner_id == owner_id]
        return sorted(notes, key=lambda n: n.updated_at, reverse=True)


class CountingEngine(EnrichmentEngine):
    """
    Offline engine that records every enrich() call.

    When `gate` is set, enrich() blocks until the test sets it, which
    makes a "running" enrichment observable.
    """

    def __init__(self, **kwargs):
        kwargs.setdefault("embedding_dimension", TEST_DIMENSION)
        super().__init__(**kwargs)
        self.enriched: list[str] = []
        self.started = asyncio.Event()
        self.gate: Optional[asyncio.Event] = None

    async def enrich(self, text):
        self.enriched.append(text)
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        return await super().enrich(text)


class FixedEngine(EnrichmentEngine):
    """Engine returning a canned result, for asserting tag merges."""

    def __init__(self, result: EnrichmentResult):
        super().__init__(embedding_dimension=len(result.embedding))
        self.result = result
        self.calls = 0

    async def enrich(self, text):
        self.calls += 1
        return self.result


class FailingSummarizer:
    def summarize(self, text, *, max_length=150):
        raise RuntimeError("summary backend down")


class FailingTagger:
    def tag(self, text, *, max_tags=5):
        raise RuntimeError("tag backend down")


class FailingEmbedder:
    dimension = TEST_DIMENSION

    def embed(self, text):
        raise RuntimeError("embedding backend down")


class StaticSummarizer:
    def __init__(self, summary: str):
        self.summary = summary
        self.calls = 0

    def summarize(self, text, *, max_length=150):
        self.calls += 1
        return self.summary


class StaticTagger:
    def __init__(self, tags):
        self.tags = tags

    def tag(self, text, *, max_tags=5):
        return list(self.tags)


class StaticEmbedder:
    def __init__(self, vector):
        self.vector = vector
        self.dimension = len(vector)

    def embed(self, text):
        return list(self.vector)


@pytest.fixture
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def local_store(tmp_path: Path):
    store = LocalNoteStore(tmp_path / "notes.db")
    yield store
    store.close()


@pytest.fixture
def drafts(tmp_path: Path):
    store = DraftStore(tmp_path / "notes.db")
    yield store
    store.close()


@pytest.fixture
def engine() -> CountingEngine:
    return CountingEngine()


@pytest.fixture
def gateway(remote, local_store, engine) -> PersistenceGateway:
    return PersistenceGateway(remote, local_store, engine, NoteCollection())
