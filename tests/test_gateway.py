"""Tests for the persistence gateway: access rules, versions and fallback."""

import pytest

from notesync.errors import AccessDenied, NotFound
from notesync.types import NoteInput, NoteUpdate

from tests.conftest import LONG_TEXT, TEST_DIMENSION

OTHER_TEXT = (
    "<p>Notes from the allotment committee: new water butts, a tool shed "
    "rota and the autumn open day.</p>"
)


async def _create(gateway, owner="alice", **kwargs):
    kwargs.setdefault("title", "Allotment")
    kwargs.setdefault("content", LONG_TEXT)
    return await gateway.create(NoteInput(**kwargs), owner)


class TestCreate:

    @pytest.mark.asyncio
    async def test_create_enriches_and_stores_remotely(self, gateway, remote, local_store, engine):
        note = await _create(gateway, tags=["Garden"])
        assert note.owner_id == "alice"
        assert note.summary
        assert len(note.embedding) == TEST_DIMENSION
        assert note.tags[0] == "Garden"
        assert len(note.versions) == 1
        assert note.versions[0].content == LONG_TEXT
        assert note.id in remote.notes
        assert local_store.get(note.id) is None
        assert engine.enriched == [LONG_TEXT]
        assert note.id in gateway.collection

    @pytest.mark.asyncio
    async def test_create_falls_back_to_local_store(self, gateway, remote, local_store, engine):
        remote.available = False
        note = await _create(gateway)
        stored = local_store.get(note.id)
        assert stored == note
        assert len(stored.versions) == 1
        assert engine.enriched == [LONG_TEXT]
        assert remote.notes == {}

    @pytest.mark.asyncio
    async def test_precomputed_enrichment_is_reused(self, gateway, engine):
        note = await _create(gateway, summary="Given", embedding=[0.0] * TEST_DIMENSION)
        assert note.summary == "Given"
        assert engine.enriched == []

    @pytest.mark.asyncio
    async def test_empty_content(self, gateway, engine):
        note = await _create(gateway, content="")
        assert note.summary == ""
        assert note.embedding is None
        assert engine.enriched == []

    @pytest.mark.asyncio
    async def test_remote_access_denied_is_not_retried(self, gateway, remote, local_store):
        remote.deny_writes = True
        with pytest.raises(AccessDenied):
            await _create(gateway)
        assert local_store.count() == 0


class TestRead:

    @pytest.mark.asyncio
    async def test_owner_and_shared_reader(self, gateway):
        note = await _create(gateway)
        assert await gateway.share(note.id, ["bob"], "alice") is True
        assert (await gateway.read(note.id, "alice")).id == note.id
        assert (await gateway.read(note.id, "bob")).id == note.id

    @pytest.mark.asyncio
    async def test_stranger_and_missing_get_none(self, gateway):
        note = await _create(gateway)
        assert await gateway.read(note.id, "mallory") is None
        assert await gateway.read("missing", "alice") is None

    @pytest.mark.asyncio
    async def test_read_falls_back_to_local(self, gateway, remote):
        remote.available = False
        note = await _create(gateway)
        assert (await gateway.read(note.id, "alice")).id == note.id

    @pytest.mark.asyncio
    async def test_newest_copy_wins(self, gateway, remote):
        note = await _create(gateway)
        remote.available = False
        await gateway.update(note.id, NoteUpdate(title="Offline title"), "alice")
        remote.available = True
        assert (await gateway.read(note.id, "alice")).title == "Offline title"


class TestUpdate:

    @pytest.mark.asyncio
    async def test_content_change_appends_one_version(self, gateway):
        note = await _create(gateway)
        updated = await gateway.update(note.id, NoteUpdate(content=OTHER_TEXT), "alice")
        assert len(updated.versions) == 2
        assert updated.versions[-1].content == OTHER_TEXT
        assert updated.versions[0].content == LONG_TEXT

    @pytest.mark.asyncio
    async def test_identical_content_appends_nothing(self, gateway, engine):
        note = await _create(gateway)
        updated = await gateway.update(
            note.id, NoteUpdate(title=note.title, content=note.content), "alice",
        )
        assert len(updated.versions) == 1
        assert engine.enriched == [LONG_TEXT]

    @pytest.mark.asyncio
    async def test_title_change_appends_version(self, gateway):
        note = await _create(gateway)
        updated = await gateway.update(note.id, NoteUpdate(title="Renamed"), "alice")
        assert [v.title for v in updated.versions] == ["Allotment", "Renamed"]

    @pytest.mark.asyncio
    async def test_content_change_reenriches(self, gateway, engine):
        note = await _create(gateway)
        updated = await gateway.update(note.id, NoteUpdate(content=OTHER_TEXT), "alice")
        assert engine.enriched == [LONG_TEXT, OTHER_TEXT]
        assert updated.embedding != note.embedding

    @pytest.mark.asyncio
    async def test_supplied_enrichment_skips_engine(self, gateway, engine):
        note = await _create(gateway)
        vector = [1.0] * TEST_DIMENSION
        updated = await gateway.update(
            note.id,
            NoteUpdate(content=OTHER_TEXT, summary="Committee notes", embedding=vector),
            "alice",
        )
        assert engine.enriched == [LONG_TEXT]
        assert updated.summary == "Committee notes"
        assert updated.embedding == vector

    @pytest.mark.asyncio
    async def test_tags_are_unioned(self, gateway):
        note = await _create(gateway, content="", tags=["Work"])
        updated = await gateway.update(note.id, NoteUpdate(tags=["work", "urgent"]), "alice")
        assert updated.tags == ["Work", "urgent"]

    @pytest.mark.asyncio
    async def test_shared_reader_cannot_update(self, gateway):
        note = await _create(gateway)
        await gateway.share(note.id, ["bob"], "alice")
        with pytest.raises(AccessDenied):
            await gateway.update(note.id, NoteUpdate(title="Hijack"), "bob")

    @pytest.mark.asyncio
    async def test_stranger_and_missing_are_not_found(self, gateway):
        note = await _create(gateway)
        with pytest.raises(NotFound):
            await gateway.update(note.id, NoteUpdate(title="x"), "mallory")
        with pytest.raises(NotFound):
            await gateway.update("missing", NoteUpdate(title="x"), "alice")

    @pytest.mark.asyncio
    async def test_update_falls_back_without_double_version(self, gateway, remote, local_store):
        note = await _create(gateway)
        remote.available = False
        updated = await gateway.update(note.id, NoteUpdate(content=OTHER_TEXT), "alice")
        stored = local_store.get(note.id)
        assert stored == updated
        assert len(stored.versions) == 2
        assert remote.notes[note.id].content == LONG_TEXT


class TestDelete:

    @pytest.mark.asyncio
    async def test_owner_deletes(self, gateway, remote):
        note = await _create(gateway)
        assert await gateway.delete(note.id, "alice") is True
        assert note.id not in remote.notes
        assert await gateway.read(note.id, "alice") is None
        assert note.id not in gateway.collection

    @pytest.mark.asyncio
    async def test_non_owner_and_missing_return_false(self, gateway):
        note = await _create(gateway)
        await gateway.share(note.id, ["bob"], "alice")
        assert await gateway.delete(note.id, "bob") is False
        assert await gateway.delete(note.id, "mallory") is False
        assert await gateway.delete("missing", "alice") is False
        assert await gateway.read(note.id, "alice") is not None

    @pytest.mark.asyncio
    async def test_offline_delete_hides_note_until_reconciled(self, gateway, remote, local_store):
        note = await _create(gateway)
        remote.available = False
        assert await gateway.delete(note.id, "alice") is True

        remote.available = True
        assert await gateway.read(note.id, "alice") is None
        assert note.id not in [n.id for n in await gateway.list_notes("alice")]

        counts = await gateway.reconcile("alice")
        assert counts["deleted"] == 1
        assert note.id not in remote.notes
        assert local_store.list_tombstones("alice") == []


class TestShare:

    @pytest.mark.asyncio
    async def test_share_replaces_list(self, gateway):
        note = await _create(gateway)
        await gateway.share(note.id, ["bob", "carol", "bob"], "alice")
        await gateway.share(note.id, ["dave"], "alice")
        assert (await gateway.read(note.id, "alice")).shared_with == ["dave"]
        assert await gateway.read(note.id, "bob") is None

    @pytest.mark.asyncio
    async def test_non_owner_reader_denied(self, gateway):
        note = await _create(gateway)
        await gateway.share(note.id, ["bob"], "alice")
        with pytest.raises(AccessDenied):
            await gateway.share(note.id, ["mallory"], "bob")

    @pytest.mark.asyncio
    async def test_unreadable_returns_false(self, gateway):
        note = await _create(gateway)
        assert await gateway.share(note.id, ["x"], "mallory") is False
        assert await gateway.share("missing", ["x"], "alice") is False


class TestListAndHistory:

    @pytest.mark.asyncio
    async def test_list_merges_stores_newest_first(self, gateway, remote):
        first = await _create(gateway, title="First")
        remote.available = False
        second = await _create(gateway, title="Second")
        remote.available = True
        await _create(gateway, owner="bob", title="Bob's")

        notes = await gateway.list_notes("alice")
        assert [n.id for n in notes] == [second.id, first.id]
        assert len(gateway.collection) == 2

    @pytest.mark.asyncio
    async def test_list_offline_uses_local_only(self, gateway, remote):
        await _create(gateway, title="Remote")
        remote.available = False
        local = await _create(gateway, title="Local")
        assert [n.id for n in await gateway.list_notes("alice")] == [local.id]

    @pytest.mark.asyncio
    async def test_history(self, gateway):
        note = await _create(gateway)
        await gateway.update(note.id, NoteUpdate(content=OTHER_TEXT), "alice")
        versions = await gateway.history(note.id, "alice")
        assert [v.content for v in versions] == [LONG_TEXT, OTHER_TEXT]
        with pytest.raises(NotFound):
            await gateway.history(note.id, "mallory")


class TestReconcile:

    @pytest.mark.asyncio
    async def test_pushes_local_notes(self, gateway, remote, local_store):
        remote.available = False
        note = await _create(gateway)
        remote.available = True

        counts = await gateway.reconcile("alice")
        assert counts == {"pushed": 1, "discarded": 0, "deleted": 0, "remaining": 0}
        assert remote.notes[note.id] == note
        assert local_store.get(note.id) is None

    @pytest.mark.asyncio
    async def test_older_local_copy_is_discarded(self, gateway, remote, local_store):
        note = await _create(gateway)
        stale = remote.notes[note.id]
        local_store.put(stale)
        await gateway.update(note.id, NoteUpdate(title="Newer"), "alice")
        local_store.put(stale)

        counts = await gateway.reconcile("alice")
        assert counts["discarded"] == 1
        assert remote.notes[note.id].title == "Newer"

    @pytest.mark.asyncio
    async def test_still_offline_keeps_everything(self, gateway, remote, local_store):
        remote.available = False
        await _create(gateway)
        counts = await gateway.reconcile("alice")
        assert counts["pushed"] == 0
        assert counts["remaining"] == 1
