"""
Persistence gateway: every note operation, with local fallback.

Each operation tries the remote store first. When the remote store raises
BackendUnavailable the same operation is applied to the local store,
reusing the already computed note so enrichment never runs twice. Access
errors and missing notes are never retried.

Reads merge both stores: when a note exists in both, the copy with the
newest updated_at wins. Notes deleted while offline leave a tombstone in
the local store until reconcile() deletes the remote copy.
"""

import asyncio
import logging
import uuid
from dataclasses import replace
from typing import Any, Callable, Optional

from .collection import NoteCollection
from .enrichment import EnrichmentEngine
from .errors import AccessDenied, BackendUnavailable, NotFound
from .local_store import LocalNoteStore
from .remote_store import RemoteStoreProtocol
from .types import Note, NoteInput, NoteUpdate, Version, merge_tags, utc_now

logger = logging.getLogger(__name__)


def _newest(*notes: Optional[Note]) -> Optional[Note]:
    found = [n for n in notes if n is not None]
    if not found:
        return None
    return max(found, key=lambda n: n.updated_at)


class PersistenceGateway:
    """
    Create, read, update, delete and share notes.

    Args:
        remote: Primary store
        local: Fallback store
        engine: Enrichment engine used when a write carries no enrichment
        collection: In-memory collection kept in step with writes
    """

    def __init__(
        self,
        remote: RemoteStoreProtocol,
        local: LocalNoteStore,
        engine: EnrichmentEngine,
        collection: Optional[NoteCollection] = None,
    ):
        self._remote = remote
        self._local = local
        self._engine = engine
        self.collection = collection if collection is not None else NoteCollection()

    async def _call_remote(self, method: Callable[..., Any], *args: Any) -> Any:
        return await asyncio.to_thread(method, *args)

    # -------------------------------------------------------------------------
    # Internal read/write paths
    # -------------------------------------------------------------------------

    async def _fetch(self, note_id: str) -> Optional[Note]:
        """
        Newest copy of a note across both stores, ignoring access.

        While the remote store is unavailable the in-memory collection stands
        in for it, so notes loaded earlier stay editable offline.
        """
        if self._local.is_tombstoned(note_id):
            return None
        try:
            remote_note = await self._call_remote(self._remote.get, note_id)
        except BackendUnavailable as e:
            logger.warning("Remote read of %s failed, using local store: %s", note_id, e)
            remote_note = self.collection.get(note_id)
        return _newest(remote_note, self._local.get(note_id))

    async def _load(self, note_id: str, requester_id: str) -> Note:
        note = await self._fetch(note_id)
        if note is None:
            raise NotFound(note_id)
        if not note.can_read(requester_id):
            raise AccessDenied(note_id, requester_id)
        return note

    async def _load_owned(self, note_id: str, requester_id: str) -> Note:
        """Load for mutation: unreadable is NotFound, readable-but-not-owner is AccessDenied."""
        try:
            note = await self._load(note_id, requester_id)
        except AccessDenied:
            raise NotFound(note_id) from None
        if note.owner_id != requester_id:
            raise AccessDenied(note_id, requester_id)
        return note

    async def _write(self, note: Note, *, create: bool) -> Note:
        method = self._remote.create if create else self._remote.update
        try:
            saved = await self._call_remote(method, note)
        except BackendUnavailable as e:
            logger.warning(
                "Remote %s of %s failed, writing to local store: %s",
                "create" if create else "update", note.id, e,
            )
            saved = self._local.put(note)
        else:
            # The remote copy is now authoritative
            self._local.delete(note.id)
        self.collection.upsert(saved)
        return saved

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def create(self, data: NoteInput, owner_id: str) -> Note:
        """
        Create a note owned by `owner_id`.

        Enrichment runs first unless `data` already carries both summary and
        embedding. The new note starts with one Version.
        """
        tags = merge_tags([], data.tags)
        summary = data.summary
        embedding = data.embedding
        if summary is None or embedding is None:
            if data.content:
                result = await self._engine.enrich(data.content)
                if summary is None:
                    summary = result.summary
                if embedding is None:
                    embedding = result.embedding
                tags = merge_tags(tags, result.tags)
            elif summary is None:
                summary = ""

        now = utc_now()
        note = Note(
            id=uuid.uuid4().hex,
            title=data.title,
            content=data.content,
            owner_id=owner_id,
            tags=tags,
            summary=summary,
            embedding=embedding,
            shared_with=[],
            created_at=now,
            updated_at=now,
            versions=[Version(title=data.title, content=data.content, timestamp=now)],
        )
        saved = await self._write(note, create=True)
        logger.info("Created note %s for %s", saved.id, owner_id)
        return saved

    async def read(self, note_id: str, requester_id: str) -> Optional[Note]:
        """The note if it exists and `requester_id` may read it, else None."""
        try:
            return await self._load(note_id, requester_id)
        except NotFound:
            return None
        except AccessDenied:
            logger.info("Read of %s denied for %s", note_id, requester_id)
            return None

    async def update(self, note_id: str, updates: NoteUpdate, requester_id: str) -> Note:
        """
        Apply a partial update. Only the owner may update.

        Tags are unioned with the stored tags. A content change re-runs
        enrichment unless the update carries both summary and embedding.
        A Version is appended when title or content differ from the latest one.

        Raises:
            NotFound: note missing or unreadable by requester
            AccessDenied: requester can read but does not own the note
        """
        current = await self._load_owned(note_id, requester_id)

        title = updates.title if updates.title is not None else current.title
        content = updates.content if updates.content is not None else current.content
        tags = merge_tags(current.tags, updates.tags or [])
        summary = updates.summary if updates.summary is not None else current.summary
        embedding = updates.embedding if updates.embedding is not None else current.embedding

        content_changed = content != current.content
        if content_changed and (updates.summary is None or updates.embedding is None):
            result = await self._engine.enrich(content)
            if updates.summary is None:
                summary = result.summary
            if updates.embedding is None:
                embedding = result.embedding
            tags = merge_tags(tags, result.tags)

        now = utc_now()
        versions = list(current.versions)
        latest = versions[-1] if versions else None
        if latest is None or latest.title != title or latest.content != content:
            versions.append(Version(title=title, content=content, timestamp=now))

        updated = replace(
            current,
            title=title,
            content=content,
            tags=tags,
            summary=summary,
            embedding=embedding,
            updated_at=now,
            versions=versions,
        )
        return await self._write(updated, create=False)

    async def delete(self, note_id: str, requester_id: str) -> bool:
        """
        Delete a note. Returns False when the note is missing or not owned
        by `requester_id`.
        """
        note = await self.read(note_id, requester_id)
        if note is None or note.owner_id != requester_id:
            return False

        try:
            await self._call_remote(self._remote.delete, note_id)
        except BackendUnavailable as e:
            logger.warning("Remote delete of %s failed, recording local tombstone: %s", note_id, e)
            self._local.delete(note_id)
            self._local.add_tombstone(note_id, requester_id)
        else:
            self._local.delete(note_id)
        self.collection.remove(note_id)
        logger.info("Deleted note %s", note_id)
        return True

    async def share(self, note_id: str, recipients: list[str], requester_id: str) -> bool:
        """
        Replace the note's share list. Only the owner may share.

        Returns False when the note is missing or unreadable.

        Raises:
            AccessDenied: requester can read but does not own the note
        """
        note = await self.read(note_id, requester_id)
        if note is None:
            return False
        if note.owner_id != requester_id:
            raise AccessDenied(note_id, requester_id)

        shared_with = [r for r in dict.fromkeys(recipients) if r and r != note.owner_id]
        await self._write(replace(note, shared_with=shared_with, updated_at=utc_now()), create=False)
        return True

    async def list_notes(self, owner_id: str) -> list[Note]:
        """
        All notes owned by `owner_id` from both stores, newest first.

        Refreshes the in-memory collection.
        """
        remote_notes: list[Note] = []
        try:
            remote_notes = await self._call_remote(self._remote.query_by_owner, owner_id)
        except BackendUnavailable as e:
            logger.warning("Remote listing failed, using local store only: %s", e)

        merged: dict[str, Note] = {n.id: n for n in remote_notes}
        for note in self._local.list_by_owner(owner_id):
            merged[note.id] = _newest(merged.get(note.id), note)
        for note_id in self._local.list_tombstones(owner_id):
            merged.pop(note_id, None)

        notes = sorted(merged.values(), key=lambda n: n.updated_at, reverse=True)
        self.collection.replace_all(notes)
        return notes

    async def history(self, note_id: str, requester_id: str) -> list[Version]:
        """Version history of a readable note, oldest first."""
        try:
            note = await self._load(note_id, requester_id)
        except AccessDenied:
            raise NotFound(note_id) from None
        return list(note.versions)

    async def reconcile(self, owner_id: str) -> dict[str, int]:
        """
        Push notes held in the local store to the remote store.

        A local note replaces the remote copy only when it is newer. Pending
        deletions are applied remotely. Stops at the first BackendUnavailable;
        whatever was not pushed stays local for the next attempt.

        Returns counts: pushed, discarded (remote copy was newer), deleted, remaining.
        """
        counts = {"pushed": 0, "discarded": 0, "deleted": 0, "remaining": 0}
        try:
            for note in self._local.list_by_owner(owner_id):
                remote_note = await self._call_remote(self._remote.get, note.id)
                if remote_note is not None and remote_note.updated_at >= note.updated_at:
                    counts["discarded"] += 1
                else:
                    await self._call_remote(self._remote.update, note)
                    counts["pushed"] += 1
                self._local.delete(note.id)

            for note_id in self._local.list_tombstones(owner_id):
                await self._call_remote(self._remote.delete, note_id)
                self._local.clear_tombstone(note_id)
                counts["deleted"] += 1
        except BackendUnavailable as e:
            logger.warning("Reconcile stopped, remote store unavailable: %s", e)

        counts["remaining"] = (
            self._local.count(owner_id) + len(self._local.list_tombstones(owner_id))
        )
        if counts["pushed"] or counts["deleted"]:
            logger.info(
                "Reconciled %d notes and %d deletions for %s",
                counts["pushed"], counts["deleted"], owner_id,
            )
        return counts
