"""
Note-editing session: the editor's view of one note.

A session owns an EditorState and wires the enrichment scheduler and the
autosave coordinator to it. Every edit is also written to a draft so an
interrupted session can be restored; the draft is removed after a save.
"""

import logging
from typing import Optional

from .autosave import DEFAULT_AUTOSAVE_DELAY, AutoSaveCoordinator
from .enrichment import EnrichmentEngine
from .gateway import PersistenceGateway
from .local_store import DraftStore
from .normalize import normalize
from .scheduler import DEFAULT_ENRICHMENT_DELAY, EnrichmentScheduler
from .types import (
    Draft,
    EditorState,
    Note,
    NoteInput,
    NoteUpdate,
    merge_tags,
)

logger = logging.getLogger(__name__)

UNTITLED = "Untitled"


class EditingSession:
    """
    Edit one note (or a new one) with background enrichment and autosave.

    Example:
        session = notebook.open_session("alice")
        session.edit(title="Groceries", content="<p>eggs, flour, milk ...</p>")
        note = await session.save()
        await session.close()
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        engine: EnrichmentEngine,
        drafts: DraftStore,
        user_id: str,
        note: Optional[Note] = None,
        *,
        enrichment_delay: float = DEFAULT_ENRICHMENT_DELAY,
        autosave_delay: float = DEFAULT_AUTOSAVE_DELAY,
        restore_draft: bool = True,
    ):
        self._gateway = gateway
        self._drafts = drafts
        self.user_id = user_id
        self.state = self._initial_state(note)
        self.restored_draft = False
        if restore_draft:
            self._restore_draft()

        self.scheduler = EnrichmentScheduler(engine, self.state, delay=enrichment_delay)
        self.autosave = AutoSaveCoordinator(
            self.state, self.scheduler, self._persist, delay=autosave_delay,
        )

    @staticmethod
    def _initial_state(note: Optional[Note]) -> EditorState:
        if note is None:
            return EditorState()
        return EditorState(
            title=note.title,
            content=note.content,
            tags=list(note.tags),
            summary=note.summary,
            embedding=note.embedding,
            note=note,
            enriched_content=note.content if note.embedding is not None else None,
        )

    def _restore_draft(self) -> None:
        state = self.state
        draft = self._drafts.load(state.draft_key)
        if draft is None:
            return
        if state.note is not None and draft.timestamp <= state.note.updated_at:
            # Saved after the draft was written
            self._drafts.delete(draft.key)
            return
        state.title = draft.title
        state.content = draft.content
        state.tags = merge_tags(state.tags, draft.tags)
        state.revision += 1
        self.restored_draft = True
        logger.info("Restored draft %s", draft.key)

    # -------------------------------------------------------------------------
    # Observable state
    # -------------------------------------------------------------------------

    @property
    def note(self) -> Optional[Note]:
        return self.state.note

    @property
    def processing(self) -> bool:
        return self.scheduler.processing

    @property
    def saving(self) -> bool:
        return self.autosave.saving

    @property
    def last_saved(self) -> Optional[str]:
        return self.autosave.last_saved

    # -------------------------------------------------------------------------
    # Edits
    # -------------------------------------------------------------------------

    def edit(self, *, title: Optional[str] = None, content: Optional[str] = None) -> None:
        """Apply a title and/or content edit. Must be called from the event loop."""
        state = self.state
        content_changed = content is not None and content != state.content
        title_changed = title is not None and title != state.title
        if not (content_changed or title_changed):
            return
        if title_changed:
            state.title = title
        if content_changed:
            state.content = content
        state.revision += 1
        self._write_draft()
        if content_changed:
            self.scheduler.content_changed(content)
        self.autosave.changed()

    def add_tag(self, tag: str) -> None:
        state = self.state
        merged = merge_tags(state.tags, [tag])
        if merged == state.tags:
            return
        state.tags = merged
        state.revision += 1
        self._write_draft()
        self.autosave.changed()

    def remove_tag(self, tag: str) -> None:
        state = self.state
        key = tag.strip().casefold()
        remaining = [t for t in state.tags if t.casefold() != key]
        if remaining == state.tags:
            return
        state.tags = remaining
        state.revision += 1
        self._write_draft()
        self.autosave.changed()

    def _write_draft(self) -> None:
        state = self.state
        if state.is_empty:
            self._drafts.delete(state.draft_key)
            return
        self._drafts.save(Draft(
            key=state.draft_key, title=state.title, content=state.content, tags=list(state.tags),
        ))

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    async def regenerate(self) -> None:
        """Re-run enrichment now, skipping the debounce delay."""
        await self.scheduler.regenerate()

    async def save(self) -> Optional[Note]:
        """Save now. Returns the saved note, or None for an empty session."""
        return await self.autosave.save_now()

    async def _persist(self, state: EditorState) -> Note:
        # Only hand over enrichment computed from the content being saved
        fresh = (
            state.enriched_content is not None
            and normalize(state.enriched_content) == normalize(state.content)
        )
        summary = state.summary if fresh else None
        embedding = state.embedding if fresh else None
        draft_key = state.draft_key

        if state.note is None:
            note = await self._gateway.create(
                NoteInput(
                    title=state.title or UNTITLED,
                    content=state.content,
                    tags=list(state.tags),
                    summary=summary,
                    embedding=embedding,
                ),
                self.user_id,
            )
        else:
            note = await self._gateway.update(
                state.note.id,
                NoteUpdate(
                    title=state.title or UNTITLED,
                    content=state.content,
                    tags=list(state.tags),
                    summary=summary,
                    embedding=embedding,
                ),
                self.user_id,
            )

        state.note = note
        self._drafts.delete(draft_key)
        if draft_key != note.id:
            self._drafts.delete(note.id)
        return note

    async def close(self) -> None:
        """Stop timers and wait for work already started to finish."""
        self.scheduler.cancel()
        self.autosave.cancel()
        await self.scheduler.wait_running()
        await self.autosave.drain()
