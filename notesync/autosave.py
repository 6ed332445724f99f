"""
Debounced persistence for one note-editing session.

Autosave never overlaps an in-flight enrichment: a timer that fires while
enrichment is running is skipped, and the timer is re-armed when the
enrichment run ends, successfully or not. An explicit save cancels the
pending timer and performs the write itself, so one logical edit is
written once.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .scheduler import EnrichmentScheduler
from .timers import Debouncer
from .types import EditorState, Note, utc_now

logger = logging.getLogger(__name__)

DEFAULT_AUTOSAVE_DELAY = 3.0


class AutoSaveCoordinator:
    """
    Decides when an EditorState is written.

    Args:
        state: Session state to persist
        scheduler: The session's enrichment scheduler
        save: Coroutine that persists the state and returns the saved Note
        delay: Quiet period before an autosave, in seconds
    """

    def __init__(
        self,
        state: EditorState,
        scheduler: EnrichmentScheduler,
        save: Callable[[EditorState], Awaitable[Note]],
        *,
        delay: float = DEFAULT_AUTOSAVE_DELAY,
    ) -> None:
        self._state = state
        self._scheduler = scheduler
        self._save_fn = save
        self._debouncer = Debouncer(delay, self._autosave, name="autosave")
        self._lock = asyncio.Lock()
        # Revision 0 of a loaded note is what the store already holds
        self._saved_revision = 0 if state.note is not None else -1
        self.saving = False
        self.last_saved: Optional[str] = None
        scheduler.add_settled_listener(self._on_settled)

    @property
    def dirty(self) -> bool:
        return self._state.revision != self._saved_revision

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    def changed(self) -> None:
        """Restart the quiet period after a title, content or tag edit."""
        if self._state.is_empty:
            self._debouncer.cancel()
            return
        self._debouncer.trigger()

    def cancel(self) -> None:
        self._debouncer.cancel()

    def _on_settled(self) -> None:
        # Enrichment finished or failed: try again after a further quiet period
        if self.dirty:
            self.changed()

    async def _autosave(self) -> None:
        if self._scheduler.processing:
            logger.debug("Autosave skipped while enrichment is running")
            return
        await self._save()

    async def save_now(self) -> Optional[Note]:
        """
        Explicit save: cancel any pending autosave, wait out a running
        enrichment, then write.

        Returns the saved Note, the already saved Note when nothing changed,
        or None for an empty session.
        """
        self._debouncer.cancel()
        await self._scheduler.wait_running()
        return await self._save()

    async def _save(self) -> Optional[Note]:
        async with self._lock:
            state = self._state
            if state.is_empty:
                logger.debug("Nothing to save: empty title and content")
                return None
            if not self.dirty:
                return state.note

            revision = state.revision
            self.saving = True
            try:
                note = await self._save_fn(state)
            finally:
                self.saving = False
            self._saved_revision = revision
            self.last_saved = utc_now()
            logger.debug("Saved note %s at revision %d", note.id, revision)
            return note

    async def drain(self) -> None:
        """Wait for an autosave that already fired to finish."""
        await self._debouncer.drain()
