"""
Enrichment scheduling for one note-editing session.

State machine: IDLE -> PENDING (debounce armed) -> RUNNING -> IDLE.

- Every content change restarts the debounce timer; superseded snapshots
  are never enriched.
- At most one enrichment runs at a time. Changes made while RUNNING are
  remembered and start a fresh debounce cycle once the run completes, so
  results are applied in order.
- regenerate() skips the debounce but is still serialized: a request made
  while RUNNING is coalesced into a single re-run after the current one,
  which does nothing if the content has not changed since.
- Results from a run are always applied, even if the content moved on.
"""

import asyncio
import enum
import logging
from typing import Callable, Optional

from .enrichment import EnrichmentEngine
from .normalize import normalize
from .timers import Debouncer
from .types import EditorState, EnrichmentResult, merge_tags

logger = logging.getLogger(__name__)

DEFAULT_ENRICHMENT_DELAY = 1.5


class EnrichmentState(str, enum.Enum):
    IDLE = "idle"
    PENDING = "pending"
    RUNNING = "running"


class EnrichmentScheduler:
    """
    Debounces and serializes enrichment of an EditorState.

    The scheduler reads `state.content` when a run starts and writes
    summary, embedding and merged tags back into `state` when it ends.
    """

    def __init__(
        self,
        engine: EnrichmentEngine,
        state: EditorState,
        *,
        delay: float = DEFAULT_ENRICHMENT_DELAY,
    ) -> None:
        self._engine = engine
        self._state = state
        self._debouncer = Debouncer(delay, self._run_debounced, name="enrichment")
        self._running = False
        self._changed_while_running = False
        self._regenerate_requested = False
        self._listeners: list[Callable[[EnrichmentResult], None]] = []
        self._settled_listeners: list[Callable[[], None]] = []
        self._idle = asyncio.Event()
        self._idle.set()
        self._not_running = asyncio.Event()
        self._not_running.set()

    # -------------------------------------------------------------------------
    # Observable state
    # -------------------------------------------------------------------------

    @property
    def state(self) -> EnrichmentState:
        if self._running:
            return EnrichmentState.RUNNING
        if self._debouncer.pending:
            return EnrichmentState.PENDING
        return EnrichmentState.IDLE

    @property
    def processing(self) -> bool:
        """True while an enrichment call is in flight."""
        return self._running

    def add_listener(self, listener: Callable[[EnrichmentResult], None]) -> None:
        """Call `listener(result)` after each applied enrichment."""
        self._listeners.append(listener)

    def add_settled_listener(self, listener: Callable[[], None]) -> None:
        """Call `listener()` whenever a run ends, whether it succeeded or failed."""
        self._settled_listeners.append(listener)

    # -------------------------------------------------------------------------
    # Triggers
    # -------------------------------------------------------------------------

    def _schedulable(self, content: str) -> bool:
        return len(normalize(content)) >= self._engine.min_schedule_length

    def content_changed(self, content: Optional[str] = None) -> None:
        """
        Record a content edit and (re)start the debounce timer.

        Must be called from the event loop. `content` defaults to the
        session state's current content.
        """
        if content is None:
            content = self._state.content
        if not self._schedulable(content):
            if self._debouncer.cancel():
                logger.debug("Content below enrichment threshold, pending enrichment cancelled")
            self._changed_while_running = False
            self._update_idle()
            return

        if self._running:
            self._changed_while_running = True
            return

        self._debouncer.trigger()
        self._idle.clear()

    async def regenerate(self) -> None:
        """
        Enrich the current content now, bypassing the debounce timer.

        If a run is in flight the request is coalesced and this returns
        immediately; the follow-up run happens when the current one ends.
        """
        if self._running:
            self._regenerate_requested = True
            return
        self._debouncer.cancel()
        await self._run()

    def cancel(self) -> None:
        """Drop a pending (not yet started) enrichment. A running one completes."""
        self._debouncer.cancel()
        self._changed_while_running = False
        self._regenerate_requested = False
        self._update_idle()

    async def wait_idle(self) -> None:
        """Wait until nothing is pending or running."""
        await self._idle.wait()

    async def wait_running(self) -> None:
        """Wait until no enrichment call is in flight (a pending timer may remain)."""
        await self._not_running.wait()

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def _run_debounced(self) -> None:
        if self._running:
            # A regenerate started in the meantime; fold this cycle into it
            self._changed_while_running = True
            return
        await self._run()

    async def _run(self) -> None:
        self._running = True
        self._idle.clear()
        self._not_running.clear()
        enriched = self._state.content
        try:
            while True:
                enriched = self._state.content
                await self._enrich_once(enriched)
                if not self._regenerate_requested:
                    break
                self._regenerate_requested = False
                if self._state.content == enriched:
                    logger.debug("Coalesced regenerate is a no-op, content unchanged")
                    break
                self._changed_while_running = False
        finally:
            self._running = False
            self._not_running.set()

        if self._changed_while_running:
            self._changed_while_running = False
            if self._state.content != enriched and self._schedulable(self._state.content):
                self._debouncer.trigger()
        self._update_idle()
        for listener in list(self._settled_listeners):
            listener()

    async def _enrich_once(self, content: str) -> None:
        logger.debug("Enriching %d chars of content", len(content))
        try:
            result = await self._engine.enrich(content)
        except Exception:
            # The engine absorbs backend failures; anything else is a bug,
            # but the session must still return to IDLE.
            logger.exception("Enrichment failed unexpectedly")
            return
        self._apply(content, result)

    def _apply(self, content: str, result: EnrichmentResult) -> None:
        state = self._state
        state.summary = result.summary
        state.embedding = result.embedding
        state.tags = merge_tags(state.tags, result.tags)
        state.enriched_content = content
        state.revision += 1
        for listener in list(self._listeners):
            listener(result)

    def _update_idle(self) -> None:
        if not self._running and not self._debouncer.pending:
            self._idle.set()
        else:
            self._idle.clear()
