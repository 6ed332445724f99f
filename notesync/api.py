"""
Notebook: the application entry point.

Wires configuration, the remote and local stores, the enrichment engine,
the persistence gateway and search together, and opens editing sessions.
"""

import logging
from pathlib import Path
from typing import Callable, Iterable, Optional

from .collection import NoteCollection
from .config import StoreConfig, get_default_store_path, load_or_create_config
from .enrichment import EnrichmentEngine
from .gateway import PersistenceGateway
from .local_store import DB_FILENAME, DraftStore, LocalNoteStore
from .remote_store import OfflineRemoteStore, RemoteStoreProtocol, create_remote_store
from .search import LiveSearch, SearchEngine, SearchHit
from .session import EditingSession
from .types import Note

logger = logging.getLogger(__name__)


class Notebook:
    """
    Notes for one store directory, with sync and AI enrichment.

    Example:
        nb = Notebook()
        session = nb.open_session("alice")
        session.edit(title="Trip", content="<p>Flights to Lisbon on Friday ...</p>")
        await session.save()
        hits = await nb.find("lisbon", "alice")
    """

    def __init__(
        self,
        store_path: Optional[str | Path] = None,
        *,
        config: Optional[StoreConfig] = None,
        remote_store: Optional[RemoteStoreProtocol] = None,
        local_store: Optional[LocalNoteStore] = None,
        engine: Optional[EnrichmentEngine] = None,
    ) -> None:
        """
        Open (or create) a notes store.

        Args:
            store_path: Store directory. Defaults to NOTESYNC_STORE_PATH or ~/.notesync.
            config: Pre-loaded StoreConfig (skips filesystem config discovery).
            remote_store: Injected remote store (skips creation from [remote] config).
            local_store: Injected local fallback store.
            engine: Injected enrichment engine (skips provider setup).
        """
        # --- Config resolution ---
        if config is not None:
            self._config = config
            self._store_path = config.path
        else:
            self._store_path = (
                Path(store_path).expanduser().resolve()
                if store_path is not None else get_default_store_path()
            )
            self._config = load_or_create_config(self._store_path)

        # --- Persistent operations log ---
        from .logging_config import configure_ops_log
        self._ops_log_handler = configure_ops_log(self._store_path)

        # --- Storage ---
        db_path = self._store_path / DB_FILENAME
        self.local = local_store if local_store is not None else LocalNoteStore(db_path)
        self.drafts = DraftStore(db_path)
        self.remote = remote_store if remote_store is not None else create_remote_store(self._config)

        # --- Enrichment, persistence, search ---
        self.engine = engine if engine is not None else EnrichmentEngine.from_config(self._config)
        self.collection = NoteCollection()
        self.gateway = PersistenceGateway(self.remote, self.local, self.engine, self.collection)
        self.search_engine = SearchEngine(self.engine)

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def store_path(self) -> Path:
        return self._store_path

    @property
    def remote_configured(self) -> bool:
        return not isinstance(self.remote, OfflineRemoteStore)

    # -------------------------------------------------------------------------
    # Editing
    # -------------------------------------------------------------------------

    def open_session(
        self, user_id: str, note: Optional[Note] = None, *, restore_draft: bool = True,
    ) -> EditingSession:
        """
        Start editing `note`, or a new note when None.

        An unsaved draft for the note is restored unless `restore_draft` is False.
        """
        timing = self._config.timing
        return EditingSession(
            self.gateway,
            self.engine,
            self.drafts,
            user_id,
            note,
            enrichment_delay=timing.enrichment_delay,
            autosave_delay=timing.autosave_delay,
            restore_draft=restore_draft,
        )

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    async def find(
        self,
        query: str,
        user_id: str,
        *,
        semantic: bool = False,
        limit: Optional[int] = None,
    ) -> list[SearchHit]:
        """Search the user's notes, refreshing the collection first."""
        notes = await self.gateway.list_notes(user_id)
        return await self.search_engine.search(
            query, notes, mode="semantic" if semantic else "text", limit=limit,
        )

    def live_search(
        self,
        on_results: Callable[[list[SearchHit]], None],
        *,
        corpus: Optional[Callable[[], Iterable[Note]]] = None,
        mode: str = "text",
    ) -> LiveSearch:
        """Debounced search over the in-memory collection (or `corpus`)."""
        return LiveSearch(
            self.search_engine,
            corpus if corpus is not None else self.collection.all,
            on_results,
            delay=self._config.timing.search_delay,
            mode=mode,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close stores and detach the ops log."""
        self.local.close()
        self.drafts.close()
        close_remote = getattr(self.remote, "close", None)
        if close_remote is not None:
            close_remote()
        if self._ops_log_handler is not None:
            logging.getLogger("notesync").removeHandler(self._ops_log_handler)
            self._ops_log_handler.close()
            self._ops_log_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
