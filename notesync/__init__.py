"""
notesync: notes with remote sync, local fallback and AI enrichment.
"""

from .api import Notebook
from .enrichment import EnrichmentEngine
from .errors import AccessDenied, BackendUnavailable, DimensionMismatch, NotFound, NoteSyncError
from .gateway import PersistenceGateway
from .normalize import normalize
from .search import SearchEngine, SearchHit, cosine_similarity
from .session import EditingSession
from .types import EnrichmentResult, Note, NoteInput, NoteUpdate, Version

__version__ = "0.1.0"

__all__ = [
    "AccessDenied",
    "BackendUnavailable",
    "DimensionMismatch",
    "EditingSession",
    "EnrichmentEngine",
    "EnrichmentResult",
    "NotFound",
    "Note",
    "NoteInput",
    "NoteSyncError",
    "NoteUpdate",
    "Notebook",
    "PersistenceGateway",
    "SearchEngine",
    "SearchHit",
    "Version",
    "cosine_similarity",
    "normalize",
]
