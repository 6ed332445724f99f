"""
Data types for notes, versions, drafts and enrichment results.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


# Draft key used before a note has an id
NEW_NOTE_DRAFT_KEY = "new-note-draft"


def utc_now() -> str:
    """Current UTC timestamp: YYYY-MM-DDTHH:MM:SS.ffffff.

    Microsecond precision so remote and local copies of a note written
    within the same second still order correctly by updated_at.
    """
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")


def merge_tags(existing: list[str], new: list[str]) -> list[str]:
    """
    Union two tag lists, deduplicating case-insensitively.

    The first occurrence wins, so existing tags keep their original casing:
    merge_tags(["Work", "urgent"], ["work", "Urgent"]) == ["Work", "urgent"]
    """
    seen: set[str] = set()
    merged: list[str] = []
    for tag in [*existing, *new]:
        tag = tag.strip()
        key = tag.casefold()
        if not tag or key in seen:
            continue
        seen.add(key)
        merged.append(tag)
    return merged


@dataclass(frozen=True)
class Version:
    """Immutable snapshot of a note's title and content."""
    title: str
    content: str
    timestamp: str


@dataclass(frozen=True)
class EnrichmentResult:
    """Summary, tags and embedding computed together from one input text."""
    summary: str
    tags: list[str]
    embedding: list[float]


@dataclass
class Note:
    """
    A persisted note.

    Attributes:
        id: Opaque unique identifier
        title: Note title
        content: Rich-text markup
        owner_id: Identity of the creating user (only identity allowed to mutate)
        tags: Tags, unique case-insensitively
        summary: Generated summary, possibly empty
        embedding: Semantic embedding, or None if never computed
        shared_with: Identities with read access
        created_at / updated_at: UTC ISO timestamps
        versions: Version history, oldest first
    """
    id: str
    title: str
    content: str
    owner_id: str
    tags: list[str] = field(default_factory=list)
    summary: str = ""
    embedding: Optional[list[float]] = None
    shared_with: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""
    versions: list[Version] = field(default_factory=list)

    @property
    def plain_text(self) -> str:
        """Content with markup stripped (derived, never stored)."""
        from .normalize import normalize
        return normalize(self.content)

    def can_read(self, identity: str) -> bool:
        return identity == self.owner_id or identity in self.shared_with

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON document stored by both stores."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Note":
        d = dict(d)
        versions = [Version(**v) for v in d.pop("versions", None) or []]
        embedding = d.pop("embedding", None)
        return cls(
            id=d["id"],
            title=d.get("title") or "",
            content=d.get("content") or "",
            owner_id=d["owner_id"],
            tags=list(d.get("tags") or []),
            summary=d.get("summary") or "",
            embedding=list(embedding) if embedding is not None else None,
            shared_with=list(d.get("shared_with") or []),
            created_at=d.get("created_at") or "",
            updated_at=d.get("updated_at") or "",
            versions=versions,
        )

    def __str__(self) -> str:
        return f"{self.id}: {self.title or 'Untitled'} ({self.summary[:60]})"


@dataclass
class NoteInput:
    """Payload for creating a note. Enrichment fields are optional."""
    title: str = ""
    content: str = ""
    tags: list[str] = field(default_factory=list)
    summary: Optional[str] = None
    embedding: Optional[list[float]] = None


@dataclass
class NoteUpdate:
    """
    Typed partial update.

    None means "leave unchanged". When applied, tags are unioned with the
    stored tags (case-insensitive); every other provided field overwrites.
    """
    title: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[list[str]] = None
    summary: Optional[str] = None
    embedding: Optional[list[float]] = None


@dataclass
class Draft:
    """Unsaved editor snapshot, kept only until the first successful save."""
    key: str
    title: str = ""
    content: str = ""
    tags: list[str] = field(default_factory=list)
    timestamp: str = field(default_factory=utc_now)


@dataclass
class EditorState:
    """
    Mutable state of one note-editing session.

    `revision` increases on every user edit and every applied enrichment;
    autosave compares it against the last saved revision.
    """
    title: str = ""
    content: str = ""
    tags: list[str] = field(default_factory=list)
    summary: str = ""
    embedding: Optional[list[float]] = None
    note: Optional[Note] = None
    revision: int = 0
    # Content the current summary/embedding were computed from
    enriched_content: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.title and not self.content

    @property
    def draft_key(self) -> str:
        return self.note.id if self.note else NEW_NOTE_DRAFT_KEY
