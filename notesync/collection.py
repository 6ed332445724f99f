"""
In-memory collection of the notes currently shown to the user.
"""

from typing import Iterable, Iterator, Optional

from .types import Note


class NoteCollection:
    """
    Notes keyed by id, listed most recently updated first.

    Mutations are synchronous and run on the event loop thread, so
    interleaved async operations never observe a half-applied change.
    """

    def __init__(self, notes: Iterable[Note] = ()):
        self._notes: dict[str, Note] = {}
        self.replace_all(notes)

    def replace_all(self, notes: Iterable[Note]) -> None:
        self._notes = {note.id: note for note in notes}

    def upsert(self, note: Note) -> None:
        self._notes[note.id] = note

    def remove(self, note_id: str) -> bool:
        return self._notes.pop(note_id, None) is not None

    def get(self, note_id: str) -> Optional[Note]:
        return self._notes.get(note_id)

    def all(self) -> list[Note]:
        return sorted(self._notes.values(), key=lambda n: n.updated_at, reverse=True)

    def __len__(self) -> int:
        return len(self._notes)

    def __iter__(self) -> Iterator[Note]:
        return iter(self.all())

    def __contains__(self, note_id: object) -> bool:
        return note_id in self._notes
