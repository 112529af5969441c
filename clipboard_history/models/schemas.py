"""Data models for the clipboard history store."""

from typing import Literal
from pydantic import BaseModel


class EntryRecord(BaseModel):
    """Persisted entry metadata; the content lives under its own key."""

    id: str
    type: str
    preview: str
    size: str
    timestamp: int
    time: str


class ClipboardEntry(BaseModel):
    """A full clipboard entry as returned to callers."""

    id: str
    content: str
    type: str
    preview: str
    size: str
    timestamp: int
    time: str

    @classmethod
    def from_record(cls, record: EntryRecord, content: str) -> "ClipboardEntry":
        return cls(content=content, **record.model_dump())

    def to_record(self) -> EntryRecord:
        return EntryRecord(**self.model_dump(exclude={"content"}))


class AddResult(ClipboardEntry):
    """Result of an add: the entry plus what happened to it.

    ``action`` is never persisted.
    """

    action: Literal["added", "moved"]


class SimilarHit(BaseModel):
    """One similarity search hit."""

    id: str
