from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict

DEFAULT_CATEGORIES = ("Personal", "Work", "Ideas", "Todo")


class EmbeddingRole(str, Enum):
    """Which side of the asymmetric model a text is embedded for."""

    DOCUMENT = "document"
    QUERY = "query"


@dataclass(frozen=True)
class Note:
    """
    Represents a single stored note. Notes are never edited in place;
    changing the text means deleting the note and inserting a new one.
    """
    id: int
    text: str
    category: str
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SearchResult:
    id: int
    text: str
    category: str
    distance: float

    @property
    def match_percent(self) -> float:
        """Presentation score; 100 for an exact match, 0 at the relevance cutoff."""
        return (1.0 - self.distance) * 100.0
