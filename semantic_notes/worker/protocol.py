"""
Messages exchanged between a host and the note worker.

Requests and responses are small dataclasses. Each one carries a ``TYPE``
tag, and ``to_dict()`` gives a JSON-safe form that ``request_from_dict`` and
``response_from_dict`` turn back into the typed message.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Type, Union

from semantic_notes.core.domain.note import Note, SearchResult
from semantic_notes.core.domain.progress import ProgressEvent
from semantic_notes.core.errors import ProtocolError


# Requests

@dataclass(frozen=True)
class Init:
    TYPE: ClassVar[str] = "INIT"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE}


@dataclass(frozen=True)
class AddNote:
    TYPE: ClassVar[str] = "ADD_NOTE"
    text: str
    category: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE, "payload": {"text": self.text, "category": self.category}}


@dataclass(frozen=True)
class Search:
    TYPE: ClassVar[str] = "SEARCH"
    query: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE, "payload": self.query}


@dataclass(frozen=True)
class ListNotes:
    TYPE: ClassVar[str] = "LIST_NOTES"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE}


@dataclass(frozen=True)
class DeleteNote:
    TYPE: ClassVar[str] = "DELETE_NOTE"
    id: int

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE, "payload": self.id}


Request = Union[Init, AddNote, Search, ListNotes, DeleteNote]


# Responses

@dataclass(frozen=True)
class Ready:
    TYPE: ClassVar[str] = "READY"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE}


@dataclass(frozen=True)
class NoteAdded:
    TYPE: ClassVar[str] = "NOTE_ADDED"
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE, "text": self.text}


@dataclass(frozen=True)
class SearchResults:
    TYPE: ClassVar[str] = "SEARCH_RESULTS"
    results: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_results(cls, results: List[SearchResult]) -> "SearchResults":
        return cls(results=[
            {"text": r.text, "category": r.category, "distance": r.distance} for r in results
        ])

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE, "results": list(self.results)}


@dataclass(frozen=True)
class NotesListed:
    TYPE: ClassVar[str] = "NOTES_LISTED"
    results: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_notes(cls, notes: List[Note]) -> "NotesListed":
        return cls(results=[note.to_dict() for note in notes])

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE, "results": list(self.results)}


@dataclass(frozen=True)
class NoteDeleted:
    TYPE: ClassVar[str] = "NOTE_DELETED"
    id: int

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE, "id": self.id}


@dataclass(frozen=True)
class Error:
    TYPE: ClassVar[str] = "ERROR"
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE, "error": self.message}


@dataclass(frozen=True)
class Progress:
    """Unsolicited; only sent between Init and its Ready or Error."""
    TYPE: ClassVar[str] = "PROGRESS"
    file: str
    percent: float
    bytes_loaded: int
    bytes_total: int

    @classmethod
    def from_event(cls, event: ProgressEvent) -> "Progress":
        return cls(
            file=event.file,
            percent=event.percent,
            bytes_loaded=event.bytes_loaded,
            bytes_total=event.bytes_total,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.TYPE,
            "payload": {
                "file": self.file,
                "percent": self.percent,
                "bytes_loaded": self.bytes_loaded,
                "bytes_total": self.bytes_total,
            },
        }


Response = Union[Ready, NoteAdded, SearchResults, NotesListed, NoteDeleted, Error, Progress]


# Decoding

def _require(data: Dict[str, Any], key: str, kind: Union[Type, tuple]) -> Any:
    if key not in data:
        raise ProtocolError(f"Message is missing '{key}'")
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, kind):
        raise ProtocolError(f"'{key}' has the wrong type: {type(value).__name__}")
    return value


def _payload(data: Dict[str, Any]) -> Dict[str, Any]:
    return _require(data, "payload", dict)


def _message_type(data: Any) -> str:
    if not isinstance(data, dict):
        raise ProtocolError(f"Expected a message dict, got {type(data).__name__}")
    return _require(data, "type", str)


_REQUEST_DECODERS = {
    Init.TYPE: lambda data: Init(),
    AddNote.TYPE: lambda data: AddNote(
        text=_require(_payload(data), "text", str),
        category=_require(_payload(data), "category", str),
    ),
    Search.TYPE: lambda data: Search(query=_require(data, "payload", str)),
    ListNotes.TYPE: lambda data: ListNotes(),
    DeleteNote.TYPE: lambda data: DeleteNote(id=_require(data, "payload", int)),
}

_RESPONSE_DECODERS = {
    Ready.TYPE: lambda data: Ready(),
    NoteAdded.TYPE: lambda data: NoteAdded(text=_require(data, "text", str)),
    SearchResults.TYPE: lambda data: SearchResults(results=_require(data, "results", list)),
    NotesListed.TYPE: lambda data: NotesListed(results=_require(data, "results", list)),
    NoteDeleted.TYPE: lambda data: NoteDeleted(id=_require(data, "id", int)),
    Error.TYPE: lambda data: Error(message=_require(data, "error", str)),
    Progress.TYPE: lambda data: Progress(
        file=_require(_payload(data), "file", str),
        percent=_require(_payload(data), "percent", (int, float)),
        bytes_loaded=_require(_payload(data), "bytes_loaded", int),
        bytes_total=_require(_payload(data), "bytes_total", int),
    ),
}


def request_from_dict(data: Dict[str, Any]) -> Request:
    message_type = _message_type(data)
    decoder = _REQUEST_DECODERS.get(message_type)
    if decoder is None:
        raise ProtocolError(f"Unknown request type: {message_type}")
    return decoder(data)


def response_from_dict(data: Dict[str, Any]) -> Response:
    message_type = _message_type(data)
    decoder = _RESPONSE_DECODERS.get(message_type)
    if decoder is None:
        raise ProtocolError(f"Unknown response type: {message_type}")
    return decoder(data)
