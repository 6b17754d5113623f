from typing import Any, Callable, Dict, List, Optional

from semantic_notes.config import Settings
from semantic_notes.core.errors import ProtocolError, SemanticNotesError
from semantic_notes.worker.protocol import (
    AddNote,
    DeleteNote,
    Error,
    Init,
    ListNotes,
    NoteAdded,
    NoteDeleted,
    NotesListed,
    Progress,
    Ready,
    Response,
    Search,
    SearchResults,
)
from semantic_notes.worker.worker import NoteWorker


# Shorter queries carry too little meaning to be worth embedding
MIN_QUERY_LENGTH = 2


class RequestFailed(SemanticNotesError):
    """The worker answered a request with an Error response."""


class NoteClient:
    """
    Host-side handle on a note worker.

    Keeps the last known status, note list and search results, the way a UI
    would, and only ever talks to the worker through messages. Requests are
    sent one at a time.
    """

    def __init__(
        self,
        worker: Optional[NoteWorker] = None,
        settings: Optional[Settings] = None,
        refresh_after_add: Optional[bool] = None,
        on_progress: Optional[Callable[[Progress], None]] = None,
    ):
        settings = settings or Settings.from_env()
        self.worker = worker or NoteWorker(settings)
        self.refresh_after_add = settings.refresh_after_add if refresh_after_add is None else refresh_after_add
        self.on_progress = on_progress

        self.status = "idle"
        self.error: Optional[str] = None
        self.notes: List[Dict[str, Any]] = []
        self.search_results: List[Dict[str, Any]] = []
        self.is_indexing = False

    async def __aenter__(self) -> "NoteClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _request(self, request, expected: type) -> Response:
        self.worker.post(request)
        while True:
            response = await self.worker.receive()
            if isinstance(response, Progress):
                if self.on_progress:
                    self.on_progress(response)
                continue
            if isinstance(response, Error):
                self.error = response.message
                raise RequestFailed(response.message)
            if not isinstance(response, expected):
                raise ProtocolError(f"Expected {expected.TYPE}, got {response.TYPE}")
            return response

    async def start(self) -> None:
        """Starts the worker and waits until the model and store are ready."""
        self.status = "loading"
        await self.worker.start()
        try:
            await self._request(Init(), Ready)
        except RequestFailed:
            self.status = "error"
            raise
        self.status = "ready"

    async def add_note(self, text: str, category: str) -> None:
        """
        Stores a note. With ``refresh_after_add`` the cached list is re-fetched
        afterwards; without it the cached list stays as it was until the next
        ``list_notes()``, since NoteAdded carries no id or timestamp.
        """
        self.is_indexing = True
        try:
            await self._request(AddNote(text=text, category=category), NoteAdded)
        finally:
            self.is_indexing = False
        if self.refresh_after_add:
            await self.list_notes()

    async def search(self, query: str) -> List[Dict[str, Any]]:
        if len(query.strip()) < MIN_QUERY_LENGTH:
            self.search_results = []
            return self.search_results
        response = await self._request(Search(query=query), SearchResults)
        self.search_results = response.results
        return self.search_results

    async def list_notes(self) -> List[Dict[str, Any]]:
        response = await self._request(ListNotes(), NotesListed)
        self.notes = response.results
        return self.notes

    async def delete_note(self, note_id: int) -> None:
        response = await self._request(DeleteNote(id=note_id), NoteDeleted)
        self.notes = [note for note in self.notes if note["id"] != response.id]

    async def close(self) -> None:
        await self.worker.stop()
