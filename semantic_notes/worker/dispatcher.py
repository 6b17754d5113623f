import logging
from typing import Any, Callable, Optional

from semantic_notes.config import Settings
from semantic_notes.core.errors import InitializationError, ProtocolError, SemanticNotesError
from semantic_notes.core.services.note_service import NoteService
from semantic_notes.infrastructure.embedding.model_loader import ProgressCallback
from semantic_notes.worker.protocol import (
    AddNote,
    DeleteNote,
    Error,
    Init,
    ListNotes,
    NoteAdded,
    NoteDeleted,
    NotesListed,
    Ready,
    Response,
    Search,
    SearchResults,
    request_from_dict,
)

logger = logging.getLogger(__name__)

ServiceFactory = Callable[[Settings, Optional[ProgressCallback]], NoteService]


class Dispatcher:
    """
    Maps each request to its handler and turns every outcome into exactly
    one response. Nothing raised by a handler gets past ``dispatch``.

    A failed Init is terminal: every later request is answered with an Error.
    """

    IDLE = "idle"
    READY = "ready"
    FAILED = "failed"

    def __init__(
        self,
        settings: Settings,
        service_factory: ServiceFactory = NoteService.create,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.settings = settings
        self.service_factory = service_factory
        self.progress_callback = progress_callback
        self.state = self.IDLE
        self.service: Optional[NoteService] = None
        self._init_error: Optional[str] = None
        self._handlers = {
            Init: self._init,
            AddNote: self._add_note,
            Search: self._search,
            ListNotes: self._list_notes,
            DeleteNote: self._delete_note,
        }

    def dispatch(self, request: Any) -> Response:
        try:
            if isinstance(request, dict):
                request = request_from_dict(request)
            handler = self._handlers.get(type(request))
            if handler is None:
                raise ProtocolError(f"Unsupported request: {type(request).__name__}")
            return handler(request)
        except SemanticNotesError as e:
            logger.warning("%s failed: %s", type(request).__name__, e)
            return Error(message=str(e))
        except Exception as e:
            logger.exception("Unexpected error handling %s", type(request).__name__)
            return Error(message=str(e) or type(e).__name__)

    def _require_service(self) -> NoteService:
        if self.state == self.FAILED:
            raise InitializationError(f"Worker failed to initialize: {self._init_error}")
        if self.service is None:
            raise ProtocolError("Worker is not initialized; send Init first")
        return self.service

    def _init(self, request: Init) -> Response:
        if self.state == self.READY:
            raise ProtocolError("Worker is already initialized")
        if self.state == self.FAILED:
            self._require_service()

        logger.info("Initializing note worker...")
        try:
            self.service = self.service_factory(self.settings, self.progress_callback)
        except Exception as e:
            self.state = self.FAILED
            self._init_error = str(e) or type(e).__name__
            if isinstance(e, SemanticNotesError):
                raise
            raise InitializationError(self._init_error) from e

        self.state = self.READY
        logger.info("System ready.")
        return Ready()

    def _add_note(self, request: AddNote) -> Response:
        self._require_service().add_note(request.text, request.category)
        return NoteAdded(text=request.text)

    def _search(self, request: Search) -> Response:
        results = self._require_service().search(request.query)
        return SearchResults.from_results(results)

    def _list_notes(self, request: ListNotes) -> Response:
        return NotesListed.from_notes(self._require_service().list_notes())

    def _delete_note(self, request: DeleteNote) -> Response:
        self._require_service().delete_note(request.id)
        return NoteDeleted(id=request.id)

    def close(self) -> None:
        if self.service is not None:
            self.service.close()
            self.service = None
