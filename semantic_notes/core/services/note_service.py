import logging
from typing import List, Optional

from semantic_notes.config import Settings
from semantic_notes.core.domain.note import Note, SearchResult
from semantic_notes.core.errors import InitializationError, StorageError
from semantic_notes.core.services.search_service import SearchService
from semantic_notes.infrastructure.embedding.local_embedder import LocalEmbeddingProvider
from semantic_notes.infrastructure.embedding.model_loader import ModelLoader, ProgressCallback
from semantic_notes.infrastructure.storage.sqlite_store import SQLiteNoteStore

logger = logging.getLogger(__name__)


class NoteService:
    """
    Everything a request needs once the worker is initialized: the loaded
    embedder, the note store and the search engine built on top of them.
    """

    def __init__(self, embedder, store, search_engine: SearchService):
        self.embedder = embedder
        self.store = store
        self.search_engine = search_engine

    @classmethod
    def create(cls, settings: Settings, progress_callback: Optional[ProgressCallback] = None) -> "NoteService":
        """Loads the model and opens the store. Raises InitializationError on any failure."""
        loader = ModelLoader(
            settings.model_name,
            device=settings.device,
            dimension=settings.dimension,
            progress_callback=progress_callback,
        )
        embedder = LocalEmbeddingProvider(loader)
        embedder.load()

        try:
            store = SQLiteNoteStore(
                embedder,
                db_path=settings.db_path,
                durable=settings.durable,
                dimension=settings.dimension,
            )
        except StorageError as e:
            raise InitializationError(str(e)) from e

        search_engine = SearchService(
            embedder,
            store,
            limit=settings.search_limit,
            max_distance=settings.max_distance,
        )
        logger.info("Note service ready (%d notes, durable=%s)", store.count(), store.is_durable)
        return cls(embedder, store, search_engine)

    def add_note(self, text: str, category: str) -> int:
        return self.store.insert(text, category)

    def list_notes(self) -> List[Note]:
        return self.store.list_notes()

    def delete_note(self, note_id: int) -> None:
        self.store.delete(note_id)

    def search(self, query: str) -> List[SearchResult]:
        return self.search_engine.search(query)

    def close(self) -> None:
        self.store.close()
