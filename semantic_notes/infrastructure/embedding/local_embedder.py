from typing import Optional, Union

import numpy as np
from sentence_transformers import SentenceTransformer

from semantic_notes.core.domain.note import EmbeddingRole
from semantic_notes.core.errors import EmbeddingError
from semantic_notes.core.interfaces.ports import IEmbeddingProvider
from semantic_notes.infrastructure.embedding.model_loader import ModelLoader

# EmbeddingGemma is trained with different framings for stored text and queries
PROMPTS = {
    EmbeddingRole.DOCUMENT: "title: none | text: ",
    EmbeddingRole.QUERY: "task: search result | query: ",
}


class LocalEmbeddingProvider(IEmbeddingProvider):
    def __init__(self, loader: ModelLoader):
        self.loader = loader
        self.model: Optional[SentenceTransformer] = None

    @property
    def ready(self) -> bool:
        return self.model is not None

    def load(self) -> None:
        self.model = self.loader.load()

    def embed(self, text: str, role: Union[EmbeddingRole, str] = EmbeddingRole.DOCUMENT) -> np.ndarray:
        if self.model is None:
            raise EmbeddingError("Embedding model is not loaded yet")
        if not isinstance(text, str) or not text.strip():
            raise EmbeddingError("Cannot embed empty text")
        try:
            role = EmbeddingRole(role)
        except ValueError:
            raise EmbeddingError(f"Unknown embedding role: {role!r}")

        try:
            embedding = self.model.encode(
                text,
                prompt=PROMPTS[role],
                normalize_embeddings=True,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
        except Exception as e:
            raise EmbeddingError(f"Embedding failed: {e}") from e

        return np.asarray(embedding, dtype=np.float32)

    def get_dimension(self) -> int:
        return self.loader.dimension
