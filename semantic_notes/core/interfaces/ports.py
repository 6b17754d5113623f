from abc import ABC, abstractmethod
from typing import List, Tuple

import numpy as np

from semantic_notes.core.domain.note import EmbeddingRole, Note


class IEmbeddingProvider(ABC):
    """Interface for generating vector embeddings."""

    @abstractmethod
    def embed(self, text: str, role: EmbeddingRole = EmbeddingRole.DOCUMENT) -> np.ndarray:
        """Generates a unit-length float32 embedding for the given text."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Returns the dimension of the embeddings."""
        pass


class INoteRepository(ABC):
    """
    Interface for note storage. Notes and their embeddings are only ever
    written together, so there is no way to reach either relation on its own.
    """

    @abstractmethod
    def insert(self, text: str, category: str) -> int:
        """Stores a note with its document embedding and returns the new id."""
        pass

    @abstractmethod
    def list_notes(self) -> List[Note]:
        """Lists every note, newest first."""
        pass

    @abstractmethod
    def delete(self, note_id: int) -> None:
        """Removes a note and its embedding. Unknown ids are ignored."""
        pass

    @abstractmethod
    def load_embeddings(self) -> Tuple[List[Note], np.ndarray]:
        """Returns live notes and an (n, dim) float32 matrix of their embeddings, row-aligned."""
        pass
