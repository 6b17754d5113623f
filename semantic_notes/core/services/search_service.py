from typing import List

import numpy as np

from semantic_notes.core.domain.note import EmbeddingRole, SearchResult
from semantic_notes.core.interfaces.ports import IEmbeddingProvider, INoteRepository


def l2_distances(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    """Euclidean distance from the query to every row of the matrix."""
    diffs = matrix - query
    return np.sqrt(np.maximum(np.einsum("ij,ij->i", diffs, diffs), 0.0))


class SearchService:
    """
    Brute-force nearest neighbour search over every stored embedding.

    Both sides are unit vectors, so distance**2 == 2 * (1 - cosine). Dropping
    results at distance >= 1.0 therefore drops anything with cosine
    similarity at or below 0.5.
    """

    def __init__(
        self,
        embedder: IEmbeddingProvider,
        repo: INoteRepository,
        limit: int = 10,
        max_distance: float = 1.0,
    ):
        self.embedder = embedder
        self.repo = repo
        self.limit = limit
        self.max_distance = max_distance

    def search(self, query: str) -> List[SearchResult]:
        query_vector = np.asarray(self.embedder.embed(query, EmbeddingRole.QUERY), dtype=np.float32)

        notes, matrix = self.repo.load_embeddings()
        if not notes:
            return []

        distances = l2_distances(matrix, query_vector)
        ids = np.array([note.id for note in notes])
        # nearest first, ties by id
        order = np.lexsort((ids, distances))

        results = []
        for index in order[:self.limit]:
            distance = float(distances[index])
            if distance >= self.max_distance:
                break
            note = notes[index]
            results.append(SearchResult(id=note.id, text=note.text, category=note.category, distance=distance))
        return results
