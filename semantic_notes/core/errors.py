class SemanticNotesError(Exception):
    """Base class for every failure the note worker reports to its host."""


class InitializationError(SemanticNotesError):
    """The embedding model or the storage backend failed to load."""


class EmbeddingError(SemanticNotesError):
    """Inference was invoked before the model was ready, or the input was malformed."""


class StorageError(SemanticNotesError):
    """A transactional read or write against the note database failed."""


class ProtocolError(SemanticNotesError):
    """A request could not be decoded or is not valid in the worker's current state."""
