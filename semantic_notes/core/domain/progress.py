from dataclasses import dataclass


@dataclass(frozen=True)
class ProgressEvent:
    """One step of model download progress for a single file."""
    file: str
    percent: float
    bytes_loaded: int
    bytes_total: int
