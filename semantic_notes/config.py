import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_MODEL = "google/embeddinggemma-300m"
DEFAULT_DB_PATH = "notes.db"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    model_name: str = DEFAULT_MODEL
    device: Optional[str] = None
    db_path: str = DEFAULT_DB_PATH
    durable: bool = True
    dimension: int = 768
    search_limit: int = 10
    max_distance: float = 1.0
    refresh_after_add: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Settings":
        """Builds settings from the environment, reading a .env file first if present."""
        load_dotenv(dotenv_path)

        return cls(
            model_name=os.getenv("SEMANTIC_NOTES_MODEL", DEFAULT_MODEL),
            device=os.getenv("SEMANTIC_NOTES_DEVICE") or None,
            db_path=os.getenv("SEMANTIC_NOTES_DB_PATH", DEFAULT_DB_PATH),
            durable=_env_flag("SEMANTIC_NOTES_DURABLE", True),
            dimension=int(os.getenv("SEMANTIC_NOTES_DIMENSION", "768")),
            search_limit=int(os.getenv("SEMANTIC_NOTES_SEARCH_LIMIT", "10")),
            max_distance=float(os.getenv("SEMANTIC_NOTES_MAX_DISTANCE", "1.0")),
            refresh_after_add=_env_flag("SEMANTIC_NOTES_REFRESH_AFTER_ADD", True),
            log_level=os.getenv("SEMANTIC_NOTES_LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    # sentence-transformers and the hub client are chatty at INFO
    for noisy in ("sentence_transformers", "huggingface_hub", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
