import fnmatch
import logging
import os
from typing import Callable, List, Optional, Type

import torch
from huggingface_hub import HfApi, hf_hub_download
from sentence_transformers import SentenceTransformer
from tqdm import tqdm

from semantic_notes.core.domain.progress import ProgressEvent
from semantic_notes.core.errors import InitializationError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]

# Weights for other runtimes that sentence-transformers never reads
IGNORED_FILES = [
    "*.onnx",
    "*.onnx_data",
    "onnx/*",
    "openvino/*",
    "flax_model.msgpack",
    "rust_model.ot",
    "tf_model.h5",
]


def select_device(preferred: Optional[str] = None) -> str:
    """Picks the fastest available torch device unless one is forced."""
    if preferred:
        return preferred
    if torch.cuda.is_available():
        return "cuda"
    mps = getattr(torch.backends, "mps", None)
    if mps is not None and mps.is_available():
        return "mps"
    return "cpu"


def file_progress_class(filename: str, total: int, report: ProgressCallback) -> Type[tqdm]:
    """
    Builds a silent tqdm class for ``hf_hub_download(tqdm_class=...)``.

    The Hub calls ``update()`` with every chunk it writes, and each call that
    moves the file forward becomes a ProgressEvent for ``filename``. The Hub
    may open more than one bar per file (e.g. a second one counting network
    bytes), so all bars of the class share the high-water mark and events never
    go backwards.
    """

    class FileProgress(tqdm):
        reported = 0

        def __init__(self, *args, **kwargs):
            kwargs["disable"] = True
            super().__init__(*args, **kwargs)
            self.loaded = kwargs.get("initial") or 0

        def update(self, n=1):
            super().update(n)
            self.loaded += n
            if self.loaded <= FileProgress.reported:
                return
            FileProgress.reported = self.loaded
            expected = total or int(self.total or 0)
            percent = min(100.0, 100.0 * self.loaded / expected) if expected else 0.0
            report(ProgressEvent(
                file=filename,
                percent=percent,
                bytes_loaded=int(self.loaded),
                bytes_total=expected,
            ))

    return FileProgress


class ModelLoader:
    """
    Fetches and builds the sentence-transformers model exactly once.

    While fetching, every model file reports 0%, then byte progress as it
    downloads, then 100% (files already in the cache go straight from 0% to
    100%). When the Hub is unreachable the files are expected to be in the
    local cache already and no events are reported.
    """

    def __init__(
        self,
        model_name: str,
        device: Optional[str] = None,
        dimension: int = 768,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.model_name = model_name
        self.device = device
        self.dimension = dimension
        self.progress_callback = progress_callback
        self._model: Optional[SentenceTransformer] = None

    def _report(self, event: ProgressEvent) -> None:
        if self.progress_callback:
            self.progress_callback(event)

    def _wanted(self, filename: str) -> bool:
        return not any(fnmatch.fnmatch(filename, pattern) for pattern in IGNORED_FILES)

    def fetch(self) -> List[str]:
        """Downloads model files into the Hugging Face cache, reporting progress per file."""
        if os.path.isdir(self.model_name):
            logger.info("Using local model directory %s", self.model_name)
            return []

        try:
            info = HfApi().model_info(self.model_name, files_metadata=True)
        except Exception as e:
            logger.warning("Could not reach the model hub (%s); loading %s from cache", e, self.model_name)
            return []

        fetched = []
        for sibling in info.siblings or []:
            filename = sibling.rfilename
            if not self._wanted(filename):
                continue
            total = sibling.size or 0
            self._report(ProgressEvent(file=filename, percent=0.0, bytes_loaded=0, bytes_total=total))
            bar_class = file_progress_class(filename, total, self._report)
            try:
                hf_hub_download(self.model_name, filename=filename, revision=info.sha, tqdm_class=bar_class)
            except Exception as e:
                raise InitializationError(f"Failed to download {filename} from {self.model_name}: {e}") from e
            if not total or bar_class.reported < total:
                self._report(ProgressEvent(file=filename, percent=100.0, bytes_loaded=total, bytes_total=total))
            fetched.append(filename)

        logger.info("Fetched %d files for %s", len(fetched), self.model_name)
        return fetched

    def _build(self, device: str) -> SentenceTransformer:
        # float32 only: stored vectors are raw float32 blobs
        return SentenceTransformer(
            self.model_name,
            device=device,
            model_kwargs={"torch_dtype": torch.float32},
        )

    def load(self) -> SentenceTransformer:
        if self._model is not None:
            return self._model

        self.fetch()

        device = select_device(self.device)
        logger.info("Loading embedding model %s on %s", self.model_name, device)
        try:
            model = self._build(device)
        except Exception as e:
            if device == "cpu":
                raise InitializationError(f"Failed to load embedding model {self.model_name}: {e}") from e
            logger.warning("Loading on %s failed (%s), falling back to cpu", device, e)
            try:
                model = self._build("cpu")
            except Exception as cpu_error:
                raise InitializationError(
                    f"Failed to load embedding model {self.model_name}: {cpu_error}"
                ) from cpu_error

        actual = model.get_sentence_embedding_dimension()
        if actual != self.dimension:
            raise InitializationError(
                f"Model {self.model_name} produces {actual}-dimensional embeddings, expected {self.dimension}"
            )

        self._model = model
        return model
