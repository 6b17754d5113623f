import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional

from semantic_notes.config import Settings
from semantic_notes.core.domain.progress import ProgressEvent
from semantic_notes.worker.dispatcher import Dispatcher
from semantic_notes.worker.protocol import Progress, Response

logger = logging.getLogger(__name__)

_STOP = object()


class NoteWorker:
    """
    Single-threaded actor that owns the note service.

    Hosts ``post`` requests and ``receive`` responses; they never touch the
    service directly. Requests run one at a time, in order, on one dedicated
    executor thread, so the SQLite connection and the model are only ever
    used from that thread and the event loop stays free.
    """

    def __init__(self, settings: Optional[Settings] = None, dispatcher: Optional[Dispatcher] = None):
        # created by start(), on the loop that runs the worker
        self.inbox: Optional[asyncio.Queue] = None
        self.outbox: Optional[asyncio.Queue] = None
        self._dispatcher = dispatcher or Dispatcher(settings or Settings.from_env())
        self._dispatcher.progress_callback = self._on_progress
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="note-worker")
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            logger.warning("Note worker is already running")
            return
        self._loop = asyncio.get_running_loop()
        self.inbox = asyncio.Queue()
        self.outbox = asyncio.Queue()
        self._task = asyncio.create_task(self._run())

    def post(self, request: Any) -> None:
        """Queues a request (typed message or wire dict). Never blocks."""
        if self.inbox is None:
            raise RuntimeError("Note worker is not started")
        self.inbox.put_nowait(request)

    async def receive(self) -> Response:
        if self.outbox is None:
            raise RuntimeError("Note worker is not started")
        return await self.outbox.get()

    def _on_progress(self, event: ProgressEvent) -> None:
        # called on the executor thread
        self._loop.call_soon_threadsafe(self.outbox.put_nowait, Progress.from_event(event))

    async def _run(self) -> None:
        while True:
            request = await self.inbox.get()
            try:
                if request is _STOP:
                    break
                response = await self._loop.run_in_executor(self._executor, self._dispatcher.dispatch, request)
                await self.outbox.put(response)
            finally:
                self.inbox.task_done()

    async def stop(self) -> None:
        """Finishes queued requests, then closes the store and the executor thread."""
        if self._task is not None:
            self.inbox.put_nowait(_STOP)
            await self._task
            self._task = None
        if self._loop is not None:
            await self._loop.run_in_executor(self._executor, self._dispatcher.close)
            self._loop = None
        self._executor.shutdown(wait=True)
