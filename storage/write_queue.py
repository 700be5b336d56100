"""
Globally ordered write queue for collection documents.

A single worker drains the queue, so at most one document is being written
at any time and writes are applied in submission order across all files.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from .errors import PersistenceError
from .json_files import dump_collection, write_document
from .store import Collection

logger = structlog.get_logger(__name__)


@dataclass
class WriteJob:
    """One pending document write."""
    collection: Collection
    text: str
    done: asyncio.Future
    sequence: int


class WriteQueue:
    """
    Serializes persistence of every collection through one worker task.

    Each enqueued write resolves its own future. A failed write resolves
    only that future with PersistenceError; the worker moves on to the
    next job, so an earlier failure never rejects later enqueues.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._sequence = 0
        self.writes_completed = 0
        self.writes_failed = 0

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def start(self) -> None:
        """Start the worker on the running event loop."""
        if self.running:
            return
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run(), name="library-write-queue")
        logger.info("Write queue started", data_dir=str(self.data_dir))

    async def stop(self) -> None:
        """Wait for queued writes to settle, then stop the worker."""
        if not self.running:
            return
        await self._queue.join()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Write queue stopped",
                    writes_completed=self.writes_completed,
                    writes_failed=self.writes_failed)

    def enqueue(self, collection: Collection, snapshot: List[Dict[str, Any]]) -> asyncio.Future:
        """
        Queue a write of ``snapshot`` to the document of ``collection``.

        The snapshot is rendered immediately, so the bytes written reflect
        the collection as it was at submission time.

        Returns:
            Future resolved once the write is applied, or failed with
            PersistenceError
        """
        if not self.running:
            self.start()

        self._sequence += 1
        job = WriteJob(
            collection=collection,
            text=dump_collection(snapshot),
            done=asyncio.get_running_loop().create_future(),
            sequence=self._sequence,
        )
        self._queue.put_nowait(job)
        logger.debug("Write queued", file=collection.file_name,
                     sequence=job.sequence, pending=self.pending)
        return job.done

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._apply(job)
            finally:
                self._queue.task_done()

    async def _apply(self, job: WriteJob) -> None:
        path = self.data_dir / job.collection.file_name
        try:
            await asyncio.to_thread(write_document, path, job.text)
        except Exception as e:
            self.writes_failed += 1
            logger.error("Failed to write collection", file=job.collection.file_name,
                         sequence=job.sequence, error=str(e))
            if not job.done.done():
                job.done.set_exception(PersistenceError(job.collection.file_name, e))
            return

        self.writes_completed += 1
        logger.debug("Collection written", file=job.collection.file_name, sequence=job.sequence)
        if not job.done.done():
            job.done.set_result(None)
