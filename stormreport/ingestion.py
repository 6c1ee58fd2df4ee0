"""
Photo ingestion - asynchronous per-photo processing.

Each added photo gets its own asyncio task that decodes and measures the
image off the event loop, reporting progress to the store until it reaches
100. Removing a photo cancels its task; a task that finds its record gone
simply stops, so no progress update can bring a removed photo back.
"""

import asyncio
from collections.abc import Iterable

import structlog

from stormreport.photo_store import PhotoStore
from stormreport.imaging import measure_image
from stormreport.models import PhotoNotFound, ImageDecodeError
from stormreport.config import INGEST_PROGRESS_STEPS

logger = structlog.get_logger(__name__)


class PhotoIngestor:
    """Owns the in-flight ingestion tasks for one store."""

    def __init__(self, store: PhotoStore):
        self._store = store
        self._tasks: dict[str, asyncio.Task] = {}
        self._cancelled: set[str] = set()
        self._retired: set[asyncio.Task] = set()

    def start(self, photo_ids: Iterable[str]) -> list[asyncio.Task]:
        """
        Schedules ingestion for each photo. Must be called from a running loop.

        Returns immediately; further photos can be added while these run.
        A photo whose earlier task was cancelled gets a fresh task.
        """
        started = []
        for photo_id in photo_ids:
            existing = self._tasks.get(photo_id)
            if existing is not None and not existing.done() and photo_id not in self._cancelled:
                continue
            task = asyncio.create_task(self._ingest(photo_id), name=f"ingest-{photo_id}")
            task.add_done_callback(lambda t, pid=photo_id: self._forget(pid, t))
            self._tasks[photo_id] = task
            self._cancelled.discard(photo_id)
            if existing is not None and not existing.done():
                self._retired.add(existing)
                existing.add_done_callback(self._retired.discard)
            started.append(task)
        return started

    def cancel(self, photo_id: str) -> bool:
        """Cancels in-flight ingestion. Returns False when nothing was running."""
        task = self._tasks.get(photo_id)
        if task is None or task.done() or photo_id in self._cancelled:
            return False
        task.cancel()
        self._cancelled.add(photo_id)
        logger.info("ingestion_cancelled", photo_id=photo_id)
        return True

    def in_flight(self) -> list[str]:
        return [
            photo_id for photo_id, task in self._tasks.items()
            if not task.done() and photo_id not in self._cancelled
        ]

    async def wait(self) -> None:
        """Waits for all outstanding ingestion tasks, including cancelled ones still unwinding."""
        tasks = [*self._tasks.values(), *self._retired]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # --- Internal ---

    def _forget(self, photo_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(photo_id) is task:
            del self._tasks[photo_id]
            self._cancelled.discard(photo_id)

    async def _ingest(self, photo_id: str) -> None:
        try:
            record = self._store.get(photo_id)
            self._store.set_progress(photo_id, INGEST_PROGRESS_STEPS[0])

            try:
                width, height = await asyncio.to_thread(measure_image, record.image_bytes)
            except ImageDecodeError as e:
                self._store.mark_failed(photo_id, str(e))
                logger.warning("ingestion_failed", photo_id=photo_id, error=str(e))
                return

            for step in INGEST_PROGRESS_STEPS[1:]:
                self._store.set_progress(photo_id, step)
                await asyncio.sleep(0)

            self._store.mark_ready(photo_id, width=width, height=height)
            logger.info("ingestion_complete", photo_id=photo_id, width=width, height=height)

        except PhotoNotFound:
            logger.info("ingestion_abandoned", photo_id=photo_id, reason="photo_removed")
