"""
Photo store - bounded, ordered collection of photos for one project session.

Enforces capacity and per-file limits. Every mutation replaces the frozen
PhotoRecord, so snapshots returned by list() never change underneath the
caller. All count-and-insert work runs under a single lock.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable, Iterable, Iterator

import structlog

from stormreport.models import (
    PhotoRecord,
    PhotoUpload,
    CapacityExceeded,
    InvalidMediaType,
    FileTooLarge,
    PhotoNotFound,
)
from stormreport.config import (
    MAX_PHOTOS,
    MAX_PHOTO_SIZE_BYTES,
    MAX_PHOTO_SIZE_MB,
    ALLOWED_MEDIA_PREFIX,
    PROGRESS_COMPLETE,
)

logger = structlog.get_logger(__name__)


def _new_photo_id() -> str:
    return uuid.uuid4().hex[:12]


class PhotoSnapshot:
    """Restartable view over the photos present when list() was called."""

    def __init__(self, records: tuple[PhotoRecord, ...]):
        self._records = records

    def __iter__(self) -> Iterator[PhotoRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)


class PhotoStore:
    """
    Holds photo records keyed by id.

    order is a stable insertion index drawn from a counter that never
    goes backwards, so removal never renumbers siblings and a later add
    never reuses an order value.
    """

    def __init__(
        self,
        max_photos: int = MAX_PHOTOS,
        id_factory: Callable[[], str] = _new_photo_id,
    ):
        self._max_photos = max_photos
        self._id_factory = id_factory
        self._records: dict[str, PhotoRecord] = {}
        self._next_order = 0
        self._lock = threading.Lock()

    # --- Public API ---

    def add(self, files: Iterable[PhotoUpload]) -> list[PhotoRecord]:
        """
        Adds a batch of uploads atomically.

        Raises:
            CapacityExceeded: If the batch would exceed the photo limit.
            InvalidMediaType: If any file is not declared as an image.
            FileTooLarge: If any file exceeds the size limit.

        Nothing is added unless every file passes.
        """
        batch = list(files)

        with self._lock:
            current = len(self._records)
            if current + len(batch) > self._max_photos:
                logger.warning(
                    "photo_batch_rejected",
                    reason="capacity",
                    current=current,
                    batch_size=len(batch),
                )
                raise CapacityExceeded(
                    f"Too many photos: {current} stored + {len(batch)} new "
                    f"(max {self._max_photos} per project)"
                )

            for upload in batch:
                _check_upload(upload)

            added: list[PhotoRecord] = []
            for upload in batch:
                record = PhotoRecord(
                    id=self._unique_id(),
                    filename=upload.filename,
                    media_type=upload.media_type,
                    image_bytes=upload.data,
                    size_bytes=upload.size_bytes,
                    order=self._next_order,
                )
                self._next_order += 1
                self._records[record.id] = record
                added.append(record)

        logger.info("photos_added", count=len(added), total=len(self))
        return added

    def remove(self, photo_id: str) -> None:
        """
        Raises:
            PhotoNotFound: If no photo has this id.
        """
        with self._lock:
            if self._records.pop(photo_id, None) is None:
                raise PhotoNotFound(f"Photo {photo_id} not found")
        logger.info("photo_removed", photo_id=photo_id)

    def update_notes(self, photo_id: str, notes: str) -> PhotoRecord:
        """
        Replaces the notes on one photo.

        Raises:
            PhotoNotFound: If no photo has this id.
        """
        return self._replace(photo_id, notes=notes)

    def get(self, photo_id: str) -> PhotoRecord:
        with self._lock:
            try:
                return self._records[photo_id]
            except KeyError:
                raise PhotoNotFound(f"Photo {photo_id} not found")

    def list(self) -> PhotoSnapshot:
        """Snapshot of current photos in ascending insertion order."""
        with self._lock:
            records = tuple(sorted(self._records.values(), key=lambda r: r.order))
        return PhotoSnapshot(records)

    def ready(self) -> list[PhotoRecord]:
        return [record for record in self.list() if record.is_ready]

    # --- Ingestion hooks ---

    def set_progress(self, photo_id: str, progress: int) -> PhotoRecord:
        """
        Advances ingestion progress. Clamped to [0, 100], never decreases.

        Raises:
            PhotoNotFound: If the photo was removed; ingestion must stop.
        """
        with self._lock:
            record = self._require(photo_id)
            value = max(record.progress, min(max(int(progress), 0), PROGRESS_COMPLETE))
            return self._store(record.model_copy(update={"progress": value}))

    def mark_ready(self, photo_id: str, width: int, height: int) -> PhotoRecord:
        return self._replace(
            photo_id,
            progress=PROGRESS_COMPLETE,
            width=width,
            height=height,
            ingest_error=None,
        )

    def mark_failed(self, photo_id: str, error: str) -> PhotoRecord:
        return self._replace(photo_id, ingest_error=error)

    # --- Internal ---

    def _replace(self, photo_id: str, **changes) -> PhotoRecord:
        with self._lock:
            record = self._require(photo_id)
            return self._store(record.model_copy(update=changes))

    def _require(self, photo_id: str) -> PhotoRecord:
        record = self._records.get(photo_id)
        if record is None:
            raise PhotoNotFound(f"Photo {photo_id} not found")
        return record

    def _store(self, record: PhotoRecord) -> PhotoRecord:
        self._records[record.id] = record
        return record

    def _unique_id(self) -> str:
        photo_id = self._id_factory()
        while photo_id in self._records:
            photo_id = self._id_factory()
        return photo_id

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, photo_id: object) -> bool:
        return photo_id in self._records


def _check_upload(upload: PhotoUpload) -> None:
    if not upload.media_type.lower().startswith(ALLOWED_MEDIA_PREFIX):
        raise InvalidMediaType(
            f"Unsupported file type: {upload.media_type or 'unknown'} "
            f"({upload.filename} is not an image)"
        )

    if upload.size_bytes > MAX_PHOTO_SIZE_BYTES:
        size_mb = upload.size_bytes / (1024 * 1024)
        raise FileTooLarge(
            f"Photo too large: {upload.filename} is {size_mb:.1f}MB (max {MAX_PHOTO_SIZE_MB}MB)"
        )
