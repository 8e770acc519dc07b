import logging
import threading
from datetime import timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.models.file_models import File
from app.services.storage import BlobStore
from app.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


def sweep_orphan_files(db: Session, store: BlobStore, grace: timedelta, batch_size: int = 200) -> int:
    """
    Deletes File rows with resource_id IS NULL older than `grace`, then
    their blobs. Rows go first: a crash after the commit leaves at worst an
    unreferenced blob, never a row pointing at a missing blob.
    """
    cutoff = utcnow() - grace
    reaped = 0

    while True:
        rows = (
            db.query(File)
            .filter(File.resource_id.is_(None), File.created_at < cutoff)
            .order_by(File.id.asc())
            .limit(batch_size)
            .all()
        )
        if not rows:
            break

        handles = [r.path for r in rows]
        for r in rows:
            db.delete(r)
        db.commit()

        for handle in handles:
            try:
                store.delete(handle)
            except (OSError, ValueError):
                logger.exception("Sweep: failed to delete blob %s", handle)

        reaped += len(rows)
        if len(rows) < batch_size:
            break

    if reaped:
        logger.info("Sweep: reaped %s orphan file(s) older than %s", reaped, cutoff.isoformat())
    return reaped


class OrphanFileSweeper:
    """Runs `sweep_orphan_files` on a background thread every `interval` seconds."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        store: BlobStore,
        grace: timedelta,
        interval: float,
    ):
        self.session_factory = session_factory
        self.store = store
        self.grace = grace
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> int:
        db = self.session_factory()
        try:
            return sweep_orphan_files(db, self.store, self.grace)
        except Exception:
            db.rollback()
            logger.exception("Orphan file sweep failed")
            return 0
        finally:
            db.close()

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            self.run_once()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._loop, name="orphan-file-sweeper", daemon=True)
        self._thread.start()
        logger.info("Orphan file sweeper started (every %ss)", self.interval)

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
