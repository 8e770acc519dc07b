import logging
import os
import uuid
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    def put(self, data: bytes, ext: str = "") -> str: ...

    def delete(self, handle: str) -> None: ...

    def url(self, handle: str) -> str: ...


class LocalBlobStore:
    """
    Stores blobs as <uuid>.<ext> in a single directory. Handles are the bare
    filename; URLs are {base_url}/<handle> or uploads/<handle>.
    """

    def __init__(self, base_path: str, base_url: str = ""):
        self.base_path = Path(base_path)
        self.base_url = base_url.rstrip("/") if base_url else ""
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _physical_path(self, handle: str) -> Path:
        name = os.path.basename(handle or "")
        if not name or name in {".", "..", "uploads"}:
            raise ValueError(f"invalid file handle: {handle!r}")
        return self.base_path / name

    def put(self, data: bytes, ext: str = "") -> str:
        ext = ext.lower()
        if ext and not ext.startswith("."):
            ext = "." + ext
        handle = f"{uuid.uuid4()}{ext}"
        path = self._physical_path(handle)

        tmp = path.with_name(path.name + ".part")
        try:
            with tmp.open("wb") as f:
                f.write(data)
            tmp.replace(path)
        except OSError:
            tmp.unlink(missing_ok=True)
            logger.exception("Failed to write blob %s", handle)
            raise

        logger.info("Stored blob %s (%d bytes)", handle, len(data))
        return handle

    def delete(self, handle: str) -> None:
        if not handle:
            return
        path = self._physical_path(handle)
        if not path.exists():
            # idempotent
            logger.warning("Blob to delete does not exist: %s", path)
            return
        path.unlink()
        logger.info("Deleted blob %s", handle)

    def url(self, handle: str) -> str:
        name = os.path.basename(handle)
        if self.base_url:
            return f"{self.base_url}/{name}"
        return f"uploads/{name}"
