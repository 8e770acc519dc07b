import logging
import mimetypes
import os
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.deadline import Deadline, check_deadline
from app.core.errors import DatabaseError, ExternalServiceError, ValidationFailed
from app.models.enums import ResourceType
from app.models.file_models import File
from app.services.storage import BlobStore

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif"})
DOCUMENT_EXTENSIONS = IMAGE_EXTENSIONS | {".pdf"}


@dataclass(frozen=True)
class UploadedBlob:
    """A fully-read multipart part, decoupled from the web framework."""

    filename: str
    content_type: Optional[str]
    data: bytes

    @property
    def ext(self) -> str:
        return os.path.splitext(self.filename or "")[1].lower()

    @property
    def size(self) -> int:
        return len(self.data)


def _mime_for(upload: UploadedBlob) -> str:
    if upload.content_type and upload.content_type != "application/octet-stream":
        return upload.content_type
    guessed, _ = mimetypes.guess_type(upload.filename or "")
    return guessed or "application/octet-stream"


class FileService:
    """
    Attachment is two-step: `store` commits an unattached File row (step 1);
    `attach` stages `resource_id` in the caller's transaction (step 2).
    Anything left unattached is reaped by the orphan sweeper.
    """

    def __init__(self, db: Session, store: BlobStore, settings: Optional[Settings] = None):
        self.db = db
        self.blobs = store
        self.settings = settings or get_settings()

    # -----------------------------
    # Step 1
    # -----------------------------
    def validate(
        self,
        upload: UploadedBlob,
        allowed_extensions: Optional[Iterable[str]] = None,
        field: str = "file",
    ) -> None:
        if upload is None or not upload.filename:
            raise ValidationFailed("File is required", field=field)
        if upload.size == 0:
            raise ValidationFailed("Uploaded file is empty", field=field)
        if upload.size > self.settings.MAX_UPLOAD_BYTES:
            raise ValidationFailed(
                f"File exceeds the {self.settings.MAX_UPLOAD_BYTES} byte limit", field=field
            )
        if allowed_extensions is not None and upload.ext not in allowed_extensions:
            allowed = ", ".join(sorted(allowed_extensions))
            raise ValidationFailed(f"Unsupported file type; allowed: {allowed}", field=field)

    def store(
        self,
        upload: UploadedBlob,
        resource_type: ResourceType,
        uploaded_by: int,
        *,
        allowed_extensions: Optional[Iterable[str]] = None,
        deadline: Optional[Deadline] = None,
    ) -> File:
        self.validate(upload, allowed_extensions)

        check_deadline(deadline, "blob put")
        try:
            handle = self.blobs.put(upload.data, upload.ext)
        except OSError as e:
            raise ExternalServiceError("Failed to store file") from e

        row = File(
            name=os.path.basename(upload.filename),
            path=handle,
            url=self.blobs.url(handle),
            size=upload.size,
            mime=_mime_for(upload),
            resource_type=resource_type,
            resource_id=None,
            uploaded_by=uploaded_by,
        )
        try:
            check_deadline(deadline, "file row insert")
            self.db.add(row)
            self.db.commit()
        except Exception:
            self.db.rollback()
            self._delete_blob(handle)
            raise

        logger.info("Stored file id=%s type=%s (unattached)", row.id, resource_type.value)
        return row

    def store_many(
        self,
        uploads: Iterable[UploadedBlob],
        resource_type: ResourceType,
        uploaded_by: int,
        *,
        allowed_extensions: Optional[Iterable[str]] = None,
        deadline: Optional[Deadline] = None,
    ) -> list[File]:
        uploads = list(uploads)
        for u in uploads:
            self.validate(u, allowed_extensions, field="files")

        stored: list[File] = []
        try:
            for u in uploads:
                stored.append(
                    self.store(
                        u,
                        resource_type,
                        uploaded_by,
                        allowed_extensions=allowed_extensions,
                        deadline=deadline,
                    )
                )
        except Exception:
            self.discard(stored)
            raise
        return stored

    # -----------------------------
    # Step 2 (caller's transaction)
    # -----------------------------
    def attach(self, file: File, resource_id: int) -> None:
        file.resource_id = resource_id
        self.db.add(file)

    def unattach(self, file: Optional[File]) -> None:
        if file is None:
            return
        file.resource_id = None
        self.db.add(file)

    # -----------------------------
    # Compensation
    # -----------------------------
    def discard(self, files: Iterable[File]) -> None:
        """
        Best-effort immediate removal of files that never got attached.
        Runs after the caller rolled back; whatever fails here stays an
        orphan row for the sweeper.
        """
        for f in files:
            if f is None or f.id is None:
                continue
            try:
                row = self.db.get(File, f.id)
                if row is None or row.resource_id is not None:
                    continue
                handle = row.path
                self.db.delete(row)
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception("Could not discard file id=%s; left for sweeper", f.id)
                continue
            self._delete_blob(handle)

    def _delete_blob(self, handle: str) -> None:
        try:
            self.blobs.delete(handle)
        except (OSError, ValueError):
            logger.exception("Failed to delete blob %s", handle)

    def get(self, file_id: int) -> Optional[File]:
        try:
            return self.db.get(File, file_id)
        except SQLAlchemyError as e:
            raise DatabaseError() from e
