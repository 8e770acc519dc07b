from typing import Optional

from fastapi import UploadFile

from app.core.config import get_settings
from app.services.file_service import UploadedBlob


def to_uploaded_blob(file: Optional[UploadFile]) -> Optional[UploadedBlob]:
    """
    Reads a multipart part into memory. At most MAX_UPLOAD_BYTES + 1 bytes
    are read, enough for the size check to reject oversized parts.
    """
    if file is None or not file.filename:
        return None
    limit = get_settings().MAX_UPLOAD_BYTES
    data = file.file.read(limit + 1)
    return UploadedBlob(filename=file.filename, content_type=file.content_type, data=data)


def to_uploaded_blobs(files: Optional[list[UploadFile]]) -> list[UploadedBlob]:
    blobs = [to_uploaded_blob(f) for f in (files or [])]
    return [b for b in blobs if b is not None]
