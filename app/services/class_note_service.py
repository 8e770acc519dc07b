import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.core.deadline import Deadline, check_deadline
from app.core.errors import NotFound, ValidationFailed
from app.crud.pagination import paginate
from app.crud.reference import ensure_department_exists
from app.models.class_note_models import ClassNote
from app.models.enums import ResourceType
from app.models.file_models import File
from app.schemas.common import PageParams
from app.services.file_service import FileService, UploadedBlob
from app.services.policy import Action, Principal, enforce
from app.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("course_code", "title", "description", "content", "department_id")


def get_class_note_or_404(db: Session, note_id: int) -> ClassNote:
    note = db.query(ClassNote).filter(ClassNote.id == note_id).first()
    if not note:
        raise NotFound("Class note not found")
    return note


class ClassNoteService:
    """
    Notes carry 0..N files. Every file operation stores blobs first (step 1)
    and attaches them in one transaction with the note's `updated_at` bump
    (step 2); on failure the stored files are discarded.
    """

    def __init__(self, db: Session, files: FileService):
        self.db = db
        self.files = files

    def list_notes(
        self,
        params: PageParams,
        *,
        department_id: Optional[int] = None,
        course_code: Optional[str] = None,
    ) -> tuple[list[ClassNote], int]:
        q = self.db.query(ClassNote)
        if department_id is not None:
            q = q.filter(ClassNote.department_id == department_id)
        if course_code:
            q = q.filter(ClassNote.course_code == course_code.strip().upper())
        q = q.order_by(ClassNote.created_at.desc(), ClassNote.id.desc())
        return paginate(q, params)

    def get(self, note_id: int) -> ClassNote:
        return get_class_note_or_404(self.db, note_id)

    def create(
        self,
        principal: Principal,
        data: dict,
        uploads: Iterable[UploadedBlob] = (),
        deadline: Optional[Deadline] = None,
    ) -> ClassNote:
        enforce(principal, Action.CREATE_CLASS_NOTE)
        ensure_department_exists(self.db, data["department_id"])

        stored = self.files.store_many(
            uploads, ResourceType.CLASS_NOTE, principal.user_id, deadline=deadline
        )

        try:
            check_deadline(deadline, "create class note")
            note = ClassNote(
                course_code=data["course_code"],
                title=data["title"],
                description=data.get("description") or "",
                content=data.get("content") or "",
                department_id=data["department_id"],
                uploader_user_id=principal.user_id,
            )
            self.db.add(note)
            self.db.flush()

            for f in stored:
                check_deadline(deadline, "attach class note file")
                self.files.attach(f, note.id)

            self.db.commit()
        except Exception:
            self.db.rollback()
            self.files.discard(stored)
            raise

        logger.info(
            "Class note %s created by user_id=%s with %d file(s)",
            note.id,
            principal.user_id,
            len(stored),
        )
        self.db.expire(note, ["files"])
        return note

    def update(
        self,
        principal: Principal,
        note_id: int,
        data: dict,
        deadline: Optional[Deadline] = None,
    ) -> ClassNote:
        note = get_class_note_or_404(self.db, note_id)
        enforce(principal, Action.UPDATE_CLASS_NOTE, note)

        if data.get("department_id") is not None:
            ensure_department_exists(self.db, data["department_id"])

        try:
            check_deadline(deadline, "update class note")
            for field in UPDATABLE_FIELDS:
                if data.get(field) is not None:
                    setattr(note, field, data[field])
            note.updated_at = utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return note

    def delete(self, principal: Principal, note_id: int, deadline: Optional[Deadline] = None) -> None:
        note = get_class_note_or_404(self.db, note_id)
        enforce(principal, Action.DELETE_CLASS_NOTE, note)

        try:
            check_deadline(deadline, "delete class note")
            for f in note.files:
                self.files.unattach(f)
            self.db.delete(note)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Class note %s deleted by user_id=%s", note_id, principal.user_id)

    # -----------------------------
    # File subresource
    # -----------------------------
    def add_files(
        self,
        principal: Principal,
        note_id: int,
        uploads: Iterable[UploadedBlob],
        deadline: Optional[Deadline] = None,
    ) -> ClassNote:
        note = get_class_note_or_404(self.db, note_id)
        enforce(principal, Action.ATTACH_CLASS_NOTE_FILE, note)

        uploads = list(uploads)
        if not uploads:
            raise ValidationFailed("At least one file is required", field="files")

        stored = self.files.store_many(
            uploads, ResourceType.CLASS_NOTE, principal.user_id, deadline=deadline
        )

        try:
            for f in stored:
                check_deadline(deadline, "attach class note file")
                self.files.attach(f, note.id)
            note.updated_at = utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            self.files.discard(stored)
            raise

        self.db.expire(note, ["files"])
        return note

    def remove_files(
        self,
        principal: Principal,
        note_id: int,
        file_ids: Iterable[int],
        deadline: Optional[Deadline] = None,
    ) -> ClassNote:
        note = get_class_note_or_404(self.db, note_id)
        enforce(principal, Action.DETACH_CLASS_NOTE_FILE, note)

        wanted = set(file_ids)
        if not wanted:
            raise ValidationFailed("At least one file id is required", field="fileIds")

        check_deadline(deadline, "load class note files")
        rows = (
            self.db.query(File)
            .filter(
                File.id.in_(wanted),
                File.resource_type == ResourceType.CLASS_NOTE,
                File.resource_id == note.id,
            )
            .all()
        )
        missing = wanted - {r.id for r in rows}
        if missing:
            raise NotFound(
                "File not found on this class note",
                details={"fileIds": sorted(missing)},
            )

        try:
            for r in rows:
                self.files.unattach(r)
            note.updated_at = utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Detached %d file(s) from class note %s", len(rows), note.id)
        self.db.expire(note, ["files"])
        return note
