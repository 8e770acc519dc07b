import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.core.deadline import Deadline, check_deadline
from app.core.errors import NotFound
from app.crud.pagination import paginate
from app.crud.reference import ensure_department_exists
from app.models.enums import ResourceType, Term
from app.models.past_exam_models import PastExam
from app.schemas.common import PageParams
from app.services.file_service import DOCUMENT_EXTENSIONS, FileService, UploadedBlob
from app.services.policy import Action, Principal, enforce
from app.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("year", "term", "department_id", "course_code", "title", "content")


def get_past_exam_or_404(db: Session, exam_id: int) -> PastExam:
    exam = db.query(PastExam).filter(PastExam.id == exam_id).first()
    if not exam:
        raise NotFound("Past exam not found")
    return exam


class PastExamService:
    def __init__(self, db: Session, files: FileService):
        self.db = db
        self.files = files

    def list_exams(
        self,
        params: PageParams,
        *,
        department_id: Optional[int] = None,
        course_code: Optional[str] = None,
        year: Optional[int] = None,
        term: Optional[Term] = None,
    ) -> tuple[list[PastExam], int]:
        q = self.db.query(PastExam)
        if department_id is not None:
            q = q.filter(PastExam.department_id == department_id)
        if course_code:
            q = q.filter(PastExam.course_code == course_code.strip().upper())
        if year is not None:
            q = q.filter(PastExam.year == year)
        if term is not None:
            q = q.filter(PastExam.term == term)
        q = q.order_by(PastExam.year.desc(), PastExam.created_at.desc(), PastExam.id.desc())
        return paginate(q, params)

    def get(self, exam_id: int) -> PastExam:
        return get_past_exam_or_404(self.db, exam_id)

    def create(
        self,
        principal: Principal,
        data: dict,
        upload: Optional[UploadedBlob] = None,
        deadline: Optional[Deadline] = None,
    ) -> PastExam:
        enforce(principal, Action.CREATE_PAST_EXAM)
        ensure_department_exists(self.db, data["department_id"])

        stored = None
        if upload is not None:
            stored = self.files.store(
                upload,
                ResourceType.PAST_EXAM,
                principal.user_id,
                allowed_extensions=DOCUMENT_EXTENSIONS,
                deadline=deadline,
            )

        try:
            check_deadline(deadline, "create past exam")
            exam = PastExam(
                year=data["year"],
                term=data["term"],
                department_id=data["department_id"],
                course_code=data["course_code"],
                title=data["title"],
                content=data.get("content") or "",
                uploader_user_id=principal.user_id,
            )
            self.db.add(exam)
            self.db.flush()

            if stored is not None:
                self.files.attach(stored, exam.id)
                exam.file_id = stored.id

            self.db.commit()
        except Exception:
            self.db.rollback()
            if stored is not None:
                self.files.discard([stored])
            raise

        logger.info("Past exam %s created by user_id=%s", exam.id, principal.user_id)
        return exam

    def update(
        self,
        principal: Principal,
        exam_id: int,
        data: dict,
        upload: Optional[UploadedBlob] = None,
        deadline: Optional[Deadline] = None,
    ) -> PastExam:
        exam = get_past_exam_or_404(self.db, exam_id)
        enforce(principal, Action.UPDATE_PAST_EXAM, exam)

        if data.get("department_id") is not None:
            ensure_department_exists(self.db, data["department_id"])

        stored = None
        if upload is not None:
            stored = self.files.store(
                upload,
                ResourceType.PAST_EXAM,
                principal.user_id,
                allowed_extensions=DOCUMENT_EXTENSIONS,
                deadline=deadline,
            )

        try:
            check_deadline(deadline, "update past exam")
            for field in UPDATABLE_FIELDS:
                if data.get(field) is not None:
                    setattr(exam, field, data[field])

            if stored is not None:
                # previous file becomes an orphan for the sweeper
                self.files.unattach(exam.file)
                self.files.attach(stored, exam.id)
                exam.file_id = stored.id

            exam.updated_at = utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            if stored is not None:
                self.files.discard([stored])
            raise

        if stored is not None:
            self.db.expire(exam, ["file"])
        return exam

    def delete(self, principal: Principal, exam_id: int, deadline: Optional[Deadline] = None) -> None:
        exam = get_past_exam_or_404(self.db, exam_id)
        enforce(principal, Action.DELETE_PAST_EXAM, exam)

        try:
            check_deadline(deadline, "delete past exam")
            self.files.unattach(exam.file)
            self.db.delete(exam)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Past exam %s deleted by user_id=%s", exam_id, principal.user_id)
