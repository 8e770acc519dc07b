# Faculty / Department reads
from typing import Optional

from sqlalchemy.orm import Session

from app.core.errors import ValidationFailed
from app.models.reference_models import Department, Faculty


def list_faculties(db: Session) -> list[Faculty]:
    return db.query(Faculty).order_by(Faculty.name.asc()).all()


def list_departments(db: Session, faculty_id: Optional[int] = None) -> list[Department]:
    q = db.query(Department)
    if faculty_id is not None:
        q = q.filter(Department.faculty_id == faculty_id)
    return q.order_by(Department.name.asc()).all()


def ensure_department_exists(db: Session, department_id: int, field: str = "departmentId") -> None:
    if not db.query(Department.id).filter(Department.id == department_id).first():
        raise ValidationFailed("Department not found", field=field)
