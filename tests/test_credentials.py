import pytest

from app.core.errors import (
    AlreadyExists,
    EmailInUse,
    InvalidEmail,
    InvalidPassword,
    InvalidStudentID,
    NotFound,
    ValidationFailed,
)
from app.models.enums import RoleType
from app.models.user_models import Instructor, Student, User
from app.services.credential_service import (
    CredentialService,
    normalize_email,
    validate_password,
    validate_student_identifier,
)


def test_normalize_email_requires_institution_suffix():
    assert normalize_email("  Alice@Uni.EDU.TR ") == "alice@uni.edu.tr"
    with pytest.raises(InvalidEmail):
        normalize_email("alice@gmail.com")
    with pytest.raises(InvalidEmail):
        normalize_email("not-an-email")
    with pytest.raises(InvalidEmail):
        normalize_email("")


@pytest.mark.parametrize("password", ["short1", "onlyletters", "12345678", ""])
def test_password_policy_rejects(password):
    with pytest.raises(InvalidPassword):
        validate_password(password)


def test_password_policy_accepts_letter_and_digit():
    validate_password("Hunter22x")


def test_student_identifier_is_eight_digits():
    assert validate_student_identifier(" 12345678 ") == "12345678"
    for bad in ("1234567", "123456789", "1234567a", None):
        with pytest.raises(InvalidStudentID):
            validate_student_identifier(bad)


def test_create_user_builds_exactly_one_extension(db, department):
    service = CredentialService(db)
    student = service.create_user(
        "stu@uni.edu.tr",
        "Passw0rd",
        RoleType.STUDENT,
        first_name="Stu",
        last_name="Dent",
        department_id=department.id,
        student_identifier="12345678",
        graduation_year=2027,
    )
    instructor = service.create_user(
        "prof@uni.edu.tr",
        "Passw0rd",
        RoleType.INSTRUCTOR,
        first_name="Pro",
        last_name="Fessor",
        title="Prof. Dr.",
    )
    db.commit()

    assert db.query(Student).filter(Student.user_id == student.id).count() == 1
    assert db.query(Instructor).filter(Instructor.user_id == student.id).count() == 0
    assert db.query(Instructor).filter(Instructor.user_id == instructor.id).count() == 1
    assert db.query(Student).filter(Student.user_id == instructor.id).count() == 0

    stored = db.query(User).filter(User.id == student.id).one()
    assert stored.pwd_hash != "Passw0rd"
    assert CredentialService.verify_password(stored, "Passw0rd")
    assert not CredentialService.verify_password(stored, "wrong-pass1")
    assert stored.email_verified is False


def test_create_user_conflicts(db, department):
    service = CredentialService(db)
    service.create_user(
        "dup@uni.edu.tr",
        "Passw0rd",
        RoleType.STUDENT,
        first_name="Dup",
        last_name="One",
        student_identifier="87654321",
    )
    db.commit()

    with pytest.raises(EmailInUse):
        service.create_user(
            "DUP@uni.edu.tr",
            "Passw0rd",
            RoleType.STUDENT,
            first_name="Dup",
            last_name="Two",
            student_identifier="11111111",
        )
    with pytest.raises(AlreadyExists):
        service.create_user(
            "other@uni.edu.tr",
            "Passw0rd",
            RoleType.STUDENT,
            first_name="Other",
            last_name="One",
            student_identifier="87654321",
        )
    with pytest.raises(ValidationFailed):
        service.create_user(
            "prof2@uni.edu.tr",
            "Passw0rd",
            RoleType.INSTRUCTOR,
            first_name="No",
            last_name="Title",
        )


def test_find_active_by_email_skips_deactivated(db, department):
    service = CredentialService(db)
    user = service.create_user(
        "gone@uni.edu.tr",
        "Passw0rd",
        RoleType.STUDENT,
        first_name="Gone",
        last_name="User",
        student_identifier="22222222",
    )
    db.commit()
    assert service.find_active_by_email("gone@uni.edu.tr").id == user.id

    user.is_active = False
    db.commit()
    with pytest.raises(NotFound):
        service.find_active_by_email("gone@uni.edu.tr")
