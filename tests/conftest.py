import os
import tempfile

# settings are read at import time; point them at throwaway resources first
_TMP_ROOT = tempfile.mkdtemp(prefix="unisphere-tests-")
os.environ["SECRET_KEY"] = "test-secret-key-with-enough-entropy-0123456789"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_ROOT, "uploads")
os.environ["LOG_DIR"] = os.path.join(_TMP_ROOT, "logs")
os.environ["FILE_SWEEP_INTERVAL_SECONDS"] = "0"
os.environ["INSTITUTION_EMAIL_SUFFIX"] = ".edu.tr"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.pop("RESEND_API_KEY", None)

import pytest
from fastapi.testclient import TestClient

from app.db.database import Base, SessionLocal, engine
from app.main import app
from app.models.reference_models import Department, Faculty
from app.services.dependencies import get_blob_store, get_email_sender
from app.services.storage import LocalBlobStore

API = "/api/v1"
PASSWORD = "Hunter22x"


class FakeEmailSender:
    def __init__(self):
        self.sent = []

    def send(self, to, subject, text, *, secret=None):
        self.sent.append({"to": to, "subject": subject, "text": text, "secret": secret})

    def last_secret_for(self, to, subject_contains=""):
        for mail in reversed(self.sent):
            if mail["to"] == to and subject_contains.lower() in mail["subject"].lower():
                return mail["secret"]
        return None


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def department(db):
    faculty = Faculty(name="Faculty of Engineering", code="ENG")
    db.add(faculty)
    db.flush()
    dept = Department(name="Computer Engineering", code="CENG", faculty_id=faculty.id)
    db.add(dept)
    db.commit()
    return dept


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(str(tmp_path / "blobs"), "")


@pytest.fixture
def emails():
    return FakeEmailSender()


@pytest.fixture
def client(blob_store, emails):
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    app.dependency_overrides[get_email_sender] = lambda: emails
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# -----------------------------
# Helpers
# -----------------------------
def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


def register(client, email, *, role="STUDENT", department_id=None, student_id=None, **extra):
    payload = {
        "email": email,
        "password": PASSWORD,
        "firstName": extra.pop("first_name", "Test"),
        "lastName": extra.pop("last_name", "User"),
        "roleType": role,
        "departmentId": department_id,
    }
    if role == "STUDENT":
        payload["studentId"] = student_id
    else:
        payload["title"] = extra.pop("title", "Dr.")
    payload.update(extra)
    return client.post(f"{API}/auth/register", json=payload)


@pytest.fixture
def make_user(client, emails, department):
    """Registers (and by default verifies) a user; returns a dict with id and tokens."""
    counter = {"n": 0}

    def _make(name, *, role="STUDENT", verified=True):
        counter["n"] += 1
        email = f"{name.lower()}@uni.edu.tr"
        res = register(
            client,
            email,
            role=role,
            department_id=department.id,
            student_id=f"{20240000 + counter['n']:08d}",
            first_name=name,
            last_name="Tester",
        )
        assert res.status_code == 201, res.text
        data = res.json()["data"]
        if verified:
            token = emails.last_secret_for(email, "verify")
            ok = client.get(f"{API}/auth/verify-email", params={"token": token})
            assert ok.status_code == 200, ok.text
        return {
            "id": data["user"]["id"],
            "email": email,
            "access": data["tokens"]["accessToken"],
            "refresh": data["tokens"]["refreshToken"],
            "headers": auth_headers(data["tokens"]["accessToken"]),
        }

    return _make
