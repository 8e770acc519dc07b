from datetime import timedelta

import pytest

from app.core.deadline import Deadline, check_deadline
from app.core.errors import Cancelled, ValidationFailed
from app.db.database import SessionLocal
from app.models.enums import ResourceType
from app.models.file_models import File
from app.services.file_service import IMAGE_EXTENSIONS, FileService, UploadedBlob
from app.services.file_sweeper import OrphanFileSweeper, sweep_orphan_files
from app.utils.time_utils import utcnow


@pytest.fixture
def uploader(make_user):
    return make_user("Uma")


def _store(db, blob_store, uploader, name="a.pdf"):
    service = FileService(db, blob_store)
    return service.store(UploadedBlob(name, "application/pdf", b"data"), ResourceType.CLASS_NOTE, uploader["id"])


def _age(db, file, minutes):
    file.created_at = utcnow() - timedelta(minutes=minutes)
    db.commit()


def test_sweep_reaps_only_old_orphans(db, blob_store, uploader):
    old_orphan = _store(db, blob_store, uploader)
    fresh_orphan = _store(db, blob_store, uploader)
    attached = _store(db, blob_store, uploader)
    attached.resource_id = 42
    db.commit()
    _age(db, old_orphan, 120)
    _age(db, attached, 120)

    reaped = sweep_orphan_files(db, blob_store, timedelta(hours=1))

    assert reaped == 1
    db.expire_all()
    remaining = {f.id for f in db.query(File).all()}
    assert remaining == {fresh_orphan.id, attached.id}
    assert not (blob_store.base_path / old_orphan.path).exists()
    assert (blob_store.base_path / fresh_orphan.path).exists()
    assert (blob_store.base_path / attached.path).exists()


def test_sweep_works_in_batches(db, blob_store, uploader):
    files = [_store(db, blob_store, uploader, f"f{i}.pdf") for i in range(5)]
    for f in files:
        _age(db, f, 90)

    assert sweep_orphan_files(db, blob_store, timedelta(hours=1), batch_size=2) == 5
    assert db.query(File).count() == 0
    assert list(blob_store.base_path.iterdir()) == []


def test_sweeper_run_once_uses_its_own_session(db, blob_store, uploader):
    orphan = _store(db, blob_store, uploader)
    _age(db, orphan, 30)

    sweeper = OrphanFileSweeper(SessionLocal, blob_store, timedelta(minutes=10), interval=3600)
    assert sweeper.run_once() == 1
    assert sweeper.run_once() == 0


def test_discard_leaves_attached_files_alone(db, blob_store, uploader):
    service = FileService(db, blob_store)
    loose = _store(db, blob_store, uploader)
    kept = _store(db, blob_store, uploader)
    service.attach(kept, 7)
    db.commit()

    service.discard([loose, kept])

    db.expire_all()
    assert db.get(File, loose.id) is None
    assert db.get(File, kept.id).resource_id == 7
    assert (blob_store.base_path / kept.path).exists()


def test_store_rejects_disallowed_extension(db, blob_store, uploader):
    service = FileService(db, blob_store)
    with pytest.raises(ValidationFailed):
        service.store(
            UploadedBlob("doc.pdf", "application/pdf", b"x"),
            ResourceType.PROFILE_PHOTO,
            uploader["id"],
            allowed_extensions=IMAGE_EXTENSIONS,
        )
    assert db.query(File).count() == 0
    assert list(blob_store.base_path.iterdir()) == []


def test_expired_deadline_stops_before_blob_write(db, blob_store, uploader):
    service = FileService(db, blob_store)
    with pytest.raises(Cancelled):
        service.store(
            UploadedBlob("a.pdf", "application/pdf", b"x"),
            ResourceType.CHAT,
            uploader["id"],
            deadline=Deadline.after(-1),
        )
    assert list(blob_store.base_path.iterdir()) == []


def test_check_deadline_ignores_missing_deadline():
    check_deadline(None, "anything")
    check_deadline(Deadline.after(60), "plenty of time")
    with pytest.raises(Cancelled):
        check_deadline(Deadline.after(0), "expired")


def test_blob_store_rejects_traversal(blob_store):
    handle = blob_store.put(b"hello", "txt")
    assert handle.endswith(".txt")
    assert blob_store.url(handle) == f"uploads/{handle}"
    with pytest.raises(ValueError):
        blob_store.delete("..")
    blob_store.delete(handle)
    blob_store.delete(handle)
    assert list(blob_store.base_path.iterdir()) == []
