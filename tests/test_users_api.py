from app.models.file_models import File
from conftest import API

JPG = ("me.jpg", b"\xff\xd8\xfffake-jpeg", "image/jpeg")
PNG = ("me2.png", b"\x89PNG\r\n\x1a\nfake", "image/png")

PHOTO_URL = f"{API}/users/profile/photo"


# -----------------------------
# Profile photo
# -----------------------------
def test_profile_photo_swap_and_delete(client, db, make_user):
    dan = make_user("Dan", verified=False)

    not_image = client.post(PHOTO_URL, files={"file": ("cv.pdf", b"%PDF", "application/pdf")}, headers=dan["headers"])
    assert not_image.status_code == 400
    assert not_image.json()["error"]["code"] == "VAL_001"

    first = client.post(PHOTO_URL, files={"file": JPG}, headers=dan["headers"])
    assert first.status_code == 201, first.text
    photo = first.json()["data"]["profilePhoto"]
    assert photo["resourceType"] == "PROFILE_PHOTO"

    second = client.post(PHOTO_URL, files={"file": PNG}, headers=dan["headers"])
    assert second.status_code == 201
    replacement = second.json()["data"]["profilePhoto"]["id"]
    assert replacement != photo["id"]

    db.expire_all()
    assert db.get(File, photo["id"]).resource_id is None
    assert db.get(File, replacement).resource_id == dan["id"]

    profile = client.get(f"{API}/auth/profile", headers=dan["headers"])
    assert profile.json()["data"]["profilePhoto"]["id"] == replacement

    removed = client.delete(PHOTO_URL, headers=dan["headers"])
    assert removed.status_code == 200
    assert removed.json()["data"]["profilePhoto"] is None
    db.expire_all()
    assert db.get(File, replacement).resource_id is None

    again = client.delete(PHOTO_URL, headers=dan["headers"])
    assert again.status_code == 404
    assert again.json()["error"]["code"] == "RES_001"


def test_photo_upload_requires_login(client):
    res = client.post(PHOTO_URL, files={"file": JPG})
    assert res.status_code == 401


def test_deleting_a_community_keeps_user_photos(client, db, make_user):
    alice = make_user("Alice")
    mine = client.post(PHOTO_URL, files={"file": JPG}, headers=alice["headers"]).json()["data"]["profilePhoto"]

    created = client.post(f"{API}/communities", json={"name": "C", "abbreviation": "C"}, headers=alice["headers"])
    cid = created.json()["data"]["id"]
    # user and community ids collide on purpose
    assert cid == alice["id"]
    client.put(f"{API}/communities/{cid}/profile-photo", files={"file": PNG}, headers=alice["headers"])

    assert client.delete(f"{API}/communities/{cid}", headers=alice["headers"]).status_code == 204

    db.expire_all()
    assert db.get(File, mine["id"]).resource_id == alice["id"]
    profile = client.get(f"{API}/auth/profile", headers=alice["headers"])
    assert profile.json()["data"]["profilePhoto"]["id"] == mine["id"]


# -----------------------------
# Directory
# -----------------------------
def test_directory_filters_and_pagination(client, department, make_user):
    alice = make_user("Alice")
    make_user("Bob", role="INSTRUCTOR")
    make_user("Carol")
    url = f"{API}/users"

    everyone = client.get(url, headers=alice["headers"])
    assert everyone.status_code == 200
    data = everyone.json()["data"]
    assert data["total"] == 3
    assert [u["firstName"] for u in data["items"]] == ["Alice", "Bob", "Carol"]

    instructors = client.get(url, params={"role": "INSTRUCTOR"}, headers=alice["headers"]).json()["data"]
    assert [u["firstName"] for u in instructors["items"]] == ["Bob"]
    assert instructors["items"][0]["instructor"]["title"] == "Dr."

    by_name = client.get(url, params={"name": "CAR"}, headers=alice["headers"]).json()["data"]
    assert [u["firstName"] for u in by_name["items"]] == ["Carol"]

    by_email = client.get(url, params={"email": "bob@"}, headers=alice["headers"]).json()["data"]
    assert by_email["total"] == 1

    by_department = client.get(url, params={"departmentId": department.id}, headers=alice["headers"]).json()["data"]
    assert by_department["total"] == 3
    other = client.get(url, params={"departmentId": department.id + 1}, headers=alice["headers"]).json()["data"]
    assert other["total"] == 0

    paged = client.get(url, params={"page": 2, "pageSize": 2}, headers=alice["headers"]).json()["data"]
    assert [u["firstName"] for u in paged["items"]] == ["Carol"]
    assert paged["totalPages"] == 2

    bad_role = client.get(url, params={"role": "ADMIN"}, headers=alice["headers"])
    assert bad_role.status_code == 400
    assert bad_role.json()["error"]["code"] == "VAL_001"


def test_directory_requires_verified_login(client, make_user):
    dan = make_user("Dan", verified=False)

    assert client.get(f"{API}/users").status_code == 401
    denied = client.get(f"{API}/users", headers=dan["headers"])
    assert denied.status_code == 403
    assert denied.json()["error"]["code"] == "AUTH_008"


def test_get_user_by_id(client, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")

    found = client.get(f"{API}/users/{bob['id']}", headers=alice["headers"])
    assert found.status_code == 200
    assert found.json()["data"]["email"] == bob["email"]
    assert found.json()["data"]["departmentName"] == "Computer Engineering"

    missing = client.get(f"{API}/users/9999", headers=alice["headers"])
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "RES_001"


# -----------------------------
# Instructors
# -----------------------------
def test_instructor_profile_and_title(client, make_user):
    ines = make_user("Ines", role="INSTRUCTOR", verified=False)
    sam = make_user("Sam")

    own = client.get(f"{API}/instructors/profile", headers=ines["headers"])
    assert own.status_code == 200
    assert own.json()["data"]["title"] == "Dr."
    assert own.json()["data"]["userId"] == ines["id"]

    student = client.get(f"{API}/instructors/profile", headers=sam["headers"])
    assert student.status_code == 403

    updated = client.put(f"{API}/instructors/title", json={"title": "  Assoc. Prof. Dr.  "}, headers=ines["headers"])
    assert updated.status_code == 200, updated.text
    assert updated.json()["data"]["title"] == "Assoc. Prof. Dr."

    for bad in ("", "   ", "Dr. 2nd", "x" * 101):
        res = client.put(f"{API}/instructors/title", json={"title": bad}, headers=ines["headers"])
        assert res.status_code == 400, bad
        assert res.json()["error"]["code"] == "VAL_001"
        assert res.json()["error"]["field"] == "title"

    assert client.put(f"{API}/instructors/title", json={"title": "Prof."}, headers=sam["headers"]).status_code == 403


def test_public_instructor_reads(client, department, make_user):
    ines = make_user("Ines", role="INSTRUCTOR")
    sam = make_user("Sam")

    found = client.get(f"{API}/instructors/{ines['id']}")
    assert found.status_code == 200
    assert found.json()["data"]["departmentName"] == "Computer Engineering"
    assert found.json()["data"]["facultyName"] == "Faculty of Engineering"

    assert client.get(f"{API}/instructors/{sam['id']}").status_code == 404

    listed = client.get(f"{API}/department-instructors/{department.id}")
    assert listed.status_code == 200
    assert [i["userId"] for i in listed.json()["data"]] == [ines["id"]]

    missing = client.get(f"{API}/department-instructors/9999")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "RES_001"
