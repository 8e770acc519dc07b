import os
from datetime import datetime

from sqlalchemy.exc import OperationalError

from app.models.chat_message_models import ChatMessage
from app.models.enums import MessageType, ResourceType
from app.models.file_models import File
from app.services.chat_service import clamp_limit
from app.services.file_service import FileService
from conftest import API


def _community_with(client, lead, *members):
    res = client.post(f"{API}/communities", json={"name": "C", "abbreviation": "C"}, headers=lead["headers"])
    cid = res.json()["data"]["id"]
    for m in members:
        assert client.post(f"{API}/communities/{cid}/participants", headers=m["headers"]).status_code == 200
    return cid


def _send(client, user, cid, text):
    res = client.post(f"{API}/communities/{cid}/chat/text", json={"content": text}, headers=user["headers"])
    assert res.status_code == 201, res.text
    return res.json()["data"]


def _pin_times(db, stamps):
    """stamps: {message_id: datetime}"""
    for mid, ts in stamps.items():
        db.query(ChatMessage).filter(ChatMessage.id == mid).update({"created_at": ts})
    db.commit()


def test_clamp_limit():
    assert clamp_limit(None) == 50
    assert clamp_limit(0) == 1
    assert clamp_limit(-5) == 1
    assert clamp_limit(500) == 100
    assert clamp_limit(20) == 20


def test_retrieval_ordering(client, db, make_user):
    alice = make_user("Alice")
    cid = _community_with(client, alice)
    m1 = _send(client, alice, cid, "one")
    m2 = _send(client, alice, cid, "two")
    m3 = _send(client, alice, cid, "three")
    _pin_times(
        db,
        {
            m1["id"]: datetime(2024, 1, 1, 10, 0),
            m2["id"]: datetime(2024, 1, 1, 10, 1),
            m3["id"]: datetime(2024, 1, 1, 10, 2),
        },
    )
    url = f"{API}/communities/{cid}/chat"

    latest = client.get(url, params={"limit": 2}, headers=alice["headers"])
    assert latest.status_code == 200
    assert [m["id"] for m in latest.json()["data"]["items"]] == [m3["id"], m2["id"]]

    forward = client.get(url, params={"after": "2024-01-01T10:00:00Z", "limit": 10}, headers=alice["headers"])
    assert [m["id"] for m in forward.json()["data"]["items"]] == [m2["id"], m3["id"]]

    backward = client.get(url, params={"before": "2024-01-01T10:02:00Z"}, headers=alice["headers"])
    assert [m["id"] for m in backward.json()["data"]["items"]] == [m2["id"], m1["id"]]

    window = client.get(
        url,
        params={"after": "2024-01-01T09:00:00Z", "before": "2024-01-01T10:02:00Z"},
        headers=alice["headers"],
    )
    assert [m["id"] for m in window.json()["data"]["items"]] == [m2["id"], m1["id"]]

    first = latest.json()["data"]["items"][0]
    assert first["createdAt"] == "2024-01-01T10:02:00Z"
    assert first["type"] == "TEXT"


def test_tuple_cursor_breaks_timestamp_ties(client, db, make_user):
    alice = make_user("Alice")
    cid = _community_with(client, alice)
    same = datetime(2024, 1, 1, 12, 0)
    ids = [_send(client, alice, cid, f"m{i}")["id"] for i in range(3)]
    _pin_times(db, {mid: same for mid in ids})
    url = f"{API}/communities/{cid}/chat"

    all_desc = client.get(url, headers=alice["headers"]).json()["data"]["items"]
    assert [m["id"] for m in all_desc] == sorted(ids, reverse=True)

    older = client.get(
        url, params={"before": "2024-01-01T12:00:00Z", "beforeId": ids[2]}, headers=alice["headers"]
    ).json()["data"]["items"]
    assert [m["id"] for m in older] == [ids[1], ids[0]]

    newer = client.get(
        url, params={"after": "2024-01-01T12:00:00Z", "afterId": ids[0]}, headers=alice["headers"]
    ).json()["data"]["items"]
    assert [m["id"] for m in newer] == [ids[1], ids[2]]


def test_non_participants_cannot_read_or_send(client, make_user):
    alice = make_user("Alice")
    eve = make_user("Eve")
    cid = _community_with(client, alice)

    read = client.get(f"{API}/communities/{cid}/chat", headers=eve["headers"])
    assert read.status_code == 403
    send = client.post(f"{API}/communities/{cid}/chat/text", json={"content": "hey"}, headers=eve["headers"])
    assert send.status_code == 403
    assert send.json()["error"]["code"] == "AUTH_008"

    missing = client.get(f"{API}/communities/9999/chat", headers=eve["headers"])
    assert missing.status_code == 404


def test_text_is_trimmed_and_must_not_be_empty(client, make_user):
    alice = make_user("Alice")
    cid = _community_with(client, alice)

    blank = client.post(f"{API}/communities/{cid}/chat/text", json={"content": "   "}, headers=alice["headers"])
    assert blank.status_code == 400
    assert blank.json()["error"]["code"] == "VAL_001"

    sent = _send(client, alice, cid, "  hello  ")
    assert sent["content"] == "hello"
    assert sent["file"] is None


def test_file_message_links_file(client, db, make_user):
    alice = make_user("Alice")
    cid = _community_with(client, alice)

    res = client.post(
        f"{API}/communities/{cid}/chat/file",
        data={"content": "slides"},
        files={"file": ("slides.pdf", b"%PDF-1.4", "application/pdf")},
        headers=alice["headers"],
    )
    assert res.status_code == 201, res.text
    message = res.json()["data"]
    assert message["type"] == "FILE"
    assert message["content"] == "slides"
    assert message["file"]["resourceType"] == "CHAT"

    db.expire_all()
    row = db.get(File, message["file"]["id"])
    assert row.resource_id == message["id"]

    fetched = client.get(f"{API}/communities/{cid}/chat/{message['id']}", headers=alice["headers"])
    assert fetched.status_code == 200


def test_delete_by_lead_then_not_found(client, db, make_user):
    charlie = make_user("Charlie")
    bob = make_user("Bob")
    dora = make_user("Dora")
    cid = _community_with(client, charlie, bob, dora)
    m = _send(client, bob, cid, "delete me")
    url = f"{API}/communities/{cid}/chat/{m['id']}"

    assert client.delete(url, headers=dora["headers"]).status_code == 403

    by_lead = client.delete(url, headers=charlie["headers"])
    assert by_lead.status_code == 200
    assert by_lead.json()["success"] is True

    again = client.delete(url, headers=bob["headers"])
    assert again.status_code == 404
    assert again.json()["error"]["code"] == "RES_001"

    assert client.get(url, headers=bob["headers"]).status_code == 404
    listed = client.get(f"{API}/communities/{cid}/chat", headers=bob["headers"]).json()["data"]["items"]
    assert m["id"] not in [x["id"] for x in listed]

    db.expire_all()
    assert db.get(ChatMessage, m["id"]).deleted_at is not None


def test_stored_messages_respect_payload_invariant(client, db, make_user):
    alice = make_user("Alice")
    cid = _community_with(client, alice)
    _send(client, alice, cid, "text")
    client.post(
        f"{API}/communities/{cid}/chat/file",
        files={"file": ("a.png", b"\x89PNG", "image/png")},
        headers=alice["headers"],
    )

    db.expire_all()
    for m in db.query(ChatMessage).all():
        if m.type == MessageType.TEXT:
            assert m.content and m.file_id is None
        else:
            assert m.file_id is not None


def test_send_file_compensates_when_insert_fails(client, db, blob_store, make_user, monkeypatch):
    alice = make_user("Alice")
    cid = _community_with(client, alice)

    def failing_attach(self, file, resource_id):
        raise OperationalError("UPDATE files", {}, Exception("database is locked"))

    monkeypatch.setattr(FileService, "attach", failing_attach)

    res = client.post(
        f"{API}/communities/{cid}/chat/file",
        files={"file": ("slides.pdf", b"%PDF-1.4", "application/pdf")},
        headers=alice["headers"],
    )
    assert res.status_code == 500
    assert res.json()["error"]["code"] == "SRV_002"

    db.expire_all()
    assert db.query(ChatMessage).count() == 0
    assert db.query(File).filter(File.resource_type == ResourceType.CHAT).count() == 0
    assert os.listdir(blob_store.base_path) == []
