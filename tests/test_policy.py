from types import SimpleNamespace

import pytest

from app.core.errors import PermissionDenied
from app.models.enums import RoleType
from app.services.policy import (
    INSTRUCTOR_ONLY,
    VERIFICATION_EXEMPT,
    Action,
    Principal,
    enforce,
    is_allowed,
)

alice = Principal(user_id=1, role=RoleType.INSTRUCTOR, email_verified=True)
bob = Principal(user_id=2, role=RoleType.STUDENT, email_verified=True)
carol = Principal(user_id=3, role=RoleType.STUDENT, email_verified=False)

exam_by_alice = SimpleNamespace(uploader_user_id=1)
note_by_bob = SimpleNamespace(uploader_user_id=2)
community_led_by_alice = SimpleNamespace(lead_user_id=1)


def test_unverified_principal_is_limited_to_own_profile():
    unverified_instructor = Principal(user_id=5, role=RoleType.INSTRUCTOR, email_verified=False)
    for action in Action:
        expected = action in VERIFICATION_EXEMPT
        assert is_allowed(unverified_instructor, action, community_led_by_alice, is_participant=True) is expected
        assert is_allowed(carol, action, community_led_by_alice, is_participant=True) is (
            expected and action not in INSTRUCTOR_ONLY
        )


def test_instructor_profile_actions_need_the_instructor_role():
    for action in INSTRUCTOR_ONLY:
        assert is_allowed(alice, action)
        assert not is_allowed(bob, action)
    assert is_allowed(carol, Action.UPDATE_OWN_PROFILE_PHOTO)
    assert is_allowed(bob, Action.VIEW_USERS)
    assert not is_allowed(carol, Action.VIEW_USERS)

    with pytest.raises(PermissionDenied) as exc:
        enforce(bob, Action.UPDATE_INSTRUCTOR_TITLE)
    assert exc.value.message == "Only instructors can update their title"


def test_past_exam_requires_instructor_role_and_ownership():
    assert is_allowed(alice, Action.CREATE_PAST_EXAM)
    assert not is_allowed(bob, Action.CREATE_PAST_EXAM)

    assert is_allowed(alice, Action.UPDATE_PAST_EXAM, exam_by_alice)
    assert is_allowed(alice, Action.DELETE_PAST_EXAM, exam_by_alice)

    other_instructor = Principal(user_id=9, role=RoleType.INSTRUCTOR, email_verified=True)
    assert not is_allowed(other_instructor, Action.UPDATE_PAST_EXAM, exam_by_alice)

    # uploader who is not an instructor still may not mutate
    student_uploader = Principal(user_id=1, role=RoleType.STUDENT, email_verified=True)
    assert not is_allowed(student_uploader, Action.DELETE_PAST_EXAM, exam_by_alice)


def test_class_note_ownership_ignores_role():
    assert is_allowed(bob, Action.CREATE_CLASS_NOTE)
    for action in (
        Action.UPDATE_CLASS_NOTE,
        Action.DELETE_CLASS_NOTE,
        Action.ATTACH_CLASS_NOTE_FILE,
        Action.DETACH_CLASS_NOTE_FILE,
    ):
        assert is_allowed(bob, action, note_by_bob)
        assert not is_allowed(alice, action, note_by_bob)


def test_community_lead_rules():
    assert is_allowed(bob, Action.CREATE_COMMUNITY)
    assert is_allowed(alice, Action.UPDATE_COMMUNITY, community_led_by_alice)
    assert is_allowed(alice, Action.DELETE_COMMUNITY, community_led_by_alice)
    assert not is_allowed(bob, Action.UPDATE_COMMUNITY, community_led_by_alice)
    assert not is_allowed(bob, Action.DELETE_COMMUNITY, community_led_by_alice)


def test_membership_rules():
    assert is_allowed(bob, Action.JOIN_COMMUNITY, community_led_by_alice, is_participant=False)
    assert not is_allowed(bob, Action.JOIN_COMMUNITY, community_led_by_alice, is_participant=True)

    assert is_allowed(bob, Action.LEAVE_COMMUNITY, community_led_by_alice, is_participant=True)
    assert not is_allowed(bob, Action.LEAVE_COMMUNITY, community_led_by_alice, is_participant=False)
    assert not is_allowed(alice, Action.LEAVE_COMMUNITY, community_led_by_alice, is_participant=True)

    for action in (Action.READ_CHAT, Action.SEND_CHAT):
        assert is_allowed(bob, action, community_led_by_alice, is_participant=True)
        assert not is_allowed(bob, action, community_led_by_alice, is_participant=False)


def test_message_delete_by_sender_or_lead():
    message_by_bob = SimpleNamespace(sender_user_id=2)
    dave = Principal(user_id=4, role=RoleType.STUDENT, email_verified=True)

    assert is_allowed(bob, Action.DELETE_CHAT_MESSAGE, message_by_bob, community=community_led_by_alice)
    assert is_allowed(alice, Action.DELETE_CHAT_MESSAGE, message_by_bob, community=community_led_by_alice)
    assert not is_allowed(dave, Action.DELETE_CHAT_MESSAGE, message_by_bob, community=community_led_by_alice)


def test_enforce_raises_permission_denied_with_reason():
    with pytest.raises(PermissionDenied) as exc:
        enforce(bob, Action.CREATE_PAST_EXAM)
    assert exc.value.code.value == "AUTH_008"
    assert exc.value.status_code == 403

    with pytest.raises(PermissionDenied) as exc:
        enforce(carol, Action.CREATE_CLASS_NOTE)
    assert "verified" in exc.value.message

    enforce(carol, Action.UPDATE_OWN_PROFILE)
