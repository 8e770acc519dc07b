"""
Authorization decisions as a pure function of (principal, action, target).

Nothing here touches the database: callers load the target (raising
NotFound first, so denials never leak existence) and, for membership
rules, pass whether the principal is a participant of the community.
"""
import enum
from dataclasses import dataclass
from typing import Any, Optional

from app.core.errors import PermissionDenied
from app.models.enums import RoleType


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: RoleType
    email_verified: bool

    @property
    def is_instructor(self) -> bool:
        return self.role == RoleType.INSTRUCTOR


class Action(str, enum.Enum):
    VIEW_OWN_PROFILE = "profile:view"
    UPDATE_OWN_PROFILE = "profile:update"
    UPDATE_OWN_PROFILE_PHOTO = "profile:update_photo"

    VIEW_USERS = "users:view"

    VIEW_INSTRUCTOR_PROFILE = "instructor:view_profile"
    UPDATE_INSTRUCTOR_TITLE = "instructor:update_title"

    CREATE_PAST_EXAM = "past_exam:create"
    UPDATE_PAST_EXAM = "past_exam:update"
    DELETE_PAST_EXAM = "past_exam:delete"

    CREATE_CLASS_NOTE = "class_note:create"
    UPDATE_CLASS_NOTE = "class_note:update"
    DELETE_CLASS_NOTE = "class_note:delete"
    ATTACH_CLASS_NOTE_FILE = "class_note:attach_file"
    DETACH_CLASS_NOTE_FILE = "class_note:detach_file"

    CREATE_COMMUNITY = "community:create"
    UPDATE_COMMUNITY = "community:update"
    DELETE_COMMUNITY = "community:delete"
    JOIN_COMMUNITY = "community:join"
    LEAVE_COMMUNITY = "community:leave"

    READ_CHAT = "chat:read"
    SEND_CHAT = "chat:send"
    DELETE_CHAT_MESSAGE = "chat:delete"


# Everything else requires a verified email.
VERIFICATION_EXEMPT = frozenset(
    {
        Action.VIEW_OWN_PROFILE,
        Action.UPDATE_OWN_PROFILE,
        Action.UPDATE_OWN_PROFILE_PHOTO,
        Action.VIEW_INSTRUCTOR_PROFILE,
        Action.UPDATE_INSTRUCTOR_TITLE,
    }
)

INSTRUCTOR_ONLY = frozenset({Action.VIEW_INSTRUCTOR_PROFILE, Action.UPDATE_INSTRUCTOR_TITLE})


def _is_uploader(principal: Principal, target: Any) -> bool:
    return target is not None and target.uploader_user_id == principal.user_id


def _is_lead(principal: Principal, community: Any) -> bool:
    return community is not None and community.lead_user_id == principal.user_id


def is_allowed(
    principal: Principal,
    action: Action,
    target: Any = None,
    *,
    is_participant: bool = False,
    community: Any = None,
) -> bool:
    """
    target: the row the action applies to (PastExam, ClassNote, Community,
    ChatMessage). For chat-message deletes, `community` is the message's
    community so the lead rule can be evaluated.
    """
    if principal is None:
        return False

    if action not in VERIFICATION_EXEMPT and not principal.email_verified:
        return False

    if action in INSTRUCTOR_ONLY:
        return principal.is_instructor

    if action in VERIFICATION_EXEMPT or action == Action.VIEW_USERS:
        return True

    if action == Action.CREATE_PAST_EXAM:
        return principal.is_instructor

    if action in (Action.UPDATE_PAST_EXAM, Action.DELETE_PAST_EXAM):
        return principal.is_instructor and _is_uploader(principal, target)

    if action in (Action.CREATE_CLASS_NOTE, Action.CREATE_COMMUNITY):
        return True

    if action in (
        Action.UPDATE_CLASS_NOTE,
        Action.DELETE_CLASS_NOTE,
        Action.ATTACH_CLASS_NOTE_FILE,
        Action.DETACH_CLASS_NOTE_FILE,
    ):
        return _is_uploader(principal, target)

    if action in (Action.UPDATE_COMMUNITY, Action.DELETE_COMMUNITY):
        return _is_lead(principal, target)

    if action == Action.JOIN_COMMUNITY:
        return not is_participant

    if action == Action.LEAVE_COMMUNITY:
        return is_participant and not _is_lead(principal, target)

    if action in (Action.READ_CHAT, Action.SEND_CHAT):
        return is_participant

    if action == Action.DELETE_CHAT_MESSAGE:
        return (
            target is not None and target.sender_user_id == principal.user_id
        ) or _is_lead(principal, community)

    return False


_DENIAL_MESSAGES = {
    Action.VIEW_INSTRUCTOR_PROFILE: "Only instructors have an instructor profile",
    Action.UPDATE_INSTRUCTOR_TITLE: "Only instructors can update their title",
    Action.CREATE_PAST_EXAM: "Only instructors can upload past exams",
    Action.UPDATE_PAST_EXAM: "Only the instructor who uploaded this past exam can modify it",
    Action.DELETE_PAST_EXAM: "Only the instructor who uploaded this past exam can delete it",
    Action.UPDATE_CLASS_NOTE: "Only the author of this class note can modify it",
    Action.DELETE_CLASS_NOTE: "Only the author of this class note can delete it",
    Action.ATTACH_CLASS_NOTE_FILE: "Only the author of this class note can add files",
    Action.DETACH_CLASS_NOTE_FILE: "Only the author of this class note can remove files",
    Action.UPDATE_COMMUNITY: "Only the community lead can update the community",
    Action.DELETE_COMMUNITY: "Only the community lead can delete the community",
    Action.LEAVE_COMMUNITY: "User is not a participant in this community",
    Action.READ_CHAT: "User is not a participant in this community",
    Action.SEND_CHAT: "User is not a participant in this community",
    Action.DELETE_CHAT_MESSAGE: "Only the sender or the community lead can delete this message",
}


def require_verified(principal: Principal, action: Action) -> None:
    if principal is not None and action not in VERIFICATION_EXEMPT and not principal.email_verified:
        raise PermissionDenied("Email address must be verified to perform this action")


def enforce(
    principal: Principal,
    action: Action,
    target: Any = None,
    *,
    is_participant: bool = False,
    community: Any = None,
    message: Optional[str] = None,
) -> None:
    if is_allowed(principal, action, target, is_participant=is_participant, community=community):
        return

    require_verified(principal, action)
    raise PermissionDenied(message or _DENIAL_MESSAGES.get(action))
