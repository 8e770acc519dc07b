import enum


class RoleType(str, enum.Enum):
    STUDENT = "STUDENT"
    INSTRUCTOR = "INSTRUCTOR"


class Term(str, enum.Enum):
    FALL = "FALL"
    SPRING = "SPRING"


class ResourceType(str, enum.Enum):
    PAST_EXAM = "PAST_EXAM"
    CLASS_NOTE = "CLASS_NOTE"
    PROFILE_PHOTO = "PROFILE_PHOTO"
    COMMUNITY = "COMMUNITY"
    CHAT = "CHAT"


class MessageType(str, enum.Enum):
    TEXT = "TEXT"
    FILE = "FILE"
