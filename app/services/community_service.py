import logging
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.deadline import Deadline, check_deadline
from app.core.errors import (
    AlreadyExists,
    AlreadyParticipant,
    LeadCannotLeave,
    NotFound,
    ValidationFailed,
)
from app.crud.pagination import paginate
from app.models.chat_message_models import ChatMessage
from app.models.community_models import Community, CommunityParticipant
from app.models.enums import ResourceType
from app.models.file_models import File
from app.models.user_models import User
from app.schemas.common import PageParams
from app.services.file_service import IMAGE_EXTENSIONS, FileService, UploadedBlob
from app.services.policy import Action, Principal, enforce, require_verified
from app.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


def get_community_or_404(db: Session, community_id: int) -> Community:
    community = db.query(Community).filter(Community.id == community_id).first()
    if not community:
        raise NotFound("Community not found")
    return community


def is_participant(db: Session, community_id: int, user_id: int) -> bool:
    return (
        db.query(CommunityParticipant.user_id)
        .filter(
            CommunityParticipant.community_id == community_id,
            CommunityParticipant.user_id == user_id,
        )
        .first()
        is not None
    )


def participant_count(db: Session, community_id: int) -> int:
    return (
        db.query(func.count(CommunityParticipant.user_id))
        .filter(CommunityParticipant.community_id == community_id)
        .scalar()
        or 0
    )


class CommunityService:
    """
    The lead is always a participant: creation inserts both in one
    transaction, the lead cannot leave, and lead transfer only targets an
    existing participant.
    """

    def __init__(self, db: Session, files: FileService):
        self.db = db
        self.files = files

    # -----------------------------
    # Reads
    # -----------------------------
    def list_communities(
        self, params: PageParams, *, search: Optional[str] = None
    ) -> tuple[list[Community], int]:
        q = self.db.query(Community)
        if search and search.strip():
            term = f"%{search.strip()}%"
            q = q.filter(or_(Community.name.ilike(term), Community.abbreviation.ilike(term)))
        q = q.order_by(Community.name.asc(), Community.id.asc())
        return paginate(q, params)

    def get(self, community_id: int) -> Community:
        return get_community_or_404(self.db, community_id)

    def participant_counts(self, community_ids: list[int]) -> dict[int, int]:
        if not community_ids:
            return {}
        rows = (
            self.db.query(CommunityParticipant.community_id, func.count(CommunityParticipant.user_id))
            .filter(CommunityParticipant.community_id.in_(community_ids))
            .group_by(CommunityParticipant.community_id)
            .all()
        )
        return {cid: n for cid, n in rows}

    def list_participants(self, community_id: int) -> list[tuple[CommunityParticipant, User]]:
        get_community_or_404(self.db, community_id)
        return (
            self.db.query(CommunityParticipant, User)
            .join(User, User.id == CommunityParticipant.user_id)
            .filter(CommunityParticipant.community_id == community_id)
            .order_by(CommunityParticipant.joined_at.asc(), CommunityParticipant.user_id.asc())
            .all()
        )

    def check_participation(self, principal: Principal, community_id: int) -> tuple[Community, bool]:
        community = get_community_or_404(self.db, community_id)
        return community, is_participant(self.db, community.id, principal.user_id)

    # -----------------------------
    # Mutations
    # -----------------------------
    def _ensure_name_available(self, name: str, exclude_id: Optional[int] = None) -> None:
        q = self.db.query(Community.id).filter(func.lower(Community.name) == name.lower())
        if exclude_id is not None:
            q = q.filter(Community.id != exclude_id)
        if q.first():
            raise AlreadyExists("Community name is already taken", field="name")

    def create(
        self,
        principal: Principal,
        name: str,
        abbreviation: str,
        deadline: Optional[Deadline] = None,
    ) -> Community:
        enforce(principal, Action.CREATE_COMMUNITY)

        name = (name or "").strip()
        abbreviation = (abbreviation or "").strip()
        if not name:
            raise ValidationFailed("Community name cannot be empty", field="name")
        if not abbreviation:
            raise ValidationFailed("Abbreviation cannot be empty", field="abbreviation")
        self._ensure_name_available(name)

        try:
            check_deadline(deadline, "create community")
            community = Community(
                name=name,
                abbreviation=abbreviation,
                lead_user_id=principal.user_id,
            )
            self.db.add(community)
            self.db.flush()
            self.db.add(
                CommunityParticipant(community_id=community.id, user_id=principal.user_id)
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise AlreadyExists("Community name is already taken", field="name")
        except Exception:
            self.db.rollback()
            raise

        logger.info("Community %s created; lead user_id=%s", community.id, principal.user_id)
        return community

    def update(
        self,
        principal: Principal,
        community_id: int,
        *,
        name: Optional[str] = None,
        abbreviation: Optional[str] = None,
        lead_id: Optional[int] = None,
        deadline: Optional[Deadline] = None,
    ) -> Community:
        community = get_community_or_404(self.db, community_id)
        enforce(principal, Action.UPDATE_COMMUNITY, community)

        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationFailed("Community name cannot be empty", field="name")
            self._ensure_name_available(name, exclude_id=community.id)
        if abbreviation is not None:
            abbreviation = abbreviation.strip()
            if not abbreviation:
                raise ValidationFailed("Abbreviation cannot be empty", field="abbreviation")
        if lead_id is not None and lead_id != community.lead_user_id:
            if not is_participant(self.db, community.id, lead_id):
                raise ValidationFailed("New lead must be a participant of the community", field="leadId")

        try:
            check_deadline(deadline, "update community")
            if name is not None:
                community.name = name
            if abbreviation is not None:
                community.abbreviation = abbreviation
            if lead_id is not None and lead_id != community.lead_user_id:
                logger.info(
                    "Community %s lead transferred %s -> %s",
                    community.id,
                    community.lead_user_id,
                    lead_id,
                )
                community.lead_user_id = lead_id
            community.updated_at = utcnow()
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise AlreadyExists("Community name is already taken", field="name")
        except Exception:
            self.db.rollback()
            raise
        return community

    def delete(self, principal: Principal, community_id: int, deadline: Optional[Deadline] = None) -> None:
        community = get_community_or_404(self.db, community_id)
        enforce(principal, Action.DELETE_COMMUNITY, community)

        try:
            check_deadline(deadline, "delete community")
            # participants and messages go with the row; files become orphans
            message_ids = select(ChatMessage.id).where(ChatMessage.community_id == community.id)
            attached = (
                self.db.query(File)
                .filter(File.resource_type == ResourceType.CHAT, File.resource_id.in_(message_ids))
                .all()
            )
            if community.profile_photo is not None:
                attached.append(community.profile_photo)
            for f in attached:
                self.files.unattach(f)

            self.db.delete(community)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Community %s deleted by user_id=%s; %d file(s) released",
            community_id,
            principal.user_id,
            len(attached),
        )

    # -----------------------------
    # Membership
    # -----------------------------
    def join(self, principal: Principal, community_id: int, deadline: Optional[Deadline] = None) -> Community:
        community = get_community_or_404(self.db, community_id)
        enforce(principal, Action.JOIN_COMMUNITY, community, is_participant=False)

        if is_participant(self.db, community.id, principal.user_id):
            raise AlreadyParticipant()

        try:
            check_deadline(deadline, "join community")
            self.db.add(CommunityParticipant(community_id=community.id, user_id=principal.user_id))
            self.db.commit()
        except IntegrityError:
            # concurrent join won the unique (community_id, user_id)
            self.db.rollback()
            raise AlreadyParticipant()
        except Exception:
            self.db.rollback()
            raise

        logger.info("User user_id=%s joined community %s", principal.user_id, community.id)
        return community

    def leave(self, principal: Principal, community_id: int, deadline: Optional[Deadline] = None) -> None:
        community = get_community_or_404(self.db, community_id)
        member = is_participant(self.db, community.id, principal.user_id)

        require_verified(principal, Action.LEAVE_COMMUNITY)
        if member and community.lead_user_id == principal.user_id:
            raise LeadCannotLeave()
        enforce(principal, Action.LEAVE_COMMUNITY, community, is_participant=member)

        try:
            check_deadline(deadline, "leave community")
            self.db.query(CommunityParticipant).filter(
                CommunityParticipant.community_id == community.id,
                CommunityParticipant.user_id == principal.user_id,
            ).delete(synchronize_session=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("User user_id=%s left community %s", principal.user_id, community.id)

    # -----------------------------
    # Profile photo
    # -----------------------------
    def update_profile_photo(
        self,
        principal: Principal,
        community_id: int,
        upload: UploadedBlob,
        deadline: Optional[Deadline] = None,
    ) -> Community:
        community = get_community_or_404(self.db, community_id)
        enforce(principal, Action.UPDATE_COMMUNITY, community)

        stored = self.files.store(
            upload,
            ResourceType.PROFILE_PHOTO,
            principal.user_id,
            allowed_extensions=IMAGE_EXTENSIONS,
            deadline=deadline,
        )

        try:
            check_deadline(deadline, "swap profile photo")
            self.files.unattach(community.profile_photo)
            self.files.attach(stored, community.id)
            community.profile_photo_file_id = stored.id
            community.updated_at = utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            self.files.discard([stored])
            raise

        self.db.expire(community, ["profile_photo"])
        return community

    def delete_profile_photo(
        self, principal: Principal, community_id: int, deadline: Optional[Deadline] = None
    ) -> Community:
        community = get_community_or_404(self.db, community_id)
        enforce(principal, Action.UPDATE_COMMUNITY, community)

        if community.profile_photo_file_id is None:
            return community

        try:
            check_deadline(deadline, "remove profile photo")
            self.files.unattach(community.profile_photo)
            community.profile_photo_file_id = None
            community.updated_at = utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.expire(community, ["profile_photo"])
        return community
