from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status

from app.core.deadline import Deadline
from app.core.errors import ValidationFailed
from app.models.community_models import Community
from app.schemas.common import Page, PageParams
from app.schemas.community_schemas import (
    CommunityCreate,
    CommunityResponse,
    CommunityUpdate,
    ParticipantCheckResponse,
    ParticipantResponse,
)
from app.schemas.file_schemas import FileResponse
from app.schemas.response import APIResponse, success_envelope
from app.services.community_service import CommunityService, participant_count
from app.services.dependencies import get_community_service, get_current_principal, get_deadline
from app.services.policy import Principal
from app.utils.uploads import to_uploaded_blob

router = APIRouter(prefix="/communities", tags=["Communities"])


def _community(community: Community, count: int) -> CommunityResponse:
    photo = community.profile_photo
    return CommunityResponse(
        id=community.id,
        name=community.name,
        abbreviation=community.abbreviation,
        lead_user_id=community.lead_user_id,
        profile_photo=FileResponse.model_validate(photo) if photo else None,
        participant_count=count,
        created_at=community.created_at,
        updated_at=community.updated_at,
    )


def _out(service: CommunityService, community: Community) -> dict:
    count = participant_count(service.db, community.id)
    return _community(community, count).model_dump(by_alias=True, mode="json")


@router.get("", response_model=APIResponse[Page[CommunityResponse]])
def list_communities(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
    search: Optional[str] = Query(None),
    service: CommunityService = Depends(get_community_service),
):
    params = PageParams(page=page, page_size=page_size)
    items, total = service.list_communities(params, search=search)
    counts = service.participant_counts([c.id for c in items])
    body = Page[CommunityResponse].build(
        [_community(c, counts.get(c.id, 0)) for c in items], total, params
    )
    return success_envelope(body.model_dump(by_alias=True, mode="json"))


@router.get("/{community_id}", response_model=APIResponse[CommunityResponse])
def get_community(community_id: int, service: CommunityService = Depends(get_community_service)):
    return success_envelope(_out(service, service.get(community_id)))


@router.post("", response_model=APIResponse[CommunityResponse], status_code=status.HTTP_201_CREATED)
def create_community(
    payload: CommunityCreate,
    principal: Principal = Depends(get_current_principal),
    service: CommunityService = Depends(get_community_service),
    deadline: Deadline = Depends(get_deadline),
):
    community = service.create(principal, payload.name, payload.abbreviation, deadline)
    return success_envelope(_out(service, community), "Community created")


@router.put("/{community_id}", response_model=APIResponse[CommunityResponse])
def update_community(
    community_id: int,
    payload: CommunityUpdate,
    principal: Principal = Depends(get_current_principal),
    service: CommunityService = Depends(get_community_service),
    deadline: Deadline = Depends(get_deadline),
):
    community = service.update(
        principal,
        community_id,
        name=payload.name,
        abbreviation=payload.abbreviation,
        lead_id=payload.lead_id,
        deadline=deadline,
    )
    return success_envelope(_out(service, community), "Community updated")


@router.delete("/{community_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_community(
    community_id: int,
    principal: Principal = Depends(get_current_principal),
    service: CommunityService = Depends(get_community_service),
    deadline: Deadline = Depends(get_deadline),
):
    service.delete(principal, community_id, deadline)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# -----------------------------
# Profile photo
# -----------------------------
@router.put("/{community_id}/profile-photo", response_model=APIResponse[CommunityResponse])
def update_profile_photo(
    community_id: int,
    file: UploadFile = File(...),
    principal: Principal = Depends(get_current_principal),
    service: CommunityService = Depends(get_community_service),
    deadline: Deadline = Depends(get_deadline),
):
    upload = to_uploaded_blob(file)
    if upload is None:
        raise ValidationFailed("File is required", field="file")
    community = service.update_profile_photo(principal, community_id, upload, deadline)
    return success_envelope(_out(service, community), "Profile photo updated")


@router.delete("/{community_id}/profile-photo", response_model=APIResponse[CommunityResponse])
def delete_profile_photo(
    community_id: int,
    principal: Principal = Depends(get_current_principal),
    service: CommunityService = Depends(get_community_service),
    deadline: Deadline = Depends(get_deadline),
):
    community = service.delete_profile_photo(principal, community_id, deadline)
    return success_envelope(_out(service, community), "Profile photo removed")


# -----------------------------
# Participants
# -----------------------------
@router.get("/{community_id}/participants", response_model=APIResponse[list[ParticipantResponse]])
def list_participants(
    community_id: int,
    service: CommunityService = Depends(get_community_service),
):
    community = service.get(community_id)
    rows = service.list_participants(community_id)
    data = [
        ParticipantResponse(
            user_id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            is_lead=user.id == community.lead_user_id,
            joined_at=participant.joined_at,
        ).model_dump(by_alias=True, mode="json")
        for participant, user in rows
    ]
    return success_envelope(data)


@router.get("/{community_id}/participants/check", response_model=APIResponse[ParticipantCheckResponse])
def check_participant(
    community_id: int,
    principal: Principal = Depends(get_current_principal),
    service: CommunityService = Depends(get_community_service),
):
    community, member = service.check_participation(principal, community_id)
    data = ParticipantCheckResponse(
        community_id=community.id,
        is_participant=member,
        is_lead=community.lead_user_id == principal.user_id,
    )
    return success_envelope(data.model_dump(by_alias=True, mode="json"))


@router.post("/{community_id}/participants", response_model=APIResponse[CommunityResponse])
def join_community(
    community_id: int,
    principal: Principal = Depends(get_current_principal),
    service: CommunityService = Depends(get_community_service),
    deadline: Deadline = Depends(get_deadline),
):
    community = service.join(principal, community_id, deadline)
    return success_envelope(_out(service, community), "Joined community")


@router.delete("/{community_id}/participants", response_model=APIResponse[None])
def leave_community(
    community_id: int,
    principal: Principal = Depends(get_current_principal),
    service: CommunityService = Depends(get_community_service),
    deadline: Deadline = Depends(get_deadline),
):
    service.leave(principal, community_id, deadline)
    return success_envelope(None, "Left community")
