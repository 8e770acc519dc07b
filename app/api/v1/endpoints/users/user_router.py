from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status

from app.core.deadline import Deadline
from app.core.errors import ValidationFailed
from app.models.enums import RoleType
from app.schemas.auth_schemas import UserResponse
from app.schemas.common import Page, PageParams
from app.schemas.response import APIResponse, success_envelope
from app.services.dependencies import get_current_principal, get_deadline, get_user_service
from app.services.policy import Principal
from app.services.user_service import UserService
from app.utils.uploads import to_uploaded_blob

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("", response_model=APIResponse[Page[UserResponse]])
def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
    department_id: Optional[int] = Query(None, alias="departmentId"),
    role: Optional[RoleType] = Query(None),
    email: Optional[str] = Query(None),
    name: Optional[str] = Query(None),
    principal: Principal = Depends(get_current_principal),
    service: UserService = Depends(get_user_service),
):
    params = PageParams(page=page, page_size=page_size)
    items, total = service.list_users(
        principal,
        params,
        department_id=department_id,
        role=role,
        email=email,
        name=name,
    )
    body = Page[UserResponse].build([UserResponse.from_user(u) for u in items], total, params)
    return success_envelope(body.model_dump(by_alias=True, mode="json"))


@router.get("/{user_id}", response_model=APIResponse[UserResponse])
def get_user(
    user_id: int,
    principal: Principal = Depends(get_current_principal),
    service: UserService = Depends(get_user_service),
):
    user = service.get_user(principal, user_id)
    return success_envelope(UserResponse.from_user(user).model_dump(by_alias=True, mode="json"))


@router.post("/profile/photo", response_model=APIResponse[UserResponse], status_code=status.HTTP_201_CREATED)
def upload_profile_photo(
    file: UploadFile = File(...),
    principal: Principal = Depends(get_current_principal),
    service: UserService = Depends(get_user_service),
    deadline: Deadline = Depends(get_deadline),
):
    upload = to_uploaded_blob(file)
    if upload is None:
        raise ValidationFailed("File is required", field="file")
    user = service.update_profile_photo(principal, upload, deadline)
    return success_envelope(
        UserResponse.from_user(user).model_dump(by_alias=True, mode="json"),
        "Profile photo updated",
    )


@router.delete("/profile/photo", response_model=APIResponse[UserResponse])
def delete_profile_photo(
    principal: Principal = Depends(get_current_principal),
    service: UserService = Depends(get_user_service),
    deadline: Deadline = Depends(get_deadline),
):
    user = service.delete_profile_photo(principal, deadline)
    return success_envelope(
        UserResponse.from_user(user).model_dump(by_alias=True, mode="json"),
        "Profile photo removed",
    )
