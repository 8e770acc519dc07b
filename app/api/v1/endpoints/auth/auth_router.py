from fastapi import APIRouter, Depends, Query, status

from app.core.deadline import Deadline
from app.models.user_models import User
from app.schemas.auth_schemas import (
    AuthResponse,
    EmailRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    UpdateProfileRequest,
    UserResponse,
)
from app.schemas.response import APIResponse, success_envelope
from app.services.auth_service import AuthService
from app.services.dependencies import (
    get_auth_service,
    get_current_principal,
    get_current_user,
    get_deadline,
)
from app.services.policy import Action, Principal, enforce
from app.services.token_service import TokenPair

router = APIRouter(prefix="/auth", tags=["Auth"])


def _auth_payload(user: User, pair: TokenPair) -> dict:
    return AuthResponse(
        user=UserResponse.from_user(user),
        tokens=TokenResponse(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            token_type=pair.token_type,
            expires_in=pair.expires_in,
            refresh_expires_in=pair.refresh_expires_in,
        ),
    ).model_dump(by_alias=True, mode="json")


@router.post("/register", response_model=APIResponse[AuthResponse], status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
    deadline: Deadline = Depends(get_deadline),
):
    user, pair = service.register(
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role_type,
        department_id=payload.department_id,
        student_identifier=payload.student_id,
        graduation_year=payload.graduation_year,
        title=payload.title,
        deadline=deadline,
    )
    return success_envelope(_auth_payload(user, pair), "Registration successful")


@router.post("/login", response_model=APIResponse[AuthResponse])
def login(
    payload: LoginRequest,
    service: AuthService = Depends(get_auth_service),
    deadline: Deadline = Depends(get_deadline),
):
    user, pair = service.login(payload.email, payload.password, deadline)
    return success_envelope(_auth_payload(user, pair), "Login successful")


@router.post("/refresh", response_model=APIResponse[AuthResponse])
def refresh(
    payload: RefreshRequest,
    service: AuthService = Depends(get_auth_service),
    deadline: Deadline = Depends(get_deadline),
):
    user, pair = service.refresh(payload.refresh_token, deadline)
    return success_envelope(_auth_payload(user, pair), "Token refreshed")


@router.post("/logout", response_model=APIResponse[dict])
def logout(
    user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    revoked = service.logout(user.id)
    return success_envelope({"revokedTokens": revoked}, "Logged out")


@router.get("/verify-email", response_model=APIResponse[UserResponse])
def verify_email(
    token: str = Query(..., min_length=1),
    service: AuthService = Depends(get_auth_service),
):
    user = service.verify_email(token)
    return success_envelope(
        UserResponse.from_user(user).model_dump(by_alias=True, mode="json"),
        "Email verified",
    )


@router.post("/resend-verification", response_model=APIResponse[None])
def resend_verification(
    payload: EmailRequest,
    service: AuthService = Depends(get_auth_service),
):
    service.resend_verification(payload.email)
    return success_envelope(None, "If the account exists and is unverified, a verification email has been sent")


@router.post("/forgot-password", response_model=APIResponse[None])
def forgot_password(
    payload: EmailRequest,
    service: AuthService = Depends(get_auth_service),
):
    service.forgot_password(payload.email)
    return success_envelope(None, "If the account exists, a password reset email has been sent")


@router.post("/reset-password", response_model=APIResponse[None])
def reset_password(
    payload: ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service),
    deadline: Deadline = Depends(get_deadline),
):
    service.reset_password(payload.token, payload.new_password, deadline)
    return success_envelope(None, "Password reset successful")


@router.get("/profile", response_model=APIResponse[UserResponse])
def get_profile(
    principal: Principal = Depends(get_current_principal),
    service: AuthService = Depends(get_auth_service),
):
    enforce(principal, Action.VIEW_OWN_PROFILE)
    user = service.get_profile(principal.user_id)
    return success_envelope(UserResponse.from_user(user).model_dump(by_alias=True, mode="json"))


@router.put("/profile", response_model=APIResponse[UserResponse])
def update_profile(
    payload: UpdateProfileRequest,
    principal: Principal = Depends(get_current_principal),
    service: AuthService = Depends(get_auth_service),
):
    enforce(principal, Action.UPDATE_OWN_PROFILE)
    user = service.update_profile(
        principal.user_id,
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
    )
    return success_envelope(
        UserResponse.from_user(user).model_dump(by_alias=True, mode="json"),
        "Profile updated",
    )
