from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.audit import audit_login, audit_user_action
from app.db import get_db
from app.errors import ApiError
from app.models import User
from app.policy import require_route
from app.schemas import (
    AuthResponse,
    AuthUserRead,
    CompanyRead,
    CompanyRegisterRequest,
    CompanyRegisterResponse,
    ContractRead,
    LoginRequest,
    MeResponse,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    SuccessResponse,
    TwoFactorUpdateRequest,
    UserRead,
)
from app.security import get_session_manager, require_session_token
from app.services.auth import (
    authenticate_user,
    change_password,
    normalize_company_code,
    normalize_email,
    register_company,
    register_user,
)
from app.services.sessions import SessionManager
from app.services.users import active_contract, set_two_factor, update_profile

router = APIRouter(tags=["auth"])


def _auth_user_payload(db: Session, user: User, *, with_contract: bool = False) -> AuthUserRead:
    contract = active_contract(db, user.id) if with_contract else None
    return AuthUserRead(
        **UserRead.model_validate(user).model_dump(),
        company=CompanyRead.model_validate(user.company) if user.company is not None else None,
        contract=ContractRead.model_validate(contract) if contract is not None else None,
    )


@router.post("/api/register-company", response_model=CompanyRegisterResponse)
def register_company_endpoint(
    payload: CompanyRegisterRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> CompanyRegisterResponse:
    company, owner = register_company(db, payload)
    audit_user_action(
        db,
        request,
        owner,
        action="COMPANY_REGISTERED",
        entity_type="company",
        entity_id=company.id,
        details={"code": company.code},
    )
    return CompanyRegisterResponse(
        company=CompanyRead.model_validate(company),
        user=UserRead.model_validate(owner),
    )


@router.post("/api/auth/register", response_model=AuthResponse)
def register(
    payload: RegisterRequest,
    request: Request,
    db: Session = Depends(get_db),
    sessions: SessionManager = Depends(get_session_manager),
) -> AuthResponse:
    user = register_user(db, payload)
    token = sessions.create_session(user.id)
    audit_user_action(db, request, user, action="USER_REGISTERED", entity_type="user", entity_id=user.id)
    db.refresh(user)
    return AuthResponse(user=_auth_user_payload(db, user), token=token)


@router.post("/api/auth/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    sessions: SessionManager = Depends(get_session_manager),
) -> AuthResponse:
    email = normalize_email(payload.email)
    company_code = normalize_company_code(payload.company_code)
    try:
        user = authenticate_user(db, email=email, password=payload.password, company_code=company_code)
    except ApiError as exc:
        audit_login(db, request, email=email, company_code=company_code, failure_code=exc.code)
        raise

    token = sessions.create_session(user.id)
    request.state.actor = "user"
    request.state.actor_id = str(user.id)
    request.state.company_id = user.company_id
    audit_login(db, request, email=email, company_code=company_code, user=user)
    db.refresh(user)
    return AuthResponse(user=_auth_user_payload(db, user), token=token)


@router.post("/api/auth/logout", response_model=SuccessResponse)
def logout(
    request: Request,
    token: str = Depends(require_session_token),
    sessions: SessionManager = Depends(get_session_manager),
    current_user: User = Depends(require_route("auth.logout")),
    db: Session = Depends(get_db),
) -> SuccessResponse:
    sessions.destroy_session(token)
    audit_user_action(db, request, current_user, action="LOGOUT", entity_type="user", entity_id=current_user.id)
    return SuccessResponse()


@router.get("/api/auth/me", response_model=MeResponse)
def me(
    current_user: User = Depends(require_route("auth.me")),
    db: Session = Depends(get_db),
) -> MeResponse:
    return MeResponse(user=_auth_user_payload(db, current_user, with_contract=True))


@router.get("/api/users/me", response_model=UserRead)
def read_profile(current_user: User = Depends(require_route("profile.read"))) -> User:
    return current_user


@router.put("/api/users/me", response_model=UserRead)
def update_own_profile(
    payload: ProfileUpdateRequest,
    current_user: User = Depends(require_route("profile.update")),
    db: Session = Depends(get_db),
) -> User:
    return update_profile(db, current_user, payload)


@router.put("/api/profile/password", response_model=SuccessResponse)
def update_password(
    payload: PasswordChangeRequest,
    request: Request,
    current_user: User = Depends(require_route("profile.password")),
    db: Session = Depends(get_db),
) -> SuccessResponse:
    change_password(
        db,
        current_user,
        current_password=payload.current_password,
        new_password=payload.new_password,
    )
    audit_user_action(db, request, current_user, action="PASSWORD_CHANGED", entity_type="user", entity_id=current_user.id)
    return SuccessResponse()


@router.put("/api/profile/2fa", response_model=UserRead)
def update_two_factor(
    payload: TwoFactorUpdateRequest,
    request: Request,
    current_user: User = Depends(require_route("profile.two_factor")),
    db: Session = Depends(get_db),
) -> User:
    user = set_two_factor(db, current_user, enabled=payload.enabled)
    audit_user_action(
        db,
        request,
        user,
        action="TWO_FACTOR_UPDATED",
        entity_type="user",
        entity_id=user.id,
        details={"enabled": payload.enabled},
    )
    db.refresh(user)
    return user
