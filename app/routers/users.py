from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.audit import audit_user_action
from app.db import get_db
from app.models import User
from app.policy import require_route
from app.schemas import (
    StandingUpdateRequest,
    SuccessResponse,
    TeamMemberRead,
    UserAdminCreateRequest,
    UserAdminUpdateRequest,
    UserRead,
)
from app.security import get_session_manager
from app.services.sessions import SessionManager
from app.services.users import (
    create_company_user,
    delete_company_user,
    get_user_for_caller,
    list_company_users,
    list_team,
    list_visible_users,
    update_company_user,
    update_standing,
)

router = APIRouter(tags=["users"])


@router.get("/api/users", response_model=list[UserRead])
def list_users(
    current_user: User = Depends(require_route("users.list")),
    db: Session = Depends(get_db),
) -> list[User]:
    return list_visible_users(db, current_user)


@router.get("/api/users/{user_id}", response_model=UserRead)
def get_user(
    user_id: int,
    current_user: User = Depends(require_route("users.read")),
    db: Session = Depends(get_db),
) -> User:
    return get_user_for_caller(db, current_user, user_id)


@router.put("/api/users/{user_id}", response_model=UserRead)
def update_user(
    user_id: int,
    payload: UserAdminUpdateRequest,
    request: Request,
    current_user: User = Depends(require_route("users.update")),
    db: Session = Depends(get_db),
) -> User:
    user, changed_fields = update_company_user(db, current_user, user_id, payload)
    audit_user_action(
        db,
        request,
        current_user,
        action="USER_UPDATED",
        entity_type="user",
        entity_id=user.id,
        details={"changed_fields": changed_fields},
    )
    db.refresh(user)
    return user


@router.delete("/api/users/{user_id}", response_model=SuccessResponse)
def delete_user(
    user_id: int,
    request: Request,
    current_user: User = Depends(require_route("users.delete")),
    sessions: SessionManager = Depends(get_session_manager),
    db: Session = Depends(get_db),
) -> SuccessResponse:
    delete_company_user(db, current_user, user_id, sessions)
    audit_user_action(db, request, current_user, action="USER_DELETED", entity_type="user", entity_id=user_id)
    return SuccessResponse()


@router.get("/api/staff", response_model=list[UserRead])
def list_staff(
    current_user: User = Depends(require_route("staff.list")),
    db: Session = Depends(get_db),
) -> list[User]:
    return list_visible_users(db, current_user, staff_only=True)


@router.patch("/api/staff/{user_id}/status", response_model=UserRead)
def update_staff_standing(
    user_id: int,
    payload: StandingUpdateRequest,
    request: Request,
    current_user: User = Depends(require_route("staff.standing")),
    db: Session = Depends(get_db),
) -> User:
    user = update_standing(db, current_user, user_id, payload.standing)
    audit_user_action(
        db,
        request,
        current_user,
        action="STAFF_STANDING_UPDATED",
        entity_type="user",
        entity_id=user.id,
        details={"standing": payload.standing.value},
    )
    db.refresh(user)
    return user


@router.get("/api/admin/users", response_model=list[UserRead])
def admin_list_users(
    current_user: User = Depends(require_route("admin.users.list")),
    db: Session = Depends(get_db),
) -> list[User]:
    return list_company_users(db, current_user)


@router.post("/api/admin/users", response_model=UserRead)
def admin_create_user(
    payload: UserAdminCreateRequest,
    request: Request,
    current_user: User = Depends(require_route("admin.users.create")),
    db: Session = Depends(get_db),
) -> User:
    user = create_company_user(db, current_user, payload)
    audit_user_action(
        db,
        request,
        current_user,
        action="USER_CREATED",
        entity_type="user",
        entity_id=user.id,
        details={"role": user.role.value},
    )
    db.refresh(user)
    return user


@router.get("/api/manager/team", response_model=list[TeamMemberRead])
def manager_team(
    current_user: User = Depends(require_route("manager.team")),
    db: Session = Depends(get_db),
) -> list[TeamMemberRead]:
    return list_team(db, current_user)
