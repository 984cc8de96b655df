from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import conflict, not_found, validation_error
from app.models import Contract, Market, Schedule, User, UserStanding
from app.policy import (
    can_access_user,
    ensure_can_assign_role,
    ensure_can_manage_user,
    ensure_owner_visible,
    ensure_same_company,
    log_access_denied,
    scope_users,
)
from app.roles import Role
from app.schemas import (
    ProfileUpdateRequest,
    TeamMemberRead,
    TodayShiftRead,
    UserAdminCreateRequest,
    UserAdminUpdateRequest,
)
from app.security import hash_password
from app.services.auth import find_company_user, normalize_email
from app.services.sessions import SessionManager
from app.settings import get_settings

logger = logging.getLogger("app.users")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_market_in_company(db: Session, company_id: int, market_id: int | None) -> None:
    if market_id is None:
        return
    market = db.get(Market, market_id)
    if market is None or market.company_id != company_id:
        raise validation_error("Invalid market.")


def active_contract(db: Session, user_id: int) -> Contract | None:
    return db.scalar(
        select(Contract)
        .where(Contract.user_id == user_id, Contract.is_active.is_(True))
        .order_by(Contract.start_date.desc(), Contract.id.desc())
        .limit(1)
    )


_PROFILE_REQUIRED_FIELDS = ("name", "theme", "accent_color", "language")


def update_profile(db: Session, user: User, payload: ProfileUpdateRequest) -> User:
    changes = payload.model_dump(exclude_unset=True)
    for required in _PROFILE_REQUIRED_FIELDS:
        if required in changes and changes[required] is None:
            raise validation_error(f"{required} cannot be empty.")
    for field, value in changes.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return user


def set_two_factor(db: Session, user: User, *, enabled: bool) -> User:
    user.two_factor_enabled = enabled
    db.commit()
    db.refresh(user)
    return user


def list_visible_users(db: Session, caller: User, *, staff_only: bool = False) -> list[User]:
    stmt = select(User).order_by(User.created_at.desc(), User.id.desc())
    if staff_only:
        stmt = stmt.where(User.role == Role.STAFF)
    return list(db.scalars(scope_users(stmt, caller)).all())


def list_company_users(db: Session, caller: User) -> list[User]:
    stmt = (
        select(User)
        .where(User.company_id == caller.company_id)
        .order_by(User.created_at.desc(), User.id.desc())
    )
    return list(db.scalars(stmt).all())


def get_user_for_caller(db: Session, caller: User, user_id: int) -> User:
    """Fetch one user; anything the caller may not see is reported as missing."""
    target = db.get(User, user_id)
    if target is None or target.company_id != caller.company_id:
        raise not_found("User")
    if not can_access_user(caller, target.id):
        log_access_denied(reason="user_not_visible", caller=caller, target_user_id=target.id)
        raise not_found("User")
    return target


def create_company_user(db: Session, caller: User, payload: UserAdminCreateRequest) -> User:
    ensure_can_assign_role(caller, payload.role)
    _ensure_market_in_company(db, caller.company_id, payload.market_id)
    if find_company_user(db, caller.company_id, payload.email) is not None:
        raise conflict("Email already exists in this company.")

    settings = get_settings()
    user = User(
        email=normalize_email(payload.email),
        company_id=caller.company_id,
        password_hash=hash_password(payload.password),
        name=payload.name.strip(),
        phone=payload.phone,
        role=payload.role,
        market_id=payload.market_id,
        hourly_rate=payload.hourly_rate if payload.hourly_rate is not None else settings.default_hourly_rate,
        holiday_rate=payload.holiday_rate if payload.holiday_rate is not None else settings.default_holiday_rate,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise conflict("Email already exists in this company.") from exc
    db.refresh(user)
    return user


def update_company_user(
    db: Session,
    caller: User,
    user_id: int,
    payload: UserAdminUpdateRequest,
) -> tuple[User, list[str]]:
    target = ensure_same_company(caller, db.get(User, user_id))
    ensure_can_manage_user(caller, target)

    changes: dict[str, Any] = payload.model_dump(exclude_unset=True)
    if "role" in changes:
        if changes["role"] is None:
            raise validation_error("Role cannot be empty.")
        ensure_can_assign_role(caller, changes["role"])
    if "market_id" in changes:
        _ensure_market_in_company(db, caller.company_id, changes["market_id"])
    if "email" in changes:
        if changes["email"] is None:
            raise validation_error("Email cannot be empty.")
        changes["email"] = normalize_email(changes["email"])
        existing = find_company_user(db, caller.company_id, changes["email"])
        if existing is not None and existing.id != target.id:
            raise conflict("Email already exists in this company.")
    for required in ("name", "standing", "hourly_rate", "holiday_rate"):
        if required in changes and changes[required] is None:
            raise validation_error(f"{required} cannot be empty.")

    password = changes.pop("password", None)
    if password:
        target.password_hash = hash_password(password)
    for field, value in changes.items():
        setattr(target, field, value)

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise conflict("Email already exists in this company.") from exc
    db.refresh(target)

    changed_fields = sorted(changes)
    if password:
        changed_fields.append("password")
    return target, changed_fields


def delete_company_user(db: Session, caller: User, user_id: int, sessions: SessionManager) -> None:
    target = ensure_same_company(caller, db.get(User, user_id))
    if target.id == caller.id:
        raise validation_error("You cannot delete your own account.")
    ensure_can_manage_user(caller, target)

    sessions.destroy_user_sessions(target.id)
    db.delete(target)
    db.commit()
    logger.info("user_deleted", extra={"user_id": user_id, "company_id": caller.company_id, "actor_id": caller.id})


def update_standing(db: Session, caller: User, user_id: int, standing: UserStanding) -> User:
    target = ensure_owner_visible(caller, db.get(User, user_id), entity="User")
    ensure_can_manage_user(caller, target)
    target.standing = standing
    db.commit()
    db.refresh(target)
    return target


def list_team(db: Session, caller: User, *, today: datetime | None = None) -> list[TeamMemberRead]:
    """Visible staff with the shift they work today, if any."""
    current = today or _utcnow()
    day_start = datetime(current.year, current.month, current.day, tzinfo=timezone.utc)
    day_end = day_start.replace(hour=23, minute=59, second=59, microsecond=999999)

    members = list_visible_users(db, caller, staff_only=True)
    if not members:
        return []

    shifts = db.scalars(
        select(Schedule)
        .where(
            and_(
                Schedule.user_id.in_([member.id for member in members]),
                Schedule.date >= day_start,
                Schedule.date <= day_end,
            )
        )
        .order_by(Schedule.start_time.asc(), Schedule.id.asc())
    ).all()
    shift_by_user: dict[int, Schedule] = {}
    for shift in shifts:
        shift_by_user.setdefault(shift.user_id, shift)

    result: list[TeamMemberRead] = []
    for member in members:
        shift = shift_by_user.get(member.id)
        result.append(
            TeamMemberRead(
                id=member.id,
                name=member.name,
                email=member.email,
                role=member.role,
                standing=member.standing,
                market_id=member.market_id,
                hourly_rate=member.hourly_rate,
                today_shift=(
                    TodayShiftRead(start_time=shift.start_time, end_time=shift.end_time, position=shift.position)
                    if shift is not None
                    else None
                ),
            )
        )
    return result
