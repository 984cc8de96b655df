"""Route guards and row-level visibility.

Route guards answer "may this role call this endpoint at all" and are looked up
in :data:`ROUTE_GUARDS`, the single table mapping endpoint keys to role groups.
Visibility predicates answer "may this caller see or act on this row".

Row visibility follows one three-tier rule everywhere:

1. ``staff`` see only rows they own;
2. ``manager`` / ``supervisor`` with a market see rows whose owning user is in
   that market;
3. everybody else (executives, market-less managers) see every row owned by a
   user of their own company.

The company filter is applied on every tier, so no role ever crosses tenants.
A row that fails visibility is reported as not found.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from fastapi import Depends, Request
from sqlalchemy import Select, and_
from sqlalchemy.sql.elements import ColumnElement

from app.errors import ApiError, forbidden, not_found, unauthorized
from app.models import User
from app.roles import (
    MARKET_SCOPED_ROLES,
    Role,
    RoleGroup,
    has_higher_or_equal_role,
    is_member,
    normalize_role,
)
from app.security import require_user

logger = logging.getLogger("app.policy")

ROUTE_GUARDS: dict[str, RoleGroup] = {
    "auth.logout": RoleGroup.AUTHENTICATED,
    "auth.me": RoleGroup.AUTHENTICATED,
    "profile.read": RoleGroup.AUTHENTICATED,
    "profile.update": RoleGroup.AUTHENTICATED,
    "profile.password": RoleGroup.AUTHENTICATED,
    "profile.two_factor": RoleGroup.AUTHENTICATED,
    "users.list": RoleGroup.TEAM_MANAGEMENT,
    "users.read": RoleGroup.AUTHENTICATED,
    "users.update": RoleGroup.USER_MANAGEMENT,
    "users.delete": RoleGroup.USER_MANAGEMENT,
    "staff.list": RoleGroup.TEAM_MANAGEMENT,
    "staff.standing": RoleGroup.TEAM_MANAGEMENT,
    "admin.users.list": RoleGroup.USER_MANAGEMENT,
    "admin.users.create": RoleGroup.USER_MANAGEMENT,
    "markets.list": RoleGroup.AUTHENTICATED,
    "markets.create": RoleGroup.USER_MANAGEMENT,
    "markets.update": RoleGroup.USER_MANAGEMENT,
    "markets.delete": RoleGroup.USER_MANAGEMENT,
    "admin.markets": RoleGroup.EXECUTIVE,
    "companies.read": RoleGroup.EXECUTIVE,
    "companies.update": RoleGroup.ADMINISTRATION,
    "schedules.list": RoleGroup.AUTHENTICATED,
    "schedules.create": RoleGroup.TEAM_MANAGEMENT,
    "requests.list": RoleGroup.AUTHENTICATED,
    "requests.create": RoleGroup.AUTHENTICATED,
    "requests.read": RoleGroup.AUTHENTICATED,
    "requests.review": RoleGroup.TEAM_MANAGEMENT,
    "requests.delete": RoleGroup.ADMINISTRATION,
    "manager.requests": RoleGroup.TEAM_MANAGEMENT,
    "manager.team": RoleGroup.TEAM_MANAGEMENT,
    "warnings.list": RoleGroup.AUTHENTICATED,
    "warnings.create": RoleGroup.TEAM_MANAGEMENT,
    "cash_register.list": RoleGroup.AUTHENTICATED,
    "cash_register.create": RoleGroup.AUTHENTICATED,
    "contracts.list": RoleGroup.AUTHENTICATED,
    "contracts.current": RoleGroup.AUTHENTICATED,
    "contracts.create": RoleGroup.USER_MANAGEMENT,
    "contracts.update": RoleGroup.USER_MANAGEMENT,
    "sos.create": RoleGroup.AUTHENTICATED,
    "sos.list": RoleGroup.AUTHENTICATED,
    "sos.resolve": RoleGroup.TEAM_MANAGEMENT,
    "salary.me": RoleGroup.AUTHENTICATED,
    "salary.staff": RoleGroup.PAYROLL_VIEW,
    "salary.payments.create": RoleGroup.FINANCIAL,
    "notifications.list": RoleGroup.AUTHENTICATED,
    "notifications.read": RoleGroup.AUTHENTICATED,
    "admin.dashboard": RoleGroup.EXECUTIVE,
    "admin.company_stats": RoleGroup.EXECUTIVE,
    "admin.settings": RoleGroup.ADMINISTRATION,
    "admin.system_logs": RoleGroup.ADMINISTRATION,
}


def log_access_denied(*, reason: str, caller: User | None, request: Request | None = None, **details: Any) -> None:
    logger.warning(
        "access_denied",
        extra={
            "reason": reason,
            "user_id": getattr(caller, "id", None),
            "user_role": getattr(getattr(caller, "role", None), "value", None),
            "company_id": getattr(caller, "company_id", None),
            "endpoint": f"{request.method} {request.url.path}" if request is not None else None,
            "request_id": getattr(request.state, "request_id", None) if request is not None else None,
            **details,
        },
    )


def ensure_role(request: Request | None, caller: User | None, group: RoleGroup) -> User:
    if caller is None:
        raise unauthorized("Missing bearer token.")
    if not is_member(caller.role, group):
        log_access_denied(reason="role_denied", caller=caller, request=request, required_group=group.value)
        raise forbidden()
    return caller


def require_route(route_key: str) -> Callable[..., User]:
    if route_key not in ROUTE_GUARDS:
        raise ValueError(f"Unknown route guard: {route_key}")
    group = ROUTE_GUARDS[route_key]

    def _dependency(request: Request, caller: User = Depends(require_user)) -> User:
        return ensure_role(request, caller, group)

    return _dependency


def can_access_user(caller: User, target_user_id: int) -> bool:
    if is_member(caller.role, RoleGroup.EXECUTIVE):
        return True
    return caller.id == target_user_id


def can_access_market(caller: User, market_id: int | None) -> bool:
    if is_member(caller.role, RoleGroup.EXECUTIVE):
        return True
    if normalize_role(caller.role) in MARKET_SCOPED_ROLES and caller.market_id is not None:
        return caller.market_id == market_id
    return False


def is_market_fenced(caller: User) -> bool:
    return normalize_role(caller.role) in MARKET_SCOPED_ROLES and caller.market_id is not None


def visibility_clause(caller: User) -> ColumnElement[bool]:
    """SQL predicate on ``User`` restricting owners to those the caller may see."""
    clauses: list[ColumnElement[bool]] = [User.company_id == caller.company_id]
    if normalize_role(caller.role) == Role.STAFF:
        clauses.append(User.id == caller.id)
    elif is_market_fenced(caller):
        clauses.append(User.market_id == caller.market_id)
    return and_(*clauses)


def scope_users(stmt: Select[Any], caller: User) -> Select[Any]:
    return stmt.where(visibility_clause(caller))


def scope_owned_rows(stmt: Select[Any], owner_column: Any, caller: User) -> Select[Any]:
    return stmt.join(User, owner_column == User.id).where(visibility_clause(caller))


def is_owner_visible(caller: User, owner: User | None) -> bool:
    if owner is None or owner.company_id != caller.company_id:
        return False
    if normalize_role(caller.role) == Role.STAFF:
        return owner.id == caller.id
    if is_market_fenced(caller):
        return owner.market_id == caller.market_id
    return True


def ensure_owner_visible(
    caller: User,
    owner: User | None,
    *,
    entity: str,
    request: Request | None = None,
) -> User:
    if owner is None:
        raise not_found(entity)
    if not is_owner_visible(caller, owner):
        log_access_denied(reason="row_not_visible", caller=caller, request=request, target_user_id=owner.id)
        raise not_found(entity)
    return owner


def ensure_same_company(caller: User, target: User | None, *, entity: str = "User") -> User:
    if target is None or target.company_id != caller.company_id:
        raise not_found(entity)
    return target


def ensure_can_manage_user(caller: User, target: User, *, request: Request | None = None) -> None:
    if not has_higher_or_equal_role(caller.role, target.role):
        log_access_denied(reason="rank_denied", caller=caller, request=request, target_user_id=target.id)
        raise forbidden()


def ensure_can_assign_role(caller: User, role: Role | str, *, request: Request | None = None) -> None:
    if normalize_role(role) is None:
        raise ApiError(status_code=400, code="VALIDATION_ERROR", message="Unknown role.")
    if not has_higher_or_equal_role(caller.role, role):
        log_access_denied(reason="role_assignment_denied", caller=caller, request=request, target_role=str(role))
        raise forbidden()
