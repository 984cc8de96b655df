from __future__ import annotations

import enum

from app.settings import get_settings


class Role(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    CFO = "cfo"
    HR_ADMIN = "hr_admin"
    MANAGER = "manager"
    SUPERVISOR = "supervisor"
    STAFF = "staff"


class RoleGroup(str, enum.Enum):
    EXECUTIVE = "EXECUTIVE"
    USER_MANAGEMENT = "USER_MANAGEMENT"
    FINANCIAL = "FINANCIAL"
    TEAM_MANAGEMENT = "TEAM_MANAGEMENT"
    ADMINISTRATION = "ADMINISTRATION"
    PAYROLL_VIEW = "PAYROLL_VIEW"
    AUTHENTICATED = "AUTHENTICATED"


# cfo and hr_admin share a rank: peers, neither outranks the other.
ROLE_RANK: dict[Role, int] = {
    Role.OWNER: 7,
    Role.ADMIN: 6,
    Role.CFO: 5,
    Role.HR_ADMIN: 5,
    Role.MANAGER: 4,
    Role.SUPERVISOR: 3,
    Role.STAFF: 1,
}

MARKET_SCOPED_ROLES: frozenset[Role] = frozenset({Role.MANAGER, Role.SUPERVISOR})

_HIERARCHY_GROUPS: dict[RoleGroup, frozenset[Role]] = {
    RoleGroup.EXECUTIVE: frozenset({Role.OWNER, Role.ADMIN, Role.CFO, Role.HR_ADMIN}),
    RoleGroup.USER_MANAGEMENT: frozenset({Role.OWNER, Role.ADMIN, Role.HR_ADMIN}),
    RoleGroup.FINANCIAL: frozenset({Role.OWNER, Role.ADMIN, Role.CFO}),
    RoleGroup.TEAM_MANAGEMENT: frozenset(
        {Role.OWNER, Role.ADMIN, Role.HR_ADMIN, Role.MANAGER, Role.SUPERVISOR}
    ),
    RoleGroup.ADMINISTRATION: frozenset({Role.OWNER, Role.ADMIN}),
    RoleGroup.PAYROLL_VIEW: frozenset(
        {Role.OWNER, Role.ADMIN, Role.CFO, Role.MANAGER, Role.SUPERVISOR}
    ),
    RoleGroup.AUTHENTICATED: frozenset(Role),
}

# Flat deployments only know admin / manager / staff.
_FLAT_GROUPS: dict[RoleGroup, frozenset[Role]] = {
    RoleGroup.EXECUTIVE: frozenset({Role.ADMIN}),
    RoleGroup.USER_MANAGEMENT: frozenset({Role.ADMIN}),
    RoleGroup.FINANCIAL: frozenset({Role.ADMIN}),
    RoleGroup.TEAM_MANAGEMENT: frozenset({Role.ADMIN, Role.MANAGER}),
    RoleGroup.ADMINISTRATION: frozenset({Role.ADMIN}),
    RoleGroup.PAYROLL_VIEW: frozenset({Role.ADMIN, Role.MANAGER}),
    RoleGroup.AUTHENTICATED: frozenset(Role),
}


def normalize_role(value: Role | str | None) -> Role | None:
    if isinstance(value, Role):
        return value
    raw = (value or "").strip().lower()
    try:
        return Role(raw)
    except ValueError:
        return None


def role_rank(role: Role | str | None) -> int:
    normalized = normalize_role(role)
    if normalized is None:
        return 0
    return ROLE_RANK[normalized]


def has_higher_or_equal_role(role: Role | str | None, target_role: Role | str | None) -> bool:
    return role_rank(role) >= role_rank(target_role)


def hierarchy_enabled() -> bool:
    return bool(get_settings().role_hierarchy_enabled)


def role_group_members(group: RoleGroup, *, hierarchy: bool | None = None) -> frozenset[Role]:
    use_hierarchy = hierarchy_enabled() if hierarchy is None else hierarchy
    table = _HIERARCHY_GROUPS if use_hierarchy else _FLAT_GROUPS
    return table[group]


def is_member(role: Role | str | None, group: RoleGroup, *, hierarchy: bool | None = None) -> bool:
    normalized = normalize_role(role)
    if normalized is None:
        return False
    return normalized in role_group_members(group, hierarchy=hierarchy)
