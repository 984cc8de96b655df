from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models import (
    AuditLog,
    Market,
    RequestStatus,
    SOSAlert,
    StaffRequest,
    StaffWarning,
    User,
    WarningStatus,
)
from app.roles import Role
from app.schemas import AdminDashboardRead, AdminSettingsRead, CompanyStatsRead, SOSRead
from app.settings import get_settings

RECENT_SOS_LIMIT = 5


def _count(db: Session, stmt) -> int:
    return int(db.scalar(stmt) or 0)


def _pending_requests(db: Session, company_id: int) -> int:
    return _count(
        db,
        select(func.count(StaffRequest.id))
        .join(User, StaffRequest.user_id == User.id)
        .where(User.company_id == company_id, StaffRequest.status == RequestStatus.PENDING),
    )


def build_dashboard(db: Session, company_id: int) -> AdminDashboardRead:
    total_users = _count(db, select(func.count(User.id)).where(User.company_id == company_id))
    active_warnings = _count(
        db,
        select(func.count(StaffWarning.id))
        .join(User, StaffWarning.user_id == User.id)
        .where(User.company_id == company_id, StaffWarning.status == WarningStatus.ACTIVE),
    )
    recent_sos = db.scalars(
        select(SOSAlert)
        .join(User, SOSAlert.user_id == User.id)
        .where(User.company_id == company_id, SOSAlert.resolved.is_(False))
        .order_by(SOSAlert.created_at.desc(), SOSAlert.id.desc())
        .limit(RECENT_SOS_LIMIT)
    ).all()
    return AdminDashboardRead(
        total_users=total_users,
        pending_requests=_pending_requests(db, company_id),
        active_warnings=active_warnings,
        recent_sos=[SOSRead.model_validate(alert) for alert in recent_sos],
    )


def build_company_stats(db: Session, company_id: int) -> CompanyStatsRead:
    role_counts = {role.value: 0 for role in Role}
    rows = db.execute(
        select(User.role, func.count(User.id)).where(User.company_id == company_id).group_by(User.role)
    ).all()
    for role, count in rows:
        role_counts[Role(role).value] = int(count)

    return CompanyStatsRead(
        total_users=sum(role_counts.values()),
        owners=role_counts[Role.OWNER.value],
        admins=role_counts[Role.ADMIN.value],
        managers=role_counts[Role.MANAGER.value],
        supervisors=role_counts[Role.SUPERVISOR.value],
        staff=role_counts[Role.STAFF.value],
        total_markets=_count(db, select(func.count(Market.id)).where(Market.company_id == company_id)),
        pending_requests=_pending_requests(db, company_id),
        role_counts=role_counts,
    )


def admin_settings() -> AdminSettingsRead:
    settings = get_settings()
    return AdminSettingsRead(
        default_hourly_rate=settings.default_hourly_rate,
        default_holiday_rate=settings.default_holiday_rate,
        role_hierarchy_enabled=settings.role_hierarchy_enabled,
    )


def list_system_logs(db: Session, company_id: int, *, limit: int = 100, offset: int = 0) -> list[AuditLog]:
    stmt = (
        select(AuditLog)
        .where(AuditLog.company_id == company_id)
        .order_by(AuditLog.ts_utc.desc(), AuditLog.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(db.scalars(stmt).all())
