from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db import get_db
from app.models import AuditLog, User
from app.policy import require_route
from app.schemas import AdminDashboardRead, AdminSettingsRead, AuditLogRead, CompanyStatsRead
from app.services.admin_stats import admin_settings, build_company_stats, build_dashboard, list_system_logs

router = APIRouter(tags=["admin"])


@router.get("/api/admin-dashboard", response_model=AdminDashboardRead)
def admin_dashboard(
    current_user: User = Depends(require_route("admin.dashboard")),
    db: Session = Depends(get_db),
) -> AdminDashboardRead:
    return build_dashboard(db, current_user.company_id)


@router.get("/api/admin/company-stats", response_model=CompanyStatsRead)
def company_stats(
    current_user: User = Depends(require_route("admin.company_stats")),
    db: Session = Depends(get_db),
) -> CompanyStatsRead:
    return build_company_stats(db, current_user.company_id)


@router.get("/api/admin/settings", response_model=AdminSettingsRead)
def read_admin_settings(_: User = Depends(require_route("admin.settings"))) -> AdminSettingsRead:
    return admin_settings()


@router.get("/api/admin/system-logs", response_model=list[AuditLogRead])
def system_logs(
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    current_user: User = Depends(require_route("admin.system_logs")),
    db: Session = Depends(get_db),
) -> list[AuditLog]:
    return list_system_logs(db, current_user.company_id, limit=limit, offset=offset)
