from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import NotificationType, StaffWarning, User
from app.policy import ensure_owner_visible, scope_owned_rows
from app.schemas import WarningCreate
from app.services.notifications import queue_notification
from app.services.schedules import resolve_target_market


def list_warnings(db: Session, caller: User) -> list[StaffWarning]:
    stmt = select(StaffWarning).order_by(StaffWarning.created_at.desc(), StaffWarning.id.desc())
    return list(db.scalars(scope_owned_rows(stmt, StaffWarning.user_id, caller)).all())


def issue_warning(db: Session, caller: User, payload: WarningCreate) -> StaffWarning:
    target = ensure_owner_visible(caller, db.get(User, payload.user_id), entity="User")
    warning = StaffWarning(
        user_id=target.id,
        issued_by=caller.id,
        reason=payload.reason,
        is_firing_notice=payload.is_firing_notice,
        market_wide=payload.market_wide,
        market_id=resolve_target_market(db, caller, target, payload.market_id),
    )
    db.add(warning)
    queue_notification(
        db,
        user_id=target.id,
        title="Firing Notice" if payload.is_firing_notice else "Warning Issued",
        message=payload.reason,
        type=NotificationType.WARNING,
    )
    db.commit()
    db.refresh(warning)
    return warning
