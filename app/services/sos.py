from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import not_found
from app.models import NotificationType, SOSAlert, User
from app.policy import ensure_owner_visible, scope_owned_rows
from app.roles import RoleGroup
from app.schemas import SOSCreate
from app.services.notifications import company_members_in_group, queue_notifications

logger = logging.getLogger("app.sos")


def raise_alert(db: Session, caller: User, payload: SOSCreate) -> tuple[SOSAlert, int]:
    """Record an alert for the caller and notify every executive of the company."""
    alert = SOSAlert(user_id=caller.id, type=payload.type)
    db.add(alert)

    recipients = [
        user_id
        for user_id in company_members_in_group(db, caller.company_id, RoleGroup.EXECUTIVE)
        if user_id != caller.id
    ]
    notified = queue_notifications(
        db,
        recipients,
        title="SOS ALERT",
        message=f"Emergency {payload.type.value} alert triggered by {caller.name}",
        type=NotificationType.SOS,
    )
    db.commit()
    db.refresh(alert)
    logger.warning(
        "sos_alert_raised",
        extra={
            "alert_id": alert.id,
            "user_id": caller.id,
            "company_id": caller.company_id,
            "sos_type": payload.type.value,
            "notified": notified,
        },
    )
    return alert, notified


def list_alerts(db: Session, caller: User) -> list[SOSAlert]:
    stmt = select(SOSAlert).order_by(SOSAlert.created_at.desc(), SOSAlert.id.desc())
    return list(db.scalars(scope_owned_rows(stmt, SOSAlert.user_id, caller)).all())


def resolve_alert(db: Session, caller: User, alert_id: int) -> SOSAlert:
    alert = db.get(SOSAlert, alert_id)
    if alert is None:
        raise not_found("SOS alert")
    ensure_owner_visible(caller, alert.user, entity="SOS alert")
    alert.resolved = True
    db.commit()
    db.refresh(alert)
    return alert
