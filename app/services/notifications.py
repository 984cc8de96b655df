from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import not_found
from app.models import Notification, NotificationType, User
from app.roles import RoleGroup, role_group_members

logger = logging.getLogger("app.notifications")


def queue_notification(
    db: Session,
    *,
    user_id: int,
    title: str,
    message: str,
    type: NotificationType,
) -> Notification:
    """Stage a notification on the session; the caller's commit persists it."""
    notification = Notification(user_id=user_id, title=title, message=message, type=type)
    db.add(notification)
    return notification


def queue_notifications(
    db: Session,
    user_ids: Iterable[int],
    *,
    title: str,
    message: str,
    type: NotificationType,
) -> int:
    count = 0
    for user_id in user_ids:
        queue_notification(db, user_id=user_id, title=title, message=message, type=type)
        count += 1
    return count


def company_members_in_group(db: Session, company_id: int, group: RoleGroup) -> list[int]:
    members = role_group_members(group)
    stmt = select(User.id).where(User.company_id == company_id, User.role.in_(list(members)))
    return list(db.scalars(stmt).all())


def list_notifications(db: Session, user_id: int) -> list[Notification]:
    stmt = (
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
    )
    return list(db.scalars(stmt).all())


def mark_notification_read(db: Session, user_id: int, notification_id: int) -> Notification:
    notification = db.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise not_found("Notification")
    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification
