"""Time-off requests and incident reports.

A request moves ``pending -> approved | declined`` exactly once. Reviewers come
from TEAM_MANAGEMENT and never review their own requests.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.errors import conflict, forbidden, not_found
from app.models import NotificationType, RequestStatus, StaffRequest, User
from app.policy import ensure_owner_visible, log_access_denied, scope_owned_rows, visibility_clause
from app.roles import Role
from app.schemas import RequestCreate, RequestQueueItemRead, RequestRead
from app.services.notifications import queue_notification

logger = logging.getLogger("app.requests")

ALLOWED_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.APPROVED, RequestStatus.DECLINED}),
    RequestStatus.APPROVED: frozenset(),
    RequestStatus.DECLINED: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _base_query():
    return select(StaffRequest).options(selectinload(StaffRequest.reviewer))


def list_requests(db: Session, caller: User) -> list[StaffRequest]:
    stmt = _base_query().order_by(StaffRequest.created_at.desc(), StaffRequest.id.desc())
    return list(db.scalars(scope_owned_rows(stmt, StaffRequest.user_id, caller)).all())


def list_review_queue(db: Session, caller: User) -> list[RequestQueueItemRead]:
    """Staff requests the caller may act on; the caller's own are never included."""
    stmt = (
        select(StaffRequest, User.name)
        .join(User, StaffRequest.user_id == User.id)
        .options(selectinload(StaffRequest.reviewer))
        .where(visibility_clause(caller), User.role == Role.STAFF, StaffRequest.user_id != caller.id)
        .order_by(StaffRequest.created_at.desc(), StaffRequest.id.desc())
    )
    return [
        RequestQueueItemRead(**RequestRead.model_validate(row).model_dump(), user_name=user_name)
        for row, user_name in db.execute(stmt).all()
    ]


def create_request(db: Session, caller: User, payload: RequestCreate) -> StaffRequest:
    staff_request = StaffRequest(
        user_id=caller.id,
        type=payload.type,
        subject=payload.subject.strip(),
        details=payload.details,
        is_anonymous=payload.is_anonymous,
    )
    db.add(staff_request)
    db.commit()
    db.refresh(staff_request)
    return staff_request


def get_visible_request(db: Session, caller: User, request_id: int) -> StaffRequest:
    staff_request = db.get(StaffRequest, request_id)
    if staff_request is None:
        raise not_found("Request")
    ensure_owner_visible(caller, staff_request.user, entity="Request")
    return staff_request


def review_request(
    db: Session,
    caller: User,
    request_id: int,
    status: RequestStatus,
    *,
    now: datetime | None = None,
) -> StaffRequest:
    staff_request = get_visible_request(db, caller, request_id)
    if staff_request.user_id == caller.id:
        log_access_denied(reason="self_review", caller=caller, staff_request_id=request_id)
        raise forbidden()

    current = RequestStatus(staff_request.status)
    if status not in ALLOWED_TRANSITIONS[current]:
        raise conflict(f"Request is already {current.value}.")

    staff_request.status = status
    staff_request.reviewed_by = caller.id
    staff_request.updated_at = now or _utcnow()
    queue_notification(
        db,
        user_id=staff_request.user_id,
        title=f"Request {status.value}",
        message=f'Your request "{staff_request.subject}" has been {status.value}.',
        type=NotificationType.REQUEST,
    )
    db.commit()
    db.refresh(staff_request)
    logger.info(
        "request_reviewed",
        extra={"request_id": staff_request.id, "status": status.value, "reviewer_id": caller.id},
    )
    return staff_request


def delete_request(db: Session, caller: User, request_id: int) -> None:
    staff_request = db.get(StaffRequest, request_id)
    if staff_request is None or staff_request.user.company_id != caller.company_id:
        raise not_found("Request")
    db.delete(staff_request)
    db.commit()
