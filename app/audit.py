"""Persistent audit trail.

Each mutation and every login attempt leaves one ``audit_logs`` row scoped to
the acting company. Audit writes commit on their own; a failed write is rolled
back and logged without raising.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import Request
from sqlalchemy.orm import Session

from app.logging_utils import redact
from app.models import AuditActorType, AuditLog, User

logger = logging.getLogger("app.audit")

SYSTEM_ACTOR_ID = "system"


@dataclass(frozen=True)
class AuditContext:
    ip: str | None = None
    user_agent: str | None = None
    request_id: str | None = None


def client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def audit_context(request: Request) -> AuditContext:
    return AuditContext(
        ip=client_ip(request),
        user_agent=request.headers.get("user-agent"),
        request_id=getattr(request.state, "request_id", None),
    )


def log_audit(
    db: Session,
    context: AuditContext,
    *,
    actor_type: AuditActorType,
    actor_id: str,
    action: str,
    success: bool = True,
    company_id: int | None = None,
    entity_type: str | None = None,
    entity_id: object = None,
    details: dict[str, Any] | None = None,
) -> None:
    safe_details = redact(details or {})
    entity_key = str(entity_id) if entity_id is not None else None
    db.add(
        AuditLog(
            company_id=company_id,
            actor_type=actor_type,
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_key,
            ip=context.ip,
            user_agent=context.user_agent,
            success=success,
            details=safe_details,
        )
    )
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(
            "audit_log_write_failed",
            extra={"request_id": context.request_id, "action": action, "company_id": company_id},
        )
        return

    logger.info(
        "audit_event",
        extra={
            "request_id": context.request_id,
            "company_id": company_id,
            "action": action,
            "actor_type": actor_type.value,
            "actor_id": actor_id,
            "entity_type": entity_type,
            "entity_id": entity_key,
            "success": success,
            "details": safe_details,
        },
    )


def audit_user_action(
    db: Session,
    request: Request,
    actor: User,
    *,
    action: str,
    entity_type: str | None = None,
    entity_id: object = None,
    details: dict[str, Any] | None = None,
) -> None:
    log_audit(
        db,
        audit_context(request),
        actor_type=AuditActorType.USER,
        actor_id=str(actor.id),
        action=action,
        company_id=actor.company_id,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
    )


def audit_login(
    db: Session,
    request: Request,
    *,
    email: str,
    company_code: str,
    user: User | None = None,
    failure_code: str | None = None,
) -> None:
    """Record a login attempt; failures are attributed to the system actor."""
    context = audit_context(request)
    if user is not None and failure_code is None:
        log_audit(
            db,
            context,
            actor_type=AuditActorType.USER,
            actor_id=str(user.id),
            action="LOGIN_SUCCESS",
            company_id=user.company_id,
            entity_type="user",
            entity_id=user.id,
        )
        return

    log_audit(
        db,
        context,
        actor_type=AuditActorType.SYSTEM,
        actor_id=SYSTEM_ACTOR_ID,
        action="LOGIN_FAIL",
        success=False,
        company_id=user.company_id if user is not None else None,
        details={"reason": failure_code, "email": email, "company_code": company_code},
    )
