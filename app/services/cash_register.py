from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import CashRegisterEntry, CashStatus, NotificationType, User
from app.policy import scope_owned_rows
from app.schemas import CashRegisterCreate
from app.services.notifications import queue_notification
from app.settings import get_settings

logger = logging.getLogger("app.cash_register")


def list_entries(db: Session, caller: User) -> list[CashRegisterEntry]:
    stmt = select(CashRegisterEntry).order_by(CashRegisterEntry.shift_date.desc(), CashRegisterEntry.id.desc())
    return list(db.scalars(scope_owned_rows(stmt, CashRegisterEntry.user_id, caller)).all())


def record_entry(db: Session, caller: User, payload: CashRegisterCreate) -> CashRegisterEntry:
    entry = CashRegisterEntry(
        user_id=caller.id,
        shift_date=payload.shift_date,
        status=payload.status,
        amount=payload.amount,
        notes=payload.notes,
    )
    db.add(entry)

    threshold = get_settings().cash_shortage_alert_threshold
    if payload.status == CashStatus.SHORTAGE and payload.amount >= threshold:
        queue_notification(
            db,
            user_id=caller.id,
            title="Cash Shortage Alert",
            message=f"Cash shortage of {payload.amount:.2f} recorded.",
            type=NotificationType.CASH,
        )
        logger.warning(
            "cash_shortage_recorded",
            extra={"user_id": caller.id, "company_id": caller.company_id, "amount": str(payload.amount)},
        )

    db.commit()
    db.refresh(entry)
    return entry
