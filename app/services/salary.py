from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.models import SalaryPayment, User
from app.policy import ensure_owner_visible, ensure_same_company
from app.schemas import SalaryOverviewRead, SalaryPaymentCreate, SalaryPaymentRead

logger = logging.getLogger("app.salary")


def _payments_for(db: Session, user_id: int) -> list[SalaryPayment]:
    stmt = (
        select(SalaryPayment)
        .where(SalaryPayment.user_id == user_id)
        .order_by(SalaryPayment.paid_at.desc(), SalaryPayment.id.desc())
    )
    return list(db.scalars(stmt).all())


def salary_overview(db: Session, user: User) -> SalaryOverviewRead:
    return SalaryOverviewRead(
        accumulated_salary=user.accumulated_salary,
        hourly_rate=user.hourly_rate,
        holiday_rate=user.holiday_rate,
        payments=[SalaryPaymentRead.model_validate(row) for row in _payments_for(db, user.id)],
    )


def staff_salary_overview(db: Session, caller: User, user_id: int) -> SalaryOverviewRead:
    target = ensure_owner_visible(caller, db.get(User, user_id), entity="User")
    return salary_overview(db, target)


def record_payment(db: Session, caller: User, payload: SalaryPaymentCreate) -> SalaryPayment:
    """Insert the payment and decrement the accrued balance in one transaction.

    The decrement is computed by the database so concurrent payments to the
    same user are never lost.
    """
    target = ensure_same_company(caller, db.get(User, payload.user_id))
    payment = SalaryPayment(user_id=target.id, amount=payload.amount, period=payload.period.strip())
    db.add(payment)
    db.execute(
        update(User)
        .where(User.id == target.id)
        .values(accumulated_salary=User.accumulated_salary - payload.amount)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(payment)
    logger.info(
        "salary_payment_recorded",
        extra={"payment_id": payment.id, "user_id": target.id, "company_id": caller.company_id, "amount": str(payload.amount)},
    )
    return payment
