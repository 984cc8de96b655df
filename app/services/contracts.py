from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import not_found, validation_error
from app.models import Contract, User
from app.policy import ensure_same_company, scope_owned_rows
from app.schemas import ContractCreate, ContractUpdate


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def list_contracts(db: Session, caller: User) -> list[Contract]:
    stmt = select(Contract).order_by(Contract.created_at.desc(), Contract.id.desc())
    return list(db.scalars(scope_owned_rows(stmt, Contract.user_id, caller)).all())


def create_contract(db: Session, caller: User, payload: ContractCreate) -> Contract:
    target = ensure_same_company(caller, db.get(User, payload.user_id))
    contract = Contract(
        user_id=target.id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        is_active=payload.is_active,
        notice_date=payload.notice_date,
        renewal_requested=payload.renewal_requested,
    )
    db.add(contract)
    db.commit()
    db.refresh(contract)
    return contract


def update_contract(db: Session, caller: User, contract_id: int, payload: ContractUpdate) -> Contract:
    contract = db.get(Contract, contract_id)
    if contract is None or contract.user.company_id != caller.company_id:
        raise not_found("Contract")

    changes = payload.model_dump(exclude_unset=True)
    for required in ("start_date", "end_date", "is_active", "renewal_requested"):
        if required in changes and changes[required] is None:
            raise validation_error(f"{required} cannot be empty.")
    for field, value in changes.items():
        setattr(contract, field, value)

    if _to_utc(contract.end_date) < _to_utc(contract.start_date):
        db.rollback()
        raise validation_error("end_date must be greater than or equal to start_date")

    db.commit()
    db.refresh(contract)
    return contract
