from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import validation_error
from app.models import Market, Schedule, User
from app.policy import can_access_market, ensure_owner_visible, is_market_fenced, scope_owned_rows
from app.schemas import ScheduleCreate


def resolve_target_market(db: Session, caller: User, target: User, market_id: int | None) -> int | None:
    """Market for a row created on behalf of ``target``.

    Defaults to the target's own market. An explicit market must belong to the
    caller's company, and a market-fenced caller may only use their own market.
    """
    if market_id is None:
        return target.market_id
    market = db.get(Market, market_id)
    if market is None or market.company_id != caller.company_id:
        raise validation_error("Invalid market.")
    if is_market_fenced(caller) and not can_access_market(caller, market.id):
        raise validation_error("Invalid market.")
    return market.id


def list_schedules(db: Session, caller: User) -> list[Schedule]:
    stmt = select(Schedule).order_by(Schedule.date.desc(), Schedule.id.desc())
    return list(db.scalars(scope_owned_rows(stmt, Schedule.user_id, caller)).all())


def create_schedule(db: Session, caller: User, payload: ScheduleCreate) -> Schedule:
    target = ensure_owner_visible(caller, db.get(User, payload.user_id), entity="User")
    schedule = Schedule(
        user_id=target.id,
        market_id=resolve_target_market(db, caller, target, payload.market_id),
        date=payload.date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        break_start=payload.break_start,
        break_end=payload.break_end,
        position=payload.position.strip(),
    )
    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    return schedule
