from __future__ import annotations

import logging

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.errors import not_found
from app.models import Company, Market, User
from app.schemas import CompanyUpdateRequest, MarketCreate, MarketUpdate, MarketWithCountRead

logger = logging.getLogger("app.markets")


def _get_company_market(db: Session, company_id: int, market_id: int) -> Market:
    market = db.get(Market, market_id)
    if market is None or market.company_id != company_id:
        raise not_found("Market")
    return market


def list_markets(db: Session, company_id: int) -> list[Market]:
    stmt = select(Market).where(Market.company_id == company_id).order_by(Market.name.asc(), Market.id.asc())
    return list(db.scalars(stmt).all())


def list_markets_with_counts(db: Session, company_id: int) -> list[MarketWithCountRead]:
    counts = dict(
        db.execute(
            select(User.market_id, func.count(User.id))
            .where(User.company_id == company_id, User.market_id.is_not(None))
            .group_by(User.market_id)
        ).all()
    )
    return [
        MarketWithCountRead(
            id=market.id,
            name=market.name,
            address=market.address,
            company_id=market.company_id,
            created_at=market.created_at,
            user_count=int(counts.get(market.id, 0)),
        )
        for market in list_markets(db, company_id)
    ]


def create_market(db: Session, company_id: int, payload: MarketCreate) -> Market:
    market = Market(name=payload.name.strip(), address=payload.address, company_id=company_id)
    db.add(market)
    db.commit()
    db.refresh(market)
    return market


def update_market(db: Session, company_id: int, market_id: int, payload: MarketUpdate) -> Market:
    market = _get_company_market(db, company_id, market_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name") is not None:
        market.name = changes["name"].strip()
    if "address" in changes:
        market.address = changes["address"]
    db.commit()
    db.refresh(market)
    return market


def delete_market(db: Session, company_id: int, market_id: int) -> int:
    """Delete a market, unassigning this company's users from it first.

    Returns the number of users that lost their market.
    """
    market = _get_company_market(db, company_id, market_id)
    result = db.execute(
        update(User)
        .where(User.company_id == company_id, User.market_id == market.id)
        .values(market_id=None)
        .execution_options(synchronize_session=False)
    )
    db.delete(market)
    db.commit()
    unassigned = int(result.rowcount or 0)
    logger.info(
        "market_deleted",
        extra={"company_id": company_id, "market_id": market_id, "unassigned_users": unassigned},
    )
    return unassigned


def get_company(db: Session, company_id: int) -> Company:
    company = db.get(Company, company_id)
    if company is None:
        raise not_found("Company")
    return company


def update_company(db: Session, company_id: int, payload: CompanyUpdateRequest) -> Company:
    company = get_company(db, company_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name") is not None:
        company.name = changes["name"].strip()
    if "address" in changes:
        company.address = changes["address"]
    db.commit()
    db.refresh(company)
    return company
