from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.audit import audit_user_action
from app.db import get_db
from app.models import Company, Market, User
from app.policy import require_route
from app.schemas import (
    CompanyRead,
    CompanyUpdateRequest,
    MarketCreate,
    MarketRead,
    MarketUpdate,
    MarketWithCountRead,
    SuccessResponse,
)
from app.services.markets import (
    create_market,
    delete_market,
    get_company,
    list_markets,
    list_markets_with_counts,
    update_company,
    update_market,
)

router = APIRouter(tags=["organization"])


@router.get("/api/markets", response_model=list[MarketRead])
def markets(
    current_user: User = Depends(require_route("markets.list")),
    db: Session = Depends(get_db),
) -> list[Market]:
    return list_markets(db, current_user.company_id)


@router.post("/api/markets", response_model=MarketRead)
def add_market(
    payload: MarketCreate,
    request: Request,
    current_user: User = Depends(require_route("markets.create")),
    db: Session = Depends(get_db),
) -> Market:
    market = create_market(db, current_user.company_id, payload)
    audit_user_action(db, request, current_user, action="MARKET_CREATED", entity_type="market", entity_id=market.id)
    db.refresh(market)
    return market


@router.put("/api/markets/{market_id}", response_model=MarketRead)
def edit_market(
    market_id: int,
    payload: MarketUpdate,
    request: Request,
    current_user: User = Depends(require_route("markets.update")),
    db: Session = Depends(get_db),
) -> Market:
    market = update_market(db, current_user.company_id, market_id, payload)
    audit_user_action(db, request, current_user, action="MARKET_UPDATED", entity_type="market", entity_id=market.id)
    db.refresh(market)
    return market


@router.delete("/api/markets/{market_id}", response_model=SuccessResponse)
def remove_market(
    market_id: int,
    request: Request,
    current_user: User = Depends(require_route("markets.delete")),
    db: Session = Depends(get_db),
) -> SuccessResponse:
    unassigned = delete_market(db, current_user.company_id, market_id)
    audit_user_action(
        db,
        request,
        current_user,
        action="MARKET_DELETED",
        entity_type="market",
        entity_id=market_id,
        details={"unassigned_users": unassigned},
    )
    return SuccessResponse()


@router.get("/api/admin/markets", response_model=list[MarketWithCountRead])
def admin_markets(
    current_user: User = Depends(require_route("admin.markets")),
    db: Session = Depends(get_db),
) -> list[MarketWithCountRead]:
    return list_markets_with_counts(db, current_user.company_id)


@router.get("/api/companies", response_model=CompanyRead)
def read_company(
    current_user: User = Depends(require_route("companies.read")),
    db: Session = Depends(get_db),
) -> Company:
    return get_company(db, current_user.company_id)


@router.put("/api/companies", response_model=CompanyRead)
def edit_company(
    payload: CompanyUpdateRequest,
    request: Request,
    current_user: User = Depends(require_route("companies.update")),
    db: Session = Depends(get_db),
) -> Company:
    company = update_company(db, current_user.company_id, payload)
    audit_user_action(db, request, current_user, action="COMPANY_UPDATED", entity_type="company", entity_id=company.id)
    db.refresh(company)
    return company
