#!/usr/bin/env python
"""Create the DEMO company with one account per role.

Idempotent: does nothing when a company with code DEMO already exists.
Every account logs in with password ``password123`` and company code ``DEMO``.
"""
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from sqlalchemy import select

from app.db import SessionLocal
from app.logging_utils import setup_json_logging
from app.models import Company, Market, User
from app.roles import Role
from app.security import hash_password
from app.settings import get_settings

DEMO_CODE = "DEMO"
DEMO_PASSWORD = "password123"
DEMO_USERS = (
    ("owner@demo.com", "Oliver Owner", Role.OWNER),
    ("admin@demo.com", "Alex Admin", Role.ADMIN),
    ("cfo@demo.com", "Charlie CFO", Role.CFO),
    ("hr@demo.com", "Hannah HR Admin", Role.HR_ADMIN),
    ("manager@demo.com", "Maria Manager", Role.MANAGER),
    ("supervisor@demo.com", "Sarah Supervisor", Role.SUPERVISOR),
    ("staff@demo.com", "Sam Staff", Role.STAFF),
    ("worker@demo.com", "Jordan Worker", Role.STAFF),
)

logger = logging.getLogger("app.seed_demo")


def seed_demo() -> dict:
    settings = get_settings()
    with SessionLocal() as db:
        existing = db.scalar(select(Company).where(Company.code == DEMO_CODE))
        if existing is not None:
            return {"created": False, "company_id": existing.id}

        company = Company(name="Demo Company", code=DEMO_CODE, address="123 Demo Street")
        db.add(company)
        db.flush()
        market = Market(name="Demo Location", address="123 Demo Street", company_id=company.id)
        db.add(market)
        db.flush()

        password_hash = hash_password(DEMO_PASSWORD)
        for email, name, role in DEMO_USERS:
            db.add(
                User(
                    email=email,
                    company_id=company.id,
                    password_hash=password_hash,
                    name=name,
                    role=role,
                    market_id=market.id,
                    hourly_rate=settings.default_hourly_rate,
                    holiday_rate=settings.default_holiday_rate,
                )
            )
        db.commit()
        logger.info("demo_company_seeded", extra={"company_id": company.id, "users": len(DEMO_USERS)})
        return {"created": True, "company_id": company.id, "users": [email for email, _, _ in DEMO_USERS]}


if __name__ == "__main__":
    setup_json_logging()
    print(json.dumps(seed_demo(), ensure_ascii=False, indent=2))
