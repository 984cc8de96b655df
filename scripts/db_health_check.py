#!/usr/bin/env python
from __future__ import annotations

import json
from datetime import datetime, timezone

from sqlalchemy import create_engine, text

from app.settings import get_settings

EXPECTED_HEAD = "0001_initial"
REQUIRED_TABLES = (
    "companies",
    "markets",
    "users",
    "sessions",
    "contracts",
    "schedules",
    "requests",
    "warnings",
    "cash_registers",
    "sos_alerts",
    "notifications",
    "salary_payments",
    "audit_logs",
)


def run() -> dict:
    database_url = get_settings().database_url
    engine = create_engine(database_url)
    report: dict = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "checks": [],
    }

    def add(name: str, status: str, details: dict) -> None:
        report["checks"].append({"name": name, "status": status, "details": details})

    with engine.connect() as conn:
        tables = set(
            conn.execute(
                text(
                    """
                    select table_name
                    from information_schema.tables
                    where table_schema='public'
                    """
                )
            ).scalars()
        )

        current_versions: list[str] = []
        if "alembic_version" in tables:
            current_versions = [
                row[0]
                for row in conn.execute(text("select version_num from alembic_version")).fetchall()
            ]
        add("alembic_version", "ok" if current_versions else "fail", {"current": current_versions})
        add(
            "migration_up_to_date",
            "ok" if EXPECTED_HEAD in current_versions else "warn",
            {"expected_head": EXPECTED_HEAD, "current": current_versions},
        )

        missing = [table for table in REQUIRED_TABLES if table not in tables]
        add("missing_tables", "fail" if missing else "ok", {"missing": missing})

        if "users" in tables and "markets" in tables:
            cross_company_markets = conn.execute(
                text(
                    """
                    select u.id
                    from users u
                    join markets m on m.id = u.market_id
                    where m.company_id <> u.company_id
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "users_in_foreign_market",
                "fail" if cross_company_markets else "ok",
                {"sample_ids": [row[0] for row in cross_company_markets]},
            )

        if "sessions" in tables:
            expired_sessions = conn.execute(
                text("select count(*) from sessions where expires_at <= now()")
            ).scalar_one()
            add(
                "expired_sessions_pending_sweep",
                "warn" if expired_sessions else "ok",
                {"count": int(expired_sessions)},
            )

        if "users" in tables:
            locked_users = conn.execute(
                text("select count(*) from users where locked_until is not null and locked_until > now()")
            ).scalar_one()
            add("locked_accounts", "ok", {"count": int(locked_users)})

    return report


if __name__ == "__main__":
    print(json.dumps(run(), ensure_ascii=False, indent=2))
