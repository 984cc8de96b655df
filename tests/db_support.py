from __future__ import annotations

import unittest
from collections.abc import Generator
from decimal import Decimal

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import Base, get_db
from app.main import app
from app.models import Company, Market, User
from app.roles import Role
from app.security import hash_password
from app.services.sessions import DatabaseSessionStore, SessionManager

DEFAULT_PASSWORD = "password123"
_DEFAULT_PASSWORD_HASH = hash_password(DEFAULT_PASSWORD)


class ApiTestCase(unittest.TestCase):
    """Runs the real app against a throwaway in-memory SQLite database."""

    def setUp(self) -> None:
        self.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(bind=self.engine)
        self.SessionTesting = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        self.db = self.SessionTesting()

        def _override_get_db() -> Generator[Session, None, None]:
            db = self.SessionTesting()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _override_get_db
        self.client = TestClient(app)
        # Registered as a cleanup so it runs after cleanups added by subclasses/tests.
        self.addCleanup(self._teardown_database)

    def _teardown_database(self) -> None:
        app.dependency_overrides.clear()
        self.db.close()
        Base.metadata.drop_all(bind=self.engine)
        self.engine.dispose()

    def make_company(self, code: str = "ACME", name: str = "Acme Retail") -> Company:
        company = Company(name=name, code=code)
        self.db.add(company)
        self.db.commit()
        self.db.refresh(company)
        return company

    def make_market(self, company: Company, name: str = "Downtown") -> Market:
        market = Market(name=name, company_id=company.id)
        self.db.add(market)
        self.db.commit()
        self.db.refresh(market)
        return market

    def make_user(
        self,
        company: Company,
        role: Role,
        email: str,
        *,
        market: Market | None = None,
        password_hash: str | None = None,
        accumulated_salary: Decimal = Decimal("0.00"),
    ) -> User:
        user = User(
            email=email,
            company_id=company.id,
            password_hash=password_hash or _DEFAULT_PASSWORD_HASH,
            name=email.split("@", 1)[0].title(),
            role=role,
            market_id=market.id if market is not None else None,
            accumulated_salary=accumulated_salary,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def auth_headers(self, user: User) -> dict[str, str]:
        token = SessionManager(DatabaseSessionStore(self.db)).create_session(user.id)
        return {"Authorization": f"Bearer {token}"}

    def fresh_session(self) -> Session:
        return self.SessionTesting()


class TenantFixture(ApiTestCase):
    """Two companies; ACME has a north and a south market."""

    def setUp(self) -> None:
        super().setUp()
        self.acme = self.make_company("ACME")
        self.beta = self.make_company("BETA", name="Beta Foods")
        self.north = self.make_market(self.acme, "North")
        self.south = self.make_market(self.acme, "South")

        self.owner = self.make_user(self.acme, Role.OWNER, "olga@acme.com")
        self.hr = self.make_user(self.acme, Role.HR_ADMIN, "hana@acme.com")
        self.manager = self.make_user(self.acme, Role.MANAGER, "max@acme.com", market=self.north)
        self.staff = self.make_user(self.acme, Role.STAFF, "sam@acme.com", market=self.north)
        self.colleague = self.make_user(self.acme, Role.STAFF, "cleo@acme.com", market=self.north)
        self.south_staff = self.make_user(self.acme, Role.STAFF, "stan@acme.com", market=self.south)

        self.beta_owner = self.make_user(self.beta, Role.OWNER, "bob@beta.com")
        self.beta_staff = self.make_user(self.beta, Role.STAFF, "bea@beta.com")

    def get(self, user, path: str):
        return self.client.get(path, headers=self.auth_headers(user))

    def post(self, user, path: str, payload: dict):
        return self.client.post(path, headers=self.auth_headers(user), json=payload)

    def patch(self, user, path: str, payload: dict):
        return self.client.patch(path, headers=self.auth_headers(user), json=payload)

    def put(self, user, path: str, payload: dict):
        return self.client.put(path, headers=self.auth_headers(user), json=payload)

    def schedule(self, author, target, day: str = "2026-03-02"):
        resp = self.post(
            author,
            "/api/schedules",
            {
                "user_id": target.id,
                "date": f"{day}T00:00:00Z",
                "start_time": "09:00",
                "end_time": "17:00",
                "position": "Cashier",
            },
        )
        return resp
