from __future__ import annotations

import unittest
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select

from app.models import Notification, NotificationType, User
from db_support import TenantFixture


class SosAlertTests(TenantFixture):
    def test_alert_fans_out_to_company_executives(self) -> None:
        resp = self.post(self.staff, "/api/sos", {"type": "ambulance"})
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["user_id"], self.staff.id)
        self.assertFalse(resp.json()["resolved"])

        db = self.fresh_session()
        try:
            recipients = set(
                db.scalars(select(Notification.user_id).where(Notification.type == NotificationType.SOS)).all()
            )
        finally:
            db.close()
        self.assertEqual(recipients, {self.owner.id, self.hr.id})

    def test_executive_raising_alert_is_not_notified(self) -> None:
        self.post(self.hr, "/api/sos", {"type": "police"})
        owner_notes = self.get(self.owner, "/api/notifications").json()
        hr_notes = self.get(self.hr, "/api/notifications").json()
        self.assertEqual(len(owner_notes), 1)
        self.assertEqual(hr_notes, [])

    def test_resolve_and_visibility(self) -> None:
        alert = self.post(self.south_staff, "/api/sos", {"type": "security"}).json()
        self.assertEqual(self.patch(self.manager, f"/api/sos/{alert['id']}/resolve", {}).status_code, 404)
        self.assertEqual(self.patch(self.staff, f"/api/sos/{alert['id']}/resolve", {}).status_code, 403)

        resolved = self.patch(self.hr, f"/api/sos/{alert['id']}/resolve", {})
        self.assertEqual(resolved.status_code, 200, resolved.text)
        self.assertTrue(resolved.json()["resolved"])

        self.assertEqual(self.get(self.staff, "/api/sos").json(), [])

    def test_unknown_sos_type_is_rejected(self) -> None:
        self.assertEqual(self.post(self.staff, "/api/sos", {"type": "coastguard"}).status_code, 400)


class CashRegisterTests(TenantFixture):
    def _entry(self, status: str, amount: str):
        return self.post(
            self.staff,
            "/api/cash-register",
            {"shift_date": "2026-03-02T00:00:00Z", "status": status, "amount": amount},
        )

    def test_large_shortage_notifies_the_cashier(self) -> None:
        resp = self._entry("shortage", "25.00")
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["user_id"], self.staff.id)

        notes = self.get(self.staff, "/api/notifications").json()
        self.assertEqual([note["type"] for note in notes], ["cash"])

    def test_small_shortage_and_exact_do_not_notify(self) -> None:
        self.assertEqual(self._entry("shortage", "2.50").status_code, 200)
        self.assertEqual(self._entry("exact", "0").status_code, 200)
        self.assertEqual(self.get(self.staff, "/api/notifications").json(), [])

    def test_entries_follow_visibility(self) -> None:
        self._entry("extra", "3.00")
        self.assertEqual(len(self.get(self.manager, "/api/cash-register").json()), 1)
        self.assertEqual(self.get(self.colleague, "/api/cash-register").json(), [])


class SalaryTests(TenantFixture):
    def setUp(self) -> None:
        super().setUp()
        staff = self.db.get(User, self.staff.id)
        staff.accumulated_salary = Decimal("100.00")
        self.db.commit()

    def test_payment_decrements_balance(self) -> None:
        resp = self.post(self.owner, "/api/salary/payments", {"user_id": self.staff.id, "amount": "40.00", "period": "2026-02"})
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(Decimal(resp.json()["amount"]), Decimal("40.00"))

        overview = self.get(self.staff, "/api/salary/me").json()
        self.assertEqual(Decimal(str(overview["accumulated_salary"])), Decimal("60.00"))
        self.assertEqual(len(overview["payments"]), 1)

    def test_only_financial_roles_record_payments(self) -> None:
        for caller in (self.hr, self.manager, self.staff):
            resp = self.post(caller, "/api/salary/payments", {"user_id": self.staff.id, "amount": "1.00", "period": "2026-02"})
            self.assertEqual(resp.status_code, 403)

    def test_amount_must_be_positive(self) -> None:
        resp = self.post(self.owner, "/api/salary/payments", {"user_id": self.staff.id, "amount": "0", "period": "2026-02"})
        self.assertEqual(resp.status_code, 400)


class MarketTests(TenantFixture):
    def test_admin_market_counts(self) -> None:
        rows = {row["name"]: row["user_count"] for row in self.get(self.owner, "/api/admin/markets").json()}
        self.assertEqual(rows, {"North": 3, "South": 1})

    def test_delete_market_unassigns_its_users(self) -> None:
        resp = self.client.delete(f"/api/markets/{self.north.id}", headers=self.auth_headers(self.hr))
        self.assertEqual(resp.status_code, 200, resp.text)

        db = self.fresh_session()
        try:
            markets = {user.id: user.market_id for user in db.scalars(select(User)).all()}
        finally:
            db.close()
        self.assertIsNone(markets[self.staff.id])
        self.assertIsNone(markets[self.colleague.id])
        self.assertIsNone(markets[self.manager.id])
        self.assertEqual(markets[self.south_staff.id], self.south.id)
        self.assertEqual([row["name"] for row in self.get(self.owner, "/api/markets").json()], ["South"])

    def test_create_and_update_market(self) -> None:
        created = self.post(self.hr, "/api/markets", {"name": "East", "address": "1 Main St"})
        self.assertEqual(created.status_code, 200, created.text)
        self.assertEqual(created.json()["company_id"], self.acme.id)

        renamed = self.put(self.hr, f"/api/markets/{created.json()['id']}", {"name": "East Side"})
        self.assertEqual(renamed.status_code, 200, renamed.text)
        self.assertEqual(renamed.json()["name"], "East Side")

        self.assertEqual(self.post(self.manager, "/api/markets", {"name": "Nope"}).status_code, 403)

    def test_company_profile(self) -> None:
        self.assertEqual(self.get(self.hr, "/api/companies").json()["code"], "ACME")
        self.assertEqual(self.put(self.hr, "/api/companies", {"name": "Acme Group"}).status_code, 403)
        updated = self.put(self.owner, "/api/companies", {"name": "Acme Group"})
        self.assertEqual(updated.status_code, 200, updated.text)
        self.assertEqual(updated.json()["name"], "Acme Group")


class ContractTests(TenantFixture):
    def _contract(self, caller, target, start: str = "2026-01-01", end: str = "2026-12-31"):
        return self.post(
            caller,
            "/api/contracts",
            {"user_id": target.id, "start_date": f"{start}T00:00:00Z", "end_date": f"{end}T00:00:00Z"},
        )

    def test_current_contract_lifecycle(self) -> None:
        created = self._contract(self.hr, self.staff)
        self.assertEqual(created.status_code, 200, created.text)
        contract_id = created.json()["id"]

        current = self.get(self.staff, "/api/contracts/current")
        self.assertEqual(current.status_code, 200, current.text)
        self.assertEqual(current.json()["id"], contract_id)
        self.assertEqual(self.get(self.staff, "/api/auth/me").json()["user"]["contract"]["id"], contract_id)

        self.assertEqual(self.get(self.colleague, "/api/contracts").json(), [])

        ended = self.put(self.hr, f"/api/contracts/{contract_id}", {"is_active": False})
        self.assertEqual(ended.status_code, 200, ended.text)
        self.assertEqual(self.get(self.staff, "/api/contracts/current").status_code, 404)

    def test_contract_validation(self) -> None:
        self.assertEqual(self._contract(self.hr, self.staff, start="2026-06-01", end="2026-01-01").status_code, 400)
        self.assertEqual(self._contract(self.hr, self.beta_staff).status_code, 404)
        self.assertEqual(self._contract(self.manager, self.staff).status_code, 403)

        contract_id = self._contract(self.hr, self.staff).json()["id"]
        backwards = self.put(self.hr, f"/api/contracts/{contract_id}", {"end_date": "2025-01-01T00:00:00Z"})
        self.assertEqual(backwards.status_code, 400)
        foreign = self.put(self.beta_owner, f"/api/contracts/{contract_id}", {"is_active": False})
        self.assertEqual(foreign.status_code, 404)


class WarningTests(TenantFixture):
    def test_warning_reaches_target_only(self) -> None:
        resp = self.post(self.manager, "/api/warnings", {"user_id": self.staff.id, "reason": "Late three times"})
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["issued_by"], self.manager.id)
        self.assertEqual(resp.json()["market_id"], self.north.id)

        self.assertEqual(len(self.get(self.staff, "/api/warnings").json()), 1)
        self.assertEqual(self.get(self.colleague, "/api/warnings").json(), [])
        notes = self.get(self.staff, "/api/notifications").json()
        self.assertEqual([note["type"] for note in notes], ["warning"])

    def test_manager_cannot_warn_outside_market(self) -> None:
        resp = self.post(self.manager, "/api/warnings", {"user_id": self.south_staff.id, "reason": "Late"})
        self.assertEqual(resp.status_code, 404)


class TeamTests(TenantFixture):
    def test_team_shows_today_shift(self) -> None:
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        self.assertEqual(self.schedule(self.hr, self.staff, day=today).status_code, 200)

        resp = self.get(self.manager, "/api/manager/team")
        self.assertEqual(resp.status_code, 200, resp.text)
        team = {member["id"]: member for member in resp.json()}
        self.assertEqual(set(team), {self.staff.id, self.colleague.id})
        self.assertEqual(team[self.staff.id]["today_shift"]["start_time"], "09:00")
        self.assertIsNone(team[self.colleague.id]["today_shift"])

    def test_staff_has_no_team_view(self) -> None:
        self.assertEqual(self.get(self.staff, "/api/manager/team").status_code, 403)


class AdminTests(TenantFixture):
    def test_dashboard_counts_company_only(self) -> None:
        self.post(self.staff, "/api/requests", {"subject": "Swap", "details": "Swap Friday"})
        self.post(self.beta_staff, "/api/requests", {"subject": "Swap", "details": "Swap Friday"})

        resp = self.get(self.hr, "/api/admin-dashboard")
        self.assertEqual(resp.status_code, 200, resp.text)
        body = resp.json()
        self.assertEqual(body["total_users"], 6)
        self.assertEqual(body["pending_requests"], 1)
        self.assertEqual(self.get(self.manager, "/api/admin-dashboard").status_code, 403)

    def test_company_stats(self) -> None:
        body = self.get(self.owner, "/api/admin/company-stats").json()
        self.assertEqual(body["staff"], 3)
        self.assertEqual(body["managers"], 1)
        self.assertEqual(body["role_counts"]["hr_admin"], 1)
        self.assertEqual(body["total_markets"], 2)

    def test_system_logs_are_company_scoped(self) -> None:
        self.post(self.owner, "/api/markets", {"name": "East"})
        actions = [row["action"] for row in self.get(self.owner, "/api/admin/system-logs").json()]
        self.assertIn("MARKET_CREATED", actions)
        self.assertEqual(self.get(self.beta_owner, "/api/admin/system-logs").json(), [])
        self.assertEqual(self.get(self.hr, "/api/admin/system-logs").status_code, 403)

    def test_settings(self) -> None:
        body = self.get(self.owner, "/api/admin/settings").json()
        self.assertTrue(body["role_hierarchy_enabled"])


if __name__ == "__main__":
    unittest.main()
