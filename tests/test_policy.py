from __future__ import annotations

import unittest

from app.errors import ApiError
from app.models import User
from app.policy import (
    ROUTE_GUARDS,
    can_access_market,
    can_access_user,
    ensure_can_assign_role,
    ensure_can_manage_user,
    ensure_owner_visible,
    is_owner_visible,
    require_route,
)
from app.roles import Role, RoleGroup
from app.security import hash_password, parse_bearer_header, verify_password


def _user(user_id: int, role: Role, *, company_id: int = 1, market_id: int | None = None) -> User:
    return User(id=user_id, role=role, company_id=company_id, market_id=market_id, email=f"u{user_id}@acme.com")


class BearerHeaderTests(unittest.TestCase):
    def test_accepts_strict_bearer_header(self) -> None:
        self.assertEqual(parse_bearer_header("Bearer abc123"), "abc123")

    def test_rejects_malformed_headers(self) -> None:
        for header in (None, "", "Bearer", "Bearer ", "bearer abc", "Token abc", "Bearer  abc", "Bearer a b"):
            self.assertIsNone(parse_bearer_header(header), header)


class PasswordHashTests(unittest.TestCase):
    def test_hash_round_trip(self) -> None:
        hashed = hash_password("s3cret-pass")
        self.assertNotEqual(hashed, "s3cret-pass")
        self.assertTrue(verify_password("s3cret-pass", hashed))
        self.assertFalse(verify_password("wrong", hashed))

    def test_garbage_hash_is_a_mismatch(self) -> None:
        self.assertFalse(verify_password("anything", "not-a-hash"))


class VisibilityPredicateTests(unittest.TestCase):
    def setUp(self) -> None:
        self.staff = _user(1, Role.STAFF, market_id=10)
        self.colleague = _user(2, Role.STAFF, market_id=10)
        self.elsewhere = _user(3, Role.STAFF, market_id=20)
        self.manager = _user(4, Role.MANAGER, market_id=10)
        self.floating_manager = _user(5, Role.MANAGER)
        self.hr = _user(6, Role.HR_ADMIN)
        self.foreigner = _user(7, Role.STAFF, company_id=2, market_id=10)

    def test_staff_only_see_themselves(self) -> None:
        self.assertTrue(is_owner_visible(self.staff, self.staff))
        self.assertFalse(is_owner_visible(self.staff, self.colleague))

    def test_market_fenced_manager(self) -> None:
        self.assertTrue(is_owner_visible(self.manager, self.colleague))
        self.assertFalse(is_owner_visible(self.manager, self.elsewhere))

    def test_manager_without_market_sees_company(self) -> None:
        self.assertTrue(is_owner_visible(self.floating_manager, self.elsewhere))

    def test_no_role_crosses_tenants(self) -> None:
        for caller in (self.staff, self.manager, self.floating_manager, self.hr):
            self.assertFalse(is_owner_visible(caller, self.foreigner))
        self.assertFalse(is_owner_visible(self.hr, None))

    def test_invisible_owner_is_reported_missing(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            ensure_owner_visible(self.manager, self.elsewhere, entity="Schedule")
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(ctx.exception.message, "Schedule not found.")

    def test_missing_owner_is_reported_missing(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            ensure_owner_visible(self.hr, None, entity="User")
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertIs(ensure_owner_visible(self.hr, self.staff, entity="User"), self.staff)

    def test_can_access_user(self) -> None:
        self.assertTrue(can_access_user(self.hr, self.staff.id))
        self.assertTrue(can_access_user(self.staff, self.staff.id))
        self.assertFalse(can_access_user(self.staff, self.colleague.id))
        self.assertFalse(can_access_user(self.manager, self.colleague.id))

    def test_can_access_market(self) -> None:
        self.assertTrue(can_access_market(self.hr, 99))
        self.assertTrue(can_access_market(self.manager, 10))
        self.assertFalse(can_access_market(self.manager, 20))
        self.assertFalse(can_access_market(self.floating_manager, 10))
        self.assertFalse(can_access_market(self.staff, 10))


class RankRuleTests(unittest.TestCase):
    def test_cannot_manage_higher_rank(self) -> None:
        hr = _user(1, Role.HR_ADMIN)
        owner = _user(2, Role.OWNER)
        with self.assertRaises(ApiError) as ctx:
            ensure_can_manage_user(hr, owner)
        self.assertEqual(ctx.exception.status_code, 403)

    def test_peers_may_manage_each_other(self) -> None:
        ensure_can_manage_user(_user(1, Role.CFO), _user(2, Role.HR_ADMIN))

    def test_cannot_assign_role_above_own(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            ensure_can_assign_role(_user(1, Role.HR_ADMIN), Role.ADMIN)
        self.assertEqual(ctx.exception.status_code, 403)
        ensure_can_assign_role(_user(1, Role.HR_ADMIN), Role.MANAGER)

    def test_unknown_role_is_a_validation_error(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            ensure_can_assign_role(_user(1, Role.OWNER), "emperor")
        self.assertEqual(ctx.exception.status_code, 400)


class RouteGuardTableTests(unittest.TestCase):
    def test_unknown_route_key_fails_at_import_time(self) -> None:
        with self.assertRaises(ValueError):
            require_route("does.not.exist")

    def test_guard_table_uses_known_groups(self) -> None:
        for key, group in ROUTE_GUARDS.items():
            self.assertIsInstance(group, RoleGroup, key)
        self.assertEqual(ROUTE_GUARDS["salary.payments.create"], RoleGroup.FINANCIAL)
        self.assertEqual(ROUTE_GUARDS["requests.review"], RoleGroup.TEAM_MANAGEMENT)


if __name__ == "__main__":
    unittest.main()
