from __future__ import annotations

import itertools
import unittest

from app.roles import (
    ROLE_RANK,
    Role,
    RoleGroup,
    has_higher_or_equal_role,
    is_member,
    normalize_role,
    role_group_members,
    role_rank,
)


class RoleOrderingTests(unittest.TestCase):
    def test_ranks_follow_the_hierarchy(self) -> None:
        self.assertGreater(role_rank(Role.OWNER), role_rank(Role.ADMIN))
        self.assertGreater(role_rank(Role.ADMIN), role_rank(Role.CFO))
        self.assertEqual(role_rank(Role.CFO), role_rank(Role.HR_ADMIN))
        self.assertGreater(role_rank(Role.HR_ADMIN), role_rank(Role.MANAGER))
        self.assertGreater(role_rank(Role.MANAGER), role_rank(Role.SUPERVISOR))
        self.assertGreater(role_rank(Role.SUPERVISOR), role_rank(Role.STAFF))

    def test_cfo_and_hr_admin_are_peers(self) -> None:
        self.assertTrue(has_higher_or_equal_role(Role.CFO, Role.HR_ADMIN))
        self.assertTrue(has_higher_or_equal_role(Role.HR_ADMIN, Role.CFO))

    def test_ordering_is_transitive_and_reflexive(self) -> None:
        roles = list(Role)
        for role in roles:
            self.assertTrue(has_higher_or_equal_role(role, role))
        for a, b, c in itertools.product(roles, repeat=3):
            if has_higher_or_equal_role(a, b) and has_higher_or_equal_role(b, c):
                self.assertTrue(has_higher_or_equal_role(a, c), f"{a} >= {b} >= {c}")

    def test_unknown_role_ranks_below_everything(self) -> None:
        self.assertEqual(role_rank("janitor"), 0)
        self.assertIsNone(normalize_role("janitor"))
        self.assertFalse(has_higher_or_equal_role("janitor", Role.STAFF))
        self.assertTrue(has_higher_or_equal_role(Role.STAFF, "janitor"))

    def test_normalize_role_accepts_strings(self) -> None:
        self.assertEqual(normalize_role(" Manager "), Role.MANAGER)
        self.assertEqual(normalize_role("hr_admin"), Role.HR_ADMIN)
        self.assertIsNone(normalize_role(None))

    def test_every_role_has_a_rank(self) -> None:
        self.assertEqual(set(ROLE_RANK), set(Role))


class RoleGroupTests(unittest.TestCase):
    def test_hierarchy_groups(self) -> None:
        self.assertEqual(
            role_group_members(RoleGroup.EXECUTIVE, hierarchy=True),
            {Role.OWNER, Role.ADMIN, Role.CFO, Role.HR_ADMIN},
        )
        self.assertEqual(
            role_group_members(RoleGroup.USER_MANAGEMENT, hierarchy=True),
            {Role.OWNER, Role.ADMIN, Role.HR_ADMIN},
        )
        self.assertEqual(
            role_group_members(RoleGroup.FINANCIAL, hierarchy=True),
            {Role.OWNER, Role.ADMIN, Role.CFO},
        )
        self.assertEqual(
            role_group_members(RoleGroup.TEAM_MANAGEMENT, hierarchy=True),
            {Role.OWNER, Role.ADMIN, Role.HR_ADMIN, Role.MANAGER, Role.SUPERVISOR},
        )

    def test_cfo_is_not_team_management(self) -> None:
        self.assertFalse(is_member(Role.CFO, RoleGroup.TEAM_MANAGEMENT, hierarchy=True))
        self.assertTrue(is_member(Role.CFO, RoleGroup.PAYROLL_VIEW, hierarchy=True))

    def test_flat_mode_collapses_groups(self) -> None:
        for group in (
            RoleGroup.EXECUTIVE,
            RoleGroup.USER_MANAGEMENT,
            RoleGroup.FINANCIAL,
            RoleGroup.ADMINISTRATION,
        ):
            self.assertEqual(role_group_members(group, hierarchy=False), {Role.ADMIN})
        self.assertEqual(
            role_group_members(RoleGroup.TEAM_MANAGEMENT, hierarchy=False),
            {Role.ADMIN, Role.MANAGER},
        )
        self.assertFalse(is_member(Role.OWNER, RoleGroup.EXECUTIVE, hierarchy=False))
        self.assertFalse(is_member(Role.SUPERVISOR, RoleGroup.TEAM_MANAGEMENT, hierarchy=False))

    def test_authenticated_contains_every_role(self) -> None:
        for hierarchy in (True, False):
            for role in Role:
                self.assertTrue(is_member(role, RoleGroup.AUTHENTICATED, hierarchy=hierarchy))

    def test_unknown_role_is_never_a_member(self) -> None:
        self.assertFalse(is_member("root", RoleGroup.AUTHENTICATED, hierarchy=True))


if __name__ == "__main__":
    unittest.main()
