"""Tests for the seed and create_user command-line scripts."""

import io
from contextlib import redirect_stderr, redirect_stdout

from api_case import ApiTestCase

from gatehouse.core.security import verify_password
from gatehouse.models import Permission, Role, User
from gatehouse.scripts import create_user
from gatehouse.scripts.seed import BASE_PERMISSIONS, seed_roles_and_permissions


class TestSeed(ApiTestCase):
    def test_seed_is_idempotent(self) -> None:
        # setUp already seeded once.
        self.assertEqual(seed_roles_and_permissions(self.db), (0, 0))
        self.assertEqual(self.db.query(Role).count(), 2)
        self.assertEqual(self.db.query(Permission).count(), len(BASE_PERMISSIONS))

    def test_admin_holds_every_base_permission(self) -> None:
        admin = self.role_named("admin")
        self.assertEqual(sorted(admin.permission_names()), sorted(BASE_PERMISSIONS))
        self.assertEqual(
            sorted(self.role_named("user").permission_names()), ["edit-profile", "view-profile"]
        )

    def test_hand_granted_permissions_survive_reseeding(self) -> None:
        extra = Permission(name="export-users", guard_name="api")
        role = self.role_named("user")
        role.permissions.append(extra)
        self.db.commit()
        seed_roles_and_permissions(self.db)
        self.assertIn("export-users", self.role_named("user").permission_names())


class TestCreateUserScript(ApiTestCase):
    def _run(self, *argv: str) -> tuple[int, str, str]:
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = create_user.main(list(argv))
        return code, out.getvalue(), err.getvalue()

    def test_creates_admin(self) -> None:
        code, out, _ = self._run("root@x.com", "Root", "Secret123!", "admin")
        self.assertEqual(code, 0)
        self.assertIn("roles: admin", out)
        self.reload()
        user = self.db.query(User).filter(User.email == "root@x.com").one()
        self.assertEqual(user.role_names(), ["admin"])
        self.assertTrue(verify_password("Secret123!", user.password_hash))

    def test_defaults_to_user_role(self) -> None:
        code, out, _ = self._run("ann@x.com", "Ann", "Secret123!")
        self.assertEqual(code, 0)
        self.assertIn("roles: user", out)

    def test_rejects_duplicates_unknown_roles_and_short_passwords(self) -> None:
        self.make_user("ann@x.com")
        code, _, err = self._run("ann@x.com", "Ann", "Secret123!")
        self.assertEqual(code, 1)
        self.assertIn("already exists", err)

        code, _, err = self._run("bob@x.com", "Bob", "Secret123!", "wizard")
        self.assertEqual(code, 1)
        self.assertIn("Unknown role(s): wizard", err)

        code, _, err = self._run("bob@x.com", "Bob", "short")
        self.assertEqual(code, 1)
        self.assertIn("Password must be", err)
