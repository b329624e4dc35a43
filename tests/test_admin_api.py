"""Tests for admin user and role management, including the protected-role and last-admin rules."""

from api_case import ApiTestCase

from gatehouse.models import Permission, Role, User
from gatehouse.models.role import DEFAULT_GUARD


class TestAdminAccess(ApiTestCase):
    def test_regular_user_is_forbidden(self) -> None:
        user = self.make_user("ann@x.com")
        headers = self.auth(self.token_for(user))
        for path in ("/v1/admin/users", "/v1/admin/roles"):
            resp = self.client.get(path, headers=headers)
            self.assertEqual(resp.status_code, 403)
            self.assertEqual(resp.json()["message"], "User does not have the right roles.")

    def test_anonymous_is_unauthenticated(self) -> None:
        self.assertEqual(self.client.get("/v1/admin/users").status_code, 401)

    def test_admin_tier_rate_limit_headers(self) -> None:
        resp = self.client.get("/v1/admin/users", headers=self.admin_headers())
        self.assertEqual(resp.headers["X-RateLimit-Limit"], str(self.settings.RATE_LIMIT_ADMIN))


class TestAdminUsers(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.headers = self.admin_headers()

    def test_list_with_search_role_filter_and_meta(self) -> None:
        self.make_user("ann@x.com", name="Ann Lee")
        self.make_user("bob@x.com", name="Bob Stone")
        self.make_user("carol@y.com", name="Carol Lee", roles=("user", "admin"))

        resp = self.client.get("/v1/admin/users", params={"search": "lee"}, headers=self.headers)
        self.assertEqual(resp.status_code, 200)
        emails = [u["email"] for u in resp.json()["data"]]
        self.assertEqual(emails, ["ann@x.com", "carol@y.com"])

        admins = self.client.get("/v1/admin/users", params={"role": "admin"}, headers=self.headers)
        self.assertEqual(
            [u["email"] for u in admins.json()["data"]], ["admin@example.com", "carol@y.com"]
        )

        paged = self.client.get(
            "/v1/admin/users", params={"per_page": 2, "page": 2}, headers=self.headers
        )
        body = paged.json()
        self.assertEqual(len(body["data"]), 2)
        self.assertEqual(
            body["meta"],
            {"current_page": 2, "from": 3, "last_page": 2, "per_page": 2, "to": 4, "total": 4},
        )

    def test_search_treats_wildcards_literally(self) -> None:
        self.make_user("ann@x.com", name="Ann")
        resp = self.client.get("/v1/admin/users", params={"search": "%"}, headers=self.headers)
        self.assertEqual(resp.json()["data"], [])

    def test_create_user_with_roles(self) -> None:
        resp = self.client.post(
            "/v1/admin/users",
            json={
                "name": "Dana",
                "email": "dana@x.com",
                "password": "Secret123!",
                "password_confirmation": "Secret123!",
                "roles": ["admin"],
            },
            headers=self.headers,
        )
        self.assertEqual(resp.status_code, 201, resp.text)
        self.assertEqual(resp.json()["message"], "User created successfully.")
        self.assertEqual(resp.json()["data"]["roles"], ["admin"])

    def test_create_user_with_unknown_role(self) -> None:
        resp = self.client.post(
            "/v1/admin/users",
            json={
                "name": "Dana",
                "email": "dana@x.com",
                "password": "Secret123!",
                "password_confirmation": "Secret123!",
                "roles": ["wizard"],
            },
            headers=self.headers,
        )
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.json()["data"]["roles"], ["The selected roles 'wizard' is invalid."])
        self.reload()
        self.assertIsNone(self.db.query(User).filter(User.email == "dana@x.com").first())

    def test_blank_name_is_rejected_on_create_and_update(self) -> None:
        created = self.client.post(
            "/v1/admin/users",
            json={
                "name": "  ",
                "email": "dana@x.com",
                "password": "Secret123!",
                "password_confirmation": "Secret123!",
            },
            headers=self.headers,
        )
        self.assertEqual(created.status_code, 422)
        self.assertEqual(created.json()["data"]["name"], ["The name field is required."])

        ann = self.make_user("ann@x.com", name="Ann")
        updated = self.client.put(
            f"/v1/admin/users/{ann.id}", json={"name": "\t"}, headers=self.headers
        )
        self.assertEqual(updated.status_code, 422)
        self.reload()
        self.assertEqual(self.db.get(User, ann.id).name, "Ann")

    def test_show_and_missing_user(self) -> None:
        ann = self.make_user("ann@x.com")
        resp = self.client.get(f"/v1/admin/users/{ann.id}", headers=self.headers)
        self.assertEqual(resp.json()["data"]["email"], "ann@x.com")

        missing = self.client.get("/v1/admin/users/9999", headers=self.headers)
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["message"], "User not found.")

    def test_update_syncs_roles(self) -> None:
        ann = self.make_user("ann@x.com")
        resp = self.client.patch(
            f"/v1/admin/users/{ann.id}",
            json={"name": "Ann B", "roles": ["admin", "user"]},
            headers=self.headers,
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["message"], "User updated successfully.")
        data = resp.json()["data"]
        self.assertEqual(data["name"], "Ann B")
        self.assertEqual(sorted(data["roles"]), ["admin", "user"])

    def test_last_admin_cannot_be_demoted(self) -> None:
        resp = self.client.put(
            f"/v1/admin/users/{self.admin.id}",
            json={"name": "Renamed", "roles": ["user"]},
            headers=self.headers,
        )
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["message"], "Cannot remove admin role from the only admin.")
        self.reload()
        admin = self.db.get(User, self.admin.id)
        self.assertEqual(admin.name, "Admin")
        self.assertEqual(admin.role_names(), ["admin"])

    def test_admin_can_be_demoted_when_another_remains(self) -> None:
        other = self.make_user("second@x.com", roles=("admin",))
        resp = self.client.put(
            f"/v1/admin/users/{other.id}", json={"roles": ["user"]}, headers=self.headers
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["data"]["roles"], ["user"])

    def test_update_without_roles_leaves_them(self) -> None:
        resp = self.client.put(
            f"/v1/admin/users/{self.admin.id}", json={"name": "Root"}, headers=self.headers
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["data"]["roles"], ["admin"])

    def test_admin_cannot_delete_self(self) -> None:
        resp = self.client.delete(f"/v1/admin/users/{self.admin.id}", headers=self.headers)
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["message"], "You cannot delete your own account.")

    def test_delete_user_removes_tokens(self) -> None:
        ann = self.make_user("ann@x.com")
        ann_id = ann.id
        ann_token = self.token_for(ann)

        resp = self.client.delete(f"/v1/admin/users/{ann_id}", headers=self.headers)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["message"], "User deleted successfully.")
        self.assertEqual(self.token_count(ann_id), 0)
        self.assertEqual(self.client.get("/v1/user", headers=self.auth(ann_token)).status_code, 401)


class TestAdminRoles(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.headers = self.admin_headers()
        self.db.add(Permission(name="edit-posts", guard_name=DEFAULT_GUARD))
        self.db.commit()

    def _create_editor(self) -> dict:
        resp = self.client.post(
            "/v1/admin/roles",
            json={"name": "editor", "permissions": ["edit-posts"]},
            headers=self.headers,
        )
        self.assertEqual(resp.status_code, 201, resp.text)
        return resp.json()["data"]

    def test_create_and_show_role(self) -> None:
        created = self._create_editor()
        self.assertEqual(created["permissions"], ["edit-posts"])

        resp = self.client.get(f"/v1/admin/roles/{created['id']}", headers=self.headers)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["data"]["name"], "editor")
        self.assertEqual(resp.json()["data"]["permissions"], ["edit-posts"])

    def test_duplicate_name_and_unknown_permission(self) -> None:
        self._create_editor()
        dup = self.client.post("/v1/admin/roles", json={"name": "editor"}, headers=self.headers)
        self.assertEqual(dup.status_code, 422)
        self.assertEqual(dup.json()["data"]["name"], ["The name has already been taken."])

        unknown = self.client.post(
            "/v1/admin/roles",
            json={"name": "writer", "permissions": ["fly"]},
            headers=self.headers,
        )
        self.assertEqual(unknown.status_code, 422)
        self.assertIsNone(self.role_named("writer"))
        self.reload()
        self.assertIsNone(self.db.query(Permission).filter(Permission.name == "fly").first())

    def test_protected_roles_cannot_be_deleted(self) -> None:
        before = self.db.query(Role).count()
        for name in ("admin", "user"):
            role = self.role_named(name)
            resp = self.client.delete(f"/v1/admin/roles/{role.id}", headers=self.headers)
            self.assertEqual(resp.status_code, 403)
            self.assertEqual(resp.json()["message"], f"You cannot delete the {name} role.")
        self.reload()
        self.assertEqual(self.db.query(Role).count(), before)

    def test_admin_role_cannot_be_renamed(self) -> None:
        admin_role = self.role_named("admin")
        resp = self.client.put(
            f"/v1/admin/roles/{admin_role.id}", json={"name": "root"}, headers=self.headers
        )
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["message"], "You cannot change the name of the admin role.")
        self.assertIsNotNone(self.role_named("admin"))

        same = self.client.put(
            f"/v1/admin/roles/{admin_role.id}", json={"name": "admin"}, headers=self.headers
        )
        self.assertEqual(same.status_code, 200)

    def test_update_role_permissions(self) -> None:
        created = self._create_editor()
        resp = self.client.patch(
            f"/v1/admin/roles/{created['id']}",
            json={"name": "author", "permissions": ["view-profile", "edit-posts"]},
            headers=self.headers,
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["message"], "Role updated successfully.")
        data = resp.json()["data"]
        self.assertEqual(data["name"], "author")
        self.assertEqual(sorted(data["permissions"]), ["edit-posts", "view-profile"])

    def test_delete_role_keeps_users(self) -> None:
        created = self._create_editor()
        ann = self.make_user("ann@x.com", roles=("user", "editor"))

        resp = self.client.delete(f"/v1/admin/roles/{created['id']}", headers=self.headers)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["message"], "Role deleted successfully.")
        self.assertIsNone(self.role_named("editor"))
        self.assertEqual(self.db.get(User, ann.id).role_names(), ["user"])

    def test_list_paginates_only_with_per_page(self) -> None:
        self._create_editor()
        full = self.client.get("/v1/admin/roles", headers=self.headers).json()
        self.assertEqual(len(full["data"]), 3)
        self.assertNotIn("meta", full)

        paged = self.client.get(
            "/v1/admin/roles", params={"per_page": 2}, headers=self.headers
        ).json()
        self.assertEqual(len(paged["data"]), 2)
        self.assertEqual(paged["meta"]["total"], 3)
        self.assertEqual(paged["meta"]["last_page"], 2)

    def test_missing_role(self) -> None:
        resp = self.client.get("/v1/admin/roles/9999", headers=self.headers)
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["message"], "Role not found.")
