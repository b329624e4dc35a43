"""Tests for the current user's profile, password and profile picture endpoints."""

from pathlib import Path
from unittest.mock import patch

from api_case import DEFAULT_PASSWORD, ApiTestCase
from starlette.datastructures import UploadFile

from gatehouse.core.config import get_settings
from gatehouse.core.security import verify_password
from gatehouse.main import app
from gatehouse.models import User

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class TestProfile(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.user = self.make_user("ann@x.com", name="Ann")
        self.headers = self.auth(self.token_for(self.user))

    def test_show_profile_is_flat(self) -> None:
        resp = self.client.get("/v1/user", headers=self.headers)
        self.assertEqual(resp.status_code, 200)
        data = resp.json()["data"]
        self.assertEqual(data["id"], self.user.id)
        self.assertEqual(data["roles"], ["user"])
        self.assertEqual(sorted(data["permissions"]), ["edit-profile", "view-profile"])
        self.assertIsNone(data["phone"])
        self.assertIn("created_at", data)

    def test_partial_update(self) -> None:
        resp = self.client.put(
            "/v1/user", json={"phone": "555-0100", "address": "1 Main St"}, headers=self.headers
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["message"], "User profile updated successfully.")
        data = resp.json()["data"]
        self.assertEqual((data["name"], data["phone"]), ("Ann", "555-0100"))

        cleared = self.client.put("/v1/user", json={"phone": None}, headers=self.headers)
        self.assertIsNone(cleared.json()["data"]["phone"])
        self.assertEqual(cleared.json()["data"]["address"], "1 Main St")

    def test_email_change_and_uniqueness(self) -> None:
        self.make_user("bob@x.com")
        taken = self.client.put("/v1/user", json={"email": "BOB@x.com"}, headers=self.headers)
        self.assertEqual(taken.status_code, 422)
        self.assertEqual(taken.json()["data"]["email"], ["The email has already been taken."])

        own = self.client.put("/v1/user", json={"email": "ann@x.com"}, headers=self.headers)
        self.assertEqual(own.status_code, 200)

        changed = self.client.put("/v1/user", json={"email": "Ann.New@x.com"}, headers=self.headers)
        self.assertEqual(changed.json()["data"]["email"], "ann.new@x.com")

    def test_blank_name_is_rejected(self) -> None:
        resp = self.client.put("/v1/user", json={"name": "   "}, headers=self.headers)
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.json()["data"]["name"], ["The name field is required."])
        self.reload()
        self.assertEqual(self.db.get(User, self.user.id).name, "Ann")

    def test_update_password(self) -> None:
        wrong = self.client.put(
            "/v1/user/password",
            json={
                "current_password": "not-it",
                "password": "Another123!",
                "password_confirmation": "Another123!",
            },
            headers=self.headers,
        )
        self.assertEqual(wrong.status_code, 422)
        self.assertEqual(wrong.json()["data"]["current_password"], ["The password is incorrect."])

        resp = self.client.put(
            "/v1/user/password",
            json={
                "current_password": DEFAULT_PASSWORD,
                "password": "Another123!",
                "password_confirmation": "Another123!",
            },
            headers=self.headers,
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["message"], "Password updated successfully.")
        self.reload()
        self.assertTrue(verify_password("Another123!", self.db.get(User, self.user.id).password_hash))
        # The token used for the change keeps working.
        self.assertEqual(self.client.get("/v1/user", headers=self.headers).status_code, 200)


class TestProfilePicture(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.user = self.make_user("ann@x.com")
        self.headers = self.auth(self.token_for(self.user))

    def _upload(self, filename: str, content: bytes):
        return self.client.post(
            "/v1/user/profile-picture",
            files={"profile_picture": (filename, content, "image/png")},
            headers=self.headers,
        )

    def _stored_path(self, relative: str) -> Path:
        return Path(self.settings.STORAGE_DIR) / relative

    def test_upload_replace_and_delete(self) -> None:
        first = self._upload("me.png", PNG_BYTES)
        self.assertEqual(first.status_code, 200, first.text)
        self.assertEqual(first.json()["message"], "Profile picture uploaded successfully.")
        first_path = first.json()["data"]["profile_picture"]
        self.assertTrue(first_path.startswith("profile-pictures/"))
        self.assertTrue(first_path.endswith(".png"))
        self.assertTrue(self._stored_path(first_path).exists())

        second = self._upload("me2.png", PNG_BYTES)
        second_path = second.json()["data"]["profile_picture"]
        self.assertNotEqual(second_path, first_path)
        self.assertFalse(self._stored_path(first_path).exists())

        deleted = self.client.delete("/v1/user/profile-picture", headers=self.headers)
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(deleted.json()["message"], "Profile picture deleted successfully.")
        self.assertIsNone(deleted.json()["data"]["profile_picture"])
        self.assertFalse(self._stored_path(second_path).exists())

    def test_rejects_wrong_type(self) -> None:
        resp = self._upload("notes.txt", b"hello")
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(
            resp.json()["data"]["profile_picture"],
            ["The image must be a file of type: jpeg, png, jpg, gif."],
        )

    def test_rejects_non_image_content(self) -> None:
        resp = self._upload("fake.png", b"definitely not a png")
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.json()["data"]["profile_picture"], ["The file must be an image."])

    def test_oversized_upload_is_read_only_up_to_the_limit(self) -> None:
        limit = 1024
        small_limit = self.settings.model_copy(update={"PROFILE_PICTURE_MAX_BYTES": limit})
        app.dependency_overrides[get_settings] = lambda: small_limit
        self.addCleanup(app.dependency_overrides.pop, get_settings, None)

        sizes: list[int] = []
        original_read = UploadFile.read

        async def recording_read(upload: UploadFile, size: int = -1) -> bytes:
            sizes.append(size)
            return await original_read(upload, size)

        with patch.object(UploadFile, "read", recording_read):
            resp = self._upload("big.png", PNG_BYTES + b"\x00" * (4 * limit))

        self.assertEqual(resp.status_code, 422)
        self.assertTrue(
            resp.json()["data"]["profile_picture"][0].startswith(
                "The image may not be greater than"
            )
        )
        self.assertEqual(sizes, [limit + 1])
        self.reload()
        self.assertIsNone(self.db.get(User, self.user.id).profile_picture)

    def test_missing_upload(self) -> None:
        resp = self.client.post("/v1/user/profile-picture", headers=self.headers)
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.json()["message"], "No profile picture provided.")

    def test_delete_without_picture(self) -> None:
        resp = self.client.delete("/v1/user/profile-picture", headers=self.headers)
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["message"], "No profile picture to delete.")
