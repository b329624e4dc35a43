"""Unit and integration tests for gatehouse.services.tokens: issue, resolve, revoke, prune."""

import unittest
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

from api_case import ApiTestCase

from gatehouse.core.security import hash_token_secret, parse_plain_text_token
from gatehouse.models import PersonalAccessToken
from gatehouse.models.base import as_utc
from gatehouse.services.tokens import (
    AuthContext,
    create_user_token,
    find_valid_token,
    prune_expired_tokens,
    refreshed_token_name,
    revoke_all_tokens,
    revoke_current_token,
    revoke_tokens_by_device,
    token_name,
)


class TestTokenName(unittest.TestCase):
    def test_uses_device_label(self) -> None:
        self.assertEqual(token_name("login_Mozilla"), "login_Mozilla")

    @patch("gatehouse.services.tokens.time.time", return_value=1700000000.5)
    def test_falls_back_to_timestamp(self, _mock_time: MagicMock) -> None:
        self.assertEqual(token_name(None), "token_1700000000")
        self.assertEqual(token_name(""), "token_1700000000")

    def test_truncates_to_255(self) -> None:
        self.assertEqual(len(token_name("x" * 400)), 255)

    def test_refreshed_name(self) -> None:
        self.assertEqual(refreshed_token_name("login_ios"), "login_ios_refreshed")
        self.assertEqual(len(refreshed_token_name("y" * 255)), 255)


class TestPruneExpiredTokensUnit(unittest.TestCase):
    """prune_expired_tokens deletes by cutoff and commits once."""

    def test_returns_deleted_count_and_commits(self) -> None:
        settings = MagicMock()
        settings.TOKEN_PRUNE_HOURS = 24
        session = MagicMock()
        session.query.return_value.filter.return_value.delete.return_value = 3
        self.assertEqual(prune_expired_tokens(session, settings), 3)
        session.commit.assert_called_once()


class TestCreateAndResolveToken(ApiTestCase):
    def test_issued_token_is_id_pipe_secret_and_only_hash_is_stored(self) -> None:
        user = self.make_user("ann@x.com")
        before = datetime.now(UTC)
        issued = create_user_token(self.db, user, self.settings, "login_cli")
        self.db.commit()

        self.assertEqual(issued.token_type, "Bearer")
        token_id, secret = parse_plain_text_token(issued.access_token)
        self.assertEqual(len(secret), 40)
        row = self.db.get(PersonalAccessToken, token_id)
        self.assertEqual(row.name, "login_cli")
        self.assertEqual(row.token, hash_token_secret(secret))
        self.assertNotIn(secret, row.token)
        self.assertEqual(row.abilities, ["*"])
        self.assertTrue(row.can("anything"))

        expected = before + timedelta(minutes=self.settings.TOKEN_EXPIRATION_MINUTES)
        self.assertLess(abs((as_utc(row.expires_at) - expected).total_seconds()), 5)
        self.assertEqual(
            datetime.fromisoformat(issued.expires_at).replace(microsecond=0),
            as_utc(row.expires_at).replace(microsecond=0),
        )

    def test_limited_abilities(self) -> None:
        user = self.make_user("ann@x.com")
        issued = create_user_token(self.db, user, self.settings, "ci", abilities=["read"])
        self.db.commit()
        row = find_valid_token(self.db, issued.access_token)
        self.assertTrue(row.can("read"))
        self.assertFalse(row.can("write"))

    def test_find_valid_token_rejects_bad_input(self) -> None:
        user = self.make_user("ann@x.com")
        plain = self.token_for(user)
        token_id, _ = parse_plain_text_token(plain)

        self.assertIsNotNone(find_valid_token(self.db, plain))
        self.assertIsNone(find_valid_token(self.db, f"{token_id}|wrong-secret"))
        self.assertIsNone(find_valid_token(self.db, "not-a-token"))
        self.assertIsNone(find_valid_token(self.db, "abc|def"))
        self.assertIsNone(find_valid_token(self.db, f"{token_id + 100}|secret"))

    def test_expired_token_does_not_resolve(self) -> None:
        user = self.make_user("ann@x.com")
        plain = self.token_for(user)
        row = find_valid_token(self.db, plain)
        row.expires_at = datetime.now(UTC) - timedelta(seconds=1)
        self.db.commit()
        self.assertIsNone(find_valid_token(self.db, plain))


class TestRevokeTokens(ApiTestCase):
    def test_revoke_current_token_deletes_only_that_token(self) -> None:
        user = self.make_user("ann@x.com")
        first = self.token_for(user, "login_a")
        self.token_for(user, "login_b")
        row = find_valid_token(self.db, first)

        deleted = revoke_current_token(self.db, AuthContext(user=user, token=row))
        self.db.commit()

        self.assertEqual(deleted, 1)
        self.assertIsNone(find_valid_token(self.db, first))
        self.assertEqual(self.token_count(user.id), 1)

    def test_revoke_current_token_without_token_is_noop(self) -> None:
        user = self.make_user("ann@x.com")
        self.token_for(user)
        self.assertEqual(revoke_current_token(self.db, AuthContext(user=user, token=None)), 0)
        self.assertEqual(self.token_count(user.id), 1)

    def test_revoke_all_tokens_leaves_other_users_alone(self) -> None:
        ann = self.make_user("ann@x.com")
        bob = self.make_user("bob@x.com")
        self.token_for(ann)
        self.token_for(ann)
        self.token_for(bob)

        self.assertEqual(revoke_all_tokens(self.db, ann), 2)
        self.db.commit()
        self.assertEqual(self.token_count(ann.id), 0)
        self.assertEqual(self.token_count(bob.id), 1)

    def test_revoke_by_device_is_substring_match(self) -> None:
        user = self.make_user("ann@x.com")
        self.token_for(user, "login_ios_tablet")
        self.token_for(user, "register_ios")
        self.token_for(user, "login_android")

        self.assertEqual(revoke_tokens_by_device(self.db, user, "ios"), 2)
        self.db.commit()
        self.reload()
        names = [t.name for t in self.db.query(PersonalAccessToken).all()]
        self.assertEqual(names, ["login_android"])

    def test_revoke_by_device_treats_wildcards_literally(self) -> None:
        user = self.make_user("ann@x.com")
        self.token_for(user, "login_ios")
        self.assertEqual(revoke_tokens_by_device(self.db, user, "%"), 0)
        self.assertEqual(revoke_tokens_by_device(self.db, user, ""), 0)
        self.db.commit()
        self.assertEqual(self.token_count(user.id), 1)


class TestPruneExpiredTokens(ApiTestCase):
    def test_deletes_only_tokens_expired_past_the_grace_period(self) -> None:
        user = self.make_user("ann@x.com")
        old = find_valid_token(self.db, self.token_for(user, "old"))
        recent = find_valid_token(self.db, self.token_for(user, "recent"))
        self.token_for(user, "live")
        now = datetime.now(UTC)
        old.expires_at = now - timedelta(hours=self.settings.TOKEN_PRUNE_HOURS + 1)
        recent.expires_at = now - timedelta(minutes=5)
        self.db.commit()

        self.assertEqual(prune_expired_tokens(self.db, self.settings), 1)
        self.reload()
        names = sorted(t.name for t in self.db.query(PersonalAccessToken).all())
        self.assertEqual(names, ["live", "recent"])
