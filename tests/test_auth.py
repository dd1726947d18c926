"""Tests for sign-in state and session tokens."""

import time

import jwt
import pytest

from paperdraft.auth import AuthProvider, NotAuthenticated, User


@pytest.fixture
def auth():
    return AuthProvider(secret="test-secret", expiry_seconds=3600)


class TestAuthProvider:
    """Tests for AuthProvider."""

    def test_require_user_when_signed_out(self, auth):
        with pytest.raises(NotAuthenticated, match="User must be authenticated"):
            auth.require_user()

    def test_sign_in_sets_user(self, auth):
        token = auth.sign_in("user-1", "ada@example.org", "Ada")

        assert auth.require_user() == User(id="user-1", email="ada@example.org", display_name="Ada")
        assert isinstance(token, str)

    def test_token_round_trip(self, auth):
        token = auth.sign_in("user-1", "ada@example.org")
        auth.sign_out()

        user = auth.restore_session(token)

        assert user.id == "user-1"
        assert auth.current_user == user

    def test_expired_token(self, auth):
        token = jwt.encode(
            {"sub": "user-1", "exp": int(time.time()) - 10},
            "test-secret",
            algorithm="HS256",
        )

        assert auth.restore_session(token) is None
        assert auth.current_user is None

    def test_token_signed_with_other_secret(self, auth):
        other = AuthProvider(secret="other-secret")
        token = other.create_token(User(id="user-1", email="a@b.c"))

        assert auth.verify_token(token) is None

    def test_garbage_token(self, auth):
        assert auth.verify_token("not-a-token") is None


class TestListeners:
    """Tests for auth state listeners."""

    def test_listener_called_immediately_and_on_change(self, auth):
        seen = []

        auth.on_auth_state_changed(seen.append)
        auth.sign_in("user-1", "ada@example.org")
        auth.sign_out()

        assert seen[0] is None
        assert seen[1].id == "user-1"
        assert seen[2] is None

    def test_unsubscribe(self, auth):
        seen = []

        unsubscribe = auth.on_auth_state_changed(seen.append)
        unsubscribe()
        auth.sign_in("user-1", "ada@example.org")

        assert seen == [None]
