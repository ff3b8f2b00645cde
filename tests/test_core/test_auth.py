import pytest
from datetime import timedelta

import jwt

from core.auth import AuthenticationService, JWTManager, PasswordManager
from core.exceptions import AuthenticationError


class TestPasswordManager:
    def test_hash_and_verify(self):
        hashed = PasswordManager.hash_password("secret123")

        assert hashed != "secret123"
        assert hashed.startswith("$2")
        assert PasswordManager.verify_password("secret123", hashed)
        assert not PasswordManager.verify_password("secret124", hashed)

    def test_missing_or_malformed_hash(self):
        assert not PasswordManager.verify_password("secret123", None)
        assert not PasswordManager.verify_password("secret123", "not-a-bcrypt-hash")


class TestJWTManager:
    @pytest.fixture
    def manager(self):
        return JWTManager(secret_key="unit-test-key")

    def test_token_round_trip(self, manager):
        token = manager.create_access_token(7, "alice")
        payload = manager.verify_token(token)

        assert payload["sub"] == "7"
        assert payload["username"] == "alice"
        assert payload["type"] == "access"
        assert payload["jti"]

    def test_tokens_are_unique(self, manager):
        assert manager.create_access_token(7, "alice") != manager.create_access_token(7, "alice")

    def test_expired_token(self, manager):
        token = manager.create_access_token(7, "alice", expires_delta=timedelta(seconds=-1))

        with pytest.raises(AuthenticationError) as exc_info:
            manager.verify_token(token)
        assert "expired" in exc_info.value.message

    def test_wrong_key_and_wrong_type(self, manager):
        other = JWTManager(secret_key="another-key")
        with pytest.raises(AuthenticationError):
            manager.verify_token(other.create_access_token(7, "alice"))

        refresh_like = jwt.encode({"sub": "7", "type": "refresh"}, "unit-test-key", algorithm="HS256")
        with pytest.raises(AuthenticationError):
            manager.verify_token(refresh_like)

    def test_secret_from_environment(self, monkeypatch):
        monkeypatch.setenv("JWT_SECRET_KEY", "from-env")
        assert JWTManager().secret_key == "from-env"


class TestAuthenticationService:
    @pytest.fixture
    def service(self):
        return AuthenticationService(JWTManager(secret_key="unit-test-key"))

    def test_create_and_verify(self, service):
        tokens = service.create_tokens(3, "bob")

        assert tokens["token_type"] == "bearer"
        assert tokens["expires_in"] > 0
        assert service.verify_access_token(tokens["access_token"]) == 3

    def test_revoked_token_is_rejected(self, service):
        token = service.create_tokens(3, "bob")["access_token"]

        assert service.revoke_token(token) is True
        with pytest.raises(AuthenticationError):
            service.verify_access_token(token)

    def test_revoking_garbage_is_false(self, service):
        assert service.revoke_token("garbage") is False

    def test_non_numeric_subject(self, service):
        token = jwt.encode(
            {"sub": "abc", "type": "access", "jti": "x"}, "unit-test-key", algorithm="HS256"
        )
        with pytest.raises(AuthenticationError):
            service.verify_access_token(token)
