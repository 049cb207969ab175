import time
from types import SimpleNamespace

import jwt
import pytest

from caseflow.core.config import settings
from caseflow.core.errors import Unauthenticated
from caseflow.core.security import (
    Principal,
    create_access_token,
    decode_token,
    hash_password,
    verify_password,
)

USER = SimpleNamespace(id="user-1", email="maker@demo.com", role="Maker")
TENANT = SimpleNamespace(id="tenant-1", domain="demo")


def _principal(role: str) -> Principal:
    return Principal(
        user_id="user-1",
        email="user@demo.com",
        name="User",
        role=role,
        tenant_id="tenant-1",
        tenant_domain="demo",
        tenant_name="Demo",
    )


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("maker123")
        assert hashed != "maker123"
        assert verify_password("maker123", hashed)
        assert not verify_password("maker124", hashed)

    def test_long_passwords_are_truncated_not_rejected(self):
        long_password = "p" * 100
        hashed = hash_password(long_password)
        assert verify_password(long_password, hashed)
        assert verify_password("p" * 72, hashed)


class TestTokens:
    def test_round_trip_claims(self):
        claims = decode_token(create_access_token(USER, TENANT))
        assert claims["sub"] == "user-1"
        assert claims["role"] == "Maker"
        assert claims["tenant_id"] == "tenant-1"
        assert claims["tenant_domain"] == "demo"
        assert claims["iss"] == settings.JWT_ISSUER
        assert claims["exp"] - claims["iat"] == settings.JWT_ACCESS_EXPIRE_SECONDS

    def test_expired_token(self):
        now = int(time.time())
        token = jwt.encode(
            {"sub": "user-1", "tenant_id": "tenant-1", "iss": settings.JWT_ISSUER, "iat": now - 120, "exp": now - 60},
            settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
        )
        with pytest.raises(Unauthenticated, match="Token expired"):
            decode_token(token)

    def test_wrong_secret(self):
        now = int(time.time())
        token = jwt.encode(
            {"sub": "user-1", "tenant_id": "tenant-1", "iss": settings.JWT_ISSUER, "exp": now + 60},
            "another-secret",
            algorithm=settings.JWT_ALGORITHM,
        )
        with pytest.raises(Unauthenticated, match="Invalid token"):
            decode_token(token)

    def test_wrong_issuer(self):
        now = int(time.time())
        token = jwt.encode(
            {"sub": "user-1", "tenant_id": "tenant-1", "iss": "someone-else", "exp": now + 60},
            settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
        )
        with pytest.raises(Unauthenticated):
            decode_token(token)

    def test_missing_tenant_claim(self):
        now = int(time.time())
        token = jwt.encode(
            {"sub": "user-1", "iss": settings.JWT_ISSUER, "exp": now + 60},
            settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
        )
        with pytest.raises(Unauthenticated):
            decode_token(token)

    def test_garbage(self):
        with pytest.raises(Unauthenticated):
            decode_token("not-a-jwt")


class TestPrincipal:
    @pytest.mark.parametrize("role,sees_all", [
        ("Admin", True),
        ("Auditor", True),
        ("Maker", False),
        ("Checker", False),
        ("Underwriter", False),
    ])
    def test_sees_all_cases(self, role, sees_all):
        assert _principal(role).sees_all_cases is sees_all
