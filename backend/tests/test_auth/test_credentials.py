"""Unit tests for issued tokens and stored password hashes."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import JWTError, jwt

from stayledger.auth import passwords
from stayledger.auth.jwt import (
    ACCESS,
    REFRESH,
    create_access_token,
    create_refresh_token,
    create_token_pair,
    decode_token,
)
from stayledger.auth.passwords import hash_password, verify_password
from stayledger.config import settings


class TestTokenPair:
    def test_pair_shares_subject_and_role(self):
        pair = create_token_pair("0b6f", "host")
        access, refresh = decode_token(pair["access_token"]), decode_token(pair["refresh_token"])

        assert pair["token_type"] == "bearer"
        assert (access["type"], refresh["type"]) == (ACCESS, REFRESH)
        assert access["sub"] == refresh["sub"] == "0b6f"
        assert access["role"] == refresh["role"] == "host"

    def test_role_claim_only_when_known(self):
        pair = create_token_pair("0b6f")
        assert "role" not in decode_token(pair["access_token"])
        assert "role" not in decode_token(pair["refresh_token"])

    def test_lifetimes_follow_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "jwt_access_token_expire_minutes", 12)
        monkeypatch.setattr(settings, "jwt_refresh_token_expire_days", 3)
        pair = create_token_pair("0b6f")

        access, refresh = decode_token(pair["access_token"]), decode_token(pair["refresh_token"])
        assert access["exp"] - access["iat"] == 12 * 60
        assert refresh["exp"] - refresh["iat"] == 3 * 24 * 3600


class TestDecode:
    def test_explicit_lifetime_overrides_default(self):
        claims = decode_token(create_access_token({"sub": "a"}, expires_delta=timedelta(minutes=2)))
        assert claims["exp"] - claims["iat"] == 120

    @pytest.mark.parametrize("factory", [create_access_token, create_refresh_token])
    def test_expired_tokens_rejected(self, factory):
        with pytest.raises(JWTError):
            decode_token(factory({"sub": "a"}, expires_delta=timedelta(seconds=-1)))

    def test_foreign_signature_rejected(self):
        now = datetime.now(timezone.utc)
        forged = jwt.encode(
            {"sub": "a", "type": ACCESS, "role": "admin", "iat": now, "exp": now + timedelta(minutes=5)},
            "not-the-server-secret",
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(JWTError):
            decode_token(forged)

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
    def test_malformed_rejected(self, token):
        with pytest.raises(JWTError):
            decode_token(token)


class TestPasswords:
    def test_hash_is_salted_bcrypt(self):
        first, second = hash_password("s3cret-stay"), hash_password("s3cret-stay")
        assert first != second
        assert first.startswith("$2")
        assert verify_password("s3cret-stay", first)
        assert verify_password("s3cret-stay", second)

    def test_wrong_password_rejected(self):
        assert verify_password("S3cret-stay", hash_password("s3cret-stay")) is False

    def test_non_ascii_password(self):
        hashed = hash_password("köln-été")
        assert verify_password("köln-été", hashed)
        assert not verify_password("koln-ete", hashed)

    def test_account_without_hash_never_matches(self):
        assert verify_password("anything", None) is False

    def test_placeholder_hash_does_not_authenticate(self):
        # Even the placeholder's own password fails when no hash is stored.
        assert passwords._DUMMY_HASH.startswith("$2")
        assert verify_password("stayledger-dummy-password", None) is False
