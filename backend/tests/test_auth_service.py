from datetime import datetime, timedelta, timezone

import pytest

from adaptlearn.core.exceptions import RateLimitError
from adaptlearn.core.security import create_token, decode_token, get_password_hash, verify_password
from adaptlearn.services.auth_service import RateLimiter


class TestTokens:

    def test_roundtrip_returns_user_id(self):
        assert decode_token(create_token(42, "access"), "access") == 42

    def test_type_is_checked(self):
        with pytest.raises(ValueError, match="Invalid token type"):
            decode_token(create_token(42, "access"), "refresh")

    def test_tampered_token(self):
        token = create_token(42, "refresh")
        with pytest.raises(ValueError, match="Invalid token"):
            decode_token(token[:-2] + "xx", "refresh")

    def test_tokens_are_unique(self):
        assert create_token(1, "refresh") != create_token(1, "refresh")


def test_password_hash():
    hashed = get_password_hash("secretpass1")
    assert verify_password("secretpass1", hashed)
    assert not verify_password("secretpass2", hashed)


class TestRateLimiter:

    async def test_blocks_after_max_attempts(self):
        limiter = RateLimiter(max_attempts=3)
        for _ in range(3):
            await limiter.check_rate_limit("login_1.2.3.4")
        with pytest.raises(RateLimitError):
            await limiter.check_rate_limit("login_1.2.3.4")
        # Другой идентификатор не затронут
        await limiter.check_rate_limit("login_5.6.7.8")

    async def test_clear_attempts(self):
        limiter = RateLimiter(max_attempts=1)
        await limiter.check_rate_limit("login_a@example.com")
        await limiter.clear_attempts("login_a@example.com")
        await limiter.check_rate_limit("login_a@example.com")

    async def test_stale_identifiers_are_pruned(self):
        limiter = RateLimiter(window_minutes=5)
        old = datetime.now(timezone.utc) - timedelta(minutes=10)
        limiter.attempts = {f"login_10.0.0.{i}": [old] for i in range(100)}
        limiter.attempts["login_mixed"] = [old, datetime.now(timezone.utc)]

        await limiter.check_rate_limit("login_fresh")

        assert set(limiter.attempts) == {"login_mixed", "login_fresh"}
        assert len(limiter.attempts["login_mixed"]) == 1
