"""Unit tests for auth/tokens.py -- password hashing and TokenIssuer.

Covers:
- hash_password() salts every call; verify_password() round-trips
- verify_password() returns False for malformed hashes instead of raising
- TokenIssuer.verify() returns the account id for a fresh token
- expiry boundary: issued 23h59m ago is accepted, 24h01m ago is TokenExpired
- bad signature, garbage input and payloads without an integer user_id
- consecutive tokens for the same account differ (jti)
"""

from datetime import timedelta

import pytest
from jose import jwt

from auth.errors import InvalidToken, TokenExpired
from auth.tokens import TokenIssuer, hash_password, utcnow, verify_password
from tests.helpers import TEST_SECRET

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


class TestPasswordHashing:
    def test_round_trip(self) -> None:
        hashed = hash_password("Secret123")
        assert verify_password("Secret123", hashed) is True
        assert verify_password("Secret124", hashed) is False

    def test_same_password_hashes_differently(self) -> None:
        assert hash_password("Secret123") != hash_password("Secret123")

    def test_hash_is_not_plaintext(self) -> None:
        assert "Secret123" not in hash_password("Secret123")

    def test_malformed_hash_returns_false(self) -> None:
        assert verify_password("Secret123", "not-a-bcrypt-hash") is False


# ---------------------------------------------------------------------------
# TokenIssuer
# ---------------------------------------------------------------------------


def _issuer_at(offset: timedelta) -> TokenIssuer:
    """Issuer whose clock reads now + offset at issue time."""
    return TokenIssuer(TEST_SECRET, clock=lambda: utcnow() + offset)


class TestTokenIssuer:
    def test_issue_and_verify(self) -> None:
        issuer = TokenIssuer(TEST_SECRET)
        assert issuer.verify(issuer.issue(42)) == 42

    def test_claims(self) -> None:
        token = TokenIssuer(TEST_SECRET).issue(7)
        payload = jwt.get_unverified_claims(token)
        assert payload["sub"] == "7"
        assert payload["user_id"] == 7
        assert payload["exp"] - payload["iat"] == 24 * 60 * 60
        assert payload["jti"]

    def test_token_just_inside_expiry_is_accepted(self) -> None:
        token = _issuer_at(-timedelta(hours=23, minutes=59)).issue(5)
        assert TokenIssuer(TEST_SECRET).verify(token) == 5

    def test_token_past_expiry_is_rejected(self) -> None:
        token = _issuer_at(-timedelta(hours=24, minutes=1)).issue(5)
        with pytest.raises(TokenExpired):
            TokenIssuer(TEST_SECRET).verify(token)

    def test_wrong_secret_is_invalid(self) -> None:
        token = TokenIssuer("b" * 64).issue(5)
        with pytest.raises(InvalidToken):
            TokenIssuer(TEST_SECRET).verify(token)

    def test_garbage_is_invalid(self) -> None:
        with pytest.raises(InvalidToken):
            TokenIssuer(TEST_SECRET).verify("not.a.jwt")

    def test_missing_user_id_is_invalid(self) -> None:
        token = jwt.encode({"sub": "5", "exp": utcnow() + timedelta(hours=1)}, TEST_SECRET, algorithm="HS256")
        with pytest.raises(InvalidToken):
            TokenIssuer(TEST_SECRET).verify(token)

    def test_string_user_id_is_invalid(self) -> None:
        token = jwt.encode(
            {"sub": "5", "user_id": "5", "exp": utcnow() + timedelta(hours=1)},
            TEST_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(InvalidToken):
            TokenIssuer(TEST_SECRET).verify(token)

    def test_consecutive_tokens_differ(self) -> None:
        issuer = TokenIssuer(TEST_SECRET)
        first, second = issuer.issue(9), issuer.issue(9)
        assert first != second
        assert issuer.verify(first) == issuer.verify(second) == 9

    def test_refresh_keeps_old_token_valid(self) -> None:
        issuer = TokenIssuer(TEST_SECRET)
        old = issuer.issue(3)
        new = issuer.refresh(3)
        assert new != old
        assert issuer.verify(old) == 3

    def test_empty_secret_rejected(self) -> None:
        with pytest.raises(ValueError):
            TokenIssuer("")
