"""
auth/tokens.py -- Password hashing and JWT session tokens.

Security design decisions:
  Passwords: bcrypt directly (no passlib wrapper). Bcrypt's cost factor makes
       brute-force expensive and checkpw compares in constant time. The
       _DUMMY_HASH constant enables timing equalization in sign-in so response
       time does not reveal whether an email exists.

  JWT: python-jose with HS256. Tokens carry the account id, a random jti and
       a 24 hour expiry. Verification raises TokenExpired or InvalidToken --
       the API layer turns both into 401 responses with distinct codes.

  Signing key: passed to TokenIssuer at construction time. Nothing in this
       module reads configuration, so tests can mint tokens with throwaway
       keys and a frozen clock.

  Revocation: none. A token stays valid until exp even after logout. The jti
       claim is there so a denylist could be keyed on it later.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import InvalidToken, TokenExpired

DEFAULT_ALGORITHM = "HS256"
DEFAULT_EXPIRE_SECONDS = 24 * 60 * 60


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    A fresh salt is generated per call, so hashing the same password twice
    yields two different strings. Passwords longer than 72 bytes are truncated
    by bcrypt; the API caps password length at 128 characters.
    """
    return bcrypt.hashpw(plain.encode("utf-8")[:72], bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:72], hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# Computed once at module load so the first sign-in is not measurably slower
# than later ones. Verified against when the email does not exist.
_DUMMY_HASH: str = hash_password("rolekeeper_timing_dummy")


def equalize_timing(plain: str) -> None:
    """Burn one bcrypt check so unknown-email sign-ins cost the same as wrong-password ones."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# JWT issue / verify
# ---------------------------------------------------------------------------


class TokenIssuer:
    """Mints and verifies signed, time-limited session tokens.

    Usage:
        issuer = TokenIssuer(secret_key=settings.secret_key)
        token = issuer.issue(account.id)
        account_id = issuer.verify(token)   # raises InvalidToken / TokenExpired
    """

    def __init__(
        self,
        secret_key: str,
        expire_seconds: int = DEFAULT_EXPIRE_SECONDS,
        algorithm: str = DEFAULT_ALGORITHM,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if not secret_key:
            raise ValueError("TokenIssuer requires a non-empty secret_key")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._clock = clock
        self.expire_seconds = expire_seconds

    def issue(self, account_id: int) -> str:
        """Encode a signed JWT bound to account_id that expires after expire_seconds."""
        now = self._clock()
        payload = {
            "sub": str(account_id),
            "user_id": account_id,
            "jti": secrets.token_hex(8),
            "iat": now,
            "exp": now + timedelta(seconds=self.expire_seconds),
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: str) -> int:
        """Decode and verify a JWT and return the account id it is bound to.

        Raises TokenExpired if the exp claim has passed, InvalidToken for a bad
        signature, a malformed token, or a payload without an integer user_id.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except ExpiredSignatureError as exc:
            raise TokenExpired() from exc
        except JWTError as exc:
            raise InvalidToken() from exc

        account_id = payload.get("user_id")
        if not isinstance(account_id, int) or isinstance(account_id, bool):
            raise InvalidToken("Invalid token payload.")
        return account_id

    def refresh(self, account_id: int) -> str:
        """Issue a fresh token for an already-authenticated caller.

        The caller's current token is not invalidated.
        """
        return self.issue(account_id)
