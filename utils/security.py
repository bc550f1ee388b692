"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT issue/verification via PyJWT (TokenCodec)
- token ids and refresh-token fingerprints
"""
from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Dict, Any

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, VerificationError, InvalidHashError

from services.errors import TokenExpired, TokenMalformed

ph = PasswordHasher()

ACCESS = "access"
REFRESH = "refresh"


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def generate_token_id() -> str:
    """Random nonce used as the refresh token jti."""
    return secrets.token_urlsafe(32)


def fingerprint(token_id: str) -> str:
    """sha256 hex of a token id; this is what the users table stores."""
    return hashlib.sha256(token_id.encode("utf-8")).hexdigest()


def fingerprints_match(presented: str, stored: str | None) -> bool:
    if not stored:
        return False
    return hmac.compare_digest(presented, stored)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    """
    Stateless signer/verifier for one token type.

    The key is fixed at construction; a codec built from the same key, algorithm and
    type verifies the same tokens in any process.
    """

    REQUIRED_CLAIMS = ["sub", "iat", "exp", "jti"]

    def __init__(self, secret: str, token_type: str, algorithm: str = "HS256", issuer: str | None = None):
        if not secret:
            raise ValueError("a signing secret is required")
        self._secret = secret
        self.token_type = token_type
        self.algorithm = algorithm
        self.issuer = issuer

    def issue(self, claims: Dict[str, Any], ttl: timedelta) -> str:
        now = _now()
        payload = dict(claims)
        payload["sub"] = str(payload["sub"])
        payload.setdefault("jti", generate_token_id())
        payload.update({
            "type": self.token_type,
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
        })
        if self.issuer:
            payload["iss"] = self.issuer
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Dict[str, Any]:
        """
        Decode and validate a JWT.
        Raises TokenExpired once exp has passed and TokenMalformed for anything else
        (bad structure or signature, missing claims, wrong token type).
        """
        if not token or not isinstance(token, str):
            raise TokenMalformed("Token is missing")
        try:
            decoded = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": self.REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpired()
        except jwt.InvalidTokenError as exc:
            raise TokenMalformed(f"Invalid token: {exc}")

        if decoded.get("type") != self.token_type:
            raise TokenMalformed("Wrong token type")
        return decoded
