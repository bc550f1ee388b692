"""
Session manager: login, refresh-token rotation, logout and password change.

A user is LoggedOut while users.refresh_fingerprint is NULL and Active while it holds
sha256(jti) of exactly one refresh token. Login overwrites the fingerprint (one session
per user); refresh swaps it with a compare-and-swap so that only one of several
concurrent refreshes presenting the same token can win. The loser gets SessionRevoked.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging

from sqlalchemy.exc import IntegrityError

from models.credential_store import CredentialStore
from models.user import User
from services.errors import (
    NotFound,
    InvalidCredential,
    SessionRevoked,
    Conflict,
    StoreUnavailable,
    SessionManagerUnavailable,
)
from utils.security import (
    TokenCodec,
    generate_token_id,
    fingerprint,
    fingerprints_match,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessClaims:
    user_id: str
    issued_at: datetime
    expires_at: datetime
    token_id: str
    username: str | None = None


@dataclass(frozen=True)
class RefreshClaims:
    user_id: str
    issued_at: datetime
    expires_at: datetime
    token_id: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    access_expires_in: int
    refresh_expires_in: int


def _ts(value) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class SessionManager:

    def __init__(self, credentials: CredentialStore, access_codec: TokenCodec, refresh_codec: TokenCodec,
                 access_ttl: timedelta, refresh_ttl: timedelta, revoke_on_password_change: bool = False):
        self.credentials = credentials
        self.access_codec = access_codec
        self.refresh_codec = refresh_codec
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.revoke_on_password_change = revoke_on_password_change

    def _store(self, call, *args, **kwargs):
        """Run a credential store call, reporting storage failures as SessionManagerUnavailable."""
        try:
            return call(*args, **kwargs)
        except SessionManagerUnavailable:
            raise
        except StoreUnavailable as exc:
            raise SessionManagerUnavailable() from exc

    def _issue_pair(self, user: User, token_id: str) -> TokenPair:
        access = self.access_codec.issue(
            {"sub": user.id, "username": user.username},
            self.access_ttl,
        )
        refresh = self.refresh_codec.issue({"sub": user.id, "jti": token_id}, self.refresh_ttl)
        return TokenPair(
            access_token=access,
            refresh_token=refresh,
            access_expires_in=int(self.access_ttl.total_seconds()),
            refresh_expires_in=int(self.refresh_ttl.total_seconds()),
        )

    def register(self, username: str, email: str, fullname: str | None, password: str, deadline=None) -> User:
        username = username.strip().lower()
        email = email.strip().lower()
        if self._store(self.credentials.exists, username, email, deadline=deadline):
            raise Conflict("User with username or email already exists")
        try:
            user = self._store(self.credentials.create_user, username, email, fullname, password, deadline=deadline)
        except IntegrityError:
            # a concurrent registration took the username or email
            raise Conflict("User with username or email already exists")
        logger.info("Registered user %s", user.id)
        return user

    def login(self, identifier: str, password: str, deadline=None) -> tuple[User, TokenPair]:
        user = self._store(self.credentials.lookup_by_identifier, identifier, deadline=deadline)
        if user is None:
            raise NotFound()
        if not self.credentials.verify_password(user, password):
            logger.info("Rejected password for user %s", user.id)
            raise InvalidCredential("Invalid password")

        token_id = generate_token_id()
        pair = self._issue_pair(user, token_id)
        # overwriting invalidates whatever refresh token was issued before
        if not self._store(self.credentials.set_refresh_fingerprint, user.id, fingerprint(token_id),
                           deadline=deadline):
            raise NotFound()
        logger.info("User %s logged in", user.id)
        return user, pair

    def verify_refresh(self, refresh_token: str) -> RefreshClaims:
        decoded = self.refresh_codec.verify(refresh_token)
        return RefreshClaims(
            user_id=str(decoded["sub"]),
            issued_at=_ts(decoded["iat"]),
            expires_at=_ts(decoded["exp"]),
            token_id=str(decoded["jti"]),
        )

    def refresh(self, refresh_token: str, deadline=None) -> TokenPair:
        claims = self.verify_refresh(refresh_token)
        user = self._store(self.credentials.get, claims.user_id, deadline=deadline)
        if user is None:
            raise SessionRevoked()

        presented = fingerprint(claims.token_id)
        if not fingerprints_match(presented, user.refresh_fingerprint):
            logger.info("Refresh token for user %s does not match the active session", user.id)
            raise SessionRevoked()

        new_token_id = generate_token_id()
        pair = self._issue_pair(user, new_token_id)
        swapped = self._store(
            self.credentials.compare_and_swap_fingerprint,
            user.id, presented, fingerprint(new_token_id),
            deadline=deadline,
        )
        if not swapped:
            # another refresh rotated first; this token is stale now
            raise SessionRevoked()
        logger.info("Rotated refresh token for user %s", user.id)
        return pair

    def logout(self, user_id: str, deadline=None) -> None:
        self._store(self.credentials.clear_refresh_fingerprint, user_id, deadline=deadline)
        logger.info("User %s logged out", user_id)

    def change_password(self, user_id: str, old_password: str, new_password: str, deadline=None) -> None:
        user = self._store(self.credentials.get, user_id, deadline=deadline)
        if user is None:
            raise NotFound()
        if not self.credentials.verify_password(user, old_password):
            raise InvalidCredential("Invalid old password")
        if not self._store(self.credentials.update_password_hash, user.id, new_password, deadline=deadline):
            raise NotFound()
        if self.revoke_on_password_change:
            self._store(self.credentials.clear_refresh_fingerprint, user.id, deadline=deadline)
        logger.info("Password changed for user %s", user.id)

    def authenticate(self, access_token: str) -> AccessClaims:
        decoded = self.access_codec.verify(access_token)
        return AccessClaims(
            user_id=str(decoded["sub"]),
            issued_at=_ts(decoded["iat"]),
            expires_at=_ts(decoded["exp"]),
            token_id=str(decoded["jti"]),
            username=decoded.get("username"),
        )

    def current_user(self, claims: AccessClaims, deadline=None) -> User | None:
        """Load the user an access token was issued to; None if the account is gone."""
        return self._store(self.credentials.get, claims.user_id, deadline=deadline)
