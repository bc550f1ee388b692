"""
Credential store: user identity, password hash and the refresh-token fingerprint.

Every write is a single UPDATE statement, so two processes sharing one database see
each fingerprint change atomically. compare_and_swap_fingerprint() is the only
conditional write and is what the refresh rotation relies on.
"""
from __future__ import annotations

import logging

from sqlalchemy import or_, func

import models
from models.user import User
from utils.security import hash_password, verify_password

logger = logging.getLogger(__name__)


class CredentialStore:

    def __init__(self, storage=None):
        self._storage = storage or models.storage

    def get(self, user_id: str, deadline=None) -> User | None:
        with self._storage.unit_of_work(deadline, "user lookup") as session:
            return (
                session.query(User)
                .populate_existing()
                .filter(User.id == str(user_id))
                .first()
            )

    def lookup_by_identifier(self, identifier: str, deadline=None) -> User | None:
        """Find a user by email, then by username (both stored lower-cased)."""
        ident = (identifier or "").strip().lower()
        if not ident:
            return None
        with self._storage.unit_of_work(deadline, "user lookup") as session:
            query = session.query(User).populate_existing()
            return (
                query.filter(User.email == ident).first()
                or query.filter(User.username == ident).first()
            )

    def exists(self, username: str, email: str, deadline=None) -> bool:
        with self._storage.unit_of_work(deadline, "user lookup") as session:
            found = (
                session.query(func.count(User.id))
                .filter(or_(User.username == username, User.email == email))
                .scalar()
            )
        return bool(found)

    def create_user(self, username: str, email: str, fullname: str | None, password: str, deadline=None) -> User:
        """Insert a user; the unique indexes on username/email raise IntegrityError on a race."""
        user = User(
            username=username,
            email=email,
            fullname=fullname,
            password_hash=hash_password(password),
        )
        with self._storage.unit_of_work(deadline, "user create") as session:
            session.add(user)
        return user

    @staticmethod
    def verify_password(user: User, password: str) -> bool:
        return verify_password(password or "", user.password_hash)

    def update_password_hash(self, user_id: str, new_password: str, deadline=None) -> bool:
        pw_hash = hash_password(new_password)
        with self._storage.unit_of_work(deadline, "password update") as session:
            updated = (
                session.query(User)
                .filter(User.id == user_id)
                .update({User.password_hash: pw_hash}, synchronize_session=False)
            )
        return updated == 1

    def set_refresh_fingerprint(self, user_id: str, fingerprint: str, deadline=None) -> bool:
        """Overwrite the fingerprint unconditionally; False if the user does not exist."""
        with self._storage.unit_of_work(deadline, "fingerprint set") as session:
            updated = (
                session.query(User)
                .filter(User.id == user_id)
                .update({User.refresh_fingerprint: fingerprint}, synchronize_session=False)
            )
        return updated == 1

    def clear_refresh_fingerprint(self, user_id: str, deadline=None) -> None:
        with self._storage.unit_of_work(deadline, "fingerprint clear") as session:
            session.query(User).filter(User.id == user_id).update(
                {User.refresh_fingerprint: None}, synchronize_session=False
            )

    def compare_and_swap_fingerprint(self, user_id: str, expected_old: str, new_value: str | None,
                                     deadline=None) -> bool:
        """
        Atomically replace the fingerprint only if it still equals expected_old.
        Returns False when another writer changed it first.
        """
        with self._storage.unit_of_work(deadline, "fingerprint swap") as session:
            updated = (
                session.query(User)
                .filter(User.id == user_id, User.refresh_fingerprint == expected_old)
                .update({User.refresh_fingerprint: new_value}, synchronize_session=False)
            )
        if updated != 1:
            logger.info("Fingerprint swap lost for user %s", user_id)
        return updated == 1
