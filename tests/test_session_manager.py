import threading
from datetime import timedelta

import pytest

from api import build_session_manager
from models import storage
from models.credential_store import CredentialStore
from services.errors import (
    Conflict,
    DeadlineExceeded,
    InvalidCredential,
    NotFound,
    SessionManagerUnavailable,
    SessionRevoked,
    TokenExpired,
    TokenMalformed,
)
from services.session_manager import SessionManager, TokenPair
from utils.deadline import Deadline
from utils.security import fingerprint

from conftest import PASSWORD


def _stored_fingerprint(manager, user_id):
    return manager.credentials.get(user_id).refresh_fingerprint


def test_login_by_email_or_username_sets_fingerprint(manager, alice):
    assert _stored_fingerprint(manager, alice.id) is None

    user, pair = manager.login("Alice@Example.com", PASSWORD)
    assert user.id == alice.id
    claims = manager.verify_refresh(pair.refresh_token)
    assert _stored_fingerprint(manager, alice.id) == fingerprint(claims.token_id)

    _, pair2 = manager.login("alice", PASSWORD)
    assert pair2.refresh_token != pair.refresh_token


def test_login_unknown_user_and_bad_password(manager, alice):
    with pytest.raises(NotFound):
        manager.login("nobody@example.com", PASSWORD)
    with pytest.raises(InvalidCredential):
        manager.login("alice", "wrong-password")
    assert _stored_fingerprint(manager, alice.id) is None


def test_second_login_invalidates_previous_refresh_token(manager, alice):
    _, first = manager.login("alice", PASSWORD)
    _, second = manager.login("alice", PASSWORD)

    with pytest.raises(SessionRevoked):
        manager.refresh(first.refresh_token)
    assert isinstance(manager.refresh(second.refresh_token), TokenPair)


def test_rotation_sequence(manager, alice):
    _, first = manager.login("alice", PASSWORD)
    r1 = first.refresh_token

    pair2 = manager.refresh(r1)
    with pytest.raises(SessionRevoked):
        manager.refresh(r1)
    pair3 = manager.refresh(pair2.refresh_token)

    assert len({r1, pair2.refresh_token, pair3.refresh_token}) == 3
    claims = manager.authenticate(pair3.access_token)
    assert claims.user_id == alice.id
    assert claims.username == "alice"


def test_concurrent_refresh_with_same_token_has_one_winner(manager, alice):
    _, pair = manager.login("alice", PASSWORD)
    racers = 4
    barrier = threading.Barrier(racers)
    results = []
    lock = threading.Lock()

    def worker():
        barrier.wait()
        try:
            outcome = manager.refresh(pair.refresh_token)
        except SessionRevoked as exc:
            outcome = exc
        finally:
            storage.close()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(racers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    winners = [r for r in results if isinstance(r, TokenPair)]
    losers = [r for r in results if isinstance(r, SessionRevoked)]
    assert len(results) == racers
    assert len(winners) == 1
    assert len(losers) == racers - 1

    # the stored fingerprint belongs to the winner's token
    winner_claims = manager.verify_refresh(winners[0].refresh_token)
    assert _stored_fingerprint(manager, alice.id) == fingerprint(winner_claims.token_id)


def test_logout_is_idempotent_and_revokes_refresh(manager, alice):
    _, pair = manager.login("alice", PASSWORD)

    manager.logout(alice.id)
    manager.logout(alice.id)
    manager.logout("no-such-user")

    assert _stored_fingerprint(manager, alice.id) is None
    with pytest.raises(SessionRevoked):
        manager.refresh(pair.refresh_token)


def test_refresh_rejects_expired_and_malformed_tokens(manager, alice):
    manager.login("alice", PASSWORD)
    expired = manager.refresh_codec.issue({"sub": alice.id, "jti": "x"}, timedelta(seconds=-5))
    with pytest.raises(TokenExpired):
        manager.refresh(expired)
    with pytest.raises(TokenMalformed):
        manager.refresh("garbage")


def test_refresh_for_deleted_user_is_revoked(manager):
    token = manager.refresh_codec.issue({"sub": "ghost", "jti": "x"}, timedelta(minutes=5))
    with pytest.raises(SessionRevoked):
        manager.refresh(token)


def test_change_password_keeps_session_by_default(manager, alice):
    _, pair = manager.login("alice", PASSWORD)

    with pytest.raises(InvalidCredential):
        manager.change_password(alice.id, "not-the-password", "new-password-123")

    manager.change_password(alice.id, PASSWORD, "new-password-123")
    with pytest.raises(InvalidCredential):
        manager.login("alice", PASSWORD)
    manager.refresh(pair.refresh_token)
    manager.login("alice", "new-password-123")


def test_change_password_can_revoke_session(app, alice):
    config = dict(app.config)
    config["REVOKE_SESSIONS_ON_PASSWORD_CHANGE"] = True
    strict = build_session_manager(config)

    _, pair = strict.login("alice", PASSWORD)
    strict.change_password(alice.id, PASSWORD, "new-password-123")
    with pytest.raises(SessionRevoked):
        strict.refresh(pair.refresh_token)


def test_change_password_unknown_user(manager):
    with pytest.raises(NotFound):
        manager.change_password("ghost", PASSWORD, "new-password-123")


def test_register_rejects_duplicates(manager, alice):
    with pytest.raises(Conflict):
        manager.register("ALICE", "other@example.com", "Other", PASSWORD)
    with pytest.raises(Conflict):
        manager.register("other", "alice@example.com", "Other", PASSWORD)


def test_expired_deadline_has_no_effect(manager, alice):
    with pytest.raises(DeadlineExceeded):
        manager.login("alice", PASSWORD, deadline=Deadline.after(0))
    assert _stored_fingerprint(manager, alice.id) is None


def test_store_failure_is_reported_as_unavailable(app, broken_storage):
    base = app.extensions["session_manager"]
    unreachable = SessionManager(
        CredentialStore(broken_storage),
        base.access_codec,
        base.refresh_codec,
        access_ttl=base.access_ttl,
        refresh_ttl=base.refresh_ttl,
    )
    with pytest.raises(SessionManagerUnavailable) as info:
        unreachable.login("alice", PASSWORD)
    assert info.value.retryable
    with pytest.raises(SessionManagerUnavailable):
        unreachable.logout("anyone")

    # the request gate loads the user through the manager as well
    claims = base.authenticate(base.access_codec.issue({"sub": "someone"}, base.access_ttl))
    with pytest.raises(SessionManagerUnavailable):
        unreachable.current_user(claims)


def test_current_user_for_access_claims(manager, alice):
    _, pair = manager.login("alice", PASSWORD)
    claims = manager.authenticate(pair.access_token)
    assert manager.current_user(claims).id == alice.id

    storage.delete(manager.credentials.get(alice.id))
    storage.save()
    assert manager.current_user(claims) is None


def test_login_by_email_wins_over_username_spelled_like_an_email(manager, alice):
    # usernames with "@" are refused at the HTTP layer; older rows may still have them
    other = manager.credentials.create_user("alice@example.com", "mallory@example.com", "Mallory", PASSWORD)
    user, _ = manager.login("alice@example.com", PASSWORD)
    assert user.id == alice.id
    assert manager.credentials.lookup_by_identifier("mallory@example.com").id == other.id
