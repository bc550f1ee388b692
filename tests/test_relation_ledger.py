import threading

import pytest
from marshmallow import ValidationError

from models import storage
from models.relation import RelationKind
from models.relation_store import RelationStore
from services.errors import DeadlineExceeded, StoreUnavailable
from services.relation_ledger import RelationLedger
from utils.deadline import Deadline


class _ExpiresBeforeCommit:
    """Deadline that passes the up-front check and is gone by commit time."""
    expired = True

    def check(self, what="operation"):
        return None


def test_toggle_twice_returns_present_then_absent(ledger, alice):
    assert ledger.toggle(alice.id, RelationKind.VIDEO_LIKE, "video1") is True
    assert ledger.toggle(alice.id, RelationKind.VIDEO_LIKE, "video1") is False
    assert ledger.store.count_for_tuple(alice.id, RelationKind.VIDEO_LIKE, "video1") == 0


@pytest.mark.parametrize("calls", [1, 2, 3, 4, 5])
def test_toggle_parity(ledger, alice, calls):
    for _ in range(calls):
        state = ledger.toggle(alice.id, "comment-like", "comment-7")
    assert state is (calls % 2 == 1)
    assert ledger.is_present(alice.id, "comment-like", "comment-7") is (calls % 2 == 1)


def test_kinds_and_actors_are_independent(ledger, alice, bob):
    ledger.toggle(alice.id, "video-like", "v1")
    ledger.toggle(alice.id, "tweet-like", "v1")
    ledger.toggle(bob.id, "video-like", "v1")
    ledger.toggle(alice.id, "subscription", bob.id)

    assert ledger.list_by_actor(alice.id, "video-like") == {"v1"}
    assert ledger.list_by_actor(alice.id, "tweet-like") == {"v1"}
    assert ledger.list_by_actor(alice.id, "subscription") == {bob.id}
    assert ledger.list_by_actor(bob.id, "video-like") == {"v1"}
    assert ledger.list_by_actor(bob.id, "comment-like") == set()

    # bob toggling his own like never touches alice's
    ledger.toggle(bob.id, "video-like", "v1")
    assert ledger.is_present(alice.id, "video-like", "v1")


def test_unknown_kind_is_rejected(ledger, alice):
    with pytest.raises(ValidationError) as info:
        ledger.toggle(alice.id, "dislike", "v1")
    assert "kind" in info.value.messages


@pytest.mark.parametrize("target_id", ["", "x" * 65])
def test_target_id_must_fit_the_column(ledger, alice, target_id):
    with pytest.raises(ValidationError) as info:
        ledger.toggle(alice.id, "video-like", target_id)
    assert "target_id" in info.value.messages
    assert ledger.list_by_actor(alice.id, "video-like") == set()

    assert ledger.toggle(alice.id, "video-like", "x" * 64) is True


def test_unreachable_store_is_reported_as_unavailable(alice, broken_storage):
    unreachable = RelationLedger(RelationStore(broken_storage))
    with pytest.raises(StoreUnavailable) as info:
        unreachable.toggle(alice.id, "video-like", "v1")
    assert info.value.retryable
    with pytest.raises(StoreUnavailable):
        unreachable.list_by_actor(alice.id, "video-like")


def test_lost_insert_race_falls_through_to_delete(ledger, alice, monkeypatch):
    # another request inserted the row between our read and our insert
    ledger.store.insert_if_absent(alice.id, RelationKind.VIDEO_LIKE, "v9")
    monkeypatch.setattr(ledger.store, "find", lambda *args, **kwargs: None)

    assert ledger.toggle(alice.id, "video-like", "v9") is False
    assert ledger.store.count_for_tuple(alice.id, RelationKind.VIDEO_LIKE, "v9") == 0


def test_insert_and_delete_report_affected_rows(ledger, alice):
    store = ledger.store
    assert store.insert_if_absent(alice.id, RelationKind.TWEET_LIKE, "t1") == 1
    assert store.insert_if_absent(alice.id, RelationKind.TWEET_LIKE, "t1") == 0
    assert store.delete_if_present(alice.id, RelationKind.TWEET_LIKE, "t1") == 1
    assert store.delete_if_present(alice.id, RelationKind.TWEET_LIKE, "t1") == 0


def test_concurrent_toggles_never_duplicate(ledger, alice):
    racers = 8
    barrier = threading.Barrier(racers)
    errors = []

    def worker():
        barrier.wait()
        try:
            ledger.toggle(alice.id, "video-like", "hot-video")
        except Exception as exc:  # collected for the assertion below
            errors.append(exc)
        finally:
            storage.close()

    threads = [threading.Thread(target=worker) for _ in range(racers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert errors == []
    rows = ledger.store.count_for_tuple(alice.id, RelationKind.VIDEO_LIKE, "hot-video")
    assert rows in (0, 1)
    assert ledger.is_present(alice.id, "video-like", "hot-video") is (rows == 1)

    # the tuple still flips cleanly afterwards
    after = ledger.toggle(alice.id, "video-like", "hot-video")
    assert after is (rows == 0)


def test_expired_deadline_fails_without_effect(ledger, alice):
    with pytest.raises(DeadlineExceeded):
        ledger.toggle(alice.id, "video-like", "v1", deadline=Deadline.after(0))
    assert ledger.store.count_for_tuple(alice.id, RelationKind.VIDEO_LIKE, "v1") == 0


def test_deadline_passing_mid_write_rolls_back(ledger, alice):
    with pytest.raises(DeadlineExceeded):
        ledger.store.insert_if_absent(alice.id, RelationKind.VIDEO_LIKE, "v2", deadline=_ExpiresBeforeCommit())
    assert ledger.store.count_for_tuple(alice.id, RelationKind.VIDEO_LIKE, "v2") == 0

    # retrying the toggle after a timeout converges on the requested flip
    assert ledger.toggle(alice.id, "video-like", "v2") is True


def test_relations_are_removed_with_their_actor(ledger, alice):
    ledger.toggle(alice.id, "video-like", "v1")
    storage.delete(storage.get(type(alice), alice.id))
    storage.save()
    assert ledger.store.count_for_tuple(alice.id, RelationKind.VIDEO_LIKE, "v1") == 0
