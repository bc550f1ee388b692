"""
Relation storage primitives over the (actor_id, kind, target_id) unique index.

insert_if_absent() and delete_if_present() report affected-row counts instead of
raising on a lost race; the ledger decides what a zero means.
"""
from __future__ import annotations

from sqlalchemy.exc import IntegrityError

import models
from models.relation import Relation, RelationKind


class RelationStore:

    def __init__(self, storage=None):
        self._storage = storage or models.storage

    @staticmethod
    def _tuple_filter(query, actor_id: str, kind: RelationKind, target_id: str):
        return query.filter(
            Relation.actor_id == actor_id,
            Relation.kind == kind,
            Relation.target_id == target_id,
        )

    def find(self, actor_id: str, kind: RelationKind, target_id: str, deadline=None) -> Relation | None:
        with self._storage.unit_of_work(deadline, "relation lookup") as session:
            query = self._tuple_filter(session.query(Relation), actor_id, kind, target_id)
            return query.populate_existing().first()

    def insert_if_absent(self, actor_id: str, kind: RelationKind, target_id: str, deadline=None) -> int:
        """Insert the relation; 0 if the unique index already holds the tuple."""
        try:
            with self._storage.unit_of_work(deadline, "relation insert") as session:
                session.add(Relation(actor_id=actor_id, kind=kind, target_id=target_id))
                session.flush()
        except IntegrityError:
            return 0
        return 1

    def delete_if_present(self, actor_id: str, kind: RelationKind, target_id: str, deadline=None) -> int:
        with self._storage.unit_of_work(deadline, "relation delete") as session:
            query = self._tuple_filter(session.query(Relation), actor_id, kind, target_id)
            return query.delete(synchronize_session=False)

    def list_targets(self, actor_id: str, kind: RelationKind, deadline=None) -> set[str]:
        with self._storage.unit_of_work(deadline, "relation list") as session:
            rows = (
                session.query(Relation.target_id)
                .filter(Relation.actor_id == actor_id, Relation.kind == kind)
                .all()
            )
        return {row.target_id for row in rows}

    def count_for_tuple(self, actor_id: str, kind: RelationKind, target_id: str, deadline=None) -> int:
        with self._storage.unit_of_work(deadline, "relation count") as session:
            return self._tuple_filter(session.query(Relation), actor_id, kind, target_id).count()
