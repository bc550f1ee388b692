"""
Relation ledger: idempotent like/subscribe toggling.

toggle() flips presence of one (actor, kind, target) row. It never trusts a single
read: an insert that loses to a concurrent insert is treated as "already present"
and proceeds to delete, and a delete that finds nothing is treated as success.
The unique index is the only serialization point, so the ledger is safe across
threads and processes sharing one database.
"""
from __future__ import annotations

import logging

from models.relation import RelationKind, coerce_target_id
from models.relation_store import RelationStore

logger = logging.getLogger(__name__)


class RelationLedger:

    def __init__(self, store: RelationStore | None = None):
        self.store = store or RelationStore()

    def toggle(self, actor_id: str, kind, target_id: str, deadline=None) -> bool:
        """Flip the relation and return whether it is present afterwards."""
        kind = RelationKind.coerce(kind)
        target_id = coerce_target_id(target_id)

        existing = self.store.find(actor_id, kind, target_id, deadline=deadline)
        if existing is None:
            if self.store.insert_if_absent(actor_id, kind, target_id, deadline=deadline):
                logger.debug("Relation %s on %s created by %s", kind.value, target_id, actor_id)
                return True
            logger.info("Insert race lost for %s %s %s, removing instead", actor_id, kind.value, target_id)

        removed = self.store.delete_if_present(actor_id, kind, target_id, deadline=deadline)
        if not removed:
            logger.info("Relation %s %s %s was already removed", actor_id, kind.value, target_id)
        return False

    def is_present(self, actor_id: str, kind, target_id: str, deadline=None) -> bool:
        kind = RelationKind.coerce(kind)
        return self.store.find(actor_id, kind, coerce_target_id(target_id), deadline=deadline) is not None

    def list_by_actor(self, actor_id: str, kind, deadline=None) -> set[str]:
        return self.store.list_targets(actor_id, RelationKind.coerce(kind), deadline=deadline)
