from __future__ import annotations

import logging
from collections.abc import Callable

from crm_acl.metrics import observe_cascade_lookup_miss
from crm_acl.platform.security.errors import RecordLookupError
from crm_acl.platform.security.records import Record, RecordRef
from crm_acl.platform.security.store import RecordStore


logger = logging.getLogger("crm_acl.acl.walker")


class RelationshipWalker:
    """Resolves parent/related references against a record store.

    This is the only place that performs type-tagged lookups. Any failure to
    resolve a reference is reported as ``None`` so callers fall back instead of
    failing the whole check.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    @property
    def store(self) -> RecordStore:
        return self._store

    @staticmethod
    def cascade_target(record: Record) -> RecordRef | None:
        return record.cascade_ref()

    def fetch(self, ref: RecordRef) -> Record | None:
        return self._resolve(ref, self._store.get_entity_by_id)

    def _resolve(self, ref: RecordRef, lookup: Callable[[str, str], Record | None]) -> Record | None:
        try:
            target = lookup(ref.entity_type, ref.id)
        except RecordLookupError as exc:
            observe_cascade_lookup_miss(entity_type=ref.entity_type, reason="lookup_error")
            logger.warning(
                "acl.cascade.lookup_failed",
                extra={"entity_type": ref.entity_type, "entity_id": ref.id, "reason": exc.reason},
            )
            return None

        if target is None:
            observe_cascade_lookup_miss(entity_type=ref.entity_type, reason="not_found")
            logger.debug(
                "acl.cascade.not_found",
                extra={"entity_type": ref.entity_type, "entity_id": ref.id},
            )
        return target

    def fetch_cascade_target(self, record: Record) -> Record | None:
        ref = self.cascade_target(record)
        if ref is None:
            return None
        return self.fetch(ref)

    def fetch_parent(self, record: Record) -> Record | None:
        if record.parent is None or not record.parent.is_resolvable:
            return None
        return self._resolve(record.parent, self._store.get_entity)

    def is_related(self, record: Record, relation: str, user_id: str) -> bool:
        try:
            return self._store.is_related(record, relation, user_id)
        except RecordLookupError as exc:
            logger.warning(
                "acl.cascade.relation_failed",
                extra={"entity_type": record.entity_type, "entity_id": record.id, "reason": exc.reason},
            )
            return False
