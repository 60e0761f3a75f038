from __future__ import annotations

from typing import Protocol

from crm_acl.platform.security.errors import RecordLookupError
from crm_acl.platform.security.records import Note, Record, RecordRef


NOTE_USERS_RELATION = "users"


class RecordStore(Protocol):
    """Read-only lookup of records by type-tagged id.

    Missing records come back as ``None``; a store raises ``RecordLookupError``
    only when the reference itself cannot be interpreted.
    """

    def get_entity_by_id(self, entity_type: str, entity_id: str) -> Record | None:
        ...

    def get_entity(self, entity_type: str, entity_id: str) -> Record | None:
        ...

    def is_related(self, record: Record, relation: str, user_id: str) -> bool:
        ...


class InMemoryRecordStore:
    def __init__(self, records: list[Record] | None = None) -> None:
        self._records: dict[RecordRef, Record] = {}
        self.add(*(records or []))

    def add(self, *records: Record) -> None:
        for record in records:
            self._records[record.ref] = record

    def remove(self, ref: RecordRef) -> None:
        self._records.pop(ref, None)

    def get_entity_by_id(self, entity_type: str, entity_id: str) -> Record | None:
        return self._records.get(RecordRef(entity_type=entity_type, id=str(entity_id)))

    def get_entity(self, entity_type: str, entity_id: str) -> Record | None:
        return self.get_entity_by_id(entity_type, entity_id)

    def is_related(self, record: Record, relation: str, user_id: str) -> bool:
        if relation == NOTE_USERS_RELATION and isinstance(record, Note):
            return user_id in record.user_ids
        raise RecordLookupError(record.entity_type, record.id, f"unknown relation '{relation}'")
