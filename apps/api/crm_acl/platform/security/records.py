from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any


ATTACHMENT_ENTITY_TYPE = "Attachment"
NOTE_ENTITY_TYPE = "Note"


@dataclass(frozen=True, slots=True)
class RecordRef:
    """Polymorphic (entity type, id) handle pointing at any record.

    Singletons such as ``Settings`` have no id; their refs carry the type with
    an empty id and never resolve to a record.
    """

    entity_type: str
    id: str = ""

    @classmethod
    def of(cls, entity_type: str | None, entity_id: object | None) -> RecordRef | None:
        if not entity_type:
            return None
        if entity_id is None:
            return cls(entity_type=entity_type)
        return cls(entity_type=entity_type, id=str(entity_id))

    @property
    def is_resolvable(self) -> bool:
        return bool(self.id)

    def __str__(self) -> str:
        if not self.is_resolvable:
            return self.entity_type
        return f"{self.entity_type}:{self.id}"


class NoteTargetType(StrEnum):
    TEAMS = "teams"
    USERS = "users"
    ALL = "all"
    SELF = "self"
    FOLLOWERS = "followers"
    PORTALS = "portals"


@dataclass(slots=True, kw_only=True)
class Record:
    entity_type: str
    id: str
    owner_user_id: str | None = None
    assigned_user_ids: list[str] = field(default_factory=list)
    created_by_id: str | None = None
    team_ids: list[str] = field(default_factory=list)
    parent: RecordRef | None = None
    related: RecordRef | None = None
    attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def ref(self) -> RecordRef:
        return RecordRef(entity_type=self.entity_type, id=self.id)

    def cascade_ref(self) -> RecordRef | None:
        # parent wins when both are resolvable
        if self.parent is not None and self.parent.is_resolvable:
            return self.parent
        if self.related is not None and self.related.is_resolvable:
            return self.related
        return None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        attributes = data.pop("attributes")
        data["parent"] = str(self.parent) if self.parent else None
        data["related"] = str(self.related) if self.related else None
        return {**attributes, **data}


@dataclass(slots=True, kw_only=True)
class Note(Record):
    entity_type: str = NOTE_ENTITY_TYPE
    target_type: NoteTargetType | None = None
    user_ids: list[str] = field(default_factory=list)


@dataclass(slots=True, kw_only=True)
class Attachment(Record):
    entity_type: str = ATTACHMENT_ENTITY_TYPE
    name: str | None = None
    target_field: str | None = None
