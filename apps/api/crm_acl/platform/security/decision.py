from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum


class Decision(StrEnum):
    """Outcome of one resolution step. NO_OPINION passes control to the next layer."""

    ALLOW = "ALLOW"
    DENY = "DENY"
    NO_OPINION = "NO_OPINION"

    @property
    def is_final(self) -> bool:
        return self is not Decision.NO_OPINION


class ResourceAction(StrEnum):
    CREATE = "create"
    READ = "read"
    EDIT = "edit"
    DELETE = "delete"


class AccessLevel(StrEnum):
    ALL = "all"
    TEAM = "team"
    OWN = "own"
    NO = "no"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]

    @classmethod
    def most_permissive(cls, levels: Iterable[AccessLevel], default: AccessLevel | None = None) -> AccessLevel:
        best: AccessLevel | None = None
        for level in levels:
            if best is None or level.rank > best.rank:
                best = level
        if best is None:
            return default if default is not None else cls.NO
        return best


_LEVEL_RANK = {
    AccessLevel.NO: 0,
    AccessLevel.OWN: 1,
    AccessLevel.TEAM: 2,
    AccessLevel.ALL: 3,
}


class ResolutionStep(StrEnum):
    ADMIN = "admin"
    EXEMPT = "exempt"
    CASCADE_GUARD = "cascade_guard"
    NOTE_CASCADE = "note_cascade"
    GENERAL_ENTITY_CHECK = "general_entity_check"
    FIELD_FILTER = "field_filter"
    DEFAULT_FALLBACK = "default_fallback"


@dataclass(frozen=True, slots=True)
class ScopeData:
    """Access levels a principal holds on one scope, per action."""

    create: AccessLevel = AccessLevel.NO
    read: AccessLevel = AccessLevel.NO
    edit: AccessLevel = AccessLevel.NO
    delete: AccessLevel = AccessLevel.NO

    def get(self, action: ResourceAction) -> AccessLevel:
        return getattr(self, action.value)

    def is_false(self) -> bool:
        return all(self.get(action) == AccessLevel.NO for action in ResourceAction)

    @classmethod
    def from_levels(
        cls,
        levels: Mapping[ResourceAction, AccessLevel],
        default: AccessLevel = AccessLevel.NO,
    ) -> ScopeData:
        return cls(**{action.value: levels.get(action, default) for action in ResourceAction})
