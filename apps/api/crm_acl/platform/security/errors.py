from __future__ import annotations


class AclError(Exception):
    """Base error for access-control configuration and enforcement faults."""


class ForbiddenFieldError(AclError):
    """Raised when a payload contains fields that are not editable by policy."""

    def __init__(self, scope: str, fields: list[str]) -> None:
        self.scope = scope
        self.fields = sorted(set(fields))
        super().__init__(f"Forbidden fields for scope '{scope}': {', '.join(self.fields)}")


class PolicyConfigurationError(AclError):
    """Raised when the configured policy backend cannot be built."""


class RecordLookupError(AclError, LookupError):
    """Raised by a record store for unknown entity types or malformed ids."""

    def __init__(self, entity_type: str, entity_id: str, reason: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot look up {entity_type}:{entity_id} ({reason})")
