from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol

from crm_acl.platform.security.context import Principal
from crm_acl.platform.security.decision import ResourceAction
from crm_acl.platform.security.errors import ForbiddenFieldError
from crm_acl.platform.security.policies import get_policy_backend


class ForbiddenFieldsProvider(Protocol):
    def get_scope_forbidden_field_list(
        self,
        principal: Principal,
        scope: str,
        action: ResourceAction = ResourceAction.READ,
    ) -> frozenset[str]:
        ...


def get_forbidden_fields(
    principal: Principal,
    scope: str,
    *,
    action: ResourceAction = ResourceAction.READ,
    provider: ForbiddenFieldsProvider | None = None,
) -> frozenset[str]:
    if provider is not None:
        return provider.get_scope_forbidden_field_list(principal, scope, action)
    return get_policy_backend().get_forbidden_field_list(scope, principal, action)


def is_field_forbidden(
    principal: Principal,
    parent_entity_type: str,
    field_name: str | None,
    *,
    provider: ForbiddenFieldsProvider | None = None,
) -> bool:
    """Check whether ``field_name`` is in the principal's forbidden read list for a scope."""

    if not field_name:
        return False
    return field_name in get_forbidden_fields(principal, parent_entity_type, provider=provider)


def apply_fls_read(
    scope: str,
    record: dict[str, Any],
    principal: Principal,
    *,
    provider: ForbiddenFieldsProvider | None = None,
) -> dict[str, Any]:
    """Drop fields the principal may not read from a single serialized record."""

    forbidden = get_forbidden_fields(principal, scope, provider=provider)
    return {field_name: value for field_name, value in record.items() if field_name not in forbidden}


def apply_fls_read_many(
    scope: str,
    records: Iterable[dict[str, Any]],
    principal: Principal,
    *,
    provider: ForbiddenFieldsProvider | None = None,
) -> list[dict[str, Any]]:
    return [apply_fls_read(scope, record, principal, provider=provider) for record in records]


def validate_fls_write(
    scope: str,
    payload: dict[str, Any],
    principal: Principal,
    *,
    provider: ForbiddenFieldsProvider | None = None,
) -> None:
    """Raise ``ForbiddenFieldError`` when the payload touches fields the principal may not edit."""

    forbidden = get_forbidden_fields(principal, scope, action=ResourceAction.EDIT, provider=provider)
    denied_fields = [field_name for field_name in payload if field_name in forbidden]
    if denied_fields:
        raise ForbiddenFieldError(scope=scope, fields=denied_fields)
