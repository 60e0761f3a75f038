from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from threading import Lock
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from crm_acl.authz.models import Permission, Role, RolePermission, UserRole
from crm_acl.core.config import Settings
from crm_acl.core.database import SessionLocal
from crm_acl.metrics import observe_authz_db_queries_count, observe_authz_policy_cache_hit, observe_authz_policy_cache_miss
from crm_acl.platform.security.context import Principal
from crm_acl.platform.security.decision import AccessLevel, ResourceAction, ScopeData
from crm_acl.platform.security.errors import PolicyConfigurationError


LEVEL_SCOPE_TYPE = "level"


class PolicyBackend(Protocol):
    """Pluggable source of scope access levels and forbidden field lists."""

    def get_access_level(self, scope: str, action: ResourceAction, principal: Principal) -> AccessLevel:
        ...

    def get_forbidden_field_list(
        self,
        scope: str,
        principal: Principal,
        action: ResourceAction = ResourceAction.READ,
    ) -> frozenset[str]:
        ...


def build_scope_data(backend: PolicyBackend, scope: str, principal: Principal) -> ScopeData:
    return ScopeData.from_levels({action: backend.get_access_level(scope, action, principal) for action in ResourceAction})


def parse_access_level(value: str | None, *, source: str) -> AccessLevel:
    if value is None or value == "":
        return AccessLevel.ALL
    try:
        return AccessLevel(value.lower())
    except ValueError:
        raise PolicyConfigurationError(f"Invalid access level '{value}' in '{source}'") from None


class InMemoryPolicyBackend:
    """Role + direct-grant policy backend with wildcard support.

    Level grants look like ``Account.read:team``; ``*`` may replace the scope,
    the action or the whole grant. Forbidden fields are declared per role as
    ``Account.field.read:salary``.
    """

    def __init__(
        self,
        role_permissions: dict[str, set[str]] | None = None,
        *,
        role_forbidden_fields: dict[str, set[str]] | None = None,
        default_level: AccessLevel = AccessLevel.NO,
    ) -> None:
        self._role_permissions = role_permissions or {}
        self._role_forbidden_fields = role_forbidden_fields or {}
        self._default_level = default_level

    @classmethod
    def from_role_definitions(
        cls,
        definitions: Iterable[Any],
        *,
        default_level: AccessLevel = AccessLevel.NO,
    ) -> InMemoryPolicyBackend:
        role_permissions: dict[str, set[str]] = {}
        role_forbidden_fields: dict[str, set[str]] = {}
        for definition in definitions:
            role_permissions[definition.name] = {grant.as_grant_string() for grant in definition.grants}
            role_forbidden_fields[definition.name] = {
                f"{item.scope}.field.{item.action}:{item.field}" for item in definition.forbidden_fields
            }
        return cls(role_permissions, role_forbidden_fields=role_forbidden_fields, default_level=default_level)

    def get_access_level(self, scope: str, action: ResourceAction, principal: Principal) -> AccessLevel:
        if principal.is_admin:
            return AccessLevel.ALL

        grants = self._collect(principal, self._role_permissions)
        grants.update(principal.permissions)
        if not grants:
            return self._default_level

        levels = [level for grant in grants if (level := self._match_level(grant, scope, action)) is not None]
        return AccessLevel.most_permissive(levels, default=AccessLevel.NO)

    def get_forbidden_field_list(
        self,
        scope: str,
        principal: Principal,
        action: ResourceAction = ResourceAction.READ,
    ) -> frozenset[str]:
        if principal.is_admin:
            return frozenset()

        forbidden: set[str] = set()
        for entry in self._collect(principal, self._role_forbidden_fields):
            key, _, field_name = entry.partition(":")
            parts = key.rsplit(".", 2)
            if len(parts) != 3 or parts[1] != "field" or not field_name:
                raise PolicyConfigurationError(f"Invalid forbidden field entry '{entry}'")
            entry_scope, _, entry_action = parts
            if entry_scope in {"*", scope} and entry_action == action.value:
                forbidden.add(field_name)
        return frozenset(forbidden)

    @staticmethod
    def _collect(principal: Principal, mapping: dict[str, set[str]]) -> set[str]:
        collected: set[str] = set()
        for role in principal.roles:
            collected.update(mapping.get(role, set()))
        return collected

    @staticmethod
    def _match_level(grant: str, scope: str, action: ResourceAction) -> AccessLevel | None:
        if grant == "*":
            return AccessLevel.ALL

        key, _, level = grant.partition(":")
        grant_scope, _, grant_action = key.rpartition(".")
        if not grant_scope or not grant_action:
            raise PolicyConfigurationError(f"Invalid grant '{grant}'")
        if grant_scope not in {"*", scope} or grant_action not in {"*", action.value}:
            return None
        return parse_access_level(level, source=grant)


@dataclass(slots=True)
class _DbPermissionRule:
    resource: str
    action: str
    field: str | None
    scope_type: str | None
    scope_value: str | None
    effect: str


class DbPolicyBackend:
    """Policy backend that resolves role permissions from the database."""

    CACHE_KEY = "authz.db_policy"

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        *,
        default_level: AccessLevel = AccessLevel.NO,
    ) -> None:
        self._session_factory = session_factory or SessionLocal
        self._default_level = default_level

    def get_access_level(self, scope: str, action: ResourceAction, principal: Principal) -> AccessLevel:
        if principal.is_admin:
            return AccessLevel.ALL

        grants = self._load_grants(principal)
        if grants["empty"]:
            return self._default_level

        matched = [
            rule
            for rule in grants["rules"]
            if self._resource_matches(rule.resource, scope)
            and rule.action in {"*", action.value}
            and rule.field is None
            and rule.scope_type in {None, LEVEL_SCOPE_TYPE}
        ]
        if not matched:
            return AccessLevel.NO
        if any(rule.effect == "deny" for rule in matched):
            return AccessLevel.NO

        levels = [
            parse_access_level(rule.scope_value, source=f"{rule.resource}.{rule.action}")
            for rule in matched
            if rule.effect == "allow"
        ]
        return AccessLevel.most_permissive(levels, default=AccessLevel.NO)

    def get_forbidden_field_list(
        self,
        scope: str,
        principal: Principal,
        action: ResourceAction = ResourceAction.READ,
    ) -> frozenset[str]:
        if principal.is_admin:
            return frozenset()

        grants = self._load_grants(principal)
        field_action = f"field.{action.value}"
        return frozenset(
            rule.field
            for rule in grants["rules"]
            if self._resource_matches(rule.resource, scope)
            and rule.action == field_action
            and rule.effect == "deny"
            and rule.field is not None
            and rule.field != "*"
        )

    def _load_grants(self, principal: Principal) -> dict[str, Any]:
        cache = principal._cache.get(self.CACHE_KEY)
        if isinstance(cache, dict):
            observe_authz_policy_cache_hit()
            return cache

        observe_authz_policy_cache_miss()
        with self._session_factory() as session:
            rows = session.execute(
                select(
                    Role.id,
                    Role.name,
                    Permission.resource,
                    Permission.action,
                    Permission.field,
                    Permission.scope_type,
                    Permission.scope_value,
                    Permission.effect,
                )
                .select_from(UserRole)
                .join(Role, UserRole.role_id == Role.id)
                .join(RolePermission, RolePermission.role_id == Role.id)
                .join(Permission, Permission.id == RolePermission.permission_id)
                .where(UserRole.user_id == principal.user_id)
            ).all()
            observe_authz_db_queries_count(1)

        rules = [
            _DbPermissionRule(
                resource=str(row.resource),
                action=str(row.action),
                field=str(row.field) if row.field is not None else None,
                scope_type=str(row.scope_type) if row.scope_type is not None else None,
                scope_value=str(row.scope_value) if row.scope_value is not None else None,
                effect=str(row.effect).lower(),
            )
            for row in rows
        ]

        role_names = sorted({str(row.name) for row in rows})
        role_ids = sorted({str(row.id) for row in rows})
        if role_names and not principal.roles:
            principal.roles = role_names

        payload: dict[str, Any] = {
            "rules": rules,
            "empty": len(rules) == 0,
            "role_names": role_names,
            "role_ids": role_ids,
        }
        principal._cache[self.CACHE_KEY] = payload
        return payload

    @staticmethod
    def _resource_matches(rule_resource: str, resource: str) -> bool:
        return rule_resource in {"*", resource}


def build_policy_backend(settings: Settings) -> PolicyBackend:
    """Build the policy backend named by ``acl_policy_backend``."""

    default_level = parse_access_level(settings.acl_default_level, source="acl_default_level")
    backend_choice = settings.acl_policy_backend.lower()
    if backend_choice == "auto":
        backend_choice = "db" if settings.app_env.lower() in {"prod", "production"} else "inmemory"

    if backend_choice == "db":
        return DbPolicyBackend(default_level=default_level)
    if backend_choice == "inmemory":
        return InMemoryPolicyBackend(default_level=default_level)
    raise PolicyConfigurationError(f"Unknown policy backend '{settings.acl_policy_backend}'")


_POLICY_BACKEND: PolicyBackend = InMemoryPolicyBackend()
_POLICY_LOCK = Lock()


def get_policy_backend() -> PolicyBackend:
    """Get the active policy backend instance."""

    return _POLICY_BACKEND


def set_policy_backend(backend: PolicyBackend) -> None:
    """Set the active policy backend instance."""

    global _POLICY_BACKEND
    with _POLICY_LOCK:
        _POLICY_BACKEND = backend
