from __future__ import annotations

import logging
from typing import Protocol

from crm_acl.metrics import observe_acl_decision
from crm_acl.platform.security.context import Principal
from crm_acl.platform.security.decision import ResolutionStep, ResourceAction, ScopeData
from crm_acl.platform.security.default_checker import DefaultAccessChecker
from crm_acl.platform.security.records import Record
from crm_acl.platform.security.walker import RelationshipWalker


logger = logging.getLogger("crm_acl.acl")


class AccessEntityChecker(Protocol):
    """Per-entity-type create/read/edit/delete checks."""

    def check_entity_create(self, principal: Principal, record: Record, scope_data: ScopeData) -> bool:
        ...

    def check_entity_read(self, principal: Principal, record: Record, scope_data: ScopeData) -> bool:
        ...

    def check_entity_edit(self, principal: Principal, record: Record, scope_data: ScopeData) -> bool:
        ...

    def check_entity_delete(self, principal: Principal, record: Record, scope_data: ScopeData) -> bool:
        ...


class GeneralAccessChecker(Protocol):
    """Whole-record access check used when a decision cascades to another record."""

    def check_entity(self, principal: Principal, record: Record, action: ResourceAction = ResourceAction.READ) -> bool:
        ...

    def get_scope_forbidden_field_list(
        self,
        principal: Principal,
        scope: str,
        action: ResourceAction = ResourceAction.READ,
    ) -> frozenset[str]:
        ...


class DelegatingAccessChecker:
    """Forwards every action to the default checker; subclasses override what they specialise."""

    def __init__(
        self,
        default_checker: DefaultAccessChecker,
        acl: GeneralAccessChecker,
        walker: RelationshipWalker,
    ) -> None:
        self.default_checker = default_checker
        self.acl = acl
        self.walker = walker

    def check_entity_create(self, principal: Principal, record: Record, scope_data: ScopeData) -> bool:
        return self.default_checker.check_entity_create(principal, record, scope_data)

    def check_entity_read(self, principal: Principal, record: Record, scope_data: ScopeData) -> bool:
        return self.default_checker.check_entity_read(principal, record, scope_data)

    def check_entity_edit(self, principal: Principal, record: Record, scope_data: ScopeData) -> bool:
        return self.default_checker.check_entity_edit(principal, record, scope_data)

    def check_entity_delete(self, principal: Principal, record: Record, scope_data: ScopeData) -> bool:
        return self.default_checker.check_entity_delete(principal, record, scope_data)

    def fallback_read(self, principal: Principal, record: Record, scope_data: ScopeData) -> bool:
        allowed = self.default_checker.check_entity_read(principal, record, scope_data)
        return resolved(principal, record, ResourceAction.READ, allowed, ResolutionStep.DEFAULT_FALLBACK)


def resolved(
    principal: Principal,
    record: Record,
    action: ResourceAction,
    allowed: bool,
    step: ResolutionStep,
) -> bool:
    observe_acl_decision(entity_type=record.entity_type, action=action.value, allowed=allowed, step=step.value)
    logger.debug(
        "acl.decision",
        extra={
            "entity_type": record.entity_type,
            "entity_id": record.id,
            "user_id": principal.user_id,
            "action": action.value,
            "allowed": allowed,
            "step": step.value,
        },
    )
    return allowed
