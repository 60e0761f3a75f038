from __future__ import annotations

import logging
from threading import Lock

from crm_acl.context import get_cascade_trail, get_correlation_id, push_cascade_ref, reset_cascade_trail
from crm_acl.core.config import Settings, get_settings
from crm_acl.metrics import observe_cascade_guard_block
from crm_acl.otel import get_tracer, set_span_attributes
from crm_acl.platform.security.checkers.attachment import AttachmentAccessChecker
from crm_acl.platform.security.checkers.base import AccessEntityChecker, resolved
from crm_acl.platform.security.checkers.note import NoteAccessChecker
from crm_acl.platform.security.context import Principal
from crm_acl.platform.security.decision import ResolutionStep, ResourceAction, ScopeData
from crm_acl.platform.security.default_checker import DefaultAccessChecker
from crm_acl.platform.security.policies import PolicyBackend, build_scope_data, get_policy_backend
from crm_acl.platform.security.records import ATTACHMENT_ENTITY_TYPE, NOTE_ENTITY_TYPE, Record, RecordRef
from crm_acl.platform.security.store import InMemoryRecordStore, RecordStore
from crm_acl.platform.security.walker import RelationshipWalker


logger = logging.getLogger("crm_acl.acl")
tracer = get_tracer("crm_acl.acl")

DEFAULT_MAX_CASCADE_DEPTH = 3


class AclManager:
    """Entry point for entity access checks.

    Dispatches each check to the checker registered for the record's entity
    type, or to the default ownership/team checker. Type-specific checkers call
    back into ``check_entity`` when a decision cascades to a parent record.
    """

    def __init__(
        self,
        policy_backend: PolicyBackend | None = None,
        store: RecordStore | None = None,
        *,
        default_checker: DefaultAccessChecker | None = None,
        max_cascade_depth: int = DEFAULT_MAX_CASCADE_DEPTH,
    ) -> None:
        self._policy_backend = policy_backend
        self.walker = RelationshipWalker(store if store is not None else InMemoryRecordStore())
        self.default_checker = default_checker or DefaultAccessChecker()
        self.max_cascade_depth = max_cascade_depth
        self._checkers: dict[str, AccessEntityChecker] = {}

    @property
    def policy_backend(self) -> PolicyBackend:
        return self._policy_backend if self._policy_backend is not None else get_policy_backend()

    def register(self, entity_type: str, checker: AccessEntityChecker) -> None:
        self._checkers[entity_type] = checker

    def get_checker(self, entity_type: str) -> AccessEntityChecker:
        return self._checkers.get(entity_type, self.default_checker)

    def get_scope_data(self, principal: Principal, scope: str) -> ScopeData:
        return build_scope_data(self.policy_backend, scope, principal)

    def get_scope_forbidden_field_list(
        self,
        principal: Principal,
        scope: str,
        action: ResourceAction = ResourceAction.READ,
    ) -> frozenset[str]:
        return self.policy_backend.get_forbidden_field_list(scope, principal, action)

    def check_scope(self, principal: Principal, scope: str, action: ResourceAction = ResourceAction.READ) -> bool:
        return self.default_checker.check_scope(principal, self.get_scope_data(principal, scope), action)

    def check_entity(self, principal: Principal, record: Record, action: ResourceAction = ResourceAction.READ) -> bool:
        with tracer.start_as_current_span("acl.check_entity") as span:
            set_span_attributes(
                span,
                {
                    "entity_type": record.entity_type,
                    "entity_id": record.id,
                    "action": action.value,
                    "user_id": principal.user_id,
                    "tenant_id": principal.tenant_id,
                    "correlation_id": principal.correlation_id or get_correlation_id(),
                },
            )
            allowed = self._check_entity(principal, record, action)
            span.set_attribute("allowed", allowed)
            return allowed

    def check_read(self, principal: Principal, record: Record) -> bool:
        return self.check_entity(principal, record, ResourceAction.READ)

    def check_read_by_ref(self, principal: Principal, ref: RecordRef) -> bool:
        record = self.walker.fetch(ref)
        if record is None:
            return False
        return self.check_entity(principal, record, ResourceAction.READ)

    def _check_entity(self, principal: Principal, record: Record, action: ResourceAction) -> bool:
        if principal.is_admin:
            return resolved(principal, record, action, True, ResolutionStep.ADMIN)

        trail = get_cascade_trail()
        if record.ref in trail:
            return self._guard_block(principal, record, action, reason="cycle", depth=len(trail))
        if len(trail) > self.max_cascade_depth:
            return self._guard_block(principal, record, action, reason="depth", depth=len(trail))

        token = push_cascade_ref(record.ref)
        try:
            scope_data = self.get_scope_data(principal, record.entity_type)
            checker = self._checkers.get(record.entity_type)
            if checker is None:
                allowed = self._dispatch(self.default_checker, principal, record, scope_data, action)
                return resolved(principal, record, action, allowed, ResolutionStep.DEFAULT_FALLBACK)
            return self._dispatch(checker, principal, record, scope_data, action)
        finally:
            reset_cascade_trail(token)

    @staticmethod
    def _dispatch(
        checker: AccessEntityChecker,
        principal: Principal,
        record: Record,
        scope_data: ScopeData,
        action: ResourceAction,
    ) -> bool:
        if action == ResourceAction.CREATE:
            return checker.check_entity_create(principal, record, scope_data)
        if action == ResourceAction.EDIT:
            return checker.check_entity_edit(principal, record, scope_data)
        if action == ResourceAction.DELETE:
            return checker.check_entity_delete(principal, record, scope_data)
        return checker.check_entity_read(principal, record, scope_data)

    @staticmethod
    def _guard_block(principal: Principal, record: Record, action: ResourceAction, *, reason: str, depth: int) -> bool:
        observe_cascade_guard_block(reason)
        logger.warning(
            "acl.cascade.blocked",
            extra={
                "entity_type": record.entity_type,
                "entity_id": record.id,
                "user_id": principal.user_id,
                "reason": reason,
                "depth": depth,
            },
        )
        return resolved(principal, record, action, False, ResolutionStep.CASCADE_GUARD)


def build_acl_manager(
    settings: Settings,
    *,
    store: RecordStore | None = None,
    policy_backend: PolicyBackend | None = None,
) -> AclManager:
    """Build an ``AclManager`` with the attachment and note checkers registered."""

    manager = AclManager(policy_backend, store, max_cascade_depth=settings.acl_max_cascade_depth)
    manager.register(
        ATTACHMENT_ENTITY_TYPE,
        AttachmentAccessChecker(
            manager.default_checker,
            manager,
            manager.walker,
            exempt_parent_types=settings.acl_exempt_parent_types,
        ),
    )
    manager.register(NOTE_ENTITY_TYPE, NoteAccessChecker(manager.default_checker, manager, manager.walker))
    return manager


_ACL_MANAGER: AclManager | None = None
_ACL_LOCK = Lock()


def get_acl_manager() -> AclManager:
    """Get the active ACL manager, building one from settings on first use."""

    global _ACL_MANAGER
    if _ACL_MANAGER is None:
        with _ACL_LOCK:
            if _ACL_MANAGER is None:
                _ACL_MANAGER = build_acl_manager(get_settings())
    return _ACL_MANAGER


def set_acl_manager(manager: AclManager | None) -> None:
    """Set the active ACL manager instance; ``None`` rebuilds it on next use."""

    global _ACL_MANAGER
    with _ACL_LOCK:
        _ACL_MANAGER = manager
