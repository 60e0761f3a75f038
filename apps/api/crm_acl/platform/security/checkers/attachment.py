from __future__ import annotations

from collections.abc import Iterable

from crm_acl.metrics import observe_field_downgrade
from crm_acl.platform.security.checkers.base import DelegatingAccessChecker, GeneralAccessChecker, resolved
from crm_acl.platform.security.checkers.note import resolve_via_note_parent
from crm_acl.platform.security.context import Principal
from crm_acl.platform.security.decision import Decision, ResolutionStep, ResourceAction, ScopeData
from crm_acl.platform.security.default_checker import DefaultAccessChecker
from crm_acl.platform.security.fls import is_field_forbidden
from crm_acl.platform.security.records import Attachment, Note, Record
from crm_acl.platform.security.walker import RelationshipWalker


class AttachmentAccessChecker(DelegatingAccessChecker):
    """Attachments inherit read access from the record they are attached to.

    Resolution order for read:

    1. an attachment of an exempt singleton (e.g. the logo on ``Settings``) is readable by everyone;
    2. without a resolvable parent/related record the default ownership rule decides;
    3. a note parent grants access to its audience (teams or users) or to whoever
       can read the note's own parent; otherwise resolution continues;
    4. any other parent grants access to whoever can read it, unless the field the
       file is attached through is forbidden for the principal;
    5. the default ownership rule decides last.
    """

    def __init__(
        self,
        default_checker: DefaultAccessChecker,
        acl: GeneralAccessChecker,
        walker: RelationshipWalker,
        *,
        exempt_parent_types: Iterable[str] = ("Settings",),
    ) -> None:
        super().__init__(default_checker, acl, walker)
        self.exempt_parent_types = frozenset(exempt_parent_types)

    def check_entity_read(self, principal: Principal, record: Record, scope_data: ScopeData) -> bool:
        if record.parent is not None and record.parent.entity_type in self.exempt_parent_types:
            return resolved(principal, record, ResourceAction.READ, True, ResolutionStep.EXEMPT)

        target = self.walker.fetch_cascade_target(record)
        if target is None:
            return self.fallback_read(principal, record, scope_data)

        if isinstance(target, Note):
            decision = resolve_via_note_parent(principal, target, acl=self.acl, walker=self.walker)
            if decision.is_final:
                return resolved(
                    principal,
                    record,
                    ResourceAction.READ,
                    decision == Decision.ALLOW,
                    ResolutionStep.NOTE_CASCADE,
                )
        elif self.acl.check_entity(principal, target):
            target_field = record.target_field if isinstance(record, Attachment) else None
            if is_field_forbidden(principal, target.entity_type, target_field, provider=self.acl):
                observe_field_downgrade(entity_type=target.entity_type)
                return resolved(principal, record, ResourceAction.READ, False, ResolutionStep.FIELD_FILTER)
            return resolved(principal, record, ResourceAction.READ, True, ResolutionStep.GENERAL_ENTITY_CHECK)

        return self.fallback_read(principal, record, scope_data)
