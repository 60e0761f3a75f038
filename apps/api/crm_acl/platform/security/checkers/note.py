from __future__ import annotations

from crm_acl.platform.security.checkers.base import DelegatingAccessChecker, GeneralAccessChecker, resolved
from crm_acl.platform.security.context import Principal
from crm_acl.platform.security.decision import Decision, ResolutionStep, ResourceAction, ScopeData
from crm_acl.platform.security.records import Note, NoteTargetType, Record
from crm_acl.platform.security.store import NOTE_USERS_RELATION
from crm_acl.platform.security.walker import RelationshipWalker


def resolve_via_note_parent(
    principal: Principal,
    note: Note,
    *,
    acl: GeneralAccessChecker,
    walker: RelationshipWalker,
) -> Decision:
    """Decide access to something hanging off ``note`` from the note's audience.

    Never returns ``Decision.DENY``: a principal outside the note's audience may
    still reach the record through ownership or team rules, so the caller must
    keep resolving on ``NO_OPINION``.
    """

    if note.target_type == NoteTargetType.TEAMS:
        if principal.shares_team(note.team_ids):
            return Decision.ALLOW
        return Decision.NO_OPINION

    if note.target_type == NoteTargetType.USERS:
        if walker.is_related(note, NOTE_USERS_RELATION, principal.user_id):
            return Decision.ALLOW
        return Decision.NO_OPINION

    parent = walker.fetch_parent(note)
    if parent is not None and acl.check_entity(principal, parent):
        return Decision.ALLOW
    return Decision.NO_OPINION


class NoteAccessChecker(DelegatingAccessChecker):
    def check_entity_read(self, principal: Principal, record: Record, scope_data: ScopeData) -> bool:
        if self.default_checker.check_entity_read(principal, record, scope_data):
            return resolved(principal, record, ResourceAction.READ, True, ResolutionStep.DEFAULT_FALLBACK)

        if isinstance(record, Note):
            decision = resolve_via_note_parent(principal, record, acl=self.acl, walker=self.walker)
            if decision == Decision.ALLOW:
                return resolved(principal, record, ResourceAction.READ, True, ResolutionStep.NOTE_CASCADE)

        return resolved(principal, record, ResourceAction.READ, False, ResolutionStep.DEFAULT_FALLBACK)
