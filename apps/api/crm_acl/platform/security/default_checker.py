from __future__ import annotations

from crm_acl.platform.security.context import Principal
from crm_acl.platform.security.decision import AccessLevel, ResourceAction, ScopeData
from crm_acl.platform.security.records import Record


class DefaultAccessChecker:
    """Generic ownership / team / scope-level rule used when no type-specific checker decides.

    Admins need no special case here: policy backends already report level
    ``all`` for them.
    """

    def check_scope(self, principal: Principal, scope_data: ScopeData, action: ResourceAction = ResourceAction.READ) -> bool:
        return scope_data.get(action) != AccessLevel.NO

    def check_entity_create(self, principal: Principal, record: Record, scope_data: ScopeData) -> bool:
        return self._check_entity(principal, record, scope_data, ResourceAction.CREATE)

    def check_entity_read(self, principal: Principal, record: Record, scope_data: ScopeData) -> bool:
        return self._check_entity(principal, record, scope_data, ResourceAction.READ)

    def check_entity_edit(self, principal: Principal, record: Record, scope_data: ScopeData) -> bool:
        return self._check_entity(principal, record, scope_data, ResourceAction.EDIT)

    def check_entity_delete(self, principal: Principal, record: Record, scope_data: ScopeData) -> bool:
        return self._check_entity(principal, record, scope_data, ResourceAction.DELETE)

    def _check_entity(self, principal: Principal, record: Record, scope_data: ScopeData, action: ResourceAction) -> bool:
        level = scope_data.get(action)
        if level == AccessLevel.ALL:
            return True
        if level == AccessLevel.OWN:
            return self.is_owner(principal, record)
        if level == AccessLevel.TEAM:
            return self.is_owner(principal, record) or self.is_shared_with_teams(principal, record)
        return False

    @staticmethod
    def is_owner(principal: Principal, record: Record) -> bool:
        if record.owner_user_id == principal.user_id:
            return True
        if principal.user_id in record.assigned_user_ids:
            return True
        # creator counts only for records without explicit ownership
        if record.owner_user_id is None and not record.assigned_user_ids:
            return record.created_by_id == principal.user_id
        return False

    @staticmethod
    def is_shared_with_teams(principal: Principal, record: Record) -> bool:
        return principal.shares_team(record.team_ids)
