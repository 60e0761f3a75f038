from crm_acl.platform.security.acl_manager import AclManager, build_acl_manager, get_acl_manager, set_acl_manager
from crm_acl.platform.security.context import Principal
from crm_acl.platform.security.decision import AccessLevel, Decision, ResolutionStep, ResourceAction, ScopeData
from crm_acl.platform.security.default_checker import DefaultAccessChecker
from crm_acl.platform.security.errors import AclError, ForbiddenFieldError, PolicyConfigurationError, RecordLookupError
from crm_acl.platform.security.fls import apply_fls_read, apply_fls_read_many, is_field_forbidden, validate_fls_write
from crm_acl.platform.security.policies import (
    DbPolicyBackend,
    InMemoryPolicyBackend,
    PolicyBackend,
    build_policy_backend,
    get_policy_backend,
    set_policy_backend,
)
from crm_acl.platform.security.records import Attachment, Note, NoteTargetType, Record, RecordRef
from crm_acl.platform.security.repository import BaseRepository
from crm_acl.platform.security.store import InMemoryRecordStore, RecordStore
from crm_acl.platform.security.walker import RelationshipWalker

__all__ = [
    "AccessLevel",
    "AclError",
    "AclManager",
    "Attachment",
    "BaseRepository",
    "Decision",
    "DbPolicyBackend",
    "DefaultAccessChecker",
    "ForbiddenFieldError",
    "InMemoryPolicyBackend",
    "InMemoryRecordStore",
    "Note",
    "NoteTargetType",
    "PolicyBackend",
    "PolicyConfigurationError",
    "Principal",
    "Record",
    "RecordLookupError",
    "RecordRef",
    "RecordStore",
    "RelationshipWalker",
    "ResolutionStep",
    "ResourceAction",
    "ScopeData",
    "apply_fls_read",
    "apply_fls_read_many",
    "build_acl_manager",
    "build_policy_backend",
    "get_acl_manager",
    "get_policy_backend",
    "is_field_forbidden",
    "set_acl_manager",
    "set_policy_backend",
    "validate_fls_write",
]
