from crm_acl.platform.security.checkers.attachment import AttachmentAccessChecker
from crm_acl.platform.security.checkers.base import AccessEntityChecker, DelegatingAccessChecker
from crm_acl.platform.security.checkers.note import NoteAccessChecker, resolve_via_note_parent

__all__ = [
    "AccessEntityChecker",
    "AttachmentAccessChecker",
    "DelegatingAccessChecker",
    "NoteAccessChecker",
    "resolve_via_note_parent",
]
