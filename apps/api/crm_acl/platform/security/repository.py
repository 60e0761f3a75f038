from __future__ import annotations

from typing import Any

from crm_acl.platform.security.acl_manager import AclManager, get_acl_manager
from crm_acl.platform.security.context import Principal
from crm_acl.platform.security.fls import apply_fls_read, apply_fls_read_many, validate_fls_write
from crm_acl.platform.security.records import Record


class BaseRepository:
    resource = ""

    def __init__(self, acl: AclManager | None = None) -> None:
        self._acl = acl

    @property
    def acl(self) -> AclManager:
        return self._acl if self._acl is not None else get_acl_manager()

    def can_read(self, principal: Principal, record: Record) -> bool:
        return self.acl.check_read(principal, record)

    def apply_read_security(self, record: dict[str, Any], principal: Principal) -> dict[str, Any]:
        return apply_fls_read(self.resource, record, principal, provider=self.acl)

    def apply_read_security_many(self, records: list[dict[str, Any]], principal: Principal) -> list[dict[str, Any]]:
        return apply_fls_read_many(self.resource, records, principal, provider=self.acl)

    def validate_write_security(self, payload: dict[str, Any], principal: Principal) -> None:
        validate_fls_write(self.resource, self._normalize_write_payload(payload), principal, provider=self.acl)

    @staticmethod
    def _normalize_write_payload(payload: dict[str, Any]) -> dict[str, Any]:
        return payload
