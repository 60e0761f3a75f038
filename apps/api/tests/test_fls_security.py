from __future__ import annotations

from collections.abc import Generator

import pytest

from crm_acl.core.config import Settings
from crm_acl.platform.security.acl_manager import build_acl_manager
from crm_acl.platform.security.context import Principal
from crm_acl.platform.security.errors import ForbiddenFieldError, PolicyConfigurationError
from crm_acl.platform.security.fls import apply_fls_read, is_field_forbidden, validate_fls_write
from crm_acl.platform.security.policies import InMemoryPolicyBackend, set_policy_backend
from crm_acl.platform.security.records import Record
from crm_acl.platform.security.repository import BaseRepository
from crm_acl.platform.security.store import InMemoryRecordStore


@pytest.fixture(autouse=True)
def reset_policy_backend() -> Generator[None, None, None]:
    set_policy_backend(InMemoryPolicyBackend())
    yield
    set_policy_backend(InMemoryPolicyBackend())


def _backend() -> InMemoryPolicyBackend:
    return InMemoryPolicyBackend(
        {"sales": {"Account.*:all"}, "support": {"Account.read:team"}},
        role_forbidden_fields={
            "sales": {"Account.field.read:salary", "Account.field.edit:status"},
            "support": {"Account.field.read:contract", "*.field.read:internal_notes"},
        },
    )


def test_apply_fls_read_drops_forbidden_fields() -> None:
    set_policy_backend(_backend())
    principal = Principal(user_id="user-1", roles=["sales"])

    output = apply_fls_read("Account", {"name": "Acme", "salary": 100, "status": "Active"}, principal)

    assert output == {"name": "Acme", "status": "Active"}


def test_forbidden_fields_are_unioned_across_roles() -> None:
    set_policy_backend(_backend())
    principal = Principal(user_id="user-1", roles=["sales", "support"])

    output = apply_fls_read(
        "Account",
        {"name": "Acme", "salary": 100, "contract": "c.pdf", "internal_notes": "x"},
        principal,
    )

    assert output == {"name": "Acme"}
    assert is_field_forbidden(principal, "Contact", "internal_notes") is True
    assert is_field_forbidden(principal, "Contact", "salary") is False


def test_is_field_forbidden_ignores_empty_field() -> None:
    set_policy_backend(_backend())
    principal = Principal(user_id="user-1", roles=["sales"])

    assert is_field_forbidden(principal, "Account", None) is False
    assert is_field_forbidden(principal, "Account", "") is False
    assert is_field_forbidden(principal, "Account", "salary") is True


def test_admin_has_no_forbidden_fields() -> None:
    set_policy_backend(_backend())
    admin = Principal(user_id="root", roles=["sales"], is_admin=True)

    assert apply_fls_read("Account", {"salary": 100}, admin) == {"salary": 100}


def test_validate_fls_write_denies_forbidden_fields() -> None:
    set_policy_backend(_backend())
    principal = Principal(user_id="user-2", roles=["sales"])

    with pytest.raises(ForbiddenFieldError) as exc_info:
        validate_fls_write("Account", {"name": "Acme", "status": "Closed", "salary": 1}, principal)

    assert exc_info.value.fields == ["status"]
    validate_fls_write("Account", {"name": "Acme"}, principal)


def test_invalid_forbidden_field_entry_is_a_configuration_error() -> None:
    set_policy_backend(InMemoryPolicyBackend({"sales": {"*"}}, role_forbidden_fields={"sales": {"salary"}}))

    with pytest.raises(PolicyConfigurationError):
        apply_fls_read("Account", {"salary": 1}, Principal(user_id="user-1", roles=["sales"]))


def test_repository_end_to_end_enforcement() -> None:
    acl = build_acl_manager(Settings(), store=InMemoryRecordStore(), policy_backend=_backend())

    class AccountRepository(BaseRepository):
        resource = "Account"

    repo = AccountRepository(acl)
    principal = Principal(user_id="user-3", team_ids=["T1"], roles=["support"])
    visible = Record(entity_type="Account", id="a-1", owner_user_id="user-9", team_ids=["T1"])
    hidden = Record(entity_type="Account", id="a-2", owner_user_id="user-9", team_ids=["T2"])

    assert repo.can_read(principal, visible) is True
    assert repo.can_read(principal, hidden) is False

    rows = repo.apply_read_security_many(
        [{"id": "a-1", "name": "Acme", "contract": "c.pdf", "internal_notes": "secret"}],
        principal,
    )
    assert rows == [{"id": "a-1", "name": "Acme"}]
    assert repo.apply_read_security({"salary": 5}, principal) == {"salary": 5}

    repo.validate_write_security({"status": "Closed"}, principal)
    with pytest.raises(ForbiddenFieldError):
        repo.validate_write_security({"status": "Closed"}, Principal(user_id="user-4", roles=["sales"]))
