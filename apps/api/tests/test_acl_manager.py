from __future__ import annotations

from collections.abc import Generator

import pytest
from prometheus_client import REGISTRY

from crm_acl.context import get_cascade_trail
from crm_acl.core.config import Settings
from crm_acl.platform.security.acl_manager import AclManager, build_acl_manager, get_acl_manager, set_acl_manager
from crm_acl.platform.security.context import Principal
from crm_acl.platform.security.decision import AccessLevel, ResourceAction, ScopeData
from crm_acl.platform.security.policies import InMemoryPolicyBackend, set_policy_backend
from crm_acl.platform.security.records import Attachment, Note, NoteTargetType, Record, RecordRef
from crm_acl.platform.security.store import InMemoryRecordStore


@pytest.fixture(autouse=True)
def reset_acl() -> Generator[None, None, None]:
    set_policy_backend(InMemoryPolicyBackend())
    set_acl_manager(None)
    yield
    set_policy_backend(InMemoryPolicyBackend())
    set_acl_manager(None)


def _guard_blocks(reason: str) -> float:
    return REGISTRY.get_sample_value("acl_cascade_guard_blocks_total", {"reason": reason}) or 0.0


def _manager(store: InMemoryRecordStore, grants: set[str], **settings_overrides: object) -> AclManager:
    settings = Settings(**settings_overrides)
    return build_acl_manager(settings, store=store, policy_backend=InMemoryPolicyBackend({"sales": grants}))


@pytest.mark.parametrize(
    ("level", "record", "expected"),
    [
        ("all", Record(entity_type="Account", id="1", owner_user_id="u-9"), True),
        ("team", Record(entity_type="Account", id="1", owner_user_id="u-9", team_ids=["T1"]), True),
        ("team", Record(entity_type="Account", id="1", owner_user_id="u-9", team_ids=["T3"]), False),
        ("team", Record(entity_type="Account", id="1", owner_user_id="u-1", team_ids=["T3"]), True),
        ("own", Record(entity_type="Account", id="1", owner_user_id="u-1"), True),
        ("own", Record(entity_type="Account", id="1", owner_user_id="u-9", assigned_user_ids=["u-1"]), True),
        ("own", Record(entity_type="Account", id="1", created_by_id="u-1"), True),
        ("own", Record(entity_type="Account", id="1", owner_user_id="u-9", created_by_id="u-1"), False),
        ("no", Record(entity_type="Account", id="1", owner_user_id="u-1"), False),
    ],
)
def test_default_checker_applies_scope_level(level: str, record: Record, expected: bool) -> None:
    manager = _manager(InMemoryRecordStore(), {f"Account.read:{level}"})
    principal = Principal(user_id="u-1", team_ids=["T1"], roles=["sales"])

    assert manager.check_read(principal, record) is expected


def test_admin_short_circuits_every_check() -> None:
    manager = _manager(InMemoryRecordStore(), set())
    admin = Principal(user_id="root", is_admin=True)
    attachment = Attachment(id="att-1", owner_user_id="u-9", parent=RecordRef("Account", "missing"))

    assert manager.check_read(admin, attachment) is True
    assert manager.check_entity(admin, Record(entity_type="Lead", id="1"), ResourceAction.DELETE) is True


def test_default_checker_allows_admin_through_backend_scope_data() -> None:
    manager = _manager(InMemoryRecordStore(), set())
    admin = Principal(user_id="root", is_admin=True)
    record = Record(entity_type="Account", id="1", owner_user_id="u-9")
    scope_data = manager.get_scope_data(admin, "Account")

    assert scope_data.get(ResourceAction.DELETE) == AccessLevel.ALL
    assert manager.default_checker.check_entity_delete(admin, record, scope_data) is True
    assert manager.default_checker.check_entity_read(admin, record, ScopeData()) is False


def test_registered_checker_is_used_for_its_entity_type() -> None:
    class _DenyAll:
        def check_entity_create(self, principal, record, scope_data):
            return False

        def check_entity_read(self, principal, record, scope_data):
            return False

        def check_entity_edit(self, principal, record, scope_data):
            return False

        def check_entity_delete(self, principal, record, scope_data):
            return False

    manager = _manager(InMemoryRecordStore(), {"*"})
    manager.register("Lead", _DenyAll())
    principal = Principal(user_id="u-1", roles=["sales"])

    assert manager.check_read(principal, Record(entity_type="Lead", id="1")) is False
    assert manager.check_read(principal, Record(entity_type="Contact", id="1")) is True
    assert manager.get_checker("Contact") is manager.default_checker


def test_scope_data_and_scope_check() -> None:
    manager = _manager(InMemoryRecordStore(), {"Account.read:team", "Account.*:own", "Contact.read"})
    principal = Principal(user_id="u-1", roles=["sales"])

    assert manager.get_scope_data(principal, "Account") == ScopeData(
        create=AccessLevel.OWN,
        read=AccessLevel.TEAM,
        edit=AccessLevel.OWN,
        delete=AccessLevel.OWN,
    )
    assert manager.get_scope_data(principal, "Lead").is_false() is True
    assert manager.check_scope(principal, "Contact") is True
    assert manager.check_scope(principal, "Contact", ResourceAction.EDIT) is False


def test_check_read_by_ref_fetches_record() -> None:
    store = InMemoryRecordStore([Record(entity_type="Account", id="acc-1", owner_user_id="u-1")])
    manager = _manager(store, {"Account.read:own"})
    principal = Principal(user_id="u-1", roles=["sales"])

    assert manager.check_read_by_ref(principal, RecordRef("Account", "acc-1")) is True
    assert manager.check_read_by_ref(principal, RecordRef("Account", "acc-2")) is False


def test_cycle_between_notes_terminates_with_deny() -> None:
    store = InMemoryRecordStore()
    store.add(
        Note(id="n-a", owner_user_id="u-9", target_type=NoteTargetType.ALL, parent=RecordRef("Note", "n-b")),
        Note(id="n-b", owner_user_id="u-9", target_type=NoteTargetType.ALL, parent=RecordRef("Note", "n-a")),
    )
    manager = _manager(store, {"Note.read:own", "Attachment.read:own"})
    principal = Principal(user_id="u-1", roles=["sales"])
    attachment = Attachment(id="att-1", owner_user_id="u-9", parent=RecordRef("Note", "n-a"))
    before = _guard_blocks("cycle")

    assert manager.check_read(principal, attachment) is False
    assert _guard_blocks("cycle") == before + 1
    assert get_cascade_trail() == ()


def test_cascade_depth_is_bounded() -> None:
    store = InMemoryRecordStore()
    store.add(
        Record(entity_type="Account", id="acc-1", owner_user_id="u-1"),
        Note(id="n-1", owner_user_id="u-9", target_type=NoteTargetType.ALL, parent=RecordRef("Note", "n-2")),
        Note(id="n-2", owner_user_id="u-9", target_type=NoteTargetType.ALL, parent=RecordRef("Note", "n-3")),
        Note(id="n-3", owner_user_id="u-9", target_type=NoteTargetType.ALL, parent=RecordRef("Account", "acc-1")),
    )
    grants = {"Note.read:own", "Attachment.read:own", "Account.read:own"}
    principal = Principal(user_id="u-1", roles=["sales"])
    attachment = Attachment(id="att-1", owner_user_id="u-9", parent=RecordRef("Note", "n-1"))

    assert _manager(store, grants).check_read(principal, attachment) is True

    before = _guard_blocks("depth")
    assert _manager(store, grants, acl_max_cascade_depth=1).check_read(principal, attachment) is False
    assert _guard_blocks("depth") == before + 1


def test_get_acl_manager_builds_from_settings_and_can_be_replaced() -> None:
    built = get_acl_manager()

    assert built is get_acl_manager()
    assert built.get_checker("Attachment") is not built.default_checker
    assert built.get_checker("Note") is not built.default_checker

    custom = AclManager()
    set_acl_manager(custom)
    assert get_acl_manager() is custom


def test_manager_without_backend_uses_global_policy_backend() -> None:
    manager = AclManager()
    principal = Principal(user_id="u-1", roles=["reader"])
    record = Record(entity_type="Account", id="1", owner_user_id="u-9")

    assert manager.check_read(principal, record) is False

    set_policy_backend(InMemoryPolicyBackend({"reader": {"Account.read:all"}}))
    assert manager.check_read(principal, record) is True
