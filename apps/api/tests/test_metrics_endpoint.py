from __future__ import annotations

from collections.abc import Generator

import pytest
from prometheus_client import REGISTRY

from crm_acl.core.config import Settings
from crm_acl.metrics import generate_metrics_payload, metrics_content_type
from crm_acl.platform.security.acl_manager import build_acl_manager
from crm_acl.platform.security.context import Principal
from crm_acl.platform.security.policies import InMemoryPolicyBackend, set_policy_backend
from crm_acl.platform.security.records import Attachment, Record, RecordRef
from crm_acl.platform.security.store import InMemoryRecordStore


@pytest.fixture(autouse=True)
def reset_policy_backend() -> Generator[None, None, None]:
    set_policy_backend(InMemoryPolicyBackend())
    yield
    set_policy_backend(InMemoryPolicyBackend())


def _sample(name: str, labels: dict[str, str]) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_metrics_payload_exposes_acl_counters() -> None:
    manager = build_acl_manager(Settings(), store=InMemoryRecordStore(), policy_backend=InMemoryPolicyBackend())
    manager.check_read(Principal(user_id="u-1"), Record(entity_type="Account", id="acc-1"))

    payload = generate_metrics_payload().decode("utf-8")

    assert metrics_content_type().startswith("text/plain")
    assert "acl_decisions_total" in payload
    assert "authz_policy_cache_hit_total" in payload


def test_decision_counters_follow_resolution_steps() -> None:
    store = InMemoryRecordStore([Record(entity_type="Account", id="acc-1", owner_user_id="u-9", team_ids=["T1"])])
    manager = build_acl_manager(
        Settings(),
        store=store,
        policy_backend=InMemoryPolicyBackend(
            {"sales": {"Account.read:team"}},
            role_forbidden_fields={"sales": {"Account.field.read:contract"}},
        ),
    )
    principal = Principal(user_id="u-1", team_ids=["T1"], roles=["sales"])
    downgraded_labels = {"entity_type": "Attachment", "action": "read", "allowed": "false", "step": "field_filter"}
    missing_labels = {"entity_type": "Account", "reason": "not_found"}

    downgrades_before = _sample("acl_field_downgrades_total", {"entity_type": "Account"})
    decisions_before = _sample("acl_decisions_total", downgraded_labels)
    misses_before = _sample("acl_cascade_lookup_miss_total", missing_labels)

    contract = Attachment(id="att-1", parent=RecordRef("Account", "acc-1"), target_field="contract")
    dangling = Attachment(id="att-2", parent=RecordRef("Account", "gone"))
    assert manager.check_read(principal, contract) is False
    assert manager.check_read(principal, dangling) is False

    assert _sample("acl_field_downgrades_total", {"entity_type": "Account"}) == downgrades_before + 1
    assert _sample("acl_decisions_total", downgraded_labels) == decisions_before + 1
    assert _sample("acl_cascade_lookup_miss_total", missing_labels) == misses_before + 1
