from __future__ import annotations

from collections.abc import Generator

import pytest
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from crm_acl.core.config import Settings
from crm_acl.otel import service_name_for, setup_inmemory_otel, setup_otel
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


@pytest.fixture()
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel("crm-acl")
    exporter.clear()
    return exporter


def test_check_entity_span_contains_decision_and_correlation(span_exporter: InMemorySpanExporter) -> None:
    store = InMemoryRecordStore([Record(entity_type="Account", id="acc-1", owner_user_id="u-9", team_ids=["T1"])])
    manager = build_acl_manager(
        Settings(),
        store=store,
        policy_backend=InMemoryPolicyBackend({"sales": {"Account.read:team"}}),
    )
    principal = Principal(
        user_id="u-1",
        team_ids=["T1"],
        roles=["sales"],
        tenant_id="tenant-1",
        correlation_id="otel-corr-1",
    )
    attachment = Attachment(id="att-1", owner_user_id="u-9", parent=RecordRef("Account", "acc-1"))

    assert manager.check_read(principal, attachment) is True

    spans = [span for span in span_exporter.get_finished_spans() if span.name == "acl.check_entity"]
    by_type = {span.attributes.get("entity_type"): span for span in spans}
    assert set(by_type) == {"Attachment", "Account"}

    outer = by_type["Attachment"]
    inner = by_type["Account"]
    assert outer.attributes.get("entity_id") == "att-1"
    assert outer.attributes.get("action") == "read"
    assert outer.attributes.get("user_id") == "u-1"
    assert outer.attributes.get("allowed") is True
    assert outer.attributes.get("correlation_id") == "otel-corr-1"
    assert outer.attributes.get("tenant_id") == "tenant-1"
    assert inner.parent is not None
    assert inner.parent.span_id == outer.context.span_id


def test_denied_check_is_recorded_on_span(span_exporter: InMemorySpanExporter) -> None:
    manager = build_acl_manager(Settings(), store=InMemoryRecordStore(), policy_backend=InMemoryPolicyBackend())

    assert manager.check_read(Principal(user_id="u-1"), Record(entity_type="Account", id="acc-1")) is False

    spans = [span for span in span_exporter.get_finished_spans() if span.name == "acl.check_entity"]
    assert len(spans) == 1
    assert spans[0].attributes.get("allowed") is False
    assert "correlation_id" not in spans[0].attributes


def test_setup_otel_respects_settings() -> None:
    assert setup_otel(Settings(otel_enabled=False)) is None

    provider = setup_otel(Settings(otel_enabled=True))
    assert provider is not None
    assert setup_otel(Settings(otel_enabled=True)) is provider
    assert service_name_for(Settings(app_name="CRM ACL")) == "crm-acl"
