from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest


acl_decisions_total = Counter(
    "acl_decisions_total",
    "Total entity access decisions by outcome",
    ["entity_type", "action", "allowed", "step"],
)

acl_cascade_lookup_miss_total = Counter(
    "acl_cascade_lookup_miss_total",
    "Cascade targets that could not be resolved",
    ["entity_type", "reason"],
)

acl_field_downgrades_total = Counter(
    "acl_field_downgrades_total",
    "Cascaded allows downgraded to deny by a forbidden target field",
    ["entity_type"],
)

acl_cascade_guard_blocks_total = Counter(
    "acl_cascade_guard_blocks_total",
    "Cascade checks blocked by the recursion guard",
    ["reason"],
)

authz_policy_cache_hit_total = Counter(
    "authz_policy_cache_hit_total",
    "Authorization policy cache hits",
)

authz_policy_cache_miss_total = Counter(
    "authz_policy_cache_miss_total",
    "Authorization policy cache misses",
)

authz_db_queries_count_total = Counter(
    "authz_db_queries_count_total",
    "Authorization DB query count",
)


def observe_acl_decision(entity_type: str, action: str, allowed: bool, step: str) -> None:
    acl_decisions_total.labels(entity_type=entity_type, action=action, allowed=str(allowed).lower(), step=step).inc()


def observe_cascade_lookup_miss(entity_type: str, reason: str) -> None:
    acl_cascade_lookup_miss_total.labels(entity_type=entity_type, reason=reason).inc()


def observe_field_downgrade(entity_type: str) -> None:
    acl_field_downgrades_total.labels(entity_type=entity_type).inc()


def observe_cascade_guard_block(reason: str) -> None:
    acl_cascade_guard_blocks_total.labels(reason=reason).inc()


def observe_authz_policy_cache_hit() -> None:
    authz_policy_cache_hit_total.inc()


def observe_authz_policy_cache_miss() -> None:
    authz_policy_cache_miss_total.inc()


def observe_authz_db_queries_count(count: int = 1) -> None:
    if count > 0:
        authz_db_queries_count_total.inc(count)


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
