from __future__ import annotations

from contextvars import ContextVar, Token
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from crm_acl.platform.security.records import RecordRef

correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
cascade_trail_var: ContextVar[tuple[RecordRef, ...]] = ContextVar("cascade_trail", default=())


def set_correlation_id(value: str | None) -> Token[str | None]:
    return correlation_id_var.set(value)


def reset_correlation_id(token: Token[str | None]) -> None:
    correlation_id_var.reset(token)


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


def push_cascade_ref(ref: RecordRef) -> Token[tuple[RecordRef, ...]]:
    return cascade_trail_var.set((*cascade_trail_var.get(), ref))


def reset_cascade_trail(token: Token[tuple[RecordRef, ...]]) -> None:
    cascade_trail_var.reset(token)


def get_cascade_trail() -> tuple[RecordRef, ...]:
    return cascade_trail_var.get()
