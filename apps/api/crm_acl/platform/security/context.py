from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class Principal:
    """Authenticated user whose access is being evaluated."""

    user_id: str
    team_ids: list[str] = field(default_factory=list)
    roles: list[str] = field(default_factory=list)
    permissions: list[str] = field(default_factory=list)
    is_admin: bool = False
    tenant_id: str | None = None
    correlation_id: str | None = None
    _cache: dict[str, Any] = field(default_factory=dict, repr=False)

    def shares_team(self, team_ids: Iterable[str]) -> bool:
        return not set(self.team_ids).isdisjoint(team_ids)
