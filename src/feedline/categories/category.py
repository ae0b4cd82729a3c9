from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Mapping

from feedline.main.models import QueueKind


@dataclass(frozen=True)
class Category:
    """Immutable routing and filter configuration for one pipeline variant.

    ``targets`` holds the resolved fan-out: every queue listed for a kind
    receives an identical copy of a message forwarded for this category.
    """

    name: str
    targets: Mapping[QueueKind, tuple[str, ...]]
    database_url: str
    game_modes: tuple[str, ...]
    regions: tuple[str, ...]
    default_start: datetime
    analyze_modes: tuple[str, ...] = field(default=())

    def __post_init__(self):
        object.__setattr__(self, "targets", MappingProxyType(dict(self.targets)))

    def targets_for(self, kind: QueueKind) -> tuple[str, ...]:
        return self.targets.get(kind, ())

    @property
    def game_mode_filter(self) -> str:
        return ",".join(self.game_modes)

    def has_region(self, region: str) -> bool:
        return region in self.regions
