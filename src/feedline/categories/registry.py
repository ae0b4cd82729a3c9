"""Static category registry.

Built once from ``Settings`` at startup and handed to every component. A
"pipe" lets one logical category reach the queues of several categories:
with the defaults, players found through "regular" are forwarded to both
the regular and the brawl process queues.
"""

from __future__ import annotations

from datetime import datetime, timezone
from types import MappingProxyType
from typing import Iterable, Mapping

from feedline.categories.category import Category
from feedline.main.config import Settings, split_csv
from feedline.main.exceptions import UnknownCategory
from feedline.main.logging import get_logger
from feedline.main.models import QueueKind

logger = get_logger(__name__)

DEFAULT_CATEGORY = "regular"


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class CategoryRegistry:
    def __init__(self, categories: Iterable[Category]):
        self._categories: Mapping[str, Category] = MappingProxyType(
            {category.name: category for category in categories}
        )

    def resolve(self, name: str) -> Category:
        try:
            return self._categories[name]
        except KeyError:
            logger.warning("Unsupported category requested", extra={"category": name})
            raise UnknownCategory(name) from None

    def names(self) -> tuple[str, ...]:
        return tuple(self._categories)

    def __contains__(self, name: object) -> bool:
        return name in self._categories

    @classmethod
    def from_settings(cls, settings: Settings) -> "CategoryRegistry":
        grab_queues = {
            "regular": settings.grab_queue,
            "brawl": settings.grab_brawl_queue,
            "tournament": settings.grab_tournament_queue,
        }
        process_queues = {
            "regular_player": settings.player_process_queue,
            "brawl_player": settings.player_brawl_process_queue,
            "tournament_player": settings.player_tournament_process_queue,
        }
        grab_pipes = {
            "regular": split_csv(settings.pipe_regular_out),
            "brawl": split_csv(settings.pipe_brawl_out),
            "tournament": split_csv(settings.pipe_tournament_out),
        }
        process_pipes = {
            "regular": split_csv(settings.pipe_regular_player_out),
            "brawl": split_csv(settings.pipe_brawl_player_out),
            "tournament": split_csv(settings.pipe_tournament_player_out),
        }

        def resolve_pipe(pipe: tuple[str, ...], queues: dict[str, str]) -> tuple[str, ...]:
            resolved = []
            for pipe_out in pipe:
                if pipe_out not in queues:
                    raise UnknownCategory(pipe_out)
                if queues[pipe_out] not in resolved:
                    resolved.append(queues[pipe_out])
            return tuple(resolved)

        regions = split_csv(settings.regions)
        tournament_regions = split_csv(settings.tournament_regions)
        analyze_modes = split_csv(settings.analyze_modes)

        layout = {
            "regular": dict(
                crunch=settings.crunch_queue,
                analyze=settings.analyze_queue,
                sample=settings.sample_queue,
                database_url=settings.regular_database_url,
                game_modes=split_csv(settings.regular_modes),
                regions=regions,
                default_start=settings.grabstart,
            ),
            "brawl": dict(
                crunch=None,
                analyze=None,
                sample=settings.sample_queue,
                database_url=settings.brawl_database_url,
                game_modes=split_csv(settings.brawl_modes),
                regions=regions,
                default_start=settings.brawl_grabstart,
            ),
            "tournament": dict(
                crunch=settings.crunch_tournament_queue,
                analyze=settings.analyze_tournament_queue,
                sample=settings.sample_tournament_queue,
                database_url=settings.tournament_database_url,
                game_modes=split_csv(settings.tournament_modes),
                regions=tournament_regions,
                default_start=settings.tournament_grabstart,
            ),
        }

        categories = []
        for name, spec in layout.items():
            categories.append(
                Category(
                    name=name,
                    targets={
                        QueueKind.GRAB: resolve_pipe(grab_pipes[name], grab_queues),
                        QueueKind.PROCESS: resolve_pipe(process_pipes[name], process_queues),
                        QueueKind.CRUNCH: (spec["crunch"],) if spec["crunch"] else (),
                        QueueKind.ANALYZE: (spec["analyze"],) if spec["analyze"] else (),
                        QueueKind.SAMPLE: (spec["sample"],),
                    },
                    database_url=spec["database_url"] or settings.database_url,
                    game_modes=spec["game_modes"],
                    regions=spec["regions"],
                    default_start=parse_timestamp(spec["default_start"]),
                    analyze_modes=analyze_modes,
                )
            )

        return cls(categories)
