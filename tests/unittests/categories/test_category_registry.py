from dataclasses import FrozenInstanceError
from datetime import datetime, timezone

import pytest

from feedline.categories.registry import CategoryRegistry, parse_timestamp
from feedline.main.exceptions import UnknownCategory
from feedline.main.models import QueueKind


class TestCategoryRegistry:
    def test_regular_players_fan_out_to_every_process_queue(self, categories):
        regular = categories.resolve("regular")

        assert regular.targets_for(QueueKind.PROCESS) == ("process", "process_brawl")
        assert regular.targets_for(QueueKind.GRAB) == ("grab",)

    def test_tournament_has_its_own_queues(self, categories):
        tournament = categories.resolve("tournament")

        assert tournament.targets_for(QueueKind.GRAB) == ("grab_tournament",)
        assert tournament.targets_for(QueueKind.PROCESS) == ("process_tournament",)
        assert tournament.targets_for(QueueKind.CRUNCH) == ("crunch_tournament",)
        assert tournament.regions == ("tournament-na", "tournament-eu")
        assert tournament.default_start == datetime(2017, 2, 12, tzinfo=timezone.utc)

    def test_unknown_category_is_rejected(self, categories):
        with pytest.raises(UnknownCategory) as exc_info:
            categories.resolve("arcade")

        assert exc_info.value.category == "arcade"

    def test_names_and_membership(self, categories):
        assert set(categories.names()) == {"regular", "brawl", "tournament"}
        assert "brawl" in categories
        assert "arcade" not in categories

    def test_game_mode_filter_is_csv(self, categories):
        assert categories.resolve("brawl").game_mode_filter == "casual_aral,blitz_pvp_ranked"

    def test_category_is_immutable(self, categories):
        regular = categories.resolve("regular")

        with pytest.raises(FrozenInstanceError):
            regular.name = "other"
        with pytest.raises(TypeError):
            regular.targets[QueueKind.GRAB] = ("elsewhere",)

    def test_duplicate_pipe_outputs_are_collapsed(self, test_settings):
        settings = test_settings.model_copy(
            update={"pipe_regular_player_out": "regular_player,regular_player,brawl_player"}
        )

        registry = CategoryRegistry.from_settings(settings)

        assert registry.resolve("regular").targets_for(QueueKind.PROCESS) == (
            "process",
            "process_brawl",
        )

    def test_pipe_to_unknown_category_fails_at_startup(self, test_settings):
        settings = test_settings.model_copy(update={"pipe_brawl_out": "brawl,arcade"})

        with pytest.raises(UnknownCategory):
            CategoryRegistry.from_settings(settings)

    def test_database_url_falls_back_to_main_database(self, test_settings):
        settings = test_settings.model_copy(update={"brawl_database_url": None})

        registry = CategoryRegistry.from_settings(settings)

        assert registry.resolve("brawl").database_url == settings.database_url


class TestParseTimestamp:
    def test_zulu_suffix(self):
        assert parse_timestamp("2024-01-01T00:00:00Z") == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_naive_values_are_utc(self):
        assert parse_timestamp("2024-01-01T12:00:00").tzinfo == timezone.utc
