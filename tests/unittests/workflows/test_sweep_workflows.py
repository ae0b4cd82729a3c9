from datetime import datetime, timedelta, timezone

import pytest

from feedline.database.tables import Participants, PlayerPoints, Teams
from feedline.main.exceptions import NotFoundException, UnknownCategory
from feedline.main.models import NotificationEvent
from feedline.shovel.scanner import BatchScanner
from feedline.workflows.analyze import AnalyzeWorkflows
from feedline.workflows.crunch import CrunchWorkflows

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def scanner_factory(databases, forwarder):
    return lambda: BatchScanner(databases, forwarder, page_size=3)


@pytest.fixture
def crunch(categories, databases, forwarder, publisher, scanner_factory):
    return CrunchWorkflows(categories, databases, forwarder, publisher, scanner_factory)


@pytest.fixture
def analyze(categories, databases, forwarder, scanner_factory):
    return AnalyzeWorkflows(categories, databases, forwarder, scanner_factory)


async def add_participations(databases, sqlite_url, player_api_id, offsets, trueskill_mu=None):
    async with databases.session(sqlite_url) as session, session.begin():
        session.add_all(
            Participants(
                api_id=f"{player_api_id}-part-{offset}",
                match_api_id=f"match-{offset}",
                player_api_id=player_api_id,
                shard_id="na",
                created_at=T0 + timedelta(hours=offset),
                trueskill_mu=trueskill_mu,
            )
            for offset in offsets
        )


class TestCrunchWorkflows:
    @pytest.mark.asyncio
    async def test_crunch_global_sweeps_participants(self, crunch, forwarder, databases, sqlite_url):
        await add_participations(databases, sqlite_url, "p1", [1, 2])

        result = await crunch.crunch_global("regular")

        assert result.forwarded == 2
        assert {message.type for message in forwarder.messages} == {"global"}

    @pytest.mark.asyncio
    async def test_unknown_category_is_rejected(self, crunch):
        with pytest.raises(UnknownCategory):
            await crunch.crunch_global("nope")

    @pytest.mark.asyncio
    async def test_subject_crunch_sends_participations_after_last_crunch(
        self, crunch, forwarder, publisher, databases, sqlite_url
    ):
        await add_participations(databases, sqlite_url, "p1", [1, 2, 3])
        await add_participations(databases, sqlite_url, "p2", [4])
        async with databases.session(sqlite_url) as session, session.begin():
            session.add(
                PlayerPoints(
                    player_api_id="p1",
                    created_at=T0,
                    updated_at=T0 + timedelta(hours=1, minutes=30),
                )
            )

        sent = await crunch.crunch_subject("regular", "p1", notify_name="Shutter")

        assert sent == 2
        assert [message.body for message in forwarder.messages] == ["p1-part-2", "p1-part-3"]
        assert {message.type for message in forwarder.messages} == {"player"}
        assert {message.queue for message in forwarder.messages} == {"crunch"}
        assert publisher.events == [("player.Shutter", NotificationEvent.CRUNCH_PENDING)]

    @pytest.mark.asyncio
    async def test_never_crunched_subject_sends_everything(self, crunch, forwarder, publisher, databases, sqlite_url):
        await add_participations(databases, sqlite_url, "p1", [1, 2])

        assert await crunch.crunch_subject("regular", "p1") == 2
        assert publisher.events == []

    @pytest.mark.asyncio
    async def test_team_crunch(self, crunch, forwarder, databases, sqlite_url):
        async with databases.session(sqlite_url) as session, session.begin():
            session.add(Teams(id=7, name="Rogue"))

        await crunch.ensure_team(7)
        await crunch.crunch_team(7)

        assert [(message.queue, message.body, message.type) for message in forwarder.messages] == [
            ("crunch", 7, "team")
        ]

    @pytest.mark.asyncio
    async def test_unknown_team(self, crunch):
        with pytest.raises(NotFoundException):
            await crunch.ensure_team(404)


class TestAnalyzeWorkflows:
    @pytest.mark.asyncio
    async def test_subject_analyze_skips_rated_matches(self, analyze, forwarder, databases, sqlite_url):
        await add_participations(databases, sqlite_url, "p1", [2, 1])
        await add_participations(databases, sqlite_url, "p1", [3], trueskill_mu=25.0)

        assert await analyze.analyze_subject("regular", "p1") == 2
        assert [message.body for message in forwarder.messages] == ["match-1", "match-2"]
        assert {message.queue for message in forwarder.messages} == {"analyze"}
        assert {message.type for message in forwarder.messages} == {"match"}

    @pytest.mark.asyncio
    async def test_tournament_uses_its_own_queue(self, analyze, forwarder, databases, sqlite_url):
        await add_participations(databases, sqlite_url, "p1", [1])

        await analyze.analyze_subject("tournament", "p1")

        assert [message.queue for message in forwarder.messages] == ["analyze_tournament"]
