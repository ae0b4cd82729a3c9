from datetime import datetime, timedelta, timezone

import pytest
import sqlalchemy as sa

from feedline.database.tables import GlobalPoints, Matches, Participants
from feedline.main.exceptions import SweepAlreadyRunning
from feedline.shovel.cursor import EPOCH, CursorKind
from feedline.shovel.cursor_repo import CursorRepository
from feedline.shovel.scanner import BatchScanner, ScannerState
from feedline.shovel.sweeps import ANALYZE_GLOBAL, CRUNCH_GLOBAL, analyze_global, crunch_global

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


async def add_participants(databases, sqlite_url, count):
    async with databases.session(sqlite_url) as session, session.begin():
        session.add_all(
            Participants(
                api_id=f"part-{index}",
                match_api_id=f"match-{index}",
                player_api_id="p1",
                shard_id="na",
            )
            for index in range(1, count + 1)
        )


async def add_matches(databases, sqlite_url, offsets, game_mode="ranked"):
    async with databases.session(sqlite_url) as session, session.begin():
        session.add_all(
            Matches(
                api_id=f"match-{index}",
                game_mode=game_mode,
                created_at=T0 + timedelta(minutes=offset),
            )
            for index, offset in enumerate(offsets, start=1)
        )


async def read_cursor(databases, sqlite_url, operation, kind):
    async with databases.session(sqlite_url) as session, session.begin():
        return await CursorRepository(session).get("regular", operation, kind)


@pytest.fixture
def scanner(databases, forwarder):
    return BatchScanner(databases, forwarder, page_size=3)


@pytest.fixture
def regular(categories):
    return categories.resolve("regular")


class TestCrunchSweep:
    @pytest.mark.asyncio
    async def test_forwards_every_row_in_pages(self, scanner, forwarder, databases, sqlite_url, regular):
        await add_participants(databases, sqlite_url, 7)

        result = await scanner.sweep(regular, crunch_global)

        assert result.forwarded == 7
        assert result.pages == 3
        assert [message.body for message in forwarder.messages] == [
            f"part-{index}" for index in range(1, 8)
        ]
        assert {message.queue for message in forwarder.messages} == {"crunch"}
        assert {message.type for message in forwarder.messages} == {"global"}
        assert await read_cursor(databases, sqlite_url, CRUNCH_GLOBAL, CursorKind.INTEGER) == 7

    @pytest.mark.asyncio
    async def test_next_sweep_only_forwards_new_rows(self, scanner, forwarder, databases, sqlite_url, regular):
        await add_participants(databases, sqlite_url, 4)
        await scanner.sweep(regular, crunch_global)

        await add_participants(databases, sqlite_url, 2)
        result = await scanner.sweep(regular, crunch_global)

        assert result.forwarded == 2
        assert result.cursor == 6

    @pytest.mark.asyncio
    async def test_empty_table_forwards_nothing(self, scanner, forwarder, regular):
        result = await scanner.sweep(regular, crunch_global)

        assert result.forwarded == 0
        assert result.cursor == 0
        assert forwarder.messages == []

    @pytest.mark.asyncio
    async def test_state_returns_to_idle(self, scanner, databases, sqlite_url, regular):
        await add_participants(databases, sqlite_url, 5)

        assert scanner.state is ScannerState.IDLE
        await scanner.sweep(regular, crunch_global)
        assert scanner.state is ScannerState.IDLE

    @pytest.mark.asyncio
    async def test_crash_mid_sweep_forwards_the_page_again(self, databases, sqlite_url, forwarder, regular):
        await add_participants(databases, sqlite_url, 7)
        forwarder.fail_on = 4

        with pytest.raises(ConnectionError):
            await BatchScanner(databases, forwarder, page_size=3).sweep(regular, crunch_global)

        assert await read_cursor(databases, sqlite_url, CRUNCH_GLOBAL, CursorKind.INTEGER) == 3

        forwarder.fail_on = None
        forwarder.messages.clear()
        result = await BatchScanner(databases, forwarder, page_size=3).sweep(regular, crunch_global)

        assert [message.body for message in forwarder.messages] == [
            f"part-{index}" for index in range(4, 8)
        ]
        assert result.cursor == 7


class TestForceReset:
    @pytest.mark.asyncio
    async def test_force_clears_aggregates_and_starts_over(self, scanner, forwarder, databases, sqlite_url, regular):
        await add_participants(databases, sqlite_url, 5)
        await scanner.sweep(regular, crunch_global)
        async with databases.session(sqlite_url) as session, session.begin():
            session.add(GlobalPoints(dimension="kills", value=3.0))

        forwarder.messages.clear()
        result = await scanner.sweep(regular, crunch_global, force=True)

        assert result.reset is True
        assert result.forwarded == 5
        async with databases.session(sqlite_url) as session, session.begin():
            assert await session.scalar(sa.select(sa.func.count(GlobalPoints.id))) == 0

    @pytest.mark.asyncio
    async def test_second_force_run_is_a_no_op(self, scanner, forwarder, databases, sqlite_url, regular):
        await add_participants(databases, sqlite_url, 5)
        await scanner.sweep(regular, crunch_global, force=True)

        forwarder.messages.clear()
        result = await scanner.sweep(regular, crunch_global, force=True)

        assert result.reset is False
        assert result.forwarded == 0
        assert result.cursor == 5

    @pytest.mark.asyncio
    async def test_category_without_crunch_target_leaves_shared_aggregates(
        self, scanner, forwarder, databases, sqlite_url, categories
    ):
        await add_participants(databases, sqlite_url, 2)
        async with databases.session(sqlite_url) as session, session.begin():
            session.add(GlobalPoints(dimension="kills", value=3.0))

        result = await scanner.sweep(categories.resolve("brawl"), crunch_global, force=True)

        assert result.reset is False
        assert result.forwarded == 0
        assert forwarder.messages == []
        async with databases.session(sqlite_url) as session, session.begin():
            assert await session.scalar(sa.select(sa.func.count(GlobalPoints.id))) == 1


class TestAnalyzeSweep:
    @pytest.mark.asyncio
    async def test_rows_sharing_a_timestamp_are_not_skipped(self, scanner, forwarder, databases, sqlite_url, regular):
        # match-3 and match-4 share the last key of the first full page
        await add_matches(databases, sqlite_url, [1, 2, 3, 3, 4])

        result = await scanner.sweep(regular, analyze_global)

        assert sorted(message.body for message in forwarder.messages) == [
            f"match-{index}" for index in range(1, 6)
        ]
        assert {message.queue for message in forwarder.messages} == {"analyze"}
        assert result.cursor == T0 + timedelta(minutes=4)

    @pytest.mark.asyncio
    async def test_only_analyzable_matches_are_forwarded(self, scanner, forwarder, databases, sqlite_url, regular):
        await add_matches(databases, sqlite_url, [1, 2], game_mode="blitz_pvp_ranked")
        async with databases.session(sqlite_url) as session, session.begin():
            session.add(
                Matches(api_id="done", game_mode="ranked", created_at=T0, trueskill_quality=0.5)
            )

        result = await scanner.sweep(regular, analyze_global)

        assert result.forwarded == 0
        assert await read_cursor(databases, sqlite_url, ANALYZE_GLOBAL, CursorKind.TIMESTAMP) == EPOCH

    @pytest.mark.asyncio
    async def test_rerank_clears_quality(self, scanner, forwarder, databases, sqlite_url, regular):
        await add_matches(databases, sqlite_url, [1, 2])
        await scanner.sweep(regular, analyze_global)
        async with databases.session(sqlite_url) as session, session.begin():
            await session.execute(sa.update(Matches).values(trueskill_quality=0.7))

        forwarder.messages.clear()
        result = await scanner.sweep(regular, analyze_global, force=True)

        assert result.reset is True
        assert result.forwarded == 2


class TestSweepLocking:
    @pytest.mark.asyncio
    async def test_held_lock_refuses_the_sweep(self, databases, forwarder, regular):
        class TakenLock:
            def hold(self):
                raise SweepAlreadyRunning("regular", CRUNCH_GLOBAL)

        scanner = BatchScanner(databases, forwarder, lambda category, operation: TakenLock())

        with pytest.raises(SweepAlreadyRunning):
            await scanner.sweep(regular, crunch_global)
        assert scanner.state is ScannerState.IDLE


class TestCursorStore:
    @pytest.mark.asyncio
    async def test_scanner_reads_and_advances_through_the_given_store(self, databases, forwarder, sqlite_url, regular):
        class MemoryStore:
            cursors = {}

            def __init__(self, session, key_type):
                self.key_type = key_type

            async def get(self, category, operation, kind):
                return self.cursors.get((self.key_type, category, operation), kind.zero)

            async def advance(self, category, operation, kind, value):
                self.cursors[(self.key_type, category, operation)] = value
                return value

            async def reset(self, category, operation, kind):
                self.cursors[(self.key_type, category, operation)] = kind.zero
                return kind.zero

        MemoryStore.cursors[("crunch", "regular", CRUNCH_GLOBAL)] = 2
        await add_participants(databases, sqlite_url, 4)
        scanner = BatchScanner(databases, forwarder, page_size=3, cursor_store=MemoryStore)

        result = await scanner.sweep(regular, crunch_global)

        assert [message.body for message in forwarder.messages] == ["part-3", "part-4"]
        assert MemoryStore.cursors[("crunch", "regular", CRUNCH_GLOBAL)] == 4
        assert await read_cursor(databases, sqlite_url, CRUNCH_GLOBAL, CursorKind.INTEGER) == 0
