from datetime import datetime, timezone

import pytest

from feedline.shovel.cursor import EPOCH, CursorKind
from feedline.shovel.cursor_repo import CursorRepository, cursor_key


@pytest.fixture
async def session(databases, sqlite_url):
    async with databases.session(sqlite_url) as session:
        yield session


def test_cursor_key_is_category_scoped():
    assert cursor_key("brawl", "crunch_global") == "brawl:crunch_global"


def test_timestamp_cursor_decodes_naive_values_as_utc():
    assert CursorKind.TIMESTAMP.normalize(datetime(2024, 1, 1)) == datetime(
        2024, 1, 1, tzinfo=timezone.utc
    )
    assert CursorKind.TIMESTAMP.decode("") == EPOCH
    assert CursorKind.INTEGER.decode(None) == 0


class TestCursorRepository:
    @pytest.mark.asyncio
    async def test_new_cursor_starts_at_zero(self, session):
        async with session.begin():
            repo = CursorRepository(session)
            assert await repo.get("regular", "crunch_global", CursorKind.INTEGER) == 0
            assert await repo.get("regular", "analyze_global", CursorKind.TIMESTAMP) == EPOCH

    @pytest.mark.asyncio
    async def test_advance_moves_forward(self, session):
        async with session.begin():
            repo = CursorRepository(session)
            assert await repo.advance("regular", "crunch_global", CursorKind.INTEGER, 42) == 42

        async with session.begin():
            assert await CursorRepository(session).get(
                "regular", "crunch_global", CursorKind.INTEGER
            ) == 42

    @pytest.mark.asyncio
    async def test_advance_never_moves_backwards(self, session):
        async with session.begin():
            repo = CursorRepository(session)
            await repo.advance("regular", "crunch_global", CursorKind.INTEGER, 42)
            assert await repo.advance("regular", "crunch_global", CursorKind.INTEGER, 7) == 42
            assert await repo.get("regular", "crunch_global", CursorKind.INTEGER) == 42

    @pytest.mark.asyncio
    async def test_categories_have_independent_cursors(self, session):
        async with session.begin():
            repo = CursorRepository(session)
            await repo.advance("regular", "crunch_global", CursorKind.INTEGER, 42)
            assert await repo.get("brawl", "crunch_global", CursorKind.INTEGER) == 0

    @pytest.mark.asyncio
    async def test_reset_returns_to_zero(self, session):
        moment = datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)
        async with session.begin():
            repo = CursorRepository(session)
            await repo.advance("regular", "analyze_global", CursorKind.TIMESTAMP, moment)
            assert await repo.get("regular", "analyze_global", CursorKind.TIMESTAMP) == moment

            assert await repo.reset("regular", "analyze_global", CursorKind.TIMESTAMP) == EPOCH
            assert await repo.get("regular", "analyze_global", CursorKind.TIMESTAMP) == EPOCH
