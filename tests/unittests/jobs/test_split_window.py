from datetime import datetime, timedelta, timezone

import pytest

from feedline.jobs.window import split_window

START = datetime(2024, 1, 1, tzinfo=timezone.utc)
FOUR_WEEKS = timedelta(weeks=4)


def assert_partition(chunks, start, end, max_span):
    assert chunks[0][0] == start
    assert chunks[-1][1] == end
    for (_, previous_end), (next_start, _) in zip(chunks, chunks[1:]):
        assert previous_end == next_start
    for chunk_start, chunk_end in chunks:
        assert chunk_start < chunk_end
        assert chunk_end - chunk_start <= max_span


class TestSplitWindow:
    def test_ten_weeks_in_four_week_chunks(self):
        end = START + timedelta(weeks=10)

        chunks = split_window(START, end, FOUR_WEEKS)

        assert chunks == [
            (START, START + timedelta(weeks=4)),
            (START + timedelta(weeks=4), START + timedelta(weeks=8)),
            (START + timedelta(weeks=8), end),
        ]

    @pytest.mark.parametrize(
        "span,max_span",
        [
            (timedelta(seconds=1), FOUR_WEEKS),
            (FOUR_WEEKS, FOUR_WEEKS),
            (FOUR_WEEKS + timedelta(seconds=1), FOUR_WEEKS),
            (timedelta(days=365), timedelta(days=28)),
            (timedelta(hours=5, minutes=7), timedelta(minutes=13)),
            (timedelta(days=3), timedelta(days=7)),
        ],
    )
    def test_chunks_partition_the_window(self, span, max_span):
        end = START + span

        chunks = split_window(START, end, max_span)

        assert_partition(chunks, START, end, max_span)

    def test_exact_multiple_has_no_empty_tail(self):
        chunks = split_window(START, START + 2 * FOUR_WEEKS, FOUR_WEEKS)

        assert len(chunks) == 2

    def test_empty_window(self):
        assert split_window(START, START, FOUR_WEEKS) == []
        assert split_window(START, START - timedelta(days=1), FOUR_WEEKS) == []

    @pytest.mark.parametrize("max_span", [timedelta(0), timedelta(seconds=-1)])
    def test_span_must_be_positive(self, max_span):
        with pytest.raises(ValueError):
            split_window(START, START + FOUR_WEEKS, max_span)
