"""
Tests for chatkeep.archive.fetcher
"""
from datetime import date

import pytest

from chatkeep.errors import FetchError, NetworkError, ValidationError
from chatkeep.archive.fetcher import MessageFetcher, merge_messages, parse_day
from chatkeep.connectors.chatwork.client import PAGE_CAP


class _Sleeper:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


def test_merge_messages_dedups_overlap_and_sorts(make_message):
    """Overlapping batches {1,2,3} and {3,4,5} merge into 1..5 in send order."""
    first = [make_message(3, 30), make_message(1, 10), make_message(2, 20)]
    second = [make_message(5, 50), make_message(3, 30), make_message(4, 40)]
    merged = merge_messages([first, second])
    assert [m.id for m in merged] == ["1", "2", "3", "4", "5"]


def test_merge_messages_first_occurrence_wins(make_message):
    merged = merge_messages([[make_message(1, 10, body="first")], [make_message(1, 10, body="second")]])
    assert [m.body for m in merged] == ["first"]


def test_fetch_range_filters_to_the_requested_days(fake_client, make_message, local_time):
    page = [
        make_message(1, local_time(2024, 4, 30, 23, 59)),
        make_message(2, local_time(2024, 5, 1, 0, 0)),
        make_message(3, local_time(2024, 5, 2, 9, 30)),
        make_message(4, local_time(2024, 5, 3, 23, 59)),
        make_message(5, local_time(2024, 5, 4, 0, 0)),
    ]
    client = fake_client(pages={"7": page})
    fetcher = MessageFetcher(client, sleep=_Sleeper())

    result = fetcher.fetch_range("tok", 7, "2024-05-01", "2024-05-03")

    assert result.count == 3
    lines = result.text.split("\n")
    assert [line.split(": ", 1)[1] for line in lines] == ["message 2", "message 3", "message 4"]
    assert client.calls == [("messages", "tok", "7")]


def test_windowed_fetch_calls_once_per_window_and_waits_between(fake_client, make_message, local_time):
    """Two windows mean two upstream calls separated by exactly one delay."""
    jan = make_message(1, local_time(2024, 1, 15))
    feb = make_message(2, local_time(2024, 2, 10))
    client = fake_client(pages={"1": [[jan, feb], [jan, feb]]})
    sleeper = _Sleeper()
    fetcher = MessageFetcher(client, max_span_days=30, delay=1.0, sleep=sleeper)

    result = fetcher.fetch_range("tok", "1", date(2024, 1, 1), date(2024, 2, 15))

    assert len(result.windows) == 2
    assert len(client.calls) == 2
    assert sleeper.calls == [1.0]
    assert result.count == 2
    assert "message 1" in result.text.split("\n")[0]


def test_single_window_path_makes_one_call(fake_client, make_message, local_time):
    client = fake_client(pages={"1": [make_message(1, local_time(2024, 1, 15))]})
    sleeper = _Sleeper()
    fetcher = MessageFetcher(client, windowed=True, sleep=sleeper)

    result = fetcher.fetch_range("tok", "1", "2024-01-01", "2024-06-30", windowed=False)

    assert len(result.windows) == 1
    assert len(client.calls) == 1
    assert sleeper.calls == []
    assert result.count == 1


def test_fetch_range_validates_before_calling_upstream(fake_client):
    client = fake_client()
    fetcher = MessageFetcher(client, sleep=_Sleeper())
    with pytest.raises(ValidationError):
        fetcher.fetch_range("", "1", "2024-01-01", "2024-01-02")
    with pytest.raises(ValidationError):
        fetcher.fetch_range("tok", "", "2024-01-01", "2024-01-02")
    with pytest.raises(ValidationError):
        fetcher.fetch_range("tok", "1", None, "2024-01-02")
    with pytest.raises(ValidationError):
        fetcher.fetch_range("tok", "1", "2024-01-05", "2024-01-02")
    with pytest.raises(ValidationError):
        fetcher.fetch_range("tok", "1", "01/05/2024", "2024-01-06")
    assert client.calls == []


def test_failure_in_a_later_window_discards_everything(fake_client, make_message, local_time):
    client = fake_client(pages={"1": [[make_message(1, local_time(2024, 1, 2))], NetworkError("down")]})
    fetcher = MessageFetcher(client, sleep=_Sleeper())
    with pytest.raises(FetchError):
        fetcher.fetch_range("tok", "1", "2024-01-01", "2024-02-15")


def test_page_cap_marks_result_truncated(fake_client, make_message, local_time):
    page = [make_message(i, local_time(2024, 3, 1) + i) for i in range(PAGE_CAP)]
    fetcher = MessageFetcher(fake_client(pages={"1": page}), sleep=_Sleeper())

    result = fetcher.fetch_range("tok", "1", "2024-03-01", "2024-03-01")

    assert result.count == PAGE_CAP
    assert result.truncated
    assert result.to_dict()["truncated"] is True


def test_parse_day_accepts_dates_and_iso_strings():
    assert parse_day("2024-05-01") == date(2024, 5, 1)
    assert parse_day(date(2024, 5, 1)) == date(2024, 5, 1)
    with pytest.raises(ValidationError):
        parse_day("")


@pytest.mark.parametrize("value", ["20240501", "2024-W18-3", "2024-05-01T09:00", "05/01/2024"])
def test_parse_day_only_accepts_dashed_dates(value):
    with pytest.raises(ValidationError):
        parse_day(value)
