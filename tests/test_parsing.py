import pytest

from focus_tracker.errors import ArgumentError
from focus_tracker.parsing import parse_duration, parse_time_range, parse_timestamp


@pytest.mark.parametrize(
    ("literal", "expected"),
    [
        ("250ms", 250),
        ("90s", 90_000),
        ("5m", 300_000),
        ("2h", 7_200_000),
        ("1d", 86_400_000),
        ("1w", 604_800_000),
    ],
)
def test_parse_duration(literal, expected):
    assert parse_duration(literal) == expected


@pytest.mark.parametrize("literal", ["", "h", "1.5h", "-2h", "10y", "2 h", "2H"])
def test_parse_duration_rejects_malformed(literal):
    with pytest.raises(ArgumentError):
        parse_duration(literal)


def test_parse_timestamp_is_utc_milliseconds():
    assert parse_timestamp("1970-01-01 00:00:04") == 4000
    assert parse_timestamp("2023-11-14 22:13:20") == 1_700_000_000_000


@pytest.mark.parametrize("text", ["2023-11-14", "2023-11-14T22:13:20", "yesterday"])
def test_parse_timestamp_rejects_other_formats(text):
    with pytest.raises(ArgumentError):
        parse_timestamp(text)


def test_parse_time_range_requires_ordered_bounds():
    assert parse_time_range("1970-01-01 00:00:00", "1970-01-01 00:00:04") == (0, 4000)
    with pytest.raises(ArgumentError):
        parse_time_range("1970-01-01 00:00:04", "1970-01-01 00:00:00")
