import itertools
import random

import pytest

from conftest import record
from focus_tracker.aggregation import (
    GroupBy,
    UsageEntry,
    aggregate_last,
    aggregate_span,
    overlap,
)
from focus_tracker.errors import ArgumentError


def test_overlap_disjoint_ranges_are_zero():
    session = record("kitty", "bash", 1000, 2000)
    assert overlap(session, 2001, 3000) == 0
    assert overlap(session, 0, 999) == 0


def test_overlap_full_containment_is_record_length():
    session = record("kitty", "bash", 1000, 2000)
    assert overlap(session, 0, 5000) == 1000


def test_overlap_is_clipped_to_range():
    session = record("kitty", "bash", 1000, 5000)
    assert overlap(session, 2000, 3000) == 1000
    assert overlap(session, 0, 1500) == 500
    assert overlap(session, 4500, 9000) == 500


def test_overlap_is_bounded_by_range_length():
    rng = random.Random(7)
    for _ in range(200):
        start = rng.randrange(0, 10_000)
        session = record("a", "b", start, start + rng.randrange(0, 5000))
        lo = rng.randrange(0, 12_000)
        hi = lo + rng.randrange(0, 5000)
        value = overlap(session, lo, hi)
        assert 0 <= value <= hi - lo


def test_open_record_ends_at_now():
    session = record("kitty", "bash", 1000, None)
    assert overlap(session, 0, 10_000, now=4000) == 3000


@pytest.mark.parametrize("pieces", [1, 2, 5, 40])
def test_tiling_sums_to_range_length(pieces):
    t0, t2 = 0, 40_000
    bounds = [t0 + (t2 - t0) * i // pieces for i in range(pieces + 1)]
    records = [record("a", str(i), lo, hi) for i, (lo, hi) in enumerate(zip(bounds, bounds[1:]))]
    assert sum(overlap(r, t0, t2) for r in records) == t2 - t0


def test_span_grouped_by_class():
    records = [record("kitty", "bash", 0, 1000), record("code", "main.rs", 1000, 4000)]
    entries = aggregate_span(records, 0, 4000, GroupBy.CLASS)
    assert [(e.app_class, e.pretty_duration) for e in entries] == [
        ("code", "3s"),
        ("kitty", "1s"),
    ]


def test_grouping_by_title_keeps_class_and_title():
    records = [
        record("code", "main.rs", 0, 1000),
        record("code", "lib.rs", 1000, 3000),
        record("code", "main.rs", 3000, 3500),
    ]
    entries = aggregate_span(records, 0, 4000, GroupBy.TITLE)
    assert entries == [
        UsageEntry("code", "lib.rs", 2000),
        UsageEntry("code", "main.rs", 1500),
    ]


def test_grouping_is_independent_of_record_order():
    records = [
        record("kitty", "bash", 0, 1000),
        record("code", "main.rs", 1000, 4000),
        record("kitty", "vim", 4000, 4500),
        record("firefox", "docs", 4500, 9000),
    ]
    expected = aggregate_span(records, 0, 10_000, GroupBy.CLASS)
    for permutation in itertools.permutations(records):
        assert aggregate_span(permutation, 0, 10_000, GroupBy.CLASS) == expected


def test_zero_duration_keys_are_dropped():
    records = [record("kitty", "bash", 0, 1000), record("code", "main.rs", 5000, 5000)]
    entries = aggregate_span(records, 0, 10_000, GroupBy.CLASS)
    assert [e.app_class for e in entries] == ["kitty"]
    assert aggregate_span(records, 2000, 3000, GroupBy.CLASS) == []


def test_ties_are_ordered_by_key():
    records = [record("zsh", "", 0, 1000), record("alacritty", "", 1000, 2000)]
    entries = aggregate_span(records, 0, 2000, GroupBy.CLASS)
    assert [e.app_class for e in entries] == ["alacritty", "zsh"]


def test_pattern_filters_class_names_case_sensitively():
    records = [record("Firefox", "docs", 0, 1000), record("firefox", "mail", 1000, 3000)]
    entries = aggregate_span(records, 0, 3000, GroupBy.CLASS, pattern="fire")
    assert [e.app_class for e in entries] == ["firefox"]


def test_pattern_matches_titles_when_grouping_by_title():
    records = [
        record("code", "main.rs", 0, 1000),
        record("code", "notes.md", 1000, 3000),
        record("rust-analyzer", "x", 3000, 4000),
    ]
    entries = aggregate_span(records, 0, 4000, GroupBy.TITLE, pattern=r"\.rs$")
    assert [e.title for e in entries] == ["main.rs"]


def test_invalid_pattern_is_an_argument_error():
    with pytest.raises(ArgumentError):
        aggregate_span([], 0, 1, GroupBy.CLASS, pattern="(")


def test_inverted_range_is_an_argument_error():
    with pytest.raises(ArgumentError):
        aggregate_span([], 10, 1, GroupBy.CLASS)


def test_last_uses_window_ending_now():
    records = [record("kitty", "bash", 0, 5000), record("code", "main.rs", 5000, 9000)]
    entries = aggregate_last(records, 2000, GroupBy.CLASS, now=10_000)
    assert entries == [UsageEntry("code", None, 1000)]


def test_last_counts_open_session_up_to_now():
    records = [record("code", "main.rs", 5000, None)]
    entries = aggregate_last(records, 60_000, GroupBy.CLASS, now=8000)
    assert entries == [UsageEntry("code", None, 3000)]


def test_group_by_parse():
    assert GroupBy.parse("c") is GroupBy.CLASS
    assert GroupBy.parse("n") is GroupBy.TITLE
    with pytest.raises(ArgumentError):
        GroupBy.parse("x")


def test_entry_labels():
    assert UsageEntry("code", None, 1).label == "code"
    assert UsageEntry("code", "main.rs", 1).label == "main.rs [code]"
    assert UsageEntry("code", "", 1).label == "(untitled) [code]"
