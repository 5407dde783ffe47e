from __future__ import annotations

from datetime import date

from utils import (
    find_unparsed_tokens,
    get_target_month,
    is_on_holiday,
    parse_date_list,
    parse_holiday_intervals,
    parse_preferences,
    parse_seed,
    round_half_up,
    split_tokens,
)


def test_split_tokens_strips_whitespace_and_empty_entries() -> None:
    assert split_tokens(" 1|3 (D) ,, 2(N) , ") == ["1|3(D)", "2(N)"]
    assert split_tokens(None) == []
    assert split_tokens("nan") == []


def test_explicit_range_applies_to_every_day() -> None:
    prefs = parse_preferences("2023-06-10:2023-06-12(L)", 2023, 6)

    assert prefs == {
        date(2023, 6, 10): "L",
        date(2023, 6, 11): "L",
        date(2023, 6, 12): "L",
    }


def test_single_explicit_date() -> None:
    prefs = parse_preferences("2023-06-05 (DM)", 2023, 6)

    assert prefs == {date(2023, 6, 5): "DM"}


def test_weekday_pipe_list_tags_every_week() -> None:
    prefs = parse_preferences("1|3(D),2(N)", 2023, 6)

    mondays = [date(2023, 6, d) for d in (5, 12, 19, 26)]
    wednesdays = [date(2023, 6, d) for d in (7, 14, 21, 28)]
    for d in mondays:
        assert prefs[d] == "D"
    # "2" means offsets 2..5 (Tuesday to Friday), so it overwrites the Wednesdays
    for d in wednesdays:
        assert prefs[d] == "N"
    # June 1st 2023 is a Thursday
    assert prefs[date(2023, 6, 1)] == "N"
    assert prefs[date(2023, 6, 30)] == "N"
    assert prefs[date(2023, 6, 6)] == "N"


def test_weekday_pattern_does_not_leak_into_previous_month() -> None:
    prefs = parse_preferences("1-5(L)", 2023, 6)

    assert all(d.month == 6 for d in prefs)
    assert date(2023, 6, 1) in prefs
    assert date(2023, 6, 2) in prefs
    assert date(2023, 6, 3) not in prefs


def test_dash_range_default_bounds() -> None:
    upper_only = parse_preferences("-2(L)", 2023, 6)
    lower_only = parse_preferences("3(L)", 2023, 6)

    assert {d.weekday() for d in upper_only} == {0, 1}
    assert {d.weekday() for d in lower_only} == {2, 3, 4}


def test_later_tokens_overwrite_earlier_ones() -> None:
    prefs = parse_preferences("1-5(D), 2023-06-05(L)", 2023, 6)

    assert prefs[date(2023, 6, 5)] == "L"
    assert prefs[date(2023, 6, 6)] == "D"


def test_malformed_tokens_are_skipped() -> None:
    prefs = parse_preferences("abc(D), 2023-06-05, x|y(N), 2023-06-07(DM)", 2023, 6)

    assert prefs == {date(2023, 6, 7): "DM"}


def test_unrecognized_directive_is_kept_as_raw_text() -> None:
    prefs = parse_preferences("2023-06-03(LW)", 2023, 6)

    assert prefs == {date(2023, 6, 3): "LW"}


def test_find_unparsed_tokens_reports_skipped_entries() -> None:
    skipped = find_unparsed_tokens("abc(D), 1|3(D)", "2023-06-10:2023-06-12, soon")

    assert skipped == ["abc(D)", "soon"]


def test_holiday_intervals() -> None:
    intervals = parse_holiday_intervals("2023-06-10:2023-06-12, 2023-06-20")

    assert is_on_holiday(date(2023, 6, 11), intervals)
    assert is_on_holiday(date(2023, 6, 20), intervals)
    assert not is_on_holiday(date(2023, 6, 13), intervals)
    assert parse_holiday_intervals("bogus, ") == []


def test_target_month() -> None:
    assert get_target_month(date(2023, 6, 1)) == (2023, 6)
    assert get_target_month(date(2023, 6, 2)) == (2023, 7)
    assert get_target_month(date(2023, 12, 15)) == (2024, 1)


def test_parse_date_list_and_rounding() -> None:
    assert parse_date_list("2023-06-01, 2023-06-04;bad") == [date(2023, 6, 1), date(2023, 6, 4)]
    assert round_half_up(2.5) == 3
    assert round_half_up(1.65) == 2
    assert round_half_up(3.3) == 3


def test_reversed_ranges_are_skipped_and_reported() -> None:
    assert parse_preferences("2023-06-12:2023-06-10(L)", 2023, 6) == {}
    assert parse_holiday_intervals("2023-06-12:2023-06-10") == []
    assert parse_preferences("4-2(D)", 2023, 6) == {}

    skipped = find_unparsed_tokens("2023-06-12:2023-06-10(L), 4-2(D)", "2023-06-12:2023-06-10")

    assert skipped == ["2023-06-12:2023-06-10(L)", "4-2(D)", "2023-06-12:2023-06-10"]


def test_parse_seed() -> None:
    assert parse_seed(" 42 ") == 42
    assert parse_seed("-5") == -5
    assert parse_seed("--5") is None
    assert parse_seed("abc") is None
    assert parse_seed("") is None
    assert parse_seed(None) is None
