"""
Utility functions for the radiology duty roster.
Handles date operations, preference/holiday text parsing and roster table helpers.
"""

import calendar
import logging
import re
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple

import pandas as pd

from rules import ShiftMark

logger = logging.getLogger(__name__)


# ==================== DATES ====================

def get_month_dates(year: int, month: int) -> List[date]:
    """Get all dates in a given month."""
    num_days = calendar.monthrange(year, month)[1]
    return [date(year, month, day) for day in range(1, num_days + 1)]


def get_target_month(today: Optional[date] = None) -> Tuple[int, int]:
    """
    Month the roster is generated for.
    Past the 1st of the month the next month is targeted, on the 1st the current one.
    """
    today = today or date.today()
    if today.day > 1:
        first_next = (today.replace(day=1) + timedelta(days=32)).replace(day=1)
        return first_next.year, first_next.month
    return today.year, today.month


def parse_month_arg(s: str) -> Tuple[int, int]:
    m = re.match(r"^\s*(\d{4})-(\d{2})\s*$", s)
    if not m:
        raise ValueError("Month must be YYYY-MM, e.g. 2023-06")
    year = int(m.group(1))
    month = int(m.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Month out of range in '{s}'. Expected 01..12")
    return year, month


def is_weekend(d: date) -> bool:
    """Check if a date is a weekend (Saturday or Sunday)."""
    return d.weekday() in (5, 6)


def is_friday(d: date) -> bool:
    return d.weekday() == 4


def is_saturday(d: date) -> bool:
    return d.weekday() == 5


def is_sunday(d: date) -> bool:
    return d.weekday() == 6


def week_start_sunday(d: date) -> date:
    return d - timedelta(days=(d.weekday() + 1) % 7)


def week_start_monday(d: date) -> date:
    return d - timedelta(days=d.weekday())


def format_date_header(d: date) -> str:
    """Column label used in the exported roster, e.g. 15/6."""
    return f"{d.day}/{d.month}"


def round_half_up(value: float) -> int:
    """Round .5 away from zero (Python's round() goes to the even neighbour)."""
    if value < 0:
        return -int(-value + 0.5)
    return int(value + 0.5)


def parse_date_list(date_str: str) -> List[date]:
    """
    Parse a comma-separated string of ISO dates, e.g. "2023-06-01,2023-06-04".
    Also supports semicolons and whitespace as separators; invalid entries are skipped.
    """
    if not date_str or date_str.strip() == "" or date_str.strip().lower() == "nan":
        return []

    dates = []
    for part in re.split(r"[,;\s]+", date_str):
        if not part:
            continue
        try:
            dates.append(date.fromisoformat(part))
        except ValueError:
            logger.debug("Skipping invalid holiday date %r", part)
    return dates


def parse_seed(text: Optional[str]) -> Optional[int]:
    """Integer seed from free text; blank or invalid gives None."""
    if text is None or not str(text).strip():
        return None
    try:
        return int(str(text).strip())
    except ValueError:
        logger.debug("Ignoring invalid seed %r", text)
        return None


# ==================== PREFERENCE / HOLIDAY TEXT ====================

def split_tokens(raw_text: Optional[str]) -> List[str]:
    """Remove all whitespace, split on commas and drop empty tokens."""
    if raw_text is None:
        return []
    normalized = re.sub(r"\s+", "", str(raw_text))
    if normalized.lower() == "nan":
        return []
    return [token for token in normalized.split(",") if token]


_PIPE_OFFSETS = re.compile(r"\d+(?:\|\d+)+")
_DASH_OFFSETS = re.compile(r"(\d*)(?:-(\d*))?")


def _parse_date_range(pattern: str) -> Optional[Tuple[date, date]]:
    """'START:END' or bare 'START' as ISO dates, None if not a valid date range."""
    start_str, _, end_str = pattern.partition(":")
    end_str = end_str or start_str
    try:
        start = date.fromisoformat(start_str)
        end = date.fromisoformat(end_str)
    except ValueError:
        return None
    if start > end:
        return None
    return start, end


def _parse_weekday_offsets(pattern: str) -> Optional[List[int]]:
    """
    Offsets from the Sunday starting a week.
    '1|3|5' lists offsets; '1-5' is an inclusive range where a missing lower
    bound defaults to 1 and a missing upper bound to 5 (so '3' means 3..5).
    """
    if _PIPE_OFFSETS.fullmatch(pattern):
        return [int(part) for part in pattern.split("|")]
    m = _DASH_OFFSETS.fullmatch(pattern)
    if m is None:
        return None
    low = int(m.group(1)) if m.group(1) else 1
    high = int(m.group(2)) if m.group(2) else 5
    if low > high:
        return None
    return list(range(low, high + 1))


def _split_preference_token(token: str) -> Optional[Tuple[str, str]]:
    pattern, sep, directive = token.partition("(")
    if not sep:
        return None
    if directive.endswith(")"):
        directive = directive[:-1]
    return pattern, directive.strip()


def parse_preferences(raw_text: Optional[str], year: int, month: int) -> Dict[date, str]:
    """
    Turn a free-text preference field into per-date directives for the target month.

    Tokens look like PATTERN(DIRECTIVE), e.g. "2023-06-10:2023-06-12(L), 1|3(D), 2-4(DM)".
    PATTERN is either an explicit ISO date range or a weekday-offset pattern applied
    to every week that intersects the month. Later tokens overwrite earlier ones.

    Args:
        raw_text: The worker's preference cell
        year: Target year
        month: Target month

    Returns:
        Mapping of date -> raw directive text (unrecognized tokens are skipped)
    """
    preferences: Dict[date, str] = {}
    first_day = date(year, month, 1)
    last_day = date(year, month, calendar.monthrange(year, month)[1])

    for token in split_tokens(raw_text):
        parts = _split_preference_token(token)
        if parts is None:
            logger.debug("Skipping preference token without directive: %r", token)
            continue
        pattern, directive = parts

        date_range = _parse_date_range(pattern)
        if date_range is not None:
            current, end = date_range
            while current <= end:
                preferences[current] = directive
                current += timedelta(days=1)
            continue

        offsets = _parse_weekday_offsets(pattern)
        if offsets is None:
            logger.debug("Skipping unrecognized preference token: %r", token)
            continue

        week_start = week_start_sunday(first_day)
        while week_start <= last_day:
            for offset in offsets:
                d = week_start + timedelta(days=offset)
                # First partial week must not leak into the previous month
                if d < first_day and d.month != month:
                    continue
                preferences[d] = directive
            week_start += timedelta(days=7)

    return preferences


def parse_holiday_intervals(raw_text: Optional[str]) -> List[Tuple[date, date]]:
    """Paid-leave ranges from 'START:END' tokens; malformed tokens are skipped."""
    intervals = []
    for token in split_tokens(raw_text):
        date_range = _parse_date_range(token)
        if date_range is None:
            logger.debug("Skipping unrecognized holiday token: %r", token)
            continue
        intervals.append(date_range)
    return intervals


def is_on_holiday(d: date, intervals: Iterable[Tuple[date, date]]) -> bool:
    """Check if a date falls in any paid-leave range (bounds inclusive)."""
    return any(start <= d <= end for start, end in intervals)


def find_unparsed_tokens(preference_text: Optional[str], holiday_text: Optional[str]) -> List[str]:
    """Tokens that parse_preferences / parse_holiday_intervals would silently skip."""
    skipped = []
    for token in split_tokens(preference_text):
        parts = _split_preference_token(token)
        if parts is None:
            skipped.append(token)
            continue
        pattern, _ = parts
        if _parse_date_range(pattern) is None and _parse_weekday_offsets(pattern) is None:
            skipped.append(token)
    for token in split_tokens(holiday_text):
        if _parse_date_range(token) is None:
            skipped.append(token)
    return skipped


# ==================== ROSTER TABLE ====================

def render_cell(mark: Optional[ShiftMark], d: date, public_holidays: Set[date]) -> str:
    """Literal printed for a cell; rest after night, national free days and free days on holidays print blank."""
    if mark is None:
        return ""
    if mark in (ShiftMark.FREE_AFTER_NIGHT, ShiftMark.FREE_NATIONAL_DAY):
        return ""
    if mark == ShiftMark.FREE_DAY and d in public_holidays:
        return ""
    return mark.code


def parse_roster_cell(text) -> Optional[ShiftMark]:
    """Read a rendered cell back into its mark (blank -> None)."""
    if text is None or (isinstance(text, float) and pd.isna(text)):
        return None
    return ShiftMark.from_code(str(text))


def create_roster_dataframe(
    workers: list, dates: List[date], grid, public_holidays: Set[date]
) -> pd.DataFrame:
    """
    Create the exported roster table.

    Args:
        workers: Workers in any order; rows follow their input order
        dates: All dates in the month
        grid: ScheduleGrid with the final assignments
        public_holidays: Public holiday calendar

    Returns:
        DataFrame with worker names as rows and day/month labels as columns
    """
    ordered = sorted(workers, key=lambda w: w.order_index)
    names = [w.name for w in ordered]
    data = {}
    for d in dates:
        data[format_date_header(d)] = [
            render_cell(grid.get(d, name), d, public_holidays) for name in names
        ]

    df = pd.DataFrame(data, index=names)
    df.index.name = "Nume"
    return df


def create_statistics_dataframe(worker_stats: dict) -> pd.DataFrame:
    """Statistics DataFrame from Scheduler.get_worker_stats()."""
    rows = []
    for name, stats in worker_stats.items():
        rows.append({
            "Name": name,
            "Night": stats.get("nights", 0),
            "Morning": stats.get("mornings", 0),
            "Afternoon": stats.get("afternoons", 0),
            "Free": stats.get("free_days", 0),
            "Holiday": stats.get("holidays", 0),
            "Weekend turns": stats.get("weekend_turns", 0),
            "Owed free days": stats.get("owed_free_days", 0),
        })
    return pd.DataFrame(rows)
