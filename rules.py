"""
Labor rules for the radiology duty roster.
Shift marks, their spreadsheet codes and the numeric limits used by the scheduler.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Dict, FrozenSet, Optional, Set


class ShiftMark(Enum):
    MORNING = "D"
    AFTERNOON = "DM"
    NIGHT = "N"
    FREE_AFTER_NIGHT = "-"
    FREE_DAY = "L"
    FREE_WEEKEND_DAY = "LW"
    FREE_NATIONAL_DAY = "LN"
    HOLIDAY = "CO"

    @property
    def code(self) -> str:
        return self.value

    @classmethod
    def from_code(cls, code: str) -> Optional["ShiftMark"]:
        """Map a literal cell code back to its mark (None for blank or unknown codes)."""
        try:
            return cls(code.strip())
        except (ValueError, AttributeError):
            return None


WORKING_MARKS = (ShiftMark.MORNING, ShiftMark.AFTERNOON, ShiftMark.NIGHT)
DAY_MARKS = (ShiftMark.MORNING, ShiftMark.AFTERNOON)

# Preference values that carry no concrete directive but still block automatic nights/weekends
FREE_ON_WEEKEND_DAY = ShiftMark.FREE_WEEKEND_DAY.code
MORNING_OR_AFTERNOON = "D|DM"

# Directives a worker may request for a date
PREFERENCE_DIRECTIVES: Dict[str, ShiftMark] = {
    ShiftMark.FREE_DAY.code: ShiftMark.FREE_DAY,
    ShiftMark.MORNING.code: ShiftMark.MORNING,
    ShiftMark.AFTERNOON.code: ShiftMark.AFTERNOON,
    ShiftMark.NIGHT.code: ShiftMark.NIGHT,
    ShiftMark.FREE_NATIONAL_DAY.code: ShiftMark.FREE_NATIONAL_DAY,
}

# Hours a mark costs in the weekly tally (rest after a night still takes a slot)
SHIFT_HOURS: Dict[ShiftMark, int] = {
    ShiftMark.MORNING: 6,
    ShiftMark.AFTERNOON: 6,
    ShiftMark.NIGHT: 6,
    ShiftMark.FREE_AFTER_NIGHT: 6,
}

# Spreadsheet yes/no literals
YES = "DA"
NO = "NU"

PRIORITY_WORKER = "Pintican"

PUBLIC_HOLIDAYS_BY_YEAR: Dict[int, Set[date]] = {
    2023: {
        date(2023, 1, 1),
        date(2023, 1, 2),
        date(2023, 1, 24),
        date(2023, 4, 14),
        date(2023, 4, 16),
        date(2023, 4, 17),
        date(2023, 5, 1),
        date(2023, 6, 1),
        date(2023, 6, 4),
        date(2023, 6, 5),
        date(2023, 8, 15),
        date(2023, 11, 30),
        date(2023, 12, 1),
        date(2023, 12, 25),
        date(2023, 12, 26),
    }
}


def public_holidays_for(year: int) -> Set[date]:
    """Known public holidays for a year (empty when the year is not in the table)."""
    return set(PUBLIC_HOLIDAYS_BY_YEAR.get(year, set()))


@dataclass(frozen=True)
class RosterRules:
    """Numeric limits and calendar inputs for one roster run."""
    max_nights: int = 3
    max_mornings_per_worker: int = 3
    max_afternoons_per_worker: int = 3
    max_weekday_night_persons: int = 2
    max_weekend_night_persons: int = 1
    min_weekend_hours: int = 12
    max_weekend_hours: int = 24
    min_morning_persons: int = 6
    max_morning_persons: int = 9
    min_afternoon_persons: int = 2
    max_afternoon_persons: int = 3
    max_weekly_hours: int = 30
    daily_hours: int = 6
    max_free_days_per_date: int = 2
    priority_worker: Optional[str] = PRIORITY_WORKER
    public_holidays: FrozenSet[date] = field(default_factory=frozenset)

    def is_public_holiday(self, d: date) -> bool:
        return d in self.public_holidays

    def with_holidays(self, holidays) -> "RosterRules":
        """Return a copy using the given holiday calendar."""
        return replace(self, public_holidays=frozenset(holidays))


def default_rules(year: int) -> RosterRules:
    """Rules with the shipped holiday calendar for the given year."""
    return RosterRules(public_holidays=frozenset(public_holidays_for(year)))
