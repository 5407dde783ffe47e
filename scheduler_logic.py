"""
Core Scheduler Logic for the Radiology Duty Roster.
Fills a date x worker grid with a fixed sequence of greedy rule passes.
"""

import logging
import random
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from rules import (
    DAY_MARKS,
    FREE_ON_WEEKEND_DAY,
    MORNING_OR_AFTERNOON,
    NO,
    PREFERENCE_DIRECTIVES,
    SHIFT_HOURS,
    WORKING_MARKS,
    YES,
    RosterRules,
    ShiftMark,
)
from utils import (
    get_month_dates,
    is_friday,
    is_on_holiday,
    is_saturday,
    is_sunday,
    is_weekend,
    parse_holiday_intervals,
    parse_preferences,
    round_half_up,
    week_start_monday,
)

logger = logging.getLogger(__name__)


# Spreadsheet header -> worker attribute
TABLE_MAP_COLUMNS = {
    "Nume": "name",
    "Interval concediu": "holiday_interval",
    "Preferinte program": "favorite_schedule_time",
    "A muncit noaptea ultimei zile din luna trecuta": "last_working_month_night",
    "Lucreaza de noaptea": "working_on_night",
    "Lucreaza in weekend": "working_on_weekend",
}


@dataclass
class Worker:
    """A person on the roster with their raw preference text and flags."""
    name: str
    holiday_intervals: str = ""
    favorite_schedule_text: str = ""
    worked_night_last_day_of_prior_month: bool = False
    works_nights: bool = True
    works_weekends: bool = True
    order_index: int = 0

    # Parsed once per target month by the scheduler
    preferences: Dict[date, str] = field(default_factory=dict, repr=False)
    holiday_ranges: List[Tuple[date, date]] = field(default_factory=list, repr=False)

    def is_on_holiday(self, d: date) -> bool:
        return is_on_holiday(d, self.holiday_ranges)

    def preference_for(self, d: date) -> Optional[str]:
        return self.preferences.get(d)

    def directive_for(self, d: date) -> Optional[ShiftMark]:
        """Concrete mark requested for a date, None for no or unrecognized preference."""
        return PREFERENCE_DIRECTIVES.get(self.preferences.get(d, ""))


def prioritize_workers(
    workers: List[Worker], priority_name: Optional[str], rng: random.Random
) -> List[Worker]:
    """
    Evaluation order for every pass: the priority worker first, everyone else shuffled.
    Returns a new list; the input is left untouched.
    """
    priority = [w for w in workers if priority_name and w.name == priority_name][:1]
    others = [w for w in workers if not any(w is p for p in priority)]
    rng.shuffle(others)
    return priority + others


class ScheduleGrid:
    """
    The date -> worker -> mark table.
    Cells are write-once: assign() refuses to replace an existing mark unless asked to.
    """

    def __init__(self, dates: List[date]):
        self.dates = list(dates)
        self._date_set = set(self.dates)
        self.cells: Dict[date, Dict[str, ShiftMark]] = {d: {} for d in self.dates}

    def __contains__(self, d: date) -> bool:
        return d in self._date_set

    def get(self, d: date, name: str) -> Optional[ShiftMark]:
        return self.cells.get(d, {}).get(name)

    def is_set(self, d: date, name: str) -> bool:
        return name in self.cells.get(d, {})

    def assign(self, d: date, name: str, mark: ShiftMark, overwrite: bool = False) -> bool:
        """Write a mark; returns False if the date is outside the month or the cell is taken."""
        if d not in self._date_set:
            return False
        if not overwrite and name in self.cells[d]:
            return False
        self.cells[d][name] = mark
        return True

    # ---------- read-only aggregate queries ----------

    def marks_on(self, d: date) -> List[ShiftMark]:
        return list(self.cells.get(d, {}).values())

    def count_on(self, d: date, mark: ShiftMark) -> int:
        """Headcount of a mark on one date."""
        return sum(1 for m in self.cells.get(d, {}).values() if m == mark)

    def names_with(self, d: date, mark: ShiftMark) -> List[str]:
        return [name for name, m in self.cells.get(d, {}).items() if m == mark]

    def count_for(self, name: str, mark: ShiftMark) -> int:
        """How many times a worker holds a mark across the month."""
        return sum(1 for day in self.cells.values() if day.get(name) == mark)

    def worker_marks(self, name: str) -> Iterable[Tuple[date, ShiftMark]]:
        for d in self.dates:
            mark = self.cells[d].get(name)
            if mark is not None:
                yield d, mark

    def weekly_hours(self, name: str, d: date) -> int:
        """Hours booked in the Monday-started week containing d, clipped to the month."""
        start = week_start_monday(d)
        total = 0
        for i in range(7):
            mark = self.get(start + timedelta(days=i), name)
            if mark is not None:
                total += SHIFT_HOURS.get(mark, 0)
        return total

    def as_dict(self) -> Dict[date, Dict[str, ShiftMark]]:
        return {d: dict(day) for d, day in self.cells.items()}


def has_preferences(worker: Worker, preference: Optional[str]) -> bool:
    """True when automatic night/weekend assignment is blocked for this worker and date."""
    return (
        bool(preference)
        or preference == FREE_ON_WEEKEND_DAY
        or preference == MORNING_OR_AFTERNOON
        or not worker.works_nights
        or worker.works_weekends is not True
    )


class Scheduler:
    """
    Runs the rule passes over one month.

    Pass order (each pass only writes into empty cells):
    1. Paid holidays, rest after last month's night, preference directives
    2. Weekend/holiday nights (with weekday fallback)
    3. Weekday nights
    4. Weekend balancer (minimum, medium, maximum hour tiers)
    5. Public holiday day shifts
    6. Free days owed for weekend/holiday work
    7-8. Minimum mornings/afternoons with per-worker cap
    9. Morning/afternoon coin flip for weekend-exempt workers
    10. Minimum mornings/afternoons top-up
    11. Maximum mornings/afternoons top-up
    """

    def __init__(
        self,
        year: int,
        month: int,
        workers: List[Worker],
        rules: Optional[RosterRules] = None,
        weekend_workers: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        self.year = year
        self.month = month
        self.rules = rules or RosterRules()
        self.rng = rng or random.Random()
        self.workers = list(workers)

        if weekend_workers is None:
            weekend_workers = count_weekend_workers(self.workers)
        self.weekend_workers = weekend_workers

        self.dates = get_month_dates(year, month)
        self.grid = ScheduleGrid(self.dates)

        # Preferences only matter inside the target month
        for worker in self.workers:
            parsed = parse_preferences(worker.favorite_schedule_text, year, month)
            worker.preferences = {d: v for d, v in parsed.items() if d in self.grid}
            worker.holiday_ranges = parse_holiday_intervals(worker.holiday_intervals)

        self.ordered_workers = prioritize_workers(self.workers, self.rules.priority_worker, self.rng)

    # ==================== CALENDAR ====================

    def is_holiday(self, d: date) -> bool:
        """Public holiday check."""
        return self.rules.is_public_holiday(d)

    def is_weekend_or_friday(self, d: date) -> bool:
        return is_weekend(d) or is_friday(d)

    def is_ordinary_day(self, d: date) -> bool:
        """Monday-Friday and not a public holiday."""
        return not is_weekend(d) and not self.is_holiday(d)

    def _free_cells(self, dates: Optional[Iterable[date]] = None):
        """Yield (date, worker) for every cell still empty at the time it is visited."""
        for d in (self.dates if dates is None else dates):
            for worker in self.ordered_workers:
                if not self.grid.is_set(d, worker.name):
                    yield d, worker

    # ==================== MAIN ====================

    def generate_schedule(self) -> ScheduleGrid:
        """Run every pass in order and return the filled grid."""
        self._pass_holidays_and_preferences()
        self._pass_weekend_nights()
        self._pass_weekday_nights()
        self._pass_weekend_balancer()
        self._pass_public_holiday_day_shifts()
        self._pass_free_days()
        self._pass_minimum_shift(ShiftMark.MORNING, self.rules.min_morning_persons,
                                 self.rules.max_mornings_per_worker)
        self._pass_minimum_shift(ShiftMark.AFTERNOON, self.rules.min_afternoon_persons,
                                 self.rules.max_afternoons_per_worker)
        self._pass_weekend_exempt_split()
        self._pass_top_up(ShiftMark.MORNING, self.rules.min_morning_persons)
        self._pass_top_up(ShiftMark.AFTERNOON, self.rules.min_afternoon_persons)
        self._pass_top_up(ShiftMark.MORNING, self.rules.max_morning_persons)
        self._pass_top_up(ShiftMark.AFTERNOON, self.rules.max_afternoon_persons)

        logger.info(
            "Generated roster for %d-%02d: %d workers, %d cells filled",
            self.year, self.month, len(self.workers),
            sum(len(day) for day in self.grid.cells.values()),
        )
        return self.grid

    # ==================== PASS 1: HOLIDAYS & PREFERENCES ====================

    def _pass_holidays_and_preferences(self):
        for d, worker in self._free_cells():
            if worker.worked_night_last_day_of_prior_month and d.day == 1:
                self.grid.assign(d, worker.name, ShiftMark.FREE_AFTER_NIGHT)

            # Paid leave beats the rest day set just above
            if worker.is_on_holiday(d):
                self.grid.assign(d, worker.name, ShiftMark.HOLIDAY, overwrite=True)

            directive = worker.directive_for(d)
            if directive is None:
                continue
            if self.grid.assign(d, worker.name, directive) and directive == ShiftMark.NIGHT:
                self.grid.assign(d + timedelta(days=1), worker.name, ShiftMark.FREE_AFTER_NIGHT)

    # ==================== PASSES 2-3: NIGHTS ====================

    def _has_maximum_nights(self, name: str) -> bool:
        return self.grid.count_for(name, ShiftMark.NIGHT) >= self.rules.max_nights

    def _can_have_night(self, d: date, max_persons: int) -> bool:
        return self.grid.count_on(d, ShiftMark.NIGHT) < max_persons

    def _next_day_is_free(self, worker: Worker, d: date) -> bool:
        next_day = d + timedelta(days=1)
        return (
            not self.grid.is_set(next_day, worker.name)
            and worker.preference_for(next_day) is None
        )

    def _assign_night(self, worker: Worker, d: date):
        self.grid.assign(d, worker.name, ShiftMark.NIGHT)
        # Rest day lands only if still inside the month
        self.grid.assign(d + timedelta(days=1), worker.name, ShiftMark.FREE_AFTER_NIGHT)

    def _try_weekday_night(self, worker: Worker, d: date, max_persons: int) -> bool:
        if (
            self.is_weekend_or_friday(d)
            or self.is_holiday(d)
            or self.grid.is_set(d, worker.name)
            or self._has_maximum_nights(worker.name)
            or not self._can_have_night(d, max_persons)
            or not self._next_day_is_free(worker, d)
        ):
            return False
        self._assign_night(worker, d)
        return True

    def _try_weekend_night(self, worker: Worker, d: date) -> bool:
        if (
            not (self.is_weekend_or_friday(d) or self.is_holiday(d))
            or self._has_maximum_nights(worker.name)
            or not self._can_have_night(d, self.rules.max_weekend_night_persons)
            or not self._next_day_is_free(worker, d)
        ):
            return False
        self._assign_night(worker, d)
        return True

    def _pass_weekend_nights(self):
        """Nights on Friday/weekend/holiday dates, falling back to the weekday rule with the weekend cap."""
        for d, worker in self._free_cells():
            if has_preferences(worker, worker.preference_for(d)):
                continue
            self._try_weekend_night(worker, d)
            self._try_weekday_night(worker, d, self.rules.max_weekend_night_persons)

    def _pass_weekday_nights(self):
        for d, worker in self._free_cells():
            if has_preferences(worker, worker.preference_for(d)):
                continue
            self._try_weekday_night(worker, d, self.rules.max_weekday_night_persons)

    # ==================== PASS 4: WEEKEND BALANCER ====================

    def total_weekend_turn_slots(self) -> int:
        """Friday 1 slot, Saturday 4, Sunday 3."""
        total = 0
        for d in self.dates:
            if is_friday(d):
                total += 1
            elif is_saturday(d):
                total += 4
            elif is_sunday(d):
                total += 3
        return total

    def medium_weekend_hours(self) -> int:
        """
        Hours each weekend worker should cover if slots were spread evenly,
        clamped into [min_weekend_hours, max_weekend_hours].
        """
        rules = self.rules
        if self.weekend_workers <= 0:
            return rules.min_weekend_hours

        turns = round_half_up(self.total_weekend_turn_slots() / self.weekend_workers)
        hours = turns * rules.daily_hours
        return max(rules.min_weekend_hours, min(rules.max_weekend_hours, hours))

    def weekend_turns(self, name: str) -> int:
        """Weighted weekend turns worked: Saturday night 2, Saturday day 1, Sunday any 1, Friday night 1."""
        turns = 0
        for d, mark in self.grid.worker_marks(name):
            if is_saturday(d):
                if mark == ShiftMark.NIGHT:
                    turns += 2
                elif mark in DAY_MARKS:
                    turns += 1
            elif is_sunday(d):
                if mark in WORKING_MARKS:
                    turns += 1
            elif is_friday(d) and mark == ShiftMark.NIGHT:
                turns += 1
        return turns

    def _has_minimum_weekend_turns(self, name: str, hours: int) -> bool:
        return self.weekend_turns(name) >= hours / self.rules.daily_hours

    def _assign_weekend_turns(self, hours: int):
        weekend_dates = [d for d in self.dates if self.is_weekend_or_friday(d)]
        assigned = 0
        for d, worker in self._free_cells(weekend_dates):
            if has_preferences(worker, worker.preference_for(d)):
                continue
            # Fridays are only covered by nights
            if is_friday(d):
                continue
            if self._has_minimum_weekend_turns(worker.name, hours):
                continue

            taken = self.grid.marks_on(d)
            if ShiftMark.MORNING not in taken:
                self.grid.assign(d, worker.name, ShiftMark.MORNING)
                assigned += 1
            elif ShiftMark.AFTERNOON not in taken:
                self.grid.assign(d, worker.name, ShiftMark.AFTERNOON)
                assigned += 1
        logger.debug("Weekend tier %dh: %d turns assigned", hours, assigned)

    def _pass_weekend_balancer(self):
        for hours in (
            self.rules.min_weekend_hours,
            self.medium_weekend_hours(),
            self.rules.max_weekend_hours,
        ):
            self._assign_weekend_turns(hours)

    # ==================== PASS 5: PUBLIC HOLIDAY DAY SHIFTS ====================

    def _pass_public_holiday_day_shifts(self):
        holiday_dates = [d for d in self.dates if self.is_holiday(d)]
        for d, worker in self._free_cells(holiday_dates):
            if has_preferences(worker, worker.preference_for(d)):
                continue
            if self.grid.count_on(d, ShiftMark.MORNING) == 0:
                self.grid.assign(d, worker.name, ShiftMark.MORNING)
            elif self.grid.count_on(d, ShiftMark.AFTERNOON) == 0:
                self.grid.assign(d, worker.name, ShiftMark.AFTERNOON)

    # ==================== PASS 6: FREE DAYS ====================

    def owed_free_days(self, name: str) -> int:
        """
        Free days earned by weekend, Friday and holiday work.

        Ordinary Friday/Sunday night 1, Saturday night 2, weekend day shift 1;
        on public holidays: weekday day shift 1 (night 1), Friday day shift 1,
        Friday night 2, any weekend shift 2.
        """
        owed = 0
        for d, mark in self.grid.worker_marks(name):
            if mark not in WORKING_MARKS:
                continue
            if self.is_holiday(d):
                if is_weekend(d):
                    owed += 2
                elif is_friday(d):
                    owed += 2 if mark == ShiftMark.NIGHT else 1
                else:
                    owed += 1
            elif mark == ShiftMark.NIGHT:
                if is_saturday(d):
                    owed += 2
                elif is_friday(d) or is_sunday(d):
                    owed += 1
            elif is_weekend(d):
                owed += 1
        return owed

    def _pass_free_days(self):
        balance = Counter({w.name: self.owed_free_days(w.name) for w in self.ordered_workers})
        ordinary = [d for d in self.dates if self.is_ordinary_day(d)]
        for d, worker in self._free_cells(ordinary):
            if balance[worker.name] <= 0:
                continue
            if self.grid.count_on(d, ShiftMark.FREE_DAY) >= self.rules.max_free_days_per_date:
                continue
            self.grid.assign(d, worker.name, ShiftMark.FREE_DAY)
            balance[worker.name] -= 1

    # ==================== PASSES 7-11: DAY SHIFTS ====================

    def _under_weekly_cap(self, name: str, d: date) -> bool:
        return self.grid.weekly_hours(name, d) < self.rules.max_weekly_hours

    def _fill_day_shift(self, mark: ShiftMark, max_persons: int, per_worker_cap: Optional[int] = None):
        ordinary = [d for d in self.dates if self.is_ordinary_day(d)]
        for d, worker in self._free_cells(ordinary):
            # Weekend-exempt workers get their ordinary days from the coin-flip pass
            if not worker.works_weekends:
                continue
            if self.grid.count_on(d, mark) >= max_persons:
                continue
            if not self._under_weekly_cap(worker.name, d):
                continue
            if per_worker_cap is not None and self.grid.count_for(worker.name, mark) >= per_worker_cap:
                continue
            self.grid.assign(d, worker.name, mark)

    def _pass_minimum_shift(self, mark: ShiftMark, min_persons: int, per_worker_cap: int):
        self._fill_day_shift(mark, min_persons, per_worker_cap)

    def _pass_weekend_exempt_split(self):
        ordinary = [d for d in self.dates if self.is_ordinary_day(d)]
        for d, worker in self._free_cells(ordinary):
            if worker.works_weekends:
                continue
            mark = ShiftMark.MORNING if self.rng.random() < 0.5 else ShiftMark.AFTERNOON
            self.grid.assign(d, worker.name, mark)

    def _pass_top_up(self, mark: ShiftMark, max_persons: int):
        self._fill_day_shift(mark, max_persons)

    # ==================== RESULTS ====================

    def get_schedule_dict(self) -> Dict[Tuple[str, date], str]:
        """Return schedule as (name, date) -> code."""
        return {
            (name, d): mark.code
            for d, day in self.grid.cells.items()
            for name, mark in day.items()
        }

    def get_worker_stats(self) -> Dict[str, dict]:
        """Per-worker mark counts, weekend turns and owed free days, in input order."""
        stats = {}
        for worker in sorted(self.workers, key=lambda w: w.order_index):
            name = worker.name
            stats[name] = {
                "nights": self.grid.count_for(name, ShiftMark.NIGHT),
                "mornings": self.grid.count_for(name, ShiftMark.MORNING),
                "afternoons": self.grid.count_for(name, ShiftMark.AFTERNOON),
                "free_days": self.grid.count_for(name, ShiftMark.FREE_DAY),
                "holidays": self.grid.count_for(name, ShiftMark.HOLIDAY),
                "weekend_turns": self.weekend_turns(name),
                "owed_free_days": self.owed_free_days(name),
            }
        return stats

    def get_coverage_summary(self) -> List[dict]:
        """Get coverage summary for each day."""
        summary = []
        for d in self.dates:
            summary.append({
                "date": d,
                "day_of_week": d.strftime("%a"),
                "is_weekend": is_weekend(d),
                "is_holiday": self.is_holiday(d),
                "morning_coverage": self.grid.count_on(d, ShiftMark.MORNING),
                "afternoon_coverage": self.grid.count_on(d, ShiftMark.AFTERNOON),
                "night_coverage": self.grid.count_on(d, ShiftMark.NIGHT),
                "morning_staff": self.grid.names_with(d, ShiftMark.MORNING),
                "afternoon_staff": self.grid.names_with(d, ShiftMark.AFTERNOON),
                "night_staff": self.grid.names_with(d, ShiftMark.NIGHT),
            })
        return summary


# ==================== LOADING ====================

def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value != value:  # NaN from pandas
        return ""
    text = str(value).strip()
    return "" if text.lower() == "nan" else text


def _flag(value, default: bool, true_literal: Optional[str] = None, false_literal: Optional[str] = None) -> bool:
    """Decode a DA/NU cell; blank falls back to the default."""
    if isinstance(value, bool):
        return value
    text = _cell_text(value).upper()
    if not text:
        return default
    if true_literal is not None:
        return text == true_literal
    return text != false_literal


def count_weekend_workers(workers: Iterable[Worker]) -> int:
    return sum(1 for w in workers if w.works_weekends)


def create_workers_from_dataframe(df) -> Tuple[List[Worker], int]:
    """
    Create Worker objects from the roster sheet.

    Expected columns (Romanian labels or the attribute names):
    - Nume / name: str
    - Interval concediu / holiday_interval: "2023-06-10:2023-06-12, ..."
    - Preferinte program / favorite_schedule_time: "1|3(D), 2023-06-05(L), ..."
    - A muncit noaptea ultimei zile din luna trecuta / last_working_month_night: DA/NU
    - Lucreaza de noaptea / working_on_night: DA/NU
    - Lucreaza in weekend / working_on_weekend: DA/NU

    Returns:
        (workers in input order, number of workers available on weekends);
        a row repeating an earlier name is dropped
    """
    known = set(TABLE_MAP_COLUMNS.values())
    columns = {}
    for col in df.columns:
        label = str(col).strip()
        attr = TABLE_MAP_COLUMNS.get(label, label if label in known else None)
        if attr is None:
            logger.warning("Ignoring unknown column %r", label)
            continue
        columns[col] = attr

    workers = []
    seen = set()
    for _, row in df.iterrows():
        values = {attr: row.get(col) for col, attr in columns.items()}
        name = _cell_text(values.get("name"))
        if not name:
            continue
        if name in seen:
            logger.warning("Dropping duplicate worker row %r", name)
            continue
        seen.add(name)

        workers.append(Worker(
            name=name,
            holiday_intervals=_cell_text(values.get("holiday_interval")),
            favorite_schedule_text=_cell_text(values.get("favorite_schedule_time")),
            worked_night_last_day_of_prior_month=_flag(
                values.get("last_working_month_night"), False, true_literal=YES
            ),
            works_nights=_flag(values.get("working_on_night"), True, false_literal=NO),
            works_weekends=_flag(values.get("working_on_weekend"), True, true_literal=YES),
            order_index=len(workers),
        ))

    return workers, count_weekend_workers(workers)
