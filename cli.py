#!/usr/bin/env python3
"""
Command-line entry point: read the worker spreadsheet, generate next month's roster, write it out.
"""

import argparse
import logging
import random
import sys
from typing import List, Optional

from roster_io import InputError, OutputError, read_worker_sheet, write_roster_excel
from rules import default_rules
from scheduler_logic import Scheduler, create_workers_from_dataframe
from utils import create_roster_dataframe, get_target_month, parse_date_list, parse_month_arg

logger = logging.getLogger(__name__)

DEFAULT_INPUT = "timetable-input.xlsx"
DEFAULT_OUTPUT = "timetable-output.xlsx"


class UsageError(Exception):
    """A command-line argument could not be interpreted."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate the radiology duty roster")
    parser.add_argument("--input", "-i", default=DEFAULT_INPUT, help="Worker spreadsheet")
    parser.add_argument("--output", "-o", default=DEFAULT_OUTPUT, help="Roster spreadsheet to write")
    parser.add_argument("--month", help="Target month as YYYY-MM (default: next month after the 1st)")
    parser.add_argument(
        "--holidays",
        help="Public holidays as comma-separated ISO dates (default: shipped calendar for the year)",
    )
    parser.add_argument("--seed", type=int, help="Random seed for worker order and shift coin flips")
    parser.add_argument("--verbose", "-v", action="store_true")
    return parser


def run(args: argparse.Namespace) -> int:
    if args.month:
        try:
            year, month = parse_month_arg(args.month)
        except ValueError as e:
            raise UsageError(str(e)) from e
    else:
        year, month = get_target_month()
    rules = default_rules(year)
    if args.holidays is not None:
        rules = rules.with_holidays(parse_date_list(args.holidays))

    df = read_worker_sheet(args.input)
    workers, weekend_workers = create_workers_from_dataframe(df)
    if not workers:
        raise InputError("No named workers found in the spreadsheet.")

    scheduler = Scheduler(
        year,
        month,
        workers,
        rules=rules,
        weekend_workers=weekend_workers,
        rng=random.Random(args.seed),
    )
    grid = scheduler.generate_schedule()

    roster_df = create_roster_dataframe(workers, scheduler.dates, grid, rules.public_holidays)
    write_roster_excel(roster_df, args.output, scheduler.dates, rules.public_holidays)
    print(f"Roster for {year}-{month:02d} written to {args.output}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    try:
        return run(args)
    except (InputError, OutputError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except UsageError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
