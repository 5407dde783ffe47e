"""
Spreadsheet input/output for the duty roster.
Reads the worker sheet with pandas and writes the finished roster with openpyxl styling.
"""

import logging
import zipfile
from datetime import date
from pathlib import Path
from typing import Dict, List, Set, Union

import pandas as pd
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils.exceptions import InvalidFileException

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".xlsx", ".xlsm", ".xlsb", ".xltx", ".xls"}

WEEKEND_FILL = PatternFill("solid", fgColor="FFF3CD")
HOLIDAY_FILL = PatternFill("solid", fgColor="F8D7DA")
HEADER_FILL = PatternFill("solid", fgColor="F2F2F2")
FONT_HEADER = Font(bold=True)
ALIGN_CENTER = Alignment(horizontal="center", vertical="center")
THIN = Side(style="thin", color="999999")
THIN_BORDER = Border(left=THIN, right=THIN, top=THIN, bottom=THIN)

SHEET_NAME = "Program"


class InputError(ValueError):
    """The worker spreadsheet is missing, unsupported, unreadable or empty."""


class OutputError(OSError):
    """The roster could not be written to its destination."""


def validate_input_path(path: Union[str, Path]) -> Path:
    path = Path(path)
    if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
        raise InputError(f"Not a spreadsheet file: {path}")
    if not path.is_file():
        raise InputError(f"Input file not found: {path}")
    return path


def read_worker_sheet(source) -> pd.DataFrame:
    """
    Read the first sheet of the worker spreadsheet.

    Args:
        source: Path to the file, or a file-like object (e.g. a Streamlit upload)

    Returns:
        DataFrame with the header row as columns
    """
    if isinstance(source, (str, Path)):
        source = validate_input_path(source)

    try:
        df = pd.read_excel(source, sheet_name=0, header=0, dtype=object)
    except (
        ValueError, ImportError, OSError, KeyError, zipfile.BadZipFile, InvalidFileException,
    ) as e:
        raise InputError(f"Could not read spreadsheet: {e}") from e

    df = df.dropna(how="all")
    if df.empty:
        raise InputError("The worker table is empty.")
    logger.info("Read %d worker rows", len(df))
    return df


def write_roster_excel(
    roster_df: pd.DataFrame,
    destination,
    dates: List[date],
    public_holidays: Set[date],
) -> None:
    """
    Write the roster table, highlighting weekend and public holiday columns.

    Args:
        roster_df: Table from utils.create_roster_dataframe
        destination: Output path or a writable binary buffer
        dates: Month dates, in the same order as the roster columns
        public_holidays: Public holiday calendar
    """
    try:
        with pd.ExcelWriter(destination, engine="openpyxl") as writer:
            roster_df.to_excel(writer, sheet_name=SHEET_NAME)
            ws = writer.sheets[SHEET_NAME]

            column_fills: Dict[int, PatternFill] = {}
            for i, d in enumerate(dates, start=2):  # column A holds names
                if d in public_holidays:
                    column_fills[i] = HOLIDAY_FILL
                elif d.weekday() in (5, 6):
                    column_fills[i] = WEEKEND_FILL

            last_row = len(roster_df.index) + 1
            last_col = len(dates) + 1
            for r in range(1, last_row + 1):
                for c in range(1, last_col + 1):
                    cell = ws.cell(row=r, column=c)
                    cell.border = THIN_BORDER
                    if r == 1 or c == 1:
                        cell.font = FONT_HEADER
                        cell.fill = column_fills.get(c, HEADER_FILL)
                    else:
                        cell.alignment = ALIGN_CENTER
                        if c in column_fills:
                            cell.fill = column_fills[c]

            ws.column_dimensions["A"].width = max(
                [12] + [len(str(name)) + 2 for name in roster_df.index]
            )
    except OSError as e:
        raise OutputError(f"Could not write roster: {e}") from e
    logger.info("Roster written for %d workers", len(roster_df.index))
