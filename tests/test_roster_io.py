from __future__ import annotations

import random
from datetime import date

import pandas as pd
import pytest
from openpyxl import load_workbook

import cli
from roster_io import InputError, OutputError, read_worker_sheet, write_roster_excel
from rules import RosterRules, ShiftMark, default_rules
from scheduler_logic import ScheduleGrid, Scheduler, create_workers_from_dataframe
from utils import (
    create_roster_dataframe,
    format_date_header,
    get_month_dates,
    parse_roster_cell,
    render_cell,
)

HEADERS = [
    "Nume",
    "Interval concediu",
    "Preferinte program",
    "A muncit noaptea ultimei zile din luna trecuta",
    "Lucreaza de noaptea",
    "Lucreaza in weekend",
]


def _write_input(path, rows) -> None:
    pd.DataFrame(rows, columns=HEADERS).to_excel(path, index=False)


def _sample_rows():
    return [
        ["Ana", "2023-06-10:2023-06-12", "", "DA", "DA", "DA"],
        ["Bogdan", "", "1|3(D)", "NU", "DA", "DA"],
        ["", "", "", "", "", ""],
        ["Pintican", "", "", "NU", "NU", "DA"],
        ["Cristi", "", "2023-06-14(N)", "NU", "DA", "NU"],
        ["Dana", "", "", "NU", "DA", "DA"],
    ]


# ==================== INPUT ====================

def test_missing_file_is_input_error(tmp_path) -> None:
    with pytest.raises(InputError):
        read_worker_sheet(tmp_path / "absent.xlsx")


def test_unsupported_extension_is_input_error(tmp_path) -> None:
    path = tmp_path / "workers.csv"
    path.write_text("Nume\nAna\n", encoding="utf-8")

    with pytest.raises(InputError):
        read_worker_sheet(path)


def test_header_only_sheet_is_input_error(tmp_path) -> None:
    path = tmp_path / "workers.xlsx"
    _write_input(path, [])

    with pytest.raises(InputError):
        read_worker_sheet(path)


def test_corrupt_workbook_is_input_error(tmp_path) -> None:
    path = tmp_path / "workers.xlsx"
    path.write_bytes(b"PK\x03\x04garbage that is not a zip archive")

    with pytest.raises(InputError):
        read_worker_sheet(path)


def test_reads_workers_and_drops_nameless_rows(tmp_path) -> None:
    path = tmp_path / "workers.xlsx"
    _write_input(path, _sample_rows())

    workers, weekend_workers = create_workers_from_dataframe(read_worker_sheet(path))

    assert [w.name for w in workers] == ["Ana", "Bogdan", "Pintican", "Cristi", "Dana"]
    assert weekend_workers == 4
    assert workers[0].worked_night_last_day_of_prior_month is True
    assert workers[2].works_nights is False
    assert workers[3].works_weekends is False


# ==================== ASSEMBLER ====================

def test_render_blanks() -> None:
    holiday = date(2023, 6, 1)
    ordinary = date(2023, 6, 2)
    holidays = {holiday}

    assert render_cell(ShiftMark.FREE_AFTER_NIGHT, ordinary, holidays) == ""
    assert render_cell(ShiftMark.FREE_NATIONAL_DAY, ordinary, holidays) == ""
    assert render_cell(ShiftMark.FREE_DAY, holiday, holidays) == ""
    assert render_cell(ShiftMark.FREE_DAY, ordinary, holidays) == "L"
    assert render_cell(ShiftMark.HOLIDAY, holiday, holidays) == "CO"
    assert render_cell(None, ordinary, holidays) == ""


def test_rendered_cells_read_back_to_their_marks() -> None:
    holidays = {date(2023, 6, 1)}
    blank_on_render = {ShiftMark.FREE_AFTER_NIGHT, ShiftMark.FREE_NATIONAL_DAY}

    for d in (date(2023, 6, 1), date(2023, 6, 2)):
        for mark in ShiftMark:
            text = render_cell(mark, d, holidays)
            if mark in blank_on_render or (mark == ShiftMark.FREE_DAY and d in holidays):
                assert parse_roster_cell(text) is None
            else:
                assert parse_roster_cell(text) == mark
    assert parse_roster_cell(float("nan")) is None


def test_roster_rows_follow_input_order(make_worker) -> None:
    workers = [make_worker(n) for n in ("Ana", "Pintican", "Bogdan")]
    dates = get_month_dates(2023, 6)
    grid = ScheduleGrid(dates)
    grid.assign(date(2023, 6, 15), "Bogdan", ShiftMark.NIGHT)
    grid.assign(date(2023, 6, 16), "Bogdan", ShiftMark.FREE_AFTER_NIGHT)

    df = create_roster_dataframe(list(reversed(workers)), dates, grid, set())

    assert list(df.index) == ["Ana", "Pintican", "Bogdan"]
    assert list(df.columns)[:2] == ["1/6", "2/6"]
    assert df.loc["Bogdan", "15/6"] == "N"
    assert df.loc["Bogdan", "16/6"] == ""
    assert format_date_header(date(2023, 6, 15)) == "15/6"


def test_excel_round_trip_with_weekend_highlight(tmp_path, make_worker) -> None:
    workers = [make_worker(f"W{i}") for i in range(6)]
    rules = default_rules(2023)
    scheduler = Scheduler(2023, 6, workers, rules=rules, rng=random.Random(3))
    grid = scheduler.generate_schedule()
    df = create_roster_dataframe(workers, scheduler.dates, grid, rules.public_holidays)
    out = tmp_path / "roster.xlsx"

    write_roster_excel(df, out, scheduler.dates, rules.public_holidays)

    read_back = pd.read_excel(out, index_col=0)
    assert list(read_back.index) == [w.name for w in workers]
    for worker in workers:
        for d in scheduler.dates:
            expected = render_cell(grid.get(d, worker.name), d, rules.public_holidays)
            assert parse_roster_cell(read_back.loc[worker.name, format_date_header(d)]) == (
                ShiftMark.from_code(expected)
            )

    ws = load_workbook(out).active
    # 3/6/2023 is a Saturday (column D), 6/6/2023 a Tuesday (column G)
    assert ws["D2"].fill.fgColor.rgb.endswith("FFF3CD")
    assert not ws["G2"].fill.fgColor.rgb.endswith("FFF3CD")


def test_unwritable_destination_is_output_error(tmp_path) -> None:
    df = pd.DataFrame({"1/6": ["D"]}, index=["Ana"])
    destination = tmp_path / "missing-dir" / "roster.xlsx"

    with pytest.raises(OutputError):
        write_roster_excel(df, destination, [date(2023, 6, 1)], set())


# ==================== CLI ====================

def test_cli_generates_roster(tmp_path) -> None:
    source = tmp_path / "timetable-input.xlsx"
    out = tmp_path / "timetable-output.xlsx"
    _write_input(source, _sample_rows())

    code = cli.main([
        "--input", str(source), "--output", str(out), "--month", "2023-06", "--seed", "1",
    ])

    assert code == 0
    roster = pd.read_excel(out, index_col=0)
    assert list(roster.index) == ["Ana", "Bogdan", "Pintican", "Cristi", "Dana"]
    assert len(roster.columns) == 30
    assert roster.loc["Ana", "11/6"] == "CO"
    assert roster.loc["Cristi", "14/6"] == "N"


def test_cli_reports_missing_input(tmp_path, capsys) -> None:
    code = cli.main(["--input", str(tmp_path / "nope.xlsx"), "--output", str(tmp_path / "out.xlsx")])

    assert code == 1
    assert "not found" in capsys.readouterr().err
    assert not (tmp_path / "out.xlsx").exists()


def test_cli_custom_holidays(tmp_path) -> None:
    source = tmp_path / "in.xlsx"
    out = tmp_path / "out.xlsx"
    _write_input(source, _sample_rows())

    code = cli.main([
        "-i", str(source), "-o", str(out), "--month", "2023-06", "--holidays", "2023-06-14",
    ])

    assert code == 0
    assert RosterRules().with_holidays([date(2023, 6, 14)]).is_public_holiday(date(2023, 6, 14))


def test_cli_reports_corrupt_input(tmp_path, capsys) -> None:
    source = tmp_path / "in.xlsx"
    source.write_bytes(b"PK\x03\x04garbage that is not a zip archive")

    code = cli.main(["-i", str(source), "-o", str(tmp_path / "out.xlsx"), "--month", "2023-06"])

    assert code == 1
    assert "Could not read spreadsheet" in capsys.readouterr().err


def test_cli_rejects_bad_month(tmp_path, capsys) -> None:
    source = tmp_path / "in.xlsx"
    _write_input(source, _sample_rows())

    code = cli.main(["-i", str(source), "-o", str(tmp_path / "out.xlsx"), "--month", "2023-13"])

    assert code == 2
    assert "Month out of range" in capsys.readouterr().err


def test_cli_does_not_hide_internal_errors(tmp_path, monkeypatch) -> None:
    source = tmp_path / "in.xlsx"
    _write_input(source, _sample_rows())

    def broken(*args, **kwargs):
        raise ValueError("internal failure")

    monkeypatch.setattr(cli, "create_roster_dataframe", broken)

    with pytest.raises(ValueError, match="internal failure"):
        cli.main(["-i", str(source), "-o", str(tmp_path / "out.xlsx"), "--month", "2023-06"])
