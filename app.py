"""
Radiology Duty Roster - Streamlit UI
Monthly roster generator for the radiology department
"""

import calendar
import io
import random
from datetime import date

import pandas as pd
import streamlit as st

from roster_io import InputError, OutputError, read_worker_sheet, write_roster_excel
from rules import ShiftMark, default_rules
from scheduler_logic import Scheduler, create_workers_from_dataframe
from utils import (
    create_roster_dataframe,
    create_statistics_dataframe,
    find_unparsed_tokens,
    get_target_month,
    parse_date_list,
    parse_seed,
)


def collect_input_warnings(workers) -> list:
    """
    Check preference and holiday text for tokens the parser will ignore.
    Returns a list of warning messages.
    """
    warnings = []
    for worker in workers:
        skipped = find_unparsed_tokens(worker.favorite_schedule_text, worker.holiday_intervals)
        for token in skipped:
            warnings.append(f"**{worker.name}**: ignored unrecognized entry '{token}'")
        if worker.works_weekends is False and worker.works_nights:
            warnings.append(f"**{worker.name}**: does not work weekends, so no automatic nights either")
    return warnings


# Page configuration
st.set_page_config(
    page_title="Radiology Duty Roster",
    layout="wide",
    initial_sidebar_state="expanded",
)


def init_session_state():
    """Initialize session state variables."""
    defaults = {
        "worker_df": None,
        "roster_df": None,
        "stats_df": None,
        "coverage_summary": None,
        "roster_dates": None,
        "public_holidays": set(),
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def render_sidebar():
    """Render the sidebar with configuration options."""
    st.sidebar.header("Roster Configuration")

    default_year, default_month = get_target_month()
    col1, col2 = st.sidebar.columns(2)
    with col1:
        year = st.number_input("Year", min_value=2023, max_value=2035, value=default_year, step=1)
    with col2:
        month = st.selectbox(
            "Month",
            options=list(range(1, 13)),
            format_func=lambda x: calendar.month_name[x],
            index=default_month - 1,
        )

    st.sidebar.divider()

    st.sidebar.subheader("Public Holidays")
    shipped = ",".join(d.isoformat() for d in sorted(default_rules(int(year)).public_holidays))
    holidays_str = st.sidebar.text_area(
        "Holiday dates (comma-separated)",
        value=shipped,
        help="ISO dates, e.g. 2023-06-01,2023-06-04",
    )

    seed_str = st.sidebar.text_input("Random seed (optional)", value="")

    st.sidebar.divider()

    st.sidebar.subheader("Shift Legend")
    st.sidebar.markdown("""
    - **D** = Morning
    - **DM** = Afternoon
    - **N** = Night (followed by a rest day)
    - **L** = Free day
    - **CO** = Paid holiday
    """)

    return int(year), int(month), holidays_str, seed_str


def render_upload():
    """Render the worker spreadsheet upload."""
    st.subheader("Workers")

    uploaded_file = st.file_uploader(
        "Upload worker spreadsheet",
        type=["xlsx", "xlsm", "xltx", "xls", "xlsb"],
        help="Columns: Nume, Interval concediu, Preferinte program, "
             "A muncit noaptea ultimei zile din luna trecuta, Lucreaza de noaptea, Lucreaza in weekend",
    )

    if uploaded_file is not None:
        try:
            st.session_state.worker_df = read_worker_sheet(uploaded_file)
        except InputError as e:
            st.session_state.worker_df = None
            st.error(str(e))

    if st.session_state.worker_df is not None:
        st.dataframe(st.session_state.worker_df, use_container_width=True, hide_index=True)

    return st.session_state.worker_df is not None


def generate_roster(year, month, holidays_str, seed_str):
    """Generate the roster based on current configuration."""
    rules = default_rules(year).with_holidays(parse_date_list(holidays_str))
    workers, weekend_workers = create_workers_from_dataframe(st.session_state.worker_df)

    if not workers:
        st.error("No named workers found in the spreadsheet!")
        return False

    warnings = collect_input_warnings(workers)
    if warnings:
        with st.expander(f"**Input Warnings ({len(warnings)})**", expanded=True):
            for warning in warnings:
                st.warning(warning)

    seed = parse_seed(seed_str)
    if seed is None and seed_str.strip():
        st.warning(f"Seed '{seed_str}' is not a whole number, using a random one.")
    scheduler = Scheduler(
        year,
        month,
        workers,
        rules=rules,
        weekend_workers=weekend_workers,
        rng=random.Random(seed),
    )
    grid = scheduler.generate_schedule()

    st.session_state.roster_df = create_roster_dataframe(
        workers, scheduler.dates, grid, rules.public_holidays
    )
    st.session_state.stats_df = create_statistics_dataframe(scheduler.get_worker_stats())
    st.session_state.coverage_summary = scheduler.get_coverage_summary()
    st.session_state.roster_dates = scheduler.dates
    st.session_state.public_holidays = set(rules.public_holidays)
    st.session_state.current_year = year
    st.session_state.current_month = month
    return True


def render_roster_table():
    """Render the generated roster."""
    if st.session_state.roster_df is None:
        return

    st.subheader("Generated Roster")

    roster_df = st.session_state.roster_df
    dates = st.session_state.roster_dates
    holidays = st.session_state.public_holidays
    fills = {}
    for d, col in zip(dates, roster_df.columns):
        if d in holidays:
            fills[col] = "background-color: #F8D7DA"
        elif d.weekday() in (5, 6):
            fills[col] = "background-color: #FFF3CD"

    def highlight_marks(val):
        if val == ShiftMark.NIGHT.code:
            return "color: #1F4E79; font-weight: bold"
        if val == ShiftMark.HOLIDAY.code:
            return "color: #7F6000"
        return ""

    def highlight_columns(col):
        return [fills.get(col.name, "")] * len(col)

    styled_df = roster_df.style.map(highlight_marks).apply(highlight_columns, axis=0)
    st.dataframe(styled_df, use_container_width=True, height=500)

    col1, col2 = st.columns(2)
    with col1:
        st.markdown("🟡 **Weekend**")
    with col2:
        st.markdown("🔴 **Public holiday**")


def render_statistics():
    """Render statistics panel."""
    if st.session_state.stats_df is None:
        return

    st.subheader("Worker Statistics")
    stats_df = st.session_state.stats_df
    st.dataframe(
        stats_df.style.highlight_max(subset=["Night", "Weekend turns"], color="#FFCCCB"),
        use_container_width=True,
        hide_index=True,
    )


def render_coverage_summary():
    """Render daily coverage summary."""
    if st.session_state.coverage_summary is None:
        return

    with st.expander("Daily Coverage Details"):
        coverage_data = []
        for day_info in st.session_state.coverage_summary:
            coverage_data.append({
                "Date": day_info["date"].strftime("%Y-%m-%d"),
                "Day": day_info["day_of_week"],
                "Weekend": "Yes" if day_info["is_weekend"] else "",
                "Holiday": "Yes" if day_info["is_holiday"] else "",
                "D #": day_info["morning_coverage"],
                "DM #": day_info["afternoon_coverage"],
                "N #": day_info["night_coverage"],
                "Night Staff": ", ".join(day_info["night_staff"]),
            })
        st.dataframe(pd.DataFrame(coverage_data), use_container_width=True, hide_index=True)


def render_export_options():
    """Render the roster download."""
    if st.session_state.roster_df is None:
        return

    st.subheader("Export")
    buffer = io.BytesIO()
    try:
        write_roster_excel(
            st.session_state.roster_df,
            buffer,
            st.session_state.roster_dates,
            st.session_state.public_holidays,
        )
    except OutputError as e:
        st.error(str(e))
        return

    st.download_button(
        label="Download Roster (Excel)",
        data=buffer.getvalue(),
        file_name=f"roster_{st.session_state.current_year}_{st.session_state.current_month:02d}.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )


def main():
    """Main application entry point."""
    st.title("Radiology Duty Roster")
    st.caption(f"Today is {date.today():%d/%m/%Y}; rosters are generated one month at a time.")

    init_session_state()
    year, month, holidays_str, seed_str = render_sidebar()

    tab1, tab2, tab3 = st.tabs(["Workers", "Roster", "Statistics"])

    with tab1:
        has_workers = render_upload()
        st.divider()
        if st.button("Generate Roster", type="primary", disabled=not has_workers, use_container_width=True):
            if generate_roster(year, month, holidays_str, seed_str):
                st.success(f"Roster for {calendar.month_name[month]} {year} generated!")

    with tab2:
        if st.session_state.roster_df is not None:
            render_roster_table()
            render_coverage_summary()
            render_export_options()
        else:
            st.info("Upload the worker spreadsheet and click 'Generate Roster'.")

    with tab3:
        if st.session_state.roster_df is not None:
            render_statistics()
        else:
            st.info("Generate a roster to view statistics.")


if __name__ == "__main__":
    main()
