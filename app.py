import logging
from contextlib import contextmanager
from datetime import date
from typing import List, Optional, Tuple

import pandas as pd
import streamlit as st

from royalties.auth import ONBOARDING_STEPS, AuthSession
from royalties.config import configure_logging, get_settings
from royalties.csv_export import export_csv, export_filename
from royalties.csv_import import TEMPLATE_CSV, TEMPLATE_FILENAME, ImportResult, parse_csv
from royalties.currency import format_currency, format_number
from royalties.data import prepare_context
from royalties.exceptions import EmptyInputError, RoyaltyError
from royalties.filters import RoyaltyFilters
from royalties.metrics_dashboard import compute_dashboard
from royalties.metrics_reports import compute_reports
from royalties.metrics_royalties import compute_royalties_table
from royalties.models import (
    ANCHOR_CURRENCY,
    DEFAULT_EXCHANGE_RATES,
    QUARTERS,
    RECORD_FIELDS,
    STORES,
    SUPPORTED_CURRENCIES,
    RoyaltyDraft,
    RoyaltyRecord,
)
from royalties.persistence import JsonFileStorage
from royalties.store import RoyaltyStore

configure_logging()
log = logging.getLogger(__name__)

SORT_LABELS = dict(RECORD_FIELDS)
YEAR_MIN, YEAR_MAX = 1900, 2100


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .card-actions {font-size: 0.9rem;color: #0284c7;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str, actions: Optional[str] = None):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header">
            <div class="card-title">{title}</div>
            <div class="card-actions">{actions or ""}</div>
          </div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(filters: RoyaltyFilters) -> str:
    chips = [
        f"Quarter: {filters.quarter or 'All'}",
        f"Year: {filters.year or 'All'}",
        f"Artist: {filters.artist or 'All'}",
        f"Song: {filters.song or 'All'}",
        f"Store: {filters.store or 'All'}",
        f"Sort: {SORT_LABELS.get(filters.sort_by, filters.sort_by)} ({filters.sort_order})",
    ]
    return "".join([f"<span class='chip'>{txt}</span>" for txt in chips])


def render_page_header(title: str, breadcrumb: str, filter_summary_html: str = "", export_records: Optional[List[RoyaltyRecord]] = None):
    inject_base_styles()
    top = st.container()
    c1, c2 = top.columns([7, 3])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        if export_records is not None:
            if export_records:
                st.download_button(
                    "Export CSV",
                    data=export_csv(export_records).encode("utf-8"),
                    file_name=export_filename(),
                    mime="text/csv",
                )
            else:
                st.button("Export CSV", disabled=True, help="No data to export")
    if filter_summary_html:
        st.markdown(f"<div class='chip-row'>{filter_summary_html}</div>", unsafe_allow_html=True)


def render_persistence_status(store: RoyaltyStore):
    status = store.persistence_status
    if status.load_error:
        st.warning(f"Saved data could not be loaded, so sample data is shown. {status.load_error}")
    if not status.ok and status.last_error != status.load_error:
        st.warning(f"Changes are not being saved locally. {status.last_error or ''}")


# ---------- UI setup ----------
st.set_page_config(page_title="Royalty Tracker", layout="wide")
inject_base_styles()


def get_store() -> RoyaltyStore:
    if "royalty_store" not in st.session_state:
        st.session_state["royalty_store"] = RoyaltyStore(JsonFileStorage(get_settings().state_path))
    return st.session_state["royalty_store"]


auth = AuthSession(st.session_state)


def render_login_page():
    st.title("Royalty Tracker")
    st.caption("Track your music royalties across every store, quarter and currency.")
    widget_url = get_settings().login_widget_url
    with card("Sign in"):
        if widget_url:
            st.markdown(f"[Continue to sign in]({widget_url})")
            st.caption("After signing in the widget returns you here with your session.")
        else:
            st.info("Demo mode: the external login widget is not configured.")
            cols = st.columns(2)
            if cols[0].button("Continue as New User (with Onboarding)", use_container_width=True):
                auth.demo_login(new_user=True)
                st.rerun()
            if cols[1].button("Continue as Existing User", use_container_width=True):
                auth.demo_login(new_user=False)
                st.rerun()
            st.caption("This demo includes all features with sample data")


def render_onboarding_page():
    step = int(st.session_state.get("onboarding_step", 0))
    title, question, options = ONBOARDING_STEPS[min(step, len(ONBOARDING_STEPS) - 1)]
    st.title("Welcome!")
    st.caption("Let's set up your account")
    st.progress((step + 1) / len(ONBOARDING_STEPS))
    with card(title):
        st.write(question)
        for option in options:
            if st.button(option, key=f"onboarding_{step}_{option}", use_container_width=True):
                answers = st.session_state.setdefault("onboarding_answers", {})
                answers[step] = option
                if step < len(ONBOARDING_STEPS) - 1:
                    st.session_state["onboarding_step"] = step + 1
                else:
                    auth.complete_onboarding()
                    st.session_state.pop("onboarding_step", None)
                st.rerun()


# ----- Page renderers -----
def render_dashboard_page(store: RoyaltyStore, ctx: dict):
    render_page_header("Dashboard", "Home / Dashboard")
    payload = compute_dashboard(ctx)
    base = payload["base_currency"]
    stats = payload["stats"]

    cols = st.columns(4)
    cols[0].metric("Total Earnings", format_currency(stats["total_earnings"], base), help=f"Royalties dated {stats['year']}, converted to {base}.")
    cols[1].metric("Total Streams", format_number(stats["total_streams"]))
    cols[2].metric("Active Songs", stats["unique_songs"])
    cols[3].metric("Artists", stats["unique_artists"])

    left, right = st.columns(2)
    with left:
        with card("Quarterly Earnings"):
            if payload["quarterly_chart"] is None:
                st.info("No royalty data yet.")
            else:
                st.vega_lite_chart(payload["quarterly_chart"], use_container_width=True)
    with right:
        with card("Top Performing Songs"):
            if not payload["top_songs"]:
                st.info("No songs yet.")
            for rank, song in enumerate(payload["top_songs"], start=1):
                c1, c2 = st.columns([3, 2])
                c1.markdown(f"**{rank}. {song['song_title']}**  \n{song['artist_name']}")
                c2.markdown(f"{format_currency(song['total_earnings'], base)}  \n{format_number(song['total_streams'])} streams")

    with card("Recent Royalties"):
        recent = pd.DataFrame(payload["recent_royalties"])
        if recent.empty:
            st.info("No royalties recorded yet.")
        else:
            recent["earnings"] = recent["converted_amount"].apply(lambda v: format_currency(v, base))
            recent["streams"] = recent["streams"].apply(format_number)
            st.dataframe(
                recent[["song_title", "artist_name", "store", "streams", "earnings", "date"]],
                hide_index=True,
                use_container_width=True,
            )


def year_input_bounds(year: int) -> Tuple[int, int]:
    """Widen the default year range so stored out-of-range years stay editable."""
    return min(YEAR_MIN, year), max(YEAR_MAX, year)


def render_add_royalty_form(store: RoyaltyStore, editing: Optional[RoyaltyRecord] = None):
    key = f"royalty_form_{editing.id if editing else 'new'}"
    year_value = editing.year if editing else date.today().year
    year_min, year_max = year_input_bounds(year_value)
    with st.form(key, clear_on_submit=editing is None):
        c1, c2 = st.columns(2)
        song_title = c1.text_input("Song Title *", value=editing.song_title if editing else "", key=f"{key}_song")
        artist_name = c2.text_input("Artist Name *", value=editing.artist_name if editing else "", key=f"{key}_artist")
        store_options = list(STORES)
        if editing and editing.store not in store_options:
            store_options.append(editing.store)
        store_name = c1.selectbox(
            "Store *", store_options, index=store_options.index(editing.store) if editing else 0, key=f"{key}_store"
        )
        quarter = c2.selectbox("Quarter *", QUARTERS, index=QUARTERS.index(editing.quarter) if editing else 0, key=f"{key}_quarter")
        year = c1.number_input("Year *", min_value=year_min, max_value=year_max, step=1, value=year_value, key=f"{key}_year")
        streams = c2.number_input("Streams *", min_value=0, step=1, value=editing.streams if editing else 0, key=f"{key}_streams")
        amount = c1.number_input(
            "Amount *", min_value=0.0, step=0.01, format="%.2f", value=editing.amount if editing else 0.0, key=f"{key}_amount"
        )
        currency = c2.selectbox(
            "Currency *",
            SUPPORTED_CURRENCIES,
            index=SUPPORTED_CURRENCIES.index(editing.currency) if editing else 0,
            key=f"{key}_currency",
        )
        record_date = c1.date_input("Date *", value=editing.date if editing else date.today(), key=f"{key}_date")
        territory = c2.text_input("Territory", value=editing.territory if editing else "", key=f"{key}_territory")
        submitted = st.form_submit_button("Save Changes" if editing else "Add Royalty")

    if not submitted:
        return
    try:
        draft = RoyaltyDraft(
            song_title=song_title.strip(),
            artist_name=artist_name.strip(),
            store=store_name,
            quarter=quarter,
            year=int(year),
            streams=int(streams),
            amount=float(amount),
            currency=currency,
            date=record_date,
            territory=territory.strip(),
        )
    except RoyaltyError as exc:
        st.error(str(exc))
        return
    if editing:
        store.update_record(draft.to_record(editing.id))
        st.session_state.pop("editing_id", None)
    else:
        store.add_record(draft)
    st.rerun()


def render_import_panel(store: RoyaltyStore):
    st.markdown(
        "Your CSV should contain columns for: " + ", ".join(RECORD_FIELDS.values()) + "."
    )
    st.download_button("Download Template", data=TEMPLATE_CSV.encode("utf-8"), file_name=TEMPLATE_FILENAME, mime="text/csv")

    result: Optional[ImportResult] = st.session_state.get("import_result")
    if result is None:
        uploaded = st.file_uploader("Upload CSV File", type=["csv"], key="import_upload")
        if uploaded is None:
            return
        if not uploaded.name.lower().endswith(".csv"):
            st.error("Please select a CSV file")
            return
        try:
            text = uploaded.getvalue().decode("utf-8-sig")
            st.session_state["import_result"] = parse_csv(text)
        except EmptyInputError:
            st.session_state["import_result"] = ImportResult(errors=["Failed to process file. Please check the file format."])
        except Exception:
            log.exception("CSV import failed")
            st.session_state["import_result"] = ImportResult(errors=["Failed to process file. Please check the file format."])
        st.rerun()

    st.success(f"{result.success} records ready to import")
    if result.has_errors:
        st.error(f"{len(result.errors)} errors")
        lines = [f"- {e}" for e in result.errors[:5]]
        if len(result.errors) > 5:
            lines.append(f"- ... and {len(result.errors) - 5} more errors")
        st.markdown("\n".join(lines))
    if result.imported:
        st.markdown("**Preview of imported data:**")
        preview = [f"- {d.song_title} by {d.artist_name} - {d.store} ({d.currency} {d.amount})" for d in result.imported[:3]]
        if len(result.imported) > 3:
            preview.append(f"- ... and {len(result.imported) - 3} more records")
        st.markdown("\n".join(preview))

    c1, c2 = st.columns(2)
    if c1.button("Back"):
        st.session_state.pop("import_result", None)
        st.rerun()
    if result.success > 0 and c2.button(f"Import {result.success} Records", type="primary"):
        created = store.import_records(result.imported)
        st.session_state.pop("import_result", None)
        st.session_state["flash"] = f"Successfully imported {len(created)} royalty records!"
        st.rerun()


def render_filters(store: RoyaltyStore, options: dict):
    filters = store.filters
    cols = st.columns(7)

    def pick(col, label: str, values: list, current):
        choices = [None] + list(values)
        index = choices.index(current) if current in choices else 0
        return col.selectbox(label, choices, index=index, format_func=lambda v: f"All {label}s" if v is None else str(v))

    quarter = pick(cols[0], "Quarter", list(QUARTERS), filters.quarter)
    year = pick(cols[1], "Year", options["years"], filters.year)
    artist = pick(cols[2], "Artist", options["artists"], filters.artist)
    song = pick(cols[3], "Song", options["songs"], filters.song)
    store_name = pick(cols[4], "Store", options["stores"], filters.store)
    sort_keys = list(SORT_LABELS)
    sort_by = cols[5].selectbox(
        "Sort By",
        sort_keys,
        index=sort_keys.index(filters.sort_by) if filters.sort_by in sort_keys else 0,
        format_func=lambda k: SORT_LABELS[k],
    )
    sort_order = cols[6].selectbox(
        "Order",
        ["desc", "asc"],
        index=0 if filters.sort_order == "desc" else 1,
        format_func=lambda o: "Descending" if o == "desc" else "Ascending",
    )

    changes = dict(quarter=quarter, year=year, artist=artist, song=song, store=store_name, sort_by=sort_by, sort_order=sort_order)
    if changes != {k: getattr(filters, k) for k in changes}:
        store.set_filters(**changes)
        st.rerun()
    if filters.has_active_filters and st.button("Clear all filters"):
        store.reset_filters()
        st.rerun()


def render_royalties_page(store: RoyaltyStore, ctx: dict):
    render_page_header("Royalties", "Home / Royalties", format_filter_summary(store.filters), export_records=store.records)
    payload = compute_royalties_table(ctx)
    base = payload["base_currency"]

    if st.session_state.get("flash"):
        st.success(st.session_state.pop("flash"))

    with st.expander("Add Royalty", expanded=False):
        render_add_royalty_form(store)
    with st.expander("Import CSV Data", expanded=st.session_state.get("import_result") is not None):
        render_import_panel(store)

    with card("Filters"):
        render_filters(store, payload["options"])

    with card(f"Royalty Records ({payload['count']} of {payload['total_count']})"):
        rows = pd.DataFrame(payload["rows"])
        if rows.empty:
            st.info("No royalty records match the current filters.")
            return
        display = pd.DataFrame(
            {
                "Song": rows["song_title"],
                "Artist": rows["artist_name"],
                "Store": rows["store"],
                "Period": rows["quarter"] + " " + rows["year"].astype(str),
                "Streams": rows["streams"].apply(format_number),
                f"Earnings ({base})": rows["converted_amount"].apply(lambda v: format_currency(v, base)),
                "Original": rows.apply(lambda r: format_currency(r["amount"], r["currency"]), axis=1),
                "Date": rows["date"],
            }
        )
        st.dataframe(display, hide_index=True, use_container_width=True)

        labels = {r["id"]: f"{r['song_title']} - {r['artist_name']} ({r['store']}, {r['date']})" for r in payload["rows"]}
        selected = st.selectbox("Select a record", list(labels), format_func=lambda i: labels[i], key="selected_record")
        c1, c2 = st.columns(2)
        if c1.button("Edit"):
            st.session_state["editing_id"] = selected
        if c2.button("Delete"):
            st.session_state["confirm_delete"] = selected

        if st.session_state.get("confirm_delete") == selected:
            st.warning("Are you sure you want to delete this royalty record?")
            d1, d2 = st.columns(2)
            if d1.button("Yes, delete", type="primary"):
                store.delete_record(selected)
                st.session_state.pop("confirm_delete", None)
                st.rerun()
            if d2.button("Cancel"):
                st.session_state.pop("confirm_delete", None)
                st.rerun()

        editing_id = st.session_state.get("editing_id")
        if editing_id:
            try:
                render_add_royalty_form(store, editing=store.get_record(editing_id))
            except RoyaltyError:
                st.session_state.pop("editing_id", None)


def render_reports_page(store: RoyaltyStore, ctx: dict):
    render_page_header("Reports", "Home / Reports", export_records=store.records)
    payload = compute_reports(ctx)
    left, right = st.columns(2)
    with left:
        with card("Artist Performance"):
            if payload["artist_chart"] is None:
                st.info("No data for artists yet.")
            else:
                st.vega_lite_chart(payload["artist_chart"], use_container_width=True)
    with right:
        with card("Store Distribution"):
            if payload["store_chart"] is None:
                st.info("No data for stores yet.")
            else:
                st.vega_lite_chart(payload["store_chart"], use_container_width=True)


def render_settings_page(store: RoyaltyStore):
    render_page_header("Settings", "Home / Settings")
    settings = store.settings
    defaults = st.session_state.pop("settings_defaults", None)
    base_value = defaults["base_currency"] if defaults else settings.base_currency
    rate_values = defaults["exchange_rates"] if defaults else settings.exchange_rates

    with st.form("settings_form"):
        st.subheader("Base Currency")
        st.caption("Select your preferred base currency for displaying converted amounts.")
        base_currency = st.selectbox("Base currency", SUPPORTED_CURRENCIES, index=SUPPORTED_CURRENCIES.index(base_value))
        st.subheader("Exchange Rates")
        st.caption(f"Units of each currency per 1 {ANCHOR_CURRENCY}.")
        rates = {}
        cols = st.columns(3)
        for i, code in enumerate(SUPPORTED_CURRENCIES):
            rates[code] = cols[i % 3].number_input(
                code,
                min_value=0.0001,
                value=float(rate_values.get(code, DEFAULT_EXCHANGE_RATES[code])),
                step=0.01,
                format="%.4f",
                disabled=code == ANCHOR_CURRENCY,
            )
        rates[ANCHOR_CURRENCY] = 1.0
        saved = st.form_submit_button("Save Settings", type="primary")

    if saved:
        try:
            store.update_settings(base_currency=base_currency, exchange_rates=rates)
            st.success("Settings saved successfully!")
        except RoyaltyError as exc:
            st.error(str(exc))
    if st.button("Reset to Defaults"):
        st.session_state["settings_defaults"] = {"base_currency": "USD", "exchange_rates": dict(DEFAULT_EXCHANGE_RATES)}
        st.rerun()


# ----- Routing -----
if not auth.is_authenticated and auth.login_from_params(st.query_params) is not None:
    st.query_params.clear()

if not auth.is_authenticated:
    render_login_page()
    st.stop()

user = auth.user
if user is not None and user.new_user:
    render_onboarding_page()
    st.stop()

royalty_store = get_store()
with st.sidebar:
    st.markdown("### Royalty Tracker")
    nav_choice = st.radio("Navigate", ["Dashboard", "Royalties", "Reports", "Settings"], index=0)
    st.markdown("---")
    st.caption(f"Signed in as {user.user_id if user else ''}")
    if st.button("Logout"):
        auth.logout()
        st.rerun()

render_persistence_status(royalty_store)
try:
    page_ctx = prepare_context(
        royalty_store.records,
        royalty_store.filters,
        royalty_store.settings.base_currency,
        royalty_store.settings.exchange_rates,
    )
except RoyaltyError as exc:
    st.error(f"Cannot compute totals: {exc}. Check the exchange rates in Settings.")
    page_ctx = None

if nav_choice == "Settings" or page_ctx is None:
    render_settings_page(royalty_store)
elif nav_choice == "Dashboard":
    render_dashboard_page(royalty_store, page_ctx)
elif nav_choice == "Royalties":
    render_royalties_page(royalty_store, page_ctx)
elif nav_choice == "Reports":
    render_reports_page(royalty_store, page_ctx)
