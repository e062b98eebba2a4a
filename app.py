# app.py
import datetime as dt
import logging
import os

import streamlit as st

import price_sources
from price_annotations import collect_annotations
from plot_functions import build_price_figure
from price_series import (
    TZ_HELSINKI,
    PriceCycle,
    PriceDataError,
    build_price_cycle,
    current_price_text,
    cycle_is_stale,
    find_current_index,
    price_stats,
)

NOW_RERUN_SECONDS = 60

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("tuntihinnat")

# ---------------------------------------------------------
# Page config
# ---------------------------------------------------------
st.set_page_config(page_title="Tuntihinnat", page_icon="⚡", layout="centered")
st.title("⚡ Tuntihinnat")
st.caption("Sähkön tuntihinnat Suomessa, c/kWh sis. alv 24 %.")

def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)

def _storage_secrets() -> dict:
    """The [storage] table of secrets.toml, if there is one."""
    try:
        return dict(st.secrets.get("storage", {}))
    except FileNotFoundError:
        return {}
# ---------------------------------------------------------
# Hintojen haku
# ---------------------------------------------------------
@st.cache_resource
def get_storage() -> tuple:
    settings = price_sources.load_storage_settings(_storage_secrets())
    if not settings.bucket:
        logger.warning("No bucket configured (TH_AWS_BUCKET)")
    return price_sources.make_s3_client(settings), settings.bucket

@st.cache_data(show_spinner="Haetaan hintoja…")
def load_price_cycle(today: str) -> PriceCycle:
    # `today` only keys the cache so a new local day starts a new cycle
    now = _utc_now()
    client, bucket = get_storage()
    dates = price_sources.window_dates(now)
    results = price_sources.fetch_price_window(client, bucket, dates)
    return build_price_cycle(results, now)

def get_price_cycle(now: dt.datetime) -> PriceCycle:
    today = now.astimezone(TZ_HELSINKI).date().isoformat()
    cycle = load_price_cycle(today)
    if cycle_is_stale(cycle, now):
        logger.info("Cached prices are stale, refetching")
        load_price_cycle.clear()
        cycle = load_price_cycle(today)
    return cycle
# ---------------------------------------------------------
# Theme
# ---------------------------------------------------------
with st.sidebar:
    dark_mode = st.toggle("Tumma teema", value=st.get_option("theme.base") == "dark")
# ---------------------------------------------------------
# Price view, re-evaluated every minute
# ---------------------------------------------------------
@st.fragment(run_every=NOW_RERUN_SECONDS)
def price_view(dark_mode: bool) -> None:
    now = _utc_now()
    try:
        cycle = get_price_cycle(now)
    except PriceDataError as exc:
        st.error(f"⚠️ Hintatietoja ei saatavilla: {exc}")
        st.stop()
    except Exception as exc:
        logger.exception("Loading prices failed")
        st.error(f"⚠️ Odottamaton virhe hintojen haussa: {exc}")
        st.stop()

    series = cycle.series
    current_index = find_current_index(series, now)
    min_price, avg_price, max_price = price_stats(series)

    col_time, col_price = st.columns(2)
    col_time.metric("Kello", now.astimezone(TZ_HELSINKI).strftime("%H.%M"))
    col_price.metric("Hinta nyt", current_price_text(series, current_index))
    st.caption(f"{min_price:.2f} / {avg_price:.2f} / {max_price:.2f} (min / ka / max)")

    annotations = collect_annotations(series, current_index)
    fig = build_price_figure(series, annotations, dark_mode=dark_mode)
    st.plotly_chart(fig, use_container_width=True)

    valid_until = cycle.refresh.valid_until.tz_convert(TZ_HELSINKI)
    st.caption(f"Seuraava päivitys aikaisintaan {valid_until.strftime('%d.%m. %H.%M')}")

price_view(dark_mode)
