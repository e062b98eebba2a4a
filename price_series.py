from __future__ import annotations

import datetime as dt
import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence

import pandas as pd
import pytz

TZ_HELSINKI = pytz.timezone("Europe/Helsinki")

TAX_MULTIPLIER = 1.24             # VAT 24 %
UPDATE_CUTOFF_UTC = dt.time(12, 0)  # next-day prices are published around noon UTC
MIN_REFRESH_SECONDS = 60
SERIES_RETAIN_DAYS = 2
RELOAD_WINDOW_HOURS = (14, 16)    # local hours in which a missing tomorrow triggers a reload
TOMORROW_CHECK_INTERVAL = pd.Timedelta(minutes=15)
ONE_HOUR = pd.Timedelta(hours=1)

# upper limit (c/kWh) -> bar colour, first match wins
PRICE_COLORS = (
    (5.0, "#087E8B"),
    (20.0, "#FFE548"),
    (40.0, "#FFB20F"),
    (60.0, "#FF7F27"),
)
PRICE_COLOR_FALLBACK = "#FF4B3E"
UNKNOWN_PRICE = "-"

SERIES_COLUMNS = ["ts", "price", "label"]

logger = logging.getLogger(__name__)


class PriceDataError(Exception):
    """Raised when the price data cannot be turned into something displayable."""


class DataUnavailableError(PriceDataError):
    """Raised when none of the requested dates produced any price data."""


@dataclass(frozen=True)
class RefreshDecision:
    valid_until: pd.Timestamp
    seconds_remaining: int


@dataclass(frozen=True)
class PriceCycle:
    """Everything one retrieval cycle hands to the page."""
    series: pd.DataFrame
    refresh: RefreshDecision
    fetched_at: pd.Timestamp


def _as_utc(now) -> pd.Timestamp:
    ts = pd.Timestamp(now)
    if ts.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    return ts.tz_convert("UTC")


def empty_series() -> pd.DataFrame:
    return pd.DataFrame({
        "ts": pd.Series(dtype="datetime64[ns, UTC]"),
        "price": pd.Series(dtype=float),
        "label": pd.Series(dtype=object),
    })

# ---------------------------------------------------------
# Normalizer
# ---------------------------------------------------------

def normalize_day_prices(
    body: Optional[Mapping[str, Any]],
    tax_multiplier: float = TAX_MULTIPLIER,
) -> pd.DataFrame:
    """
    Turn one parsed day file into hourly rows.

    Returns DataFrame: ts (UTC), price (tax inclusive, c/kWh), label (price as
    whole cents). A missing or malformed body gives an empty frame; single hour
    records that cannot be read are skipped.
    """
    if body is None:
        return empty_series()
    if not isinstance(body, Mapping):
        logger.warning(f"Ignoring day record of type {type(body).__name__}")
        return empty_series()

    hour_prices = body.get("hourPrices")
    if not isinstance(hour_prices, list):
        logger.warning(f"Day record {body.get('date', '?')} has no hourPrices list")
        return empty_series()

    rows = []
    skipped = 0
    for rec in hour_prices:
        if not isinstance(rec, Mapping) or rec.get("price") is None:
            skipped += 1
            continue
        start_time = rec.get("startTime")
        if isinstance(start_time, bool) or not isinstance(start_time, (str, int, float)):
            skipped += 1
            continue
        try:
            ts = pd.to_datetime(start_time, utc=True)
            price = float(rec["price"]) * tax_multiplier
        except (TypeError, ValueError, OverflowError):
            skipped += 1
            continue
        if pd.isna(ts) or not math.isfinite(price):
            skipped += 1
            continue
        rows.append({"ts": ts, "price": price})

    if skipped:
        logger.warning(f"Skipped {skipped} unreadable hour records in {body.get('date', '?')}")
    if not rows:
        return empty_series()

    df = pd.DataFrame(rows).sort_values("ts", kind="stable").reset_index(drop=True)
    df["label"] = df["price"].map(price_label)
    return df[SERIES_COLUMNS]

# ---------------------------------------------------------
# Assembler
# ---------------------------------------------------------

def assemble_series(day_frames: Iterable[Optional[pd.DataFrame]]) -> pd.DataFrame:
    """
    Merge per-date frames (given oldest date first) into one series.

    Only the SERIES_RETAIN_DAYS most recent dates that produced rows are kept.
    Raises DataUnavailableError when no date produced anything.
    """
    resolved = [df for df in day_frames if df is not None and not df.empty]
    if not resolved:
        raise DataUnavailableError("No price data available for the requested dates.")

    kept = resolved[-SERIES_RETAIN_DAYS:]
    series = (
        pd.concat(kept, ignore_index=True)
        .sort_values("ts", kind="stable")
        .drop_duplicates(subset="ts", keep="first")
        .reset_index(drop=True)
    )
    logger.info(
        f"Assembled {len(series)} hourly prices from {len(kept)} of {len(resolved)} available days"
    )
    return series


def build_price_cycle(
    results: Sequence[Any],
    now: dt.datetime,
    tax_multiplier: float = TAX_MULTIPLIER,
) -> PriceCycle:
    """Normalize fetch results (objects with a `.body`), assemble them and schedule the next refresh."""
    frames = [normalize_day_prices(r.body, tax_multiplier=tax_multiplier) for r in results]
    series = assemble_series(frames)
    refresh = compute_refresh(series, now)
    logger.info(f"Price data valid until {refresh.valid_until.isoformat()} ({refresh.seconds_remaining}s)")
    return PriceCycle(series=series, refresh=refresh, fetched_at=_as_utc(now))

# ---------------------------------------------------------
# Refresh scheduling
# ---------------------------------------------------------

def compute_refresh(
    series: pd.DataFrame,
    now: dt.datetime,
    cutoff: dt.time = UPDATE_CUTOFF_UTC,
    min_seconds: int = MIN_REFRESH_SECONDS,
) -> RefreshDecision:
    """
    How long the assembled series can be served before a refetch is worth it.

    Before tomorrow's prices are in the series the next look is today at the
    cutoff; once they are, the next look is tomorrow at the cutoff.
    """
    now_utc = _as_utc(now)
    next_update = now_utc.normalize() + pd.Timedelta(hours=cutoff.hour, minutes=cutoff.minute)
    if not series.empty and series["ts"].iloc[-1].tz_convert("UTC").date() > now_utc.date():
        next_update += pd.Timedelta(days=1)

    seconds = max(math.floor((next_update - now_utc).total_seconds()), min_seconds)
    return RefreshDecision(
        valid_until=now_utc + pd.Timedelta(seconds=seconds),
        seconds_remaining=seconds,
    )


def should_reload_for_tomorrow(
    series: pd.DataFrame,
    now: dt.datetime,
    tz: dt.tzinfo = TZ_HELSINKI,
) -> bool:
    """True in the early afternoon (local) while tomorrow's prices are still missing."""
    now_utc = _as_utc(now)
    start_hour, end_hour = RELOAD_WINDOW_HOURS
    if not start_hour <= now_utc.tz_convert(tz).hour < end_hour:
        return False
    tomorrow = (now_utc + pd.Timedelta(days=1)).date()
    if series.empty:
        return True
    return int((series["ts"].dt.date == tomorrow).sum()) <= 2


def cycle_is_stale(
    cycle: PriceCycle,
    now: dt.datetime,
    check_interval: pd.Timedelta = TOMORROW_CHECK_INTERVAL,
) -> bool:
    """
    Whether a cached cycle should be refetched: its refresh window has run out,
    or it is at least `check_interval` old and tomorrow's prices are still missing
    in the afternoon.
    """
    now_utc = _as_utc(now)
    if now_utc >= cycle.refresh.valid_until:
        return True
    if now_utc - cycle.fetched_at < check_interval:
        return False
    return should_reload_for_tomorrow(cycle.series, now_utc)

# ---------------------------------------------------------
# Current position & summary
# ---------------------------------------------------------

def find_current_index(series: pd.DataFrame, now: dt.datetime) -> Optional[int]:
    """Position of the hour [ts, ts + 1h) that contains `now`, or None."""
    if series.empty:
        return None
    now_utc = _as_utc(now)
    starts = series["ts"]
    hits = ((starts <= now_utc) & (now_utc < starts + ONE_HOUR)).to_numpy().nonzero()[0]
    if len(hits) == 0:
        return None
    return int(hits[0])


def current_price_text(series: pd.DataFrame, index: Optional[int]) -> str:
    if index is None:
        return UNKNOWN_PRICE
    return f"{float(series['price'].iloc[index]):.2f}"


def price_stats(series: pd.DataFrame) -> tuple[float, float, float]:
    """(min, avg, max) of the series prices."""
    prices = series["price"].astype(float)
    return float(prices.min()), float(prices.mean()), float(prices.max())


def price_color(value: float) -> str:
    for upper_limit, color in PRICE_COLORS:
        if value <= upper_limit:
            return color
    return PRICE_COLOR_FALLBACK


def price_label(value: float) -> str:
    """Whole-cent bar label, halves rounded away from zero."""
    sign = "-" if value < 0 else ""
    return f"{sign}{math.floor(abs(value) + 0.5)}"
