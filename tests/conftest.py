import datetime as dt

import pandas as pd
import pytest

from price_series import TZ_HELSINKI, assemble_series, normalize_day_prices


def make_day_body(date: str, prices=None) -> dict:
    """A stored day file for a (non-DST-change) Helsinki date, startTime in UTC ISO format."""
    start = TZ_HELSINKI.localize(dt.datetime.fromisoformat(date)).astimezone(dt.timezone.utc)
    hours = pd.date_range(start, periods=24, freq="1h")
    prices = prices if prices is not None else [float(i) for i in range(24)]
    return {
        "date": date,
        "hourPrices": [
            {"startTime": ts.strftime("%Y-%m-%dT%H:%M:%S.000Z"), "price": price}
            for ts, price in zip(hours, prices)
        ],
    }


@pytest.fixture
def day_bodies():
    # Sunday, Monday, Tuesday in January (UTC+2)
    return [make_day_body(d) for d in ("2024-01-14", "2024-01-15", "2024-01-16")]


@pytest.fixture
def two_day_series(day_bodies):
    return assemble_series([normalize_day_prices(b) for b in day_bodies[:2]])


@pytest.fixture
def three_day_series(day_bodies):
    frames = [normalize_day_prices(b) for b in day_bodies]
    series = pd.concat(frames, ignore_index=True)
    return series
