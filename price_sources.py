from __future__ import annotations

import datetime as dt
import json
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from price_series import TZ_HELSINKI

logger = logging.getLogger(__name__)

# ---------------------------------------------------------
# Storage settings
# ---------------------------------------------------------
# Day files live in one bucket as "<YYYY-MM-DD>.json", one object per
# Finnish calendar date: {"date": ..., "hourPrices": [{"startTime", "price"}]}
# ---------------------------------------------------------

SETTINGS_ENV = {
    "access_key_id": "TH_AWS_ACCESS_KEY_ID",
    "secret_access_key": "TH_AWS_SECRET_ACCESS_KEY",
    "region": "TH_AWS_REGION",
    "bucket": "TH_AWS_BUCKET",
}
WINDOW_OFFSETS_DAYS = (-1, 0, 1)  # yesterday, today, tomorrow


@dataclass(frozen=True)
class StorageSettings:
    access_key_id: str
    secret_access_key: str
    region: str
    bucket: str


def load_storage_settings(secrets: Optional[Mapping[str, Any]] = None) -> StorageSettings:
    """
    Read bucket credentials. A value in `secrets` (e.g. st.secrets) wins over the
    TH_AWS_* environment variable of the same field.
    """
    secrets = secrets or {}
    values = {}
    for field, env_name in SETTINGS_ENV.items():
        values[field] = str(secrets.get(field) or os.getenv(env_name, ""))
    return StorageSettings(**values)


def make_s3_client(settings: StorageSettings):
    return boto3.client(
        "s3",
        region_name=settings.region or None,
        aws_access_key_id=settings.access_key_id or None,
        aws_secret_access_key=settings.secret_access_key or None,
        config=BotoConfig(
            signature_version="s3v4",
            retries={"max_attempts": 3, "mode": "standard"},
            connect_timeout=5,
            read_timeout=10,
        ),
    )

# ---------------------------------------------------------
# Day files
# ---------------------------------------------------------

@dataclass(frozen=True)
class DayFetchResult:
    """Outcome of reading one day file. Exactly one of body / error is set."""
    date: str
    body: Optional[dict] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.body is not None


def window_dates(now: dt.datetime, tz: dt.tzinfo = TZ_HELSINKI) -> list[str]:
    """Provider-calendar date strings for yesterday, today and tomorrow around `now`."""
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    return [
        (now + dt.timedelta(days=offset)).astimezone(tz).date().isoformat()
        for offset in WINDOW_OFFSETS_DAYS
    ]


def day_key(date: str) -> str:
    return f"{date}.json"


def fetch_day_prices(client, bucket: str, date: str) -> DayFetchResult:
    """
    Read and decode one day file.

    Network errors, missing objects and bodies that are not a JSON object all
    come back as a result with `error` set; nothing is raised.
    """
    key = day_key(date)
    try:
        response = client.get_object(Bucket=bucket, Key=key)
        raw = response["Body"].read()
    except ClientError as ex:
        code = ex.response.get("Error", {}).get("Code", "")
        logger.warning(f"S3 read failed for {key}: {code or ex}")
        return DayFetchResult(date=date, error=f"ClientError {code}".strip())
    except BotoCoreError as ex:
        logger.warning(f"S3 read failed for {key}: {ex}")
        return DayFetchResult(date=date, error=type(ex).__name__)

    try:
        body = json.loads(raw.decode("utf-8") if isinstance(raw, bytes) else raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as ex:
        logger.warning(f"Malformed day file {key}: {ex}")
        return DayFetchResult(date=date, error="malformed")

    if not isinstance(body, dict):
        logger.warning(f"Malformed day file {key}: expected an object, got {type(body).__name__}")
        return DayFetchResult(date=date, error="malformed")
    return DayFetchResult(date=date, body=body)


def fetch_price_window(client, bucket: str, dates: Sequence[str]) -> list[DayFetchResult]:
    """
    Fetch all day files at once and return the results in the order of `dates`.
    Any subset may fail; the caller decides whether what came back is enough.
    """
    if not dates:
        return []
    with ThreadPoolExecutor(max_workers=len(dates)) as executor:
        futures = [executor.submit(fetch_day_prices, client, bucket, date) for date in dates]
        results = [future.result() for future in futures]

    failed = [r.date for r in results if not r.ok]
    if failed:
        logger.info(f"Day files unavailable: {', '.join(failed)}")
    return results
