"""Chart markers derived from the price series: current hour, day changes and weekday names."""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd

from price_series import TZ_HELSINKI

FINNISH_WEEKDAYS = (
    "maanantai",
    "tiistai",
    "keskiviikko",
    "torstai",
    "perjantai",
    "lauantai",
    "sunnuntai",
)

CURRENT_TIME_KEY = "currentTime"
DAY_CHANGE_KEY = "dayChange{}"


@dataclass(frozen=True)
class CurrentHourBox:
    index: int
    x0: float
    x1: float


@dataclass(frozen=True)
class DayBoundaryLine:
    index: int
    x: float


@dataclass(frozen=True)
class WeekdayLabel:
    index: int
    x: float
    text: str


Annotation = Union[CurrentHourBox, DayBoundaryLine, WeekdayLabel]


def current_hour_box(index: Optional[int]) -> Optional[CurrentHourBox]:
    if index is None:
        return None
    return CurrentHourBox(index=index, x0=index - 0.5, x1=index + 0.5)


def day_boundaries(series: pd.DataFrame, tz: dt.tzinfo = TZ_HELSINKI) -> List[int]:
    """Indices whose local calendar date differs from the previous row's. Index 0 never counts."""
    indices = []
    last_date = None
    for i, ts in enumerate(series["ts"]):
        date = ts.tz_convert(tz).date()
        if last_date is not None and date != last_date:
            indices.append(i)
        last_date = date
    return indices


def day_boundary_lines(boundaries: Sequence[int]) -> List[DayBoundaryLine]:
    return [DayBoundaryLine(index=i, x=i - 0.5) for i in boundaries]


def weekday_labels(
    series: pd.DataFrame,
    boundaries: Sequence[int],
    tz: dt.tzinfo = TZ_HELSINKI,
    weekday_names: Sequence[str] = FINNISH_WEEKDAYS,
) -> List[WeekdayLabel]:
    """
    One label per day segment, placed just after the segment start.

    The label of the last segment is left out, so a two-day series gets a
    single label and the count always equals len(boundaries).
    """
    if series.empty:
        return []
    labels = []
    for i in [0, *boundaries]:
        weekday = series["ts"].iloc[i].tz_convert(tz).weekday()
        labels.append(WeekdayLabel(index=i, x=i + 1, text=weekday_names[weekday]))
    return labels[:-1]


def collect_annotations(
    series: pd.DataFrame,
    current_index: Optional[int],
    tz: dt.tzinfo = TZ_HELSINKI,
    weekday_names: Sequence[str] = FINNISH_WEEKDAYS,
) -> Dict[str, Annotation]:
    """
    All markers keyed by a stable id: "currentTime" when the current hour is in
    the series, then "dayChange0".. over the boundary lines followed by the
    weekday labels.
    """
    annotations: Dict[str, Annotation] = {}

    box = current_hour_box(current_index)
    if box is not None:
        annotations[CURRENT_TIME_KEY] = box

    boundaries = day_boundaries(series, tz=tz)
    day_changes: List[Annotation] = [
        *day_boundary_lines(boundaries),
        *weekday_labels(series, boundaries, tz=tz, weekday_names=weekday_names),
    ]
    for i, annotation in enumerate(day_changes):
        annotations[DAY_CHANGE_KEY.format(i)] = annotation
    return annotations
