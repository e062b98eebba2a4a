import pandas as pd
import pytest

from price_annotations import (
    CurrentHourBox,
    DayBoundaryLine,
    WeekdayLabel,
    collect_annotations,
    current_hour_box,
    day_boundaries,
    weekday_labels,
)
from price_series import empty_series, find_current_index


def test_current_hour_box_spans_one_bar(two_day_series):
    now = two_day_series["ts"].iloc[9] + pd.Timedelta(minutes=30)
    box = current_hour_box(find_current_index(two_day_series, now))

    assert box == CurrentHourBox(index=9, x0=8.5, x1=9.5)


def test_no_box_on_locator_miss():
    assert current_hour_box(None) is None


def test_day_boundaries_follow_local_calendar(two_day_series):
    # local midnight is 22:00 UTC in January
    assert day_boundaries(two_day_series) == [24]


def test_day_boundaries_single_day(two_day_series):
    assert day_boundaries(two_day_series.iloc[:24]) == []
    assert day_boundaries(empty_series()) == []


def test_day_boundary_count_is_dates_minus_one(three_day_series):
    boundaries = day_boundaries(three_day_series)
    local_dates = three_day_series["ts"].dt.tz_convert("Europe/Helsinki").dt.date.nunique()

    assert boundaries == [24, 48]
    assert len(boundaries) == local_dates - 1


def test_weekday_labels_drop_the_last_segment(three_day_series):
    boundaries = day_boundaries(three_day_series)
    labels = weekday_labels(three_day_series, boundaries)

    assert len(labels) == len(boundaries)
    assert labels == [
        WeekdayLabel(index=0, x=1, text="sunnuntai"),
        WeekdayLabel(index=24, x=25, text="maanantai"),
    ]


def test_weekday_labels_single_day_has_none(two_day_series):
    single = two_day_series.iloc[:24]
    assert weekday_labels(single, day_boundaries(single)) == []
    assert weekday_labels(empty_series(), []) == []


def test_weekday_labels_custom_names(two_day_series):
    names = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
    labels = weekday_labels(two_day_series, [24], weekday_names=names)
    assert [label.text for label in labels] == ["Sun"]


def test_collect_annotations_keys_and_order(two_day_series):
    now = two_day_series["ts"].iloc[9] + pd.Timedelta(minutes=30)
    annotations = collect_annotations(two_day_series, find_current_index(two_day_series, now))

    assert list(annotations) == ["currentTime", "dayChange0", "dayChange1"]
    assert annotations["currentTime"] == CurrentHourBox(index=9, x0=8.5, x1=9.5)
    assert annotations["dayChange0"] == DayBoundaryLine(index=24, x=23.5)
    assert annotations["dayChange1"] == WeekdayLabel(index=0, x=1, text="sunnuntai")


def test_collect_annotations_numbers_lines_before_labels(three_day_series):
    annotations = collect_annotations(three_day_series, None)

    assert "currentTime" not in annotations
    assert [type(annotations[f"dayChange{i}"]) for i in range(4)] == [
        DayBoundaryLine, DayBoundaryLine, WeekdayLabel, WeekdayLabel,
    ]
    assert annotations["dayChange1"].x == pytest.approx(47.5)


def test_collect_annotations_leaves_series_untouched(two_day_series):
    before = two_day_series.copy()
    collect_annotations(two_day_series, 3)
    pd.testing.assert_frame_equal(two_day_series, before)
