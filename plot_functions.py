import datetime as dt
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd
import plotly.graph_objects as go

from price_annotations import Annotation, CurrentHourBox, DayBoundaryLine, WeekdayLabel
from price_series import TZ_HELSINKI, price_color

MAX_PRICE = 100  # c/kWh, fixed y-axis top
HOUR_TICK_EVERY = 2

THEME_COLORS: Dict[bool, Dict[str, str]] = {
    False: {
        "current_hour": "rgba(205, 237, 246, 0.45)",
        "day_change": "rgba(0,0,0,0.5)",
        "grid": "rgba(0,0,0,0.1)",
        "text": "rgba(0,0,0,0.8)",
    },
    True: {
        "current_hour": "rgba(255,255,255, 0.3)",
        "day_change": "rgba(255,255,255,0.5)",
        "grid": "rgba(255,255,255,0.1)",
        "text": "rgba(255,255,255,0.8)",
    },
}


def hour_ticks(
    series: pd.DataFrame,
    tz: dt.tzinfo = TZ_HELSINKI,
    every: int = HOUR_TICK_EVERY,
) -> Tuple[List[int], List[str]]:
    """Tick positions and "HH" texts for every `every`-th local hour."""
    local = series["ts"].dt.tz_convert(tz)
    tickvals = [i for i, ts in enumerate(local) if ts.hour % every == 0]
    ticktext = [f"{local.iloc[i].hour:02d}" for i in tickvals]
    return tickvals, ticktext


def annotation_layout(
    annotations: Mapping[str, Annotation],
    *,
    dark_mode: bool = False,
    max_price: float = MAX_PRICE,
) -> Tuple[List[go.layout.Shape], List[go.layout.Annotation]]:
    """
    Translate the style-neutral markers into Plotly shapes and text annotations.

    Boxes and lines span the whole plot height (yref="paper"); weekday labels sit
    just under the top of the price axis.
    """
    colors = THEME_COLORS[dark_mode]
    shapes: List[go.layout.Shape] = []
    texts: List[go.layout.Annotation] = []

    for key, annotation in annotations.items():
        if isinstance(annotation, CurrentHourBox):
            shapes.append(go.layout.Shape(
                type="rect", name=key,
                x0=annotation.x0, x1=annotation.x1, y0=0, y1=1, yref="paper",
                fillcolor=colors["current_hour"], line=dict(width=0), layer="below",
            ))
        elif isinstance(annotation, DayBoundaryLine):
            shapes.append(go.layout.Shape(
                type="line", name=key,
                x0=annotation.x, x1=annotation.x, y0=0, y1=1, yref="paper",
                line=dict(color=colors["day_change"], width=1),
            ))
        elif isinstance(annotation, WeekdayLabel):
            texts.append(go.layout.Annotation(
                name=key, text=annotation.text,
                x=annotation.x, y=max_price - 1, xanchor="left", yanchor="top",
                showarrow=False, font=dict(color=colors["day_change"]),
            ))
        else:
            logging.warning(f"Unknown annotation '{key}' of type {type(annotation).__name__}. Ignoring.")

    return shapes, texts


def build_price_figure(
    series: pd.DataFrame,
    annotations: Mapping[str, Annotation],
    *,
    dark_mode: bool = False,
    tz: dt.tzinfo = TZ_HELSINKI,
    max_price: float = MAX_PRICE,
    layout: Optional[Dict[str, Any]] = None,
) -> go.Figure:
    """
    Bar chart of the hourly series at positional x (0..n-1), so annotation
    positions like index ± 0.5 fall between bars.
    """
    colors = THEME_COLORS[dark_mode]
    prices = series["price"].astype(float)
    local_times = series["ts"].dt.tz_convert(tz).dt.strftime("%d.%m. %H:%M").tolist()

    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=list(range(len(series))),
        y=prices,
        marker_color=[price_color(p) for p in prices],
        text=series["label"],
        textposition="outside",
        cliponaxis=False,
        textfont=dict(color=colors["text"]),
        customdata=local_times,
        hovertemplate="%{customdata}<br>%{y:.2f} c/kWh<extra></extra>",
    ))

    shapes, texts = annotation_layout(annotations, dark_mode=dark_mode, max_price=max_price)
    tickvals, ticktext = hour_ticks(series, tz=tz)

    fig.update_layout(
        height=400,
        margin=dict(l=10, r=10, t=10, b=10),
        template="plotly_dark" if dark_mode else "plotly_white",
        paper_bgcolor="rgba(0,0,0,0)",
        plot_bgcolor="rgba(0,0,0,0)",
        showlegend=False,
        bargap=0.1,
        xaxis=dict(
            tickmode="array",
            tickvals=tickvals,
            ticktext=ticktext,
            tickangle=0,
            gridcolor=colors["grid"],
            range=[-0.5, len(series) - 0.5],
            fixedrange=True,
        ),
        yaxis=dict(
            range=[0, max_price],
            gridcolor=colors["grid"],
            fixedrange=True,
        ),
        shapes=shapes,
        annotations=texts,
    )
    if layout:
        fig.update_layout(**layout)
    return fig
