#!/usr/bin/env python3
"""maps.py

Choropleth rendering of per-cell metrics on the equal-area grid.

Every function takes its inputs explicitly and returns a matplotlib Figure;
nothing here touches pyplot's global figure state.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import geopandas as gpd
import numpy as np
import pandas as pd
from matplotlib.figure import Figure

from marpd.geo.grid import GridTemplate


def metric_grid(results: pd.DataFrame, grid: GridTemplate, column: str) -> np.ndarray:
    """Scatter a result column back onto a (height, width) float grid; NaN where unoccupied."""
    if column not in results.columns:
        raise ValueError(f"Result table has no '{column}' column. Columns: {list(results.columns)}")
    out = np.full(grid.shape, np.nan, dtype=float)
    rows, cols = grid.rowcol(results.index.to_numpy())
    out[rows, cols] = results[column].to_numpy(dtype=float)
    return out


def render_metric_map(
    results: pd.DataFrame,
    grid: GridTemplate,
    column: str,
    *,
    coastline: Optional[gpd.GeoDataFrame] = None,
    title: Optional[str] = None,
    label: Optional[str] = None,
    cmap: str = "viridis",
) -> Figure:
    """Raster map of one result column, with an optional coastline overlay."""
    values = metric_grid(results, grid, column)
    xmin, ymin, xmax, ymax = grid.bounds

    fig = Figure(figsize=(10, 5), constrained_layout=True)
    ax = fig.add_subplot()
    ax.set_facecolor("white")
    im = ax.imshow(
        np.ma.masked_invalid(values),
        extent=(xmin, xmax, ymin, ymax),
        origin="upper",
        cmap=cmap,
        interpolation="nearest",
    )

    if coastline is not None:
        coastline.to_crs(grid.crs).plot(ax=ax, color="black", linewidth=0.4)

    ax.set_xlim(xmin, xmax)
    ax.set_ylim(ymin, ymax)
    ax.set_aspect("equal")
    ax.set_axis_off()
    fig.colorbar(im, ax=ax, shrink=0.7, label=label or column)
    if title:
        ax.set_title(title)
    return fig


def render_richness_vs_pd(results: pd.DataFrame, *, title: Optional[str] = None) -> Figure:
    """Scatter of Faith's PD against species richness, one point per cell."""
    fig = Figure(figsize=(5, 4), constrained_layout=True)
    ax = fig.add_subplot()
    ax.scatter(results["richness"], results["pd"], s=6, alpha=0.4, color="#1d3557", linewidths=0)
    ax.set_xlabel("Species richness")
    ax.set_ylabel("Faith's PD")
    if title:
        ax.set_title(title)
    return fig


def save_figure(fig: Figure, out_path: Path, dpi: int = 300) -> Path:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, dpi=dpi, bbox_inches="tight")
    print(f"[FIGURE] {out_path}")
    return out_path
