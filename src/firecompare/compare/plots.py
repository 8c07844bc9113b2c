#!/usr/bin/env python3
"""plots.py

Static comparison charts. Presentation only: every function writes one PNG
and returns its path.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

import matplotlib

matplotlib.use("Agg")

import geopandas as gpd
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from firecompare.geo.raster import RasterGrid


def _save(fig, out_path: Path) -> Path:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)
    return out_path


def plot_counts_by_period(counts: pd.DataFrame, out_path: Path, *, title: Optional[str] = None) -> Path:
    """Grouped bars: one group per row of `counts` (month/year), one bar per period column."""
    fig, ax = plt.subplots(figsize=(10, 5))
    n = max(len(counts.columns), 1)
    width = 0.8 / n
    x = np.arange(len(counts.index))
    for i, period in enumerate(counts.columns):
        ax.bar(x + i * width - 0.4 + width / 2, counts[period].to_numpy(), width, label=str(period))
    ax.set_xticks(x)
    ax.set_xticklabels([str(g) for g in counts.index])
    ax.set_xlabel(counts.index.name or "")
    ax.set_ylabel("Number of fires")
    ax.set_title(title or f"Fires per {counts.index.name or 'group'}")
    ax.legend(title="Period")
    return _save(fig, out_path)


def plot_size_distribution(
    records: pd.DataFrame,
    periods: Sequence[str],
    out_path: Path,
    *,
    value_col: str = "size_hectares",
) -> Path:
    """Box plot of fire size per period, log scale."""
    data = []
    for label in periods:
        values = pd.to_numeric(records.loc[records["period"] == label, value_col], errors="coerce")
        values = values[values > 0].dropna()
        data.append(values.to_numpy())

    fig, ax = plt.subplots(figsize=(6, 5))
    ax.boxplot(data, showfliers=False)
    ax.set_xticks(range(1, len(periods) + 1))
    ax.set_xticklabels([str(p) for p in periods])
    ax.set_yscale("log")
    ax.set_ylabel("Fire size (ha)")
    ax.set_title("Fire size by period")
    return _save(fig, out_path)


def plot_raster_with_points(
    grid: RasterGrid,
    out_path: Path,
    *,
    points: Optional[gpd.GeoDataFrame] = None,
    label: str = "",
    cmap: str = "terrain",
) -> Path:
    """Clipped raster with fire locations on top."""
    xmin, ymin, xmax, ymax = grid.bounds
    data = np.where(grid.valid_mask(), grid.data, np.nan).astype(float)

    fig, ax = plt.subplots(figsize=(8, 8))
    im = ax.imshow(data, extent=(xmin, xmax, ymin, ymax), cmap=cmap, origin="upper")
    fig.colorbar(im, ax=ax, shrink=0.7, label=label)
    if points is not None and not points.empty:
        pts = points.to_crs(grid.crs)
        ax.scatter(pts.geometry.x, pts.geometry.y, s=4, c="red", alpha=0.6, label="fires")
        ax.legend(loc="upper right")
    ax.set_title(label)
    ax.set_axis_off()
    return _save(fig, out_path)
