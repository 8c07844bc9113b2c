#!/usr/bin/env python3
"""raster.py

In-memory single-band raster (RasterGrid) plus the GeoTIFF I/O, warping and
point sampling the pipeline needs for the elevation and temperature layers.

Required deps (typical conda geo stack): rasterio, numpy
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

import geopandas as gpd
import numpy as np
import rasterio
from affine import Affine
from rasterio.crs import CRS
from rasterio.transform import array_bounds, rowcol
from rasterio.warp import Resampling, calculate_default_transform, reproject


CRSLike = Union[str, int, CRS]


def as_crs(crs: CRSLike) -> CRS:
    """Coerce "EPSG:3005", 3005 or a CRS into a rasterio CRS."""
    if isinstance(crs, CRS):
        return crs
    if isinstance(crs, int):
        return CRS.from_epsg(crs)
    return CRS.from_user_input(crs)


@dataclass
class RasterGrid:
    """A 2-D grid of scalar cells with its georeferencing.

    `nodata` is the sentinel carried by masked cells. Float grids default to
    NaN; integer grids must declare one explicitly.
    """

    data: np.ndarray
    transform: Affine
    crs: CRS
    nodata: Optional[float] = None

    def __post_init__(self) -> None:
        if self.data.ndim != 2:
            raise ValueError(f"RasterGrid expects a 2-D array, got shape {self.data.shape}")
        if self.data.shape[0] == 0 or self.data.shape[1] == 0:
            raise ValueError("RasterGrid has zero rows or columns")
        self.crs = as_crs(self.crs)
        if self.nodata is None:
            if np.issubdtype(self.data.dtype, np.floating):
                self.nodata = float("nan")
            else:
                raise ValueError("Integer RasterGrid needs an explicit nodata value")

    @property
    def height(self) -> int:
        """Number of rows."""
        return int(self.data.shape[0])

    @property
    def width(self) -> int:
        """Number of columns."""
        return int(self.data.shape[1])

    @property
    def bounds(self):
        """(xmin, ymin, xmax, ymax) in the grid CRS."""
        west, south, east, north = array_bounds(self.height, self.width, self.transform)
        return (west, south, east, north)

    def valid_mask(self) -> np.ndarray:
        """True where a cell holds data."""
        if self.nodata is not None and np.isnan(self.nodata):
            return ~np.isnan(self.data)
        valid = self.data != self.nodata
        if np.issubdtype(self.data.dtype, np.floating):
            valid &= ~np.isnan(self.data)
        return valid

    def copy_with(self, data: np.ndarray, transform: Optional[Affine] = None) -> "RasterGrid":
        """New grid with the same CRS and nodata, new cells (and optionally a new transform)."""
        return RasterGrid(
            data=data,
            transform=self.transform if transform is None else transform,
            crs=self.crs,
            nodata=self.nodata,
        )


# -----------------------------------------------------------------------------
# I/O
# -----------------------------------------------------------------------------

def read_raster(path: Path, band: int = 1) -> RasterGrid:
    """Read one band of a GeoTIFF into a RasterGrid."""
    if not path.exists():
        raise SystemExit(f"Raster not found: {path}")
    with rasterio.open(path) as src:
        if src.crs is None:
            raise SystemExit(f"Raster has no CRS: {path}")
        data = src.read(band)
        nodata = src.nodata
        if nodata is None and not np.issubdtype(data.dtype, np.floating):
            # Integer rasters without a declared nodata get promoted so masking has a sentinel
            data = data.astype(np.float32)
        return RasterGrid(
            data=data,
            transform=src.transform,
            crs=src.crs,
            nodata=nodata,
        )


def write_raster(grid: RasterGrid, path: Path) -> Path:
    """Write a RasterGrid as a single-band, compressed GeoTIFF."""
    path.parent.mkdir(parents=True, exist_ok=True)
    profile = {
        "driver": "GTiff",
        "height": grid.height,
        "width": grid.width,
        "count": 1,
        "dtype": str(grid.data.dtype),
        "crs": grid.crs,
        "transform": grid.transform,
        "nodata": grid.nodata,
        "compress": "deflate",
    }
    with rasterio.open(path, "w", **profile) as dst:
        dst.write(grid.data, 1)
    return path


# -----------------------------------------------------------------------------
# Reprojection
# -----------------------------------------------------------------------------

def reproject_grid(
    grid: RasterGrid,
    dst_crs: CRSLike,
    resampling: Resampling = Resampling.nearest,
) -> RasterGrid:
    """Warp a RasterGrid into `dst_crs`. No-op when the CRS already matches."""
    dst_crs = as_crs(dst_crs)
    if grid.crs == dst_crs:
        return grid

    transform, width, height = calculate_default_transform(
        grid.crs, dst_crs, grid.width, grid.height, *grid.bounds
    )
    destination = np.full((height, width), grid.nodata, dtype=grid.data.dtype)
    reproject(
        source=grid.data,
        destination=destination,
        src_transform=grid.transform,
        src_crs=grid.crs,
        src_nodata=grid.nodata,
        dst_transform=transform,
        dst_crs=dst_crs,
        dst_nodata=grid.nodata,
        resampling=resampling,
    )
    return RasterGrid(data=destination, transform=transform, crs=dst_crs, nodata=grid.nodata)


# -----------------------------------------------------------------------------
# Sampling and summaries
# -----------------------------------------------------------------------------

def sample_grid(grid: RasterGrid, points: gpd.GeoDataFrame) -> np.ndarray:
    """Value of the cell under each point (NaN for nodata or off-grid points).

    Points are reprojected into the grid CRS first.
    """
    if points.empty:
        return np.array([], dtype=float)
    if points.crs is None:
        raise ValueError("points have no CRS; can't sample a raster safely")

    pts = points.to_crs(grid.crs)
    xs = pts.geometry.x.to_numpy()
    ys = pts.geometry.y.to_numpy()
    rows, cols = rowcol(grid.transform, xs, ys)
    rows = np.asarray(rows)
    cols = np.asarray(cols)

    out = np.full(len(pts), np.nan, dtype=float)
    inside = (rows >= 0) & (rows < grid.height) & (cols >= 0) & (cols < grid.width)
    valid = grid.valid_mask()
    r, c = rows[inside], cols[inside]
    hit = valid[r, c]
    values = grid.data[r, c].astype(float)
    values[~hit] = np.nan
    out[inside] = values
    return out


def grid_stats(grid: RasterGrid) -> Dict[str, float]:
    """Count/min/max/mean over valid cells."""
    values = grid.data[grid.valid_mask()].astype(float)
    if values.size == 0:
        return {"count": 0, "min": float("nan"), "max": float("nan"), "mean": float("nan")}
    return {
        "count": int(values.size),
        "min": float(values.min()),
        "max": float(values.max()),
        "mean": float(values.mean()),
    }
