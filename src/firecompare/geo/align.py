#!/usr/bin/env python3
"""align.py

Put fire points, rasters and the boundary polygon into one coordinate
reference system before any overlay or spatial join.

Raw fire coordinates are geographic decimal degrees (EPSG:4326). Rasters and
boundaries arrive in whatever CRS their publisher chose. Everything gets
resolved to a single target CRS: the one configured in analysis.yaml, or,
failing that, the CRS of the first raster.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional, Sequence, Tuple

import geopandas as gpd
import numpy as np
import pandas as pd
from pyproj import CRS as ProjCRS
from pyproj import Transformer

from firecompare.geo.raster import CRSLike, RasterGrid, as_crs


GEOGRAPHIC_CRS = "EPSG:4326"


def points_to_gdf(
    df: pd.DataFrame,
    *,
    lon_col: str = "longitude",
    lat_col: str = "latitude",
    crs: CRSLike = GEOGRAPHIC_CRS,
) -> gpd.GeoDataFrame:
    """Attach a CRS to raw point coordinates.

    Rows with missing coordinates (malformed in the source table) are
    excluded; they cannot take part in spatial joins.
    """
    missing = [c for c in (lon_col, lat_col) if c not in df.columns]
    if missing:
        raise ValueError(f"Missing coordinate columns: {missing}")

    has_coords = df[lon_col].notna() & df[lat_col].notna()
    n_skipped = int((~has_coords).sum())
    if n_skipped:
        print(f"[ALIGN] Excluding {n_skipped} records without coordinates")

    kept = df[has_coords]
    return gpd.GeoDataFrame(
        kept.copy(),
        geometry=gpd.points_from_xy(kept[lon_col], kept[lat_col]),
        crs=crs,
    )


def transform_coords(
    xs: Sequence[float],
    ys: Sequence[float],
    src_crs: CRSLike,
    dst_crs: CRSLike,
) -> Tuple[np.ndarray, np.ndarray]:
    """Transform coordinate arrays between CRSs (x = easting/longitude)."""
    transformer = Transformer.from_crs(as_crs(src_crs), as_crs(dst_crs), always_xy=True)
    tx, ty = transformer.transform(np.asarray(xs, dtype=float), np.asarray(ys, dtype=float))
    return np.asarray(tx), np.asarray(ty)


def align_to(gdf: gpd.GeoDataFrame, target_crs: CRSLike) -> gpd.GeoDataFrame:
    """Reproject a GeoDataFrame into target_crs."""
    if gdf.crs is None:
        raise ValueError("GeoDataFrame has no CRS; assign one before aligning.")
    target = ProjCRS.from_user_input(as_crs(target_crs).to_wkt())
    if gdf.crs.equals(target):
        return gdf
    return gdf.to_crs(target)


def align_all(
    datasets: Mapping[str, gpd.GeoDataFrame],
    target_crs: CRSLike,
) -> Dict[str, gpd.GeoDataFrame]:
    """Resolve several vector datasets to one common CRS."""
    aligned: Dict[str, gpd.GeoDataFrame] = {}
    for name, gdf in datasets.items():
        if gdf.crs is None:
            raise ValueError(f"Dataset '{name}' has no CRS")
        aligned[name] = align_to(gdf, target_crs)
    return aligned


def resolve_target_crs(configured: Optional[CRSLike], *grids: RasterGrid):
    """Configured CRS wins; otherwise adopt the first raster's CRS."""
    if configured:
        return as_crs(configured)
    for grid in grids:
        if grid is not None:
            return grid.crs
    raise ValueError("No target CRS configured and no raster to take one from")


def points_within(points: gpd.GeoDataFrame, boundary: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """Keep the points that fall inside the boundary polygon.

    Both frames must already share a CRS (see align_all()).
    """
    if points.crs is None or boundary.crs is None:
        raise ValueError("points and boundary both need a CRS")
    if not points.crs.equals(boundary.crs):
        raise ValueError(f"CRS mismatch: points {points.crs} vs boundary {boundary.crs}; align first")
    if points.empty:
        return points.copy()

    joined = gpd.sjoin(points, boundary[["geometry"]], how="inner", predicate="within")
    # A point on a shared edge of a multi-row boundary can match twice
    joined = joined[~joined.index.duplicated(keep="first")]
    return joined.drop(columns=["index_right"], errors="ignore")
