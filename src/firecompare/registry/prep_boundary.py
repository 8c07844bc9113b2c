#!/usr/bin/env python3
"""prep_boundary.py

Turn an administrative boundary shapefile (e.g. Statistics Canada provinces)
into a single clean boundary polygon in a GeoPackage.

The boundary is what rasters get clipped to and what fire points get
filtered by, so this module is the source of truth for "the region".

Example (via firecompare.registry):
  python -m firecompare.registry prep-boundary \
    --boundary-shp data/raw/boundaries/lpr_000b21a_e/lpr_000b21a_e.shp \
    --name "British Columbia"

Notes:
- Name matching is case- and whitespace-insensitive.
- Multi-row matches (islands stored as separate features) are dissolved.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import geopandas as gpd
import pandas as pd


# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------

def _normalize_name(x) -> str:
    """Normalize a region name for comparison ('  british  Columbia' -> 'british columbia')."""
    if x is None:
        return ""
    return " ".join(str(x).split()).casefold()


def _make_valid(gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """Fix invalid geometries.

    Uses GeoSeries.make_valid() (geopandas >= 0.12), falling back to the
    buffer(0) trick on older versions.
    """
    gdf = gdf.copy()
    if hasattr(gdf.geometry, "make_valid"):
        gdf["geometry"] = gdf.geometry.make_valid()
    else:
        gdf["geometry"] = gdf.geometry.buffer(0)
    return gdf


def _compute_area_km2(gdf: gpd.GeoDataFrame, area_crs: str) -> List[float]:
    """Compute polygon area in km² using an equal-area CRS."""
    if gdf.crs is None:
        raise ValueError("Input geometries have no CRS; can't compute area safely.")
    tmp = gdf.to_crs(area_crs)
    return (tmp.geometry.area / 1_000_000.0).astype(float).tolist()


# -----------------------------------------------------------------------------
# Core functions
# -----------------------------------------------------------------------------

def select_boundary(gdf: gpd.GeoDataFrame, name_field: str, name: str) -> gpd.GeoDataFrame:
    """Select one region from a boundary layer as a single-row GeoDataFrame.

    Raises:
        SystemExit: If the layer has no CRS, the field is missing, or nothing
            matches `name`.
    """
    if gdf.crs is None:
        raise SystemExit(
            "Boundary layer has no CRS (.prj missing or unreadable). "
            "Fix that first; everything downstream depends on CRS."
        )
    if name_field not in gdf.columns:
        raise SystemExit(f"Name field '{name_field}' not found. Available columns: {list(gdf.columns)}")

    wanted = _normalize_name(name)
    matches = gdf[gdf[name_field].map(_normalize_name) == wanted]
    if matches.empty:
        sample = sorted({str(v) for v in gdf[name_field].dropna().unique()})[:25]
        raise SystemExit(
            f"No boundary named {name!r} in field {name_field}.\n"
            f"Sample names: {sample}"
        )

    out = _make_valid(matches[[name_field, "geometry"]])
    out = out[~out.geometry.is_empty & out.geometry.notna()].copy()
    if out.empty:
        raise SystemExit(f"Boundary {name!r} has no usable geometry after repair")

    out["name"] = str(matches[name_field].iloc[0])
    out = out[["name", "geometry"]].dissolve(by="name", as_index=False)
    return out


def boundary_bounds_table(boundary: gpd.GeoDataFrame) -> pd.DataFrame:
    """One-row table of the boundary's bounds, in its own CRS."""
    xmin, ymin, xmax, ymax = boundary.total_bounds
    return pd.DataFrame([{
        "name": boundary["name"].iloc[0],
        "crs": boundary.crs.to_string(),
        "xmin": float(xmin),
        "ymin": float(ymin),
        "xmax": float(xmax),
        "ymax": float(ymax),
        "area_km2": float(boundary["area_km2"].iloc[0]) if "area_km2" in boundary.columns else None,
    }])


def prep_boundary(
    boundary_shp: Path,
    out_gpkg: Path,
    *,
    name_field: str,
    name: str,
    layer: str = "boundary",
    target_crs: Optional[str] = None,
    area_crs: str = "EPSG:3005",
    out_bounds: Optional[Path] = None,
) -> gpd.GeoDataFrame:
    """Read, select, clean and write the boundary polygon.

    Args:
        boundary_shp: Path to the boundary shapefile (any OGR vector format).
        out_gpkg: Output GeoPackage path.
        name_field: Column holding region names.
        name: Region to keep.
        layer: Layer name in output GeoPackage.
        target_crs: CRS for the output geometry (None keeps the source CRS).
        area_crs: Equal-area CRS for area_km2 (default BC Albers).
        out_bounds: Optional parquet path for the bounds table.

    Returns:
        The one-row boundary GeoDataFrame (also written to out_gpkg).
    """
    if not boundary_shp.exists():
        raise SystemExit(f"Boundary shapefile not found: {boundary_shp}")

    gdf = gpd.read_file(boundary_shp)
    if gdf.empty:
        raise SystemExit("Loaded boundary file but it contains zero features. Wrong file?")

    out = select_boundary(gdf, name_field, name)
    out["area_km2"] = _compute_area_km2(out, area_crs=area_crs)

    if target_crs:
        out = out.to_crs(target_crs)

    out_gpkg.parent.mkdir(parents=True, exist_ok=True)
    out.to_file(out_gpkg, layer=layer, driver="GPKG")

    if out_bounds:
        out_bounds.parent.mkdir(parents=True, exist_ok=True)
        boundary_bounds_table(out).to_parquet(out_bounds, index=False)
        print(f"Wrote bounds -> {out_bounds}")

    row = out.iloc[0]
    print(f"Wrote boundary -> {out_gpkg} (layer={layer})")
    print(f"  - {row['name']} | area_km2={row['area_km2']:.1f} | crs={out.crs.to_string()}")
    return out
