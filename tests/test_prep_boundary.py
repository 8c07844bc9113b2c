#!/usr/bin/env python3

from __future__ import annotations

import sys
from pathlib import Path

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import Polygon, box

# Ensure we can import from src without installing the package
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from firecompare.registry import prep_boundary as pb


def _provinces(crs="EPSG:3005"):
    return gpd.GeoDataFrame(
        {
            "PRENAME": ["British Columbia", "British Columbia", "Alberta"],
            "PRUID": ["59", "59", "48"],
        },
        geometry=[
            box(0, 0, 10_000, 10_000),
            box(20_000, 0, 25_000, 5_000),  # island
            box(30_000, 0, 40_000, 10_000),
        ],
        crs=crs,
    )


def test_normalize_name():
    assert pb._normalize_name("  british   Columbia ") == "british columbia"
    assert pb._normalize_name(None) == ""


def test_select_boundary_dissolves_matches():
    out = pb.select_boundary(_provinces(), "PRENAME", "british columbia")
    assert len(out) == 1
    assert out["name"].iloc[0] == "British Columbia"
    assert out.geometry.iloc[0].area == pytest.approx(100_000_000 + 25_000_000)
    assert out.crs.to_epsg() == 3005


def test_select_boundary_repairs_invalid_geometry():
    # Self-intersecting bow tie
    bowtie = Polygon([(0, 0), (10, 10), (10, 0), (0, 10)])
    gdf = gpd.GeoDataFrame({"PRENAME": ["Yukon"]}, geometry=[bowtie], crs="EPSG:3005")
    out = pb.select_boundary(gdf, "PRENAME", "Yukon")
    assert out.geometry.iloc[0].is_valid


def test_select_boundary_no_match():
    with pytest.raises(SystemExit):
        pb.select_boundary(_provinces(), "PRENAME", "Atlantis")


def test_select_boundary_missing_field():
    with pytest.raises(SystemExit):
        pb.select_boundary(_provinces(), "NAME", "Alberta")


def test_select_boundary_requires_crs():
    gdf = _provinces(crs=None)
    with pytest.raises(SystemExit):
        pb.select_boundary(gdf, "PRENAME", "Alberta")


def test_boundary_bounds_table():
    out = pb.select_boundary(_provinces(), "PRENAME", "British Columbia")
    out["area_km2"] = pb._compute_area_km2(out, area_crs="EPSG:3005")
    table = pb.boundary_bounds_table(out)
    assert isinstance(table, pd.DataFrame)
    row = table.iloc[0]
    assert (row["xmin"], row["ymin"], row["xmax"], row["ymax"]) == (0.0, 0.0, 25_000.0, 10_000.0)
    assert row["area_km2"] == pytest.approx(125.0)


def test_prep_boundary_writes_gpkg(tmp_path):
    shp = tmp_path / "provinces.gpkg"
    _provinces().to_file(shp, driver="GPKG")
    out_gpkg = tmp_path / "boundary.gpkg"
    out_bounds = tmp_path / "bounds.parquet"

    out = pb.prep_boundary(
        shp,
        out_gpkg,
        name_field="PRENAME",
        name="Alberta",
        target_crs="EPSG:4326",
        out_bounds=out_bounds,
    )
    assert out.crs.to_epsg() == 4326
    assert out["area_km2"].iloc[0] == pytest.approx(100.0)

    back = gpd.read_file(out_gpkg, layer="boundary")
    assert back["name"].tolist() == ["Alberta"]
    assert pd.read_parquet(out_bounds)["name"].tolist() == ["Alberta"]


def test_prep_boundary_missing_file(tmp_path):
    with pytest.raises(SystemExit):
        pb.prep_boundary(tmp_path / "nope.shp", tmp_path / "b.gpkg", name_field="PRENAME", name="Alberta")
