#!/usr/bin/env python3

from __future__ import annotations

import sys
from pathlib import Path

import geopandas as gpd
import numpy as np
import pandas as pd
import pytest
from affine import Affine
from shapely.geometry import box

# Ensure we can import from src without installing the package
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from firecompare.geo import align as al
from firecompare.geo.raster import RasterGrid


@pytest.mark.parametrize("dst", ["EPSG:3005", "EPSG:3857", "EPSG:32610"])
def test_round_trip_within_tolerance(dst):
    lons = np.array([-123.25, -120.5, -115.1, -130.0])
    lats = np.array([49.5, 50.2, 54.9, 58.3])
    x, y = al.transform_coords(lons, lats, "EPSG:4326", dst)
    assert not np.allclose(x, lons)
    back_lon, back_lat = al.transform_coords(x, y, dst, "EPSG:4326")
    np.testing.assert_allclose(back_lon, lons, atol=1e-6)
    np.testing.assert_allclose(back_lat, lats, atol=1e-6)


def test_points_to_gdf_excludes_missing_coordinates():
    df = pd.DataFrame({
        "fire_id": ["A", "B", "C"],
        "latitude": [49.5, np.nan, 51.0],
        "longitude": [-123.25, -120.0, -121.0],
    })
    gdf = al.points_to_gdf(df)
    assert gdf["fire_id"].tolist() == ["A", "C"]
    assert gdf.crs.to_epsg() == 4326
    assert gdf.geometry.iloc[0].x == pytest.approx(-123.25)


def test_align_all_resolves_one_crs():
    pts = gpd.GeoDataFrame({"id": [1]}, geometry=gpd.points_from_xy([-123.0], [50.0]), crs="EPSG:4326")
    poly = gpd.GeoDataFrame({"id": [1]}, geometry=[box(-125, 48, -120, 52)], crs="EPSG:4326").to_crs("EPSG:3857")
    aligned = al.align_all({"points": pts, "boundary": poly}, "EPSG:3005")
    assert all(g.crs.to_epsg() == 3005 for g in aligned.values())


def test_align_to_requires_crs():
    gdf = gpd.GeoDataFrame({"id": [1]}, geometry=gpd.points_from_xy([0.0], [0.0]))
    with pytest.raises(ValueError):
        al.align_to(gdf, "EPSG:3005")


def test_resolve_target_crs_prefers_config():
    grid = RasterGrid(np.zeros((2, 2), dtype=np.float32), Affine(1, 0, 0, 0, -1, 2), "EPSG:3857")
    assert al.resolve_target_crs("EPSG:3005", grid).to_epsg() == 3005
    assert al.resolve_target_crs(None, grid).to_epsg() == 3857
    with pytest.raises(ValueError):
        al.resolve_target_crs(None)


def test_points_within_boundary():
    boundary = gpd.GeoDataFrame({"name": ["BC"]}, geometry=[box(-125, 48, -120, 52)], crs="EPSG:4326")
    pts = gpd.GeoDataFrame(
        {"fire_id": ["in", "out"]},
        geometry=gpd.points_from_xy([-123.0, -110.0], [50.0, 50.0]),
        crs="EPSG:4326",
    )
    aligned = al.align_all({"points": pts, "boundary": boundary}, "EPSG:3005")
    inside = al.points_within(aligned["points"], aligned["boundary"])
    assert inside["fire_id"].tolist() == ["in"]
    assert "index_right" not in inside.columns


def test_points_within_rejects_crs_mismatch():
    boundary = gpd.GeoDataFrame(geometry=[box(-125, 48, -120, 52)], crs="EPSG:4326")
    pts = gpd.GeoDataFrame(geometry=gpd.points_from_xy([-123.0], [50.0]), crs="EPSG:4326").to_crs("EPSG:3005")
    with pytest.raises(ValueError, match="CRS mismatch"):
        al.points_within(pts, boundary)
