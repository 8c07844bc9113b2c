#!/usr/bin/env python3

from __future__ import annotations

import sys
from pathlib import Path

import geopandas as gpd
import numpy as np
import pytest
from affine import Affine
from shapely.geometry import Polygon, box

# Ensure we can import from src without installing the package
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from firecompare.geo import clip as cl
from firecompare.geo import raster as rs


def _grid(nodata=None, dtype=np.float32):
    # 20 x 20 cells of 1 km, upper-left at (1_000_000, 1_000_000) in BC Albers
    data = np.arange(400, dtype=dtype).reshape(20, 20)
    transform = Affine(1000.0, 0.0, 1_000_000.0, 0.0, -1000.0, 1_000_000.0)
    return rs.RasterGrid(data=data, transform=transform, crs="EPSG:3005", nodata=nodata)


def _triangle(crs="EPSG:3005"):
    # Right triangle in the middle of the grid; its hypotenuse passes no cell center
    poly = Polygon([(1_004_000, 984_000), (1_016_000, 984_000), (1_004_000, 995_700)])
    return gpd.GeoDataFrame({"name": ["t"]}, geometry=[poly], crs=crs)


def _same(a: rs.RasterGrid, b: rs.RasterGrid) -> bool:
    return (
        a.data.shape == b.data.shape
        and a.transform.almost_equals(b.transform)
        and np.array_equal(a.data, b.data, equal_nan=True)
    )


def test_grid_requires_2d():
    with pytest.raises(ValueError):
        rs.RasterGrid(np.zeros((2, 2, 2)), Affine.identity(), "EPSG:3005")


def test_integer_grid_needs_nodata():
    with pytest.raises(ValueError):
        rs.RasterGrid(np.zeros((2, 2), dtype=np.int16), Affine.identity(), "EPSG:3005")


def test_float_grid_defaults_to_nan():
    assert np.isnan(_grid().nodata)


def test_crop_to_bounds_restricts_extent():
    grid = _grid()
    cropped = cl.crop_to_bounds(grid, (1_004_000, 984_000, 1_016_000, 996_000))
    assert cropped.data.shape == (12, 12)
    assert cropped.bounds == pytest.approx((1_004_000, 984_000, 1_016_000, 996_000))
    # Top-left cell is row 4, col 4 of the source
    assert cropped.data[0, 0] == grid.data[4, 4]


def test_clip_masks_cells_outside_polygon():
    clipped = cl.clip_raster(_grid(), _triangle())
    valid = clipped.valid_mask()
    assert clipped.data.shape == (12, 12)
    assert 0 < valid.sum() < valid.size
    # Lower-left corner of the triangle is inside, upper-right is not
    assert valid[-1, 0]
    assert not valid[0, -1]


def test_crop_is_only_an_optimization():
    grid = _grid()
    boundary = _triangle()
    cropped = cl.clip_raster(grid, boundary, crop=True)
    masked_only = cl.clip_raster(grid, boundary, crop=False)

    assert masked_only.data.shape == grid.data.shape
    # Same values over the cropped window, nothing valid outside it
    window = masked_only.data[4:16, 4:16]
    np.testing.assert_array_equal(window, cropped.data)
    outside = masked_only.valid_mask().copy()
    outside[4:16, 4:16] = False
    assert not outside.any()


def test_clip_then_clip_to_containing_boundary_is_idempotent():
    grid = _grid()
    inner = _triangle()
    outer = gpd.GeoDataFrame(geometry=[box(1_001_000, 981_000, 1_019_000, 999_000)], crs="EPSG:3005")

    once = cl.clip_raster(grid, inner)
    twice = cl.clip_raster(once, outer)
    assert _same(once, twice)

    again = cl.clip_raster(once, inner)
    assert _same(once, again)


def test_clip_reprojects_boundary():
    grid = _grid()
    in_lonlat = _triangle().to_crs("EPSG:4326")
    clipped = cl.clip_raster(grid, in_lonlat)
    reference = cl.clip_raster(grid, _triangle())
    assert clipped.data.shape == reference.data.shape
    np.testing.assert_array_equal(clipped.valid_mask(), reference.valid_mask())


def test_integer_grid_masks_with_sentinel():
    clipped = cl.clip_raster(_grid(nodata=-9999, dtype=np.int32), _triangle())
    assert (clipped.data == -9999).any()
    assert clipped.data.dtype == np.int32


def test_no_overlap_raises():
    far = gpd.GeoDataFrame(geometry=[box(0, 0, 10, 10)], crs="EPSG:3005")
    with pytest.raises(ValueError, match="do not overlap"):
        cl.clip_raster(_grid(), far)


def test_boundary_without_crs_raises():
    no_crs = gpd.GeoDataFrame(geometry=[box(1_004_000, 984_000, 1_016_000, 996_000)])
    with pytest.raises(ValueError):
        cl.clip_raster(_grid(), no_crs)


def test_write_then_read(tmp_path):
    clipped = cl.clip_raster(_grid(), _triangle())
    path = rs.write_raster(clipped, tmp_path / "clipped.tif")
    back = rs.read_raster(path)
    assert _same(clipped, back)
    assert back.crs.to_epsg() == 3005


def test_read_missing_raster(tmp_path):
    with pytest.raises(SystemExit):
        rs.read_raster(tmp_path / "missing.tif")


def test_reproject_grid_changes_crs():
    grid = _grid()
    warped = rs.reproject_grid(grid, "EPSG:4326")
    assert warped.crs.to_epsg() == 4326
    assert warped.valid_mask().any()
    assert rs.reproject_grid(grid, "EPSG:3005") is grid


def test_sample_grid_and_stats():
    clipped = cl.clip_raster(_grid(), _triangle())
    pts = gpd.GeoDataFrame(
        {"fire_id": ["inside", "masked", "off-grid"]},
        geometry=gpd.points_from_xy([1_004_500, 1_015_500, 2_000_000], [984_500, 995_500, 0]),
        crs="EPSG:3005",
    )
    values = rs.sample_grid(clipped, pts)
    # Cell (row 15, col 4) of the source grid
    assert values[0] == pytest.approx(15 * 20 + 4)
    assert np.isnan(values[1])
    assert np.isnan(values[2])

    stats = rs.grid_stats(clipped)
    assert stats["count"] == int(clipped.valid_mask().sum())
    assert stats["min"] <= stats["mean"] <= stats["max"]
