#!/usr/bin/env python3

from __future__ import annotations

import math
import sys
from pathlib import Path

import pandas as pd
import pytest
import requests

# Ensure we can import from src without installing the package
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from firecompare.ingest import fetch_history as fh
from firecompare.ingest import load_current as lc
from firecompare.ingest import records as rec


HISTORY_HTML = """
<html><body>
<p>Wildfire statistics</p>
<table>
  <thead>
    <tr><th>Year</th><th>Fire Number</th><th>Fire Centre</th><th>Latitude</th>
        <th>Longitude</th><th>Discovery Date</th><th>Size (ha)</th></tr>
  </thead>
  <tbody>
    <tr><td>2013</td><td>K10001</td><td>Kamloops</td><td>49 30</td><td>123 15</td><td>2013-07-04</td><td>1,250.5</td></tr>
    <tr><td>2013</td><td>K10002</td><td>Kamloops</td><td>50 12</td><td>120 30</td><td>2013-07-15</td><td>3.0</td></tr>
    <tr><td>2014</td><td>G20001</td><td>Prince George</td><td>54</td><td>122 45</td><td>2014-08-01</td><td>10</td></tr>
  </tbody>
</table>
<table><tr><td>second table ignored</td></tr></table>
</body></html>
"""

HISTORY_COLUMNS = {
    "Year": "year",
    "Fire Number": "fire_id",
    "Fire Centre": "center_name",
    "Latitude": "latitude",
    "Longitude": "longitude",
    "Discovery Date": "discovery_date",
    "Size (ha)": "size_hectares",
}


class _FakeResponse:
    def __init__(self, text: str, status: int = 200):
        self.text = text
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


def _history_cfg():
    return {"url": "https://example.org/stats", "columns": HISTORY_COLUMNS}


def test_fetch_history_parses_first_table(tmp_path, monkeypatch):
    calls = []

    def fake_get(url, timeout=None):
        calls.append(url)
        return _FakeResponse(HISTORY_HTML)

    monkeypatch.setattr(fh.requests, "get", fake_get)
    out = tmp_path / "history.parquet"
    df = fh.fetch_history(sources_cfg=_history_cfg(), out_path=out)

    assert calls == ["https://example.org/stats"]
    assert out.exists()
    assert len(df) == 3
    assert df.loc[0, "latitude"] == pytest.approx(49.5)
    assert df.loc[0, "longitude"] == pytest.approx(-123.25)
    assert df.loc[0, "size_hectares"] == pytest.approx(1250.5)
    assert df["month"].tolist() == ["07", "07", "08"]
    assert df["coord_valid"].tolist() == [True, True, False]
    assert math.isnan(df.loc[2, "latitude"])


def test_fetch_history_network_failure_is_fatal(tmp_path, monkeypatch):
    def fake_get(url, timeout=None):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(fh.requests, "get", fake_get)
    with pytest.raises(SystemExit, match="Failed to fetch"):
        fh.fetch_history(sources_cfg=_history_cfg(), out_path=tmp_path / "h.parquet")


def test_fetch_history_http_error_is_fatal(tmp_path, monkeypatch):
    monkeypatch.setattr(fh.requests, "get", lambda url, timeout=None: _FakeResponse("", status=503))
    with pytest.raises(SystemExit):
        fh.fetch_history(sources_cfg=_history_cfg(), out_path=tmp_path / "h.parquet")


def test_fetch_history_schema_change_is_fatal(tmp_path, monkeypatch):
    html = HISTORY_HTML.replace("Fire Centre", "Centre")
    monkeypatch.setattr(fh.requests, "get", lambda url, timeout=None: _FakeResponse(html))
    with pytest.raises(SystemExit, match="expected columns not found"):
        fh.fetch_history(sources_cfg=_history_cfg(), out_path=tmp_path / "h.parquet")


def test_fetch_history_skips_existing(tmp_path, monkeypatch):
    out = tmp_path / "h.parquet"
    out.write_bytes(b"")

    def fail_get(url, timeout=None):
        raise AssertionError("should not fetch")

    monkeypatch.setattr(fh.requests, "get", fail_get)
    assert fh.fetch_history(sources_cfg=_history_cfg(), out_path=out) is None


def test_fetch_history_dry_run(tmp_path, monkeypatch):
    def fail_get(url, timeout=None):
        raise AssertionError("should not fetch")

    monkeypatch.setattr(fh.requests, "get", fail_get)
    out = tmp_path / "h.parquet"
    assert fh.fetch_history(sources_cfg=_history_cfg(), out_path=out, dry_run=True) is None
    assert not out.exists()


def test_unparseable_discovery_date_is_fatal():
    df = pd.DataFrame({"discovery_date": ["2013-07-04", "not a date"], "size_hectares": [1, 2]})
    with pytest.raises(SystemExit, match="discovery dates"):
        rec.finalize_records(df, source="test")


def test_year_derived_from_date_when_missing():
    df = pd.DataFrame({"discovery_date": ["2023-06-01"], "size_hectares": ["5"]})
    out = rec.finalize_records(df, source="test")
    assert int(out.loc[0, "year"]) == 2023
    assert out.loc[0, "month"] == "06"


def _write_current(tmp_path):
    points = tmp_path / "points.csv"
    pd.DataFrame({
        "FIRE_NUMBER": ["V1", "V2", "V3"],
        "FIRE_YEAR": [2023, 2023, 2023],
        "FIRE_CENTRE": [2, 5, 5],
        "LATITUDE": [49.5, 50.25, None],
        "LONGITUDE": [-123.25, -120.5, -121.0],
        "IGNITION_DATE": ["2023-07-04", "2023-07-15", "2023-08-02"],
        "CURRENT_SIZE": [12.0, None, 4.0],
    }).to_csv(points, index=False)

    polys = tmp_path / "polys.csv"
    pd.DataFrame({
        "FIRE_NUMBER": ["V2", "V2", "V3"],
        "FIRE_SIZE_HECTARES": [80.0, 95.0, 400.0],
    }).to_csv(polys, index=False)
    return points, polys


CURRENT_COLUMNS = {
    "FIRE_NUMBER": "fire_id",
    "FIRE_YEAR": "year",
    "FIRE_CENTRE": "center_name",
    "LATITUDE": "latitude",
    "LONGITUDE": "longitude",
    "IGNITION_DATE": "discovery_date",
    "CURRENT_SIZE": "size_hectares",
}


def test_load_current_fills_sizes_from_polygons(tmp_path):
    points, polys = _write_current(tmp_path)
    out = tmp_path / "current.parquet"
    df = lc.load_current(
        sources_cfg={"columns": CURRENT_COLUMNS},
        out_path=out,
        points_csv=points,
        polygons_csv=polys,
    )
    assert out.exists()
    sizes = dict(zip(df["fire_id"], df["size_hectares"]))
    # Existing point sizes win, missing ones take the largest polygon
    assert sizes == {"V1": 12.0, "V2": 95.0, "V3": 4.0}
    # Decimal coordinates are not negated again
    assert df.loc[0, "longitude"] == pytest.approx(-123.25)
    assert df["coord_valid"].tolist() == [True, True, False]


def test_load_current_missing_csv(tmp_path):
    with pytest.raises(SystemExit, match="not found"):
        lc.load_current(
            sources_cfg={"columns": CURRENT_COLUMNS},
            out_path=tmp_path / "current.parquet",
            points_csv=tmp_path / "missing.csv",
        )


def test_fill_sizes_matches_padded_fire_ids():
    points = pd.DataFrame({"fire_id": ["V2 ", " V7"], "size_hectares": [float("nan"), 3.0]})
    polygons = pd.DataFrame({"fire_id": ["V2", "V7"], "size_hectares": [95.0, 50.0]})
    filled = lc.fill_sizes_from_polygons(points, polygons)
    assert filled["size_hectares"].tolist() == [95.0, 3.0]
