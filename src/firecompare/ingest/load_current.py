#!/usr/bin/env python3
"""load_current.py

Load current-year fire data from two pre-downloaded CSV files:
- a point file (one row per fire: location, discovery date, size)
- an optional polygon attribute file (mapped perimeter size per fire)

Point coordinates are already signed decimal degrees. Sizes missing from the
point file are filled from the polygon file by fire_id.

Called by:
  python -m firecompare.ingest load-current
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd

from firecompare.ingest.records import finalize_records, rename_columns, summarize_records


def _read_csv(path: Path, *, what: str) -> pd.DataFrame:
    if not path.exists():
        raise SystemExit(f"{what} CSV not found: {path}")
    return pd.read_csv(path)


def fill_sizes_from_polygons(points: pd.DataFrame, polygons: pd.DataFrame) -> pd.DataFrame:
    """Fill missing point sizes with the mapped perimeter size of the same fire.

    Existing point sizes are never overwritten. When a fire has several
    polygons, the largest is used.
    """
    if "fire_id" not in polygons.columns or "size_hectares" not in polygons.columns:
        raise ValueError("polygon table needs fire_id and size_hectares columns")

    poly_size = (
        polygons.assign(
            fire_id=polygons["fire_id"].astype(str).str.strip(),
            size_hectares=pd.to_numeric(polygons["size_hectares"], errors="coerce"),
        )
        .groupby("fire_id")["size_hectares"]
        .max()
    )
    out = points.copy()
    if "size_hectares" not in out.columns:
        out["size_hectares"] = float("nan")
    fill = out["fire_id"].astype(str).str.strip().map(poly_size)
    out["size_hectares"] = out["size_hectares"].fillna(fill)
    return out


def load_current(
    *,
    sources_cfg: Dict[str, Any],
    out_path: Path,
    points_csv: Optional[Path] = None,
    polygons_csv: Optional[Path] = None,
    on_invalid: str = "flag",
    overwrite: bool = False,
    dry_run: bool = False,
) -> Optional[pd.DataFrame]:
    """Load, normalize and store the current-year fire table.

    Parameters
    ----------
    sources_cfg : dict
        The `sources: -> current` block (points_csv, polygons_csv, columns,
        polygon_columns).
    out_path : Path
        Parquet output.
    points_csv, polygons_csv : Path | None
        Override the paths from sources_cfg.
    on_invalid, overwrite, dry_run
        As in fetch_history().
    """
    points_csv = points_csv or (Path(sources_cfg["points_csv"]) if sources_cfg.get("points_csv") else None)
    if points_csv is None:
        raise SystemExit("current config missing points_csv")
    if polygons_csv is None and sources_cfg.get("polygons_csv"):
        polygons_csv = Path(sources_cfg["polygons_csv"])

    columns = sources_cfg.get("columns")
    if not isinstance(columns, dict) or not columns:
        raise SystemExit("current config missing columns: mapping")

    if out_path.exists() and not overwrite:
        print(f"[SKIP] Current-year table already exists: {out_path}")
        return None

    print(f"[CURRENT] Points: {points_csv}")
    if polygons_csv:
        print(f"[CURRENT] Polygons: {polygons_csv}")
    print(f"[CURRENT] OUT: {out_path}")

    if dry_run:
        print("[DRY-RUN] Nothing read or written")
        return None

    raw = _read_csv(points_csv, what="Current-year points")
    points = rename_columns(raw, {str(k): str(v) for k, v in columns.items()}, source="current points")

    if polygons_csv:
        poly_columns = sources_cfg.get("polygon_columns") or {"FIRE_NUMBER": "fire_id", "FIRE_SIZE_HECTARES": "size_hectares"}
        poly_raw = _read_csv(polygons_csv, what="Current-year polygons")
        polygons = rename_columns(poly_raw, {str(k): str(v) for k, v in poly_columns.items()},
                                  source="current polygons")
        points = fill_sizes_from_polygons(points, polygons)

    records = finalize_records(points, source="current", on_invalid=on_invalid, coords_are_decimal=True)

    out_path.parent.mkdir(parents=True, exist_ok=True)
    records.to_parquet(out_path, index=False)

    summarize_records(records, tag="CURRENT")
    print(f"Wrote current-year -> {out_path}")
    return records
