#!/usr/bin/env python3
"""records.py

Shared helpers that turn a raw fire table (scraped HTML or CSV) into
FireRecord rows:

    year, fire_id, center_name, latitude, longitude,
    discovery_date, size_hectares, month

Both the historical and current-year loaders go through rename_columns()
then finalize_records(), so downstream code sees one schema.
"""

from __future__ import annotations

from typing import Dict, List

import pandas as pd

from firecompare.ingest.coords import normalize_coordinate_columns


FIRE_RECORD_FIELDS: List[str] = [
    "year",
    "fire_id",
    "center_name",
    "latitude",
    "longitude",
    "discovery_date",
    "size_hectares",
    "month",
]


def rename_columns(df: pd.DataFrame, columns: Dict[str, str], *, source: str) -> pd.DataFrame:
    """Rename source columns to FireRecord fields and keep only those.

    `columns` maps source column -> FireRecord field. A missing source column
    means the upstream schema changed; there is nothing sensible to do but stop.
    """
    df = df.copy()
    df.columns = [str(c).strip() for c in df.columns]

    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise SystemExit(
            f"{source}: expected columns not found: {missing}\n"
            f"Available columns: {list(df.columns)}\n"
            "The source schema probably changed; update the column map in sources.yaml."
        )

    out = df[list(columns)].rename(columns=columns)
    return out


def _to_size(series: pd.Series) -> pd.Series:
    """Sizes are published as '1,234.5'; strip thousands separators."""
    if series.dtype == object:
        series = series.astype(str).str.replace(",", "", regex=False).str.strip()
    return pd.to_numeric(series, errors="coerce")


def finalize_records(
    df: pd.DataFrame,
    *,
    source: str,
    on_invalid: str = "flag",
    coords_are_decimal: bool = False,
) -> pd.DataFrame:
    """Normalize coordinates, parse dates and derive year/month.

    Parameters
    ----------
    df : DataFrame
        Output of rename_columns().
    source : str
        Name used in messages ("history", "current").
    on_invalid : str
        Malformed coordinate policy, see normalize_coordinate_columns().
    coords_are_decimal : bool
        Current-year CSVs already carry signed decimal degrees; coerce them to
        floats instead of parsing degree/minute strings.

    Raises
    ------
    SystemExit
        If any discovery_date can't be parsed.
    """
    out = df.copy()

    if "latitude" in out.columns and "longitude" in out.columns:
        if coords_are_decimal:
            out["latitude"] = pd.to_numeric(out["latitude"], errors="coerce")
            out["longitude"] = pd.to_numeric(out["longitude"], errors="coerce")
        out = normalize_coordinate_columns(out, on_invalid=on_invalid)

    if "discovery_date" in out.columns:
        parsed = pd.to_datetime(out["discovery_date"], errors="coerce", format="mixed")
        bad = out.loc[parsed.isna(), "discovery_date"]
        if len(bad):
            raise SystemExit(
                f"{source}: {len(bad)} discovery dates could not be parsed. "
                f"Sample: {bad.astype(str).head(5).tolist()}"
            )
        out["discovery_date"] = parsed
        out["month"] = parsed.dt.strftime("%m")
        if "year" not in out.columns:
            out["year"] = parsed.dt.year

    if "year" in out.columns:
        out["year"] = pd.to_numeric(out["year"], errors="coerce").astype("Int64")

    if "size_hectares" in out.columns:
        out["size_hectares"] = _to_size(out["size_hectares"])

    if "fire_id" in out.columns:
        out["fire_id"] = out["fire_id"].astype(str).str.strip()

    ordered = [c for c in FIRE_RECORD_FIELDS if c in out.columns]
    extra = [c for c in out.columns if c not in ordered]
    return out[ordered + extra].reset_index(drop=True)


def summarize_records(df: pd.DataFrame, *, tag: str) -> None:
    """Human-friendly one-screen summary of a fire table."""
    print(f"[{tag}] {len(df)} records")
    if df.empty:
        return
    if "year" in df.columns and df["year"].notna().any():
        print(f"  - years: {int(df['year'].min())}-{int(df['year'].max())}")
    if "coord_valid" in df.columns:
        print(f"  - valid coordinates: {int(df['coord_valid'].sum())}/{len(df)}")
    if "size_hectares" in df.columns:
        print(f"  - total size: {df['size_hectares'].sum():,.1f} ha")
