#!/usr/bin/env python3
"""coords.py

Turn degree/minute coordinate strings ("49 30", "123 15") into signed decimal
degrees.

The historical fire table publishes latitude and longitude as two
space-separated tokens: whole degrees and decimal minutes. Longitudes are
published without a sign even though every fire is in the western
hemisphere, so they are negated here.

Malformed values never abort a batch: the parser returns NaN and the caller
decides what to do with those rows (see normalize_coordinate_columns()).
"""

from __future__ import annotations

import math
import re
from typing import Any

import numpy as np
import pandas as pd


# "<deg> <min>", tolerating a degree mark and a trailing minute mark: 49° 30.5', 49°30'
_DM_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)(?:\s*°\s*|\s+)(\d+(?:\.\d+)?)\s*'?\s*$")

ON_INVALID_CHOICES = ("flag", "drop", "raise")


def parse_degrees_minutes(text: Any, *, west: bool = False) -> float:
    """Parse "<degrees> <minutes>" into decimal degrees.

    Returns degrees + minutes / 60, negated when `west` is True. A leading
    minus on the degree token flips the sign of the whole value and is taken
    as final: "-123 15" with west=True stays -123.25.
    Returns NaN for anything that isn't exactly two numeric tokens, or when
    minutes fall outside [0, 60).
    """
    if text is None:
        return math.nan
    m = _DM_RE.match(str(text))
    if not m:
        return math.nan

    deg_token, min_token = m.group(1), m.group(2)
    degrees = float(deg_token)
    minutes = float(min_token)
    if minutes >= 60:
        return math.nan

    value = abs(degrees) + minutes / 60.0
    if deg_token.startswith("-"):
        return -value
    return -value if west else value


def normalize_latitude(text: Any) -> float:
    """Latitude in decimal degrees, NaN if malformed or outside [-90, 90]."""
    value = parse_degrees_minutes(text)
    if math.isnan(value) or not -90.0 <= value <= 90.0:
        return math.nan
    return value


def normalize_longitude(text: Any, *, west: bool = True) -> float:
    """Longitude in decimal degrees (west-negative), NaN if malformed or outside [-180, 180]."""
    value = parse_degrees_minutes(text, west=west)
    if math.isnan(value) or not -180.0 <= value <= 180.0:
        return math.nan
    return value


def _normalize_value(value: Any, *, is_longitude: bool) -> float:
    """Normalize one cell. Numeric cells are already decimal degrees."""
    if isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, bool):
        v = float(value)
        limit = 180.0 if is_longitude else 90.0
        if math.isnan(v) or not -limit <= v <= limit:
            return math.nan
        return v
    if is_longitude:
        return normalize_longitude(value)
    return normalize_latitude(value)


def normalize_coordinate_columns(
    df: pd.DataFrame,
    *,
    lat_col: str = "latitude",
    lon_col: str = "longitude",
    on_invalid: str = "flag",
) -> pd.DataFrame:
    """Normalize latitude/longitude columns of a fire table to decimal degrees.

    on_invalid decides what happens to rows whose coordinates fail to parse:
    - "flag": keep the row with NaN coordinates and coord_valid = False
    - "drop": remove the row
    - "raise": raise ValueError listing the offending rows

    Returns a copy; the input frame is left untouched.
    """
    if on_invalid not in ON_INVALID_CHOICES:
        raise ValueError(f"on_invalid must be one of {ON_INVALID_CHOICES} (got {on_invalid!r})")
    missing = [c for c in (lat_col, lon_col) if c not in df.columns]
    if missing:
        raise ValueError(f"Missing coordinate columns: {missing}")

    out = df.copy()
    out[lat_col] = [_normalize_value(v, is_longitude=False) for v in df[lat_col]]
    out[lon_col] = [_normalize_value(v, is_longitude=True) for v in df[lon_col]]
    out[lat_col] = out[lat_col].astype(float)
    out[lon_col] = out[lon_col].astype(float)

    valid = out[lat_col].notna() & out[lon_col].notna()
    n_bad = int((~valid).sum())

    if n_bad and on_invalid == "raise":
        bad = df.loc[~valid, [lat_col, lon_col]].head(10)
        raise ValueError(
            f"{n_bad} rows have malformed coordinates. First offenders:\n{bad.to_string()}"
        )

    if on_invalid == "drop":
        if n_bad:
            print(f"[COORDS] Dropped {n_bad} rows with malformed coordinates")
        return out[valid].copy()

    out["coord_valid"] = valid
    if n_bad:
        print(f"[COORDS] Flagged {n_bad} rows with malformed coordinates (coord_valid=False)")
    return out
