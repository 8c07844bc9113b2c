#!/usr/bin/env python3
"""aggregate.py

Compare fire activity between periods.

Two heterogeneous sources, the historical multi-year table and the
current-year table, are first mapped onto one schema:

    size_hectares, period, year, month

then grouped by calendar month, calendar year or period label. Each group
reports a count and the size distribution (median and quartiles).
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from firecompare.config import Period


AGGREGATION_KEYS = ("month", "year", "period")
RECONCILED_COLUMNS = ["size_hectares", "period", "year", "month"]


def _reconcile_one(df: pd.DataFrame, label: Optional[str]) -> pd.DataFrame:
    out = pd.DataFrame(index=df.index)
    out["size_hectares"] = pd.to_numeric(df["size_hectares"], errors="coerce") if "size_hectares" in df else np.nan
    out["period"] = df["period"] if label is None else label
    out["year"] = df["year"] if "year" in df else pd.NA
    out["month"] = df["month"] if "month" in df else pd.NA
    return out


def reconcile(
    historical: pd.DataFrame,
    current: pd.DataFrame,
    *,
    historical_label: Optional[str],
    current_label: str,
) -> pd.DataFrame:
    """Map both sources onto the common comparison schema and stack them.

    A pure mapping: no deduplication or conflict resolution between sources.
    Pass historical_label=None when the historical table already carries a
    `period` column (see label_periods()).
    """
    if historical_label is None and "period" not in historical.columns:
        raise ValueError("historical table has no period column; pass historical_label")
    parts = [
        _reconcile_one(historical, historical_label),
        _reconcile_one(current, current_label),
    ]
    out = pd.concat(parts, ignore_index=True)
    return out[RECONCILED_COLUMNS]


def label_periods(records: pd.DataFrame, periods: Sequence[Period]) -> pd.DataFrame:
    """Label each record with the first period whose year range contains it.

    Records outside every period are dropped.
    """
    if "year" not in records.columns:
        raise ValueError("records need a year column to be labelled by period")
    years = pd.to_numeric(records["year"], errors="coerce")
    labels = pd.Series(pd.NA, index=records.index, dtype="object")
    for period in periods:
        hit = labels.isna() & years.between(period.start_year, period.end_year)
        labels[hit] = period.label
    out = records.assign(period=labels)
    return out[out["period"].notna()].copy()


def filter_months(records: pd.DataFrame, months: Iterable[str]) -> pd.DataFrame:
    """Keep records whose month ("07") is in `months`."""
    wanted = {str(m).zfill(2) for m in months}
    return records[records["month"].astype(str).isin(wanted)].copy()


def aggregate(
    records: pd.DataFrame,
    key: str,
    *,
    groups: Optional[Sequence] = None,
    value_col: str = "size_hectares",
) -> pd.DataFrame:
    """Count and size distribution per group.

    Parameters
    ----------
    records : DataFrame
        Must contain `key` and `value_col` (unless empty).
    key : str
        "month", "year" or "period".
    groups : sequence, optional
        Groups to report even when they have no records (count 0, NaN stats),
        in this order. Groups found in the data but not listed are appended.
    value_col : str
        Column summarized (size_hectares, or a sampled raster value).

    Returns
    -------
    DataFrame indexed by group with columns count, median, q1, q3.
    An empty record set never raises: declared groups come back with count 0,
    and with no declared groups the table has no rows (total count 0).
    """
    if key not in AGGREGATION_KEYS:
        raise ValueError(f"key must be one of {AGGREGATION_KEYS} (got {key!r})")

    columns = ["count", "median", "q1", "q3"]
    if records.empty:
        stats = pd.DataFrame(columns=columns, dtype=float)
    else:
        if key not in records.columns or value_col not in records.columns:
            raise ValueError(f"records need '{key}' and '{value_col}' columns")
        values = pd.to_numeric(records[value_col], errors="coerce")
        grouped = values.groupby(records[key], dropna=True)
        stats = pd.DataFrame({
            "count": grouped.size(),
            "median": grouped.median(),
            "q1": grouped.quantile(0.25),
            "q3": grouped.quantile(0.75),
        })

    if groups is not None:
        order: List = list(groups) + [g for g in stats.index if g not in set(groups)]
        stats = stats.reindex(order)

    stats["count"] = stats["count"].fillna(0).astype(int)
    stats.index.name = key
    return stats[columns]


def compare_counts(
    records: pd.DataFrame,
    key: str,
    periods: Sequence[str],
    *,
    groups: Optional[Sequence] = None,
) -> pd.DataFrame:
    """Group x period table of record counts, zeros where a period has none."""
    table = pd.DataFrame(
        {label: aggregate(records[records["period"] == label] if not records.empty else records,
                          key, groups=groups)["count"]
         for label in periods}
    )
    if groups is not None:
        table = table.reindex(list(groups) + [g for g in table.index if g not in set(groups)])
    table = table.fillna(0).astype(int)
    table.index.name = key
    return table
