#!/usr/bin/env python3
"""fetch_history.py

Scrape the historical wildfire table from a public statistics page.

One HTTP GET, no pagination, no authentication, no retries. The first HTML
table found on the page is treated as the dataset. Its columns are renamed to
the FireRecord schema using the `columns:` map from sources.yaml, coordinates
are normalized from "<deg> <min>" strings, and the result is written to a
parquet table for the later steps.

Called by:
  python -m firecompare.ingest fetch-history
"""

from __future__ import annotations

from io import StringIO
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd
import requests

from firecompare.ingest.records import finalize_records, rename_columns, summarize_records


def download_first_table(url: str, *, timeout: Optional[float] = 60) -> pd.DataFrame:
    """GET `url` and parse the first <table> on the page."""
    try:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise SystemExit(f"Failed to fetch wildfire table from {url}: {e}") from e

    try:
        tables = pd.read_html(StringIO(resp.text))
    except ValueError as e:
        # read_html raises ValueError("No tables found")
        raise SystemExit(f"No HTML table found at {url}") from e

    table = tables[0]
    if isinstance(table.columns, pd.MultiIndex):
        table.columns = [" ".join(str(p) for p in col if not str(p).startswith("Unnamed")).strip()
                         for col in table.columns]
    return table


def fetch_history(
    *,
    sources_cfg: Dict[str, Any],
    out_path: Path,
    on_invalid: str = "flag",
    overwrite: bool = False,
    dry_run: bool = False,
) -> Optional[pd.DataFrame]:
    """Fetch, normalize and store the historical wildfire table.

    Parameters
    ----------
    sources_cfg : dict
        The `sources: -> history` block (url, columns, timeout).
    out_path : Path
        Parquet output.
    on_invalid : str
        Malformed coordinate policy (flag / drop / raise).
    overwrite : bool
        If False and out_path exists, skip.
    dry_run : bool
        Print planned actions without fetching.

    Returns
    -------
    DataFrame of FireRecords, or None when skipped / dry-run.
    """
    url = sources_cfg.get("url")
    if not url:
        raise SystemExit("history config missing url")
    columns = sources_cfg.get("columns")
    if not isinstance(columns, dict) or not columns:
        raise SystemExit("history config missing columns: mapping")

    if out_path.exists() and not overwrite:
        print(f"[SKIP] History table already exists: {out_path}")
        return None

    print(f"[HISTORY] URL: {url}")
    print(f"[HISTORY] OUT: {out_path}")

    if dry_run:
        print("[DRY-RUN] No download performed")
        return None

    raw = download_first_table(str(url), timeout=sources_cfg.get("timeout", 60))
    print(f"[HISTORY] Parsed table with {len(raw)} rows, {len(raw.columns)} columns")

    records = rename_columns(raw, {str(k): str(v) for k, v in columns.items()}, source="history")
    records = finalize_records(records, source="history", on_invalid=on_invalid)

    out_path.parent.mkdir(parents=True, exist_ok=True)
    records.to_parquet(out_path, index=False)

    summarize_records(records, tag="HISTORY")
    print(f"Wrote history -> {out_path}")
    return records
