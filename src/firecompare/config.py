#!/usr/bin/env python3
"""firecompare.config

Shared configuration utilities for the firecompare CLI subsystems.

This module provides common helpers used across firecompare.ingest,
firecompare.geo, firecompare.registry and firecompare.compare.

Design notes:
- YAML loading is strict: files must exist and be valid mappings.
- ${ENV_VAR} references in string values are expanded at load time.
- Source paths live in sources.yaml, analysis parameters in analysis.yaml.
- All functions are pure (no side effects on import).
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml


# -----------------------------------------------------------------------------
# YAML loading
# -----------------------------------------------------------------------------

def _expand_env_vars(value: Any) -> Any:
    """Expand ${ENV_VAR} references in strings, recursing into dicts/lists."""
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    if isinstance(value, str):
        return re.sub(r"\$\{(\w+)\}", lambda m: os.environ.get(m.group(1), ""), value)
    return value


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML file and return as dict.

    Raises SystemExit on missing file or invalid format (non-mapping).
    Config errors should fail fast.
    """
    if not path.exists():
        raise SystemExit(f"Config not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise SystemExit(f"Expected YAML mapping at {path}")
    return _expand_env_vars(data)


def source_config(sources_yaml: Dict[str, Any], source_id: str) -> Dict[str, Any]:
    """Return the `sources: -> <source_id>` block, or exit if it is missing."""
    sources = sources_yaml.get("sources", {})
    cfg = sources.get(source_id) if isinstance(sources, dict) else None
    if not isinstance(cfg, dict):
        raise SystemExit(f"sources.yaml missing sources: -> {source_id}")
    return cfg


# -----------------------------------------------------------------------------
# Analysis parameters
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Period:
    """A labelled, inclusive range of fire seasons."""

    label: str
    start_year: int
    end_year: int


def parse_periods(raw: Any) -> List[Period]:
    """Parse the `periods:` list from analysis.yaml.

    Expects:
        periods:
          - label: "2013-2022"
            start_year: 2013
            end_year: 2022

    Raises ValueError if the structure is invalid or labels repeat.
    """
    if not isinstance(raw, list) or not raw:
        raise ValueError("analysis.yaml must have a non-empty 'periods:' list.")
    periods: List[Period] = []
    for item in raw:
        if not isinstance(item, dict) or "label" not in item:
            raise ValueError(f"Bad period entry (needs label/start_year/end_year): {item}")
        try:
            start = int(item["start_year"])
            end = int(item.get("end_year", start))
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Bad period years in {item}") from e
        if start > end:
            raise ValueError(f"Period {item['label']}: start_year ({start}) must be <= end_year ({end})")
        periods.append(Period(label=str(item["label"]), start_year=start, end_year=end))

    labels = [p.label for p in periods]
    if len(set(labels)) != len(labels):
        raise ValueError(f"Duplicate period labels: {labels}")
    return periods


def normalize_months(raw: Optional[List[Any]]) -> List[str]:
    """Months as zero-padded strings: ["06", "07", ...]. Defaults to all twelve."""
    if not raw:
        return [f"{m:02d}" for m in range(1, 13)]
    months = [str(m).strip().zfill(2) for m in raw]
    bad = [m for m in months if not m.isdigit() or not 1 <= int(m) <= 12]
    if bad:
        raise ValueError(f"Invalid months in analysis.yaml: {bad}")
    return months


@dataclass
class AnalysisConfig:
    target_crs: Optional[str]
    months: List[str]
    periods: List[Period]
    on_invalid: str = "flag"


def load_analysis_yaml(path: Path) -> AnalysisConfig:
    """Load analysis.yaml into an AnalysisConfig."""
    data = load_yaml(path)
    coords = data.get("coordinates") or {}
    on_invalid = str(coords.get("on_invalid", "flag"))
    if on_invalid not in ("flag", "drop", "raise"):
        raise ValueError(f"coordinates.on_invalid must be flag, drop or raise (got {on_invalid!r})")
    return AnalysisConfig(
        target_crs=data.get("target_crs"),
        months=normalize_months(data.get("months")),
        periods=parse_periods(data.get("periods")),
        on_invalid=on_invalid,
    )


# -----------------------------------------------------------------------------
# Bounding box utilities
# -----------------------------------------------------------------------------

def format_bbox(b: Tuple[float, float, float, float], precision: int = 5) -> str:
    """Format a bbox tuple as a readable string."""
    return f"[{b[0]:.{precision}f}, {b[1]:.{precision}f}, {b[2]:.{precision}f}, {b[3]:.{precision}f}]"


# -----------------------------------------------------------------------------
# Default paths
# -----------------------------------------------------------------------------
# Centralized so all CLIs use the same defaults.

DEFAULT_SOURCES_YAML = Path("config/sources.yaml")
DEFAULT_ANALYSIS_YAML = Path("config/analysis.yaml")

DEFAULT_HISTORY_TABLE = Path("data/interim/tables/fires_history.parquet")
DEFAULT_CURRENT_TABLE = Path("data/interim/tables/fires_current.parquet")
DEFAULT_BOUNDARY_GPKG = Path("data/interim/vectors/boundary.gpkg")
DEFAULT_BOUNDS_PARQUET = Path("data/interim/tables/boundary_bounds.parquet")
DEFAULT_CLIPPED_DIR = Path("data/interim/rasters/clipped")
DEFAULT_FIGURES_DIR = Path("data/processed/figures")
