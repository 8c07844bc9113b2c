#!/usr/bin/env python3
"""firecompare.compare

Aggregation and chart CLI for firecompare.

This is one of several firecompare subsystem CLIs:
- firecompare.registry → boundary polygon (prep-boundary)
- firecompare.ingest   → fire tables (fetch-history, load-current)
- firecompare.geo      → rasters and spatial alignment
- firecompare.compare  → aggregation and charts (this file)

Periods come from analysis.yaml. The LAST period is the current-year period:
the current-year table is labelled with it, while historical records are
labelled by the year ranges of the other periods.

Examples:
  # Count and size distribution per month, both periods
  python -m firecompare.compare summarize --key month

  # Charts
  python -m firecompare.compare plot \
    --raster data/interim/rasters/clipped/elevation_clipped.tif \
    --points-gpkg data/interim/vectors/fires_current.gpkg
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

from firecompare.config import (
    AnalysisConfig,
    load_analysis_yaml,
    DEFAULT_ANALYSIS_YAML,
    DEFAULT_CURRENT_TABLE,
    DEFAULT_FIGURES_DIR,
    DEFAULT_HISTORY_TABLE,
)


DEFAULT_SUMMARY_DIR = Path("data/processed/tables")


# -----------------------------------------------------------------------------
# CLI structure
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for firecompare.compare."""
    ap = argparse.ArgumentParser(
        prog="firecompare.compare",
        description="Period comparison for firecompare (aggregation, charts)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    # --- Global args ---
    ap.add_argument("--analysis-yaml", type=Path, default=DEFAULT_ANALYSIS_YAML,
                    help=f"Path to analysis YAML (default: {DEFAULT_ANALYSIS_YAML})")
    ap.add_argument("--history", type=Path, default=DEFAULT_HISTORY_TABLE,
                    help=f"Historical fire table (default: {DEFAULT_HISTORY_TABLE})")
    ap.add_argument("--current", type=Path, default=DEFAULT_CURRENT_TABLE,
                    help=f"Current-year fire table (default: {DEFAULT_CURRENT_TABLE})")
    ap.add_argument("--all-months", action="store_true",
                    help="Ignore the months filter from analysis.yaml")
    ap.add_argument("--dry-run", action="store_true", help="Print planned actions without writing files")
    ap.add_argument("--overwrite", action="store_true", help="Overwrite existing output files")

    # --- Subcommands ---
    sub = ap.add_subparsers(dest="command", required=True)

    summ = sub.add_parser("summarize", help="Count and size distribution per group")
    summ.add_argument("--key", choices=["month", "year", "period"], default="month")
    summ.add_argument("--out-dir", type=Path, default=DEFAULT_SUMMARY_DIR,
                      help=f"Output directory for CSV tables (default: {DEFAULT_SUMMARY_DIR})")

    plot = sub.add_parser("plot", help="Render comparison charts")
    plot.add_argument("--out-dir", type=Path, default=DEFAULT_FIGURES_DIR,
                      help=f"Output directory for PNGs (default: {DEFAULT_FIGURES_DIR})")
    plot.add_argument("--raster", nargs="*", type=Path, default=[],
                      help="Clipped rasters to map (one PNG each)")
    plot.add_argument("--points-gpkg", type=Path, default=None,
                      help="Aligned fire points to overlay on raster maps")

    return ap


# -----------------------------------------------------------------------------
# Command handlers
# -----------------------------------------------------------------------------

def _load_comparison(args: argparse.Namespace, analysis: AnalysisConfig):
    """Read both fire tables and reconcile them into one labelled table."""
    import pandas as pd

    from firecompare.compare.aggregate import filter_months, label_periods, reconcile

    for p in (args.history, args.current):
        if not p.exists():
            raise SystemExit(f"Fire table not found: {p} (run firecompare.ingest first)")

    if len(analysis.periods) < 2:
        raise SystemExit("analysis.yaml needs at least two periods (historical ..., current)")

    *historical_periods, current_period = analysis.periods
    history = label_periods(pd.read_parquet(args.history), historical_periods)
    current = pd.read_parquet(args.current)

    records = reconcile(history, current, historical_label=None, current_label=current_period.label)
    if not args.all_months:
        records = filter_months(records, analysis.months)
    print(f"[COMPARE] {len(records)} records across periods {[p.label for p in analysis.periods]}")
    return records


def _handle_summarize(args: argparse.Namespace) -> int:
    analysis = load_analysis_yaml(args.analysis_yaml)
    stats_path = args.out_dir / f"size_by_{args.key}.csv"
    counts_path = args.out_dir / f"counts_by_{args.key}_period.csv"

    if stats_path.exists() and not args.overwrite:
        print(f"[SKIP] {stats_path}")
        return 0
    if args.dry_run:
        print("[dry-run] Would summarize:")
        print(f"  Tables: {args.history}, {args.current}")
        print(f"  Key: {args.key}")
        print(f"  Outputs: {stats_path}, {counts_path}")
        return 0

    from firecompare.compare.aggregate import aggregate, compare_counts

    records = _load_comparison(args, analysis)
    labels = [p.label for p in analysis.periods]
    groups = {"month": None if args.all_months else analysis.months, "period": labels}.get(args.key)

    stats = aggregate(records, args.key, groups=groups)
    args.out_dir.mkdir(parents=True, exist_ok=True)
    stats.to_csv(stats_path)

    if args.key != "period":
        counts = compare_counts(records, args.key, labels, groups=groups)
        counts.to_csv(counts_path)
        print(counts.to_string())

    print(stats.to_string(float_format=lambda v: f"{v:,.1f}"))
    print(f"Wrote summary -> {stats_path}")
    return 0


def _handle_plot(args: argparse.Namespace) -> int:
    analysis = load_analysis_yaml(args.analysis_yaml)
    if args.dry_run:
        print("[dry-run] Would render charts:")
        print(f"  Out dir: {args.out_dir}")
        print(f"  Rasters: {[str(p) for p in args.raster]}")
        return 0

    from firecompare.compare.aggregate import compare_counts
    from firecompare.compare.plots import (
        plot_counts_by_period,
        plot_raster_with_points,
        plot_size_distribution,
    )

    records = _load_comparison(args, analysis)
    labels = [p.label for p in analysis.periods]
    months = None if args.all_months else analysis.months

    written = [
        plot_counts_by_period(compare_counts(records, "month", labels, groups=months),
                              args.out_dir / "counts_by_month.png", title="Fires per month"),
        plot_size_distribution(records, labels, args.out_dir / "size_by_period.png"),
    ]

    if args.raster:
        import geopandas as gpd

        from firecompare.geo.raster import read_raster

        points = None
        if args.points_gpkg:
            if not args.points_gpkg.exists():
                raise SystemExit(f"Points GeoPackage not found: {args.points_gpkg}")
            points = gpd.read_file(args.points_gpkg)
        for raster_path in args.raster:
            grid = read_raster(raster_path)
            written.append(plot_raster_with_points(
                grid, args.out_dir / f"{raster_path.stem}_map.png", points=points, label=raster_path.stem,
            ))

    for path in written:
        print(f"[PLOT] {path}")
    return 0


# -----------------------------------------------------------------------------
# Main entrypoint
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """Main entrypoint for firecompare.compare CLI."""
    ap = build_parser()
    args = ap.parse_args(argv)

    handlers = {
        "summarize": _handle_summarize,
        "plot": _handle_plot,
    }

    handler = handlers.get(args.command)
    if handler is None:
        raise SystemExit(f"Unknown command: {args.command}")

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
