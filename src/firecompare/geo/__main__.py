#!/usr/bin/env python3
"""firecompare.geo

Geospatial processing CLI for firecompare.

This is one of several firecompare subsystem CLIs:
- firecompare.registry → boundary polygon (prep-boundary)
- firecompare.ingest   → fire tables (fetch-history, load-current)
- firecompare.geo      → rasters and spatial alignment (this file)
- firecompare.compare  → aggregation and charts

firecompare.geo works on *already-fetched* data:
- Clipping elevation/temperature rasters to the boundary polygon
- Aligning fire points to the common CRS, keeping those inside the boundary
  and sampling raster values at each fire

It does NOT define the boundary (that's firecompare.registry).

Design notes:
- Consumes outputs from firecompare.registry (boundary.gpkg) and
  firecompare.ingest (fire parquet tables)
- Lazy-imports geo modules to keep CLI startup fast
- All subcommands support --dry-run for safe exploration

Examples:
  # Clip the elevation raster to the boundary
  python -m firecompare.geo clip-raster --source elevation

  # Align current-year fires, sampling the clipped rasters
  python -m firecompare.geo align-points \
    --table data/interim/tables/fires_current.parquet \
    --out-gpkg data/interim/vectors/fires_current.gpkg \
    --sample data/interim/rasters/clipped/elevation_clipped.tif
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

from firecompare.config import (
    load_yaml,
    load_analysis_yaml,
    source_config,
    format_bbox,
    DEFAULT_SOURCES_YAML,
    DEFAULT_ANALYSIS_YAML,
    DEFAULT_BOUNDARY_GPKG,
    DEFAULT_CLIPPED_DIR,
)


RASTER_SOURCES = ("elevation", "temperature")


# -----------------------------------------------------------------------------
# CLI structure
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for firecompare.geo."""
    ap = argparse.ArgumentParser(
        prog="firecompare.geo",
        description="Geospatial processing for firecompare (rasters, alignment)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Subsystem CLIs:
  python -m firecompare.registry  # Boundary polygon
  python -m firecompare.ingest    # Fire tables
  python -m firecompare.geo       # Rasters and alignment (this)
  python -m firecompare.compare   # Aggregation and charts
        """,
    )

    # --- Global args ---
    ap.add_argument(
        "--sources-yaml",
        type=Path,
        default=DEFAULT_SOURCES_YAML,
        help=f"Path to sources YAML (default: {DEFAULT_SOURCES_YAML})",
    )
    ap.add_argument(
        "--analysis-yaml",
        type=Path,
        default=DEFAULT_ANALYSIS_YAML,
        help=f"Path to analysis YAML (default: {DEFAULT_ANALYSIS_YAML})",
    )
    ap.add_argument(
        "--boundary-gpkg",
        type=Path,
        default=DEFAULT_BOUNDARY_GPKG,
        help=f"Boundary GeoPackage from firecompare.registry (default: {DEFAULT_BOUNDARY_GPKG})",
    )
    ap.add_argument(
        "--dry-run",
        action="store_true",
        help="Print planned actions without writing files",
    )
    ap.add_argument(
        "--overwrite",
        action="store_true",
        help="Overwrite existing output files",
    )

    # --- Subcommands ---
    sub = ap.add_subparsers(dest="command", required=True)

    # --- clip-raster ---
    clip = sub.add_parser(
        "clip-raster",
        help="Clip a raster to the boundary polygon",
        description="""
Clip a pre-downloaded raster to the boundary polygon.

Steps:
1. Warp the raster into the target CRS (analysis.yaml), if one is set
2. Crop to the boundary's bounding rectangle
3. Mask cells whose center lies outside the boundary

Output: <clipped-dir>/<source>_clipped.tif
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    clip.add_argument("--source", required=True, choices=RASTER_SOURCES, help="Raster source id in sources.yaml")
    clip.add_argument("--raster", type=Path, default=None, help="Override the raster path from sources.yaml")
    clip.add_argument("--clipped-dir", type=Path, default=DEFAULT_CLIPPED_DIR,
                      help=f"Output directory (default: {DEFAULT_CLIPPED_DIR})")
    clip.add_argument("--no-crop", action="store_true",
                      help="Mask only, keeping the full raster extent")

    # --- align-points ---
    align = sub.add_parser(
        "align-points",
        help="Align fire points to the target CRS and boundary",
    )
    align.add_argument("--table", required=True, type=Path, help="Fire parquet table from firecompare.ingest")
    align.add_argument("--out-gpkg", required=True, type=Path, help="Output GeoPackage")
    align.add_argument("--layer", default="fires", help="Layer name (default: fires)")
    align.add_argument("--sample", nargs="*", type=Path, default=[],
                       help="Rasters to sample at each fire (column named after the file stem)")
    align.add_argument("--keep-outside", action="store_true",
                       help="Keep fires that fall outside the boundary")

    return ap


# -----------------------------------------------------------------------------
# Command handlers
# -----------------------------------------------------------------------------

def _load_boundary(path: Path):
    if not path.exists():
        raise SystemExit(f"Boundary GeoPackage not found: {path} (run firecompare.registry prep-boundary)")
    import geopandas as gpd

    return gpd.read_file(path)


def _handle_clip_raster(args: argparse.Namespace) -> int:
    """Handle the clip-raster subcommand."""
    sources_yaml = load_yaml(args.sources_yaml)
    analysis = load_analysis_yaml(args.analysis_yaml)

    cfg = source_config(sources_yaml, args.source)
    raster_path = args.raster or (Path(cfg["local_path"]) if cfg.get("local_path") else None)
    if raster_path is None:
        raise SystemExit(f"sources.yaml: {args.source} missing local_path")

    out_path = args.clipped_dir / f"{args.source}_clipped.tif"
    if out_path.exists() and not args.overwrite:
        print(f"[SKIP] {out_path}")
        return 0

    print(f"[CLIP] {args.source}")
    print(f"  - raster: {raster_path}")
    print(f"  - boundary: {args.boundary_gpkg}")
    print(f"  - out: {out_path}")

    if args.dry_run:
        print("[DRY-RUN] Nothing written")
        return 0

    # Lazy import: keeps CLI startup fast, avoids loading rasterio until needed
    from firecompare.geo.align import resolve_target_crs
    from firecompare.geo.clip import clip_raster
    from firecompare.geo.raster import grid_stats, read_raster, reproject_grid, write_raster

    boundary = _load_boundary(args.boundary_gpkg)
    grid = read_raster(raster_path)

    target = resolve_target_crs(analysis.target_crs, grid)
    grid = reproject_grid(grid, target)

    clipped = clip_raster(grid, boundary, crop=not args.no_crop)
    write_raster(clipped, out_path)

    stats = grid_stats(clipped)
    print(f"Wrote clipped raster -> {out_path}")
    print(f"  {clipped.width}x{clipped.height} cells, bounds {format_bbox(clipped.bounds, precision=1)}")
    print(f"  valid cells: {stats['count']} | min={stats['min']:.1f} max={stats['max']:.1f} mean={stats['mean']:.1f}")
    return 0


def _handle_align_points(args: argparse.Namespace) -> int:
    """Handle the align-points subcommand."""
    analysis = load_analysis_yaml(args.analysis_yaml)

    if not args.table.exists():
        raise SystemExit(f"Fire table not found: {args.table}")
    if args.out_gpkg.exists() and not args.overwrite:
        print(f"[SKIP] {args.out_gpkg}")
        return 0

    if args.dry_run:
        print("[dry-run] Would align fire points:")
        print(f"  Table: {args.table}")
        print(f"  Boundary: {args.boundary_gpkg}")
        print(f"  Target CRS: {analysis.target_crs or '(first sampled raster)'}")
        print(f"  Sample rasters: {[str(p) for p in args.sample]}")
        return 0

    import pandas as pd

    from firecompare.geo.align import align_all, points_to_gdf, points_within, resolve_target_crs
    from firecompare.geo.raster import read_raster, sample_grid

    records = pd.read_parquet(args.table)
    grids = {p.stem: read_raster(p) for p in args.sample}
    target = resolve_target_crs(analysis.target_crs, *grids.values())

    aligned = align_all(
        {"points": points_to_gdf(records), "boundary": _load_boundary(args.boundary_gpkg)},
        target,
    )
    points = aligned["points"]
    if not args.keep_outside:
        before = len(points)
        points = points_within(points, aligned["boundary"])
        print(f"[ALIGN] {len(points)}/{before} fires inside the boundary")

    for name, grid in grids.items():
        points[name] = sample_grid(grid, points)
        print(f"[ALIGN] Sampled {name}: {int(points[name].notna().sum())} values")

    args.out_gpkg.parent.mkdir(parents=True, exist_ok=True)
    points.to_file(args.out_gpkg, layer=args.layer, driver="GPKG")
    print(f"Wrote {len(points)} fires -> {args.out_gpkg} (layer={args.layer}, crs={target})")
    return 0


# -----------------------------------------------------------------------------
# Main entrypoint
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """Main entrypoint for firecompare.geo CLI."""
    ap = build_parser()
    args = ap.parse_args(argv)

    handlers = {
        "clip-raster": _handle_clip_raster,
        "align-points": _handle_align_points,
    }

    handler = handlers.get(args.command)
    if handler is None:
        raise SystemExit(f"Unknown command: {args.command}")

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
