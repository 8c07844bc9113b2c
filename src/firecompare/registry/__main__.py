#!/usr/bin/env python3
"""firecompare.registry

Boundary definition CLI for firecompare.

This is one of several firecompare subsystem CLIs:
- firecompare.registry → boundary polygon (this file)
- firecompare.ingest   → fire tables (fetch-history, load-current)
- firecompare.geo      → rasters and spatial alignment
- firecompare.compare  → aggregation and charts

firecompare.registry is the source of truth for the region being studied.
All other subsystems consume its outputs.

Outputs:
- data/interim/vectors/boundary.gpkg               → boundary polygon
- data/interim/tables/boundary_bounds.parquet      → computed bounds

Examples:
  # Prepare the boundary named in sources.yaml
  python -m firecompare.registry prep-boundary

  # Another province, straight from the command line
  python -m firecompare.registry prep-boundary --name Alberta
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

from firecompare.config import (
    load_yaml,
    load_analysis_yaml,
    source_config,
    DEFAULT_SOURCES_YAML,
    DEFAULT_ANALYSIS_YAML,
    DEFAULT_BOUNDARY_GPKG,
    DEFAULT_BOUNDS_PARQUET,
)


# -----------------------------------------------------------------------------
# CLI structure
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for firecompare.registry."""
    ap = argparse.ArgumentParser(
        prog="firecompare.registry",
        description="Boundary definition for firecompare",
        formatter_class=argparse.RawDescriptionHelpFormatter,
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

    # --- prep-boundary ---
    prep = sub.add_parser(
        "prep-boundary",
        help="Extract the boundary polygon from a shapefile",
        description="""
Process an administrative boundary shapefile into the canonical boundary.

This command:
1. Selects the region by name
2. Fixes invalid geometries and dissolves multipart features
3. Computes area in an equal-area CRS
4. Reprojects to the target CRS from analysis.yaml
5. Writes the GeoPackage and bounds parquet
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    prep.add_argument("--boundary-shp", type=Path, default=None,
                      help="Boundary shapefile (default: sources.yaml boundary.local_path)")
    prep.add_argument("--name-field", default=None, help="Column with region names (default from sources.yaml)")
    prep.add_argument("--name", default=None, help="Region to select (default from sources.yaml)")
    prep.add_argument("--out-gpkg", type=Path, default=DEFAULT_BOUNDARY_GPKG,
                      help=f"Output GeoPackage path (default: {DEFAULT_BOUNDARY_GPKG})")
    prep.add_argument("--out-bounds", type=Path, default=DEFAULT_BOUNDS_PARQUET,
                      help=f"Output bounds parquet (default: {DEFAULT_BOUNDS_PARQUET})")
    prep.add_argument("--layer", default="boundary", help="Layer name in output GeoPackage (default: boundary)")

    return ap


# -----------------------------------------------------------------------------
# Command handlers
# -----------------------------------------------------------------------------

def _handle_prep_boundary(args: argparse.Namespace) -> int:
    """Handle the prep-boundary subcommand."""
    sources_yaml = load_yaml(args.sources_yaml)
    analysis = load_analysis_yaml(args.analysis_yaml)
    cfg = source_config(sources_yaml, "boundary")

    boundary_shp = args.boundary_shp or (Path(cfg["local_path"]) if cfg.get("local_path") else None)
    name_field = args.name_field or cfg.get("name_field")
    name = args.name or cfg.get("name")
    if boundary_shp is None or not name_field or not name:
        raise SystemExit("Boundary needs local_path, name_field and name (sources.yaml or flags)")

    if args.out_gpkg.exists() and not args.overwrite:
        print(f"[SKIP] Boundary already exists: {args.out_gpkg}")
        return 0

    if args.dry_run:
        print("[dry-run] Would prepare boundary:")
        print(f"  Input shapefile: {boundary_shp}")
        print(f"  Region: {name_field} == {name!r}")
        print(f"  Output GeoPackage: {args.out_gpkg}")
        print(f"  Output bounds: {args.out_bounds}")
        print(f"  Target CRS: {analysis.target_crs or '(source CRS)'}")
        return 0

    # Lazy import to keep CLI startup fast
    from firecompare.registry.prep_boundary import prep_boundary

    prep_boundary(
        boundary_shp,
        args.out_gpkg,
        name_field=str(name_field),
        name=str(name),
        layer=args.layer,
        target_crs=analysis.target_crs,
        area_crs=str(cfg.get("area_crs", "EPSG:3005")),
        out_bounds=args.out_bounds,
    )
    return 0


# -----------------------------------------------------------------------------
# Main entrypoint
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """Main entrypoint for firecompare.registry CLI."""
    ap = build_parser()
    args = ap.parse_args(argv)

    handlers = {
        "prep-boundary": _handle_prep_boundary,
    }

    handler = handlers.get(args.command)
    if handler is None:
        raise SystemExit(f"Unknown command: {args.command}")

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
