#!/usr/bin/env python3
"""firecompare.ingest

Data ingestion CLI for firecompare.

This is one of several firecompare subsystem CLIs:
- firecompare.registry → boundary polygon (prep-boundary)
- firecompare.ingest   → fire tables (this file)
- firecompare.geo      → rasters and spatial alignment (clip, align)
- firecompare.compare  → aggregation and charts

Design goals:
- One entrypoint for ingestion only
- One level of subcommands (dataset names)
- Config-driven defaults via YAML
- Optional verify mode that checks local inputs exist

Examples:
  # Scrape the historical wildfire table
  python -m firecompare.ingest fetch-history

  # Load current-year point/polygon CSVs
  python -m firecompare.ingest load-current

  # Verify that pre-downloaded inputs exist
  python -m firecompare.ingest verify --source all
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from firecompare.config import (
    load_yaml,
    load_analysis_yaml,
    source_config,
    DEFAULT_SOURCES_YAML,
    DEFAULT_ANALYSIS_YAML,
    DEFAULT_HISTORY_TABLE,
    DEFAULT_CURRENT_TABLE,
)


# -----------------------------
# Verify helpers (lightweight)
# -----------------------------

_PATH_KEYS = ("local_path", "points_csv", "polygons_csv")


def _verify_source(source_id: str, sources_yaml: Dict[str, Any]) -> Dict[str, Any]:
    """Best-effort presence check.

    Rules:
    - Every path-like key (local_path, points_csv, polygons_csv) must exist.
    - Sources with only a `url` are remote: nothing to check.

    It won't claim correctness, just presence.
    """
    sources = sources_yaml.get("sources")
    if not isinstance(sources, dict) or source_id not in sources:
        return {"source": source_id, "ok": False, "reason": "unknown source"}

    cfg = sources[source_id]
    if not isinstance(cfg, dict):
        return {"source": source_id, "ok": False, "reason": "bad config block"}

    paths = [Path(cfg[k]) for k in _PATH_KEYS if isinstance(cfg.get(k), str) and cfg[k].strip()]
    if not paths:
        return {"source": source_id, "ok": True, "rule": "remote", "note": "no local files (skipped)"}

    missing = [str(p) for p in paths if not p.exists()]
    result: Dict[str, Any] = {"source": source_id, "ok": not missing, "rule": "paths", "count": len(paths)}
    if missing:
        result["reason"] = f"missing: {', '.join(missing)}"
    return result


# -----------------------------
# CLI
# -----------------------------

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="firecompare.ingest", description="Fire table ingestion for firecompare")

    # Global args (available for all subcommands)
    ap.add_argument("--sources-yaml", type=Path, default=DEFAULT_SOURCES_YAML,
                    help=f"Path to sources.yaml (default: {DEFAULT_SOURCES_YAML})")
    ap.add_argument("--analysis-yaml", type=Path, default=DEFAULT_ANALYSIS_YAML,
                    help=f"Path to analysis.yaml (default: {DEFAULT_ANALYSIS_YAML})")
    ap.add_argument("--overwrite", action="store_true", help="Re-download/rewrite outputs")
    ap.add_argument("--dry-run", action="store_true", help="Print planned actions without downloading/writing")

    sub = ap.add_subparsers(dest="command", required=True)

    # --- fetch-history ---
    hist = sub.add_parser("fetch-history", help="Scrape the historical wildfire table")
    hist.add_argument("--url", default=None, help="Override the page URL from sources.yaml")
    hist.add_argument("--out", type=Path, default=None,
                      help=f"Output parquet (default: sources.yaml or {DEFAULT_HISTORY_TABLE})")

    # --- load-current ---
    cur = sub.add_parser("load-current", help="Load current-year fire CSVs")
    cur.add_argument("--points-csv", type=Path, default=None, help="Override points CSV path")
    cur.add_argument("--polygons-csv", type=Path, default=None, help="Override polygons CSV path")
    cur.add_argument("--out", type=Path, default=None,
                     help=f"Output parquet (default: sources.yaml or {DEFAULT_CURRENT_TABLE})")

    # --- verify ---
    ver = sub.add_parser("verify", help="Verify that local inputs exist")
    ver.add_argument("--source", default="all", help="Source id to verify (or 'all')")
    ver.add_argument("--json", action="store_true", help="Emit JSON to stdout")

    return ap


def _handle_verify(args: argparse.Namespace, sources_yaml: Dict[str, Any]) -> int:
    sources = sources_yaml.get("sources")
    if not isinstance(sources, dict):
        raise SystemExit("sources.yaml must contain top-level 'sources:' mapping")

    if args.source == "all":
        results = [_verify_source(sid, sources_yaml) for sid in sorted(sources.keys())]
    else:
        results = [_verify_source(args.source, sources_yaml)]

    ok = all(r.get("ok") for r in results)
    if args.json:
        print(json.dumps({"ok": ok, "results": results}, indent=2))
    else:
        for r in results:
            status = "OK" if r.get("ok") else "MISSING"
            print(f"[{status}] {r['source']} ({r.get('rule', '?')})")
            if "reason" in r:
                print(f"  - reason: {r['reason']}")
        print(f"Overall: {'OK' if ok else 'NOT OK'}")
    return 0 if ok else 2


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    # Load YAMLs only once, inside main (so import doesn't have side effects)
    sources_yaml = load_yaml(args.sources_yaml)

    if args.command == "verify":
        return _handle_verify(args, sources_yaml)

    analysis = load_analysis_yaml(args.analysis_yaml)

    if args.command == "fetch-history":
        cfg = dict(source_config(sources_yaml, "history"))
        if args.url:
            cfg["url"] = args.url
        out = args.out or Path(cfg.get("out_table", DEFAULT_HISTORY_TABLE))

        # Lazy import handler (keeps CLI import fast and avoids heavy deps unless used)
        from firecompare.ingest.fetch_history import fetch_history

        fetch_history(
            sources_cfg=cfg,
            out_path=out,
            on_invalid=analysis.on_invalid,
            overwrite=args.overwrite,
            dry_run=args.dry_run,
        )
        return 0

    if args.command == "load-current":
        cfg = source_config(sources_yaml, "current")
        out = args.out or Path(cfg.get("out_table", DEFAULT_CURRENT_TABLE))

        from firecompare.ingest.load_current import load_current

        load_current(
            sources_cfg=cfg,
            out_path=out,
            points_csv=args.points_csv,
            polygons_csv=args.polygons_csv,
            on_invalid=analysis.on_invalid,
            overwrite=args.overwrite,
            dry_run=args.dry_run,
        )
        return 0

    raise SystemExit(f"Unknown command: {args.command}")


if __name__ == "__main__":
    raise SystemExit(main())
