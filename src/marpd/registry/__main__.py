#!/usr/bin/env python3
"""marpd.registry

Input preparation CLI for marpd.

This is one of two marpd subsystem CLIs:
- marpd.registry → input preparation (this file)
- marpd.report   → the full diversity report (rasterize, PD, figures)

marpd.registry defines WHAT EXISTS spatially: cleaned species ranges on the
grid CRS, and the coastline used for map context. The report consumes them.

Responsibilities:
- Fetch the Natural Earth coastline
- Clean, normalize and dissolve species range polygons
- Reproject ranges explicitly onto the grid CRS

Outputs:
- data/raw/boundaries/natural_earth/ne_110m_coastline.zip
- data/interim/vectors/ranges_v0.gpkg  → one row per species, grid CRS

Examples:
  # Fetch the coastline
  python -m marpd.registry fetch-coastline

  # Prepare ranges (normalize names, dissolve, reproject)
  python -m marpd.registry prep-ranges --ranges data/raw/ranges/MARINE_MAMMALS.shp
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

from marpd.config import (
    load_yaml,
    grid_settings,
    species_filter,
    source_config,
    DEFAULT_ANALYSIS_YAML,
    DEFAULT_RANGES_GPKG,
    DEFAULT_SOURCES_YAML,
)


# -----------------------------------------------------------------------------
# CLI structure
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for marpd.registry."""
    ap = argparse.ArgumentParser(
        prog="marpd.registry",
        description="Input preparation for marpd (ranges, coastline)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Subsystem CLIs:
  python -m marpd.registry  # Input preparation (this)
  python -m marpd.report    # Diversity report

Registry outputs:
  data/interim/vectors/ranges_v0.gpkg   # Cleaned ranges on the grid CRS
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

    # --- fetch-coastline ---
    sub.add_parser(
        "fetch-coastline",
        help="Download the Natural Earth coastline",
        description="""
Download the Natural Earth coastline ZIP used as map context.

Uses the URL template from sources.yaml (sources: -> coastline).
        """,
    )

    # --- prep-ranges ---
    prep = sub.add_parser(
        "prep-ranges",
        help="Clean species ranges and project them onto the grid CRS",
        description="""
Process a species range vector file into canonical registry outputs.

This command:
1. Reads the range file (path from sources.yaml unless --ranges is given)
2. Normalizes species binomials to Genus_species
3. Repairs and dissolves geometries (one row per species)
4. Reprojects to the grid CRS from the analysis YAML
5. Writes a GeoPackage
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    prep.add_argument(
        "--ranges",
        type=Path,
        default=None,
        help="Range vector file (default: sources.yaml sources.ranges.path)",
    )
    prep.add_argument(
        "--species-field",
        default=None,
        help="Column holding species binomials (default: sources.yaml, else auto-detected)",
    )
    prep.add_argument(
        "--out-gpkg",
        type=Path,
        default=DEFAULT_RANGES_GPKG,
        help=f"Output GeoPackage path (default: {DEFAULT_RANGES_GPKG})",
    )
    prep.add_argument(
        "--layer",
        default="ranges",
        help="Layer name in output GeoPackage (default: ranges)",
    )

    return ap


# -----------------------------------------------------------------------------
# Command handlers
# -----------------------------------------------------------------------------

def _handle_fetch_coastline(args: argparse.Namespace) -> int:
    sources_yaml = load_yaml(args.sources_yaml)

    # Lazy import
    from marpd.registry.fetch_coastline import fetch_coastline

    return fetch_coastline(
        sources_yaml=sources_yaml,
        overwrite=args.overwrite,
        dry_run=args.dry_run,
    )


def _handle_prep_ranges(args: argparse.Namespace) -> int:
    """Handle the prep-ranges subcommand."""
    sources_yaml = load_yaml(args.sources_yaml)
    analysis_yaml = load_yaml(args.analysis_yaml)

    ranges_cfg = source_config(sources_yaml, "ranges")
    ranges_path = args.ranges or Path(ranges_cfg.get("path", ""))
    species_field = args.species_field or ranges_cfg.get("species_field")
    target_crs = grid_settings(analysis_yaml)["crs"]

    if args.out_gpkg.exists() and not args.overwrite:
        print(f"[SKIP] {args.out_gpkg} exists (use --overwrite)")
        return 0

    if args.dry_run:
        print("[dry-run] Would prepare ranges:")
        print(f"  Input ranges: {ranges_path}")
        print(f"  Species field: {species_field or '(auto-detect)'}")
        print(f"  Target CRS: {target_crs}")
        print(f"  Output GeoPackage: {args.out_gpkg}")
        return 0

    # Lazy import to keep CLI startup fast
    from marpd.registry.prep_ranges import prep_ranges

    prep_ranges(
        ranges_path,
        target_crs=target_crs,
        species_field=species_field,
        species=species_filter(analysis_yaml),
        out_gpkg=args.out_gpkg,
        layer=args.layer,
    )
    return 0


# -----------------------------------------------------------------------------
# Main entrypoint
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """Main entrypoint for marpd.registry CLI."""
    ap = build_parser()
    args = ap.parse_args(argv)

    handlers = {
        "fetch-coastline": _handle_fetch_coastline,
        "prep-ranges": _handle_prep_ranges,
    }

    handler = handlers.get(args.command)
    if handler is None:
        raise SystemExit(f"Unknown command: {args.command}")

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
