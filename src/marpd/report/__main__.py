#!/usr/bin/env python3
"""marpd.report

The marine mammal diversity report, run end to end.

Pipeline (strictly forward, nothing mutated in place):
  ranges -> grid -> presence stack -> community matrix
         -> {richness, Faith's PD (with tree)} -> result table -> figures

Figures written to outputs.figures_dir (analysis YAML):
- richness_map.png     species richness per cell
- pd_map.png           Faith's PD per cell
- richness_vs_pd.png   PD against richness
- tree_circular.png    circular phylogeny colored by clade

Examples:
  python -m marpd.report run
  python -m marpd.report run --results-csv outputs/tables/diversity_v0.csv
  python -m marpd.report --dry-run run
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

from marpd.config import (
    load_yaml,
    clade_colors,
    clade_settings,
    figures_dir,
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
    ap = argparse.ArgumentParser(
        prog="marpd.report",
        description="Marine mammal richness and phylogenetic diversity report",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    ap.add_argument("--sources-yaml", type=Path, default=DEFAULT_SOURCES_YAML, help=f"Path to sources YAML (default: {DEFAULT_SOURCES_YAML})")
    ap.add_argument("--analysis-yaml", type=Path, default=DEFAULT_ANALYSIS_YAML, help=f"Path to analysis YAML (default: {DEFAULT_ANALYSIS_YAML})")
    ap.add_argument("--dry-run", action="store_true", help="Print the planned run without computing anything")

    sub = ap.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run the full report")
    run.add_argument(
        "--ranges",
        type=Path,
        default=None,
        help=f"Range file (default: {DEFAULT_RANGES_GPKG} if prepared, else sources.yaml sources.ranges.path)",
    )
    run.add_argument("--tree", type=Path, default=None, help="Newick tree (default: sources.yaml sources.tree.path)")
    run.add_argument("--figures-dir", type=Path, default=None, help="Figure output directory (default from analysis YAML)")
    run.add_argument("--results-csv", type=Path, default=None, help="Optional path to write the per-cell result table")
    run.add_argument("--dpi", type=int, default=300, help="Figure resolution (default: 300)")

    return ap


# -----------------------------------------------------------------------------
# Command handlers
# -----------------------------------------------------------------------------

def _resolve_ranges_path(args: argparse.Namespace, sources_yaml) -> Path:
    if args.ranges is not None:
        path, origin = args.ranges, "--ranges"
    elif DEFAULT_RANGES_GPKG.exists():
        path, origin = DEFAULT_RANGES_GPKG, "prepared ranges"
    else:
        path, origin = Path(source_config(sources_yaml, "ranges").get("path", "")), "sources.yaml"
    print(f"[RANGES] Using {path} ({origin})")
    return path


def _handle_run(args: argparse.Namespace) -> int:
    sources_yaml = load_yaml(args.sources_yaml)
    analysis_yaml = load_yaml(args.analysis_yaml)

    settings = grid_settings(analysis_yaml)
    clades = clade_settings(analysis_yaml)
    ranges_path = _resolve_ranges_path(args, sources_yaml)
    tree_path = args.tree or Path(source_config(sources_yaml, "tree").get("path", ""))
    out_dir = args.figures_dir or figures_dir(analysis_yaml)
    species_field = source_config(sources_yaml, "ranges").get("species_field")

    if args.dry_run:
        print("[dry-run] Would run the diversity report:")
        print(f"  Ranges: {ranges_path}")
        print(f"  Tree: {tree_path}")
        print(f"  Grid: {settings['crs']} @ {settings['resolution']:.0f} m (all_touched={settings['all_touched']})")
        print(f"  Clades: {', '.join(clades) or '(none)'}")
        print(f"  Figures: {out_dir}")
        if args.results_csv:
            print(f"  Result table: {args.results_csv}")
        return 0

    # Lazy imports: geopandas/rasterio/skbio/matplotlib only when running
    from marpd.diversity.community import build_community_matrix
    from marpd.diversity.phylo import load_tree, prune_tree
    from marpd.diversity.results import build_result_table, write_result_table
    from marpd.geo.grid import grid_from_settings
    from marpd.geo.rasterize_ranges import rasterize_ranges
    from marpd.registry.fetch_coastline import coastline_zip_path, load_coastline
    from marpd.registry.prep_ranges import is_prepared_ranges, prep_ranges
    from marpd.render.maps import render_metric_map, render_richness_vs_pd, save_figure
    from marpd.render.tree import render_circular_tree

    if is_prepared_ranges(ranges_path):
        print(f"[RANGES] {ranges_path} is a prepared GeoPackage, reading its 'species' column")
        species_field = "species"

    grid = grid_from_settings(settings)
    ranges = prep_ranges(
        ranges_path,
        target_crs=grid.crs.to_string(),
        species_field=species_field,
        species=species_filter(analysis_yaml),
    )
    tree = load_tree(tree_path)

    stack = rasterize_ranges(ranges, grid, all_touched=settings["all_touched"])
    matrix = build_community_matrix(stack)
    results = build_result_table(matrix, grid, tree)

    if args.results_csv:
        write_result_table(results, args.results_csv)

    coastline = load_coastline(coastline_zip_path(sources_yaml))

    print(f"[REPORT] Rendering figures -> {out_dir}")
    save_figure(
        render_metric_map(results, grid, "richness", coastline=coastline, title="Species richness", label="Species"),
        out_dir / "richness_map.png",
        dpi=args.dpi,
    )
    save_figure(
        render_metric_map(results, grid, "pd", coastline=coastline, title="Faith's phylogenetic diversity", label="PD", cmap="magma"),
        out_dir / "pd_map.png",
        dpi=args.dpi,
    )
    save_figure(render_richness_vs_pd(results), out_dir / "richness_vs_pd.png", dpi=args.dpi)
    # Only the species that made it onto the grid
    save_figure(
        render_circular_tree(prune_tree(tree, matrix.columns), clades, colors=clade_colors(analysis_yaml)),
        out_dir / "tree_circular.png",
        dpi=args.dpi,
    )

    print(
        f"[REPORT] {len(results)} cells | richness {results['richness'].min()}-{results['richness'].max()} "
        f"| PD {results['pd'].min():.1f}-{results['pd'].max():.1f}"
    )
    return 0


# -----------------------------------------------------------------------------
# Main entrypoint
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    handlers = {
        "run": _handle_run,
    }

    handler = handlers.get(args.command)
    if handler is None:
        raise SystemExit(f"Unknown command: {args.command}")

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
