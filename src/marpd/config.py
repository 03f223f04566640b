#!/usr/bin/env python3
"""marpd.config

Shared configuration utilities for the marpd subsystems.

This module provides common helpers used across marpd.registry, marpd.report, etc.
Centralizing these avoids duplication and ensures consistent behavior.

Design notes:
- YAML loading is strict: files must exist and be valid mappings.
- Grid bounds may be given explicitly or derived from the grid CRS.
- All functions are pure (no side effects on import).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml


BBox = Tuple[float, float, float, float]


# -----------------------------------------------------------------------------
# YAML loading
# -----------------------------------------------------------------------------

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
    return data


def source_config(sources_yaml: Dict[str, Any], source_id: str) -> Dict[str, Any]:
    """Return the `sources: -> <source_id>` block of a parsed sources.yaml."""
    sources = sources_yaml.get("sources", {})
    cfg = sources.get(source_id) if isinstance(sources, dict) else None
    if not isinstance(cfg, dict):
        raise SystemExit(f"sources.yaml missing sources: -> {source_id}")
    return cfg


# -----------------------------------------------------------------------------
# Bounding box utilities
# -----------------------------------------------------------------------------

def coerce_bbox(x: Any) -> Optional[BBox]:
    """Try to coerce [xmin, ymin, xmax, ymax] into a bbox tuple.

    Returns None if input is invalid or missing.
    """
    if x is None:
        return None
    if isinstance(x, (list, tuple)) and len(x) == 4:
        try:
            xmin, ymin, xmax, ymax = map(float, x)
        except (TypeError, ValueError):
            return None
        if xmin >= xmax or ymin >= ymax:
            return None
        return (xmin, ymin, xmax, ymax)
    return None


def format_bbox(b: BBox, precision: int = 1) -> str:
    """Format a bbox tuple as a readable string."""
    return f"[{b[0]:.{precision}f}, {b[1]:.{precision}f}, {b[2]:.{precision}f}, {b[3]:.{precision}f}]"


# -----------------------------------------------------------------------------
# Analysis config sections
# -----------------------------------------------------------------------------

def grid_settings(analysis_yaml: Dict[str, Any]) -> Dict[str, Any]:
    """Resolve the `grid:` block of analysis YAML, filling in defaults.

    Keys returned: crs, resolution, bounds (bbox tuple or None), all_touched.
    """
    grid = analysis_yaml.get("grid") or {}
    if not isinstance(grid, dict):
        raise SystemExit("analysis YAML 'grid:' must be a mapping")

    resolution = float(grid.get("resolution", DEFAULT_RESOLUTION_M))
    if resolution <= 0:
        raise SystemExit(f"grid resolution must be positive, got {resolution}")

    raw_bounds = grid.get("bounds")
    bounds = coerce_bbox(raw_bounds)
    if raw_bounds is not None and bounds is None:
        raise SystemExit(f"grid bounds must be [xmin, ymin, xmax, ymax], got {raw_bounds!r}")

    return {
        "crs": str(grid.get("crs", DEFAULT_GRID_CRS)),
        "resolution": resolution,
        "bounds": bounds,
        "all_touched": bool(grid.get("all_touched", True)),
    }


def clade_settings(analysis_yaml: Dict[str, Any]) -> Dict[str, Tuple[str, str]]:
    """Load named clades, each defined by two representative tip labels.

    Expects structure like:
        clades:
          Cetacea: [Balaena_mysticetus, Stenella_attenuata]
    """
    clades = analysis_yaml.get("clades") or {}
    if not isinstance(clades, dict):
        raise SystemExit("analysis YAML 'clades:' must be a mapping of name -> [tip, tip]")

    out: Dict[str, Tuple[str, str]] = {}
    for name, tips in clades.items():
        if not isinstance(tips, (list, tuple)) or len(tips) != 2:
            raise SystemExit(f"Clade {name!r} needs exactly two representative tips, got {tips!r}")
        out[str(name)] = (str(tips[0]), str(tips[1]))
    return out


def clade_colors(analysis_yaml: Dict[str, Any]) -> Dict[str, str]:
    """Optional `clade_colors:` mapping (clade name -> matplotlib color)."""
    colors = analysis_yaml.get("clade_colors") or {}
    if not isinstance(colors, dict):
        raise SystemExit("analysis YAML 'clade_colors:' must be a mapping")
    return {str(k): str(v) for k, v in colors.items()}


def figures_dir(analysis_yaml: Dict[str, Any]) -> Path:
    outputs = analysis_yaml.get("outputs") or {}
    return Path(outputs.get("figures_dir", DEFAULT_FIGURES_DIR))


def species_filter(analysis_yaml: Dict[str, Any]) -> Optional[List[str]]:
    """Optional `species:` list restricting the analysis to those binomials."""
    species = analysis_yaml.get("species")
    if species is None:
        return None
    if not isinstance(species, list):
        raise SystemExit("analysis YAML 'species:' must be a list of binomials")
    return [str(s) for s in species]


# -----------------------------------------------------------------------------
# Defaults
# -----------------------------------------------------------------------------
# Centralized so all CLIs use the same defaults.

DEFAULT_SOURCES_YAML = Path("config/sources.yaml")
DEFAULT_ANALYSIS_YAML = Path("config/analysis_v0.yaml")
DEFAULT_RANGES_GPKG = Path("data/interim/vectors/ranges_v0.gpkg")
DEFAULT_FIGURES_DIR = Path("outputs/figures")

# Behrmann cylindrical equal-area, ~110 km cells
DEFAULT_GRID_CRS = "ESRI:54017"
DEFAULT_RESOLUTION_M = 110_000.0
