#!/usr/bin/env python3
"""prep_ranges.py

Turn a species range-map vector file (e.g. IUCN marine mammal polygons) into a
clean GeoDataFrame with one row per species, projected onto the grid CRS.

This module exposes two interfaces:
1. prep_ranges() - callable function for programmatic use / CLI dispatch
2. normalize_species_name() - the label normalization shared with the tree side

Example (via marpd.registry):
  python -m marpd.registry prep-ranges \
    --ranges data/raw/ranges/MARINE_MAMMALS.shp \
    --out-gpkg data/interim/vectors/ranges_v0.gpkg

Notes:
- Species labels must match tree tip labels exactly, so "Stenella attenuata",
  "Stenella.attenuata" and "Stenella_attenuata" all normalize to the last form.
- Reprojection to the grid CRS happens here, explicitly. The rasterizer refuses
  to reproject.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, List, Optional

import geopandas as gpd


# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------

_SEPARATORS = re.compile(r"[\s._\-]+")


def normalize_species_name(x) -> str:
    """Normalize a species binomial to the `Genus_species` tip-label convention.

    Handles spaces, dots (R-style column names) and dashes.
    Returns empty string for invalid inputs.
    """
    if x is None:
        return ""
    s = str(x).strip()
    if not s or s.lower() == "nan":
        return ""
    return _SEPARATORS.sub("_", s).strip("_")


def _pick_species_field(columns: List[str], preferred: Optional[str] = None) -> str:
    """Infer which column holds the species binomial.

    If preferred is provided and exists, use it.
    Otherwise, score columns by likelihood (IUCN uses 'binomial' or 'sci_name').
    """
    if preferred:
        if preferred in columns:
            return preferred
        raise ValueError(f"--species-field '{preferred}' not found. Available columns: {columns}")

    candidates = []
    for c in columns:
        if c == "geometry":
            continue
        cl = c.lower()
        score = 0
        if "binomial" in cl or "sci_name" in cl or "scientific" in cl:
            score += 5
        if "species" in cl or cl == "sp":
            score += 3
        if "name" in cl:
            score += 1
        # Penalties for id/count fields
        if "id" in cl or "count" in cl or "code" in cl:
            score -= 2
        candidates.append((score, c))

    candidates.sort(reverse=True)
    if not candidates or candidates[0][0] < 3:
        raise ValueError(
            "Couldn't confidently infer the species column. "
            "Pass --species-field explicitly.\n"
            f"Columns: {columns}\n"
            f"Top guesses: {candidates[:8]}"
        )
    return candidates[0][1]


def _make_valid(gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """Repair invalid geometries (range polygons often self-intersect)."""
    gdf = gdf.copy()
    invalid = ~gdf.geometry.is_valid
    if invalid.any():
        print(f"[RANGES] Repairing {int(invalid.sum())} invalid geometries")
        gdf.loc[invalid, "geometry"] = gdf.geometry[invalid].make_valid()
    return gdf


def is_prepared_ranges(path: Path) -> bool:
    """True for a GeoPackage written by prep_ranges() (it carries a `species` column)."""
    if path.suffix.lower() != ".gpkg" or not path.exists():
        return False
    return "species" in gpd.read_file(path, rows=1).columns


# -----------------------------------------------------------------------------
# Core function (called by CLI or marpd.report)
# -----------------------------------------------------------------------------

def prep_ranges(
    ranges_path: Path,
    *,
    target_crs: str,
    species_field: Optional[str] = None,
    species: Optional[Iterable[str]] = None,
    out_gpkg: Optional[Path] = None,
    layer: str = "ranges",
) -> gpd.GeoDataFrame:
    """Load, clean and dissolve species ranges into one row per species.

    Steps:
    1. Read the vector file and check it has features and a CRS
    2. Detect the species column and normalize binomials
    3. Drop unlabeled / empty geometries, repair invalid ones
    4. Optionally filter to a species list
    5. Dissolve by species (disjoint parts become one multipolygon)
    6. Reproject to target_crs (the grid CRS)
    7. Optionally write a GeoPackage

    Args:
        ranges_path: Path to range vector file (shapefile, GeoPackage, ...)
        target_crs: CRS of the grid template; output is projected to it
        species_field: Explicit column holding binomials (auto-detected if None)
        species: Optional species list (any separator convention) to keep
        out_gpkg: Optional GeoPackage output path
        layer: Layer name in output GeoPackage

    Returns:
        GeoDataFrame with columns `species`, `geometry`, sorted by species.

    Raises:
        SystemExit: On missing files, missing CRS, or no usable features.
    """
    if not ranges_path.exists():
        raise SystemExit(f"Range file not found: {ranges_path}")

    gdf = gpd.read_file(ranges_path)

    if gdf.empty:
        raise SystemExit(f"Loaded {ranges_path} but it contains zero features. Wrong file?")

    if gdf.crs is None:
        raise SystemExit(
            f"{ranges_path} has no CRS (.prj missing or unreadable). "
            "Fix that first; rasterization depends on it."
        )

    detected = _pick_species_field(list(gdf.columns), preferred=species_field)
    print(f"[RANGES] {len(gdf)} features from {ranges_path} (species field: {detected})")

    out = gdf[[detected, "geometry"]].copy()
    out["species"] = out[detected].map(normalize_species_name)
    out = out[(out["species"] != "") & out.geometry.notna() & ~out.geometry.is_empty]
    out = _make_valid(out[["species", "geometry"]])

    if species is not None:
        wanted = {normalize_species_name(s) for s in species}
        wanted.discard("")
        missing = wanted - set(out["species"])
        if missing:
            raise SystemExit(f"Requested species not in range file: {sorted(missing)}")
        out = out[out["species"].isin(wanted)]

    if out.empty:
        raise SystemExit("No labeled range geometries left after cleaning.")

    # --- Dissolve: one row per species ---
    out = out.dissolve(by="species", as_index=False)

    # --- Explicit reprojection to the grid CRS ---
    if not out.crs.equals(target_crs):
        print(f"[RANGES] Reprojecting {out.crs.to_string()} -> {target_crs}")
        out = out.to_crs(target_crs)

    out = out[["species", "geometry"]].sort_values("species").reset_index(drop=True)

    if out_gpkg:
        out_gpkg.parent.mkdir(parents=True, exist_ok=True)
        out.to_file(out_gpkg, layer=layer, driver="GPKG")
        print(f"[RANGES] Wrote {len(out)} species -> {out_gpkg} (layer={layer})")

    print(f"[RANGES] {len(out)} species ready")
    return out
