#!/usr/bin/env python3
"""rasterize_ranges.py

Range Rasterizer: burn species range polygons onto the Grid Template,
producing one binary presence layer per species.

Presence means "the range touches the cell" (rasterio all_touched=True) unless
the caller asks for cell-center sampling instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import geopandas as gpd
import numpy as np
from rasterio.features import rasterize

from marpd.geo.grid import GridTemplate
from marpd.registry.prep_ranges import normalize_species_name


@dataclass(frozen=True)
class PresenceStack:
    """Binary presence layers (n_species, height, width) sharing one grid."""

    species: Tuple[str, ...]
    layers: np.ndarray
    grid: GridTemplate

    def __post_init__(self):
        if self.layers.shape != (len(self.species),) + self.grid.shape:
            raise ValueError(
                f"layers shape {self.layers.shape} doesn't match "
                f"{len(self.species)} species on a {self.grid.shape} grid"
            )
        if len(set(self.species)) != len(self.species):
            raise ValueError("species labels in a PresenceStack must be unique")
        self.layers.setflags(write=False)

    def __len__(self) -> int:
        return len(self.species)

    def layer(self, species: str) -> np.ndarray:
        return self.layers[self.species.index(species)]


def check_crs(ranges: gpd.GeoDataFrame, grid: GridTemplate) -> None:
    """Fail fast if ranges and grid disagree on CRS. Never reprojects."""
    if ranges.crs is None:
        raise ValueError("Range geometries have no CRS; can't place them on the grid.")
    if not ranges.crs.equals(grid.crs, ignore_axis_order=True):
        raise ValueError(
            "CRS mismatch between ranges and grid template: "
            f"{ranges.crs.to_string()} vs {grid.crs.to_string()}. "
            "Reproject the ranges explicitly (prep_ranges(target_crs=...)) first."
        )


def rasterize_ranges(
    ranges: gpd.GeoDataFrame,
    grid: GridTemplate,
    *,
    species_field: str = "species",
    all_touched: bool = True,
) -> PresenceStack:
    """Rasterize ranges into a PresenceStack, one layer per species.

    All geometries of one species are burned together, so disjoint parts
    end up as the logical OR of each part. Layers are ordered by species name.

    Raises ValueError on CRS mismatch or species labels that aren't in
    `Genus_species` form (they must match tree tips exactly downstream).
    """
    check_crs(ranges, grid)

    if species_field not in ranges.columns:
        raise ValueError(f"Range table has no '{species_field}' column. Columns: {list(ranges.columns)}")

    labels = ranges[species_field].astype(str)
    bad = sorted({s for s in labels if normalize_species_name(s) != s})
    if bad:
        raise ValueError(f"Species labels are not normalized (expected Genus_species): {bad[:10]}")

    usable = ranges[ranges.geometry.notna() & ~ranges.geometry.is_empty]
    keys = usable[species_field].astype(str)
    species = tuple(sorted(keys.unique()))

    layers = np.zeros((len(species),) + grid.shape, dtype=np.uint8)
    for i, (name, group) in enumerate(usable.groupby(keys, sort=True)):
        layers[i] = rasterize(
            ((geom, 1) for geom in group.geometry),
            out_shape=grid.shape,
            transform=grid.transform,
            fill=0,
            all_touched=all_touched,
            dtype="uint8",
        )
        if not layers[i].any():
            print(f"[RASTER] warning: {name} covers no cells")

    print(f"[RASTER] {len(species)} species layers on a {grid.width}x{grid.height} grid")
    return PresenceStack(species=species, layers=layers, grid=grid)
