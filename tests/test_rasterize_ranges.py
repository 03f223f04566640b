#!/usr/bin/env python3

from __future__ import annotations

import geopandas as gpd
import numpy as np
import pytest
from shapely.geometry import box

from conftest import cell_box
from marpd.geo.rasterize_ranges import rasterize_ranges


def test_one_layer_per_species_sorted(ranges, grid):
    stack = rasterize_ranges(ranges, grid)
    assert stack.species == ("Phoca_vitulina", "Stenella_attenuata", "Tursiops_truncatus")
    assert stack.layers.shape == (3, 3, 5)
    assert stack.layers.dtype == np.uint8


def test_disjoint_parts_are_or_of_each_part(grid):
    a, b = cell_box(0, 0), cell_box(2, 3)
    both = gpd.GeoDataFrame({"species": ["Phoca_vitulina"] * 2, "geometry": [a, b]}, crs=grid.crs)
    only_a = gpd.GeoDataFrame({"species": ["Phoca_vitulina"], "geometry": [a]}, crs=grid.crs)
    only_b = gpd.GeoDataFrame({"species": ["Phoca_vitulina"], "geometry": [b]}, crs=grid.crs)

    merged = rasterize_ranges(both, grid).layer("Phoca_vitulina")
    expected = np.logical_or(
        rasterize_ranges(only_a, grid).layer("Phoca_vitulina"),
        rasterize_ranges(only_b, grid).layer("Phoca_vitulina"),
    )
    np.testing.assert_array_equal(merged.astype(bool), expected)
    assert merged.sum() == 2
    assert merged[0, 0] == 1 and merged[2, 3] == 1


def test_presence_is_any_overlap(grid):
    # clips the corner of cell (0, 0) but misses its center
    corner = gpd.GeoDataFrame({"species": ["Dugong_dugon"], "geometry": [box(1_000, 281_000, 20_000, 299_000)]}, crs=grid.crs)
    touched = rasterize_ranges(corner, grid).layer("Dugong_dugon")
    centers = rasterize_ranges(corner, grid, all_touched=False).layer("Dugong_dugon")
    assert touched[0, 0] == 1
    assert centers.sum() == 0


def test_crs_mismatch_fails_fast(ranges, grid):
    with pytest.raises(ValueError, match="CRS mismatch"):
        rasterize_ranges(ranges.set_crs("EPSG:3857", allow_override=True), grid)


def test_missing_crs_fails(grid):
    no_crs = gpd.GeoDataFrame({"species": ["Dugong_dugon"], "geometry": [cell_box(1, 1)]})
    with pytest.raises(ValueError, match="no CRS"):
        rasterize_ranges(no_crs, grid)


def test_unnormalized_labels_rejected(ranges, grid):
    bad = ranges.copy()
    bad.loc[0, "species"] = "Stenella.attenuata"
    with pytest.raises(ValueError, match="not normalized"):
        rasterize_ranges(bad, grid)


def test_stack_is_read_only(ranges, grid):
    stack = rasterize_ranges(ranges, grid)
    with pytest.raises(ValueError):
        stack.layers[0, 0, 0] = 0


def test_empty_ranges_give_empty_stack(ranges, grid):
    stack = rasterize_ranges(ranges.iloc[0:0], grid)
    assert len(stack) == 0
    assert stack.layers.shape == (0, 3, 5)
