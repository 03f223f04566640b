#!/usr/bin/env python3

from __future__ import annotations

import sys
from pathlib import Path

import geopandas as gpd
import pytest
from shapely.geometry import box

# Ensure we can import from src without installing the package
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from marpd.diversity.phylo import load_tree  # noqa: E402
from marpd.geo.grid import make_grid  # noqa: E402


# Ultrametric toy phylogeny, every root-to-tip path is 53.
# Cetacea | (Pinnipedia, Sirenia)
TREE_NWK = (
    "((((Stenella_attenuata:2,Tursiops_truncatus:2):1,Delphinus_delphis:3):40,Balaena_mysticetus:43):10,"
    "((Phoca_vitulina:5,Halichoerus_grypus:5):45,(Trichechus_manatus:20,Dugong_dugon:20):30):3);"
)

GRID_CRS = "EPSG:6933"  # WGS 84 / NSIDC EASE-Grid 2.0 Global (equal area)


@pytest.fixture
def grid():
    # 5 x 3 cells of 100 km; cell (row, col) spans x [col*100k, (col+1)*100k]
    return make_grid(GRID_CRS, 100_000, (0.0, 0.0, 500_000.0, 300_000.0))


@pytest.fixture
def tree(tmp_path):
    path = tmp_path / "toy.nwk"
    path.write_text(TREE_NWK + "\n")
    return load_tree(path)


def cell_box(row: int, col: int, pad: float = 10_000.0):
    """A polygon strictly inside one cell of the test grid."""
    x0 = col * 100_000 + pad
    y1 = 300_000 - row * 100_000 - pad
    return box(x0, y1 - (100_000 - 2 * pad), x0 + (100_000 - 2 * pad), y1)


@pytest.fixture
def ranges():
    """Three species: two dolphins sharing cell 0, a seal split over two disjoint cells."""
    return gpd.GeoDataFrame(
        {
            "species": ["Stenella_attenuata", "Tursiops_truncatus", "Phoca_vitulina", "Phoca_vitulina"],
            "geometry": [cell_box(0, 0), cell_box(0, 0), cell_box(0, 0), cell_box(2, 3)],
        },
        crs=GRID_CRS,
    )
