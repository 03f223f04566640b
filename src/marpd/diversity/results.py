#!/usr/bin/env python3
"""results.py

Diversity Result Table: richness and PD per occupied cell, joined on cell id
and located by projected and geographic cell centers.
"""

from __future__ import annotations

from pathlib import Path

import pandas as pd
from skbio import TreeNode

from marpd.diversity.alpha import alpha_richness
from marpd.diversity.community import CELL_ID
from marpd.diversity.phylo import faith_pd
from marpd.geo.grid import GridTemplate


RESULT_COLUMNS = ["x", "y", "lon", "lat", "richness", "pd"]


def build_result_table(matrix: pd.DataFrame, grid: GridTemplate, tree: TreeNode) -> pd.DataFrame:
    """One row per occupied cell, indexed by cell_id.

    Richness and PD are joined on the index, never by position.
    """
    richness = alpha_richness(matrix)
    pd_values = faith_pd(matrix, tree)

    cell_ids = matrix.index.to_numpy()
    xs, ys = grid.cell_centers(cell_ids)
    lons, lats = grid.cell_lonlat(cell_ids)
    coords = pd.DataFrame(
        {"x": xs, "y": ys, "lon": lons, "lat": lats},
        index=pd.Index(cell_ids, name=CELL_ID),
    )

    table = coords.join(richness, how="inner").join(pd_values, how="inner")
    if len(table) != len(matrix):
        raise ValueError(
            f"Result table lost cells during the join ({len(table)} of {len(matrix)}); "
            "richness/PD indexes don't match the matrix."
        )
    return table[RESULT_COLUMNS]


def write_result_table(table: pd.DataFrame, out_path: Path) -> None:
    """Write the result table as CSV (QA output; cell_id kept as a column)."""
    out_path.parent.mkdir(parents=True, exist_ok=True)
    table.reset_index().to_csv(out_path, index=False)
    print(f"[RESULTS] Wrote {len(table)} cells -> {out_path}")
