#!/usr/bin/env python3
"""community.py

Community Matrix Builder: flatten a PresenceStack into a cell-by-species
presence table keyed by cell id.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from marpd.geo.rasterize_ranges import PresenceStack


CELL_ID = "cell_id"


def build_community_matrix(stack: PresenceStack) -> pd.DataFrame:
    """Rows = non-empty cells (index `cell_id`), columns = species in stack order.

    Each layer is flattened row-major, so the index is the grid's flat cell id.
    Missing values count as absent. Rows with no species are dropped.
    An empty stack gives a frame with zero columns and zero rows.
    """
    n_cells = stack.grid.n_cells
    if len(stack) == 0:
        return pd.DataFrame(index=pd.Index([], name=CELL_ID, dtype=np.int64))

    flat = np.nan_to_num(stack.layers.reshape(len(stack), n_cells).T)
    matrix = pd.DataFrame(
        (flat > 0).astype(np.uint8),
        index=pd.Index(np.arange(n_cells, dtype=np.int64), name=CELL_ID),
        columns=list(stack.species),
    )
    matrix = matrix[matrix.any(axis=1)]
    print(f"[MATRIX] {len(matrix)} occupied cells x {matrix.shape[1]} species")
    return matrix


def require_nonempty(matrix: pd.DataFrame) -> None:
    """Diversity is undefined for matrices without species or occupied cells."""
    if matrix.shape[1] == 0:
        raise ValueError("Community matrix has no species columns; diversity is undefined.")
    if matrix.shape[0] == 0:
        raise ValueError("Community matrix has no occupied cells; diversity is undefined.")
