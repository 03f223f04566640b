#!/usr/bin/env python3
"""alpha.py

Alpha diversity: species richness per cell.
"""

from __future__ import annotations

import pandas as pd

from marpd.diversity.community import require_nonempty


def alpha_richness(matrix: pd.DataFrame) -> pd.Series:
    """Count of present species per row. Missing values count as absent."""
    require_nonempty(matrix)
    richness = (matrix.fillna(0) > 0).sum(axis=1).astype("int64")
    richness.name = "richness"
    return richness
