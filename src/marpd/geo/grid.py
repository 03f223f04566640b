#!/usr/bin/env python3
"""grid.py

The Grid Template: one fixed equal-area raster definition shared by every
species layer, so that a cell id means the same place in every layer.

Cell ids are row-major flat indices: cell_id = row * width + col.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np
from affine import Affine
from pyproj import CRS
from rasterio.transform import from_origin, xy
from rasterio.warp import transform, transform_bounds

from marpd.config import BBox, format_bbox


@dataclass(frozen=True)
class GridTemplate:
    crs: CRS
    transform: Affine
    width: int
    height: int

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.height, self.width)

    @property
    def n_cells(self) -> int:
        return self.width * self.height

    @property
    def resolution(self) -> Tuple[float, float]:
        return (self.transform.a, -self.transform.e)

    @property
    def bounds(self) -> BBox:
        xmin, ymax = self.transform.c, self.transform.f
        xres, yres = self.resolution
        return (xmin, ymax - yres * self.height, xmin + xres * self.width, ymax)

    def rowcol(self, cell_ids) -> Tuple[np.ndarray, np.ndarray]:
        """Split flat cell ids into (row, col) arrays."""
        ids = np.asarray(cell_ids, dtype=np.int64)
        if ids.size and (ids.min() < 0 or ids.max() >= self.n_cells):
            raise ValueError(f"cell ids out of range for a {self.height}x{self.width} grid")
        return np.divmod(ids, self.width)

    def cell_centers(self, cell_ids) -> Tuple[np.ndarray, np.ndarray]:
        """Projected (x, y) of cell centers."""
        rows, cols = self.rowcol(cell_ids)
        if rows.size == 0:
            return np.empty(0), np.empty(0)
        xs, ys = xy(self.transform, rows, cols, offset="center")
        return np.asarray(xs, dtype=float), np.asarray(ys, dtype=float)

    def cell_lonlat(self, cell_ids) -> Tuple[np.ndarray, np.ndarray]:
        """Geographic (lon, lat) of cell centers (EPSG:4326)."""
        xs, ys = self.cell_centers(cell_ids)
        if xs.size == 0:
            return xs, ys
        lons, lats = transform(self.crs, "EPSG:4326", xs.tolist(), ys.tolist())
        return np.asarray(lons, dtype=float), np.asarray(lats, dtype=float)


def make_grid(crs: Any, resolution: float, bounds: Optional[BBox] = None) -> GridTemplate:
    """Build a GridTemplate anchored at the top-left of `bounds`.

    If bounds is None, the CRS's global extent (lon -180..180, lat -90..90)
    is used. The extent is rounded outward to a whole number of cells.
    """
    crs = CRS.from_user_input(crs)
    if not crs.is_projected:
        raise ValueError(f"Grid CRS must be a projected (equal-area) CRS, got {crs.to_string()}")
    if resolution <= 0:
        raise ValueError(f"resolution must be positive, got {resolution}")

    if bounds is None:
        bounds = transform_bounds("EPSG:4326", crs, -180.0, -90.0, 180.0, 90.0, densify_pts=21)

    xmin, ymin, xmax, ymax = bounds
    width = int(math.ceil((xmax - xmin) / resolution))
    height = int(math.ceil((ymax - ymin) / resolution))
    if width < 1 or height < 1:
        raise ValueError(f"bounds {bounds} give an empty grid at resolution {resolution}")

    return GridTemplate(
        crs=crs,
        transform=from_origin(xmin, ymax, resolution, resolution),
        width=width,
        height=height,
    )


def grid_from_settings(settings: Dict[str, Any]) -> GridTemplate:
    """Build the grid from a resolved `grid:` block (see marpd.config.grid_settings)."""
    grid = make_grid(settings["crs"], settings["resolution"], settings.get("bounds"))
    print(
        f"[GRID] {grid.width}x{grid.height} cells at {settings['resolution']:.0f} m "
        f"in {grid.crs.to_string()} {format_bbox(grid.bounds)}"
    )
    return grid
