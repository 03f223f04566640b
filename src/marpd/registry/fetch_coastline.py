#!/usr/bin/env python3
"""fetch_coastline.py

Fetch the Natural Earth coastline layer used as map context.

This handler:
- Renders ZIP URL from sources.yaml config
- Downloads to data/raw/boundaries/natural_earth/
- Respects --dry-run and --overwrite

Called by:
  python -m marpd.registry fetch-coastline

geopandas reads the ZIP directly, so no extraction step is needed.
"""

from __future__ import annotations

import urllib.request
from pathlib import Path
from typing import Any, Dict, Optional

import geopandas as gpd

from marpd.config import source_config


def _render_url(template: str, context: Dict[str, Any]) -> str:
    """Render URL template with context dict."""
    try:
        return template.format(**context)
    except KeyError as e:
        raise KeyError(f"Missing key for coastline url_template: {e.args[0]}") from e


def _coastline_url(cfg: Dict[str, Any]) -> str:
    template = cfg.get("url_template")
    if not template:
        raise SystemExit("coastline config missing url_template")
    return _render_url(str(template), {"base_url": cfg.get("base_url"), "scale": cfg.get("scale", "110m")})


def coastline_zip_path(sources_yaml: Dict[str, Any]) -> Path:
    """Local cache path of the coastline ZIP described by sources.yaml."""
    cfg = source_config(sources_yaml, "coastline")
    url = _coastline_url(cfg)
    cache_dir = Path(cfg.get("cache_dir", "data/raw/boundaries/natural_earth"))
    return cache_dir / Path(url).name


def fetch_coastline(
    *,
    sources_yaml: Dict[str, Any],
    overwrite: bool = False,
    dry_run: bool = False,
) -> int:
    """Fetch the Natural Earth coastline ZIP.

    Parameters
    ----------
    sources_yaml : dict
        Parsed sources.yaml
    overwrite : bool
        If True, re-download even if file exists
    dry_run : bool
        If True, print planned actions without downloading

    Returns
    -------
    int
        Exit code (0 = success)
    """
    cfg = source_config(sources_yaml, "coastline")
    url = _coastline_url(cfg)
    zip_path = coastline_zip_path(sources_yaml)

    if zip_path.exists() and not overwrite:
        print(f"[SKIP] Coastline ZIP already exists: {zip_path}")
        return 0

    print(f"[COASTLINE] URL: {url}")
    print(f"[COASTLINE] ZIP: {zip_path}")

    if dry_run:
        print("[DRY-RUN] No download performed")
        return 0

    zip_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        print("[COASTLINE] Downloading...")
        urllib.request.urlretrieve(url, zip_path)
        print("[COASTLINE] Download complete")
    except Exception as e:
        raise SystemExit(f"Failed to download coastline from {url}: {e}") from e

    return 0


def load_coastline(path: Optional[Path]) -> Optional[gpd.GeoDataFrame]:
    """Read the cached coastline layer, or return None if it isn't there.

    The coastline is context only; maps render without it.
    """
    if path is None or not path.exists():
        print(f"[COASTLINE] No coastline at {path}; maps will have no context layer")
        return None
    gdf = gpd.read_file(path)
    if gdf.crs is None:
        raise SystemExit(f"Coastline layer has no CRS: {path}")
    return gdf


if __name__ == "__main__":
    raise SystemExit(
        "This module is not meant to be run directly. "
        "Use: python -m marpd.registry fetch-coastline"
    )
