#!/usr/bin/env python3
"""tree.py

Circular phylogram of the species tree, edges colored by named clade.

Layout: tips are spread evenly around the circle in traversal order, an
internal node sits midway between its first and last child, and a node's
radius is its distance from the root.
"""

from __future__ import annotations

import math
from typing import Dict, Mapping, Optional, Tuple

import numpy as np
from matplotlib.figure import Figure
from matplotlib.lines import Line2D
from skbio import TreeNode

from marpd.diversity.phylo import clade_members, present_clades


DEFAULT_COLORS = ["#e63946", "#457b9d", "#2a9d8f", "#f4a261", "#6d597a", "#8ab17d"]
OTHER_COLOR = "#9e9e9e"


def circular_layout(tree: TreeNode) -> Dict[int, Tuple[float, float]]:
    """(angle, radius) per node, keyed by id(node)."""
    tips = list(tree.tips(include_self=True))
    step = 2 * math.pi / len(tips)

    pos: Dict[int, Tuple[float, float]] = {}
    radius: Dict[int, float] = {}
    for node in tree.preorder(include_self=True):
        if node.is_root():
            radius[id(node)] = 0.0
        else:
            radius[id(node)] = radius[id(node.parent)] + (node.length or 0.0)

    i = 0
    for node in tree.postorder(include_self=True):
        if node.is_tip():
            angle = i * step
            i += 1
        else:
            angle = (pos[id(node.children[0])][0] + pos[id(node.children[-1])][0]) / 2
        pos[id(node)] = (angle, radius[id(node)])
    return pos


def _edge_colors(tree: TreeNode, groups: Mapping[str, frozenset], colors: Mapping[str, str]) -> Dict[int, str]:
    """Color a node (and the edge above it) by the clade that contains all its tips."""
    out: Dict[int, str] = {}
    tipsets: Dict[int, frozenset] = {}
    for node in tree.postorder(include_self=True):
        if node.is_tip():
            tipsets[id(node)] = frozenset([node.name])
        else:
            tipsets[id(node)] = frozenset().union(*(tipsets[id(c)] for c in node.children))
        out[id(node)] = OTHER_COLOR
        for name, members in groups.items():
            if tipsets[id(node)] <= members:
                out[id(node)] = colors[name]
                break
    return out


def render_circular_tree(
    tree: TreeNode,
    clades: Mapping[str, Tuple[str, str]],
    *,
    colors: Optional[Mapping[str, str]] = None,
    title: Optional[str] = None,
    show_tip_labels: bool = True,
) -> Figure:
    """Circular tree diagram; each clade is the MRCA of its two representative tips.

    Clades whose representative tips are not in `tree` are left out of the legend.
    """
    groups = clade_members(tree, present_clades(tree, clades))
    palette = dict(colors or {})
    for k, name in enumerate(groups):
        palette.setdefault(name, DEFAULT_COLORS[k % len(DEFAULT_COLORS)])

    pos = circular_layout(tree)
    edge_color = _edge_colors(tree, groups, palette)
    max_r = max(r for _, r in pos.values()) or 1.0

    fig = Figure(figsize=(8, 8), constrained_layout=True)
    ax = fig.add_subplot(projection="polar")

    for node in tree.preorder(include_self=True):
        theta, r = pos[id(node)]
        color = edge_color[id(node)]
        if not node.is_root():
            r_parent = pos[id(node.parent)][1]
            ax.plot([theta, theta], [r_parent, r], color=color, linewidth=0.8)
        if node.children:
            a0 = pos[id(node.children[0])][0]
            a1 = pos[id(node.children[-1])][0]
            arc = np.linspace(a0, a1, max(2, int(abs(a1 - a0) * 40)))
            ax.plot(arc, np.full_like(arc, r), color=color, linewidth=0.8)
        elif show_tip_labels:
            deg = math.degrees(theta)
            flip = 90 < deg < 270
            ax.text(
                theta,
                r + max_r * 0.02,
                node.name.replace("_", " "),
                rotation=deg + 180 if flip else deg,
                rotation_mode="anchor",
                ha="right" if flip else "left",
                va="center",
                fontsize=4,
                fontstyle="italic",
                color=color,
            )

    ax.set_ylim(0, max_r * (1.35 if show_tip_labels else 1.02))
    ax.set_axis_off()
    if groups:
        ax.legend(
            handles=[Line2D([0], [0], color=palette[name], lw=2, label=name) for name in groups],
            loc="lower left",
            bbox_to_anchor=(-0.05, -0.05),
            frameon=False,
        )
    if title:
        ax.set_title(title)
    return fig
