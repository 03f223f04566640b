#!/usr/bin/env python3
"""phylo.py

Phylogenetic side of the analysis: tree loading, pruning, Faith's PD and
MRCA-based clade lookups.

Faith's PD itself is scikit-bio's implementation (skbio.diversity), measured
from the root: a single species scores its full root-to-tip path length.

Tip labels are read verbatim (underscores are NOT turned into spaces), so they
line up with normalized `Genus_species` range labels.
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Mapping, Tuple

import numpy as np
import pandas as pd
from skbio import TreeNode
from skbio.diversity import alpha_diversity

from marpd.diversity.community import require_nonempty


def tip_names(tree: TreeNode) -> List[str]:
    return [tip.name for tip in tree.tips()]


def load_tree(path: Path) -> TreeNode:
    """Read a rooted Newick tree with branch lengths."""
    if not path.exists():
        raise SystemExit(f"Tree file not found: {path}")

    tree = TreeNode.read(str(path), format="newick", convert_underscores=False)

    names = tip_names(tree)
    if not names:
        raise SystemExit(f"Tree in {path} has no tips")
    unlabeled = sum(1 for n in names if not n)
    if unlabeled:
        raise SystemExit(f"Tree in {path} has {unlabeled} unlabeled tips")
    dupes = sorted(n for n, k in Counter(names).items() if k > 1)
    if dupes:
        raise SystemExit(f"Tree in {path} has duplicate tip labels: {dupes[:10]}")

    print(f"[TREE] {len(names)} tips from {path}")
    return tree


def check_tips(tree: TreeNode, species: Iterable[str]) -> None:
    """Every species must be a tip label. Raises ValueError listing the misses."""
    tips = set(tip_names(tree))
    missing = sorted(set(species) - tips)
    if missing:
        raise ValueError(
            f"{len(missing)} species have no matching tree tip (check name normalization): {missing[:10]}"
        )


def stem_length(node: TreeNode) -> float:
    """Summed branch length from the root down to `node` (root's own length excluded)."""
    return sum((n.length or 0.0) for n in [node, *node.ancestors()] if not n.is_root())


def prune_tree(tree: TreeNode, species: Iterable[str]) -> TreeNode:
    """Return a copy of `tree` reduced to `species`.

    Single-child nodes left behind are collapsed with their branch lengths
    summed. The original root is kept: when the species all sit in one
    subtree, that subtree hangs off a new root by its full stem length, so
    every root-to-tip path length is preserved. The input is untouched.
    """
    species = list(dict.fromkeys(species))
    if not species:
        raise ValueError("Can't prune a tree to an empty species set")
    check_tips(tree, species)

    if len(species) == 1:
        tip = tree.find(species[0])
        return TreeNode(children=[TreeNode(name=tip.name, length=stem_length(tip))])

    if set(species) == set(tip_names(tree)):
        return tree.copy()

    ancestor = tree.lca(species)
    pruned = tree.shear(species)
    if ancestor.is_root():
        return pruned

    # shear() collapsed the root onto the species' common ancestor
    pruned.length = stem_length(ancestor)
    return TreeNode(children=[pruned])


def faith_pd(matrix: pd.DataFrame, tree: TreeNode) -> pd.Series:
    """Faith's PD per row of a community matrix.

    The tree may carry extra tips (they are pruned away); every matrix column
    must be a tip, otherwise this raises instead of silently scoring zero.
    """
    require_nonempty(matrix)

    taxa = [str(c) for c in matrix.columns]
    pruned = prune_tree(tree, taxa)

    counts = (matrix.fillna(0).to_numpy() > 0).astype(np.int64)
    values = alpha_diversity(
        "faith_pd",
        counts,
        ids=list(matrix.index),
        taxa=taxa,
        tree=pruned,
    )
    result = pd.Series(np.asarray(values, dtype=float), index=matrix.index, name="pd")
    print(f"[PD] Faith's PD for {len(result)} cells (max {result.max():.1f})")
    return result


# -----------------------------------------------------------------------------
# Clade lookups (used by the tree renderer)
# -----------------------------------------------------------------------------

def mrca(tree: TreeNode, tip_a: str, tip_b: str) -> TreeNode:
    """Most recent common ancestor of two tips."""
    check_tips(tree, [tip_a, tip_b])
    return tree.lca([tip_a, tip_b])


def present_clades(
    tree: TreeNode, clades: Mapping[str, Tuple[str, str]]
) -> Dict[str, Tuple[str, str]]:
    """Clades whose two representative tips are both in `tree`; warns about the rest."""
    tips = set(tip_names(tree))
    kept: Dict[str, Tuple[str, str]] = {}
    for name, (a, b) in clades.items():
        missing = [t for t in (a, b) if t not in tips]
        if missing:
            print(f"[TREE] warning: clade {name} dropped, representative tips not in tree: {missing}")
            continue
        kept[name] = (a, b)
    return kept


def clade_members(
    tree: TreeNode, clades: Mapping[str, Tuple[str, str]]
) -> Dict[str, FrozenSet[str]]:
    """Tip sets of named clades, each delimited by the MRCA of two representative tips."""
    return {
        name: frozenset(tip.name for tip in mrca(tree, a, b).tips(include_self=True))
        for name, (a, b) in clades.items()
    }
