#!/usr/bin/env python3

from __future__ import annotations

import pandas as pd
import pytest
from skbio.diversity import alpha_diversity

from marpd.diversity import phylo


ALL_TIPS = [
    "Dugong_dugon",
    "Phoca_vitulina",
    "Stenella_attenuata",
    "Balaena_mysticetus",
    "Tursiops_truncatus",
    "Trichechus_manatus",
    "Halichoerus_grypus",
    "Delphinus_delphis",
]


def _community(rows, columns=ALL_TIPS):
    """rows: {cell_id: [present species]} -> 0/1 matrix over `columns`."""
    data = [[int(c in present) for c in columns] for present in rows.values()]
    return pd.DataFrame(data, index=pd.Index(list(rows), name="cell_id"), columns=list(columns))


def test_load_tree_keeps_underscores(tree):
    assert "Stenella_attenuata" in phylo.tip_names(tree)
    assert len(phylo.tip_names(tree)) == 8


def test_load_tree_missing_file(tmp_path):
    with pytest.raises(SystemExit):
        phylo.load_tree(tmp_path / "missing.nwk")


def test_single_species_pd_is_root_to_tip_length(tree):
    matrix = _community({0: ["Balaena_mysticetus"], 1: ["Stenella_attenuata"], 2: ["Dugong_dugon"]})
    result = phylo.faith_pd(matrix, tree)
    assert result.tolist() == pytest.approx([53.0, 53.0, 53.0])


def test_distant_clades_beat_one_clade_at_equal_richness(tree):
    matrix = _community(
        {
            10: ["Stenella_attenuata", "Tursiops_truncatus", "Delphinus_delphis"],
            11: ["Stenella_attenuata", "Trichechus_manatus", "Phoca_vitulina"],
        }
    )
    result = phylo.faith_pd(matrix, tree)
    assert result[10] == pytest.approx(58.0)
    assert result[11] == pytest.approx(156.0)
    assert result[11] > result[10]


def test_pd_is_monotone_under_adding_species(tree):
    nested = [
        ["Stenella_attenuata"],
        ["Stenella_attenuata", "Tursiops_truncatus"],
        ["Stenella_attenuata", "Tursiops_truncatus", "Phoca_vitulina"],
        ["Stenella_attenuata", "Tursiops_truncatus", "Phoca_vitulina", "Halichoerus_grypus"],
        ALL_TIPS,
    ]
    result = phylo.faith_pd(_community(dict(enumerate(nested))), tree)
    values = result.tolist()
    assert values == sorted(values)
    assert values[0] == pytest.approx(53.0)
    assert values[1] == pytest.approx(55.0)
    assert values[2] == pytest.approx(108.0)


def test_column_order_does_not_matter(tree):
    rows = {0: ["Dugong_dugon", "Phoca_vitulina"], 1: ["Balaena_mysticetus"]}
    a = phylo.faith_pd(_community(rows, ALL_TIPS), tree)
    b = phylo.faith_pd(_community(rows, sorted(ALL_TIPS, reverse=True)), tree)
    pd.testing.assert_series_equal(a, b)


def test_pruning_is_lossless(tree):
    kept = ["Stenella_attenuata", "Tursiops_truncatus", "Delphinus_delphis", "Phoca_vitulina", "Trichechus_manatus"]
    matrix = _community(
        {0: kept[:3], 1: ["Stenella_attenuata", "Phoca_vitulina", "Trichechus_manatus"], 2: ["Phoca_vitulina"]},
        columns=kept,
    )
    pruned_result = phylo.faith_pd(matrix, tree)

    full_result = alpha_diversity("faith_pd", matrix.to_numpy(), ids=list(matrix.index), taxa=kept, tree=tree)
    assert pruned_result.tolist() == pytest.approx(list(full_result))
    assert pruned_result.tolist() == pytest.approx([58.0, 156.0, 53.0])


def test_prune_tree_leaves_input_untouched(tree):
    pruned = phylo.prune_tree(tree, ["Phoca_vitulina", "Dugong_dugon", "Balaena_mysticetus"])
    assert sorted(phylo.tip_names(pruned)) == ["Balaena_mysticetus", "Dugong_dugon", "Phoca_vitulina"]
    assert len(phylo.tip_names(tree)) == 8


def test_tip_mismatch_is_fatal(tree):
    matrix = _community({0: ["Stenella.attenuata"]}, columns=["Stenella.attenuata", "Phoca_vitulina"])
    with pytest.raises(ValueError, match="no matching tree tip"):
        phylo.faith_pd(matrix, tree)


def test_degenerate_matrices_rejected(tree):
    with pytest.raises(ValueError):
        phylo.faith_pd(pd.DataFrame(index=pd.Index([], name="cell_id")), tree)
    with pytest.raises(ValueError):
        phylo.faith_pd(pd.DataFrame(columns=["Phoca_vitulina"], dtype="uint8"), tree)


def test_clade_members_from_mrca(tree):
    clades = {
        "Cetacea": ("Balaena_mysticetus", "Stenella_attenuata"),
        "Sirenia": ("Dugong_dugon", "Trichechus_manatus"),
    }
    groups = phylo.clade_members(tree, clades)
    assert groups["Cetacea"] == {
        "Balaena_mysticetus",
        "Stenella_attenuata",
        "Tursiops_truncatus",
        "Delphinus_delphis",
    }
    assert groups["Sirenia"] == {"Dugong_dugon", "Trichechus_manatus"}


def test_mrca_unknown_tip(tree):
    with pytest.raises(ValueError):
        phylo.mrca(tree, "Orcinus_orca", "Stenella_attenuata")


def test_one_species_matrix(tree):
    matrix = _community({0: ["Stenella_attenuata"]}, columns=["Stenella_attenuata"])
    assert phylo.faith_pd(matrix, tree).tolist() == pytest.approx([53.0])


def test_prune_to_one_species_keeps_its_stem(tree):
    pruned = phylo.prune_tree(tree, ["Balaena_mysticetus"])
    assert phylo.tip_names(pruned) == ["Balaena_mysticetus"]
    assert phylo.stem_length(pruned.find("Balaena_mysticetus")) == pytest.approx(53.0)


def test_prune_within_one_subtree_keeps_root_distance(tree):
    dolphins = ["Stenella_attenuata", "Tursiops_truncatus", "Delphinus_delphis"]
    pruned = phylo.prune_tree(tree, dolphins)
    assert sorted(phylo.tip_names(pruned)) == sorted(dolphins)
    for name in dolphins:
        assert phylo.stem_length(pruned.find(name)) == pytest.approx(53.0)

    matrix = _community({0: dolphins, 1: dolphins[:2], 2: dolphins[2:]}, columns=dolphins)
    full = alpha_diversity("faith_pd", matrix.to_numpy(), ids=list(matrix.index), taxa=dolphins, tree=tree)
    result = phylo.faith_pd(matrix, tree)
    assert result.tolist() == pytest.approx(list(full))
    assert result.tolist() == pytest.approx([58.0, 55.0, 53.0])


def test_prune_to_empty_set(tree):
    with pytest.raises(ValueError):
        phylo.prune_tree(tree, [])


def test_present_clades_drops_missing(tree, capsys):
    pruned = phylo.prune_tree(tree, ["Phoca_vitulina", "Halichoerus_grypus", "Stenella_attenuata"])
    clades = {
        "Pinnipedia": ("Phoca_vitulina", "Halichoerus_grypus"),
        "Sirenia": ("Dugong_dugon", "Trichechus_manatus"),
    }
    assert phylo.present_clades(pruned, clades) == {"Pinnipedia": ("Phoca_vitulina", "Halichoerus_grypus")}
    assert "clade Sirenia dropped" in capsys.readouterr().out
