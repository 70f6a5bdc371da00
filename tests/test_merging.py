import pytest

from taxatree import Hierarchy, Taxon, Taxonomy, merge
from taxatree.core.merging import merge_hierarchies
from taxatree.models.errors import ValidationError


def test_shared_prefix_is_deduplicated() -> None:
    result = merge_hierarchies([["A", "B", "C"], ["A", "E", "F"]])
    assert len(result.taxa) == 5
    assert result.edge_list.pairs() == [
        ("0", None), ("1", "0"), ("2", "1"), ("3", "0"), ("4", "3")
    ]
    assert result.input_ids == ["2", "4"]


def test_same_name_under_different_parents() -> None:
    result = merge_hierarchies([["A", "X"], ["B", "X"]])
    assert len(result.taxa) == 4
    assert [t.name for t in result.taxa.values()] == ["A", "X", "B", "X"]


def test_rank_distinguishes_taxa() -> None:
    result = merge_hierarchies([
        [Taxon("A", "kingdom"), Taxon("B", "genus")],
        [Taxon("A", "phylum")],
    ])
    assert len(result.taxa) == 3


def test_repeated_input() -> None:
    result = merge_hierarchies([["A", "B"], ["A", "B"]])
    assert len(result.taxa) == 2
    assert result.input_ids == ["1", "1"]


def test_empty_hierarchy() -> None:
    with pytest.raises(ValidationError, match="Hierarchy 1 is empty"):
        merge_hierarchies([["A"], []])


def test_string_is_not_a_hierarchy() -> None:
    with pytest.raises(ValidationError):
        merge_hierarchies(["A;B"])


def test_taxonomy_ids_follow_first_appearance(taxonomy: Taxonomy) -> None:
    assert taxonomy.taxon_ids() == ["a", "b", "c", "d", "e"]
    assert taxonomy.taxon_names().tolist() == ["A", "B", "C", "E", "F"]
    assert taxonomy.input_ids == ["c", "e"]


def test_merge_strings_and_hierarchies() -> None:
    taxonomy = merge(["A|B", Hierarchy.from_names(["A", "C"])], sep="|")
    assert taxonomy.taxon_names().tolist() == ["A", "B", "C"]
    assert taxonomy.query.roots() == ["a"]


def test_hierarchy_from_string() -> None:
    hierarchy = Hierarchy.from_string(" A ; B;;C; ")
    assert [t.name for t in hierarchy] == ["A", "B", "C"]
    assert hierarchy.tip == Taxon("C")


def test_taxon_rank_order() -> None:
    assert Taxon("Animalia", "kingdom").is_above(Taxon("Chordata", "Phylum"))
    assert not Taxon("Homo", "genus").is_above(Taxon("Hominidae", "family"))
    assert not Taxon("X", "clade").is_above(Taxon("Y", "genus"))


def test_taxon_coerce() -> None:
    assert Taxon.coerce({"name": "A", "rank": "genus"}) == Taxon("A", "genus")
    with pytest.raises(ValidationError):
        Taxon.coerce({"label": "A"})
    with pytest.raises(ValidationError):
        Taxon.coerce(3)
