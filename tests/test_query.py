import numpy as np
import pytest

from taxatree import Taxonomy
from taxatree.core.query import ancestor_positions, depth_limit
from taxatree.core.selection import resolve_subset
from taxatree.models.errors import StructuralError, ValidationError


def test_roots(taxonomy: Taxonomy) -> None:
    assert taxonomy.query.roots() == ["a"]
    assert taxonomy.query.roots(value="taxon_names") == ["A"]
    assert taxonomy.query.roots(["c", "b", "e"]) == ["b", "e"]


def test_supertaxa(taxonomy: Taxonomy) -> None:
    query = taxonomy.query
    assert query.supertaxa("c") == {"c": ["b", "a"]}
    assert query.supertaxa("c", value="taxon_names") == {"c": ["B", "A"]}
    assert query.supertaxa("c", recursive=False) == {"c": ["b"]}
    assert query.supertaxa("c", recursive=1) == {"c": ["b"]}
    assert query.supertaxa("c", include_input=True) == {"c": ["c", "b", "a"]}
    assert query.supertaxa("c", na=True) == {"c": ["b", "a", None]}
    assert query.supertaxa("a", recursive=False, na=True) == {"a": [None]}
    assert query.supertaxa(["c", "e"], simplify=True) == ["b", "a", "d"]


def test_subtaxa(taxonomy: Taxonomy) -> None:
    query = taxonomy.query
    assert query.subtaxa("a") == {"a": ["b", "c", "d", "e"]}
    assert query.subtaxa("a", value="taxon_names") == {"a": ["B", "C", "E", "F"]}
    assert query.subtaxa("a", recursive=False) == {"a": ["b", "d"]}
    assert query.subtaxa("a", recursive=1) == {"a": ["b", "d"]}
    assert query.subtaxa("a", recursive=2) == {"a": ["b", "c", "d", "e"]}
    assert query.subtaxa("a", recursive=0) == {"a": []}
    assert query.subtaxa("a", recursive=0, include_input=True) == {"a": ["a"]}
    assert query.subtaxa("d", include_input=True) == {"d": ["d", "e"]}
    assert query.subtaxa(value="taxon_names", simplify=True) == ["B", "C", "E", "F"]


def test_subtaxa_of_nothing(taxonomy: Taxonomy) -> None:
    assert taxonomy.query.subtaxa([]) == {}
    assert taxonomy.query.subtaxa([], simplify=True) == []


def test_apply(taxonomy: Taxonomy) -> None:
    query = taxonomy.query
    assert query.supertaxa_apply(len) == {"a": 0, "b": 1, "c": 2, "d": 1, "e": 2}
    assert query.subtaxa_apply(len, simplify=True) == [4, 1, 0, 1, 0]
    assert query.subtaxa_apply(sorted, subset="a", value="taxon_names", reverse=True) == {
        "a": ["F", "E", "C", "B"]
    }


def test_leaves(taxonomy: Taxonomy) -> None:
    assert taxonomy.query.leaves() == ["c", "e"]
    assert taxonomy.query.leaves("b") == ["c"]
    assert taxonomy.query.leaves(value="taxon_names") == ["C", "F"]


def test_stems(taxonomy: Taxonomy, chain: Taxonomy) -> None:
    assert taxonomy.query.stems() == {"a": ["a"]}
    assert chain.query.stems() == {"a": ["a", "b", "c"]}
    assert chain.query.stems(exclude_leaves=True) == {"a": ["a", "b"]}
    assert chain.query.stems(value="taxon_names", simplify=True) == ["A", "B", "C"]
    assert taxonomy.query.stems("d") == {"d": ["d", "e"]}


def test_classifications(taxonomy: Taxonomy) -> None:
    classes = taxonomy.query.classifications()
    assert classes.tolist() == ["A", "A;B", "A;B;C", "A;E", "A;E;F"]
    assert classes.index.tolist() == ["a", "b", "c", "d", "e"]
    assert taxonomy.query.id_classifications(sep="|")["e"] == "a|d|e"


def test_make_graph(taxonomy: Taxonomy) -> None:
    assert taxonomy.query.make_graph() == ["->a", "a->b", "b->c", "a->d", "d->e"]


def test_counts(taxonomy: Taxonomy) -> None:
    query = taxonomy.query
    assert query.n_supertaxa().tolist() == [0, 1, 2, 1, 2]
    assert query.n_supertaxa_1().tolist() == [0, 1, 1, 1, 1]
    assert query.n_subtaxa().tolist() == [4, 1, 0, 1, 0]
    assert query.n_subtaxa_1().tolist() == [2, 1, 0, 1, 0]


def test_predicates(taxonomy: Taxonomy, chain: Taxonomy) -> None:
    assert taxonomy.query.is_root().tolist() == [True, False, False, False, False]
    assert taxonomy.query.is_leaf().tolist() == [False, False, True, False, True]
    assert taxonomy.query.is_branch().tolist() == [False, True, False, True, False]
    assert not taxonomy.query.is_stem().any()
    assert chain.query.is_stem().tolist() == [False, True, False]


@pytest.mark.parametrize("classifications", [
    ["A;B;C", "A;E;F"],
    ["A;B;C"],
    ["A"],
    ["A;B;C;D", "A;B;C;E", "A;F", "G;H"],
])
def test_predicates_partition(classifications) -> None:
    query = Taxonomy(*classifications).query
    total = (query.is_root().astype(int) + query.is_leaf().astype(int)
             + query.is_stem().astype(int) + query.is_branch().astype(int))
    assert (total == 1).all()


def test_value_from_dataset(with_data: Taxonomy) -> None:
    assert with_data.query.supertaxa("c", value="counts.n") == {"c": [3, 4]}
    assert with_data.query.roots(value={"a": "root"}) == ["root"]
    with pytest.raises(ValidationError):
        with_data.query.roots(value="counts")
    with pytest.raises(ValidationError):
        with_data.query.roots(value="missing")


def test_resolve_subset(taxonomy: Taxonomy) -> None:
    assert resolve_subset(taxonomy) == [0, 1, 2, 3, 4]
    assert resolve_subset(taxonomy, None) == [0, 1, 2, 3, 4]
    assert resolve_subset(taxonomy, "c") == [2]
    assert resolve_subset(taxonomy, np.array([4, 0])) == [4, 0]
    assert resolve_subset(taxonomy, [True, False, True, False, False]) == [0, 2]
    assert resolve_subset(taxonomy, lambda t: t.query.is_leaf()) == [2, 4]
    assert resolve_subset(taxonomy, ["c", "b", "a"], [0, 1]) == [1, 0]


@pytest.mark.parametrize("selection", [
    ["x"],
    [5],
    [-1],
    [True, False],
    {"a", "b"},
    ["a", 1],
    lambda t: (lambda u: ["a"]),
    3.5,
])
def test_resolve_subset_invalid(taxonomy: Taxonomy, selection) -> None:
    with pytest.raises(ValidationError):
        resolve_subset(taxonomy, selection)


def test_depth_limit() -> None:
    assert depth_limit(True) is None
    assert depth_limit(False) == 1
    assert depth_limit(3) == 3
    with pytest.raises(ValidationError):
        depth_limit(-1)
    with pytest.raises(ValidationError):
        depth_limit("all")


def test_cycle_detection() -> None:
    with pytest.raises(StructuralError):
        ancestor_positions(np.array([1, 0]), 0)
