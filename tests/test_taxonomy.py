import logging
import threading

import pandas as pd
import pytest

from taxatree import Taxonomy
from taxatree.core.filtering import plan_filter_taxa
from taxatree.models.errors import ValidationError


def test_repr(taxonomy: Taxonomy) -> None:
    assert repr(taxonomy) == "<Taxonomy: 5 taxa, 1 roots, 0 datasets>"


def test_empty_taxonomy() -> None:
    taxonomy = Taxonomy()
    assert len(taxonomy) == 0
    assert taxonomy.query.roots() == []
    assert taxonomy.query.subtaxa() == {}


def test_custom_alphabet() -> None:
    taxonomy = Taxonomy("A;B;C", "A;E;F", alphabet="01")
    assert taxonomy.taxon_ids() == ["000", "001", "010", "011", "100"]


def test_identity_replacement_is_unchanged(with_data: Taxonomy) -> None:
    edges = with_data.edge_list.pairs()
    counts = with_data.data["counts"].copy()
    with_data.replace_taxon_ids(with_data.taxon_ids())
    assert with_data.edge_list.pairs() == edges
    pd.testing.assert_frame_equal(with_data.data["counts"], counts)


def test_replace_taxon_ids(with_data: Taxonomy) -> None:
    with_data.replace_taxon_ids(["t1", "t2", "t3", "t4", "t5"])
    assert with_data.edge_list.pairs() == [
        ("t1", None), ("t2", "t1"), ("t3", "t2"), ("t4", "t1"), ("t5", "t4")
    ]
    assert list(with_data.taxa) == ["t1", "t2", "t3", "t4", "t5"]
    assert with_data.taxa["t4"].name == "E"
    assert with_data.input_ids == ["t3", "t5"]
    assert with_data.data["counts"]["taxon_id"].tolist() == ["t3", "t5", "t2", "t1"]
    assert with_data.data["scores"].index.tolist() == ["t3", "t4"]
    assert with_data.data["notes"].index.tolist() == ["t2", "t5"]


def test_replace_taxon_ids_mapping(chain: Taxonomy) -> None:
    chain.replace_taxon_ids({"c": "z", "a": "x", "b": "y"})
    assert chain.edge_list.pairs() == [("x", None), ("y", "x"), ("z", "y")]


@pytest.mark.parametrize("new_ids, message", [
    (["x", "x", "y", "z", "w"], "must be unique"),
    (["x", "y"], "different than"),
    (["x", "y", "z", "w", ""], "non-empty"),
    ({"a": "x"}, "cover exactly"),
    ({"a": "v", "b": "w", "c": "x", "d": "y", "e": "z", "f": "q"}, "cover exactly"),
])
def test_invalid_replacement_changes_nothing(with_data: Taxonomy, new_ids, message) -> None:
    edges = with_data.edge_list.pairs()
    with pytest.raises(ValidationError, match=message):
        with_data.replace_taxon_ids(new_ids)
    assert with_data.edge_list.pairs() == edges
    assert list(with_data.taxa) == ["a", "b", "c", "d", "e"]
    assert with_data.data["counts"]["taxon_id"].tolist() == ["c", "e", "b", "a"]


def test_duplicates_reported_before_count(taxonomy: Taxonomy) -> None:
    with pytest.raises(ValidationError, match="must be unique"):
        taxonomy.replace_taxon_ids(["x", "x"])


def test_arrange_taxa(taxonomy: Taxonomy) -> None:
    classes = taxonomy.query.classifications()
    taxonomy.arrange_taxa("taxon_names", ascending=False)
    assert taxonomy.taxon_ids() == ["e", "d", "c", "b", "a"]
    assert list(taxonomy.taxa) == ["e", "d", "c", "b", "a"]
    assert taxonomy.query.classifications()["e"] == classes["e"]
    assert taxonomy.query.roots() == ["a"]


def test_arrange_taxa_by_parent(taxonomy: Taxonomy) -> None:
    taxonomy.arrange_taxa("from")
    assert taxonomy.taxon_ids() == ["b", "d", "c", "e", "a"]


def test_arrange_taxa_by_values(taxonomy: Taxonomy) -> None:
    taxonomy.arrange_taxa([5, 4, 3, 2, 1])
    assert taxonomy.taxon_ids() == ["e", "d", "c", "b", "a"]
    with pytest.raises(ValidationError):
        taxonomy.arrange_taxa([1, 2])


def test_arrange_taxa_mixed_keys(taxonomy: Taxonomy) -> None:
    with pytest.raises(ValidationError, match="Cannot sort"):
        taxonomy.arrange_taxa([1, "a", 2, "b", 3])
    assert taxonomy.taxon_ids() == ["a", "b", "c", "d", "e"]


def test_get_data(with_data: Taxonomy) -> None:
    assert with_data.get_data("taxon_ids").tolist() == ["a", "b", "c", "d", "e"]
    assert with_data.get_data("n_subtaxa")["a"] == 4
    assert with_data.get_data("counts.n")["b"] == 3
    assert with_data.get_data("scores")["d"] == 0.25
    names = with_data.all_names()
    assert "counts.n" in names
    assert "counts.taxon_id" not in names
    with pytest.raises(ValidationError, match="Cannot find the following data"):
        with_data.get_data("counts.missing")


def test_map_data(taxonomy: Taxonomy) -> None:
    mapped = taxonomy.map_data("taxon_names", "taxon_ids")
    assert mapped.index.tolist() == ["A", "B", "C", "E", "F"]
    assert mapped.tolist() == ["a", "b", "c", "d", "e"]


def test_map_data_one_to_many(taxonomy: Taxonomy, caplog) -> None:
    taxonomy.add_dataset("obs", pd.DataFrame({"taxon_id": ["c", "c"], "kind": ["x", "y"]}))
    with caplog.at_level(logging.WARNING):
        mapped = taxonomy.map_data("taxon_names", "obs.kind")
    assert mapped["C"] == "x"
    assert mapped["A"] is None
    assert "multiple unique values" in caplog.text


def test_map_data_unknown_ids(taxonomy: Taxonomy) -> None:
    with pytest.raises(ValidationError):
        taxonomy.map_data("taxon_names", pd.Series([1], index=["zz"]))


def test_add_and_remove_dataset(taxonomy: Taxonomy, counts: pd.DataFrame) -> None:
    taxonomy.add_dataset("counts", counts)
    assert taxonomy.dataset_policies["counts"] == "reassign"
    removed = taxonomy.remove_dataset("counts")
    pd.testing.assert_frame_equal(removed, counts)
    assert "counts" not in taxonomy.data
    with pytest.raises(ValidationError):
        taxonomy.remove_dataset("counts")


def test_dataset_with_unbound_records(taxonomy: Taxonomy) -> None:
    taxonomy.add_dataset("obs", ["x", "y"], taxon_ids=[None, "a"])
    taxonomy.filter_taxa("a", invert=True)
    assert taxonomy.data["obs"].index.tolist() == [None]


@pytest.mark.parametrize("name, data, kwargs", [
    ("bad.name", pd.Series([1], index=["a"]), {}),
    ("taxon_names", pd.Series([1], index=["a"]), {}),
    ("obs", pd.Series([1], index=["zz"]), {}),
    ("obs", pd.Series([1], index=["a"]), {"policy": "ignore"}),
    ("obs", pd.DataFrame({"id": ["a"]}), {}),
    ("obs", ["x"], {}),
    ("obs", ["x"], {"taxon_ids": ["a", "b"]}),
    ("obs", {"a": 1}, {}),
])
def test_add_dataset_invalid(taxonomy: Taxonomy, name, data, kwargs) -> None:
    with pytest.raises(ValidationError):
        taxonomy.add_dataset(name, data, **kwargs)
    assert len(taxonomy.data) == 0


def run_while_filtered(taxonomy: Taxonomy, action) -> list:
    """Start `action` in a thread, then filter to a, b, c while holding the lock."""
    errors = []

    def target():
        try:
            action()
        except Exception as e:
            errors.append(e)

    with taxonomy._lock:
        worker = threading.Thread(target=target)
        worker.start()
        taxonomy._apply(plan_filter_taxa(taxonomy, ["a", "b", "c"]))
    worker.join(timeout=10)
    assert not worker.is_alive()
    return errors


def test_arrange_waits_for_other_writer(taxonomy: Taxonomy) -> None:
    errors = run_while_filtered(
        taxonomy, lambda: taxonomy.arrange_taxa("taxon_names", ascending=False)
    )
    assert errors == []
    assert taxonomy.taxon_ids() == ["c", "b", "a"]
    assert taxonomy.edge_list.pairs() == [("c", "b"), ("b", "a"), ("a", None)]


def test_replace_ids_sees_other_writer(taxonomy: Taxonomy) -> None:
    mapping = {x: x.upper() for x in taxonomy.taxon_ids()}
    errors = run_while_filtered(taxonomy, lambda: taxonomy.replace_taxon_ids(mapping))
    assert len(errors) == 1
    assert isinstance(errors[0], ValidationError)
    assert taxonomy.taxon_ids() == ["a", "b", "c"]


def test_add_dataset_sees_other_writer(taxonomy: Taxonomy) -> None:
    errors = run_while_filtered(
        taxonomy, lambda: taxonomy.add_dataset("obs", pd.Series([1], index=["e"]))
    )
    assert len(errors) == 1
    assert isinstance(errors[0], ValidationError)
    assert "obs" not in taxonomy.data


def test_sample_waits_for_other_writer(taxonomy: Taxonomy) -> None:
    errors = run_while_filtered(taxonomy, lambda: taxonomy.sample_n_taxa(3, seed=1))
    assert errors == []
    assert taxonomy.taxon_ids() == ["a", "b", "c"]
