import pandas as pd
import pytest

from taxatree import Taxonomy


@pytest.fixture()
def taxonomy() -> Taxonomy:
    # a: A, b: B, c: C, d: E, e: F
    return Taxonomy("A;B;C", "A;E;F")


@pytest.fixture()
def chain() -> Taxonomy:
    # a: A, b: B, c: C
    return Taxonomy("A;B;C")


@pytest.fixture()
def counts() -> pd.DataFrame:
    return pd.DataFrame({
        "taxon_id": ["c", "e", "b", "a"],
        "n": [1, 2, 3, 4],
    })


@pytest.fixture()
def with_data(taxonomy: Taxonomy, counts: pd.DataFrame) -> Taxonomy:
    taxonomy.add_dataset("counts", counts)
    taxonomy.add_dataset("scores", pd.Series([0.5, 0.25], index=["c", "d"]), policy="drop")
    taxonomy.add_dataset("notes", ["x", "y"], policy="keep", taxon_ids=["b", "e"])
    return taxonomy
