"""Resolve taxon subsets to edge list positions."""

import logging
from functools import reduce
from typing import List, Any, TYPE_CHECKING

import numpy as np
import pandas as pd

from taxatree.core.utils import intersect_with_dups
from taxatree.models.errors import ValidationError

if TYPE_CHECKING:
    from taxatree.core.taxonomy import Taxonomy

logger = logging.getLogger(__name__)

def _is_bool(value: Any) -> bool:
    return isinstance(value, (bool, np.bool_))

def _is_int(value: Any) -> bool:
    return isinstance(value, (int, np.integer)) and not _is_bool(value)

def _resolve_one(taxonomy: 'Taxonomy', selection: Any, depth: int = 0) -> List[int]:
    n_taxa = len(taxonomy.edge_list)

    if callable(selection):
        if depth > 0:
            raise ValidationError("A subset function must not return another function")
        return _resolve_one(taxonomy, selection(taxonomy), depth + 1)

    if isinstance(selection, str):
        selection = [selection]
    elif _is_int(selection):
        selection = [selection]
    elif isinstance(selection, (pd.Series, pd.Index, np.ndarray)):
        selection = selection.tolist()
    elif isinstance(selection, (set, frozenset)):
        raise ValidationError("Taxon subsets must be ordered; use a list instead of a set")
    else:
        try:
            selection = list(selection)
        except TypeError:
            raise ValidationError(
                f"Cannot select taxa with a value of type {type(selection).__name__}"
            ) from None

    if len(selection) == 0:
        return []

    if all(_is_bool(x) for x in selection):
        if len(selection) != n_taxa:
            raise ValidationError(
                f"Boolean subset has length {len(selection)} but there are {n_taxa} taxa"
            )
        return [i for i, keep in enumerate(selection) if keep]

    if all(isinstance(x, str) for x in selection):
        positions = taxonomy.edge_list.positions_of(selection)
        unknown = [x for x, p in zip(selection, positions) if p < 0]
        if unknown:
            raise ValidationError(f"Unknown taxon ids: {unknown}")
        return positions.tolist()

    if all(_is_int(x) for x in selection):
        invalid = [x for x in selection if not 0 <= x < n_taxa]
        if invalid:
            raise ValidationError(
                f"Taxon indexes out of range 0..{n_taxa - 1}: {invalid}"
            )
        return [int(x) for x in selection]

    raise ValidationError(
        "Taxon subsets must be all taxon ids, all indexes or a boolean mask"
    )

def resolve_subset(taxonomy: 'Taxonomy', *selections: Any) -> List[int]:
    """
    Convert one or more subset expressions to edge list positions.

    Each expression can be taxon ids, positions, a boolean mask over all
    taxa, or a function of the taxonomy returning one of those. Combining
    several expressions keeps the positions present in all of them, each
    repeated as many times as its minimum multiplicity, in the order of the
    first expression.

    Args:
        taxonomy: Taxonomy the subset refers to
        selections: Subset expressions; None values are ignored

    Returns:
        List of positions; all positions when no expression is given

    Raises:
        ValidationError: If an expression refers to unknown taxa
    """
    selections = [s for s in selections if s is not None]
    if not selections:
        return list(range(len(taxonomy.edge_list)))
    resolved = [_resolve_one(taxonomy, s) for s in selections]
    return reduce(intersect_with_dups, resolved)
