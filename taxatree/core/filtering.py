"""Filtering taxa and reassigning orphaned subtaxa and observations."""

import logging
from dataclasses import dataclass, field
from typing import List, Dict, Set, Optional, Union, Any, TYPE_CHECKING

import numpy as np

from taxatree.core.datasets import check_policy
from taxatree.core.edge_list import EdgeList
from taxatree.core.query import ancestor_positions, depth_limit
from taxatree.core.selection import resolve_subset
from taxatree.core.utils import unique
from taxatree.models.errors import ValidationError
from taxatree.models.taxon import Taxon

if TYPE_CHECKING:
    from taxatree.core.taxonomy import Taxonomy

logger = logging.getLogger(__name__)

@dataclass
class FilteredState:
    """Complete taxonomy state computed by a filter, ready to swap in."""
    edge_list: EdgeList
    taxa: Dict[str, Taxon]
    data: Dict[str, Any] = field(default_factory=dict)
    input_ids: List[Optional[str]] = field(default_factory=list)

def _resolve_policies(
    taxonomy: 'Taxonomy',
    obs_policy: Union[None, str, Dict[str, str]]
) -> Dict[str, str]:
    policies = dict(taxonomy.dataset_policies)
    if obs_policy is None:
        return policies
    if isinstance(obs_policy, str):
        return {name: check_policy(obs_policy) for name in policies}
    unknown = [name for name in obs_policy if name not in policies]
    if unknown:
        raise ValidationError(f"Cannot find the following data: {', '.join(unknown)}")
    for name, policy in obs_policy.items():
        policies[name] = check_policy(policy)
    return policies

def _wants_levels(depth: Union[bool, int]) -> bool:
    # False and 0 both mean no extra levels
    if isinstance(depth, (bool, np.bool_)):
        return bool(depth)
    return depth_limit(depth) > 0

class _Reassigner:
    """Finds the nearest surviving supertaxon of removed taxa."""

    def __init__(self, taxonomy: 'Taxonomy', surviving: Set[int]):
        self.ids = taxonomy.taxon_ids()
        self.parent_index = taxonomy.edge_list.parent_index()
        self.surviving = surviving
        self._cache: Dict[int, Optional[str]] = {}

    def nearest(self, position: int) -> Optional[str]:
        if position < 0:
            return None
        if position not in self._cache:
            found = None
            for ancestor in ancestor_positions(self.parent_index, position):
                if ancestor is not None and ancestor in self.surviving:
                    found = self.ids[ancestor]
                    break
            self._cache[position] = found
        return self._cache[position]

    def nearest_for_id(self, taxon_id: str, positions: Dict[str, int]) -> Optional[str]:
        return self.nearest(positions.get(taxon_id, -1))

def plan_filter_taxa(
    taxonomy: 'Taxonomy',
    *selection: Any,
    subtaxa: Union[bool, int] = False,
    supertaxa: Union[bool, int] = False,
    reassign_taxa: bool = True,
    obs_policy: Union[None, str, Dict[str, str]] = None,
    invert: bool = False
) -> FilteredState:
    """
    Compute the state of a taxonomy after keeping a subset of taxa.

    Nothing is modified here; `Taxonomy.filter_taxa` swaps the result in.

    Args:
        taxonomy: Taxonomy to filter
        selection: Subset expressions selecting the taxa to keep
        subtaxa: Also keep subtaxa of the selection; True for all levels or
            the number of levels
        supertaxa: Also keep supertaxa of the selection, same values
        reassign_taxa: Point subtaxa of removed taxa at their nearest
            surviving supertaxon instead of making them roots
        obs_policy: Override the orphan policy of all datasets (a policy
            name) or of some datasets (dict of name to policy)
        invert: Remove the selected taxa instead of keeping them

    Returns:
        FilteredState with the new edge list, registry, data and input ids

    Raises:
        ValidationError: If the selection or a policy is invalid
    """
    policies = _resolve_policies(taxonomy, obs_policy)
    query = taxonomy.query
    ids = taxonomy.taxon_ids()
    n_taxa = len(ids)

    positions = resolve_subset(taxonomy, *selection)
    keep = list(positions)
    if _wants_levels(subtaxa):
        keep += [p for g in query._subtaxa_positions(positions, subtaxa) for p in g]
    if _wants_levels(supertaxa):
        keep += [p for g in query._supertaxa_positions(positions, supertaxa) for p in g]
    keep = unique(keep)

    if invert:
        selected = set(keep)
        keep = [p for p in range(n_taxa) if p not in selected]
    surviving = set(keep)
    kept_rows = sorted(surviving)
    surviving_ids = {ids[p] for p in surviving}
    reassigner = _Reassigner(taxonomy, surviving)
    logger.debug(f"Keeping {len(kept_rows)} of {n_taxa} taxa")

    # Reassign subtaxa of removed taxa
    parents = taxonomy.edge_list.parents
    if reassign_taxa:
        parent_index = reassigner.parent_index
        new_parents = []
        for row, parent in enumerate(parents):
            if parent is None or parent in surviving_ids:
                new_parents.append(parent)
            elif parent_index[row] < 0:
                new_parents.append(None)
            else:
                new_parents.append(reassigner.nearest(row))
        n_moved = sum(1 for old, new in zip(parents, new_parents) if old != new)
        logger.debug(f"Reassigned the supertaxon of {n_moved} taxa")
    else:
        new_parents = parents

    # Reassign or drop observations while the old ancestry is still available
    positions_by_id = {taxon_id: i for i, taxon_id in enumerate(ids)}
    new_data = {}
    for name, data in taxonomy.data.items():
        binding = taxonomy.dataset_binding(name)
        policy = policies[name]
        data_ids = binding.taxon_ids_of(data)
        orphaned = [x is not None and x not in surviving_ids for x in data_ids]
        if not any(orphaned):
            new_data[name] = data
            continue
        if policy == 'reassign':
            new_ids = [reassigner.nearest_for_id(x, positions_by_id) if o else x
                       for x, o in zip(data_ids, orphaned)]
            data = binding.reassign(data, new_ids)
            # Orphans without a surviving supertaxon are dropped
            data = binding.subset(
                data, [not o or x is not None for x, o in zip(new_ids, orphaned)]
            )
        elif policy == 'drop':
            data = binding.subset(data, [not o for o in orphaned])
        else:
            data = binding.unbind(data, orphaned)
        logger.debug(f"Applied '{policy}' to {sum(orphaned)} observations in '{name}'")
        new_data[name] = data

    new_input_ids = [
        x if x is None or x in surviving_ids else reassigner.nearest_for_id(x, positions_by_id)
        for x in taxonomy.input_ids
    ]

    edge_list = taxonomy.edge_list.with_parents(new_parents).take(kept_rows)
    taxa = {ids[p]: taxonomy.taxa[ids[p]] for p in kept_rows}
    return FilteredState(edge_list=edge_list, taxa=taxa, data=new_data,
                         input_ids=new_input_ids)
