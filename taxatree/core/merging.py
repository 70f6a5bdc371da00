"""Merge hierarchies into one deduplicated tree."""

import logging
from dataclasses import dataclass, field
from typing import List, Dict, Tuple, Optional, Union, Sequence

from taxatree.core.edge_list import EdgeList
from taxatree.models.errors import ValidationError
from taxatree.models.taxon import Taxon, Hierarchy

logger = logging.getLogger(__name__)

HierarchyLike = Union[Hierarchy, Sequence[Union[Taxon, str]]]

@dataclass
class MergeResult:
    """Registry, edge list and per-input leaf ids produced by a merge."""
    taxa: Dict[str, Taxon] = field(default_factory=dict)
    edge_list: EdgeList = field(default_factory=EdgeList)
    input_ids: List[str] = field(default_factory=list)

def _as_hierarchy(value: HierarchyLike, position: int) -> Hierarchy:
    if isinstance(value, Hierarchy):
        hierarchy = value
    elif isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise ValidationError(
            f"Hierarchy {position} must be a Hierarchy or a sequence of taxa, "
            f"got {type(value).__name__}"
        )
    else:
        hierarchy = Hierarchy(list(value))
    if len(hierarchy) == 0:
        raise ValidationError(f"Hierarchy {position} is empty")
    return hierarchy

def merge_hierarchies(hierarchies: Sequence[HierarchyLike]) -> MergeResult:
    """
    Build a deduplicated edge list and taxon registry from hierarchies.

    A taxon is shared between hierarchies when the same descriptor appears
    under the same ancestor path. The ancestor path is identified by the
    arena index of the parent, since that index is itself unique per path.

    Args:
        hierarchies: Chains of taxa, root first

    Returns:
        MergeResult with provisional ids (decimal arena indexes)

    Raises:
        ValidationError: If a hierarchy is empty or not a chain of taxa
    """
    # Validate everything before building
    chains = [_as_hierarchy(h, i) for i, h in enumerate(hierarchies)]

    arena: List[Taxon] = []
    parents: List[Optional[int]] = []
    seen: Dict[Tuple[Optional[int], Taxon], int] = {}
    input_indexes: List[int] = []

    for chain in chains:
        parent = None
        for taxon in chain:
            key = (parent, taxon)
            index = seen.get(key)
            if index is None:
                index = len(arena)
                arena.append(taxon)
                parents.append(parent)
                seen[key] = index
            parent = index
        input_indexes.append(parent)

    ids = [str(i) for i in range(len(arena))]
    edge_list = EdgeList.from_pairs(
        (ids[i], None if p is None else ids[p]) for i, p in enumerate(parents)
    )
    logger.debug(f"Merged {len(chains)} hierarchies into {len(arena)} taxa")
    return MergeResult(
        taxa=dict(zip(ids, arena)),
        edge_list=edge_list,
        input_ids=[ids[i] for i in input_indexes]
    )
