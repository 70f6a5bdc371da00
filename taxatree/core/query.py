"""Traversal and topology queries over a taxonomy."""

import logging
from typing import List, Dict, Tuple, Optional, Union, Any, Callable, TYPE_CHECKING

import numpy as np
import pandas as pd

from taxatree.core.selection import resolve_subset
from taxatree.core.utils import unique
from taxatree.models.errors import StructuralError, ValidationError

if TYPE_CHECKING:
    from taxatree.core.taxonomy import Taxonomy

logger = logging.getLogger(__name__)

Depth = Union[bool, int]

def depth_limit(recursive: Depth) -> Optional[int]:
    """
    Convert a recursion argument to a number of levels.

    True means unlimited (None), False means one level and an integer
    means that many levels.

    Raises:
        ValidationError: If the depth is negative or not a bool/int
    """
    if isinstance(recursive, (bool, np.bool_)):
        return None if recursive else 1
    if isinstance(recursive, (int, np.integer)):
        if recursive < 0:
            raise ValidationError(f"Recursion depth must not be negative, got {recursive}")
        return int(recursive)
    raise ValidationError(f"Recursion depth must be a bool or an int, got {recursive!r}")

def is_depth_count(recursive: Depth) -> bool:
    return isinstance(recursive, (int, np.integer)) and not isinstance(recursive, (bool, np.bool_))

def ancestor_positions(
    parent_index: np.ndarray,
    position: int,
    limit: Optional[int] = None
) -> List[Optional[int]]:
    """
    Walk up from a taxon, nearest ancestor first.

    Args:
        parent_index: Parent row of each row, -1 for none
        position: Row to start from
        limit: Maximum number of levels, None for all

    Returns:
        Ancestor rows; a trailing None marks that the root was passed
        before the limit was reached

    Raises:
        StructuralError: If the walk runs into a cycle
    """
    chain: List[Optional[int]] = []
    seen = {position}
    current = position
    while limit is None or len(chain) < limit:
        parent = int(parent_index[current])
        if parent < 0:
            chain.append(None)
            break
        if parent in seen:
            raise StructuralError(
                f"Cycle in edge list: row {parent} is its own ancestor"
            )
        seen.add(parent)
        chain.append(parent)
        current = parent
    return chain

def _flatten(values) -> List[Any]:
    output = []
    for value in values:
        if isinstance(value, list):
            output.extend(value)
        else:
            output.append(value)
    return output

class TaxonomyQuery:
    """Read-only tree queries bound to one taxonomy."""

    def __init__(self, taxonomy: 'Taxonomy'):
        self._taxonomy = taxonomy

    # -- helpers -------------------------------------------------------------

    def _value_getter(self, value: Any) -> Callable[[Optional[int]], Any]:
        ids = self._taxonomy.taxon_ids()
        if value is None:
            return lambda p: None if p is None else ids[p]
        if isinstance(value, str):
            value = self._taxonomy.get_data(value)
        if isinstance(value, pd.DataFrame):
            raise ValidationError(
                "Cannot look up values in a table; name a column as 'dataset.column'"
            )
        if isinstance(value, pd.Series):
            lookup = {}
            for label, item in zip(value.index, value.tolist()):
                lookup.setdefault(label, item)
        elif isinstance(value, dict):
            lookup = value
        else:
            raise ValidationError(
                f"Values must be looked up by name, Series or dict, got {type(value).__name__}"
            )
        return lambda p: None if p is None else lookup.get(ids[p])

    def _format(
        self,
        keys: List[int],
        groups: List[List[Optional[int]]],
        value: Any,
        simplify: bool
    ) -> Union[Dict[str, List[Any]], List[Any]]:
        getter = self._value_getter(value)
        if simplify:
            return unique(getter(p) for group in groups for p in group)
        ids = self._taxonomy.taxon_ids()
        return {ids[k]: [getter(p) for p in group] for k, group in zip(keys, groups)}

    def _supertaxa_positions(
        self,
        positions: List[int],
        recursive: Depth = True,
        include_input: bool = False,
        na: bool = False
    ) -> List[List[Optional[int]]]:
        limit = depth_limit(recursive)
        parent_index = self._taxonomy.edge_list.parent_index()
        output = []
        for position in positions:
            chain = [] if limit == 0 else ancestor_positions(parent_index, position, limit)
            if include_input:
                chain = [position] + chain
            if not na:
                chain = [p for p in chain if p is not None]
            output.append(chain)
        return output

    def _roots_positions(self, positions: List[int]) -> List[int]:
        in_subset = set(positions)
        chains = self._supertaxa_positions(positions)
        return [p for p, chain in zip(positions, chains)
                if not any(a in in_subset for a in chain)]

    def _depths(self) -> List[int]:
        parent_index = self._taxonomy.edge_list.parent_index()
        depths: Dict[int, int] = {}
        for position in range(len(parent_index)):
            chain = ancestor_positions(parent_index, position)
            depths[position] = len([p for p in chain if p is not None])
        return [depths[p] for p in range(len(parent_index))]

    def _preorder(
        self,
        starts: List[int],
        children: List[List[int]]
    ) -> Tuple[List[int], Dict[int, Tuple[int, int]]]:
        # span[p] is the slice of `order` holding p and all its subtaxa
        order: List[int] = []
        entry: Dict[int, int] = {}
        span: Dict[int, Tuple[int, int]] = {}
        for start in starts:
            stack = [(start, True)]
            while stack:
                node, entering = stack.pop()
                if not entering:
                    span[node] = (entry[node], len(order))
                    continue
                if node in entry:
                    raise StructuralError(f"Cycle in edge list at row {node}")
                entry[node] = len(order)
                order.append(node)
                stack.append((node, False))
                for child in reversed(children[node]):
                    stack.append((child, True))
        return order, span

    def _subtaxa_positions(
        self,
        positions: List[int],
        recursive: Depth = True,
        include_input: bool = False
    ) -> List[List[int]]:
        if not positions:
            return []
        limit = depth_limit(recursive)
        children = self._taxonomy.edge_list.children_index()

        if limit is None or (is_depth_count(recursive) and limit > 0):
            # Walk the whole tree once from the roots of the subset
            starts = unique(self._roots_positions(positions))
            order, span = self._preorder(starts, children)
            output = [order[span[p][0]:span[p][1]] for p in positions]
        else:
            output = [[p] + children[p] for p in positions]

        if not include_input:
            output = [group[1:] for group in output]

        # Limit depth by comparing ancestor counts after the full walk
        if is_depth_count(recursive):
            depths = self._depths()
            output = [[c for c in group if depths[c] - depths[p] <= limit]
                      for p, group in zip(positions, output)]
        return output

    # -- queries -------------------------------------------------------------

    def supertaxa(
        self,
        subset: Any = None,
        recursive: Depth = True,
        simplify: bool = False,
        include_input: bool = False,
        value: Any = None,
        na: bool = False
    ) -> Union[Dict[str, List[Any]], List[Any]]:
        """
        Get the supertaxa (ancestors) of taxa.

        Args:
            subset: Taxa to query, default all. Taxon ids, indexes, a boolean
                mask or a function of the taxonomy returning one of those
            recursive: True for all ancestors, False for the parent only, or
                the number of levels to go up
            simplify: Return one list of unique values instead of a dict
            include_input: Put each query taxon first in its own result
            value: Per-taxon value to return instead of taxon ids
            na: Keep a None marker where the walk passed a root

        Returns:
            Dict of query taxon id to its ancestors, nearest first
        """
        positions = resolve_subset(self._taxonomy, subset)
        groups = self._supertaxa_positions(positions, recursive, include_input, na)
        return self._format(positions, groups, value, simplify)

    def supertaxa_apply(
        self,
        func: Callable,
        subset: Any = None,
        recursive: Depth = True,
        simplify: bool = False,
        include_input: bool = False,
        value: Any = None,
        na: bool = False,
        **kwargs
    ) -> Union[Dict[str, Any], List[Any]]:
        """Apply a function to the supertaxa of each taxon."""
        groups = self.supertaxa(subset=subset, recursive=recursive, simplify=False,
                                include_input=include_input, value=value, na=na)
        output = {k: func(v, **kwargs) for k, v in groups.items()}
        return _flatten(output.values()) if simplify else output

    def roots(self, subset: Any = None, value: Any = None) -> List[Any]:
        """
        Get the root taxa of a subset.

        A taxon is a root if none of its supertaxa are in the subset. With
        the default subset these are the taxa without any supertaxa.

        Returns:
            List of root taxon ids (or values)
        """
        positions = resolve_subset(self._taxonomy, subset)
        getter = self._value_getter(value)
        return [getter(p) for p in self._roots_positions(positions)]

    def subtaxa(
        self,
        subset: Any = None,
        recursive: Depth = True,
        simplify: bool = False,
        include_input: bool = False,
        value: Any = None
    ) -> Union[Dict[str, List[Any]], List[Any]]:
        """
        Get the subtaxa (descendants) of taxa.

        Subtaxa are listed depth first, children in edge list order. Integer
        values of `recursive` limit how many levels below each query taxon
        are returned.

        Returns:
            Dict of query taxon id to its subtaxa
        """
        positions = resolve_subset(self._taxonomy, subset)
        if not positions:
            return [] if simplify else {}
        groups = self._subtaxa_positions(positions, recursive, include_input)
        return self._format(positions, groups, value, simplify)

    def subtaxa_apply(
        self,
        func: Callable,
        subset: Any = None,
        recursive: Depth = True,
        simplify: bool = False,
        include_input: bool = False,
        value: Any = None,
        **kwargs
    ) -> Union[Dict[str, Any], List[Any]]:
        """Apply a function to the subtaxa of each taxon."""
        groups = self.subtaxa(subset=subset, recursive=recursive, simplify=False,
                              include_input=include_input, value=value)
        output = {k: func(v, **kwargs) for k, v in groups.items()}
        return _flatten(output.values()) if simplify else output

    def stems(
        self,
        subset: Any = None,
        value: Any = None,
        simplify: bool = False,
        exclude_leaves: bool = False
    ) -> Union[Dict[str, List[Any]], List[Any]]:
        """
        Get the stem of each root in a subset.

        A stem follows single-child taxa down from a root and stops at the
        first taxon with more than one child, which is included. A chain
        ending in a leaf includes the leaf unless `exclude_leaves` is set.

        Returns:
            Dict of root taxon id to its stem
        """
        positions = resolve_subset(self._taxonomy, subset)
        starts = self._roots_positions(positions)
        children = self._taxonomy.edge_list.children_index()
        groups = []
        for start in starts:
            chain = []
            seen = set()
            node = start
            while True:
                if node in seen:
                    raise StructuralError(f"Cycle in edge list at row {node}")
                seen.add(node)
                n_children = len(children[node])
                if n_children == 1:
                    chain.append(node)
                    node = children[node][0]
                    continue
                if n_children > 1 or not exclude_leaves:
                    chain.append(node)
                break
            groups.append(chain)
        return self._format(starts, groups, value, simplify)

    def leaves(self, subset: Any = None, value: Any = None) -> List[Any]:
        """
        Get the taxa without subtaxa at or below a subset.

        Returns:
            List of leaf taxon ids (or values), in depth first order
        """
        positions = resolve_subset(self._taxonomy, subset)
        children = self._taxonomy.edge_list.children_index()
        groups = self._subtaxa_positions(positions, True, include_input=True)
        candidates = unique(p for group in groups for p in group)
        getter = self._value_getter(value)
        return [getter(p) for p in candidates if not children[p]]

    def classifications(self, value: Any = 'taxon_names', sep: str = ';') -> pd.Series:
        """
        Classification string of every taxon, root first.

        Args:
            value: Per-taxon value used for each level
            sep: Separator between levels

        Returns:
            Series of classifications indexed by taxon id
        """
        ids = self._taxonomy.taxon_ids()
        getter = self._value_getter(value)
        groups = self._supertaxa_positions(list(range(len(ids))), include_input=True)
        strings = [
            sep.join('' if v is None else str(v) for v in reversed([getter(p) for p in g]))
            for g in groups
        ]
        return pd.Series(strings, index=pd.Index(ids, dtype=object), dtype=object,
                         name='classification')

    def id_classifications(self, sep: str = ';') -> pd.Series:
        """Classification strings made of taxon ids."""
        return self.classifications(value='taxon_ids', sep=sep)

    def make_graph(self) -> List[str]:
        """Edges as 'from->to' strings in edge list order; roots have an empty 'from'."""
        return [f"{'' if parent is None else parent}->{taxon_id}"
                for taxon_id, parent in self._taxonomy.edge_list.pairs()]

    def _count_series(self, groups: List[list], name: str) -> pd.Series:
        ids = self._taxonomy.taxon_ids()
        return pd.Series([len(g) for g in groups], index=pd.Index(ids, dtype=object),
                         dtype=int, name=name)

    def n_supertaxa(self) -> pd.Series:
        """Number of supertaxa of each taxon."""
        positions = list(range(len(self._taxonomy.edge_list)))
        return self._count_series(self._supertaxa_positions(positions), 'n_supertaxa')

    def n_supertaxa_1(self) -> pd.Series:
        """Number of immediate supertaxa (0 or 1) of each taxon."""
        positions = list(range(len(self._taxonomy.edge_list)))
        return self._count_series(
            self._supertaxa_positions(positions, recursive=False), 'n_supertaxa_1'
        )

    def n_subtaxa(self) -> pd.Series:
        """Number of subtaxa of each taxon."""
        positions = list(range(len(self._taxonomy.edge_list)))
        return self._count_series(self._subtaxa_positions(positions), 'n_subtaxa')

    def n_subtaxa_1(self) -> pd.Series:
        """Number of immediate subtaxa of each taxon."""
        children = self._taxonomy.edge_list.children_index()
        return self._count_series(children, 'n_subtaxa_1')

    def _flag_series(self, flags, name: str) -> pd.Series:
        ids = self._taxonomy.taxon_ids()
        return pd.Series(list(flags), index=pd.Index(ids, dtype=object), dtype=bool, name=name)

    def is_root(self) -> pd.Series:
        """Taxa without a supertaxon."""
        return self._flag_series((p is None for p in self._taxonomy.edge_list.parents), 'is_root')

    def is_leaf(self) -> pd.Series:
        """Taxa without subtaxa that are not roots."""
        is_root = self.is_root()
        childless = self.n_subtaxa_1() == 0
        return self._flag_series(childless & ~is_root, 'is_leaf')

    def is_stem(self) -> pd.Series:
        """Taxa on a stem that are neither roots nor leaves."""
        on_stem = set(self.stems(simplify=True, value='taxon_indexes'))
        in_stems = self._flag_series(
            (p in on_stem for p in range(len(self._taxonomy.edge_list))), 'is_stem'
        )
        return self._flag_series(in_stems & ~self.is_root() & ~self.is_leaf(), 'is_stem')

    def is_branch(self) -> pd.Series:
        """Taxa that are not roots, leaves or stems."""
        other = self.is_root() | self.is_leaf() | self.is_stem()
        return self._flag_series(~other, 'is_branch')
