"""Taxonomy: a deduplicated tree of taxa with bound datasets."""

import logging
import threading
from collections import Counter
from types import MappingProxyType
from typing import List, Dict, Optional, Union, Any, Mapping, Sequence

import numpy as np
import pandas as pd

from taxatree.core.datasets import DatasetBinding, bind_dataset, check_policy
from taxatree.core.edge_list import EdgeList
from taxatree.core.filtering import FilteredState, plan_filter_taxa
from taxatree.core.identifiers import generate_ids
from taxatree.core.merging import HierarchyLike, merge_hierarchies
from taxatree.core.query import TaxonomyQuery
from taxatree.core.utils import ID_ALPHABET, DEFAULT_CLASS_SEP, unique
from taxatree.models.errors import ValidationError
from taxatree.models.taxon import Taxon, Hierarchy

logger = logging.getLogger(__name__)

TAXON_VALUE_NAMES = ['taxon_ids', 'taxon_names', 'taxon_ranks', 'taxon_indexes']
QUERY_VALUE_NAMES = ['n_supertaxa', 'n_supertaxa_1', 'n_subtaxa', 'n_subtaxa_1',
                     'is_root', 'is_stem', 'is_branch', 'is_leaf']

class Taxonomy:
    """
    Taxa from one or more hierarchies stored once, linked by an edge list.

    Each taxon appears in the registry (`taxa`) and as one row of the edge
    list. Datasets added with `add_dataset` are bound to taxa by taxon id
    and are kept consistent when taxa are filtered or renamed. Structural
    changes go through `filter_taxa`, `replace_taxon_ids` and `arrange_taxa`;
    they hold an exclusive lock and leave the taxonomy untouched on error.
    """

    def __init__(
        self,
        *hierarchies: Union[HierarchyLike, str],
        sep: str = DEFAULT_CLASS_SEP,
        alphabet: str = ID_ALPHABET
    ):
        """
        Merge hierarchies into a taxonomy and assign compact taxon ids.

        Args:
            hierarchies: Hierarchy objects, sequences of taxa or names, or
                classification strings split on `sep`
            sep: Separator for classification strings
            alphabet: Symbols used for generated taxon ids

        Raises:
            ValidationError: If a hierarchy is empty or malformed
        """
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = {}
        self._bindings: Dict[str, DatasetBinding] = {}
        self._policies: Dict[str, str] = {}

        parsed = [Hierarchy.from_string(h, sep) if isinstance(h, str) else h
                  for h in hierarchies]
        result = merge_hierarchies(parsed)
        self._taxa: Dict[str, Taxon] = result.taxa
        self._edge_list: EdgeList = result.edge_list
        self._input_ids: List[Optional[str]] = result.input_ids
        self.query = TaxonomyQuery(self)

        if self._taxa:
            self.replace_taxon_ids(generate_ids(len(self._taxa), alphabet))
        logger.debug(f"Created taxonomy with {len(self._taxa)} taxa")

    def __len__(self) -> int:
        return len(self._edge_list)

    def __repr__(self) -> str:
        return (f"<Taxonomy: {len(self)} taxa, {len(self.query.roots())} roots, "
                f"{len(self._data)} datasets>")

    # -- read-only views -----------------------------------------------------

    @property
    def edge_list(self) -> EdgeList:
        return self._edge_list

    @property
    def taxa(self) -> Mapping[str, Taxon]:
        return MappingProxyType(self._taxa)

    @property
    def data(self) -> Mapping[str, Any]:
        return MappingProxyType(self._data)

    @property
    def input_ids(self) -> List[Optional[str]]:
        return list(self._input_ids)

    @property
    def dataset_policies(self) -> Mapping[str, str]:
        return MappingProxyType(self._policies)

    def dataset_binding(self, name: str) -> DatasetBinding:
        if name not in self._bindings:
            raise ValidationError(f"Cannot find the following data: {name}")
        return self._bindings[name]

    def taxon_ids(self) -> List[str]:
        """Taxon ids in edge list order."""
        return self._edge_list.to

    def _taxon_series(self, values: List[Any], name: str) -> pd.Series:
        return pd.Series(values, index=pd.Index(self.taxon_ids(), dtype=object),
                         dtype=object, name=name)

    def taxon_names(self) -> pd.Series:
        return self._taxon_series([self._taxa[i].name for i in self.taxon_ids()], 'taxon_names')

    def taxon_ranks(self) -> pd.Series:
        return self._taxon_series([self._taxa[i].rank for i in self.taxon_ids()], 'taxon_ranks')

    def taxon_indexes(self) -> pd.Series:
        ids = self.taxon_ids()
        return pd.Series(range(len(ids)), index=pd.Index(ids, dtype=object),
                         dtype=int, name='taxon_indexes')

    # -- data lookup ---------------------------------------------------------

    def all_names(self) -> List[str]:
        """Names accepted by `get_data`."""
        names = list(TAXON_VALUE_NAMES) + list(QUERY_VALUE_NAMES)
        for name, data in self._data.items():
            names.append(name)
            if isinstance(data, pd.DataFrame):
                names.extend(f"{name}.{col}" for col in data.columns
                             if col != self._bindings[name].column)
        return names

    def get_data(self, name: str) -> Any:
        """
        Look up per-taxon values or a bound dataset by name.

        Built-in names (e.g. 'taxon_names', 'n_subtaxa') return a Series
        indexed by taxon id. 'dataset.column' returns one column of a bound
        table indexed by the taxon id of each row.

        Raises:
            ValidationError: If the name is unknown
        """
        if name == 'taxon_ids':
            return self._taxon_series(self.taxon_ids(), 'taxon_ids')
        if name in TAXON_VALUE_NAMES:
            return getattr(self, name)()
        if name in QUERY_VALUE_NAMES:
            return getattr(self.query, name)()
        if name in self._data:
            return self._data[name]
        dataset, _, column = name.partition('.')
        if column and isinstance(self._data.get(dataset), pd.DataFrame):
            table = self._data[dataset]
            binding = self._bindings[dataset]
            if column in table.columns:
                return pd.Series(table[column].tolist(),
                                 index=pd.Index(binding.taxon_ids_of(table), dtype=object),
                                 name=column)
        raise ValidationError(
            f"Cannot find the following data: {name}\n "
            f"Valid choices include: {', '.join(self.all_names())}"
        )

    def _named_series(self, value: Union[str, pd.Series]) -> pd.Series:
        series = self.get_data(value) if isinstance(value, str) else value
        if not isinstance(series, pd.Series):
            raise ValidationError(f"Expected values named by taxon id, got {type(series).__name__}")
        known = set(self.taxon_ids())
        if not all(x in known or pd.isna(x) for x in series.index):
            raise ValidationError(
                f"The value `{value if isinstance(value, str) else series.name}` is not named "
                "by taxon id or contains invalid ids. Use `taxon_ids()` to see the valid ids."
            )
        return series

    def map_data(
        self,
        from_: Union[str, pd.Series],
        to: Union[str, pd.Series],
        warn: bool = True
    ) -> pd.Series:
        """
        Map values of one per-taxon variable to another through taxon ids.

        Args:
            from_: Name or Series indexed by taxon id giving the keys
            to: Name or Series indexed by taxon id giving the values
            warn: Log a warning when a key maps to several distinct values

        Returns:
            Series of `to` values indexed by `from_` values; the first match
            wins when there are several

        Raises:
            ValidationError: If either input is not indexed by taxon ids
        """
        from_data = self._named_series(from_)
        to_data = self._named_series(to)

        first: Dict[str, Any] = {}
        distinct: Dict[str, set] = {}
        for label, item in zip(to_data.index, to_data.tolist()):
            first.setdefault(label, item)
            if not pd.isna(item):
                distinct.setdefault(label, set()).add(item)
        ambiguous = [label for label in unique(from_data.index)
                     if len(distinct.get(label, ())) > 1]
        if warn and ambiguous:
            logger.warning(
                f"There are multiple unique values of \"{to if isinstance(to, str) else to.name}\" "
                f"for at least one value of \"{from_ if isinstance(from_, str) else from_.name}\". "
                "Only the first instance will be returned."
            )
        return pd.Series([first.get(label) for label in from_data.index],
                         index=pd.Index(from_data.tolist()), dtype=object)

    # -- datasets ------------------------------------------------------------

    def add_dataset(
        self,
        name: str,
        data: Any,
        policy: str = 'reassign',
        taxon_ids: Optional[Sequence[Optional[str]]] = None
    ) -> 'Taxonomy':
        """
        Bind a dataset to taxa.

        Args:
            name: Dataset name, must not clash with built-in value names
            data: DataFrame with a 'taxon_id' column, Series indexed by taxon
                id, or a list of values together with `taxon_ids`
            policy: What happens to records of removed taxa when filtering:
                'reassign', 'drop' or 'keep'
            taxon_ids: Taxon id of each record, overrides existing bindings

        Raises:
            ValidationError: If the name, policy or taxon ids are invalid
        """
        check_policy(policy)
        if not name or '.' in name or name in TAXON_VALUE_NAMES + QUERY_VALUE_NAMES:
            raise ValidationError(f"Invalid dataset name '{name}'")
        with self._lock:
            data, binding = bind_dataset(data, taxon_ids)
            known = set(self.taxon_ids())
            unknown = unique(x for x in binding.taxon_ids_of(data)
                             if x is not None and x not in known)
            if unknown:
                raise ValidationError(f"Dataset '{name}' refers to unknown taxon ids: {unknown}")
            self._data[name] = data
            self._bindings[name] = binding
            self._policies[name] = policy
        logger.debug(f"Added dataset '{name}' with {len(data)} records")
        return self

    def remove_dataset(self, name: str) -> Any:
        """Unbind a dataset and return it."""
        with self._lock:
            self.dataset_binding(name)
            self._bindings.pop(name)
            self._policies.pop(name)
            return self._data.pop(name)

    # -- structural changes --------------------------------------------------

    def replace_taxon_ids(self, new_ids: Union[Mapping[str, str], Sequence[str]]) -> 'Taxonomy':
        """
        Replace every taxon id, in the tree and in all bound datasets.

        Args:
            new_ids: Mapping of every current id to its new id, or new ids
                in the order of `taxon_ids()`

        Returns:
            This taxonomy

        Raises:
            ValidationError: If the new ids are not unique or do not cover
                exactly the current ids
        """
        with self._lock:
            return self._replace_ids(new_ids)

    def _replace_ids(self, new_ids: Union[Mapping[str, str], Sequence[str]]) -> 'Taxonomy':
        current = self.taxon_ids()
        if isinstance(new_ids, Mapping):
            missing = [x for x in current if x not in new_ids]
            extra = [x for x in new_ids if x not in set(current)]
            if missing or extra:
                raise ValidationError(
                    f"Replacement ids must cover exactly the current ids. "
                    f"Missing: {missing}; unknown: {extra}"
                )
            replacement = [new_ids[x] for x in current]
        else:
            replacement = list(new_ids)

        duplicates = [x for x, n in Counter(replacement).items() if n > 1]
        if duplicates:
            raise ValidationError(
                f"New taxon IDs must be unique. The following {len(duplicates)} "
                f"taxon ids are not unique: {duplicates}"
            )
        if len(replacement) != len(current):
            raise ValidationError(
                f"The number of new taxon IDs ({len(replacement)}) is different than "
                f"the current number of taxa ({len(current)})."
            )
        if not all(isinstance(x, str) and x for x in replacement):
            raise ValidationError("New taxon IDs must be non-empty strings")

        mapping = dict(zip(current, replacement))
        data = {name: self._bindings[name].rebind(d, mapping)
                for name, d in self._data.items()}
        edge_list = self._edge_list.rename(mapping)
        taxa = {mapping[k]: v for k, v in self._taxa.items()}
        input_ids = [None if x is None else mapping.get(x, x) for x in self._input_ids]

        self._data = data
        self._edge_list = edge_list
        self._taxa = taxa
        self._input_ids = input_ids
        return self

    def _apply(self, state: FilteredState) -> None:
        self._edge_list = state.edge_list
        self._taxa = state.taxa
        self._data = dict(state.data)
        self._input_ids = state.input_ids

    def filter_taxa(
        self,
        *selection: Any,
        subtaxa: Union[bool, int] = False,
        supertaxa: Union[bool, int] = False,
        reassign_taxa: bool = True,
        obs_policy: Union[None, str, Dict[str, str]] = None,
        invert: bool = False
    ) -> 'Taxonomy':
        """
        Keep only a subset of taxa, repairing the tree and bound datasets.

        Args:
            selection: Subset expressions (ids, indexes, masks or functions);
                several expressions are intersected. Default all taxa
            subtaxa: Also keep subtaxa, True for all levels or a level count
            supertaxa: Also keep supertaxa, True for all levels or a level count
            reassign_taxa: Reattach subtaxa of removed taxa to their nearest
                surviving supertaxon
            obs_policy: Override dataset orphan policies, a policy name or a
                dict of dataset name to policy
            invert: Remove the selected taxa instead

        Returns:
            This taxonomy

        Raises:
            ValidationError: If the selection or policies are invalid
        """
        with self._lock:
            return self._filter(
                *selection, subtaxa=subtaxa, supertaxa=supertaxa,
                reassign_taxa=reassign_taxa, obs_policy=obs_policy, invert=invert
            )

    def _filter(self, *selection: Any, **kwargs) -> 'Taxonomy':
        state = plan_filter_taxa(self, *selection, **kwargs)
        removed = len(self._edge_list) - len(state.edge_list)
        self._apply(state)
        logger.debug(f"Filter removed {removed} taxa, {len(self)} remain")
        return self

    def arrange_taxa(
        self,
        by: Union[str, Sequence[Any], pd.Series],
        ascending: bool = True
    ) -> 'Taxonomy':
        """
        Reorder the edge list (and registry) by a per-taxon value.

        Args:
            by: An edge list column ('to' or 'from'), a `get_data` name, a
                Series/dict keyed by taxon id, or values aligned with the rows
            ascending: Sort direction; missing values go last

        Returns:
            This taxonomy

        Raises:
            ValidationError: If the keys do not match the taxa or cannot be
                compared with each other
        """
        with self._lock:
            ids = self.taxon_ids()
            if isinstance(by, str) and by in ('to', 'from'):
                keys = self._edge_list.to_frame()[by].tolist()
            elif isinstance(by, (str, pd.Series, dict)):
                getter = self.query._value_getter(by)
                keys = [getter(p) for p in range(len(ids))]
            else:
                keys = list(by)
                if len(keys) != len(ids):
                    raise ValidationError(
                        f"Got {len(keys)} sort keys for {len(ids)} taxa"
                    )
            try:
                order = pd.Series(keys, dtype=object).sort_values(
                    ascending=ascending, kind='mergesort', na_position='last'
                ).index.tolist()
            except TypeError as e:
                raise ValidationError(f"Cannot sort taxa by these keys: {str(e)}") from e
            self._edge_list = self._edge_list.take(order)
            self._taxa = {ids[p]: self._taxa[ids[p]] for p in order}
        return self

    def _sample_rows(
        self,
        size: int,
        taxon_weight: Union[None, str, Sequence[float], pd.Series],
        seed: Optional[int]
    ) -> List[int]:
        n_taxa = len(self)
        if size < 0 or size > n_taxa:
            raise ValidationError(f"Cannot sample {size} of {n_taxa} taxa")
        if taxon_weight is None:
            weight = np.ones(n_taxa)
        elif isinstance(taxon_weight, (str, pd.Series, dict)):
            getter = self.query._value_getter(taxon_weight)
            weight = np.array([getter(p) for p in range(n_taxa)], dtype=float)
        else:
            weight = np.asarray(list(taxon_weight), dtype=float)
        if weight.shape != (n_taxa,) or np.isnan(weight).any() or (weight < 0).any() \
                or weight.sum() <= 0:
            raise ValidationError("Taxon weights must be one non-negative number per taxon")
        weight = weight / weight.sum()

        rng = np.random.default_rng(seed)
        try:
            rows = rng.choice(n_taxa, size=size, replace=False, p=weight)
        except ValueError as e:
            raise ValidationError(f"Cannot sample taxa: {str(e)}") from e
        return sorted(int(r) for r in rows)

    def sample_n_taxa(
        self,
        size: int,
        taxon_weight: Union[None, str, Sequence[float], pd.Series] = None,
        seed: Optional[int] = None,
        **kwargs
    ) -> 'Taxonomy':
        """
        Keep a random sample of taxa.

        Args:
            size: Number of taxa to sample without replacement
            taxon_weight: Sampling weights, per row or looked up by name
            seed: Seed for numpy's random generator
            kwargs: Passed to `filter_taxa`

        Returns:
            This taxonomy

        Raises:
            ValidationError: If the size or weights are invalid
        """
        with self._lock:
            return self._filter(self._sample_rows(size, taxon_weight, seed), **kwargs)

    def sample_frac_taxa(
        self,
        size: float = 1.0,
        taxon_weight: Union[None, str, Sequence[float], pd.Series] = None,
        seed: Optional[int] = None,
        **kwargs
    ) -> 'Taxonomy':
        """Keep a random fraction of taxa; see `sample_n_taxa`."""
        with self._lock:
            rows = self._sample_rows(int(size * len(self)), taxon_weight, seed)
            return self._filter(rows, **kwargs)

def merge(
    hierarchies: Sequence[Union[HierarchyLike, str]],
    sep: str = DEFAULT_CLASS_SEP,
    alphabet: str = ID_ALPHABET
) -> Taxonomy:
    """
    Merge hierarchies into a new taxonomy.

    Args:
        hierarchies: Hierarchies, sequences of taxa/names or classification strings
        sep: Separator used to split classification strings
        alphabet: Symbols used for generated taxon ids

    Returns:
        Taxonomy with compact taxon ids
    """
    return Taxonomy(*hierarchies, sep=sep, alphabet=alphabet)
