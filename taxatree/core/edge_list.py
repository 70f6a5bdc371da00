"""Edge list storage of parent/child relationships."""

import logging
from typing import List, Dict, Tuple, Optional, Sequence, Iterable

import numpy as np
import pandas as pd

from taxatree.models.errors import StructuralError, ValidationError

logger = logging.getLogger(__name__)

EDGE_COLUMNS = ['to', 'from']

class EdgeList:
    """
    Ordered (taxon id, parent id) pairs, one row per taxon.

    The `to` column holds the taxon itself and must be unique. The `from`
    column holds the immediate parent, or None for roots. Row positions are
    only stable until the next structural change.
    """

    def __init__(self, frame: Optional[pd.DataFrame] = None):
        if frame is None:
            frame = pd.DataFrame({'to': [], 'from': []}, dtype=object)
        missing = [c for c in EDGE_COLUMNS if c not in frame.columns]
        if missing:
            raise ValidationError(f"Edge list is missing columns: {missing}")
        frame = frame[EDGE_COLUMNS].astype(object).reset_index(drop=True)
        frame['from'] = pd.Series(
            [None if pd.isna(x) else x for x in frame['from']], dtype=object
        )
        if frame['to'].isna().any():
            raise StructuralError("Edge list contains a taxon without an id")
        if frame['to'].duplicated().any():
            dups = frame.loc[frame['to'].duplicated(), 'to'].unique().tolist()
            raise StructuralError(f"Taxon ids must be unique in the edge list: {dups}")
        self._frame = frame

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, Optional[str]]]) -> 'EdgeList':
        """Create from (taxon id, parent id) pairs."""
        pairs = list(pairs)
        return cls(pd.DataFrame(
            {'to': [p[0] for p in pairs], 'from': [p[1] for p in pairs]},
            dtype=object
        ))

    def __len__(self) -> int:
        return len(self._frame)

    def __eq__(self, other) -> bool:
        if not isinstance(other, EdgeList):
            return NotImplemented
        return self.pairs() == other.pairs()

    def __repr__(self) -> str:
        return f"EdgeList({len(self)} edges)"

    @property
    def to(self) -> List[str]:
        return self._frame['to'].tolist()

    @property
    def parents(self) -> List[Optional[str]]:
        return self._frame['from'].tolist()

    def pairs(self) -> List[Tuple[str, Optional[str]]]:
        """List of (taxon id, parent id) pairs in row order."""
        return list(zip(self.to, self.parents))

    def to_frame(self) -> pd.DataFrame:
        """Return a copy of the underlying DataFrame."""
        return self._frame.copy()

    def copy(self) -> 'EdgeList':
        return EdgeList(self._frame.copy())

    def parent_index(self) -> np.ndarray:
        """
        Row position of each taxon's parent.

        Returns:
            Integer array aligned with the rows, -1 where the parent is absent
            or is not a taxon of this edge list
        """
        index = pd.Index(self._frame['to'])
        return index.get_indexer(self._frame['from'])

    def children_index(self) -> List[List[int]]:
        """Row positions of each taxon's children, in row order."""
        children = [[] for _ in range(len(self))]
        for child, parent in enumerate(self.parent_index()):
            if parent >= 0:
                children[parent].append(child)
        return children

    def positions_of(self, taxon_ids: Sequence[Optional[str]]) -> np.ndarray:
        """Row positions for taxon ids, -1 for unknown ids."""
        return pd.Index(self._frame['to']).get_indexer(list(taxon_ids))

    def with_parents(self, parents: Sequence[Optional[str]]) -> 'EdgeList':
        """
        Copy of this edge list with the `from` column replaced.

        Raises:
            ValidationError: If the number of parents does not match
        """
        if len(parents) != len(self):
            raise ValidationError(
                f"Got {len(parents)} parents for {len(self)} edges"
            )
        frame = self._frame.copy()
        frame['from'] = pd.Series(list(parents), dtype=object)
        return EdgeList(frame)

    def take(self, positions: Sequence[int]) -> 'EdgeList':
        """
        Keep only the rows at `positions`, in the given order.

        Parents that no longer exist in the result are set to None.
        """
        frame = self._frame.iloc[list(positions)].reset_index(drop=True)
        kept = set(frame['to'])
        frame['from'] = [p if p in kept else None for p in frame['from']]
        return EdgeList(frame)

    def rename(self, mapping: Dict[str, str]) -> 'EdgeList':
        """Copy with ids in both columns replaced through `mapping`."""
        frame = self._frame.copy()
        frame['to'] = [mapping[x] for x in frame['to']]
        frame['from'] = [None if x is None else mapping.get(x, x) for x in frame['from']]
        return EdgeList(frame)
