"""Bindings between attached datasets and taxon ids."""

import logging
from abc import ABC, abstractmethod
from typing import List, Dict, Optional, Sequence, Any

import numpy as np
import pandas as pd

from taxatree.models.errors import ValidationError

logger = logging.getLogger(__name__)

TAXON_ID_COLUMN = 'taxon_id'
ORPHAN_POLICIES = ('reassign', 'drop', 'keep')

def check_policy(policy: str) -> str:
    """
    Validate an orphan policy name.

    Raises:
        ValidationError: If the policy is not one of ORPHAN_POLICIES
    """
    if policy not in ORPHAN_POLICIES:
        raise ValidationError(
            f"Unknown orphan policy '{policy}'. Valid choices: {', '.join(ORPHAN_POLICIES)}"
        )
    return policy

def _clean(ids: Sequence[Any]) -> List[Optional[str]]:
    return [None if pd.isna(x) else x for x in ids]

class DatasetBinding(ABC):
    """Base binding: how a dataset's records refer to taxa."""

    @abstractmethod
    def taxon_ids_of(self, data: Any) -> List[Optional[str]]:
        """Taxon id of each record, None for unbound records."""
        pass

    @abstractmethod
    def rebind(self, data: Any, mapping: Dict[str, Optional[str]]) -> Any:
        """Return a copy with taxon ids replaced through `mapping`.

        Ids missing from the mapping are kept as they are.
        """
        pass

    @abstractmethod
    def subset(self, data: Any, keep: Sequence[bool]) -> Any:
        """Return a copy holding only the records where `keep` is true."""
        pass

    @abstractmethod
    def unbind(self, data: Any, mask: Sequence[bool]) -> Any:
        """Return a copy with the taxon id removed where `mask` is true."""
        pass

    @abstractmethod
    def reassign(self, data: Any, new_ids: Sequence[Optional[str]]) -> Any:
        """Return a copy whose records point at `new_ids`, in record order."""
        pass

class TableBinding(DatasetBinding):
    """Binds the rows of a DataFrame through its taxon id column."""

    def __init__(self, column: str = TAXON_ID_COLUMN):
        self.column = column

    def taxon_ids_of(self, data: pd.DataFrame) -> List[Optional[str]]:
        return _clean(data[self.column].tolist())

    def reassign(self, data: pd.DataFrame, new_ids: Sequence[Optional[str]]) -> pd.DataFrame:
        output = data.copy()
        output[self.column] = pd.Series(list(new_ids), index=output.index, dtype=object)
        return output

    def rebind(self, data: pd.DataFrame, mapping: Dict[str, Optional[str]]) -> pd.DataFrame:
        ids = self.taxon_ids_of(data)
        return self.reassign(data, [mapping.get(x, x) if x is not None else None for x in ids])

    def subset(self, data: pd.DataFrame, keep: Sequence[bool]) -> pd.DataFrame:
        return data.loc[np.asarray(keep, dtype=bool)].copy()

    def unbind(self, data: pd.DataFrame, mask: Sequence[bool]) -> pd.DataFrame:
        ids = self.taxon_ids_of(data)
        return self.reassign(data, [None if m else x for x, m in zip(ids, mask)])

class SeriesBinding(DatasetBinding):
    """Binds the values of a Series through its index labels."""

    def taxon_ids_of(self, data: pd.Series) -> List[Optional[str]]:
        return _clean(data.index.tolist())

    def reassign(self, data: pd.Series, new_ids: Sequence[Optional[str]]) -> pd.Series:
        output = data.copy()
        output.index = pd.Index(list(new_ids), dtype=object, name=data.index.name)
        return output

    def rebind(self, data: pd.Series, mapping: Dict[str, Optional[str]]) -> pd.Series:
        ids = self.taxon_ids_of(data)
        return self.reassign(data, [mapping.get(x, x) if x is not None else None for x in ids])

    def subset(self, data: pd.Series, keep: Sequence[bool]) -> pd.Series:
        return data[np.asarray(keep, dtype=bool)].copy()

    def unbind(self, data: pd.Series, mask: Sequence[bool]) -> pd.Series:
        ids = self.taxon_ids_of(data)
        return self.reassign(data, [None if m else x for x, m in zip(ids, mask)])

def bind_dataset(data: Any, taxon_ids: Optional[Sequence[Optional[str]]] = None):
    """
    Pick the binding for a dataset.

    Lists and other plain sequences are turned into an object Series
    labelled by `taxon_ids`.

    Args:
        data: DataFrame with a taxon_id column, Series labelled by taxon id,
            or a sequence of values
        taxon_ids: Taxon id of each value of a plain sequence

    Returns:
        Tuple of (dataset, binding)

    Raises:
        ValidationError: If the dataset cannot be bound to taxa
    """
    if isinstance(data, pd.DataFrame):
        if taxon_ids is not None:
            if len(taxon_ids) != len(data):
                raise ValidationError(
                    f"Got {len(taxon_ids)} taxon ids for a table with {len(data)} rows"
                )
            data = data.copy()
            data[TAXON_ID_COLUMN] = list(taxon_ids)
        if TAXON_ID_COLUMN not in data.columns:
            raise ValidationError(
                f"Tables must have a '{TAXON_ID_COLUMN}' column to be bound to taxa"
            )
        return data, TableBinding()

    if isinstance(data, pd.Series):
        if taxon_ids is not None:
            data = SeriesBinding().reassign(data, taxon_ids)
        return data, SeriesBinding()

    if isinstance(data, (list, tuple)):
        if taxon_ids is None:
            raise ValidationError("Taxon ids are required to bind a list of values")
        if len(taxon_ids) != len(data):
            raise ValidationError(
                f"Got {len(taxon_ids)} taxon ids for {len(data)} values"
            )
        values = pd.Series([None] * len(data), dtype=object)
        for i, value in enumerate(data):
            values.iat[i] = value
        return SeriesBinding().reassign(values, taxon_ids), SeriesBinding()

    raise ValidationError(f"Cannot bind a dataset of type {type(data).__name__}")
