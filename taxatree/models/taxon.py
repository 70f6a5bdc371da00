"""Data models for taxa and hierarchies."""

from typing import List, Dict, Tuple, Optional, Union, Any, Iterator, Sequence
from dataclasses import dataclass, field

from taxatree.core.utils import rank_level, DEFAULT_CLASS_SEP
from taxatree.models.errors import ValidationError

@dataclass(frozen=True)
class Taxon:
    """Represents a single classified taxon."""
    name: Optional[str] = None
    rank: Optional[str] = None
    id: Optional[str] = None
    authority: Optional[str] = None

    @property
    def rank_index(self) -> Optional[int]:
        """Level of the rank in TAXONOMY_RANKS, None if unknown."""
        return rank_level(self.rank)

    def is_above(self, other: 'Taxon') -> bool:
        """
        Check whether this taxon has a more inclusive rank than `other`.

        Args:
            other: Taxon to compare with

        Returns:
            True if both ranks are known and this rank is closer to the root
        """
        mine, theirs = self.rank_index, other.rank_index
        if mine is None or theirs is None:
            return False
        return mine < theirs

    def as_tuple(self) -> Tuple:
        """Convert to tuple of descriptive fields."""
        return (self.name, self.rank, self.id, self.authority)

    @classmethod
    def coerce(cls, value: Union['Taxon', str, Dict[str, Any]]) -> 'Taxon':
        """
        Build a Taxon from a name, a field dict or an existing Taxon.

        Raises:
            ValidationError: If the value cannot describe a taxon
        """
        if isinstance(value, Taxon):
            return value
        if isinstance(value, str):
            return cls(name=value)
        if isinstance(value, dict):
            unknown = set(value) - {'name', 'rank', 'id', 'authority'}
            if unknown:
                raise ValidationError(f"Unknown taxon fields: {sorted(unknown)}")
            return cls(**value)
        raise ValidationError(f"Cannot use value of type {type(value).__name__} as a taxon")

@dataclass
class Hierarchy:
    """An ordered chain of taxa from the root to the tip."""
    taxa: List[Taxon] = field(default_factory=list)

    def __post_init__(self):
        self.taxa = [Taxon.coerce(x) for x in self.taxa]

    def __len__(self) -> int:
        return len(self.taxa)

    def __iter__(self) -> Iterator[Taxon]:
        return iter(self.taxa)

    def __getitem__(self, index):
        return self.taxa[index]

    @property
    def tip(self) -> Optional[Taxon]:
        return self.taxa[-1] if self.taxa else None

    @classmethod
    def from_names(cls, names: Sequence[str], ranks: Optional[Sequence[str]] = None) -> 'Hierarchy':
        """
        Create from already split taxon names.

        Args:
            names: Taxon names, root first
            ranks: Optional ranks aligned with names

        Returns:
            Hierarchy of the named taxa

        Raises:
            ValidationError: If ranks and names differ in length
        """
        if ranks is None:
            return cls([Taxon(name=n) for n in names])
        if len(ranks) != len(names):
            raise ValidationError(
                f"Got {len(ranks)} ranks for {len(names)} taxon names"
            )
        return cls([Taxon(name=n, rank=r) for n, r in zip(names, ranks)])

    @classmethod
    def from_string(cls, classification: str, sep: str = DEFAULT_CLASS_SEP) -> 'Hierarchy':
        """
        Split a separator-delimited classification into a hierarchy.

        Empty pieces (e.g. from a trailing separator) are skipped.

        Args:
            classification: String such as "Mammalia;Carnivora;Felidae"
            sep: Separator between taxon names

        Returns:
            Hierarchy of the named taxa
        """
        names = [part.strip() for part in classification.split(sep)]
        return cls.from_names([n for n in names if n])
