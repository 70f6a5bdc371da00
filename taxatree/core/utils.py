"""Utility functions for taxatree."""

import string
import logging
from collections import Counter
from typing import List, Sequence, Iterable, Optional, Any

# Logger configuration
logger = logging.getLogger(__name__)

# Static global variables
TAXONOMY_RANKS = [
    'domain', 'superkingdom', 'kingdom', 'subkingdom', 'phylum', 'subphylum',
    'superclass', 'class', 'subclass', 'superorder', 'order', 'suborder',
    'superfamily', 'family', 'subfamily', 'tribe', 'genus', 'subgenus',
    'species group', 'species subgroup', 'species', 'subspecies'
]
RANK_LEVELS = {rank: i for i, rank in enumerate(TAXONOMY_RANKS)}
ID_ALPHABET = string.ascii_lowercase
DEFAULT_CLASS_SEP = ';'

def setup_logging(verbose: bool = False) -> logging.Logger:
    """
    Configure logging for the taxatree application.

    Args:
        verbose: Whether to enable verbose (DEBUG) logging

    Returns:
        Logger instance
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    return logging.getLogger('taxatree')

def rank_level(rank: Optional[str]) -> Optional[int]:
    """
    Position of a rank in TAXONOMY_RANKS, lower is closer to the root.

    Args:
        rank: Rank name, matched case-insensitively

    Returns:
        Rank level or None for missing and unknown ranks
    """
    if rank is None:
        return None
    return RANK_LEVELS.get(rank.strip().lower())

def intersect_with_dups(a: Sequence[Any], b: Sequence[Any]) -> List[Any]:
    """
    Intersect two sequences without discarding duplicates.

    Each shared value is kept as many times as its minimum multiplicity in
    the two inputs, in the order it appears in `a`.

    Args:
        a: First sequence, its order is kept
        b: Second sequence

    Returns:
        List of shared values
    """
    remaining = Counter(b)
    output = []
    for item in a:
        if remaining[item] > 0:
            output.append(item)
            remaining[item] -= 1
    return output

def unique(values: Iterable[Any]) -> List[Any]:
    """Drop repeated values, keeping first occurrences in order."""
    seen = set()
    output = []
    for value in values:
        if value not in seen:
            seen.add(value)
            output.append(value)
    return output
