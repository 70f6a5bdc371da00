"""Compact taxon identifier generation."""

import logging
from typing import List

from taxatree.core.utils import ID_ALPHABET
from taxatree.models.errors import ValidationError

logger = logging.getLogger(__name__)

def _check_alphabet(alphabet: str) -> None:
    if len(set(alphabet)) != len(alphabet) or len(alphabet) < 2:
        raise ValidationError(
            f"Identifier alphabet must have at least two distinct symbols, got '{alphabet}'"
        )

def id_width(count: int, alphabet: str = ID_ALPHABET) -> int:
    """
    Minimum code width that gives `count` distinct codes.

    Args:
        count: Number of identifiers needed
        alphabet: Symbols used as digits

    Returns:
        Smallest w >= 1 such that len(alphabet) ** w >= count
    """
    width = 1
    while len(alphabet) ** width < count:
        width += 1
    return width

def convert_base(number: int, alphabet: str = ID_ALPHABET, min_length: int = 1) -> str:
    """
    Encode a non-negative integer with the digits in `alphabet`.

    Args:
        number: Integer to encode
        alphabet: Symbols used as digits, the first one is zero
        min_length: Result is left-padded with the zero symbol to this width

    Returns:
        Encoded string
    """
    if number < 0:
        raise ValidationError(f"Cannot encode negative number {number}")
    base = len(alphabet)
    digits = []
    while True:
        number, remainder = divmod(number, base)
        digits.append(alphabet[remainder])
        if number == 0:
            break
    code = ''.join(reversed(digits))
    return code.rjust(min_length, alphabet[0])

def generate_ids(count: int, alphabet: str = ID_ALPHABET) -> List[str]:
    """
    Generate `count` unique fixed-width identifiers in numeric order.

    Args:
        count: Number of identifiers
        alphabet: Symbols used as digits

    Returns:
        List of identifiers for the integers 0..count-1

    Raises:
        ValidationError: If count is negative or the alphabet is unusable
    """
    if count < 0:
        raise ValidationError(f"Cannot generate a negative number of ids: {count}")
    _check_alphabet(alphabet)
    width = id_width(count, alphabet)
    logger.debug(f"Generating {count} ids of width {width}")
    return [convert_base(i, alphabet, min_length=width) for i in range(count)]
