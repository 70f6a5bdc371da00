"""Classification file parsers for taxatree."""

import gzip
import logging
from pathlib import Path
from typing import List, Optional
from abc import ABC, abstractmethod

import pandas as pd

from taxatree.core.utils import DEFAULT_CLASS_SEP
from taxatree.models.errors import InputError
from taxatree.models.taxon import Hierarchy

logger = logging.getLogger(__name__)

def _open_text(path: Path):
    if str(path).endswith(".gz"):
        return gzip.open(path, "rt", encoding="utf-8")
    return open(path, "r", encoding="utf-8")

class Parser(ABC):
    """Base parser for files of classifications."""

    def __init__(self, sep: str = DEFAULT_CLASS_SEP):
        self.sep = sep

    @abstractmethod
    def read_classifications(self, path: Path) -> List[str]:
        """Read the raw classification strings in a file."""
        pass

    def parse(self, path: Path) -> List[Hierarchy]:
        """Parse file at the given path.

        Args:
            path: Path to file

        Returns:
            One hierarchy per non-empty classification

        Raises:
            InputError: If the file cannot be read
        """
        classifications = self.read_classifications(path)
        hierarchies = [Hierarchy.from_string(c, self.sep) for c in classifications]
        hierarchies = [h for h in hierarchies if len(h) > 0]
        skipped = len(classifications) - len(hierarchies)
        if skipped:
            logger.warning(f"Skipped {skipped} empty classifications in {path}")
        logger.info(f"Read {len(hierarchies)} classifications from {path}")
        return hierarchies

class LineParser(Parser):
    """Parser for files with one classification per line."""

    def read_classifications(self, path: Path) -> List[str]:
        try:
            with _open_text(path) as file:
                return [line.rstrip("\r\n") for line in file if line.strip()]
        except OSError as e:
            raise InputError(f"Error reading classification file: {str(e)}") from e

class TableParser(Parser):
    """Parser for TSV files with a column of classifications."""

    def __init__(self, column: str, sep: str = DEFAULT_CLASS_SEP):
        super().__init__(sep)
        self.column = column

    def read_classifications(self, path: Path) -> List[str]:
        try:
            table = pd.read_csv(path, sep='\t', dtype=str, keep_default_na=False)
        except Exception as e:
            raise InputError(f"Error parsing classification table: {str(e)}") from e
        if self.column not in table.columns:
            raise InputError(
                f"Column '{self.column}' not found in {path}. "
                f"Available columns: {', '.join(table.columns)}"
            )
        return table[self.column].tolist()

def get_parser(column: Optional[str] = None, sep: str = DEFAULT_CLASS_SEP) -> Parser:
    """Get appropriate parser for the input layout.

    Args:
        column: TSV column holding classifications, None for plain lines
        sep: Separator between taxon names

    Returns:
        Parser object
    """
    if column:
        return TableParser(column, sep=sep)
    return LineParser(sep=sep)

def parse_classification_file(
    path: Path,
    column: Optional[str] = None,
    sep: str = DEFAULT_CLASS_SEP
) -> List[Hierarchy]:
    """Parse a classification file into hierarchies.

    Args:
        path: Path to the input file
        column: TSV column holding classifications, None for plain lines
        sep: Separator between taxon names

    Returns:
        List of hierarchies, root first

    Raises:
        InputError: If the file is missing or cannot be parsed
    """
    if not Path(path).exists():
        raise InputError(f"Input file not found: {path}")
    return get_parser(column, sep).parse(Path(path))
