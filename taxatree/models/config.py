"""Configuration management for taxatree."""

import os
from pathlib import Path
from typing import List, Optional, Any

from taxatree.core.utils import DEFAULT_CLASS_SEP, ID_ALPHABET
from taxatree.models.errors import TaxaTreeError

class ConfigError(TaxaTreeError):
    """Raised when there's an issue with configuration."""
    pass

class TaxaTreeConfig:
    """Centralized configuration for taxatree."""

    def __init__(self, args: Optional[Any] = None):
        """
        Initialize configuration from args and environment.

        Args:
            args: Arguments from argparse

        Raises:
            ConfigError: If required configuration is missing or invalid
        """
        # Command-specific configuration - get this first
        self.command = getattr(args, 'command', None)

        # Common configuration
        self.verbose = getattr(args, 'verbose', False)
        self.class_sep = getattr(args, 'sep', None) or os.environ.get("TAXATREE_CLASS_SEP", DEFAULT_CLASS_SEP)
        self.id_alphabet = os.environ.get("TAXATREE_ID_ALPHABET", ID_ALPHABET)
        if len(set(self.id_alphabet)) < 2 or len(set(self.id_alphabet)) != len(self.id_alphabet):
            raise ConfigError(
                "TAXATREE_ID_ALPHABET must contain at least two distinct, non-repeated characters."
            )
        self.column = getattr(args, 'column', None)

        input_path = getattr(args, 'input_path', None)
        if self.command and not input_path:
            raise ConfigError("An input file of classifications is required.")
        self.input_path = Path(input_path) if input_path else None

        output = getattr(args, 'output', None)
        self.output_path = Path(output) if output else None

        # Classifications command configuration
        if self.command == 'classifications':
            self.use_ids = getattr(args, 'ids', False)

        # Filter command configuration
        elif self.command == 'filter':
            self.taxon_names: List[str] = list(getattr(args, 'taxa', []) or [])
            if not self.taxon_names:
                raise ConfigError("At least one taxon name is required for 'filter'.")
            self.subtaxa = getattr(args, 'subtaxa', False)
            self.supertaxa = getattr(args, 'supertaxa', False)
            self.invert = getattr(args, 'invert', False)
            self.reassign = not getattr(args, 'no_reassign', False)
