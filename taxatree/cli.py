#!/usr/bin/env python3
"""Command-line interface for taxatree."""

import sys
import argparse
import logging
from typing import List, Optional

from taxatree import __version__
from taxatree.core.taxonomy import Taxonomy
from taxatree.core.utils import setup_logging
from taxatree.models.config import TaxaTreeConfig
from taxatree.models.errors import TaxaTreeError, ValidationError

logger = logging.getLogger(__name__)

def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        'input_path',
        type=str,
        help='file of classifications, one per line, or a TSV with --column'
    )
    parser.add_argument(
        '--sep', '-s',
        type=str,
        default=None,
        help='separator between taxa in a classification (default: $TAXATREE_CLASS_SEP or ";")'
    )
    parser.add_argument(
        '--column', '-c',
        type=str,
        default=None,
        help='TSV column holding the classifications'
    )
    parser.add_argument(
        '--output', '-o',
        type=str,
        default=None,
        help='output TSV path, stdout if not given'
    )

def create_parser() -> argparse.ArgumentParser:
    """
    Create and return the main argument parser for taxatree.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        description="taxatree: build and query taxonomic trees from classifications",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument(
        '--version', '-v',
        action='version',
        version=f'%(prog)s v{__version__}'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help='taxatree commands',
        required=True
    )

    # Summary command
    summary_parser = subparsers.add_parser(
        "summary",
        help="Count taxa, roots, stems, branches and leaves",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    _add_common_arguments(summary_parser)

    # Classifications command
    class_parser = subparsers.add_parser(
        "classifications",
        help="Write the classification of every taxon in the merged tree",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    _add_common_arguments(class_parser)
    class_parser.add_argument(
        '--ids',
        action='store_true',
        help='use taxon ids instead of names'
    )

    # Edge-list command
    edge_parser = subparsers.add_parser(
        "edge-list",
        help="Write the edge list of the merged tree",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    _add_common_arguments(edge_parser)

    # Filter command
    filter_parser = subparsers.add_parser(
        "filter",
        help="Keep taxa by name and write the remaining classifications",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    _add_common_arguments(filter_parser)
    filter_parser.add_argument(
        'taxa',
        type=str,
        nargs='+',
        help='names of the taxa to keep'
    )
    filter_parser.add_argument(
        '--subtaxa',
        action='store_true',
        help='also keep all subtaxa of the named taxa'
    )
    filter_parser.add_argument(
        '--supertaxa',
        action='store_true',
        help='also keep all supertaxa of the named taxa'
    )
    filter_parser.add_argument(
        '--invert',
        action='store_true',
        help='remove the named taxa instead of keeping them'
    )
    filter_parser.add_argument(
        '--no-reassign',
        action='store_true',
        help='make subtaxa of removed taxa roots instead of reattaching them'
    )

    return parser

def load_taxonomy(config: TaxaTreeConfig) -> Taxonomy:
    """
    Parse the input file and merge it into a taxonomy.

    Args:
        config: Configuration holding the input settings

    Returns:
        Merged taxonomy
    """
    from taxatree.io.parsers import parse_classification_file

    hierarchies = parse_classification_file(config.input_path, config.column, config.class_sep)
    taxonomy = Taxonomy(*hierarchies, alphabet=config.id_alphabet)
    logger.info(f"Merged {len(hierarchies)} classifications into {len(taxonomy)} taxa")
    return taxonomy

def run_summary(config: TaxaTreeConfig) -> None:
    """
    Run the summary command.

    Args:
        config: Configuration for the summary command
    """
    from taxatree.io.writers import summary_df, write_table

    write_table(summary_df(load_taxonomy(config)), config.output_path)

def run_classifications(config: TaxaTreeConfig) -> None:
    """
    Run the classifications command.

    Args:
        config: Configuration for the classifications command
    """
    from taxatree.io.writers import classifications_df, write_table

    taxonomy = load_taxonomy(config)
    write_table(classifications_df(taxonomy, config.use_ids, config.class_sep), config.output_path)

def run_edge_list(config: TaxaTreeConfig) -> None:
    """
    Run the edge-list command.

    Args:
        config: Configuration for the edge-list command
    """
    from taxatree.io.writers import edge_list_df, write_table

    write_table(edge_list_df(load_taxonomy(config)), config.output_path)

def run_filter(config: TaxaTreeConfig) -> None:
    """
    Run the filter command.

    Args:
        config: Configuration for the filter command
    """
    from taxatree.io.writers import classifications_df, write_table

    taxonomy = load_taxonomy(config)
    names = taxonomy.taxon_names()
    known = set(names)
    missing = [n for n in config.taxon_names if n not in known]
    if missing:
        raise ValidationError(f"Taxa not found in input: {', '.join(missing)}")

    selection = names.isin(config.taxon_names).tolist()
    before = len(taxonomy)
    taxonomy.filter_taxa(
        selection,
        subtaxa=config.subtaxa,
        supertaxa=config.supertaxa,
        reassign_taxa=config.reassign,
        invert=config.invert
    )
    logger.info(f"Kept {len(taxonomy)} of {before} taxa")
    write_table(classifications_df(taxonomy, sep=config.class_sep), config.output_path)

def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the taxatree command-line interface.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Setup logging
    logger = setup_logging(args.verbose)

    try:
        # Create configuration
        config = TaxaTreeConfig(args)

        # Dispatch to appropriate command handler
        if config.command == 'summary':
            run_summary(config)
        elif config.command == 'classifications':
            run_classifications(config)
        elif config.command == 'edge-list':
            run_edge_list(config)
        elif config.command == 'filter':
            run_filter(config)
        else:
            logger.error(f"Unknown command: {config.command}")
            return 1

        return 0

    except TaxaTreeError as e:
        logger.error(f"Error: {str(e)}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {str(e)}")
        return 1

if __name__ == "__main__":
    sys.exit(main())
