"""Table writers for taxatree."""

import sys
import logging
from pathlib import Path
from typing import Optional

import pandas as pd

from taxatree.core.taxonomy import Taxonomy
from taxatree.models.errors import InputError

logger = logging.getLogger(__name__)

def write_table(df: pd.DataFrame, output_path: Optional[Path] = None) -> None:
    """
    Write a DataFrame as TSV to a file or to stdout.

    Args:
        df: Table to write
        output_path: Output file, stdout when None

    Raises:
        InputError: If the output cannot be written
    """
    try:
        if output_path is None:
            df.to_csv(sys.stdout, sep='\t', index=False)
        else:
            df.to_csv(output_path, sep='\t', index=False)
            logger.info(f"Wrote {len(df)} rows to {output_path}")
    except OSError as e:
        raise InputError(f"Error writing output: {str(e)}") from e

def edge_list_df(taxonomy: Taxonomy) -> pd.DataFrame:
    """Edge list with the name and rank of each taxon."""
    df = taxonomy.edge_list.to_frame()
    df['name'] = taxonomy.taxon_names().tolist()
    df['rank'] = taxonomy.taxon_ranks().tolist()
    return df

def classifications_df(taxonomy: Taxonomy, use_ids: bool = False, sep: str = ';') -> pd.DataFrame:
    """One row per taxon with its classification string."""
    if use_ids:
        classes = taxonomy.query.id_classifications(sep=sep)
    else:
        classes = taxonomy.query.classifications(sep=sep)
    return pd.DataFrame({
        'taxon_id': classes.index.tolist(),
        'classification': classes.tolist(),
    })

def summary_df(taxonomy: Taxonomy) -> pd.DataFrame:
    """Counts of taxa by position in the tree."""
    query = taxonomy.query
    rows = [
        ('taxa', len(taxonomy)),
        ('inputs', len(taxonomy.input_ids)),
        ('roots', int(query.is_root().sum())),
        ('stems', int(query.is_stem().sum())),
        ('branches', int(query.is_branch().sum())),
        ('leaves', int(query.is_leaf().sum())),
        ('max_depth', int(query.n_supertaxa().max()) if len(taxonomy) else 0),
    ]
    return pd.DataFrame(rows, columns=['statistic', 'value'])
