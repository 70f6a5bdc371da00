"""Taxonomic trees built from hierarchies, with datasets bound to taxa."""

__version__ = "0.3.0"

from taxatree.models.errors import TaxaTreeError, ValidationError, StructuralError, InputError
from taxatree.models.taxon import Taxon, Hierarchy
from taxatree.core.taxonomy import Taxonomy, merge
from taxatree.core.identifiers import generate_ids
