"""Error classes for taxatree."""

class TaxaTreeError(Exception):
    """Base class for taxatree exceptions."""
    pass

class ValidationError(TaxaTreeError):
    """Raised when input to a taxonomy operation is malformed."""
    pass

class StructuralError(TaxaTreeError):
    """Raised when the edge list is cyclic or otherwise inconsistent."""
    pass

class InputError(TaxaTreeError):
    """Raised when there's an issue with input files."""
    pass
