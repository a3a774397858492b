"""Exception types raised by nucreads.

Missing ratio values are *not* errors; see :data:`nucreads.coverage.MISSING`.
"""

from __future__ import annotations

from typing import Optional


class NucReadsError(Exception):
    """Base class for all nucreads errors."""


class InputDecodingError(NucReadsError):
    """Raised when an alignment file cannot be opened or decoded."""

    def __init__(self, message: str, *, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path


class MatePairInconsistency(NucReadsError):
    """Raised when a retained mate pair does not cross-reference its partner.

    This aborts processing of the whole file: it points at a corrupt or
    mis-sorted input rather than a single bad record.
    """

    def __init__(self, strand: str, *, read_name: Optional[str] = None, n_bad: int = 1) -> None:
        msg = f"Mate selection for {strand} strand is invalid"
        if read_name is not None:
            msg += f" ({n_bad} inconsistent pair(s), first: {read_name})"
        super().__init__(msg)
        self.strand = strand
        self.read_name = read_name
        self.n_bad = int(n_bad)


class ConfigurationError(NucReadsError, ValueError):
    """Raised for out-of-range parameters, before any work is done."""
