from __future__ import annotations

import logging
from typing import Iterable, Optional

import numpy as np

from .models import GenomicInterval

logger = logging.getLogger(__name__)

# Sentinel for undefined ratio positions (zero coverage on either side).
MISSING = np.ma.masked


def coverage(reads: Iterable[GenomicInterval], length: Optional[int] = None) -> np.ndarray:
    """Number of reads overlapping each position 1..N.

    Index ``i`` of the returned array holds the coverage of position ``i + 1``.
    ``length`` defaults to the largest read end (0 for no reads). Parts of reads
    outside ``[1, length]`` are not counted.

    All reads are pooled regardless of their reference name; call this once per
    chromosome for multi-reference collections.
    """
    reads = list(reads)
    starts = np.fromiter((iv.start for iv in reads), dtype=np.int64, count=len(reads))
    ends = np.fromiter((iv.end for iv in reads), dtype=np.int64, count=len(reads))

    n = int(length) if length is not None else (max(int(ends.max()), 0) if len(ends) else 0)
    if n < 0:
        raise ValueError("length must be >= 0")
    if n == 0 or len(starts) == 0:
        return np.zeros(n, dtype=np.int64)

    lo = np.clip(starts, 1, None)
    hi = np.clip(ends, None, n)
    keep = lo <= hi
    lo = lo[keep]
    hi = hi[keep]

    # difference array over 0-based half-open [lo - 1, hi)
    delta = np.zeros(n + 1, dtype=np.int64)
    np.add.at(delta, lo - 1, 1)
    np.add.at(delta, hi, -1)
    return np.cumsum(delta[:n])


def log2_ratio(numerator: np.ndarray, denominator: np.ndarray) -> np.ma.MaskedArray:
    """Position-wise ``log2(numerator) - log2(denominator)``.

    Arrays of different lengths are padded with zeros to the longer one.
    Positions where either value is zero are masked (:data:`MISSING`), so the
    result never contains ``inf`` or ``nan`` in unmasked cells.
    """
    a = np.asarray(numerator, dtype=np.float64)
    b = np.asarray(denominator, dtype=np.float64)
    n = max(len(a), len(b))
    if len(a) < n:
        a = np.pad(a, (0, n - len(a)))
    if len(b) < n:
        b = np.pad(b, (0, n - len(b)))

    defined = (a > 0) & (b > 0)
    values = np.zeros(n, dtype=np.float64)
    values[defined] = np.log2(a[defined]) - np.log2(b[defined])

    n_missing = int(n - defined.sum())
    if n_missing:
        logger.debug("Ratio undefined at %d of %d positions", n_missing, n)
    return np.ma.MaskedArray(values, mask=~defined, fill_value=np.nan)


def coverage_ratio(
    reads: Iterable[GenomicInterval], control: Iterable[GenomicInterval]
) -> np.ma.MaskedArray:
    """log2 ratio between the coverage of ``reads`` and ``control``."""
    return log2_ratio(coverage(reads), coverage(control))
