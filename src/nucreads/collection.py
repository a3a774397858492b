from __future__ import annotations

import logging
from typing import Dict, Iterable, List

from .models import GenomicInterval, ReadCollection

logger = logging.getLogger(__name__)


def _sort_group(reads: Iterable[GenomicInterval]) -> List[GenomicInterval]:
    # Two stable passes: end first, then start. Reads sharing a start stay in end order.
    by_end = sorted(reads, key=lambda iv: iv.end)
    return sorted(by_end, key=lambda iv: iv.start)


def sort_reads(reads: Iterable[GenomicInterval] | ReadCollection) -> ReadCollection:
    """Return the canonical ReadCollection for a set of reads.

    Reference names are ordered lexicographically. Within a reference, reads are
    ordered by start, with ties broken by end; remaining ties keep their input
    order. Downstream coverage code relies on this order, and sorting an already
    canonical collection returns an equal collection.
    """
    groups: Dict[str, List[GenomicInterval]] = {}
    for iv in reads:
        groups.setdefault(iv.reference_name, []).append(iv)

    return ReadCollection({chrom: _sort_group(groups[chrom]) for chrom in sorted(groups)})


def merge_collections(*collections: ReadCollection) -> ReadCollection:
    """Concatenate collections, keeping per-reference input order."""
    groups: Dict[str, List[GenomicInterval]] = {}
    for coll in collections:
        for chrom, reads in coll.groups.items():
            groups.setdefault(chrom, []).extend(reads)
    return ReadCollection(groups)
