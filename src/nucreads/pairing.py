"""Paired-end fragment reconstruction.

Alignment records are split by strand using their SAM flag, mates are matched
by read name within each strand, and every matched pair becomes one fragment
spanning both mates.

Flag codes
----------
Only properly paired, mapped primary mates are used. After masking the flag to
its low 8 bits (which clears the secondary, QC-fail, duplicate and
supplementary bits) a record is classified by exact code:

====  =======================================  ======  ===========
code  meaning                                  strand  mate
====  =======================================  ======  ===========
99    paired, proper, mate reverse, read 1     ``+``   first
147   paired, proper, read reverse, read 2     ``+``   second
163   paired, proper, mate reverse, read 2     ``-``   first
83    paired, proper, read reverse, read 1     ``-``   second
====  =======================================  ======  ===========

Anything else is dropped silently.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Tuple

from .collection import sort_reads
from .errors import MatePairInconsistency
from .models import AlignmentRecord, Fragment, ReadCollection

logger = logging.getLogger(__name__)

FLAG_MASK = 256

FLAG_FWD_FIRST = 99
FLAG_FWD_SECOND = 147
FLAG_REV_FIRST = 163
FLAG_REV_SECOND = 83

FORWARD_FLAGS = frozenset({FLAG_FWD_FIRST, FLAG_FWD_SECOND})
REVERSE_FLAGS = frozenset({FLAG_REV_FIRST, FLAG_REV_SECOND})

# strand -> (first mate code, second mate code)
STRAND_FLAGS: Dict[str, Tuple[int, int]] = {
    "+": (FLAG_FWD_FIRST, FLAG_FWD_SECOND),
    "-": (FLAG_REV_FIRST, FLAG_REV_SECOND),
}


def normalize_flag(flag: int) -> int:
    """Strip bits >= 256 (secondary, QC fail, duplicate, supplementary)."""
    return int(flag) % FLAG_MASK


def partition_by_strand(
    records: Iterable[AlignmentRecord],
) -> Dict[str, List[AlignmentRecord]]:
    """Split records into ``{"+": [...], "-": [...]}`` by normalized flag."""
    out: Dict[str, List[AlignmentRecord]] = {"+": [], "-": []}
    dropped = 0
    for rec in records:
        flag = normalize_flag(rec.flag)
        if flag in FORWARD_FLAGS:
            out["+"].append(rec)
        elif flag in REVERSE_FLAGS:
            out["-"].append(rec)
        else:
            dropped += 1

    logger.debug(
        "Strand partition: %d forward, %d reverse, %d dropped",
        len(out["+"]),
        len(out["-"]),
        dropped,
    )
    return out


def _index_by_name(records: Iterable[AlignmentRecord], *, label: str) -> Dict[str, AlignmentRecord]:
    # Keep the first record seen for each name.
    index: Dict[str, AlignmentRecord] = {}
    duplicates = 0
    for rec in records:
        if rec.name in index:
            duplicates += 1
            continue
        index[rec.name] = rec
    if duplicates:
        logger.warning(
            "%d duplicate read name(s) among %s mates; keeping the first occurrence of each.",
            duplicates,
            label,
        )
    return index


def _is_consistent(first: AlignmentRecord, second: AlignmentRecord) -> bool:
    return (
        first.mate_position == second.position
        and second.mate_position == first.position
        and first.reference_name == second.reference_name
    )


def build_fragment(first: AlignmentRecord, second: AlignmentRecord, strand: str) -> Fragment:
    """Span from the leftmost mate's start to the rightmost mate's last base."""
    start = min(first.position, second.position)
    end = max(first.position + first.width, second.position + second.width) - 1
    return Fragment(reference_name=first.reference_name, start=start, end=end, strand=strand)


def match_mates(strand: str, records: Iterable[AlignmentRecord]) -> List[Fragment]:
    """Pair the mates of one strand group and build their fragments.

    Reads whose partner is missing are dropped. If any matched pair does not
    point at its partner (mate position or reference disagree) the whole strand
    is rejected with :class:`MatePairInconsistency`.

    Fragments follow the order in which first mates appear in ``records``.
    """
    if strand not in STRAND_FLAGS:
        raise ValueError(f"strand must be '+' or '-', got {strand!r}")
    first_code, second_code = STRAND_FLAGS[strand]

    logger.info("processing strand %s", strand)

    firsts: List[AlignmentRecord] = []
    seconds: List[AlignmentRecord] = []
    for rec in records:
        flag = normalize_flag(rec.flag)
        if flag == first_code:
            firsts.append(rec)
        elif flag == second_code:
            seconds.append(rec)

    by_name_1 = _index_by_name(firsts, label=f"first ({strand})")
    by_name_2 = _index_by_name(seconds, label=f"second ({strand})")

    common = [name for name in by_name_1 if name in by_name_2]
    unmatched = len(by_name_1) + len(by_name_2) - 2 * len(common)
    if unmatched:
        logger.info("Strand %s: %d read(s) without a mate were dropped", strand, unmatched)

    bad = [name for name in common if not _is_consistent(by_name_1[name], by_name_2[name])]
    if bad:
        raise MatePairInconsistency(strand, read_name=bad[0], n_bad=len(bad))

    return [build_fragment(by_name_1[name], by_name_2[name], strand) for name in common]


def pair_reads(records: Iterable[AlignmentRecord]) -> ReadCollection:
    """Full paired-end pipeline: partition, match both strands, sort."""
    groups = partition_by_strand(records)
    fragments: List[Fragment] = []
    for strand in ("+", "-"):
        fragments.extend(match_mates(strand, groups[strand]))

    if not fragments:
        logger.warning("No properly paired reads found; returning an empty collection.")
    return sort_reads(fragments)
