"""Read alignments from BAM files.

This is the only module that touches the alignment file format. It turns pysam
records into :class:`~nucreads.models.AlignmentRecord` objects and hands them to
the single-end or paired-end read builders.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

import pysam
from tqdm import tqdm

from .errors import ConfigurationError, InputDecodingError
from .models import AlignmentRecord, GenomicInterval, ReadCollection
from .pairing import pair_reads

logger = logging.getLogger(__name__)

READ_TYPES = ("single", "paired")


def _query_width(read: pysam.AlignedSegment) -> Optional[int]:
    """Query width from the CIGAR (hard clips excluded), falling back to the sequence."""
    width = read.infer_query_length(always=False)
    if width is None:
        width = read.query_length or None
    return width


def record_from_segment(read: pysam.AlignedSegment) -> Optional[AlignmentRecord]:
    """Decode one pysam segment; None for unmapped reads or reads without a width."""
    if read.is_unmapped or read.reference_name is None:
        return None
    width = _query_width(read)
    if not width:
        return None

    mate_pos: Optional[int] = None
    mate_ref: Optional[str] = None
    if read.next_reference_id is not None and read.next_reference_id >= 0:
        mate_ref = read.next_reference_name
        mate_pos = int(read.next_reference_start) + 1

    return AlignmentRecord(
        name=str(read.query_name),
        reference_name=str(read.reference_name),
        strand="-" if read.is_reverse else "+",
        position=int(read.reference_start) + 1,
        width=int(width),
        flag=int(read.flag),
        mate_reference_name=mate_ref,
        mate_position=mate_pos,
    )


def iter_alignment_records(
    bam_path: str | Path,
    *,
    progress: bool = False,
    counts: Optional[Dict[str, int]] = None,
) -> Iterator[AlignmentRecord]:
    """Yield decoded records from a BAM/SAM/CRAM file in file order.

    Raises
    ------
    InputDecodingError
        If the file cannot be opened or a record cannot be decoded.
    """
    path = str(bam_path)
    if counts is None:
        counts = {}
    counts.setdefault("records_total", 0)
    counts.setdefault("records_unmapped", 0)

    try:
        bam = pysam.AlignmentFile(path, "rb" if path.endswith(".bam") else "r")
    except (OSError, ValueError) as e:
        raise InputDecodingError(f"Could not open alignment file {path}: {e}", path=path) from e

    with bam:
        it: Iterable[pysam.AlignedSegment] = bam.fetch(until_eof=True)
        if progress:
            it = tqdm(it, unit="read", desc=f"Reading {Path(path).name}")
        try:
            for read in it:
                counts["records_total"] += 1
                rec = record_from_segment(read)
                if rec is None:
                    counts["records_unmapped"] += 1
                    continue
                yield rec
        except (OSError, ValueError) as e:
            raise InputDecodingError(
                f"Failed decoding {path} after {counts['records_total']} records: {e}", path=path
            ) from e


def single_reads(records: Iterable[AlignmentRecord]) -> ReadCollection:
    """Use each record as a read, grouped by reference in input order."""
    return ReadCollection.from_intervals(
        GenomicInterval.from_width(rec.reference_name, rec.position, rec.width, strand=rec.strand)
        for rec in records
    )


def read_bam(
    bam_path: str | Path,
    type: str = "paired",
    *,
    progress: bool = False,
    counts: Optional[Dict[str, int]] = None,
) -> ReadCollection:
    """Load the reads of one alignment file.

    Parameters
    ----------
    bam_path:
        Input BAM file. No index is required.
    type:
        ``"single"`` returns every mapped record as a read. ``"paired"`` matches
        mates and returns one fragment per properly paired read, in canonical
        order.
    progress:
        Show a tqdm progress bar while reading.
    counts:
        Optional dict updated with record counters.

    Raises
    ------
    ConfigurationError
        For an unknown ``type``.
    InputDecodingError
        If the file cannot be read.
    MatePairInconsistency
        If mates do not point at each other (paired mode only).
    """
    if type not in READ_TYPES:
        raise ConfigurationError(f"type must be 'single' or 'paired', got {type!r}")

    logger.info("reading file %s", bam_path)
    records = iter_alignment_records(bam_path, progress=progress, counts=counts)
    if type == "single":
        return single_reads(records)
    return pair_reads(records)


def read_bams(
    bam_paths: Sequence[str | Path],
    type: str = "paired",
    *,
    progress: bool = False,
) -> List[ReadCollection]:
    """Load several files; one ReadCollection per file, in input order."""
    return [read_bam(p, type, progress=progress) for p in bam_paths]
