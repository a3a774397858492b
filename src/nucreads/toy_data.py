from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pysam

from .pairing import FLAG_FWD_FIRST, FLAG_FWD_SECOND, FLAG_REV_FIRST, FLAG_REV_SECOND
from .utils import ensure_outdir, write_json

_READ_LEN = 50

_CONTIGS: List[Tuple[str, int]] = [("chr1", 2000), ("chr2", 1000)]

# (name, contig index, fragment strand, left mate start0, right mate start0)
_TOY_PAIRS: List[Tuple[str, int, str, int, int]] = [
    ("frag1", 0, "+", 100, 230),
    ("frag2", 0, "-", 100, 180),
    ("frag3", 0, "+", 400, 450),
    ("frag4", 1, "-", 10, 60),
]


def _make_read(
    name: str,
    ref_id: int,
    start0: int,
    flag: int,
    *,
    mate_start0: int = -1,
    tlen: int = 0,
    mapq: int = 60,
    header: Optional[pysam.AlignmentHeader] = None,
) -> pysam.AlignedSegment:
    a = pysam.AlignedSegment(header)
    a.query_name = name
    a.query_sequence = ("ACGT" * _READ_LEN)[:_READ_LEN]
    a.flag = flag
    a.reference_id = ref_id
    a.reference_start = start0
    a.mapping_quality = mapq
    a.cigartuples = [(0, _READ_LEN)]
    a.query_qualities = pysam.qualitystring_to_array("I" * _READ_LEN)
    if mate_start0 >= 0:
        a.next_reference_id = ref_id
        a.next_reference_start = mate_start0
        a.template_length = tlen
    return a


def _pair(name: str, ref_id: int, strand: str, left0: int, right0: int) -> List[pysam.AlignedSegment]:
    # left mate reads forward, right mate reads reverse
    if strand == "+":
        left_flag, right_flag = FLAG_FWD_FIRST, FLAG_FWD_SECOND
    else:
        left_flag, right_flag = FLAG_REV_FIRST, FLAG_REV_SECOND
    tlen = right0 + _READ_LEN - left0
    return [
        _make_read(name, ref_id, left0, left_flag, mate_start0=right0, tlen=tlen),
        _make_read(name, ref_id, right0, right_flag, mate_start0=left0, tlen=-tlen),
    ]


def expected_fragments() -> List[Tuple[str, int, int]]:
    """Fragments (contig, start, end; 1-based closed) encoded in the toy BAM, canonical order."""
    out = []
    for _name, ref_id, _strand, left0, right0 in _TOY_PAIRS:
        out.append((_CONTIGS[ref_id][0], left0 + 1, right0 + _READ_LEN))
    out.sort(key=lambda x: (x[0], x[1], x[2]))
    return out


def make_toy_data(*, outdir: str | Path) -> Dict[str, object]:
    """Create a tiny paired-end BAM suitable for quick demos/tests.

    Besides the properly paired reads, the BAM holds records that the paired
    pipeline must ignore: a first mate whose partner is missing, an unpaired
    read, and a pair that is not properly paired.

    Returns
    -------
    dict
        Paths to the generated files and the expected fragments.
    """
    outdir_p = ensure_outdir(outdir)

    bam_path = outdir_p / "toy_paired.bam"
    header = {
        "HD": {"VN": "1.6", "SO": "coordinate"},
        "SQ": [{"SN": name, "LN": length} for name, length in _CONTIGS],
    }

    reads: List[pysam.AlignedSegment] = []
    for name, ref_id, strand, left0, right0 in _TOY_PAIRS:
        reads.extend(_pair(name, ref_id, strand, left0, right0))

    # mate lost upstream
    reads.append(_make_read("orphan", 0, 700, FLAG_FWD_FIRST, mate_start0=800, tlen=150))
    # single-end read
    reads.append(_make_read("unpaired", 0, 900, 0))
    # paired but not proper (flag 97 / 145)
    reads.append(_make_read("improper", 1, 300, 97, mate_start0=600, tlen=350))
    reads.append(_make_read("improper", 1, 600, 145, mate_start0=300, tlen=-350))

    reads.sort(key=lambda r: (r.reference_id, r.reference_start))

    with pysam.AlignmentFile(str(bam_path), "wb", header=header) as bam:
        for r in reads:
            bam.write(r)

    pysam.index(str(bam_path))

    summary: Dict[str, object] = {
        "toy_bam": str(bam_path),
        "n_records": len(reads),
        "expected_fragments": [list(f) for f in expected_fragments()],
        "outdir": str(outdir_p),
    }

    write_json(outdir_p / "toy_summary.json", summary)
    return summary
