from __future__ import annotations

import gzip
import json
import logging
from pathlib import Path
from typing import Any, Iterable, TextIO

import numpy as np

from .models import GenomicInterval

logger = logging.getLogger(__name__)


def ensure_outdir(path: str | Path) -> Path:
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def open_textmaybe_gzip(path: str | Path, mode: str = "rt") -> TextIO:
    p = str(path)
    if p.endswith(".gz"):
        return gzip.open(p, mode)  # type: ignore[return-value]
    return open(p, mode)


def write_json(path: str | Path, obj: Any) -> None:
    with open(path, "wt", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, sort_keys=True)


def write_reads_tsv(path: str | Path, reads: Iterable[GenomicInterval]) -> int:
    """Write reads as ``chrom start end width strand`` rows; returns the row count."""
    n = 0
    with open_textmaybe_gzip(path, "wt") as fh:
        fh.write("chrom\tstart\tend\twidth\tstrand\n")
        for iv in reads:
            fh.write(f"{iv.reference_name}\t{iv.start}\t{iv.end}\t{iv.width}\t{iv.strand or '*'}\n")
            n += 1
    logger.debug("Wrote %d reads to %s", n, path)
    return n


def write_ratio_tsv(path: str | Path, ratio: np.ma.MaskedArray) -> None:
    """Write a 1-based ``position value`` table; masked positions are written as NA."""
    mask = np.ma.getmaskarray(ratio)
    values = np.ma.getdata(ratio)
    with open_textmaybe_gzip(path, "wt") as fh:
        fh.write("position\tlog2_ratio\n")
        for i in range(len(values)):
            if mask[i]:
                fh.write(f"{i + 1}\tNA\n")
            else:
                fh.write(f"{i + 1}\t{values[i]:.6f}\n")
