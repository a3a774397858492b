from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import numpy as np

WELL_POSITIONED = "well-positioned"
FUZZY = "fuzzy"


@dataclass(frozen=True)
class GenomicInterval:
    """A closed interval on one reference sequence.

    Coordinates are 1-based and inclusive on both ends, so ``width`` is
    ``end - start + 1``.

    Attributes
    ----------
    reference_name:
        Contig name as present in the BAM header (or ``"synthetic"``).
    start, end:
        First and last covered base.
    strand:
        ``"+"``, ``"-"`` or None when unknown.
    """

    reference_name: str
    start: int
    end: int
    strand: Optional[str] = None

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(
                f"Invalid interval {self.reference_name}:{self.start}-{self.end} (start > end)"
            )

    @property
    def width(self) -> int:
        return self.end - self.start + 1

    @classmethod
    def from_width(
        cls, reference_name: str, start: int, width: int, strand: Optional[str] = None
    ) -> "GenomicInterval":
        return cls(reference_name=reference_name, start=start, end=start + width - 1, strand=strand)


# A fragment is the interval spanned by both mates of one paired-end read.
Fragment = GenomicInterval


@dataclass(frozen=True)
class AlignmentRecord:
    """One decoded alignment, as handed over by the decoding layer.

    ``position`` and ``mate_position`` are 1-based. ``flag`` is the raw SAM flag
    (secondary/supplementary bits still set).
    """

    name: str
    reference_name: str
    strand: str
    position: int
    width: int
    flag: int
    mate_reference_name: Optional[str] = None
    mate_position: Optional[int] = None


class ReadCollection:
    """Reads grouped by reference name.

    Groups are stored as tuples behind a read-only mapping; the collection is
    never modified after construction. Group order is the order given at
    construction time (see :func:`nucreads.collection.sort_reads` for the
    canonical order).
    """

    __slots__ = ("_groups",)

    def __init__(self, groups: Optional[Mapping[str, Iterable[GenomicInterval]]] = None) -> None:
        frozen: Dict[str, Tuple[GenomicInterval, ...]] = {}
        for chrom, reads in (groups or {}).items():
            frozen[str(chrom)] = tuple(reads)
        self._groups = MappingProxyType(frozen)

    @classmethod
    def from_intervals(cls, intervals: Iterable[GenomicInterval]) -> "ReadCollection":
        """Group intervals by reference name, keeping their input order."""
        groups: Dict[str, List[GenomicInterval]] = {}
        for iv in intervals:
            groups.setdefault(iv.reference_name, []).append(iv)
        return cls(groups)

    @property
    def groups(self) -> Mapping[str, Tuple[GenomicInterval, ...]]:
        return self._groups

    @property
    def chromosomes(self) -> List[str]:
        return list(self._groups.keys())

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    def __getitem__(self, chrom: str) -> Tuple[GenomicInterval, ...]:
        return self._groups[chrom]

    def __contains__(self, chrom: object) -> bool:
        return chrom in self._groups

    def __iter__(self) -> Iterator[GenomicInterval]:
        for reads in self._groups.values():
            yield from reads

    def __len__(self) -> int:
        return sum(len(reads) for reads in self._groups.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReadCollection):
            return NotImplemented
        return list(self._groups.items()) == list(other._groups.items())

    def __repr__(self) -> str:
        per_chrom = ", ".join(f"{c}={len(r)}" for c, r in self._groups.items())
        return f"ReadCollection({per_chrom})"

    def starts(self) -> np.ndarray:
        return np.fromiter((iv.start for iv in self), dtype=np.int64, count=len(self))

    def ends(self) -> np.ndarray:
        return np.fromiter((iv.end for iv in self), dtype=np.int64, count=len(self))

    def counts(self) -> Dict[str, int]:
        return {chrom: len(reads) for chrom, reads in self._groups.items()}


@dataclass(frozen=True)
class SyntheticNucleosome:
    """Ground-truth description of one synthetic nucleosome."""

    category: str
    nominal_start: int
    repetition_count: int
    variance: int


@dataclass(frozen=True, eq=False)
class NucleosomeSet:
    """Ground truth and expanded reads for one nucleosome category.

    ``starts`` holds the nominal (unjittered) start of each nucleosome and
    ``nreads`` how many reads were generated around it.
    """

    category: str
    starts: np.ndarray
    nreads: np.ndarray
    variance: int
    nuc_len: int
    reads: ReadCollection = field(default_factory=ReadCollection)

    @property
    def dyads(self) -> np.ndarray:
        """Nominal nucleosome centres (start + nuc_len // 2)."""
        return self.starts + self.nuc_len // 2

    def descriptors(self) -> List[SyntheticNucleosome]:
        return [
            SyntheticNucleosome(
                category=self.category,
                nominal_start=int(s),
                repetition_count=int(n),
                variance=int(self.variance),
            )
            for s, n in zip(self.starts, self.nreads)
        ]

    def to_jsonable(self) -> Dict[str, object]:
        return {
            "category": self.category,
            "variance": int(self.variance),
            "starts": [int(x) for x in self.starts],
            "nreads": [int(x) for x in self.nreads],
            "n_reads_total": len(self.reads),
        }
