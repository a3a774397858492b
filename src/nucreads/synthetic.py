"""Synthetic nucleosome maps.

A synthetic map is made of *well-positioned* nucleosomes, placed every
``nuc_len + lin_len`` bp, and *fuzzy* nucleosomes placed at random over the
same region. Every nucleosome is expanded into several reads whose starts are
jittered, which gives sharp coverage peaks for the former and broad, noisy ones
for the latter. Optionally a random "naked DNA" control sample is drawn and the
log2 ratio between both coverages is returned, emulating tiling-array data.

Reproducibility
---------------
All randomness comes from one ``numpy.random.Generator`` created per call from
``seed``. Values are drawn in a fixed order:

1. well-positioned repetition counts (``wp_num`` draws)
2. deleted well-positioned indices (``wp_del`` draws)
3. well-positioned jitter (one draw per read)
4. fuzzy starts (``fuz_num`` draws)
5. fuzzy repetition counts (``fuz_num`` draws)
6. fuzzy jitter (one draw per read)
7. control starts, then control widths (only with ``as_ratio``)

Changing this order changes every map generated from a given seed.

The ``wp_del`` deleted indices are drawn with replacement on ``[0, wp_num]``,
index 0 hitting no nucleosome. Fewer than ``wp_del`` nucleosomes may therefore
end up without reads; this is intended.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import numpy as np

from .coverage import coverage, log2_ratio
from .errors import ConfigurationError
from .models import FUZZY, WELL_POSITIONED, GenomicInterval, NucleosomeSet, ReadCollection

logger = logging.getLogger(__name__)

SYNTHETIC_CONTIG = "synthetic"

CONTROL_MIN_WIDTH = 50
CONTROL_MAX_WIDTH = 250


@dataclass(frozen=True)
class SyntheticParams:
    """Parameters of a synthetic nucleosome map.

    Attributes
    ----------
    wp_num:
        Number of well-positioned nucleosomes.
    wp_del:
        Number of deletion draws among well-positioned nucleosomes (creates
        uncovered regions).
    wp_var:
        Maximum jitter (bp) of well-positioned reads around their nucleosome.
    fuz_num:
        Number of fuzzy nucleosomes, placed uniformly over the whole region.
    fuz_var:
        Maximum jitter (bp) of fuzzy reads.
    max_cover:
        Maximum number of reads per nucleosome.
    nuc_len:
        Nucleosome (and read) length.
    lin_len:
        Linker DNA length between well-positioned nucleosomes.
    seed:
        Seed of the random generator; None draws fresh entropy.
    as_ratio:
        Also draw a control sample and compute the log2 ratio.
    """

    wp_num: int = 100
    wp_del: int = 10
    wp_var: int = 20
    fuz_num: int = 50
    fuz_var: int = 50
    max_cover: int = 20
    nuc_len: int = 147
    lin_len: int = 20
    seed: Optional[int] = None
    as_ratio: bool = False

    @property
    def spacing(self) -> int:
        return self.nuc_len + self.lin_len

    def validate(self) -> None:
        """Raise ConfigurationError for out-of-range parameters."""
        for name in ("wp_num", "wp_del", "wp_var", "fuz_num", "fuz_var", "max_cover", "nuc_len", "lin_len"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
            if value < 0:
                raise ConfigurationError(f"{name} must be >= 0, got {value}")

        if self.max_cover < 1:
            raise ConfigurationError(f"max_cover must be >= 1, got {self.max_cover}")
        if self.nuc_len < 1:
            raise ConfigurationError(f"nuc_len must be >= 1, got {self.nuc_len}")
        if self.wp_del > self.wp_num + 1:
            raise ConfigurationError(
                f"wp_del ({self.wp_del}) cannot exceed wp_num + 1 ({self.wp_num + 1})"
            )
        if self.fuz_num > 0 and self.wp_num == 0:
            raise ConfigurationError(
                "fuzzy nucleosomes are placed over the well-positioned region; wp_num must be >= 1"
            )
        if self.seed is not None:
            if isinstance(self.seed, bool) or not isinstance(self.seed, (int, np.integer)):
                raise ConfigurationError(f"seed must be an integer or None, got {self.seed!r}")
            if self.seed < 0:
                raise ConfigurationError(f"seed must be >= 0, got {self.seed}")

    def to_jsonable(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, eq=False)
class SyntheticMap:
    """Result of :func:`generate_synthetic_map`.

    ``reads`` holds well-positioned reads followed by fuzzy reads, in generation
    order. ``control`` and ``ratio`` are only set when ``params.as_ratio``.
    """

    params: SyntheticParams
    wp: NucleosomeSet
    fuz: NucleosomeSet
    reads: ReadCollection
    control: Optional[ReadCollection] = None
    ratio: Optional[np.ma.MaskedArray] = None

    def coverage(self) -> np.ndarray:
        return coverage(self.reads)

    def summary(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "params": self.params.to_jsonable(),
            "n_reads": len(self.reads),
            "n_wp_reads": len(self.wp.reads),
            "n_fuz_reads": len(self.fuz.reads),
            "n_wp_deleted": int((self.wp.nreads == 0).sum()),
        }
        if self.control is not None:
            out["n_control_reads"] = len(self.control)
        if self.ratio is not None:
            out["ratio_length"] = int(len(self.ratio))
            out["ratio_missing"] = int(np.ma.count_masked(self.ratio))
        return out


def _round(x: np.ndarray) -> np.ndarray:
    # half-to-even, as R's round()
    return np.rint(x).astype(np.int64)


def _jittered_reads(
    rng: np.random.Generator,
    starts: np.ndarray,
    nreads: np.ndarray,
    *,
    variance: int,
    width: int,
) -> List[GenomicInterval]:
    rep_starts = np.repeat(starts, nreads)
    jitter = _round(rng.uniform(-variance, variance, size=len(rep_starts)))
    return [
        GenomicInterval.from_width(SYNTHETIC_CONTIG, int(s), width)
        for s in rep_starts + jitter
    ]


def _control_reads(rng: np.random.Generator, reads: ReadCollection) -> ReadCollection:
    n = len(reads)
    if n == 0:
        return ReadCollection({SYNTHETIC_CONTIG: []})
    max_start = max(int(reads.starts().max()), 1)
    starts = _round(rng.uniform(1, max_start, size=n))
    widths = _round(rng.uniform(CONTROL_MIN_WIDTH, CONTROL_MAX_WIDTH, size=n))
    return ReadCollection(
        {
            SYNTHETIC_CONTIG: [
                GenomicInterval.from_width(SYNTHETIC_CONTIG, int(s), int(w))
                for s, w in zip(starts, widths)
            ]
        }
    )


def generate_synthetic_map(params: Optional[SyntheticParams] = None, **kwargs: Any) -> SyntheticMap:
    """Generate a synthetic nucleosome map.

    Either pass a :class:`SyntheticParams` or its fields as keyword arguments::

        smap = generate_synthetic_map(wp_num=50, fuz_num=20, seed=1, as_ratio=True)

    Parameters are validated before the first random draw. With an explicit
    seed the output is identical across runs and machines.
    """
    if params is None:
        params = SyntheticParams(**kwargs)
    elif kwargs:
        raise TypeError("pass either a SyntheticParams instance or keyword arguments, not both")
    params.validate()

    rng = np.random.default_rng(params.seed)

    # Well-positioned nucleosomes
    wp_starts = params.spacing * np.arange(params.wp_num, dtype=np.int64) + 1
    wp_nreads = _round(rng.uniform(1, params.max_cover, size=params.wp_num))

    deleted = _round(rng.uniform(0, params.wp_num, size=params.wp_del))
    wp_nreads[deleted[deleted >= 1] - 1] = 0

    wp_reads = _jittered_reads(rng, wp_starts, wp_nreads, variance=params.wp_var, width=params.nuc_len)

    # Fuzzy nucleosomes, over the well-positioned region
    fuz_region = max(params.spacing * params.wp_num, 1)
    fuz_starts = _round(rng.uniform(1, fuz_region, size=params.fuz_num))
    fuz_nreads = _round(rng.uniform(1, params.max_cover, size=params.fuz_num))
    fuz_reads = _jittered_reads(rng, fuz_starts, fuz_nreads, variance=params.fuz_var, width=params.nuc_len)

    reads = ReadCollection({SYNTHETIC_CONTIG: wp_reads + fuz_reads})

    logger.info(
        "Synthetic map: %d well-positioned reads (%d nucleosomes without reads), %d fuzzy reads",
        len(wp_reads),
        int((wp_nreads == 0).sum()),
        len(fuz_reads),
    )

    control: Optional[ReadCollection] = None
    ratio: Optional[np.ma.MaskedArray] = None
    if params.as_ratio:
        control = _control_reads(rng, reads)
        ratio = log2_ratio(coverage(reads), coverage(control))
        logger.info(
            "Control sample: %d reads; ratio undefined at %d/%d positions",
            len(control),
            int(np.ma.count_masked(ratio)),
            len(ratio),
        )

    return SyntheticMap(
        params=params,
        wp=NucleosomeSet(
            category=WELL_POSITIONED,
            starts=wp_starts,
            nreads=wp_nreads,
            variance=params.wp_var,
            nuc_len=params.nuc_len,
            reads=ReadCollection({SYNTHETIC_CONTIG: wp_reads}),
        ),
        fuz=NucleosomeSet(
            category=FUZZY,
            starts=fuz_starts,
            nreads=fuz_nreads,
            variance=params.fuz_var,
            nuc_len=params.nuc_len,
            reads=ReadCollection({SYNTHETIC_CONTIG: fuz_reads}),
        ),
        reads=reads,
        control=control,
        ratio=ratio,
    )
