"""nucreads: paired-end fragment reconstruction and synthetic nucleosome maps.

Public API is intentionally small; most users should use the CLI:

    nucreads read-bam --bam sample.bam --type paired --outdir ...
    nucreads synthetic --seed 1 --as-ratio --outdir ...

"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
