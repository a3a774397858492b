from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import __version__
from .bam import READ_TYPES, read_bam
from .report import render_report
from .synthetic import SyntheticParams, generate_synthetic_map
from .toy_data import make_toy_data
from .utils import ensure_outdir, write_json, write_ratio_tsv, write_reads_tsv

_DEFAULTS = SyntheticParams()


def _setup_logging(verbosity: int, *, logfile: Optional[Path] = None) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    log_fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(level=level, format=log_fmt, stream=sys.stderr)

    if logfile is not None:
        logfile.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(logfile)
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(log_fmt))
        logging.getLogger().addHandler(fh)


def _path_exists(p: str) -> str:
    if not Path(p).exists():
        raise argparse.ArgumentTypeError(f"Path does not exist: {p}")
    return p


def _log_path(outdir: Path, name: str) -> Path:
    return outdir / "logs" / name


def _handle_error(err: Exception, *, log_path: Optional[Path] = None) -> int:
    sys.stderr.write(f"{err.__class__.__name__}: {err}\n")
    if log_path is not None:
        sys.stderr.write(f"See log: {log_path}\n")
    return 2


def _reads_tsv_name(bam_path: str) -> str:
    name = Path(bam_path).name
    for suffix in (".bam", ".sam", ".cram"):
        if name.endswith(suffix):
            name = name[: -len(suffix)]
            break
    return f"{name}.reads.tsv.gz"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="nucreads",
        description=(
            "nucreads: build nucleosome read sets from paired-end BAMs and generate "
            "synthetic nucleosome maps (with optional control ratio) for benchmarking."
        ),
    )
    p.add_argument("--version", action="version", version=f"nucreads {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    # -----------------
    # quickstart
    # -----------------
    sub.add_parser(
        "quickstart",
        help="Print ready-to-run recipes for common scenarios.",
    )

    # -----------------
    # make-toy-data
    # -----------------
    t = sub.add_parser(
        "make-toy-data",
        help="Generate a tiny paired-end BAM for demos/tests.",
    )
    t.add_argument("--outdir", required=True, help="Output directory for toy data.")
    t.add_argument("--dry-run", action="store_true", help="Validate paths without writing files.")

    # -----------------
    # read-bam
    # -----------------
    r = sub.add_parser(
        "read-bam",
        help="Load reads from BAM file(s); paired mode rebuilds fragments from mates.",
    )
    r.add_argument(
        "--bam",
        required=True,
        nargs="+",
        type=_path_exists,
        help="Input BAM file(s); an unreadable or inconsistent file aborts the whole run.",
    )
    r.add_argument(
        "--type",
        choices=list(READ_TYPES),
        default="paired",
        help="single: records are reads; paired: one fragment per properly paired read.",
    )
    r.add_argument("--outdir", required=True, help="Output directory.")
    r.add_argument("--no-progress", action="store_true", help="Do not show a progress bar.")
    r.add_argument("--dry-run", action="store_true", help="Validate inputs and print planned outputs.")
    r.add_argument("--resume", action="store_true", help="Skip if outputs already exist.")
    r.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    # -----------------
    # synthetic
    # -----------------
    s = sub.add_parser(
        "synthetic",
        help="Generate a synthetic nucleosome map (well-positioned + fuzzy reads).",
    )
    s.add_argument("--wp-num", type=int, default=_DEFAULTS.wp_num, help="Well-positioned nucleosomes.")
    s.add_argument(
        "--wp-del",
        type=int,
        default=_DEFAULTS.wp_del,
        help="Deletion draws among well-positioned nucleosomes (drawn with replacement).",
    )
    s.add_argument("--wp-var", type=int, default=_DEFAULTS.wp_var, help="Max jitter of well-positioned reads.")
    s.add_argument("--fuz-num", type=int, default=_DEFAULTS.fuz_num, help="Fuzzy nucleosomes.")
    s.add_argument("--fuz-var", type=int, default=_DEFAULTS.fuz_var, help="Max jitter of fuzzy reads.")
    s.add_argument("--max-cover", type=int, default=_DEFAULTS.max_cover, help="Max reads per nucleosome.")
    s.add_argument("--nuc-len", type=int, default=_DEFAULTS.nuc_len, help="Nucleosome length (bp).")
    s.add_argument("--lin-len", type=int, default=_DEFAULTS.lin_len, help="Linker length (bp).")
    s.add_argument("--seed", type=int, default=None, help="Random seed (reproducible output).")
    s.add_argument(
        "--as-ratio",
        action="store_true",
        help="Also draw a random control sample and write the log2 coverage ratio.",
    )
    s.add_argument("--outdir", required=True, help="Output directory.")
    s.add_argument("--dry-run", action="store_true", help="Validate parameters and print planned outputs.")
    s.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    return p


# -----------------
# Command handlers
# -----------------

def cmd_quickstart() -> int:
    lines = [
        "nucreads quickstart (copy/paste):",
        "",
        "1) Paired-end BAM -> fragments:",
        "   nucreads read-bam \\",
        "     --bam sample.bam \\",
        "     --type paired \\",
        "     --outdir results/",
        "   Outputs: results/sample.reads.tsv.gz, results/summary.json, results/report.html",
        "",
        "2) Synthetic nucleosome map (reproducible):",
        "   nucreads synthetic \\",
        "     --wp-num 50 --fuz-num 20 \\",
        "     --seed 1 \\",
        "     --outdir synthetic/",
        "   Outputs: synthetic/synthetic_reads.tsv.gz, synthetic/ground_truth.json",
        "",
        "3) Synthetic map with a control sample (tiling-array-like ratio):",
        "   nucreads synthetic --seed 1 --as-ratio --outdir synthetic_ratio/",
        "   Outputs: also control_reads.tsv.gz and ratio.tsv.gz (NA where undefined)",
        "",
        "Tip: use --dry-run to validate inputs before writing anything.",
    ]
    print("\n".join(lines))
    return 0


def cmd_make_toy_data(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    if args.dry_run:
        print(f"Would write toy data into: {outdir}")
        return 0

    summary = make_toy_data(outdir=outdir)
    print(json.dumps(summary, indent=2))
    return 0


def cmd_read_bam(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    log_path = _log_path(outdir, "read_bam.log")
    _setup_logging(args.verbose, logfile=None if args.dry_run else log_path)

    logger = logging.getLogger("nucreads")
    logger.info("nucreads %s", __version__)

    try:
        if args.dry_run:
            print(f"Dry-run: {len(args.bam)} input file(s) found, type={args.type}.")
            print("Planned outputs:")
            for bam_path in args.bam:
                print(f"  {outdir / _reads_tsv_name(bam_path)}")
            print(f"  {outdir / 'summary.json'}")
            print(f"  {outdir / 'report.html'}")
            return 0

        outdir = ensure_outdir(outdir)

        if args.resume and (outdir / "summary.json").exists():
            logger.info("Resume enabled: summary.json already exists in %s", outdir)
            print(str(outdir / "report.html"))
            return 0

        # all inputs are loaded before anything is written; one bad file aborts the run
        loaded = []
        for bam_path in args.bam:
            counts: Dict[str, int] = {}
            reads = read_bam(bam_path, args.type, progress=not args.no_progress, counts=counts)
            if reads.is_empty:
                logger.warning("No reads obtained from %s", bam_path)
            loaded.append((bam_path, reads, counts))

        files: List[Dict[str, Any]] = []
        outputs: List[str] = []
        for bam_path, reads, counts in loaded:
            tsv_name = _reads_tsv_name(bam_path)
            write_reads_tsv(outdir / tsv_name, reads)
            outputs.append(tsv_name)
            files.append(
                {
                    "name": str(bam_path),
                    "reads_tsv_gz": str(outdir / tsv_name),
                    "n_reads": len(reads),
                    "counts": counts,
                    "per_chrom": reads.counts(),
                }
            )

        write_json(
            outdir / "summary.json",
            {"version": __version__, "type": args.type, "files": files},
        )
        report_path = render_report(
            outdir=outdir,
            version=__version__,
            title=f"read-bam ({args.type})",
            samples=files,
            outputs=outputs,
            params={"type": args.type},
        )

        logger.info("Report written: %s", report_path)
        print(str(report_path))
        return 0
    except Exception as e:
        return _handle_error(e, log_path=log_path)


def cmd_synthetic(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    log_path = _log_path(outdir, "synthetic.log")
    _setup_logging(args.verbose, logfile=None if args.dry_run else log_path)

    logger = logging.getLogger("nucreads")
    logger.info("nucreads %s", __version__)

    try:
        params = SyntheticParams(
            wp_num=args.wp_num,
            wp_del=args.wp_del,
            wp_var=args.wp_var,
            fuz_num=args.fuz_num,
            fuz_var=args.fuz_var,
            max_cover=args.max_cover,
            nuc_len=args.nuc_len,
            lin_len=args.lin_len,
            seed=args.seed,
            as_ratio=bool(args.as_ratio),
        )
        params.validate()

        planned = ["synthetic_reads.tsv.gz", "ground_truth.json"]
        if params.as_ratio:
            planned += ["control_reads.tsv.gz", "ratio.tsv.gz"]

        if args.dry_run:
            print("Dry-run: parameters look OK.")
            if params.seed is None:
                print("No --seed given: output will not be reproducible.")
            print("Planned outputs:")
            for name in planned + ["summary.json", "report.html"]:
                print(f"  {outdir / name}")
            return 0

        outdir = ensure_outdir(outdir)
        smap = generate_synthetic_map(params)

        write_reads_tsv(outdir / "synthetic_reads.tsv.gz", smap.reads)
        write_json(
            outdir / "ground_truth.json",
            {"well_positioned": smap.wp.to_jsonable(), "fuzzy": smap.fuz.to_jsonable()},
        )
        if smap.control is not None:
            write_reads_tsv(outdir / "control_reads.tsv.gz", smap.control)
        if smap.ratio is not None:
            write_ratio_tsv(outdir / "ratio.tsv.gz", smap.ratio)

        summary = smap.summary()
        summary["version"] = __version__
        write_json(outdir / "summary.json", summary)

        samples: List[Dict[str, Any]] = [
            {
                "name": "Synthetic reads",
                "n_reads": len(smap.reads),
                "counts": {
                    "Well-positioned reads": len(smap.wp.reads),
                    "Fuzzy reads": len(smap.fuz.reads),
                    "Well-positioned nucleosomes without reads": summary["n_wp_deleted"],
                },
            }
        ]
        if smap.control is not None:
            samples.append(
                {
                    "name": "Control reads",
                    "n_reads": len(smap.control),
                    "counts": {
                        "Ratio positions": summary.get("ratio_length", 0),
                        "Ratio positions undefined (NA)": summary.get("ratio_missing", 0),
                    },
                }
            )

        report_path = render_report(
            outdir=outdir,
            version=__version__,
            title="synthetic nucleosome map",
            samples=samples,
            outputs=planned,
            params=params.to_jsonable(),
        )

        logger.info("Report written: %s", report_path)
        print(str(report_path))
        return 0
    except Exception as e:
        return _handle_error(e, log_path=None if args.dry_run else log_path)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "quickstart":
        return cmd_quickstart()
    if args.cmd == "make-toy-data":
        return cmd_make_toy_data(args)
    if args.cmd == "read-bam":
        return cmd_read_bam(args)
    if args.cmd == "synthetic":
        return cmd_synthetic(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
