import gzip
import json
import math
import subprocess
import sys
from pathlib import Path

import pysam

from nucreads.cli import main
from nucreads.toy_data import _make_read, make_toy_data


def _run_cli(args: list[str]) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "nucreads"] + args,
        check=False,
        capture_output=True,
        text=True,
    )


def test_cli_help() -> None:
    cp = subprocess.run(
        [sys.executable, "-m", "nucreads", "--help"],
        check=True,
        capture_output=True,
        text=True,
    )
    assert "nucreads" in cp.stdout.lower()


def test_quickstart_output() -> None:
    cp = _run_cli(["quickstart"])
    assert cp.returncode == 0
    assert "nucreads read-bam" in cp.stdout
    assert "nucreads synthetic" in cp.stdout


def test_synthetic_dry_run_does_not_write_outputs(tmp_path: Path) -> None:
    outdir = tmp_path / "syn"
    cp = _run_cli(["synthetic", "--seed", "1", "--as-ratio", "--outdir", str(outdir), "--dry-run"])
    assert cp.returncode == 0
    assert "Dry-run" in cp.stdout
    assert "ratio.tsv.gz" in cp.stdout
    assert not (outdir / "summary.json").exists()


def test_synthetic_bad_parameters(tmp_path: Path) -> None:
    cp = _run_cli(["synthetic", "--max-cover", "0", "--outdir", str(tmp_path / "syn"), "--dry-run"])
    assert cp.returncode == 2
    assert "ConfigurationError" in cp.stderr


def test_synthetic_outputs_are_reproducible(tmp_path: Path) -> None:
    common = ["synthetic", "--seed", "1", "--wp-num", "20", "--fuz-num", "5", "--as-ratio"]
    assert main(common + ["--outdir", str(tmp_path / "a")]) == 0
    assert main(common + ["--outdir", str(tmp_path / "b")]) == 0

    for name in ["synthetic_reads.tsv.gz", "control_reads.tsv.gz", "ratio.tsv.gz"]:
        with gzip.open(tmp_path / "a" / name, "rt") as fa, gzip.open(tmp_path / "b" / name, "rt") as fb:
            assert fa.read() == fb.read()

    truth = json.loads((tmp_path / "a" / "ground_truth.json").read_text())
    assert len(truth["well_positioned"]["starts"]) == 20
    assert len(truth["fuzzy"]["starts"]) == 5

    summary = json.loads((tmp_path / "a" / "summary.json").read_text())
    assert summary["params"]["seed"] == 1
    assert (tmp_path / "a" / "report.html").exists()

    with gzip.open(tmp_path / "a" / "ratio.tsv.gz", "rt") as fh:
        rows = [line.split("\t") for line in fh.read().splitlines()[1:]]
    assert rows
    assert [int(pos) for pos, _ in rows] == list(range(1, len(rows) + 1))
    values = [v for _, v in rows if v != "NA"]
    assert all(math.isfinite(float(v)) for v in values)


def test_make_toy_data_and_read_bam(tmp_path: Path) -> None:
    toy_dir = tmp_path / "toy"
    cp = _run_cli(["make-toy-data", "--outdir", str(toy_dir)])
    assert cp.returncode == 0

    outdir = tmp_path / "out"
    cp = _run_cli(
        [
            "read-bam",
            "--bam",
            str(toy_dir / "toy_paired.bam"),
            "--type",
            "paired",
            "--outdir",
            str(outdir),
            "--no-progress",
        ]
    )
    assert cp.returncode == 0, cp.stderr
    assert (outdir / "report.html").exists()

    summary = json.loads((outdir / "summary.json").read_text())
    assert summary["type"] == "paired"
    assert summary["files"][0]["n_reads"] == 4
    assert summary["files"][0]["per_chrom"] == {"chr1": 3, "chr2": 1}

    with gzip.open(outdir / "toy_paired.reads.tsv.gz", "rt") as fh:
        lines = fh.read().splitlines()
    assert lines[0].startswith("chrom\tstart\tend")
    assert len(lines) == 5


def test_read_bam_dry_run(tmp_path: Path) -> None:
    toy = make_toy_data(outdir=tmp_path / "toy")
    outdir = tmp_path / "out"
    cp = _run_cli(["read-bam", "--bam", toy["toy_bam"], "--outdir", str(outdir), "--dry-run"])
    assert cp.returncode == 0
    assert "Dry-run" in cp.stdout
    assert not outdir.exists()


def test_read_bam_reports_decoding_errors(tmp_path: Path) -> None:
    bad = tmp_path / "bad.bam"
    bad.write_bytes(b"garbage")
    cp = _run_cli(["read-bam", "--bam", str(bad), "--outdir", str(tmp_path / "out"), "--no-progress"])
    assert cp.returncode == 2
    assert "InputDecodingError" in cp.stderr


def test_read_bam_bad_second_file_writes_nothing(tmp_path: Path) -> None:
    toy = make_toy_data(outdir=tmp_path / "toy")
    broken = tmp_path / "broken.bam"
    header = {"HD": {"VN": "1.6"}, "SQ": [{"SN": "chr1", "LN": 1000}]}
    with pysam.AlignmentFile(str(broken), "wb", header=header) as bam:
        bam.write(_make_read("x", 0, 100, 99, mate_start0=200, tlen=150))
        bam.write(_make_read("x", 0, 200, 147, mate_start0=120, tlen=-150))

    outdir = tmp_path / "out"
    cp = _run_cli(["read-bam", "--bam", toy["toy_bam"], str(broken), "--outdir", str(outdir), "--no-progress"])
    assert cp.returncode == 2
    assert "MatePairInconsistency" in cp.stderr
    assert not (outdir / "toy_paired.reads.tsv.gz").exists()
    assert not (outdir / "summary.json").exists()
    assert not (outdir / "report.html").exists()
