import subprocess
import sys
from pathlib import Path

from indepaf.toy_data import make_toy_data


def _run_cli(args: list[str]) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "indepaf"] + args,
        check=False,
        capture_output=True,
        text=True,
    )


def test_cli_help() -> None:
    cp = _run_cli(["--help"])
    assert cp.returncode == 0
    assert "IndepAF" in cp.stdout or "indepaf" in cp.stdout.lower()


def test_quickstart_output() -> None:
    cp = _run_cli(["quickstart"])
    assert cp.returncode == 0
    assert "indepaf call" in cp.stdout
    assert "indepaf decompose" in cp.stdout


def test_call_dry_run_does_not_write_outputs(tmp_path: Path) -> None:
    toy = make_toy_data(outdir=tmp_path / "toy")
    outdir = tmp_path / "call"
    cp = _run_cli(["call", "--vcf", toy["vcf"], "--outdir", str(outdir), "--dry-run"])
    assert cp.returncode == 0
    assert "Dry-run" in cp.stdout
    assert not (outdir / "summary.json").exists()


def test_make_toy_data_and_call(tmp_path: Path) -> None:
    toy_dir = tmp_path / "toy"
    cp = _run_cli(["make-toy-data", "--outdir", str(toy_dir)])
    assert cp.returncode == 0

    outdir = tmp_path / "out"
    cp = _run_cli(
        ["call", "--vcf", str(toy_dir / "toy.vcf.gz"), "--outdir", str(outdir), "--no-progress"]
    )
    assert cp.returncode == 0, cp.stderr
    assert (outdir / "report.html").exists()
    assert (outdir / "alleles.tsv.gz").exists()
    assert (outdir / "plots" / "thetan_by_rank.png").exists()
    assert (outdir / "logs" / "call.log").exists()

    cp = _run_cli(
        ["call", "--vcf", str(toy_dir / "toy.vcf.gz"), "--outdir", str(outdir), "--resume"]
    )
    assert cp.returncode == 0
    assert "report.html" in cp.stdout


def test_decompose_prints_biallelic_pls(tmp_path: Path) -> None:
    toy = make_toy_data(outdir=tmp_path / "toy")
    cp = _run_cli(["decompose", "--vcf", toy["vcf"]])
    assert cp.returncode == 0, cp.stderr
    lines = cp.stdout.strip().splitlines()
    assert lines[0].split("\t")[:4] == ["chrom", "pos", "ref", "alt"]
    # triallelic: 2 alts x 3 samples, quadallelic: 3 alts x 3 samples
    assert len(lines) == 1 + 6 + 9
    first = lines[1].split("\t")
    assert first[:6] == ["chr1", "100", "A", "C", "1", "S1"]
    assert first[6] == "30,0,30,30,30,60"
    assert first[7] == "27,0,30"


def test_missing_pl_header_is_reported(tmp_path: Path) -> None:
    vcf = tmp_path / "nopl.vcf"
    vcf.write_text(
        "##fileformat=VCFv4.2\n"
        "##contig=<ID=chr1,length=100>\n"
        "#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\tFORMAT\tS1\n"
        "chr1\t5\t.\tA\tC\t50\tPASS\t.\t.\t.\n",
        encoding="utf-8",
    )
    cp = _run_cli(["call", "--vcf", str(vcf), "--outdir", str(tmp_path / "out")])
    assert cp.returncode == 2
    assert "PL" in cp.stderr
