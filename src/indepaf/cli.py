from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

from . import __version__
from .caller import call_vcf
from .decompose import decompose
from .errors import ContractViolation
from .plotting import plot_alt_count_hist, plot_qual_hist, plot_thetan_by_rank
from .report import render_report
from .sites import load_variant_sites, new_site_stats
from .solver import DEFAULT_HETEROZYGOSITY
from .toy_data import make_toy_data
from .utils import ensure_outdir
from .validation import check_vcf_index, inspect_vcf_header


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
    msg = f"{err.__class__.__name__}: {err}"
    sys.stderr.write(msg + "\n")
    if log_path is not None:
        sys.stderr.write(f"See log: {log_path}\n")
    return 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="indepaf",
        description=(
            "IndepAF: per-allele posterior probabilities for multi-allelic sites by "
            "independent biallelic decomposition with a rank-dependent (theta-N) prior."
        ),
    )
    p.add_argument("--version", action="version", version=f"indepaf {__version__}")

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
        help="Generate a tiny VCF with biallelic and multi-allelic PL records for demos/tests.",
    )
    t.add_argument("--outdir", required=True, help="Output directory for toy data.")
    t.add_argument("--dry-run", action="store_true", help="Validate paths without writing files.")

    # -----------------
    # decompose
    # -----------------
    d = sub.add_parser(
        "decompose",
        help="Print the biallelic PLs of every alternate allele, per site and sample.",
    )
    d.add_argument("--vcf", required=True, type=_path_exists, help="VCF/BCF with PL FORMAT field.")
    d.add_argument(
        "--sample",
        action="append",
        default=None,
        help="Sample to include (repeatable; default: all samples).",
    )
    d.add_argument(
        "--min-alts",
        type=int,
        default=2,
        help="Only report sites with at least this many alternate alleles.",
    )
    d.add_argument("--output", default=None, help="Output TSV path (default: stdout).")
    d.add_argument("--strict", action="store_true", help="Abort on the first malformed record.")
    d.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    # -----------------
    # call
    # -----------------
    c = sub.add_parser(
        "call",
        help="Compute per-allele posteriors for every site in a VCF and write a report.",
    )
    c.add_argument("--vcf", required=True, type=_path_exists, help="VCF/BCF with PL FORMAT field.")
    c.add_argument("--outdir", required=True, help="Output directory.")
    c.add_argument(
        "--sample",
        action="append",
        default=None,
        help="Sample to include (repeatable; default: all samples).",
    )
    c.add_argument(
        "--heterozygosity",
        type=float,
        default=DEFAULT_HETEROZYGOSITY,
        help="Per-site heterozygosity used for the single-allele prior.",
    )
    c.add_argument(
        "--min-qual",
        type=float,
        default=30.0,
        help="Phred-scaled QUAL at which an alternate allele is called polymorphic.",
    )
    c.add_argument(
        "--min-alts",
        type=int,
        default=1,
        help="Skip sites with fewer alternate alleles (2 = multi-allelic only).",
    )
    c.add_argument("--require-pass", action="store_true", help="Require FILTER=PASS.")
    c.add_argument(
        "--strict",
        action="store_true",
        help="Abort on the first malformed or degenerate site instead of skipping it.",
    )
    c.add_argument(
        "--alleles-tsv",
        default=None,
        help="Optional path for per-allele TSV.GZ (default: outdir/alleles.tsv.gz).",
    )
    c.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
    c.add_argument("--dry-run", action="store_true", help="Validate inputs and print planned outputs.")
    c.add_argument("--resume", action="store_true", help="Skip if outputs already exist.")
    c.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    return p


# -----------------
# Command handlers
# -----------------

def cmd_quickstart() -> int:
    lines = [
        "IndepAF quickstart (copy/paste):",
        "",
        "1) Per-allele posteriors for a cohort VCF:",
        "   indepaf call \\",
        "     --vcf cohort.vcf.gz \\",
        "     --outdir results/",
        "   Outputs: results/report.html, results/alleles.tsv.gz, results/summary.json",
        "",
        "2) Multi-allelic sites only, stricter calling threshold:",
        "   indepaf call --vcf cohort.vcf.gz --outdir multi/ --min-alts 2 --min-qual 50",
        "",
        "3) Inspect the biallelic PLs each alternate is tested with:",
        "   indepaf decompose --vcf cohort.vcf.gz --sample NA12878",
        "",
        "Tip: indepaf make-toy-data --outdir toy/ creates a small VCF to try these on.",
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


def _write_decomposition(args: argparse.Namespace, out: TextIO) -> dict:
    stats = new_site_stats()
    out.write("\t".join(["chrom", "pos", "ref", "alt", "alt_index", "sample", "pl", "biallelic_pl"]) + "\n")
    for site in load_variant_sites(
        args.vcf,
        samples=args.sample,
        min_alts=int(args.min_alts),
        strict=bool(args.strict),
        stats=stats,
    ):
        try:
            subcontexts = decompose(site)
        except ContractViolation as e:
            if args.strict:
                raise
            logging.getLogger("indepaf").warning("Skipping %s: %s", site.record_id, e)
            continue
        for sub in subcontexts:
            for sample, bi_pl in sub.pls.items():
                full = site.pls[sample]
                full_s = ",".join(f"{x:g}" for x in full) if full is not None else "."
                out.write(
                    f"{site.chrom}\t{site.pos}\t{site.ref.bases}\t{sub.alt.bases}\t{sub.alt_index}\t"
                    f"{sample}\t{full_s}\t{','.join(str(x) for x in bi_pl)}\n"
                )
    return stats


def cmd_decompose(args: argparse.Namespace) -> int:
    _setup_logging(args.verbose, logfile=None)
    logger = logging.getLogger("indepaf")

    try:
        inspect_vcf_header(args.vcf)
        if args.output is None:
            stats = _write_decomposition(args, sys.stdout)
        else:
            out_path = Path(args.output)
            out_path.parent.mkdir(parents=True, exist_ok=True)
            with open(out_path, "wt", encoding="utf-8") as fh:
                stats = _write_decomposition(args, fh)
        logger.info("Decomposition done: %s", json.dumps(stats, sort_keys=True))
        return 0
    except Exception as e:
        return _handle_error(e, log_path=None)


def cmd_call(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    log_path = _log_path(outdir, "call.log")
    _setup_logging(args.verbose, logfile=None if args.dry_run else log_path)

    logger = logging.getLogger("indepaf")
    logger.info("indepaf %s", __version__)

    try:
        check_vcf_index(args.vcf)
        header = inspect_vcf_header(args.vcf)

        if args.dry_run:
            print("Dry-run: inputs look OK.")
            print(f"Samples in VCF: {len(header['samples'])}")
            print(f"PL Number: {header['pl_number']}")
            print("Planned outputs:")
            print(f"  report.html -> {outdir / 'report.html'}")
            print(f"  alleles.tsv.gz -> {outdir / 'alleles.tsv.gz'}")
            print(f"  summary.json -> {outdir / 'summary.json'}")
            return 0

        outdir = ensure_outdir(outdir)

        if args.resume and (outdir / "summary.json").exists():
            logger.info("Resume enabled: summary.json already exists in %s", outdir)
            print(str(outdir / "report.html"))
            return 0

        run = call_vcf(
            vcf_path=args.vcf,
            outdir=outdir,
            heterozygosity=float(args.heterozygosity),
            min_qual=float(args.min_qual),
            samples=args.sample,
            require_pass=bool(args.require_pass),
            min_alts=int(args.min_alts),
            strict=bool(args.strict),
            alleles_tsv_gz=args.alleles_tsv,
            progress=not bool(args.no_progress),
        )

        plots_dir = Path(outdir) / "plots"
        plots_dir.mkdir(parents=True, exist_ok=True)

        qual_png = plots_dir / "qual_hist.png"
        alt_count_png = plots_dir / "alt_count_hist.png"
        thetan_png = plots_dir / "thetan_by_rank.png"

        plot_qual_hist(
            bin_edges=run["qual_hist"]["bin_edges"],
            counts=run["qual_hist"]["counts"],
            out_png=qual_png,
        )
        plot_alt_count_hist(alt_count_hist=run["alt_count_hist"], out_png=alt_count_png)
        plot_thetan_by_rank(rank_means=run["rank_means"], out_png=thetan_png)

        plots_rel = {
            "qual_hist": str(Path("plots") / qual_png.name),
            "alt_count_hist": str(Path("plots") / alt_count_png.name),
            "thetan_by_rank": str(Path("plots") / thetan_png.name),
        }

        samples_used = ",".join(args.sample) if args.sample else "ALL"
        report_path = render_report(
            outdir=outdir,
            version=__version__,
            run=run,
            samples=samples_used,
            plots=plots_rel,
        )

        logger.info("Report written: %s", report_path)
        print(str(report_path))
        return 0
    except Exception as e:
        return _handle_error(e, log_path=log_path)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "quickstart":
        return cmd_quickstart()
    if args.cmd == "make-toy-data":
        return cmd_make_toy_data(args)
    if args.cmd == "decompose":
        return cmd_decompose(args)
    if args.cmd == "call":
        return cmd_call(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
