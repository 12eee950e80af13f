from __future__ import annotations

import logging
import math
import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
from tqdm import tqdm

from .afcalc import IndependentAllelesCalculator
from .errors import ContractViolation, NumericDegeneracyError
from .models import VariantSite
from .sites import load_variant_sites, new_site_stats
from .solver import DEFAULT_HETEROZYGOSITY, BiallelicSolver, DiploidExactSolver
from .utils import ensure_outdir, open_textmaybe_gzip, write_json

logger = logging.getLogger(__name__)

_QUAL_HIST_MAX = 200.0

ALLELE_COLUMNS = [
    "chrom",
    "pos",
    "id",
    "ref",
    "alt",
    "alt_index",
    "rank",
    "log10_prior_gt0",
    "log10_prior_gt0_thetan",
    "log10_posterior_gt0",
    "log10_posterior_gt0_thetan",
    "qual",
    "mle_ac",
    "polymorphic",
]


def _fmt_qual(q: float) -> str:
    return "inf" if math.isinf(q) else f"{q:.2f}"


def call_vcf(
    *,
    vcf_path: str,
    outdir: str | Path,
    solver: Optional[BiallelicSolver] = None,
    heterozygosity: float = DEFAULT_HETEROZYGOSITY,
    min_qual: float = 30.0,
    samples: Optional[Sequence[str]] = None,
    require_pass: bool = False,
    min_alts: int = 1,
    strict: bool = False,
    alleles_tsv_gz: Optional[str] = None,
    progress: bool = True,
) -> Dict[str, object]:
    """Main workhorse: stream sites, compute per-allele posteriors, write outputs, return summary.

    Each site is decomposed into biallelic sub-contexts, solved independently,
    rank-corrected and combined. A site that fails with a contract violation or
    numeric degeneracy is logged and counted; with ``strict`` the error
    propagates and the run stops.
    """
    t0 = time.time()
    outdir_path = ensure_outdir(outdir)

    if min_qual < 0:
        raise ValueError("min_qual must be >= 0")
    if min_alts < 1:
        raise ValueError("min_alts must be >= 1")

    if solver is None:
        solver = DiploidExactSolver()
    calc = IndependentAllelesCalculator(solver, heterozygosity=heterozygosity)
    log10_min_p_non_ref = min_qual / -10.0

    if alleles_tsv_gz is None:
        alleles_tsv_gz = str(outdir_path / "alleles.tsv.gz")

    site_stats = new_site_stats()
    counts = {
        "sites_processed": 0,
        "sites_failed": 0,
        "sites_polymorphic": 0,
        "alleles_total": 0,
        "alleles_polymorphic": 0,
        "alleles_demoted_by_thetan": 0,
    }

    qual_bins = np.linspace(0.0, _QUAL_HIST_MAX, 41)
    qual_counts = np.zeros(len(qual_bins) - 1, dtype=np.int64)
    alt_count_hist: Dict[int, int] = {}
    rank_sums: Dict[int, Dict[str, float]] = {}

    sites: Iterable[VariantSite] = load_variant_sites(
        vcf_path,
        samples=samples,
        require_pass=require_pass,
        min_alts=min_alts,
        strict=strict,
        stats=site_stats,
    )
    if progress:
        sites = tqdm(sites, unit="site", desc="Calling sites")

    with open_textmaybe_gzip(alleles_tsv_gz, "wt") as tsv_fh:
        tsv_fh.write("\t".join(ALLELE_COLUMNS) + "\n")

        for site in sites:
            try:
                independent, combined = calc.compute_detailed(site)
            except (ContractViolation, NumericDegeneracyError) as e:
                if strict:
                    raise
                counts["sites_failed"] += 1
                logger.warning("Skipping %s (%s:%d): %s", site.record_id, site.chrom, site.pos, e)
                continue

            counts["sites_processed"] += 1
            alt_count_hist[site.n_alts] = alt_count_hist.get(site.n_alts, 0) + 1

            site_qual = combined.site_qual
            qual_counts += np.histogram([min(site_qual, _QUAL_HIST_MAX)], bins=qual_bins)[0]

            original_by_alt = {r.alleles[1]: r for r in independent}
            any_poly = False
            for rank, res in enumerate(combined.per_allele):
                alt = res.alleles[1]
                orig = original_by_alt[alt]
                poly = combined.is_polymorphic(alt, log10_min_p_non_ref)
                any_poly = any_poly or poly

                counts["alleles_total"] += 1
                if poly:
                    counts["alleles_polymorphic"] += 1
                elif orig.is_polymorphic(alt, log10_min_p_non_ref):
                    counts["alleles_demoted_by_thetan"] += 1

                acc = rank_sums.setdefault(
                    rank,
                    {"n": 0.0, "prior": 0.0, "prior_thetan": 0.0, "posterior": 0.0, "posterior_thetan": 0.0},
                )
                acc["n"] += 1
                acc["prior"] += orig.log10_prior_of_af_gt0
                acc["prior_thetan"] += res.log10_prior_of_af_gt0
                acc["posterior"] += orig.log10_posterior_of_af_gt0
                acc["posterior_thetan"] += res.log10_posterior_of_af_gt0

                tsv_fh.write(
                    f"{site.chrom}\t{site.pos}\t{site.record_id}\t{site.ref.bases}\t{alt.bases}\t"
                    f"{site.alts.index(alt) + 1}\t{rank}\t"
                    f"{orig.log10_prior_of_af_gt0:.6f}\t{res.log10_prior_of_af_gt0:.6f}\t"
                    f"{orig.log10_posterior_of_af_gt0:.6f}\t{res.log10_posterior_of_af_gt0:.6f}\t"
                    f"{_fmt_qual(combined.phred_scaled_qual(alt))}\t"
                    f"{combined.allele_count_at_mle(alt)}\t{int(poly)}\n"
                )

            if any_poly:
                counts["sites_polymorphic"] += 1

    rank_means: List[Dict[str, float]] = []
    for rank in sorted(rank_sums):
        acc = rank_sums[rank]
        n = acc["n"]
        rank_means.append(
            {
                "rank": rank,
                "n": int(n),
                "mean_log10_prior_gt0": acc["prior"] / n,
                "mean_log10_prior_gt0_thetan": acc["prior_thetan"] / n,
                "mean_log10_posterior_gt0": acc["posterior"] / n,
                "mean_log10_posterior_gt0_thetan": acc["posterior_thetan"] / n,
            }
        )

    dt = time.time() - t0

    summary = {
        "vcf_path": vcf_path,
        "solver": solver.name,
        "heterozygosity": float(heterozygosity),
        "min_qual": float(min_qual),
        "require_pass": bool(require_pass),
        "min_alts": int(min_alts),
        "strict": bool(strict),
        "alleles_tsv_gz": str(alleles_tsv_gz),
        "site_stats": site_stats,
        "counts": counts,
        "qual_hist": {
            "bin_edges": qual_bins.tolist(),
            "counts": qual_counts.tolist(),
        },
        "alt_count_hist": alt_count_hist,
        "rank_means": rank_means,
        "runtime_seconds": float(dt),
    }

    write_json(outdir_path / "summary.json", summary)
    return summary
