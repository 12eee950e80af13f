"""Rank-dependent ("theta-N") prior correction across independently solved alternates.

Each alternate of a multi-allelic site is first solved on its own, against
the same prior as if the site were biallelic. The results are then ranked by
their posterior support for AF > 0 and the prior of the allele at rank ``r``
(0-based) is raised to the power ``r + 1``: the best-supported allele keeps the
single-allele prior and every further allele is increasingly unlikely a priori.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence

from .errors import ContractViolation
from .models import Allele
from .results import AFCalcResult, CombinedAFResult
from .utils import log10_one_minus_pow10

logger = logging.getLogger(__name__)

_PRIOR_TOLERANCE = 1e-6


def thetan_log10_prior_of_af_gt0(log10_single_allele_prior: float, rank: int) -> float:
    """log10 prior of AF > 0 for the allele at 0-based ``rank``."""
    if rank < 0:
        raise ContractViolation(f"rank must be >= 0, got {rank}")
    return (rank + 1) * log10_single_allele_prior


def sort_by_posterior_support(results: Sequence[AFCalcResult]) -> List[AFCalcResult]:
    """Stable sort, most supported alternate (highest posterior of AF > 0) first."""
    return sorted(results, key=lambda r: r.log10_posterior_of_af_gt0, reverse=True)


def apply_multiallelic_priors(results: Sequence[AFCalcResult]) -> List[AFCalcResult]:
    """Rescale each result's prior of AF > 0 by its rank and recompute its posterior.

    All inputs must share the single-allele prior; it is read from the first
    result. The input objects are left untouched and the returned list is in
    rank order.
    """
    if len(results) == 0:
        raise ContractViolation("apply_multiallelic_priors needs at least one result")

    log10_single_prior = results[0].log10_prior_of_af_gt0
    for res in results[1:]:
        if abs(res.log10_prior_of_af_gt0 - log10_single_prior) > _PRIOR_TOLERANCE:
            raise ContractViolation(
                f"Results do not share a prior of AF > 0: {res.log10_prior_of_af_gt0} vs {log10_single_prior}"
            )

    corrected: List[AFCalcResult] = []
    for rank, res in enumerate(sort_by_posterior_support(results)):
        log10_prior_gt0 = thetan_log10_prior_of_af_gt0(log10_single_prior, rank)
        log10_prior_eq0 = log10_one_minus_pow10(log10_prior_gt0)
        corrected.append(res.with_new_priors([log10_prior_eq0, log10_prior_gt0]))

        logger.debug(
            "theta-N rank %d allele %s: prior(AF>0) %.4f -> %.4f, posterior(AF>0) %.4f -> %.4f",
            rank,
            res.alleles[-1],
            res.log10_prior_of_af_gt0,
            log10_prior_gt0,
            res.log10_posterior_of_af_gt0,
            corrected[-1].log10_posterior_of_af_gt0,
        )
    return corrected


def combine_independent_results(
    alleles: Sequence[Allele],
    corrected: Sequence[AFCalcResult],
) -> CombinedAFResult:
    """Assemble the joint site result from prior-corrected biallelic results.

    The alternates are treated as independent: the joint probability that no
    alternate segregates is the product of the per-allele posteriors of AF == 0.

    Parameters
    ----------
    alleles:
        The site's alleles, reference first, alternates in input order.
    corrected:
        Output of :func:`apply_multiallelic_priors`, one result per alternate.
    """
    alleles = tuple(alleles)
    alts = alleles[1:]
    if len(corrected) != len(alts):
        raise ContractViolation(f"Expected {len(alts)} per-allele results, got {len(corrected)}")

    counts: Dict[Allele, int] = {}
    p_ref: Dict[Allele, float] = {}
    log10_p_eq0_sum = 0.0
    n_evaluations = 0
    for res in corrected:
        if len(res.alleles) != 2:
            raise ContractViolation("combine_independent_results expects biallelic results")
        alt = res.alleles[1]
        if alt not in alts:
            raise ContractViolation(f"Allele {alt} is not an alternate of the site")
        if alt in counts:
            raise ContractViolation(f"Allele {alt} appears in more than one result")
        counts[alt] = res.allele_count_at_mle(alt)
        p_ref[alt] = res.log10_posterior_of_af_eq0
        log10_p_eq0_sum += res.log10_posterior_of_af_eq0
        n_evaluations += res.n_evaluations

    return CombinedAFResult(
        alleles=alleles,
        allele_counts_mle=tuple(counts[a] for a in alts),
        log10_posterior_of_af_eq0=min(0.0, log10_p_eq0_sum),
        log10_p_ref_by_allele={a: p_ref[a] for a in alts},
        per_allele=tuple(corrected),
        n_evaluations=n_evaluations,
    )
