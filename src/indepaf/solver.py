"""The biallelic allele-frequency solver boundary and a reference exact solver.

The multi-allelic machinery only needs something that turns one biallelic
sub-context plus a prior over allele counts into an :class:`AFCalcResult`.
:class:`BiallelicSolver` is that seam; :class:`DiploidExactSolver` is the
exact diploid allele-count recursion used by default.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import Sequence

import numpy as np

from .errors import ContractViolation, NumericDegeneracyError
from .genotypes import pls_to_log10
from .models import BiallelicSubcontext
from .results import AFCalcResult
from .utils import log10_sum_log10, normalize_from_log10

logger = logging.getLogger(__name__)

DEFAULT_HETEROZYGOSITY = 1e-3


def compute_af_priors(n_chromosomes: int, heterozygosity: float = DEFAULT_HETEROZYGOSITY) -> np.ndarray:
    """log10 prior over the alternate allele count ``k = 0..n_chromosomes``.

    Neutral infinite-sites model: ``P(k) = heterozygosity / k`` for ``k >= 1``
    and the remaining mass at ``k = 0``.
    """
    if n_chromosomes < 1:
        raise ContractViolation(f"n_chromosomes must be >= 1, got {n_chromosomes}")
    if not 0.0 < heterozygosity < 1.0:
        raise ContractViolation(f"heterozygosity must be in (0, 1), got {heterozygosity}")

    ks = np.arange(1, n_chromosomes + 1, dtype=float)
    p_non_ref = heterozygosity / ks
    total = float(np.sum(p_non_ref))
    if total >= 1.0:
        raise ContractViolation(
            f"heterozygosity {heterozygosity} is too large for {n_chromosomes} chromosomes "
            f"(prior of AC>0 sums to {total:.3f})"
        )
    return np.concatenate(([math.log10(1.0 - total)], np.log10(p_non_ref)))


class BiallelicSolver(ABC):
    """Computes the posterior of AF == 0 / AF > 0 for one biallelic sub-context."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier used in logs and summaries."""

    @abstractmethod
    def solve(self, subcontext: BiallelicSubcontext, log10_priors: Sequence[float]) -> AFCalcResult:
        """Return the result for ``subcontext`` under ``log10_priors``.

        ``log10_priors`` is indexed by alternate allele count and is shared,
        read-only, by every sub-context of a site.
        """


def log10_ac_likelihoods(genotype_pls: Sequence[Sequence[int]]) -> np.ndarray:
    """log10 P(data | AC = k) for ``k = 0..2N`` over ``N`` diploid samples.

    Each sample contributes (hom-ref, het, hom-alt) PLs. Samples are added one
    at a time; ``z_j(k)`` is the likelihood of the first ``j`` samples carrying
    ``k`` alternate alleles across their ``2j`` chromosomes.
    """
    if len(genotype_pls) == 0:
        raise ContractViolation("At least one sample is required")

    z = np.zeros(1, dtype=float)
    neg_inf = np.array([-np.inf])
    for j, pls in enumerate(genotype_pls, start=1):
        if len(pls) != 3:
            raise ContractViolation(f"Biallelic PLs must have 3 values, got {len(pls)}")
        gl_ref, gl_het, gl_alt = pls_to_log10(pls)
        n = 2 * j
        ks = np.arange(n + 1, dtype=float)

        with np.errstate(divide="ignore"):
            w_ref = np.log10(np.maximum((n - ks) * (n - ks - 1), 0.0))
            w_het = np.log10(np.maximum(2.0 * ks * (n - ks), 0.0))
            w_alt = np.log10(np.maximum(ks * (ks - 1), 0.0))

        terms = np.vstack(
            [
                w_ref + gl_ref + np.concatenate((z, neg_inf, neg_inf)),
                w_het + gl_het + np.concatenate((neg_inf, z, neg_inf)),
                w_alt + gl_alt + np.concatenate((neg_inf, neg_inf, z)),
            ]
        )
        best = np.max(terms, axis=0)
        if not np.all(np.isfinite(best)):
            raise NumericDegeneracyError(f"Allele-count likelihood underflowed at sample {j}")
        z = best + np.log10(np.sum(np.power(10.0, terms - best), axis=0)) - math.log10(n * (n - 1))
    return z


class DiploidExactSolver(BiallelicSolver):
    """Exact diploid biallelic allele-count model."""

    @property
    def name(self) -> str:
        return "diploid-exact"

    def solve(self, subcontext: BiallelicSubcontext, log10_priors: Sequence[float]) -> AFCalcResult:
        pls = list(subcontext.pls.values())
        log10_l = log10_ac_likelihoods(pls)

        priors = np.asarray(log10_priors, dtype=float)
        if priors.shape != log10_l.shape:
            raise ContractViolation(
                f"Prior vector of length {priors.size} does not match {subcontext.n_samples} "
                f"diploid samples (expected {log10_l.size})"
            )

        likelihoods = normalize_from_log10([log10_l[0], log10_sum_log10(log10_l[1:])])
        collapsed_priors = normalize_from_log10([priors[0], log10_sum_log10(priors[1:])])
        mle_ac = int(np.argmax(log10_l))

        posteriors = normalize_from_log10(likelihoods + collapsed_priors)

        return AFCalcResult(
            alleles=subcontext.alleles,
            allele_counts_mle=(mle_ac,),
            log10_likelihoods=(float(likelihoods[0]), float(likelihoods[1])),
            log10_priors=(float(collapsed_priors[0]), float(collapsed_priors[1])),
            log10_p_ref_by_allele={subcontext.alt: float(posteriors[0])},
            n_evaluations=int(log10_l.size),
        )
