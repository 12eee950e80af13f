from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .decompose import decompose
from .models import VariantSite
from .results import AFCalcResult, CombinedAFResult
from .solver import DEFAULT_HETEROZYGOSITY, BiallelicSolver, compute_af_priors
from .thetan import apply_multiallelic_priors, combine_independent_results

logger = logging.getLogger(__name__)


class IndependentAllelesCalculator:
    """Multi-allelic AF calculation as independent biallelic problems.

    The site is decomposed into one sub-context per alternate, each is solved
    by the injected ``solver`` against the same single-allele prior, and the
    results are rank-corrected and combined. Instances hold no per-site state
    and can be shared across threads.
    """

    def __init__(self, solver: BiallelicSolver, *, heterozygosity: float = DEFAULT_HETEROZYGOSITY) -> None:
        self.solver = solver
        self.heterozygosity = float(heterozygosity)
        self._priors_by_n: Dict[int, np.ndarray] = {}

    def priors_for(self, n_samples: int) -> np.ndarray:
        """Shared log10 AC prior for ``n_samples`` diploid samples (read-only)."""
        priors = self._priors_by_n.get(n_samples)
        if priors is None:
            priors = compute_af_priors(2 * n_samples, self.heterozygosity)
            priors.flags.writeable = False
            self._priors_by_n[n_samples] = priors
        return priors

    def compute_independent(
        self,
        site: VariantSite,
        log10_priors: Optional[Sequence[float]] = None,
    ) -> List[AFCalcResult]:
        """Solve every alternate of ``site`` on its own, in alternate order."""
        if log10_priors is None:
            log10_priors = self.priors_for(len(site.samples))
        return [self.solver.solve(sub, log10_priors) for sub in decompose(site)]

    def compute(
        self,
        site: VariantSite,
        log10_priors: Optional[Sequence[float]] = None,
    ) -> CombinedAFResult:
        return self.compute_detailed(site, log10_priors)[1]

    def compute_detailed(
        self,
        site: VariantSite,
        log10_priors: Optional[Sequence[float]] = None,
    ) -> Tuple[List[AFCalcResult], CombinedAFResult]:
        """Like :meth:`compute`, also returning the uncorrected per-allele results in alternate order."""
        independent = self.compute_independent(site, log10_priors)
        corrected = apply_multiallelic_priors(independent)
        combined = combine_independent_results(site.alleles, corrected)
        logger.debug(
            "%s:%d %s QUAL=%.2f MLE=%s",
            site.chrom,
            site.pos,
            ",".join(a.bases for a in site.alts),
            combined.site_qual,
            combined.allele_counts_mle,
        )
        return independent, combined
