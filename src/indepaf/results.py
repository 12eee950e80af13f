from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Sequence, Tuple

import numpy as np

from .errors import ContractViolation
from .models import Allele
from .utils import log10_one_minus_pow10, normalize_from_log10, phred_from_log10

_LOG10_PROB_TOLERANCE = 1e-6


def _check_log10_probs(name: str, values: Sequence[float]) -> Tuple[float, float]:
    if len(values) != 2:
        raise ContractViolation(f"{name} must hold [AF=0, AF>0], got {len(values)} values")
    vals = (float(values[0]), float(values[1]))
    if any(math.isnan(v) or v > _LOG10_PROB_TOLERANCE for v in vals):
        raise ContractViolation(f"{name} must be log10 probabilities <= 0, got {list(vals)}")
    total = float(np.sum(np.power(10.0, vals)))
    if abs(total - 1.0) > _LOG10_PROB_TOLERANCE:
        raise ContractViolation(f"{name} must sum to 1 in linear space, got {total}")
    return vals


@dataclass(frozen=True)
class AFCalcResult:
    """Outcome of one allele-frequency calculation.

    For a biallelic calculation ``alleles`` is (ref, alt). The two-element
    log10 vectors are [AF == 0, AF > 0], each normalized; posteriors are
    derived from likelihoods and priors on construction.

    Attributes
    ----------
    alleles:
        Alleles used in genotyping, reference first.
    allele_counts_mle:
        Maximum-likelihood allele count per alternate, aligned with ``alleles[1:]``.
    log10_likelihoods:
        Normalized log10 likelihoods of the data given AF == 0 and AF > 0.
    log10_priors:
        Normalized log10 priors of AF == 0 and AF > 0.
    log10_p_ref_by_allele:
        Alternate -> log10 probability that its count is zero.
    n_evaluations:
        Work counter reported by the solver.
    """

    alleles: Tuple[Allele, ...]
    allele_counts_mle: Tuple[int, ...]
    log10_likelihoods: Tuple[float, float]
    log10_priors: Tuple[float, float]
    log10_p_ref_by_allele: Mapping[Allele, float]
    n_evaluations: int = 0
    log10_posteriors: Tuple[float, float] = field(init=False)

    def __post_init__(self) -> None:
        if len(self.alleles) < 2:
            raise ContractViolation("AFCalcResult requires a reference and at least one alternate")
        if len(self.allele_counts_mle) != len(self.alleles) - 1:
            raise ContractViolation(
                f"Expected {len(self.alleles) - 1} MLE allele counts, got {len(self.allele_counts_mle)}"
            )
        likelihoods = _check_log10_probs("log10_likelihoods", self.log10_likelihoods)
        priors = _check_log10_probs("log10_priors", self.log10_priors)
        posteriors = normalize_from_log10(np.add(likelihoods, priors))

        object.__setattr__(self, "alleles", tuple(self.alleles))
        object.__setattr__(self, "allele_counts_mle", tuple(int(x) for x in self.allele_counts_mle))
        object.__setattr__(self, "log10_likelihoods", likelihoods)
        object.__setattr__(self, "log10_priors", priors)
        object.__setattr__(self, "log10_posteriors", (float(posteriors[0]), float(posteriors[1])))
        object.__setattr__(self, "log10_p_ref_by_allele", MappingProxyType(dict(self.log10_p_ref_by_allele)))

    @property
    def log10_likelihood_of_af_eq0(self) -> float:
        return self.log10_likelihoods[0]

    @property
    def log10_likelihood_of_af_gt0(self) -> float:
        return self.log10_likelihoods[1]

    @property
    def log10_prior_of_af_eq0(self) -> float:
        return self.log10_priors[0]

    @property
    def log10_prior_of_af_gt0(self) -> float:
        return self.log10_priors[1]

    @property
    def log10_posterior_of_af_eq0(self) -> float:
        return self.log10_posteriors[0]

    @property
    def log10_posterior_of_af_gt0(self) -> float:
        return self.log10_posteriors[1]

    @property
    def alt_alleles(self) -> Tuple[Allele, ...]:
        return self.alleles[1:]

    def allele_count_at_mle(self, allele: Allele) -> int:
        return self.allele_counts_mle[_alt_position(self.alleles, allele)]

    def log10_p_ref(self, allele: Allele) -> float:
        if allele not in self.log10_p_ref_by_allele:
            raise ContractViolation(f"Allele {allele} was not genotyped in this result")
        return self.log10_p_ref_by_allele[allele]

    def is_polymorphic(self, allele: Allele, log10_min_p_non_ref: float) -> bool:
        """True if P(count of ``allele`` == 0) is below ``10**log10_min_p_non_ref``."""
        return self.log10_p_ref(allele) < log10_min_p_non_ref

    def is_polymorphic_phred_scaled_qual(self, allele: Allele, min_qual: float) -> bool:
        if min_qual < 0:
            raise ContractViolation(f"min_qual must be >= 0, got {min_qual}")
        return self.is_polymorphic(allele, min_qual / -10.0)

    def phred_scaled_qual(self, allele: Allele) -> float:
        return phred_from_log10(self.log10_p_ref(allele))

    def with_new_priors(self, log10_priors: Sequence[float]) -> "AFCalcResult":
        """Return a copy with ``log10_priors`` and the posterior recomputed from them.

        The likelihoods are kept. For a biallelic result the alternate's
        P(count == 0) is rebound to the new posterior of AF == 0.
        """
        p_ref = dict(self.log10_p_ref_by_allele)
        updated = AFCalcResult(
            alleles=self.alleles,
            allele_counts_mle=self.allele_counts_mle,
            log10_likelihoods=self.log10_likelihoods,
            log10_priors=tuple(log10_priors),  # type: ignore[arg-type]
            log10_p_ref_by_allele=p_ref,
            n_evaluations=self.n_evaluations,
        )
        if len(self.alleles) == 2:
            p_ref[self.alleles[1]] = updated.log10_posterior_of_af_eq0
            object.__setattr__(updated, "log10_p_ref_by_allele", MappingProxyType(p_ref))
        return updated


@dataclass(frozen=True)
class CombinedAFResult:
    """Joint result for a multi-allelic site assembled from independent biallelic results.

    ``per_allele`` keeps the prior-corrected biallelic results in rank order
    (most supported first); the other per-allele fields follow the site's
    alternate order.
    """

    alleles: Tuple[Allele, ...]
    allele_counts_mle: Tuple[int, ...]
    log10_posterior_of_af_eq0: float
    log10_p_ref_by_allele: Mapping[Allele, float]
    per_allele: Tuple[AFCalcResult, ...]
    n_evaluations: int = 0

    @property
    def log10_posterior_of_af_gt0(self) -> float:
        return log10_one_minus_pow10(self.log10_posterior_of_af_eq0)

    @property
    def alt_alleles(self) -> Tuple[Allele, ...]:
        return self.alleles[1:]

    def allele_count_at_mle(self, allele: Allele) -> int:
        return self.allele_counts_mle[_alt_position(self.alleles, allele)]

    def log10_p_ref(self, allele: Allele) -> float:
        if allele not in self.log10_p_ref_by_allele:
            raise ContractViolation(f"Allele {allele} is not an alternate of this site")
        return self.log10_p_ref_by_allele[allele]

    def is_polymorphic(self, allele: Allele, log10_min_p_non_ref: float) -> bool:
        return self.log10_p_ref(allele) < log10_min_p_non_ref

    def phred_scaled_qual(self, allele: Allele) -> float:
        return phred_from_log10(self.log10_p_ref(allele))

    @property
    def site_qual(self) -> float:
        """Phred-scaled probability that no alternate allele segregates."""
        return phred_from_log10(self.log10_posterior_of_af_eq0)

    def rank_of(self, allele: Allele) -> int:
        for rank, res in enumerate(self.per_allele):
            if res.alleles[1] == allele:
                return rank
        raise ContractViolation(f"Allele {allele} is not an alternate of this site")


def _alt_position(alleles: Tuple[Allele, ...], allele: Allele) -> int:
    try:
        idx = alleles.index(allele)
    except ValueError:
        raise ContractViolation(f"Allele {allele} is not among {[str(a) for a in alleles]}") from None
    if idx == 0:
        raise ContractViolation(f"Allele {allele} is the reference; no MLE count is tracked for it")
    return idx - 1
