import math

import numpy as np
import pytest

from indepaf.afcalc import IndependentAllelesCalculator
from indepaf.models import Allele, VariantSite
from indepaf.results import AFCalcResult
from indepaf.solver import BiallelicSolver, DiploidExactSolver
from indepaf.utils import normalize_from_log10

A = Allele("A", is_ref=True)
C = Allele("C")
G = Allele("G")
T = Allele("T")


class CannedSolver(BiallelicSolver):
    """Returns fixed likelihoods per alternate and records every call."""

    def __init__(self, log10_l_eq0_by_alt):
        self.log10_l_eq0_by_alt = log10_l_eq0_by_alt
        self.calls = []

    @property
    def name(self) -> str:
        return "canned"

    def solve(self, subcontext, log10_priors):
        self.calls.append((subcontext, log10_priors))
        return AFCalcResult(
            alleles=subcontext.alleles,
            allele_counts_mle=(1,),
            log10_likelihoods=tuple(normalize_from_log10([self.log10_l_eq0_by_alt[subcontext.alt], 0.0])),
            log10_priors=tuple(log10_priors),
            log10_p_ref_by_allele={},
        )


def make_site():
    return VariantSite(
        chrom="1",
        pos=100,
        ref=A,
        alts=(C, G, T),
        pls={"s1": tuple(range(10)), "s2": (0,) * 10},
    )


def test_calculator_with_stub_solver():
    solver = CannedSolver({C: -1.0, G: -4.0, T: -2.0})
    calc = IndependentAllelesCalculator(solver)
    priors = (math.log10(0.9), math.log10(0.1))

    combined = calc.compute(make_site(), log10_priors=priors)

    # sub-contexts reach the solver in alternate order, all with the same prior object
    assert [sub.alt for sub, _ in solver.calls] == [C, G, T]
    assert all(p is priors for _, p in solver.calls)
    assert solver.calls[0][0].pls["s2"] == (0, 0, 0)

    assert [r.alleles[1] for r in combined.per_allele] == [G, T, C]
    for rank, res in enumerate(combined.per_allele):
        assert res.log10_prior_of_af_gt0 == pytest.approx((rank + 1) * math.log10(0.1))
    assert combined.alt_alleles == (C, G, T)
    assert combined.allele_counts_mle == (1, 1, 1)


def test_compute_independent_uses_cached_default_priors():
    solver = CannedSolver({C: -1.0, G: -1.0, T: -1.0})
    calc = IndependentAllelesCalculator(solver, heterozygosity=1e-2)
    results = calc.compute_independent(make_site())
    assert len(results) == 3
    first = solver.calls[0][1]
    assert first is calc.priors_for(2)
    assert first.shape == (5,)
    assert not first.flags.writeable


def test_end_to_end_with_exact_solver():
    # alleles A, C, G; genotype order AA AC CC AG CG GG
    site = VariantSite(
        chrom="1",
        pos=5,
        ref=A,
        alts=(C, G),
        pls={
            "s1": (60, 0, 60, 60, 60, 120),
            "s2": (120, 60, 0, 120, 60, 120),
            "s3": (0, 30, 60, 30, 60, 60),
        },
    )
    calc = IndependentAllelesCalculator(DiploidExactSolver())
    combined = calc.compute(site)

    assert combined.rank_of(C) == 0
    assert combined.rank_of(G) == 1
    assert combined.allele_count_at_mle(C) == 3
    assert combined.allele_count_at_mle(G) == 0
    assert combined.is_polymorphic(C, -3.0)
    assert not combined.is_polymorphic(G, -3.0)
    assert combined.site_qual > 30
    assert np.isfinite(combined.log10_posterior_of_af_gt0)


def test_compute_detailed_keeps_uncorrected_results():
    solver = CannedSolver({C: -1.0, G: -4.0, T: -2.0})
    calc = IndependentAllelesCalculator(solver)
    priors = (math.log10(0.9), math.log10(0.1))

    independent, combined = calc.compute_detailed(make_site(), log10_priors=priors)

    assert [r.alleles[1] for r in independent] == [C, G, T]
    assert all(r.log10_priors == pytest.approx(priors) for r in independent)
    assert [r.alleles[1] for r in combined.per_allele] == [G, T, C]
    assert calc.compute(make_site(), log10_priors=priors).site_qual == pytest.approx(combined.site_qual)
