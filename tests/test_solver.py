import math

import numpy as np
import pytest

from indepaf.errors import ContractViolation
from indepaf.models import Allele, BiallelicSubcontext
from indepaf.solver import DiploidExactSolver, compute_af_priors, log10_ac_likelihoods

A = Allele("A", is_ref=True)
C = Allele("C")


def make_sub(pls_list):
    return BiallelicSubcontext(
        chrom="1",
        pos=10,
        ref=A,
        alt=C,
        alt_index=1,
        pls={f"s{i}": tuple(pl) for i, pl in enumerate(pls_list)},
    )


def test_compute_af_priors_sums_to_one():
    priors = compute_af_priors(6, 1e-3)
    assert priors.shape == (7,)
    assert float(np.sum(10 ** priors)) == pytest.approx(1.0)
    assert 10 ** priors[1] == pytest.approx(1e-3)
    assert 10 ** priors[3] == pytest.approx(1e-3 / 3)


@pytest.mark.parametrize("n, het", [(0, 1e-3), (4, 0.0), (4, 1.0), (1000, 0.5)])
def test_compute_af_priors_rejects_bad_input(n, het):
    with pytest.raises(ContractViolation):
        compute_af_priors(n, het)


def test_single_sample_likelihoods_are_its_gls():
    z = log10_ac_likelihoods([(10, 0, 30)])
    assert z == pytest.approx([-1.0, 0.0, -3.0])


def test_uninformative_samples_give_flat_likelihoods():
    z = log10_ac_likelihoods([(0, 0, 0), (0, 0, 0)])
    assert z == pytest.approx([0.0] * 5)


def test_two_sample_recursion_matches_enumeration():
    pls = [(0, 20, 50), (30, 0, 40)]
    gls = [[10 ** (-p / 10) for p in pl] for pl in pls]
    # P(data | AC = k): average over the C(4, k) placements of k alt chromosomes
    expected = []
    for k in range(5):
        total = 0.0
        n_ways = 0
        for g1 in range(3):
            g2 = k - g1
            if not 0 <= g2 <= 2:
                continue
            ways = math.comb(2, g1) * math.comb(2, g2)
            total += ways * gls[0][g1] * gls[1][g2]
            n_ways += ways
        expected.append(math.log10(total / math.comb(4, k)))
    assert log10_ac_likelihoods(pls) == pytest.approx(expected)


def test_solver_detects_clear_variant():
    sub = make_sub([(90, 0, 90), (300, 90, 0), (0, 60, 300)])
    res = DiploidExactSolver().solve(sub, compute_af_priors(6))
    assert res.alleles == (A, C)
    assert res.allele_count_at_mle(C) == 3
    assert res.log10_posterior_of_af_eq0 < -5
    assert res.log10_p_ref(C) == pytest.approx(res.log10_posterior_of_af_eq0)
    assert res.n_evaluations == 7


def test_solver_keeps_reference_for_hom_ref_samples():
    sub = make_sub([(0, 40, 90), (0, 30, 80)])
    res = DiploidExactSolver().solve(sub, compute_af_priors(4))
    assert res.allele_count_at_mle(C) == 0
    assert res.log10_posterior_of_af_gt0 < -5


def test_solver_rejects_prior_of_wrong_length():
    sub = make_sub([(0, 10, 20)])
    with pytest.raises(ContractViolation):
        DiploidExactSolver().solve(sub, compute_af_priors(4))
