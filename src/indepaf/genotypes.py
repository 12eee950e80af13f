"""Diploid genotype index tables and the multi-allelic -> biallelic PL projection.

Genotypes over ``K`` alleles are the unordered pairs ``(i, j)`` with ``i <= j``,
laid out in VCF ``Number=G`` order: the pair ``(i, j)`` lives at index
``j * (j + 1) / 2 + i``. For alleles A, B, C this is::

    AA AB BB AC BC CC

Projecting onto a focus allele folds every genotype into one of three classes
by how many copies of the focus allele it carries (0, 1 or 2), whatever
fills the remaining slot. The class likelihoods are summed in linear space and
the result is re-expressed as normalized Phred-scaled PLs.
"""

from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import Optional, Sequence, Tuple

import numpy as np

from .errors import ContractViolation, NumericDegeneracyError
from .utils import log10_sum_log10, round_half_up

logger = logging.getLogger(__name__)

PLOIDY = 2
NON_INFORMATIVE_PLS: Tuple[int, int, int] = (0, 0, 0)


def genotype_count(n_alleles: int, ploidy: int = PLOIDY) -> int:
    """Number of unordered genotypes of ``ploidy`` copies over ``n_alleles`` alleles."""
    if n_alleles < 1:
        raise ContractViolation(f"n_alleles must be >= 1, got {n_alleles}")
    if ploidy < 1:
        raise ContractViolation(f"ploidy must be >= 1, got {ploidy}")
    return math.comb(n_alleles + ploidy - 1, ploidy)


def genotype_index(i: int, j: int) -> int:
    """PL index of the unordered genotype ``{i, j}``."""
    if i < 0 or j < 0:
        raise ContractViolation(f"Allele indices must be non-negative, got ({i}, {j})")
    lo, hi = min(i, j), max(i, j)
    return hi * (hi + 1) // 2 + lo


@lru_cache(maxsize=None)
def allele_pairs(n_alleles: int) -> Tuple[Tuple[int, int], ...]:
    """All genotypes over ``n_alleles`` alleles as ``(i, j)`` pairs, in PL order."""
    genotype_count(n_alleles)
    return tuple((i, j) for j in range(n_alleles) for i in range(j + 1))


def allele_pair(index: int) -> Tuple[int, int]:
    """Inverse of :func:`genotype_index`."""
    if index < 0:
        raise ContractViolation(f"Genotype index must be non-negative, got {index}")
    j = 0
    while (j + 1) * (j + 2) // 2 <= index:
        j += 1
    return index - j * (j + 1) // 2, j


@lru_cache(maxsize=None)
def focus_classes(n_alleles: int, focus: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Genotype indices grouped by copies of ``focus`` (0, 1, 2).

    Cached per ``(n_alleles, focus)``; the returned arrays are read-only.
    """
    if not 0 <= focus < n_alleles:
        raise ContractViolation(f"Focus allele {focus} outside [0, {n_alleles - 1}]")
    buckets: Tuple[list, list, list] = ([], [], [])
    for idx, (i, j) in enumerate(allele_pairs(n_alleles)):
        buckets[int(i == focus) + int(j == focus)].append(idx)

    out = []
    for b in buckets:
        arr = np.asarray(b, dtype=np.intp)
        arr.flags.writeable = False
        out.append(arr)
    return out[0], out[1], out[2]


def pls_to_log10(pls: Sequence[float] | np.ndarray) -> np.ndarray:
    return np.asarray(pls, dtype=float) / -10.0


def log10_to_pls(gls: Sequence[float] | np.ndarray) -> Tuple[int, ...]:
    """Convert log10 likelihoods to PLs normalized so the best genotype is 0."""
    arr = np.asarray(gls, dtype=float)
    if arr.size == 0 or not np.all(np.isfinite(arr)):
        raise NumericDegeneracyError(f"Cannot convert log10 likelihoods {arr.tolist()} to PLs")
    best = float(np.max(arr))
    return tuple(round_half_up(-10.0 * (g - best)) for g in arr)


def is_non_informative(pls: Optional[Sequence[float]]) -> bool:
    if pls is None:
        return True
    return all(float(x) == 0.0 for x in pls)


def project_pls(
    pls: Sequence[float] | np.ndarray,
    focus: int,
    n_alts: int,
) -> Tuple[int, int, int]:
    """Project a full diploid PL vector onto (ref, alt ``focus``).

    Parameters
    ----------
    pls:
        Phred-scaled likelihoods over ``n_alts + 1`` alleles, in PL order.
    focus:
        1-based index of the alternate allele to keep.
    n_alts:
        Number of alternate alleles at the site.

    Returns
    -------
    tuple
        (hom-ref, het, hom-focus) PLs with a minimum of exactly 0.

    Raises
    ------
    ContractViolation
        If the vector length or indices do not match the declared allele count,
        or a PL is negative or not finite.
    NumericDegeneracyError
        If a genotype class is empty or sums to a non-finite value.
    """
    if n_alts < 1:
        raise ContractViolation(f"n_alts must be >= 1, got {n_alts}")
    if not 1 <= focus <= n_alts:
        raise ContractViolation(f"Focus allele index {focus} outside [1, {n_alts}]")

    arr = np.asarray(pls, dtype=float)
    n_alleles = n_alts + 1
    expected = genotype_count(n_alleles)
    if arr.ndim != 1 or arr.size != expected:
        raise ContractViolation(
            f"PL vector of length {arr.size} does not match {n_alleles} alleles (expected {expected})"
        )
    if not np.all(np.isfinite(arr)) or np.any(arr < 0):
        raise ContractViolation(f"PLs must be finite and non-negative, got {arr.tolist()}")

    if is_non_informative(arr):
        return NON_INFORMATIVE_PLS

    # Shift so the best genotype sits at log10 = 0; the best class can then never underflow.
    gls = pls_to_log10(arr)
    gls = gls - np.max(gls)

    class_gls = np.empty(3, dtype=float)
    for copies, members in enumerate(focus_classes(n_alleles, focus)):
        if members.size == 0:
            raise NumericDegeneracyError(
                f"No genotype carries {copies} copies of allele {focus} over {n_alleles} alleles"
            )
        class_gls[copies] = log10_sum_log10(gls[members])

    hom_ref, het, hom_alt = log10_to_pls(class_gls)
    return hom_ref, het, hom_alt
