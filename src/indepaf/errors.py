from __future__ import annotations


class ContractViolation(ValueError):
    """Raised when an input does not satisfy the declared allele/genotype shape.

    Examples: a GLV whose length does not match the site's allele count, a focus
    allele index outside ``[1, n_alts]``, or a site without alternate alleles.
    These are not recoverable locally; the caller decides whether to skip the
    site or abort.
    """


class NumericDegeneracyError(ArithmeticError):
    """Raised when a likelihood computation would yield NaN or -inf."""
