from __future__ import annotations

import logging
from typing import Dict, List, Tuple

from .errors import ContractViolation
from .genotypes import NON_INFORMATIVE_PLS, project_pls
from .models import BiallelicSubcontext, VariantSite

logger = logging.getLogger(__name__)


def make_subcontext(site: VariantSite, alt_index: int) -> BiallelicSubcontext:
    """Restrict ``site`` to its reference and the 1-based ``alt_index``-th alternate."""
    if not 1 <= alt_index <= site.n_alts:
        raise ContractViolation(
            f"Alternate index {alt_index} outside [1, {site.n_alts}] at {site.chrom}:{site.pos}"
        )

    pls: Dict[str, Tuple[int, int, int]] = {}
    for sample, full in site.pls.items():
        if full is None:
            pls[sample] = NON_INFORMATIVE_PLS
            continue
        pls[sample] = project_pls(full, alt_index, site.n_alts)

    return BiallelicSubcontext(
        chrom=site.chrom,
        pos=site.pos,
        ref=site.ref,
        alt=site.alts[alt_index - 1],
        alt_index=alt_index,
        pls=pls,
    )


def decompose(site: VariantSite) -> List[BiallelicSubcontext]:
    """Split a site into one biallelic sub-context per alternate, in alternate order.

    A biallelic site yields a single sub-context whose PLs equal the input's
    (after normalization to a best value of 0).
    """
    subcontexts = [make_subcontext(site, i) for i in range(1, site.n_alts + 1)]
    logger.debug(
        "Decomposed %s:%d into %d biallelic sub-context(s)", site.chrom, site.pos, len(subcontexts)
    )
    return subcontexts
