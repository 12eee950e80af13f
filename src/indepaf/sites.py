from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import pysam

from .errors import ContractViolation
from .models import Allele, VariantSite

logger = logging.getLogger(__name__)


def new_site_stats() -> Dict[str, int]:
    return {
        "records_total": 0,
        "records_pass": 0,
        "records_skipped_filter": 0,
        "records_skipped_no_alt": 0,
        "records_skipped_min_alts": 0,
        "records_skipped_no_pl": 0,
        "records_skipped_invalid": 0,
        "sites_biallelic": 0,
        "sites_multiallelic": 0,
        "samples_missing_pl": 0,
    }


def _sample_pls(sample: pysam.libcbcf.VariantRecordSample) -> Optional[Tuple[int, ...]]:
    """PL tuple for one sample, or None when absent or partially missing."""
    if "PL" not in sample:
        return None
    pl = sample["PL"]
    if pl is None:
        return None
    if not isinstance(pl, (list, tuple)):
        pl = (pl,)
    if len(pl) == 0 or any(x is None for x in pl):
        return None
    return tuple(int(x) for x in pl)


def resolve_samples(header_samples: Sequence[str], samples: Optional[Sequence[str]]) -> List[str]:
    if len(header_samples) == 0:
        raise ValueError("VCF has no samples. Provide a VCF with per-sample PL fields.")
    if samples is None:
        return list(header_samples)
    missing = [s for s in samples if s not in header_samples]
    if missing:
        raise ValueError(f"Samples {missing} not found in VCF samples: {list(header_samples)}")
    return list(samples)


def load_variant_sites(
    vcf_path: str,
    *,
    samples: Optional[Sequence[str]] = None,
    require_pass: bool = False,
    min_alts: int = 1,
    strict: bool = False,
    stats: Optional[Dict[str, int]] = None,
) -> Iterator[VariantSite]:
    """Stream sites with PLs from a VCF/BCF.

    Parameters
    ----------
    vcf_path:
        VCF (.vcf, bgzipped .vcf.gz) or BCF with a ``PL`` FORMAT field.
    samples:
        Samples to keep. If None, all samples in the header.
    require_pass:
        If True, require FILTER to be PASS or empty.
    min_alts:
        Skip sites with fewer alternate alleles (2 keeps multi-allelic sites only).
    strict:
        If True, a malformed record raises instead of being logged and skipped.
    stats:
        Optional dict (see :func:`new_site_stats`) updated in place.

    Yields
    ------
    VariantSite
        One per usable record, in file order. Records whose PL length does not
        match their allele count are counted as ``records_skipped_invalid``
        unless ``strict`` is set, in which case
        :class:`~indepaf.errors.ContractViolation` propagates.
    """
    if stats is None:
        stats = new_site_stats()

    with pysam.VariantFile(vcf_path) as vcf:
        if "PL" not in vcf.header.formats:
            raise ValueError("VCF header does not declare a PL FORMAT field.")
        use_samples = resolve_samples(list(vcf.header.samples), samples)

        for rec in vcf:
            stats["records_total"] += 1

            if require_pass:
                filt = list(rec.filter.keys())
                if len(filt) > 0 and not (len(filt) == 1 and filt[0] == "PASS"):
                    stats["records_skipped_filter"] += 1
                    continue
            stats["records_pass"] += 1

            alts = list(rec.alts or [])
            if len(alts) == 0:
                stats["records_skipped_no_alt"] += 1
                continue
            if len(alts) < min_alts:
                stats["records_skipped_min_alts"] += 1
                continue

            pls: Dict[str, Optional[Tuple[int, ...]]] = {}
            for s in use_samples:
                pl = _sample_pls(rec.samples[s])
                if pl is None:
                    stats["samples_missing_pl"] += 1
                pls[s] = pl

            if all(pl is None for pl in pls.values()):
                stats["records_skipped_no_pl"] += 1
                continue

            rid = rec.id if rec.id is not None else f"{rec.contig}:{rec.pos}:{rec.ref}:{','.join(alts)}"
            try:
                site = VariantSite(
                    chrom=str(rec.contig),
                    pos=int(rec.pos),
                    ref=Allele(str(rec.ref), is_ref=True),
                    alts=tuple(Allele(str(a)) for a in alts),
                    pls=pls,
                    record_id=rid,
                )
            except ContractViolation as e:
                if strict:
                    raise
                stats["records_skipped_invalid"] += 1
                logger.warning("Skipping %s: %s", rid, e)
                continue
            if site.n_alts == 1:
                stats["sites_biallelic"] += 1
            else:
                stats["sites_multiallelic"] += 1
            yield site
