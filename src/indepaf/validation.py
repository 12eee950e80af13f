from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

import pysam

logger = logging.getLogger(__name__)


def check_vcf_index(vcf_path: str | Path) -> None:
    """Warn about missing indexes; raise ValueError with fix instructions for unindexed .vcf.gz."""
    vcf = Path(vcf_path)
    if vcf.suffixes[-2:] == [".vcf", ".gz"]:
        tbi = vcf.with_suffix(vcf.suffix + ".tbi")
        csi = vcf.with_suffix(vcf.suffix + ".csi")
        if not tbi.exists() and not csi.exists():
            raise ValueError(
                "VCF is not bgzip/tabix indexed. Run: bgzip -c "
                + str(vcf.with_suffix(""))
                + " > "
                + str(vcf)
                + "; tabix -p vcf "
                + str(vcf)
            )
    elif vcf.suffix == ".vcf":
        logger.info(
            "VCF is uncompressed (.vcf). This is supported but slower; "
            "consider bgzip+tabix for large files."
        )


def inspect_vcf_header(vcf_path: str | Path) -> Dict[str, object]:
    """Return samples/contigs of a VCF and raise ValueError if it cannot feed the caller."""
    with pysam.VariantFile(str(vcf_path)) as vcf:
        samples: List[str] = list(vcf.header.samples)
        contigs: List[str] = list(vcf.header.contigs)
        has_pl = "PL" in vcf.header.formats
        pl_number = vcf.header.formats["PL"].number if has_pl else None

    if not samples:
        raise ValueError("VCF has no samples. Provide a VCF with per-sample PL fields.")
    if not has_pl:
        raise ValueError("VCF header does not declare a PL FORMAT field (Number=G).")
    if pl_number != "G":
        logger.warning("PL FORMAT field is declared with Number=%s; expected Number=G.", pl_number)

    return {"samples": samples, "contigs": contigs, "pl_number": pl_number}
