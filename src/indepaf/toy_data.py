from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pysam

from .genotypes import allele_pairs
from .utils import ensure_outdir, write_json

_SAMPLES = ["S1", "S2", "S3"]


def _pls_for_call(n_alleles: int, call: Tuple[int, int], *, step: int = 30) -> Tuple[int, ...]:
    """PLs favouring ``call``: 0 for it, ``step`` per allele not shared with it."""
    want = sorted(call)
    out = []
    for i, j in allele_pairs(n_alleles):
        shared = 0
        pool = list(want)
        for a in (i, j):
            if a in pool:
                pool.remove(a)
                shared += 1
        out.append(step * (2 - shared))
    return tuple(out)


def _toy_records() -> List[Tuple[int, str, Tuple[str, ...], List[Optional[Tuple[int, ...]]]]]:
    """(pos0, ref, alts, per-sample PLs) for the toy VCF."""
    return [
        # triallelic: S1 het A/C, S2 hom-ref, S3 het A/G
        (99, "A", ("C", "G"), [_pls_for_call(3, (0, 1)), _pls_for_call(3, (0, 0)), _pls_for_call(3, (0, 2))]),
        # biallelic
        (199, "A", ("T",), [(0, 30, 300), (25, 0, 40), (0, 20, 200)]),
        # quadallelic with one well supported alternate and two weak ones
        (
            299,
            "C",
            ("A", "G", "T"),
            [_pls_for_call(4, (1, 1)), _pls_for_call(4, (0, 1)), _pls_for_call(4, (0, 0), step=5)],
        ),
        # biallelic, S2 without PLs
        (399, "G", ("C",), [(30, 0, 30), None, (0, 15, 90)]),
    ]


def make_toy_data(*, outdir: str | Path) -> Dict[str, str]:
    """Create a tiny VCF with biallelic and multi-allelic PL records for quick demos/tests.

    The outputs include:
    - toy.vcf.gz (+ .tbi)

    Returns
    -------
    dict
        Paths to the generated files.
    """
    outdir_p = ensure_outdir(outdir)
    contig = "chr1"

    header = pysam.VariantHeader()
    header.add_meta("fileformat", "VCFv4.2")
    for s in _SAMPLES:
        header.add_sample(s)
    header.contigs.add(contig, length=1000)
    header.formats.add("PL", number="G", type="Integer", description="Phred-scaled genotype likelihoods")

    vcf_path = outdir_p / "toy.vcf"
    with pysam.VariantFile(str(vcf_path), "w", header=header) as vcf:
        for pos0, ref, alts, pls in _toy_records():
            rec = vcf.new_record(
                contig=contig,
                start=pos0,
                stop=pos0 + len(ref),
                alleles=(ref,) + alts,
                id=f"{contig}:{pos0 + 1}:{ref}:{','.join(alts)}",
                qual=50,
                filter="PASS",
            )
            for s, pl in zip(_SAMPLES, pls):
                if pl is not None:
                    rec.samples[s]["PL"] = pl
            vcf.write(rec)

    vcf_gz = outdir_p / "toy.vcf.gz"
    pysam.tabix_compress(str(vcf_path), str(vcf_gz), force=True)
    pysam.tabix_index(str(vcf_gz), preset="vcf", force=True)

    summary = {
        "vcf": str(vcf_gz),
        "samples": ",".join(_SAMPLES),
        "outdir": str(outdir_p),
    }

    write_json(outdir_p / "toy_summary.json", summary)
    return summary
