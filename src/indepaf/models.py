from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from .errors import ContractViolation
from .genotypes import genotype_count


@dataclass(frozen=True)
class Allele:
    """A reference or alternate allele; equal when bases and ref flag match."""

    bases: str
    is_ref: bool = False

    def __post_init__(self) -> None:
        if not self.bases:
            raise ContractViolation("Allele bases must be a non-empty string")

    def __str__(self) -> str:
        return self.bases + ("*" if self.is_ref else "")


@dataclass(frozen=True)
class VariantSite:
    """One input position: the reference, ordered alternates and per-sample PLs.

    Attributes
    ----------
    chrom:
        Contig name.
    pos:
        1-based position (VCF convention).
    ref:
        Reference allele (``is_ref=True``).
    alts:
        Alternate alleles in input order. Order is significant and preserved by
        every downstream step.
    pls:
        Sample name -> Phred-scaled genotype likelihoods over all ``len(alts) + 1``
        alleles in VCF ``Number=G`` order, or ``None`` for a sample without PLs.
    record_id:
        Optional identifier (VCF ID or CHROM:POS:REF:ALTS).
    """

    chrom: str
    pos: int
    ref: Allele
    alts: Tuple[Allele, ...]
    pls: Mapping[str, Optional[Tuple[float, ...]]]
    record_id: str = ""

    def __post_init__(self) -> None:
        if not self.ref.is_ref:
            raise ContractViolation(f"Reference allele {self.ref.bases} is not flagged as reference")
        if len(self.alts) == 0:
            raise ContractViolation(f"Site {self.chrom}:{self.pos} has no alternate alleles")
        if any(a.is_ref for a in self.alts):
            raise ContractViolation(f"Site {self.chrom}:{self.pos} has an alternate flagged as reference")
        if len(set(self.alts)) != len(self.alts):
            raise ContractViolation(f"Site {self.chrom}:{self.pos} has duplicate alternate alleles")

        expected = genotype_count(len(self.alts) + 1)
        frozen = {}
        for sample, pl in self.pls.items():
            if pl is None:
                frozen[sample] = None
                continue
            pl_t = tuple(float(x) for x in pl)
            if len(pl_t) != expected:
                raise ContractViolation(
                    f"Sample '{sample}' at {self.chrom}:{self.pos} has {len(pl_t)} PLs; "
                    f"expected {expected} for {len(self.alts) + 1} alleles"
                )
            frozen[sample] = pl_t
        object.__setattr__(self, "pls", MappingProxyType(frozen))
        object.__setattr__(self, "alts", tuple(self.alts))

    @property
    def alleles(self) -> Tuple[Allele, ...]:
        return (self.ref,) + self.alts

    @property
    def n_alts(self) -> int:
        return len(self.alts)

    @property
    def samples(self) -> Tuple[str, ...]:
        return tuple(self.pls.keys())


@dataclass(frozen=True)
class BiallelicSubcontext:
    """A site restricted to the reference and one alternate allele.

    ``alt_index`` is the 1-based position of ``alt`` among the parent site's
    alternates. ``pls`` holds (hom-ref, het, hom-alt) per sample.
    """

    chrom: str
    pos: int
    ref: Allele
    alt: Allele
    alt_index: int
    pls: Mapping[str, Tuple[int, int, int]]

    @property
    def alleles(self) -> Tuple[Allele, Allele]:
        return (self.ref, self.alt)

    @property
    def n_samples(self) -> int:
        return len(self.pls)
