"""IndepAF: multi-allelic allele-frequency estimation by independent biallelic decomposition.

Public API is intentionally small; most users should use the CLI:

    indepaf call --vcf ... --outdir ...

"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
