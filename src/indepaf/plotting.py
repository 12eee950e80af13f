from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

import matplotlib.pyplot as plt

logger = logging.getLogger(__name__)


def plot_qual_hist(
    *,
    bin_edges: List[float],
    counts: List[int],
    out_png: str | Path,
    title: str = "Site QUAL distribution",
) -> None:
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    widths = [bin_edges[i + 1] - bin_edges[i] for i in range(len(counts))]
    centers = [bin_edges[i] + widths[i] / 2.0 for i in range(len(counts))]

    plt.figure()
    plt.bar(centers, counts, width=widths, align="center")
    plt.xlabel(f"Phred-scaled P(no alternate segregates), capped at {bin_edges[-1]:.0f}")
    plt.ylabel("Site count")
    plt.title(title)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()


def plot_alt_count_hist(
    *,
    alt_count_hist: Dict[int, int],
    out_png: str | Path,
    title: str = "Alternate alleles per site",
    max_bin: int = 6,
) -> None:
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    # Collapse tail into max_bin+
    xs = list(range(1, max_bin + 1))
    ys = [0] * len(xs)
    tail = 0
    for k, v in alt_count_hist.items():
        k = int(k)
        if k <= max_bin:
            ys[k - 1] += int(v)
        else:
            tail += int(v)

    xticklabels = [str(x) for x in xs]
    if tail > 0:
        ys.append(tail)
        xticklabels.append(f"{max_bin + 1}+")

    plt.figure()
    plt.bar(range(len(ys)), ys)
    plt.xlabel("Number of alternate alleles")
    plt.ylabel("Site count")
    plt.title(title)
    plt.xticks(range(len(ys)), xticklabels, rotation=0)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()


def plot_thetan_by_rank(
    *,
    rank_means: List[Dict[str, float]],
    out_png: str | Path,
    title: str = "Prior and posterior of AF>0 by allele rank",
) -> None:
    """Mean log10 prior/posterior of AF>0 per rank, before and after the theta-N correction.

    Parameters
    ----------
    rank_means:
        List of dicts with keys ``rank`` and ``mean_log10_*`` (as produced by call_vcf).
    """
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    ranks = [int(r["rank"]) for r in rank_means]

    plt.figure()
    if ranks:
        plt.plot(ranks, [r["mean_log10_prior_gt0"] for r in rank_means], "o--", label="prior")
        plt.plot(ranks, [r["mean_log10_prior_gt0_thetan"] for r in rank_means], "o-", label="prior (theta-N)")
        plt.plot(ranks, [r["mean_log10_posterior_gt0"] for r in rank_means], "s--", label="posterior")
        plt.plot(
            ranks,
            [r["mean_log10_posterior_gt0_thetan"] for r in rank_means],
            "s-",
            label="posterior (theta-N)",
        )
        plt.xticks(ranks)
        plt.legend()
    plt.xlabel("Allele rank (0 = most supported)")
    plt.ylabel("Mean log10 probability of AF>0")
    plt.title(title)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()
