from __future__ import annotations

import datetime as _dt
import logging
from pathlib import Path
from typing import Any, Dict

from jinja2 import Template

logger = logging.getLogger(__name__)


_REPORT_TEMPLATE = Template(
    """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>IndepAF Report</title>
  <style>
    body { font-family: Arial, Helvetica, sans-serif; margin: 24px; }
    code, pre { background: #f6f8fa; padding: 2px 4px; border-radius: 4px; }
    h1, h2, h3 { margin-top: 1.2em; }
    table { border-collapse: collapse; margin-top: 0.6em; }
    th, td { border: 1px solid #ddd; padding: 8px; }
    th { background: #f2f2f2; text-align: left; }
    .grid { display: grid; grid-template-columns: 1fr 1fr; gap: 16px; }
    .card { border: 1px solid #ddd; border-radius: 8px; padding: 12px; }
    .small { color: #666; font-size: 0.9em; }
    img { max-width: 100%; height: auto; border: 1px solid #eee; border-radius: 6px; }
  </style>
</head>
<body>

<h1>IndepAF Report</h1>
<p class="small">Generated: {{ generated_at }}</p>

<h2>Run summary</h2>
<div class="grid">
  <div class="card">
    <h3>Inputs</h3>
    <table>
      <tr><th>VCF</th><td><code>{{ vcf_path }}</code></td></tr>
      <tr><th>Samples</th><td><code>{{ samples }}</code></td></tr>
    </table>
  </div>
  <div class="card">
    <h3>Model</h3>
    <table>
      <tr><th>Biallelic solver</th><td>{{ solver }}</td></tr>
      <tr><th>Heterozygosity</th><td>{{ heterozygosity }}</td></tr>
      <tr><th>Min QUAL</th><td>{{ min_qual }}</td></tr>
      <tr><th>Min alternates per site</th><td>{{ min_alts }}</td></tr>
    </table>
  </div>
</div>

<h2>Sites</h2>
<table>
  <tr><th>VCF records total</th><td>{{ site_stats.records_total }}</td></tr>
  <tr><th>Skipped FILTER</th><td>{{ site_stats.records_skipped_filter }}</td></tr>
  <tr><th>Skipped below min alternates</th><td>{{ site_stats.records_skipped_min_alts }}</td></tr>
  <tr><th>Skipped without PL</th><td>{{ site_stats.records_skipped_no_pl }}</td></tr>
  <tr><th>Skipped malformed</th><td>{{ site_stats.records_skipped_invalid }}</td></tr>
  <tr><th>Biallelic sites</th><td>{{ site_stats.sites_biallelic }}</td></tr>
  <tr><th>Multi-allelic sites</th><td>{{ site_stats.sites_multiallelic }}</td></tr>
  <tr><th>Sites processed</th><td>{{ counts.sites_processed }}</td></tr>
  <tr><th>Sites failed</th><td>{{ counts.sites_failed }}</td></tr>
  <tr><th>Polymorphic sites</th><td>{{ counts.sites_polymorphic }}</td></tr>
</table>

<h2>Alternate alleles</h2>
<table>
  <tr><th>Alleles evaluated</th><td>{{ counts.alleles_total }}</td></tr>
  <tr><th>Polymorphic (QUAL &ge; {{ min_qual }})</th><td>{{ counts.alleles_polymorphic }}</td></tr>
  <tr><th>Demoted by the rank prior</th><td>{{ counts.alleles_demoted_by_thetan }}</td></tr>
</table>

{% if rank_means %}
<table>
  <tr><th>Rank</th><th>Alleles</th><th>log10 prior AF&gt;0</th><th>theta-N prior</th>
      <th>log10 posterior AF&gt;0</th><th>theta-N posterior</th></tr>
  {% for r in rank_means %}
  <tr><td>{{ r.rank }}</td><td>{{ r.n }}</td>
      <td>{{ "%.3f"|format(r.mean_log10_prior_gt0) }}</td>
      <td>{{ "%.3f"|format(r.mean_log10_prior_gt0_thetan) }}</td>
      <td>{{ "%.3f"|format(r.mean_log10_posterior_gt0) }}</td>
      <td>{{ "%.3f"|format(r.mean_log10_posterior_gt0_thetan) }}</td></tr>
  {% endfor %}
</table>
{% endif %}

<h2>Plots</h2>

<div class="grid">
  <div class="card">
    <h3>Site QUAL</h3>
    <img src="{{ plots.qual_hist }}" alt="QUAL histogram">
  </div>
  <div class="card">
    <h3>Alternates per site</h3>
    <img src="{{ plots.alt_count_hist }}" alt="alternate count histogram">
  </div>
</div>

<div class="grid" style="margin-top:16px;">
  <div class="card">
    <h3>Rank prior correction</h3>
    <img src="{{ plots.thetan_by_rank }}" alt="prior and posterior by rank">
  </div>
</div>

<h2>Outputs</h2>
<ul>
  <li><code>{{ alleles_tsv_gz }}</code> (per-allele results)</li>
  <li><code>summary.json</code> (machine-readable summary)</li>
</ul>

<h2>Interpretation notes</h2>
<ul>
  <li>Each alternate allele is tested against the reference on its own; genotypes carrying other alternates are folded into the matching copy-count class.</li>
  <li>Alleles are ranked by posterior support; the allele at rank r receives the single-allele prior raised to the power r+1.</li>
  <li>QUAL is the Phred-scaled posterior probability that the allele's count is zero.</li>
</ul>

<hr>
<p class="small">IndepAF {{ version }}</p>
</body>
</html>"""
)


def render_report(
    *,
    outdir: str | Path,
    version: str,
    run: Dict[str, Any],
    samples: str,
    plots: Dict[str, str],
) -> Path:
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    html = _REPORT_TEMPLATE.render(
        generated_at=_dt.datetime.now().isoformat(timespec="seconds"),
        version=version,
        vcf_path=run.get("vcf_path"),
        samples=samples,
        solver=run.get("solver"),
        heterozygosity=run.get("heterozygosity"),
        min_qual=run.get("min_qual"),
        min_alts=run.get("min_alts"),
        alleles_tsv_gz=run.get("alleles_tsv_gz"),
        site_stats=run.get("site_stats", {}),
        counts=run.get("counts", {}),
        rank_means=run.get("rank_means", []),
        plots=plots,
    )

    out_path = outdir / "report.html"
    out_path.write_text(html, encoding="utf-8")
    return out_path
