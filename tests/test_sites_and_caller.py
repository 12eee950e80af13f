import gzip
import json
from pathlib import Path

import pytest

from indepaf.caller import ALLELE_COLUMNS, call_vcf
from indepaf.models import Allele
from indepaf.sites import load_variant_sites, new_site_stats
from indepaf.toy_data import make_toy_data


@pytest.fixture(scope="module")
def toy(tmp_path_factory):
    return make_toy_data(outdir=tmp_path_factory.mktemp("toy"))


def _read_tsv(path: Path):
    with gzip.open(path, "rt") as fh:
        lines = [line.rstrip("\n").split("\t") for line in fh]
    header, rows = lines[0], lines[1:]
    return [dict(zip(header, row)) for row in rows], header


def test_load_variant_sites(toy):
    stats = new_site_stats()
    sites = list(load_variant_sites(toy["vcf"], stats=stats))

    assert [s.pos for s in sites] == [100, 200, 300, 400]
    assert [s.n_alts for s in sites] == [2, 1, 3, 1]
    assert sites[0].ref == Allele("A", is_ref=True)
    assert sites[0].alts == (Allele("C"), Allele("G"))
    assert sites[0].samples == ("S1", "S2", "S3")
    assert len(sites[2].pls["S1"]) == 10
    assert sites[3].pls["S2"] is None

    assert stats["records_total"] == 4
    assert stats["sites_biallelic"] == 2
    assert stats["sites_multiallelic"] == 2
    assert stats["samples_missing_pl"] == 1


def test_load_variant_sites_filters(toy):
    stats = new_site_stats()
    sites = list(load_variant_sites(toy["vcf"], samples=["S3"], min_alts=2, stats=stats))
    assert [s.pos for s in sites] == [100, 300]
    assert all(s.samples == ("S3",) for s in sites)
    assert stats["records_skipped_min_alts"] == 2

    with pytest.raises(ValueError):
        list(load_variant_sites(toy["vcf"], samples=["NOPE"]))


def test_call_vcf_outputs(toy, tmp_path):
    summary = call_vcf(vcf_path=toy["vcf"], outdir=tmp_path, progress=False)

    assert summary["counts"]["sites_processed"] == 4
    assert summary["counts"]["sites_failed"] == 0
    assert summary["counts"]["alleles_total"] == 7
    assert summary["solver"] == "diploid-exact"
    assert (tmp_path / "summary.json").exists()
    on_disk = json.loads((tmp_path / "summary.json").read_text())
    assert on_disk["counts"] == summary["counts"]

    rows, header = _read_tsv(tmp_path / "alleles.tsv.gz")
    assert header == ALLELE_COLUMNS
    assert len(rows) == 7

    quad = [r for r in rows if r["pos"] == "300"]
    assert [int(r["rank"]) for r in quad] == [0, 1, 2]
    assert sorted(int(r["alt_index"]) for r in quad) == [1, 2, 3]
    # the hom-alt/het supported allele A is ranked first
    assert quad[0]["alt"] == "A"
    assert quad[0]["polymorphic"] == "1"
    for r in quad:
        rank = int(r["rank"])
        assert float(r["log10_prior_gt0_thetan"]) == pytest.approx((rank + 1) * float(r["log10_prior_gt0"]), abs=1e-5)

    ranks = summary["rank_means"]
    assert [r["rank"] for r in ranks] == [0, 1, 2]
    assert ranks[0]["n"] == 4
    assert ranks[2]["n"] == 1


def test_call_vcf_multiallelic_only(toy, tmp_path):
    summary = call_vcf(vcf_path=toy["vcf"], outdir=tmp_path, min_alts=2, progress=False)
    assert summary["counts"]["sites_processed"] == 2
    assert summary["counts"]["alleles_total"] == 5
    assert summary["alt_count_hist"] == {2: 1, 3: 1}


def test_call_vcf_rejects_bad_settings(toy, tmp_path):
    with pytest.raises(ValueError):
        call_vcf(vcf_path=toy["vcf"], outdir=tmp_path, min_qual=-1.0, progress=False)
