import pytest

from gfaligner.core.errors import ColumnNotFoundError
from gfaligner.core.io import read_vcf
from gfaligner.core.models import VcfHeader
from gfaligner.vcf.sorter import GENOMIC, RecordSorter, chrom_rank, sort_vcf

COLUMNS = "#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\tFORMAT\tNA001"
HEADER = VcfHeader(meta_lines=["##fileformat=VCFv4.2"], column_line=COLUMNS)


def _line(chrom, pos, rid, sample="0/1"):
    return f"{chrom}\t{pos}\t{rid}\tA\tG\t.\tPASS\t.\tGT\t{sample}"


def _ids(lines):
    return [line.split("\t")[2] for line in lines]


def test_numeric_pos():
    lines = [_line("chr1", 10, "a"), _line("chr1", 9, "b"), _line("chr1", 100, "c")]
    assert _ids(RecordSorter("POS").sort(HEADER, lines)) == ["b", "a", "c"]


def test_bytewise_when_not_numeric():
    lines = [_line("chr1", 1, "rs10"), _line("chr1", 2, "rs9"), _line("chr1", 3, "Rs1")]
    assert _ids(RecordSorter("ID").sort(HEADER, lines)) == ["Rs1", "rs10", "rs9"]


def test_one_non_numeric_value_switches_to_bytes():
    lines = [_line("chr1", 1, "x", "10"), _line("chr1", 2, "y", "9"), _line("chr1", 3, "z", ".")]
    assert _ids(RecordSorter("NA001").sort(HEADER, lines)) == ["z", "x", "y"]


def test_stable_for_equal_keys():
    lines = [_line("chr1", 5, "first"), _line("chr2", 1, "x"), _line("chr3", 5, "second"), _line("chr4", 5, "third")]
    assert _ids(RecordSorter("POS").sort(HEADER, lines)) == ["x", "first", "second", "third"]
    assert _ids(RecordSorter("POS", reverse=True).sort(HEADER, lines)) == ["first", "second", "third", "x"]


def test_sort_is_idempotent():
    lines = [_line(f"chr{n % 3}", n * 7 % 11, f"id{n}") for n in range(30)]
    sorter = RecordSorter("POS")
    once = sorter.sort(HEADER, lines)
    assert sorter.sort(HEADER, once) == once


@pytest.mark.parametrize("key,expected", [("1", ["b", "a"]), (1, ["b", "a"]), ("CHROM", ["a", "b"]), ("#CHROM", ["a", "b"]), ("pos", ["b", "a"])])
def test_key_selectors(key, expected):
    lines = [_line("chr1", 9, "a"), _line("chr2", 3, "b")]
    assert _ids(RecordSorter(key).sort(HEADER, lines)) == expected


@pytest.mark.parametrize("key", ["DEPTH", 10, "-1"])
def test_unknown_column(key):
    with pytest.raises(ColumnNotFoundError) as excinfo:
        RecordSorter(key).sort(HEADER, [_line("chr1", 1, "a")], source="calls.vcf")
    assert "calls.vcf" in str(excinfo.value)
    assert "#CHROM" in excinfo.value.available


def test_unknown_column_with_empty_body():
    with pytest.raises(ColumnNotFoundError):
        RecordSorter("DEPTH").sort(HEADER, [])


def test_chrom_rank():
    assert chrom_rank("chr1") == 1
    assert chrom_rank("22") == 22
    assert chrom_rank("chrX") == 23
    assert chrom_rank("Y") == 24
    assert chrom_rank("chrMT") == 25
    assert chrom_rank("MT") == 25
    assert chrom_rank("chr23") is None
    assert chrom_rank("scaffold_1") is None


def test_genomic_order():
    lines = [
        _line("chrM", 1, "m"),
        _line("unplaced_b", 1, "ub"),
        _line("chr10", 5, "c10"),
        _line("chrX", 1, "x"),
        _line("chr2", 50, "c2b"),
        _line("chr2", 50, "c2a"),
        _line("unplaced_a", 9, "ua"),
        _line("chr2", 7, "c2"),
    ]
    result = RecordSorter(GENOMIC).sort(HEADER, lines)
    assert _ids(result) == ["c2", "c2a", "c2b", "c10", "x", "m", "ua", "ub"]


def test_sort_vcf_keeps_header(node_vcf, tmp_path):
    out = tmp_path / "calls.sorted.vcf"
    assert sort_vcf(node_vcf, out, RecordSorter("POS", reverse=True)) == 7
    header, body = read_vcf(out)
    original_header, _ = read_vcf(node_vcf)
    assert header == original_header
    assert [int(line.split("\t")[1]) for _, line in body] == [150, 100, 90, 75, 20, 10, 5]
