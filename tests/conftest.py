import gzip
import pytest
from pathlib import Path

VCF_COLUMNS = "#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\tFORMAT\tsample1\tsample2"


def write_text(path: Path, content: str) -> Path:
    with open(path, "w") as f:
        f.write(content)
    return path


@pytest.fixture
def small_gfa(tmp_path):
    """A GFA with two P paths and one W walk over four segments."""
    content = (
        "H\tVN:Z:1.0\n"
        "S\t1\tACGT\n"
        "S\t2\tGGGGGG\n"
        "S\t3\t*\tLN:i:10\n"
        "S\t5\tAC\n"
        "L\t1\t+\t2\t+\t0M\n"
        "P\tchr1\t1+,2+,5+\t*\n"
        "P\tchrX\t3+,2-\t*\n"
        "W\tHG002\t1\tchr2\t0\t12\t>1>2<5\n"
    )
    return write_text(tmp_path / "graph.gfa", content)


@pytest.fixture
def alignment_table(tmp_path):
    """Alignment table: node in column 1, path in column 5."""
    content = (
        "5\t0\t2\t+\tchr1\t60\n"
        "7\t0\t8\t+\tchr2_random\t60\n"
        "9\t0\t8\t+\tGRCh38.chr12_random\t60\n"
        "11\t0\t8\t+\tchrUn_KI270302v1\t60\n"
        "13\t0\t8\t+\tHG002#1#chrX\t60\n"
    )
    return write_text(tmp_path / "alignment.tsv", content)


@pytest.fixture
def reference_table(tmp_path):
    content = (
        "node\tstart\tend\tpath\n"
        "2\t0\t100\tchrX\n"
        "3\t100\t250\tchrX\n"
        "5\t0\t40\tchr7\n"
        "21\t0\t500\tchr21\n"
    )
    return write_text(tmp_path / "reference.tsv", content)


@pytest.fixture
def node_vcf_lines():
    """Data lines whose CHROM is a graph node id."""
    return [
        "5\t100\trs1\tA\tG\t50\tPASS\tDP=10;AF=0.5\tGT:DP\t0/1:12\t1/1:8",
        "7\t150\trs2\tC\tT\t40\tPASS\tDP=7\tGT:DP\t1/1:5\t1/1:9",
        "9\t90\trs3\tG\tA\t30\tPASS\tDP=3;DB\tGT:DP\t0/0:3\t0/1:4",
        "11\t20\trs4\tT\tC\t20\tPASS\tDP=4\tGT:DP\t./.:.\t0/1:2",
        "13\t75\trs5\tA\tC\t60\tPASS\tDP=9\tGT:DP\t0|1:9\t1|1:7",
        "2\t10\trs6\tA\tT\t60\tPASS\tDP=5\tGT:DP\t0/1:5\t0/0:5",
        "99\t5\trs7\tC\tG\t10\tPASS\tDP=1\tGT:DP\t0/1:1\t0/1:1",
    ]


@pytest.fixture
def node_vcf(tmp_path, node_vcf_lines):
    header = (
        "##fileformat=VCFv4.2\n"
        "##INFO=<ID=DP,Number=1,Type=Integer,Description=\"Depth\">\n"
        "##FORMAT=<ID=GT,Number=1,Type=String,Description=\"Genotype\">\n"
        f"{VCF_COLUMNS}\n"
    )
    return write_text(tmp_path / "calls.vcf", header + "\n".join(node_vcf_lines) + "\n")


@pytest.fixture
def node_vcf_gz(tmp_path, node_vcf):
    p = tmp_path / "calls.vcf.gz"
    with open(node_vcf, "rb") as src, gzip.open(p, "wb") as dst:
        dst.write(src.read())
    return p
