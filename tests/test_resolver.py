import pickle
import pytest

from gfaligner.core.errors import DuplicateMappingError, InputFormatError
from gfaligner.core.models import AlignmentEntry, PathInterval, VcfRecord
from gfaligner.graph.path_indexer import PathIndex, read_reference_table
from gfaligner.vcf.resolver import (
    SOURCE_ALIGNMENT,
    SOURCE_REFERENCE,
    AlignmentResolver,
    NodePathMap,
    build_node_path_map,
    read_alignment_table,
)


def _record(chrom, pos="100"):
    return VcfRecord([chrom, pos, ".", "A", "G", ".", "PASS", "."])


def test_read_alignment_table(alignment_table):
    entries, diagnostics = read_alignment_table(alignment_table)
    assert diagnostics == []
    assert [(e.node_id, e.path) for e in entries][:2] == [("5", "chr1"), ("7", "chr2_random")]
    assert entries[0].line_number == 1


def test_read_alignment_table_short_rows(tmp_path):
    table = tmp_path / "aln.tsv"
    table.write_text("node\tqstart\tqend\tstrand\tpath\n1\t0\t4\t+\tchr1\n2\t0\t4\n\n3\t0\t4\t+\t\n")
    entries, diagnostics = read_alignment_table(table)
    assert [e.node_id for e in entries] == ["1"]
    assert [d.line_number for d in diagnostics] == [3, 5]

    with pytest.raises(InputFormatError):
        read_alignment_table(table, strict=True)


def test_alignment_table_wins_over_reference(alignment_table, reference_table):
    entries, _ = read_alignment_table(alignment_table)
    reference = read_reference_table(reference_table)
    node_paths = build_node_path_map(entries, reference)

    assert node_paths["5"] == "chr1"
    assert node_paths.source_of("5") == SOURCE_ALIGNMENT
    assert node_paths["2"] == "chrX"
    assert node_paths.source_of("2") == SOURCE_REFERENCE
    assert node_paths.count_by_source() == {SOURCE_ALIGNMENT: 5, SOURCE_REFERENCE: 3}


def test_duplicate_first_wins():
    entries = [AlignmentEntry("1", "chr1", 1), AlignmentEntry("1", "chr2", 2), AlignmentEntry("1", "chr1", 3)]
    node_paths = build_node_path_map(entries)
    assert node_paths["1"] == "chr1"


def test_duplicate_error_policy():
    entries = [AlignmentEntry("1", "chr1", 1), AlignmentEntry("1", "chr2", 2)]
    with pytest.raises(DuplicateMappingError) as excinfo:
        build_node_path_map(entries, duplicate_policy="error", alignment_source="aln.tsv")
    assert excinfo.value.line_number == 2
    assert "aln.tsv:2" in str(excinfo.value)


def test_identical_repeats_are_not_conflicts():
    entries = [AlignmentEntry("1", "chr1", 1), AlignmentEntry("1", "chr1", 2)]
    node_paths = build_node_path_map(entries, duplicate_policy="error")
    assert dict(node_paths) == {"1": "chr1"}


def test_shared_reference_nodes_allowed_under_error_policy(caplog):
    reference = PathIndex([PathInterval("1", "chr1", 0, 4), PathInterval("1", "chr1_alt", 0, 4),
                           PathInterval("2", "HG002#1#chr1", 4, 9), PathInterval("2", "chr1", 4, 9)])
    entries = [AlignmentEntry("3", "chr2", 1)]
    with caplog.at_level("WARNING"):
        node_paths = build_node_path_map(entries, reference, duplicate_policy="error")
    assert node_paths["1"] == "chr1"
    assert node_paths["2"] == "HG002#1#chr1"
    assert node_paths.count_by_source() == {SOURCE_ALIGNMENT: 1, SOURCE_REFERENCE: 2}
    assert "conflicting" not in caplog.text


def test_unknown_duplicate_policy():
    with pytest.raises(ValueError):
        build_node_path_map([], duplicate_policy="last")


def test_node_path_map_is_read_only():
    node_paths = NodePathMap({"1": "chr1"}, {"1": SOURCE_ALIGNMENT})
    with pytest.raises(TypeError):
        node_paths["2"] = "chr2"
    assert "2" not in node_paths


def test_node_path_map_pickles():
    node_paths = NodePathMap({"1": "chr1"}, {"1": SOURCE_REFERENCE})
    restored = pickle.loads(pickle.dumps(node_paths))
    assert dict(restored) == {"1": "chr1"}
    assert restored.source_of("1") == SOURCE_REFERENCE


class TestNodeKey:
    node_paths = NodePathMap({"5": "chr1", "1234": "chr2", "s7": "chr3", "300": "chr4"},
                             {"5": SOURCE_ALIGNMENT, "1234": SOURCE_ALIGNMENT,
                              "s7": SOURCE_ALIGNMENT, "300": SOURCE_ALIGNMENT})

    def test_numeric_chrom(self):
        resolver = AlignmentResolver(self.node_paths)
        assert resolver.resolve(_record("5")) == ("5", "chr1")

    def test_named_node(self):
        resolver = AlignmentResolver(self.node_paths)
        assert resolver.resolve(_record("s7")) == ("s7", "chr3")

    def test_trailing_digits(self):
        resolver = AlignmentResolver(self.node_paths)
        assert resolver.resolve(_record("node_1234")) == ("1234", "chr2")

    def test_pos_fallback(self):
        resolver = AlignmentResolver(self.node_paths)
        assert resolver.resolve(_record("graph", pos="300")) == ("300", "chr4")

    def test_unresolved_numeric(self):
        resolver = AlignmentResolver(self.node_paths)
        assert resolver.resolve(_record("99", pos="300")) == ("99", None)

    def test_unresolved_keeps_chrom_as_key(self):
        resolver = AlignmentResolver(self.node_paths)
        assert resolver.resolve(_record("chrUn", pos="1")) == ("chrUn", None)

    def test_explicit_modes(self):
        assert AlignmentResolver(self.node_paths, "chrom").resolve(_record("node_1234")) == ("node_1234", None)
        assert AlignmentResolver(self.node_paths, "pos").resolve(_record("5", pos="300")) == ("300", "chr4")

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            AlignmentResolver(self.node_paths, "info")
