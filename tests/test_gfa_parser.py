import os
import logging
import unittest
import tempfile

from gfaligner.core.errors import InputFormatError
from gfaligner.graph.gfa_parser import GFAParser


class TestGFAParser(unittest.TestCase):
    """Tests for the GFA parser."""

    def setUp(self):
        """Set up test fixtures."""
        self.parser = GFAParser()
        self.temp_dir = tempfile.TemporaryDirectory()

        self.example_gfa = self._write("example.gfa", (
            "H\tVN:Z:1.0\n"
            "# comment line\n"
            "S\t1\tACGT\n"
            "S\t2\tGGGGGG\n"
            "S\t3\t*\tLN:i:10\n"
            "L\t1\t+\t2\t+\t0M\n"
            "P\tref\t1+,2+,3-\t*\n"
            "W\tHG002\t2\tchr9\t0\t16\t>3<2\n"
        ))
        self.empty_file = self._write("empty.gfa", "")
        self.malformed_file = self._write("malformed.gfa", (
            "H\tVN:Z:1.0\n"
            "S\n"
            "S\t1\tACGT\n"
            "S\t1\tAC\n"
            "S\t4\t*\n"
            "P\tp1\t1+\t*\n"
            "P\tp1\t1+\t*\n"
            "W\tHG002\t1\tchr1\t0\t4\tnot-a-walk\n"
        ))

    def tearDown(self):
        """Clean up test fixtures."""
        self.temp_dir.cleanup()

    def _write(self, name, content):
        path = os.path.join(self.temp_dir.name, name)
        with open(path, 'w') as f:
            f.write(content)
        return path

    def test_parse_valid_file(self):
        """Segments and paths of a valid file are all read."""
        graph = self.parser.parse(self.example_gfa)
        self.assertEqual(len(graph.segments), 3)
        self.assertEqual(len(graph.paths), 2)
        self.assertEqual(graph.diagnostics, [])

    def test_segment_lengths(self):
        """Length comes from the sequence, or the LN tag when the sequence is '*'."""
        graph = self.parser.parse(self.example_gfa)
        self.assertEqual(graph.segment_lengths(), {"1": 4, "2": 6, "3": 10})

    def test_length_only_from_ln_tag(self):
        """A '*' segment needs LN; other tags do not give it a length."""
        gfa = self._write("tags.gfa", "S\t1\t*\tLN:i:7\nS\t2\t*\tRC:i:40\nP\tp\t1+\t*\n")
        logging.getLogger('gfaligner.graph.gfa_parser').setLevel(logging.CRITICAL)
        try:
            graph = self.parser.parse(gfa)
        finally:
            logging.getLogger('gfaligner.graph.gfa_parser').setLevel(logging.NOTSET)
        self.assertEqual(graph.segment_lengths(), {"1": 7})
        self.assertEqual([d.line_number for d in graph.diagnostics], [2])
        self.assertIn("LN", graph.diagnostics[0].message)

    def test_path_steps_and_orientation(self):
        graph = self.parser.parse(self.example_gfa)
        ref = graph.paths[0]
        self.assertEqual(ref.name, "ref")
        self.assertEqual([s.node_id for s in ref.steps], ["1", "2", "3"])
        self.assertEqual([s.orientation for s in ref.steps], ["+", "+", "-"])
        self.assertEqual(ref.line_number, 7)

    def test_walk_becomes_named_path(self):
        """A W line becomes a path named sample#haplotype#sequence."""
        graph = self.parser.parse(self.example_gfa)
        walk = graph.paths[1]
        self.assertEqual(walk.name, "HG002#2#chr9")
        self.assertEqual([s.node_id for s in walk.steps], ["3", "2"])
        self.assertEqual([s.orientation for s in walk.steps], ["+", "-"])

    def test_nonexistent_file(self):
        """Test parsing a non-existent file."""
        with self.assertRaises(FileNotFoundError):
            self.parser.parse("nonexistent_file.gfa")

    def test_empty_file(self):
        """An empty graph is a format error."""
        with self.assertRaises(InputFormatError):
            self.parser.parse(self.empty_file)

    def test_malformed_file(self):
        """Malformed lines become diagnostics and parsing continues."""
        logging.getLogger('gfaligner.graph.gfa_parser').setLevel(logging.CRITICAL)
        try:
            graph = self.parser.parse(self.malformed_file)
        finally:
            logging.getLogger('gfaligner.graph.gfa_parser').setLevel(logging.NOTSET)

        self.assertEqual(set(graph.segments), {"1"})
        self.assertEqual(graph.segments["1"].length, 4)
        self.assertEqual([p.name for p in graph.paths], ["p1"])

        lines = sorted(d.line_number for d in graph.diagnostics)
        # bare S, duplicate segment, S without length, duplicate path, bad walk
        self.assertEqual(lines, [2, 4, 5, 7, 8])
        for diagnostic in graph.diagnostics:
            self.assertEqual(diagnostic.source, self.malformed_file)


if __name__ == '__main__':
    unittest.main()
