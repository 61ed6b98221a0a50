"""
Parser for Graphical Fragment Assembly (GFA) files.
Uses the gfapy library for segment and path records; walk (W) records of
GFA 1.1 are converted to paths named ``sample#haplotype#sequence``.
"""
import os
import re
import logging
from dataclasses import dataclass, field
from typing import Dict, List

import gfapy

from gfaligner.core.errors import InputFormatError
from gfaligner.core.io import open_text
from gfaligner.core.models import Diagnostic, GraphNode, GraphPath, PathStep

WALK_STEP_RE = re.compile(r'([<>])([^<>]+)')


@dataclass
class ParsedGraph:
    """Segments and paths of a graph, plus any per-line diagnostics."""
    source: str
    segments: Dict[str, GraphNode] = field(default_factory=dict)
    paths: List[GraphPath] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def segment_lengths(self) -> Dict[str, int]:
        return {node_id: node.length for node_id, node in self.segments.items()}


class GFAParser:
    """
    Parser for Graphical Fragment Assembly (GFA) files.
    Only segment lengths and path order are kept; links and tags are ignored.
    """

    def __init__(self):
        """Initialize the GFA parser."""
        self.logger = logging.getLogger(__name__)

    def parse(self, filepath: str) -> ParsedGraph:
        """
        Parse a GFA file.

        Args:
            filepath: Path to the GFA file (plain or gzip-compressed)

        Returns:
            The parsed graph

        Raises:
            FileNotFoundError: If the file doesn't exist
            InputFormatError: If the file holds no segments and no paths
        """
        if not os.path.exists(filepath):
            raise FileNotFoundError(f"GFA file not found: {filepath}")

        self.logger.info(f"Parsing GFA file: {filepath}")
        graph = ParsedGraph(source=str(filepath))
        seen_paths = set()

        with open_text(filepath) as gfa_file:
            for line_num, line_str in enumerate(gfa_file, 1):
                line_str = line_str.rstrip('\r\n')
                if not line_str or line_str.startswith('#'):
                    continue

                record_type = line_str[0]
                try:
                    if record_type == 'S':
                        node = self._parse_segment(line_str)
                        if node.id in graph.segments:
                            self._diagnose(graph, line_num, f"Duplicate segment '{node.id}' ignored")
                            continue
                        graph.segments[node.id] = node
                    elif record_type in ('P', 'W'):
                        if record_type == 'P':
                            path = self._parse_path(line_str, line_num)
                        else:
                            path = self._parse_walk(line_str, line_num)
                        if path.name in seen_paths:
                            self._diagnose(graph, line_num, f"Duplicate path '{path.name}' ignored")
                            continue
                        seen_paths.add(path.name)
                        graph.paths.append(path)
                    # Other record types carry nothing the index needs
                except Exception as e:
                    self._diagnose(graph, line_num, f"Malformed {record_type} line: {e}")

        if not graph.segments and not graph.paths:
            raise InputFormatError("Empty or invalid GFA file", source=str(filepath),
                                   expected="at least one S or P/W record", actual="none")

        self.logger.info(f"Parsed GFA with {len(graph.segments)} segments and {len(graph.paths)} paths "
                         f"({len(graph.diagnostics)} problem lines)")
        return graph

    def _diagnose(self, graph: ParsedGraph, line_num: int, message: str):
        graph.diagnostics.append(Diagnostic(graph.source, line_num, message))
        self.logger.warning(f"{graph.source}:{line_num}: {message}")

    @staticmethod
    def _parse_segment(line_str: str) -> GraphNode:
        seg = gfapy.Line(line_str)
        sequence = seg.sequence
        if not gfapy.is_placeholder(sequence):
            return GraphNode(id=str(seg.name), length=len(sequence))
        length = seg.get("LN")
        if length is None:
            raise ValueError(f"segment '{seg.name}' has no sequence and no LN tag")
        return GraphNode(id=str(seg.name), length=int(length))

    @staticmethod
    def _parse_path(line_str: str, line_num: int) -> GraphPath:
        path_line = gfapy.Line(line_str)
        steps = tuple(PathStep(node_id=str(oriented.name), orientation=oriented.orient)
                      for oriented in path_line.segment_names)
        return GraphPath(name=str(path_line.path_name), steps=steps, line_number=line_num)

    @staticmethod
    def _parse_walk(line_str: str, line_num: int) -> GraphPath:
        fields = line_str.split('\t')
        if len(fields) < 7:
            raise ValueError(f"expected 7 fields, found {len(fields)}")
        _, sample, haplotype, seq_id, _start, _end, walk = fields[:7]
        steps = []
        consumed = 0
        for match in WALK_STEP_RE.finditer(walk):
            steps.append(PathStep(node_id=match.group(2),
                                  orientation='+' if match.group(1) == '>' else '-'))
            consumed += len(match.group(0))
        if not steps or consumed != len(walk):
            raise ValueError(f"unparseable walk '{walk}'")
        return GraphPath(name=f"{sample}#{haplotype}#{seq_id}", steps=tuple(steps), line_number=line_num)

