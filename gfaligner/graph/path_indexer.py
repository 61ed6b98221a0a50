"""
Per-path positional index over a variation graph.

Every path is walked from offset 0; each step contributes the half-open
interval [offset, offset + segment length) to the index. Orientation does not
change length accounting. The resulting reference table has four columns:
node, start, end, path.
"""

import logging
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from gfaligner.core.errors import InputFormatError
from gfaligner.core.io import open_text
from gfaligner.core.models import Diagnostic, GraphPath, PathInterval
from gfaligner.graph.gfa_parser import ParsedGraph
from gfaligner.parallel.scheduler import execute_parallel

logger = logging.getLogger(__name__)

REFERENCE_HEADER = "node\tstart\tend\tpath"


@dataclass
class PathIndex:
    """Sorted path intervals plus the problems met while building or reading them."""
    intervals: List[PathInterval] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def contig_lengths(self) -> Dict[str, int]:
        """Maximum interval end per path name."""
        lengths: Dict[str, int] = {}
        for interval in self.intervals:
            if interval.end > lengths.get(interval.path, -1):
                lengths[interval.path] = interval.end
        return lengths

    def path_names(self) -> List[str]:
        return sorted(self.contig_lengths())


def index_path(path: GraphPath, segment_lengths: Dict[str, int]) -> List[PathInterval]:
    """
    Compute the intervals of a single path.

    Raises:
        InputFormatError: If the path references a segment the graph does not define.
    """
    intervals = []
    offset = 0
    for step in path.steps:
        length = segment_lengths.get(step.node_id)
        if length is None:
            raise InputFormatError(f"Path '{path.name}' references unknown segment '{step.node_id}'",
                                   line_number=path.line_number)
        intervals.append(PathInterval(step.node_id, path.name, offset, offset + length))
        offset += length
    return intervals


def _index_path_unit(segment_lengths: Dict[str, int], path: GraphPath) -> Tuple[List[PathInterval], Optional[str]]:
    # A bad path loses its own intervals only
    try:
        return index_path(path, segment_lengths), None
    except InputFormatError as e:
        return [], str(e)


def interval_sort_key(numeric_nodes: bool):
    if numeric_nodes:
        return lambda iv: (int(iv.node_id), iv.path, iv.start)
    return lambda iv: (iv.node_id, iv.path, iv.start)


def sort_intervals(intervals: List[PathInterval]) -> List[PathInterval]:
    """Sort by node id (numerically when every id is an integer), then path, then start."""
    numeric = all(iv.node_id.isdecimal() for iv in intervals)
    return sorted(intervals, key=interval_sort_key(numeric))


class GraphPathIndexer:
    """Builds a PathIndex from a parsed graph, one scheduler unit per path."""

    def __init__(self, threads: int = 1, pool_type: str = 'thread', progress: bool = False):
        self.threads = threads
        self.pool_type = pool_type
        self.progress = progress

    def build(self, graph: ParsedGraph) -> PathIndex:
        index = PathIndex(diagnostics=list(graph.diagnostics))
        if not graph.paths:
            logger.warning(f"No paths found in {graph.source}; reference table will be empty")
            return index

        logger.info(f"Indexing {len(graph.paths)} paths with {self.threads} worker(s)")
        unit = partial(_index_path_unit, graph.segment_lengths())
        results = execute_parallel(unit, graph.paths, num_workers=self.threads,
                                   pool_type=self.pool_type, track_progress=self.progress)

        collected: List[PathInterval] = []
        skipped = 0
        for path, (intervals, error) in zip(graph.paths, results):
            if error is not None:
                skipped += 1
                index.diagnostics.append(Diagnostic(graph.source, path.line_number, error))
                logger.warning(f"{graph.source}: {error}; path skipped")
                continue
            collected.extend(intervals)

        index.intervals = sort_intervals(collected)
        logger.info(f"Indexed {len(index.intervals)} intervals over "
                    f"{len(graph.paths) - skipped} paths ({skipped} skipped)")
        return index


def write_reference_table(index: PathIndex, output: Union[str, Path]) -> int:
    """Write the four-column reference table; returns the number of rows written."""
    with open_text(output, "w") as handle:
        handle.write(REFERENCE_HEADER + "\n")
        for interval in index.intervals:
            handle.write(interval.to_row() + "\n")
    logger.info(f"Wrote {len(index.intervals)} intervals to {output}")
    return len(index.intervals)


def read_reference_table(table_file: Union[str, Path], strict: bool = False) -> PathIndex:
    """
    Read a reference table produced by ``extract``.

    Rows must have exactly four columns (node, start, end, path) with integer
    offsets and start <= end. Bad rows become diagnostics, or raise in strict mode.

    Raises:
        FileNotFoundError: If the table does not exist.
        InputFormatError: On the first bad row when ``strict`` is set.
    """
    source = str(table_file)
    index = PathIndex()
    with open_text(table_file) as handle:
        for line_num, raw in enumerate(handle, 1):
            line = raw.rstrip('\r\n')
            if not line.strip() or line.startswith('#'):
                continue
            fields = line.split('\t')
            if line_num == 1 and fields[0].strip().lower() == 'node':
                continue
            try:
                if len(fields) != 4:
                    raise InputFormatError("Wrong column count", source, line_num,
                                           expected="4 columns", actual=f"{len(fields)} columns")
                node, start, end, path = (f.strip() for f in fields)
                if not (start.isdecimal() and end.isdecimal()):
                    raise InputFormatError("Non-numeric offset", source, line_num,
                                           expected="non-negative integers", actual=f"'{start}', '{end}'")
                if int(end) < int(start) or not node or not path:
                    raise InputFormatError("Invalid interval", source, line_num,
                                           expected="non-empty node/path and start <= end",
                                           actual=f"'{line}'")
            except InputFormatError as e:
                if strict:
                    raise
                index.diagnostics.append(Diagnostic(source, line_num, str(e)))
                continue
            index.intervals.append(PathInterval(node, path, int(start), int(end)))

    logger.info(f"Read {len(index.intervals)} reference intervals from {source} "
                f"({len(index.diagnostics)} bad rows)")
    return index
