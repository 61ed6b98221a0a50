"""
Node-to-path resolution for VCF records.

The node-to-path map is built once from the alignment table and, for nodes
the table does not cover, from the reference table. It is read-only
afterwards and shared by every worker.
"""

import logging
import re
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from gfaligner.core.errors import DuplicateMappingError, InputFormatError
from gfaligner.core.io import open_text
from gfaligner.core.models import AlignmentEntry, Diagnostic, VcfRecord
from gfaligner.graph.path_indexer import PathIndex

logger = logging.getLogger(__name__)

DUPLICATE_POLICIES = ('first', 'error')
NODE_KEY_MODES = ('auto', 'chrom', 'pos')
ALIGNMENT_MIN_FIELDS = 5

SOURCE_ALIGNMENT = 'alignment'
SOURCE_REFERENCE = 'reference'

_TRAILING_DIGITS = re.compile(r'(\d+)\D*$')


class NodePathMap(Mapping[str, str]):
    """Immutable node id -> path name mapping that remembers each entry's source table."""

    def __init__(self, paths: Dict[str, str], sources: Dict[str, str]):
        self._paths = MappingProxyType(dict(paths))
        self._sources = MappingProxyType(dict(sources))

    def __getitem__(self, node_id: str) -> str:
        return self._paths[node_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._paths)

    def __len__(self) -> int:
        return len(self._paths)

    def __reduce__(self):
        # mappingproxy does not pickle; rebuild from plain dicts in worker processes
        return NodePathMap, (dict(self._paths), dict(self._sources))

    def source_of(self, node_id: str) -> Optional[str]:
        return self._sources.get(node_id)

    def count_by_source(self) -> Dict[str, int]:
        counts = {SOURCE_ALIGNMENT: 0, SOURCE_REFERENCE: 0}
        for source in self._sources.values():
            counts[source] += 1
        return counts


def read_alignment_table(table_file: Union[str, Path],
                         strict: bool = False) -> Tuple[List[AlignmentEntry], List[Diagnostic]]:
    """
    Read an alignment table: tab-delimited, at least five columns,
    column 0 the node id and column 4 the path name. Extra columns are ignored.

    Raises:
        FileNotFoundError: If the table does not exist.
        InputFormatError: On the first short row when ``strict`` is set.
    """
    source = str(table_file)
    entries: List[AlignmentEntry] = []
    diagnostics: List[Diagnostic] = []
    with open_text(table_file) as handle:
        for line_num, raw in enumerate(handle, 1):
            line = raw.rstrip('\r\n')
            if not line.strip() or line.startswith('#'):
                continue
            fields = line.split('\t')
            if line_num == 1 and fields[0].strip().lower() == 'node':
                continue
            node = fields[0].strip()
            path = fields[4].strip() if len(fields) >= ALIGNMENT_MIN_FIELDS else ''
            if len(fields) < ALIGNMENT_MIN_FIELDS or not node or not path:
                error = InputFormatError("Malformed alignment row", source, line_num,
                                         expected=f">= {ALIGNMENT_MIN_FIELDS} columns with node and path",
                                         actual=f"{len(fields)} columns")
                if strict:
                    raise error
                diagnostics.append(Diagnostic(source, line_num, str(error)))
                continue
            entries.append(AlignmentEntry(node, path, line_num))
    logger.info(f"Read {len(entries)} alignment rows from {source} ({len(diagnostics)} bad rows)")
    return entries, diagnostics


def _collect(rows: Iterable[Tuple[str, str, Optional[int]]], source: str,
             duplicate_policy: str) -> Dict[str, str]:
    """First occurrence per node in file order; conflicting repeats counted or rejected."""
    mapping: Dict[str, str] = {}
    conflicts = 0
    for node_id, path, line_num in rows:
        previous = mapping.get(node_id)
        if previous is None:
            mapping[node_id] = path
        elif previous != path:
            if duplicate_policy == 'error':
                raise DuplicateMappingError(f"Node '{node_id}' mapped to more than one path",
                                            source, line_num,
                                            expected=f"'{previous}'", actual=f"'{path}'")
            conflicts += 1
    if conflicts:
        logger.warning(f"{conflicts} conflicting mappings in {source} ignored (first occurrence wins)")
    return mapping


def build_node_path_map(alignment: Optional[List[AlignmentEntry]] = None,
                        reference: Optional[PathIndex] = None,
                        duplicate_policy: str = 'first',
                        alignment_source: str = SOURCE_ALIGNMENT,
                        reference_source: str = SOURCE_REFERENCE) -> NodePathMap:
    """
    Merge the alignment table and the reference table into one map.

    Alignment entries take precedence; reference entries only fill nodes the
    alignment table does not mention. ``duplicate_policy`` applies to the
    alignment table only.
    """
    if duplicate_policy not in DUPLICATE_POLICIES:
        raise ValueError(f"Unknown duplicate policy: {duplicate_policy}. Use one of {DUPLICATE_POLICIES}.")

    paths: Dict[str, str] = {}
    sources: Dict[str, str] = {}
    if alignment:
        rows = ((e.node_id, e.path, e.line_number) for e in alignment)
        for node_id, path in _collect(rows, alignment_source, duplicate_policy).items():
            paths[node_id] = path
            sources[node_id] = SOURCE_ALIGNMENT
    if reference is not None:
        # A node lies on every path through it; its first row in table order is used
        added = 0
        for interval in reference.intervals:
            if interval.node_id not in paths:
                paths[interval.node_id] = interval.path
                sources[interval.node_id] = SOURCE_REFERENCE
                added += 1
        logger.info(f"Reference table {reference_source} merged, {added} new node-paths added")
    logger.info(f"Node-to-path map holds {len(paths)} nodes")
    return NodePathMap(paths, sources)


class AlignmentResolver:
    """Maps a record's node key to a path name using a shared NodePathMap."""

    def __init__(self, node_paths: NodePathMap, node_key: str = 'auto'):
        if node_key not in NODE_KEY_MODES:
            raise ValueError(f"Unknown node key mode: {node_key}. Use one of {NODE_KEY_MODES}.")
        self.node_paths = node_paths
        self.node_key_mode = node_key

    def node_key(self, record: VcfRecord) -> str:
        """
        Derive the node id a record refers to.

        ``chrom`` and ``pos`` use that field verbatim. ``auto`` takes CHROM when it
        is a known node or all digits, then the trailing digit run of CHROM
        (``node_1234``), then POS, preferring whichever is a known node.
        """
        chrom = record.chrom
        if self.node_key_mode == 'chrom':
            return chrom
        if self.node_key_mode == 'pos':
            return record.pos
        if chrom in self.node_paths or chrom.isdecimal():
            return chrom
        match = _TRAILING_DIGITS.search(chrom)
        if match and match.group(1) in self.node_paths:
            return match.group(1)
        if record.pos in self.node_paths:
            return record.pos
        return chrom

    def resolve(self, record: VcfRecord) -> Tuple[str, Optional[str]]:
        """Return ``(node_key, path)``; path is None when neither table knows the node."""
        key = self.node_key(record)
        return key, self.node_paths.get(key)
