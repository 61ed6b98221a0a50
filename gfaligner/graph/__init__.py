from .gfa_parser import GFAParser, ParsedGraph
from .path_indexer import (
    GraphPathIndexer,
    PathIndex,
    index_path,
    read_reference_table,
    write_reference_table
)

__all__ = ['GFAParser', 'ParsedGraph', 'GraphPathIndexer', 'PathIndex',
           'index_path', 'read_reference_table', 'write_reference_table']
