"""
gfaligner: convert VCF coordinates between linear references and GFA graph paths.
"""

__version__ = "0.2.0"

from .graph.gfa_parser import GFAParser
from .graph.path_indexer import GraphPathIndexer
from .vcf.resolver import AlignmentResolver
from .vcf.normalizer import ChromNormalizer
from .vcf.pipeline import RecordPipeline
from .vcf.header import HeaderSynthesizer
from .vcf.sorter import RecordSorter

__all__ = [
    "GFAParser",
    "GraphPathIndexer",
    "AlignmentResolver",
    "ChromNormalizer",
    "RecordPipeline",
    "HeaderSynthesizer",
    "RecordSorter"
]
