"""
VCF stages: node-to-path resolution, contig normalization, the record
pipeline, header synthesis, sorting and the hom-alt filter.
"""

from .resolver import AlignmentResolver, NodePathMap, build_node_path_map, read_alignment_table
from .normalizer import ChromNormalizer
from .pipeline import PipelineStats, RecordPipeline
from .header import HeaderSynthesizer, add_header
from .sorter import RecordSorter, sort_vcf
from .maf import filter_hom_alt

__all__ = ['AlignmentResolver', 'NodePathMap', 'build_node_path_map', 'read_alignment_table',
           'ChromNormalizer', 'PipelineStats', 'RecordPipeline', 'HeaderSynthesizer',
           'add_header', 'RecordSorter', 'sort_vcf', 'filter_hom_alt']
