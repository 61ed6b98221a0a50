"""
VCF header synthesis.

Builds a header from the fixed meta lines, contig lines taken from the
reference table, the input's own INFO/FILTER/FORMAT definitions, and
definitions inferred from the body for keys the input does not declare.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple, Union

from gfaligner.core.io import open_text, read_vcf, write_lines
from gfaligner.core.models import VCF_FIXED_COLUMNS, VcfHeader, column_line_for
from gfaligner.graph.path_indexer import PathIndex
from gfaligner.parallel.scheduler import TaskChunker, create_worker_pool
from gfaligner.vcf.normalizer import ChromNormalizer

logger = logging.getLogger(__name__)

DEFAULT_FILEFORMAT = "##fileformat=VCFv4.2"
SOURCE_LINE = "##source=gfaligner"
PASS_FILTER_LINE = '##FILTER=<ID=PASS,Description="All filters passed">'
PRESERVED_PREFIXES = ("##INFO=<", "##FILTER=<", "##FORMAT=<")
DEFAULT_SCAN_LINES = 100000

_INTEGER = re.compile(r'[+-]?\d+$')
_FLOAT = re.compile(r'[+-]?(\d+\.\d*|\.\d+)([eE][+-]?\d+)?$')
_META_ID = re.compile(r'^##(INFO|FORMAT|FILTER)=<ID=([^,>]+)')


def value_kind(token: str) -> str:
    """Classify one value as Integer, Float or String."""
    if _INTEGER.match(token):
        return "Integer"
    if _FLOAT.match(token):
        return "Float"
    return "String"


@dataclass
class KeyStats:
    """What was observed for one INFO or FORMAT key across the body."""
    observations: int = 0
    as_flag: int = 0
    all_int: bool = True
    any_float: bool = False
    any_string: bool = False
    all_single: bool = True
    matches_a: int = 0
    matches_r: int = 0

    def observe(self, raw: str, alt_count: Optional[int] = None) -> None:
        self.observations += 1
        values = raw.split(',')
        if len(values) > 1:
            self.all_single = False
        if alt_count is not None:
            if len(values) == alt_count:
                self.matches_a += 1
            if len(values) == alt_count + 1:
                self.matches_r += 1
        for value in values:
            if value in ('', '.'):
                continue
            kind = value_kind(value)
            if kind == "Float":
                self.all_int = False
                self.any_float = True
            elif kind == "String":
                self.all_int = False
                self.any_string = True

    def merge(self, other: "KeyStats") -> None:
        self.observations += other.observations
        self.as_flag += other.as_flag
        self.all_int &= other.all_int
        self.any_float |= other.any_float
        self.any_string |= other.any_string
        self.all_single &= other.all_single
        self.matches_a += other.matches_a
        self.matches_r += other.matches_r

    @property
    def type_name(self) -> str:
        if self.any_string:
            return "String"
        if self.any_float:
            return "Float"
        if self.all_int and self.observations:
            return "Integer"
        return "String"


@dataclass
class BodyScan:
    """Per-unit INFO and FORMAT statistics, merged in unit order."""
    info: Dict[str, KeyStats] = field(default_factory=dict)
    format: Dict[str, KeyStats] = field(default_factory=dict)
    records: int = 0

    def merge(self, other: "BodyScan") -> None:
        for target, source in ((self.info, other.info), (self.format, other.format)):
            for key, stats in source.items():
                if key in target:
                    target[key].merge(stats)
                else:
                    target[key] = stats
        self.records += other.records


def scan_lines(lines: List[str]) -> BodyScan:
    """Collect key statistics from a block of data lines."""
    scan = BodyScan()
    for line in lines:
        fields = line.split('\t')
        if len(fields) < len(VCF_FIXED_COLUMNS):
            continue
        scan.records += 1
        alt_count = len([a for a in fields[4].split(',') if a])

        for item in fields[7].split(';'):
            if not item or item == '.':
                continue
            key, sep, value = item.partition('=')
            stats = scan.info.setdefault(key, KeyStats())
            if not sep:
                stats.observations += 1
                stats.as_flag += 1
                continue
            stats.observe(value, alt_count)

        if len(fields) <= len(VCF_FIXED_COLUMNS) + 1:
            continue
        keys = fields[8].split(':')
        for sample in fields[9:]:
            for key, value in zip(keys, sample.split(':')):
                stats = scan.format.setdefault(key, KeyStats())
                if value == '.':
                    continue
                stats.observe(value)
        for key in keys:
            scan.format.setdefault(key, KeyStats())
    return scan


def info_definition(key: str, stats: KeyStats) -> str:
    if stats.as_flag and stats.as_flag == stats.observations:
        number, type_name = "0", "Flag"
    else:
        valued = stats.observations - stats.as_flag
        if valued and stats.matches_a * 2 >= valued:
            number = "A"
        elif valued and stats.matches_r * 2 >= valued:
            number = "R"
        elif stats.all_single:
            number = "1"
        else:
            number = "."
        type_name = stats.type_name
    return f'##INFO=<ID={key},Number={number},Type={type_name},Description="Inferred from body">'


def format_definition(key: str, stats: KeyStats) -> str:
    if key == "GT":
        number, type_name = "1", "String"
    else:
        number = "1" if stats.all_single else "."
        type_name = stats.type_name
    return f'##FORMAT=<ID={key},Number={number},Type={type_name},Description="Inferred from FORMAT column">'


def declared_ids(meta_lines: Sequence[str]) -> Dict[str, Set[str]]:
    """IDs already declared by INFO, FORMAT and FILTER meta lines."""
    declared: Dict[str, Set[str]] = {"INFO": set(), "FORMAT": set(), "FILTER": set()}
    for line in meta_lines:
        match = _META_ID.match(line)
        if match:
            declared[match.group(1)].add(match.group(2))
    return declared


class HeaderSynthesizer:
    """
    Synthesizes a VCF header for a body.

    Args:
        reference: Path index whose path names and maximum end offsets become contig lines.
        ignore_level: Ignore level applied to contig names (0 keeps every path name).
        samples: Explicit sample names; otherwise the input's #CHROM line is used.
        threads: Workers for the body scan.
    """

    def __init__(self, reference: Optional[PathIndex] = None, ignore_level: int = 0,
                 samples: Optional[List[str]] = None, threads: int = 1,
                 pool_type: str = 'thread', chunk_lines: int = DEFAULT_SCAN_LINES,
                 progress: bool = False):
        self.reference = reference
        self.normalizer = ChromNormalizer(ignore_level)
        self.samples = samples
        self.threads = threads
        self.pool_type = pool_type
        self.chunk_lines = chunk_lines
        self.progress = progress

    def contig_lines(self) -> List[str]:
        if self.reference is None:
            return []
        lengths: Dict[str, int] = {}
        for path, length in self.reference.contig_lengths().items():
            name = self.normalizer.normalize(path)
            if name is None:
                logger.debug(f"Contig '{path}' dropped at ignore level {self.normalizer.level}")
                continue
            lengths[name] = max(length, lengths.get(name, 0))
        if not lengths:
            logger.warning("Reference table produced no contigs")
        lines = []
        for name in sorted(lengths):
            if lengths[name] > 0:
                lines.append(f"##contig=<ID={name},length={lengths[name]}>")
            else:
                lines.append(f"##contig=<ID={name}>")
        return lines

    def scan(self, body: List[str]) -> BodyScan:
        """Scan the body in index-tagged units and merge the results in order."""
        result = BodyScan()
        blocks = TaskChunker.chunk_by_size(body, self.chunk_lines)
        if not blocks:
            return result
        with create_worker_pool(self.pool_type, self.threads, self.progress) as pool:
            for unit in pool.map(scan_lines, blocks):
                result.merge(unit)
        logger.info(f"Scanned {result.records} records: {len(result.info)} INFO keys, "
                    f"{len(result.format)} FORMAT keys")
        return result

    def column_line(self, header: VcfHeader, body: List[str]) -> str:
        if self.samples is not None:
            return column_line_for(self.samples)
        if header.column_line is not None:
            return header.column_line
        if body and len(body[0].split('\t')) > len(VCF_FIXED_COLUMNS) + 1:
            logger.warning("No #CHROM line and no sample names given; samples will be unnamed")
        return column_line_for([])

    def synthesize(self, header: VcfHeader, body: List[str]) -> List[str]:
        """Return the complete header for ``body`` (meta lines then the column line)."""
        scan = self.scan(body)
        declared = declared_ids(header.meta_lines)

        fileformat = header.meta_value("fileformat")
        lines = [f"##fileformat={fileformat}" if fileformat else DEFAULT_FILEFORMAT, SOURCE_LINE]
        if "PASS" not in declared["FILTER"]:
            lines.append(PASS_FILTER_LINE)
        lines.extend(self.contig_lines())
        lines.extend(l for l in header.meta_lines if l.startswith(PRESERVED_PREFIXES))

        added_info = [info_definition(k, scan.info[k]) for k in sorted(scan.info)
                      if k not in declared["INFO"]]
        added_format = [format_definition(k, scan.format[k]) for k in sorted(scan.format)
                        if k not in declared["FORMAT"]]
        lines.extend(added_info)
        lines.extend(added_format)
        logger.info(f"Synthesized header: {len(lines)} meta lines "
                    f"({len(added_info)} INFO and {len(added_format)} FORMAT definitions inferred)")
        lines.append(self.column_line(header, body))
        return lines


def add_header(vcf_file: Union[str, Path], output: Union[str, Path],
               synthesizer: HeaderSynthesizer) -> Tuple[int, int]:
    """Write ``vcf_file`` with a synthesized header; returns (header lines, body lines)."""
    header, numbered = read_vcf(vcf_file)
    body = [line for _, line in numbered]
    header_lines = synthesizer.synthesize(header, body)
    with open_text(output, "w") as handle:
        write_lines(handle, header_lines)
        write_lines(handle, body)
    logger.info(f"Wrote {len(header_lines)} header lines and {len(body)} records to {output}")
    return len(header_lines), len(body)
