"""
Streaming VCF record pipeline.

Data lines are grouped into contiguous units of ``chunk_lines`` lines. Each
unit is run by a worker: split, resolve CHROM to a path, apply the skip
filter, normalize, and render. Units are merged by index, so the output does
not depend on the number of workers.
"""

import itertools
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Iterable, Iterator, List, Optional, Tuple, Union

from gfaligner.core.errors import InputFormatError, ResolutionError
from gfaligner.core.io import VcfReader, open_text, write_lines
from gfaligner.core.models import Diagnostic, VcfHeader, VcfRecord
from gfaligner.parallel.scheduler import TaskChunker, create_worker_pool
from gfaligner.vcf.normalizer import ChromNormalizer
from gfaligner.vcf.resolver import AlignmentResolver

logger = logging.getLogger(__name__)

MALFORMED_POLICIES = ('drop', 'keep')
HEADER_MODES = ('keep', 'none', 'synthesize')
DEFAULT_CHUNK_LINES = 50000


@dataclass
class PipelineStats:
    """Counters for one pipeline run; per-unit stats are merged in unit order."""
    total: int = 0
    resolved: int = 0
    unresolved: int = 0
    skipped: int = 0
    dropped_by_level: int = 0
    malformed: int = 0
    emitted: int = 0
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def merge(self, other: "PipelineStats") -> None:
        self.total += other.total
        self.resolved += other.resolved
        self.unresolved += other.unresolved
        self.skipped += other.skipped
        self.dropped_by_level += other.dropped_by_level
        self.malformed += other.malformed
        self.emitted += other.emitted
        self.diagnostics.extend(other.diagnostics)

    def summary(self) -> str:
        return (f"{self.total} records read, {self.emitted} written, {self.resolved} resolved, "
                f"{self.unresolved} unresolved, {self.skipped} skipped, "
                f"{self.dropped_by_level} dropped by ignore level, {self.malformed} malformed")


@dataclass
class UnitResult:
    lines: List[str]
    stats: PipelineStats


class RecordUnit:
    """
    Processes one unit of numbered data lines.

    A module-level class so it pickles for the process pool; it only reads the
    shared resolver and normalizer.
    """

    def __init__(self, resolver: AlignmentResolver, normalizer: ChromNormalizer,
                 column_count: int, source: str = "<vcf>",
                 on_malformed: str = 'drop', strict: bool = False):
        self.resolver = resolver
        self.normalizer = normalizer
        self.column_count = column_count
        self.source = source
        self.on_malformed = on_malformed
        self.strict = strict

    def __call__(self, unit: List[Tuple[int, str]]) -> UnitResult:
        stats = PipelineStats()
        lines: List[str] = []
        for line_num, line in unit:
            stats.total += 1
            record = VcfRecord.from_line(line, line_num)
            if len(record.fields) != self.column_count:
                stats.malformed += 1
                error = InputFormatError("Wrong number of fields", self.source, line_num,
                                         expected=f"{self.column_count} columns",
                                         actual=f"{len(record.fields)} columns")
                if self.strict:
                    raise error
                stats.diagnostics.append(Diagnostic(self.source, line_num, str(error)))
                if self.on_malformed == 'keep':
                    lines.append(line)
                    stats.emitted += 1
                continue

            output = self.transform(record, stats)
            if output is not None:
                lines.append(output)
                stats.emitted += 1
        return UnitResult(lines, stats)

    def transform(self, record: VcfRecord, stats: PipelineStats) -> Optional[str]:
        """Resolve, filter and normalize one well-formed record; None when it is dropped."""
        node_key, path = self.resolver.resolve(record)
        if path is None:
            stats.unresolved += 1
            logger.debug(str(ResolutionError(node_key, record.line_number)))
            chrom = record.chrom
        else:
            stats.resolved += 1
            chrom = path

        if self.normalizer.should_skip(chrom):
            stats.skipped += 1
            return None

        normalized = self.normalizer.normalize(chrom)
        if normalized is None:
            stats.dropped_by_level += 1
            return None
        record.chrom = normalized
        return record.to_line()


def declared_column_count(header: VcfHeader, first_line: Optional[Tuple[int, str]],
                          source: str) -> Optional[int]:
    """Column count from the #CHROM line, else from the first data line."""
    if header.column_count is not None:
        return header.column_count
    if first_line is None:
        return None
    count = len(first_line[1].split('\t'))
    logger.warning(f"{source}: no #CHROM header line; using {count} columns from line {first_line[0]}")
    return count


class RecordPipeline:
    """Runs VCF data lines through resolution, skip filtering and normalization."""

    def __init__(self, resolver: AlignmentResolver, normalizer: ChromNormalizer,
                 threads: int = 1, pool_type: str = 'thread',
                 chunk_lines: int = DEFAULT_CHUNK_LINES, on_malformed: str = 'drop',
                 strict: bool = False, progress: bool = False):
        if on_malformed not in MALFORMED_POLICIES:
            raise ValueError(f"Unknown malformed-line policy: {on_malformed}. Use one of {MALFORMED_POLICIES}.")
        self.resolver = resolver
        self.normalizer = normalizer
        self.threads = threads
        self.pool_type = pool_type
        self.chunk_lines = max(1, chunk_lines)
        self.on_malformed = on_malformed
        self.strict = strict
        self.progress = progress

    def process_lines(self, data_lines: Iterable[Tuple[int, str]], column_count: int,
                      stats: PipelineStats, source: str = "<vcf>") -> Iterator[str]:
        """
        Yield output lines in input order; ``stats`` is updated as each unit is merged.

        Raises:
            InputFormatError: On the first malformed line in strict mode.
        """
        unit_func = RecordUnit(self.resolver, self.normalizer, column_count, source,
                               self.on_malformed, self.strict)
        units = TaskChunker.iter_chunks(data_lines, self.chunk_lines)
        with create_worker_pool(self.pool_type, self.threads, self.progress) as pool:
            for result in pool.imap(unit_func, units):
                stats.merge(result.stats)
                yield from result.lines

    def run(self, vcf_file: Union[str, Path], output: Union[str, Path, IO[str]],
            header_mode: str = 'keep', sorter=None, synthesizer=None) -> PipelineStats:
        """
        Align one VCF file and write the result.

        Args:
            vcf_file: Input VCF, plain or gzip-compressed.
            output: Output path or an open text handle.
            header_mode: ``keep`` writes the input header verbatim, ``none`` writes
                the body only, ``synthesize`` writes ``synthesizer``'s header.
            sorter: Optional RecordSorter; the body is buffered and sorted when given.
            synthesizer: HeaderSynthesizer used when ``header_mode`` is ``synthesize``.

        Returns:
            The merged statistics of the run.
        """
        if header_mode not in HEADER_MODES:
            raise ValueError(f"Unknown header mode: {header_mode}. Use one of {HEADER_MODES}.")
        if header_mode == 'synthesize' and synthesizer is None:
            raise ValueError("A header synthesizer is required to synthesize the header")

        source = str(vcf_file)
        stats = PipelineStats()
        with VcfReader(vcf_file) as reader:
            # An unknown sort column fails here, before any unit is dispatched
            sort_column = None
            if sorter is not None and not sorter.is_genomic:
                sort_column = sorter.resolve_column(reader.header, source)

            data = reader.data_lines()
            first = next(data, None)
            column_count = declared_column_count(reader.header, first, source)
            if first is None:
                logger.warning(f"{source}: no data lines")
                body: Iterable[str] = iter(())
            else:
                body = self.process_lines(itertools.chain([first], data), column_count, stats, source)

            # Sorting and header synthesis both need the whole body
            if sorter is not None or header_mode == 'synthesize':
                body = list(body)
                if sorter is not None:
                    logger.info(f"Sorting {len(body)} records by {sorter.describe()}")
                    body = sorter.sort(reader.header, body, source=source, column=sort_column)

            if header_mode == 'keep':
                header_lines = reader.header.lines()
            elif header_mode == 'synthesize':
                header_lines = synthesizer.synthesize(reader.header, body)
            else:
                header_lines = []

            if isinstance(output, (str, Path)):
                with open_text(output, "w") as handle:
                    write_lines(handle, header_lines)
                    write_lines(handle, body)
            else:
                write_lines(output, header_lines)
                write_lines(output, body)

        logger.info(f"Pipeline finished: {stats.summary()}")
        if stats.unresolved:
            logger.warning(f"{stats.unresolved} records had no node-to-path mapping; CHROM kept as-is")
        return stats
