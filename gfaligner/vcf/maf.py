"""Hom-alt proportion filter for multi-sample VCFs."""

import logging
import re
from functools import partial
from pathlib import Path
from typing import List, Optional, Set, Tuple, Union

from gfaligner.core.io import open_text, read_vcf, write_lines
from gfaligner.parallel.scheduler import TaskChunker, create_worker_pool

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.05
DEFAULT_UNIT_LINES = 50000

MISSING_GT = frozenset(['.', './.', '.|.'])
HOM_REF = frozenset(['0/0', '0|0'])
HOM_ALT = frozenset(['1/1', '1|1'])

_CONTIG_ID = re.compile(r'^##contig=<.*?\bID=([^,>]+)')


def hom_alt_fraction(fields: List[str]) -> Optional[float]:
    """
    Fraction of 1/1 genotypes among non-missing ones.

    Returns None when the record cannot pass: no samples, no GT key, no
    non-missing GT, or every non-missing GT homozygous.
    """
    if len(fields) < 10:
        return None
    keys = fields[8].split(':')
    if 'GT' not in keys:
        return None
    gt_index = keys.index('GT')

    called = hom_alt = hom_ref = 0
    for sample in fields[9:]:
        if not sample:
            continue
        parts = sample.split(':')
        if gt_index >= len(parts):
            continue
        gt = parts[gt_index]
        if gt in MISSING_GT:
            continue
        called += 1
        if gt in HOM_ALT:
            hom_alt += 1
        elif gt in HOM_REF:
            hom_ref += 1

    if called == 0 or hom_alt + hom_ref == called:
        return None
    return hom_alt / called


def _filter_unit(threshold: float, lines: List[str]) -> List[str]:
    kept = []
    for line in lines:
        fraction = hom_alt_fraction(line.split('\t'))
        if fraction is not None and fraction > threshold:
            kept.append(line)
    return kept


def contig_id(meta_line: str) -> Optional[str]:
    match = _CONTIG_ID.match(meta_line)
    return match.group(1) if match else None


def prune_contigs(meta_lines: List[str], kept_chroms: Set[str]) -> List[str]:
    """Drop ##contig lines whose ID has no kept record."""
    pruned = []
    for line in meta_lines:
        cid = contig_id(line)
        if cid is not None and cid not in kept_chroms:
            continue
        pruned.append(line)
    return pruned


def filter_hom_alt(vcf_file: Union[str, Path], output: Union[str, Path],
                   threshold: float = DEFAULT_THRESHOLD, threads: int = 1,
                   pool_type: str = 'thread', progress: bool = False) -> Tuple[int, int]:
    """
    Keep records whose hom-alt fraction is above ``threshold``.

    Returns:
        ``(records read, records kept)``
    """
    header, numbered = read_vcf(vcf_file)
    body = [line for _, line in numbered]
    units = TaskChunker.chunk_by_size(body, DEFAULT_UNIT_LINES)

    kept: List[str] = []
    if units:
        with create_worker_pool(pool_type, threads, progress) as pool:
            for unit in pool.map(partial(_filter_unit, threshold), units):
                kept.extend(unit)

    kept_chroms = {line.split('\t', 1)[0] for line in kept}
    meta = prune_contigs(header.meta_lines, kept_chroms)
    with open_text(output, "w") as handle:
        write_lines(handle, meta)
        if header.column_line is not None:
            write_lines(handle, [header.column_line])
        write_lines(handle, kept)
    logger.info(f"Kept {len(kept)} of {len(body)} records with hom-alt fraction > {threshold} "
                f"({len(header.meta_lines) - len(meta)} contig lines removed)")
    return len(body), len(kept)
