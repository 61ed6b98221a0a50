"""
Stable sorting of VCF bodies.

The key is a column name, a zero-based column index, or ``genomic`` for
chromosome rank (1..22, X, Y, M) then POS then ID. A column is compared
numerically when every value in it is a number, otherwise by UTF-8 bytes.
Equal keys keep their input order in both directions.
"""

import logging
import re
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from gfaligner.core.errors import ColumnNotFoundError
from gfaligner.core.io import open_text, read_vcf, write_lines
from gfaligner.core.models import VcfHeader
from gfaligner.vcf.normalizer import canonical_token, extract_chr_token

logger = logging.getLogger(__name__)

GENOMIC = 'genomic'
DEFAULT_KEY = 'POS'

_NUMBER = re.compile(r'[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$')
_CHROM_RANK = {str(n): n for n in range(1, 23)}
_CHROM_RANK.update({'X': 23, 'Y': 24, 'M': 25})

KeySelector = Union[str, int]


def parse_number(value: str):
    if '.' in value or 'e' in value or 'E' in value:
        return float(value)
    return int(value)


def chrom_rank(chrom: str) -> Optional[int]:
    """Rank of a human chromosome name with or without "chr"; None for other contigs."""
    found_chr, token, _ = extract_chr_token(chrom)
    if not found_chr:
        token = chrom.strip().upper()
        if token == 'MT':
            token = 'M'
    return _CHROM_RANK.get(canonical_token(token) or '')


def _field(fields: List[str], index: int) -> str:
    return fields[index] if index < len(fields) else ''


def genomic_key(line: str) -> Tuple:
    fields = line.split('\t')
    chrom = fields[0]
    pos = _field(fields, 1)
    pos = int(pos) if pos.isdecimal() else 0
    rank = chrom_rank(chrom)
    if rank is None:
        return (1, 0, chrom.encode('utf-8'), pos, b'')
    return (0, rank, b'', pos, _field(fields, 2).encode('utf-8'))


class RecordSorter:
    """Sorts body lines by one key; the column is resolved once against the header."""

    def __init__(self, key: Optional[KeySelector] = DEFAULT_KEY, reverse: bool = False):
        if isinstance(key, str) and key.strip().lstrip('-').isdigit():
            key = int(key)
        self.key = DEFAULT_KEY if key is None else key
        self.reverse = reverse

    @property
    def is_genomic(self) -> bool:
        return isinstance(self.key, str) and self.key.lower() == GENOMIC

    def describe(self) -> str:
        direction = "descending" if self.reverse else "ascending"
        return f"{self.key} ({direction})"

    def resolve_column(self, header: VcfHeader, source: Optional[str] = None) -> int:
        """
        Map the key selector to a column index.

        Raises:
            ColumnNotFoundError: If the name is not a header column or the index is out of range.
        """
        columns = header.columns
        if isinstance(self.key, int):
            if 0 <= self.key < len(columns):
                return self.key
            raise ColumnNotFoundError(str(self.key), source, columns)
        if self.key in columns:
            return columns.index(self.key)
        wanted = self.key.lstrip('#').upper()
        for index, name in enumerate(columns):
            if name.lstrip('#').upper() == wanted:
                return index
        raise ColumnNotFoundError(self.key, source, columns)

    def key_function(self, header: VcfHeader, lines: List[str], source: Optional[str] = None,
                     column: Optional[int] = None) -> Callable[[str], object]:
        """Build the sort key; ``column`` is an index already returned by ``resolve_column``."""
        if self.is_genomic:
            return genomic_key
        index = self.resolve_column(header, source) if column is None else column
        values = [_field(line.split('\t'), index) for line in lines]
        if values and all(_NUMBER.match(v) for v in values):
            logger.debug(f"Sorting column {index} numerically")
            return lambda line: parse_number(_field(line.split('\t'), index))
        logger.debug(f"Sorting column {index} by bytes")
        return lambda line: _field(line.split('\t'), index).encode('utf-8')

    def sort(self, header: VcfHeader, lines: List[str], source: Optional[str] = None,
             column: Optional[int] = None) -> List[str]:
        """Return a new, stably sorted list of body lines."""
        key_func = self.key_function(header, lines, source, column)
        return sorted(lines, key=key_func, reverse=self.reverse)


def sort_vcf(vcf_file: Union[str, Path], output: Union[str, Path], sorter: RecordSorter) -> int:
    """Sort a VCF body, keeping every header line; returns the number of records."""
    source = str(vcf_file)
    header, numbered = read_vcf(vcf_file)
    body = sorter.sort(header, [line for _, line in numbered], source=source)
    with open_text(output, "w") as handle:
        write_lines(handle, header.lines())
        write_lines(handle, body)
    logger.info(f"Sorted {len(body)} records by {sorter.describe()} into {output}")
    return len(body)
