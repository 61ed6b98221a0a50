from dataclasses import dataclass, field
from typing import List, Optional, Tuple

# Fixed VCF columns; FORMAT and samples follow when present.
VCF_FIXED_COLUMNS: Tuple[str, ...] = ("#CHROM", "POS", "ID", "REF", "ALT", "QUAL", "FILTER", "INFO")
VCF_FORMAT_COLUMN = "FORMAT"


@dataclass(frozen=True)
class GraphNode:
    """A graph segment; only its length matters for coordinates."""
    id: str
    length: int


@dataclass(frozen=True)
class PathStep:
    node_id: str
    orientation: str = "+"


@dataclass(frozen=True)
class GraphPath:
    """An ordered traversal of segments (a P line, or a W line converted to a path)."""
    name: str
    steps: Tuple[PathStep, ...]
    line_number: Optional[int] = None


@dataclass(frozen=True)
class PathInterval:
    """Half-open span [start, end) that a node occupies on a path."""
    node_id: str
    path: str
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start

    def to_row(self) -> str:
        return f"{self.node_id}\t{self.start}\t{self.end}\t{self.path}"


@dataclass(frozen=True)
class AlignmentEntry:
    """One alignment table row: column 0 is the node, column 4 the path."""
    node_id: str
    path: str
    line_number: Optional[int] = None


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal problem found on one input line."""
    source: str
    line_number: Optional[int]
    message: str

    def __str__(self) -> str:
        where = f"{self.source}:{self.line_number}" if self.line_number is not None else self.source
        return f"{where}: {self.message}"


@dataclass
class VcfRecord:
    """A VCF data line split into its tab-delimited fields."""
    fields: List[str]
    line_number: Optional[int] = None

    @classmethod
    def from_line(cls, line: str, line_number: Optional[int] = None) -> "VcfRecord":
        return cls(fields=line.rstrip("\r\n").split("\t"), line_number=line_number)

    @property
    def chrom(self) -> str:
        return self.fields[0]

    @chrom.setter
    def chrom(self, value: str) -> None:
        self.fields[0] = value

    @property
    def pos(self) -> str:
        return self.fields[1] if len(self.fields) > 1 else ""

    def to_line(self) -> str:
        return "\t".join(self.fields)


@dataclass
class VcfHeader:
    """Meta lines (##...) plus the #CHROM column line, kept verbatim."""
    meta_lines: List[str] = field(default_factory=list)
    column_line: Optional[str] = None

    @property
    def columns(self) -> List[str]:
        if self.column_line is None:
            return list(VCF_FIXED_COLUMNS)
        return self.column_line.split("\t")

    @property
    def samples(self) -> List[str]:
        return self.columns[len(VCF_FIXED_COLUMNS) + 1:]

    @property
    def column_count(self) -> Optional[int]:
        if self.column_line is None:
            return None
        return len(self.columns)

    def meta_value(self, key: str) -> Optional[str]:
        prefix = f"##{key}="
        for line in self.meta_lines:
            if line.startswith(prefix):
                return line[len(prefix):]
        return None

    def lines(self) -> List[str]:
        lines = list(self.meta_lines)
        if self.column_line is not None:
            lines.append(self.column_line)
        return lines


def column_line_for(samples: List[str]) -> str:
    """Build a #CHROM line for the given sample names."""
    columns = list(VCF_FIXED_COLUMNS)
    if samples:
        columns.append(VCF_FORMAT_COLUMN)
        columns.extend(samples)
    return "\t".join(columns)
