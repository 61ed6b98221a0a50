import gzip
import logging
import os
from pathlib import Path
from typing import IO, Iterator, List, Optional, Tuple, Union

from gfaligner.core.models import VcfHeader

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def open_text(path: PathLike, mode: str = "r") -> IO[str]:
    """Open a plain or gzip-compressed text file."""
    path = str(path)
    if "r" in mode and not os.path.exists(path):
        raise FileNotFoundError(f"Input file not found: {path}")
    if path.endswith(".gz") and "r" in mode:
        return gzip.open(path, "rt", encoding="utf-8", newline="")
    return open(path, mode, encoding="utf-8", newline="")


def strip_vcf_suffix(filename: str) -> str:
    """Drop .vcf.gz, .vcf or the last extension from a file name."""
    for suffix in (".vcf.gz", ".vcf"):
        if filename.endswith(suffix):
            return filename[:-len(suffix)]
    stem, _ = os.path.splitext(filename)
    return stem or filename


def default_output_path(input_path: PathLike, suffix: str, extension: str = ".vcf") -> Path:
    """
    Derive an output path next to the input file.

    ``calls.vcf.gz`` with suffix ``.sorted`` becomes ``calls.sorted.vcf``.
    """
    p = Path(input_path)
    return p.parent / f"{strip_vcf_suffix(p.name)}{suffix}{extension}"


class VcfReader:
    """
    Reads a VCF file as a verbatim header plus a stream of numbered data lines.

    Header lines are every leading line starting with ``#``. Blank lines are skipped.
    Lines are returned without their trailing newline.
    """

    def __init__(self, vcf_file: PathLike):
        self.vcf_file = Path(vcf_file)
        if not self.vcf_file.exists():
            raise FileNotFoundError(f"VCF file not found: {self.vcf_file}")
        self.header = VcfHeader()
        self._handle: Optional[IO[str]] = None
        self._pending: Optional[Tuple[int, str]] = None
        self._line_number = 0

    def __enter__(self) -> "VcfReader":
        self._handle = open_text(self.vcf_file)
        self._read_header()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def _read_header(self):
        for raw in self._handle:
            self._line_number += 1
            line = raw.rstrip("\r\n")
            if not line:
                continue
            if line.startswith("##"):
                self.header.meta_lines.append(line)
            elif line.startswith("#"):
                self.header.column_line = line
            else:
                self._pending = (self._line_number, line)
                break
        logger.debug(f"Read {len(self.header.meta_lines)} meta lines from {self.vcf_file}")

    def data_lines(self) -> Iterator[Tuple[int, str]]:
        """Yield ``(line_number, line)`` for every data line."""
        if self._handle is None:
            raise RuntimeError("VcfReader must be used as a context manager")
        if self._pending is not None:
            yield self._pending
            self._pending = None
        for raw in self._handle:
            self._line_number += 1
            line = raw.rstrip("\r\n")
            if not line:
                continue
            if line.startswith("#"):
                logger.warning(f"{self.vcf_file}:{self._line_number}: header line after data ignored")
                continue
            yield (self._line_number, line)


def read_vcf(vcf_file: PathLike) -> Tuple[VcfHeader, List[Tuple[int, str]]]:
    """Read a whole VCF into memory."""
    with VcfReader(vcf_file) as reader:
        body = list(reader.data_lines())
        return reader.header, body


def write_lines(handle: IO[str], lines) -> int:
    count = 0
    for line in lines:
        handle.write(line)
        handle.write("\n")
        count += 1
    return count
