from typing import List, Optional, Sequence


class GfalignerError(Exception):
    """Base class for all errors raised by gfaligner."""
    pass


class InputFormatError(GfalignerError):
    """A graph, table or VCF line does not have the expected structure."""

    def __init__(self, message: str, source: Optional[str] = None,
                 line_number: Optional[int] = None,
                 expected: Optional[str] = None, actual: Optional[str] = None):
        self.source = source
        self.line_number = line_number
        self.expected = expected
        self.actual = actual
        super().__init__(self._format(message))

    def _format(self, message: str) -> str:
        location = ""
        if self.source:
            location = self.source
            if self.line_number is not None:
                location += f":{self.line_number}"
            location += ": "
        detail = ""
        if self.expected is not None or self.actual is not None:
            detail = f" (expected {self.expected}, got {self.actual})"
        return f"{location}{message}{detail}"


class DuplicateMappingError(InputFormatError):
    """A node is mapped to two different paths by the same table."""
    pass


class ResolutionError(GfalignerError):
    """A variant's node key is present in neither the alignment nor the reference table."""

    def __init__(self, node_key: str, line_number: Optional[int] = None):
        self.node_key = node_key
        self.line_number = line_number
        where = f" (line {line_number})" if line_number is not None else ""
        super().__init__(f"Node '{node_key}' not found in alignment or reference table{where}")


class ColumnNotFoundError(GfalignerError):
    """A sort or header key names a column the VCF header does not declare."""

    def __init__(self, column: str, source: Optional[str] = None,
                 available: Sequence[str] = ()):
        self.column = column
        self.source = source
        self.available: List[str] = list(available)
        where = f" in {source}" if source else ""
        super().__init__(
            f"Column '{column}' not found{where}; expected one of "
            f"{', '.join(self.available) or '(no columns)'} or an index in 0..{max(len(self.available) - 1, 0)}"
        )
