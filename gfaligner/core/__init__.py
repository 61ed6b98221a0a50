# Data model, errors and file access shared by every stage
from .errors import (
    GfalignerError,
    InputFormatError,
    DuplicateMappingError,
    ResolutionError,
    ColumnNotFoundError
)
from .models import VcfHeader, VcfRecord, PathInterval, GraphPath, GraphNode, Diagnostic

__all__ = ['GfalignerError', 'InputFormatError', 'DuplicateMappingError', 'ResolutionError',
           'ColumnNotFoundError', 'VcfHeader', 'VcfRecord', 'PathInterval', 'GraphPath',
           'GraphNode', 'Diagnostic']
