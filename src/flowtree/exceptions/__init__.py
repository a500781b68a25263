"""
FlowTree exception classes.

This package provides all exception types used throughout FlowTree for
consistent error handling and reporting.
"""

from flowtree.exceptions.core import (
    DocumentLoadError,
    FlowTreeError,
    TranspileError,
    UnsupportedTemplateError,
)

__all__ = [
    "FlowTreeError",
    "DocumentLoadError",
    "TranspileError",
    "UnsupportedTemplateError",
]
