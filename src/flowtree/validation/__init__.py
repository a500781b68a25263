"""
Multi-level validation of FlowTree documents.
"""

from flowtree.validation.diagnostics import (
    Diagnostic,
    DiagnosticKind,
    Severity,
    ValidationResult,
)
from flowtree.validation.validator import validate

__all__ = [
    "Diagnostic",
    "DiagnosticKind",
    "Severity",
    "ValidationResult",
    "validate",
]
