"""
Interfaces to the collaborators that execute documents and read reports.
"""

from flowtree.execution.contracts import (
    ExecutionBackend,
    ExecutionOptions,
    ExecutionResult,
    FailedTask,
    ReportReader,
    ReportResult,
    ReportSummary,
)

__all__ = [
    "ExecutionBackend",
    "ExecutionOptions",
    "ExecutionResult",
    "FailedTask",
    "ReportReader",
    "ReportResult",
    "ReportSummary",
]
