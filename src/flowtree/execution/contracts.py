"""
Contracts between the compiler and its execution collaborators.

Running a native document, running a generated program and reading the
report directory those runs leave behind all happen outside this package.
The models below are the data exchanged at that boundary, and the two
protocols are the call shapes a backend or report reader must provide.
"""

from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field

from flowtree.settings import DEFAULT_SETTINGS


class ExecutionOptions(BaseModel):
    """Options passed through to an execution backend.

    Params:
        report_directory: Directory the run writes its reports into
        working_directory: Directory the run is started in, if not the current one
        timeout_ms: Opaque timeout forwarded to the backend
    """

    report_directory: str = DEFAULT_SETTINGS.report_directory
    working_directory: str | None = None
    timeout_ms: int = Field(default=DEFAULT_SETTINGS.default_timeout_ms, gt=0)


class ExecutionResult(BaseModel):
    """Outcome of one run.

    Params:
        success: True when the run finished without failure
        error: Failure description, if any
        exit_code: Process exit code, None when the run never started
        report_directory: Where the run's reports were written
    """

    success: bool
    error: str | None = None
    exit_code: int | None = None
    report_directory: str = DEFAULT_SETTINGS.report_directory


class ReportSummary(BaseModel):
    """Task counts aggregated over every report of a run."""

    total: int = 0
    passed: int = 0
    failed: int = 0
    status: str = "ALL PASSED"

    @classmethod
    def from_counts(cls, total: int, passed: int) -> "ReportSummary":
        failed = total - passed
        return cls(
            total=total,
            passed=passed,
            failed=failed,
            status="ALL PASSED" if failed == 0 else "HAS FAILURES",
        )


class FailedTask(BaseModel):
    """A task that did not pass, as recorded in a report."""

    name: str
    error: str | None = None
    failed_step: str | None = None
    screenshot_path: str | None = None


class ReportResult(BaseModel):
    """What a report reader found in a report directory.

    Params:
        found: False when the directory or its report files are missing
        summary: Aggregated task counts, when reports were found
        failed_tasks: Details of every failed task
        message: Explanation when nothing was found
    """

    found: bool
    summary: ReportSummary | None = None
    failed_tasks: list[FailedTask] = Field(default_factory=list)
    message: str | None = None


class ExecutionBackend(Protocol):
    """Runs native documents and generated programs."""

    def run_document(self, path: Path, options: ExecutionOptions) -> ExecutionResult:
        """Execute a native document directly."""
        ...

    def run_code(self, path: Path, options: ExecutionOptions) -> ExecutionResult:
        """Execute a generated program file."""
        ...


class ReportReader(Protocol):
    """Reads the report directory a run left behind."""

    def read(self, report_directory: str | Path) -> ReportResult: ...
