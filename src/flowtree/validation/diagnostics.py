"""
Diagnostic records produced by the validator.

Every problem found while validating a document is reported as a Diagnostic
with a severity, a kind and a location path such as
``/tasks[0]/flow[2]/loop/count``. Errors make a document invalid; warnings
are advisory only.
"""

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field


class Severity(str, Enum):
    """How serious a diagnostic is."""

    ERROR = "error"
    WARNING = "warning"


class DiagnosticKind(str, Enum):
    """Category of a diagnostic."""

    PARSE = "parse"
    STRUCTURE = "structure"
    CONSTRUCT = "construct"
    REFERENCE = "reference"
    SAFETY = "safety"
    IMPORT_CYCLE = "import_cycle"
    COMPATIBILITY = "compatibility"


class Diagnostic(BaseModel):
    """A single validation finding.

    Params:
        severity: Error or warning
        kind: Category of the finding
        message: Human-readable description
        location: Path inside the document, or a line/column for parse errors
    """

    severity: Severity
    kind: DiagnosticKind
    message: str
    location: str = ""

    def __str__(self) -> str:
        where = f" at {self.location}" if self.location else ""
        return f"{self.severity.value} [{self.kind.value}]{where}: {self.message}"


class ValidationResult(BaseModel):
    """Outcome of validating a document.

    Params:
        valid: False whenever any error-severity diagnostic exists
        errors: Error diagnostics in discovery order
        warnings: Warning diagnostics in discovery order
    """

    valid: bool
    errors: list[Diagnostic] = Field(default_factory=list)
    warnings: list[Diagnostic] = Field(default_factory=list)

    @property
    def diagnostics(self) -> list[Diagnostic]:
        """Errors followed by warnings."""
        return [*self.errors, *self.warnings]

    def of_kind(self, kind: DiagnosticKind) -> list[Diagnostic]:
        """All diagnostics of one kind."""
        return [d for d in self.diagnostics if d.kind is kind]


@dataclass
class DiagnosticReport:
    """Mutable accumulator threaded through one validation run."""

    errors: list[Diagnostic] = field(default_factory=list)
    warnings: list[Diagnostic] = field(default_factory=list)

    def error(self, kind: DiagnosticKind, message: str, location: str = "") -> None:
        self.errors.append(Diagnostic(severity=Severity.ERROR, kind=kind, message=message, location=location))

    def warning(self, kind: DiagnosticKind, message: str, location: str = "") -> None:
        self.warnings.append(Diagnostic(severity=Severity.WARNING, kind=kind, message=message, location=location))

    def to_result(self) -> ValidationResult:
        return ValidationResult(valid=not self.errors, errors=list(self.errors), warnings=list(self.warnings))
