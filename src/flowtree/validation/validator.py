"""
Four-level document validation.

1. Syntax: the input must load and parse; failure aborts the other levels.
2. Structure: the document skeleton (see ``structure``).
3. Mode-aware: native compatibility or extended construct checks (see ``modes``).
4. Semantic: variable references and the import graph (see ``semantic``).

Levels 2 to 4 always run after a successful parse so that one call reports
as many problems as possible. Validation never raises.
"""

import logging
from pathlib import Path
from typing import Any

from flowtree.core.loader import load_document
from flowtree.detection.detector import ExecutionMode, detect_document
from flowtree.exceptions import DocumentLoadError
from flowtree.settings import DEFAULT_SETTINGS, FlowTreeSettings
from flowtree.validation.diagnostics import DiagnosticKind, DiagnosticReport, ValidationResult
from flowtree.validation.modes import check_declared_features, check_extended, check_native
from flowtree.validation.semantic import check_imports, check_references
from flowtree.validation.structure import check_structure

logger = logging.getLogger(__name__)


def _resolve_mode(mode: Any, detected: ExecutionMode, report: DiagnosticReport) -> ExecutionMode:
    if mode is None:
        return detected
    if isinstance(mode, ExecutionMode):
        return mode
    try:
        return ExecutionMode(str(mode).strip().lower())
    except ValueError:
        report.warning(
            DiagnosticKind.COMPATIBILITY,
            f"Unknown validation mode '{mode}'; using detected mode '{detected.value}'.",
        )
        return detected


def validate(
    source: Any,
    *,
    base_path: str | Path | None = None,
    project_root: str | Path | None = None,
    mode: str | ExecutionMode | None = None,
    settings: FlowTreeSettings | None = None,
) -> ValidationResult:
    """Validate a document and collect diagnostics.

    Params:
        source: File path, raw YAML text or a parsed mapping
        base_path: Directory relative imports resolve against; defaults to the
            document's directory, or the working directory for text input
        project_root: Directory imports must stay inside; defaults to base_path
        mode: Force ``native`` or ``extended`` checks instead of detecting
        settings: Limits to apply; defaults to DEFAULT_SETTINGS

    Returns:
        ValidationResult; ``valid`` is False when any error was found
    """
    settings = settings or DEFAULT_SETTINGS
    report = DiagnosticReport()

    if source is None or (isinstance(source, str) and not source.strip()):
        report.error(DiagnosticKind.PARSE, "Input must be a non-empty file path or YAML text.")
        return report.to_result()

    # Level 1: syntax
    try:
        loaded = load_document(source, settings)
    except DocumentLoadError as e:
        report.error(DiagnosticKind.PARSE, str(e), e.location)
        return report.to_result()

    document = loaded.document

    # Level 2: structure
    if not check_structure(document, report):
        return report.to_result()

    # Level 3: mode-aware
    detection = detect_document(document, settings)
    resolved_mode = _resolve_mode(mode, detection.mode, report)
    if resolved_mode is ExecutionMode.NATIVE:
        check_native(document, report, settings)
    else:
        check_extended(document, report, settings)
    check_declared_features(document, detection.features, report)

    # Level 4: semantic
    check_references(document, report, settings)
    base_directory = Path(base_path) if base_path is not None else loaded.base_directory
    check_imports(
        document,
        report,
        base_directory=base_directory,
        project_root=Path(project_root) if project_root is not None else None,
        file_path=loaded.file_path,
        settings=settings,
    )

    logger.debug(
        "Validated %s document: %d errors, %d warnings",
        resolved_mode.value,
        len(report.errors),
        len(report.warnings),
    )
    return report.to_result()
