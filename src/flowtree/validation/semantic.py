"""
Semantic validation: variable references and the import graph.

Defined names are gathered from the whole document with the shared binding
collector and compared against the root names referenced inside ``${...}``
markers. Import targets are resolved on disk, checked against the project
root, and followed recursively to find cycles.
"""

import builtins
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from flowtree.core.bindings import collect_bound_names
from flowtree.core.constructs import read_import_entry, read_import_step, read_use
from flowtree.core.expressions import find_markers, has_marker, marker_root
from flowtree.core.loader import YAML_EXTENSIONS, load_document
from flowtree.core.steps import StepKind, classify_step, get_task_flow, is_mapping
from flowtree.core.types import Step
from flowtree.core.walker import iter_nodes, walk_all
from flowtree.exceptions import DocumentLoadError
from flowtree.settings import DEFAULT_SETTINGS, FlowTreeSettings
from flowtree.validation.diagnostics import DiagnosticKind, DiagnosticReport

logger = logging.getLogger(__name__)

# Names available inside data_transform expressions without a binding.
TRANSFORM_IMPLICIT_NAMES = frozenset({"item", "acc"})

# Builtins are exempt only when called, e.g. ``${len(rows)}``.
BUILTIN_NAMES = frozenset(dir(builtins))

CALL_PATTERN = re.compile(r"^\s*[A-Za-z_]\w*\s*\(")


def collect_defined_names(document: dict, settings: FlowTreeSettings = DEFAULT_SETTINGS) -> set[str]:
    """Every name the document defines anywhere.

    Includes global variables, top-level import aliases and every binding
    made inside task flows, loop and catch aliases included.
    """
    defined: set[str] = set()
    if is_mapping(document.get("variables")):
        defined.update(str(name) for name in document["variables"])

    if isinstance(document.get("import"), list):
        for entry in document["import"]:
            spec = read_import_entry(entry)
            if spec is not None and spec.alias:
                defined.add(spec.alias)

    for task in document.get("tasks") or []:
        flow = get_task_flow(task)
        if flow is not None:
            defined.update(collect_bound_names(flow, include_control=True, max_depth=settings.max_walk_depth))
    return defined


def check_references(document: dict, report: DiagnosticReport, settings: FlowTreeSettings = DEFAULT_SETTINGS) -> None:
    """Warn once per undefined name per location."""
    defined = collect_defined_names(document, settings)
    reported: set[tuple[str, str]] = set()

    for node, path in iter_nodes(document, max_depth=settings.max_walk_depth):
        for inner in find_markers(node):
            name = marker_root(inner)
            if name is None or name in defined:
                continue
            if name in BUILTIN_NAMES and CALL_PATTERN.match(inner):
                continue
            if name in TRANSFORM_IMPLICIT_NAMES and "/data_transform" in path:
                continue
            if (name, path) in reported:
                continue
            reported.add((name, path))
            report.warning(
                DiagnosticKind.REFERENCE,
                f"Variable '${{{name}}}' is referenced but never defined.",
                path,
            )


@dataclass
class ImportReference:
    """An import target found in a document.

    Params:
        target: Path as written by the author
        location: Where the reference appears
    """

    target: str
    location: str


def collect_import_references(document: Any, settings: FlowTreeSettings = DEFAULT_SETTINGS) -> list[ImportReference]:
    """Literal import paths of a document: top-level entries, import steps and file ``use`` references."""
    if not is_mapping(document):
        return []

    references: list[ImportReference] = []
    if isinstance(document.get("import"), list):
        for index, entry in enumerate(document["import"]):
            spec = read_import_entry(entry)
            if spec is not None and isinstance(spec.path, str):
                references.append(ImportReference(spec.path, f"/import[{index}]"))

    def visit(step: Step, path: str) -> None:
        kind = classify_step(step)
        if kind is StepKind.IMPORT:
            target = read_import_step(step).path
            if isinstance(target, str) and target.strip():
                references.append(ImportReference(target, f"{path}/import"))
        elif kind is StepKind.USE:
            target = read_use(step).reference
            if isinstance(target, str) and target.strip().lower().endswith(YAML_EXTENSIONS):
                references.append(ImportReference(target, f"{path}/use"))

    walk_all(document, visit, max_depth=settings.max_walk_depth)
    return [ref for ref in references if not has_marker(ref.target)]


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


@dataclass
class ImportGraphChecker:
    """Depth-first import graph walk with cycle detection.

    Params:
        report: Accumulator receiving diagnostics
        settings: Import depth ceiling and file size limit
    """

    report: DiagnosticReport
    settings: FlowTreeSettings = field(default_factory=lambda: DEFAULT_SETTINGS)
    checked: set[Path] = field(default_factory=set)
    reported_cycles: set[tuple[Path, ...]] = field(default_factory=set)

    def check(self, document: Any, base_directory: Path, stack: list[Path], location: str | None = None) -> None:
        """Follow every YAML import of a document.

        Params:
            document: Parsed document whose imports are followed
            base_directory: Directory relative paths resolve against
            stack: Files currently being followed, outermost first
            location: Location in the root document to report nested problems at
        """
        for reference in collect_import_references(document, self.settings):
            target = (base_directory / reference.target).resolve()
            report_at = location or reference.location
            if target.suffix.lower() not in YAML_EXTENSIONS or not target.is_file():
                continue

            if target in stack:
                cycle = tuple(stack[stack.index(target):] + [target])
                if cycle not in self.reported_cycles:
                    self.reported_cycles.add(cycle)
                    chain = " -> ".join(p.name for p in cycle)
                    self.report.error(DiagnosticKind.IMPORT_CYCLE, f"Import cycle detected: {chain}.", report_at)
                continue
            if target in self.checked:
                continue
            if len(stack) >= self.settings.max_import_depth:
                self.report.warning(
                    DiagnosticKind.SAFETY,
                    f"Import depth limit of {self.settings.max_import_depth} reached at '{reference.target}'; "
                    "deeper imports were not checked.",
                    report_at,
                )
                continue

            try:
                loaded = load_document(target, self.settings)
            except DocumentLoadError as e:
                self.report.warning(DiagnosticKind.REFERENCE, f"Imported file could not be loaded: {e}", report_at)
                self.checked.add(target)
                continue

            self.check(loaded.document, target.parent, [*stack, target], report_at)
            self.checked.add(target)


def check_imports(
    document: dict,
    report: DiagnosticReport,
    *,
    base_directory: Path,
    project_root: Path | None = None,
    file_path: Path | None = None,
    settings: FlowTreeSettings = DEFAULT_SETTINGS,
) -> None:
    """Resolve import targets and detect cycles.

    Params:
        document: Parsed root document
        report: Accumulator receiving diagnostics
        base_directory: Directory relative import paths resolve against
        project_root: Directory imports must stay inside; defaults to base_directory
        file_path: File the document was read from, if any
        settings: Import depth ceiling and file size limit
    """
    base_directory = base_directory.resolve()
    root = (project_root or base_directory).resolve()

    for reference in collect_import_references(document, settings):
        target = (base_directory / reference.target).resolve()
        if not _is_within(target, root):
            report.warning(
                DiagnosticKind.SAFETY,
                f"Import path '{reference.target}' resolves outside the project root '{root}'.",
                reference.location,
            )
        if not target.exists():
            report.warning(
                DiagnosticKind.REFERENCE,
                f"Import path '{reference.target}' does not exist (resolved to '{target}').",
                reference.location,
            )

    stack = [file_path.resolve()] if file_path is not None else []
    ImportGraphChecker(report, settings).check(document, base_directory, stack)
    logger.debug("Import graph checked from %s", base_directory)
