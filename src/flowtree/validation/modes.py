"""
Mode-aware validation.

Native documents are checked for constructs the automation engine would
silently ignore. Extended documents have each construct checked for the
fields it needs, and declared features are compared with the features
actually in use.
"""

from collections.abc import Callable
from typing import Any

from flowtree.core.constructs import (
    FLAT_OPERATION_PARAMS,
    LOOP_COUNT_KEYS,
    LOOP_ITEMS_KEYS,
    LOOP_TYPES,
    TRANSFORM_OPERATIONS,
    first_present,
    read_exception_block,
    read_loop,
)
from flowtree.core.expressions import has_marker
from flowtree.core.steps import (
    StepKind,
    classify_step,
    get_branch_flow,
    get_nested_flow,
    get_parallel_branches,
    is_mapping,
)
from flowtree.core.types import Step
from flowtree.core.walker import iter_keys, walk_all
from flowtree.detection.detector import EXTENDED_KEYWORDS, FEATURE_ORDER
from flowtree.settings import DEFAULT_SETTINGS, FlowTreeSettings
from flowtree.validation.diagnostics import DiagnosticKind, DiagnosticReport


HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"})

# Actions whose extra value must be a sibling key; the nested-object form
# loses it at run time.
FLAT_FORM_FIELDS = {
    "aiInput": "value",
    "aiKeyboardPress": "keyName",
    "aiQuery": "name",
    "aiWaitFor": "timeout",
    "aiAssert": "errorMessage",
    "aiScroll": "distance",
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def check_native(document: dict, report: DiagnosticReport, settings: FlowTreeSettings = DEFAULT_SETTINGS) -> None:
    """Warn about extended keywords and nested-object actions in a native document."""
    for key, path in iter_keys(document, max_depth=settings.max_walk_depth):
        if key in EXTENDED_KEYWORDS:
            report.warning(
                DiagnosticKind.COMPATIBILITY,
                f"Extended keyword '{key}' found in native mode and will be ignored by the automation engine. "
                "Declare 'engine: extended' or remove this construct.",
                path,
            )

    def visit(step: Step, path: str) -> None:
        for keyword, field_name in FLAT_FORM_FIELDS.items():
            value = step.get(keyword)
            if is_mapping(value) and field_name in value:
                report.warning(
                    DiagnosticKind.COMPATIBILITY,
                    f"'{keyword}' uses nested-object form; write '{field_name}' as a sibling of "
                    f"'{keyword}' or it is dropped at run time.",
                    f"{path}/{keyword}/{field_name}",
                )

    walk_all(document, visit, max_depth=settings.max_walk_depth)


class ConstructChecker:
    """Per-construct checks for extended documents.

    Params:
        report: Accumulator receiving diagnostics
        settings: Thresholds for loop safety checks
    """

    def __init__(self, report: DiagnosticReport, settings: FlowTreeSettings = DEFAULT_SETTINGS):
        self.report = report
        self.settings = settings
        self._checks: dict[StepKind, Callable[[Step, str], None]] = {
            StepKind.VARIABLES: self.check_variables,
            StepKind.LOGIC: self.check_logic,
            StepKind.LOOP: self.check_loop,
            StepKind.IMPORT: self.check_import,
            StepKind.DATA_TRANSFORM: self.check_transform,
            StepKind.TRY_CATCH: self.check_try,
            StepKind.EXTERNAL_CALL: self.check_external_call,
            StepKind.PARALLEL: self.check_parallel,
            StepKind.USE: self.check_use,
        }

    def __call__(self, step: Step, path: str) -> None:
        kind = classify_step(step)
        if kind is StepKind.UNKNOWN:
            self.report.warning(
                DiagnosticKind.CONSTRUCT,
                f"Unrecognized step with keys {sorted(map(str, step))}; it will be emitted as a comment.",
                path,
            )
            return
        check = self._checks.get(kind)
        if check is not None:
            check(step, path)

    def _error(self, message: str, location: str) -> None:
        self.report.error(DiagnosticKind.CONSTRUCT, message, location)

    def _warn(self, message: str, location: str, kind: DiagnosticKind = DiagnosticKind.CONSTRUCT) -> None:
        self.report.warning(kind, message, location)

    def check_variables(self, step: Step, path: str) -> None:
        if not is_mapping(step["variables"]):
            self._error("'variables' must be a mapping of names to values.", f"{path}/variables")

    def check_logic(self, step: Step, path: str) -> None:
        logic = step["logic"]
        logic_path = f"{path}/logic"
        if not is_mapping(logic):
            self._error("'logic' must be a mapping.", logic_path)
            return
        if logic.get("if") is None:
            self._error("'logic' construct must have an 'if' condition.", f"{logic_path}/if")
        if logic.get("then") is None:
            self._error("'logic' construct must have a 'then' branch.", f"{logic_path}/then")
        for branch in ("then", "else"):
            if logic.get(branch) is not None and not isinstance(logic[branch], list):
                self._error(f"'logic.{branch}' must be a list of steps.", f"{logic_path}/{branch}")

    def check_loop(self, step: Step, path: str) -> None:
        loop_path = f"{path}/loop"
        spec = read_loop(step)
        if spec is None:
            self._error("'loop' must be a mapping.", loop_path)
            return

        loop = step["loop"]
        if spec.loop_type is None:
            self._error("'loop' construct must have a 'type' (for, while, or repeat).", f"{loop_path}/type")
        elif spec.loop_type not in LOOP_TYPES:
            self._error(
                f"Invalid loop type '{spec.loop_type}'. Must be one of: {', '.join(LOOP_TYPES)}.",
                f"{loop_path}/type",
            )
        elif spec.loop_type == "for":
            if spec.items is None:
                self._error(
                    f"Loop of type 'for' requires an 'items' field (aliases: {', '.join(LOOP_ITEMS_KEYS[1:])}).",
                    f"{loop_path}/items",
                )
        elif spec.loop_type == "while":
            self._check_while(spec.condition, spec.max_iterations, loop_path)
        else:
            self._check_repeat(spec.count, loop_path)

        flow = get_nested_flow(loop)
        if flow is None:
            self._warn("'loop' is missing a 'flow' or 'steps' list.", f"{loop_path}/flow")
        elif not flow:
            self._warn("'loop' has an empty flow/steps list.", f"{loop_path}/flow")

    def _check_while(self, condition: Any, max_iterations: Any, loop_path: str) -> None:
        if condition is None:
            self._error("Loop of type 'while' requires a 'condition' field.", f"{loop_path}/condition")
        if max_iterations is None:
            self._warn(
                "While loop has no 'maxIterations' safety bound; "
                f"defaulting to {self.settings.default_max_iterations}.",
                f"{loop_path}/maxIterations",
                DiagnosticKind.SAFETY,
            )
        elif _is_number(max_iterations) and max_iterations <= 0:
            self._warn(
                f"While loop 'maxIterations' is {max_iterations}; the body will never run.",
                f"{loop_path}/maxIterations",
            )

    def _check_repeat(self, count: Any, loop_path: str) -> None:
        if count is None:
            self._error(
                f"Loop of type 'repeat' requires a 'count' field (alias: {LOOP_COUNT_KEYS[1]}).",
                f"{loop_path}/count",
            )
        elif _is_number(count) and count <= 0:
            self._warn(f"Repeat loop count is {count}; the body will never run.", f"{loop_path}/count")
        elif _is_number(count) and count > self.settings.max_repeat_count:
            self._warn(
                f"Repeat loop count {count} exceeds the safety threshold of {self.settings.max_repeat_count}.",
                f"{loop_path}/count",
                DiagnosticKind.SAFETY,
            )

    def check_import(self, step: Step, path: str) -> None:
        target = step["import"]
        if not isinstance(target, str) or not target.strip():
            self._error("'import' must be a non-empty string path.", f"{path}/import")

    def check_use(self, step: Step, path: str) -> None:
        reference = step["use"]
        if not isinstance(reference, str) or not reference.strip():
            self._error("'use' must be a non-empty string (flow reference or path).", f"{path}/use")
        if "with" in step and not is_mapping(step["with"]):
            self._error("'with' must be a mapping of parameter names to values.", f"{path}/with")

    def check_try(self, step: Step, path: str) -> None:
        try_path = f"{path}/try"
        spec = read_exception_block(step)
        if spec.try_flow is None:
            self._error("'try' construct must have a 'flow' (or 'steps') list.", f"{try_path}/flow")
        if spec.catch_flow is None and spec.finally_flow is None:
            self._error("'try' construct must have a 'catch' or 'finally' block.", try_path)

    def check_external_call(self, step: Step, path: str) -> None:
        call = step["external_call"]
        call_path = f"{path}/external_call"
        if not is_mapping(call):
            self._error("'external_call' must be a mapping.", call_path)
            return

        call_type = call.get("type")
        if call_type is None:
            self._error("'external_call' must have a 'type' (http or shell).", f"{call_path}/type")
        elif call_type == "http":
            if not call.get("url"):
                self._error("HTTP external_call requires a 'url'.", f"{call_path}/url")
            method = call.get("method")
            if method is not None and str(method).upper() not in HTTP_METHODS:
                self._warn(
                    f"Unknown HTTP method '{method}'. Expected one of: {', '.join(sorted(HTTP_METHODS))}.",
                    f"{call_path}/method",
                )
        elif call_type == "shell":
            command = call.get("command")
            if not command:
                self._error("Shell external_call requires a 'command'.", f"{call_path}/command")
            elif has_marker(command):
                self._warn(
                    "Shell command interpolates ${...} values; untrusted input can inject commands.",
                    f"{call_path}/command",
                    DiagnosticKind.SAFETY,
                )
        else:
            self._error(
                f"Invalid external_call type '{call_type}'. Must be 'http' or 'shell'.",
                f"{call_path}/type",
            )

    def check_parallel(self, step: Step, path: str) -> None:
        parallel = step["parallel"]
        parallel_path = f"{path}/parallel"
        if not is_mapping(parallel):
            self._error("'parallel' must be a mapping.", parallel_path)
            return
        branches = get_parallel_branches(parallel)
        if branches is None:
            self._error("'parallel' construct must have a 'tasks' or 'branches' list.", f"{parallel_path}/tasks")
            return
        for index, branch in enumerate(branches):
            if get_branch_flow(branch) is None:
                self._warn("Parallel branch has no 'flow' or 'steps' list.", f"{parallel_path}/tasks[{index}]")

    def check_transform(self, step: Step, path: str) -> None:
        transform = step["data_transform"]
        transform_path = f"{path}/data_transform"
        if not is_mapping(transform):
            self._error("'data_transform' must be a mapping.", transform_path)
            return

        operation = transform.get("operation")
        operations = transform.get("operations")
        if operation is None and operations is None:
            self._error(
                "'data_transform' needs an 'operation' or an 'operations' list.",
                transform_path,
            )
        if operation is not None and operation not in FLAT_OPERATION_PARAMS:
            self._error(
                f"Invalid data_transform operation '{operation}'. Must be one of: {', '.join(TRANSFORM_OPERATIONS)}.",
                f"{transform_path}/operation",
            )
        if operations is not None:
            if not isinstance(operations, list):
                self._error("'data_transform.operations' must be a list.", f"{transform_path}/operations")
            else:
                for index, entry in enumerate(operations):
                    if not is_mapping(entry) or not any(name in entry for name in TRANSFORM_OPERATIONS):
                        self._error(
                            f"Unrecognized data_transform operation. Must be one of: {', '.join(TRANSFORM_OPERATIONS)}.",
                            f"{transform_path}/operations[{index}]",
                        )

        if first_present(transform, ("source", "input")) is None:
            self._warn("'data_transform' has no 'source' (or 'input') collection.", f"{transform_path}/source")


def check_extended(document: dict, report: DiagnosticReport, settings: FlowTreeSettings = DEFAULT_SETTINGS) -> None:
    """Run the per-construct checks over every task flow."""

    def on_depth_limit(path: str, limit: int) -> None:
        report.warning(
            DiagnosticKind.SAFETY,
            f"Nesting exceeds {limit} levels; deeper steps were not validated.",
            path,
        )

    walk_all(document, ConstructChecker(report, settings), max_depth=settings.max_walk_depth, on_depth_limit=on_depth_limit)


def check_declared_features(document: dict, used: list[str], report: DiagnosticReport) -> None:
    """Compare the declared ``features`` list with the features in use."""
    declared = document.get("features")
    if declared is None:
        return
    if not isinstance(declared, list):
        report.warning(DiagnosticKind.REFERENCE, "'features' should be a list of feature names.", "/features")
        return

    known = []
    for index, name in enumerate(declared):
        if name not in FEATURE_ORDER:
            report.warning(
                DiagnosticKind.REFERENCE,
                f"Unknown feature '{name}'. Valid features are: {', '.join(FEATURE_ORDER)}.",
                f"/features[{index}]",
            )
        elif name not in used:
            report.warning(
                DiagnosticKind.REFERENCE,
                f"Feature '{name}' is declared but not used.",
                f"/features[{index}]",
            )
        known.append(name)

    for name in used:
        if name not in known:
            report.warning(
                DiagnosticKind.REFERENCE,
                f"Feature '{name}' is used but not declared in 'features'.",
                "/features",
            )
