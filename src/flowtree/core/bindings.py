"""
Variable binding collection over flow trees.

A step binds names either as values (``variables`` entries, query results,
import aliases, call and transform outputs, merged concurrent outputs) or as
control aliases (loop item/index names and catch aliases). The collector is a
pure read-only pass over the generic walker, shared by concurrent-branch
hoisting in the transpiler and the defined-name set of semantic validation.
"""

from flowtree.core.constructs import (
    read_action,
    read_exception_block,
    read_external_call,
    read_import_step,
    read_loop,
    read_parallel,
    read_transform,
)
from flowtree.core.expressions import is_identifier
from flowtree.core.steps import StepKind, classify_step, is_mapping
from flowtree.core.types import Flow, Step
from flowtree.core.walker import MAX_WALK_DEPTH, walk_flow


def merged_output_names(step: Step) -> list[str]:
    """Names receiving branch results of a merging concurrent group.

    Branches without a usable ``name`` / ``as`` fall back to ``result_<i>``.
    """
    spec = read_parallel(step)
    if spec is None or not spec.merge_results:
        return []
    names = []
    for index, branch in enumerate(spec.branches):
        if is_identifier(branch.output_name):
            names.append(branch.output_name)
        else:
            names.append(f"result_{index}")
    return names


def step_bindings(step: Step, include_control: bool = False) -> list[str]:
    """Names bound directly by one step, ignoring its nested flows.

    Params:
        step: A single flow step
        include_control: Also report loop item/index aliases and catch aliases

    Returns:
        Bound names in the order they appear in the step
    """
    kind = classify_step(step)
    names: list = []

    if kind is StepKind.VARIABLES:
        if is_mapping(step["variables"]):
            names.extend(step["variables"].keys())
    elif kind is StepKind.NATIVE:
        action = read_action(step)
        if action is not None and action.result_name:
            names.append(action.result_name)
    elif kind is StepKind.IMPORT:
        names.append(read_import_step(step).alias)
    elif kind is StepKind.EXTERNAL_CALL:
        call = read_external_call(step)
        if call is not None:
            names.append(call.result_name)
    elif kind is StepKind.DATA_TRANSFORM:
        transform = read_transform(step)
        if transform is not None:
            names.append(transform.output)
    elif kind is StepKind.PARALLEL:
        names.extend(merged_output_names(step))
    elif include_control and kind is StepKind.LOOP:
        loop = read_loop(step)
        if loop is not None:
            if loop.loop_type == "for":
                names.append(loop.item_var)
            names.append(loop.index_var)
            if loop.loop_type == "repeat" and loop.index_var is None:
                names.append("i")
    elif include_control and kind is StepKind.TRY_CATCH:
        spec = read_exception_block(step)
        if spec.catch_flow is not None:
            names.append(spec.catch_alias)

    return [name for name in names if isinstance(name, str) and name]


def collect_bound_names(
    flow: Flow, include_control: bool = False, max_depth: int = MAX_WALK_DEPTH
) -> list[str]:
    """Every name bound anywhere inside a flow, including nested constructs.

    Params:
        flow: Flow to scan
        include_control: Also collect loop and catch aliases
        max_depth: Nesting ceiling passed to the walker

    Returns:
        Unique names in first-binding order
    """
    seen: dict[str, None] = {}

    def visit(step: Step, path: str) -> None:
        for name in step_bindings(step, include_control):
            seen.setdefault(name, None)

    walk_flow(flow, "", visit, max_depth=max_depth)
    return list(seen)


def last_bound_name(flow: Flow) -> str | None:
    """Last value binding made directly in a flow, used as a branch result."""
    last = None
    for step in flow if isinstance(flow, list) else []:
        if is_mapping(step):
            bound = step_bindings(step)
            if bound:
                last = bound[-1]
    return last
