"""
Generic depth-first traversal over FlowTree documents.

``walk_flow`` visits flow steps and follows every construct that owns nested
flows. ``iter_nodes`` visits every value of an arbitrary YAML subtree. The
detector, validator, binding collector and transpiler all traverse through
these two functions instead of re-implementing recursion.
"""

from collections.abc import Iterator
from typing import Any

from flowtree.core.steps import get_task_flow, is_mapping, nested_flows
from flowtree.core.types import DepthLimitCallback, Flow, StepVisitor

MAX_WALK_DEPTH = 50


def walk_flow(
    flow: Flow,
    path_prefix: str,
    visitor: StepVisitor,
    *,
    max_depth: int = MAX_WALK_DEPTH,
    on_depth_limit: DepthLimitCallback | None = None,
    _depth: int = 0,
) -> None:
    """Call ``visitor(step, path)`` for every step of a flow, depth-first.

    The visitor may return ``False`` to skip descent into that step's nested
    flows. Non-mapping entries are skipped. Once ``max_depth`` nested levels
    have been entered the walk stops descending and ``on_depth_limit`` is
    called with the path and the limit instead.

    Params:
        flow: Ordered list of steps
        path_prefix: Path of the flow itself, e.g. ``/tasks[0]/flow``
        visitor: Callback receiving each step and its path
        max_depth: Maximum nesting depth to descend into
        on_depth_limit: Optional callback invoked when the ceiling is hit
    """
    if _depth >= max_depth:
        if on_depth_limit is not None:
            on_depth_limit(path_prefix, max_depth)
        return
    if not isinstance(flow, list):
        return

    for index, step in enumerate(flow):
        if not is_mapping(step):
            continue

        step_path = f"{path_prefix}[{index}]"
        if visitor(step, step_path) is False:
            continue

        for suffix, child in nested_flows(step):
            walk_flow(
                child,
                f"{step_path}{suffix}",
                visitor,
                max_depth=max_depth,
                on_depth_limit=on_depth_limit,
                _depth=_depth + 1,
            )


def walk_all(
    document: Any,
    visitor: StepVisitor,
    *,
    max_depth: int = MAX_WALK_DEPTH,
    on_depth_limit: DepthLimitCallback | None = None,
) -> None:
    """Walk the flow of every task in a document."""
    if not is_mapping(document) or not isinstance(document.get("tasks"), list):
        return

    for task_index, task in enumerate(document["tasks"]):
        flow = get_task_flow(task)
        if flow is None:
            continue
        walk_flow(
            flow,
            f"/tasks[{task_index}]/flow",
            visitor,
            max_depth=max_depth,
            on_depth_limit=on_depth_limit,
        )


def iter_nodes(
    value: Any, path: str = "", *, max_depth: int = MAX_WALK_DEPTH, _depth: int = 0
) -> Iterator[tuple[Any, str]]:
    """Yield ``(node, path)`` for a value and every value nested inside it.

    Mapping children get ``path/key``; list items get ``path[i]``.
    Descent stops silently past ``max_depth``.
    """
    yield value, path
    if _depth >= max_depth:
        return

    if is_mapping(value):
        for key, child in value.items():
            yield from iter_nodes(child, f"{path}/{key}", max_depth=max_depth, _depth=_depth + 1)
    elif isinstance(value, list):
        for index, child in enumerate(value):
            yield from iter_nodes(child, f"{path}[{index}]", max_depth=max_depth, _depth=_depth + 1)


def iter_keys(value: Any, path: str = "", *, max_depth: int = MAX_WALK_DEPTH) -> Iterator[tuple[str, str]]:
    """Yield ``(key, path)`` for every mapping key inside a value."""
    for node, node_path in iter_nodes(value, path, max_depth=max_depth):
        if is_mapping(node):
            for key in node:
                yield str(key), f"{node_path}/{key}"
