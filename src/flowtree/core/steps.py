"""
Step classification and nested-flow access for FlowTree documents.

Every step in a flow is a mapping. A step is classified into exactly one
``StepKind`` by checking for a distinguishing key in fixed priority order,
with extended constructs checked before the native action scan. Constructs
that own child flows expose them through ``nested_flows`` so that every
traversal in the package follows the same structure.
"""

from enum import Enum
from typing import Any

from flowtree.core.types import Flow, Step


class StepKind(Enum):
    """Kind of a flow step."""

    VARIABLES = "variables"
    LOGIC = "logic"
    LOOP = "loop"
    IMPORT = "import"
    DATA_TRANSFORM = "data_transform"
    TRY_CATCH = "try"
    EXTERNAL_CALL = "external_call"
    PARALLEL = "parallel"
    USE = "use"
    NATIVE = "native"
    UNKNOWN = "unknown"


# Distinguishing key for each extended construct, in dispatch priority order.
EXTENDED_STEP_KEYS: tuple[tuple[str, StepKind], ...] = (
    ("variables", StepKind.VARIABLES),
    ("logic", StepKind.LOGIC),
    ("loop", StepKind.LOOP),
    ("import", StepKind.IMPORT),
    ("data_transform", StepKind.DATA_TRANSFORM),
    ("try", StepKind.TRY_CATCH),
    ("external_call", StepKind.EXTERNAL_CALL),
    ("parallel", StepKind.PARALLEL),
    ("use", StepKind.USE),
)

NATIVE_ACTION_KEYS = frozenset(
    {
        "ai",
        "aiAct",
        "aiAction",
        "aiTap",
        "aiRightClick",
        "aiDoubleClick",
        "aiHover",
        "aiInput",
        "aiKeyboardPress",
        "aiScroll",
        "aiQuery",
        "aiBoolean",
        "aiNumber",
        "aiString",
        "aiAsk",
        "aiLocate",
        "aiAssert",
        "aiWaitFor",
        "sleep",
        "javascript",
        "recordToReport",
        "logScreenshot",
    }
)

PLATFORM_KEYS = ("web", "android", "ios", "computer")


def is_mapping(value: Any) -> bool:
    """True for YAML mappings."""
    return isinstance(value, dict)


def classify_step(step: Any) -> StepKind:
    """Classify a step by its distinguishing key.

    Params:
        step: A single flow entry

    Returns:
        The StepKind of the step; non-mapping entries are UNKNOWN
    """
    if not is_mapping(step):
        return StepKind.UNKNOWN

    for key, kind in EXTENDED_STEP_KEYS:
        if key in step:
            return kind

    for key in step:
        if key in NATIVE_ACTION_KEYS:
            return StepKind.NATIVE

    return StepKind.UNKNOWN


def native_action_key(step: Step) -> str | None:
    """Return the native action keyword of a step, if it has one."""
    for key in step:
        if key in NATIVE_ACTION_KEYS:
            return key
    return None


def get_nested_flow(container: Any) -> Flow | None:
    """Resolve the ``flow`` / ``steps`` alias of a block.

    A block given directly as a list is its own flow.
    """
    if isinstance(container, list):
        return container
    if not is_mapping(container):
        return None
    flow = container.get("flow")
    if flow is None:
        flow = container.get("steps")
    return flow if isinstance(flow, list) else None


def get_task_flow(task: Any) -> Flow | None:
    """Flow of a top-level task (``flow`` or ``steps``)."""
    if not is_mapping(task):
        return None
    return get_nested_flow(task)


def get_parallel_branches(parallel: Any) -> list | None:
    """Resolve the ``tasks`` / ``branches`` alias of a parallel construct."""
    if not is_mapping(parallel):
        return None
    branches = parallel.get("tasks")
    if branches is None:
        branches = parallel.get("branches")
    return branches if isinstance(branches, list) else None


def get_branch_flow(branch: Any) -> Flow | None:
    """Flow of one concurrent branch."""
    return get_nested_flow(branch)


def get_exception_blocks(step: Step) -> tuple[Any, Any, Any]:
    """Return the (try, catch, finally) blocks of an exception step.

    ``catch`` and ``finally`` may be written as siblings of ``try`` at the
    step level or nested inside the ``try`` mapping; siblings take priority.
    Missing blocks are returned as None.
    """
    try_block = step.get("try")
    catch_block = step.get("catch")
    finally_block = step.get("finally")
    if is_mapping(try_block):
        if catch_block is None:
            catch_block = try_block.get("catch")
        if finally_block is None:
            finally_block = try_block.get("finally")
    return try_block, catch_block, finally_block


def nested_flows(step: Any) -> list[tuple[str, Flow]]:
    """List every child flow owned by a step.

    Params:
        step: A single flow step

    Returns:
        List of (path suffix, flow) pairs in document order. The suffix is
        appended to the step path, e.g. ``/logic/then``.
    """
    if not is_mapping(step):
        return []

    children: list[tuple[str, Flow]] = []
    kind = classify_step(step)

    if kind is StepKind.LOGIC and is_mapping(step["logic"]):
        for branch in ("then", "else"):
            flow = step["logic"].get(branch)
            if isinstance(flow, list):
                children.append((f"/logic/{branch}", flow))

    elif kind is StepKind.LOOP:
        flow = get_nested_flow(step["loop"])
        if flow is not None:
            children.append(("/loop/flow", flow))

    elif kind is StepKind.TRY_CATCH:
        blocks = get_exception_blocks(step)
        for name, block in zip(("try", "catch", "finally"), blocks):
            flow = get_nested_flow(block)
            if flow is not None:
                children.append((f"/{name}/flow", flow))

    elif kind is StepKind.PARALLEL:
        for index, branch in enumerate(get_parallel_branches(step["parallel"]) or []):
            flow = get_branch_flow(branch)
            if flow is not None:
                children.append((f"/parallel/tasks[{index}]/flow", flow))

    return children
