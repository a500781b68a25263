"""
Normalized views of extended constructs.

The same construct key accepts several author styles: a string, a mapping or
a list, with alias keys for most fields. Each ``read_*`` function resolves
one construct into a single dataclass once, so generators and the binding
collector never inspect raw shapes themselves. Readers never raise; fields
that are missing or malformed come back as None.
"""

from dataclasses import dataclass, field
from typing import Any

from flowtree.core.steps import (
    get_branch_flow,
    get_exception_blocks,
    get_nested_flow,
    get_parallel_branches,
    is_mapping,
    native_action_key,
)
from flowtree.core.types import Flow, Step

LOOP_TYPES = ("for", "while", "repeat")
LOOP_ITEMS_KEYS = ("items", "in", "collection")
LOOP_ITEM_VAR_KEYS = ("itemVar", "as", "item")
LOOP_INDEX_VAR_KEYS = ("indexVar", "index")
LOOP_COUNT_KEYS = ("count", "times")
LOOP_MAX_ITERATION_KEYS = ("maxIterations", "max_iterations")
CALL_RESULT_KEYS = ("response_as", "as", "name")
TRANSFORM_RESULT_KEYS = ("output", "name")
TRANSFORM_SOURCE_KEYS = ("input", "source")

TRANSFORM_OPERATIONS = (
    "filter",
    "sort",
    "map",
    "reduce",
    "slice",
    "unique",
    "distinct",
    "flatten",
    "groupBy",
)

# Query-like actions bind their result to the step's ``name``.
RESULT_BINDING_ACTIONS = frozenset(
    {"aiQuery", "aiBoolean", "aiNumber", "aiString", "aiAsk", "aiLocate", "javascript"}
)

# Keys of a nested-object action that hold the prompt rather than an option.
PROMPT_KEYS = ("prompt", "locate")


def first_present(container: Any, keys: tuple[str, ...], default: Any = None) -> Any:
    """Value of the first key present in a mapping (None values are skipped)."""
    if not is_mapping(container):
        return default
    for key in keys:
        if container.get(key) is not None:
            return container[key]
    return default


@dataclass
class ActionCall:
    """A native action step.

    Params:
        keyword: The action keyword, e.g. ``aiTap``
        prompt: Primary argument (prompt, key name, milliseconds, code...)
        options: Remaining settings from sibling keys or the nested mapping
        result_name: Variable the result is bound to, if any
        nested: True when the action was written in nested-object form
    """

    keyword: str
    prompt: Any
    options: dict[str, Any] = field(default_factory=dict)
    result_name: str | None = None
    nested: bool = False


def read_action(step: Step) -> ActionCall | None:
    """Normalize a native action written in flat or nested-object form."""
    keyword = native_action_key(step)
    if keyword is None:
        return None

    raw = step[keyword]
    options = {k: v for k, v in step.items() if k != keyword}
    nested = False
    prompt = raw
    if is_mapping(raw):
        nested = True
        prompt = first_present(raw, PROMPT_KEYS)
        options.update({k: v for k, v in raw.items() if k not in PROMPT_KEYS})

    result_name = options.pop("name", None) if keyword in RESULT_BINDING_ACTIONS else None
    if not isinstance(result_name, str):
        result_name = None
    return ActionCall(keyword=keyword, prompt=prompt, options=options, result_name=result_name, nested=nested)


@dataclass
class LoopSpec:
    """A ``loop`` construct.

    Params:
        loop_type: ``for``, ``while`` or ``repeat`` (None when missing)
        flow: Loop body
        items: Iterable for ``for`` loops
        item_var: Item alias for ``for`` loops
        index_var: Index alias (``for``) or counter name (``repeat``), if given
        condition: Natural-language condition for ``while`` loops
        max_iterations: Safety bound for ``while`` loops, if given
        counter_var: Explicit counter name for ``while`` loops, if given
        count: Iteration count for ``repeat`` loops
    """

    loop_type: str | None
    flow: Flow
    items: Any = None
    item_var: str = "item"
    index_var: str | None = None
    condition: Any = None
    max_iterations: Any = None
    counter_var: str | None = None
    count: Any = None


def read_loop(step: Step) -> LoopSpec | None:
    loop = step.get("loop")
    if not is_mapping(loop):
        return None
    loop_type = loop.get("type")
    return LoopSpec(
        loop_type=loop_type if isinstance(loop_type, str) else None,
        flow=get_nested_flow(loop) or [],
        items=first_present(loop, LOOP_ITEMS_KEYS),
        item_var=first_present(loop, LOOP_ITEM_VAR_KEYS, "item"),
        index_var=first_present(loop, LOOP_INDEX_VAR_KEYS),
        condition=loop.get("condition"),
        max_iterations=first_present(loop, LOOP_MAX_ITERATION_KEYS),
        counter_var=loop.get("counterVar"),
        count=first_present(loop, LOOP_COUNT_KEYS),
    )


@dataclass
class ExceptionSpec:
    """A ``try`` construct with optional handlers.

    Params:
        try_flow: Protected body, or None when the try block has no flow
        catch_flow: Handler body, or None when there is no catch block
        catch_alias: Name the exception is bound to inside the handler
        finally_flow: Cleanup body, or None when there is no finally block
    """

    try_flow: Flow | None
    catch_flow: Flow | None = None
    catch_alias: str = "e"
    finally_flow: Flow | None = None


def read_exception_block(step: Step) -> ExceptionSpec:
    try_block, catch_block, finally_block = get_exception_blocks(step)
    catch_flow = None
    if catch_block is not None:
        catch_flow = get_nested_flow(catch_block) or []
    finally_flow = None
    if finally_block is not None:
        finally_flow = get_nested_flow(finally_block) or []
    return ExceptionSpec(
        try_flow=get_nested_flow(try_block),
        catch_flow=catch_flow,
        catch_alias=first_present(catch_block, ("error", "as"), "e"),
        finally_flow=finally_flow,
    )


@dataclass
class ExternalCallSpec:
    """An ``external_call`` construct.

    Params:
        call_type: ``http`` or ``shell`` (None when missing)
        result_name: Variable the response is bound to
        url: Request URL for http calls
        method: Upper-cased HTTP verb
        headers: Request headers mapping, if any
        body: Request body, if any
        command: Command line for shell calls
    """

    call_type: str | None
    result_name: str = "response"
    url: Any = None
    method: str = "GET"
    headers: Any = None
    body: Any = None
    command: Any = None


def read_external_call(step: Step) -> ExternalCallSpec | None:
    call = step.get("external_call")
    if not is_mapping(call):
        return None
    call_type = call.get("type")
    return ExternalCallSpec(
        call_type=call_type if isinstance(call_type, str) else None,
        result_name=first_present(call, CALL_RESULT_KEYS, "response"),
        url=call.get("url"),
        method=str(call.get("method") or "GET").upper(),
        headers=call.get("headers"),
        body=call.get("body"),
        command=call.get("command"),
    )


@dataclass
class TransformOp:
    """One data transform operation.

    Params:
        name: Operation name, e.g. ``filter``
        argument: Shorthand argument (``sort: "price desc"``), if any
        params: Remaining parameters of the operation
    """

    name: str
    argument: Any = None
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class TransformSpec:
    """A ``data_transform`` construct in either authoring form.

    Params:
        source: Input collection (usually a marker such as ``${products}``)
        operations: Operations applied in order
        output: Variable receiving the result
        unknown: Operation entries that could not be recognized
    """

    source: Any
    operations: list[TransformOp]
    output: str = "transformed_data"
    unknown: list[Any] = field(default_factory=list)


# Parameter keys of the flat single-operation form, per operation.
FLAT_OPERATION_PARAMS = {
    "filter": ("condition", "predicate", "where"),
    "sort": ("by", "field", "order"),
    "map": ("template", "fields", "expression"),
    "reduce": ("reducer", "expression", "initial"),
    "slice": ("start", "end"),
    "unique": ("by", "key", "field"),
    "distinct": ("by", "key", "field"),
    "flatten": ("depth",),
    "groupBy": ("by", "key", "field"),
}


def _read_chained_op(entry: Any) -> TransformOp | None:
    if not is_mapping(entry):
        return None
    for name in TRANSFORM_OPERATIONS:
        if name in entry:
            params = {k: v for k, v in entry.items() if k != name}
            argument = entry[name]
            if is_mapping(argument):
                params.update(argument)
                argument = None
            return TransformOp(name=name, argument=argument, params=params)
    return None


def read_transform(step: Step) -> TransformSpec | None:
    transform = step.get("data_transform")
    if not is_mapping(transform):
        return None

    output = first_present(transform, TRANSFORM_RESULT_KEYS, "transformed_data")
    source = first_present(transform, TRANSFORM_SOURCE_KEYS)
    operations: list[TransformOp] = []
    unknown: list[Any] = []

    operation = transform.get("operation")
    if operation is not None:
        if operation in FLAT_OPERATION_PARAMS:
            params = {k: transform[k] for k in FLAT_OPERATION_PARAMS[operation] if k in transform}
            operations.append(TransformOp(name=operation, params=params))
        else:
            unknown.append(operation)

    raw_operations = transform.get("operations")
    if isinstance(raw_operations, list):
        for entry in raw_operations:
            op = _read_chained_op(entry)
            if op is None:
                unknown.append(entry)
            else:
                operations.append(op)

    return TransformSpec(source=source, operations=operations, output=output, unknown=unknown)


@dataclass
class BranchSpec:
    """One branch of a concurrent group.

    Params:
        flow: Steps of the branch
        output_name: Variable receiving the branch result when merging
    """

    flow: Flow
    output_name: str | None = None


@dataclass
class ParallelSpec:
    """A ``parallel`` construct.

    Params:
        branches: Concurrent branches in document order
        merge_results: Capture each branch's produced value into its output
    """

    branches: list[BranchSpec]
    merge_results: bool = False


def read_parallel(step: Step) -> ParallelSpec | None:
    parallel = step.get("parallel")
    raw_branches = get_parallel_branches(parallel)
    if raw_branches is None:
        return None

    branches = []
    for branch in raw_branches:
        output_name = first_present(branch, ("as", "name"))
        branches.append(
            BranchSpec(
                flow=get_branch_flow(branch) or [],
                output_name=output_name if isinstance(output_name, str) else None,
            )
        )
    merge = first_present(parallel, ("merge_results", "waitAll"), False)
    return ParallelSpec(branches=branches, merge_results=merge is True)


@dataclass
class ImportSpec:
    """A flow-level ``import`` step or a top-level import entry.

    Params:
        path: File path being imported
        alias: Variable bound to the import, if any
        params: ``with`` parameters for sub-flows, if any
        kind: ``flow``, ``data`` or None when inferred from the extension
    """

    path: Any
    alias: str | None = None
    params: Any = None
    kind: str | None = None


def read_import_step(step: Step) -> ImportSpec:
    alias = step.get("as")
    return ImportSpec(
        path=step.get("import"),
        alias=alias if isinstance(alias, str) else None,
        params=step.get("with"),
    )


def read_import_entry(entry: Any) -> ImportSpec | None:
    """Normalize one entry of the document-level ``import`` list."""
    if isinstance(entry, str):
        return ImportSpec(path=entry)
    if not is_mapping(entry):
        return None
    for kind in ("flow", "data", "path"):
        if entry.get(kind) is not None:
            alias = entry.get("as")
            return ImportSpec(
                path=entry[kind],
                alias=alias if isinstance(alias, str) else None,
                params=entry.get("with"),
                kind=None if kind == "path" else kind,
            )
    return None


@dataclass
class UseSpec:
    """A sub-flow invocation.

    Params:
        reference: Sub-flow reference (marker or file path)
        params: ``with`` parameters, if any
    """

    reference: Any
    params: Any = None


def read_use(step: Step) -> UseSpec:
    return UseSpec(reference=step.get("use"), params=step.get("with"))
