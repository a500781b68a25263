"""
Data transform generator.

Both authoring forms normalize to one list of operations applied in order to
the source collection. The first operation reads the source and every later
one reads the output variable:

    data_transform:
      input: "${products}"
      operations:
        - filter: "price > 100"
        - sort: "price desc"
      output: expensive

becomes

    expensive = [item for item in products if item['price'] > 100]
    expensive = sorted(expensive, key=lambda item: _sort_key(item, 'price'), reverse=True)
"""

from collections.abc import Callable
from typing import Any

from flowtree.core.constructs import TransformOp, first_present, read_transform
from flowtree.core.expressions import quote
from flowtree.core.steps import is_mapping
from flowtree.core.types import Step
from flowtree.transpiler.context import GenerationContext
from flowtree.transpiler.generators.utils import (
    collection_code,
    expression_code,
    skip_step,
    step_json,
    target_name,
)

SORT_DIRECTIONS = ("asc", "desc")
MAP_TEMPLATE_KEYS = ("template", "fields")


def _field_literal(value: Any) -> str:
    return "None" if value is None else quote(str(value))


def _key_field(op: TransformOp) -> Any:
    if op.argument is not None and not isinstance(op.argument, bool):
        return op.argument
    return first_present(op.params, ("by", "key", "field"))


def transform_filter(op: TransformOp, data: str, ctx: GenerationContext) -> str:
    condition = op.argument if op.argument is not None else first_present(op.params, ("condition", "predicate", "where"))
    if condition is None:
        ctx.warn("filter operation without a condition keeps every item")
        return f"list({data})"
    return f"[item for item in {data} if {expression_code(ctx, condition)}]"


def transform_sort(op: TransformOp, data: str, ctx: GenerationContext) -> str:
    ctx.needs.require_helper("_sort_key")
    field = first_present(op.params, ("by", "field"))
    order = str(op.params.get("order") or "asc").lower()
    if isinstance(op.argument, str):
        parts = op.argument.split()
        field = parts[0] if parts else field
        if len(parts) > 1:
            order = parts[1].lower()
    if order not in SORT_DIRECTIONS:
        ctx.warn(f"Unknown sort order {order!r}; sorting ascending")
        order = "asc"

    code = f"sorted({data}, key=lambda item: _sort_key(item, {_field_literal(field)})"
    if order == "desc":
        code += ", reverse=True"
    return code + ")"


def transform_map(op: TransformOp, data: str, ctx: GenerationContext) -> str:
    template = first_present(op.params, MAP_TEMPLATE_KEYS)
    expression = op.argument if op.argument is not None else op.params.get("expression")
    if template is None and expression is None and op.params:
        template = op.params

    if is_mapping(template):
        return f"[{ctx.value_code(template)} for item in {data}]"
    if expression is None:
        ctx.warn("map operation without a template or expression returns items unchanged")
        return f"list({data})"
    return f"[{expression_code(ctx, expression, field_target=None)} for item in {data}]"


def transform_reduce(op: TransformOp, data: str, ctx: GenerationContext) -> str:
    ctx.needs.require_import("import functools")
    reducer = op.argument if op.argument is not None else first_present(op.params, ("reducer", "expression"))
    if reducer is None:
        ctx.warn("reduce operation without a reducer expression; using 'acc'")
        reducer = "acc"
    seed = op.params.get("initial", 0)
    return (
        f"functools.reduce(lambda acc, item: {expression_code(ctx, reducer, field_target=None)}, "
        f"{data}, {ctx.value_code(seed)})"
    )


def transform_slice(op: TransformOp, data: str, ctx: GenerationContext) -> str:
    start, end = op.params.get("start"), op.params.get("end")
    if isinstance(op.argument, list):
        start = op.argument[0] if op.argument else None
        end = op.argument[1] if len(op.argument) > 1 else None
    start_code = "" if start is None else ctx.value_code(start)
    end_code = "" if end is None else ctx.value_code(end)
    return f"{data}[{start_code}:{end_code}]"


def transform_unique(op: TransformOp, data: str, ctx: GenerationContext) -> str:
    ctx.needs.require_helper("_unique")
    key = _key_field(op)
    if key is None or key is True:
        return f"_unique({data})"
    return f"_unique({data}, {_field_literal(key)})"


def transform_flatten(op: TransformOp, data: str, ctx: GenerationContext) -> str:
    ctx.needs.require_helper("_flatten")
    depth = op.params.get("depth")
    if isinstance(op.argument, int) and not isinstance(op.argument, bool):
        depth = op.argument
    return f"_flatten({data}, {ctx.value_code(1 if depth is None else depth)})"


def transform_group_by(op: TransformOp, data: str, ctx: GenerationContext) -> str:
    ctx.needs.require_helper("_group_by")
    return f"_group_by({data}, {_field_literal(_key_field(op))})"


OPERATIONS: dict[str, Callable[[TransformOp, str, GenerationContext], str]] = {
    "filter": transform_filter,
    "sort": transform_sort,
    "map": transform_map,
    "reduce": transform_reduce,
    "slice": transform_slice,
    "unique": transform_unique,
    "distinct": transform_unique,
    "flatten": transform_flatten,
    "groupBy": transform_group_by,
}


def generate(step: Step, ctx: GenerationContext) -> list[str]:
    spec = read_transform(step)
    if spec is None:
        return skip_step(ctx, "Invalid data_transform step", step)

    output = target_name(ctx, spec.output, "transformed_data", "transform output")
    if spec.source is None:
        ctx.warn(f"data_transform '{output}' has no source; using an empty list")
        source = "[]"
    else:
        source = collection_code(ctx, spec.source)

    lines = []
    for entry in spec.unknown:
        ctx.warn(f"Skipped unrecognized data_transform operation: {step_json(entry)}")
        lines.append(ctx.indent(f"# Skipped unrecognized operation: {step_json(entry)}"))

    ctx.scope.declare(output)
    if not spec.operations:
        lines.append(ctx.indent(f"{output} = list({source})"))
        return lines

    data = source
    for op in spec.operations:
        lines.append(ctx.indent(f"{output} = {OPERATIONS[op.name](op, data, ctx)}"))
        data = output
    return lines
