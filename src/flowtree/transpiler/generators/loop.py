"""
Loop generator for ``for``, ``while`` and ``repeat`` loops.

While loops are always bounded: each gets a counter that is unique in the
program scope (``_while_iter``, ``_while_iter_1``...) unless ``counterVar``
names one, and stop after ``maxIterations`` rounds.
"""

from typing import Any

from flowtree.core.constructs import LoopSpec, read_loop
from flowtree.core.expressions import is_identifier, reference_expression
from flowtree.core.types import Step
from flowtree.transpiler.context import GenerationContext
from flowtree.transpiler.generators.utils import collection_code, skip_step, target_name

WHILE_COUNTER_BASE = "_while_iter"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _count_code(ctx: GenerationContext, value: Any) -> str:
    if _is_number(value):
        return repr(int(value))
    expression = reference_expression(value)
    if expression is not None:
        return f"int({expression})"
    return f"int({ctx.value_code(value)})"


def generate_for(spec: LoopSpec, ctx: GenerationContext) -> list[str]:
    items = collection_code(ctx, spec.items)
    item = target_name(ctx, spec.item_var, "item", "loop item")
    ctx.scope.declare(item)
    if spec.index_var is not None:
        index = target_name(ctx, spec.index_var, "index", "loop index")
        ctx.scope.declare(index)
        header = f"for {index}, {item} in enumerate({items}):"
    else:
        header = f"for {item} in {items}:"
    return [ctx.indent(header), *ctx.body(spec.flow)]


def generate_while(spec: LoopSpec, ctx: GenerationContext) -> list[str]:
    if is_identifier(spec.counter_var):
        counter = spec.counter_var
        ctx.scope.declare(counter)
    else:
        counter = ctx.scope.unique_name(WHILE_COUNTER_BASE)

    if spec.max_iterations is None:
        bound = repr(ctx.settings.default_max_iterations)
    else:
        bound = _count_code(ctx, spec.max_iterations)

    condition = ctx.agent.check(ctx.value_code(spec.condition))
    inner = ctx.deeper()
    body = inner.generate_flow(spec.flow, inner)
    return [
        ctx.indent(f"{counter} = 0"),
        ctx.indent(f"while {counter} < {bound} and {condition}:"),
        *body,
        inner.indent(f"{counter} += 1"),
    ]


def generate_repeat(spec: LoopSpec, ctx: GenerationContext) -> list[str]:
    index = target_name(ctx, spec.index_var, "i", "repeat index") if spec.index_var is not None else "i"
    ctx.scope.declare(index)
    count = _count_code(ctx, spec.count)
    return [ctx.indent(f"for {index} in range({count}):"), *ctx.body(spec.flow)]


LOOP_GENERATORS = {
    "for": (generate_for, "items"),
    "while": (generate_while, "condition"),
    "repeat": (generate_repeat, "count"),
}


def generate(step: Step, ctx: GenerationContext) -> list[str]:
    spec = read_loop(step)
    if spec is None or spec.loop_type not in LOOP_GENERATORS:
        return skip_step(ctx, "Invalid loop step", step)

    generator, required = LOOP_GENERATORS[spec.loop_type]
    if getattr(spec, required) is None:
        return skip_step(ctx, f"Loop of type '{spec.loop_type}' without '{required}'", step)
    return generator(spec, ctx)
