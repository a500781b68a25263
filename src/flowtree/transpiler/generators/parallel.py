"""
Concurrent group generator.

Generation happens in two passes. A read-only pass collects every value
binding made anywhere inside the branches; names not yet bound are hoisted as
``name = None`` before the group. Each branch then becomes a nested coroutine
whose ``nonlocal`` header turns its bindings into assignments to the hoisted
names, so values survive the join:

    title = None
    price = None

    async def _parallel_1_branch_0():
        nonlocal title
        title = await agent.ai_query('page title')

    async def _parallel_1_branch_1():
        nonlocal price
        price = await agent.ai_query('price')

    await _gather_all(_parallel_1_branch_0(), _parallel_1_branch_1())

``_gather_all`` waits for every branch and re-raises the first failure. With
``merge_results`` each branch also returns its last bound value, unpacked into
the branch outputs.
"""

from flowtree.core.bindings import collect_bound_names, last_bound_name, merged_output_names
from flowtree.core.constructs import read_parallel
from flowtree.core.types import Step
from flowtree.transpiler.context import GenerationContext
from flowtree.transpiler.generators.utils import skip_step


def generate(step: Step, ctx: GenerationContext) -> list[str]:
    spec = read_parallel(step)
    if spec is None:
        return skip_step(ctx, "Invalid parallel step", step)
    if not spec.branches:
        ctx.warn("Parallel group without branches was skipped")
        return [ctx.indent("# Empty parallel group")]

    ctx.needs.require_helper("_gather_all")
    group = ctx.state.next_parallel_group()
    max_depth = ctx.settings.max_walk_depth

    branch_names = [collect_bound_names(branch.flow, max_depth=max_depth) for branch in spec.branches]
    lines = []
    for names in branch_names:
        for name in names:
            if ctx.scope.declare(name):
                lines.append(ctx.indent(f"{name} = None"))
    if lines:
        lines.append("")

    inner = ctx.deeper()
    calls = []
    for index, (branch, names) in enumerate(zip(spec.branches, branch_names)):
        function = f"_parallel_{group}_branch_{index}"
        calls.append(f"{function}()")
        lines.append(ctx.indent(f"async def {function}():"))
        if names:
            lines.append(inner.indent(f"nonlocal {', '.join(names)}"))
        function_scope = ctx.scope.snapshot()
        body = inner.generate_flow(branch.flow, inner)
        ctx.scope.restore(function_scope)
        lines.extend(body)
        if spec.merge_results:
            lines.append(inner.indent(f"return {last_bound_name(branch.flow) or 'None'}"))
        elif not body and not names:
            lines.append(inner.indent("pass"))
        lines.append("")

    join = f"await _gather_all({', '.join(calls)})"
    if spec.merge_results:
        outputs = merged_output_names(step)
        for name in outputs:
            ctx.scope.declare(name)
        if len(outputs) == 1:
            lines.append(ctx.indent(f"{outputs[0]} = ({join})[0]"))
        else:
            lines.append(ctx.indent(f"{', '.join(outputs)} = {join}"))
    else:
        lines.append(ctx.indent(join))
    return lines
