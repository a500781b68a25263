"""
Exception block generator.

Emits ``try`` / ``except Exception as <alias>`` / ``finally`` mirroring the
blocks that are present. A try block with neither handler still gets a no-op
``except Exception: pass`` so the output stays valid Python.
"""

from flowtree.core.constructs import read_exception_block
from flowtree.core.types import Step
from flowtree.transpiler.context import GenerationContext
from flowtree.transpiler.generators.utils import target_name


def generate(step: Step, ctx: GenerationContext) -> list[str]:
    spec = read_exception_block(step)
    if spec.try_flow is None:
        ctx.warn("Try block without a flow; generating an empty try body")

    lines = [ctx.indent("try:"), *ctx.body(spec.try_flow)]

    if spec.catch_flow is not None:
        alias = target_name(ctx, spec.catch_alias, "e", "catch alias")
        ctx.scope.declare(alias)
        lines.append(ctx.indent(f"except Exception as {alias}:"))
        lines.extend(ctx.body(spec.catch_flow))
    elif spec.finally_flow is None:
        ctx.warn("Try block without catch or finally; errors are silently ignored")
        lines.append(ctx.indent("except Exception:"))
        lines.append(ctx.deeper().indent("pass"))

    if spec.finally_flow is not None:
        lines.append(ctx.indent("finally:"))
        lines.extend(ctx.body(spec.finally_flow))
    return lines
