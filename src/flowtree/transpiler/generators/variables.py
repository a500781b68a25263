"""
Variable binding generator.
"""

from typing import Any

from flowtree.core.expressions import is_identifier
from flowtree.core.steps import is_mapping
from flowtree.core.types import Step
from flowtree.transpiler.context import GenerationContext
from flowtree.transpiler.generators.utils import skip_step


def generate_bindings(bindings: dict[str, Any], ctx: GenerationContext) -> list[str]:
    """One assignment per name; names already in scope are simply re-bound."""
    lines = []
    for name, value in bindings.items():
        if not is_identifier(name):
            ctx.warn(f"Skipped variable {name!r}: not a valid Python identifier")
            lines.append(ctx.indent(f"# Skipped variable {name!r}: not a valid identifier"))
            continue
        ctx.scope.declare(name)
        lines.append(ctx.indent(f"{name} = {ctx.value_code(value)}"))
    return lines


def generate(step: Step, ctx: GenerationContext) -> list[str]:
    bindings = step["variables"]
    if not is_mapping(bindings):
        return skip_step(ctx, "Invalid variables step", step)
    return generate_bindings(bindings, ctx)
