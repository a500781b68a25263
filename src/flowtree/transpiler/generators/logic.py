"""
Conditional generator.

    logic:
      if: "the cart is empty"
      then: [...]
      else: [...]

becomes ``if await agent.ai_boolean('the cart is empty'):`` with both bodies.
"""

from flowtree.core.steps import is_mapping
from flowtree.core.types import Step
from flowtree.transpiler.context import GenerationContext
from flowtree.transpiler.generators.utils import skip_step


def generate(step: Step, ctx: GenerationContext) -> list[str]:
    logic = step["logic"]
    if not is_mapping(logic) or logic.get("if") is None:
        return skip_step(ctx, "Invalid logic step", step)

    condition = ctx.agent.check(ctx.value_code(logic["if"]))
    lines = [ctx.indent(f"if {condition}:")]
    lines.extend(ctx.body(logic.get("then")))
    if logic.get("else") is not None:
        lines.append(ctx.indent("else:"))
        lines.extend(ctx.body(logic["else"]))
    return lines
