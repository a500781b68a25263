"""
Native action generator.

Each native action becomes one awaited call on the agent capability:

    - aiTap: "Login button"              ->  await agent.ai_tap('Login button')
    - aiInput: "Search box"
      value: "${query}"                  ->  await agent.ai_input('Search box', value=query)
    - aiQuery: "product titles"
      name: titles                       ->  titles = await agent.ai_query('product titles')

Sibling option keys (or the keys of the nested-object form) become keyword
arguments in snake_case.
"""

from inflection import underscore

from flowtree.core.constructs import read_action
from flowtree.core.expressions import is_identifier
from flowtree.core.types import Step
from flowtree.transpiler.context import GenerationContext
from flowtree.transpiler.generators.utils import skip_step, target_name

SCROLL_DIRECTIONS = ("up", "down", "left", "right")


def _keyword_arguments(ctx: GenerationContext, options: dict) -> list[str]:
    arguments = []
    for key, value in options.items():
        name = underscore(str(key))
        if not is_identifier(name):
            ctx.warn(f"Skipped action option {key!r}: not a valid argument name")
            continue
        arguments.append(f"{name}={ctx.value_code(value)}")
    return arguments


def generate_sleep(step: Step, ctx: GenerationContext) -> list[str]:
    ctx.needs.require_import("import asyncio")
    duration = step["sleep"]
    if isinstance(duration, (int, float)) and not isinstance(duration, bool):
        return [ctx.indent(f"await asyncio.sleep({duration / 1000!r})")]
    return [ctx.indent(f"await asyncio.sleep(float({ctx.value_code(duration)}) / 1000)")]


def generate(step: Step, ctx: GenerationContext) -> list[str]:
    """Generate the call for one native action step."""
    action = read_action(step)
    if action is None:
        return skip_step(ctx, "Unrecognized step", step)
    if action.keyword == "sleep":
        return generate_sleep(step, ctx)

    options = dict(action.options)
    prompt = action.prompt
    if action.keyword == "aiScroll" and isinstance(prompt, str) and prompt.lower() in SCROLL_DIRECTIONS:
        options.setdefault("direction", prompt)
        prompt = None

    arguments = [] if prompt is None else [ctx.value_code(prompt)]
    arguments.extend(_keyword_arguments(ctx, options))
    call = ctx.agent.call(ctx.agent.method_for(action.keyword), arguments)

    if action.result_name is None:
        return [ctx.indent(call)]

    name = target_name(ctx, action.result_name, "result", "result")
    ctx.scope.declare(name)
    return [ctx.indent(f"{name} = {call}")]
