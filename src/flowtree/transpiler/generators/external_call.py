"""
External call generator for HTTP requests and shell commands.

HTTP calls go through the ``_http_request`` helper of the generated program;
shell commands run synchronously with ``subprocess.run``. Both bind their
result to ``response_as`` / ``as`` / ``name`` (default ``response``).
"""

from typing import Any

from flowtree.core.constructs import ExternalCallSpec, read_external_call
from flowtree.core.expressions import quote
from flowtree.core.steps import is_mapping
from flowtree.core.types import Step
from flowtree.transpiler.context import GenerationContext
from flowtree.transpiler.generators.utils import skip_step, target_name


def nesting_depth(value: Any) -> int:
    if is_mapping(value):
        return 1 + max((nesting_depth(v) for v in value.values()), default=0)
    if isinstance(value, list):
        return 1 + max((nesting_depth(v) for v in value), default=0)
    return 0


def _payload_code(ctx: GenerationContext, value: Any, what: str) -> str:
    if nesting_depth(value) > ctx.settings.max_resolve_depth:
        ctx.warn(
            f"HTTP {what} nests deeper than {ctx.settings.max_resolve_depth} levels; "
            "markers past that depth are emitted verbatim"
        )
    return ctx.value_code(value)


def generate_http(spec: ExternalCallSpec, ctx: GenerationContext) -> str:
    ctx.needs.require_helper("_http_request")
    arguments = [quote(spec.method), ctx.value_code(spec.url)]
    if spec.headers is not None:
        arguments.append(f"headers={_payload_code(ctx, spec.headers, 'headers')}")
    if spec.body is not None:
        arguments.append(f"body={_payload_code(ctx, spec.body, 'body')}")
    return f"await _http_request({', '.join(arguments)})"


def generate_shell(spec: ExternalCallSpec, ctx: GenerationContext) -> str:
    ctx.needs.require_import("import subprocess")
    command = ctx.value_code(spec.command)
    return f"subprocess.run({command}, shell=True, check=True, capture_output=True, text=True).stdout"


def generate(step: Step, ctx: GenerationContext) -> list[str]:
    spec = read_external_call(step)
    if spec is None:
        return skip_step(ctx, "Invalid external_call step", step)

    if spec.call_type == "http" and spec.url:
        expression = generate_http(spec, ctx)
    elif spec.call_type == "shell" and spec.command:
        expression = generate_shell(spec, ctx)
    else:
        return skip_step(ctx, "Invalid external_call step", step)

    name = target_name(ctx, spec.result_name, "response", "response")
    ctx.scope.declare(name)
    return [ctx.indent(f"{name} = {expression}")]
