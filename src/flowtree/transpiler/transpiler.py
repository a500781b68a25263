"""
Transpiler orchestration: from a document to a complete Python program.

Every task's flow is generated into the body of one ``async def run_flow``
coroutine, in document order, and the body is wrapped in a boilerplate
template. Steps are dispatched on their StepKind through a table of
generators. A step that cannot be generated becomes an inert comment plus a
warning; only whole-document problems raise.
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from flowtree.core.expressions import is_identifier, quote
from flowtree.core.loader import describe_source, load_document
from flowtree.core.steps import StepKind, classify_step, get_task_flow, is_mapping
from flowtree.core.types import Flow, Step
from flowtree.exceptions import TranspileError, UnsupportedTemplateError
from flowtree.settings import DEFAULT_SETTINGS, FlowTreeSettings
from flowtree.transpiler.context import AgentCapability, GenerationContext, GenerationState
from flowtree.transpiler.generators import (
    data_transform,
    external_call,
    imports,
    logic,
    loop,
    native,
    parallel,
    try_catch,
    variables,
)
from flowtree.transpiler.generators.utils import skip_step
from flowtree.transpiler.templates import SUPPORTED_TEMPLATES, extract_platform_config, render_program

logger = logging.getLogger(__name__)

StepGenerator = Callable[[Step, GenerationContext], list[str]]

STEP_GENERATORS: dict[StepKind, StepGenerator] = {
    StepKind.VARIABLES: variables.generate,
    StepKind.LOGIC: logic.generate,
    StepKind.LOOP: loop.generate,
    StepKind.IMPORT: imports.generate,
    StepKind.DATA_TRANSFORM: data_transform.generate,
    StepKind.TRY_CATCH: try_catch.generate,
    StepKind.EXTERNAL_CALL: external_call.generate,
    StepKind.PARALLEL: parallel.generate,
    StepKind.USE: imports.generate_use,
    StepKind.NATIVE: native.generate,
}


class TranspileResult(BaseModel):
    """Outcome of compiling a document.

    Params:
        code: Complete Python program
        warnings: Problems that degraded individual steps
        output_path: File the program was written to, if requested
    """

    code: str
    warnings: list[str] = Field(default_factory=list)
    output_path: str | None = None


def process_step(step: Any, ctx: GenerationContext) -> list[str]:
    """Generate the lines of one step at the context's level."""
    if not is_mapping(step):
        return skip_step(ctx, "Skipped invalid step", step)
    generator = STEP_GENERATORS.get(classify_step(step))
    if generator is None:
        return skip_step(ctx, "Unrecognized step", step)
    return generator(step, ctx)


def process_flow(flow: Flow, ctx: GenerationContext) -> list[str]:
    """Generate every step of a flow in document order."""
    if ctx.level > ctx.settings.max_walk_depth:
        ctx.warn(f"Nesting exceeds {ctx.settings.max_walk_depth} levels; deeper steps were skipped")
        return [ctx.indent("# Skipped: nesting limit reached")]
    lines: list[str] = []
    for step in flow if isinstance(flow, list) else []:
        lines.extend(process_step(step, ctx))
    return lines


def generate_task(task: Any, index: int, total: int, ctx: GenerationContext) -> list[str]:
    """Lines for one task: header, failure isolation and output directive."""
    name = task.get("name") if is_mapping(task) else None
    name = name if isinstance(name, str) and name.strip() else f"Task {index + 1}"

    lines: list[str] = []
    if total > 1:
        if index > 0:
            lines.append("")
        lines.append(ctx.indent(f"# --- {name} ---"))

    flow = get_task_flow(task)
    if flow is None:
        ctx.warn(f"Skipped task '{name}': it has no flow list")
        lines.append(ctx.indent(f"# Skipped task {quote(name)}: no flow list"))
        return lines

    if task.get("continueOnError") is True:
        ctx.needs.require_helper("logger")
        inner = ctx.deeper()
        lines.append(ctx.indent("try:"))
        lines.extend(inner.generate_flow(flow, inner) or [inner.indent("pass")])
        lines.append(ctx.indent("except Exception as _task_error:"))
        lines.append(inner.indent(f'logger.warning("Task %s failed: %s", {quote(name)}, _task_error)'))
    else:
        lines.extend(ctx.generate_flow(flow, ctx))

    lines.extend(generate_output(task.get("output"), ctx))
    return lines


def generate_output(output: Any, ctx: GenerationContext) -> list[str]:
    """Write a variable to a JSON file after the task."""
    if output is None:
        return []
    if not is_mapping(output) or not output.get("filePath") or not output.get("dataName"):
        ctx.warn("Task output needs 'filePath' and 'dataName'; it was skipped")
        return []
    data_name = output["dataName"]
    if not is_identifier(data_name):
        ctx.warn(f"Task output dataName {data_name!r} is not a valid variable name; it was skipped")
        return []
    ctx.needs.require_helper("_write_output")
    return [ctx.indent(f"_write_output({ctx.value_code(output['filePath'])}, {data_name})")]


def generate_body(document: dict, ctx: GenerationContext) -> list[str]:
    """Lines of the ``run_flow`` body for a whole document."""
    lines: list[str] = []
    if "import" in document:
        lines.extend(imports.generate_top_level(document["import"], ctx))
    if is_mapping(document.get("variables")):
        lines.extend(variables.generate_bindings(document["variables"], ctx))
    if lines:
        lines.append("")

    tasks = document["tasks"]
    for index, task in enumerate(tasks):
        lines.extend(generate_task(task, index, len(tasks), ctx))
    return lines


def transpile(
    source: Any,
    *,
    template: str | None = None,
    output_path: str | Path | None = None,
    settings: FlowTreeSettings | None = None,
    agent: AgentCapability | None = None,
) -> TranspileResult:
    """Compile an extended document into a Python program.

    Params:
        source: File path, raw YAML text or a parsed mapping
        template: ``playwright`` or ``module``; defaults to settings.template
        output_path: Also write the program to this file
        settings: Limits and code generation defaults
        agent: Capability leaf actions are generated against

    Returns:
        TranspileResult with the program and generation warnings

    Raises:
        DocumentLoadError: When the input cannot be read or parsed
        TranspileError: When the document is empty, not a mapping or has no tasks
        UnsupportedTemplateError: When the template selector is unknown
    """
    settings = settings or DEFAULT_SETTINGS
    template = template or settings.template
    if template not in SUPPORTED_TEMPLATES:
        raise UnsupportedTemplateError(template, SUPPORTED_TEMPLATES)

    loaded = load_document(source, settings)
    document = loaded.document
    if not is_mapping(document) or not document:
        raise TranspileError("parsed YAML document is empty or not a mapping")
    tasks = document.get("tasks")
    if not isinstance(tasks, list) or not tasks:
        raise TranspileError("document must contain a 'tasks' list with at least one task")

    agent = agent or AgentCapability(name=settings.agent_name)
    state = GenerationState()
    ctx = GenerationContext(state=state, agent=agent, generate_flow=process_flow, settings=settings, level=1)

    body = generate_body(document, ctx) or [ctx.indent("pass")]
    platform = extract_platform_config(document)
    if template == "playwright" and platform.platform != "web":
        state.warnings.append(
            f"The playwright template drives a desktop browser; the '{platform.platform}' platform config is ignored"
        )

    code = render_program(
        template,
        body=body,
        needs=state.needs,
        agent=agent,
        platform=platform,
        agent_factory=settings.agent_factory,
        source=str(loaded.file_path.name) if loaded.file_path else describe_source(source),
    )
    for warning in state.warnings:
        logger.warning("Generation: %s", warning)

    result = TranspileResult(code=code, warnings=list(state.warnings))
    if output_path is not None:
        target = Path(output_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(code, encoding="utf-8")
        result.output_path = str(target)
        logger.debug("Wrote generated program to %s", target)
    return result
