"""
Import and sub-flow invocation generators.

The file extension decides how an import is bound:

- ``.json``: the parsed data
- ``.yaml`` / ``.yml``: a deferred sub-flow reference, run later with ``use``;
  without an alias the sub-flow runs immediately
- ``.py``: the loaded module
- anything else: the path itself, with a warning
"""

from pathlib import PurePath
from typing import Any

from flowtree.core.constructs import ImportSpec, read_import_entry, read_import_step, read_use
from flowtree.core.expressions import has_marker, reference_expression
from flowtree.core.loader import YAML_EXTENSIONS
from flowtree.core.types import Step
from flowtree.transpiler.context import GenerationContext
from flowtree.transpiler.generators.utils import skip_step, step_json, target_name


def _extension(path: str) -> str:
    return PurePath(path).suffix.lower()


def _params_code(ctx: GenerationContext, params: Any) -> str | None:
    return None if params is None else ctx.value_code(params)


def json_load_code(ctx: GenerationContext, path_code: str) -> str:
    ctx.needs.require_import("import json")
    ctx.needs.require_import("from pathlib import Path")
    return f"json.loads(Path({path_code}).read_text(encoding='utf-8'))"


def yaml_load_code(ctx: GenerationContext, path_code: str) -> str:
    ctx.needs.require_import("import yaml")
    ctx.needs.require_import("from pathlib import Path")
    return f"yaml.safe_load(Path({path_code}).read_text(encoding='utf-8'))"


def generate_import(spec: ImportSpec, ctx: GenerationContext, *, as_data: bool = False) -> list[str]:
    """Bind one import according to its extension.

    Params:
        spec: Normalized import
        ctx: Generation context
        as_data: Load YAML files as data instead of binding a sub-flow reference

    Returns:
        Generated lines
    """
    path_code = ctx.value_code(spec.path)
    extension = _extension(spec.path)
    alias = target_name(ctx, spec.alias, "", "import alias") if spec.alias is not None else ""

    if extension == ".json":
        expression = json_load_code(ctx, path_code)
    elif extension in YAML_EXTENSIONS and as_data:
        expression = yaml_load_code(ctx, path_code)
    elif extension in YAML_EXTENSIONS:
        if not alias:
            return [ctx.indent(ctx.agent.run_flow(path_code, _params_code(ctx, spec.params)))]
        expression = path_code
    elif extension == ".py":
        ctx.needs.require_helper("_load_module")
        expression = f"_load_module({path_code})"
    else:
        if not has_marker(spec.path):
            ctx.warn(f"Import '{spec.path}' has an unsupported extension; binding the path only")
        expression = path_code

    if not alias:
        ctx.warn(f"Import '{spec.path}' has no 'as' alias; its value is discarded")
        return [ctx.indent(expression)]
    ctx.scope.declare(alias)
    return [ctx.indent(f"{alias} = {expression}")]


def generate(step: Step, ctx: GenerationContext) -> list[str]:
    spec = read_import_step(step)
    if not isinstance(spec.path, str) or not spec.path.strip():
        return skip_step(ctx, "Invalid import step", step)
    return generate_import(spec, ctx)


def generate_top_level(entries: Any, ctx: GenerationContext) -> list[str]:
    """Bindings for the document-level ``import`` list."""
    lines: list[str] = []
    for entry in entries if isinstance(entries, list) else []:
        spec = read_import_entry(entry)
        if spec is None or not isinstance(spec.path, str):
            ctx.warn(f"Skipped invalid import entry: {step_json(entry)}")
            lines.append(ctx.indent(f"# Skipped invalid import entry: {step_json(entry)}"))
            continue
        if spec.kind == "flow":
            # Flow imports are always deferred references.
            alias = target_name(ctx, spec.alias, "", "import alias") if spec.alias else ""
            if alias:
                ctx.scope.declare(alias)
                lines.append(ctx.indent(f"{alias} = {ctx.value_code(spec.path)}"))
                continue
        lines.extend(generate_import(spec, ctx, as_data=spec.kind == "data"))
    return lines


def generate_use(step: Step, ctx: GenerationContext) -> list[str]:
    """Invoke a sub-flow through the agent."""
    spec = read_use(step)
    if not isinstance(spec.reference, str) or not spec.reference.strip():
        return skip_step(ctx, "Invalid use step", step)

    reference = reference_expression(spec.reference)
    if reference is None and spec.reference in ctx.scope:
        reference = spec.reference
    if reference is None:
        reference = ctx.value_code(spec.reference)
    return [ctx.indent(ctx.agent.run_flow(reference, _params_code(ctx, spec.params)))]
