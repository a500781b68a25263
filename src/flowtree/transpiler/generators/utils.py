"""
Helpers shared by the construct generators.
"""

import json
import keyword
import re
from typing import Any

from flowtree.core.expressions import (
    is_env_marker,
    is_identifier,
    marker_to_expression,
    reference_expression,
    reference_to_subscripts,
)
from flowtree.transpiler.context import GenerationContext

# Operators authors borrow from JavaScript-style expressions.
OPERATOR_REPLACEMENTS = (
    (re.compile(r"===?"), "=="),
    (re.compile(r"!=="), "!="),
    (re.compile(r"&&"), " and "),
    (re.compile(r"\|\|"), " or "),
    (re.compile(r"!(?!=)"), " not "),
    (re.compile(r"\btrue\b"), "True"),
    (re.compile(r"\bfalse\b"), "False"),
    (re.compile(r"\b(null|undefined)\b"), "None"),
)

DOTTED_REFERENCE_PATTERN = re.compile(r"(?<![\w.'\"\]])([A-Za-z_]\w*(?:\.[A-Za-z_]\w*)+)")
BARE_FIELD_PATTERN = re.compile(r"(?<![\w.'\"])([A-Za-z_]\w*)\b(?!\s*\(|\s*=(?!=))")
PROTECTED_PATTERN = re.compile(r"\$\{([^}]+)\}|'[^']*'|\"[^\"]*\"")

EXPRESSION_NAMES = frozenset({"item", "acc", "not", "and", "or", "True", "False", "None", "len"})


def step_json(step: Any) -> str:
    return json.dumps(step, ensure_ascii=False, default=str)


def skip_step(ctx: GenerationContext, reason: str, step: Any) -> list[str]:
    """Inert comment for a step that cannot be generated, plus a warning."""
    ctx.warn(f"{reason}: {step_json(step)}")
    return [ctx.indent(f"# {reason}: {step_json(step)}")]


def target_name(ctx: GenerationContext, name: Any, fallback: str, what: str) -> str:
    """A usable variable name, falling back with a warning."""
    if is_identifier(name):
        return name
    if name is not None:
        ctx.warn(f"Invalid {what} name {name!r}; using '{fallback}' instead")
    return fallback


def collection_code(ctx: GenerationContext, value: Any) -> str:
    """Expression for a collection written as a marker, a bare name or a literal."""
    expression = reference_expression(value)
    if expression is not None:
        return expression
    if is_identifier(value):
        return value
    return ctx.value_code(value)


def _translate_segment(segment: str) -> str:
    for pattern, replacement in OPERATOR_REPLACEMENTS:
        segment = pattern.sub(replacement, segment)
    segment = DOTTED_REFERENCE_PATTERN.sub(lambda m: reference_to_subscripts(m.group(1)), segment)
    return re.sub(r" {2,}", " ", segment)


def _read_bare_fields(ctx: GenerationContext, segment: str, field_target: str) -> str:
    def replace(match: re.Match) -> str:
        name = match.group(1)
        if name in EXPRESSION_NAMES or keyword.iskeyword(name) or name in ctx.scope:
            return name
        return f"{field_target}['{name}']"

    return BARE_FIELD_PATTERN.sub(replace, segment)


def expression_code(ctx: GenerationContext, text: Any, *, field_target: str | None = "item") -> str:
    """Python source for a transform expression.

    Markers become expressions, JavaScript-style operators become Python
    ones and dotted paths become subscripts. When ``field_target`` is given,
    every bare name that is not a bound variable, a keyword or a call is read
    from that variable, so ``price > 10 && price < 50`` filters on
    ``item['price']``.
    """
    if not isinstance(text, str):
        return ctx.value_code(text)

    def translate(segment: str) -> str:
        segment = _translate_segment(segment)
        if field_target is not None:
            segment = _read_bare_fields(ctx, segment, field_target)
        return segment

    pieces = []
    position = 0
    for match in PROTECTED_PATTERN.finditer(text):
        pieces.append(translate(text[position : match.start()]))
        inner = match.group(1)
        if inner is None:
            pieces.append(match.group(0))
        else:
            if is_env_marker(inner):
                ctx.needs.require_import("import os")
            pieces.append(marker_to_expression(inner))
        position = match.end()
    pieces.append(translate(text[position:]))
    return "".join(pieces).strip()
