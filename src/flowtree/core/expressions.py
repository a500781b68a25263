"""
Expression marker resolution for FlowTree code generation.

Authors embed references in strings with the ``${...}`` marker syntax. This
module converts those strings into Python source: a string that is exactly
one marker becomes a bare expression, a string with embedded markers becomes
an f-string, and a string without markers becomes an escaped literal.
Environment markers (``${ENV.NAME}`` or ``${ENV:NAME}``) resolve to
``os.environ`` lookups at run time.

Dotted reference paths are rewritten to subscripts so they work on the
dicts and lists that queries and data imports produce::

    ${user.name}     ->  user['name']
    ${rows[0].id}    ->  rows[0]['id']
"""

import keyword
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from flowtree.core.walker import iter_nodes

MARKER_PATTERN = re.compile(r"\$\{([^}]+)\}")
SINGLE_MARKER_PATTERN = re.compile(r"^\$\{([^}]+)\}$")
ENV_MARKER_PATTERN = re.compile(r"^\s*ENV[.:]([A-Za-z_][A-Za-z0-9_]*)\s*$")
REFERENCE_PATH_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z0-9_]+|\[\d+\])*$")
PATH_SEGMENT_PATTERN = re.compile(r"\.([A-Za-z0-9_]+)|\[(\d+)\]")
ROOT_NAME_PATTERN = re.compile(r"^\s*([A-Za-z_$][A-Za-z0-9_$]*)")
IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ResolvedKind(Enum):
    """Shape of a resolved string value."""

    LITERAL = "literal"
    EXPRESSION = "expression"
    INTERPOLATED = "interpolated"


@dataclass(frozen=True)
class ResolvedValue:
    """A string value converted to Python source.

    Params:
        kind: Whether the value is a literal, a bare expression or an f-string
        code: Python source for the value
    """

    kind: ResolvedKind
    code: str


def has_marker(value: Any) -> bool:
    """True when a string contains at least one ``${...}`` marker."""
    return isinstance(value, str) and MARKER_PATTERN.search(value) is not None


def find_markers(value: Any) -> list[str]:
    """Inner text of every marker in a string, in order."""
    if not isinstance(value, str):
        return []
    return MARKER_PATTERN.findall(value)


def is_env_marker(inner: str) -> bool:
    """True for the inner text of an environment marker."""
    return ENV_MARKER_PATTERN.match(inner) is not None


def marker_root(inner: str) -> str | None:
    """Root variable name referenced by a marker, e.g. ``user`` for ``user.name``.

    Returns None for environment markers and for expressions that do not start
    with an identifier.
    """
    if is_env_marker(inner):
        return None
    match = ROOT_NAME_PATTERN.match(inner)
    return match.group(1) if match else None


def is_identifier(name: Any) -> bool:
    """True for names usable as generated Python variables."""
    return isinstance(name, str) and IDENTIFIER_PATTERN.match(name) is not None and not keyword.iskeyword(name)


def escape_string_literal(text: str) -> str:
    """Escape text for use inside a single-quoted Python string literal."""
    return (
        text.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


def quote(text: str) -> str:
    """Single-quoted Python string literal for text."""
    return f"'{escape_string_literal(text)}'"


def _escape_fstring_text(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
        .replace("{", "{{")
        .replace("}", "}}")
    )


def reference_to_subscripts(path: str) -> str:
    """Rewrite ``a.b[0].c`` as ``a['b'][0]['c']``."""
    root = IDENTIFIER_PATTERN.match(path.split(".")[0].split("[")[0])
    if root is None:
        return path
    head = root.group(0)
    parts = [head]
    for name, position in PATH_SEGMENT_PATTERN.findall(path[len(head):]):
        if position:
            parts.append(f"[{position}]")
        elif name.isdigit():
            parts.append(f"[{name}]")
        else:
            parts.append(f"['{name}']")
    return "".join(parts)


def marker_to_expression(inner: str) -> str:
    """Convert the inner text of one marker to a Python expression."""
    env = ENV_MARKER_PATTERN.match(inner)
    if env:
        return f"os.environ.get('{env.group(1)}', '')"

    expression = inner.strip()
    if REFERENCE_PATH_PATTERN.match(expression):
        return reference_to_subscripts(expression)
    return expression


def resolve_template(text: str) -> ResolvedValue:
    """Convert a string that may contain markers to Python source.

    Params:
        text: Author-written string

    Returns:
        ResolvedValue whose ``code`` is a literal, an expression or an f-string
    """
    single = SINGLE_MARKER_PATTERN.match(text)
    if single:
        return ResolvedValue(ResolvedKind.EXPRESSION, marker_to_expression(single.group(1)))

    if not has_marker(text):
        return ResolvedValue(ResolvedKind.LITERAL, quote(text))

    pieces = []
    position = 0
    for match in MARKER_PATTERN.finditer(text):
        pieces.append(_escape_fstring_text(text[position : match.start()]))
        pieces.append("{" + marker_to_expression(match.group(1)) + "}")
        position = match.end()
    pieces.append(_escape_fstring_text(text[position:]))
    return ResolvedValue(ResolvedKind.INTERPOLATED, 'f"' + "".join(pieces) + '"')


def to_code(value: Any) -> str:
    """Python source for a scalar value; strings are resolved for markers."""
    if value is None:
        return "None"
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, float) and not math.isfinite(value):
        return f"float('{value}')"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return resolve_template(value).code
    return repr(value)


def value_to_code(value: Any, *, max_depth: int = 10, _depth: int = 0) -> str:
    """Python source for any YAML value, resolving markers in nested strings.

    Mappings and lists are converted recursively. Past ``max_depth`` the
    remaining subtree is emitted verbatim with ``repr`` and markers inside it
    stay unresolved text.
    """
    if _depth > max_depth:
        return repr(value)
    if isinstance(value, dict):
        entries = [
            f"{quote(str(key))}: {value_to_code(item, max_depth=max_depth, _depth=_depth + 1)}"
            for key, item in value.items()
        ]
        return "{" + ", ".join(entries) + "}"
    if isinstance(value, list):
        items = [value_to_code(item, max_depth=max_depth, _depth=_depth + 1) for item in value]
        return "[" + ", ".join(items) + "]"
    return to_code(value)


def uses_env(value: Any) -> bool:
    """True when any string inside a value contains an environment marker."""
    for node, _ in iter_nodes(value):
        if any(is_env_marker(inner) for inner in find_markers(node)):
            return True
    return False


def reference_expression(value: Any) -> str | None:
    """Expression for a value written as exactly one non-environment marker.

    ``"${products}"`` gives ``products``; anything else gives None.
    """
    if not isinstance(value, str):
        return None
    single = SINGLE_MARKER_PATTERN.match(value.strip())
    if single is None or is_env_marker(single.group(1)):
        return None
    return marker_to_expression(single.group(1))
