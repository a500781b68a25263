"""
Core type definitions for FlowTree.

This module contains the type aliases used throughout FlowTree for the parsed
document tree. Documents are plain YAML values (mappings, lists and scalars)
and are never mutated after parsing.
"""

from collections.abc import Callable
from typing import Any

YamlValue = str | int | float | bool | list | dict | None

Document = dict[str, Any]

Step = dict[str, Any]

Flow = list[Any]

StepVisitor = Callable[[Step, str], bool | None]

DepthLimitCallback = Callable[[str, int], None]
