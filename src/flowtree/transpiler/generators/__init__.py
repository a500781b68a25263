"""
Per-construct code generators.

Every generator takes a step and a GenerationContext and returns the lines of
Python source for that step, already indented for the context's level.
"""

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

__all__ = [
    "data_transform",
    "external_call",
    "imports",
    "logic",
    "loop",
    "native",
    "parallel",
    "try_catch",
    "variables",
]
