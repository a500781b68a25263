"""
Core FlowTree document model.

This package provides document loading, step classification, construct
normalization, expression resolution and the generic flow-tree traversal
shared by detection, validation and code generation.
"""

from flowtree.core.bindings import collect_bound_names, step_bindings
from flowtree.core.expressions import (
    ResolvedKind,
    ResolvedValue,
    has_marker,
    resolve_template,
    value_to_code,
)
from flowtree.core.loader import LoadedDocument, load_document
from flowtree.core.steps import StepKind, classify_step, nested_flows
from flowtree.core.walker import iter_nodes, walk_all, walk_flow

__all__ = [
    "LoadedDocument",
    "load_document",
    "StepKind",
    "classify_step",
    "nested_flows",
    "walk_flow",
    "walk_all",
    "iter_nodes",
    "ResolvedKind",
    "ResolvedValue",
    "has_marker",
    "resolve_template",
    "value_to_code",
    "step_bindings",
    "collect_bound_names",
]
