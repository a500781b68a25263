"""
Compilation of extended documents into asyncio Python programs.
"""

from flowtree.transpiler.context import AgentCapability, GenerationContext, VariableScope
from flowtree.transpiler.templates import SUPPORTED_TEMPLATES
from flowtree.transpiler.transpiler import TranspileResult, process_flow, process_step, transpile

__all__ = [
    "AgentCapability",
    "GenerationContext",
    "VariableScope",
    "SUPPORTED_TEMPLATES",
    "TranspileResult",
    "process_flow",
    "process_step",
    "transpile",
]
