"""
FlowTree - Detector, validator and compiler for extended YAML automation flows

FlowTree classifies automation documents as native or extended, reports
diagnostics in four levels, and compiles extended documents to asyncio Python.
"""

from importlib.metadata import version

from flowtree.detection import DetectionResult, detect
from flowtree.settings import FlowTreeSettings
from flowtree.transpiler import TranspileResult, transpile
from flowtree.validation import ValidationResult, validate

__version__ = version("flowtree")

__all__ = [
    "__version__",
    "FlowTreeSettings",
    "DetectionResult",
    "detect",
    "ValidationResult",
    "validate",
    "TranspileResult",
    "transpile",
]
