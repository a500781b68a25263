"""
Native versus extended mode detection.
"""

from flowtree.detection.detector import (
    EXTENDED_KEYWORDS,
    FEATURE_ORDER,
    DetectionResult,
    ExecutionMode,
    collect_features,
    detect,
    detect_document,
)

__all__ = [
    "EXTENDED_KEYWORDS",
    "FEATURE_ORDER",
    "DetectionResult",
    "ExecutionMode",
    "collect_features",
    "detect",
    "detect_document",
]
