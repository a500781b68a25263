"""
Mode detection for FlowTree documents.

A single scan over the parsed document decides whether it can run natively or
must be compiled first, and which categories of extended constructs it uses.
Detection never raises: unreadable, unparseable or non-mapping input degrades
to a native result with no features.
"""

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from flowtree.core.expressions import find_markers, is_env_marker
from flowtree.core.loader import load_document
from flowtree.core.steps import is_mapping
from flowtree.core.walker import iter_nodes
from flowtree.exceptions import DocumentLoadError
from flowtree.settings import DEFAULT_SETTINGS, FlowTreeSettings

logger = logging.getLogger(__name__)


class ExecutionMode(str, Enum):
    """How a document is executed."""

    NATIVE = "native"
    EXTENDED = "extended"


# Keys that only exist in the extended layer, mapped to their feature.
KEYWORD_FEATURES = {
    "variables": "variables",
    "logic": "logic",
    "loop": "loop",
    "import": "import",
    "use": "import",
    "data_transform": "data_transform",
    "try": "try_catch",
    "catch": "try_catch",
    "finally": "try_catch",
    "external_call": "external_call",
    "parallel": "parallel",
}

EXTENDED_KEYWORDS = frozenset(KEYWORD_FEATURES)

FEATURE_ORDER = (
    "logic",
    "loop",
    "variables",
    "import",
    "data_transform",
    "try_catch",
    "external_call",
    "parallel",
)


class DetectionResult(BaseModel):
    """Outcome of mode detection.

    Params:
        mode: Declared or detected execution mode
        features: Extended features in use, in canonical order
        needs_code_gen: Whether the document must be compiled before running
        warnings: Non-fatal notices, e.g. an unknown declared engine
    """

    mode: ExecutionMode = ExecutionMode.NATIVE
    features: list[str] = Field(default_factory=list)
    needs_code_gen: bool = False
    warnings: list[str] = Field(default_factory=list)


def collect_features(document: Any, max_depth: int = DEFAULT_SETTINGS.max_walk_depth) -> list[str]:
    """Features used anywhere in a parsed document, in canonical order.

    Params:
        document: Parsed YAML value
        max_depth: Nesting ceiling for the scan

    Returns:
        Canonical feature names found as keys or implied by markers
    """
    found: set[str] = set()
    for node, _ in iter_nodes(document, max_depth=max_depth):
        if is_mapping(node):
            found.update(KEYWORD_FEATURES[key] for key in node if key in KEYWORD_FEATURES)
        elif isinstance(node, str):
            markers = find_markers(node)
            if any(not is_env_marker(inner) for inner in markers):
                found.add("variables")
    return [feature for feature in FEATURE_ORDER if feature in found]


def detect_document(document: Any, settings: FlowTreeSettings = DEFAULT_SETTINGS) -> DetectionResult:
    """Detect the mode of an already-parsed document."""
    if not is_mapping(document):
        return DetectionResult()

    features = collect_features(document, settings.max_walk_depth)
    detected = ExecutionMode.EXTENDED if features else ExecutionMode.NATIVE

    declared = document.get("engine")
    if declared is not None:
        normalized = str(declared).strip().lower()
        if normalized == ExecutionMode.NATIVE.value:
            return DetectionResult(mode=ExecutionMode.NATIVE, features=features, needs_code_gen=False)
        if normalized == ExecutionMode.EXTENDED.value:
            return DetectionResult(mode=ExecutionMode.EXTENDED, features=features, needs_code_gen=True)

        warning = (
            f"Unknown engine value '{declared}'. Valid values are 'native' or 'extended'. "
            "Falling back to feature detection."
        )
        logger.warning(warning)
        return DetectionResult(
            mode=detected,
            features=features,
            needs_code_gen=bool(features),
            warnings=[warning],
        )

    logger.debug("Detected %s mode with features %s", detected.value, features)
    return DetectionResult(mode=detected, features=features, needs_code_gen=bool(features))


def detect(source: Any, *, settings: FlowTreeSettings | None = None) -> DetectionResult:
    """Classify a document as native or extended.

    Params:
        source: File path, raw YAML text or a parsed mapping
        settings: Limits to apply; defaults to DEFAULT_SETTINGS

    Returns:
        DetectionResult; a native result with no features when the input
        cannot be loaded
    """
    settings = settings or DEFAULT_SETTINGS
    if isinstance(source, str) and not source.strip():
        return DetectionResult()

    try:
        loaded = load_document(source, settings)
    except DocumentLoadError as e:
        logger.debug("Detection degraded to native: %s", e)
        return DetectionResult()

    return detect_document(loaded.document, settings)
