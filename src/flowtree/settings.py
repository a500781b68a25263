"""
Configuration for FlowTree detection, validation and code generation.

This module provides the limits and defaults shared by every component.
Settings can be created from a dict or a YAML file with partial overrides.
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import fields as dataclass_fields
from pathlib import Path
from typing import Any


@dataclass
class FlowTreeSettings:
    """Limits and defaults used across the detector, validator and transpiler.

    Only specified values override defaults.

    Examples:
        # All defaults
        settings = FlowTreeSettings()

        # Partial override from dict
        settings = FlowTreeSettings.from_dict({"max_walk_depth": 20})

        # From YAML file
        settings = FlowTreeSettings.from_yaml("flowtree.yaml")
    """

    # Input limits
    max_file_size: int = 1024 * 1024

    # Traversal limits
    max_walk_depth: int = 50
    max_import_depth: int = 10
    max_resolve_depth: int = 10

    # Loop safety thresholds
    max_repeat_count: int = 1000
    default_max_iterations: int = 100

    # Execution backend pass-through
    default_timeout_ms: int = 300_000
    report_directory: str = "./flowtree-report"

    # Code generation
    indent: str = "    "
    template: str = "playwright"
    agent_name: str = "agent"
    agent_factory: str = "agent_runtime:PlaywrightAgent"

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> FlowTreeSettings:
        """Create from dict, only overriding specified values.

        Params:
            config: Dictionary with partial overrides. Keys that do not match
                a settings field are ignored.

        Returns:
            FlowTreeSettings instance with specified overrides
        """
        valid_fields = {f.name for f in dataclass_fields(cls)}
        filtered = {k: v for k, v in config.items() if k in valid_fields}
        return cls(**filtered)

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> FlowTreeSettings:
        """Create from YAML file with partial overrides.

        Params:
            yaml_path: Path to YAML file containing configuration

        Returns:
            FlowTreeSettings instance with YAML overrides

        Example YAML:
            max_walk_depth: 20
            template: module
        """
        import yaml

        path = Path(yaml_path)
        with path.open(encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}

        return cls.from_dict(config)


DEFAULT_SETTINGS = FlowTreeSettings()
