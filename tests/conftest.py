"""
Shared test fixtures and utilities for the flowtree test suite.
"""

import pytest
import yaml

from flowtree.settings import FlowTreeSettings
from flowtree.transpiler.context import AgentCapability, GenerationContext, GenerationState
from flowtree.transpiler.transpiler import process_flow


def _make_document(*flow, **extra):
    document = {"web": {"url": "https://example.com"}, "tasks": [{"name": "main", "flow": list(flow)}]}
    document.update(extra)
    return document


@pytest.fixture
def make_document():
    """Build a single-task web document around the given steps."""
    return _make_document


@pytest.fixture
def settings():
    return FlowTreeSettings()


@pytest.fixture
def generation_context(settings):
    """Context at run_flow body level with a fresh state.

    Usage:
        def test_something(generation_context):
            lines = process_flow([{"aiTap": "OK"}], generation_context)
    """
    return GenerationContext(
        state=GenerationState(),
        agent=AgentCapability(),
        generate_flow=process_flow,
        settings=settings,
        level=1,
    )


@pytest.fixture
def write_yaml(tmp_path):
    """Write a mapping as YAML under tmp_path and return the file path."""

    def write(name, document):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(document, sort_keys=False), encoding="utf-8")
        return path

    return write
