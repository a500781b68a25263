"""
Tests for the generation context, agent capability and program templates.
"""

import pytest

from flowtree.exceptions import UnsupportedTemplateError
from flowtree.settings import DEFAULT_SETTINGS
from flowtree.transpiler.context import AgentCapability, GenerationContext, GenerationState, RuntimeNeeds, VariableScope
from flowtree.transpiler.templates import HELPERS, extract_platform_config, render_preamble, render_program
from flowtree.transpiler.transpiler import process_flow


class TestAgentCapability:
    """Tests for keyword to method mapping."""

    def test_camel_case_to_snake_case(self):
        """Test action keywords map through inflection."""
        agent = AgentCapability()
        assert agent.method_for("aiTap") == "ai_tap"
        assert agent.method_for("aiKeyboardPress") == "ai_keyboard_press"
        assert agent.method_for("logScreenshot") == "log_screenshot"

    def test_aliases_override(self):
        """Test configured aliases win over the derived name."""
        agent = AgentCapability(aliases={"aiTap": "click"})
        assert agent.method_for("aiTap") == "click"

    def test_call_shapes(self):
        """Test awaited call, condition check and sub-flow invocation."""
        agent = AgentCapability(name="bot")
        assert agent.call("ai_tap", ["'x'"]) == "await bot.ai_tap('x')"
        assert agent.check("'ready'") == "await bot.ai_boolean('ready')"
        assert agent.run_flow("sub", "{'a': 1}") == "await bot.run_yaml(sub, {'a': 1})"

    def test_capability_is_immutable(self):
        """Test the capability cannot be modified after creation."""
        agent = AgentCapability()
        with pytest.raises(AttributeError):
            agent.name = "other"


class TestVariableScope:
    """Tests for the scope set."""

    def test_declare_reports_new_names(self):
        """Test declare returns False for names already bound."""
        scope = VariableScope()
        assert scope.declare("a") is True
        assert scope.declare("a") is False
        assert "a" in scope

    def test_unique_name(self):
        """Test synthetic names get numeric suffixes when taken."""
        scope = VariableScope({"_while_iter"})
        assert scope.unique_name("_while_iter") == "_while_iter_1"
        assert scope.unique_name("_while_iter") == "_while_iter_2"

    def test_restore_drops_later_bindings(self):
        """Test restoring a snapshot forgets names bound after it."""
        scope = VariableScope({"a"})
        saved = scope.snapshot()
        scope.declare("b")
        scope.restore(saved)
        assert "a" in scope
        assert "b" not in scope


class TestGenerationContext:
    """Tests for context defaults and nesting."""

    def test_default_settings(self):
        """Test a context built without settings uses the shared defaults."""
        ctx = GenerationContext(state=GenerationState(), agent=AgentCapability(), generate_flow=process_flow)
        assert ctx.settings is DEFAULT_SETTINGS
        assert ctx.level == 0

    def test_deeper_shares_state(self):
        """Test a nested context indents further and shares the same state."""
        ctx = GenerationContext(state=GenerationState(), agent=AgentCapability(), generate_flow=process_flow)
        inner = ctx.deeper(2)
        assert inner.indent("x") == "        x"
        assert inner.state is ctx.state
        assert inner.settings is ctx.settings


class TestTemplates:
    """Tests for preamble rendering and platform config."""

    def test_preamble_groups_imports(self):
        """Test standard imports come before third-party ones, helpers after."""
        needs = RuntimeNeeds(imports={"import yaml", "from pathlib import Path", "import json"}, helpers={"_flatten"})
        preamble = render_preamble(needs)
        assert preamble.startswith("\n\nimport json\nfrom pathlib import Path\n\nimport yaml\n\n\ndef _flatten(")

    def test_empty_preamble(self):
        """Test no needs render nothing."""
        assert render_preamble(RuntimeNeeds()) == ""

    def test_platform_config(self):
        """Test launch settings are read from the platform block."""
        config = extract_platform_config(
            {"web": {"url": "https://x", "viewportWidth": "1024", "chromeArgs": "--incognito"}}
        )
        assert (config.url, config.viewport_width, config.viewport_height) == ("https://x", 1024, 720)
        assert config.chrome_args == ["--incognito"]
        assert extract_platform_config({}).platform == "web"

    def test_unknown_template(self):
        """Test rendering an unknown template raises."""
        with pytest.raises(UnsupportedTemplateError):
            render_program(
                "cypress",
                body=[],
                needs=RuntimeNeeds(),
                agent=AgentCapability(),
                platform=extract_platform_config({}),
                agent_factory="a:B",
                source="<dict>",
            )


class TestHelpers:
    """Tests that run helper sources of the generated program."""

    def test_sort_key_orders_numbers_then_strings_then_missing(self):
        """Test numbers sort numerically and strings lexicographically."""
        namespace = {}
        exec(HELPERS["_sort_key"].source, namespace)
        sort_key = namespace["_sort_key"]
        rows = [{"v": "b"}, {"v": 10}, {}, {"v": "a"}, {"v": 2}, {"v": "B"}, {"v": 2.5}]
        ordered = sorted(rows, key=lambda item: sort_key(item, "v"))
        assert [row.get("v") for row in ordered] == [2, 2.5, 10, "B", "a", "b", None]

    def test_sort_key_on_plain_values(self):
        """Test values without a field sort by themselves."""
        namespace = {}
        exec(HELPERS["_sort_key"].source, namespace)
        assert sorted(["10", 9, "9"], key=lambda value: namespace["_sort_key"](value, None)) == [9, "10", "9"]
