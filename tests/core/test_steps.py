"""
Tests for step classification and construct normalization.
"""

import pytest

from flowtree.core.constructs import (
    read_action,
    read_exception_block,
    read_external_call,
    read_import_entry,
    read_loop,
    read_parallel,
    read_transform,
)
from flowtree.core.steps import StepKind, classify_step, get_exception_blocks, nested_flows


class TestClassifyStep:
    """Tests for the tagged-union classification."""

    @pytest.mark.parametrize(
        "step,kind",
        [
            ({"variables": {"a": 1}}, StepKind.VARIABLES),
            ({"logic": {"if": "x"}}, StepKind.LOGIC),
            ({"loop": {"type": "for"}}, StepKind.LOOP),
            ({"import": "data.json"}, StepKind.IMPORT),
            ({"data_transform": {}}, StepKind.DATA_TRANSFORM),
            ({"try": {"flow": []}}, StepKind.TRY_CATCH),
            ({"external_call": {"type": "http"}}, StepKind.EXTERNAL_CALL),
            ({"parallel": {"tasks": []}}, StepKind.PARALLEL),
            ({"use": "sub.yaml"}, StepKind.USE),
            ({"aiTap": "button"}, StepKind.NATIVE),
            ({"mystery": 1}, StepKind.UNKNOWN),
        ],
    )
    def test_kinds(self, step, kind):
        """Test each distinguishing key maps to its kind."""
        assert classify_step(step) is kind

    def test_priority_order(self):
        """Test extended keys win over native keys and earlier keys win over later ones."""
        assert classify_step({"variables": {}, "logic": {}}) is StepKind.VARIABLES
        assert classify_step({"aiTap": "x", "use": "a.yaml"}) is StepKind.USE

    def test_non_mapping_is_unknown(self):
        """Test strings and lists are unknown steps."""
        assert classify_step("aiTap") is StepKind.UNKNOWN
        assert classify_step([]) is StepKind.UNKNOWN


class TestNestedFlows:
    """Tests for the uniform nested-flow accessor."""

    def test_catch_nested_inside_try(self):
        """Test catch and finally may be written inside the try mapping."""
        step = {"try": {"flow": [{"aiTap": "a"}], "catch": {"flow": []}, "finally": [{"aiTap": "z"}]}}
        suffixes = [suffix for suffix, _ in nested_flows(step)]
        assert suffixes == ["/try/flow", "/catch/flow", "/finally/flow"]

    def test_sibling_blocks_take_priority(self):
        """Test step-level catch wins over a catch inside try."""
        step = {"try": {"flow": [], "catch": {"flow": ["inner"]}}, "catch": {"flow": ["outer"]}}
        _, catch_block, _ = get_exception_blocks(step)
        assert catch_block == {"flow": ["outer"]}

    def test_parallel_branches_alias(self):
        """Test branches is accepted in place of tasks and bare lists are flows."""
        step = {"parallel": {"branches": [[{"aiTap": "a"}], {"steps": [{"aiTap": "b"}]}]}}
        assert [suffix for suffix, _ in nested_flows(step)] == [
            "/parallel/tasks[0]/flow",
            "/parallel/tasks[1]/flow",
        ]


class TestReadAction:
    """Tests for native action normalization."""

    def test_flat_form(self):
        """Test sibling keys become options and name binds the result."""
        action = read_action({"aiQuery": "titles", "name": "titles", "domIncluded": True})
        assert action.prompt == "titles"
        assert action.result_name == "titles"
        assert action.options == {"domIncluded": True}
        assert not action.nested

    def test_nested_object_form(self):
        """Test the prompt key of a nested mapping is the primary argument."""
        action = read_action({"aiInput": {"prompt": "Search box", "value": "shoes"}})
        assert action.nested
        assert action.prompt == "Search box"
        assert action.options == {"value": "shoes"}

    def test_name_only_binds_for_query_actions(self):
        """Test name stays an option for non-query actions."""
        action = read_action({"aiTap": "OK", "name": "ok"})
        assert action.result_name is None
        assert action.options == {"name": "ok"}


class TestReaders:
    """Tests for the construct readers."""

    def test_loop_aliases(self):
        """Test in / times / index aliases are resolved."""
        spec = read_loop({"loop": {"type": "for", "in": "${rows}", "as": "row", "index": "n"}})
        assert (spec.items, spec.item_var, spec.index_var) == ("${rows}", "row", "n")
        assert read_loop({"loop": {"type": "repeat", "times": 3}}).count == 3

    def test_loop_requires_mapping(self):
        """Test malformed loops read as None."""
        assert read_loop({"loop": "forever"}) is None

    def test_exception_block_defaults(self):
        """Test the catch alias defaults to e and missing blocks are None."""
        spec = read_exception_block({"try": {"flow": [{"aiTap": "a"}]}, "catch": {"flow": []}})
        assert spec.catch_alias == "e"
        assert spec.catch_flow == []
        assert spec.finally_flow is None

    def test_external_call_method_and_name(self):
        """Test verbs are upper-cased and response_as wins over name."""
        spec = read_external_call(
            {"external_call": {"type": "http", "url": "u", "method": "post", "response_as": "r", "name": "n"}}
        )
        assert spec.method == "POST"
        assert spec.result_name == "r"

    def test_transform_flat_form(self):
        """Test the flat form collects its operation parameters."""
        spec = read_transform(
            {"data_transform": {"source": "${items}", "operation": "sort", "by": "price", "order": "desc", "name": "s"}}
        )
        assert spec.output == "s"
        assert spec.operations[0].name == "sort"
        assert spec.operations[0].params == {"by": "price", "order": "desc"}

    def test_transform_chained_form(self):
        """Test chained operations keep their order and collect unknown entries."""
        spec = read_transform(
            {
                "data_transform": {
                    "input": "${items}",
                    "operations": [{"filter": "price > 1"}, {"slice": {"start": 0, "end": 2}}, {"explode": 1}],
                    "output": "cheap",
                }
            }
        )
        assert [op.name for op in spec.operations] == ["filter", "slice"]
        assert spec.operations[1].params == {"start": 0, "end": 2}
        assert spec.unknown == [{"explode": 1}]

    def test_parallel_merge_alias(self):
        """Test waitAll enables result merging."""
        spec = read_parallel({"parallel": {"waitAll": True, "tasks": [{"as": "a", "flow": []}]}})
        assert spec.merge_results
        assert spec.branches[0].output_name == "a"

    def test_import_entries(self):
        """Test import entries accept strings and flow/data mappings."""
        assert read_import_entry("common.yaml").path == "common.yaml"
        entry = read_import_entry({"data": "users.json", "as": "users"})
        assert (entry.path, entry.alias, entry.kind) == ("users.json", "users", "data")
        assert read_import_entry(42) is None
