"""
Tests for semantic reference checks and import reference collection.
"""

from flowtree.settings import DEFAULT_SETTINGS, FlowTreeSettings
from flowtree.validation.diagnostics import DiagnosticReport
from flowtree.validation.semantic import (
    ImportGraphChecker,
    check_references,
    collect_defined_names,
    collect_import_references,
)


def undefined(document):
    report = DiagnosticReport()
    check_references(document, report)
    return [(d.message, d.location) for d in report.warnings]


def doc(*flow, **extra):
    return {"web": {}, "tasks": [{"name": "t", "flow": list(flow)}], **extra}


class TestDefinedNames:
    """Tests for the defined-name set."""

    def test_every_binding_kind_counts(self):
        """Test globals, import aliases, results and aliases are all defined."""
        document = doc(
            {"aiQuery": "rows", "name": "rows"},
            {"loop": {"type": "for", "items": "${rows}", "itemVar": "row", "indexVar": "n", "flow": []}},
            {"try": {"flow": []}, "catch": {"as": "problem", "flow": []}},
            {"external_call": {"type": "http", "url": "u", "response_as": "reply"}},
            {"data_transform": {"input": "${rows}", "operations": [], "output": "clean"}},
            {"parallel": {"merge_results": True, "tasks": [{"flow": []}]}},
            variables={"base": "x"},
            **{"import": [{"data": "users.json", "as": "users"}]},
        )
        assert collect_defined_names(document) >= {
            "rows", "row", "n", "problem", "reply", "clean", "result_0", "base", "users",
        }


class TestUndefinedReferences:
    """Tests for undefined reference warnings."""

    def test_undefined_name_warns_once_per_location(self):
        """Test repeated use at one location gives one warning."""
        warnings = undefined(doc({"aiInput": "${who} and ${who}", "locate": "box"}))
        assert warnings == [
            ("Variable '${who}' is referenced but never defined.", "/tasks[0]/flow[0]/aiInput"),
        ]

    def test_same_name_at_two_locations(self):
        """Test each location reports its own warning."""
        warnings = undefined(doc({"aiTap": "${who}"}, {"aiHover": "${who}"}))
        assert [location for _, location in warnings] == ["/tasks[0]/flow[0]/aiTap", "/tasks[0]/flow[1]/aiHover"]

    def test_env_and_defined_names_are_fine(self):
        """Test environment markers and defined names never warn."""
        document = doc({"aiInput": "${ENV.USER} ${greeting.text}", "locate": "box"}, variables={"greeting": {}})
        assert undefined(document) == []

    def test_item_and_acc_inside_transforms(self):
        """Test item and acc are implicit inside data transforms only."""
        transform = {"data_transform": {"input": "${rows}", "operations": [{"map": "${item.name}"}], "output": "o"}}
        assert undefined(doc({"variables": {"rows": []}}, transform)) == []
        assert undefined(doc({"aiTap": "${item}"}))

    def test_names_shadowing_builtins_warn(self):
        """Test author variables named like builtins still need a definition."""
        warnings = undefined(doc({"aiInput": "${id}", "locate": "box"}, {"aiTap": "${type}"}, {"aiTap": "${nope}"}))
        assert [message for message, _ in warnings] == [
            "Variable '${id}' is referenced but never defined.",
            "Variable '${type}' is referenced but never defined.",
            "Variable '${nope}' is referenced but never defined.",
        ]

    def test_builtin_calls_are_fine(self):
        """Test a builtin used as a call is not an undefined reference."""
        assert undefined(doc({"aiTap": "${len(rows)} rows"}, variables={"rows": []})) == []


class TestImportReferences:
    """Tests for import reference collection."""

    def test_collects_all_sources(self):
        """Test top-level entries, import steps and literal yaml use paths are collected."""
        document = doc(
            {"import": "data.json", "as": "d"},
            {"use": "login.yaml"},
            {"use": "${flow}"},
            {"use": "named_flow"},
            **{"import": ["common.yaml", {"data": "${dynamic}"}]},
        )
        refs = [(r.target, r.location) for r in collect_import_references(document)]
        assert refs == [
            ("common.yaml", "/import[0]"),
            ("data.json", "/tasks[0]/flow[0]/import"),
            ("login.yaml", "/tasks[0]/flow[1]/use"),
        ]


class TestImportGraph:
    """Tests for following imported files."""

    def test_default_settings(self):
        """Test a checker built without settings uses the shared defaults."""
        assert ImportGraphChecker(DiagnosticReport()).settings is DEFAULT_SETTINGS

    def test_depth_limit_stops_traversal(self, tmp_path, write_yaml):
        """Test files past the import depth ceiling are reported and not followed."""
        write_yaml("d.yaml", {"import": ["a.yaml"], "tasks": []})
        write_yaml("c.yaml", {"import": ["d.yaml"], "tasks": []})
        write_yaml("b.yaml", {"import": ["c.yaml"], "tasks": []})
        root = write_yaml("a.yaml", {"import": ["b.yaml"], "tasks": []})

        report = DiagnosticReport()
        checker = ImportGraphChecker(report, FlowTreeSettings(max_import_depth=2))
        checker.check({"import": ["b.yaml"]}, tmp_path, [root.resolve()])

        assert [(d.message, d.location) for d in report.warnings] == [
            ("Import depth limit of 2 reached at 'c.yaml'; deeper imports were not checked.", "/import[0]"),
        ]
        assert report.errors == []
        assert checker.checked == {(tmp_path / "b.yaml").resolve()}
