"""
Tests for the per-construct code generators.

Each test generates one flow at the run_flow body level (four spaces) and
compares the exact lines produced.
"""

from flowtree.transpiler.transpiler import process_flow


def generate(ctx, *flow):
    return process_flow(list(flow), ctx)


class TestNativeActions:
    """Tests for native action calls on the agent."""

    def test_simple_action(self, generation_context):
        """Test a prompt-only action becomes one awaited call."""
        assert generate(generation_context, {"aiTap": "Login"}) == ["    await agent.ai_tap('Login')"]

    def test_options_become_snake_case_kwargs(self, generation_context):
        """Test sibling options are keyword arguments with markers resolved."""
        lines = generate(generation_context, {"aiInput": "Search box", "value": "${query}", "autoDismissKeyboard": False})
        assert lines == ["    await agent.ai_input('Search box', value=query, auto_dismiss_keyboard=False)"]

    def test_query_binds_result(self, generation_context):
        """Test query actions bind their name and declare it in scope."""
        lines = generate(generation_context, {"aiQuery": "product titles", "name": "titles"})
        assert lines == ["    titles = await agent.ai_query('product titles')"]
        assert "titles" in generation_context.scope

    def test_aliases(self, generation_context):
        """Test aiAction and javascript map to their capability methods."""
        lines = generate(generation_context, {"aiAction": "open the menu"}, {"javascript": "return 1", "name": "v"})
        assert lines == ["    await agent.ai_act('open the menu')", "    v = await agent.evaluate_javascript('return 1')"]

    def test_sleep_uses_asyncio(self, generation_context):
        """Test sleep milliseconds become asyncio.sleep seconds."""
        assert generate(generation_context, {"sleep": 1500}) == ["    await asyncio.sleep(1.5)"]
        assert "import asyncio" in generation_context.needs.imports

    def test_scroll_direction_shorthand(self, generation_context):
        """Test aiScroll: down is a direction rather than a prompt."""
        lines = generate(generation_context, {"aiScroll": "down", "distance": 300})
        assert lines == ["    await agent.ai_scroll(distance=300, direction='down')"]

    def test_unknown_and_invalid_steps(self, generation_context):
        """Test unrecognized steps become comments plus warnings."""
        lines = generate(generation_context, {"teleport": "home"}, "oops")
        assert lines == [
            '    # Unrecognized step: {"teleport": "home"}',
            '    # Skipped invalid step: "oops"',
        ]
        assert len(generation_context.state.warnings) == 2


class TestVariablesAndLogic:
    """Tests for bindings and conditionals."""

    def test_bindings(self, generation_context):
        """Test each variable is assigned and later references resolve."""
        lines = generate(generation_context, {"variables": {"base": "https://x", "page": "${base}/cart", "n": 3}})
        assert lines == ["    base = 'https://x'", '    page = f"{base}/cart"', "    n = 3"]

    def test_rebinding_is_plain_assignment(self, generation_context):
        """Test binding a name twice keeps one scope entry."""
        lines = generate(generation_context, {"variables": {"a": 1}}, {"variables": {"a": 2}})
        assert lines == ["    a = 1", "    a = 2"]
        assert generation_context.scope.names == {"a"}

    def test_invalid_identifier(self, generation_context):
        """Test names that are not identifiers are skipped with a warning."""
        lines = generate(generation_context, {"variables": {"my-var": 1, "class": 2}})
        assert lines == [
            "    # Skipped variable 'my-var': not a valid identifier",
            "    # Skipped variable 'class': not a valid identifier",
        ]

    def test_conditional_with_both_branches(self, generation_context):
        """Test logic becomes an ai_boolean guarded if/else."""
        lines = generate(
            generation_context,
            {"logic": {"if": "x", "then": [{"aiTap": "a"}], "else": [{"aiTap": "b"}]}},
        )
        assert lines == [
            "    if await agent.ai_boolean('x'):",
            "        await agent.ai_tap('a')",
            "    else:",
            "        await agent.ai_tap('b')",
        ]

    def test_empty_then_uses_pass(self, generation_context):
        """Test an empty branch body is pass."""
        assert generate(generation_context, {"logic": {"if": "x", "then": []}}) == [
            "    if await agent.ai_boolean('x'):",
            "        pass",
        ]


class TestLoops:
    """Tests for for, while and repeat loops."""

    def test_for_loop(self, generation_context):
        """Test items and item alias with dotted references in the body."""
        lines = generate(
            generation_context,
            {"loop": {"type": "for", "items": "${rows}", "itemVar": "row", "flow": [{"aiTap": "${row.name}"}]}},
        )
        assert lines == ["    for row in rows:", "        await agent.ai_tap(row['name'])"]

    def test_for_loop_with_index(self, generation_context):
        """Test an index alias uses enumerate."""
        lines = generate(
            generation_context,
            {"loop": {"type": "for", "items": "${rows}", "indexVar": "i", "flow": []}},
        )
        assert lines == ["    for i, item in enumerate(rows):", "        pass"]

    def test_sibling_while_loops_get_distinct_counters(self, generation_context):
        """Test two unnamed while loops allocate two counters."""
        loop = {"loop": {"type": "while", "condition": "more items", "flow": [{"aiTap": "next"}]}}
        lines = generate(generation_context, loop, loop)
        assert lines == [
            "    _while_iter = 0",
            "    while _while_iter < 100 and await agent.ai_boolean('more items'):",
            "        await agent.ai_tap('next')",
            "        _while_iter += 1",
            "    _while_iter_1 = 0",
            "    while _while_iter_1 < 100 and await agent.ai_boolean('more items'):",
            "        await agent.ai_tap('next')",
            "        _while_iter_1 += 1",
        ]

    def test_while_with_counter_and_bound(self, generation_context):
        """Test counterVar and maxIterations are honoured."""
        lines = generate(
            generation_context,
            {"loop": {"type": "while", "condition": "c", "maxIterations": 5, "counterVar": "tries", "flow": []}},
        )
        assert lines[:2] == ["    tries = 0", "    while tries < 5 and await agent.ai_boolean('c'):"]

    def test_repeat_count_zero(self, generation_context):
        """Test a zero count still emits a bound-0 loop."""
        lines = generate(generation_context, {"loop": {"type": "repeat", "count": 0, "flow": [{"aiTap": "a"}]}})
        assert lines == ["    for i in range(0):", "        await agent.ai_tap('a')"]

    def test_repeat_with_marker_count_and_index(self, generation_context):
        """Test a marker count is converted with int() and indexVar names the counter."""
        lines = generate(generation_context, {"loop": {"type": "repeat", "times": "${n}", "indexVar": "k", "flow": []}})
        assert lines[0] == "    for k in range(int(n)):"

    def test_loop_missing_field(self, generation_context):
        """Test a loop without its type-specific field is skipped."""
        lines = generate(generation_context, {"loop": {"type": "for", "flow": []}})
        assert lines[0].startswith("    # Loop of type 'for' without 'items'")


class TestExceptionBlocks:
    """Tests for try/except/finally."""

    def test_try_catch_finally(self, generation_context):
        """Test all three blocks with a custom alias."""
        lines = generate(
            generation_context,
            {
                "try": {"flow": [{"aiTap": "a"}]},
                "catch": {"as": "err", "flow": [{"aiTap": "b"}]},
                "finally": {"flow": [{"aiTap": "c"}]},
            },
        )
        assert lines == [
            "    try:",
            "        await agent.ai_tap('a')",
            "    except Exception as err:",
            "        await agent.ai_tap('b')",
            "    finally:",
            "        await agent.ai_tap('c')",
        ]

    def test_bare_try_gets_noop_handler(self, generation_context):
        """Test a try without handlers still compiles, with a warning."""
        lines = generate(generation_context, {"try": {"flow": [{"aiTap": "a"}]}})
        assert lines == ["    try:", "        await agent.ai_tap('a')", "    except Exception:", "        pass"]
        assert generation_context.state.warnings


class TestExternalCalls:
    """Tests for http and shell calls."""

    def test_http_call(self, generation_context):
        """Test http calls go through the request helper."""
        lines = generate(
            generation_context,
            {
                "external_call": {
                    "type": "http",
                    "url": "https://api.example.com/items",
                    "method": "post",
                    "headers": {"Authorization": "Bearer ${ENV.TOKEN}"},
                    "body": {"q": "${query}"},
                    "response_as": "reply",
                }
            },
        )
        assert lines == [
            "    reply = await _http_request('POST', 'https://api.example.com/items', "
            "headers={'Authorization': f\"Bearer {os.environ.get('TOKEN', '')}\"}, body={'q': query})"
        ]
        assert "_http_request" in generation_context.needs.helpers
        assert "import os" in generation_context.needs.imports

    def test_shell_call_interpolates_markers(self, generation_context):
        """Test markers in a shell command become an f-string."""
        lines = generate(generation_context, {"external_call": {"type": "shell", "command": "echo ${name}"}})
        assert lines == [
            '    response = subprocess.run(f"echo {name}", shell=True, check=True, capture_output=True, text=True).stdout'
        ]
        assert "import subprocess" in generation_context.needs.imports

    def test_http_without_url_is_skipped(self, generation_context):
        """Test an incomplete call becomes a comment."""
        lines = generate(generation_context, {"external_call": {"type": "http"}})
        assert lines[0].startswith("    # Invalid external_call step")


class TestDataTransforms:
    """Tests for data transform operations."""

    def test_filter_then_sort_desc(self, generation_context):
        """Test chained operations read the source first and the output after."""
        lines = generate(
            generation_context,
            {
                "data_transform": {
                    "input": "${products}",
                    "operations": [{"filter": "price > 100"}, {"sort": "price desc"}],
                    "output": "expensive",
                }
            },
        )
        assert lines == [
            "    expensive = [item for item in products if item['price'] > 100]",
            "    expensive = sorted(expensive, key=lambda item: _sort_key(item, 'price'), reverse=True)",
        ]

    def test_filter_reads_every_bare_field(self, generation_context):
        """Test each bare field of a compound filter is read from the item."""
        lines = generate(
            generation_context,
            {"data_transform": {"input": "${p}", "operations": [{"filter": "p > 0 && p < 5"}], "output": "o"}},
        )
        assert lines == ["    o = [item for item in p if item['p'] > 0 and item['p'] < 5]"]

    def test_filter_keeps_bound_names_calls_and_literals(self, generation_context):
        """Test bound variables, calls, keywords and string literals are left alone."""
        process_flow([{"variables": {"limit": 3}}], generation_context)
        lines = generate(
            generation_context,
            {
                "data_transform": {
                    "input": "${rows}",
                    "operations": [{"filter": "len(tags) > limit || status == 'open' && note is not null"}],
                    "output": "o",
                }
            },
        )
        assert lines == [
            "    o = [item for item in rows if len(item['tags']) > limit or item['status'] == 'open' "
            "and item['note'] is not None]"
        ]

    def test_sort_direction_symmetry(self, generation_context):
        """Test ascending and descending sorts differ only by reverse=True."""
        ascending = generate(
            generation_context,
            {"data_transform": {"source": "${p}", "operation": "sort", "by": "price", "name": "a"}},
        )
        descending = generate(
            generation_context,
            {"data_transform": {"source": "${p}", "operation": "sort", "by": "price", "order": "desc", "name": "d"}},
        )
        assert ascending == ["    a = sorted(p, key=lambda item: _sort_key(item, 'price'))"]
        assert descending == ["    d = sorted(p, key=lambda item: _sort_key(item, 'price'), reverse=True)"]

    def test_operations(self, generation_context):
        """Test the remaining operations each produce their expression."""
        lines = generate(
            generation_context,
            {
                "data_transform": {
                    "input": "${p}",
                    "operations": [
                        {"map": {"template": {"title": "${item.name}"}}},
                        {"reduce": "acc + item.price", "initial": 0},
                        {"slice": {"start": 0, "end": 5}},
                        {"unique": "id"},
                        {"distinct": True},
                        {"flatten": 2},
                        {"groupBy": "category"},
                    ],
                    "output": "out",
                }
            },
        )
        assert lines == [
            "    out = [{'title': item['name']} for item in p]",
            "    out = functools.reduce(lambda acc, item: acc + item['price'], out, 0)",
            "    out = out[0:5]",
            "    out = _unique(out, 'id')",
            "    out = _unique(out)",
            "    out = _flatten(out, 2)",
            "    out = _group_by(out, 'category')",
        ]
        assert {"_unique", "_flatten", "_group_by"} <= generation_context.needs.helpers
        assert "import functools" in generation_context.needs.imports

    def test_unknown_operation_is_commented(self, generation_context):
        """Test unrecognized operations are skipped with a comment."""
        lines = generate(
            generation_context,
            {"data_transform": {"input": "${p}", "operations": [{"zip": 1}], "output": "o"}},
        )
        assert lines == ['    # Skipped unrecognized operation: {"zip": 1}', "    o = list(p)"]


class TestImportsAndUse:
    """Tests for import binding and sub-flow invocation."""

    def test_import_by_extension(self, generation_context):
        """Test json, yaml and py imports bind data, a reference and a module."""
        lines = generate(
            generation_context,
            {"import": "data/users.json", "as": "users"},
            {"import": "login.yaml", "as": "login"},
            {"import": "helpers.py", "as": "helpers"},
        )
        assert lines == [
            "    users = json.loads(Path('data/users.json').read_text(encoding='utf-8'))",
            "    login = 'login.yaml'",
            "    helpers = _load_module('helpers.py')",
        ]

    def test_yaml_import_without_alias_runs(self, generation_context):
        """Test a yaml import without alias runs the sub-flow immediately."""
        lines = generate(generation_context, {"import": "setup.yaml", "with": {"user": "bob"}})
        assert lines == ["    await agent.run_yaml('setup.yaml', {'user': 'bob'})"]

    def test_unknown_extension_warns(self, generation_context):
        """Test other extensions bind the path with a warning."""
        assert generate(generation_context, {"import": "notes.txt", "as": "notes"}) == ["    notes = 'notes.txt'"]
        assert generation_context.state.warnings

    def test_use_references(self, generation_context):
        """Test use resolves markers, names in scope and literal paths."""
        lines = generate(
            generation_context,
            {"import": "login.yaml", "as": "login"},
            {"use": "${login}"},
            {"use": "login", "with": {"user": "${name}"}},
            {"use": "flows/checkout.yaml"},
        )
        assert lines[1:] == [
            "    await agent.run_yaml(login)",
            "    await agent.run_yaml(login, {'user': name})",
            "    await agent.run_yaml('flows/checkout.yaml')",
        ]
