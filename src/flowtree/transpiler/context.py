"""
Shared state for one code generation pass.

A single ``GenerationState`` is created per ``transpile`` call and threaded
through every generator by way of ``GenerationContext`` objects, which add the
current indentation level. The state holds the variable scope, the runtime
needs of the generated program and the accumulated warnings; it is mutated by
exactly one pass and discarded afterwards.
"""

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any

from attrs import Factory, frozen
from inflection import underscore

from flowtree.core.expressions import uses_env, value_to_code
from flowtree.core.types import Flow
from flowtree.settings import DEFAULT_SETTINGS, FlowTreeSettings


@frozen
class AgentCapability:
    """The object every generated leaf action is awaited on.

    Action keywords map to snake_case method names with
    ``inflection.underscore`` (``aiTap`` becomes ``ai_tap``) unless an alias
    overrides them.

    Params:
        name: Variable the agent is bound to in the generated program
        aliases: Keyword to method name overrides
        boolean_method: Method evaluating a natural-language condition
        run_flow_method: Method running a YAML sub-flow
    """

    name: str = "agent"
    aliases: dict[str, str] = Factory(
        lambda: {
            "ai": "ai_act",
            "aiAction": "ai_act",
            "javascript": "evaluate_javascript",
        }
    )
    boolean_method: str = "ai_boolean"
    run_flow_method: str = "run_yaml"

    def method_for(self, keyword: str) -> str:
        return self.aliases.get(keyword) or underscore(keyword)

    def call(self, method: str, arguments: list[str]) -> str:
        """Awaited method call expression on the agent."""
        return f"await {self.name}.{method}({', '.join(arguments)})"

    def check(self, condition_code: str) -> str:
        return self.call(self.boolean_method, [condition_code])

    def run_flow(self, reference_code: str, params_code: str | None = None) -> str:
        arguments = [reference_code] if params_code is None else [reference_code, params_code]
        return self.call(self.run_flow_method, arguments)


class VariableScope:
    """Names bound so far in the ``run_flow`` function scope.

    Every sequential binding is visible to later siblings, and concurrent
    branches assign into hoisted names of the enclosing function. Names bound
    only inside a branch coroutine (loop and catch aliases) are local to it
    and are dropped again with ``restore``.
    """

    def __init__(self, names: set[str] | None = None):
        self.names: set[str] = set(names or ())

    def __contains__(self, name: object) -> bool:
        return name in self.names

    def snapshot(self) -> frozenset[str]:
        return frozenset(self.names)

    def restore(self, names: frozenset[str]) -> None:
        self.names = set(names)

    def declare(self, name: str) -> bool:
        """Record a binding; returns False when the name was already bound."""
        if name in self.names:
            return False
        self.names.add(name)
        return True

    def unique_name(self, base: str) -> str:
        """Declare and return ``base``, or ``base_1``, ``base_2``... when taken."""
        candidate = base
        suffix = 0
        while candidate in self.names:
            suffix += 1
            candidate = f"{base}_{suffix}"
        self.names.add(candidate)
        return candidate


@dataclass
class RuntimeNeeds:
    """Import statements and helper functions the generated program needs.

    Params:
        imports: Import statements, e.g. ``import json``
        helpers: Names of helper functions to render
    """

    imports: set[str] = field(default_factory=set)
    helpers: set[str] = field(default_factory=set)

    def require_import(self, statement: str) -> None:
        self.imports.add(statement)

    def require_helper(self, name: str) -> None:
        self.helpers.add(name)


@dataclass
class GenerationState:
    """Mutable accumulators for one generation pass."""

    scope: VariableScope = field(default_factory=VariableScope)
    needs: RuntimeNeeds = field(default_factory=RuntimeNeeds)
    warnings: list[str] = field(default_factory=list)
    parallel_groups: int = 0

    def next_parallel_group(self) -> int:
        self.parallel_groups += 1
        return self.parallel_groups


FlowGenerator = Callable[[Flow, "GenerationContext"], list[str]]


@dataclass
class GenerationContext:
    """Position of a generator in the output plus the shared state.

    Params:
        state: Accumulators shared by the whole pass
        agent: Capability leaf actions are generated against
        settings: Indentation and limits
        generate_flow: Callback generating a nested flow
        level: Current indentation level
    """

    state: GenerationState
    agent: AgentCapability
    generate_flow: FlowGenerator
    settings: FlowTreeSettings = field(default_factory=lambda: DEFAULT_SETTINGS)
    level: int = 0

    @property
    def scope(self) -> VariableScope:
        return self.state.scope

    @property
    def needs(self) -> RuntimeNeeds:
        return self.state.needs

    def indent(self, text: str = "") -> str:
        return f"{self.settings.indent * self.level}{text}"

    def deeper(self, levels: int = 1) -> "GenerationContext":
        return replace(self, level=self.level + levels)

    def warn(self, message: str) -> None:
        self.state.warnings.append(message)

    def body(self, flow: Flow | None) -> list[str]:
        """Lines of a nested block one level deeper, ``pass`` when empty."""
        inner = self.deeper()
        lines = inner.generate_flow(flow or [], inner)
        return lines or [inner.indent("pass")]

    def value_code(self, value: Any) -> str:
        """Python source for any YAML value, noting environment lookups."""
        if uses_env(value):
            self.needs.require_import("import os")
        return value_to_code(value, max_depth=self.settings.max_resolve_depth)
