"""
Boilerplate templates for generated programs.

Two templates are available:

- ``playwright``: a runnable script that launches Chromium through
  ``playwright.async_api``, builds the agent from the configured factory and
  calls ``run_flow``
- ``module``: only ``run_flow`` and its helpers, for callers that inject
  their own agent

Helper functions are rendered only when generation requested them, together
with the imports they depend on.
"""

from dataclasses import dataclass, field
from string import Template
from typing import Any

from flowtree.core.expressions import quote
from flowtree.core.steps import PLATFORM_KEYS, is_mapping
from flowtree.exceptions import TranspileError, UnsupportedTemplateError
from flowtree.transpiler.context import AgentCapability, RuntimeNeeds

SUPPORTED_TEMPLATES = ("playwright", "module")

THIRD_PARTY_MODULES = frozenset({"playwright", "yaml"})


@dataclass(frozen=True)
class Helper:
    """A helper function of the generated program.

    Params:
        source: Function definition
        imports: Import statements the function needs
    """

    source: str
    imports: tuple[str, ...] = field(default_factory=tuple)


HELPERS: dict[str, Helper] = {
    "logger": Helper(
        source="logger = logging.getLogger(__name__)",
        imports=("import logging",),
    ),
    "_gather_all": Helper(
        source='''async def _gather_all(*branches):
    """Run branches concurrently, wait for all, then re-raise the first failure."""
    results = await asyncio.gather(*branches, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results''',
        imports=("import asyncio",),
    ),
    "_http_request": Helper(
        source='''async def _http_request(method, url, headers=None, body=None):
    """Send an HTTP request in a worker thread; JSON responses are decoded."""

    def send():
        request_headers = dict(headers or {})
        data = None
        if isinstance(body, (dict, list)):
            data = json.dumps(body).encode("utf-8")
            request_headers.setdefault("Content-Type", "application/json")
        elif body is not None:
            data = str(body).encode("utf-8")
        request = urllib.request.Request(url, data=data, headers=request_headers, method=method)
        with urllib.request.urlopen(request) as response:
            text = response.read().decode("utf-8")
            if "json" in response.headers.get("Content-Type", ""):
                return json.loads(text)
            return text

    return await asyncio.to_thread(send)''',
        imports=("import asyncio", "import json", "import urllib.request"),
    ),
    "_sort_key": Helper(
        source='''def _sort_key(item, field):
    """Numbers sort numerically, then strings lexicographically, then missing values."""
    value = item.get(field) if isinstance(item, dict) and field is not None else item
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value, "")
    if value is None:
        return (2, 0, "")
    return (1, 0, str(value))''',
    ),
    "_unique": Helper(
        source='''def _unique(data, key=None):
    """Drop duplicates, keeping the first occurrence."""
    if key is None:
        kept = []
        for value in data:
            if value not in kept:
                kept.append(value)
        return kept
    by_key = {}
    for item in data:
        by_key.setdefault(item.get(key) if isinstance(item, dict) else item, item)
    return list(by_key.values())''',
    ),
    "_flatten": Helper(
        source='''def _flatten(data, depth=1):
    flat = []
    for value in data:
        if isinstance(value, list) and depth > 0:
            flat.extend(_flatten(value, depth - 1))
        else:
            flat.append(value)
    return flat''',
    ),
    "_group_by": Helper(
        source='''def _group_by(data, field):
    groups = {}
    for item in data:
        groups.setdefault(item.get(field) if isinstance(item, dict) else None, []).append(item)
    return groups''',
    ),
    "_load_module": Helper(
        source='''def _load_module(path):
    spec = importlib.util.spec_from_file_location(Path(path).stem, path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module''',
        imports=("import importlib.util", "from pathlib import Path"),
    ),
    "_write_output": Helper(
        source='''def _write_output(path, data):
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(data, indent=2, ensure_ascii=False, default=str), encoding="utf-8")''',
        imports=("import json", "from pathlib import Path"),
    ),
}

# Order helpers are rendered in.
HELPER_ORDER = tuple(HELPERS)

MODULE_TEMPLATE = Template(
    '''"""
Automation flow generated by flowtree from $source.
"""$preamble


async def run_flow($agent):
$body
'''
)

PLAYWRIGHT_TEMPLATE = Template(
    '''"""
Automation script generated by flowtree from $source.
"""$preamble


async def run_flow($agent):
$body


async def main():
    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=$headless, args=$chrome_args)
        page = await browser.new_page(viewport={"width": $viewport_width, "height": $viewport_height})
        try:
$goto            $agent = $agent_class(page)
            await run_flow($agent)
        finally:
            await browser.close()


if __name__ == "__main__":
    asyncio.run(main())
'''
)


@dataclass
class PlatformConfig:
    """Browser launch settings taken from the document's platform block.

    Params:
        platform: Platform key the settings came from
        url: Page opened before the flow runs
        headless: Launch Chromium without a window
        viewport_width: Viewport width in pixels
        viewport_height: Viewport height in pixels
        chrome_args: Extra Chromium command-line arguments
    """

    platform: str = "web"
    url: str = ""
    headless: bool = False
    viewport_width: int = 1280
    viewport_height: int = 720
    chrome_args: list[str] = field(default_factory=list)


def _pixels(value: Any, default: int) -> int:
    try:
        return int(value) if value else default
    except (TypeError, ValueError):
        return default


def extract_platform_config(document: dict) -> PlatformConfig:
    """Read the launch settings of the first platform block present."""
    for platform in PLATFORM_KEYS:
        if platform not in document:
            continue
        block = document[platform]
        config = PlatformConfig(platform=platform)
        if not is_mapping(block):
            return config
        config.url = str(block.get("url") or "")
        config.headless = block.get("headless") is True
        config.viewport_width = _pixels(block.get("viewportWidth") or block.get("viewport_width"), 1280)
        config.viewport_height = _pixels(block.get("viewportHeight") or block.get("viewport_height"), 720)
        args = block.get("chromeArgs") or block.get("chrome_args") or []
        config.chrome_args = [str(arg) for arg in (args if isinstance(args, list) else [args])]
        return config
    return PlatformConfig()


def parse_agent_factory(factory: str) -> tuple[str, str]:
    """Split ``module:Name`` into its parts.

    Raises:
        TranspileError: When the factory reference is malformed
    """
    module, _, name = factory.partition(":")
    if not module or not name:
        raise TranspileError(f"agent factory '{factory}' must look like 'module:ClassName'")
    return module, name


def _import_block(statements: set[str], third_party_modules: frozenset[str]) -> str:
    def top_module(statement: str) -> str:
        return statement.split()[1].split(".")[0]

    def order(statement: str) -> tuple[bool, str]:
        return statement.startswith("from "), top_module(statement)

    standard = sorted((s for s in statements if top_module(s) not in third_party_modules), key=order)
    third_party = sorted((s for s in statements if top_module(s) in third_party_modules), key=order)
    return "\n\n".join("\n".join(group) for group in (standard, third_party) if group)


def render_preamble(
    needs: RuntimeNeeds,
    extra_imports: tuple[str, ...] = (),
    third_party_modules: frozenset[str] = THIRD_PARTY_MODULES,
) -> str:
    """Imports and helper definitions requested during generation."""
    helpers = [HELPERS[name] for name in HELPER_ORDER if name in needs.helpers]
    statements = set(needs.imports) | set(extra_imports)
    for helper in helpers:
        statements.update(helper.imports)

    sections = []
    if statements:
        sections.append(_import_block(statements, third_party_modules))
    sections.extend(helper.source for helper in helpers)
    if not sections:
        return ""
    return "\n\n" + "\n\n\n".join(sections)


def render_program(
    template: str,
    *,
    body: list[str],
    needs: RuntimeNeeds,
    agent: AgentCapability,
    platform: PlatformConfig,
    agent_factory: str,
    source: str,
) -> str:
    """Assemble a complete program around the generated ``run_flow`` body.

    Params:
        template: Template selector, ``playwright`` or ``module``
        body: Indented lines of the ``run_flow`` body
        needs: Imports and helpers requested during generation
        agent: Capability the body was generated against
        platform: Browser launch settings (playwright template only)
        agent_factory: ``module:ClassName`` building the agent from a page
        source: Description of the input document

    Returns:
        Program source

    Raises:
        UnsupportedTemplateError: For an unknown template selector
    """
    if template not in SUPPORTED_TEMPLATES:
        raise UnsupportedTemplateError(template, SUPPORTED_TEMPLATES)

    values: dict[str, Any] = {
        "source": source,
        "agent": agent.name,
        "body": "\n".join(body),
    }
    if template == "module":
        values["preamble"] = render_preamble(needs)
        return MODULE_TEMPLATE.substitute(values)

    module, class_name = parse_agent_factory(agent_factory)
    launcher_imports = (
        "import asyncio",
        "from playwright.async_api import async_playwright",
        f"from {module} import {class_name}",
    )
    values.update(
        preamble=render_preamble(needs, launcher_imports, THIRD_PARTY_MODULES | {module.split(".")[0]}),
        headless=repr(platform.headless),
        chrome_args=repr(platform.chrome_args),
        viewport_width=platform.viewport_width,
        viewport_height=platform.viewport_height,
        goto=f"            await page.goto({quote(platform.url)})\n" if platform.url else "",
        agent_class=class_name,
    )
    return PLAYWRIGHT_TEMPLATE.substitute(values)
