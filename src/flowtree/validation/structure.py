"""
Structure-level validation: the document skeleton.

Checks the root mapping, the platform configuration block, the task list and
each task's name and flow. Problems here are structure errors; unknown
configuration fields, duplicate task names and incomplete cache settings are
warnings.
"""

from typing import Any

from flowtree.core.steps import PLATFORM_KEYS, get_task_flow, is_mapping
from flowtree.validation.diagnostics import DiagnosticKind, DiagnosticReport

ENGINE_VALUES = ("native", "extended")

# Known configuration fields per platform block.
PLATFORM_FIELDS: dict[str, frozenset[str]] = {
    "web": frozenset(
        {
            "url",
            "serve",
            "userAgent",
            "viewportWidth",
            "viewportHeight",
            "viewport_width",
            "viewport_height",
            "deviceScaleFactor",
            "cookie",
            "output",
            "unstableLogContent",
            "forceSameTabNavigation",
            "bridgeMode",
            "closeNewTabsAfterDisconnect",
            "acceptInsecureCerts",
            "waitForNetworkIdle",
            "chromeArgs",
            "chrome_args",
            "headless",
            "aiActionContext",
        }
    ),
    "android": frozenset(
        {
            "deviceId",
            "launch",
            "output",
            "unstableLogContent",
            "aiActionContext",
            "androidAdbPath",
            "remoteAdbHost",
            "remoteAdbPort",
            "imeStrategy",
            "displayId",
            "autoDismissKeyboard",
            "keyboardDismissStrategy",
            "screenshotResizeScale",
            "alwaysRefreshScreenInfo",
        }
    ),
    "ios": frozenset(
        {
            "wdaPort",
            "wdaHost",
            "launch",
            "output",
            "unstableLogContent",
            "aiActionContext",
            "autoDismissKeyboard",
        }
    ),
    "computer": frozenset(
        {
            "displayId",
            "launch",
            "output",
            "unstableLogContent",
            "aiActionContext",
            "headless",
        }
    ),
}


def check_platform(document: dict, report: DiagnosticReport) -> None:
    """Exactly one platform block, with only known fields."""
    platforms = [key for key in PLATFORM_KEYS if key in document]
    if not platforms:
        report.error(
            DiagnosticKind.STRUCTURE,
            "Document must contain a platform config key at root level: " + ", ".join(PLATFORM_KEYS) + ".",
            "/",
        )
        return
    if len(platforms) > 1:
        report.error(
            DiagnosticKind.STRUCTURE,
            f"Document must contain exactly one platform config key, found: {', '.join(platforms)}.",
            "/",
        )

    for platform in platforms:
        config = document[platform]
        if config is None:
            continue
        if not is_mapping(config):
            report.error(DiagnosticKind.STRUCTURE, f"'{platform}' config must be a mapping.", f"/{platform}")
            continue
        for key in config:
            if key not in PLATFORM_FIELDS[platform]:
                report.warning(
                    DiagnosticKind.STRUCTURE,
                    f"Unknown {platform} config field '{key}'.",
                    f"/{platform}/{key}",
                )


def check_agent(document: dict, report: DiagnosticReport) -> None:
    agent = document.get("agent")
    if agent is None:
        return
    if not is_mapping(agent):
        report.error(DiagnosticKind.STRUCTURE, "'agent' must be a mapping.", "/agent")
        return
    cache = agent.get("cache")
    if is_mapping(cache) and cache.get("strategy") is not None and not cache.get("id"):
        report.warning(
            DiagnosticKind.STRUCTURE,
            "agent.cache.strategy is set but agent.cache \"id\" is missing; caching is disabled without an id.",
            "/agent/cache",
        )


def check_tasks(document: dict, report: DiagnosticReport) -> None:
    tasks = document.get("tasks")
    if tasks is None:
        report.error(DiagnosticKind.STRUCTURE, "Document must contain a 'tasks' list at root level.", "/tasks")
        return
    if not isinstance(tasks, list):
        report.error(DiagnosticKind.STRUCTURE, "'tasks' must be a list.", "/tasks")
        return
    if not tasks:
        report.error(DiagnosticKind.STRUCTURE, "'tasks' list must not be empty.", "/tasks")
        return

    seen_names: dict[str, int] = {}
    for index, task in enumerate(tasks):
        task_path = f"/tasks[{index}]"
        if not is_mapping(task):
            report.error(DiagnosticKind.STRUCTURE, "Each task must be a mapping.", task_path)
            continue

        name = task.get("name")
        if not isinstance(name, str) or not name.strip():
            report.error(DiagnosticKind.STRUCTURE, "Task must have a non-empty string 'name'.", f"{task_path}/name")
        elif name in seen_names:
            report.warning(
                DiagnosticKind.STRUCTURE,
                f"Duplicate task name '{name}' (first used by /tasks[{seen_names[name]}]).",
                f"{task_path}/name",
            )
        else:
            seen_names[name] = index

        if get_task_flow(task) is None:
            report.error(DiagnosticKind.STRUCTURE, "Task must have a 'flow' list.", f"{task_path}/flow")

        output = task.get("output")
        if output is not None and not (is_mapping(output) and output.get("filePath") and output.get("dataName")):
            report.warning(
                DiagnosticKind.STRUCTURE,
                "Task 'output' should be a mapping with 'filePath' and 'dataName'.",
                f"{task_path}/output",
            )


def check_structure(document: Any, report: DiagnosticReport) -> bool:
    """Validate the document skeleton.

    Params:
        document: Parsed YAML value
        report: Accumulator receiving diagnostics

    Returns:
        False when the root is not a mapping and no further level can run
    """
    if not is_mapping(document):
        report.error(DiagnosticKind.STRUCTURE, "Document root must be a YAML mapping, not a scalar or list.", "/")
        return False

    engine = document.get("engine")
    if engine is not None and str(engine).strip().lower() not in ENGINE_VALUES:
        report.warning(
            DiagnosticKind.STRUCTURE,
            f"Unknown engine value '{engine}'. Valid values are 'native' or 'extended'.",
            "/engine",
        )

    check_platform(document, report)
    check_agent(document, report)
    check_tasks(document, report)
    return True
