"""
Document loading for FlowTree.

Accepts a file path, raw YAML text or an already-parsed mapping and always
produces the parsed document together with the file it came from, if any.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from flowtree.exceptions import DocumentLoadError
from flowtree.settings import DEFAULT_SETTINGS, FlowTreeSettings

logger = logging.getLogger(__name__)

YAML_EXTENSIONS = (".yaml", ".yml")


@dataclass
class LoadedDocument:
    """A parsed document and where it came from.

    Params:
        document: The parsed YAML value (usually a mapping)
        file_path: Absolute path of the source file, or None for text/objects
        text: The raw YAML text, or None when a parsed object was given
    """

    document: Any
    file_path: Path | None = None
    text: str | None = None

    @property
    def base_directory(self) -> Path:
        """Directory that relative import paths resolve against."""
        if self.file_path is not None:
            return self.file_path.parent
        return Path.cwd()


def looks_like_file_path(value: Any) -> bool:
    """Return True when a value should be read from disk instead of parsed.

    A string is treated as a path when it is a single line ending in
    ``.yaml`` or ``.yml``. ``Path`` objects are always paths.
    """
    if isinstance(value, Path):
        return True
    if not isinstance(value, str) or "\n" in value:
        return False
    return value.strip().lower().endswith(YAML_EXTENSIONS)


def describe_source(source: Any) -> str:
    """Short human-readable name for an input, used in error messages."""
    if looks_like_file_path(source):
        return str(source)
    if isinstance(source, str):
        return "<text>"
    return f"<{type(source).__name__}>"


def read_source(
    source: str | Path, settings: FlowTreeSettings = DEFAULT_SETTINGS
) -> tuple[str, Path | None]:
    """Read raw YAML text from a path, or pass text through unchanged.

    Params:
        source: File path or raw YAML text
        settings: Limits to enforce while reading

    Returns:
        Tuple of (text, resolved file path or None)

    Raises:
        DocumentLoadError: When the file is missing, unreadable or too large
    """
    if not looks_like_file_path(source):
        return str(source), None

    path = Path(str(source).strip()).resolve()
    try:
        size = path.stat().st_size
    except OSError as e:
        raise DocumentLoadError(str(source), e.strerror or str(e)) from e

    if size > settings.max_file_size:
        raise DocumentLoadError(
            str(source),
            f"file is {size} bytes, which exceeds the {settings.max_file_size} byte limit. "
            "Split the flow into smaller files and combine them with 'import'.",
        )

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise DocumentLoadError(str(source), str(e)) from e

    logger.debug("Read %d bytes from %s", size, path)
    return text, path


def parse_yaml(text: str, source_name: str = "<text>") -> Any:
    """Parse YAML text with the safe loader.

    Raises:
        DocumentLoadError: On YAML syntax errors, with the line and column
            of the problem in ``location`` when PyYAML reports one
    """
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        location = ""
        mark = getattr(e, "problem_mark", None)
        if mark is not None:
            location = f"line {mark.line + 1}, column {mark.column + 1}"
        problem = getattr(e, "problem", None) or str(e)
        raise DocumentLoadError(source_name, f"YAML syntax error: {problem}", location) from e


def load_document(
    source: Any, settings: FlowTreeSettings = DEFAULT_SETTINGS
) -> LoadedDocument:
    """Load a document from a path, raw text or a parsed mapping.

    Params:
        source: File path (``str`` or ``Path``), YAML text, or a parsed object
        settings: Limits to enforce while reading

    Returns:
        LoadedDocument with the parsed value

    Raises:
        DocumentLoadError: When the input cannot be read or parsed
    """
    if isinstance(source, (str, Path)):
        text, file_path = read_source(source, settings)
        document = parse_yaml(text, describe_source(source))
        return LoadedDocument(document=document, file_path=file_path, text=text)

    return LoadedDocument(document=source)
