"""Template evaluation for composite-text fields.

Templates reference data with ``{key}`` or dotted ``{parent.child}`` paths,
e.g. ``"{firstName} {lastName}"``. Referenced values that themselves contain
placeholders are expanded recursively, guarded against cycles and runaway
depth.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
import logging
import re
from typing import Any

from pdffill.config import TEMPLATE_MAX_DEPTH

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"{([^}]+)}")

CIRCULAR_MARKER = "[Circular Reference]"
DEPTH_MARKER = "[Max Depth Exceeded]"


class EmptyValueBehavior(str, Enum):
    SKIP = "skip"
    SHOW_EMPTY = "show-empty"
    PLACEHOLDER = "placeholder"


class SeparatorHandling(str, Enum):
    SMART = "smart"
    LITERAL = "literal"


class WhitespaceHandling(str, Enum):
    NORMALIZE = "normalize"
    PRESERVE = "preserve"


@dataclass(frozen=True, slots=True)
class CompositeFormatting:
    empty_value: EmptyValueBehavior = EmptyValueBehavior.SKIP
    separators: SeparatorHandling = SeparatorHandling.SMART
    whitespace: WhitespaceHandling = WhitespaceHandling.NORMALIZE


@dataclass(slots=True)
class TemplateCheck:
    dependencies: list[str]
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def lookup_path(data: Mapping[str, Any], path: str) -> Any:
    """Return ``data[path]`` or walk ``path`` as dotted segments; None if absent."""
    if path in data:
        return data[path]
    value: Any = data
    for part in path.split("."):
        if not isinstance(value, Mapping) or part not in value:
            return None
        value = value[part]
    return value


def extract_dependencies(template: str) -> list[str]:
    seen: dict[str, None] = {}
    for match in PLACEHOLDER.finditer(template):
        seen.setdefault(match.group(1), None)
    return list(seen)


def check_template(template: str, available_keys: Iterable[str]) -> TemplateCheck:
    available = set(available_keys)
    result = TemplateCheck(dependencies=extract_dependencies(template))
    if template.count("{") != template.count("}"):
        result.errors.append("unbalanced braces in template")
    for dependency in result.dependencies:
        root = dependency.split(".")[0]
        if dependency not in available and root not in available:
            result.errors.append(f"field {dependency!r} not found in available data")
    return result


def evaluate(
    template: str,
    data: Mapping[str, Any],
    formatting: CompositeFormatting | None = None,
    *,
    max_depth: int = TEMPLATE_MAX_DEPTH,
) -> str:
    formatting = formatting or CompositeFormatting()
    return _evaluate(template, data, formatting, frozenset(), 0, max_depth)


def _evaluate(
    template: str,
    data: Mapping[str, Any],
    formatting: CompositeFormatting,
    visited: frozenset[str],
    depth: int,
    max_depth: int,
) -> str:
    if depth >= max_depth:
        logger.warning("Template evaluation exceeded max depth %d", max_depth)
        return DEPTH_MARKER

    def substitute(match: re.Match[str]) -> str:
        path = match.group(1)
        if path in visited:
            logger.warning("Circular template reference: %s", path)
            return CIRCULAR_MARKER

        value = lookup_path(data, path)
        if isinstance(value, str) and PLACEHOLDER.search(value):
            return _evaluate(value, data, formatting, visited | {path}, depth + 1, max_depth)
        if value is None or value == "":
            if formatting.empty_value is EmptyValueBehavior.PLACEHOLDER:
                return f"[{path}]"
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value).strip()

    result = PLACEHOLDER.sub(substitute, template)

    if formatting.separators is SeparatorHandling.SMART:
        result = re.sub(r",\s*,", ",", result)
        result = re.sub(r"^\s*,\s*", "", result)
        result = re.sub(r"\s*,\s*$", "", result)
        result = re.sub(r"\s*\.\s*\.", ".", result)
        result = re.sub(r"\s+", " ", result).strip()
    if formatting.whitespace is WhitespaceHandling.NORMALIZE:
        result = re.sub(r"\s+", " ", result).strip()
    return result
