"""Resolve field values into page-bound stamp actions."""

from __future__ import annotations

import base64
import binascii
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any

from pdffill.config import ARRAY_SEPARATOR, DEFAULT_FONT_SIZE
from pdffill.model.field import (
    IMAGE_TYPES,
    TEXT_LIKE_TYPES,
    FieldModel,
    FieldStructure,
    FieldType,
    OptionMapping,
    Position,
    PositionVersion,
    RenderType,
    Size,
)
from pdffill.stamp.positions import normalize_field
from pdffill.stamp.template import evaluate, lookup_path

logger = logging.getLogger(__name__)

_TRUE_TOKENS = frozenset({"true", "1", "yes", "on"})
_FALSE_TOKENS = frozenset({"false", "0", "no", "off", ""})


class ResolutionError(RuntimeError):
    """Raised when a value cannot be turned into stamp actions for a field."""

    def __init__(self, field_key: str, message: str) -> None:
        super().__init__(f"{field_key}: {message}")
        self.field_key = field_key


class UnknownOptionError(ResolutionError):
    """Raised when a value names an option the field does not map."""


class MissingPlacementError(ResolutionError):
    """Raised when a selected option has no position yet."""


class TypeMismatchError(ResolutionError):
    """Raised when a value cannot be coerced to the field's shape."""


class ContentKind(str, Enum):
    TEXT = "text"
    CHECKMARK = "checkmark"
    CUSTOM = "custom"
    IMAGE = "image"


@dataclass(frozen=True, slots=True)
class ImageRef:
    mime_type: str
    data: bytes


@dataclass(frozen=True, slots=True)
class StampAction:
    field_key: str
    page: int
    position: Position
    size: Size
    content: ContentKind
    value: str | bool | ImageRef
    font_size: float | None = None
    position_version: PositionVersion = PositionVersion.BOTTOM_EDGE


@dataclass(slots=True)
class StampPlan:
    actions: list[StampAction] = field(default_factory=list)
    errors: dict[str, ResolutionError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def by_page(self) -> dict[int, list[StampAction]]:
        grouped: dict[int, list[StampAction]] = defaultdict(list)
        for action in self.actions:
            grouped[action.page].append(action)
        return dict(sorted(grouped.items()))


def resolve(
    field: FieldModel,
    value: Any,
    *,
    position_version: PositionVersion = PositionVersion.BOTTOM_EDGE,
) -> list[StampAction]:
    """Return the ordered stamp actions for ``value`` on ``field``.

    Positions are expressed in ``position_version``, by default the
    bottom-edge coordinates a PDF writer draws with. Disabled fields never
    stamp. A missing value falls back to the field's default and resolves to
    nothing if there is none.
    """
    if not field.enabled:
        return []

    field.validate()
    if value is None:
        value = field.default_value
    if value is None:
        return []

    normalized = normalize_field(field, position_version)
    if normalized.has_options:
        return _resolve_options(normalized, value)
    return [_resolve_single(normalized, value)]


def resolve_all(
    fields: Iterable[FieldModel],
    data: Mapping[str, Any],
    *,
    position_version: PositionVersion = PositionVersion.BOTTOM_EDGE,
) -> StampPlan:
    """Resolve every field against ``data``, collecting errors per key.

    Values are looked up by the full key first, then as a dotted path into
    nested mappings.
    """
    plan = StampPlan()
    for item in fields:
        value = lookup_path(data, item.key)
        if item.type is FieldType.COMPOSITE_TEXT and item.template and value is None:
            value = data
        try:
            plan.actions.extend(resolve(item, value, position_version=position_version))
        except ResolutionError as exc:
            logger.debug("Resolution failed for %s: %s", item.key, exc)
            plan.errors[item.key] = exc
    return plan


def boolean_selection(value: bool) -> frozenset[str]:
    return frozenset({"true" if value else "false"})


def _resolve_single(field: FieldModel, value: Any) -> StampAction:
    if field.type is FieldType.CHECKBOX:
        content, payload = ContentKind.CHECKMARK, _coerce_bool(field, value)
    elif field.type in IMAGE_TYPES:
        content, payload = ContentKind.IMAGE, _coerce_image(field, value)
    elif field.type in TEXT_LIKE_TYPES:
        content, payload = ContentKind.TEXT, _coerce_text(field, value)
    else:  # pragma: no cover - every FieldType is covered above
        raise TypeMismatchError(field.key, f"unsupported field type {field.type.value}")

    return StampAction(
        field_key=field.key,
        page=field.page,
        position=field.position,
        size=field.effective_size(),
        content=content,
        value=payload,
        font_size=_font_size(field) if content is ContentKind.TEXT else None,
        position_version=field.position_version,
    )


def _resolve_options(field: FieldModel, value: Any) -> list[StampAction]:
    selected = _selected_keys(field, value)

    known = set(field.option_keys())
    unknown = [key for key in selected if key not in known]
    if unknown:
        raise UnknownOptionError(field.key, f"unknown option(s) {', '.join(sorted(unknown))}")

    actions: list[StampAction] = []
    for mapping in field.option_mappings or []:
        if mapping.key not in selected:
            continue
        if mapping.position is None:
            raise MissingPlacementError(field.key, f"option {mapping.key} has no placement")
        actions.append(_option_action(field, mapping, mapping.position))
    return actions


def _selected_keys(field: FieldModel, value: Any) -> set[str]:
    if isinstance(value, bool):
        return set(boolean_selection(value))
    if isinstance(value, str):
        return {value}
    if not field.multi_select:
        raise TypeMismatchError(field.key, f"expected a single option key, got {type(value).__name__}")
    if isinstance(value, Mapping) or not isinstance(value, Iterable):
        raise TypeMismatchError(field.key, f"expected option keys, got {type(value).__name__}")

    keys: set[str] = set()
    for item in value:
        if isinstance(item, bool):
            keys |= boolean_selection(item)
        elif isinstance(item, str):
            keys.add(item)
        else:
            raise TypeMismatchError(field.key, f"option keys must be strings, got {type(item).__name__}")
    return keys


def _option_action(field: FieldModel, mapping: OptionMapping, position: Position) -> StampAction:
    if mapping.render_type is RenderType.CHECKMARK:
        content: ContentKind = ContentKind.CHECKMARK
        payload: str | bool = True
    elif mapping.render_type is RenderType.CUSTOM:
        content, payload = ContentKind.CUSTOM, mapping.custom_text or ""
    else:
        content, payload = ContentKind.TEXT, mapping.label or mapping.key

    font_size = None
    if content is not ContentKind.CHECKMARK:
        font_size = mapping.font_size if mapping.font_size is not None else _font_size(field)

    return StampAction(
        field_key=field.key,
        page=mapping.page if mapping.page is not None else field.page,
        position=position,
        size=mapping.effective_size(),
        content=content,
        value=payload,
        font_size=font_size,
        position_version=field.position_version,
    )


def _font_size(field: FieldModel) -> float:
    return field.font_size if field.font_size is not None else DEFAULT_FONT_SIZE


def _coerce_text(field: FieldModel, value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, Mapping):
        if field.type is FieldType.COMPOSITE_TEXT and field.template:
            return evaluate(field.template, value)
        raise TypeMismatchError(field.key, "object value needs flattening before it can be stamped as text")
    if isinstance(value, (list, tuple)) and field.structure is FieldStructure.ARRAY:
        return ARRAY_SEPARATOR.join(_coerce_text(field, item) for item in value)
    raise TypeMismatchError(field.key, f"cannot stamp {type(value).__name__} as text")


def _coerce_bool(field: FieldModel, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        token = value.strip().lower()
        if token in _TRUE_TOKENS:
            return True
        if token in _FALSE_TOKENS:
            return False
    raise TypeMismatchError(field.key, f"cannot stamp {value!r} as a checkbox")


def _coerce_image(field: FieldModel, value: Any) -> ImageRef:
    if isinstance(value, ImageRef):
        return value
    if isinstance(value, (bytes, bytearray)):
        data = bytes(value)
        mime_type = _sniff_image(data)
        if mime_type is None:
            raise TypeMismatchError(field.key, "image bytes are neither PNG nor JPEG")
        return ImageRef(mime_type=mime_type, data=data)
    if isinstance(value, str) and value.startswith("data:image/"):
        header, _, encoded = value.partition(",")
        mime_type = header[len("data:"):].split(";")[0]
        if mime_type == "image/jpg":
            mime_type = "image/jpeg"
        if mime_type not in ("image/png", "image/jpeg") or ";base64" not in header:
            raise TypeMismatchError(field.key, f"unsupported image data URL {header!r}")
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise TypeMismatchError(field.key, "image data URL is not valid base64") from exc
        return ImageRef(mime_type=mime_type, data=data)
    raise TypeMismatchError(field.key, f"cannot stamp {type(value).__name__} as an image")


def _sniff_image(data: bytes) -> str | None:
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    return None


def action_to_dict(action: StampAction) -> dict[str, Any]:
    value: Any = action.value
    if isinstance(value, ImageRef):
        value = {"mimeType": value.mime_type, "bytes": len(value.data)}
    payload: dict[str, Any] = {
        "field": action.field_key,
        "page": action.page,
        "position": {"x": action.position.x, "y": action.position.y},
        "size": {"width": action.size.width, "height": action.size.height},
        "content": action.content.value,
        "value": value,
        "positionVersion": action.position_version.value,
    }
    if action.font_size is not None:
        payload["fontSize"] = action.font_size
    return payload
