"""Legacy field descriptors produced by importers and older exports."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pdffill.config import DEFAULT_FIELD_SIZES
from pdffill.model.field import FieldType, Position, Size


class LegacyFormatError(ValueError):
    """Raised when a legacy descriptor is missing required content."""


class LegacyActionType(str, Enum):
    FILL_LABEL = "fillLabel"
    FILL_CUSTOM = "fillCustom"
    CHECKMARK = "checkmark"


@dataclass(slots=True)
class FieldAction:
    type: LegacyActionType
    position: Position
    page: int
    size: Size | None = None
    custom_text: str | None = None
    font_size: float | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> FieldAction:
        position = _require_mapping(payload, "position")
        properties = payload.get("properties") or {}
        try:
            return cls(
                type=LegacyActionType(payload["type"]),
                position=Position(x=float(position["x"]), y=float(position["y"])),
                page=int(position.get("page", 1)),
                size=_size_or_none(payload.get("size")),
                custom_text=payload.get("customText"),
                font_size=_float_or_none(properties.get("fontSize")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise LegacyFormatError(f"Invalid legacy action: {dict(payload)!r}") from exc


@dataclass(slots=True)
class FieldOption:
    key: str
    label: str
    actions: list[FieldAction] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> FieldOption:
        key = _require_str(payload, "key")
        return cls(
            key=key,
            label=str(payload.get("label") or key),
            actions=[FieldAction.from_dict(item) for item in payload.get("actions") or []],
        )


@dataclass(slots=True)
class LegacyFlatField:
    type: FieldType
    key: str
    page: int
    position: Position
    size: Size
    name: str = ""
    label: str | None = None
    sample_value: Any = None
    required: bool = False
    default_value: Any = None
    font_size: float | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> LegacyFlatField:
        position = _require_mapping(payload, "position")
        properties = payload.get("properties") or {}
        key = payload.get("key") or payload.get("name")
        if not isinstance(key, str) or not key:
            raise LegacyFormatError("Legacy field is missing 'key'")
        try:
            field_type = FieldType(payload.get("type", FieldType.TEXT.value))
            size = _size_or_none(payload.get("size"))
            return cls(
                type=field_type,
                key=key,
                page=int(payload.get("page", 1)),
                position=Position(x=float(position["x"]), y=float(position["y"])),
                size=size if size is not None else Size(*DEFAULT_FIELD_SIZES[field_type.value]),
                name=str(payload.get("name") or key),
                label=payload.get("label") or payload.get("displayName"),
                sample_value=payload.get("sampleValue"),
                required=bool(properties.get("required", False)),
                default_value=properties.get("defaultValue"),
                font_size=_float_or_none(properties.get("fontSize")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise LegacyFormatError(f"Invalid legacy field {key!r}") from exc


@dataclass(slots=True)
class LegacyLogicField:
    key: str
    label: str
    options: list[FieldOption] = field(default_factory=list)
    page: int | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> LegacyLogicField:
        key = _require_str(payload, "key")
        return cls(
            key=key,
            label=str(payload.get("label") or key),
            options=[FieldOption.from_dict(item) for item in payload.get("options") or []],
            page=_int_or_none(payload.get("page")),
        )


@dataclass(slots=True)
class LegacyBooleanField:
    key: str
    label: str
    true_actions: list[FieldAction] = field(default_factory=list)
    false_actions: list[FieldAction] = field(default_factory=list)
    page: int | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> LegacyBooleanField:
        key = _require_str(payload, "key")
        return cls(
            key=key,
            label=str(payload.get("label") or key),
            true_actions=[FieldAction.from_dict(item) for item in payload.get("trueActions") or []],
            false_actions=[FieldAction.from_dict(item) for item in payload.get("falseActions") or []],
            page=_int_or_none(payload.get("page")),
        )


def _require_str(payload: Mapping[str, Any], name: str) -> str:
    value = payload.get(name)
    if not isinstance(value, str) or not value:
        raise LegacyFormatError(f"Legacy descriptor is missing {name!r}")
    return value


def _require_mapping(payload: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = payload.get(name)
    if not isinstance(value, Mapping):
        raise LegacyFormatError(f"Legacy descriptor is missing {name!r}")
    return value


def _size_or_none(value: Any) -> Size | None:
    if not value:
        return None
    return Size(width=float(value["width"]), height=float(value["height"]))


def _float_or_none(value: Any) -> float | None:
    return None if value is None else float(value)


def _int_or_none(value: Any) -> int | None:
    return None if value is None else int(value)
