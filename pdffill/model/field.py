"""Unified field model definitions."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
import uuid

from pdffill.config import DEFAULT_FIELD_SIZES, DEFAULT_OPTION_SIZE
from pdffill.model.keys import DuplicateKeyError, is_valid


class FieldType(str, Enum):
    TEXT = "text"
    CHECKBOX = "checkbox"
    RADIO_GROUP = "radio-group"
    IMAGE = "image"
    SIGNATURE = "signature"
    COMPOSITE_TEXT = "composite-text"
    CONDITIONAL = "conditional"
    LOGIC = "logic"


TEXT_LIKE_TYPES = frozenset(
    {
        FieldType.TEXT,
        FieldType.RADIO_GROUP,
        FieldType.COMPOSITE_TEXT,
        FieldType.CONDITIONAL,
        FieldType.LOGIC,
    }
)
IMAGE_TYPES = frozenset({FieldType.IMAGE, FieldType.SIGNATURE})


class FieldVariant(str, Enum):
    SINGLE = "single"
    OPTIONS = "options"


class FieldStructure(str, Enum):
    SIMPLE = "simple"
    ARRAY = "array"
    OBJECT = "object"


class RenderType(str, Enum):
    TEXT = "text"
    CHECKMARK = "checkmark"
    CUSTOM = "custom"


class PositionVersion(str, Enum):
    # y runs from the page bottom to the element's top edge.
    TOP_EDGE = "top-edge"
    # Legacy: y runs from the page bottom to the element's bottom edge.
    BOTTOM_EDGE = "bottom-edge"


class FieldValidationError(ValueError):
    """Raised when a field breaks a structural invariant."""

    def __init__(self, key: str, problems: list[str]) -> None:
        super().__init__(f"Field {key!r} is invalid: {'; '.join(problems)}")
        self.key = key
        self.problems = problems


@dataclass(frozen=True, slots=True)
class Position:
    x: float
    y: float

    def offset(self, dx: float = 0.0, dy: float = 0.0) -> Position:
        return Position(x=self.x + dx, y=self.y + dy)


@dataclass(frozen=True, slots=True)
class Size:
    width: float
    height: float


@dataclass(slots=True)
class OptionMapping:
    key: str
    position: Position | None = None
    size: Size | None = None
    render_type: RenderType = RenderType.CHECKMARK
    custom_text: str | None = None
    label: str | None = None
    # None means the owning field's page.
    page: int | None = None
    font_size: float | None = None

    @property
    def placed(self) -> bool:
        return self.position is not None

    def effective_size(self) -> Size:
        if self.size is not None:
            return self.size
        width, height = DEFAULT_OPTION_SIZE
        return Size(width=width, height=height)


@dataclass(slots=True)
class FieldModel:
    key: str
    type: FieldType
    page: int
    position: Position
    variant: FieldVariant = FieldVariant.SINGLE
    structure: FieldStructure = FieldStructure.SIMPLE
    size: Size | None = None
    enabled: bool = True
    placement_count: int = 1
    multi_select: bool = False
    option_mappings: list[OptionMapping] | None = None
    position_version: PositionVersion = PositionVersion.TOP_EDGE
    sample_value: Any = None
    default_value: Any = None
    font_size: float | None = None
    required: bool = False
    template: str | None = None
    label: str | None = None
    locked: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex, compare=False)

    @property
    def has_options(self) -> bool:
        return self.variant is FieldVariant.OPTIONS

    def effective_size(self) -> Size:
        if self.size is not None:
            return self.size
        width, height = DEFAULT_FIELD_SIZES[self.type.value]
        return Size(width=width, height=height)

    def option_keys(self) -> list[str]:
        return [mapping.key for mapping in self.option_mappings or []]

    def mapping_for(self, option_key: str) -> OptionMapping | None:
        for mapping in self.option_mappings or []:
            if mapping.key == option_key:
                return mapping
        return None

    def unplaced_options(self) -> list[str]:
        return [mapping.key for mapping in self.option_mappings or [] if not mapping.placed]

    def validate(self) -> None:
        """Check structural invariants, raising with every problem found."""
        problems: list[str] = []

        if not is_valid(self.key):
            problems.append("key does not match the field key grammar")
        if self.page < 1:
            problems.append(f"page must be >= 1, got {self.page}")
        if self.placement_count < 1:
            problems.append(f"placementCount must be >= 1, got {self.placement_count}")
        if self.structure is FieldStructure.OBJECT:
            problems.append("object structure must be flattened before use")

        if self.variant is FieldVariant.OPTIONS:
            if self.option_mappings is None:
                problems.append("options variant requires optionMappings")
            else:
                problems.extend(_mapping_problems(self.option_mappings))
        elif self.option_mappings is not None:
            problems.append("optionMappings are only allowed on the options variant")

        if problems:
            raise FieldValidationError(self.key, problems)


def _mapping_problems(mappings: list[OptionMapping]) -> list[str]:
    problems: list[str] = []
    seen: set[str] = set()
    for mapping in mappings:
        if not mapping.key:
            problems.append("option key must not be empty")
        if mapping.key in seen:
            problems.append(f"duplicate option key {mapping.key!r}")
        seen.add(mapping.key)

        has_text = mapping.custom_text is not None
        if mapping.render_type is RenderType.CUSTOM and not has_text:
            problems.append(f"option {mapping.key!r} renders custom text but has none")
        elif mapping.render_type is not RenderType.CUSTOM and has_text:
            problems.append(f"option {mapping.key!r} has custom text but renders {mapping.render_type.value}")
        if mapping.page is not None and mapping.page < 1:
            problems.append(f"option {mapping.key!r} page must be >= 1")
    return problems


def validate_collection(fields: Iterable[FieldModel]) -> None:
    """Validate every field and the key namespace they share.

    Keys must be unique, and no key may be a dotted prefix of another since
    the shorter one would bind both a scalar and an object.
    """
    keys: set[str] = set()
    for item in fields:
        item.validate()
        if item.key in keys:
            raise DuplicateKeyError(f"Duplicate field key: {item.key!r}")
        keys.add(item.key)

    for key in keys:
        parts = key.split(".")
        for index in range(1, len(parts)):
            parent = ".".join(parts[:index])
            if parent in keys:
                raise DuplicateKeyError(
                    f"Field key {parent!r} collides with nested key {key!r}"
                )
