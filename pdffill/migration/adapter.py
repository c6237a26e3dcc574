"""Convert legacy field descriptors into unified field models.

Every converter is a pure function returning a :class:`MigrationResult`. Lossy
steps never fail; they append a human-readable notice to ``warnings`` instead,
and callers are expected to surface those notices.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
import logging
from typing import Any

from pdffill.config import DEFAULT_FIELD_SIZES, FLATTEN_STEP_PT
from pdffill.model.field import (
    FieldModel,
    FieldStructure,
    FieldType,
    FieldVariant,
    OptionMapping,
    Position,
    PositionVersion,
    RenderType,
    Size,
)
from pdffill.model.keys import InvalidKeyError, generate_unique, is_valid, sanitize
from pdffill.model.legacy import (
    FieldAction,
    LegacyActionType,
    LegacyBooleanField,
    LegacyFlatField,
    LegacyLogicField,
)

logger = logging.getLogger(__name__)

_RENDER_TYPES = {
    LegacyActionType.FILL_LABEL: RenderType.TEXT,
    LegacyActionType.CHECKMARK: RenderType.CHECKMARK,
    LegacyActionType.FILL_CUSTOM: RenderType.CUSTOM,
}


@dataclass(slots=True)
class MigrationResult:
    fields: list[FieldModel] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def extend(self, other: MigrationResult) -> None:
        self.fields.extend(other.fields)
        self.warnings.extend(other.warnings)


def infer_structure(sample_value: Any) -> FieldStructure:
    if isinstance(sample_value, (list, tuple)):
        return FieldStructure.ARRAY
    if isinstance(sample_value, Mapping):
        return FieldStructure.OBJECT
    return FieldStructure.SIMPLE


def from_field(legacy: LegacyFlatField) -> MigrationResult:
    result = MigrationResult()
    key = _migrate_key(legacy.key, result.warnings)

    if infer_structure(legacy.sample_value) is not FieldStructure.OBJECT:
        result.fields.append(_flat_model(legacy, key, legacy.sample_value, legacy.type, legacy.position))
        return result

    leaves = _flatten(key, legacy.sample_value, result.warnings)
    if not leaves:
        result.warnings.append(f"field {key}: object sample has no properties to flatten; kept as a simple field")
        result.fields.append(
            _flat_model(legacy, key, None, legacy.type, legacy.position)
        )
        return result

    for index, (leaf_key, leaf_sample) in enumerate(leaves):
        leaf_type = FieldType.CHECKBOX if isinstance(leaf_sample, bool) else legacy.type
        position = legacy.position.offset(dy=-FLATTEN_STEP_PT * index)
        result.fields.append(_flat_model(legacy, leaf_key, leaf_sample, leaf_type, position))

    flattened = ", ".join(leaf_key for leaf_key, _ in leaves)
    result.warnings.append(f"field {key}: object flattened into {flattened}")
    logger.debug("Flattened %s into %d field(s)", key, len(leaves))
    return result


def from_logic_field(legacy: LegacyLogicField) -> MigrationResult:
    result = MigrationResult()
    key = _migrate_key(legacy.key, result.warnings)

    mappings: list[OptionMapping] = []
    seen: set[str] = set()
    for option in legacy.options:
        if option.key in seen:
            result.warnings.append(f"field {key}: duplicate option {option.key} ignored")
            continue
        seen.add(option.key)
        mappings.append(_option_mapping(key, option.key, option.label, option.actions, result.warnings))

    result.fields.append(
        _options_model(key, FieldType.LOGIC, legacy.page, mappings, multi_select=False, label=legacy.label)
    )
    return result


def from_boolean_field(legacy: LegacyBooleanField) -> MigrationResult:
    result = MigrationResult()
    key = _migrate_key(legacy.key, result.warnings)

    mappings = [
        _option_mapping(key, "true", "true", legacy.true_actions, result.warnings),
        _option_mapping(key, "false", "false", legacy.false_actions, result.warnings),
    ]
    result.fields.append(
        _options_model(key, FieldType.CHECKBOX, legacy.page, mappings, multi_select=True, label=legacy.label)
    )
    return result


def migrate_collection(
    flat: Iterable[LegacyFlatField] = (),
    logic: Iterable[LegacyLogicField] = (),
    boolean: Iterable[LegacyBooleanField] = (),
) -> MigrationResult:
    """Migrate a whole document's worth of legacy descriptors.

    Keys that collide across descriptors, either exactly or as a dotted
    parent of another key (``x`` next to a flattened ``x.a``), get a new root
    key from :func:`generate_unique` and are reported in the warnings. The
    first descriptor to claim a key keeps it.
    """
    groups: list[tuple[str, MigrationResult]] = []
    for item in flat:
        groups.append((_root_key(item.key), from_field(item)))
    for item in logic:
        groups.append((_root_key(item.key), from_logic_field(item)))
    for item in boolean:
        groups.append((_root_key(item.key), from_boolean_field(item)))

    # Every original key stays reserved so a rename never steals a later one.
    reserved = {model.key for _, result in groups for model in result.fields}
    used: set[str] = set()
    combined = MigrationResult()
    for root, result in groups:
        keys = [model.key for model in result.fields]
        if _collides(keys, used):
            renamed = _rename_root(root, keys, used | reserved)
            reason = "duplicate key" if root in used else "nested key collision"
            result.warnings.append(f"field {root}: {reason} renamed to {renamed}")
            for model in result.fields:
                model.key = renamed + model.key[len(root):]
            reserved.add(renamed)
        used.update(model.key for model in result.fields)
        combined.extend(result)

    logger.debug(
        "Migrated %d field(s) with %d warning(s)", len(combined.fields), len(combined.warnings)
    )
    return combined


def _root_key(raw: str) -> str:
    return raw if is_valid(raw) else sanitize(raw)


def _parents(key: str) -> list[str]:
    parts = key.split(".")
    return [".".join(parts[:index]) for index in range(1, len(parts))]


def _collides(keys: Iterable[str], taken: set[str]) -> bool:
    for key in keys:
        if key in taken or any(parent in taken for parent in _parents(key)):
            return True
        if any(other.startswith(f"{key}.") for other in taken):
            return True
    return False


def _rename_root(root: str, keys: list[str], taken: set[str]) -> str:
    base = root
    if any(parent in taken for parent in _parents(root)):
        base = root.replace(".", "_")
    existing = set(taken)
    while True:
        candidate = generate_unique(base, existing)
        if not _collides([candidate + key[len(root):] for key in keys], taken):
            return candidate
        existing.add(candidate)


def _migrate_key(raw: str, warnings: list[str]) -> str:
    if is_valid(raw):
        return raw
    key = sanitize(raw)
    if not key:
        raise InvalidKeyError(f"Legacy key {raw!r} has no usable characters")
    warnings.append(f"key {raw!r} sanitized to {key!r}")
    return key


def _flatten(prefix: str, sample: Mapping[str, Any], warnings: list[str]) -> list[tuple[str, Any]]:
    leaves: list[tuple[str, Any]] = []
    seen: set[str] = set()
    for name, value in sample.items():
        child = sanitize(str(name))
        if not child:
            warnings.append(f"field {prefix}: property {name!r} has no usable key and was dropped")
            continue
        if child in seen:
            warnings.append(f"field {prefix}: property {name!r} duplicates {child!r} and was dropped")
            continue
        seen.add(child)

        child_key = f"{prefix}.{child}"
        if isinstance(value, Mapping) and value:
            leaves.extend(_flatten(child_key, value, warnings))
        else:
            leaves.append((child_key, None if isinstance(value, Mapping) else value))
    return leaves


def _flat_model(
    legacy: LegacyFlatField,
    key: str,
    sample: Any,
    field_type: FieldType,
    position: Position,
) -> FieldModel:
    structure = infer_structure(sample)
    placement_count = max(1, len(sample)) if structure is FieldStructure.ARRAY else 1
    size = legacy.size
    if field_type is not legacy.type:
        size = Size(*DEFAULT_FIELD_SIZES[field_type.value])

    return FieldModel(
        key=key,
        type=field_type,
        page=legacy.page,
        position=position,
        variant=FieldVariant.SINGLE,
        structure=structure,
        size=size,
        placement_count=placement_count,
        position_version=PositionVersion.BOTTOM_EDGE,
        sample_value=sample,
        default_value=legacy.default_value,
        font_size=legacy.font_size,
        required=legacy.required,
        label=legacy.label,
    )


def _option_mapping(
    field_key: str,
    option_key: str,
    label: str,
    actions: list[FieldAction],
    warnings: list[str],
) -> OptionMapping:
    if not actions:
        warnings.append(f"field {field_key}: option {option_key} has no placement")
        return OptionMapping(key=option_key, label=label)

    first = actions[0]
    if len(actions) > 1:
        warnings.append(
            f"field {field_key}: option {option_key} has {len(actions)} actions; "
            f"only the first is kept and {len(actions) - 1} dropped"
        )

    render_type = _RENDER_TYPES[first.type]
    custom_text = first.custom_text if render_type is RenderType.CUSTOM else None
    if render_type is RenderType.CUSTOM and not custom_text:
        warnings.append(f"field {field_key}: option {option_key} has no custom text; rendering its label")
        render_type = RenderType.TEXT
        custom_text = None

    return OptionMapping(
        key=option_key,
        position=first.position,
        size=first.size,
        render_type=render_type,
        custom_text=custom_text,
        label=label,
        page=first.page,
        font_size=first.font_size,
    )


def _options_model(
    key: str,
    field_type: FieldType,
    page: int | None,
    mappings: list[OptionMapping],
    *,
    multi_select: bool,
    label: str,
) -> FieldModel:
    placed = [mapping for mapping in mappings if mapping.position is not None]
    anchor = placed[0] if placed else None
    if page is None:
        page = anchor.page if anchor is not None and anchor.page is not None else 1

    return FieldModel(
        key=key,
        type=field_type,
        page=page,
        position=anchor.position if anchor is not None else Position(0.0, 0.0),
        variant=FieldVariant.OPTIONS,
        structure=FieldStructure.SIMPLE,
        placement_count=max(1, len(mappings)),
        multi_select=multi_select,
        option_mappings=mappings,
        position_version=PositionVersion.BOTTOM_EDGE,
        label=label,
    )
