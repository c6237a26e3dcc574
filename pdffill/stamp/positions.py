"""Position-version normalization.

Both versions measure y from the page bottom. ``top-edge`` points at the
element's top edge, legacy ``bottom-edge`` at its bottom edge, so converting
only needs the element height.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from pdffill.model.field import FieldModel, OptionMapping, Position, PositionVersion


def convert_position(
    position: Position,
    height: float,
    source: PositionVersion,
    target: PositionVersion,
) -> Position:
    if source is target:
        return position
    if target is PositionVersion.TOP_EDGE:
        return position.offset(dy=height)
    return position.offset(dy=-height)


def normalize_field(
    field: FieldModel,
    target: PositionVersion = PositionVersion.TOP_EDGE,
) -> FieldModel:
    """Return ``field`` with every position expressed in ``target``.

    The input is left untouched; a field already in ``target`` is returned as is.
    """
    source = field.position_version
    if source is target:
        return field

    mappings: list[OptionMapping] | None = None
    if field.option_mappings is not None:
        mappings = [_normalize_mapping(mapping, source, target) for mapping in field.option_mappings]

    return replace(
        field,
        position=convert_position(field.position, field.effective_size().height, source, target),
        option_mappings=mappings,
        position_version=target,
    )


def normalize_fields(
    fields: Iterable[FieldModel],
    target: PositionVersion = PositionVersion.TOP_EDGE,
) -> list[FieldModel]:
    return [normalize_field(field, target) for field in fields]


def versions_in(fields: Iterable[FieldModel]) -> set[PositionVersion]:
    return {field.position_version for field in fields}


def _normalize_mapping(
    mapping: OptionMapping,
    source: PositionVersion,
    target: PositionVersion,
) -> OptionMapping:
    if mapping.position is None:
        return replace(mapping)
    height = mapping.effective_size().height
    return replace(mapping, position=convert_position(mapping.position, height, source, target))
