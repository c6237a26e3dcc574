"""In-memory collection of unified fields for one document."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any
import uuid

from pdffill.config import DUPLICATE_OFFSET_PT
from pdffill.model.field import FieldModel, FieldType, Position, validate_collection
from pdffill.model.keys import DuplicateKeyError, generate_unique, prefix_for, require_valid


@dataclass(slots=True)
class FieldCollection:
    fields: list[FieldModel] = field(default_factory=list)

    def keys(self) -> set[str]:
        return {item.key for item in self.fields}

    def get(self, key: str) -> FieldModel | None:
        for item in self.fields:
            if item.key == key:
                return item
        return None

    def page_fields(self, page: int) -> list[FieldModel]:
        return [item for item in self.fields if item.page == page]

    def all_fields(self) -> list[FieldModel]:
        return list(self.fields)

    def add(self, item: FieldModel) -> FieldModel:
        require_valid(item.key)
        item.validate()
        if item.key in self.keys():
            raise DuplicateKeyError(f"Duplicate field key: {item.key!r}")
        validate_collection([*self.fields, item])
        self.fields.append(item)
        return item

    def create(
        self,
        field_type: FieldType,
        *,
        key: str | None = None,
        page: int = 1,
        position: Position | None = None,
        **attrs: Any,
    ) -> FieldModel:
        if key is None:
            key = generate_unique(prefix_for(field_type), self.keys())
        item = FieldModel(
            key=key,
            type=field_type,
            page=page,
            position=position or Position(0.0, 0.0),
            **attrs,
        )
        return self.add(item)

    def rename(self, key: str, new_key: str) -> FieldModel:
        item = self._require(key)
        require_valid(new_key)
        if new_key == key:
            return item
        if new_key in self.keys():
            raise DuplicateKeyError(f"Duplicate field key: {new_key!r}")
        others = [other for other in self.fields if other is not item]
        validate_collection([*others, replace(item, key=new_key)])
        item.key = new_key
        return item

    def remove(self, key: str) -> FieldModel:
        item = self._require(key)
        self.fields.remove(item)
        return item

    def duplicate(self, key: str) -> FieldModel:
        source = self._require(key)
        mappings = None
        if source.option_mappings is not None:
            mappings = [replace(mapping) for mapping in source.option_mappings]
        copy = replace(
            source,
            id=uuid.uuid4().hex,
            key=generate_unique(prefix_for(source.type), self.keys()),
            position=source.position.offset(dx=DUPLICATE_OFFSET_PT, dy=-DUPLICATE_OFFSET_PT),
            option_mappings=mappings,
            label=f"{source.label} (Copy)" if source.label else None,
        )
        return self.add(copy)

    def _require(self, key: str) -> FieldModel:
        item = self.get(key)
        if item is None:
            raise KeyError(key)
        return item
