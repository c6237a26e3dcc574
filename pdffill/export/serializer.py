"""Versioned export documents for field collections.

Version 2 documents carry each field's minimal shape (``key``, ``type``,
``variant``, ``page``, ``position``, ``size``, ``placementCount``, ``options``)
plus the full ``optionMappings`` geometry, so reading a document back yields
the same placements. Version 1 documents hold the legacy flat, logic, and
boolean field lists and are read through the migration adapter.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
import json
import logging
from typing import Any

from pdffill.config import EXPORT_VERSION, LEGACY_MAJOR_VERSION, SUPPORTED_MAJOR_VERSION
from pdffill.migration.adapter import MigrationResult, migrate_collection
from pdffill.model.document import PdfInfo
from pdffill.model.field import (
    FieldModel,
    FieldStructure,
    FieldType,
    FieldValidationError,
    FieldVariant,
    OptionMapping,
    Position,
    PositionVersion,
    RenderType,
    Size,
    validate_collection,
)
from pdffill.model.keys import DuplicateKeyError
from pdffill.model.legacy import (
    LegacyBooleanField,
    LegacyFlatField,
    LegacyLogicField,
)
from pdffill.stamp.positions import normalize_fields, versions_in

logger = logging.getLogger(__name__)


class ExportError(RuntimeError):
    """Base class for export document failures."""


class SchemaVersionError(ExportError):
    """Raised when a document comes from a newer, unsupported major version."""


class MalformedDocumentError(ExportError):
    """Raised when a document is missing or mistypes required content."""


class MixedPositionVersionError(MalformedDocumentError):
    """Raised when a document declares conflicting position versions."""


def serialize(
    fields: Sequence[FieldModel],
    pdf_info: PdfInfo,
    metadata: Mapping[str, Any] | None = None,
    *,
    created_at: str | None = None,
) -> dict[str, Any]:
    """Build an export document.

    A collection in a single position version is written in that version.
    Mixed collections are normalized to top-edge first.
    """
    validate_collection(fields)
    target = _uniform_version(fields)
    if target is None:
        logger.info("Normalizing mixed position versions to %s", PositionVersion.TOP_EDGE.value)
        target = PositionVersion.TOP_EDGE
    normalized = normalize_fields(fields, target)

    now = datetime.now(timezone.utc).isoformat()
    document_metadata = dict(metadata or {})
    document_metadata["statistics"] = _statistics(normalized)

    return {
        "version": EXPORT_VERSION,
        "createdAt": created_at or now,
        "updatedAt": now,
        "positionVersion": target.value,
        "pdfInfo": pdf_info.to_dict(),
        "fields": [_field_to_dict(field) for field in normalized],
        "metadata": document_metadata,
    }


def deserialize(doc: Mapping[str, Any]) -> list[FieldModel]:
    """Rebuild fields from an export document, all or nothing.

    Positions keep their version unless the document mixes versions, in
    which case every field is normalized to top-edge. Migration
    notices for version 1 documents are logged; use :func:`read_document`
    to receive them.
    """
    result = read_document(doc)
    for warning in result.warnings:
        logger.warning("Legacy migration: %s", warning)
    return result.fields


def read_document(doc: Mapping[str, Any]) -> MigrationResult:
    if not isinstance(doc, Mapping):
        raise MalformedDocumentError("Export document must be a JSON object")
    major = _major_version(doc.get("version"))
    if major > SUPPORTED_MAJOR_VERSION:
        raise SchemaVersionError(
            f"Export version {doc['version']} is newer than supported major {SUPPORTED_MAJOR_VERSION}"
        )
    if "conditionals" in doc:
        logger.info("Ignoring deprecated 'conditionals' section")

    if major <= LEGACY_MAJOR_VERSION:
        result = _legacy_fields(doc)
    else:
        result = MigrationResult(fields=_current_fields(doc))

    try:
        validate_collection(result.fields)
    except (FieldValidationError, DuplicateKeyError) as exc:
        raise MalformedDocumentError(str(exc)) from exc
    if _uniform_version(result.fields) is None:
        logger.info("Normalizing mixed position versions to %s", PositionVersion.TOP_EDGE.value)
        result.fields = normalize_fields(result.fields, PositionVersion.TOP_EDGE)
    return result


def read_pdf_info(doc: Mapping[str, Any]) -> PdfInfo:
    payload = doc.get("pdfInfo")
    if not isinstance(payload, Mapping):
        return PdfInfo()
    try:
        return PdfInfo.from_dict(payload)
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedDocumentError("Invalid 'pdfInfo' section") from exc


def dumps(doc: Mapping[str, Any]) -> str:
    return json.dumps(doc, indent=2, ensure_ascii=False)


def loads(text: str) -> dict[str, Any]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedDocumentError(f"Export document is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise MalformedDocumentError("Export document must be a JSON object")
    return payload


def _major_version(version: Any) -> int:
    if not isinstance(version, str):
        raise MalformedDocumentError("Export document is missing 'version'")
    head = version.split(".", 1)[0]
    if not head.isdigit():
        raise MalformedDocumentError(f"Unparseable export version: {version!r}")
    return int(head)


def _uniform_version(fields: Sequence[FieldModel]) -> PositionVersion | None:
    versions = versions_in(fields)
    if not versions:
        return PositionVersion.TOP_EDGE
    if len(versions) == 1:
        return versions.pop()
    return None


def _statistics(fields: Sequence[FieldModel]) -> dict[str, Any]:
    by_type = Counter(field.type.value for field in fields)
    by_page = Counter(str(field.page) for field in fields)
    return {
        "total": len(fields),
        "byType": dict(by_type),
        "byPage": dict(sorted(by_page.items(), key=lambda item: int(item[0]))),
        "required": sum(1 for field in fields if field.required),
    }


def _field_to_dict(field: FieldModel) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "key": field.key,
        "type": field.type.value,
        "variant": field.variant.value,
        "page": field.page,
        "position": _position_to_dict(field.position),
    }
    if field.size is not None:
        payload["size"] = _size_to_dict(field.size)
    payload["placementCount"] = field.placement_count
    if field.option_mappings is not None:
        payload["options"] = field.option_keys()
        payload["optionMappings"] = [_mapping_to_dict(mapping) for mapping in field.option_mappings]
        payload["multiSelect"] = field.multi_select

    payload["structure"] = field.structure.value
    payload["enabled"] = field.enabled
    optional = {
        "label": field.label,
        "fontSize": field.font_size,
        "template": field.template,
        "defaultValue": field.default_value,
        "sampleValue": field.sample_value,
    }
    payload.update({name: value for name, value in optional.items() if value is not None})
    if field.required:
        payload["required"] = True
    if field.locked:
        payload["locked"] = True
    return payload


def _mapping_to_dict(mapping: OptionMapping) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "key": mapping.key,
        "position": _position_to_dict(mapping.position) if mapping.position is not None else None,
        "renderType": mapping.render_type.value,
    }
    if mapping.size is not None:
        payload["size"] = _size_to_dict(mapping.size)
    optional = {
        "customText": mapping.custom_text,
        "label": mapping.label,
        "page": mapping.page,
        "fontSize": mapping.font_size,
    }
    payload.update({name: value for name, value in optional.items() if value is not None})
    return payload


def _position_to_dict(position: Position) -> dict[str, float]:
    return {"x": position.x, "y": position.y}


def _size_to_dict(size: Size) -> dict[str, float]:
    return {"width": size.width, "height": size.height}


def _current_fields(doc: Mapping[str, Any]) -> list[FieldModel]:
    items = doc.get("fields")
    if not isinstance(items, list):
        raise MalformedDocumentError("Export document is missing 'fields'")

    document_version = _position_version(doc.get("positionVersion"), "document")
    fields: list[FieldModel] = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise MalformedDocumentError(f"Field #{index} must be an object")
        field_version = _position_version(item.get("positionVersion"), f"field #{index}")
        if document_version is not None and field_version not in (None, document_version):
            raise MixedPositionVersionError(
                f"Field #{index} uses {field_version.value} in a {document_version.value} document"
            )
        version = field_version or document_version or PositionVersion.BOTTOM_EDGE
        fields.append(_field_from_dict(item, index, version))
    return fields


def _position_version(value: Any, where: str) -> PositionVersion | None:
    if value is None:
        return None
    try:
        return PositionVersion(value)
    except ValueError as exc:
        raise MalformedDocumentError(f"Unknown positionVersion {value!r} on {where}") from exc


def _field_from_dict(item: Mapping[str, Any], index: int, version: PositionVersion) -> FieldModel:
    try:
        key = item["key"]
        if not isinstance(key, str):
            raise TypeError("key must be a string")
        variant = FieldVariant(item["variant"])
        mappings = None
        if variant is FieldVariant.OPTIONS:
            mappings = _mappings_from_dict(item)
        return FieldModel(
            key=key,
            type=FieldType(item["type"]),
            page=int(item["page"]),
            position=_position_from_dict(item["position"]),
            variant=variant,
            structure=FieldStructure(item.get("structure", FieldStructure.SIMPLE.value)),
            size=_size_from_dict(item.get("size")),
            enabled=_flag(item, "enabled", True),
            placement_count=int(item["placementCount"]),
            multi_select=_flag(item, "multiSelect", False),
            option_mappings=mappings,
            position_version=version,
            sample_value=item.get("sampleValue"),
            default_value=item.get("defaultValue"),
            font_size=_optional_float(item.get("fontSize")),
            required=_flag(item, "required", False),
            template=item.get("template"),
            label=item.get("label"),
            locked=_flag(item, "locked", False),
        )
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise MalformedDocumentError(f"Field #{index} is malformed: {exc}") from exc


def _mappings_from_dict(item: Mapping[str, Any]) -> list[OptionMapping]:
    raw = item.get("optionMappings")
    if raw is None:
        keys = item.get("options")
        if not isinstance(keys, list):
            raise KeyError("options")
        # Keys without geometry: every option needs placing again.
        return [OptionMapping(key=str(key)) for key in keys]

    if not isinstance(raw, list):
        raise TypeError("optionMappings must be a list")
    mappings: list[OptionMapping] = []
    for entry in raw:
        position = entry.get("position")
        mappings.append(
            OptionMapping(
                key=str(entry["key"]),
                position=_position_from_dict(position) if position is not None else None,
                size=_size_from_dict(entry.get("size")),
                render_type=RenderType(entry.get("renderType", RenderType.CHECKMARK.value)),
                custom_text=entry.get("customText"),
                label=entry.get("label"),
                page=_optional_int(entry.get("page")),
                font_size=_optional_float(entry.get("fontSize")),
            )
        )
    return mappings


def _position_from_dict(payload: Any) -> Position:
    return Position(x=float(payload["x"]), y=float(payload["y"]))


def _size_from_dict(payload: Any) -> Size | None:
    if payload is None:
        return None
    return Size(width=float(payload["width"]), height=float(payload["height"]))


def _flag(item: Mapping[str, Any], name: str, default: bool) -> bool:
    value = item.get(name, default)
    if not isinstance(value, bool):
        raise TypeError(f"{name} must be a boolean, got {value!r}")
    return value


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _legacy_fields(doc: Mapping[str, Any]) -> MigrationResult:
    try:
        flat = [LegacyFlatField.from_dict(item) for item in doc.get("fields") or []]
        logic = [LegacyLogicField.from_dict(item) for item in doc.get("logicFields") or []]
        boolean = [LegacyBooleanField.from_dict(item) for item in doc.get("booleanFields") or []]
        result = migrate_collection(flat, logic, boolean)
    except (AttributeError, TypeError, ValueError) as exc:
        raise MalformedDocumentError(f"Legacy document is malformed: {exc}") from exc
    return result
