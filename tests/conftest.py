"""Shared fixtures for pdffill tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from reportlab.pdfgen import canvas

from pdffill.model.field import (
    FieldModel,
    FieldType,
    FieldVariant,
    OptionMapping,
    Position,
    PositionVersion,
    RenderType,
    Size,
)


# ---------------------------------------------------------------------------
# Legacy descriptors
# ---------------------------------------------------------------------------

GENDER_LOGIC_FIELD: dict[str, Any] = {
    "key": "gender",
    "label": "Gender Selection",
    "options": [
        {
            "key": "male",
            "label": "Male",
            "actions": [{"id": "a1", "type": "checkmark", "position": {"x": 10, "y": 20, "page": 1}}],
        },
        {
            "key": "female",
            "label": "Female",
            "actions": [{"id": "a2", "type": "checkmark", "position": {"x": 10, "y": 40, "page": 1}}],
        },
    ],
}

LEGACY_V1_DOCUMENT: dict[str, Any] = {
    "version": "1.0.0",
    "createdAt": "2024-03-01T10:00:00.000Z",
    "updatedAt": "2024-03-01T10:00:00.000Z",
    "pdfInfo": {"name": "application.pdf", "pages": 2},
    "fields": [
        {
            "type": "text",
            "name": "text_key_1",
            "key": "full name",
            "page": 1,
            "position": {"x": 50, "y": 700},
            "size": {"width": 200, "height": 30},
            "properties": {"required": True, "fontSize": 12},
            "sampleValue": "Ada Lovelace",
        },
        {
            "type": "text",
            "name": "address",
            "key": "address",
            "page": 2,
            "position": {"x": 50, "y": 500},
            "size": {"width": 200, "height": 30},
            "properties": {},
            "sampleValue": {"city": "London", "zip": "N1"},
        },
    ],
    "logicFields": [GENDER_LOGIC_FIELD],
    "booleanFields": [
        {
            "key": "isActive",
            "label": "Is Active",
            "trueActions": [{"id": "b1", "type": "checkmark", "position": {"x": 300, "y": 600, "page": 1}}],
            "falseActions": [
                {
                    "id": "b2",
                    "type": "fillCustom",
                    "customText": "N/A",
                    "position": {"x": 340, "y": 600, "page": 1},
                }
            ],
        }
    ],
    "conditionals": [],
}


@pytest.fixture
def gender_logic_field() -> dict[str, Any]:
    return GENDER_LOGIC_FIELD


@pytest.fixture
def legacy_v1_document() -> dict[str, Any]:
    return LEGACY_V1_DOCUMENT


# ---------------------------------------------------------------------------
# Unified fields
# ---------------------------------------------------------------------------


@pytest.fixture
def text_field() -> FieldModel:
    return FieldModel(
        key="first_name",
        type=FieldType.TEXT,
        page=1,
        position=Position(50.0, 700.0),
        size=Size(200.0, 30.0),
    )


@pytest.fixture
def permissions_field() -> FieldModel:
    return FieldModel(
        key="permissions",
        type=FieldType.CHECKBOX,
        page=1,
        position=Position(100.0, 400.0),
        variant=FieldVariant.OPTIONS,
        multi_select=True,
        option_mappings=[
            OptionMapping(key="read", position=Position(100.0, 400.0)),
            OptionMapping(key="write", position=Position(100.0, 370.0)),
            OptionMapping(
                key="admin",
                position=Position(100.0, 340.0),
                render_type=RenderType.CUSTOM,
                custom_text="ADMIN",
                page=2,
            ),
        ],
    )


@pytest.fixture
def legacy_text_field() -> FieldModel:
    return FieldModel(
        key="legacy",
        type=FieldType.TEXT,
        page=1,
        position=Position(50.0, 100.0),
        size=Size(200.0, 30.0),
        position_version=PositionVersion.BOTTOM_EDGE,
    )


# ---------------------------------------------------------------------------
# PDF files
# ---------------------------------------------------------------------------


@pytest.fixture
def acroform_pdf(tmp_path: Path) -> Path:
    """Two letter-size pages; page 1 carries a text widget and a checked checkbox."""
    path = tmp_path / "form.pdf"
    report = canvas.Canvas(str(path), pagesize=(612, 792))
    report.acroForm.textfield(
        name="full name",
        x=72,
        y=700,
        width=200,
        height=20,
        value="Ada",
        borderWidth=0,
        forceBorder=False,
    )
    report.acroForm.checkbox(
        name="agree",
        x=72,
        y=650,
        size=12,
        checked=True,
        buttonStyle="check",
    )
    report.showPage()
    report.drawString(72, 720, "Second page")
    report.showPage()
    report.save()
    return path


@pytest.fixture
def plain_pdf(tmp_path: Path) -> Path:
    path = tmp_path / "plain.pdf"
    report = canvas.Canvas(str(path), pagesize=(595, 842))
    report.drawString(72, 720, "No form here")
    report.showPage()
    report.save()
    return path
