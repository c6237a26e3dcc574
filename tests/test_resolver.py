from __future__ import annotations

import base64
from dataclasses import replace
from typing import Any

import pytest

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
)
from pdffill.stamp.resolver import (
    ContentKind,
    ImageRef,
    MissingPlacementError,
    ResolutionError,
    TypeMismatchError,
    UnknownOptionError,
    action_to_dict,
    boolean_selection,
    resolve,
    resolve_all,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 16


def _abc_field(multi_select: bool = True) -> FieldModel:
    return FieldModel(
        key="letters",
        type=FieldType.LOGIC,
        page=1,
        position=Position(0.0, 0.0),
        variant=FieldVariant.OPTIONS,
        multi_select=multi_select,
        option_mappings=[
            OptionMapping(key="A", position=Position(10.0, 100.0)),
            OptionMapping(key="B", position=Position(10.0, 80.0), render_type=RenderType.TEXT, label="Bee"),
            OptionMapping(key="C", position=Position(10.0, 60.0), render_type=RenderType.TEXT),
        ],
    )


@pytest.mark.parametrize("value", ["text", 0, True, ["A"], {"a": 1}])
def test_disabled_field_never_stamps(text_field: FieldModel, permissions_field: FieldModel, value: Any) -> None:
    assert resolve(replace(text_field, enabled=False), value) == []
    assert resolve(replace(permissions_field, enabled=False), value) == []


def test_disabled_check_comes_before_validation() -> None:
    broken = FieldModel(key="bad key", type=FieldType.TEXT, page=0, position=Position(0, 0), enabled=False)
    assert resolve(broken, "x") == []
    with pytest.raises(FieldValidationError):
        resolve(replace(broken, enabled=True), "x")


def test_single_text_field(text_field: FieldModel) -> None:
    [action] = resolve(text_field, "Ada")
    assert action.field_key == "first_name"
    assert action.page == 1
    assert action.position == Position(50.0, 670.0)
    assert action.position_version is PositionVersion.BOTTOM_EDGE
    assert action.size == Size(200.0, 30.0)
    assert action.content is ContentKind.TEXT
    assert action.value == "Ada"
    assert action.font_size == 10.0


@pytest.mark.parametrize(("value", "expected"), [(42, "42"), (2.5, "2.5"), (True, "true"), (False, "false"), ("", "")])
def test_text_coercion(text_field: FieldModel, value: Any, expected: str) -> None:
    [action] = resolve(text_field, value)
    assert action.value == expected


def test_text_rejects_objects_and_unflattened_lists(text_field: FieldModel) -> None:
    with pytest.raises(TypeMismatchError) as excinfo:
        resolve(text_field, {"first": "Ada"})
    assert excinfo.value.field_key == "first_name"
    with pytest.raises(TypeMismatchError):
        resolve(text_field, ["a", "b"])


def test_array_text_field_joins_items(text_field: FieldModel) -> None:
    field = replace(text_field, structure=FieldStructure.ARRAY, placement_count=2)
    [action] = resolve(field, ["red", 3])
    assert action.value == "red, 3"


def test_legacy_position_passes_through_by_default(legacy_text_field: FieldModel) -> None:
    [action] = resolve(legacy_text_field, "x")
    assert action.position == Position(50.0, 100.0)
    [top] = resolve(legacy_text_field, "x", position_version=PositionVersion.TOP_EDGE)
    assert top.position == Position(50.0, 130.0)
    assert top.position_version is PositionVersion.TOP_EDGE
    assert legacy_text_field.position == Position(50.0, 100.0)


@pytest.mark.parametrize(
    ("value", "expected"),
    [(True, True), (False, False), (1, True), (0, False), ("yes", True), ("Off", False), ("1", True)],
)
def test_checkbox_coercion(value: Any, expected: bool) -> None:
    field = FieldModel(key="agree", type=FieldType.CHECKBOX, page=2, position=Position(5, 5))
    [action] = resolve(field, value)
    assert action.content is ContentKind.CHECKMARK
    assert action.value is expected
    assert action.font_size is None
    assert action.size == Size(25.0, 25.0)


@pytest.mark.parametrize("value", ["maybe", 2, [True]])
def test_checkbox_rejects_non_booleans(value: Any) -> None:
    field = FieldModel(key="agree", type=FieldType.CHECKBOX, page=1, position=Position(5, 5))
    with pytest.raises(TypeMismatchError):
        resolve(field, value)


def test_image_from_bytes_and_data_url() -> None:
    field = FieldModel(key="photo", type=FieldType.IMAGE, page=1, position=Position(0, 0))

    [action] = resolve(field, PNG_BYTES)
    assert action.content is ContentKind.IMAGE
    assert action.value == ImageRef(mime_type="image/png", data=PNG_BYTES)

    url = "data:image/jpg;base64," + base64.b64encode(JPEG_BYTES).decode("ascii")
    [action] = resolve(replace(field, type=FieldType.SIGNATURE), url)
    assert action.value == ImageRef(mime_type="image/jpeg", data=JPEG_BYTES)


@pytest.mark.parametrize("value", [b"GIF89a", "photo.jpg", "data:image/gif;base64,AAAA", "data:image/png;base64,@@@", 7])
def test_image_rejects_unsupported_values(value: Any) -> None:
    field = FieldModel(key="photo", type=FieldType.IMAGE, page=1, position=Position(0, 0))
    with pytest.raises(TypeMismatchError):
        resolve(field, value)


def test_missing_value_uses_default_or_skips(text_field: FieldModel) -> None:
    assert resolve(text_field, None) == []
    [action] = resolve(replace(text_field, default_value="N/A"), None)
    assert action.value == "N/A"


def test_composite_text_evaluates_template() -> None:
    field = FieldModel(
        key="full_name",
        type=FieldType.COMPOSITE_TEXT,
        page=1,
        position=Position(0, 0),
        template="{first} {last}",
        font_size=12.0,
    )
    [action] = resolve(field, {"first": "Ada", "last": "Lovelace"})
    assert action.value == "Ada Lovelace"
    assert action.font_size == 12.0


def test_single_select_option() -> None:
    field = _abc_field(multi_select=False)
    [action] = resolve(field, "B")
    assert action.content is ContentKind.TEXT
    assert action.value == "Bee"
    assert action.position == Position(10.0, 60.0)


def test_single_select_text_without_label_renders_key() -> None:
    [action] = resolve(_abc_field(multi_select=False), "C")
    assert action.value == "C"


def test_single_select_rejects_unknown_and_lists() -> None:
    field = _abc_field(multi_select=False)
    with pytest.raises(UnknownOptionError):
        resolve(field, "Z")
    with pytest.raises(TypeMismatchError):
        resolve(field, ["A"])


def test_single_select_missing_placement() -> None:
    field = _abc_field(multi_select=False)
    field.option_mappings[0].position = None
    with pytest.raises(MissingPlacementError):
        resolve(field, "A")
    assert len(resolve(field, "B")) == 1


@pytest.mark.parametrize("value", [{"C", "A"}, ["C", "A"], ("A", "C", "A"), frozenset({"A", "C"})])
def test_multi_select_follows_mapping_order(value: Any) -> None:
    actions = resolve(_abc_field(), value)
    assert [action.value for action in actions] == [True, "C"]
    assert [action.position.y for action in actions] == [80.0, 40.0]


def test_multi_select_unknown_key_fails() -> None:
    with pytest.raises(UnknownOptionError):
        resolve(_abc_field(), ["A", "Q"])


@pytest.mark.parametrize("value", [{"A": True}, 5, [1, 2]])
def test_multi_select_rejects_non_key_values(value: Any) -> None:
    with pytest.raises(TypeMismatchError):
        resolve(_abc_field(), value)


def test_multi_select_empty_selection_stamps_nothing() -> None:
    assert resolve(_abc_field(), []) == []


def test_custom_option_uses_mapping_page(permissions_field: FieldModel) -> None:
    actions = resolve(permissions_field, ["admin", "read"])
    assert [(action.page, action.content, action.value) for action in actions] == [
        (1, ContentKind.CHECKMARK, True),
        (2, ContentKind.CUSTOM, "ADMIN"),
    ]
    assert actions[1].font_size == 10.0
    assert actions[0].font_size is None


def test_boolean_values_select_true_or_false() -> None:
    field = FieldModel(
        key="isActive",
        type=FieldType.CHECKBOX,
        page=1,
        position=Position(0, 0),
        variant=FieldVariant.OPTIONS,
        multi_select=True,
        option_mappings=[
            OptionMapping(key="true", position=Position(1, 1)),
            OptionMapping(key="false", position=Position(2, 2), render_type=RenderType.CUSTOM, custom_text="No"),
        ],
    )
    assert boolean_selection(True) == frozenset({"true"})
    [yes] = resolve(field, True)
    assert yes.content is ContentKind.CHECKMARK
    [no] = resolve(field, boolean_selection(False))
    assert no.value == "No"


def test_resolve_all_collects_actions_and_errors(text_field: FieldModel, permissions_field: FieldModel) -> None:
    nested = FieldModel(key="address.city", type=FieldType.TEXT, page=2, position=Position(1, 1))
    choice = _abc_field(multi_select=False)
    disabled = replace(text_field, key="hidden", enabled=False)
    data = {
        "first_name": "Ada",
        "address": {"city": "London"},
        "permissions": ["write"],
        "letters": "nope",
        "hidden": "secret",
    }

    plan = resolve_all([text_field, nested, permissions_field, choice, disabled], data)

    assert not plan.ok
    assert set(plan.errors) == {"letters"}
    assert isinstance(plan.errors["letters"], ResolutionError)
    pages = plan.by_page()
    assert list(pages) == [1, 2]
    assert [action.field_key for action in pages[1]] == ["first_name", "permissions"]
    assert [action.value for action in pages[2]] == ["London"]


def test_resolve_all_passes_whole_data_to_composite_fields() -> None:
    field = FieldModel(
        key="greeting",
        type=FieldType.COMPOSITE_TEXT,
        page=1,
        position=Position(0, 0),
        template="Hello {user.name}",
    )
    plan = resolve_all([field], {"user": {"name": "Ada"}})
    assert plan.ok
    assert plan.actions[0].value == "Hello Ada"


def test_action_to_dict() -> None:
    field = FieldModel(
        key="photo",
        type=FieldType.IMAGE,
        page=1,
        position=Position(1, 2),
        position_version=PositionVersion.BOTTOM_EDGE,
    )
    [action] = resolve(field, PNG_BYTES)
    payload = action_to_dict(action)
    assert payload["positionVersion"] == "bottom-edge"
    assert payload["value"] == {"mimeType": "image/png", "bytes": len(PNG_BYTES)}
    assert payload["position"] == {"x": 1, "y": 2}
    assert "fontSize" not in payload
