"""Shared constants for field defaults, export versions, and layout offsets."""

from __future__ import annotations

EXPORT_VERSION = "2.0.0"
SUPPORTED_MAJOR_VERSION = 2
LEGACY_MAJOR_VERSION = 1

DEFAULT_PDF_NAME = "document.pdf"
DEFAULT_FONT_SIZE = 10.0

# (width, height) in points, keyed by field type value.
DEFAULT_FIELD_SIZES: dict[str, tuple[float, float]] = {
    "text": (200.0, 30.0),
    "checkbox": (25.0, 25.0),
    "radio-group": (25.0, 25.0),
    "image": (100.0, 100.0),
    "signature": (100.0, 100.0),
    "composite-text": (200.0, 30.0),
    "conditional": (200.0, 30.0),
    "logic": (20.0, 20.0),
}
DEFAULT_OPTION_SIZE: tuple[float, float] = (20.0, 20.0)

# Vertical gap between sibling fields produced by flattening an object field.
FLATTEN_STEP_PT = 40.0
DUPLICATE_OFFSET_PT = 20.0

ARRAY_SEPARATOR = ", "
TEMPLATE_MAX_DEPTH = 10
