"""Import existing AcroForm widgets from a PDF as legacy flat fields."""

from __future__ import annotations

from pathlib import Path

from pypdf import PdfReader

from pdffill.model.field import FieldType, Position, Size
from pdffill.model.legacy import LegacyFlatField


class PdfImportError(RuntimeError):
    """Raised when existing form fields cannot be imported."""


_OFF_STATES = {"", "/Off", "Off"}


def import_acroform_fields(source_path: str | Path) -> list[LegacyFlatField]:
    """Read text and button widgets as flat descriptors.

    Pages are 1-based and positions are the widget's lower-left corner, i.e.
    legacy bottom-edge coordinates. Keys are the raw widget names; migration
    sanitizes them.
    """
    source = Path(source_path)
    imported: list[LegacyFlatField] = []

    try:
        reader = PdfReader(str(source))
        for page_index, page in enumerate(reader.pages):
            annots = page.get("/Annots") or []
            for annot_ref in annots:
                annot = annot_ref.get_object()
                if annot.get("/Subtype") != "/Widget":
                    continue

                parent = annot.get("/Parent")
                parent_obj = parent.get_object() if parent is not None else None

                field_type = annot.get("/FT") or (parent_obj.get("/FT") if parent_obj else None)
                rect = annot.get("/Rect")
                name = str(annot.get("/T") or (parent_obj.get("/T") if parent_obj else "") or "")
                if field_type is None or rect is None or not name:
                    continue

                llx, lly, urx, ury = (float(value) for value in rect)
                flags = annot.get("/Ff")
                if flags is None and parent_obj is not None:
                    flags = parent_obj.get("/Ff")

                value_obj = annot.get("/V")
                if value_obj is None and parent_obj is not None:
                    value_obj = parent_obj.get("/V")

                if field_type == "/Tx":
                    kind = FieldType.TEXT
                    sample: object = str(value_obj) if value_obj is not None else None
                elif field_type == "/Btn":
                    kind = FieldType.CHECKBOX
                    appearance = str(annot.get("/AS") or "")
                    sample = str(value_obj or "") not in _OFF_STATES or appearance not in _OFF_STATES
                else:
                    continue

                imported.append(
                    LegacyFlatField(
                        type=kind,
                        key=name,
                        name=name,
                        page=page_index + 1,
                        position=Position(x=llx, y=lly),
                        size=Size(width=max(0.0, urx - llx), height=max(0.0, ury - lly)),
                        sample_value=sample,
                        required=bool(int(flags or 0) & 2),
                    )
                )
    except Exception as exc:
        raise PdfImportError(f"Failed to import form fields from: {source}") from exc

    return imported
