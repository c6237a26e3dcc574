"""PDF metadata helpers."""

from __future__ import annotations

from pathlib import Path

from pypdf import PdfReader

from pdffill.model.document import PdfInfo
from pdffill.model.field import Size


class PdfInfoError(RuntimeError):
    """Raised when a PDF cannot be opened or measured."""


def read_pdf_info(path: str | Path) -> PdfInfo:
    source_path = Path(path)
    if not source_path.exists():
        raise PdfInfoError(f"File not found: {source_path}")

    try:
        reader = PdfReader(str(source_path))
        page_sizes = [
            Size(width=float(page.mediabox.width), height=float(page.mediabox.height))
            for page in reader.pages
        ]
    except Exception as exc:  # pragma: no cover - pypdf parse errors
        raise PdfInfoError(f"Failed to read PDF: {source_path}") from exc

    return PdfInfo(
        name=source_path.name,
        pages=len(page_sizes),
        size=page_sizes[0] if page_sizes else None,
        page_sizes=page_sizes,
    )
