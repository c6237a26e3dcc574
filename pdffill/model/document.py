"""Source PDF metadata carried in export documents."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pdffill.config import DEFAULT_PDF_NAME
from pdffill.model.field import Size


@dataclass(slots=True)
class PdfInfo:
    name: str = DEFAULT_PDF_NAME
    pages: int = 1
    size: Size | None = None
    page_sizes: list[Size] = field(default_factory=list)

    def page_size(self, page: int) -> Size | None:
        if 1 <= page <= len(self.page_sizes):
            return self.page_sizes[page - 1]
        return self.size

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name, "pages": self.pages}
        if self.size is not None:
            payload["size"] = {"width": self.size.width, "height": self.size.height}
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> PdfInfo:
        size = payload.get("size")
        return cls(
            name=str(payload.get("name") or DEFAULT_PDF_NAME),
            pages=int(payload.get("pages", 1)),
            size=Size(float(size["width"]), float(size["height"])) if size else None,
        )
