"""Command-line entrypoint: inspect PDFs, migrate documents, resolve stamp actions."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Any

from pdffill.export.serializer import (
    ExportError,
    deserialize,
    dumps,
    loads,
    read_document,
    read_pdf_info,
    serialize,
)
from pdffill.migration.adapter import migrate_collection
from pdffill.model.field import FieldValidationError
from pdffill.model.keys import DuplicateKeyError, InvalidKeyError
from pdffill.pdf.importer import PdfImportError, import_acroform_fields
from pdffill.pdf.info import PdfInfoError, read_pdf_info as read_pdf_file_info
from pdffill.stamp.resolver import action_to_dict, resolve_all

logger = logging.getLogger("pdffill.cli")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="pdffill", description="PDF field schema tooling.")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    info = sub.add_parser("info", help="Print page count and page sizes of a PDF")
    info.add_argument("pdf", type=Path)

    imp = sub.add_parser("import", help="Build an export document from a PDF's AcroForm widgets")
    imp.add_argument("pdf", type=Path)
    imp.add_argument("-o", "--output", type=Path, default=None, help="Output JSON path (default: stdout)")

    migrate = sub.add_parser("migrate", help="Rewrite a v1 or v2 export document as the current version")
    migrate.add_argument("document", type=Path)
    migrate.add_argument("--pdf", type=Path, default=None, help="Take pdfInfo from this PDF")
    migrate.add_argument("-o", "--output", type=Path, default=None, help="Output JSON path (default: stdout)")

    resolve = sub.add_parser("resolve", help="Print stamp actions for a data file, grouped by page")
    resolve.add_argument("document", type=Path)
    resolve.add_argument("data", type=Path)
    return p.parse_args(argv)


def _emit(text: str, output: Path | None) -> None:
    if output is None:
        print(text)
        return
    output.write_text(text + "\n", encoding="utf-8")
    logger.info("Wrote %s", output)


def _cmd_info(args: argparse.Namespace) -> int:
    info = read_pdf_file_info(args.pdf)
    payload = info.to_dict()
    payload["pageSizes"] = [{"width": size.width, "height": size.height} for size in info.page_sizes]
    print(json.dumps(payload, indent=2))
    return 0


def _cmd_import(args: argparse.Namespace) -> int:
    result = migrate_collection(import_acroform_fields(args.pdf))
    for warning in result.warnings:
        logger.warning("%s", warning)
    doc = serialize(result.fields, read_pdf_file_info(args.pdf), {"source": "acroform"})
    _emit(dumps(doc), args.output)
    return 0


def _cmd_migrate(args: argparse.Namespace) -> int:
    source = loads(args.document.read_text(encoding="utf-8"))
    result = read_document(source)
    for warning in result.warnings:
        logger.warning("%s", warning)

    pdf_info = read_pdf_file_info(args.pdf) if args.pdf else read_pdf_info(source)
    metadata: dict[str, Any] = dict(source.get("metadata") or {})
    metadata.pop("statistics", None)
    doc = serialize(result.fields, pdf_info, metadata, created_at=source.get("createdAt"))
    _emit(dumps(doc), args.output)
    return 0


def _cmd_resolve(args: argparse.Namespace) -> int:
    fields = deserialize(loads(args.document.read_text(encoding="utf-8")))
    data = json.loads(args.data.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        logger.error("Data file must hold a JSON object")
        return 2

    plan = resolve_all(fields, data)
    pages = {
        str(page): [action_to_dict(action) for action in actions]
        for page, actions in plan.by_page().items()
    }
    print(json.dumps({"pages": pages, "errors": {key: str(exc) for key, exc in plan.errors.items()}}, indent=2))
    for key, exc in plan.errors.items():
        logger.error("Cannot resolve %s: %s", key, exc)
    return 0 if plan.ok else 1


_COMMANDS = {
    "info": _cmd_info,
    "import": _cmd_import,
    "migrate": _cmd_migrate,
    "resolve": _cmd_resolve,
}


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return _COMMANDS[args.command](args)
    except (
        ExportError,
        PdfInfoError,
        PdfImportError,
        FieldValidationError,
        DuplicateKeyError,
        InvalidKeyError,
        json.JSONDecodeError,
        OSError,
    ) as exc:
        logger.error("%s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
