"""Rendering of product documents and their local artifact layout."""

from __future__ import annotations

import hashlib
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from .feed import FeedItem

_UNSAFE_CHARS = re.compile(r"[^0-9A-Za-z_.-]+")


@dataclass(frozen=True, slots=True)
class FormattedDocument:
    identifier: str
    content: str


def format_document(item: FeedItem, attributes: Mapping[str, str] | None = None) -> FormattedDocument:
    """Render ``item`` and any enrichment attributes as labelled lines."""

    extra = dict(attributes or {})
    category = extra.pop("category", None)
    lines = [
        f"[TITLE] {item.title}",
        f"[Price] {item.price:.2f}",
    ]
    if category:
        lines.append(f"[Category] {category}")
    lines.append(f"[BRAND] {item.brand}")
    lines.append("")
    lines.append("[CONTENT]")
    lines.extend(
        [
            f"[DESCRIPTION] {item.description}",
            f"[LINK] {item.link}",
            f"[IMAGE LINK] {item.image_link}",
            f"[AVAILABILITY] {item.availability}",
            f"[GTIN] {item.gtin}",
            f"[ID] {item.id}",
            f"[SKU] {item.mpn}",
        ]
    )
    for key in sorted(extra):
        label = key.replace("_", " ").title()
        lines.append(f"[{label}] {extra[key]}")
    return FormattedDocument(identifier=item.id, content="\n".join(lines) + "\n")


class DocumentWriter:
    """Keep one text artifact per product identifier under ``output_dir``.

    An existing artifact marks the product as already published.
    """

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, identifier: str) -> Path:
        slug = _UNSAFE_CHARS.sub("_", identifier.strip()) or "item"
        if slug != identifier:
            # Keep distinct identifiers on distinct paths after sanitising
            digest = hashlib.sha1(identifier.encode("utf-8")).hexdigest()[:8]
            slug = f"{slug}-{digest}"
        return self.output_dir / f"Prod_{slug}.txt"

    def exists(self, identifier: str) -> bool:
        return self.path_for(identifier).is_file()

    def write(self, document: FormattedDocument) -> Path:
        path = self.path_for(document.identifier)
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(document.content, encoding="utf-8")
        os.replace(tmp_path, path)
        return path

    def discard(self, identifier: str) -> None:
        self.path_for(identifier).unlink(missing_ok=True)


__all__ = ["DocumentWriter", "FormattedDocument", "format_document"]
