"""Product feed parsing (RSS 2.0 shop feeds, namespaced or plain)."""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path

from ..errors import ParseError

_NUMBER_PATTERN = re.compile(r"-?\d[\d.,]*")

_TEXT_FIELDS = (
    "id",
    "title",
    "description",
    "link",
    "image_link",
    "brand",
    "mpn",
    "gtin",
    "availability",
    "condition",
)


@dataclass(frozen=True, slots=True)
class FeedItem:
    """One catalog entry as published in the feed."""

    id: str
    title: str = ""
    price: Decimal = Decimal("0")
    description: str = ""
    link: str = ""
    image_link: str = ""
    brand: str = ""
    mpn: str = ""
    gtin: str = ""
    availability: str = ""
    condition: str = ""
    inventory: int = 0


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag.split(":")[-1]


def _normalise_number(token: str) -> str:
    """Reduce digit grouping and a decimal comma to a plain ``1234.56`` form."""

    if "," in token and "." in token:
        # The rightmost mark is the decimal separator
        if token.rfind(",") > token.rfind("."):
            token = token.replace(".", "").replace(",", ".")
        else:
            token = token.replace(",", "")
    elif "," in token:
        _, _, tail = token.rpartition(",")
        if token.count(",") == 1 and len(tail) <= 2:
            token = token.replace(",", ".")
        else:
            token = token.replace(",", "")
    if token.count(".") > 1:
        raise ValueError(f"ambiguous number {token!r}")
    return token


def parse_price(raw: str) -> Decimal:
    """Parse ``"10.00"``, ``"10.00 USD"``, ``"1,299.00"`` or ``"10,5"`` into a Decimal.

    Inconsistent grouping such as ``"1.2.3"`` raises ValueError.
    """

    match = _NUMBER_PATTERN.search(raw or "")
    if not match:
        raise ValueError(f"no price in {raw!r}")
    token = match.group(0).rstrip(".,")
    try:
        return Decimal(_normalise_number(token))
    except InvalidOperation as exc:
        raise ValueError(f"invalid price {raw!r}") from exc


class FeedParser:
    """Decode the feed's ``<item>`` elements into :class:`FeedItem` records."""

    def parse(self, raw: bytes) -> list[FeedItem]:
        try:
            root = ET.fromstring(raw)
        except ET.ParseError as exc:
            raise ParseError(f"Feed is not well-formed XML: {exc}") from exc
        items: list[FeedItem] = []
        for index, element in enumerate(
            node for node in root.iter() if _local_name(node.tag) == "item"
        ):
            items.append(self._parse_item(element, index))
        return items

    def parse_file(self, path: Path) -> list[FeedItem]:
        try:
            raw = path.read_bytes()
        except OSError as exc:
            raise ParseError(f"Unable to read feed file {path}: {exc}") from exc
        return self.parse(raw)

    def _parse_item(self, element: ET.Element, index: int) -> FeedItem:
        fields: dict[str, str] = {}
        for child in element:
            name = _local_name(child.tag)
            # First occurrence wins; shop feeds repeat some tags (e.g. additional images)
            fields.setdefault(name, (child.text or "").strip())

        identifier = fields.get("id", "")
        try:
            price = parse_price(fields.get("price", ""))
        except ValueError as exc:
            raise ParseError(f"Item #{index} ({identifier or 'no id'}): {exc}") from exc
        inventory_raw = fields.get("inventory", "") or "0"
        try:
            inventory = int(inventory_raw)
        except ValueError as exc:
            raise ParseError(
                f"Item #{index} ({identifier or 'no id'}): invalid inventory {inventory_raw!r}"
            ) from exc

        values = {name: fields.get(name, "") for name in _TEXT_FIELDS}
        return FeedItem(price=price, inventory=inventory, **values)


__all__ = ["FeedItem", "FeedParser", "parse_price"]
