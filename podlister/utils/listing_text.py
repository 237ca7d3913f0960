"""Parser for the ``key: value`` listing text shipped inside upload archives.

Example::

    Product_Type: Hoodie
    Title: Retro Sunset Hoodie
    Description: Soft fleece hoodie with a faded sunset print.
    Tags: retro, sunset, hoodie
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ParsedListing:
    product_type: str | None = None
    title: str | None = None
    description: str | None = None
    tags: list[str] = field(default_factory=list)


def split_key_values(text: str) -> dict[str, str]:
    """Split lines on the first colon. Later duplicates win; keyless lines are ignored."""
    fields: dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        key = key.strip()
        if not sep or not key:
            continue
        fields[key] = value.strip()
    return fields


def parse_listing_text(text: str) -> ParsedListing:
    fields = split_key_values(text)
    raw_tags = fields.get("Tags")
    return ParsedListing(
        product_type=fields.get("Product_Type") or fields.get("Product Type") or None,
        title=fields.get("Title") or None,
        description=fields.get("Description") or None,
        tags=[t.strip() for t in raw_tags.split(",") if t.strip()] if raw_tags else [],
    )
