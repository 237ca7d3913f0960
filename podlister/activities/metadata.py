"""Listing metadata resolution.

Three sources, in priority order:

1. A pre-cleaned bundle (from the upload form or the Gemini cleanup step).
2. The archive's ``key: value`` text file.
3. A placeholder, so that missing metadata degrades the listing instead of
   failing it.

Strict mode turns gaps in the text file into an IncompleteListing error.
"""

from __future__ import annotations

import structlog

from podlister.errors import IncompleteListing
from podlister.models.contracts import ListingAnalysis, ProductDetails, ResolvedListing
from podlister.utils.listing_text import parse_listing_text

logger = structlog.get_logger()

AI_PRODUCT_TYPE_FALLBACK = "AI Detected"
PARSED_PRODUCT_TYPE_FALLBACK = "Parsed"
PLACEHOLDER_PRODUCT_TYPE = "Standard"
PLACEHOLDER_TITLE = "Untitled"


def _from_analysis(analysis: ListingAnalysis) -> ResolvedListing:
    details = ProductDetails(
        title=analysis.title.strip(),
        description=analysis.description,
        tags=[t.strip() for t in analysis.tags if t.strip()],
        raw_product_type_label=analysis.product_type.strip() or AI_PRODUCT_TYPE_FALLBACK,
    )
    return ResolvedListing(
        details=details,
        search_hint=analysis.catalog_search_term.strip() or None,
        source="ai",
    )


def _from_text(text: str, *, strict: bool) -> ResolvedListing:
    parsed = parse_listing_text(text)

    missing = [
        name
        for name, value in (
            ("productType", parsed.product_type),
            ("title", parsed.title),
            ("description", parsed.description),
            ("tags", parsed.tags),
        )
        if not value
    ]
    if missing:
        if strict:
            raise IncompleteListing(missing)
        logger.info("listing_fields_missing", missing=missing)

    details = ProductDetails(
        title=parsed.title or PLACEHOLDER_TITLE,
        description=parsed.description or "",
        tags=parsed.tags,
        raw_product_type_label=parsed.product_type or PARSED_PRODUCT_TYPE_FALLBACK,
    )
    return ResolvedListing(details=details, source="text")


def placeholder_listing() -> ResolvedListing:
    return ResolvedListing(
        details=ProductDetails(
            title=PLACEHOLDER_TITLE,
            raw_product_type_label=PLACEHOLDER_PRODUCT_TYPE,
        ),
        source="placeholder",
    )


def resolve_listing(
    analysis: ListingAnalysis | None,
    listing_text: str | None,
    *,
    strict: bool = False,
) -> ResolvedListing:
    """Pick the best available metadata source and normalise it.

    A bundle without a title is treated as absent. Raises IncompleteListing
    only in strict mode, and only for the text-file source.
    """
    if analysis is not None and analysis.title.strip():
        resolved = _from_analysis(analysis)
    elif listing_text is not None and listing_text.strip():
        resolved = _from_text(listing_text, strict=strict)
    else:
        resolved = placeholder_listing()

    logger.info(
        "listing_resolved",
        source=resolved.source,
        product_type=resolved.product_type,
        has_hint=resolved.search_hint is not None,
    )
    return resolved
