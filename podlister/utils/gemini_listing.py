"""Gemini text cleanup for noisy listing text.

Turns whatever the seller typed into the archive's text file into a clean
title, description and tag list, plus a generic product type and a
"safe bet" catalog search term (an industry-standard model number such as
3001 or 18500). Any failure returns None: the caller falls back to plain
``key: value`` parsing, so this step can only improve a listing.
"""

from __future__ import annotations

import asyncio

import structlog
from google import genai
from google.genai import types
from pydantic import BaseModel, ValidationError

from podlister.config import settings
from podlister.models.contracts import ListingAnalysis

logger = structlog.get_logger()

GEMINI_TIMEOUT_SECONDS = 45

PROMPT_TEMPLATE = """You are an expert Print-on-Demand automation assistant.

YOUR GOAL: Analyze the product text and map it to a widely available
"Industry Standard" blueprint to ensure upload success.

RULES:
1. Ignore any specific brand names mentioned in the text.
2. Determine the generic product type (T-Shirt, Hoodie, Sweatshirt, Mug, ...).
3. Map that type to its "Safe Bet" model number for catalog_search_term:
   - T-Shirt / Tee -> "3001"
   - Hoodie / Hooded Sweatshirt -> "18500"
   - Sweatshirt / Crewneck -> "18000"
   - Mug / Coffee Cup -> "11oz Ceramic"
   - Long Sleeve -> "3501"
   - V-Neck -> "3005"
   - Tank Top -> "3480"

Tasks:
1. Extract a clean title.
2. Extract a description.
3. Extract tags.
4. Set product_type to the generic type (e.g. "Hoodie").
5. Set catalog_search_term to the safe-bet model number above.

Text to analyze:
{text}"""


class _GeminiListingSchema(BaseModel):
    title: str
    description: str
    tags: list[str]
    catalog_search_term: str
    product_type: str


def get_client() -> genai.Client:
    """Create a Gemini client using the configured API key."""
    return genai.Client(api_key=settings.google_ai_api_key)


def is_configured() -> bool:
    return bool(settings.google_ai_api_key)


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if not text.startswith("```"):
        return text
    text = text.removeprefix("```").removeprefix("json").lstrip("\n")
    return text.rsplit("```", 1)[0].strip()


async def analyze_listing_text(
    raw_text: str,
    client: genai.Client | None = None,
) -> ListingAnalysis | None:
    """Ask Gemini for cleaned listing fields. Returns None on any failure."""
    if not raw_text.strip():
        return None
    if client is None:
        client = get_client()

    prompt = PROMPT_TEMPLATE.format(text=raw_text[: settings.listing_text_max_chars])
    config = types.GenerateContentConfig(
        response_mime_type="application/json",
        response_schema=_GeminiListingSchema,
    )

    try:
        async with asyncio.timeout(GEMINI_TIMEOUT_SECONDS):
            response = await asyncio.to_thread(
                client.models.generate_content,
                model=settings.gemini_text_model,
                contents=prompt,
                config=config,
            )
    except Exception as exc:
        logger.warning(
            "gemini_listing_analysis_failed",
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return None

    text = response.text or ""
    if not text.strip():
        logger.warning("gemini_listing_analysis_empty")
        return None

    try:
        analysis = ListingAnalysis.model_validate_json(_strip_code_fence(text))
    except ValidationError as exc:
        logger.warning("gemini_listing_analysis_unparseable", error=str(exc), text=text[:200])
        return None

    logger.info(
        "gemini_listing_analyzed",
        product_type=analysis.product_type,
        search_term=analysis.catalog_search_term,
        tags=len(analysis.tags),
    )
    return analysis
