"""Tests for the Gemini listing cleanup step.

The Gemini client is a MagicMock; generate_content runs in a worker thread
exactly as in production.
"""

import json
from unittest.mock import MagicMock

import pytest

from podlister.config import settings
from podlister.utils import gemini_listing
from podlister.utils.gemini_listing import _strip_code_fence, analyze_listing_text

GOOD_RESPONSE = {
    "title": "Retro Sunset Hoodie",
    "description": "Soft fleece hoodie.",
    "tags": ["retro", "sunset"],
    "catalog_search_term": "18500",
    "product_type": "Hoodie",
}


def _client_returning(text: str | None) -> MagicMock:
    client = MagicMock()
    client.models.generate_content.return_value = MagicMock(text=text)
    return client


class TestStripCodeFence:
    def test_plain_json_untouched(self):
        assert _strip_code_fence('{"a": 1}') == '{"a": 1}'

    def test_fenced_json(self):
        assert _strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'


class TestAnalyzeListingText:
    @pytest.mark.asyncio
    async def test_parses_structured_response(self):
        client = _client_returning(json.dumps(GOOD_RESPONSE))

        analysis = await analyze_listing_text("Title: sunset hoodie!!!", client=client)

        assert analysis is not None
        assert analysis.title == "Retro Sunset Hoodie"
        assert analysis.catalog_search_term == "18500"
        kwargs = client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == settings.gemini_text_model
        assert "sunset hoodie!!!" in kwargs["contents"]
        assert kwargs["config"].response_mime_type == "application/json"

    @pytest.mark.asyncio
    async def test_input_is_truncated(self, monkeypatch):
        monkeypatch.setattr(settings, "listing_text_max_chars", 5)
        client = _client_returning(json.dumps(GOOD_RESPONSE))

        await analyze_listing_text("abcdefghij", client=client)

        prompt = client.models.generate_content.call_args.kwargs["contents"]
        assert prompt.endswith("abcde")

    @pytest.mark.asyncio
    async def test_api_error_returns_none(self):
        client = MagicMock()
        client.models.generate_content.side_effect = RuntimeError("quota exceeded")
        assert await analyze_listing_text("Title: x", client=client) is None

    @pytest.mark.asyncio
    async def test_unparseable_response_returns_none(self):
        client = _client_returning("I think this is a hoodie")
        assert await analyze_listing_text("Title: x", client=client) is None

    @pytest.mark.asyncio
    async def test_empty_response_returns_none(self):
        assert await analyze_listing_text("Title: x", client=_client_returning(None)) is None

    @pytest.mark.asyncio
    async def test_blank_input_skips_call(self):
        client = _client_returning(json.dumps(GOOD_RESPONSE))
        assert await analyze_listing_text("   ", client=client) is None
        client.models.generate_content.assert_not_called()

    def test_is_configured_follows_api_key(self, monkeypatch):
        monkeypatch.setattr(settings, "google_ai_api_key", "")
        assert gemini_listing.is_configured() is False
        monkeypatch.setattr(settings, "google_ai_api_key", "abc")
        assert gemini_listing.is_configured() is True


@pytest.mark.integration
@pytest.mark.skipif(not settings.google_ai_api_key, reason="GOOGLE_AI_API_KEY not set")
class TestAnalyzeListingTextLive:
    @pytest.mark.asyncio
    async def test_hoodie_maps_to_safe_bet_model(self):
        analysis = await analyze_listing_text(
            "Product Type: Gildan hoody\nTitle: SUNSET vibes hoodie!!! best gift\nTags: sunset,retro"
        )
        assert analysis is not None
        assert analysis.catalog_search_term == "18500"
