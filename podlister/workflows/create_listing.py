"""Listing creation workflow, one instance per upload request.

Linear, forward-only state machine. Each state emits exactly one progress
event before (or, for resolution states, right after) its work:

    Extracting(10) -> CatalogLoading(20) -> MetadataResolved(30)
    -> BlueprintTargeted(40) -> ConnectingProvider(50) -> ArtworkUploading(55)
    -> MockupsUploading(60) -> ProviderLocked(65) -> ProductCreating(75)
    -> Done(100)

Any ListingError ends the stream with one failure envelope. Remote side
effects already performed (uploaded images) are left in place; there is
no rollback. A failed mockup upload is recorded and skipped.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import aclosing
from enum import Enum
from typing import Any

import structlog

from podlister.activities.assets import classify_assets
from podlister.activities.blueprint_match import resolve_blueprint
from podlister.activities.catalog_cache import CatalogCache
from podlister.activities.metadata import resolve_listing
from podlister.activities.provider_select import GreedyVariantSelector, VariantSelector
from podlister.config import settings
from podlister.errors import (
    ListingError,
    MockupUploadFailed,
    NoAvailableVariant,
    RemoteCreationFailed,
    RemoteUploadFailed,
)
from podlister.models.contracts import (
    ArchiveEntry,
    AttemptFailure,
    ListingAnalysis,
    ListingRequest,
    ListingResultData,
    ProductDetails,
    ProgressEvent,
    ResolutionResult,
    ResolvedListing,
    TerminalEnvelope,
)
from podlister.utils.archive import read_listing_archive
from podlister.utils.printify import PrintifyClient, PrintifyError

logger = structlog.get_logger()

ListingAnalyzer = Callable[[str], Awaitable[ListingAnalysis | None]]
StreamItem = ProgressEvent | TerminalEnvelope


class Stage(Enum):
    EXTRACTING = 10
    CATALOG_LOADING = 20
    METADATA_RESOLVED = 30
    BLUEPRINT_TARGETED = 40
    CONNECTING_PROVIDER = 50
    ARTWORK_UPLOADING = 55
    MOCKUPS_UPLOADING = 60
    PROVIDER_LOCKED = 65
    PRODUCT_CREATING = 75
    DONE = 100

    @property
    def percent(self) -> int:
        return self.value


_STAGE_ORDER = list(Stage)


class ProgressEmitter:
    """Builds progress events and refuses to go backwards or repeat a state."""

    def __init__(self) -> None:
        self._position = -1
        self._last_percent = 0
        self.events: list[ProgressEvent] = []

    @property
    def stage(self) -> Stage | None:
        return _STAGE_ORDER[self._position] if self._position >= 0 else None

    def advance(self, stage: Stage, message: str) -> ProgressEvent:
        position = _STAGE_ORDER.index(stage)
        if position <= self._position:
            raise ValueError(f"Cannot move from {self.stage} back to {stage}")
        if stage.percent < self._last_percent:
            raise ValueError(f"Progress cannot decrease ({self._last_percent} -> {stage.percent})")
        self._position = position
        self._last_percent = stage.percent
        event = ProgressEvent(percent=stage.percent, message=message)
        self.events.append(event)
        return event


_SOURCE_MESSAGES = {
    "ai": "Applying Gemini Intelligence...",
    "text": "Parsing text file (Legacy Mode)...",
    "placeholder": "No listing text found; using placeholder details.",
}


def build_product_payload(
    resolution: ResolutionResult,
    details: ProductDetails,
    main_image_id: str,
    mockup_image_ids: list[str],
    price_cents: int,
) -> dict[str, Any]:
    """Printify product body: one enabled variant, main artwork on the front."""
    return {
        "title": details.title or "Untitled",
        "description": details.description,
        "tags": list(details.tags),
        "blueprint_id": resolution.blueprint.id,
        "print_provider_id": resolution.provider_id,
        "variants": [
            {"id": resolution.variant_id, "price": price_cents, "is_enabled": True},
        ],
        "print_areas": [
            {
                "variant_ids": [resolution.variant_id],
                "placeholders": [
                    {
                        "position": "front",
                        "images": [
                            {"id": main_image_id, "x": 0.5, "y": 0.5, "scale": 1, "angle": 0}
                        ],
                    }
                ],
            }
        ],
        "images": [{"id": image_id} for image_id in mockup_image_ids],
    }


class ListingCreationWorkflow:
    def __init__(
        self,
        *,
        catalog_cache: CatalogCache,
        printify: PrintifyClient,
        selector: VariantSelector | None = None,
        analyzer: ListingAnalyzer | None = None,
        main_marker: str | None = None,
        mockup_marker: str | None = None,
        price_cents: int | None = None,
    ) -> None:
        self._cache = catalog_cache
        self._printify = printify
        self._selector = selector or GreedyVariantSelector(printify, settings.provider_priority)
        self._analyzer = analyzer
        self._main_marker = main_marker or settings.main_image_marker
        self._mockup_marker = mockup_marker or settings.mockup_marker
        self._price_cents = price_cents or settings.default_variant_price_cents
        self.emitter = ProgressEmitter()
        self.failures: list[AttemptFailure] = []

    async def run(self, request: ListingRequest) -> AsyncIterator[StreamItem]:
        """Yield progress events, then exactly one terminal envelope."""
        try:
            async with aclosing(self._steps(request)) as steps:
                async for item in steps:
                    yield item
        except ListingError as exc:
            failures = list(self.failures)
            if isinstance(exc, NoAvailableVariant):
                failures.extend(exc.attempts)
            logger.warning(
                "listing_creation_failed",
                stage=self.emitter.stage.name if self.emitter.stage else None,
                error_type=type(exc).__name__,
                error=exc.message,
                failures=[f.model_dump() for f in failures],
            )
            yield TerminalEnvelope(success=False, message=exc.message)
        except Exception as exc:
            logger.exception("listing_creation_crashed", error_type=type(exc).__name__)
            yield TerminalEnvelope(success=False, message=str(exc) or "Unknown Server Error")

    async def _resolve_metadata(
        self, request: ListingRequest, listing_text: str | None
    ) -> ResolvedListing:
        analysis = request.analysis
        if analysis is None and listing_text and self._analyzer is not None:
            analysis = await self._analyzer(listing_text)
        return resolve_listing(analysis, listing_text, strict=request.strict)

    async def _upload_main(self, entry: ArchiveEntry) -> str:
        try:
            return await self._printify.upload_image(entry.name, entry.data)
        except PrintifyError as exc:
            raise RemoteUploadFailed(
                f"Printify Main Image Upload Failed: {exc.describe()}"
            ) from exc

    async def _upload_mockup(self, entry: ArchiveEntry) -> str:
        try:
            return await self._printify.upload_image(entry.name, entry.data)
        except PrintifyError as exc:
            raise MockupUploadFailed(entry.name, exc.describe()) from exc

    async def _steps(self, request: ListingRequest) -> AsyncIterator[StreamItem]:
        emit = self.emitter.advance

        yield emit(Stage.EXTRACTING, "Extracting ZIP contents...")
        archive = await asyncio.to_thread(read_listing_archive, request.archive_path)
        assets = classify_assets(archive.images, self._main_marker, self._mockup_marker)

        yield emit(Stage.CATALOG_LOADING, "Fetching Printify Catalog...")
        snapshot = await self._cache.get(request.api_key)

        listing = await self._resolve_metadata(request, archive.listing_text)
        yield emit(Stage.METADATA_RESOLVED, _SOURCE_MESSAGES[listing.source])

        match = resolve_blueprint(
            listing.product_type,
            listing.search_hint or request.search_hint,
            request.overrides,
            snapshot.entries,
        )
        blueprint = match.entry
        yield emit(
            Stage.BLUEPRINT_TARGETED,
            f"Targeting: {blueprint.title} ({blueprint.brand}) [{match.stage}: '{match.term}']",
        )

        yield emit(
            Stage.CONNECTING_PROVIDER,
            f"[Printify] Connecting to API (Store {request.shop_id})...",
        )

        yield emit(Stage.ARTWORK_UPLOADING, "[Printify] Uploading main artwork...")
        main_image_id = await self._upload_main(assets.main_image)

        mockups = assets.mockups
        yield emit(
            Stage.MOCKUPS_UPLOADING,
            f"[Printify] Uploading {len(mockups)} mockups..."
            if mockups
            else "[Printify] No mockups to upload.",
        )
        mockup_ids: list[str] = []
        for entry in mockups:
            try:
                mockup_ids.append(await self._upload_mockup(entry))
            except MockupUploadFailed as exc:
                self.failures.append(AttemptFailure(subject=exc.file_name, error=exc.reason))
                logger.warning("mockup_upload_failed", file_name=exc.file_name, error=exc.reason)

        selection = await self._selector.select(blueprint)
        self.failures.extend(selection.attempts)
        resolution = ResolutionResult(
            blueprint=blueprint,
            provider_id=selection.provider_id,
            variant_id=selection.variant_id,
        )
        yield emit(
            Stage.PROVIDER_LOCKED,
            f"Provider Locked: {selection.provider_title or selection.provider_id} "
            f"(variant {selection.variant_id})",
        )

        yield emit(Stage.PRODUCT_CREATING, "[Printify] Creating product...")
        payload = build_product_payload(
            resolution, listing.details, main_image_id, mockup_ids, self._price_cents
        )
        try:
            product_id = await self._printify.create_product(request.shop_id, payload)
        except PrintifyError as exc:
            detail = json.dumps(exc.payload) if exc.payload is not None else str(exc)
            raise RemoteCreationFailed(f"Printify Product Creation Failed: {detail}") from exc

        logger.info(
            "listing_created",
            product_id=product_id,
            blueprint_id=blueprint.id,
            provider_id=resolution.provider_id,
            variant_id=resolution.variant_id,
            mockups_uploaded=len(mockup_ids),
            failures=[f.model_dump() for f in self.failures],
        )
        yield emit(Stage.DONE, "Success!")
        yield TerminalEnvelope(
            success=True,
            message="Product Created Successfully.",
            data=ListingResultData(
                blueprint_id=blueprint.id,
                blueprint_title=blueprint.title,
                blueprint_brand=blueprint.brand,
                product_type=listing.product_type,
                listing_title=listing.details.title,
                mockups_uploaded=len(mockup_ids),
                product_id=product_id,
                provider_id=resolution.provider_id,
                variant_id=resolution.variant_id,
            ),
        )
