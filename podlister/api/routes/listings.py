"""Listing API endpoints.

POST /api/upload streams NDJSON progress while the creation workflow runs:
one ``{"type": "progress", ...}`` line per workflow state, then exactly one
terminal ``{"success": ..., "message": ..., "data": ...}`` line.

GET /api/catalog exposes the cached blueprint catalog for the caller's
Printify token (the upload form's catalog viewer reads it).
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import AsyncIterator

import structlog
from fastapi import APIRouter, BackgroundTasks, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import TypeAdapter, ValidationError

from podlister.config import settings
from podlister.errors import CatalogUnavailable
from podlister.models.contracts import (
    BlueprintOverrideRule,
    CatalogEntry,
    ErrorResponse,
    ListingAnalysis,
    ListingRequest,
    ProgressEvent,
    TerminalEnvelope,
)
from podlister.utils import gemini_listing
from podlister.utils.printify import PrintifyClient
from podlister.workflows.create_listing import ListingCreationWorkflow

logger = structlog.get_logger()

router = APIRouter(tags=["listings"])

NDJSON_MEDIA_TYPE = "application/x-ndjson"
_UPLOAD_CHUNK_BYTES = 65_536

_override_rules = TypeAdapter(list[BlueprintOverrideRule])


class _ArchiveTooLarge(Exception):
    pass


def _error(status: int, code: str, message: str, *, retryable: bool = False) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content=ErrorResponse(error=code, message=message, retryable=retryable).model_dump(),
    )


def _ndjson_line(item: ProgressEvent | TerminalEnvelope) -> str:
    if isinstance(item, TerminalEnvelope):
        return json.dumps(item.to_wire()) + "\n"
    return item.model_dump_json() + "\n"


def _failure(status: int, message: str) -> Response:
    return Response(
        content=_ndjson_line(TerminalEnvelope(success=False, message=message)),
        status_code=status,
        media_type=NDJSON_MEDIA_TYPE,
    )


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def parse_override_rules(raw: str | None) -> list[BlueprintOverrideRule]:
    """Decode the form's ``blueprintMappings`` JSON. Blank means no overrides."""
    if raw is None or not raw.strip():
        return []
    return _override_rules.validate_json(raw)


def analysis_from_form(
    title: str | None,
    description: str | None,
    tags: str | None,
    search_term: str | None,
    product_type: str | None,
) -> ListingAnalysis | None:
    """Pre-cleaned metadata sent by the client; only counts when a title is present."""
    if not title or not title.strip():
        return None
    return ListingAnalysis(
        title=title,
        description=description or "",
        tags=[t.strip() for t in (tags or "").split(",") if t.strip()],
        catalog_search_term=search_term or "",
        product_type=product_type or "",
    )


async def _spool_upload(upload: UploadFile) -> str:
    """Copy the uploaded archive to a temp file, enforcing the size limit."""
    fd, path = tempfile.mkstemp(prefix="podlister-", suffix=".zip")
    total = 0
    try:
        with os.fdopen(fd, "wb") as out:
            while chunk := await upload.read(_UPLOAD_CHUNK_BYTES):
                total += len(chunk)
                if total > settings.max_archive_bytes:
                    raise _ArchiveTooLarge
                out.write(chunk)
    except BaseException:
        _remove_quietly(path)
        raise
    return path


def _remove_quietly(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("archive_cleanup_failed", path=path, error=str(exc))


@router.get(
    "/catalog",
    response_model=list[CatalogEntry],
    responses={401: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def get_catalog(request: Request):
    """Return the (cached) blueprint catalog for the caller's Printify token."""
    api_key = _bearer_token(request)
    if api_key is None:
        return _error(401, "missing_api_key", "Missing API Key")
    try:
        snapshot = await request.app.state.catalog_cache.get(api_key)
    except CatalogUnavailable as exc:
        return _error(502, "catalog_unavailable", exc.message, retryable=True)
    return list(snapshot.entries)


@router.post("/upload")
async def upload_listing(
    request: Request,
    zip_file: UploadFile | None = File(default=None, alias="zipFile"),
    printify_key: str | None = Form(default=None, alias="printifyKey"),
    store_id: str | None = Form(default=None, alias="storeId"),
    gemini_title: str | None = Form(default=None, alias="geminiTitle"),
    gemini_description: str | None = Form(default=None, alias="geminiDescription"),
    gemini_tags: str | None = Form(default=None, alias="geminiTags"),
    gemini_search_term: str | None = Form(default=None, alias="geminiSearchTerm"),
    gemini_product_type: str | None = Form(default=None, alias="geminiProductType"),
    blueprint_mappings: str | None = Form(default=None, alias="blueprintMappings"),
    strict: bool | None = Form(default=None),
):
    """Create a Printify product from an uploaded archive, streaming progress."""
    if zip_file is None or not printify_key:
        return _failure(400, "Missing file or API keys.")

    try:
        overrides = parse_override_rules(blueprint_mappings)
    except ValidationError as exc:
        logger.warning("blueprint_mappings_invalid", error=str(exc))
        return _failure(422, "blueprintMappings must be a JSON list of {keyword, blueprintId}.")

    try:
        archive_path = await _spool_upload(zip_file)
    except _ArchiveTooLarge:
        mb = settings.max_archive_bytes // (1024 * 1024)
        return _failure(413, f"Archive exceeds {mb} MB limit")

    listing_request = ListingRequest(
        archive_path=archive_path,
        api_key=printify_key,
        shop_id=store_id or settings.default_printify_shop_id,
        analysis=analysis_from_form(
            gemini_title,
            gemini_description,
            gemini_tags,
            gemini_search_term,
            gemini_product_type,
        ),
        search_hint=(gemini_search_term or "").strip() or None,
        overrides=overrides,
        strict=settings.strict_listing_fields if strict is None else strict,
    )
    workflow = ListingCreationWorkflow(
        catalog_cache=request.app.state.catalog_cache,
        printify=PrintifyClient(request.app.state.http_client, printify_key),
        analyzer=gemini_listing.analyze_listing_text if gemini_listing.is_configured() else None,
    )
    logger.info(
        "upload_received",
        file_name=zip_file.filename,
        shop_id=listing_request.shop_id,
        overrides=len(overrides),
        has_ai_metadata=listing_request.analysis is not None,
    )

    async def _stream() -> AsyncIterator[str]:
        try:
            async for item in workflow.run(listing_request):
                yield _ndjson_line(item)
        finally:
            _remove_quietly(archive_path)

    # Runs even when the client disconnects before the body is iterated.
    cleanup = BackgroundTasks()
    cleanup.add_task(_remove_quietly, archive_path)
    return StreamingResponse(_stream(), media_type=NDJSON_MEDIA_TYPE, background=cleanup)
