"""Shared fixtures: an in-memory Printify API and ZIP archive builders.

FakePrintify answers the five Printify endpoints the pipeline uses through
httpx.MockTransport, so every test runs without network access.
"""

from __future__ import annotations

import json
import re
import zipfile
from pathlib import Path
from typing import Any

import httpx
import pytest

from podlister.activities.catalog_cache import CatalogCache
from podlister.models.contracts import CatalogEntry
from podlister.utils.printify import PrintifyClient

BASE_URL = "https://printify.test/v1"

_PROVIDERS_RE = re.compile(r"^/v1/catalog/blueprints/(\d+)/print_providers\.json$")
_VARIANTS_RE = re.compile(r"^/v1/catalog/blueprints/(\d+)/print_providers/(\d+)/variants\.json$")
_PRODUCTS_RE = re.compile(r"^/v1/shops/([^/]+)/products\.json$")


def blueprint(id: int, title: str, brand: str, model: str = "") -> dict[str, Any]:
    return {"id": id, "title": title, "brand": brand, "model": model, "images": []}


DEFAULT_BLUEPRINTS = [
    blueprint(6, "Unisex Heavy Cotton Tee", "Gildan", "5000"),
    blueprint(12, "Unisex Jersey Short Sleeve Tee", "Bella+Canvas", "3001"),
    blueprint(77, "Unisex Heavy Blend Hooded Sweatshirt", "Gildan", "18500"),
    blueprint(49, "Unisex Heavy Blend Crewneck Sweatshirt", "Gildan", "18000"),
    blueprint(68, "Mug 11oz", "Generic brand", "11oz"),
]


class FakePrintify:
    """Mutable stand-in for the Printify v1 API."""

    def __init__(self) -> None:
        self.blueprints: list[dict[str, Any]] = list(DEFAULT_BLUEPRINTS)
        self.blueprint_status = 200
        # blueprint_id -> provider list
        self.providers: dict[int, list[dict[str, Any]]] = {}
        # (blueprint_id, provider_id) -> variant list, an int HTTP status to fail with,
        # or a dict sent back verbatim as the response body
        self.variants: dict[tuple[int, int], list[dict[str, Any]] | int | dict[str, Any]] = {}
        self.failing_uploads: set[str] = set()
        self.product_error: tuple[int, Any] | None = None
        self.uploads: list[dict[str, Any]] = []
        self.products: list[tuple[str, dict[str, Any]]] = []
        self.requests: list[tuple[str, str]] = []

    def offer(self, blueprint_id: int, provider_id: int, variants: list[dict] | int | dict) -> None:
        """Register a provider for a blueprint with its variants (or failure status)."""
        self.providers.setdefault(blueprint_id, []).append(
            {"id": provider_id, "title": f"Provider {provider_id}"}
        )
        self.variants[(blueprint_id, provider_id)] = variants

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path))

        if path == "/v1/catalog/blueprints.json":
            if self.blueprint_status != 200:
                return httpx.Response(self.blueprint_status, json={"message": "Unauthenticated"})
            return httpx.Response(200, json=self.blueprints)

        if m := _PROVIDERS_RE.match(path):
            return httpx.Response(200, json=self.providers.get(int(m.group(1)), []))

        if m := _VARIANTS_RE.match(path):
            found = self.variants.get((int(m.group(1)), int(m.group(2))), [])
            if isinstance(found, int):
                return httpx.Response(found, json={"message": "provider unavailable"})
            if isinstance(found, dict):
                return httpx.Response(200, json=found)
            return httpx.Response(200, json={"id": int(m.group(1)), "variants": found})

        if path == "/v1/uploads/images.json":
            body = json.loads(request.content)
            if body["file_name"] in self.failing_uploads:
                return httpx.Response(400, json={"message": "Image is invalid"})
            self.uploads.append(body)
            return httpx.Response(200, json={"id": f"img-{len(self.uploads)}"})

        if m := _PRODUCTS_RE.match(path):
            if self.product_error is not None:
                status, payload = self.product_error
                return httpx.Response(status, json=payload)
            body = json.loads(request.content)
            self.products.append((m.group(1), body))
            return httpx.Response(200, json={"id": f"prod-{len(self.products)}"})

        return httpx.Response(404, json={"message": f"unexpected path {path}"})

    def count(self, method: str, path_fragment: str) -> int:
        return sum(1 for m, p in self.requests if m == method and path_fragment in p)


def write_zip(path: Path, files: dict[str, bytes | str]) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return path


@pytest.fixture
def fake_printify() -> FakePrintify:
    return FakePrintify()


@pytest.fixture
async def http_client(fake_printify):
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_printify.handler)) as c:
        yield c


@pytest.fixture
def printify_client(http_client) -> PrintifyClient:
    return PrintifyClient(http_client, "test-token", base_url=BASE_URL, timeout=5.0)


@pytest.fixture
def catalog_cache(printify_client) -> CatalogCache:
    async def _fetch(api_key: str) -> list[CatalogEntry]:
        return await printify_client.list_blueprints()

    return CatalogCache(_fetch, ttl_seconds=3600)


@pytest.fixture
def make_archive(tmp_path):
    """Build a ZIP in tmp_path from a {name: content} mapping."""
    counter = iter(range(1_000))

    def _make(files: dict[str, bytes | str]) -> Path:
        return write_zip(tmp_path / f"listing-{next(counter)}.zip", files)

    return _make
