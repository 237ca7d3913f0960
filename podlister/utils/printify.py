"""Printify v1 REST client.

Thin async wrapper over the five endpoints the listing pipeline needs:
blueprint catalog, providers per blueprint, variants per provider, image
upload, product creation. Every call carries an explicit timeout; nothing
is retried here. Callers decide what a failure means.
"""

from __future__ import annotations

import base64
from typing import Any

import httpx
import structlog
from pydantic import TypeAdapter, ValidationError

from podlister.config import settings
from podlister.models.contracts import BlueprintVariant, CatalogEntry, PrintProvider

logger = structlog.get_logger()

_BLUEPRINTS = TypeAdapter(list[CatalogEntry])
_PROVIDERS = TypeAdapter(list[PrintProvider])
_VARIANTS = TypeAdapter(list[BlueprintVariant])


class PrintifyError(Exception):
    """A Printify call failed: transport, HTTP status, or a malformed response body.

    ``payload`` holds the decoded error body (or raw text) exactly as
    Printify sent it, so it can be surfaced verbatim.
    """

    def __init__(self, message: str, status_code: int | None = None, payload: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload

    def describe(self) -> str:
        """Best human-readable reason: Printify's message, else the payload, else ours."""
        if isinstance(self.payload, dict) and self.payload.get("message"):
            return str(self.payload["message"])
        if self.payload:
            return str(self.payload)
        return str(self)


def _decode_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _validate_items(adapter: TypeAdapter, items: list, what: str, payload: Any) -> list:
    try:
        return adapter.validate_python(items)
    except ValidationError as exc:
        raise PrintifyError(
            f"Malformed {what} in Printify response: {exc.error_count()} invalid field(s)",
            payload=payload,
        ) from exc


class PrintifyClient:
    """Printify API bound to one access token."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self._http = http_client
        self._headers = {"Authorization": f"Bearer {api_key}"}
        self._base_url = (base_url or settings.printify_api_base).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.printify_timeout_seconds

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        url = f"{self._base_url}{path}"
        try:
            response = await self._http.request(
                method,
                url,
                headers=self._headers,
                json=json,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            raise PrintifyError(f"Timeout calling Printify {method} {path}") from exc
        except httpx.RequestError as exc:
            raise PrintifyError(
                f"Network error calling Printify {method} {path}: {type(exc).__name__}"
            ) from exc

        if response.status_code >= 400:
            payload = _decode_body(response)
            logger.warning(
                "printify_http_error",
                method=method,
                path=path,
                status=response.status_code,
            )
            raise PrintifyError(
                f"Printify {method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
                payload=payload,
            )
        return _decode_body(response)

    async def list_blueprints(self) -> list[CatalogEntry]:
        data = await self._request("GET", "/catalog/blueprints.json")
        if not isinstance(data, list):
            raise PrintifyError("Unexpected blueprint catalog shape", payload=data)
        return _validate_items(_BLUEPRINTS, data, "blueprint", data)

    async def list_providers(self, blueprint_id: int) -> list[PrintProvider]:
        data = await self._request(
            "GET", f"/catalog/blueprints/{blueprint_id}/print_providers.json"
        )
        if not isinstance(data, list):
            raise PrintifyError("Unexpected print provider list shape", payload=data)
        return _validate_items(_PROVIDERS, data, "print provider", data)

    async def list_variants(self, blueprint_id: int, provider_id: int) -> list[BlueprintVariant]:
        data = await self._request(
            "GET",
            f"/catalog/blueprints/{blueprint_id}/print_providers/{provider_id}/variants.json",
        )
        variants = data.get("variants") if isinstance(data, dict) else None
        if not isinstance(variants, list):
            raise PrintifyError("Unexpected variant list shape", payload=data)
        return _validate_items(_VARIANTS, variants, "variant", data)

    async def upload_image(self, file_name: str, contents: bytes) -> str:
        """Upload raw image bytes. Returns Printify's opaque image id."""
        data = await self._request(
            "POST",
            "/uploads/images.json",
            json={
                "file_name": file_name,
                "contents": base64.b64encode(contents).decode("ascii"),
            },
        )
        if not isinstance(data, dict) or "id" not in data:
            raise PrintifyError("Image upload response carried no id", payload=data)
        logger.info("printify_image_uploaded", file_name=file_name, size=len(contents))
        return str(data["id"])

    async def create_product(self, shop_id: str, payload: dict[str, Any]) -> str:
        data = await self._request("POST", f"/shops/{shop_id}/products.json", json=payload)
        if not isinstance(data, dict) or "id" not in data:
            raise PrintifyError("Product creation response carried no id", payload=data)
        return str(data["id"])
