"""Listing pipeline contract models.

Shared by the activities, the creation workflow and the HTTP routes.
Printify-facing shapes keep Printify's field names; the progress stream
and terminal envelope keep the camelCase keys the upload form reads.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# === Catalog ===


class CatalogEntry(BaseModel):
    """One Printify blueprint as returned by /catalog/blueprints.json."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int
    title: str
    brand: str = ""
    model: str = ""
    images: tuple[str, ...] = ()

    @field_validator("brand", "model", "title", mode="before")
    @classmethod
    def _none_to_empty(cls, value: str | None) -> str:
        return value or ""


class CatalogSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    entries: tuple[CatalogEntry, ...] = ()
    fetched_at: float


class PrintProvider(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    title: str = ""


class BlueprintVariant(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    title: str = ""
    is_enabled: bool = True


# === Listing metadata ===


class ListingAnalysis(BaseModel):
    """Cleaned listing fields, from the text-cleanup model or the upload form."""

    title: str = ""
    description: str = ""
    tags: list[str] = []
    catalog_search_term: str = ""
    product_type: str = ""


class ProductDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    description: str = ""
    tags: tuple[str, ...] = ()
    raw_product_type_label: str


class ResolvedListing(BaseModel):
    model_config = ConfigDict(frozen=True)

    details: ProductDetails
    search_hint: str | None = None
    source: Literal["ai", "text", "placeholder"]

    @property
    def product_type(self) -> str:
        return self.details.raw_product_type_label


class BlueprintOverrideRule(BaseModel):
    """User-declared keyword -> blueprint id mapping."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    keyword: str
    blueprint_id: int = Field(alias="blueprintId")


# === Resolution ===


class BlueprintMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    entry: CatalogEntry
    stage: Literal["override", "hint", "safety_net"]
    term: str
    score: int | None = None


class AttemptFailure(BaseModel):
    """A non-fatal failed attempt (one provider, one mockup upload)."""

    subject: str
    error: str


class ProviderSelection(BaseModel):
    provider_id: int
    provider_title: str = ""
    variant_id: int
    attempts: list[AttemptFailure] = []


class ResolutionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    blueprint: CatalogEntry
    provider_id: int
    variant_id: int


# === Archive ===


class ArchiveEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    data: bytes


class ArchiveAssetSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    main_image: ArchiveEntry
    mockups: tuple[ArchiveEntry, ...] = ()


# === Progress stream ===


class ProgressEvent(BaseModel):
    type: Literal["progress"] = "progress"
    percent: int = Field(ge=0, le=100)
    message: str


class ListingResultData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    blueprint_id: int = Field(alias="blueprintId")
    blueprint_title: str = Field(alias="blueprintTitle")
    blueprint_brand: str = Field(alias="blueprintBrand")
    product_type: str = Field(alias="productType")
    listing_title: str = Field(alias="listingTitle")
    mockups_uploaded: int = Field(alias="mockupsUploaded", ge=0)
    product_id: str | None = Field(default=None, alias="productId")
    provider_id: int = Field(alias="providerId")
    variant_id: int = Field(alias="variantId")


class TerminalEnvelope(BaseModel):
    success: bool
    message: str
    data: ListingResultData | None = None

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# === API Request/Response Models ===


class ListingRequest(BaseModel):
    """Everything one upload needs once the multipart form is decoded."""

    archive_path: str
    api_key: str
    shop_id: str
    analysis: ListingAnalysis | None = None
    # Form search term, used when the chosen metadata source has no hint of its own.
    search_hint: str | None = None
    overrides: list[BlueprintOverrideRule] = []
    strict: bool = False


class ErrorResponse(BaseModel):
    error: str
    message: str
    retryable: bool
    detail: str | None = None
