"""Error taxonomy for the listing pipeline.

Every fatal error is a ``ListingError``; the creation workflow turns it into
the single failure envelope at the end of the progress stream.
``MockupUploadFailed`` is the one non-fatal member: it is caught per asset
and recorded, never surfaced as the terminal result.
"""

from __future__ import annotations

from typing import Any


class ListingError(Exception):
    """Base class for failures that end a listing request."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CatalogUnavailable(ListingError):
    """The remote blueprint catalog could not be fetched."""


class IncompleteListing(ListingError):
    """Strict metadata validation found required fields missing."""

    def __init__(self, missing: list[str]) -> None:
        super().__init__(f"Listing text is missing required fields: {', '.join(missing)}")
        self.missing = missing


class InvalidArchive(ListingError):
    """The uploaded file is not a readable ZIP archive."""


class NoArtworkFound(ListingError):
    """The archive holds no image entries."""


class NoBlueprintMatch(ListingError):
    """Override, hint and safety-net matching all came up empty."""


class NoAvailableVariant(ListingError):
    """No provider exposed an enabled variant for the blueprint."""

    def __init__(self, message: str, attempts: list[Any] | None = None) -> None:
        super().__init__(message)
        self.attempts = attempts or []


class RemoteUploadFailed(ListingError):
    """Uploading the main artwork failed."""


class RemoteCreationFailed(ListingError):
    """Printify rejected the product creation request."""


class MockupUploadFailed(Exception):
    """A single mockup upload failed (non-fatal)."""

    def __init__(self, file_name: str, reason: str) -> None:
        super().__init__(f"Mockup {file_name} failed to upload: {reason}")
        self.file_name = file_name
        self.reason = reason
