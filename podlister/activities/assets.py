"""Split archive images into the main artwork and gallery mockups."""

from __future__ import annotations

from collections.abc import Sequence

from podlister.errors import NoArtworkFound
from podlister.models.contracts import ArchiveAssetSet, ArchiveEntry


def pick_main_image(
    images: Sequence[ArchiveEntry],
    main_marker: str = "original",
    mockup_marker: str = "mockup",
) -> ArchiveEntry | None:
    """Marker match first, then the first non-mockup, then just the first image."""
    main_marker = main_marker.lower()
    mockup_marker = mockup_marker.lower()
    for entry in images:
        if main_marker in entry.name.lower():
            return entry
    for entry in images:
        if mockup_marker not in entry.name.lower():
            return entry
    return images[0] if images else None


def classify_assets(
    images: Sequence[ArchiveEntry],
    main_marker: str = "original",
    mockup_marker: str = "mockup",
) -> ArchiveAssetSet:
    main = pick_main_image(images, main_marker, mockup_marker)
    if main is None:
        raise NoArtworkFound("No valid image files found in ZIP.")
    # Identity, not name: archives can hold the same file name in two folders.
    mockups = tuple(entry for entry in images if entry is not main)
    return ArchiveAssetSet(main_image=main, mockups=mockups)
