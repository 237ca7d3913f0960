"""ZIP archive reader for listing uploads.

Pulls out the two things the pipeline cares about: image entries (artwork
and mockups) and the listing text file. macOS resource-fork folders
(``__MACOSX/``) are skipped.
"""

from __future__ import annotations

import re
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from podlister.errors import InvalidArchive
from podlister.models.contracts import ArchiveEntry

logger = structlog.get_logger()

IMAGE_NAME_RE = re.compile(r"\.(png|jpe?g)$", re.IGNORECASE)
_MACOS_METADATA_PREFIX = "__MACOSX/"


@dataclass
class ListingArchive:
    images: list[ArchiveEntry] = field(default_factory=list)
    listing_text: str | None = None
    text_file_name: str | None = None


def read_listing_archive(path: str | Path) -> ListingArchive:
    """Read images and the first ``.txt`` entry from a ZIP file.

    Raises InvalidArchive if the file is not a readable ZIP.
    """
    result = ListingArchive()
    try:
        with zipfile.ZipFile(path) as zf:
            for info in zf.infolist():
                name = info.filename
                if info.is_dir() or name.startswith(_MACOS_METADATA_PREFIX):
                    continue
                if IMAGE_NAME_RE.search(name):
                    result.images.append(ArchiveEntry(name=name, data=zf.read(info)))
                elif result.listing_text is None and name.lower().endswith(".txt"):
                    result.listing_text = zf.read(info).decode("utf-8", errors="replace")
                    result.text_file_name = name
    except (zipfile.BadZipFile, OSError) as exc:
        raise InvalidArchive(f"Could not read ZIP archive: {exc}") from exc

    logger.info(
        "archive_read",
        images=len(result.images),
        text_file=result.text_file_name,
    )
    return result
