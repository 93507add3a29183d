"""
Page discovery and natural (numeric-aware) ordering.
"""

import logging
import re
import uuid
from collections.abc import Iterable
from pathlib import Path

from .models import Page

logger = logging.getLogger("mangamotion")

SUPPORTED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".bmp", ".gif")

_DIGITS_RE = re.compile(r"(\d+)")


def natural_key(name: str) -> tuple:
    """Sort key that orders 'page2' before 'page10'."""
    # split() with a capture group alternates text, digits, text, ...
    parts = _DIGITS_RE.split(name)
    key = tuple((0, int(p)) if i % 2 else (1, p.casefold()) for i, p in enumerate(parts) if p)
    return key, name


def new_page_id() -> str:
    """Random id, unique within a session."""
    return uuid.uuid4().hex[:12]


def make_pages(paths: Iterable[str | Path]) -> list[Page]:
    """Build the ordered page list from image paths.

    Non-image files are skipped. Order is fixed here and never changed later.
    """
    images = []
    for p in paths:
        p = Path(p)
        if p.suffix.lower() not in SUPPORTED_EXTENSIONS:
            logger.debug(f"Skipping non-image file: {p.name}")
            continue
        images.append(p)

    images.sort(key=lambda p: natural_key(p.name))
    return [Page(id=new_page_id(), name=p.name, path=p) for p in images]


def discover_pages(input_dir: str | Path) -> list[Page]:
    """Find all supported images in a directory, in natural filename order."""
    input_dir = Path(input_dir)
    if not input_dir.is_dir():
        raise RuntimeError(f"Pages directory not found: {input_dir}")

    pages = make_pages(p for p in input_dir.iterdir() if p.is_file())
    logger.info(f"Found {len(pages)} pages in {input_dir}")
    return pages
