"""
Caption segmentation, duration estimation and timeline building.
"""

import dataclasses
import json
import logging
import math
import re
from collections.abc import Sequence
from pathlib import Path

from .models import CaptionUnit, OcrResult, Page

logger = logging.getLogger("mangamotion")

MS_PER_CHAR = 60
MIN_CAPTION_MS = 1500
MAX_CAPTION_MS = 7000
MIN_EDIT_MS = 500
FALLBACK_CAPTION_MS = 2000

# Paragraph breaks, or whitespace right after a sentence terminator
_CAPTION_SPLIT_RE = re.compile(r"\n{2,}|(?<=[.!?])\s+")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def split_caption_text(text: str) -> list[str]:
    """Split one page's OCR text into trimmed, non-empty caption strings."""
    if not text:
        return []
    parts = _CAPTION_SPLIT_RE.split(text.replace("\r", ""))
    return [p.strip() for p in parts if p and p.strip()]


def estimate_duration_ms(text: str) -> int:
    """Estimate how long a caption should stay on screen (~60 ms per character)."""
    raw = math.floor(MS_PER_CHAR * len(text) + 0.5)
    return max(MIN_CAPTION_MS, min(MAX_CAPTION_MS, raw))


def build_timeline(ocr_results: Sequence[OcrResult], pages: Sequence[Page]) -> list[CaptionUnit]:
    """Turn per-page OCR text into an ordered list of timed captions.

    Pages with no usable text contribute nothing. If the whole run yields no
    captions, one placeholder caption per page is emitted instead.
    """
    captions: list[CaptionUnit] = []
    for page_index, result in enumerate(ocr_results):
        chunks = split_caption_text(result.text)
        for i, chunk in enumerate(chunks):
            captions.append(
                CaptionUnit(
                    id=f"{result.image_id}-{i}",
                    text=chunk,
                    duration_ms=estimate_duration_ms(chunk),
                    page_index=page_index,
                )
            )
        logger.debug(f"Page {page_index + 1}: {len(chunks)} captions")

    if not captions:
        logger.info("OCR produced no text; using one placeholder caption per page")
        captions = [
            CaptionUnit(
                id=f"{page.id}-fallback",
                text=f"Page {idx + 1}",
                duration_ms=FALLBACK_CAPTION_MS,
                page_index=idx,
            )
            for idx, page in enumerate(pages)
        ]
    return captions


def clamp_duration(value) -> int:
    """Coerce a user-supplied duration to an integer of at least 500 ms.

    Strings are read up to the first non-digit ("1200ms" -> 1200); anything
    that is not a number counts as 0 before clamping.
    """
    if isinstance(value, bool):
        parsed = 0
    elif isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        parsed = int(value) if math.isfinite(value) else 0
    elif isinstance(value, str):
        m = _LEADING_INT_RE.match(value)
        parsed = int(m.group(1)) if m else 0
    else:
        parsed = 0
    return max(MIN_EDIT_MS, parsed)


def _index_of(captions: Sequence[CaptionUnit], caption_id: str) -> int:
    for idx, cap in enumerate(captions):
        if cap.id == caption_id:
            return idx
    raise KeyError(f"Unknown caption id: {caption_id}")


def with_text(captions: Sequence[CaptionUnit], caption_id: str, text: str) -> tuple[CaptionUnit, ...]:
    """Return a new caption tuple with one caption's text replaced."""
    idx = _index_of(captions, caption_id)
    updated = list(captions)
    updated[idx] = dataclasses.replace(captions[idx], text=text)
    return tuple(updated)


def with_duration(captions: Sequence[CaptionUnit], caption_id: str, value) -> tuple[CaptionUnit, ...]:
    """Return a new caption tuple with one caption's duration replaced (clamped)."""
    idx = _index_of(captions, caption_id)
    updated = list(captions)
    updated[idx] = dataclasses.replace(captions[idx], duration_ms=clamp_duration(value))
    return tuple(updated)


def total_duration_ms(captions: Sequence[CaptionUnit]) -> int:
    """Sum of all caption durations."""
    return sum(c.duration_ms for c in captions)


def write_captions_manifest(captions: Sequence[CaptionUnit], path: str | Path) -> None:
    """Write captions to an editable JSON manifest."""
    data = [dataclasses.asdict(c) for c in captions]
    Path(path).write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def read_captions_manifest(path: str | Path) -> list[CaptionUnit]:
    """Read captions back from a JSON manifest, clamping edited durations."""
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"Caption manifest must be a JSON array: {path}")

    out: list[CaptionUnit] = []
    for idx, item in enumerate(raw):
        try:
            out.append(
                CaptionUnit(
                    id=str(item["id"]),
                    text=str(item.get("text", "")),
                    duration_ms=clamp_duration(item.get("duration_ms")),
                    page_index=int(item["page_index"]),
                )
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid caption #{idx + 1} in {path}: {e}") from e
    return out
