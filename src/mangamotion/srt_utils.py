"""
SRT writing and parsing for caption tracks.
"""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from .models import CaptionUnit

logger = logging.getLogger("mangamotion")

DEFAULT_SRT_NAME = "subtitles.srt"

_TIMING_RE = re.compile(r"(\d+):(\d\d):(\d\d),(\d\d\d)\s+-->\s+(\d+):(\d\d):(\d\d),(\d\d\d)")


@dataclass(frozen=True)
class Cue:
    """One parsed SRT cue, times in milliseconds."""

    start_ms: int
    end_ms: int
    text: str


def format_timestamp(ms: int) -> str:
    """Format milliseconds as HH:MM:SS,mmm (hours are not wrapped)."""
    h = ms // 3_600_000
    m = (ms % 3_600_000) // 60_000
    s = (ms % 60_000) // 1000
    return f"{h:02}:{m:02}:{s:02},{ms % 1000:03}"


def captions_to_srt(captions: Sequence[CaptionUnit]) -> str:
    """Serialize captions back to back, starting at 0."""
    lines: list[str] = []
    t = 0
    for i, cap in enumerate(captions, 1):
        start, end = t, t + cap.duration_ms
        t = end
        lines.append(str(i))
        lines.append(f"{format_timestamp(start)} --> {format_timestamp(end)}")
        # a blank line would terminate the cue early
        lines.extend(ln for ln in cap.text.replace("\r", "").split("\n") if ln.strip())
        lines.append("")
    return "\n".join(lines)


def write_srt(captions: Sequence[CaptionUnit], path: str | Path) -> Path:
    """Write captions to an SRT file and return its path."""
    path = Path(path)
    path.write_text(captions_to_srt(captions), encoding="utf-8")
    logger.info(f"Saved SRT -> {path} ({len(captions)} cues)")
    return path


def parse_srt_text(raw: str) -> list[Cue]:
    """Parse SRT content into cues."""

    def to_ms(h: str, m: str, s: str, ms: str) -> int:
        return int(h) * 3_600_000 + int(m) * 60_000 + int(s) * 1000 + int(ms)

    blocks = re.split(r"\n\s*\n", raw.replace("\r", "").strip())
    out: list[Cue] = []
    for b in blocks:
        lines = [ln for ln in b.splitlines() if ln.strip()]
        if lines and re.match(r"^\d+$", lines[0].strip()):
            lines = lines[1:]
        if not lines:
            continue
        m = _TIMING_RE.match(lines[0].strip())
        if not m:
            logger.debug(f"Skipping malformed SRT block: {b[:40]!r}")
            continue
        g = m.groups()
        out.append(
            Cue(
                start_ms=to_ms(*g[:4]),
                end_ms=to_ms(*g[4:]),
                text="\n".join(ln.strip() for ln in lines[1:]),
            )
        )
    return out


def parse_srt(path: str | Path) -> list[Cue]:
    """Parse an SRT file into cues."""
    return parse_srt_text(Path(path).read_text(encoding="utf-8"))
