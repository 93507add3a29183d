"""
Tests for caption segmentation, duration estimation and timeline building.
"""

from pathlib import Path

import pytest

from mangamotion.captions import (
    build_timeline,
    clamp_duration,
    estimate_duration_ms,
    read_captions_manifest,
    split_caption_text,
    with_duration,
    with_text,
    write_captions_manifest,
)
from mangamotion.models import CaptionUnit, OcrResult, Page


def _pages(n: int) -> list[Page]:
    return [Page(id=f"p{i}", name=f"{i + 1:02d}.png", path=Path(f"{i + 1:02d}.png")) for i in range(n)]


def test_split_sentences_and_paragraphs():
    """Test splitting on sentence terminators and blank lines."""
    text = "Hello there! How are you?\r\n\r\nFine.  Thanks\n\n\nBye"
    assert split_caption_text(text) == ["Hello there!", "How are you?", "Fine.", "Thanks", "Bye"]


def test_split_keeps_single_newlines_inside_caption():
    """A single line break without terminal punctuation does not split."""
    assert split_caption_text("first line\nsecond line") == ["first line\nsecond line"]


def test_split_empty_and_whitespace():
    """Empty or blank text yields nothing."""
    assert split_caption_text("") == []
    assert split_caption_text("   \n\n  \r\n ") == []


def test_split_preserves_order_and_trims():
    """Output is trimmed and keeps source order."""
    text = "  One.   Two!\n\n  Three?  "
    parts = split_caption_text(text)
    assert parts == ["One.", "Two!", "Three?"]
    positions = [text.index(p) for p in parts]
    assert positions == sorted(positions)


def test_split_does_not_break_without_whitespace():
    """Terminal punctuation not followed by whitespace stays in place."""
    assert split_caption_text("v1.2 is out...really") == ["v1.2 is out...really"]


def test_estimate_duration_bounds():
    """Durations are clamped to [1500, 7000]."""
    assert estimate_duration_ms("") == 1500
    assert estimate_duration_ms("Hi.") == 1500
    assert estimate_duration_ms("x" * 30) == 1800
    assert estimate_duration_ms("x" * 116) == 6960
    assert estimate_duration_ms("x" * 500) == 7000


def test_estimate_duration_monotonic():
    """Longer captions never get shorter durations."""
    durations = [estimate_duration_ms("a" * n) for n in range(0, 200)]
    assert durations == sorted(durations)
    assert all(1500 <= d <= 7000 for d in durations)


def test_build_timeline_ids_and_order():
    """Captions follow page order, then segmentation order, with per-page ids."""
    pages = _pages(2)
    results = [
        OcrResult(image_id="p0", text="First. Second."),
        OcrResult(image_id="p1", text="Third."),
    ]
    caps = build_timeline(results, pages)

    assert [c.text for c in caps] == ["First.", "Second.", "Third."]
    assert [c.id for c in caps] == ["p0-0", "p0-1", "p1-0"]
    assert [c.page_index for c in caps] == [0, 0, 1]
    assert all(c.duration_ms == 1500 for c in caps)


def test_build_timeline_fallback():
    """All-empty OCR gives exactly one 2000 ms placeholder per page."""
    pages = _pages(3)
    results = [OcrResult(image_id=p.id, text="") for p in pages]
    caps = build_timeline(results, pages)

    assert len(caps) == 3
    assert [c.text for c in caps] == ["Page 1", "Page 2", "Page 3"]
    assert [c.page_index for c in caps] == [0, 1, 2]
    assert all(c.duration_ms == 2000 for c in caps)
    assert len({c.id for c in caps}) == 3


def test_build_timeline_empty_page_contributes_nothing():
    """One empty page does not trigger the fallback when others have text."""
    pages = _pages(3)
    results = [
        OcrResult(image_id="p0", text="Hello world."),
        OcrResult(image_id="p1", text=""),
        OcrResult(image_id="p2", text="Line one.\n\nLine two."),
    ]
    caps = build_timeline(results, pages)

    assert [(c.page_index, c.text) for c in caps] == [
        (0, "Hello world."),
        (2, "Line one."),
        (2, "Line two."),
    ]


def test_build_timeline_no_pages():
    """No pages and no results gives an empty timeline."""
    assert build_timeline([], []) == []


@pytest.mark.parametrize(
    "value, expected",
    [
        (-50, 500),
        ("abc", 500),
        (None, 500),
        ("", 500),
        (499, 500),
        (2500, 2500),
        ("1200ms", 1200),
        (" 3000 ", 3000),
        (1800.9, 1800),
        (float("nan"), 500),
    ],
)
def test_clamp_duration(value, expected):
    """User durations are parsed leniently and floored at 500 ms."""
    assert clamp_duration(value) == expected


def test_edits_return_new_snapshot():
    """Edits leave the original tuple untouched."""
    caps = (
        CaptionUnit(id="a", text="A", duration_ms=1500, page_index=0),
        CaptionUnit(id="b", text="B", duration_ms=2000, page_index=0),
    )
    edited = with_text(caps, "b", "Bee")
    edited = with_duration(edited, "a", -50)

    assert caps[1].text == "B"
    assert caps[0].duration_ms == 1500
    assert edited[1].text == "Bee"
    assert edited[0].duration_ms == 500


def test_edit_unknown_id():
    """Editing a missing caption raises KeyError."""
    with pytest.raises(KeyError):
        with_text((), "missing", "x")


def test_manifest_roundtrip_clamps(tmp_path):
    """Manifest keeps captions and clamps hand-edited durations."""
    caps = [
        CaptionUnit(id="p0-0", text="Hello", duration_ms=1500, page_index=0),
        CaptionUnit(id="p1-0", text="Bye", duration_ms=2000, page_index=1),
    ]
    path = tmp_path / "captions.json"
    write_captions_manifest(caps, path)
    assert read_captions_manifest(path) == caps

    path.write_text(
        '[{"id": "x", "text": "Hi", "duration_ms": "12", "page_index": 0}]', encoding="utf-8"
    )
    assert read_captions_manifest(path)[0].duration_ms == 500


def test_manifest_rejects_bad_entries(tmp_path):
    """Entries without a page index are reported with their position."""
    path = tmp_path / "captions.json"
    path.write_text('[{"id": "x", "text": "Hi"}]', encoding="utf-8")
    with pytest.raises(ValueError, match="#1"):
        read_captions_manifest(path)
