"""
Tests for OCR collaborators.
"""

import asyncio
import base64
from types import SimpleNamespace

import pytest

from mangamotion.models import Page
from mangamotion.ocr import OpenAIVisionOCR, SidecarTextOCR, image_to_data_url


class FakeCompletions:
    """Stands in for ``client.chat.completions`` and echoes the page's bytes back."""

    def __init__(self, fail_on=None, slow_on=None):
        self.fail_on = fail_on
        self.slow_on = slow_on
        self.models = []
        self.finished = []

    async def create(self, model, messages, **kwargs):
        self.models.append(model)
        url = messages[0]["content"][1]["image_url"]["url"]
        payload = base64.b64decode(url.split(",", 1)[1]).decode("utf-8")
        if payload == self.fail_on:
            raise RuntimeError("rate limited")
        # finish out of order to check result ordering
        await asyncio.sleep(0.01 if payload.endswith("1") else 0)
        if payload == self.slow_on:
            await asyncio.sleep(0.2)
        self.finished.append(payload)
        message = SimpleNamespace(content=f"  text of {payload}  ")
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def _write_pages(tmp_path, n):
    pages = []
    for i in range(n):
        path = tmp_path / f"{i + 1}.png"
        path.write_bytes(f"img{i + 1}".encode())
        pages.append(Page(id=f"p{i}", name=path.name, path=path))
    return pages


def test_image_to_data_url(tmp_path):
    """Images are inlined with a mime type from the suffix."""
    path = tmp_path / "a.webp"
    path.write_bytes(b"abc")
    assert image_to_data_url(path) == "data:image/webp;base64,YWJj"


def test_openai_ocr_keeps_page_order(tmp_path):
    """Results follow input order even when requests finish out of order."""
    pages = _write_pages(tmp_path, 3)
    completions = FakeCompletions()
    ocr = OpenAIVisionOCR(_client(completions), model="vision-test", max_concurrent=2)
    fractions = []

    results = asyncio.run(ocr.recognize(pages, fractions.append))

    assert [r.image_id for r in results] == ["p0", "p1", "p2"]
    assert [r.text for r in results] == ["text of img1", "text of img2", "text of img3"]
    assert fractions[0] == 0.0 and fractions[-1] == 1.0
    assert fractions == sorted(fractions)
    assert completions.models == ["vision-test"] * 3


def test_openai_ocr_failure_propagates(tmp_path):
    """A failing page fails the whole call."""
    pages = _write_pages(tmp_path, 2)
    ocr = OpenAIVisionOCR(_client(FakeCompletions(fail_on="img2")))

    with pytest.raises(RuntimeError, match="rate limited"):
        asyncio.run(ocr.recognize(pages))


def test_openai_ocr_failure_cancels_other_pages(tmp_path):
    """Pages still in flight are cancelled and stop reporting progress."""
    pages = _write_pages(tmp_path, 2)
    completions = FakeCompletions(fail_on="img1", slow_on="img2")
    ocr = OpenAIVisionOCR(_client(completions))
    fractions = []

    async def scenario():
        with pytest.raises(RuntimeError, match="rate limited"):
            await ocr.recognize(pages, fractions.append)
        await asyncio.sleep(0.3)

    asyncio.run(scenario())

    assert fractions == [0.0]
    assert completions.finished == []


def test_openai_ocr_requires_client():
    """A missing client is reported up front."""
    with pytest.raises(RuntimeError):
        OpenAIVisionOCR(None)


def test_sidecar_ocr(tmp_path):
    """Sidecar text files are read; missing ones count as empty pages."""
    pages = _write_pages(tmp_path, 2)
    (tmp_path / "1.txt").write_text("Hello world.", encoding="utf-8")
    fractions = []

    results = asyncio.run(SidecarTextOCR().recognize(pages, fractions.append))

    assert [(r.image_id, r.text) for r in results] == [("p0", "Hello world."), ("p1", "")]
    assert fractions == [0.5, 1.0]
