"""
OCR collaborators: OpenAI vision transcription and sidecar text files.
"""

import asyncio
import base64
import logging
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Protocol

from .models import OcrResult, Page

logger = logging.getLogger("mangamotion")

# Optional OpenAI SDK
try:
    from openai import AsyncOpenAI
except ImportError:
    AsyncOpenAI = None

ProgressCallback = Callable[[float], None]

OCR_PROMPT = (
    "Transcribe all readable text on this manga page, including speech bubbles, "
    "captions and sound effects, in reading order.\n"
    "- Separate different bubbles or boxes with a blank line.\n"
    "- Do not translate, describe or comment on the artwork.\n"
    "- If there is no text, return an empty response.\n"
    "Return plain text only."
)

_MIME_BY_SUFFIX = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
}


class OcrService(Protocol):
    async def recognize(
        self, pages: Sequence[Page], on_progress: ProgressCallback | None = None
    ) -> list[OcrResult]:
        """Return one result per page, in input order."""


def image_to_data_url(path: str | Path) -> str:
    """Encode an image file as a base64 data URL."""
    path = Path(path)
    mime = _MIME_BY_SUFFIX.get(path.suffix.lower(), "image/jpeg")
    encoded = base64.b64encode(path.read_bytes()).decode("utf-8")
    return f"data:{mime};base64,{encoded}"


class OpenAIVisionOCR:
    """Transcribes pages with an OpenAI vision-capable chat model."""

    def __init__(
        self,
        client: "AsyncOpenAI",
        model: str = "gpt-4o-mini",
        max_concurrent: int = 4,
        prompt: str = OCR_PROMPT,
    ) -> None:
        if client is None:
            raise RuntimeError("OpenAI client is not initialized (missing OPENAI_API_KEY)")
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {max_concurrent}")
        self.client = client
        self.model = model
        self.max_concurrent = max_concurrent
        self.prompt = prompt

    async def _transcribe(self, page: Page) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": self.prompt},
                            {"type": "image_url", "image_url": {"url": image_to_data_url(page.path)}},
                        ],
                    }
                ],
                temperature=0,
            )
        except Exception as e:
            logger.error(f"OCR failed for {page.name}: {e}")
            raise
        return (response.choices[0].message.content or "").strip()

    async def recognize(
        self, pages: Sequence[Page], on_progress: ProgressCallback | None = None
    ) -> list[OcrResult]:
        """Transcribe all pages concurrently; results keep page order."""
        semaphore = asyncio.Semaphore(self.max_concurrent)
        done = 0
        total = len(pages)

        async def process_single(page: Page) -> OcrResult:
            nonlocal done
            async with semaphore:
                text = await self._transcribe(page)
            done += 1
            logger.debug(f"OCR {done}/{total}: {page.name} ({len(text)} chars)")
            if on_progress:
                on_progress(done / total)
            return OcrResult(image_id=page.id, text=text)

        if on_progress:
            on_progress(0.0)
        logger.info(f"Running OCR on {total} pages with {self.model} …")
        tasks = [asyncio.ensure_future(process_single(p)) for p in pages]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            # one page failed (or we were cancelled): stop the others before re-raising
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise


class SidecarTextOCR:
    """Reads pre-transcribed text from ``<image stem>.txt`` next to each page.

    A missing sidecar file means the page has no text.
    """

    def __init__(self, suffix: str = ".txt", encoding: str = "utf-8") -> None:
        self.suffix = suffix
        self.encoding = encoding

    def sidecar_path(self, page: Page) -> Path:
        return Path(page.path).with_suffix(self.suffix)

    async def recognize(
        self, pages: Sequence[Page], on_progress: ProgressCallback | None = None
    ) -> list[OcrResult]:
        results = []
        total = len(pages)
        for idx, page in enumerate(pages, 1):
            sidecar = self.sidecar_path(page)
            if sidecar.exists():
                text = sidecar.read_text(encoding=self.encoding)
            else:
                logger.debug(f"No sidecar text for {page.name}")
                text = ""
            results.append(OcrResult(image_id=page.id, text=text))
            if on_progress:
                on_progress(idx / total)
        return results
