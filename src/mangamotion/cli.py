"""
Command-line interface for the manga narration pipeline.
"""

import argparse
import asyncio
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from tqdm import tqdm

from .captions import read_captions_manifest, write_captions_manifest
from .io_ffmpeg import ensure_dir
from .models import RESOLUTION_PRESETS, SUPPORTED_FPS, PipelineState, RenderOptions
from .ocr import OpenAIVisionOCR, SidecarTextOCR
from .pages import discover_pages
from .pipeline import Orchestrator
from .render import FFmpegRenderer
from .srt_utils import DEFAULT_SRT_NAME

logger = logging.getLogger("mangamotion")

# Optional OpenAI SDK
try:
    from openai import AsyncOpenAI
except ImportError:
    AsyncOpenAI = None

CAPTIONS_MANIFEST = "captions.json"
DEFAULT_OCR_MODEL = "gpt-4o-mini"


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    ap = argparse.ArgumentParser(description="Manga pages -> captioned motion video")

    # Phase control
    ap.add_argument(
        "--stage",
        choices=["prep", "render", "all"],
        default="prep",
        help="prep: OCR+captions+SRT; render: video from (edited) captions.json; all: both",
    )

    # IO
    ap.add_argument("--pages", required=True, help="Directory with page images")
    ap.add_argument("--workdir", default=".work")
    ap.add_argument("--output", default=None, help="Output video (default: <workdir>/manga-anime.mp4)")
    ap.add_argument("--srt-name", default=DEFAULT_SRT_NAME, help="Subtitle file name inside workdir")

    # OCR
    ap.add_argument(
        "--ocr",
        choices=["openai", "sidecar"],
        default="openai",
        help="openai: vision model transcription; sidecar: read <page>.txt next to each image",
    )
    ap.add_argument(
        "--ocr-model",
        default=os.getenv("MANGAMOTION_OCR_MODEL", DEFAULT_OCR_MODEL),
        help="Vision model used when --ocr=openai",
    )
    ap.add_argument("--max-concurrent", type=int, default=4, help="Max concurrent OCR requests")

    # Render
    ap.add_argument("--resolution", choices=sorted(RESOLUTION_PRESETS), default="720p")
    ap.add_argument("--fps", type=int, choices=SUPPORTED_FPS, default=30)
    ap.add_argument("--no-bgm", action="store_true", help="Do not synthesize background music")
    ap.add_argument(
        "--planning-delay",
        type=float,
        default=0.6,
        help="Pause (sec) of the camera planning stage",
    )

    # Logging
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    return ap.parse_args(argv)


def build_ocr(args: argparse.Namespace):
    """Create the OCR collaborator selected on the command line."""
    if args.ocr == "sidecar":
        return SidecarTextOCR()

    if not AsyncOpenAI:
        raise RuntimeError("openai package not installed. Install with: pip install openai")
    openai_key = os.getenv("OPENAI_API_KEY")
    if not openai_key:
        raise RuntimeError("OPENAI_API_KEY is not set. Put it in .env or environment.")
    return OpenAIVisionOCR(
        AsyncOpenAI(api_key=openai_key),
        model=args.ocr_model,
        max_concurrent=args.max_concurrent,
    )


def attach_progress_bar(orch: Orchestrator) -> tqdm:
    """Mirror pipeline state onto a 0-100 tqdm bar."""
    bar = tqdm(total=100, unit="%", bar_format="{desc}: {percentage:3.0f}%|{bar}|")

    def on_state(state: PipelineState) -> None:
        bar.set_description_str(state.label)
        bar.n = state.percent
        bar.refresh()

    orch.subscribe(on_state)
    return bar


async def main_async(argv: list[str] | None = None) -> None:
    """Main async CLI entry point."""
    project_root = Path(__file__).parent.parent.parent
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()

    args = parse_args(argv)
    setup_logging(args.verbose)

    workdir = Path(args.workdir)
    ensure_dir(workdir)
    manifest_path = workdir / CAPTIONS_MANIFEST
    srt_path = workdir / args.srt_name

    pages = discover_pages(args.pages)
    if not pages:
        raise RuntimeError(f"No page images found in {args.pages}")

    options = RenderOptions.from_preset(
        args.resolution, fps=args.fps, background_audio=not args.no_bgm
    )
    ocr = build_ocr(args) if args.stage in ("prep", "all") else SidecarTextOCR()
    orch = Orchestrator(
        ocr=ocr,
        renderer=FFmpegRenderer(workdir, args.output),
        options=options,
        planning_delay=args.planning_delay,
    )
    orch.load_pages(pages)

    bar = attach_progress_bar(orch)
    try:
        if args.stage in ("prep", "all"):
            await orch.run()
            write_captions_manifest(orch.captions, manifest_path)
            logger.info(f"Saved captions manifest -> {manifest_path} ({len(orch.captions)} captions)")
            orch.export_srt(srt_path)

            if args.stage == "prep":
                logger.info(
                    f"Stage 'prep' complete. Review {manifest_path.name}, then run stage 'render'."
                )
                return
        else:
            if not manifest_path.exists():
                raise RuntimeError(f"Captions manifest not found for render stage: {manifest_path}")
            orch.import_captions(read_captions_manifest(manifest_path))
            orch.export_srt(srt_path)

        video = await orch.render()
        logger.info(f"Done -> {video}")
    finally:
        bar.close()


def main() -> None:
    """Main CLI entry point."""
    asyncio.run(main_async())


if __name__ == "__main__":
    main()
