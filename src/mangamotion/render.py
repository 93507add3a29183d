"""
Render collaborator: pages + captions -> video file via ffmpeg.
"""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from .audio import synthesize_background_pad
from .captions import total_duration_ms
from .io_ffmpeg import (
    burn_subtitles,
    concat_clips,
    ensure_dir,
    get_video_duration_ms,
    mux_audio_to_video,
    render_still_clip,
)
from .models import RenderJob
from .motion import plan_camera_motion
from .srt_utils import write_srt

logger = logging.getLogger("mangamotion")

ProgressCallback = Callable[[float], None]


class RenderService(Protocol):
    async def render(self, job: RenderJob, on_progress: ProgressCallback | None = None) -> str:
        """Render the job and return a playable video reference."""


class FFmpegRenderer:
    """Renders each caption as a Ken Burns clip of its page, then burns in
    the caption track and (optionally) muxes a synthesized music pad.

    Blocking ffmpeg calls run in a worker thread so the event loop stays free.
    """

    def __init__(self, workdir: str | Path, output: str | Path | None = None) -> None:
        self.workdir = Path(workdir)
        self.output = Path(output) if output else self.workdir / "manga-anime.mp4"

    async def render(self, job: RenderJob, on_progress: ProgressCallback | None = None) -> str:
        if not job.captions:
            raise ValueError("Nothing to render: caption list is empty")

        clips_dir = self.workdir / "clips"
        ensure_dir(clips_dir)
        ensure_dir(self.output.parent)

        moves = plan_camera_motion(job.captions)
        # clips + concat + subtitles + audio
        steps = len(job.captions) + 3
        finished = 0

        def tick() -> None:
            nonlocal finished
            finished += 1
            if on_progress:
                on_progress(min(1.0, finished / steps))

        if on_progress:
            on_progress(0.0)

        logger.info(
            f"Rendering {len(job.captions)} shots at {job.width}x{job.height}@{job.fps}fps …"
        )
        clips: list[Path] = []
        for i, (cap, move) in enumerate(zip(job.captions, moves)):
            page = job.pages[cap.page_index]
            clip = clips_dir / f"shot_{i:04d}.mp4"
            await asyncio.to_thread(
                render_still_clip,
                page.path,
                clip,
                move,
                cap.duration_ms,
                job.width,
                job.height,
                job.fps,
            )
            clips.append(clip)
            tick()

        silent = self.workdir / "silent.mp4"
        await asyncio.to_thread(concat_clips, clips, self.workdir / "clips.txt", silent)
        tick()

        subs_path = write_srt(job.captions, self.workdir / "render.srt")
        captioned = self.workdir / "captioned.mp4"
        await asyncio.to_thread(burn_subtitles, silent, subs_path, captioned)
        tick()

        if job.synthesize_background_audio:
            pad = await asyncio.to_thread(synthesize_background_pad, total_duration_ms(job.captions))
            bgm_wav = self.workdir / "bgm.wav"
            await asyncio.to_thread(pad.export, str(bgm_wav), format="wav")
            await asyncio.to_thread(mux_audio_to_video, captioned, bgm_wav, self.output)
        else:
            captioned.replace(self.output)
        tick()

        dur_ms = await asyncio.to_thread(get_video_duration_ms, self.output)
        logger.info(f"Rendered video -> {self.output} ({dur_ms / 1000:.1f}s)")
        return str(self.output)
