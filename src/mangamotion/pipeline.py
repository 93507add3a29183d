"""
Pipeline orchestration: OCR -> timeline -> camera plan -> render.
"""

import asyncio
import dataclasses
import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from .captions import build_timeline, clamp_duration, with_duration, with_text
from .models import (
    STAGE_LABELS,
    CameraMove,
    CaptionUnit,
    OcrResult,
    Page,
    PipelineState,
    RenderJob,
    RenderOptions,
    Stage,
)
from .motion import plan_camera_motion
from .ocr import OcrService
from .progress import MOTION_CHECKPOINT, ProgressTracker, stage_percent
from .render import RenderService
from .srt_utils import captions_to_srt

logger = logging.getLogger("mangamotion")

StateListener = Callable[[PipelineState], None]

PLANNING_DELAY_SECS = 0.6


class PipelineBusyError(RuntimeError):
    """Raised when state is mutated while a stage is in flight."""


class CollaboratorError(RuntimeError):
    """Raised when an OCR or render service breaks its result contract."""


class Orchestrator:
    """Drives one page set through the narration pipeline.

    Usage:
        orch = Orchestrator(ocr=SidecarTextOCR(), renderer=FFmpegRenderer(".work"))
        orch.load_pages(discover_pages("./pages"))
        await orch.run()                      # -> READY_TO_RENDER
        orch.set_caption_text(cap_id, "...")  # optional manual edits
        video = await orch.render()           # -> COMPLETED

    Only one stage runs at a time. ``run()`` and ``render()`` are silent
    no-ops when their inputs are missing or the pipeline is busy; mutating
    calls raise ``PipelineBusyError`` while busy. Collaborator exceptions
    propagate to the caller with ``busy`` cleared.
    """

    def __init__(
        self,
        ocr: OcrService,
        renderer: RenderService,
        *,
        options: RenderOptions | None = None,
        planning_delay: float = PLANNING_DELAY_SECS,
    ) -> None:
        self.ocr = ocr
        self.renderer = renderer
        self.options = options or RenderOptions()
        self.planning_delay = planning_delay

        self._pages: tuple[Page, ...] = ()
        self._ocr_results: tuple[OcrResult, ...] = ()
        self._captions: tuple[CaptionUnit, ...] = ()
        self._motion: tuple[CameraMove, ...] = ()
        self._video: str | None = None

        self._state = PipelineState()
        self._progress = ProgressTracker()
        self._listeners: list[StateListener] = []
        # identifies the run or render currently in flight
        self._active: object | None = None

    # ------------------------------------------------------------------ state

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def pages(self) -> tuple[Page, ...]:
        return self._pages

    @property
    def ocr_results(self) -> tuple[OcrResult, ...]:
        return self._ocr_results

    @property
    def captions(self) -> tuple[CaptionUnit, ...]:
        return self._captions

    @property
    def motion_plan(self) -> tuple[CameraMove, ...]:
        return self._motion

    @property
    def video(self) -> str | None:
        return self._video

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener`` with every new state snapshot. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, state: PipelineState) -> None:
        if state == self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    def _enter(self, stage: Stage, *, busy: bool | None = None) -> None:
        """Move to ``stage`` and apply its progress checkpoint."""
        if stage is not self._state.stage:
            logger.info(f"Stage: {STAGE_LABELS[stage]}")
        percent = self._progress.report(stage)
        self._publish(
            PipelineState(
                stage=stage,
                label=STAGE_LABELS[stage],
                percent=percent,
                busy=self._state.busy if busy is None else busy,
            )
        )

    def _progress_for(self, stage: Stage, token: object) -> Callable[[float], None]:
        def on_progress(fraction: float) -> None:
            if self._active is not token:
                logger.debug(f"Dropping {stage.value} progress report from a finished run")
                return
            if self._state.stage is not stage:
                logger.debug(f"Dropping {stage.value} progress report after stage change")
                return
            percent = self._progress.report(stage, fraction)
            self._publish(dataclasses.replace(self._state, percent=percent))

        return on_progress

    def _require_idle(self, action: str) -> None:
        if self._state.busy:
            raise PipelineBusyError(f"Cannot {action} while the pipeline is busy")

    # ------------------------------------------------------------- page set

    def load_pages(self, pages: Sequence[Page]) -> None:
        """Replace the page set and discard all downstream results."""
        self._require_idle("change pages")
        ids = [p.id for p in pages]
        if len(set(ids)) != len(ids):
            raise ValueError("Page ids must be unique")

        self._pages = tuple(pages)
        self._ocr_results = ()
        self._captions = ()
        self._motion = ()
        self._video = None
        self._progress.reset()
        self._publish(PipelineState())
        logger.info(f"Loaded {len(self._pages)} pages")

    def reset(self) -> None:
        """Drop pages and results and return to idle."""
        self.load_pages(())

    # ------------------------------------------------------------------ run

    async def run(self) -> tuple[CaptionUnit, ...] | None:
        """Recognize, build the timeline and plan camera motion.

        Ends in READY_TO_RENDER and returns the captions, or returns None
        without touching state when there are no pages or a stage is running.
        """
        if self._state.busy:
            logger.warning("Pipeline is busy; ignoring run request")
            return None
        if not self._pages:
            logger.debug("No pages loaded; nothing to run")
            return None

        pages = self._pages
        token = self._active = object()
        self._progress.reset()
        self._enter(Stage.RECOGNIZING, busy=True)
        try:
            on_ocr = self._progress_for(Stage.RECOGNIZING, token)
            results = await self.ocr.recognize(list(pages), on_ocr)
            self._ocr_results = tuple(self._check_ocr_results(pages, results))
            on_ocr(1.0)

            self._enter(Stage.BUILDING_TIMELINE)
            self._captions = tuple(build_timeline(self._ocr_results, pages))
            self._video = None
            logger.info(f"Built {len(self._captions)} captions from {len(pages)} pages")

            self._enter(Stage.PLANNING_MOTION)
            self._motion = tuple(plan_camera_motion(self._captions))
            await asyncio.sleep(self.planning_delay)
            self._progress_for(Stage.PLANNING_MOTION, token)(1.0)

            self._enter(Stage.READY_TO_RENDER, busy=False)
        except Exception as e:
            logger.error(f"Pipeline run failed during {self._state.label.lower()}: {e}")
            raise
        finally:
            self._active = None
            if self._state.busy:
                self._publish(dataclasses.replace(self._state, busy=False))
        return self._captions

    @staticmethod
    def _check_ocr_results(pages: Sequence[Page], results: Sequence[OcrResult]) -> list[OcrResult]:
        if len(results) != len(pages):
            raise CollaboratorError(
                f"OCR returned {len(results)} results for {len(pages)} pages"
            )
        for page, result in zip(pages, results):
            if result.image_id != page.id:
                raise CollaboratorError(
                    f"OCR result order mismatch: expected {page.id}, got {result.image_id}"
                )
        return list(results)

    # --------------------------------------------------------------- render

    async def render(self, options: RenderOptions | None = None) -> str | None:
        """Render the current captions to video.

        Returns the video handle, or None without touching state when there
        is nothing to render or a stage is running. A failed render returns
        to READY_TO_RENDER so it can be retried.
        """
        if self._state.busy:
            logger.warning("Pipeline is busy; ignoring render request")
            return None
        if not self._captions or not self._pages:
            logger.debug("No captions to render")
            return None

        options = options or self.options
        job = RenderJob(
            pages=self._pages,
            captions=self._captions,
            width=options.width,
            height=options.height,
            fps=options.fps,
            synthesize_background_audio=options.background_audio,
        )

        token = self._active = object()
        self._progress.reset(stage_percent(Stage.RENDERING, 0.0))
        self._enter(Stage.RENDERING, busy=True)
        try:
            video = await self.renderer.render(job, self._progress_for(Stage.RENDERING, token))
        except Exception as e:
            logger.error(f"Render failed: {e}")
            self._progress.reset(MOTION_CHECKPOINT)
            self._enter(Stage.READY_TO_RENDER, busy=False)
            raise
        else:
            self._video = video
            self._enter(Stage.COMPLETED, busy=False)
        finally:
            self._active = None
            if self._state.busy:
                self._publish(dataclasses.replace(self._state, busy=False))

        logger.info(f"Video ready: {video}")
        return video

    # ---------------------------------------------------------------- edits

    def set_caption_text(self, caption_id: str, text: str) -> tuple[CaptionUnit, ...]:
        """Replace one caption's text; returns the new caption snapshot."""
        self._require_idle("edit captions")
        self._captions = with_text(self._captions, caption_id, text)
        return self._captions

    def set_caption_duration(self, caption_id: str, value) -> tuple[CaptionUnit, ...]:
        """Replace one caption's duration, clamped to at least 500 ms."""
        self._require_idle("edit captions")
        self._captions = with_duration(self._captions, caption_id, value)
        return self._captions

    def import_captions(self, captions: Sequence[CaptionUnit]) -> tuple[CaptionUnit, ...]:
        """Replace the whole caption list (e.g. from an edited manifest).

        Durations are clamped; page indices must point into the loaded pages.
        """
        self._require_idle("import captions")
        if not captions:
            raise ValueError("Caption list is empty")
        ids = [c.id for c in captions]
        if len(set(ids)) != len(ids):
            raise ValueError("Caption ids must be unique")
        for c in captions:
            if not 0 <= c.page_index < len(self._pages):
                raise ValueError(
                    f"Caption {c.id} points at page {c.page_index}; "
                    f"{len(self._pages)} pages are loaded"
                )

        self._captions = tuple(
            dataclasses.replace(c, duration_ms=clamp_duration(c.duration_ms)) for c in captions
        )
        self._motion = tuple(plan_camera_motion(self._captions))
        self._video = None
        self._progress.reset(stage_percent(Stage.READY_TO_RENDER))
        self._enter(Stage.READY_TO_RENDER)
        logger.info(f"Imported {len(self._captions)} captions")
        return self._captions

    # --------------------------------------------------------------- export

    def export_srt(self, path: str | Path | None = None) -> str:
        """Serialize the current captions as SRT; also write to ``path`` if given."""
        content = captions_to_srt(self._captions)
        if path is not None:
            Path(path).write_text(content, encoding="utf-8")
            logger.info(f"Saved SRT -> {path}")
        return content
