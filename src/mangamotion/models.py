"""
Data models for the manga narration pipeline.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

SUPPORTED_FPS = (24, 30, 60)
RESOLUTION_PRESETS = {
    "720p": (1280, 720),
    "1080p": (1920, 1080),
}


@dataclass(frozen=True)
class Page:
    """One source page image."""

    id: str
    name: str
    path: Path


@dataclass(frozen=True)
class OcrResult:
    """Recognized text for a single page."""

    image_id: str
    text: str


@dataclass(frozen=True)
class CaptionUnit:
    """A single timed caption tied to a page."""

    id: str
    text: str
    duration_ms: int
    page_index: int


@dataclass(frozen=True)
class CameraMove:
    """Ken Burns move applied while a caption is on screen."""

    caption_id: str
    page_index: int
    zoom_start: float
    zoom_end: float
    pan_x: float  # fraction of frame width, -1..1
    pan_y: float  # fraction of frame height, -1..1


class Stage(str, Enum):
    """Pipeline stages, in run order."""

    IDLE = "idle"
    RECOGNIZING = "recognizing"
    BUILDING_TIMELINE = "building_timeline"
    PLANNING_MOTION = "planning_motion"
    READY_TO_RENDER = "ready_to_render"
    RENDERING = "rendering"
    COMPLETED = "completed"


STAGE_LABELS = {
    Stage.IDLE: "Idle",
    Stage.RECOGNIZING: "Analyzing pages with OCR",
    Stage.BUILDING_TIMELINE: "Building screenplay",
    Stage.PLANNING_MOTION: "Planning camera motions",
    Stage.READY_TO_RENDER: "Ready to render",
    Stage.RENDERING: "Rendering animation to video",
    Stage.COMPLETED: "Completed",
}


@dataclass(frozen=True)
class PipelineState:
    """Snapshot of the orchestrator's observable state."""

    stage: Stage = Stage.IDLE
    label: str = STAGE_LABELS[Stage.IDLE]
    percent: int = 0
    busy: bool = False


@dataclass
class RenderOptions:
    """Output settings for the render stage.

    Attributes:
        width: Output frame width in pixels
        height: Output frame height in pixels
        fps: Frame rate (24, 30 or 60)
        background_audio: Synthesize a background music pad
    """

    width: int = 1280
    height: int = 720
    fps: int = 30
    background_audio: bool = True

    def __post_init__(self) -> None:
        """Validate dimensions and frame rate."""
        if self.fps not in SUPPORTED_FPS:
            raise ValueError(f"fps must be one of {SUPPORTED_FPS}, got {self.fps}")

        for name in ("width", "height"):
            value = getattr(self, name)
            if value <= 0 or value % 2:
                raise ValueError(f"{name} must be a positive even number, got {value}")

    @classmethod
    def from_preset(cls, preset: str, fps: int = 30, background_audio: bool = True) -> "RenderOptions":
        """Build options from a named resolution preset ('720p' or '1080p')."""
        try:
            width, height = RESOLUTION_PRESETS[preset]
        except KeyError:
            raise ValueError(
                f"Unknown resolution preset: {preset}. Valid: {sorted(RESOLUTION_PRESETS)}"
            ) from None
        return cls(width=width, height=height, fps=fps, background_audio=background_audio)


@dataclass(frozen=True)
class RenderJob:
    """Everything the render collaborator needs for one video."""

    pages: tuple[Page, ...]
    captions: tuple[CaptionUnit, ...]
    width: int
    height: int
    fps: int
    synthesize_background_audio: bool
