"""
Video processing utilities using ffmpeg/ffprobe.
"""

import logging
import subprocess
from pathlib import Path

from .models import CameraMove

logger = logging.getLogger("mangamotion")


def run(cmd: list[str], *, check: bool = True) -> str:
    """Run a shell command and return stdout."""
    logger.debug("Running: %s", " ".join(map(str, cmd)))
    proc = subprocess.run(
        cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True, check=False
    )
    if proc.returncode != 0 and check:
        logger.error("Command failed with code %d: %s", proc.returncode, proc.stdout[-2000:])
        msg = f"Command failed with code {proc.returncode}: {cmd[0]}"
        raise RuntimeError(msg)
    return proc.stdout


def ensure_dir(path: str | Path) -> None:
    """Ensure directory exists."""
    if path:
        Path(path).mkdir(parents=True, exist_ok=True)


def ken_burns_filter(move: CameraMove, width: int, height: int, fps: int, frames: int) -> str:
    """Build the -vf chain for a still image zoom/pan over ``frames`` frames.

    The page is letterboxed onto a canvas twice the output size first so
    zoompan has headroom and does not jitter.
    """
    cw, ch = width * 2, height * 2
    n = max(1, frames - 1)
    z0, z1 = move.zoom_start, move.zoom_end
    zoom = f"{z0:.4f}+({z1 - z0:.4f})*on/{n}"
    # pan offset grows with progress, bounded to the spare area at current zoom
    x = f"(iw-iw/zoom)/2+({move.pan_x:.3f})*(iw-iw/zoom)/2*on/{n}"
    y = f"(ih-ih/zoom)/2+({move.pan_y:.3f})*(ih-ih/zoom)/2*on/{n}"
    return (
        f"scale={cw}:{ch}:force_original_aspect_ratio=decrease,"
        f"pad={cw}:{ch}:(ow-iw)/2:(oh-ih)/2:color=black,"
        f"zoompan=z='{zoom}':x='{x}':y='{y}':d={frames}:s={width}x{height}:fps={fps},"
        f"format=yuv420p"
    )


def render_still_clip(
    image: str | Path,
    out_path: str | Path,
    move: CameraMove,
    duration_ms: int,
    width: int,
    height: int,
    fps: int,
) -> None:
    """Render one still image as a silent clip with a Ken Burns move."""
    frames = max(1, round(duration_ms * fps / 1000))
    cmd = [
        "ffmpeg",
        "-y",
        "-loop",
        "1",
        "-i",
        str(image),
        "-vf",
        ken_burns_filter(move, width, height, fps, frames),
        "-frames:v",
        str(frames),
        "-an",
        "-c:v",
        "libx264",
        "-preset",
        "veryfast",
        "-pix_fmt",
        "yuv420p",
        str(out_path),
    ]
    run(cmd)


def concat_clips(clips: list[Path], list_path: str | Path, output_video: str | Path) -> None:
    """Join clips with the concat demuxer (stream copy)."""
    lines = []
    for c in clips:
        escaped = str(Path(c).resolve()).replace("'", "'\\''")
        lines.append(f"file '{escaped}'")
    Path(list_path).write_text("\n".join(lines) + "\n", encoding="utf-8")
    run(
        [
            "ffmpeg",
            "-y",
            "-f",
            "concat",
            "-safe",
            "0",
            "-i",
            str(list_path),
            "-c",
            "copy",
            str(output_video),
        ]
    )


def burn_subtitles(
    input_video: str | Path,
    subs_path: str | Path,
    output_video: str | Path,
    crf: int = 18,
    preset: str = "medium",
) -> None:
    """Burn an SRT file into the video frames."""
    # the subtitles filter parses ':' and '\' in its argument
    subs = str(subs_path).replace("\\", "/").replace(":", "\\:").replace("'", "\\'")
    cmd = [
        "ffmpeg",
        "-y",
        "-i",
        str(input_video),
        "-vf",
        f"subtitles='{subs}'",
        "-c:v",
        "libx264",
        "-crf",
        str(crf),
        "-preset",
        preset,
        "-an",
        str(output_video),
    ]
    run(cmd)


def mux_audio_to_video(input_video: str | Path, audio_wav: str | Path, output_video: str | Path) -> None:
    """Mux audio track into video (copy video stream)."""
    cmd = [
        "ffmpeg",
        "-y",
        "-i",
        str(input_video),
        "-i",
        str(audio_wav),
        "-c:v",
        "copy",
        "-c:a",
        "aac",
        "-map",
        "0:v:0",
        "-map",
        "1:a:0",
        "-shortest",
        str(output_video),
    ]
    run(cmd)


def get_video_duration_ms(input_video: str | Path) -> int:
    """Get video duration in milliseconds."""
    out = run(
        [
            "ffprobe",
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            str(input_video),
        ]
    )
    try:
        seconds = float(out.strip())
    except ValueError:
        seconds = 0.0
    return int(seconds * 1000)
