"""
Background music synthesis with pydub.
"""

import logging

from pydub import AudioSegment
from pydub.generators import Sine

logger = logging.getLogger("mangamotion")

# A minor / F major / C major / G major, root-position triads (Hz)
CHORD_PROGRESSION = (
    (220.00, 261.63, 329.63),
    (174.61, 220.00, 261.63),
    (261.63, 329.63, 392.00),
    (196.00, 246.94, 293.66),
)
BAR_MS = 4000
SAMPLE_RATE = 44100
FADE_MS = 400


def _chord(freqs: tuple[float, ...], duration_ms: int, volume_db: float) -> AudioSegment:
    pad = AudioSegment.silent(duration=duration_ms, frame_rate=SAMPLE_RATE)
    for f in freqs:
        tone = Sine(f, sample_rate=SAMPLE_RATE).to_audio_segment(duration=duration_ms, volume=volume_db)
        pad = pad.overlay(tone)
    return pad.fade_in(FADE_MS).fade_out(FADE_MS)


def synthesize_background_pad(duration_ms: int, volume_db: float = -28.0) -> AudioSegment:
    """Synthesize a looping chord pad exactly ``duration_ms`` long."""
    duration_ms = max(0, int(duration_ms))
    if duration_ms == 0:
        return AudioSegment.silent(duration=0)

    bars = [_chord(ch, BAR_MS, volume_db) for ch in CHORD_PROGRESSION]
    loop = sum(bars[1:], bars[0])

    track = AudioSegment.silent(duration=0, frame_rate=SAMPLE_RATE)
    while len(track) < duration_ms:
        track += loop
    track = track[:duration_ms]

    fade = min(1500, duration_ms // 4)
    if fade > 0:
        track = track.fade_in(fade).fade_out(fade)
    logger.debug(f"Synthesized {duration_ms / 1000:.1f}s background pad")
    return track
