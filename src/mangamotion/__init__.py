"""
Manga Motion - Turn manga pages into a captioned motion video.

A pipeline for:
- Ordering page images naturally by filename
- Extracting page text with OCR (OpenAI vision or sidecar text files)
- Segmenting text into timed captions
- Planning Ken Burns camera moves
- Rendering pages, burned-in captions and background music with ffmpeg
- Exporting the caption track as SRT
"""

__version__ = "0.1.0"
