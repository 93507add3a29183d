"""
Camera motion planning (Ken Burns moves) for captions.
"""

import logging
from collections.abc import Sequence

from .models import CameraMove, CaptionUnit

logger = logging.getLogger("mangamotion")

MIN_ZOOM = 1.0
MAX_ZOOM = 1.3

# (zoom delta, pan_x, pan_y) cycled per caption
_PATTERN = (
    (0.15, 0.0, 0.0),   # push in on centre
    (0.05, 0.5, 0.0),   # drift right
    (-0.15, 0.0, 0.0),  # pull back
    (0.05, -0.5, 0.0),  # drift left
    (0.05, 0.0, 0.5),   # tilt down
)


def plan_camera_motion(captions: Sequence[CaptionUnit]) -> list[CameraMove]:
    """Return one camera move per caption, in caption order.

    A new page starts at the minimum zoom; captions on the same page continue
    from the zoom level where the previous caption ended.
    """
    moves: list[CameraMove] = []
    zoom = MIN_ZOOM
    prev_page: int | None = None

    for i, cap in enumerate(captions):
        if cap.page_index != prev_page:
            zoom = MIN_ZOOM
            prev_page = cap.page_index

        delta, pan_x, pan_y = _PATTERN[i % len(_PATTERN)]
        target = round(min(MAX_ZOOM, max(MIN_ZOOM, zoom + delta)), 3)
        if target == zoom:
            # pinned at a bound; reverse direction
            target = round(min(MAX_ZOOM, max(MIN_ZOOM, zoom - delta)), 3)

        moves.append(
            CameraMove(
                caption_id=cap.id,
                page_index=cap.page_index,
                zoom_start=zoom,
                zoom_end=target,
                pan_x=pan_x,
                pan_y=pan_y,
            )
        )
        zoom = target

    logger.debug(f"Planned {len(moves)} camera moves")
    return moves
