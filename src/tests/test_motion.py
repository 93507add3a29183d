"""
Tests for camera motion planning.
"""

from mangamotion.models import CaptionUnit
from mangamotion.motion import MAX_ZOOM, MIN_ZOOM, plan_camera_motion


def _caps(page_indices):
    return [
        CaptionUnit(id=f"c{i}", text="x", duration_ms=1500, page_index=p)
        for i, p in enumerate(page_indices)
    ]


def test_one_move_per_caption():
    """Moves line up with captions."""
    caps = _caps([0, 0, 1, 2, 2, 2, 2])
    moves = plan_camera_motion(caps)

    assert [m.caption_id for m in moves] == [c.id for c in caps]
    assert [m.page_index for m in moves] == [c.page_index for c in caps]


def test_zoom_continuous_within_page():
    """The camera continues from where it stopped on the same page."""
    moves = plan_camera_motion(_caps([0, 0, 0, 0, 0, 0]))

    for prev, cur in zip(moves, moves[1:]):
        assert cur.zoom_start == prev.zoom_end
    assert all(MIN_ZOOM <= m.zoom_start <= MAX_ZOOM for m in moves)
    assert all(MIN_ZOOM <= m.zoom_end <= MAX_ZOOM for m in moves)


def test_new_page_starts_wide():
    """Each new page starts at the minimum zoom."""
    moves = plan_camera_motion(_caps([0, 1, 2]))
    assert all(m.zoom_start == MIN_ZOOM for m in moves)


def test_every_move_moves():
    """No shot is a frozen frame."""
    moves = plan_camera_motion(_caps([0] * 10))
    assert all(m.zoom_start != m.zoom_end or m.pan_x or m.pan_y for m in moves)


def test_deterministic():
    """Same captions, same plan."""
    caps = _caps([0, 1, 1, 2])
    assert plan_camera_motion(caps) == plan_camera_motion(caps)
    assert plan_camera_motion([]) == []
