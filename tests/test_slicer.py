"""Tests for depth-band slicing."""
import pytest

from reliefcam.paths import PathContext
from reliefcam.slicer import extend, extend_smoothed, snap_up


@pytest.fixture
def ctx(endmill):
    return PathContext.start("test", endmill, step_depth=2.0, retract_height=5.0)


def band_z(ctx, index):
    return [
        (segment.z_start, segment.z_end)
        for level in ctx.collection[index].levels
        for segment in level.segments
    ]


class TestExtend:

    def test_first_move_only_positions(self, ctx):
        extend(ctx, 1.0, 2.0, -3.0)
        assert ctx.collection.is_empty
        assert (ctx.cursor.x, ctx.cursor.y, ctx.cursor.z) == (1.0, 2.0, -3.0)
        assert not ctx.cursor.first

    def test_move_above_surface_records_nothing(self, ctx):
        extend(ctx, 0.0, 0.0, 0.0)
        extend(ctx, 10.0, 0.0, 0.0)
        extend(ctx, 10.0, 10.0, -1e-6)
        assert len(ctx.collection) == 0
        assert ctx.cursor.x == 10.0 and ctx.cursor.y == 10.0

    def test_deep_move_repeats_in_every_band(self, ctx):
        extend(ctx, 0.0, 0.0, -5.0)
        extend(ctx, 10.0, 0.0, -5.0)

        assert ctx.collection.indices == [1, 2, 3]
        assert band_z(ctx, 1) == [(-5.0, -5.0)]
        assert band_z(ctx, 2) == [(-3.0, -3.0)]
        assert band_z(ctx, 3) == [(-1.0, -1.0)]

    def test_shallow_move_uses_one_band(self, ctx):
        extend(ctx, 0.0, 0.0, -1.0)
        extend(ctx, 10.0, 0.0, -1.0)
        assert ctx.collection.indices == [1]

    def test_ramp_crossing_surface(self, ctx):
        extend(ctx, 0.0, 0.0, -3.0)
        extend(ctx, 10.0, 0.0, 1.0)
        assert band_z(ctx, 1) == [(-3.0, 1.0)]
        assert band_z(ctx, 2) == [(-1.0, 3.0)]
        assert 3 not in ctx.collection

    def test_repeating_a_move_doubles_segments_not_bands(self, ctx):
        for _ in range(2):
            ctx.cursor.place(0.0, 0.0, -5.0)
            extend(ctx, 10.0, 0.0, -5.0)

        assert len(ctx.collection) == 3
        for layer in ctx.collection:
            assert len(layer.levels[0].segments) == 2

    def test_tiny_move_is_dropped(self, ctx):
        extend(ctx, 0.0, 0.0, -5.0)
        extend(ctx, 1e-8, 0.0, -5.0)
        assert ctx.collection.is_empty

    def test_vertical_move_clamped_to_retract(self, ctx):
        ctx.cursor.place(3.0, 3.0, 20.0)
        extend(ctx, 3.0, 3.0, -3.0)
        assert band_z(ctx, 1) == [(5.0, -3.0)]

    def test_band_z_snaps_up(self, endmill):
        ctx = PathContext.start("snap", endmill, step_depth=1.0)
        extend(ctx, 0.0, 0.0, -2.33)
        extend(ctx, 5.0, 0.0, -2.33)
        z_start, _ = band_z(ctx, 2)[0]
        assert z_start == pytest.approx(-1.3)

    def test_layers_carry_tool_and_level_name(self, ctx, endmill):
        extend(ctx, 0.0, 0.0, -1.0)
        extend(ctx, 1.0, 0.0, -1.0)
        layer = ctx.collection[1]
        assert layer.tool_id == endmill.id
        assert layer.depth == 2.0
        assert layer.levels[0].name == "Manual toolpath"
        assert layer.levels[0].level == 0


class TestExtendSmoothed:

    def test_rise_climbs_in_place(self, ctx):
        ctx.cursor.place(0.0, 0.0, -4.0)
        extend_smoothed(ctx, 1.0, 0.0, -2.0, max_jump=0.5)

        segments = ctx.collection[1].levels[0].segments
        assert len(segments) == 2
        climb, move = segments
        assert climb.points[0].tolist() == climb.points[1].tolist() == [0.0, 0.0]
        assert (climb.z_start, climb.z_end) == (-4.0, -2.0)
        assert (move.z_start, move.z_end) == (-2.0, -2.0)

    def test_drop_moves_level_first(self, ctx):
        ctx.cursor.place(0.0, 0.0, -2.0)
        extend_smoothed(ctx, 1.0, 0.0, -4.0, max_jump=0.5)

        move, drop = ctx.collection[1].levels[0].segments
        assert (move.z_start, move.z_end) == (-2.0, -2.0)
        assert drop.points[0].tolist() == drop.points[1].tolist() == [1.0, 0.0]
        assert (drop.z_start, drop.z_end) == (-2.0, -4.0)

    def test_small_jump_is_direct(self, ctx):
        ctx.cursor.place(0.0, 0.0, -2.0)
        extend_smoothed(ctx, 1.0, 0.0, -2.3, max_jump=0.5)
        assert band_z(ctx, 1) == [(-2.0, -2.3)]


def test_snap_up():
    assert snap_up(-1.3) == pytest.approx(-1.3)
    assert snap_up(-1.33) == pytest.approx(-1.3)
    assert snap_up(0.01) == pytest.approx(0.05)
    assert snap_up(2.0) == 2.0
