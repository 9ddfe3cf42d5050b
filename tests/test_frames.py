"""Frame generation, validation errors and cross-section discretisation."""
import math

import numpy as np
import pytest

from beamspace import frames as frames_module
from beamspace.curve import PolylineCurve
from beamspace.errors import DegenerateGeometry, InvalidFrame, InvalidOrientationVector
from beamspace.frame import WORLD_XY, Frame, plane_to_plane
from beamspace.frames import (cross_section_parameters, discretize, frame_from_normal_and_y_axis,
                              generate_cross_section_planes, generate_frame, generate_frames)
from beamspace.orientation import FixedVector, RotationMinimizingFrame
from beamspace.utils import rotation, scaling


def test_frame_from_normal_and_y_axis():
    f = frame_from_normal_and_y_axis([1.0, 2.0, 3.0], [0.0, 0.0, 2.0], [0.0, 1.0, 0.5])
    assert np.allclose(f.origin, [1.0, 2.0, 3.0])
    assert np.allclose(f.x_axis, [1.0, 0.0, 0.0])
    assert np.allclose(f.y_axis, [0.0, 1.0, 0.0])
    assert np.allclose(f.z_axis, [0.0, 0.0, 1.0])
    with pytest.raises(InvalidOrientationVector):
        frame_from_normal_and_y_axis([0.0, 0.0, 0.0], [0.0, 0.0, 1.0], [0.0, 0.0, 3.0])


def test_world_aligned_frames(z_line):
    f = generate_frame(z_line, FixedVector([0.0, 1.0, 0.0]), 500.0)
    assert np.allclose(f.origin, [0.0, 0.0, 500.0])
    assert np.allclose(f.axes(), np.eye(3))


def test_frame_convention_x_is_y_cross_z(z_line):
    f = generate_frame(z_line, FixedVector([1.0, 0.0, 0.0]), 500.0)
    assert np.allclose(f.y_axis, [1.0, 0.0, 0.0])
    assert np.allclose(f.z_axis, [0.0, 0.0, 1.0])
    assert np.allclose(f.x_axis, [0.0, -1.0, 0.0])
    assert f.is_valid()


def test_generate_frames_on_curved_centreline(helix):
    t0, t1 = helix.domain
    ts = np.linspace(t0, t1, 8)
    frames = generate_frames(helix, RotationMinimizingFrame(), ts)
    assert len(frames) == 8
    assert all(f.is_valid(1e-9) for f in frames)
    assert generate_frames(helix, RotationMinimizingFrame(), []) == []


def test_invalid_frames_report_every_failure():
    # up the Z axis, then along X
    curve = PolylineCurve([[0.0, 0.0, 0.0], [0.0, 0.0, 10.0], [10.0, 0.0, 10.0]])
    with pytest.raises(InvalidFrame) as err:
        generate_frames(curve, FixedVector([1.0, 0.0, 0.0]), [2.0, 5.0, 12.0, 15.0])
    assert err.value.parameters == [12.0, 15.0]
    assert err.value.indices == [2, 3]
    assert isinstance(err.value, InvalidOrientationVector)
    assert isinstance(err.value, ValueError)


def test_invalid_frame_at_first_parameter_is_reported(z_line):
    up_the_tangent = FixedVector([0.0, 0.0, 1.0])
    with pytest.raises(InvalidFrame) as err:
        generate_frames(z_line, up_the_tangent, [0.0])
    assert err.value.parameters == [0.0]
    assert err.value.indices == [0]
    with pytest.raises(InvalidFrame) as err:
        generate_frames(z_line, up_the_tangent, [100.0, 200.0])
    assert err.value.parameters == [100.0, 200.0]
    assert err.value.indices == [0, 1]


def test_plane_to_plane_round_trip():
    f = Frame.from_normal_and_y_axis([5.0, -2.0, 1.0], [0.3, 0.1, 1.0], [0.0, 1.0, 0.0])
    local = WORLD_XY.transform(plane_to_plane(WORLD_XY, f))
    assert np.allclose(local.origin, f.origin)
    assert np.allclose(local.axes(), f.axes())
    back = f.transform(plane_to_plane(f, WORLD_XY))
    assert np.allclose(back.axes(), np.eye(3), atol=1e-12)
    assert np.allclose(back.origin, 0.0, atol=1e-12)


def test_frame_transform_and_local_coordinates():
    f = Frame.from_normal_and_y_axis([0.0, 0.0, 5.0], [0.0, 0.0, 1.0], [0.0, 1.0, 0.0])
    turned = f.transform(rotation(math.pi / 2.0, [0.0, 0.0, 1.0]))
    assert np.allclose(turned.x_axis, [0.0, 1.0, 0.0])
    assert np.allclose(turned.y_axis, [-1.0, 0.0, 0.0])
    assert np.allclose(f.remap_to_plane_space([2.0, 3.0, 9.0]), [2.0, 3.0, 4.0])
    assert np.allclose(f.point_at(2.0, 3.0, 4.0), [2.0, 3.0, 9.0])


def test_frame_transform_keeps_unit_axes_under_scaling():
    f = Frame.from_normal_and_y_axis([1.0, 2.0, 3.0], [0.0, 1.0, 1.0], [0.0, 0.0, 1.0])
    scaled = f.transform(scaling(2.0))
    assert np.allclose(scaled.origin, [2.0, 4.0, 6.0])
    assert np.allclose(scaled.axes(), f.axes())
    assert scaled.is_valid()


# ---------- discretisation ----------

def test_discretize_straight_line_respects_max_segment(z_line):
    ts = discretize(z_line, 0.001, math.radians(2.5), 30.0, 40.0)
    assert len(ts) == 33
    assert ts[0] == 0.0 and ts[-1] == 1000.0
    assert np.allclose(np.diff(ts), 31.25)


def test_discretize_refines_around_corners():
    curve = PolylineCurve([[0.0, 0.0, 0.0], [100.0, 0.0, 0.0], [100.0, 100.0, 0.0]])
    ts = discretize(curve, 0.001, math.radians(2.5), 1.0)
    assert ts[0] == 0.0 and ts[-1] == 200.0
    assert np.all(np.diff(ts) > 0.0)
    assert len(ts) > 3
    assert np.min(np.abs(ts - 100.0)) < 2.0


def test_discretize_closed_curve_splits_first_span():
    square = PolylineCurve([[0.0, 0.0, 0.0], [10.0, 0.0, 0.0], [10.0, 10.0, 0.0],
                            [0.0, 10.0, 0.0], [0.0, 0.0, 0.0]])
    ts = discretize(square, 0.001, math.radians(2.5), 100.0)
    assert list(ts) == [0.0, 20.0, 40.0]


def test_cross_section_parameters(z_line):
    ts = cross_section_parameters(z_line)
    assert len(ts) == 33
    frames, params = generate_cross_section_planes(z_line, FixedVector([0.0, 1.0, 0.0]))
    assert len(frames) == len(params) == 33


def test_cross_section_parameters_fall_back_to_even_division(z_line, monkeypatch):
    def _fail(*args, **kwargs):
        raise DegenerateGeometry("no tangent", [0.0])

    monkeypatch.setattr(frames_module, "discretize", _fail)
    ts = cross_section_parameters(z_line, 11)
    assert np.allclose(ts, np.linspace(0.0, 1000.0, 11))
