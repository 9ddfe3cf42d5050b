"""Beam: frames, mapping dispatch and the editing operations."""
import math

import numpy as np
import pytest

from beamspace.beam import Beam
from beamspace.curve import ExtendedCurve
from beamspace.frame import Frame
from beamspace.mesh import Mesh
from beamspace.orientation import FixedVector
from beamspace.utils import rotation
from beamspace.vector_field import VectorField


def _direction(theta):
    return np.array([-math.sin(theta), math.cos(theta), 0.0])


@pytest.fixture
def column(z_line):
    return Beam(z_line, FixedVector([0.0, 1.0, 0.0]), 80.0, 200.0)


@pytest.fixture
def twisted_column(z_line):
    vf = VectorField.from_vectors(z_line, [0.0, 1000.0], [_direction(0.0), _direction(math.pi / 2.0)])
    return Beam(z_line, vf, 80.0, 200.0)


@pytest.fixture
def bent_beam(bent_polyline):
    L = bent_polyline.length()
    vf = VectorField.from_vectors(
        bent_polyline,
        [0.0, L / 3.0, 2.0 * L / 3.0, L],
        [[0.0, 0.0, 1.0], [0.0, 0.0, 1.0], [0.0, 1.0, 0.0], [0.0, 1.0, 0.0]],
    )
    return Beam(bent_polyline, vf, 40.0, 60.0)


def test_rejects_negative_size(z_line):
    with pytest.raises(ValueError):
        Beam(z_line, FixedVector([0.0, 1.0, 0.0]), -1.0, 10.0)


def test_planes(column):
    p = column.get_plane(500.0)
    assert np.allclose(p.origin, [0.0, 0.0, 500.0])
    assert np.allclose(p.axes(), np.eye(3))
    assert len(column.get_planes([0.0, 500.0, 1000.0])) == 3
    q = column.get_plane_at_point([10.0, 0.0, 250.0])
    assert np.allclose(q.origin, [0.0, 0.0, 250.0])
    qs = column.get_planes_at_points([[10.0, 0.0, 250.0], [0.0, 5.0, 750.0]])
    assert np.allclose([f.origin[2] for f in qs], [250.0, 750.0])


def test_cross_section_planes(column):
    planes, ts = column.cross_section_planes()
    assert len(planes) == len(ts)
    assert ts[0] == 0.0 and ts[-1] == 1000.0
    assert all(p.is_valid() for p in planes)


def test_volume_and_corners(column):
    assert column.volume() == pytest.approx(80.0 * 200.0 * 1000.0)
    beam = Beam(column.centreline, column.orientation, 80.0, 200.0, offset_x=10.0)
    assert np.allclose(beam.corners(), [[-30.0, -100.0, 0.0], [-30.0, 100.0, 0.0],
                                        [50.0, 100.0, 0.0], [50.0, -100.0, 0.0]])
    assert np.allclose(column.corners(5.0)[2], [45.0, 105.0, 0.0])


def test_mapping_dispatch(column):
    assert np.allclose(column.to_beam_space([5.0, 3.0, 500.0]), [5.0, 3.0, 500.0])
    assert np.allclose(column.from_beam_space([5.0, 3.0, 500.0]), [5.0, 3.0, 500.0])

    plane = Frame.from_normal_and_y_axis([5.0, 3.0, 500.0], [0.0, 0.0, 1.0], [0.0, 1.0, 0.0])
    assert isinstance(column.to_beam_space(plane), Frame)
    mapped = column.to_beam_space([plane, plane])
    assert len(mapped) == 2 and np.allclose(mapped[1].origin, [5.0, 3.0, 500.0])
    assert np.allclose(column.from_beam_space(mapped)[0].origin, [5.0, 3.0, 500.0])

    mesh = Mesh([[1.0, 0.0, 10.0], [0.0, 1.0, 20.0], [1.0, 1.0, 30.0]], [[0, 1, 2]])
    out = column.to_beam_space(mesh)
    assert isinstance(out, Mesh)
    assert np.allclose(column.from_beam_space(out).vertices, mesh.vertices)


def test_empty_inputs(column):
    assert column.get_planes_at_points([]) == []
    assert column.to_beam_space([]).shape == (0, 3)
    assert column.from_beam_space([]).shape == (0, 3)


def test_transform(column):
    column.transform(rotation(math.pi / 2.0, [0.0, 0.0, 1.0]))
    p = column.get_plane(500.0)
    assert np.allclose(p.origin, [0.0, 0.0, 500.0], atol=1e-9)
    assert np.allclose(p.y_axis, [-1.0, 0.0, 0.0], atol=1e-9)


def test_reverse_with_fixed_vector(column):
    column.reverse()
    p = column.get_plane(0.0)
    assert np.allclose(p.origin, [0.0, 0.0, 1000.0])
    assert np.allclose(p.z_axis, [0.0, 0.0, -1.0])
    assert np.allclose(p.y_axis, [0.0, 1.0, 0.0])
    assert np.allclose(p.x_axis, [-1.0, 0.0, 0.0])


def test_reverse_keeps_vector_field_in_place(twisted_column):
    before = twisted_column.get_plane(300.0).y_axis
    twisted_column.reverse()
    after = twisted_column.get_plane(700.0).y_axis
    assert np.allclose(after, before, atol=1e-9)


def test_extend(column):
    column.extend("end", 100.0, "line")
    assert isinstance(column.centreline, ExtendedCurve)
    assert column.centreline.length() == pytest.approx(1100.0)
    assert np.allclose(column.get_plane(1050.0).origin, [0.0, 0.0, 1050.0])


def test_split_preserves_orientation(bent_beam):
    original = bent_beam.duplicate()
    first, second = bent_beam.split(150.0)
    assert first.centreline.domain == (0.0, 150.0)
    assert second.centreline.domain[0] == 150.0
    assert first.centreline.length() + second.centreline.length() == pytest.approx(original.centreline.length())
    for t in (20.0, 90.0, 120.0, 140.0):
        assert np.allclose(first.get_plane(t).y_axis, original.get_plane(t).y_axis, atol=1e-9)
    for t in (160.0, 200.0, 250.0, 300.0):
        assert np.allclose(second.get_plane(t).y_axis, original.get_plane(t).y_axis, atol=1e-9)


def test_trim(column):
    trimmed = column.trim((200.0, 800.0))
    assert trimmed.centreline.domain == (200.0, 800.0)
    assert trimmed.centreline.length() == pytest.approx(600.0)
    grown = column.trim((200.0, 800.0), overlap=50.0)
    assert grown.centreline.domain == pytest.approx((150.0, 850.0))
    # the overlap cannot reach past the start, so that bound stays put
    clipped = column.trim((20.0, 800.0), overlap=50.0)
    assert clipped.centreline.domain == pytest.approx((20.0, 850.0))
    with pytest.raises(ValueError):
        column.trim((800.0, 200.0))
    with pytest.raises(ValueError):
        column.trim((500.0, 500.0001))


def test_trim_preserves_vector_field(bent_beam):
    trimmed = bent_beam.trim((120.0, 260.0))
    for t in (130.0, 180.0, 230.0, 250.0):
        assert np.allclose(trimmed.get_plane(t).y_axis, bent_beam.get_plane(t).y_axis, atol=1e-9)


def test_torsion(column, twisted_column):
    assert column.evaluate_torsion(500.0) == pytest.approx(0.0, abs=1e-9)
    assert twisted_column.evaluate_torsion(500.0, tolerance=1.0) == pytest.approx(math.pi / 2.0 / 1000.0, rel=1e-6)
    assert twisted_column.evaluate_torsion(1000.0) == 0.0


def test_offset_curve(column):
    edge = column.offset_curve(10.0, 0.0)
    t0, t1 = edge.domain
    assert np.allclose(edge.point_at(t0), [10.0, 0.0, 0.0])
    assert np.allclose(edge.point_at(t1), [10.0, 0.0, 1000.0])
    assert edge.length() == pytest.approx(1000.0)


def test_duplicate_is_independent(twisted_column):
    dup = twisted_column.duplicate()
    assert dup.orientation is not twisted_column.orientation
    dup.reverse()
    assert np.allclose(twisted_column.get_plane(0.0).origin, [0.0, 0.0, 0.0])


def test_split_with_overlap(column):
    first, second = column.split(500.0, overlap=100.0)
    assert first.centreline.domain == pytest.approx((0.0, 550.0))
    assert second.centreline.domain == pytest.approx((450.0, 1000.0))
    with pytest.raises(ValueError):
        column.split(990.0, overlap=100.0)
