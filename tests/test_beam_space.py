"""World <-> beam-space mapping for points, frames and meshes."""
import math

import numpy as np
import pytest

from beamspace.beam_space import ArcLengthTable, BeamSpaceMapper
from beamspace.errors import DomainInversionFailure
from beamspace.frame import Frame
from beamspace.frames import generate_frames
from beamspace.mesh import Mesh
from beamspace.orientation import FixedVector, RotationMinimizingFrame
from beamspace.vector_field import VectorField


def _offset_points(curve, orientation, ts, offsets):
    frames = generate_frames(curve, orientation, ts)
    pts = [f.point_at(x, y) for f in frames for (x, y) in offsets]
    return np.array(pts), frames


@pytest.fixture
def helix_field(helix):
    t0, t1 = helix.domain
    ts = np.linspace(t0, t1, 4)
    vectors = [[0.0, 0.0, 1.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0], [-1.0, 0.0, 0.5]]
    return VectorField.from_vectors(helix, ts, vectors)


# ---------- world-aligned scenarios ----------

def test_world_aligned_mapping_is_identity(z_line):
    m = BeamSpaceMapper(z_line, FixedVector([0.0, 1.0, 0.0]))
    assert np.allclose(m.to_beam_space([5.0, 3.0, 500.0]), [5.0, 3.0, 500.0])
    assert np.allclose(m.from_beam_space([5.0, 3.0, 500.0]), [5.0, 3.0, 500.0])


def test_orientation_along_x_swaps_axes(z_line):
    m = BeamSpaceMapper(z_line, FixedVector([1.0, 0.0, 0.0]))
    assert np.allclose(m.to_beam_space([5.0, 3.0, 500.0]), [-3.0, 5.0, 500.0])


def test_shapes(z_line):
    m = BeamSpaceMapper(z_line, FixedVector([0.0, 1.0, 0.0]))
    assert m.to_beam_space([1.0, 2.0, 3.0]).shape == (3,)
    assert m.to_beam_space([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]]).shape == (2, 3)
    assert m.to_beam_space(np.zeros((0, 3))).shape == (0, 3)
    assert m.from_beam_space(np.zeros((0, 3))).shape == (0, 3)


# ---------- round trips ----------

@pytest.mark.parametrize("make_orientation", [RotationMinimizingFrame, None])
def test_round_trip_on_spline(helix, helix_field, make_orientation):
    orientation = make_orientation() if make_orientation else helix_field
    t0, t1 = helix.domain
    ts = np.linspace(t0, t1, 7)[1:-1]
    offsets = [(0.0, 0.0), (4.0, -3.0), (-8.0, 6.0)]
    P, _ = _offset_points(helix, orientation, ts, offsets)
    m = BeamSpaceMapper(helix, orientation)
    B = m.to_beam_space(P)
    assert np.allclose(B[:, :2], np.tile(offsets, (len(ts), 1)), atol=1e-6)
    assert np.allclose(B[::3, 2], helix.arc_length(t0, ts), atol=1e-6)
    assert np.allclose(m.from_beam_space(B), P, atol=1e-6)


def test_round_trip_on_polyline(bent_polyline):
    orientation = FixedVector([0.0, 0.0, 1.0])
    L = bent_polyline.length()
    ts = np.array([0.1, 0.45, 0.8, 0.95]) * L
    P, _ = _offset_points(bent_polyline, orientation, ts, [(2.0, 1.0), (-1.5, -2.5)])
    m = BeamSpaceMapper(bent_polyline, orientation)
    assert np.allclose(m.from_beam_space(m.to_beam_space(P)), P, atol=1e-6)


def test_beam_z_is_monotonic_along_curve(helix):
    t0, t1 = helix.domain
    ts = np.linspace(t0, t1, 9)
    P = helix.point_at(ts)
    z = BeamSpaceMapper(helix, RotationMinimizingFrame()).to_beam_space(P)[:, 2]
    assert np.all(np.diff(z) > 0.0)
    assert z[0] == pytest.approx(0.0, abs=1e-9)
    assert z[-1] == pytest.approx(helix.length())


# ---------- approximate lengths ----------

def test_arc_length_table(helix):
    table = ArcLengthTable.from_curve(helix, 50)
    t0, t1 = helix.domain
    assert len(table) == 51
    assert np.all(np.diff(table.lengths) >= 0.0)
    assert table.length_at(t0 - 10.0) == 0.0
    assert table.length_at(t1 + 10.0) == pytest.approx(helix.length())
    tm = 0.5 * (t0 + t1)
    assert table.length_at(tm) == pytest.approx(helix.arc_length(t0, tm), abs=1e-2)
    assert table.parameter_at(table.length_at(tm)) == pytest.approx(tm, abs=1e-9)


def test_approximate_mapping_close_to_exact(helix):
    m = BeamSpaceMapper(helix, RotationMinimizingFrame())
    t0, t1 = helix.domain
    P = helix.point_at(np.linspace(t0, t1, 6)) + np.array([0.0, 0.0, 2.0])
    exact = m.to_beam_space(P)
    approx = m.to_beam_space(P, approximate=True, num_samples=100)
    assert np.allclose(approx[:, :2], exact[:, :2])
    assert np.allclose(approx[:, 2], exact[:, 2], atol=1e-2)


def test_approximate_mapping_exact_on_lines(z_line):
    m = BeamSpaceMapper(z_line, FixedVector([0.0, 1.0, 0.0]))
    P = [[1.0, 0.0, 123.0], [0.0, 2.0, 876.5]]
    assert np.allclose(m.to_beam_space(P, approximate=True), m.to_beam_space(P), atol=1e-9)


# ---------- past the end ----------

def test_inverse_extends_straight_curve(z_line):
    m = BeamSpaceMapper(z_line, FixedVector([0.0, 1.0, 0.0]))
    assert np.allclose(m.from_beam_space([2.0, 1.0, 1100.0]), [2.0, 1.0, 1100.0])
    extended = m.curve_for_mapping(1100.0)
    assert extended.length() == pytest.approx(1101.0)
    assert m.curve_for_mapping(500.0).length() == pytest.approx(1000.0)


def test_inverse_extends_along_end_tangent(helix):
    t0, t1 = helix.domain
    L = helix.length()
    m = BeamSpaceMapper(helix, FixedVector([0.0, 0.0, 1.0]))
    expected = helix.point_at(t1) + 50.0 * helix.tangent_at(t1)
    assert np.allclose(m.from_beam_space([0.0, 0.0, L + 50.0]), expected, atol=1e-6)


def test_inverse_without_extension_reports_failures(helix):
    L = helix.length()
    m = BeamSpaceMapper(helix, FixedVector([0.0, 0.0, 1.0]))
    with pytest.raises(DomainInversionFailure) as err:
        m.from_beam_space([[0.0, 0.0, 0.5 * L], [0.0, 0.0, L + 50.0]], extend=False)
    assert err.value.indices == [1]
    assert err.value.lengths == pytest.approx([L + 50.0])


def test_parameter_outside_domain_keeps_local_z(z_line, monkeypatch):
    m = BeamSpaceMapper(z_line, FixedVector([0.0, 1.0, 0.0]))
    monkeypatch.setattr(z_line, "closest_point", lambda p: 1100.0)
    assert np.allclose(m.to_beam_space([1.0, 2.0, 1150.0]), [1.0, 2.0, 50.0])


# ---------- frames and meshes ----------

def test_plane_mapping_world_aligned(z_line):
    m = BeamSpaceMapper(z_line, FixedVector([0.0, 1.0, 0.0]))
    plane = Frame.from_normal_and_y_axis([5.0, 3.0, 500.0], [0.0, 0.0, 1.0], [0.0, 1.0, 0.0])
    mapped = m.to_beam_space_plane(plane)
    assert np.allclose(mapped.origin, [5.0, 3.0, 500.0])
    assert np.allclose(mapped.axes(), np.eye(3))


def test_plane_round_trip(helix):
    orientation = RotationMinimizingFrame()
    m = BeamSpaceMapper(helix, orientation)
    t0, t1 = helix.domain
    planes = []
    for f in generate_frames(helix, orientation, np.linspace(t0, t1, 5)[1:-1]):
        planes.append(Frame.from_normal_and_y_axis(f.point_at(3.0, -4.0), [0.2, 0.3, 0.9], [0.0, 1.0, 0.0]))
    back = m.from_beam_space_planes(m.to_beam_space_planes(planes))
    for p, q in zip(planes, back):
        assert np.allclose(q.origin, p.origin, atol=1e-6)
        assert np.allclose(q.axes(), p.axes(), atol=1e-6)
    assert m.to_beam_space_planes([]) == []


def test_mesh_mapping_keeps_topology(z_line):
    m = BeamSpaceMapper(z_line, FixedVector([1.0, 0.0, 0.0]))
    mesh = Mesh([[5.0, 3.0, 500.0], [0.0, 1.0, 100.0], [2.0, 0.0, 900.0]], [[0, 1, 2]])
    mapped = m.to_beam_space_mesh(mesh)
    assert np.array_equal(mapped.faces, mesh.faces)
    assert np.allclose(mapped.vertices[0], [-3.0, 5.0, 500.0])
    back = m.from_beam_space_mesh(mapped)
    assert np.allclose(back.vertices, mesh.vertices)


def test_inverse_reports_every_failing_length(helix):
    L = helix.length()
    m = BeamSpaceMapper(helix, FixedVector([0.0, 0.0, 1.0]))
    with pytest.raises(DomainInversionFailure) as err:
        m.from_beam_space([[0.0, 0.0, L + 10.0], [0.0, 0.0, L + 20.0]], extend=False)
    assert err.value.indices == [0, 1]
    assert err.value.lengths == pytest.approx([L + 10.0, L + 20.0])


def test_empty_batches(z_line):
    m = BeamSpaceMapper(z_line, FixedVector([0.0, 1.0, 0.0]))
    assert m.to_beam_space([]).shape == (0, 3)
    assert m.to_beam_space(np.zeros((0, 3)), approximate=True).shape == (0, 3)
    assert m.from_beam_space([]).shape == (0, 3)
    assert z_line.closest_points([]).shape == (0,)
