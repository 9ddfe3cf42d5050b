# beam.py
"""
Beam: a centreline curve with an orientation field and a rectangular section
(width along frame X, height along frame Y, optionally offset).

Provides frames along the beam, mapping to and from beam space for points,
frames and meshes, and the editing operations (split, trim, reverse, extend,
transform) that keep the orientation field consistent with the centreline.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .beam_space import BeamSpaceMapper
from .config import get_settings
from .curve import Curve, CurveEnd, ExtensionStyle, SplineCurve
from .frame import Frame
from .frames import generate_cross_section_planes, generate_frame, generate_frames
from .mesh import Mesh
from .orientation import OrientationField
from .parallel import parallel_map

logger = logging.getLogger(__name__)


@dataclass
class Beam:
    centreline: Curve
    orientation: OrientationField
    width: float
    height: float
    offset_x: float = 0.0
    offset_y: float = 0.0

    def __post_init__(self):
        if self.width < 0.0 or self.height < 0.0:
            raise ValueError("Beam width and height must be non-negative.")

    def __repr__(self) -> str:
        return (f"Beam({self.centreline!r}, {self.orientation!r}, width={self.width}, "
                f"height={self.height}, offset=({self.offset_x}, {self.offset_y}))")

    @property
    def mapper(self) -> BeamSpaceMapper:
        return BeamSpaceMapper(self.centreline, self.orientation)

    # ----- frames -----

    def get_plane(self, t: float) -> Frame:
        return generate_frame(self.centreline, self.orientation, t)

    def get_planes(self, ts: Sequence[float]) -> List[Frame]:
        return generate_frames(self.centreline, self.orientation, ts)

    def get_plane_at_point(self, point) -> Frame:
        return self.get_plane(self.centreline.closest_point(point))

    def get_planes_at_points(self, points) -> List[Frame]:
        P = np.asarray(points, float)
        if P.size == 0:
            return []
        ts = parallel_map(self.centreline.closest_point, list(np.atleast_2d(P)))
        return self.get_planes(ts)

    def cross_section_planes(self, num_samples: Optional[int] = None) -> Tuple[List[Frame], np.ndarray]:
        return generate_cross_section_planes(self.centreline, self.orientation, num_samples)

    # ----- beam space -----

    def to_beam_space(self, geometry, approximate: bool = False, num_samples: Optional[int] = None):
        """Map points (3,)/(N,3), a Frame, a list of Frames or a Mesh into beam space."""
        m = self.mapper
        if isinstance(geometry, Mesh):
            return m.to_beam_space_mesh(geometry, approximate, num_samples)
        if isinstance(geometry, Frame):
            return m.to_beam_space_plane(geometry)
        if isinstance(geometry, (list, tuple)) and geometry and isinstance(geometry[0], Frame):
            return m.to_beam_space_planes(geometry)
        return m.to_beam_space(geometry, approximate, num_samples)

    def from_beam_space(self, geometry, extend: bool = True):
        """Inverse of `to_beam_space` for the same geometry types."""
        m = self.mapper
        if isinstance(geometry, Mesh):
            return m.from_beam_space_mesh(geometry, extend)
        if isinstance(geometry, Frame):
            return m.from_beam_space_plane(geometry, extend)
        if isinstance(geometry, (list, tuple)) and geometry and isinstance(geometry[0], Frame):
            return m.from_beam_space_planes(geometry, extend)
        return m.from_beam_space(geometry, extend)

    # ----- editing -----

    def duplicate(self) -> "Beam":
        return Beam(self.centreline.duplicate(), self.orientation.duplicate(),
                    self.width, self.height, self.offset_x, self.offset_y)

    def _derive(self, centreline: Curve, orientation: OrientationField) -> "Beam":
        return Beam(centreline, orientation, self.width, self.height, self.offset_x, self.offset_y)

    def transform(self, xform) -> None:
        """Transform centreline and orientation together, in place."""
        self.centreline = self.centreline.transform(xform)
        self.orientation = self.orientation.transform(xform)

    def reverse(self) -> None:
        """Reverse the centreline direction in place; the orientation is remapped onto it."""
        reversed_curve = self.centreline.reverse()
        self.orientation.remap(self.centreline, reversed_curve)
        self.centreline = reversed_curve

    def extend(self, end: Union[CurveEnd, str], length: float,
               style: Union[ExtensionStyle, str] = ExtensionStyle.SMOOTH) -> None:
        extended = self.centreline.extend(end, length, style)
        self.orientation.remap(self.centreline, extended)
        self.centreline = extended

    def split(self, t: float, overlap: float = 0.0) -> List["Beam"]:
        """
        Two beams meeting at parameter t (strictly inside the domain). With an
        overlap the pieces share `overlap` of arc length centred on t.
        """
        t = float(t)
        if overlap < get_settings().tolerance:
            curves = self.centreline.split(t)
            orientations = self.orientation.split([t])
            beams = []
            for curve, orientation in zip(curves, orientations):
                orientation.remap(self.centreline, curve)
                beams.append(self._derive(curve, orientation))
            return beams

        c = self.centreline
        if not c.includes(t):
            raise ValueError(f"Split parameter {t} is outside the centreline domain {c.domain}.")
        at = c.arc_length(c.domain[0], t)
        t_end = c.length_parameter(at + overlap / 2.0)
        t_start = c.length_parameter(at - overlap / 2.0)
        if t_end is None or t_start is None:
            raise ValueError(f"Overlap {overlap} does not fit on the centreline around t={t}.")
        return [self._split_piece(t_end, 0), self._split_piece(t_start, 1)]

    def _split_piece(self, t: float, index: int) -> "Beam":
        curve = self.centreline.split(t)[index]
        orientation = self.orientation.split([t])[index]
        orientation.remap(self.centreline, curve)
        return self._derive(curve, orientation)

    def trim(self, domain: Tuple[float, float], overlap: float = 0.0) -> "Beam":
        """
        Beam restricted to `domain`, grown by `overlap` (arc length) at both
        ends where the centreline allows it.
        """
        c = self.centreline
        t0, t1 = c.domain
        lo, hi = float(domain[0]), float(domain[1])
        if overlap > 0.0:
            l1 = c.arc_length(t0, lo)
            l2 = c.arc_length(t0, hi)
            a = c.length_parameter(l1 - overlap)
            b = c.length_parameter(l2 + overlap)
            lo = lo if a is None else a
            hi = hi if b is None else b
        lo, hi = max(lo, t0), min(hi, t1)
        if not hi > lo:
            raise ValueError(f"Trim domain ({lo}, {hi}) is empty or decreasing.")
        length = c.arc_length(lo, hi)
        if length < overlap or length < get_settings().tolerance:
            raise ValueError(f"Trimmed beam would be too short ({length:.6g}).")

        trimmed_curve = c.trim((lo, hi))
        trimmed_orientation = self.orientation.trim((lo, hi))
        trimmed_orientation.remap(c, trimmed_curve)
        return self._derive(trimmed_curve, trimmed_orientation)

    # ----- analysis -----

    def evaluate_torsion(self, t: float, tolerance: float = 0.001) -> float:
        """Rotation of the section X axis per unit length around t (radians per unit length)."""
        c = self.centreline
        if not (c.includes(t) and c.includes(t - tolerance) and c.includes(t + tolerance)):
            return 0.0
        p0, p1 = self.get_planes([t - tolerance, t + tolerance])
        dist = float(np.linalg.norm(p1.origin - p0.origin))
        if dist <= 0.0:
            return 0.0
        return math.acos(min(1.0, max(-1.0, float(p0.x_axis @ p1.x_axis)))) / dist

    def corners(self, offset: float = 0.0) -> np.ndarray:
        """Section corners (4,3) in beam space, grown by `offset` on every side."""
        hw = self.width / 2.0 + offset
        hh = self.height / 2.0 + offset
        ox, oy = self.offset_x, self.offset_y
        return np.array([
            [-hw + ox, -hh + oy, 0.0],
            [-hw + ox, hh + oy, 0.0],
            [hw + ox, hh + oy, 0.0],
            [hw + ox, -hh + oy, 0.0],
        ])

    def offset_curve(self, x: float, y: float) -> SplineCurve:
        """Spline through the cross-section frame points offset by (x, y)."""
        planes, _ = self.cross_section_planes()
        pts = np.vstack([p.point_at(x, y) for p in planes])
        return SplineCurve(pts)

    def volume(self) -> float:
        return self.centreline.length() * self.width * self.height
