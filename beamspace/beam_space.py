# beam_space.py
"""
Beam-space mapping between world coordinates and (x, y, z) beam coordinates,
where z is arc length from the start of the centreline and (x, y) are
coordinates in the cross-section frame at that length.

Forward mapping (world -> beam):
  t = closest parameter, frame at t, (x, y) = plane-space coordinates,
  z = arc length to t (exact) or interpolated from an ArcLengthTable
  (approximate). A parameter outside the domain keeps the plane-space z.

Inverse mapping (beam -> world):
  the curve is extended past its end when the largest z exceeds its length,
  z is inverted to a parameter (closed form for linear curves), and the
  result is frame.point_at(x, y).
"""

from __future__ import annotations

import logging
from bisect import bisect_right
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .config import get_settings
from .curve import CurveEnd, ExtensionStyle
from .errors import DomainInversionFailure
from .frame import WORLD_XY, Frame, plane_to_plane
from .frames import _frame_arrays, generate_frames
from .mesh import Mesh
from .parallel import parallel_map

logger = logging.getLogger(__name__)


@dataclass
class ArcLengthTable:
    """Sampled (parameter, cumulative arc length) pairs for fast length lookup."""

    parameters: np.ndarray
    lengths: np.ndarray

    @classmethod
    def from_curve(cls, curve, num_samples: Optional[int] = None) -> "ArcLengthTable":
        n = int(num_samples or get_settings().approximate_samples)
        ts = curve.divide_by_count(n, True)
        # cumulative sum of span lengths keeps the table non-decreasing
        spans = parallel_map(lambda i: max(curve.arc_length(ts[i], ts[i + 1]), 0.0), range(len(ts) - 1))
        lengths = np.concatenate([[0.0], np.cumsum(spans)])
        logger.debug("ArcLengthTable: %d samples, length %.6g", len(ts), lengths[-1])
        return cls(np.asarray(ts, float), lengths)

    def __len__(self) -> int:
        return len(self.parameters)

    def length_at(self, t: float) -> float:
        """Linearly interpolated length; clamped to the first/last entry outside the table."""
        ts, ls = self.parameters, self.lengths
        t = float(t)
        if t <= ts[0]:
            return float(ls[0])
        if t >= ts[-1]:
            return float(ls[-1])
        i = bisect_right(ts, t) - 1
        mu = (t - ts[i]) / (ts[i + 1] - ts[i])
        return float(ls[i] + (ls[i + 1] - ls[i]) * mu)

    def parameter_at(self, length: float) -> float:
        """Approximate inverse of `length_at`, clamped to the table."""
        return float(np.interp(float(length), self.lengths, self.parameters))


class BeamSpaceMapper:
    """Maps points, frames and meshes between world space and beam space."""

    def __init__(self, curve, orientation, workers: Optional[int] = None):
        self.curve = curve
        self.orientation = orientation
        self.workers = workers

    def __repr__(self) -> str:
        return f"BeamSpaceMapper(curve={self.curve!r}, orientation={self.orientation!r})"

    # ----- forward -----

    def _closest_parameters(self, P: np.ndarray) -> np.ndarray:
        return np.asarray(parallel_map(self.curve.closest_point, list(P), self.workers), dtype=float)

    def _lengths(self, ts: np.ndarray) -> np.ndarray:
        t0 = self.curve.domain[0]
        return np.asarray(parallel_map(lambda t: self.curve.arc_length(t0, t), list(ts), self.workers),
                          dtype=float)

    def to_beam_space(self, points, approximate: bool = False,
                      num_samples: Optional[int] = None) -> np.ndarray:
        """World points (3,) or (N,3) -> beam-space coordinates of the same shape."""
        P = np.asarray(points, float)
        if P.size == 0:
            return np.zeros((0, 3))
        single = P.ndim == 1
        P = np.atleast_2d(P)

        ts = self._closest_parameters(P)
        O, X, Y, Z = _frame_arrays(self.curve, self.orientation, ts)
        D = P - O
        local = np.stack([np.einsum("ij,ij->i", D, X),
                          np.einsum("ij,ij->i", D, Y),
                          np.einsum("ij,ij->i", D, Z)], axis=1)

        if approximate:
            table = ArcLengthTable.from_curve(self.curve, num_samples)
            local[:, 2] = [table.length_at(t) for t in ts]
        else:
            inside = np.array([self.curve.includes(t) for t in ts], dtype=bool)
            if np.any(inside):
                local[inside, 2] = self._lengths(ts[inside])
            if not np.all(inside):
                logger.debug("to_beam_space: %d point(s) outside the curve domain keep local z.",
                             int((~inside).sum()))
        return local[0] if single else local

    def to_beam_space_plane(self, plane: Frame) -> Frame:
        return self.to_beam_space_planes([plane])[0]

    def to_beam_space_planes(self, planes: Sequence[Frame]) -> List[Frame]:
        """Frames are moved rigidly from their curve frame onto world XY; origin z becomes arc length."""
        if not planes:
            return []
        ts = self._closest_parameters(np.vstack([p.origin for p in planes]))
        frames = generate_frames(self.curve, self.orientation, ts)
        lengths = self._lengths(ts)
        out = []
        for plane, frame, t, length in zip(planes, frames, ts, lengths):
            mapped = plane.transform(plane_to_plane(frame, WORLD_XY))
            if self.curve.includes(t):
                mapped.origin[2] = length
            out.append(mapped)
        return out

    def to_beam_space_mesh(self, mesh: Mesh, approximate: bool = False,
                           num_samples: Optional[int] = None) -> Mesh:
        """Vertex positions mapped; faces and normals carried over unchanged."""
        return mesh.with_vertices(self.to_beam_space(mesh.vertices, approximate, num_samples))

    # ----- inverse -----

    def curve_for_mapping(self, max_z: float, extend: bool = True):
        """Copy of the curve, extended past its end when max_z exceeds its length."""
        curve = self.curve.duplicate()
        length = curve.length()
        if extend and max_z > length:
            amount = max_z - length + get_settings().extension_padding
            logger.debug("curve_for_mapping: extending end by %.6g", amount)
            curve = curve.extend(CurveEnd.END, amount, ExtensionStyle.LINE)
        return curve

    def _parameters_for_lengths(self, curve, zs: np.ndarray) -> np.ndarray:
        zs = np.asarray(zs, float).reshape(-1)
        if curve.is_linear():
            t0, t1 = curve.domain
            return t0 + zs / curve.length() * (t1 - t0)
        ts = parallel_map(curve.length_parameter, list(zs), self.workers)
        failed = [i for i, t in enumerate(ts) if t is None]
        if failed:
            raise DomainInversionFailure(
                f"Arc length could not be inverted for {len(failed)} of {len(zs)} value(s).",
                zs[failed], failed,
            )
        return np.asarray(ts, dtype=float)

    def from_beam_space(self, points, extend: bool = True) -> np.ndarray:
        """Beam-space coordinates (3,) or (N,3) -> world points of the same shape."""
        Q = np.asarray(points, float)
        if Q.size == 0:
            return np.zeros((0, 3))
        single = Q.ndim == 1
        Q = np.atleast_2d(Q)
        curve = self.curve_for_mapping(float(np.max(Q[:, 2])), extend)
        ts = self._parameters_for_lengths(curve, Q[:, 2])
        O, X, Y, _ = _frame_arrays(curve, self.orientation, ts)
        W = O + X * Q[:, 0:1] + Y * Q[:, 1:2]
        return W[0] if single else W

    def from_beam_space_plane(self, plane: Frame, extend: bool = True) -> Frame:
        return self.from_beam_space_planes([plane], extend)[0]

    def from_beam_space_planes(self, planes: Sequence[Frame], extend: bool = True) -> List[Frame]:
        if not planes:
            return []
        zs = np.array([p.origin[2] for p in planes])
        curve = self.curve_for_mapping(float(np.max(zs)), extend)
        ts = self._parameters_for_lengths(curve, zs)
        frames = generate_frames(curve, self.orientation, ts)
        out = []
        for plane, frame in zip(planes, frames):
            local = plane.copy()
            local.origin[2] = 0.0
            out.append(local.transform(plane_to_plane(WORLD_XY, frame)))
        return out

    def from_beam_space_mesh(self, mesh: Mesh, extend: bool = True) -> Mesh:
        return mesh.with_vertices(self.from_beam_space(mesh.vertices, extend))


