# orientation.py
"""
Orientation fields: strategies returning the unit "up" (frame Y) vector of a
beam cross-section at any parameter of its centreline.

The variant set is closed:

  FixedVector             one world vector, projected off the tangent
  VectorField             interpolated guide vectors (see vector_field.py)
  SurfaceNormal           normal of a reference mesh at the closest point
  RailCurve               direction towards a second curve
  Curvature               Frenet normal (unit curvature vector)
  RotationMinimizingFrame Y axis of the curve's rotation-minimising frame
  Planar                  in-plane direction perpendicular to the tangent

Every variant returns vectors orthogonal to the tangent: the raw candidate v
is replaced by cross(cross(tangent, v), tangent) and unitised. A candidate
parallel to the tangent comes back as a zero vector, which the frame
generator reports as an invalid frame.
"""

from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

import numpy as np

from .config import get_settings
from .frame import Frame
from .parallel import parallel_map
from .utils import _normalize_rows, transform_vectors, is_valid_vector

logger = logging.getLogger(__name__)

ORIENTATION_KINDS: Dict[str, Type["OrientationField"]] = {}


# ---------- shared helpers ----------

def normalize_vector(curve, t: float, v) -> np.ndarray:
    """Project `v` orthogonal to the tangent at t and unitise it."""
    tan = curve.tangent_at(float(t))
    v = _normalize_rows(np.asarray(v, float))
    return _normalize_rows(np.cross(np.cross(tan, v), tan))


def normalize_vectors(curve, ts, V) -> np.ndarray:
    """Vectorised `normalize_vector`; V is (3,) or (N,3)."""
    T = np.atleast_2d(curve.tangent_at(np.asarray(ts, float).reshape(-1)))
    V = _normalize_rows(np.broadcast_to(np.asarray(V, float), T.shape))
    return _normalize_rows(np.cross(np.cross(T, V), T))


def perpendicular_frame_at(curve, t: float, tolerance: Optional[float] = None) -> Frame:
    """
    Rotation-minimising frame at t, always transported from the domain start:

      t at the start (within tolerance) -> first frame of [min, max]
      t at the end (within tolerance)   -> last frame of [min, max]
      t after the start                 -> last frame of [min, t]
      t before the start                -> first frame of [t, max]
    """
    tol = get_settings().tolerance if tolerance is None else tolerance
    t0, t1 = curve.domain
    t = float(t)
    if abs(t - t0) < tol:
        return curve.perpendicular_frames([t0, t1])[0]
    if abs(t - t1) < tol:
        return curve.perpendicular_frames([t0, t1])[-1]
    if t > t0:
        return curve.perpendicular_frames([t0, t])[-1]
    return curve.perpendicular_frames([t, t1])[0]


# ---------- contract ----------

class OrientationField(ABC):
    """
    Base class for all orientation variants.

    Subclasses implement `get_orientation`; the batch form, splitting, trimming,
    joining and remapping default to stateless behaviour (loop, duplicates,
    no-op) and are overridden where a variant carries curve-dependent state.
    """

    kind: str = ""

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if cls.kind:
            ORIENTATION_KINDS[cls.kind] = cls

    @abstractmethod
    def get_orientation(self, curve, t: float) -> np.ndarray:
        """Unit vector orthogonal to the tangent at t."""

    def get_orientations(self, curve, ts: Sequence[float]) -> np.ndarray:
        ts = np.asarray(ts, float).reshape(-1)
        if ts.size == 0:
            return np.zeros((0, 3))
        return np.vstack(parallel_map(lambda t: self.get_orientation(curve, t), ts))

    def get_orientation_at_point(self, curve, point) -> np.ndarray:
        return self.get_orientation(curve, curve.closest_point(point))

    def get_driver(self) -> Any:
        return None

    def remap(self, old_curve, new_curve) -> None:
        return None

    def split(self, ts: Sequence[float]) -> List["OrientationField"]:
        return [self.duplicate() for _ in range(len(ts) + 1)]

    def trim(self, domain: Tuple[float, float]) -> "OrientationField":
        return self.duplicate()

    def join(self, other: "OrientationField") -> "OrientationField":
        return self.duplicate()

    def duplicate(self) -> "OrientationField":
        return copy.deepcopy(self)

    def transform(self, xform) -> "OrientationField":
        return self.duplicate()

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


# ---------- stateless variants ----------

class FixedVector(OrientationField):
    kind = "fixed_vector"

    def __init__(self, vector):
        if not is_valid_vector(vector):
            raise ValueError(f"FixedVector needs a finite non-zero vector, got {vector!r}.")
        self.vector = np.asarray(vector, float).reshape(3)

    def get_orientation(self, curve, t):
        return normalize_vector(curve, t, self.vector)

    def get_orientations(self, curve, ts):
        ts = np.asarray(ts, float).reshape(-1)
        if ts.size == 0:
            return np.zeros((0, 3))
        return normalize_vectors(curve, ts, self.vector)

    def get_driver(self):
        return self.vector.copy()

    def transform(self, xform):
        return FixedVector(transform_vectors(xform, self.vector))

    def __repr__(self):
        return f"FixedVector({self.vector.tolist()})"


class SurfaceNormal(OrientationField):
    """Normal of a reference mesh at the point closest to the centreline."""

    kind = "surface_normal"

    def __init__(self, mesh):
        self.mesh = mesh

    def get_orientation(self, curve, t):
        n = self.mesh.normal_at(curve.point_at(float(t)))
        return normalize_vector(curve, t, n)

    def get_driver(self):
        return self.mesh

    def transform(self, xform):
        return SurfaceNormal(self.mesh.transform(xform))


class RailCurve(OrientationField):
    """
    Direction from the centreline towards a rail curve: to the closest rail
    point (use_closest) or to the rail point at the same parameter.
    """

    kind = "rail_curve"

    def __init__(self, rail, use_closest: bool = True):
        self.rail = rail.duplicate()
        self.use_closest = bool(use_closest)

    def get_orientation(self, curve, t):
        pt = curve.point_at(float(t))
        if self.use_closest:
            target = self.rail.point_at(self.rail.closest_point(pt))
        else:
            target = self.rail.point_at(float(t))
        return normalize_vector(curve, t, target - pt)

    def get_driver(self):
        return self.rail

    def transform(self, xform):
        return RailCurve(self.rail.transform(xform), self.use_closest)

    def __repr__(self):
        return f"RailCurve({self.rail!r}, use_closest={self.use_closest})"


class Curvature(OrientationField):
    """Unit curvature vector; batches flip samples that disagree with their predecessor."""

    kind = "curvature"

    def get_orientation(self, curve, t):
        return _normalize_rows(curve.curvature_at(float(t)))

    def get_orientations(self, curve, ts):
        ts = np.asarray(ts, float).reshape(-1)
        if ts.size == 0:
            return np.zeros((0, 3))
        K = _normalize_rows(np.atleast_2d(curve.curvature_at(ts)))
        for i in range(1, len(K)):
            if float(K[i] @ K[i - 1]) < 0.0:
                K[i] = -K[i]
        return K


class RotationMinimizingFrame(OrientationField):
    """Y axis of the curve's rotation-minimising frame."""

    kind = "rmf"

    def get_orientation(self, curve, t):
        return perpendicular_frame_at(curve, t).y_axis

    def get_orientations(self, curve, ts):
        """
        One cumulative frame computation over the sorted parameters, started at
        the domain minimum so the batch agrees with single queries. Parameters
        before the domain are transported individually. Results are returned
        in input order.
        """
        ts = np.asarray(ts, float).reshape(-1)
        if ts.size == 0:
            return np.zeros((0, 3))
        tol = get_settings().tolerance
        t0, t1 = curve.domain
        # same end snapping as perpendicular_frame_at
        q = np.where(np.abs(ts - t0) < tol, t0, np.where(np.abs(ts - t1) < tol, t1, ts))
        out = np.empty((len(q), 3))
        before = q < t0
        for i in np.flatnonzero(before):
            out[i] = perpendicular_frame_at(curve, q[i], tol).y_axis
        rest = np.flatnonzero(~before)
        if rest.size:
            order = rest[np.argsort(q[rest], kind="stable")]
            frames = curve.perpendicular_frames(np.concatenate([[t0], q[order]]))[1:]
            out[order] = np.vstack([f.y_axis for f in frames])
        return out


class Planar(OrientationField):
    """Direction in the plane perpendicular to the tangent: cross(plane normal, tangent)."""

    kind = "planar"

    def __init__(self, plane: Frame):
        self.plane = plane.copy()

    def get_orientation(self, curve, t):
        v = np.cross(self.plane.normal, curve.tangent_at(float(t)))
        return normalize_vector(curve, t, v)

    def get_orientations(self, curve, ts):
        ts = np.asarray(ts, float).reshape(-1)
        if ts.size == 0:
            return np.zeros((0, 3))
        T = np.atleast_2d(curve.tangent_at(ts))
        return normalize_vectors(curve, ts, np.cross(self.plane.normal, T))

    def get_driver(self):
        return self.plane.copy()

    def transform(self, xform):
        return Planar(self.plane.transform(xform))

    def __repr__(self):
        return f"Planar(normal={self.plane.normal.tolist()})"


def create_orientation(kind: str, **kwargs) -> OrientationField:
    """Build an orientation variant by its kind name (see ORIENTATION_KINDS)."""
    from . import vector_field  # noqa: F401  (registers "vector_field")
    cls = ORIENTATION_KINDS.get(kind)
    if cls is None:
        raise ValueError(f"Unknown orientation kind {kind!r}; expected one of {sorted(ORIENTATION_KINDS)}.")
    return cls(**kwargs)
