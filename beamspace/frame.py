# frame.py
"""
Frame: an origin with three axes (x, y, z) used as a plane and as a local
coordinate system. The beam convention is z = curve tangent, y = orientation
vector, x = cross(y, z).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .errors import InvalidOrientationVector
from .utils import as_transform, transform_points, transform_vectors

logger = logging.getLogger(__name__)


@dataclass
class Frame:
    origin: np.ndarray
    x_axis: np.ndarray
    y_axis: np.ndarray
    z_axis: np.ndarray

    def __post_init__(self):
        self.origin = np.asarray(self.origin, float).reshape(3)
        self.x_axis = np.asarray(self.x_axis, float).reshape(3)
        self.y_axis = np.asarray(self.y_axis, float).reshape(3)
        self.z_axis = np.asarray(self.z_axis, float).reshape(3)

    # ----- construction -----

    @classmethod
    def from_normal_and_y_axis(cls, origin, normal, y_axis, eps: float = 1e-12) -> "Frame":
        """
        Plane through `origin` whose normal is `normal` and whose y axis is the
        part of `y_axis` perpendicular to it; x = cross(y_axis, normal).
        """
        z = np.asarray(normal, float)
        nz = float(np.linalg.norm(z))
        if nz < eps:
            raise InvalidOrientationVector("Frame normal has zero length.")
        z = z / nz
        x = np.cross(np.asarray(y_axis, float), z)
        nx = float(np.linalg.norm(x))
        if nx < eps:
            raise InvalidOrientationVector("Frame y axis is parallel to its normal.")
        x = x / nx
        y = np.cross(z, x)
        return cls(origin, x, y, z)

    @classmethod
    def world_xy(cls) -> "Frame":
        return cls(np.zeros(3), np.array([1.0, 0.0, 0.0]), np.array([0.0, 1.0, 0.0]), np.array([0.0, 0.0, 1.0]))

    def copy(self) -> "Frame":
        return Frame(self.origin.copy(), self.x_axis.copy(), self.y_axis.copy(), self.z_axis.copy())

    # ----- introspection -----

    @property
    def normal(self) -> np.ndarray:
        return self.z_axis

    def axes(self) -> np.ndarray:
        """(3,3) array with rows x, y, z."""
        return np.vstack([self.x_axis, self.y_axis, self.z_axis])

    def is_valid(self, tolerance: float = 1e-6) -> bool:
        """Unit axes, mutually orthogonal and right-handed within tolerance."""
        A = self.axes()
        if not np.all(np.isfinite(A)) or not np.all(np.isfinite(self.origin)):
            return False
        G = A @ A.T
        if np.max(np.abs(G - np.eye(3))) > tolerance:
            return False
        return bool(np.linalg.norm(np.cross(self.x_axis, self.y_axis) - self.z_axis) <= tolerance)

    # ----- coordinates -----

    def point_at(self, x: float, y: float, z: float = 0.0) -> np.ndarray:
        return self.origin + x * self.x_axis + y * self.y_axis + z * self.z_axis

    def remap_to_plane_space(self, points) -> np.ndarray:
        """World points -> local (x, y, z) coordinates; z is the signed offset along the normal."""
        P = np.asarray(points, float)
        single = P.ndim == 1
        local = (np.atleast_2d(P) - self.origin) @ self.axes().T
        return local[0] if single else local

    def closest_point(self, point) -> np.ndarray:
        p = np.asarray(point, float)
        return p - self.z_axis * float((p - self.origin) @ self.z_axis)

    # ----- transforms -----

    def to_world_matrix(self) -> np.ndarray:
        """4x4 matrix taking local coordinates to world coordinates."""
        M = np.eye(4)
        M[:3, 0] = self.x_axis
        M[:3, 1] = self.y_axis
        M[:3, 2] = self.z_axis
        M[:3, 3] = self.origin
        return M

    def to_local_matrix(self) -> np.ndarray:
        """4x4 matrix taking world coordinates to local coordinates."""
        return np.linalg.inv(self.to_world_matrix())

    def transform(self, xform) -> "Frame":
        """Transformed copy; axes are re-orthonormalised so non-uniform scales keep a valid frame."""
        M = as_transform(xform)
        o = transform_points(M, self.origin)
        x = transform_vectors(M, self.x_axis)
        y = transform_vectors(M, self.y_axis)
        z = np.cross(x, y)
        if np.linalg.det(M[:3, :3]) < 0.0:
            # mirrored: keep the frame right-handed
            z = -z
        return Frame.from_normal_and_y_axis(o, z, y)

    def __repr__(self) -> str:
        return (f"Frame(origin={self.origin.tolist()}, x={self.x_axis.tolist()}, "
                f"y={self.y_axis.tolist()}, z={self.z_axis.tolist()})")


WORLD_XY = Frame.world_xy()


def plane_to_plane(source: Frame, target: Frame) -> np.ndarray:
    """Rigid 4x4 transform mapping `source` onto `target` (origin and axes)."""
    return target.to_world_matrix() @ source.to_local_matrix()


def frames_to_arrays(frames: Sequence[Frame]):
    """Stack frames into (P, X, Y, Z) arrays of shape (N,3)."""
    if not frames:
        e = np.zeros((0, 3))
        return e, e.copy(), e.copy(), e.copy()
    P = np.vstack([f.origin for f in frames])
    X = np.vstack([f.x_axis for f in frames])
    Y = np.vstack([f.y_axis for f in frames])
    Z = np.vstack([f.z_axis for f in frames])
    return P, X, Y, Z
