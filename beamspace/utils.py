# utils.py
# Shared numeric helpers: row normalisation, rotations, signed plane angles,
# angle wrap/unwrap and 4x4 affine transforms.

import logging
import math
from typing import Iterable, List, Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)

TWO_PI = 2.0 * math.pi


# ---------- vectors ----------

def _normalize_rows(a: np.ndarray, eps: float = 1e-12) -> np.ndarray:
    """
    Normalize each row vector; guard against zero-length rows.
    """
    a = np.asarray(a, float)
    n = np.linalg.norm(a, axis=-1, keepdims=True)
    n = np.where(n < eps, 1.0, n)
    return a / n


def unitize(v: Sequence[float], eps: float = 1e-12) -> np.ndarray:
    """Unit copy of a single vector; raises ValueError for a zero vector."""
    v = np.asarray(v, float)
    n = float(np.linalg.norm(v))
    if n < eps or not math.isfinite(n):
        raise ValueError(f"Cannot unitize vector {v.tolist()}.")
    return v / n


def is_valid_vector(v: Sequence[float], eps: float = 1e-12) -> bool:
    v = np.asarray(v, float)
    return bool(v.shape == (3,) and np.all(np.isfinite(v)) and np.linalg.norm(v) > eps)


# ---------- rotations ----------

def _rodrigues(axis: np.ndarray, theta: float) -> np.ndarray:
    """
    3x3 rotation matrix rotating around 'axis' (shape (3,)) by angle 'theta' (radians).
    'axis' does not need to be unit (we normalize internally).
    """
    ax = np.asarray(axis, float)
    ax = ax / (np.linalg.norm(ax) + 1e-12)
    K = np.array([[0, -ax[2], ax[1]],
                  [ax[2], 0, -ax[0]],
                  [-ax[1], ax[0], 0]], dtype=float)
    I = np.eye(3, dtype=float)
    return I + math.sin(theta) * K + (1.0 - math.cos(theta)) * (K @ K)


def rotate_about_axis(V: np.ndarray, U: np.ndarray, theta) -> np.ndarray:
    """
    Rotate row vectors V about unit row axes U by angles theta (Rodrigues, vectorized).
    V, U: (N,3) or (3,); theta scalar or (N,).
    """
    V = np.asarray(V, float)
    U = np.asarray(U, float)
    single = V.ndim == 1
    V2 = np.atleast_2d(V)
    U2 = np.broadcast_to(np.atleast_2d(U), V2.shape)
    th = np.broadcast_to(np.asarray(theta, float).reshape(-1), (V2.shape[0],)).reshape(-1, 1)
    c = np.cos(th)
    s = np.sin(th)
    udv = (U2 * V2).sum(axis=1, keepdims=True)
    out = V2 * c + np.cross(U2, V2) * s + U2 * udv * (1.0 - c)
    return out[0] if single else out


# ---------- angles ----------

def vector_angle(a: Sequence[float], b: Sequence[float], normal: Sequence[float]) -> float:
    """
    Signed angle from `a` to `b` measured counter-clockwise about `normal`,
    after projecting both into the plane of `normal`. Result in [0, 2*pi).
    """
    n = unitize(normal)
    a = np.asarray(a, float)
    b = np.asarray(b, float)
    a = a - n * float(a @ n)
    b = b - n * float(b @ n)
    ang = math.atan2(float(np.cross(a, b) @ n), float(a @ b))
    if ang < 0.0:
        ang += TWO_PI
    return ang


def wrap_angle(angle: float) -> float:
    """Map an angle into (-pi, pi]."""
    a = math.fmod(float(angle), TWO_PI)
    if a > math.pi:
        a -= TWO_PI
    elif a <= -math.pi:
        a += TWO_PI
    return a


def unwrap_angles(angles: Iterable[float], wrap_first: bool = False) -> List[float]:
    """
    Left-to-right unwrap: each consecutive difference is brought into (-pi, pi]
    by adding or subtracting whole turns. With wrap_first the first angle is
    itself clamped into (-pi, pi].
    """
    out = [float(a) for a in angles]
    if not out:
        return out
    if wrap_first:
        out[0] = wrap_angle(out[0])
    for i in range(1, len(out)):
        d = out[i] - out[i - 1]
        while d > math.pi:
            out[i] -= TWO_PI
            d -= TWO_PI
        while d <= -math.pi:
            out[i] += TWO_PI
            d += TWO_PI
    return out


# ---------- affine transforms (4x4, column vectors) ----------

def translation(v: Sequence[float]) -> np.ndarray:
    M = np.eye(4)
    M[:3, 3] = np.asarray(v, float)
    return M


def rotation(angle: float, axis: Sequence[float], center: Optional[Sequence[float]] = None) -> np.ndarray:
    """Rotation by `angle` radians about `axis` through `center` (default origin)."""
    M = np.eye(4)
    M[:3, :3] = _rodrigues(np.asarray(axis, float), angle)
    if center is not None:
        c = np.asarray(center, float)
        M[:3, 3] = c - M[:3, :3] @ c
    return M


def scaling(factor: float, center: Optional[Sequence[float]] = None) -> np.ndarray:
    M = np.eye(4)
    M[:3, :3] *= float(factor)
    if center is not None:
        c = np.asarray(center, float)
        M[:3, 3] = c - M[:3, :3] @ c
    return M


def as_transform(xform) -> np.ndarray:
    M = np.asarray(xform, float)
    if M.shape != (4, 4):
        raise ValueError(f"Expected a 4x4 transform, got shape {M.shape}.")
    return M


def transform_points(xform, points) -> np.ndarray:
    M = as_transform(xform)
    P = np.asarray(points, float)
    single = P.ndim == 1
    P2 = np.atleast_2d(P)
    out = P2 @ M[:3, :3].T + M[:3, 3]
    return out[0] if single else out


def transform_vectors(xform, vectors) -> np.ndarray:
    """Apply only the linear part of a transform (directions)."""
    M = as_transform(xform)
    V = np.asarray(vectors, float)
    single = V.ndim == 1
    out = np.atleast_2d(V) @ M[:3, :3].T
    return out[0] if single else out
