# frames.py
"""
Frame generator: orthonormal cross-section frames along a curve from the
curve tangent and an orientation field, plus the adaptive discretisation used
to place cross-section planes.
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .config import get_settings
from .errors import DegenerateGeometry, InvalidFrame
from .frame import Frame

logger = logging.getLogger(__name__)


def frame_from_normal_and_y_axis(origin, normal, y_axis) -> Frame:
    """Frame with z = normal, y = y_axis made perpendicular, x = cross(y_axis, normal)."""
    return Frame.from_normal_and_y_axis(origin, normal, y_axis)


def _frame_arrays(curve, orientation, params, tolerance: Optional[float] = None):
    """
    (P, X, Y, Z) arrays (N,3) for the given parameters.
    Raises InvalidFrame listing every parameter whose frame is not orthonormal.
    """
    ts = np.asarray(params, float).reshape(-1)
    if ts.size == 0:
        e = np.zeros((0, 3))
        return e, e.copy(), e.copy(), e.copy()
    tol = get_settings().frame_tolerance if tolerance is None else tolerance

    P = np.atleast_2d(curve.point_at(ts))
    Z = np.atleast_2d(curve.tangent_at(ts))
    Y = np.atleast_2d(np.asarray(orientation.get_orientations(curve, ts), float))
    if Y.shape != Z.shape:
        raise ValueError(f"Orientation returned {Y.shape} vectors for {len(ts)} parameters.")
    X = np.cross(Y, Z)

    with np.errstate(invalid="ignore"):
        ny = np.linalg.norm(Y, axis=1)
        nx = np.linalg.norm(X, axis=1)
        yz = np.abs(np.einsum("ij,ij->i", Y, Z))
        bad = ~np.isfinite(ny) | (np.abs(ny - 1.0) > tol) | (np.abs(nx - 1.0) > tol) | ~(yz <= tol)
    if np.any(bad):
        idx = np.flatnonzero(bad)
        raise InvalidFrame(
            f"{len(idx)} of {len(ts)} frames are not orthonormal "
            f"(orientation parallel to tangent or undefined).",
            ts[idx], idx,
        )
    return P, X, Y, Z


def generate_frames(curve, orientation, params: Sequence[float],
                    tolerance: Optional[float] = None) -> List[Frame]:
    """Frames (origin, x = cross(y, tangent), y = orientation, z = tangent) at each parameter."""
    P, X, Y, Z = _frame_arrays(curve, orientation, params, tolerance)
    return [Frame(P[i], X[i], Y[i], Z[i]) for i in range(len(P))]


def generate_frame(curve, orientation, t: float, tolerance: Optional[float] = None) -> Frame:
    return generate_frames(curve, orientation, [float(t)], tolerance)[0]


# ---------- discretisation ----------

def discretize(
    curve,
    tolerance: float,
    angle_tolerance: float,
    min_segment_length: float,
    max_segment_length: Optional[float] = None,
    max_depth: int = 24,
) -> np.ndarray:
    """
    Adaptive polyline approximation of the curve; returns the breakpoint
    parameters (domain ends included).

    A span is halved while its chord is longer than `max_segment_length`, or
    while its midpoint deviates from the chord by more than `tolerance` or
    its end tangents differ by more than `angle_tolerance`, as long as the
    halves stay at least `min_segment_length` long.
    """
    t0, t1 = curve.domain
    max_len = math.inf if not max_segment_length else float(max_segment_length)
    out = [t0]

    def _needs_split(a, b, pa, pb, pm, depth):
        chord = float(np.linalg.norm(pb - pa))
        if depth == 0 and chord <= tolerance:
            # closed curve: start and end coincide
            return True
        if chord > max_len:
            return True
        if chord < 2.0 * min_segment_length:
            return False
        d = pb - pa
        mu = float((pm - pa) @ d) / (chord * chord)
        dev = float(np.linalg.norm(pa + mu * d - pm))
        ta, tb = curve.tangent_at(np.array([a, b]))
        ang = math.acos(float(np.clip(ta @ tb, -1.0, 1.0)))
        return dev > tolerance or ang > angle_tolerance

    def _subdivide(a, b, pa, pb, depth):
        m = 0.5 * (a + b)
        pm = curve.point_at(m)
        if depth < max_depth and _needs_split(a, b, pa, pb, pm, depth):
            _subdivide(a, m, pa, pm, depth + 1)
            _subdivide(m, b, pm, pb, depth + 1)
        else:
            out.append(b)

    _subdivide(t0, t1, curve.point_at(t0), curve.point_at(t1), 0)
    return np.asarray(out, dtype=float)


def cross_section_parameters(curve, num_samples: Optional[int] = None) -> np.ndarray:
    """
    Cross-section sample parameters: adaptive breakpoints (longest segment =
    length / minimum_num_segments), or `num_samples` equal-length parameters
    when the approximation degenerates.
    """
    s = get_settings()
    n = int(num_samples or s.cross_section_samples)
    ts: Optional[np.ndarray] = None
    try:
        L = curve.length()
        ts = discretize(curve, s.tolerance, s.angle_tolerance, s.minimum_segment_length,
                        L / s.minimum_num_segments)
    except DegenerateGeometry as e:
        logger.warning("Curve discretisation failed (%s); dividing into %d samples.", e, n)
    else:
        if len(ts) < 3:
            logger.warning("Curve discretisation gave %d points; dividing into %d samples.", len(ts), n)
            ts = None
    if ts is None:
        ts = curve.divide_by_count(max(n - 1, 1), True)
    logger.debug("cross_section_parameters: %d samples", len(ts))
    return ts


def generate_cross_section_planes(curve, orientation, num_samples: Optional[int] = None
                                  ) -> Tuple[List[Frame], np.ndarray]:
    """Validated frames at the cross-section parameters, with the parameters."""
    ts = cross_section_parameters(curve, num_samples)
    return generate_frames(curve, orientation, ts), ts
