# curve.py
"""
Curve adapter used by orientation fields, the frame generator and the
beam-space mapper.

`Curve` fixes the capability set (evaluation, closest point, arc length,
rotation-minimising frames, extension, division, trimming); the concrete
classes supply evaluation:

  - `PolylineCurve`  : stations + vertices, linear interpolation/extrapolation
  - `SplineCurve`    : scipy CubicSpline through points
  - `ExtendedCurve`  : a base curve continued past one or both ends
  - `ReversedCurve`  : a base curve traversed backwards

All public methods accept a scalar parameter (returning (3,) / float) or an
array of parameters (returning (N,3) / (N,)).
"""

from __future__ import annotations

import copy
import logging
import math
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.integrate import quad
from scipy.interpolate import CubicSpline
from scipy.optimize import brentq

from .config import get_settings
from .errors import DegenerateGeometry
from .frame import Frame
from .parallel import parallel_map
from .utils import _normalize_rows, _rodrigues, transform_points

logger = logging.getLogger(__name__)

ArrayLike = Union[float, Sequence[float], np.ndarray]

_TANGENT_EPS = 1e-12


class CurveEnd(str, Enum):
    START = "start"
    END = "end"
    BOTH = "both"


class ExtensionStyle(str, Enum):
    LINE = "line"      # tangent line continuation
    SMOOTH = "smooth"  # the curve's own analytic continuation


def _params(t: ArrayLike) -> Tuple[np.ndarray, bool]:
    a = np.asarray(t, dtype=float)
    return a.reshape(-1), a.ndim == 0


# ---------- rotation-minimising transport ----------

def _initial_normal(t0: np.ndarray) -> np.ndarray:
    # Initial normal from an up-hint projected orthogonal to the first tangent
    up = np.array([0.0, 0.0, 1.0], dtype=float)
    n0 = up - t0 * float(up @ t0)
    if np.linalg.norm(n0) < 1e-9:
        logger.debug("Transport start tangent is vertical; using world Y as up hint.")
        up = np.array([0.0, 1.0, 0.0], dtype=float)
        n0 = up - t0 * float(up @ t0)
    return _normalize_rows(n0)


def _transport_step(n_prev: np.ndarray, t_prev: np.ndarray, t_cur: np.ndarray) -> np.ndarray:
    """Carry the normal from tangent t_prev to t_cur with the minimal rotation."""
    v = np.cross(t_prev, t_cur)
    s = float(np.linalg.norm(v))
    c = float(np.clip(t_prev @ t_cur, -1.0, 1.0))
    if s < 1e-12:
        n = n_prev
    else:
        R = _rodrigues(v / s, math.atan2(s, c))
        n = R @ n_prev
    # Re-orthonormalize (accumulated drift guard)
    n = n - (n @ t_cur) * t_cur
    return n / (np.linalg.norm(n) + 1e-12)


def _transport_normals(T: np.ndarray) -> np.ndarray:
    N = np.zeros_like(T)
    if len(T) == 0:
        return N
    N[0] = _initial_normal(T[0])
    for i in range(1, len(T)):
        N[i] = _transport_step(N[i - 1], T[i - 1], T[i])
    return N


def _closest_on_samples(curve: "Curve", p: np.ndarray, ts: np.ndarray) -> Tuple[float, float]:
    """
    Closest parameter among sorted samples `ts`, refined by root-finding
    (P(t) - p) . P'(t) = 0 in the brackets next to the best sample.
    Returns (t, squared distance).
    """
    P = curve._evaluate(ts, 0)
    d2 = np.einsum("ij,ij->i", P - p, P - p)
    i = int(np.argmin(d2))
    best_t, best_d = float(ts[i]), float(d2[i])

    def g(t):
        e = np.array([t])
        return float((curve._evaluate(e, 0)[0] - p) @ curve._evaluate(e, 1)[0])

    for lo, hi in ((i - 1, i), (i, i + 1)):
        if lo < 0 or hi >= len(ts):
            continue
        a, b = float(ts[lo]), float(ts[hi])
        if g(a) * g(b) >= 0.0:
            continue
        r = float(brentq(g, a, b, xtol=1e-15, maxiter=200))
        q = curve._evaluate(np.array([r]), 0)[0] - p
        dr = float(q @ q)
        if dr < best_d:
            best_t, best_d = r, dr
    return best_t, best_d


def _closest_on_segment(A: np.ndarray, B: np.ndarray, p: np.ndarray) -> Tuple[float, float]:
    """(mu in [0, 1], squared distance) of the closest point on segment AB."""
    AB = B - A
    ab2 = float(AB @ AB)
    mu = 0.0 if ab2 < 1e-300 else min(max(float((p - A) @ AB) / ab2, 0.0), 1.0)
    q = A + mu * AB - p
    return mu, float(q @ q)


# ---------- abstract curve ----------

class Curve(ABC):
    """
    Abstract parametric space curve over a domain [t0, t1].

    Subclasses implement `_evaluate(ts, order)` and usually override the arc
    length, closest point and sampling hooks with exact versions.
    """

    def __init__(self, domain: Tuple[float, float]):
        t0, t1 = float(domain[0]), float(domain[1])
        if not t1 > t0:
            raise ValueError(f"Curve domain must be increasing, got ({t0}, {t1}).")
        self._domain = (t0, t1)
        # Fixed reference parameter for absolute arc length; survives trimming.
        self._length_ref = t0

    # ----- required -----

    @abstractmethod
    def _evaluate(self, ts: np.ndarray, order: int) -> np.ndarray:
        """Position (order 0) or derivative (order 1, 2) at parameters ts -> (N,3)."""

    @abstractmethod
    def transform(self, xform) -> "Curve":
        """Transformed copy."""

    # ----- domain -----

    @property
    def domain(self) -> Tuple[float, float]:
        return self._domain

    def includes(self, t: float, tolerance: float = 0.0) -> bool:
        t0, t1 = self._domain
        return (t0 - tolerance) <= t <= (t1 + tolerance)

    def _with_domain(self, domain: Tuple[float, float]) -> "Curve":
        c = copy.copy(self)
        lo, hi = float(domain[0]), float(domain[1])
        if not hi > lo:
            raise ValueError(f"Curve domain must be increasing, got ({lo}, {hi}).")
        c._domain = (lo, hi)
        return c

    # ----- evaluation -----

    def point_at(self, t: ArrayLike) -> np.ndarray:
        ts, scalar = _params(t)
        P = self._evaluate(ts, 0)
        return P[0] if scalar else P

    def derivative_at(self, t: ArrayLike, order: int = 1) -> np.ndarray:
        if order not in (1, 2):
            raise ValueError("Only first and second derivatives are supported.")
        ts, scalar = _params(t)
        D = self._evaluate(ts, order)
        return D[0] if scalar else D

    def tangent_at(self, t: ArrayLike) -> np.ndarray:
        ts, scalar = _params(t)
        D = self._evaluate(ts, 1)
        n = np.linalg.norm(D, axis=1)
        bad = ~np.isfinite(n) | (n < _TANGENT_EPS)
        if np.any(bad):
            raise DegenerateGeometry(
                f"Tangent is undefined at {int(bad.sum())} parameter(s).", ts[bad]
            )
        T = D / n[:, None]
        return T[0] if scalar else T

    def curvature_at(self, t: ArrayLike) -> np.ndarray:
        """Curvature vector (points to the centre of curvature, length 1/radius)."""
        ts, scalar = _params(t)
        T = np.atleast_2d(self.tangent_at(ts))
        D1 = self._evaluate(ts, 1)
        D2 = self._evaluate(ts, 2)
        speed2 = np.einsum("ij,ij->i", D1, D1)
        K = (D2 - np.einsum("ij,ij->i", D2, T)[:, None] * T) / speed2[:, None]
        return K[0] if scalar else K

    # ----- arc length -----

    def _speed(self, t: float) -> float:
        return float(np.linalg.norm(self._evaluate(np.array([t]), 1)[0]))

    def _abs_length(self, ts: np.ndarray) -> np.ndarray:
        """Signed arc length from the fixed reference parameter."""
        ref = self._length_ref
        return np.array([quad(self._speed, ref, float(t), limit=200)[0] for t in ts])

    def arc_length(self, t0: Optional[ArrayLike] = None, t1: Optional[ArrayLike] = None):
        """
        Signed arc length between t0 and t1 (defaults: the domain ends).
        Either bound may be an array.
        """
        d0, d1 = self._domain
        a, sa = _params(d0 if t0 is None else t0)
        b, sb = _params(d1 if t1 is None else t1)
        out = self._abs_length(b) - self._abs_length(a)
        if sa and sb:
            return float(out[0])
        return out

    def length(self) -> float:
        return self.arc_length()

    def length_parameter(self, s: float, tolerance: Optional[float] = None) -> Optional[float]:
        """
        Parameter at arc length `s` measured from the domain start, or None
        when `s` lies outside [0, length] by more than the tolerance.
        """
        tol = get_settings().tolerance if tolerance is None else tolerance
        t0, t1 = self._domain
        L = self.length()
        s = float(s)
        if not math.isfinite(s) or s < -tol or s > L + tol:
            return None
        if s <= 0.0:
            return t0
        if s >= L:
            return t1
        base = float(self._abs_length(np.array([t0]))[0])

        def f(t):
            return float(self._abs_length(np.array([t]))[0]) - base - s

        return float(brentq(f, t0, t1, xtol=1e-14, maxiter=200))

    def divide_by_count(self, count: int, include_ends: bool = True) -> np.ndarray:
        """Parameters dividing the curve into `count` pieces of equal arc length."""
        count = int(count)
        if count < 1:
            raise ValueError("divide_by_count requires count >= 1.")
        t0, t1 = self._domain
        L = self.length()
        ts = np.empty(count + 1)
        ts[0], ts[-1] = t0, t1
        for i in range(1, count):
            t = self.length_parameter(L * i / count)
            if t is None:
                raise DegenerateGeometry("Arc length division failed.", [L * i / count])
            ts[i] = t
        return ts if include_ends else ts[1:-1]

    # ----- closest point -----

    def _sample_parameters(self) -> np.ndarray:
        t0, t1 = self._domain
        return np.linspace(t0, t1, 65)

    def closest_point(self, point: Sequence[float]) -> float:
        """Parameter of the closest curve point, restricted to the domain."""
        p = np.asarray(point, float).reshape(3)
        return _closest_on_samples(self, p, self._sample_parameters())[0]

    def closest_points(self, points, workers: Optional[int] = None) -> np.ndarray:
        P = np.asarray(points, float)
        if P.size == 0:
            return np.zeros(0)
        return np.asarray(parallel_map(self.closest_point, list(np.atleast_2d(P)), workers), dtype=float)

    # ----- rotation-minimising frames -----

    def _transport_nodes(self, a: float, b: float) -> np.ndarray:
        """Curve-intrinsic parameters strictly between a and b used for transport."""
        s = self._sample_parameters()
        return s[(s > a) & (s < b)]

    def perpendicular_frames(self, params: ArrayLike) -> List[Frame]:
        """
        Rotation-minimising frames at non-decreasing parameters.

        The normal starts from world Z (or Y for a vertical tangent) at the first
        parameter and is parallel-transported through the curve's own nodes, so
        the frame at t depends only on the first parameter and t. Frames are
        (origin, x = cross(y, z), y = transported normal, z = tangent).
        """
        ts, _ = _params(params)
        if ts.size == 0:
            return []
        if np.any(np.diff(ts) < 0.0):
            raise ValueError("perpendicular_frames requires non-decreasing parameters.")

        first, last = float(ts[0]), float(ts[-1])
        if last > first:
            chain = np.concatenate([[first], self._transport_nodes(first, last), [last]])
        else:
            chain = np.array([first])
        Tc = np.atleast_2d(self.tangent_at(chain))
        Nc = _transport_normals(Tc)

        P = np.atleast_2d(self.point_at(ts))
        T = np.atleast_2d(self.tangent_at(ts))
        J = np.clip(np.searchsorted(chain, ts, side="right") - 1, 0, len(chain) - 1)

        frames: List[Frame] = []
        for k, j in enumerate(J):
            if chain[j] == ts[k]:
                n = Nc[j]
            else:
                n = _transport_step(Nc[j], Tc[j], T[k])
            frames.append(Frame(P[k], np.cross(n, T[k]), n, T[k]))
        return frames

    # ----- shape queries -----

    def is_linear(self, tolerance: Optional[float] = None) -> bool:
        """Straight and uniformly parameterised (position is affine in t)."""
        t0, t1 = self._domain
        ts = np.unique(np.concatenate([self._sample_parameters(), np.linspace(t0, t1, 17)]))
        P = self._evaluate(ts, 0)
        a, b = self._evaluate(np.array([t0, t1]), 0)
        chord = float(np.linalg.norm(b - a))
        if chord < _TANGENT_EPS:
            return False
        tol = 1e-9 * max(1.0, chord) if tolerance is None else tolerance
        mu = ((ts - t0) / (t1 - t0))[:, None]
        return bool(np.max(np.linalg.norm(P - (a + mu * (b - a)), axis=1)) <= tol)

    # ----- editing -----

    def extend(self, end: Union[CurveEnd, str], amount: float,
               style: Union[ExtensionStyle, str] = ExtensionStyle.LINE) -> "Curve":
        """Copy continued by arc length `amount` past the given end(s)."""
        if amount <= 0.0:
            return self.duplicate()
        return ExtendedCurve(self, end, amount, style)

    def trim(self, domain: Tuple[float, float]) -> "Curve":
        lo, hi = float(domain[0]), float(domain[1])
        if not hi > lo:
            raise ValueError(f"Trim domain must be increasing, got ({lo}, {hi}).")
        return self._with_domain((lo, hi))

    def split(self, t: ArrayLike) -> List["Curve"]:
        """Pieces between consecutive split parameters (strictly inside the domain)."""
        ts, _ = _params(t)
        t0, t1 = self._domain
        ts = np.sort(ts)
        if np.any(ts <= t0) or np.any(ts >= t1) or np.any(np.diff(ts) <= 0.0):
            raise ValueError("Split parameters must be distinct and strictly inside the domain.")
        bounds = np.concatenate([[t0], ts, [t1]])
        return [self._with_domain((bounds[i], bounds[i + 1])) for i in range(len(bounds) - 1)]

    def reverse(self) -> "Curve":
        return ReversedCurve(self)

    def duplicate(self) -> "Curve":
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        t0, t1 = self._domain
        return f"{type(self).__name__}(domain=({t0:.6g}, {t1:.6g}))"


# ---------- polyline ----------

class PolylineCurve(Curve):
    """
    Piecewise-linear curve through vertices at increasing stations.
    Stations default to cumulative chord length (arc-length parameterisation).
    """

    def __init__(self, points, stations: Optional[Sequence[float]] = None,
                 domain: Optional[Tuple[float, float]] = None):
        P = np.asarray(points, dtype=float)
        if P.ndim != 2 or P.shape[1] != 3 or len(P) < 2:
            raise ValueError("PolylineCurve needs at least two 3D points.")
        if stations is None:
            seg = np.linalg.norm(np.diff(P, axis=0), axis=1)
            s = np.concatenate([[0.0], np.cumsum(seg)])
        else:
            s = np.asarray(stations, dtype=float).reshape(-1)
            if len(s) != len(P):
                raise ValueError("PolylineCurve: stations and points must have the same length.")
        dup = np.where(np.diff(s) <= 0.0)[0]
        if len(dup):
            raise DegenerateGeometry("PolylineCurve: stations must be strictly increasing.", s[dup])

        self.points = P
        self.stations = s
        vel = np.diff(P, axis=0) / np.diff(s)[:, None]
        speed = np.linalg.norm(vel, axis=1)
        zero = np.where(speed < _TANGENT_EPS)[0]
        if len(zero):
            raise DegenerateGeometry("PolylineCurve: zero-length segment(s).", s[zero])
        self._vel = vel
        self._speed_seg = speed
        self._cum = np.concatenate([[0.0], np.cumsum(speed * np.diff(s))])
        super().__init__(domain if domain is not None else (s[0], s[-1]))
        self._length_ref = float(s[0])

    def _segment(self, ts: np.ndarray) -> np.ndarray:
        # right-hand segment at interior vertices
        return np.clip(np.searchsorted(self.stations, ts, side="right") - 1, 0, len(self.stations) - 2)

    def _evaluate(self, ts: np.ndarray, order: int) -> np.ndarray:
        i = self._segment(ts)
        if order == 0:
            return self.points[i] + self._vel[i] * (ts - self.stations[i])[:, None]
        if order == 1:
            return self._vel[i].copy()
        return np.zeros((len(ts), 3))

    def _abs_length(self, ts: np.ndarray) -> np.ndarray:
        ts = np.asarray(ts, float).reshape(-1)
        i = self._segment(ts)
        return self._cum[i] + self._speed_seg[i] * (ts - self.stations[i])

    def length_parameter(self, s: float, tolerance: Optional[float] = None) -> Optional[float]:
        tol = get_settings().tolerance if tolerance is None else tolerance
        t0, t1 = self._domain
        L = self.length()
        s = float(s)
        if not math.isfinite(s) or s < -tol or s > L + tol:
            return None
        if s <= 0.0:
            return t0
        if s >= L:
            return t1
        target = float(self._abs_length(np.array([t0]))[0]) + s
        j = int(np.clip(np.searchsorted(self._cum, target, side="right") - 1, 0, len(self.stations) - 2))
        t = self.stations[j] + (target - self._cum[j]) / self._speed_seg[j]
        return float(min(max(t, t0), t1))

    def closest_point(self, point: Sequence[float]) -> float:
        p = np.asarray(point, float).reshape(3)
        t0, t1 = self._domain
        lo = np.maximum(self.stations[:-1], t0)
        hi = np.minimum(self.stations[1:], t1)
        # segments entirely outside the domain drop out
        keep = hi >= lo
        if not np.any(keep):
            return t0
        lo, hi = lo[keep], hi[keep]
        A = self._evaluate(lo, 0)
        B = self._evaluate(hi, 0)
        AB = B - A
        ab2 = np.einsum("ij,ij->i", AB, AB)
        ab2 = np.where(ab2 < 1e-300, 1.0, ab2)
        mu = np.clip(np.einsum("ij,ij->i", p - A, AB) / ab2, 0.0, 1.0)
        Q = A + mu[:, None] * AB
        d2 = np.einsum("ij,ij->i", Q - p, Q - p)
        k = int(np.argmin(d2))
        return float(lo[k] + mu[k] * (hi[k] - lo[k]))

    def _sample_parameters(self) -> np.ndarray:
        t0, t1 = self._domain
        inner = self.stations[(self.stations > t0) & (self.stations < t1)]
        return np.concatenate([[t0], inner, [t1]])

    def _transport_nodes(self, a: float, b: float) -> np.ndarray:
        s = self.stations
        return s[(s > a) & (s < b)]

    def transform(self, xform) -> "PolylineCurve":
        return PolylineCurve(transform_points(xform, self.points), self.stations, self._domain)

    def reverse(self) -> "PolylineCurve":
        t0, t1 = self._domain
        c = t0 + t1
        return PolylineCurve(self.points[::-1].copy(), (c - self.stations)[::-1].copy(), (t0, t1))

    def __repr__(self) -> str:
        t0, t1 = self._domain
        return f"PolylineCurve(n={len(self.points)}, domain=({t0:.6g}, {t1:.6g}))"


# ---------- cubic spline ----------

class SplineCurve(Curve):
    """
    C2 cubic spline through points (scipy CubicSpline, one spline for all
    three coordinates). Stations default to cumulative chord length.
    Evaluation outside the stations uses the end polynomials.
    """

    def __init__(self, points, stations: Optional[Sequence[float]] = None,
                 bc_type: str = "not-a-knot", domain: Optional[Tuple[float, float]] = None,
                 substeps: Optional[int] = None):
        P = np.asarray(points, dtype=float)
        if P.ndim != 2 or P.shape[1] != 3 or len(P) < 2:
            raise ValueError("SplineCurve needs at least two 3D points.")
        if stations is None:
            seg = np.linalg.norm(np.diff(P, axis=0), axis=1)
            s = np.concatenate([[0.0], np.cumsum(seg)])
        else:
            s = np.asarray(stations, dtype=float).reshape(-1)
            if len(s) != len(P):
                raise ValueError("SplineCurve: stations and points must have the same length.")
        dup = np.where(np.diff(s) <= 0.0)[0]
        if len(dup):
            raise DegenerateGeometry("SplineCurve: stations must be strictly increasing.", s[dup])

        self.points = P
        self.stations = s
        self.bc_type = bc_type
        self.substeps = int(substeps or get_settings().transport_substeps)
        self._cs = CubicSpline(s, P, axis=0, bc_type=bc_type)
        self._d1 = self._cs.derivative(1)
        self._d2 = self._cs.derivative(2)
        spans = [quad(self._speed, s[i], s[i + 1], limit=200)[0] for i in range(len(s) - 1)]
        self._knot_length = np.concatenate([[0.0], np.cumsum(spans)])
        grid = [np.linspace(s[i], s[i + 1], self.substeps + 1)[:-1] for i in range(len(s) - 1)]
        self._grid = np.concatenate(grid + [s[-1:]])
        super().__init__(domain if domain is not None else (s[0], s[-1]))
        self._length_ref = float(s[0])
        logger.debug("SplineCurve: %d points, length %.6g", len(P), self._knot_length[-1])

    def _evaluate(self, ts: np.ndarray, order: int) -> np.ndarray:
        if order == 0:
            return np.asarray(self._cs(ts), float).reshape(-1, 3)
        if order == 1:
            return np.asarray(self._d1(ts), float).reshape(-1, 3)
        return np.asarray(self._d2(ts), float).reshape(-1, 3)

    def _speed(self, t: float) -> float:
        return float(np.linalg.norm(self._d1(t)))

    def _abs_length(self, ts: np.ndarray) -> np.ndarray:
        s = self.stations
        ts = np.asarray(ts, float).reshape(-1)
        i = np.clip(np.searchsorted(s, ts, side="right") - 1, 0, len(s) - 2)
        out = np.empty(len(ts))
        for k, (t, j) in enumerate(zip(ts, i)):
            out[k] = self._knot_length[j] + quad(self._speed, s[j], float(t), limit=200)[0]
        return out

    def _sample_parameters(self) -> np.ndarray:
        t0, t1 = self._domain
        g = self._grid[(self._grid > t0) & (self._grid < t1)]
        return np.concatenate([[t0], g, [t1]])

    def _transport_nodes(self, a: float, b: float) -> np.ndarray:
        g = self._grid
        return g[(g > a) & (g < b)]

    def transform(self, xform) -> "SplineCurve":
        return SplineCurve(transform_points(xform, self.points), self.stations,
                           self.bc_type, self._domain, self.substeps)

    def reverse(self) -> "SplineCurve":
        t0, t1 = self._domain
        c = t0 + t1
        return SplineCurve(self.points[::-1].copy(), (c - self.stations)[::-1].copy(),
                           self.bc_type, (t0, t1), self.substeps)

    def __repr__(self) -> str:
        t0, t1 = self._domain
        return f"SplineCurve(n={len(self.points)}, domain=({t0:.6g}, {t1:.6g}))"


# ---------- wrappers ----------

class ExtendedCurve(Curve):
    """
    `base` continued by arc length past one or both ends. Inside the base
    domain evaluation is delegated unchanged, so frames and lengths there
    match the base curve.
    """

    def __init__(self, base: Curve, end: Union[CurveEnd, str], amount: float,
                 style: Union[ExtensionStyle, str] = ExtensionStyle.LINE):
        end = CurveEnd(end)
        start_amount = float(amount) if end in (CurveEnd.START, CurveEnd.BOTH) else 0.0
        end_amount = float(amount) if end in (CurveEnd.END, CurveEnd.BOTH) else 0.0
        self._setup(base, start_amount, end_amount, ExtensionStyle(style))
        logger.debug("ExtendedCurve: %s by %.6g (%s)", end.value, amount, self.style.value)

    def _setup(self, base: Curve, start_amount: float, end_amount: float, style: ExtensionStyle) -> None:
        self.style = style
        self.base = base
        b0, b1 = base.domain
        self._base_domain = (b0, b1)
        D0, D1 = base._evaluate(np.array([b0, b1]), 1)
        self._d_start, self._d_end = D0, D1
        self._p_start, self._p_end = base._evaluate(np.array([b0, b1]), 0)
        s0, s1 = float(np.linalg.norm(D0)), float(np.linalg.norm(D1))
        if s0 < _TANGENT_EPS or s1 < _TANGENT_EPS:
            raise DegenerateGeometry("Cannot extend a curve with a zero end tangent.", [b0, b1])
        self._s_start, self._s_end = s0, s1
        self.start_amount = max(start_amount, 0.0)
        self.end_amount = max(end_amount, 0.0)
        Curve.__init__(self, (b0 - self.start_amount / s0, b1 + self.end_amount / s1))
        self._length_ref = base._length_ref

    @classmethod
    def from_amounts(cls, base: Curve, start_amount: float, end_amount: float,
                     style: Union[ExtensionStyle, str] = ExtensionStyle.LINE) -> "ExtendedCurve":
        c = cls.__new__(cls)
        c._setup(base, float(start_amount), float(end_amount), ExtensionStyle(style))
        return c

    def _evaluate(self, ts: np.ndarray, order: int) -> np.ndarray:
        out = self.base._evaluate(ts, order)
        if self.style is ExtensionStyle.SMOOTH:
            return out
        b0, b1 = self._base_domain
        for mask, t_end, P_end, D_end, amount in (
            (ts < b0, b0, self._p_start, self._d_start, self.start_amount),
            (ts > b1, b1, self._p_end, self._d_end, self.end_amount),
        ):
            if amount <= 0.0 or not np.any(mask):
                continue
            if order == 0:
                out[mask] = P_end + D_end * (ts[mask] - t_end)[:, None]
            elif order == 1:
                out[mask] = D_end
            else:
                out[mask] = 0.0
        return out

    def _abs_length(self, ts: np.ndarray) -> np.ndarray:
        ts = np.asarray(ts, float).reshape(-1)
        if self.style is ExtensionStyle.SMOOTH:
            return self.base._abs_length(ts)
        b0, b1 = self._base_domain
        out = self.base._abs_length(np.clip(ts, b0, b1))
        if self.start_amount > 0.0:
            m = ts < b0
            out[m] += self._s_start * (ts[m] - b0)
        if self.end_amount > 0.0:
            m = ts > b1
            out[m] += self._s_end * (ts[m] - b1)
        return out

    def _extension_nodes(self) -> np.ndarray:
        if self.style is ExtensionStyle.LINE:
            return np.zeros(0)
        b0, b1 = self._base_domain
        t0, t1 = self._domain
        n = get_settings().transport_substeps
        parts = []
        if t0 < b0:
            parts.append(np.linspace(t0, b0, n + 1)[1:-1])
        if t1 > b1:
            parts.append(np.linspace(b1, t1, n + 1)[1:-1])
        return np.concatenate(parts) if parts else np.zeros(0)

    def _sample_parameters(self) -> np.ndarray:
        t0, t1 = self._domain
        b0, b1 = self._base_domain
        base = self.base._sample_parameters()
        inner = np.concatenate([base, [b0, b1], self._extension_nodes(),
                                np.linspace(t0, t1, 9)])
        inner = inner[(inner > t0) & (inner < t1)]
        return np.unique(np.concatenate([[t0], inner, [t1]]))

    def _transport_nodes(self, a: float, b: float) -> np.ndarray:
        b0, b1 = self._base_domain
        nodes = np.concatenate([self.base._transport_nodes(a, b), self._extension_nodes()])
        if a < b0 < b:
            nodes = np.concatenate([nodes, [b0]])
        if a < b1 < b:
            nodes = np.concatenate([nodes, [b1]])
        return np.unique(nodes[(nodes > a) & (nodes < b)])

    def closest_point(self, point: Sequence[float]) -> float:
        p = np.asarray(point, float).reshape(3)
        t0, t1 = self._domain
        b0, b1 = self._base_domain
        best_t, best_d = t0, math.inf
        lo, hi = max(t0, b0), min(t1, b1)
        if hi > lo:
            t = self.base._with_domain((lo, hi)).closest_point(p)
            q = self.base._evaluate(np.array([t]), 0)[0] - p
            best_t, best_d = t, float(q @ q)
        for a, b in ((t0, min(b0, t1)), (max(b1, t0), t1)):
            if not b > a:
                continue
            if self.style is ExtensionStyle.LINE:
                A, B = self._evaluate(np.array([a, b]), 0)
                mu, d = _closest_on_segment(A, B, p)
                t = a + mu * (b - a)
            else:
                t, d = _closest_on_samples(self, p, np.linspace(a, b, 33))
            if d < best_d:
                best_t, best_d = t, d
        return float(best_t)

    def transform(self, xform) -> "ExtendedCurve":
        return ExtendedCurve.from_amounts(self.base.transform(xform), self.start_amount,
                                          self.end_amount, self.style)


class ReversedCurve(Curve):
    """`base` traversed backwards: t' = center - t, derivatives of odd order negated."""

    def __init__(self, base: Curve, center: Optional[float] = None):
        b0, b1 = base.domain
        self.base = base
        self.center = float(b0 + b1) if center is None else float(center)
        super().__init__((self.center - b1, self.center - b0))

    def _evaluate(self, ts: np.ndarray, order: int) -> np.ndarray:
        out = self.base._evaluate(self.center - ts, order)
        return -out if order == 1 else out

    def _abs_length(self, ts: np.ndarray) -> np.ndarray:
        ts = np.asarray(ts, float).reshape(-1)
        return -self.base._abs_length(self.center - ts)

    def _with_domain(self, domain: Tuple[float, float]) -> "ReversedCurve":
        lo, hi = float(domain[0]), float(domain[1])
        return ReversedCurve(self.base._with_domain((self.center - hi, self.center - lo)), self.center)

    def closest_point(self, point: Sequence[float]) -> float:
        return self.center - self.base.closest_point(point)

    def _sample_parameters(self) -> np.ndarray:
        return np.sort(self.center - self.base._sample_parameters())

    def _transport_nodes(self, a: float, b: float) -> np.ndarray:
        return np.sort(self.center - self.base._transport_nodes(self.center - b, self.center - a))

    def transform(self, xform) -> "ReversedCurve":
        return ReversedCurve(self.base.transform(xform), self.center)

    def reverse(self) -> Curve:
        return self.base.duplicate()
