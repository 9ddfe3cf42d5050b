# vector_field.py
"""
VectorField orientation: guide vectors at curve parameters, stored as signed
angles relative to the curve's rotation-minimising frame and linearly
interpolated between guides.

Guides are kept sorted by parameter. After construction the angles are
unwrapped so consecutive guides differ by at most pi; `join` skips that pass,
`remap` re-runs it with the first angle wrapped into (-pi, pi].
"""

from __future__ import annotations

import logging
import math
from bisect import bisect_right
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .errors import EmptyOrientationField, IncorrectGuideCount
from .orientation import OrientationField, normalize_vector, perpendicular_frame_at
from .parallel import parallel_map
from .utils import is_valid_vector, rotate_about_axis, transform_vectors, unwrap_angles, vector_angle

logger = logging.getLogger(__name__)


@dataclass
class Guide:
    """Desired orientation `direction` at curve `parameter`; angle relative to the RMF Y axis."""

    parameter: float
    direction: np.ndarray
    angular_offset: float = math.nan

    def __post_init__(self):
        self.parameter = float(self.parameter)
        self.direction = np.asarray(self.direction, float).reshape(3)
        self.angular_offset = float(self.angular_offset)

    def copy(self) -> "Guide":
        return Guide(self.parameter, self.direction.copy(), self.angular_offset)

    def calculate_angular_offset(self, curve, tolerance: Optional[float] = None) -> float:
        rmf = perpendicular_frame_at(curve, self.parameter, tolerance)
        self.angular_offset = vector_angle(rmf.y_axis, self.direction, rmf.z_axis)
        return self.angular_offset


def _usable(curve, guide: Guide, eps: float = 1e-9) -> bool:
    """Finite, non-zero and not parallel to the curve tangent at its parameter."""
    if not is_valid_vector(guide.direction):
        return False
    d = guide.direction / np.linalg.norm(guide.direction)
    return float(np.linalg.norm(np.cross(curve.tangent_at(guide.parameter), d))) > eps


class VectorField(OrientationField):
    kind = "vector_field"

    def __init__(self, curve, guides: Sequence[Guide], *, unwrap: bool = True):
        self.curve = curve
        gs: List[Guide] = []
        for g in guides:
            if not _usable(curve, g):
                logger.debug("VectorField: skipping guide at t=%.6g with invalid direction.", g.parameter)
                continue
            gs.append(g.copy())
        if not gs:
            raise EmptyOrientationField("VectorField needs at least one valid guide.")

        pending = [g for g in gs if math.isnan(g.angular_offset)]
        if pending:
            parallel_map(lambda g: g.calculate_angular_offset(curve), pending)

        gs.sort(key=lambda g: g.parameter)
        if unwrap:
            for g, a in zip(gs, unwrap_angles(g.angular_offset for g in gs)):
                g.angular_offset = a
        self._guides = gs
        self._parameters = [g.parameter for g in gs]

    @classmethod
    def from_vectors(cls, curve, parameters: Sequence[float], vectors: Sequence[Sequence[float]]) -> "VectorField":
        """Build from raw (parameter, vector) pairs; invalid vectors are skipped."""
        n = min(len(parameters), len(vectors))
        guides = []
        for i in range(n):
            if not is_valid_vector(vectors[i]):
                logger.debug("VectorField.from_vectors: skipping invalid vector #%d.", i)
                continue
            guides.append(Guide(parameters[i], vectors[i]))
        if not guides:
            raise EmptyOrientationField("No valid vectors or parameters.")
        field = cls(curve, guides)
        field.recalculate_vectors()
        return field

    # ----- read-only views -----

    @property
    def guides(self) -> Tuple[Guide, ...]:
        return tuple(g.copy() for g in self._guides)

    @property
    def parameters(self) -> List[float]:
        return list(self._parameters)

    @property
    def vectors(self) -> List[np.ndarray]:
        return [g.direction.copy() for g in self._guides]

    @property
    def angular_offsets(self) -> List[float]:
        return [g.angular_offset for g in self._guides]

    def __len__(self) -> int:
        return len(self._guides)

    def get_driver(self):
        return list(self.guides)

    def recalculate_vectors(self) -> None:
        """Re-project every guide direction orthogonal to the curve tangent."""
        for g in self._guides:
            g.direction = normalize_vector(self.curve, g.parameter, g.direction)

    # ----- queries -----

    def angle_at(self, t: float) -> float:
        """Interpolated angular offset; clamped to the first/last guide outside their range."""
        gs = self._guides
        t = float(t)
        if t <= gs[0].parameter:
            return gs[0].angular_offset
        if t >= gs[-1].parameter:
            return gs[-1].angular_offset
        i = bisect_right(self._parameters, t) - 1
        a, b = gs[i], gs[i + 1]
        mu = (t - a.parameter) / (b.parameter - a.parameter)
        return a.angular_offset + (b.angular_offset - a.angular_offset) * mu

    def get_orientation(self, curve, t):
        angle = self.angle_at(t)
        rmf = perpendicular_frame_at(curve, t)
        v = rotate_about_axis(rmf.y_axis, rmf.z_axis, angle)
        return normalize_vector(curve, t, v)

    # ----- editing -----

    def _boundary_guide(self, t: float) -> Guide:
        g = Guide(t, self.get_orientation(self.curve, t))
        g.calculate_angular_offset(self.curve)
        return g

    def split(self, ts: Sequence[float]) -> List["VectorField"]:
        """
        Split at increasing parameters. Each piece gets a guide exactly at its
        split boundaries, taken from an existing guide or synthesized from
        this field's orientation there.
        """
        ts = [float(t) for t in ts]
        if not ts:
            return [self.duplicate()]
        if any(b <= a for a, b in zip(ts, ts[1:])):
            raise IncorrectGuideCount("Split parameters must be strictly increasing.")

        pieces: List[VectorField] = []
        remaining = self._guides
        prev: Optional[Guide] = None
        for t in ts:
            left = [g for g in remaining if g.parameter < t]
            at = [g for g in remaining if g.parameter == t]
            boundary = at[-1].copy() if at else self._boundary_guide(t)
            side = ([prev] if prev is not None else []) + left + [boundary]
            pieces.append(VectorField(self.curve, side))
            remaining = [g for g in remaining if g.parameter > t]
            prev = boundary
        pieces.append(VectorField(self.curve, [prev] + remaining))
        logger.debug("VectorField.split: %d pieces.", len(pieces))
        return pieces

    def trim(self, domain: Tuple[float, float]) -> "VectorField":
        lo, hi = float(domain[0]), float(domain[1])
        if not hi > lo:
            raise IncorrectGuideCount(f"Trim domain must be increasing, got ({lo}, {hi}).")
        inside = [g for g in self._guides if lo <= g.parameter <= hi]
        gs: List[Guide] = []
        if not any(g.parameter == lo for g in inside):
            gs.append(self._boundary_guide(lo))
        gs.extend(inside)
        if not any(g.parameter == hi for g in inside):
            gs.append(self._boundary_guide(hi))
        return VectorField(self.curve, gs)

    def join(self, other: OrientationField) -> "VectorField":
        """Concatenate guides and re-sort; angles are not unwrapped again."""
        if not isinstance(other, VectorField):
            raise TypeError(f"Cannot join VectorField with {type(other).__name__}.")
        return VectorField(self.curve, list(self._guides) + list(other._guides), unwrap=False)

    def remap(self, old_curve, new_curve) -> None:
        """Move guides onto `new_curve` (closest points) and recompute their angles."""
        for g in self._guides:
            g.parameter = float(new_curve.closest_point(old_curve.point_at(g.parameter)))
            g.calculate_angular_offset(new_curve)
        self._guides.sort(key=lambda g: g.parameter)
        self._parameters = [g.parameter for g in self._guides]
        for g, a in zip(self._guides, unwrap_angles((g.angular_offset for g in self._guides), wrap_first=True)):
            g.angular_offset = a
        self.curve = new_curve

    def transform(self, xform) -> "VectorField":
        curve = self.curve.transform(xform)
        guides = [Guide(g.parameter, transform_vectors(xform, g.direction)) for g in self._guides]
        return VectorField(curve, guides)

    def __repr__(self) -> str:
        return f"VectorField(guides={len(self._guides)}, curve={self.curve!r})"
