# beamspace/errors.py
"""
Error taxonomy for orientation fields, frames and beam-space mapping.

Every error derives from both `BeamSpaceError` and `ValueError`, so callers that
only care about "bad geometry input" can keep catching `ValueError`.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

import numpy as np


def _floats(values: Optional[Iterable[float]]) -> List[float]:
    if values is None:
        return []
    return [float(v) for v in np.asarray(values, dtype=float).ravel()]


def _ints(values: Optional[Iterable[int]]) -> List[int]:
    if values is None:
        return []
    return [int(v) for v in np.asarray(values).ravel()]


class BeamSpaceError(ValueError):
    """Base class for all beamspace errors."""


class DegenerateGeometry(BeamSpaceError):
    """Curve tangent is zero-length or undefined at the queried parameters."""

    def __init__(self, message: str, parameters: Optional[Sequence[float]] = None):
        self.parameters = _floats(parameters)
        super().__init__(message)


class InvalidOrientationVector(BeamSpaceError):
    """Orientation output is (anti-)parallel to the tangent at some parameters."""

    def __init__(
        self,
        message: str,
        parameters: Optional[Sequence[float]] = None,
        indices: Optional[Sequence[int]] = None,
    ):
        self.parameters = _floats(parameters)
        self.indices = _ints(indices)
        super().__init__(message)


class InvalidFrame(InvalidOrientationVector):
    """Frame assembly produced a non-orthonormal frame."""


class EmptyOrientationField(BeamSpaceError):
    """A VectorField was built without a single valid guide."""


class DomainInversionFailure(BeamSpaceError):
    """Arc length could not be inverted to a curve parameter."""

    def __init__(
        self,
        message: str,
        lengths: Optional[Sequence[float]] = None,
        indices: Optional[Sequence[int]] = None,
    ):
        self.lengths = _floats(lengths)
        self.indices = _ints(indices)
        super().__init__(message)


class IncorrectGuideCount(BeamSpaceError):
    """Split/Trim/Join called with guide-list invariants violated."""


__all__ = [
    "BeamSpaceError",
    "DegenerateGeometry",
    "InvalidOrientationVector",
    "InvalidFrame",
    "EmptyOrientationField",
    "DomainInversionFailure",
    "IncorrectGuideCount",
]
