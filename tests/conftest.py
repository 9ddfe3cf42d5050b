"""Shared curves and settings isolation for the beamspace tests."""
import math

import numpy as np
import pytest

from beamspace import config
from beamspace.curve import PolylineCurve, SplineCurve


@pytest.fixture(autouse=True)
def _restore_settings():
    saved = config.get_settings()
    yield
    config.configure(**saved.to_dict())


@pytest.fixture
def z_line():
    """1000 units straight up the world Z axis, parameterised by length."""
    return PolylineCurve([[0.0, 0.0, 0.0], [0.0, 0.0, 1000.0]])


@pytest.fixture
def x_line():
    return PolylineCurve([[0.0, 0.0, 0.0], [100.0, 0.0, 0.0]])


@pytest.fixture
def bent_polyline():
    """Non-planar polyline: along X, then up and across, then forward again."""
    return PolylineCurve([
        [0.0, 0.0, 0.0],
        [100.0, 0.0, 0.0],
        [100.0, 100.0, 50.0],
        [200.0, 100.0, 100.0],
    ])


@pytest.fixture
def helix():
    """Half a turn of a helix (radius 100, rise 30 per radian) as a cubic spline."""
    th = np.linspace(0.0, math.pi, 13)
    pts = np.column_stack([100.0 * np.cos(th), 100.0 * np.sin(th), 30.0 * th])
    return SplineCurve(pts)


@pytest.fixture
def arc():
    """Half circle of radius 100 in the XY plane, centred on the origin."""
    th = np.linspace(0.0, math.pi, 13)
    pts = np.column_stack([100.0 * np.cos(th), 100.0 * np.sin(th), np.zeros_like(th)])
    return SplineCurve(pts)
