# beamspace/__init__.py
"""
Public API for the beamspace package.

External code can import:
    from beamspace import Beam, PolylineCurve, SplineCurve, VectorField, Guide
    from beamspace import BeamSpaceMapper, generate_frames, configure

Inside package modules, prefer relative imports to avoid cycles:
    from .curve import Curve
"""

from __future__ import annotations
from typing import TYPE_CHECKING
import importlib

__version__ = "0.1.0"

__all__ = [
    # Geometry
    "Frame", "WORLD_XY", "plane_to_plane",
    "Curve", "PolylineCurve", "SplineCurve", "ExtendedCurve", "ReversedCurve",
    "CurveEnd", "ExtensionStyle", "Mesh",
    # Orientation fields
    "OrientationField", "FixedVector", "SurfaceNormal", "RailCurve", "Curvature",
    "RotationMinimizingFrame", "Planar", "VectorField", "Guide",
    "ORIENTATION_KINDS", "create_orientation",
    # Frames + mapping
    "generate_frames", "generate_frame", "frame_from_normal_and_y_axis",
    "discretize", "cross_section_parameters", "generate_cross_section_planes",
    "ArcLengthTable", "BeamSpaceMapper", "Beam",
    # Config + errors
    "Settings", "get_settings", "configure", "load_settings",
    "BeamSpaceError", "DegenerateGeometry", "InvalidOrientationVector", "InvalidFrame",
    "EmptyOrientationField", "DomainInversionFailure", "IncorrectGuideCount",
]

# Map exported names -> submodule that defines them
_EXPORT_MAP = {
    # Geometry
    "Frame": "beamspace.frame",
    "WORLD_XY": "beamspace.frame",
    "plane_to_plane": "beamspace.frame",
    "Curve": "beamspace.curve",
    "PolylineCurve": "beamspace.curve",
    "SplineCurve": "beamspace.curve",
    "ExtendedCurve": "beamspace.curve",
    "ReversedCurve": "beamspace.curve",
    "CurveEnd": "beamspace.curve",
    "ExtensionStyle": "beamspace.curve",
    "Mesh": "beamspace.mesh",

    # Orientation fields
    "OrientationField": "beamspace.orientation",
    "FixedVector": "beamspace.orientation",
    "SurfaceNormal": "beamspace.orientation",
    "RailCurve": "beamspace.orientation",
    "Curvature": "beamspace.orientation",
    "RotationMinimizingFrame": "beamspace.orientation",
    "Planar": "beamspace.orientation",
    "ORIENTATION_KINDS": "beamspace.orientation",
    "create_orientation": "beamspace.orientation",
    "VectorField": "beamspace.vector_field",
    "Guide": "beamspace.vector_field",

    # Frames + mapping
    "generate_frames": "beamspace.frames",
    "generate_frame": "beamspace.frames",
    "frame_from_normal_and_y_axis": "beamspace.frames",
    "discretize": "beamspace.frames",
    "cross_section_parameters": "beamspace.frames",
    "generate_cross_section_planes": "beamspace.frames",
    "ArcLengthTable": "beamspace.beam_space",
    "BeamSpaceMapper": "beamspace.beam_space",
    "Beam": "beamspace.beam",

    # Config + errors
    "Settings": "beamspace.config",
    "get_settings": "beamspace.config",
    "configure": "beamspace.config",
    "load_settings": "beamspace.config",
    "BeamSpaceError": "beamspace.errors",
    "DegenerateGeometry": "beamspace.errors",
    "InvalidOrientationVector": "beamspace.errors",
    "InvalidFrame": "beamspace.errors",
    "EmptyOrientationField": "beamspace.errors",
    "DomainInversionFailure": "beamspace.errors",
    "IncorrectGuideCount": "beamspace.errors",
}


def __getattr__(name: str):
    """Lazy attribute loader to avoid import-time cycles."""
    mod_name = _EXPORT_MAP.get(name)
    if not mod_name:
        raise AttributeError(f"module 'beamspace' has no attribute {name!r}")
    mod = importlib.import_module(mod_name)
    return getattr(mod, name)


def __dir__():
    return sorted(list(globals()) + __all__)


if TYPE_CHECKING:
    # Eager imports for static type checkers / IDEs only.
    from .frame import Frame, WORLD_XY, plane_to_plane
    from .curve import (Curve, PolylineCurve, SplineCurve, ExtendedCurve, ReversedCurve,
                        CurveEnd, ExtensionStyle)
    from .mesh import Mesh
    from .orientation import (OrientationField, FixedVector, SurfaceNormal, RailCurve, Curvature,
                              RotationMinimizingFrame, Planar, ORIENTATION_KINDS, create_orientation)
    from .vector_field import VectorField, Guide
    from .frames import (generate_frames, generate_frame, frame_from_normal_and_y_axis,
                         discretize, cross_section_parameters, generate_cross_section_planes)
    from .beam_space import ArcLengthTable, BeamSpaceMapper
    from .beam import Beam
    from .config import Settings, get_settings, configure, load_settings
    from .errors import (BeamSpaceError, DegenerateGeometry, InvalidOrientationVector, InvalidFrame,
                         EmptyOrientationField, DomainInversionFailure, IncorrectGuideCount)
