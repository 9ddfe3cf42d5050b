"""
Triangle mesh used as a reference surface (SurfaceNormal orientation) and as
a mapped geometry type (beam-space mesh mapping moves vertices only).

Proximity queries and face normals come from a `trimesh.Trimesh` built over
the same vertices and faces (no processing, so indices are preserved).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np
import trimesh
from trimesh.proximity import closest_point as closest_on_surface
from trimesh.triangles import points_to_barycentric

from .utils import _normalize_rows, transform_points

logger = logging.getLogger(__name__)

EPS = 1e-12

# Barycentric weights below this count as zero when classifying the closest point
BARYCENTRIC_EPS = 1e-9

# closest-point component codes
FACE, EDGE_AB, EDGE_AC, EDGE_BC, VERTEX_A, VERTEX_B, VERTEX_C = range(7)

# edge opposite the vertex whose weight vanished
_EDGE_OPPOSITE = {0: EDGE_BC, 1: EDGE_AC, 2: EDGE_AB}


@dataclass
class Mesh:
    vertices: np.ndarray
    faces: np.ndarray
    normals: Optional[np.ndarray] = None
    _tm: Optional[trimesh.Trimesh] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        self.vertices = np.asarray(self.vertices, dtype=float).reshape(-1, 3)
        self.faces = np.asarray(self.faces, dtype=np.int64).reshape(-1, 3)
        if self.normals is not None:
            self.normals = np.asarray(self.normals, dtype=float).reshape(-1, 3)
            if len(self.normals) != len(self.vertices):
                raise ValueError("Mesh: normals must match vertices one to one.")
        if self.faces.size and (self.faces.min() < 0 or self.faces.max() >= len(self.vertices)):
            raise ValueError("Mesh: face index out of range.")

    def __len__(self) -> int:
        return len(self.faces)

    def as_trimesh(self) -> trimesh.Trimesh:
        """Unprocessed trimesh view (same vertex and face order), built on first use."""
        if self._tm is None:
            self._tm = trimesh.Trimesh(vertices=self.vertices, faces=self.faces, process=False)
        return self._tm

    def with_vertices(self, vertices) -> "Mesh":
        """Same topology (faces, normals) with new vertex positions."""
        V = np.asarray(vertices, dtype=float).reshape(-1, 3)
        if len(V) != len(self.vertices):
            raise ValueError("Mesh.with_vertices: vertex count changed.")
        normals = None if self.normals is None else self.normals.copy()
        return Mesh(V, self.faces.copy(), normals)

    def transform(self, xform) -> "Mesh":
        V = transform_points(xform, self.vertices)
        normals = None
        if self.normals is not None:
            # inverse-transpose keeps normals perpendicular under non-rigid maps
            L = np.linalg.inv(np.asarray(xform, float)[:3, :3]).T
            normals = _normalize_rows(self.normals @ L.T)
        return Mesh(V, self.faces.copy(), normals)

    def face_normals(self) -> np.ndarray:
        """Unit face normals (M,3); degenerate faces get zero normals."""
        return np.asarray(self.as_trimesh().face_normals, dtype=float)

    # ----- closest point -----

    def closest_point(self, point) -> Tuple[np.ndarray, int, int]:
        """
        Closest point on the mesh to `point`.
        Returns (point (3,), face index, component code).
        """
        if not len(self.faces):
            raise ValueError("Mesh has no faces.")
        p = np.asarray(point, float).reshape(1, 3)
        closest, _, triangle_id = closest_on_surface(self.as_trimesh(), p)
        q, k = np.asarray(closest[0], float), int(triangle_id[0])
        bary = points_to_barycentric(self.vertices[self.faces[k]][None, :, :], q[None, :])[0]
        return q, k, _classify(bary)

    def normal_at(self, point) -> np.ndarray:
        """
        Surface normal at the closest point: the face normal inside a face,
        otherwise the mean normal of the faces sharing the closest edge/vertex.
        """
        _, k, region = self.closest_point(point)
        fn = self.face_normals()
        if region == FACE:
            n = fn[k]
        else:
            a, b, c = self.faces[k]
            shared = {
                EDGE_AB: (a, b), EDGE_AC: (a, c), EDGE_BC: (b, c),
                VERTEX_A: (a,), VERTEX_B: (b,), VERTEX_C: (c,),
            }[region]
            vertex_faces = self.as_trimesh().vertex_faces
            adjacent = set.intersection(*(set(int(f) for f in vertex_faces[v] if f >= 0) for v in shared))
            n = fn[sorted(adjacent)].sum(axis=0)
            logger.debug("Mesh.normal_at: averaged %d face normals (component %d).", len(adjacent), region)
        norm = float(np.linalg.norm(n))
        if norm < EPS:
            raise ValueError("Mesh normal is undefined at the closest point.")
        return n / norm


def _classify(bary: np.ndarray) -> int:
    """Component code from the barycentric weights (A, B, C) of a point on a triangle."""
    zero = np.flatnonzero(np.abs(bary) < BARYCENTRIC_EPS)
    if len(zero) == 0:
        return FACE
    if len(zero) == 1:
        return _EDGE_OPPOSITE[int(zero[0])]
    return VERTEX_A + int(np.argmax(bary))
