"""
Triangulated surface and its per-vertex scalar field.

The surface is the geometry provider of the FEM core: vertex positions,
triangle connectivity, boundary flags and the mutable field the solver
gathers from and scatters into.
"""
from __future__ import annotations

import logging
import os
from enum import StrEnum
from typing import TYPE_CHECKING

import meshio
import numpy as np
import pyvista as pv

from surfacefem.config import DTYPE, INDEX_DTYPE

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

FIELD_NAME = "value"


class BrushMode(StrEnum):
    SET = "set"
    ADD = "add"
    SMOOTH = "smooth"


def compute_boundary_flags(
    n_vertices: int,
    triangles: npt.NDArray[np.integer],
) -> npt.NDArray[np.bool_]:
    """
    Flag vertices that lie on an edge used by exactly one triangle.

    Args:
        n_vertices: Number of vertices.
        triangles: (T, 3) vertex indices.

    Returns:
        (V,) boolean boundary flags.
    """
    on_boundary = np.zeros(n_vertices, dtype=bool)
    if len(triangles) == 0:
        return on_boundary

    edges = np.concatenate([triangles[:, [0, 1]], triangles[:, [1, 2]], triangles[:, [2, 0]]])
    edges = np.sort(edges, axis=1)
    unique_edges, counts = np.unique(edges, axis=0, return_counts=True)
    open_edges = unique_edges[counts == 1]
    on_boundary[open_edges.ravel()] = True
    return on_boundary


def compute_vertex_normals(
    vertices: npt.NDArray[np.floating],
    triangles: npt.NDArray[np.integer],
) -> npt.NDArray[np.float32]:
    """
    Area weighted vertex normals.

    Vertices not referenced by any triangle get a zero normal.
    """
    normals = np.zeros((len(vertices), 3), dtype=np.float64)
    if len(triangles) == 0:
        return normals.astype(DTYPE)

    a = vertices[triangles[:, 0]].astype(np.float64)
    b = vertices[triangles[:, 1]].astype(np.float64)
    c = vertices[triangles[:, 2]].astype(np.float64)
    # Non-unit face normals are proportional to the face area
    face_normals = np.cross(b - a, c - a)
    for corner in range(3):
        np.add.at(normals, triangles[:, corner], face_normals)

    lengths = np.linalg.norm(normals, axis=1)
    nonzero = lengths > 0.0
    normals[nonzero] /= lengths[nonzero, None]
    return normals.astype(DTYPE)


class Surface:
    """
    Triangulated 2-manifold surface in 3D carrying one scalar value per vertex.

    Attributes:
        vertices: (V, 3) vertex positions.
        triangles: (T, 3) vertex indices.
        on_boundary: (V,) boundary flags.
        field: (V,) scalar field, written by the solver and the brush.
        normals: (V, 3) unit vertex normals.
    """
    def __init__(
        self,
        vertices: npt.ArrayLike | None = None,
        triangles: npt.ArrayLike | None = None,
        on_boundary: npt.ArrayLike | None = None,
        field: npt.ArrayLike | None = None,
    ) -> None:
        self.vertices: npt.NDArray[np.float32]
        self.triangles: npt.NDArray[np.int64]
        self.on_boundary: npt.NDArray[np.bool_]
        self.field: npt.NDArray[np.float32]
        self.normals: npt.NDArray[np.float32]
        self.clear()

        if vertices is not None:
            self.set_geometry(vertices, triangles if triangles is not None else [], on_boundary)
            if field is not None:
                field = np.asarray(field, dtype=DTYPE)
                if field.shape != (self.vertex_count,):
                    raise ValueError(f"Field has shape {field.shape}, expected ({self.vertex_count},).")
                self.field[:] = field

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @classmethod
    def from_arrays(
        cls,
        vertices: npt.ArrayLike,
        triangles: npt.ArrayLike,
        on_boundary: npt.ArrayLike | None = None,
    ) -> Surface:
        """
        Build a surface from raw arrays.

        Args:
            vertices: (V, 3) positions.
            triangles: (T, 3) vertex indices.
            on_boundary: Optional (V,) boundary flags; derived from the
                open edges of the triangulation when omitted.
        """
        return cls(vertices, triangles, on_boundary)

    @classmethod
    def from_file(cls, path: str) -> Surface:
        """
        Read a triangle mesh (OBJ, PLY, VTU, ...) through meshio.

        Raises:
            ValueError: If the file does not exist or holds no triangles.
        """
        if not os.path.exists(path):
            logger.error(f"Mesh file not found: {path}")
            raise ValueError(f"A valid file was not provided: {path}")

        try:
            mesh = meshio.read(path)
        except Exception as e:
            logger.exception(f"Failed to read mesh file '{path}'")
            raise ValueError(f"Could not read mesh file '{path}': {e}") from e

        blocks = [block.data for block in mesh.cells if block.type == "triangle"]
        if not blocks or len(mesh.points) == 0:
            logger.error(f"File {path} does not contain a triangle mesh.")
            raise ValueError(f"File {path} does not contain a valid triangle mesh.")

        points = np.asarray(mesh.points, dtype=DTYPE)
        if points.shape[1] == 2:
            # Planar meshes are lifted into the XZ plane
            points = np.column_stack([points[:, 0], np.zeros(len(points), dtype=DTYPE), points[:, 1]])

        surface = cls(points, np.concatenate(blocks))
        if FIELD_NAME in mesh.point_data:
            surface.field[:] = np.asarray(mesh.point_data[FIELD_NAME], dtype=DTYPE).reshape(-1)

        logger.info(
            f"Loaded surface '{os.path.basename(path)}': {surface.vertex_count} vertices, "
            f"{surface.triangle_count} triangles, {surface.num_boundary_points} boundary points."
        )
        return surface

    @classmethod
    def from_grid(
        cls,
        nx: int = 32,
        nz: int = 32,
        width: float = 1.0,
        depth: float = 1.0,
    ) -> Surface:
        """
        Structured planar grid in the XZ plane, centred on the origin.

        Args:
            nx: Number of cells along x.
            nz: Number of cells along z.
            width: Extent along x.
            depth: Extent along z.
        """
        if nx < 1 or nz < 1:
            raise ValueError("Grid needs at least one cell in each direction.")

        xs = np.linspace(-0.5 * width, 0.5 * width, nx + 1)
        zs = np.linspace(-0.5 * depth, 0.5 * depth, nz + 1)
        xx, zz = np.meshgrid(xs, zs, indexing="ij")
        vertices = np.column_stack([xx.ravel(), np.zeros(xx.size), zz.ravel()])

        i, j = np.meshgrid(np.arange(nx), np.arange(nz), indexing="ij")
        v00 = (i * (nz + 1) + j).ravel()
        v10 = v00 + (nz + 1)
        v01 = v00 + 1
        v11 = v10 + 1
        # Counter-clockwise seen from +y
        triangles = np.concatenate([
            np.column_stack([v00, v01, v11]),
            np.column_stack([v00, v11, v10]),
        ])
        return cls(vertices, triangles)

    def set_geometry(
        self,
        vertices: npt.ArrayLike,
        triangles: npt.ArrayLike,
        on_boundary: npt.ArrayLike | None = None,
    ) -> None:
        """
        Replace the geometry; the field is reset to zero.

        Raises:
            ValueError: On malformed arrays or out of range triangle indices.
        """
        vertices = np.asarray(vertices, dtype=DTYPE).reshape(-1, 3)
        triangles = np.asarray(triangles, dtype=INDEX_DTYPE).reshape(-1, 3)

        if triangles.size and (triangles.min() < 0 or triangles.max() >= len(vertices)):
            raise ValueError("Triangle indices must reference existing vertices.")

        if on_boundary is None:
            on_boundary = compute_boundary_flags(len(vertices), triangles)
        else:
            on_boundary = np.asarray(on_boundary, dtype=bool).reshape(-1)
            if on_boundary.size != len(vertices):
                raise ValueError(
                    f"Boundary flags have length {on_boundary.size}, expected {len(vertices)}."
                )

        self.vertices = vertices
        self.triangles = triangles
        self.on_boundary = on_boundary
        self.field = np.zeros(len(vertices), dtype=DTYPE)
        self.normals = compute_vertex_normals(vertices, triangles)

    def clear(self) -> None:
        """Drop the geometry and the field."""
        self.vertices = np.empty((0, 3), dtype=DTYPE)
        self.triangles = np.empty((0, 3), dtype=INDEX_DTYPE)
        self.on_boundary = np.empty(0, dtype=bool)
        self.field = np.empty(0, dtype=DTYPE)
        self.normals = np.empty((0, 3), dtype=DTYPE)

    def clear_values(self) -> None:
        self.field[:] = 0.0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def triangle_count(self) -> int:
        return len(self.triangles)

    @property
    def initialized(self) -> bool:
        return self.vertex_count > 0 and self.triangle_count > 0

    @property
    def num_boundary_points(self) -> int:
        return int(np.count_nonzero(self.on_boundary))

    @property
    def closed(self) -> bool:
        return self.initialized and self.num_boundary_points == 0

    @property
    def triangle_coords(self) -> npt.NDArray[np.float32]:
        """(T, 3, 3) vertex coordinates of every triangle."""
        return self.vertices[self.triangles]

    def total_area(self) -> float:
        coords = self.triangle_coords.astype(np.float64)
        crosses = np.cross(coords[:, 1] - coords[:, 0], coords[:, 2] - coords[:, 0])
        return float(0.5 * np.linalg.norm(crosses, axis=1).sum())

    def nearest_vertex(self, point: npt.ArrayLike) -> int:
        if not self.vertex_count:
            raise ValueError("Surface has no vertices.")
        p = np.asarray(point, dtype=np.float64).reshape(3)
        return int(np.argmin(np.linalg.norm(self.vertices - p, axis=1)))

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------
    def apply_brush(
        self,
        center: npt.ArrayLike,
        radius: float,
        value: float = 1.0,
        mode: BrushMode | str = BrushMode.SET,
        respect_boundary: bool = True,
    ) -> int:
        """
        Paint the field around a point with a smooth radial falloff.

        The weight is ``(1 - (d / radius)^2)^2`` for vertices closer than
        ``radius`` and zero elsewhere.

        Args:
            center: (3,) brush centre.
            radius: Brush radius (Euclidean).
            value: Target value for ``set``, increment for ``add``; unused by ``smooth``.
            mode: ``set`` blends towards ``value``, ``add`` adds ``value``,
                ``smooth`` blends towards the local weighted mean.
            respect_boundary: Leave boundary vertices untouched.

        Returns:
            Number of vertices whose value was edited.
        """
        try:
            mode = BrushMode(mode)
        except ValueError:
            logger.error(f"Unknown brush mode: {mode!r}")
            raise ValueError(f"Unknown brush mode: {mode!r}") from None

        if radius <= 0.0 or not self.vertex_count:
            return 0

        c = np.asarray(center, dtype=np.float64).reshape(3)
        distance = np.linalg.norm(self.vertices.astype(np.float64) - c, axis=1)
        inside = distance < radius
        if respect_boundary:
            inside &= ~self.on_boundary
        idx = np.flatnonzero(inside)
        if idx.size == 0:
            return 0

        weight = (1.0 - (distance[idx] / radius) ** 2) ** 2
        current = self.field[idx].astype(np.float64)
        match mode:
            case BrushMode.SET:
                updated = current + weight * (value - current)
            case BrushMode.ADD:
                updated = current + weight * value
            case BrushMode.SMOOTH:
                mean = float(np.average(current, weights=weight)) if weight.sum() > 0 else 0.0
                updated = current + weight * (mean - current)

        self.field[idx] = updated.astype(DTYPE)
        logger.debug(f"Brush ({mode}) edited {idx.size} vertices.")
        return int(idx.size)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------
    def extruded_vertices(self, extrusion: float = 0.0) -> npt.NDArray[np.float32]:
        """Vertices displaced along their normal by ``field * max(0, extrusion)``."""
        scale = max(0.0, float(extrusion))
        return self.vertices + (self.field * scale)[:, None] * self.normals

    def to_meshio(self, extrusion: float = 0.0) -> meshio.Mesh:
        return meshio.Mesh(
            points=self.extruded_vertices(extrusion),
            cells=[("triangle", self.triangles)],
            point_data={FIELD_NAME: self.field.copy()},
        )

    def export(self, path: str, extrusion: float = 0.0) -> None:
        """
        Write the surface and its field to any format meshio writes.

        Args:
            path: Output file; the format follows the extension.
            extrusion: Displacement of each vertex along its normal per unit value.
        """
        if not self.initialized:
            raise ValueError("Cannot export an empty surface.")
        try:
            meshio.write(path, self.to_meshio(extrusion))
        except Exception:
            logger.exception(f"Failed to export surface to '{path}'")
            raise
        logger.info(f"Exported surface to: {path}")

    def to_pyvista(self) -> pv.PolyData:
        """PolyData view of the surface with the field as point data."""
        faces = np.column_stack([np.full(self.triangle_count, 3, dtype=INDEX_DTYPE), self.triangles])
        mesh = pv.PolyData(self.vertices.astype(np.float64), faces.ravel())
        mesh.point_data[FIELD_NAME] = self.field
        return mesh
