from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np
import numba as nb

from surfacefem.config import DEGENERATE_AREA_TOLERANCE

if TYPE_CHECKING:
    import numpy.typing as npt


# Reference gradients of the three P1 shape functions, padded with a zero
# normal component: N1 = 1 - r - s, N2 = r, N3 = s
B_N = np.array([
    [-1.0, -1.0, 0.0],
    [1.0, 0.0, 0.0],
    [0.0, 1.0, 0.0],
])

LOCAL_MASS = np.array([
    [2.0, 1.0, 1.0],
    [1.0, 2.0, 1.0],
    [1.0, 1.0, 2.0],
])


@nb.jit(cache=True, fastmath=True)
def _tri3_gradients_and_detJ(
    coords: npt.NDArray[np.float64],
    tolerance: float,
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """
    Physical gradients, unit normals and |det(J)| of a batch of surface triangles.

    The 3x3 map A = [b - a, c - a, n_hat] takes the reference triangle (padded
    with the normal direction) onto the physical one; the gradients are
    inv(A)^T applied to the reference gradients. Rows of inv(A) are the
    reciprocal basis (e2 x n_hat, n_hat x e1, e1 x e2) / det.

    Args:
        coords: (m, 3, 3) vertex coordinates, [triangle, vertex, xyz].
        tolerance: Triangles with |(b-a) x (c-a)| <= tolerance get zero gradients.

    Returns:
        grads: (m, 3, 3) gradients, [triangle, shape function, xyz].
        normals: (m, 3) unit normals (zero for degenerate triangles).
        detJ: (m,) |(b-a) x (c-a)|, twice the triangle area.
    """
    m = coords.shape[0]
    grads = np.zeros((m, 3, 3))
    normals = np.zeros((m, 3))
    detJ = np.zeros(m)

    for k in range(m):
        e1x = coords[k, 1, 0] - coords[k, 0, 0]
        e1y = coords[k, 1, 1] - coords[k, 0, 1]
        e1z = coords[k, 1, 2] - coords[k, 0, 2]
        e2x = coords[k, 2, 0] - coords[k, 0, 0]
        e2y = coords[k, 2, 1] - coords[k, 0, 1]
        e2z = coords[k, 2, 2] - coords[k, 0, 2]

        nx = e1y * e2z - e1z * e2y
        ny = e1z * e2x - e1x * e2z
        nz = e1x * e2y - e1y * e2x
        length = math.sqrt(nx * nx + ny * ny + nz * nz)
        detJ[k] = length
        if length <= tolerance:
            continue

        nx /= length
        ny /= length
        nz /= length
        normals[k, 0] = nx
        normals[k, 1] = ny
        normals[k, 2] = nz

        # det(A) = n_hat . (e1 x e2) = |e1 x e2|
        inv_det = 1.0 / length
        r0x = (e2y * nz - e2z * ny) * inv_det
        r0y = (e2z * nx - e2x * nz) * inv_det
        r0z = (e2x * ny - e2y * nx) * inv_det
        r1x = (ny * e1z - nz * e1y) * inv_det
        r1y = (nz * e1x - nx * e1z) * inv_det
        r1z = (nx * e1y - ny * e1x) * inv_det

        for i in range(3):
            g0 = B_N[i, 0]
            g1 = B_N[i, 1]
            grads[k, i, 0] = g0 * r0x + g1 * r1x
            grads[k, i, 1] = g0 * r0y + g1 * r1y
            grads[k, i, 2] = g0 * r0z + g1 * r1z

    return grads, normals, detJ


class Tri3:
    """
    Batch of three-node linear triangles (P1) embedded in 3D.

    All element quantities are evaluated for every triangle at once; local
    matrices come back as (m, 3, 3) stacks ordered like the triangle's vertices.
    """
    def __init__(
        self,
        coords: npt.NDArray[np.floating],
        tolerance: float = DEGENERATE_AREA_TOLERANCE,
    ) -> None:
        """
        Initialize the element batch.

        Args:
            coords: (m, 3, 3) vertex coordinates of the triangles.
            tolerance: Threshold on |(b-a) x (c-a)| below which a triangle is degenerate.
        """
        self.coords = np.ascontiguousarray(coords, dtype=np.float64).reshape(-1, 3, 3)
        self._B, self._normals, self._detJ = _tri3_gradients_and_detJ(self.coords, float(tolerance))
        self.tolerance = tolerance

    def __len__(self) -> int:
        return self.coords.shape[0]

    @property
    def jacobian_determinant(self) -> npt.NDArray[np.float64]:
        """(m,) |(b-a) x (c-a)| of every triangle."""
        return self._detJ

    @property
    def area(self) -> npt.NDArray[np.float64]:
        return 0.5 * self._detJ

    @property
    def normals(self) -> npt.NDArray[np.float64]:
        """(m, 3) unit normals."""
        return self._normals

    @property
    def valid(self) -> npt.NDArray[np.bool_]:
        """(m,) mask of non-degenerate triangles."""
        return self._detJ > self.tolerance

    @property
    def b_matrix(self) -> npt.NDArray[np.float64]:
        """(m, 3, 3) physical shape function gradients, [triangle, function, xyz]."""
        return self._B

    def get_stiffness_matrix(self) -> npt.NDArray[np.float64]:
        """
        Local stiffness matrices, area * (grad phi_i . grad phi_j).

        Returns:
            (m, 3, 3) stack of symmetric matrices.
        """
        return self.area[:, None, None] * np.einsum("mic,mjc->mij", self._B, self._B)

    def get_mass_matrix(self) -> npt.NDArray[np.float64]:
        """
        Local (consistent) mass matrices, |det J| / 24 * [[2,1,1],[1,2,1],[1,1,2]].

        Returns:
            (m, 3, 3) stack of symmetric matrices.
        """
        return (self._detJ / 24.0)[:, None, None] * LOCAL_MASS[None, :, :]

    def tangential_velocity(self, velocity: npt.ArrayLike) -> npt.NDArray[np.float64]:
        """
        Project a constant velocity onto each triangle plane and normalise it.

        A velocity parallel to the normal projects to zero and stays zero.

        Args:
            velocity: (3,) velocity vector.

        Returns:
            (m, 3) unit tangential directions.
        """
        v = np.asarray(velocity, dtype=np.float64).reshape(3)
        n = self._normals
        projected = v[None, :] - (n @ v)[:, None] * n
        norms = np.linalg.norm(projected, axis=1)
        out = np.zeros_like(projected)
        nonzero = norms > 0.0
        out[nonzero] = projected[nonzero] / norms[nonzero, None]
        return out

    def get_advection_matrix(self, velocity: npt.ArrayLike) -> npt.NDArray[np.float64]:
        """
        Local advection matrices, |det J| / 6 * (v_t . grad phi_j).

        The value does not depend on the row i (the integral of phi_i over a
        P1 triangle is the same for all three functions).

        Args:
            velocity: (3,) velocity vector.

        Returns:
            (m, 3, 3) stack of generally non-symmetric matrices.
        """
        v_t = self.tangential_velocity(velocity)
        row = (self._detJ / 6.0)[:, None] * np.einsum("mc,mjc->mj", v_t, self._B)
        return np.repeat(row[:, None, :], 3, axis=1)
